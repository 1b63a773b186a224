"""Inventory reservation service and the inventory admin HTTP API."""
