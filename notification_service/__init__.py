"""Notification service (HTTP /send) and the client the worker uses to call it."""
