"""Fulfillment worker: queue consumer that debits stock and finalizes orders."""
