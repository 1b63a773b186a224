"""Order intake and lookup, and the order HTTP API."""
