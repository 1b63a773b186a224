"""
ID generation and timestamp utilities.

Provides new_order_id(), new_message_id(), new_delivery_id() and now_iso()
with deterministic UTC ISO 8601 formatting. Ids are ULIDs so that they sort
by creation time.
"""

from __future__ import annotations

from datetime import datetime, timezone

from ulid import ULID


def new_order_id() -> str:
    """
    Generate a new order ID (lexicographically sortable ULID).

    >>> id_ = new_order_id()
    >>> isinstance(id_, str) and len(id_) == 26
    True
    """
    return str(ULID())


def new_message_id() -> str:
    """
    Generate a new queue message ID. Same strategy as new_order_id().

    >>> new_message_id() != new_message_id()
    True
    """
    return str(ULID())


def new_delivery_id() -> str:
    """Generate an id for an outbound notification."""
    return str(ULID())


def now_iso() -> str:
    """
    Return current UTC time as ISO 8601 string with Z suffix.
    Deterministic format: YYYY-MM-DDTHH:MM:SS.ffffffZ

    >>> s = now_iso()
    >>> s.endswith('Z') and 'T' in s
    True
    """
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
