"""
OrderLookup: read side of the order service.

get_order is cache-first with a store fallback; list_orders always reads the
store. The owner-or-admin rule is applied to whichever copy is returned.
"""

from __future__ import annotations

import logging

from common import storage
from common.cache import DEFAULT_TTL_SECONDS, Cache, cache_order, read_cached_order
from common.errors import ForbiddenError, NotFoundError, ValidationError
from common.models import MAX_STORED_INT, Order, OrderPage, OrderView, Pagination

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


class OrderLookup:
    def __init__(self, db_path: str, cache: Cache, cache_ttl_seconds: int = DEFAULT_TTL_SECONDS) -> None:
        self.db_path = db_path
        self.cache = cache
        self.cache_ttl_seconds = cache_ttl_seconds

    async def get_order(self, order_id: str, caller_user_id: str, caller_role: str | None) -> OrderView:
        cached = await read_cached_order(self.cache, order_id)
        if cached is not None:
            _authorize(cached, caller_user_id, caller_role)
            return OrderView(order=cached, source="cache")

        order = storage.get_order(self.db_path, order_id)
        if order is None:
            raise NotFoundError("Order not found")
        _authorize(order, caller_user_id, caller_role)

        await cache_order(self.cache, order, self.cache_ttl_seconds)
        return OrderView(order=order, source="database")

    def list_orders(self, user_id: str, page: int = 1, page_size: int = 10) -> OrderPage:
        """Owner's orders, newest first. Pages are 1-indexed."""
        if page < 1:
            raise ValidationError("page must be at least 1")
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
        skip = (page - 1) * page_size
        if skip > MAX_STORED_INT:
            raise ValidationError("page is out of range")
        orders, total = storage.list_orders_for_user(self.db_path, user_id, skip, page_size)
        return OrderPage(orders=orders, pagination=Pagination.build(total, page, page_size))


def _authorize(order: Order, user_id: str, role: str | None) -> None:
    if not order.is_visible_to(user_id, role):
        logger.warning("User %s denied access to order %s", user_id, order.order_id)
        raise ForbiddenError("Not authorized to access this order")
