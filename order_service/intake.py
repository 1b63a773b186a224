"""
OrderIntake: validates an order request, reserves stock, persists the order,
queues it for fulfillment, and warms the cache.

The store write completes before the fulfillment task is published, so the
worker never receives a task for an order it cannot load.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from broker.queue import TaskQueue
from common import storage
from common.cache import DEFAULT_TTL_SECONDS, Cache, cache_order
from common.errors import ServiceUnavailableError, ValidationError
from common.ids import new_order_id
from common.models import Order, OrderCreateRequest
from common.payloads import ProcessOrderTask
from inventory_service.reservation import InventoryReservationService

logger = logging.getLogger(__name__)

ENQUEUE_FAILURE_REASON = "Order could not be queued for fulfillment"


class OrderIntake:
    def __init__(
        self,
        db_path: str,
        reservations: InventoryReservationService,
        queue: TaskQueue,
        cache: Cache,
        cache_ttl_seconds: int = DEFAULT_TTL_SECONDS,
    ) -> None:
        self.db_path = db_path
        self.reservations = reservations
        self.queue = queue
        self.cache = cache
        self.cache_ttl_seconds = cache_ttl_seconds

    async def create_order(
        self,
        user_id: str,
        items: Sequence[Any],
        shipping_address: Any,
        payment_method: Any,
    ) -> Order:
        """
        Create a Pending order for user_id.

        items, shipping_address and payment_method may be models or plain
        dicts/strings; they are validated together before anything is touched.
        """
        request = _validate_request(items, shipping_address, payment_method)

        # 1. Reserve every line or none (raises ReservationRejected)
        order_items = self.reservations.reserve(request.items)

        # 2. Persist
        order = Order.create(
            order_id=new_order_id(),
            user_id=user_id,
            items=order_items,
            shipping_address=request.shipping_address,
            payment_method=request.payment_method,
        )
        try:
            storage.save_order(self.db_path, order)
        except Exception:
            logger.exception("Failed to persist order %s, releasing reservation", order.order_id)
            self.reservations.release(order_items)
            raise

        # 3. Queue for fulfillment, only after the write above returned
        try:
            await self.queue.enqueue(ProcessOrderTask(order_id=order.order_id))
        except Exception as e:
            logger.error("Failed to enqueue order %s: %s", order.order_id, e)
            try:
                self._abandon(order)
            except Exception:
                # Order stays Pending with its holds; it is never queued.
                logger.exception("Failed to mark unqueued order %s as failed", order.order_id)
            raise ServiceUnavailableError(ENQUEUE_FAILURE_REASON) from e

        # 4. Warm the cache; failure here is not the caller's problem
        await cache_order(self.cache, order, self.cache_ttl_seconds)

        logger.info(
            "Order %s created for user %s: %d item(s), total %.2f",
            order.order_id,
            user_id,
            len(order.items),
            order.total_amount,
        )
        return order

    def _abandon(self, order: Order) -> None:
        """Fail an order that was persisted but never queued, and give its stock back."""
        failed = order.mark_failed(ENQUEUE_FAILURE_REASON)
        with storage.transaction(self.db_path) as conn:
            if storage.try_finalize_order(conn, failed):
                for item in order.items:
                    storage.release_reserved(conn, item.product_id, item.quantity)


def _validate_request(items: Sequence[Any], shipping_address: Any, payment_method: Any) -> OrderCreateRequest:
    try:
        return OrderCreateRequest.model_validate(
            {
                "items": [_as_dict(item) for item in items] if isinstance(items, (list, tuple)) else items,
                "shipping_address": _as_dict(shipping_address),
                "payment_method": payment_method,
            }
        )
    except PydanticValidationError as e:
        raise ValidationError(
            "Validation Error",
            [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()],
        ) from e


def _as_dict(value: Any) -> Any:
    return value.model_dump() if hasattr(value, "model_dump") else value
