"""
Shared common module for the order, inventory and notification services and
the fulfillment worker.

Framework-agnostic apart from common.http, which is imported directly by the
HTTP services. Uses Pydantic v2 for schemas.
"""

from common.cache import RedisCache, cache_order, order_cache_key, read_cached_order
from common.config import Settings
from common.errors import (
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    MalformedPayloadError,
    NotFoundError,
    NotificationError,
    PipelineError,
    ReservationRejected,
    ServiceUnavailableError,
    UnknownTaskError,
    ValidationError,
)
from common.ids import new_delivery_id, new_message_id, new_order_id, now_iso
from common.logging import setup_logging
from common.models import (
    ADMIN_ROLE,
    InventoryCreateRequest,
    InventoryItem,
    InventoryUpdateRequest,
    LineFailure,
    LineRequest,
    NotificationRequest,
    Order,
    OrderCreateRequest,
    OrderItem,
    OrderPage,
    OrderStatus,
    OrderView,
    Pagination,
    PaymentMethod,
    ShippingAddress,
    User,
)
from common.payloads import PROCESS_ORDER, ProcessOrderTask, parse_task

__all__ = [
    "RedisCache",
    "cache_order",
    "order_cache_key",
    "read_cached_order",
    "Settings",
    "PipelineError",
    "ValidationError",
    "ForbiddenError",
    "NotFoundError",
    "ConflictError",
    "ReservationRejected",
    "InvalidTransitionError",
    "MalformedPayloadError",
    "UnknownTaskError",
    "NotificationError",
    "ServiceUnavailableError",
    "new_order_id",
    "new_message_id",
    "new_delivery_id",
    "now_iso",
    "setup_logging",
    "ADMIN_ROLE",
    "InventoryItem",
    "InventoryCreateRequest",
    "InventoryUpdateRequest",
    "User",
    "PaymentMethod",
    "OrderStatus",
    "ShippingAddress",
    "LineRequest",
    "OrderItem",
    "OrderCreateRequest",
    "Order",
    "NotificationRequest",
    "LineFailure",
    "OrderView",
    "Pagination",
    "OrderPage",
    "PROCESS_ORDER",
    "ProcessOrderTask",
    "parse_task",
]
