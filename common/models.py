"""
Pydantic v2 data models for inventory, users, orders and service results.

Framework-agnostic; safe to use from FastAPI (request/response bodies), the
fulfillment worker, or the seed script. All models forbid extra fields.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from common.errors import InvalidTransitionError
from common.ids import now_iso

ADMIN_ROLE = "admin"

# Largest value a SQLite INTEGER column holds.
MAX_STORED_INT = 2**63 - 1


# -----------------------------------------------------------------------------
# Inventory and users
# -----------------------------------------------------------------------------


class InventoryItem(BaseModel):
    """Stock record for one product. available = quantity_on_hand - reserved."""

    model_config = ConfigDict(extra="forbid")

    product_id: str
    name: str
    price: float = Field(..., ge=0)
    quantity_on_hand: int = Field(..., ge=0, le=MAX_STORED_INT)
    reserved: int = Field(0, ge=0)

    @model_validator(mode="after")
    def _reserved_within_on_hand(self) -> InventoryItem:
        if self.reserved > self.quantity_on_hand:
            raise ValueError("reserved cannot exceed quantity_on_hand")
        return self

    @computed_field
    @property
    def available(self) -> int:
        return self.quantity_on_hand - self.reserved


class User(BaseModel):
    model_config = ConfigDict(extra="forbid")

    user_id: str
    email: str
    name: str
    role: Literal["user", "admin"] = "user"


# -----------------------------------------------------------------------------
# Orders
# -----------------------------------------------------------------------------


class PaymentMethod(str, Enum):
    CREDIT_CARD = "Credit Card"
    PAYPAL = "PayPal"
    BANK_TRANSFER = "Bank Transfer"


class OrderStatus(str, Enum):
    PENDING = "Pending"
    PROCESSED = "Processed"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return self is not OrderStatus.PENDING


class ShippingAddress(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip_code: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)


class LineRequest(BaseModel):
    """One requested line: product and positive quantity."""

    model_config = ConfigDict(extra="forbid")

    product_id: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1, le=MAX_STORED_INT, description="Quantity must be at least 1")

    def __str__(self) -> str:
        return f"{self.product_id}:{self.quantity}"


class OrderItem(BaseModel):
    """Line item with name and unit price snapshotted at order time."""

    model_config = ConfigDict(extra="forbid")

    product_id: str
    name: str
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0)

    @property
    def line_total(self) -> float:
        return round(self.price * self.quantity, 2)


class OrderCreateRequest(BaseModel):
    """Request to create an order: at least one line, address and payment."""

    model_config = ConfigDict(extra="forbid")

    items: list[LineRequest] = Field(..., min_length=1)
    shipping_address: ShippingAddress
    payment_method: PaymentMethod


class Order(BaseModel):
    """Persisted order.

    ``total_amount`` is computed once by ``Order.create`` and never
    recomputed. Status only moves Pending -> Processed or Pending -> Failed,
    through ``mark_processed`` / ``mark_failed``.
    """

    model_config = ConfigDict(extra="forbid")

    order_id: str
    user_id: str
    items: list[OrderItem] = Field(..., min_length=1)
    total_amount: float = Field(..., ge=0)
    status: OrderStatus = OrderStatus.PENDING
    failure_reason: str | None = None
    shipping_address: ShippingAddress
    payment_method: PaymentMethod
    created_at: str
    updated_at: str

    @model_validator(mode="after")
    def _failure_reason_only_when_failed(self) -> Order:
        if self.status is OrderStatus.FAILED and not self.failure_reason:
            raise ValueError("failure_reason is required when status is Failed")
        if self.status is not OrderStatus.FAILED and self.failure_reason is not None:
            raise ValueError("failure_reason is only allowed when status is Failed")
        return self

    @classmethod
    def create(
        cls,
        order_id: str,
        user_id: str,
        items: list[OrderItem],
        shipping_address: ShippingAddress,
        payment_method: PaymentMethod,
    ) -> Order:
        """Build a new Pending order and compute its total."""
        created_at = now_iso()
        return cls(
            order_id=order_id,
            user_id=user_id,
            items=items,
            total_amount=round(sum(item.price * item.quantity for item in items), 2),
            status=OrderStatus.PENDING,
            shipping_address=shipping_address,
            payment_method=payment_method,
            created_at=created_at,
            updated_at=created_at,
        )

    def is_visible_to(self, user_id: str, role: str | None) -> bool:
        """Owner-or-admin access rule."""
        return self.user_id == user_id or role == ADMIN_ROLE

    def _transition(self, status: OrderStatus, failure_reason: str | None) -> Order:
        if self.status.is_terminal:
            raise InvalidTransitionError(
                f"Order {self.order_id} is already {self.status.value}"
            )
        return self.model_copy(
            update={"status": status, "failure_reason": failure_reason, "updated_at": now_iso()}
        )

    def mark_processed(self) -> Order:
        return self._transition(OrderStatus.PROCESSED, None)

    def mark_failed(self, reason: str) -> Order:
        if not reason:
            raise ValueError("A failed order needs a reason")
        return self._transition(OrderStatus.FAILED, reason)


# -----------------------------------------------------------------------------
# Inventory administration requests
# -----------------------------------------------------------------------------


class InventoryCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    product_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    quantity: int = Field(..., ge=0, le=MAX_STORED_INT, description="Quantity must be a non-negative integer")


class InventoryUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    quantity: int = Field(..., ge=0, le=MAX_STORED_INT, description="Quantity must be a non-negative integer")


class NotificationRequest(BaseModel):
    """Request to send an email to a user about an order."""

    model_config = ConfigDict(extra="forbid")

    recipient: str = Field(..., min_length=1)
    subject: str
    html_body: str


# -----------------------------------------------------------------------------
# Results
# -----------------------------------------------------------------------------


class LineFailure(BaseModel):
    """Why one requested line could not be reserved."""

    model_config = ConfigDict(extra="forbid")

    product_id: str
    requested: int
    message: str
    product_name: str | None = None
    available: int | None = None


class OrderView(BaseModel):
    """An order together with where it was read from."""

    model_config = ConfigDict(extra="forbid")

    order: Order
    source: Literal["cache", "database"]


class Pagination(BaseModel):
    model_config = ConfigDict(extra="forbid")

    total: int
    page: int
    limit: int
    pages: int

    @classmethod
    def build(cls, total: int, page: int, limit: int) -> Pagination:
        """
        >>> Pagination.build(total=21, page=2, limit=10).pages
        3
        """
        return cls(total=total, page=page, limit=limit, pages=math.ceil(total / limit))


class OrderPage(BaseModel):
    model_config = ConfigDict(extra="forbid")

    orders: list[Order]
    pagination: Pagination
