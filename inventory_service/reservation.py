"""
InventoryReservationService: holds stock for new orders and administers
inventory rows.

A reservation covers every line of an order or none of them. All lines are
checked and held inside one store transaction; each hold is a conditional
UPDATE, so two concurrent orders can never both take the last unit. If any
line fails the transaction is rolled back and every failing line is reported.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from common import storage
from common.errors import ConflictError, NotFoundError, ReservationRejected, ValidationError
from common.models import (
    MAX_STORED_INT,
    InventoryCreateRequest,
    InventoryItem,
    LineFailure,
    LineRequest,
    OrderItem,
)

logger = logging.getLogger(__name__)


class _Rejected(Exception):
    """Internal: aborts the reservation transaction."""

    def __init__(self, failures: list[LineFailure]) -> None:
        super().__init__(f"{len(failures)} line(s) failed")
        self.failures = failures


class InventoryReservationService:
    def __init__(self, db_path: str) -> None:
        self.db_path = db_path

    def reserve(self, lines: Sequence[LineRequest]) -> list[OrderItem]:
        """
        Hold stock for every line and return the order items with name and
        price snapshotted from inventory.

        Raises ReservationRejected listing each failing line; in that case no
        hold is applied for any line.
        """
        if not lines:
            raise ValidationError("Items are required")
        try:
            with storage.transaction(self.db_path) as conn:
                items: list[OrderItem] = []
                failures: list[LineFailure] = []
                for line in lines:
                    row = storage.fetch_inventory_item(conn, line.product_id)
                    if row is None:
                        failures.append(
                            LineFailure(
                                product_id=line.product_id,
                                requested=line.quantity,
                                message=f"Product {line.product_id} not found in inventory",
                            )
                        )
                        continue
                    if row.available < line.quantity or not storage.try_reserve(
                        conn, line.product_id, line.quantity
                    ):
                        failures.append(_insufficient(row, line))
                        continue
                    items.append(
                        OrderItem(
                            product_id=row.product_id,
                            name=row.name,
                            quantity=line.quantity,
                            price=row.price,
                        )
                    )
                if failures:
                    raise _Rejected(failures)
        except _Rejected as e:
            logger.info(
                "Reservation rejected for %d line(s): %s",
                len(e.failures),
                "; ".join(f.message for f in e.failures),
            )
            raise ReservationRejected(e.failures) from None

        logger.info("Reserved %s", ", ".join(str(line) for line in lines))
        return items

    def release(self, items: Sequence[OrderItem]) -> None:
        """Give back the holds taken for these items (compensation)."""
        with storage.transaction(self.db_path) as conn:
            for item in items:
                if not storage.release_reserved(conn, item.product_id, item.quantity):
                    logger.warning(
                        "Cannot release %d of %s: inventory row missing",
                        item.quantity,
                        item.product_id,
                    )
        logger.info("Released reservation for %d line(s)", len(items))

    # -------------------------------------------------------------------------
    # Administration
    # -------------------------------------------------------------------------

    def get_item(self, product_id: str) -> InventoryItem:
        item = storage.get_inventory_item(self.db_path, product_id)
        if item is None:
            raise NotFoundError("Inventory item not found")
        return item

    def create_item(self, request: InventoryCreateRequest) -> InventoryItem:
        item = InventoryItem(
            product_id=request.product_id,
            name=request.name,
            price=request.price,
            quantity_on_hand=request.quantity,
            reserved=0,
        )
        if not storage.try_create_inventory_item(self.db_path, item):
            raise ConflictError("Inventory item already exists for this product")
        logger.info("Inventory item %s created with %d units", item.product_id, item.quantity_on_hand)
        return item

    def update_quantity(self, product_id: str, quantity: int) -> InventoryItem:
        """Set on-hand stock. Refuses to go below what is currently held."""
        if not 0 <= quantity <= MAX_STORED_INT:
            raise ValidationError("Valid quantity is required")
        if storage.set_quantity_on_hand(self.db_path, product_id, quantity):
            return self.get_item(product_id)
        current = self.get_item(product_id)
        raise ValidationError(
            f"Cannot set quantity below reserved amount ({current.reserved})"
        )


def _insufficient(row: InventoryItem, line: LineRequest) -> LineFailure:
    return LineFailure(
        product_id=line.product_id,
        requested=line.quantity,
        product_name=row.name,
        available=row.available,
        message=(
            f"Insufficient stock for product {row.name}. "
            f"Available: {row.available}, Requested: {line.quantity}"
        ),
    )
