"""
FulfillmentWorker: consumes PROCESS_ORDER tasks and finalizes orders.

Per task: load the order, skip it unless Pending, debit every line in one
store transaction (all or nothing), write Processed or Failed, refresh the
cache, email the customer, and only then acknowledge the message. Anything
unexpected leaves the message unacknowledged so the queue redelivers it; the
Pending check makes that redelivery harmless once the order is terminal.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3

from broker.queue import ReceivedMessage, TaskQueue
from common import storage
from common.cache import DEFAULT_TTL_SECONDS, Cache, cache_order
from common.errors import InvalidTransitionError, MalformedPayloadError, UnknownTaskError
from common.models import Order, User
from common.payloads import parse_task
from fulfillment_worker.order_email import render_body, render_subject
from notification_service.client import Notifier

logger = logging.getLogger(__name__)

USER_NOT_FOUND = "User not found"


class _DebitFailed(Exception):
    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class FulfillmentWorker:
    def __init__(
        self,
        db_path: str,
        queue: TaskQueue,
        cache: Cache,
        notifier: Notifier,
        *,
        cache_ttl_seconds: int = DEFAULT_TTL_SECONDS,
        poll_interval: float = 10.0,
        batch_size: int = 10,
        wait_seconds: float = 20,
    ) -> None:
        self.db_path = db_path
        self.queue = queue
        self.cache = cache
        self.notifier = notifier
        self.cache_ttl_seconds = cache_ttl_seconds
        self.poll_interval = poll_interval
        self.batch_size = batch_size
        self.wait_seconds = wait_seconds
        self._stop = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    # -------------------------------------------------------------------------
    # Single order
    # -------------------------------------------------------------------------

    async def process_order(self, order_id: str) -> Order | None:
        """Finalize one order. Returns the terminal order, or None if nothing was done."""
        order = storage.get_order(self.db_path, order_id)
        if order is None:
            logger.error("Order not found: %s", order_id)
            return None

        if order.status.is_terminal:
            logger.info("Order %s is already %s", order_id, order.status.value)
            return None

        user = storage.get_user(self.db_path, order.user_id)
        if user is None:
            logger.error("User not found for order: %s", order_id)
            finalized = self._finalize(order_id, failure_reason=USER_NOT_FOUND)
            if finalized is not None:
                await cache_order(self.cache, finalized, self.cache_ttl_seconds)
            return finalized

        finalized = self._finalize(order_id)
        if finalized is None:
            logger.info("Order %s was finalized by another worker", order_id)
            return None

        await cache_order(self.cache, finalized, self.cache_ttl_seconds)
        await self._notify(user, finalized)

        logger.info("Order %s processed. Status: %s", order_id, finalized.status.value)
        return finalized

    def _finalize(self, order_id: str, failure_reason: str | None = None) -> Order | None:
        """
        Debit stock and write the terminal status in one transaction.

        On failure no debit survives and the order's holds are released.
        Returns None if the order is no longer Pending.
        """
        with storage.transaction(self.db_path) as conn:
            order = storage.fetch_order(conn, order_id)
            if order is None or order.status.is_terminal:
                return None

            if failure_reason is None:
                try:
                    with storage.savepoint(conn, "debit"):
                        _debit_items(conn, order)
                except _DebitFailed as e:
                    failure_reason = e.reason

            if failure_reason is None:
                finalized = order.mark_processed()
            else:
                for item in order.items:
                    storage.release_reserved(conn, item.product_id, item.quantity)
                finalized = order.mark_failed(failure_reason)

            if not storage.try_finalize_order(conn, finalized):
                raise InvalidTransitionError(f"Order {order_id} left Pending during fulfillment")

        if finalized.failure_reason:
            logger.warning("Order %s failed: %s", order_id, finalized.failure_reason)
        return finalized

    async def _notify(self, user: User, order: Order) -> None:
        try:
            await self.notifier.send(user.email, render_subject(order), render_body(order))
            logger.info("Order confirmation email sent to %s for order %s", user.email, order.order_id)
        except Exception as e:
            logger.error("Error sending order confirmation email: %s", e)

    # -------------------------------------------------------------------------
    # Queue consumption
    # -------------------------------------------------------------------------

    async def handle_message(self, message: ReceivedMessage) -> None:
        """Process one message and acknowledge it. Raises (without ack) on unexpected errors."""
        try:
            task = parse_task(message.body)
        except UnknownTaskError as e:
            logger.warning("Ignoring message %s: %s", message.message_id, e.message)
        except MalformedPayloadError as e:
            logger.error("Dropping malformed message %s: %s", message.message_id, e.message)
        else:
            await self.process_order(task.order_id)
        await self.queue.acknowledge(message.receipt_handle)

    async def poll_once(self) -> int:
        """Receive one batch and handle it sequentially. Returns the batch size."""
        messages = await self._receive()
        if not messages:
            return 0
        logger.info("Received %d messages from queue", len(messages))
        for message in messages:
            try:
                await self.handle_message(message)
            except Exception:
                logger.exception("Error processing message %s", message.message_id)
        return len(messages)

    async def _receive(self) -> list[ReceivedMessage]:
        """Long-poll the queue, giving up early (with no messages) once stop() is called."""
        receive = asyncio.ensure_future(
            self.queue.receive(max_messages=self.batch_size, wait_seconds=self.wait_seconds)
        )
        stopped = asyncio.ensure_future(self._stop.wait())
        try:
            await asyncio.wait({receive, stopped}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stopped.cancel()
            if not receive.done():
                # Anything already pulled stays in flight and is redelivered after its timeout.
                receive.cancel()
                await asyncio.gather(receive, return_exceptions=True)
        if receive.cancelled():
            return []
        return receive.result()

    async def run(self) -> None:
        """Poll every poll_interval seconds until stop() is called."""
        logger.info("Order processor worker started")
        while not self._stop.is_set():
            try:
                await self.poll_once()
            except Exception:
                logger.exception("Error receiving messages from queue")
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass
        logger.info("Order processor worker stopped")

    def start(self) -> asyncio.Task[None]:
        if self._task is not None and not self._task.done():
            raise RuntimeError("Worker is already running")
        self._stop.clear()
        self._task = asyncio.create_task(self.run(), name="fulfillment-worker")
        return self._task

    async def stop(self) -> None:
        """Signal the loop to stop and wait for the in-flight batch to finish."""
        self._stop.set()
        if self._task is not None:
            await self._task
            self._task = None


def _debit_items(conn: sqlite3.Connection, order: Order) -> None:
    """Debit lines in order; raise _DebitFailed at the first line that cannot be filled."""
    for item in order.items:
        row = storage.fetch_inventory_item(conn, item.product_id)
        if row is None:
            raise _DebitFailed(f"Product {item.product_id} not found in inventory")
        if row.quantity_on_hand < item.quantity:
            raise _DebitFailed(f"Insufficient stock for product {row.name}")
        if not storage.try_debit(conn, item.product_id, item.quantity):
            raise _DebitFailed(f"No reserved stock left for product {row.name}")
