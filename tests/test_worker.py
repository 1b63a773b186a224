import asyncio
from concurrent.futures import ThreadPoolExecutor

import pytest

from common import storage
from common.cache import read_cached_order
from common.errors import InvalidTransitionError
from common.models import LineRequest, Order, OrderItem, OrderStatus, PaymentMethod, ShippingAddress
from common.payloads import ProcessOrderTask
from fulfillment_worker.worker import USER_NOT_FOUND, FulfillmentWorker
from tests.fakes import MemoryQueue


async def _place(intake, address, *lines, user_id="u-1"):
    items = [{"product_id": pid, "quantity": qty} for pid, qty in lines]
    return await intake.create_order(user_id, items, address, "Credit Card")


async def test_order_flows_from_intake_to_processed(
    intake, worker, queue, cache, notifier, add_item, stock, customer, address
):
    add_item("a", name="ProductA", price=10.0, quantity=5)
    order = await _place(intake, address, ("a", 1))

    assert await worker.poll_once() == 1

    stored = storage.get_order(worker.db_path, order.order_id)
    assert stored.status is OrderStatus.PROCESSED
    assert stored.failure_reason is None
    assert stock("a") == (4, 0)

    assert len(notifier.sent) == 1
    sent = notifier.sent[0]
    assert sent.recipient == customer.email
    assert sent.subject == f"Order Processed: {order.order_id}"
    assert "ProductA" in sent.html_body

    assert (await read_cached_order(cache, order.order_id)).status is OrderStatus.PROCESSED
    assert queue.in_flight == {}
    assert len(queue.acked) == 1


async def test_redelivery_of_finished_order_is_a_no_op(
    intake, worker, queue, notifier, add_item, stock, customer, address
):
    add_item("a", quantity=5)
    order = await _place(intake, address, ("a", 2))
    await worker.poll_once()

    queue.put_raw(ProcessOrderTask(order_id=order.order_id).to_json().encode())
    assert await worker.poll_once() == 1

    assert stock("a") == (3, 0)
    assert len(notifier.sent) == 1
    assert len(queue.acked) == 2


async def test_unknown_order_is_acknowledged(worker, queue):
    queue.put_raw(ProcessOrderTask(order_id="ghost").to_json().encode())
    await worker.poll_once()
    assert queue.in_flight == {}
    assert queue.acked


async def test_missing_user_fails_order_without_email(intake, worker, notifier, add_item, stock, address):
    add_item("a", quantity=5)
    order = await _place(intake, address, ("a", 2), user_id="nobody")

    await worker.poll_once()

    stored = storage.get_order(worker.db_path, order.order_id)
    assert stored.status is OrderStatus.FAILED
    assert stored.failure_reason == USER_NOT_FOUND
    assert stock("a") == (5, 0)
    assert notifier.sent == []


async def test_failed_debit_leaves_no_partial_stock_change(
    worker, queue, notifier, db_path, add_item, stock, customer, address
):
    add_item("a", name="ProductA", quantity=5, reserved=1)
    order = Order.create(
        "o-1",
        customer.user_id,
        [
            OrderItem(product_id="a", name="ProductA", quantity=1, price=10.0),
            OrderItem(product_id="gone", name="Gone", quantity=1, price=5.0),
        ],
        ShippingAddress(**address),
        PaymentMethod.PAYPAL,
    )
    storage.save_order(db_path, order)

    finalized = await worker.process_order("o-1")

    assert finalized.status is OrderStatus.FAILED
    assert finalized.failure_reason == "Product gone not found in inventory"
    assert stock("a") == (5, 0)
    assert storage.get_order(db_path, "o-1") == finalized
    assert notifier.sent[0].subject == "Order Failed: o-1"


async def test_stock_drained_after_reservation_fails_order(
    intake, worker, db_path, add_item, stock, customer, address
):
    add_item("a", name="ProductA", quantity=3)
    order = await _place(intake, address, ("a", 2))
    with storage.transaction(db_path) as conn:
        conn.execute("UPDATE inventory SET quantity_on_hand = 2, reserved = 1 WHERE product_id = 'a'")

    finalized = await worker.process_order(order.order_id)

    assert finalized.status is OrderStatus.FAILED
    assert finalized.failure_reason == "No reserved stock left for product ProductA"
    assert stock("a") == (2, 0)


async def test_notification_failure_still_acknowledges(
    intake, worker, queue, notifier, add_item, customer, address
):
    add_item("a", quantity=5)
    order = await _place(intake, address, ("a", 1))
    notifier.fail = True

    await worker.poll_once()

    assert storage.get_order(worker.db_path, order.order_id).status is OrderStatus.PROCESSED
    assert queue.in_flight == {}


async def test_unusable_payloads_are_dropped(worker, queue):
    queue.put_raw(b'{"action": "REFUND_ORDER", "orderId": "o-1"}')
    queue.put_raw(b"not json at all")
    assert await worker.poll_once() == 2
    assert queue.in_flight == {}
    assert len(queue.acked) == 2


async def test_unexpected_error_leaves_message_for_redelivery(
    intake, worker, queue, clock, add_item, stock, customer, address, monkeypatch
):
    add_item("a", quantity=5)
    first = await _place(intake, address, ("a", 1))
    second = await _place(intake, address, ("a", 1))

    real_process = worker.process_order
    broken = {first.order_id}

    async def flaky(order_id):
        if order_id in broken:
            raise RuntimeError("store hiccup")
        return await real_process(order_id)

    monkeypatch.setattr(worker, "process_order", flaky)

    assert await worker.poll_once() == 2
    assert storage.get_order(worker.db_path, second.order_id).status is OrderStatus.PROCESSED
    assert len(queue.in_flight) == 1

    broken.clear()
    assert await worker.poll_once() == 0

    clock.advance(30)
    assert await worker.poll_once() == 1
    assert storage.get_order(worker.db_path, first.order_id).status is OrderStatus.PROCESSED
    assert stock("a") == (3, 0)


async def test_run_loop_processes_until_stopped(intake, worker, add_item, customer, address):
    add_item("a", quantity=5)
    order = await _place(intake, address, ("a", 1))

    task = worker.start()
    for _ in range(200):
        if storage.get_order(worker.db_path, order.order_id).status.is_terminal:
            break
        await asyncio.sleep(0.01)
    await worker.stop()

    assert task.done()
    assert storage.get_order(worker.db_path, order.order_id).status is OrderStatus.PROCESSED


def _pending_order(db_path, reservations, address, user_id, *lines):
    items = reservations.reserve([LineRequest(product_id=pid, quantity=qty) for pid, qty in lines])
    order = Order.create("o-race", user_id, items, ShippingAddress(**address), PaymentMethod.PAYPAL)
    storage.save_order(db_path, order)
    return order


def test_concurrent_workers_finalize_an_order_once(
    db_path, reservations, queue, cache, notifier, add_item, stock, customer, address
):
    add_item("a", quantity=5)
    order = _pending_order(db_path, reservations, address, customer.user_id, ("a", 2))

    def run_worker(_):
        worker = FulfillmentWorker(db_path, queue, cache, notifier)
        finalized = asyncio.run(worker.process_order(order.order_id))
        return finalized.status if finalized else None

    with ThreadPoolExecutor(max_workers=6) as pool:
        results = list(pool.map(run_worker, range(6)))

    assert results.count(OrderStatus.PROCESSED) == 1
    assert results.count(None) == 5
    assert stock("a") == (3, 0)
    assert len(notifier.sent) == 1


async def test_status_write_lost_to_another_writer_rolls_back_debits(
    worker, db_path, reservations, notifier, add_item, stock, customer, address, monkeypatch
):
    add_item("a", quantity=5)
    order = _pending_order(db_path, reservations, address, customer.user_id, ("a", 2))
    monkeypatch.setattr(storage, "try_finalize_order", lambda conn, finalized: False)

    with pytest.raises(InvalidTransitionError):
        await worker.process_order(order.order_id)

    assert stock("a") == (5, 2)
    assert storage.get_order(db_path, order.order_id).status is OrderStatus.PENDING
    assert notifier.sent == []


class _SilentQueue(MemoryQueue):
    """Long-polls for an hour unless cancelled."""

    def __init__(self) -> None:
        super().__init__()
        self.cancelled = False

    async def receive(self, max_messages=10, wait_seconds=20):
        try:
            await asyncio.sleep(3600)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return []


async def test_stop_interrupts_a_long_poll(db_path, cache, notifier):
    queue = _SilentQueue()
    worker = FulfillmentWorker(db_path, queue, cache, notifier, poll_interval=0.01, wait_seconds=20)

    task = worker.start()
    await asyncio.sleep(0.05)
    await asyncio.wait_for(worker.stop(), timeout=1)

    assert task.done()
    assert queue.cancelled
