from common.models import Order, OrderItem, PaymentMethod, ShippingAddress
from fulfillment_worker.order_email import render_body, render_subject


def _order(address, name="Lamp"):
    return Order.create(
        "o-9",
        "u-1",
        [OrderItem(product_id="p", name=name, quantity=3, price=1200.5)],
        ShippingAddress(**address),
        PaymentMethod.CREDIT_CARD,
    )


def test_body_lists_lines_totals_and_address(address):
    body = render_body(_order(address).mark_processed())
    assert "Order Processed" in body
    assert "$1,200.50" in body
    assert "$3,601.50" in body
    assert "New York, NY 10001" in body
    assert "Reason:" not in body


def test_failed_order_shows_reason_and_escapes_text(address):
    order = _order(address, name="<b>Lamp</b>").mark_failed("Insufficient stock for product <b>Lamp</b>")
    body = render_body(order)
    assert render_subject(order) == "Order Failed: o-9"
    assert "<b>Lamp</b>" not in body
    assert "&lt;b&gt;Lamp&lt;/b&gt;" in body
    assert "Reason:" in body
