"""Subject and HTML body of the order status email."""

from __future__ import annotations

from html import escape

from common.models import Order

_CELL = 'style="padding: 8px; border-bottom: 1px solid #ddd;"'
_HEAD = 'style="padding: 8px; text-align: left; border-bottom: 1px solid #ddd;"'


def render_subject(order: Order) -> str:
    """
    >>> from common.models import OrderItem, PaymentMethod, ShippingAddress
    >>> addr = ShippingAddress(street="1 Main St", city="Austin", state="TX", zip_code="78701", country="USA")
    >>> o = Order.create("o-1", "u-1", [OrderItem(product_id="p", name="Lamp", quantity=1, price=2.5)], addr, PaymentMethod.PAYPAL)
    >>> render_subject(o.mark_processed())
    'Order Processed: o-1'
    """
    return f"Order {order.status.value}: {order.order_id}"


def _money(amount: float) -> str:
    return f"${amount:,.2f}"


def render_body(order: Order) -> str:
    rows = "".join(
        f"""
        <tr>
          <td {_CELL}>{escape(item.name)}</td>
          <td {_CELL}>{item.quantity}</td>
          <td {_CELL}>{_money(item.price)}</td>
          <td {_CELL}>{_money(item.line_total)}</td>
        </tr>"""
        for item in order.items
    )
    reason = (
        f"<p>Reason: <strong>{escape(order.failure_reason)}</strong></p>"
        if order.failure_reason
        else ""
    )
    addr = order.shipping_address
    return f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
      <h2>Order {order.status.value}</h2>
      <p>Order ID: <strong>{escape(order.order_id)}</strong></p>
      <p>Status: <strong>{order.status.value}</strong></p>
      {reason}
      <h3>Order Details</h3>
      <table style="width: 100%; border-collapse: collapse;">
        <thead>
          <tr style="background-color: #f2f2f2;">
            <th {_HEAD}>Product</th>
            <th {_HEAD}>Quantity</th>
            <th {_HEAD}>Price</th>
            <th {_HEAD}>Total</th>
          </tr>
        </thead>
        <tbody>{rows}
        </tbody>
        <tfoot>
          <tr>
            <td colspan="3" style="padding: 8px; text-align: right; font-weight: bold;">Total Amount:</td>
            <td style="padding: 8px; font-weight: bold;">{_money(order.total_amount)}</td>
          </tr>
        </tfoot>
      </table>
      <h3>Shipping Address</h3>
      <p>
        {escape(addr.street)}<br>
        {escape(addr.city)}, {escape(addr.state)} {escape(addr.zip_code)}<br>
        {escape(addr.country)}
      </p>
      <p>Thank you for your order!</p>
    </div>
    """
