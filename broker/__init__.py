"""RabbitMQ broker config, setup, and the fulfillment task queue."""

from broker.config import (
    EXCHANGE,
    QUEUE_FULFILLMENT,
    RABBIT_URL,
    ROUTING_KEY_FULFILLMENT,
)

__all__ = [
    "EXCHANGE",
    "QUEUE_FULFILLMENT",
    "RABBIT_URL",
    "ROUTING_KEY_FULFILLMENT",
]
