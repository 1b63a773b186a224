"""Declare the RabbitMQ exchange, fulfillment queue, and binding."""

import logging

import aio_pika
from aio_pika import ExchangeType

from broker.config import EXCHANGE, QUEUE_FULFILLMENT, ROUTING_KEY_FULFILLMENT

logger = logging.getLogger(__name__)


async def setup_queues(
    channel: aio_pika.abc.AbstractChannel,
    queue_name: str = QUEUE_FULFILLMENT,
) -> tuple[aio_pika.abc.AbstractExchange, aio_pika.abc.AbstractQueue]:
    """Declare exchange and fulfillment queue, bind them. Returns both."""
    exchange = await channel.declare_exchange(EXCHANGE, ExchangeType.TOPIC, durable=True)

    # order-fulfillment: consumed by the fulfillment worker
    fulfillment = await channel.declare_queue(queue_name, durable=True)
    await fulfillment.bind(exchange, routing_key=ROUTING_KEY_FULFILLMENT)

    logger.info("Broker queue %s declared", queue_name)
    return exchange, fulfillment
