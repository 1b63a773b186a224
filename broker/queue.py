"""
Task queue with explicit receive / acknowledge on top of RabbitMQ.

RabbitMQ pushes and redelivers on channel loss; the pipeline wants SQS-style
pulls instead: receive a bounded batch with a long-poll window, then delete
each message by its receipt handle once it has been handled. Messages that
stay unacknowledged longer than the visibility timeout are requeued on the
next receive so another poll can pick them up.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

import aio_pika

from broker.config import QUEUE_FULFILLMENT, RABBIT_URL, ROUTING_KEY_FULFILLMENT
from broker.setup import setup_queues
from common.ids import new_message_id
from common.payloads import ProcessOrderTask

logger = logging.getLogger(__name__)

_EMPTY_QUEUE_BACKOFF_SECONDS = 0.5


@dataclass(frozen=True)
class ReceivedMessage:
    message_id: str
    body: bytes
    receipt_handle: str


class TaskQueue(Protocol):
    async def enqueue(self, task: ProcessOrderTask) -> str: ...

    async def receive(self, max_messages: int = 10, wait_seconds: float = 20) -> list[ReceivedMessage]: ...

    async def acknowledge(self, receipt_handle: str) -> None: ...


@dataclass
class _InFlight:
    message: aio_pika.abc.AbstractIncomingMessage
    received_at: float


class RabbitTaskQueue:
    """At-least-once task queue. Use as an async context manager or call connect()/close()."""

    def __init__(
        self,
        url: str = RABBIT_URL,
        queue_name: str = QUEUE_FULFILLMENT,
        visibility_timeout: float = 30.0,
    ) -> None:
        self._url = url
        self._queue_name = queue_name
        self._visibility_timeout = visibility_timeout
        self._connection: aio_pika.abc.AbstractRobustConnection | None = None
        self._exchange: aio_pika.abc.AbstractExchange | None = None
        self._queue: aio_pika.abc.AbstractQueue | None = None
        self._in_flight: dict[str, _InFlight] = {}

    async def connect(self) -> None:
        self._connection = await aio_pika.connect_robust(self._url)
        channel = await self._connection.channel()
        self._exchange, self._queue = await setup_queues(channel, self._queue_name)
        logger.info("Task queue connected (%s)", self._queue_name)

    async def close(self) -> None:
        if self._connection is not None:
            # Closing the channel returns any unacknowledged messages to the queue.
            await self._connection.close()
            self._connection = None
            self._exchange = None
            self._queue = None
            self._in_flight.clear()

    async def __aenter__(self) -> RabbitTaskQueue:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def enqueue(self, task: ProcessOrderTask) -> str:
        """Publish a persistent task message. Returns its message id."""
        if self._exchange is None:
            raise RuntimeError("Task queue is not connected")
        message_id = new_message_id()
        await self._exchange.publish(
            aio_pika.Message(
                body=task.to_json().encode(),
                content_type="application/json",
                message_id=message_id,
                delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
            ),
            routing_key=ROUTING_KEY_FULFILLMENT,
        )
        logger.info("Message sent to queue: %s", message_id)
        return message_id

    async def receive(self, max_messages: int = 10, wait_seconds: float = 20) -> list[ReceivedMessage]:
        """
        Pull up to max_messages. Waits up to wait_seconds for the first one,
        then returns as soon as the queue is drained.
        """
        if self._queue is None:
            raise RuntimeError("Task queue is not connected")
        await self._requeue_expired()

        loop = asyncio.get_running_loop()
        deadline = loop.time() + wait_seconds
        received: list[ReceivedMessage] = []
        while len(received) < max_messages:
            incoming = await self._queue.get(no_ack=False, fail=False)
            if incoming is None:
                remaining = deadline - loop.time()
                if received or remaining <= 0:
                    break
                await asyncio.sleep(min(_EMPTY_QUEUE_BACKOFF_SECONDS, remaining))
                continue
            handle = f"{incoming.delivery_tag}"
            self._in_flight[handle] = _InFlight(incoming, loop.time())
            received.append(
                ReceivedMessage(
                    message_id=incoming.message_id or handle,
                    body=incoming.body,
                    receipt_handle=handle,
                )
            )
        return received

    async def acknowledge(self, receipt_handle: str) -> None:
        """Delete a received message."""
        entry = self._in_flight.pop(receipt_handle, None)
        if entry is None:
            # Visibility timeout already expired; the message will be redelivered.
            logger.warning("Receipt handle %s is no longer in flight", receipt_handle)
            return
        await entry.message.ack()
        logger.info("Message deleted from queue: %s", receipt_handle)

    async def _requeue_expired(self) -> None:
        now = asyncio.get_running_loop().time()
        expired = [
            handle
            for handle, entry in self._in_flight.items()
            if now - entry.received_at >= self._visibility_timeout
        ]
        for handle in expired:
            entry = self._in_flight.pop(handle)
            await entry.message.nack(requeue=True)
            logger.warning("Message %s not acknowledged in time, returned to queue", handle)
