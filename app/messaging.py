"""RabbitMQ-backed durable event queue"""
import aio_pika
import logging
import asyncio
from typing import Optional

from aio_pika.abc import AbstractChannel, AbstractQueue, AbstractRobustConnection
from aio_pika.exceptions import AMQPError, ChannelInvalidStateError
from errors import QueueError

logger = logging.getLogger(__name__)


class EventQueue:
    """FIFO queue: push to tail, pop from head, report length"""

    def __init__(self, url: str, name: str, timeout: float = 5.0):
        self.url = url
        self.name = name
        self.timeout = timeout
        self.connection: Optional[AbstractRobustConnection] = None
        self.channel: Optional[AbstractChannel] = None
        self.queue: Optional[AbstractQueue] = None

    async def connect(self, attempts: int = 10, delay: float = 5):
        """Connect and declare the durable queue, retrying while the broker starts"""
        for attempt in range(attempts):
            try:
                self.connection = await aio_pika.connect_robust(self.url, timeout=10)
                self.channel = await self.connection.channel()
                self.queue = await self.channel.declare_queue(self.name, durable=True)
                logger.warning(f"Queue connected: {self.name}")
                return
            except Exception as e:
                if attempt < attempts - 1:
                    await asyncio.sleep(delay)
                else:
                    raise QueueError(f"Failed to connect to RabbitMQ: {e}") from e

    async def close(self):
        """Close RabbitMQ connection"""
        if self.connection and not self.connection.is_closed:
            await self.connection.close()

    @property
    def is_connected(self) -> bool:
        return self.connection is not None and not self.connection.is_closed

    async def _call(self, op: str, make_call):
        if self.queue is None:
            raise QueueError(f"Queue {self.name} is not connected")
        try:
            return await asyncio.wait_for(make_call(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise QueueError(f"Queue {op} timed out after {self.timeout}s") from e
        except (AMQPError, ChannelInvalidStateError, ConnectionError) as e:
            raise QueueError(f"Queue {op} failed: {e}") from e

    async def push(self, body: bytes):
        """Append a serialized entry to the tail"""
        message = aio_pika.Message(
            body=body,
            delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
            content_type="application/msgpack"
        )
        await self._call(
            "push",
            lambda: self.channel.default_exchange.publish(message, routing_key=self.name)
        )

    async def pop(self) -> Optional[bytes]:
        """Remove and return the head entry, or None if the queue is empty"""
        message = await self._call("pop", lambda: self.queue.get(no_ack=True, fail=False))
        return message.body if message is not None else None

    async def length(self) -> int:
        result = await self._call("length", lambda: self.queue.declare())
        return result.message_count
