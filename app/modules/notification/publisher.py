import asyncio
import json
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

import redis.asyncio as redis

from app.core.config import settings

logger = logging.getLogger(__name__)

Transport = Callable[[str, str, Dict[str, Any]], Awaitable[None]]


class RedisTransport:
    """Publishes `{"key", "payload"}` JSON envelopes on a Redis channel."""

    def __init__(self, redis_url: Optional[str] = None):
        self.redis_url = redis_url or settings.REDIS_URL
        self._client = None

    def _get_client(self):
        if self._client is None:
            self._client = redis.from_url(self.redis_url)
        return self._client

    async def __call__(self, channel: str, key: str, payload: Dict[str, Any]) -> None:
        message = json.dumps({"key": key, "payload": payload}, default=str)
        await self._get_client().publish(channel, message)

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class EventPublisher:
    """
    Fire-and-forget dispatch onto a bounded in-process queue.

    `publish` never blocks and never raises: when the queue is full the message
    is dropped with a warning. A background worker drains the queue into the
    transport; transport errors are logged and swallowed.
    """

    def __init__(self, transport: Optional[Transport] = None, maxsize: Optional[int] = None):
        self.transport = transport or RedisTransport()
        self.maxsize = maxsize or settings.NOTIFICATION_QUEUE_SIZE
        self._queue: asyncio.Queue[Tuple[str, str, Dict[str, Any]]] = asyncio.Queue(maxsize=self.maxsize)
        self._worker: Optional[asyncio.Task] = None
        self.dropped = 0

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def pending(self) -> int:
        return self._queue.qsize()

    def publish(self, channel: str, key: str, payload: Dict[str, Any]) -> bool:
        try:
            self._queue.put_nowait((channel, key, payload))
            return True
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(f"Event queue full, dropping message for channel {channel}, key {key}")
            return False
        except Exception as e:
            logger.error(f"Failed to enqueue message for channel {channel}: {e}")
            return False

    async def start(self):
        if self.is_running:
            return
        # Fresh queue bound to the running loop; messages published before start carry over
        backlog = self._queue
        self._queue = asyncio.Queue(maxsize=self.maxsize)
        while not backlog.empty():
            self._queue.put_nowait(backlog.get_nowait())
        self._worker = asyncio.create_task(self._run(), name="event_publisher_worker")
        logger.info("Event publisher started")

    async def stop(self, timeout: float = 5.0):
        if not self.is_running:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Event publisher stopped with {self._queue.qsize()} undelivered messages")
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        close = getattr(self.transport, "close", None)
        if close is not None:
            await close()
        logger.info("Event publisher stopped")

    async def deliver(self, channel: str, key: str, payload: Dict[str, Any]) -> bool:
        try:
            await self.transport(channel, key, payload)
            return True
        except Exception as e:
            logger.error(f"Failed to deliver message on channel {channel} for key {key}: {e}")
            return False

    async def _run(self):
        while True:
            channel, key, payload = await self._queue.get()
            try:
                await self.deliver(channel, key, payload)
            finally:
                self._queue.task_done()


def _timestamp_millis() -> int:
    return int(time.time() * 1000)


def notify_user(
    publisher: EventPublisher,
    user_id: str,
    notification_type: str,
    title: str,
    message: str,
    data: Optional[Dict[str, Any]] = None,
) -> bool:
    """Queues a per-user notification on the notification channel."""
    notification = {
        "type": notification_type,
        "title": title,
        "message": message,
        "userId": user_id,
        "timestamp": _timestamp_millis(),
    }
    if data is not None:
        notification["data"] = data
    return publisher.publish(settings.NOTIFICATION_CHANNEL, user_id, notification)


def publish_payment_event(
    publisher: EventPublisher,
    event_type: str,
    user_id: str,
    payment_id: str,
    subscription_id: str,
    **amounts: Any,
) -> bool:
    """Queues a domain event; `amounts` is `amount=` or `refundAmount=`."""
    event = {
        "eventType": event_type,
        "userId": user_id,
        "paymentId": payment_id,
        "subscriptionId": subscription_id,
        **amounts,
        "timestamp": _timestamp_millis(),
    }
    return publisher.publish(settings.PAYMENT_EVENT_CHANNEL, user_id, event)


event_publisher = EventPublisher()
