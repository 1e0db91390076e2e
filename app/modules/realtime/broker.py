"""
In-process server-sent-events broker.

Delivery is at-most-once: nothing is buffered for topics without
subscribers, there is no replay for late subscribers, and a subscriber whose
queue is full misses the event. Clients treat every event as a signal to
re-fetch from the store.
"""

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict, Optional, Set

from app.config.settings import settings
from app.modules.realtime.topics import Topic

logger = logging.getLogger(__name__)

HEARTBEAT_FRAME = ":\n\n"


def format_frame(payload: Dict[str, Any]) -> str:
    return f"data: {json.dumps(payload, default=str)}\n\n"


class Subscription:
    def __init__(self, topic: Topic, maxsize: int):
        self.topic = topic
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)

    def offer(self, frame: str) -> bool:
        try:
            self.queue.put_nowait(frame)
            return True
        except asyncio.QueueFull:
            return False

    async def next_frame(self, timeout: Optional[float] = None) -> Optional[str]:
        """Next queued frame, or None when timeout elapses first"""
        try:
            return await asyncio.wait_for(self.queue.get(), timeout)
        except asyncio.TimeoutError:
            return None


class SseBroker:
    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        self._channels: Dict[Topic, Set[Subscription]] = {}

    def subscribe(self, topic: Topic) -> Subscription:
        subscription = Subscription(topic, self.queue_size)
        self._channels.setdefault(topic, set()).add(subscription)
        logger.debug(f"Subscribed to {topic.channel} ({len(self._channels[topic])} active)")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscribers = self._channels.get(subscription.topic)
        if not subscribers:
            return
        subscribers.discard(subscription)
        if not subscribers:
            del self._channels[subscription.topic]
        logger.debug(f"Unsubscribed from {subscription.topic.channel}")

    def subscriber_count(self, topic: Topic) -> int:
        return len(self._channels.get(topic, ()))

    def publish(self, topic: Topic, payload: Dict[str, Any]) -> int:
        """Push to current subscribers only. Returns how many received it."""
        subscribers = self._channels.get(topic)
        if not subscribers:
            return 0
        frame = format_frame(payload)
        delivered = 0
        for subscription in list(subscribers):
            if subscription.offer(frame):
                delivered += 1
            else:
                logger.warning(f"Dropped event for slow subscriber on {topic.channel}")
        return delivered

    async def stream(
        self,
        subscription: Subscription,
        heartbeat_seconds: float,
        is_disconnected=None,
    ) -> AsyncIterator[str]:
        """Yield frames for one subscriber until it disconnects; always unsubscribes."""
        try:
            while True:
                if is_disconnected is not None and await is_disconnected():
                    break
                frame = await subscription.next_frame(timeout=heartbeat_seconds)
                yield frame if frame is not None else HEARTBEAT_FRAME
        finally:
            self.unsubscribe(subscription)


broker = SseBroker(queue_size=settings.sse_queue_size)


def get_broker() -> SseBroker:
    return broker
