import asyncio
from datetime import datetime
from typing import Dict, Any, Optional, Set
from loguru import logger

# Event types pushed to clients
INITIAL = "initial"
UPDATE = "update"
ERROR = "error"
SCHEMA_DRIFT = "schema_drift"

SUBSCRIBER_QUEUE_SIZE = 100


def make_event(event_type: str, data: Any = None, **extra) -> Dict[str, Any]:
    event = {"type": event_type, "data": data, "timestamp": datetime.utcnow().isoformat()}
    event.update(extra)
    return event


class EventBus:
    """Explicit subscriber registry; each connected client owns one queue"""

    def __init__(self, queue_size: int = SUBSCRIBER_QUEUE_SIZE):
        self._subscribers: Set[asyncio.Queue] = set()
        self._lock = asyncio.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue_size = queue_size

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def set_loop(self, loop):
        """Set the event loop for sync context publishing"""
        self._loop = loop
        logger.info(f"EventBus: Set event loop {loop}")

    async def subscribe(self) -> asyncio.Queue:
        q: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        async with self._lock:
            self._subscribers.add(q)
        logger.info(f"EventBus: New subscriber, total={len(self._subscribers)}")
        return q

    async def unsubscribe(self, q: asyncio.Queue):
        async with self._lock:
            self._subscribers.discard(q)
        logger.info(f"EventBus: Subscriber left, total={len(self._subscribers)}")

    async def publish(self, event: Dict[str, Any]):
        async with self._lock:
            logger.debug(f"EventBus: Publishing event type={event.get('type')} to {len(self._subscribers)} subscribers")
            for q in list(self._subscribers):
                try:
                    q.put_nowait(event)
                except asyncio.QueueFull:
                    logger.warning("EventBus: Queue full, dropping event for slow subscriber")

    def publish_sync(self, event: Dict[str, Any]) -> bool:
        """Publish from sync context (scheduler thread); False when no loop is running"""
        if self._loop and self._loop.is_running():
            asyncio.run_coroutine_threadsafe(self.publish(event), self._loop)
            return True
        logger.warning(f"EventBus: No running loop, {event.get('type')} event dropped")
        return False


# Global bus instance
bus = EventBus()
