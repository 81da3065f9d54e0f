"""EventBus implementation: outbound event channel for the relay."""

import asyncio
import uuid
from typing import Awaitable, Callable, Protocol

from ..logging_config import get_logger, log_context
from ..models import RelayEvent, Topic

logger = get_logger(__name__)


TopicHandler = Callable[[RelayEvent], Awaitable[None]]


class IEventBus(Protocol):
    """In-memory pub/sub decoupling publishers from slow subscribers."""

    def subscribe(self, topic: Topic, handler: TopicHandler) -> None:
        """Subscribe a handler to a topic."""
        ...

    def publish(self, event: RelayEvent) -> bool:
        """Enqueue an event without waiting for delivery."""
        ...


class EventBus:
    """Queue-backed pub/sub; handlers run in a dispatcher task."""

    def __init__(self, max_queue_size: int = 1000):
        self._max_queue_size = max_queue_size
        self._subscribers: dict[Topic, list[TopicHandler]] = {
            Topic.MESSAGE_SENT: [],
            Topic.MESSAGE_DELETED: [],
        }
        self._queue: asyncio.Queue[RelayEvent] | None = None
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def subscribe(self, topic: Topic, handler: TopicHandler) -> None:
        """Subscribe a handler to a topic."""
        self._subscribers[topic].append(handler)

    async def start(self) -> None:
        """Start the dispatcher task."""
        if self.running:
            return
        self._queue = asyncio.Queue(maxsize=self._max_queue_size)
        self._task = asyncio.create_task(self._dispatch_loop())
        logger.info("EventBus dispatcher started")

    async def stop(self) -> None:
        """Deliver what is already queued, then stop the dispatcher."""
        if not self._task:
            return
        if self._queue is not None:
            await self._queue.join()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self._queue = None
        logger.info("EventBus dispatcher stopped")

    def publish(self, event: RelayEvent) -> bool:
        """Enqueue an event. Returns False when the event had to be dropped."""
        if not event.id:
            event.id = str(uuid.uuid4())

        if self._queue is None:
            logger.warning(
                "EventBus not running, dropping %s",
                event.topic.value,
                extra=log_context(event_id=event.id),
            )
            return False

        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(
                "EventBus queue full, dropping %s",
                event.topic.value,
                extra=log_context(event_id=event.id),
            )
            return False
        return True

    async def drain(self) -> None:
        """Wait until every queued event has been dispatched."""
        if self._queue is not None:
            await self._queue.join()

    async def _dispatch_loop(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self.dispatch(event)
            finally:
                self._queue.task_done()

    async def dispatch(self, event: RelayEvent) -> None:
        """Call subscriber callbacks for one event."""
        handlers = self._subscribers.get(event.topic, [])

        # Call all handlers concurrently
        if handlers:
            results = await asyncio.gather(
                *[handler(event) for handler in handlers],
                return_exceptions=True,
            )

            # Log any exceptions
            for i, result in enumerate(results):
                if isinstance(result, Exception):
                    logger.error(
                        "Error in handler %s for %s: %s",
                        i,
                        event.topic.value,
                        result,
                        extra=log_context(event_id=event.id),
                    )
