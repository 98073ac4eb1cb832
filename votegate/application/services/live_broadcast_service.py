"""Live broadcast fan-out service.

Pushes board changes to connected observers (WebSocket or SSE). The
registry of observers is shared between request handlers that connect and
disconnect and producers that publish, possibly from other threads.

Guarantees:
- publish never blocks and never raises because of an observer
- per observer, events arrive in the order they were published
- an observer whose queue is full or whose loop is gone is dropped

Developer Golden Rules:
1. SNAPSHOT BEFORE SEND - iterate a copy of the registry, never the live dict
2. OFFER, DON'T WAIT - put_nowait only, a full queue means a slow observer
3. NO AUTHORITY - observers re-fetch the board for truth
"""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from structlog import get_logger

from votegate.application.ports.live_broadcaster import LiveBroadcasterProtocol
from votegate.domain.events.live_event import LiveEvent

if TYPE_CHECKING:
    from votegate.application.ports.pipeline_metrics import PipelineMetricsProtocol

logger = get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(eq=False)
class LiveObserver:
    """A connected observer.

    The consumer reads from ``queue`` until it receives ``None``, which
    signals that the observer was dropped.

    Attributes:
        observer_id: Unique identifier.
        channel: Transport name ("websocket" or "sse").
        queue: Bounded queue of pending events.
        loop: Event loop the consumer runs on.
        connected_at: Registration time (UTC).
        dropped: True once the observer has been removed for being slow or dead.
    """

    observer_id: UUID
    channel: str
    queue: asyncio.Queue[LiveEvent | None]
    loop: asyncio.AbstractEventLoop
    connected_at: datetime = field(default_factory=_utc_now)
    dropped: bool = False


class LiveBroadcastService(LiveBroadcasterProtocol):
    """Registry of live observers with non-blocking fan-out.

    Example:
        >>> observer = broadcaster.register("websocket")
        >>> broadcaster.publish(LiveEvent.vote_changed(fid, VoteAction.ADDED, 3))
        1
        >>> event = await observer.queue.get()
    """

    def __init__(
        self,
        queue_size: int = 100,
        metrics: PipelineMetricsProtocol | None = None,
    ) -> None:
        """Initialize the broadcaster.

        Args:
            queue_size: Pending events allowed per observer before it is dropped.
            metrics: Optional metrics sink for the observer gauge.
        """
        if queue_size < 1:
            raise ValueError(f"queue_size must be positive, got {queue_size}")
        self._queue_size = queue_size
        self._metrics = metrics
        self._observers: dict[UUID, LiveObserver] = {}
        self._lock = threading.Lock()

    @property
    def observer_count(self) -> int:
        with self._lock:
            return len(self._observers)

    def register(self, channel: str = "websocket") -> LiveObserver:
        """Register a new observer bound to the running event loop.

        Must be called from within a coroutine.

        Args:
            channel: Transport name for logging.

        Returns:
            The registered observer.
        """
        observer = LiveObserver(
            observer_id=uuid4(),
            channel=channel,
            queue=asyncio.Queue(maxsize=self._queue_size + 1),
            loop=asyncio.get_running_loop(),
        )
        with self._lock:
            self._observers[observer.observer_id] = observer
            count = len(self._observers)

        logger.info(
            "live_observer_registered",
            observer_id=str(observer.observer_id),
            channel=channel,
            observer_count=count,
        )
        self._report_count(count)
        return observer

    def unregister(self, observer_id: UUID) -> bool:
        """Remove an observer. Safe to call more than once.

        Returns:
            True if the observer was registered.
        """
        with self._lock:
            removed = self._observers.pop(observer_id, None)
            count = len(self._observers)

        if removed is None:
            return False

        logger.info(
            "live_observer_unregistered",
            observer_id=str(observer_id),
            channel=removed.channel,
            observer_count=count,
        )
        self._report_count(count)
        return True

    def publish(self, event: LiveEvent) -> int:
        """Offer an event to every registered observer without blocking."""
        with self._lock:
            observers = list(self._observers.values())

        try:
            current_loop: asyncio.AbstractEventLoop | None = asyncio.get_running_loop()
        except RuntimeError:
            current_loop = None

        for observer in observers:
            if observer.loop is current_loop:
                self._offer(observer, event)
                continue
            try:
                observer.loop.call_soon_threadsafe(self._offer, observer, event)
            except RuntimeError:
                # Consumer loop already closed
                self._drop(observer, reason="loop_closed")

        logger.debug(
            "live_event_published",
            event_type=event.type.value,
            feature_id=str(event.feature_id),
            observer_count=len(observers),
        )
        return len(observers)

    def _offer(self, observer: LiveObserver, event: LiveEvent) -> None:
        # Runs on the observer's loop; one slot is reserved for the close sentinel
        if observer.dropped:
            return
        if observer.queue.qsize() >= self._queue_size:
            self._drop(observer, reason="queue_full")
            return
        observer.queue.put_nowait(event)

    def _drop(self, observer: LiveObserver, reason: str) -> None:
        if observer.dropped:
            return
        observer.dropped = True
        logger.warning(
            "live_observer_dropped",
            observer_id=str(observer.observer_id),
            channel=observer.channel,
            reason=reason,
        )
        self.unregister(observer.observer_id)
        if reason == "queue_full":
            while not observer.queue.empty():
                observer.queue.get_nowait()
            observer.queue.put_nowait(None)

    def close_all(self) -> None:
        """Drop every observer (used at shutdown)."""
        with self._lock:
            observers = list(self._observers.values())
        for observer in observers:
            try:
                observer.loop.call_soon_threadsafe(self._close, observer)
            except RuntimeError:
                self.unregister(observer.observer_id)

    def _close(self, observer: LiveObserver) -> None:
        if observer.dropped:
            return
        observer.dropped = True
        self.unregister(observer.observer_id)
        observer.queue.put_nowait(None)

    def _report_count(self, count: int) -> None:
        if self._metrics is not None:
            self._metrics.set_live_observers(count)
