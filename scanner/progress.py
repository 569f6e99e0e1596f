"""
Scan Progress Channels

Per-job fan-out of progress events. Each subscriber owns an unbounded
queue and receives every event published after it subscribed, in order.
A terminal event (completed or error) is always the last one; closing a
job's channel ends every subscriber's stream.
"""

import queue
import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass, asdict
from typing import Any, Dict, Iterator, Optional, Set

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = ("completed", "error")

_END = object()


@dataclass(frozen=True)
class ProgressEvent:
    """One progress update for a scan job."""
    percent_complete: int
    status: str  # "scanning", "completed", "error"
    routers_found: int
    current_address: Optional[str] = None
    asymmetries_found: Optional[int] = None
    error: Optional[str] = None

    @property
    def terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


class Subscription:
    """Iterable stream of one job's progress events."""

    def __init__(self, hub: "ProgressHub", job_id: str):
        self.hub = hub
        self.job_id = job_id
        self._queue: "queue.Queue[Any]" = queue.Queue()
        self._ended = False

    def _put(self, item: Any) -> None:
        self._queue.put_nowait(item)

    def get(self, timeout: Optional[float] = None) -> Optional[ProgressEvent]:
        """
        Next event, or None once the stream has ended.

        Raises:
            queue.Empty: If no event arrives within timeout
        """
        if self._ended:
            return None
        item = self._queue.get(timeout=timeout)
        if item is _END:
            self._ended = True
            return None
        return item

    def __iter__(self) -> Iterator[ProgressEvent]:
        while True:
            event = self.get()
            if event is None:
                return
            yield event

    def close(self) -> None:
        """Stop listening. The scan keeps running."""
        self.hub.unsubscribe(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class ProgressHub:
    """
    Registry of per-job progress channels.

    A job's channel exists only while it has subscribers, and is closed
    right after the job's terminal event. The terminal events of the most
    recent ``max_finished`` jobs are kept so late subscribers still learn
    how those jobs ended.
    """

    def __init__(self, max_finished: int = 256):
        self.max_finished = max_finished
        self._lock = threading.Lock()
        self._channels: Dict[str, Set[Subscription]] = {}
        self._finished: "OrderedDict[str, ProgressEvent]" = OrderedDict()

    def subscribe(self, job_id: str) -> Subscription:
        subscription = Subscription(self, job_id)
        with self._lock:
            finished = self._finished.get(job_id)
            if finished is not None:
                subscription._put(finished)
                subscription._put(_END)
                return subscription
            self._channels.setdefault(job_id, set()).add(subscription)
        logger.debug(f"New progress subscriber for scan {job_id}")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            subscribers = self._channels.get(subscription.job_id)
            if subscribers is not None:
                subscribers.discard(subscription)
                if not subscribers:
                    del self._channels[subscription.job_id]

    def subscriber_count(self, job_id: str) -> int:
        with self._lock:
            return len(self._channels.get(job_id, ()))

    def publish(self, job_id: str, event: ProgressEvent) -> None:
        with self._lock:
            if job_id in self._finished:
                logger.warning(f"Dropping progress event for finished scan {job_id}")
                return
            subscribers = list(self._channels.get(job_id, ()))
            for subscription in subscribers:
                subscription._put(event)
            if event.terminal:
                self._finished[job_id] = event
                while len(self._finished) > self.max_finished:
                    self._finished.popitem(last=False)

    def close(self, job_id: str) -> None:
        """End every subscriber's stream and drop the job's channel."""
        with self._lock:
            subscribers = self._channels.pop(job_id, set())
            for subscription in subscribers:
                subscription._put(_END)
        logger.debug(f"Closed progress channel for scan {job_id} ({len(subscribers)} subscribers)")
