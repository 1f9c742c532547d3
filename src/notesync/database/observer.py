"""Table invalidation signals and observable (live) queries.

Each table has a single invalidation signal. A committed write to a table
fires its signal and every LiveQuery over that table re-runs its snapshot
function; subscribers are only notified when the snapshot changed. There is
no per-query dependency tracking.
"""

import logging
import threading
from typing import Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Unsubscribe = Callable[[], None]


class TableObserver:
    """Per-table invalidation signal."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: dict[str, list[Callable[[], None]]] = {}

    def subscribe(self, table: str, callback: Callable[[], None]) -> Unsubscribe:
        """Register a callback fired after every committed write to `table`.

        Returns:
            A function that removes the callback again
        """
        with self._lock:
            self._listeners.setdefault(table, []).append(callback)

        def unsubscribe() -> None:
            with self._lock:
                listeners = self._listeners.get(table, [])
                if callback in listeners:
                    listeners.remove(callback)

        return unsubscribe

    def invalidate(self, table: str) -> None:
        """Fire the signal for `table`."""
        with self._lock:
            listeners = list(self._listeners.get(table, []))
        for callback in listeners:
            callback()

    def listener_count(self, table: str) -> int:
        with self._lock:
            return len(self._listeners.get(table, []))


class LiveQuery(Generic[T]):
    """A query whose result is re-emitted whenever its table changes.

    Snapshots are numbered in the order they start. A result is only
    published if no later snapshot has been published already, so a slow
    refresh never replaces a newer result.

    Args:
        observer (TableObserver): Source of invalidation signals
        table (str): Table whose writes invalidate the result
        snapshot (Callable[[], T]): Runs the query and returns its result

    Attributes:
        table (str): Table whose writes invalidate the result
    """

    def __init__(
        self, observer: TableObserver, table: str, snapshot: Callable[[], T]
    ) -> None:
        self.table = table
        self._observer = observer
        self._snapshot = snapshot
        self._lock = threading.Lock()
        # Serializes delivery; reentrant so a subscriber may write to the table
        self._publish_lock = threading.RLock()
        self._subscribers: list[Callable[[T], None]] = []
        self._value: Optional[T] = None
        self._started = 0
        self._published = 0
        self._unsubscribe: Optional[Unsubscribe] = None

    def _run_snapshot(self) -> tuple[int, T]:
        with self._lock:
            self._started += 1
            generation = self._started
        return generation, self._snapshot()

    @property
    def value(self) -> T:
        """Current result, running the query on first access."""
        with self._lock:
            if self._published:
                return self._value  # type: ignore[return-value]
        generation, fresh = self._run_snapshot()
        with self._lock:
            if generation > self._published:
                self._value = fresh
                self._published = generation
            return self._value  # type: ignore[return-value]

    def observe(self, callback: Callable[[T], None]) -> Unsubscribe:
        """Subscribe to results; the current result is delivered immediately."""
        with self._lock:
            self._subscribers.append(callback)
            if self._unsubscribe is None:
                self._unsubscribe = self._observer.subscribe(
                    self.table, self._on_invalidated
                )
        with self._publish_lock:
            callback(self.value)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)
                remaining = len(self._subscribers)
            if remaining == 0:
                self.close()

        return unsubscribe

    def close(self) -> None:
        """Stop listening for invalidations."""
        with self._lock:
            self._subscribers.clear()
            if self._unsubscribe is not None:
                self._unsubscribe()
                self._unsubscribe = None

    def _on_invalidated(self) -> None:
        generation, fresh = self._run_snapshot()
        with self._publish_lock:
            with self._lock:
                if generation < self._published:
                    logger.debug("Dropping stale snapshot of %s", self.table)
                    return
                changed = not self._published or fresh != self._value
                self._value = fresh
                self._published = generation
                subscribers = list(self._subscribers)
            if not changed:
                return
            logger.debug(
                "Live query on %s changed, notifying %d subscriber(s)",
                self.table,
                len(subscribers),
            )
            for callback in subscribers:
                if self._published != generation:
                    # A subscriber's own write already delivered a newer result
                    break
                callback(fresh)
