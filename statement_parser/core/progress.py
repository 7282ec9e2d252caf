"""
Progress reporting and cooperative cancellation for a parse run.
"""
import queue
import threading
from typing import Callable, List, Optional
import logging

from .errors import InvalidProgressTransition, ParseCancelled
from .settings import ParserSettings
from ..models.schema import ParserProgress, ParserStatus

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ParserProgress], None]

STATUS_ORDER = [
    ParserStatus.IDLE,
    ParserStatus.READING,
    ParserStatus.PARSING,
    ParserStatus.EXTRACTING,
    ParserStatus.SAVING,
    ParserStatus.COMPLETE,
]

# Progress band (percent) covered by each status
STATUS_BANDS = {
    ParserStatus.IDLE: (0.0, 0.0),
    ParserStatus.READING: (0.0, 10.0),
    ParserStatus.PARSING: (10.0, 20.0),
    ParserStatus.EXTRACTING: (20.0, 80.0),
    ParserStatus.SAVING: (80.0, 100.0),
    ParserStatus.COMPLETE: (100.0, 100.0),
}

TERMINAL_STATUSES = frozenset({ParserStatus.COMPLETE, ParserStatus.ERROR})


class CancellationToken:
    """Thread-safe flag checked by the engine between pages."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self):
        if self._event.is_set():
            raise ParseCancelled()


class ProgressChannel:
    """
    Bounded queue of progress updates for a consumer on another thread.

    When the consumer falls behind and the queue is full, the oldest update
    is discarded so the latest state is always available.
    """

    def __init__(self, maxsize: Optional[int] = None):
        if maxsize is None:
            maxsize = ParserSettings().progress_channel_size
        self._queue: "queue.Queue[ParserProgress]" = queue.Queue(maxsize=maxsize)
        self._lock = threading.Lock()
        self.dropped = 0

    @classmethod
    def from_settings(cls, settings: ParserSettings) -> "ProgressChannel":
        return cls(settings.progress_channel_size)

    def publish(self, update: ParserProgress):
        with self._lock:
            while True:
                try:
                    self._queue.put_nowait(update)
                    return
                except queue.Full:
                    try:
                        self._queue.get_nowait()
                        self.dropped += 1
                    except queue.Empty:
                        pass

    def get(self, timeout: Optional[float] = None) -> Optional[ParserProgress]:
        """Next update, or None if none arrives within ``timeout``."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> List[ParserProgress]:
        updates = []
        while True:
            try:
                updates.append(self._queue.get_nowait())
            except queue.Empty:
                return updates


class ProgressReporter:
    """
    Finite-state progress tracker for one parse run.

    States only move forward (idle, reading, parsing, extracting, saving,
    complete); error is reachable from any non-terminal state. Progress
    never decreases, and nothing is emitted once a terminal state is reached.
    """

    def __init__(self, on_progress: Optional[ProgressCallback] = None,
                 channel: Optional[ProgressChannel] = None):
        self.on_progress = on_progress
        self.channel = channel
        self._state = ParserProgress()
        self._lock = threading.Lock()

    @property
    def status(self) -> ParserStatus:
        return self._state.status

    @property
    def terminal(self) -> bool:
        return self._state.status in TERMINAL_STATUSES

    def snapshot(self) -> ParserProgress:
        """Current state, for polling consumers."""
        with self._lock:
            return self._state.model_copy()

    def update(self, status: ParserStatus, progress: Optional[float] = None,
               message: Optional[str] = None, current_page: Optional[int] = None,
               total_pages: Optional[int] = None):
        """
        Move to ``status`` and publish the new state.

        Args:
            status: Target status (same or later than the current one)
            progress: Percentage, clamped into the status band
            message: Human readable message
            current_page: Page just processed
            total_pages: Total page count
        """
        status = ParserStatus(status)
        if status == ParserStatus.ERROR:
            self.fail(message or "error")
            return

        with self._lock:
            if self.terminal:
                logger.debug(f"Ignoring progress update after {self._state.status.value}")
                return

            current = self._state.status
            if STATUS_ORDER.index(status) < STATUS_ORDER.index(current):
                raise InvalidProgressTransition(
                    f"Cannot move from {current.value} back to {status.value}"
                )

            low, high = STATUS_BANDS[status]
            value = low if progress is None else min(max(float(progress), low), high)
            value = max(value, self._state.progress)

            self._state = ParserProgress(
                status=status,
                progress=value,
                message=message,
                current_page=current_page if current_page is not None else self._state.current_page,
                total_pages=total_pages if total_pages is not None else self._state.total_pages
            )
            update = self._state.model_copy()

        self._emit(update)

    def page_progress(self, current_page: int, total_pages: int):
        """Report a finished page: 20 + 60 * pages_done / total_pages."""
        fraction = current_page / total_pages if total_pages else 1.0
        self.update(
            ParserStatus.EXTRACTING,
            20.0 + 60.0 * fraction,
            message=f"Extracted page {current_page} of {total_pages}",
            current_page=current_page,
            total_pages=total_pages
        )

    def complete(self, message: Optional[str] = None):
        self.update(ParserStatus.COMPLETE, 100.0, message)

    def fail(self, message: str):
        """Enter the error state; progress keeps its last value."""
        with self._lock:
            if self.terminal:
                logger.debug(f"Ignoring failure after {self._state.status.value}: {message}")
                return

            self._state = self._state.model_copy(update={
                "status": ParserStatus.ERROR,
                "message": message
            })
            update = self._state.model_copy()

        self._emit(update)

    def _emit(self, update: ParserProgress):
        logger.debug(f"Progress {update.status.value} {update.progress:.0f}%: {update.message or ''}")
        if self.channel is not None:
            self.channel.publish(update)
        if self.on_progress is not None:
            self.on_progress(update)
