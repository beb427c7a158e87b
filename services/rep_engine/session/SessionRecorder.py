import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)

# sink(exercise, rep_delta, timestamp_ms)
RecordSink = Callable[[str, int, float], None]

DEFAULT_FLUSH_AFTER_MS = 4000.0


class SessionRecorder:
    """
    Batches rep-count increases into deltas for a persistence collaborator.

    Deltas accumulate while reps keep coming and are handed to ``sink`` once
    the count has been quiet for ``flush_after_ms``. A lower count means the
    user reset the counter: the pending delta is dropped and the baseline
    follows the new count.
    """

    def __init__(self, exercise: str, sink: RecordSink, flush_after_ms: float = DEFAULT_FLUSH_AFTER_MS):
        self.exercise = exercise
        self.sink = sink
        self.flush_after_ms = flush_after_ms
        self.saved_count = 0
        self.pending = 0
        self._last_change_ms: Optional[float] = None

    def observe(self, count: int, now_ms: float) -> None:
        if count < self.saved_count + self.pending:
            logger.debug("%s: counter reset to %d, dropping %d pending", self.exercise, count, self.pending)
            self.saved_count = count
            self.pending = 0
            self._last_change_ms = None
            return

        delta = count - self.saved_count - self.pending
        if delta > 0:
            self.pending += delta
            self._last_change_ms = now_ms

    def poll(self, now_ms: float) -> int:
        """Flush if the count has been quiet long enough; return the flushed delta."""
        if self.pending <= 0 or self._last_change_ms is None:
            return 0
        if now_ms - self._last_change_ms < self.flush_after_ms:
            return 0
        return self.flush(now_ms)

    def flush(self, now_ms: float) -> int:
        if self.pending <= 0:
            return 0
        delta = self.pending
        self.sink(self.exercise, delta, now_ms)
        self.saved_count += delta
        self.pending = 0
        self._last_change_ms = None
        logger.debug("%s: recorded %d reps", self.exercise, delta)
        return delta
