import logging
from typing import Optional

logger = logging.getLogger(__name__)


class RepCounter:
    """
    Running rep total with a minimum time between accepted reps.

    A candidate rep is accepted only if ``debounce_ms`` or more elapsed since
    the previous accepted one. Rejected candidates do not move the timer.
    The total only goes down through ``reset()``.
    """

    def __init__(self, debounce_ms: float):
        if debounce_ms < 0:
            raise ValueError(f"debounce_ms must be >= 0, got {debounce_ms}")
        self.debounce_ms = debounce_ms
        self.count: int = 0
        self.last_rep_ms: Optional[float] = None

    def offer(self, now_ms: float) -> bool:
        if self.last_rep_ms is not None and now_ms - self.last_rep_ms < self.debounce_ms:
            logger.debug(
                "Rep rejected: %.0f ms since last, debounce %.0f ms",
                now_ms - self.last_rep_ms,
                self.debounce_ms,
            )
            return False

        self.last_rep_ms = now_ms
        self.count += 1
        return True

    def reset(self) -> None:
        self.count = 0
        self.last_rep_ms = None
