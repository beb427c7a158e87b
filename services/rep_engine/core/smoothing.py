from typing import Optional


class ExponentialSmoother:
    """
    Exponential moving average for a noisy per-frame scalar (joint angle).

    ``alpha`` is the weight of the newest sample; the first sample passes
    through unchanged.
    """

    def __init__(self, alpha: float):
        if not 0.0 < alpha <= 1.0:
            raise ValueError(f"alpha must be in (0, 1], got {alpha}")
        self.alpha = alpha
        self.value: Optional[float] = None

    def update(self, sample: float) -> float:
        if self.value is None:
            self.value = sample
        else:
            self.value = self.value + self.alpha * (sample - self.value)
        return self.value

    def reset(self) -> None:
        self.value = None


class UiThrottle:
    """Minimum-interval gate for pushing display updates."""

    def __init__(self, min_interval_ms: float):
        self.min_interval_ms = min_interval_ms
        self._last_ms: Optional[float] = None

    def ready(self, now_ms: float) -> bool:
        """True (and the timer restarts) if the interval has elapsed."""
        if self._last_ms is not None and now_ms - self._last_ms <= self.min_interval_ms:
            return False
        self._last_ms = now_ms
        return True

    def reset(self) -> None:
        self._last_ms = None
