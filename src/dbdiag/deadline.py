import math
import time
from typing import Optional, Type


class Deadline:
    """
    Ambient time budget for one target's attempt.
    Every blocking step derives its driver timeout from the same deadline.
    """

    def __init__(self, seconds: Optional[float]):
        self.seconds = seconds
        self._expires_at = None if seconds is None else time.monotonic() + seconds

    @property
    def unbounded(self) -> bool:
        return self._expires_at is None

    def remaining(self) -> Optional[float]:
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def whole_seconds(self, default: int = 30) -> int:
        """Remaining time rounded up, for drivers that only take integer timeouts."""
        remaining = self.remaining()
        if remaining is None:
            return default
        return max(1, math.ceil(remaining))

    def millis(self, default: int = 30000) -> int:
        remaining = self.remaining()
        if remaining is None:
            return default
        return max(1, int(remaining * 1000))

    def check(self, error_cls: Type[Exception], step: str) -> None:
        if self.expired:
            raise error_cls(f"Deadline of {self.seconds}s exceeded before {step}")
