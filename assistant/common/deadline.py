"""
Per-request deadline.

A Deadline is created once per request and handed down the pipeline.
Each external call is bounded by ``remaining()`` so that an exceeded
deadline cancels the in-flight read instead of blocking.
"""

import time
from typing import Callable, Optional


class DeadlineExceeded(Exception):
    """Raised when a request runs past its deadline."""
    pass


class Deadline:
    """Monotonic-clock deadline"""

    def __init__(self, timeout_seconds: Optional[float], clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._expires_at = None if timeout_seconds is None else clock() + timeout_seconds

    @classmethod
    def unbounded(cls) -> "Deadline":
        return cls(None)

    def remaining(self) -> Optional[float]:
        """Seconds left, ``None`` when unbounded, never negative."""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - self._clock())

    @property
    def expired(self) -> bool:
        return self._expires_at is not None and self._clock() >= self._expires_at

    def check(self) -> None:
        if self.expired:
            raise DeadlineExceeded("request deadline exceeded")
