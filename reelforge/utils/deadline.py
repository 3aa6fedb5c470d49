"""Job Deadline - wall-clock budget shared by every stage of a render job."""

import time
from threading import Event, Lock
from typing import Optional

from reelforge.core.exceptions import RenderTimeout


class JobDeadline:
    """Thread-safe wall-clock budget with cooperative cancellation."""

    def __init__(self, timeout_seconds: Optional[float] = 60.0):
        """
        Initialize deadline.

        Args:
            timeout_seconds: Budget in seconds, or None for no limit
        """
        self.timeout_seconds = timeout_seconds
        self.started_at = time.monotonic()
        self._cancelled = Event()
        self._lock = Lock()
        self._cancel_reason: Optional[str] = None

    @property
    def expires_at(self) -> Optional[float]:
        if self.timeout_seconds is None:
            return None
        return self.started_at + self.timeout_seconds

    def elapsed(self) -> float:
        """Seconds since the job started."""
        return time.monotonic() - self.started_at

    def remaining(self) -> Optional[float]:
        """Seconds left (never negative), or None when unbounded."""
        if self.expires_at is None:
            return None
        return max(0.0, self.expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def cancel(self, reason: str = "cancelled") -> None:
        """Ask every stage to stop at its next checkpoint."""
        with self._lock:
            if self._cancel_reason is None:
                self._cancel_reason = reason
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def check(self, stage: str) -> None:
        """
        Raise if the job ran out of time or was cancelled.

        Args:
            stage: Stage about to start, used in the error message

        Raises:
            RenderTimeout: If the budget is spent or the job was cancelled
        """
        if self.cancelled:
            raise RenderTimeout(f"Render job {self._cancel_reason} before stage '{stage}'")
        if self.expired:
            raise RenderTimeout(
                f"Render job exceeded {self.timeout_seconds:.0f}s before stage '{stage}' "
                f"(elapsed {self.elapsed():.1f}s)"
            )
