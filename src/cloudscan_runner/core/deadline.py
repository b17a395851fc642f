"""Job-wide deadline and cancellation signal.

One Deadline is created per job and handed to every blocking step: the
archive download, each scanner subprocess and each status RPC.
"""

from __future__ import annotations

import threading
import time
from typing import Optional


class Deadline:
    """A monotonic expiry time combined with an explicit cancellation flag."""

    def __init__(self, timeout: Optional[float] = None) -> None:
        self._expires_at = time.monotonic() + timeout if timeout is not None else None
        self._cancelled = threading.Event()
        self._reason = ""

    @classmethod
    def never(cls) -> "Deadline":
        return cls(None)

    def cancel(self, reason: str = "cancelled") -> None:
        """Cancel the job. Safe to call from signal handlers and other threads."""
        if not self._cancelled.is_set():
            self._reason = reason
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def expired(self) -> bool:
        return self._expires_at is not None and time.monotonic() >= self._expires_at

    @property
    def done(self) -> bool:
        return self.cancelled or self.expired

    @property
    def reason(self) -> str:
        if self.cancelled:
            return self._reason
        if self.expired:
            return "deadline exceeded"
        return ""

    def remaining(self) -> Optional[float]:
        """Seconds left before expiry, 0 once done, None when unbounded."""
        if self.cancelled:
            return 0.0
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    def timeout(self, cap: Optional[float] = None, floor: Optional[float] = None) -> Optional[float]:
        """Timeout to hand to a blocking call.

        ``cap`` bounds the result from above; ``floor`` guarantees a minimum,
        used for calls that must still go out after the deadline passed.
        """
        remaining = self.remaining()
        if cap is not None:
            remaining = cap if remaining is None else min(remaining, cap)
        if floor is not None and remaining is not None:
            remaining = max(remaining, floor)
        return remaining
