"""Cooperative cancellation for pipeline steps.

A :class:`CancellationToken` is created by the caller and passed explicitly to
every step. Steps check it before each backend call; they never poll it while a
call is in flight, so per-call timeouts remain the backend's concern.
"""

import threading
import time
from typing import Optional

from .errors import PipelineCancelled


class CancellationToken:
    """Thread-safe cancel flag with an optional monotonic deadline."""

    def __init__(self, timeout: Optional[float] = None):
        """
        Args:
            timeout: Seconds from now after which the token counts as cancelled
        """
        self._event = threading.Event()
        self._reason = "cancelled"
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self, reason: str = "cancelled") -> None:
        self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._reason = "deadline exceeded"
            self._event.set()
            return True
        return False

    @property
    def reason(self) -> str:
        return self._reason

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None when there is none."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise PipelineCancelled(self._reason)


def check(cancel: Optional[CancellationToken]) -> Optional[PipelineCancelled]:
    """Return a cancellation error if ``cancel`` has fired, else None."""
    if cancel is not None and cancel.cancelled:
        return PipelineCancelled(cancel.reason)
    return None
