"""
Cancellation signal for blocking polling sessions.

A token is shared between the caller that may abort a wait and the session
observing it. Sleeps inside the session wait on the token, so a cancel wakes
them immediately instead of letting the interval run out.
"""

import threading
import time
from typing import Protocol


class CancelSignal(Protocol):
    """Anything the blocking engine can observe for cancellation."""

    def is_set(self) -> bool: ...

    def wait(self, timeout: float | None = None) -> bool: ...


class CancellationToken:
    """
    Thread-safe cancellation token with an optional deadline.

    The token behaves like a ``threading.Event``: ``wait`` returns True as
    soon as it is cancelled. A deadline cancels the token automatically once
    it passes.
    """

    def __init__(self, deadline: float | None = None, clock=time.monotonic):
        """
        Initialize the token.

        Args:
            deadline: Seconds from now after which the token counts as cancelled
            clock: Monotonic clock used for the deadline
        """
        self._event = threading.Event()
        self._clock = clock
        self._deadline_at = clock() + deadline if deadline is not None else None
        self.reason: str | None = None

    def cancel(self, reason: str | None = None) -> None:
        """Signal cancellation to every session observing this token."""
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def _remaining(self) -> float | None:
        if self._deadline_at is None:
            return None
        return self._deadline_at - self._clock()

    def is_set(self) -> bool:
        if self._event.is_set():
            return True
        remaining = self._remaining()
        if remaining is not None and remaining <= 0:
            self.cancel("deadline exceeded")
            return True
        return False

    @property
    def cancelled(self) -> bool:
        return self.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block up to ``timeout`` seconds; return True if cancelled."""
        remaining = self._remaining()
        if remaining is not None and (timeout is None or remaining < timeout):
            if self._event.wait(max(remaining, 0.0)):
                return True
            return self.is_set()
        return self._event.wait(timeout)
