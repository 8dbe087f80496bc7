"""
=============================================================================
DEADLINE
=============================================================================

One wall-clock budget for the whole fetch: connect, send, every byte of
every response, across every redirect hop.

    fetch(url) ──┬── hop 0: connect ─ send ─ headers ─ 302
                 ├── hop 1: connect ─ send ─ headers ─ body ...
                 │
                 └── all of it must finish before deadline.expires_at

Instead of an alarm signal that kills the process, each blocking call asks
the deadline how long it may block (remaining()) and turns a socket timeout
into DeadlineExceeded. The deadline is created once per top-level fetch and
is never refreshed per hop, per attempt or per chunk.

=============================================================================
"""

import time
from typing import Callable, Optional

from ..errors import DeadlineExceeded


class Deadline:
    """
    A fixed point in time after which the fetch is abandoned.

    Args:
        timeout: Seconds from now. None means no deadline at all.
        clock: Monotonic clock; injectable for tests.
    """

    def __init__(
        self,
        timeout: Optional[float],
        clock: Callable[[], float] = time.monotonic,
    ):
        self.timeout = timeout
        self._clock = clock
        self.started_at = clock()
        self.expires_at = None if timeout is None else self.started_at + timeout

    @property
    def elapsed(self) -> float:
        """Seconds since the fetch started (used for progress logging)."""
        return self._clock() - self.started_at

    def remaining(self) -> Optional[float]:
        """Seconds left, or None when unbounded. Never negative."""
        if self.expires_at is None:
            return None
        return max(0.0, self.expires_at - self._clock())

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0.0

    def check(self, phase: str = "") -> Optional[float]:
        """
        Raise DeadlineExceeded if the budget is spent.

        Returns the remaining seconds so callers can feed it straight into
        settimeout() or a selector.
        """
        remaining = self.remaining()
        if remaining is not None and remaining <= 0.0:
            raise DeadlineExceeded(self.timeout, phase)
        return remaining

    def exceeded(self, phase: str = "") -> DeadlineExceeded:
        """Build the exception for a timeout observed by the OS."""
        return DeadlineExceeded(self.timeout, phase)

    def __repr__(self) -> str:
        return f"Deadline(timeout={self.timeout!r}, remaining={self.remaining()!r})"
