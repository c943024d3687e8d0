"""
Request-scoped cancellation deadline.

Every outbound call made while serving a request runs under one shared
deadline. Once it fires, in-flight calls are cancelled and no new attempt
may start.

Reliability Level: STEWARD TIER
Side Effects: None (monotonic clock reads only)
"""

import asyncio
import inspect
import time
from typing import Awaitable, Callable, Optional, TypeVar

T = TypeVar("T")


class DeadlineExceeded(Exception):
    """Raised when a request-scoped deadline has expired."""

    def __init__(self, message: str = "Request deadline exceeded") -> None:
        self.error_code = "STW-DL-001"
        self.message = message
        super().__init__(f"[{self.error_code}] {message}")


class RequestDeadline:
    """
    A single monotonic deadline shared by all calls of one request.

    Reliability Level: STEWARD TIER
    Input Constraints: seconds > 0
    Side Effects: None

    USAGE:
        deadline = RequestDeadline(15.0)
        title = await deadline.run(client.get(url))
    """

    def __init__(
        self,
        seconds: float,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        if seconds <= 0:
            raise ValueError(f"[STW-DL-002] Deadline must be positive, got {seconds}")
        self._clock = clock or time.monotonic
        self._seconds = seconds
        self._expires_at = self._clock() + seconds

    @property
    def seconds(self) -> float:
        return self._seconds

    def remaining(self) -> float:
        """Seconds left before expiry, never negative."""
        return max(0.0, self._expires_at - self._clock())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0.0

    async def run(self, awaitable: Awaitable[T]) -> T:
        """
        Await `awaitable` within the remaining time.

        Raises:
            DeadlineExceeded: If the deadline already passed or fires while
                the awaitable is pending (the awaitable is cancelled)
        """
        if self.expired:
            # Unstarted coroutine must still be closed
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            raise DeadlineExceeded()
        try:
            return await asyncio.wait_for(awaitable, timeout=self.remaining())
        except asyncio.TimeoutError:
            raise DeadlineExceeded() from None
