"""
Retry - Polling Policy and Cooperative Cancellation
"""

import asyncio
from dataclasses import dataclass
from typing import Optional

DEFAULT_INTERVAL = 1.0


@dataclass(frozen=True)
class RetryPolicy:
    """
    How long to wait between attempts and when to give up.

    The defaults poll forever with a fixed one second pause.
    """
    interval: float = DEFAULT_INTERVAL
    max_attempts: Optional[int] = None
    backoff: float = 1.0
    max_interval: Optional[float] = None

    def __post_init__(self):
        if self.interval < 0:
            raise ValueError("interval must not be negative")
        if self.max_attempts is not None and self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.backoff < 1.0:
            raise ValueError("backoff must be at least 1.0")
        if self.max_interval is not None and self.max_interval < 0:
            raise ValueError("max_interval must not be negative")

    @classmethod
    def immediate(cls, max_attempts: Optional[int] = None) -> 'RetryPolicy':
        """Zero-delay policy, for tests and local stores."""
        return cls(interval=0.0, max_attempts=max_attempts)

    def allows(self, attempt: int) -> bool:
        """Whether attempt number `attempt` (1-based) may run."""
        return self.max_attempts is None or attempt <= self.max_attempts

    def delay(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number `attempt`."""
        wait = self.interval * (self.backoff ** (attempt - 1))
        if self.max_interval is not None:
            wait = min(wait, self.max_interval)
        return wait


class CancellationToken:
    """
    Cooperative stop signal shared by a role and whoever runs it.

    Must be created and used on the same event loop.
    """

    def __init__(self):
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self):
        self._event.set()

    async def sleep(self, seconds: float) -> bool:
        """
        Wait up to `seconds`.

        Returns False if the token was cancelled before or during the wait.
        """
        if self.cancelled:
            return False
        if seconds <= 0:
            await asyncio.sleep(0)
            return not self.cancelled
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return True
        return False
