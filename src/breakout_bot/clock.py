"""Time source abstraction.

The engine and scheduler read "now" through a Clock so tests can move time
forward deterministically instead of waiting on wall-clock timers.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timezone


class Clock(ABC):
    """Abstract source of the current UTC time."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current time as a timezone-aware UTC datetime."""
        ...

    async def sleep(self, seconds: float) -> None:
        """Suspend the caller for the given number of seconds."""
        await asyncio.sleep(seconds)


class SystemClock(Clock):
    """Wall-clock time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)
