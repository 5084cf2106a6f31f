"""Scheduler -- delivers the daily tick and the polling tick to the engine.

Two independent asyncio tasks:
  1. DAILY: sleep until the next configured UTC wall-clock time, then tick.
  2. POLL: tick, then sleep for the polling interval.

Ticks may overlap (a slow poll can still be in flight when the daily tick
fires); the engine serializes them with its own lock. A tick that raises is
logged and the loop keeps going, so one bad tick never stops the bot.
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime, time, timedelta, timezone

from breakout_bot.clock import Clock
from breakout_bot.logging import get_logger

logger = get_logger(__name__)

TickCallback = Callable[[], Awaitable[object]]


def next_run_at(at: time, now: datetime) -> datetime:
    """Return the first occurrence of wall-clock time `at` (UTC) strictly after now."""
    now = now.astimezone(timezone.utc)
    candidate = datetime.combine(now.date(), at, tzinfo=timezone.utc)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


class Scheduler:
    """Runs the daily and polling loops until stopped.

    Args:
        on_daily_tick: Awaited once per day at daily_at (UTC).
        on_poll_tick: Awaited every poll_interval seconds.
        daily_at: Wall-clock UTC time of the daily tick.
        poll_interval: Seconds between polling ticks.
        clock: Time source; also provides sleep.
    """

    def __init__(
        self,
        on_daily_tick: TickCallback,
        on_poll_tick: TickCallback,
        daily_at: time,
        poll_interval: float,
        clock: Clock,
    ) -> None:
        self._on_daily_tick = on_daily_tick
        self._on_poll_tick = on_poll_tick
        self._daily_at = daily_at
        self._poll_interval = poll_interval
        self._clock = clock
        self._running = False
        self._tasks: list[asyncio.Task] = []  # type: ignore[type-arg]

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start both loops as background tasks."""
        if self._running:
            logger.warning("scheduler_already_running")
            return
        self._running = True
        self._tasks = [
            asyncio.create_task(self._daily_loop(), name="daily_tick"),
            asyncio.create_task(self._poll_loop(), name="poll_tick"),
        ]
        logger.info(
            "scheduler_started",
            daily_at=self._daily_at.isoformat(),
            poll_interval=self._poll_interval,
        )

    async def stop(self) -> None:
        """Cancel both loops and wait for them to finish."""
        self._running = False
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []
        logger.info("scheduler_stopped")

    async def _daily_loop(self) -> None:
        while self._running:
            due = next_run_at(self._daily_at, self._clock.now())
            logger.debug("daily_tick_scheduled", due=due.isoformat())
            # Sleep can return slightly early; never tick before the due time
            while (remaining := (due - self._clock.now()).total_seconds()) > 0:
                await self._clock.sleep(remaining)
            await self._run_tick("daily", self._on_daily_tick)

    async def _poll_loop(self) -> None:
        while self._running:
            await self._run_tick("poll", self._on_poll_tick)
            await self._clock.sleep(self._poll_interval)

    async def _run_tick(self, name: str, callback: TickCallback) -> None:
        try:
            await callback()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(
                "scheduled_tick_failed", tick=name, error=str(e), exc_info=True
            )
