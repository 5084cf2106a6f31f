"""Shared test fixtures for the breakout trading bot."""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from breakout_bot.clock import Clock
from breakout_bot.config import AppSettings, ExchangeSettings, TradingSettings
from breakout_bot.exchange.client import ExchangeClient
from breakout_bot.exchange.types import InstrumentInfo


class FakeClock(Clock):
    """Manually advanced clock. sleep() moves time forward instead of waiting."""

    def __init__(self, start: datetime) -> None:
        self._now = start
        self.sleeps: list[float] = []

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: float) -> None:
        self._now += timedelta(seconds=seconds)

    def set(self, when: datetime) -> None:
        self._now = when

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.advance(seconds)
        # Let other tasks run, like a real sleep would
        await asyncio.sleep(0)


@pytest.fixture
def mock_settings() -> AppSettings:
    """Return AppSettings with test defaults (paper mode, dummy API keys)."""
    return AppSettings(
        log_level="DEBUG",
        exchange=ExchangeSettings(
            api_key="test-api-key",  # type: ignore[arg-type]
            api_secret="test-api-secret",  # type: ignore[arg-type]
            sandbox=True,
        ),
        trading=TradingSettings(mode="paper"),
    )


@pytest.fixture
def trading_settings() -> TradingSettings:
    """BTC/USDT with the reference thresholds and a 5 minute cooldown."""
    return TradingSettings(
        symbol="BTC/USDT",
        k_scale=Decimal("0.25"),
        cooldown_seconds=300,
        min_quote_balance=Decimal("1"),
        qty_step=Decimal("0.0001"),
        min_order_qty=Decimal("0.0001"),
        dust_threshold=Decimal("0.0001"),
    )


@pytest.fixture
def instrument() -> InstrumentInfo:
    return InstrumentInfo(
        symbol="BTC/USDT",
        min_qty=Decimal("0.0001"),
        qty_step=Decimal("0.0001"),
        min_notional=Decimal("1"),
    )


@pytest.fixture
def clock() -> FakeClock:
    """Clock parked at 2024-03-15 00:05 UTC (the default daily run time)."""
    return FakeClock(datetime(2024, 3, 15, 0, 5, tzinfo=timezone.utc))


@pytest.fixture
def mock_exchange() -> AsyncMock:
    """Mock ExchangeClient. submit() keeps its real dispatch to the market calls."""
    exchange = AsyncMock(spec=ExchangeClient)

    async def _submit(intent):
        return await ExchangeClient.submit(exchange, intent)

    exchange.submit.side_effect = _submit
    return exchange
