"""Abstract exchange client interface.

Defines the contract the decision engine consumes. Strategy code depends only
on this interface, keeping Binance-specific details (and paper simulation)
isolated in the concrete implementations.

No method raises for network or exchange errors: reads return DataUnavailable
and orders return OrderRejected, so a single failed call can never crash a
tick. Nothing is retried at this layer.
"""

from abc import ABC, abstractmethod
from decimal import Decimal

from breakout_bot.exchange.types import DataUnavailable, OrderRejected
from breakout_bot.models import (
    Balance,
    DailyCandle,
    OrderIntent,
    OrderResult,
    OrderSide,
)


class ExchangeClient(ABC):
    """Abstract base class for spot exchange clients."""

    @abstractmethod
    async def connect(self) -> None:
        """Initialize connection and load markets."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Clean up resources (CRITICAL for ccxt async)."""
        ...

    @abstractmethod
    async def fetch_daily_candle(
        self, symbol: str, day_start_ms: int
    ) -> DailyCandle | DataUnavailable:
        """Fetch the 1d candle whose open time is day_start_ms (UTC midnight)."""
        ...

    @abstractmethod
    async def fetch_current_price(self, symbol: str) -> Decimal | DataUnavailable:
        """Fetch the last traded price for a symbol."""
        ...

    @abstractmethod
    async def fetch_free_balance(self, currency: str) -> Decimal | DataUnavailable:
        """Fetch the free (not locked in orders) balance of a currency."""
        ...

    @abstractmethod
    async def submit_market_buy(
        self, symbol: str, quantity: Decimal
    ) -> OrderResult | OrderRejected:
        """Buy quantity (base currency) at market."""
        ...

    @abstractmethod
    async def submit_market_sell(
        self, symbol: str, quantity: Decimal
    ) -> OrderResult | OrderRejected:
        """Sell quantity (base currency) at market."""
        ...

    async def submit(self, intent: OrderIntent) -> OrderResult | OrderRejected:
        """Dispatch an OrderIntent to the matching market order call."""
        if intent.side == OrderSide.BUY:
            return await self.submit_market_buy(intent.symbol, intent.quantity)
        return await self.submit_market_sell(intent.symbol, intent.quantity)

    async def fetch_balance(self, base: str, quote: str) -> Balance | DataUnavailable:
        """Snapshot the free balances of both sides of a pair."""
        quote_free = await self.fetch_free_balance(quote)
        if isinstance(quote_free, DataUnavailable):
            return quote_free
        base_free = await self.fetch_free_balance(base)
        if isinstance(base_free, DataUnavailable):
            return base_free
        return Balance(quote_free=quote_free, base_free=base_free)
