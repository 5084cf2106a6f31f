"""Shared data models for the breakout trading bot.

CRITICAL: All monetary values use Decimal. Never use float for prices, quantities, or fees.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum


class OrderSide(str, Enum):
    """Order direction."""

    BUY = "buy"
    SELL = "sell"


class OrderType(str, Enum):
    """Order type. Only market orders are placed."""

    MARKET = "market"


@dataclass(frozen=True)
class DailyCandle:
    """A single 1d OHLC candle.

    timestamp is the candle's open time in milliseconds since epoch, which is
    UTC midnight of the day it covers. A timestamp of 0 means "no data".
    """

    timestamp: int
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal


@dataclass(frozen=True)
class Balance:
    """Free (not locked in orders) balances of both sides of the pair."""

    quote_free: Decimal
    base_free: Decimal


@dataclass(frozen=True)
class OrderIntent:
    """A market order the engine wants the exchange to execute."""

    side: OrderSide
    symbol: str
    quantity: Decimal


@dataclass
class OrderResult:
    """Result of an executed order."""

    order_id: str
    symbol: str
    side: OrderSide
    filled_qty: Decimal
    filled_price: Decimal
    fee: Decimal
    timestamp: float
    is_simulated: bool = False
