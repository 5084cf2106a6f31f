"""Exchange-specific type definitions and utility functions.

All monetary values use Decimal. Never use float for prices, quantities, or fees.

Exchange calls report failure by returning DataUnavailable (reads) or
OrderRejected (orders) instead of raising, so callers branch on the result.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from decimal import Decimal


@dataclass(frozen=True)
class DataUnavailable:
    """A candle, price or balance could not be obtained."""

    reason: str


@dataclass(frozen=True)
class OrderRejected:
    """The exchange refused (or failed to execute) an order."""

    reason: str


@dataclass
class InstrumentInfo:
    """Trading constraints for a spot instrument.

    Either taken from configuration or read from the exchange's market data.
    Used by the decision engine to round and validate order quantities.
    """

    symbol: str
    min_qty: Decimal
    qty_step: Decimal
    min_notional: Decimal = Decimal("0")


def round_to_step(value: Decimal, step: Decimal) -> Decimal:
    """Round a value down to the nearest step increment.

    Uses integer division to ensure we always round DOWN (never up),
    which prevents exceeding available balance.

    Args:
        value: The raw quantity to round.
        step: The minimum increment (e.g., 0.0001 for BTC).

    Returns:
        The value rounded down to the nearest step.
    """
    return (value // step) * step


def split_symbol(symbol: str) -> tuple[str, str]:
    """Split a unified spot symbol like "BTC/USDT" into (base, quote).

    Raises:
        ValueError: If the symbol is not of the form BASE/QUOTE.
    """
    base, sep, quote = symbol.partition("/")
    if not sep or not base or not quote or "/" in quote:
        raise ValueError(f"Symbol {symbol!r} is not of the form BASE/QUOTE")
    return base, quote


def utc_day_start_ms(day: date) -> int:
    """Return midnight UTC of the given calendar day in epoch milliseconds."""
    midnight = datetime.combine(day, time(0, 0), tzinfo=timezone.utc)
    return int(midnight.timestamp()) * 1000
