"""k-range breakout target price.

target = previous close + (previous high - previous low) * k

Pure computation with no exchange access, so it can be tested in isolation.
"""

from decimal import Decimal

from breakout_bot.exchange.types import DataUnavailable
from breakout_bot.models import DailyCandle


class TargetPriceCalculator:
    """Derives today's breakout threshold from yesterday's daily candle.

    Malformed candles (high below low, zero range) are accepted as-is: the
    range simply contributes zero or a negative amount. Only the timestamp==0
    "no data" sentinel is rejected.

    Args:
        k_scale: Fraction of the previous day's range added to its close.
    """

    def __init__(self, k_scale: Decimal = Decimal("0.25")) -> None:
        self._k_scale = k_scale

    @property
    def k_scale(self) -> Decimal:
        return self._k_scale

    def compute_target(self, candle: DailyCandle) -> Decimal | DataUnavailable:
        if candle.timestamp == 0:
            return DataUnavailable("candle has no timestamp")
        return candle.close + (candle.high - candle.low) * self._k_scale
