"""Exchange client layer -- Binance spot via ccxt, plus a paper-trading simulator."""

from breakout_bot.exchange.binance_client import BinanceClient
from breakout_bot.exchange.client import ExchangeClient
from breakout_bot.exchange.paper_client import PaperExchangeClient
from breakout_bot.exchange.types import (
    DataUnavailable,
    InstrumentInfo,
    OrderRejected,
    round_to_step,
)

__all__ = [
    "BinanceClient",
    "DataUnavailable",
    "ExchangeClient",
    "InstrumentInfo",
    "OrderRejected",
    "PaperExchangeClient",
    "round_to_step",
]
