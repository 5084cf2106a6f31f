"""Custom exceptions for the breakout trading bot.

Exchange and order failures during a tick are NOT exceptions: the exchange
layer returns DataUnavailable / OrderRejected results instead (see
breakout_bot.exchange.types). Only startup problems are raised.
"""


class BotError(Exception):
    """Base exception for all bot errors."""


class ConfigurationError(BotError):
    """Raised at startup when credentials or the trading pair are unusable."""
