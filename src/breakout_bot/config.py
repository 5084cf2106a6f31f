"""Configuration system using pydantic-settings with environment variable loading."""

from datetime import time
from decimal import Decimal
from typing import Literal

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class ExchangeSettings(BaseSettings):
    """Binance exchange connection settings."""

    model_config = SettingsConfigDict(env_prefix="BINANCE_")

    api_key: SecretStr = SecretStr("")
    api_secret: SecretStr = SecretStr("")
    sandbox: bool = False


class TradingSettings(BaseSettings):
    """Breakout strategy parameters for a single trading pair.

    Thresholds are expressed in the units the exchange uses for the pair:
    quantities in the base currency, notionals in the quote currency.
    """

    model_config = SettingsConfigDict(env_prefix="TRADING_")

    mode: Literal["paper", "live"] = "paper"
    symbol: str = "BTC/USDT"
    k_scale: Decimal = Decimal("0.25")  # fraction of yesterday's range added to close
    poll_interval_seconds: int = 60
    daily_run_time: time = time(0, 5)  # UTC
    cooldown_seconds: int = 300  # no buys this long after a liquidation
    min_quote_balance: Decimal = Decimal("1")
    qty_step: Decimal = Decimal("0.0001")
    min_order_qty: Decimal = Decimal("0.0001")
    dust_threshold: Decimal = Decimal("0.0001")
    limits_from_exchange: bool = False
    refresh_on_startup: bool = True


class FeeSettings(BaseSettings):
    """Spot fee structure used for simulated fills."""

    model_config = SettingsConfigDict(env_prefix="FEES_")

    spot_taker: Decimal = Decimal("0.001")  # 0.1%


class PaperSettings(BaseSettings):
    """Virtual account used in paper mode."""

    model_config = SettingsConfigDict(env_prefix="PAPER_")

    initial_quote_balance: Decimal = Decimal("10000")
    initial_base_balance: Decimal = Decimal("0")
    slippage: Decimal = Decimal("0.0005")  # 5 basis points


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    exchange: ExchangeSettings = ExchangeSettings()
    trading: TradingSettings = TradingSettings()
    fees: FeeSettings = FeeSettings()
    paper: PaperSettings = PaperSettings()
