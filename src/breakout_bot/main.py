"""Entry point for the breakout trading bot.

Wires all components together and runs the scheduler until SIGINT/SIGTERM.

Component wiring order:
1. AppSettings (configuration, validated by _validate_settings)
2. Logging setup
3. ExchangeClient (BinanceClient, wrapped by PaperExchangeClient in paper mode)
4. InstrumentInfo (from settings, or from exchange markets after connect)
5. TargetPriceCalculator
6. TradingDecisionEngine
7. Scheduler (daily cycle + polling ticks)
"""

import asyncio
import signal
from typing import Any

import structlog

from breakout_bot.clock import Clock, SystemClock
from breakout_bot.config import AppSettings, TradingSettings
from breakout_bot.exceptions import ConfigurationError
from breakout_bot.exchange.binance_client import BinanceClient
from breakout_bot.exchange.client import ExchangeClient
from breakout_bot.exchange.paper_client import PaperExchangeClient
from breakout_bot.exchange.types import DataUnavailable, InstrumentInfo, split_symbol
from breakout_bot.logging import get_logger, setup_logging
from breakout_bot.scheduler import Scheduler
from breakout_bot.strategy.engine import TradingDecisionEngine
from breakout_bot.strategy.target import TargetPriceCalculator


def _validate_settings(settings: AppSettings) -> None:
    """Reject configurations the bot cannot trade with.

    Raises:
        ConfigurationError: If the symbol is malformed, live mode lacks
            credentials, or a threshold is unusable.
    """
    try:
        split_symbol(settings.trading.symbol)
    except ValueError as e:
        raise ConfigurationError(str(e)) from e

    if settings.trading.mode == "live":
        if not settings.exchange.api_key.get_secret_value():
            raise ConfigurationError("BINANCE_API_KEY is required in live mode")
        if not settings.exchange.api_secret.get_secret_value():
            raise ConfigurationError("BINANCE_API_SECRET is required in live mode")

    if settings.trading.qty_step <= 0:
        raise ConfigurationError("TRADING_QTY_STEP must be positive")
    if settings.trading.poll_interval_seconds <= 0:
        raise ConfigurationError("TRADING_POLL_INTERVAL_SECONDS must be positive")


def _build_exchange(settings: AppSettings) -> tuple[BinanceClient, ExchangeClient]:
    """Create the Binance client and the client the engine trades through.

    In paper mode the engine trades through a PaperExchangeClient that only
    uses the Binance client for public market data.

    Returns:
        Tuple of (binance_client, trading_client).
    """
    logger = get_logger("breakout_bot.main")

    binance_client = BinanceClient(settings.exchange)
    if settings.trading.mode == "live":
        return binance_client, binance_client

    if not settings.exchange.api_key.get_secret_value():
        logger.info(
            "no_api_keys_configured",
            mode="paper",
            note="Paper mode only uses public market data endpoints.",
        )
    paper_client = PaperExchangeClient(
        binance_client, settings.trading.symbol, settings.fees, settings.paper
    )
    return binance_client, paper_client


async def _resolve_instrument(
    settings: TradingSettings, binance_client: BinanceClient
) -> InstrumentInfo:
    """Pick the quantity constraints the engine trades with.

    Exchange values replace the configured ones only where the exchange
    reports something usable, and the configured minimum quote balance
    stays a floor under the exchange's minimum notional.
    """
    configured = InstrumentInfo(
        symbol=settings.symbol,
        min_qty=settings.min_order_qty,
        qty_step=settings.qty_step,
        min_notional=settings.min_quote_balance,
    )
    if not settings.limits_from_exchange:
        return configured

    exchange_info = await binance_client.get_instrument_info(settings.symbol)
    instrument = InstrumentInfo(
        symbol=settings.symbol,
        min_qty=exchange_info.min_qty or configured.min_qty,
        qty_step=exchange_info.qty_step or configured.qty_step,
        min_notional=max(exchange_info.min_notional, configured.min_notional),
    )
    get_logger("breakout_bot.main").info(
        "instrument_limits_from_exchange",
        min_qty=str(instrument.min_qty),
        qty_step=str(instrument.qty_step),
        min_notional=str(instrument.min_notional),
    )
    return instrument


def _build_components(
    settings: AppSettings,
    exchange_client: ExchangeClient,
    instrument: InstrumentInfo,
    clock: Clock,
) -> dict[str, Any]:
    """Build the calculator, engine and scheduler around a connected exchange.

    Args:
        settings: Application-wide settings.
        exchange_client: Client the engine reads from and trades through.
        instrument: Quantity constraints for the traded pair.
        clock: Time source shared by the engine and scheduler.

    Returns:
        Dict mapping component names to instances.
    """
    calculator = TargetPriceCalculator(settings.trading.k_scale)

    engine = TradingDecisionEngine(
        settings=settings.trading,
        exchange=exchange_client,
        calculator=calculator,
        instrument=instrument,
        clock=clock,
    )

    scheduler = Scheduler(
        on_daily_tick=engine.run_daily_cycle,
        on_poll_tick=engine.check_buy_opportunity,
        daily_at=settings.trading.daily_run_time,
        poll_interval=settings.trading.poll_interval_seconds,
        clock=clock,
    )

    return {
        "calculator": calculator,
        "engine": engine,
        "scheduler": scheduler,
    }


def _setup_signal_handlers(stop_event: asyncio.Event) -> None:
    """Register SIGINT/SIGTERM to request a graceful stop.

    Must be called after the asyncio event loop is running.
    """
    logger = get_logger("breakout_bot.main")
    loop = asyncio.get_running_loop()

    def _graceful_handler() -> None:
        logger.info("graceful_shutdown_signal")
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _graceful_handler)


async def _log_starting_balance(exchange_client: ExchangeClient, symbol: str) -> None:
    logger = get_logger("breakout_bot.main")
    base, quote = split_symbol(symbol)
    balance = await exchange_client.fetch_balance(base, quote)
    if isinstance(balance, DataUnavailable):
        logger.warning("starting_balance_unavailable", reason=balance.reason)
        return
    logger.info(
        "starting_balance",
        quote_free=str(balance.quote_free),
        base_free=str(balance.base_free),
    )


async def run() -> None:
    """Run the breakout trading bot until a shutdown signal arrives."""
    # 1. Load settings
    settings = AppSettings()

    # 2. Setup logging
    setup_logging(settings.log_level)
    logger = get_logger("breakout_bot.main")

    _validate_settings(settings)
    structlog.contextvars.bind_contextvars(symbol=settings.trading.symbol)

    # 3. Exchange
    binance_client, exchange_client = _build_exchange(settings)

    stop_event = asyncio.Event()
    _setup_signal_handlers(stop_event)

    logger.info(
        "starting_breakout_bot",
        mode=settings.trading.mode,
        k_scale=str(settings.trading.k_scale),
        daily_run_time=settings.trading.daily_run_time.isoformat(),
        poll_interval=settings.trading.poll_interval_seconds,
        cooldown_seconds=settings.trading.cooldown_seconds,
    )

    scheduler: Scheduler | None = None
    try:
        await exchange_client.connect()

        # 4-7. Strategy components
        instrument = await _resolve_instrument(settings.trading, binance_client)
        components = _build_components(
            settings, exchange_client, instrument, SystemClock()
        )
        engine: TradingDecisionEngine = components["engine"]
        scheduler = components["scheduler"]

        await _log_starting_balance(exchange_client, settings.trading.symbol)

        if settings.trading.refresh_on_startup:
            await engine.refresh_daily_target()

        await scheduler.start()
        await stop_event.wait()
    finally:
        if scheduler is not None:
            await scheduler.stop()
        await exchange_client.close()
        logger.info("breakout_bot_stopped")


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
