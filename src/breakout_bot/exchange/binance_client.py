"""Binance spot client implementation via ccxt async.

Wraps ccxt.async_support.binance with market loading, instrument info
extraction and async cleanup, and translates every ccxt failure into the
DataUnavailable / OrderRejected results the decision engine branches on.
"""

import time
from decimal import Decimal, InvalidOperation

import ccxt
import ccxt.async_support as ccxt_async

from breakout_bot.config import ExchangeSettings
from breakout_bot.exchange.client import ExchangeClient
from breakout_bot.exchange.types import DataUnavailable, InstrumentInfo, OrderRejected
from breakout_bot.logging import get_logger
from breakout_bot.models import DailyCandle, OrderResult, OrderSide, OrderType

logger = get_logger(__name__)

# Payload shapes we could not parse are treated like a failed fetch
_PARSE_ERRORS = (
    AttributeError,
    KeyError,
    IndexError,
    TypeError,
    ValueError,
    InvalidOperation,
)

# ccxt order statuses that mean nothing was (or will be) executed
_DEAD_ORDER_STATUSES = frozenset({"canceled", "rejected", "expired"})


def _to_decimal(value: object) -> Decimal:
    result = Decimal(str(value))
    if not result.is_finite():
        raise ValueError(f"non-finite value {value!r}")
    return result


class BinanceClient(ExchangeClient):
    """Concrete Binance spot client using ccxt async."""

    def __init__(self, settings: ExchangeSettings) -> None:
        self._settings = settings

        config: dict = {
            "apiKey": settings.api_key.get_secret_value(),
            "secret": settings.api_secret.get_secret_value(),
            "enableRateLimit": True,
            "options": {
                "defaultType": "spot",
            },
        }

        self._exchange = ccxt_async.binance(config)
        if settings.sandbox:
            self._exchange.set_sandbox_mode(True)
        self._markets: dict = {}

    async def connect(self) -> None:
        """Initialize connection by loading markets."""
        logger.info("connecting_to_binance", sandbox=self._settings.sandbox)
        self._markets = await self._exchange.load_markets()
        logger.info(
            "binance_connected",
            market_count=len(self._markets),
            sandbox=self._settings.sandbox,
        )

    async def close(self) -> None:
        """Release ccxt async resources. Must be called on shutdown."""
        logger.info("closing_binance_connection")
        await self._exchange.close()
        logger.info("binance_connection_closed")

    async def get_instrument_info(self, symbol: str) -> InstrumentInfo:
        """Extract spot trading constraints from cached market data.

        All numeric values are converted to Decimal for precision.

        Raises:
            ValueError: If the symbol is not among the loaded markets.
        """
        if not self._markets:
            self._markets = await self._exchange.load_markets()

        market = self._markets.get(symbol)
        if not market:
            raise ValueError(f"Symbol {symbol} not found in loaded markets")

        limits = market.get("limits", {})
        precision = market.get("precision", {})
        amount_limits = limits.get("amount", {})
        cost_limits = limits.get("cost", {})

        return InstrumentInfo(
            symbol=symbol,
            min_qty=_to_decimal(amount_limits.get("min", 0) or 0),
            qty_step=_to_decimal(precision.get("amount", 0) or 0),
            min_notional=_to_decimal(cost_limits.get("min", 0) or 0),
        )

    async def fetch_daily_candle(
        self, symbol: str, day_start_ms: int
    ) -> DailyCandle | DataUnavailable:
        """Fetch the single 1d candle that opens at day_start_ms.

        ccxt treats `since` as a lower bound, so a row that opens on a later
        day (the requested day has no candle yet) is reported as unavailable.
        """
        try:
            rows = await self._exchange.fetch_ohlcv(symbol, "1d", day_start_ms, 1)
        except ccxt.BaseError as e:
            logger.warning("daily_candle_fetch_failed", symbol=symbol, error=str(e))
            return DataUnavailable(f"fetch_ohlcv failed: {e}")

        if not rows:
            return DataUnavailable(f"no 1d candle for {symbol} since {day_start_ms}")

        try:
            row = rows[0]
            opened_at = int(row[0])
            candle = DailyCandle(
                timestamp=opened_at,
                open=_to_decimal(row[1]),
                high=_to_decimal(row[2]),
                low=_to_decimal(row[3]),
                close=_to_decimal(row[4]),
            )
        except _PARSE_ERRORS as e:
            logger.warning("daily_candle_malformed", symbol=symbol, row=rows[0])
            return DataUnavailable(f"malformed candle: {e!r}")

        if opened_at != day_start_ms:
            return DataUnavailable(
                f"candle opens at {opened_at}, expected {day_start_ms}"
            )
        return candle

    async def fetch_current_price(self, symbol: str) -> Decimal | DataUnavailable:
        """Fetch the ticker's last traded price."""
        try:
            ticker = await self._exchange.fetch_ticker(symbol)
        except ccxt.BaseError as e:
            logger.warning("ticker_fetch_failed", symbol=symbol, error=str(e))
            return DataUnavailable(f"fetch_ticker failed: {e}")

        last = ticker.get("last")
        if last is None:
            return DataUnavailable(f"ticker for {symbol} has no last price")
        try:
            return _to_decimal(last)
        except _PARSE_ERRORS:
            return DataUnavailable(
                f"ticker for {symbol} has invalid last price {last!r}"
            )

    async def fetch_free_balance(self, currency: str) -> Decimal | DataUnavailable:
        """Read the free balance of a currency. A currency never held reads as 0."""
        try:
            balance = await self._exchange.fetch_balance()
        except ccxt.BaseError as e:
            logger.warning("balance_fetch_failed", currency=currency, error=str(e))
            return DataUnavailable(f"fetch_balance failed: {e}")

        free = balance.get("free") or {}
        try:
            return _to_decimal(free.get(currency) or 0)
        except _PARSE_ERRORS:
            return DataUnavailable(f"invalid free balance for {currency}")

    async def submit_market_buy(
        self, symbol: str, quantity: Decimal
    ) -> OrderResult | OrderRejected:
        return await self._submit(symbol, OrderSide.BUY, quantity)

    async def submit_market_sell(
        self, symbol: str, quantity: Decimal
    ) -> OrderResult | OrderRejected:
        return await self._submit(symbol, OrderSide.SELL, quantity)

    async def _submit(
        self, symbol: str, side: OrderSide, quantity: Decimal
    ) -> OrderResult | OrderRejected:
        """Place a market order and parse the ccxt order into OrderResult.

        The amount is passed through amount_to_precision so the exchange's
        lot size filter accepts it.
        """
        try:
            amount = self._exchange.amount_to_precision(symbol, float(quantity))
            logger.info(
                "creating_order",
                symbol=symbol,
                order_type=OrderType.MARKET.value,
                side=side.value,
                amount=amount,
            )
            result = await self._exchange.create_order(
                symbol, OrderType.MARKET.value, side.value, float(amount)
            )
        except ccxt.BaseError as e:
            logger.warning(
                "order_rejected",
                symbol=symbol,
                side=side.value,
                quantity=str(quantity),
                error=str(e),
            )
            return OrderRejected(f"{type(e).__name__}: {e}")

        status = result.get("status")
        if status in _DEAD_ORDER_STATUSES:
            return OrderRejected(f"order {result.get('id')} {status}")

        # All values through Decimal(str()) to avoid float
        order_id = str(result.get("id", ""))
        try:
            filled_qty = _to_decimal(result.get("filled") or 0)
            average_price = result.get("average") or result.get("price")
            filled_price = (
                _to_decimal(average_price) if average_price else Decimal("0")
            )

            fee_info = result.get("fee") or {}
            fee = _to_decimal(fee_info.get("cost") or 0)

            timestamp = result.get("timestamp")
            ts = float(timestamp) / 1000.0 if timestamp else time.time()
        except _PARSE_ERRORS as e:
            logger.error(
                "order_response_malformed",
                order_id=order_id,
                symbol=symbol,
                side=side.value,
                error=repr(e),
            )
            return OrderRejected(f"order {order_id} response malformed: {e!r}")

        if filled_qty <= 0:
            return OrderRejected(f"order {order_id} filled nothing")

        logger.info(
            "live_order_filled",
            order_id=order_id,
            symbol=symbol,
            side=side.value,
            quantity=str(filled_qty),
            fill_price=str(filled_price),
            fee=str(fee),
        )

        return OrderResult(
            order_id=order_id,
            symbol=symbol,
            side=side,
            filled_qty=filled_qty,
            filled_price=filled_price,
            fee=fee,
            timestamp=ts,
            is_simulated=False,
        )
