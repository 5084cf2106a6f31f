"""Paper trading client with simulated fills.

Market data (candles, prices) comes from a real exchange client's public
endpoints; balances and fills are virtual. All fills are instant market-order
simulations with configurable slippage and taker fees, charged the way Binance
spot charges them (base asset on buys, quote asset on sells).
"""

import time
from decimal import Decimal
from uuid import uuid4

from breakout_bot.config import FeeSettings, PaperSettings
from breakout_bot.exchange.client import ExchangeClient
from breakout_bot.exchange.types import (
    DataUnavailable,
    OrderRejected,
    round_to_step,
    split_symbol,
)
from breakout_bot.logging import get_logger
from breakout_bot.models import DailyCandle, OrderResult, OrderSide

logger = get_logger(__name__)


class PaperExchangeClient(ExchangeClient):
    """Simulated spot account for a single trading pair.

    Args:
        market_data: Client used for candles and prices (only public calls).
        symbol: The pair this virtual account trades, e.g. "BTC/USDT".
        fee_settings: Taker fee applied to every fill.
        paper_settings: Starting balances and simulated slippage.
    """

    def __init__(
        self,
        market_data: ExchangeClient,
        symbol: str,
        fee_settings: FeeSettings,
        paper_settings: PaperSettings,
    ) -> None:
        self._market_data = market_data
        self._fee_settings = fee_settings
        self._slippage = paper_settings.slippage
        self._base, self._quote = split_symbol(symbol)
        self._virtual_balances: dict[str, Decimal] = {
            self._quote: paper_settings.initial_quote_balance,
            self._base: paper_settings.initial_base_balance,
        }

    def get_virtual_balance(self) -> dict[str, Decimal]:
        """Return current virtual balances keyed by currency code."""
        return dict(self._virtual_balances)

    async def connect(self) -> None:
        await self._market_data.connect()

    async def close(self) -> None:
        await self._market_data.close()

    async def fetch_daily_candle(
        self, symbol: str, day_start_ms: int
    ) -> DailyCandle | DataUnavailable:
        return await self._market_data.fetch_daily_candle(symbol, day_start_ms)

    async def fetch_current_price(self, symbol: str) -> Decimal | DataUnavailable:
        return await self._market_data.fetch_current_price(symbol)

    async def fetch_free_balance(self, currency: str) -> Decimal | DataUnavailable:
        return self._virtual_balances.get(currency, Decimal("0"))

    async def submit_market_buy(
        self, symbol: str, quantity: Decimal
    ) -> OrderResult | OrderRejected:
        return await self._fill(symbol, OrderSide.BUY, quantity)

    async def submit_market_sell(
        self, symbol: str, quantity: Decimal
    ) -> OrderResult | OrderRejected:
        return await self._fill(symbol, OrderSide.SELL, quantity)

    async def _fill(
        self, symbol: str, side: OrderSide, quantity: Decimal
    ) -> OrderResult | OrderRejected:
        """Simulate a market order against the current price.

        Follows Binance spot accounting: a buy pays its taker fee out of the
        base asset received, a sell out of the quote proceeds.

        1. Fetch price from the market data client.
        2. Apply slippage (higher for buys, lower for sells).
        3. Buys: fill as much of the quantity as the quote balance covers at
           the slipped price, keeping the quantity's decimal places.
        4. Sells: reject if the base balance cannot cover the order.
        5. Update virtual balances and return a simulated OrderResult.
        """
        if quantity <= 0:
            return OrderRejected(f"invalid quantity {quantity}")

        price = await self._market_data.fetch_current_price(symbol)
        if isinstance(price, DataUnavailable):
            return OrderRejected(f"no price to simulate fill: {price.reason}")

        fee_rate = self._fee_settings.spot_taker
        if side == OrderSide.BUY:
            fill_price = price * (Decimal("1") + self._slippage)
            available = self._virtual_balances[self._quote]
            filled_qty = quantity
            if filled_qty * fill_price > available:
                # Slippage moved the price past what the balance covers
                step = Decimal(1).scaleb(quantity.as_tuple().exponent)
                filled_qty = round_to_step(available / fill_price, step)
            if filled_qty <= 0:
                return OrderRejected(
                    f"insufficient {self._quote}: need {quantity * fill_price}, "
                    f"have {available}"
                )
            fee = filled_qty * fee_rate
            self._virtual_balances[self._quote] -= filled_qty * fill_price
            self._virtual_balances[self._base] += filled_qty - fee
        else:
            fill_price = price * (Decimal("1") - self._slippage)
            available = self._virtual_balances[self._base]
            if quantity > available:
                return OrderRejected(
                    f"insufficient {self._base}: need {quantity}, have {available}"
                )
            filled_qty = quantity
            fee = filled_qty * fill_price * fee_rate
            self._virtual_balances[self._base] -= filled_qty
            self._virtual_balances[self._quote] += filled_qty * fill_price - fee

        order_id = f"paper_{uuid4().hex[:12]}"

        logger.info(
            "paper_order_filled",
            order_id=order_id,
            symbol=symbol,
            side=side.value,
            requested=str(quantity),
            quantity=str(filled_qty),
            fill_price=str(fill_price),
            fee=str(fee),
        )

        return OrderResult(
            order_id=order_id,
            symbol=symbol,
            side=side,
            filled_qty=filled_qty,
            filled_price=fill_price,
            fee=fee,
            timestamp=time.time(),
            is_simulated=True,
        )
