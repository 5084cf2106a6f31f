"""Trading decision engine -- daily liquidation, target refresh and breakout buys.

Owns the only mutable trading state (target price, last sell time) and
funnels every change through three operations invoked by the scheduler:

  liquidate_position()     once per day, sells the whole free base balance
  refresh_daily_target()   once per day, right after the liquidation
  check_buy_opportunity()  every poll tick, buys when price >= target

Each operation holds a single asyncio.Lock for its full duration, so a buy
check that is awaiting the exchange when the daily job fires finishes with
the state it read at its start, and the daily job then runs to completion
(sell, then recompute) before the next check can observe anything.

Every decision and every skip is returned as an Outcome with a distinct
OutcomeKind and logged, so an operator can audit why a tick did nothing.
Exchange failures come back as DataUnavailable / OrderRejected results;
they abort the rest of the operation and leave the state untouched.
"""

import asyncio
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum

from breakout_bot.clock import Clock
from breakout_bot.config import TradingSettings
from breakout_bot.exchange.client import ExchangeClient
from breakout_bot.exchange.types import (
    DataUnavailable,
    InstrumentInfo,
    OrderRejected,
    round_to_step,
    split_symbol,
    utc_day_start_ms,
)
from breakout_bot.logging import get_logger
from breakout_bot.models import OrderIntent, OrderResult, OrderSide
from breakout_bot.strategy.target import TargetPriceCalculator

logger = get_logger(__name__)


def _str_or_none(value: Decimal | None) -> str | None:
    return str(value) if value is not None else None


class EnginePhase(str, Enum):
    """Where the engine stands for its trading pair."""

    UNINITIALIZED = "uninitialized"  # no target yet
    ARMED = "armed"  # target set, buys allowed
    COOLDOWN = "cooldown"  # target set, a recent sell blocks buys


class OutcomeKind(str, Enum):
    """Result of a single engine operation."""

    # refresh_daily_target
    TARGET_SET = "target_set"
    # liquidate_position
    SOLD = "sold"
    NO_POSITION = "no_position"
    # check_buy_opportunity
    BOUGHT = "bought"
    NOT_READY = "not_ready"
    BELOW_TARGET = "below_target"
    COOLDOWN = "cooldown"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    QUANTITY_BELOW_MINIMUM = "quantity_below_minimum"
    # any operation
    DATA_UNAVAILABLE = "data_unavailable"
    ORDER_REJECTED = "order_rejected"


@dataclass(frozen=True)
class Outcome:
    """What an operation decided, with the values it decided on."""

    kind: OutcomeKind
    reason: str = ""
    price: Decimal | None = None
    target: Decimal | None = None
    quantity: Decimal | None = None
    order: OrderResult | None = None


@dataclass(frozen=True)
class DailyCycleResult:
    """Outcomes of the two steps of the daily job."""

    liquidation: Outcome
    refresh: Outcome


@dataclass
class TradingState:
    """Mutable per-pair state. Only TradingDecisionEngine writes to it."""

    cooldown: timedelta
    target_buy_price: Decimal | None = None
    last_sell_at: datetime | None = None

    def in_cooldown(self, now: datetime) -> bool:
        if self.last_sell_at is None:
            return False
        return now - self.last_sell_at < self.cooldown

    def phase(self, now: datetime) -> EnginePhase:
        if self.target_buy_price is None:
            return EnginePhase.UNINITIALIZED
        if self.in_cooldown(now):
            return EnginePhase.COOLDOWN
        return EnginePhase.ARMED


class TradingDecisionEngine:
    """Breakout buy / daily liquidation logic for a single spot pair.

    Buying leaves the state unchanged: there is no cooldown after a buy, so
    the engine may buy again on a later tick while price stays above target
    and quote balance remains. Only a successful sell starts the cooldown.

    Args:
        settings: Trading settings (symbol, cooldown, dust threshold).
        exchange: Exchange client used for all reads and orders.
        calculator: Target price calculator.
        instrument: Quantity step, minimum order size and minimum notional.
        clock: Source of the current time.
    """

    def __init__(
        self,
        settings: TradingSettings,
        exchange: ExchangeClient,
        calculator: TargetPriceCalculator,
        instrument: InstrumentInfo,
        clock: Clock,
    ) -> None:
        self._symbol = settings.symbol
        self._base, self._quote = split_symbol(settings.symbol)
        self._dust_threshold = settings.dust_threshold
        self._exchange = exchange
        self._calculator = calculator
        self._instrument = instrument
        self._clock = clock
        self._state = TradingState(
            cooldown=timedelta(seconds=settings.cooldown_seconds)
        )
        self._lock = asyncio.Lock()

    @property
    def state(self) -> TradingState:
        """A copy of the current state."""
        return replace(self._state)

    @property
    def phase(self) -> EnginePhase:
        return self._state.phase(self._clock.now())

    def get_status(self) -> dict:
        """Return a loggable summary of the engine's state."""
        state = self._state
        return {
            "symbol": self._symbol,
            "phase": self.phase.value,
            "target_buy_price": _str_or_none(state.target_buy_price),
            "last_sell_at": (
                state.last_sell_at.isoformat() if state.last_sell_at else None
            ),
            "cooldown_seconds": int(state.cooldown.total_seconds()),
        }

    # ------------------------------------------------------------------
    # Scheduled operations
    # ------------------------------------------------------------------

    async def run_daily_cycle(self) -> DailyCycleResult:
        """Daily job: liquidate, then recompute the target.

        The target is recomputed even when the sell failed. Both steps run
        under one lock acquisition so no buy check can observe the state
        between them.
        """
        async with self._lock:
            liquidation = await self._liquidate_position()
            refresh = await self._refresh_daily_target()
        logger.info(
            "daily_cycle_complete",
            liquidation=liquidation.kind.value,
            refresh=refresh.kind.value,
            **self.get_status(),
        )
        return DailyCycleResult(liquidation=liquidation, refresh=refresh)

    async def refresh_daily_target(self) -> Outcome:
        """Recompute the target from yesterday's UTC daily candle."""
        async with self._lock:
            return await self._refresh_daily_target()

    async def liquidate_position(self) -> Outcome:
        """Sell the whole free base balance if it is above the dust threshold."""
        async with self._lock:
            return await self._liquidate_position()

    async def check_buy_opportunity(self) -> Outcome:
        """Buy with the whole free quote balance if price has broken out."""
        async with self._lock:
            return await self._check_buy_opportunity()

    # ------------------------------------------------------------------
    # Unlocked implementations (callers hold self._lock)
    # ------------------------------------------------------------------

    async def _refresh_daily_target(self) -> Outcome:
        yesterday = self._clock.now().date() - timedelta(days=1)
        day_start = utc_day_start_ms(yesterday)

        candle = await self._exchange.fetch_daily_candle(self._symbol, day_start)
        if isinstance(candle, DataUnavailable):
            return self._keep_target(candle, day_start)

        target = self._calculator.compute_target(candle)
        if isinstance(target, DataUnavailable):
            return self._keep_target(target, day_start)

        previous = self._state.target_buy_price
        self._state.target_buy_price = target
        logger.info(
            "target_price_set",
            symbol=self._symbol,
            target=str(target),
            previous=_str_or_none(previous),
            day=yesterday.isoformat(),
            close=str(candle.close),
            high=str(candle.high),
            low=str(candle.low),
            k_scale=str(self._calculator.k_scale),
        )
        return Outcome(OutcomeKind.TARGET_SET, target=target)

    def _keep_target(self, unavailable: DataUnavailable, day_start: int) -> Outcome:
        target = self._state.target_buy_price
        logger.warning(
            "target_refresh_failed",
            symbol=self._symbol,
            day_start_ms=day_start,
            reason=unavailable.reason,
            kept_target=_str_or_none(target),
        )
        return Outcome(
            OutcomeKind.DATA_UNAVAILABLE, reason=unavailable.reason, target=target
        )

    async def _liquidate_position(self) -> Outcome:
        free = await self._exchange.fetch_free_balance(self._base)
        if isinstance(free, DataUnavailable):
            logger.warning(
                "liquidation_balance_unavailable",
                currency=self._base,
                reason=free.reason,
            )
            return Outcome(OutcomeKind.DATA_UNAVAILABLE, reason=free.reason)

        if free <= self._dust_threshold:
            logger.info(
                "no_position_to_sell",
                currency=self._base,
                free=str(free),
                dust_threshold=str(self._dust_threshold),
            )
            return Outcome(OutcomeKind.NO_POSITION, quantity=free)

        intent = OrderIntent(side=OrderSide.SELL, symbol=self._symbol, quantity=free)
        logger.info("selling_position", currency=self._base, quantity=str(free))
        result = await self._exchange.submit(intent)
        if isinstance(result, OrderRejected):
            logger.warning(
                "market_sell_rejected",
                symbol=self._symbol,
                quantity=str(free),
                reason=result.reason,
            )
            return Outcome(
                OutcomeKind.ORDER_REJECTED, reason=result.reason, quantity=free
            )

        self._state.last_sell_at = self._clock.now()
        cooldown_until = self._state.last_sell_at + self._state.cooldown
        logger.info(
            "market_sell_filled",
            symbol=self._symbol,
            order_id=result.order_id,
            quantity=str(result.filled_qty),
            price=str(result.filled_price),
            proceeds=str(result.filled_qty * result.filled_price - result.fee),
            cooldown_until=cooldown_until.isoformat(),
        )
        return Outcome(
            OutcomeKind.SOLD,
            price=result.filled_price,
            quantity=result.filled_qty,
            order=result,
        )

    async def _check_buy_opportunity(self) -> Outcome:
        # Decide on the state as it was when this tick started
        state = replace(self._state)
        target = state.target_buy_price
        if target is None:
            logger.info("buy_check_not_ready", symbol=self._symbol)
            return Outcome(OutcomeKind.NOT_READY, reason="target price not set")

        price = await self._exchange.fetch_current_price(self._symbol)
        if isinstance(price, DataUnavailable):
            logger.warning(
                "buy_check_price_unavailable",
                symbol=self._symbol,
                reason=price.reason,
            )
            return Outcome(
                OutcomeKind.DATA_UNAVAILABLE, reason=price.reason, target=target
            )
        if price <= 0:
            logger.warning(
                "buy_check_invalid_price", symbol=self._symbol, price=str(price)
            )
            return Outcome(
                OutcomeKind.DATA_UNAVAILABLE,
                reason=f"invalid price {price}",
                price=price,
                target=target,
            )

        if price < target:
            logger.info(
                "buy_skipped_below_target",
                symbol=self._symbol,
                price=str(price),
                target=str(target),
            )
            return Outcome(OutcomeKind.BELOW_TARGET, price=price, target=target)

        now = self._clock.now()
        if state.in_cooldown(now):
            remaining = state.last_sell_at + state.cooldown - now
            logger.info(
                "buy_skipped_cooldown",
                symbol=self._symbol,
                price=str(price),
                target=str(target),
                remaining_seconds=remaining.total_seconds(),
            )
            return Outcome(OutcomeKind.COOLDOWN, price=price, target=target)

        quote_free = await self._exchange.fetch_free_balance(self._quote)
        if isinstance(quote_free, DataUnavailable):
            logger.warning(
                "buy_check_balance_unavailable",
                currency=self._quote,
                reason=quote_free.reason,
            )
            return Outcome(
                OutcomeKind.DATA_UNAVAILABLE,
                reason=quote_free.reason,
                price=price,
                target=target,
            )

        if quote_free <= self._instrument.min_notional:
            logger.info(
                "buy_skipped_insufficient_balance",
                currency=self._quote,
                free=str(quote_free),
                min_notional=str(self._instrument.min_notional),
            )
            return Outcome(
                OutcomeKind.INSUFFICIENT_BALANCE, price=price, target=target
            )

        quantity = round_to_step(quote_free / price, self._instrument.qty_step)
        if quantity <= self._instrument.min_qty:
            logger.info(
                "buy_skipped_quantity_below_minimum",
                symbol=self._symbol,
                quantity=str(quantity),
                min_qty=str(self._instrument.min_qty),
            )
            return Outcome(
                OutcomeKind.QUANTITY_BELOW_MINIMUM,
                price=price,
                target=target,
                quantity=quantity,
            )

        intent = OrderIntent(side=OrderSide.BUY, symbol=self._symbol, quantity=quantity)
        logger.info(
            "breakout_detected",
            symbol=self._symbol,
            price=str(price),
            target=str(target),
            quantity=str(quantity),
        )
        result = await self._exchange.submit(intent)
        if isinstance(result, OrderRejected):
            logger.warning(
                "market_buy_rejected",
                symbol=self._symbol,
                quantity=str(quantity),
                reason=result.reason,
            )
            return Outcome(
                OutcomeKind.ORDER_REJECTED,
                reason=result.reason,
                price=price,
                target=target,
                quantity=quantity,
            )

        logger.info(
            "market_buy_filled",
            symbol=self._symbol,
            order_id=result.order_id,
            quantity=str(result.filled_qty),
            price=str(result.filled_price),
        )
        return Outcome(
            OutcomeKind.BOUGHT,
            price=price,
            target=target,
            quantity=result.filled_qty,
            order=result,
        )
