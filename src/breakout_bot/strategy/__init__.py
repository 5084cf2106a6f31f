"""Breakout strategy -- target price computation and the trading decision engine."""

from breakout_bot.strategy.engine import (
    DailyCycleResult,
    EnginePhase,
    Outcome,
    OutcomeKind,
    TradingDecisionEngine,
    TradingState,
)
from breakout_bot.strategy.target import TargetPriceCalculator

__all__ = [
    "DailyCycleResult",
    "EnginePhase",
    "Outcome",
    "OutcomeKind",
    "TargetPriceCalculator",
    "TradingDecisionEngine",
    "TradingState",
]
