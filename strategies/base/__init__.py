"""Strategy base classes."""

from strategies.base.strategy_base import EvaluationContext, Signal, SignalType, StrategyBase

__all__ = ['EvaluationContext', 'Signal', 'SignalType', 'StrategyBase']
