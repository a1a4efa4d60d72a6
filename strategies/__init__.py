"""Trading strategies."""

from strategies.base import EvaluationContext, Signal, SignalType, StrategyBase
from strategies.crossover import CrossoverStrategy
from strategies.mtf_momentum import MTFMomentumStrategy
from strategies.session_reentry import SessionReentryStrategy
from strategies.registry import STRATEGY_CLASSES, build_strategy

__all__ = [
    'EvaluationContext',
    'Signal',
    'SignalType',
    'StrategyBase',
    'CrossoverStrategy',
    'MTFMomentumStrategy',
    'SessionReentryStrategy',
    'STRATEGY_CLASSES',
    'build_strategy',
]
