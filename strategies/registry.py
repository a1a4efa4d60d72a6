"""Build a strategy instance from its tagged parameter model."""

from typing import Dict, Type

from config.schema import CrossoverParams, MTFMomentumParams, SessionReentryParams
from strategies.base import StrategyBase
from strategies.crossover import CrossoverStrategy
from strategies.mtf_momentum import MTFMomentumStrategy
from strategies.session_reentry import SessionReentryStrategy


STRATEGY_CLASSES: Dict[type, Type[StrategyBase]] = {
    CrossoverParams: CrossoverStrategy,
    MTFMomentumParams: MTFMomentumStrategy,
    SessionReentryParams: SessionReentryStrategy,
}


def build_strategy(params) -> StrategyBase:
    """
    Instantiate the strategy for a parameter model.
    
    Args:
        params: One of the StrategyParams variants
    
    Returns:
        Strategy instance
    
    Raises:
        TypeError: if params is not a known strategy parameter model
    """
    strategy_cls = STRATEGY_CLASSES.get(type(params))
    if strategy_cls is None:
        raise TypeError(f"Unknown strategy parameters: {type(params).__name__}")
    return strategy_cls(params)
