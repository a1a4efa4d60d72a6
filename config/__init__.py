"""Configuration management module."""

from .schema import (
    BacktestConfig,
    PositionSizingConfig,
    TrailingStopConfig,
    CrossoverParams,
    MTFMomentumParams,
    SessionReentryParams,
    StrategyParams,
    load_config,
    validate_backtest_config,
    load_and_validate_backtest_config,
    load_defaults,
)
from .config_loader import deep_merge, merge_layers, load_backtest_config

__all__ = [
    "BacktestConfig",
    "PositionSizingConfig",
    "TrailingStopConfig",
    "CrossoverParams",
    "MTFMomentumParams",
    "SessionReentryParams",
    "StrategyParams",
    "load_config",
    "validate_backtest_config",
    "load_and_validate_backtest_config",
    "load_defaults",
    "deep_merge",
    "merge_layers",
    "load_backtest_config",
]
