"""Core backtesting engine module."""

from engine.backtest_engine import (
    BacktestEngine,
    BacktestResult,
    Trade,
    Position,
    SkippedEntry,
)
from engine.errors import BacktestError, ConfigurationError, CandleDataError
from engine.market import ExchangeConstraints, OrderValidation, constraints_for, validate_order
from engine.broker import BrokerModel
from engine.account import AccountState
from engine.candles import Candle, candles_to_frame, validate_candles
from engine.indicator_cache import IndicatorCache, IndicatorView
from engine.position_sizer import PositionSizer, SizingResult

__all__ = [
    'BacktestEngine',
    'BacktestResult',
    'Trade',
    'Position',
    'SkippedEntry',
    'BacktestError',
    'ConfigurationError',
    'CandleDataError',
    'ExchangeConstraints',
    'OrderValidation',
    'constraints_for',
    'validate_order',
    'BrokerModel',
    'AccountState',
    'Candle',
    'candles_to_frame',
    'validate_candles',
    'IndicatorCache',
    'IndicatorView',
    'PositionSizer',
    'SizingResult',
]
