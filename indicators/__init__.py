"""Technical indicator library.

Pure functions over pandas Series/DataFrames. Outputs are aligned
index-for-index with their input and NaN during warm-up.
"""

from .moving_averages import sma, ema, wma, wilder_smooth
from .oscillators import rsi, macd, stochastic, momentum, roc, cci
from .volatility import true_range, atr, bollinger_bands, bollinger_position
from .trend import adx, trend_strength
from .volume import volume_sma, volume_ratio, obv, vwap
from .registry import (
    INDICATOR_BUILDERS,
    compute_indicator,
    indicator_key,
    indicator_warmup,
    is_known_indicator,
    parse_indicator_key,
)

__all__ = [
    "sma",
    "ema",
    "wma",
    "wilder_smooth",
    "rsi",
    "macd",
    "stochastic",
    "momentum",
    "roc",
    "cci",
    "true_range",
    "atr",
    "bollinger_bands",
    "bollinger_position",
    "adx",
    "trend_strength",
    "volume_sma",
    "volume_ratio",
    "obv",
    "vwap",
    "INDICATOR_BUILDERS",
    "compute_indicator",
    "indicator_key",
    "indicator_warmup",
    "is_known_indicator",
    "parse_indicator_key",
]
