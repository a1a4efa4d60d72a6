"""Filter system for trading strategies.

Filters confirm or reject a candidate signal from values computed on candles
before the entry candle. A FilterManager applies them in strict or advisory
mode.
"""

from strategies.filters.base import FilterBase, FilterContext, FilterResult
from strategies.filters.manager import FilterManager

# Import regime filters
from strategies.filters.regime.adx_filter import ADXFilter

# Import momentum filters
from strategies.filters.momentum.rsi_filter import RSIBandFilter, RSIRangeFilter
from strategies.filters.momentum.momentum_score_filter import MomentumScoreFilter

# Import volume filters
from strategies.filters.volume.volume_ratio_filter import VolumeRatioFilter

# Import trend filters
from strategies.filters.trend.trend_strength_filter import TrendStrengthFilter
from strategies.filters.trend.trend_direction_filter import TrendDirectionFilter
from strategies.filters.trend.bollinger_position_filter import BollingerPositionFilter

# Import calendar helpers
from strategies.filters.calendar.session_window import SessionWindow

__all__ = [
    'FilterBase',
    'FilterContext',
    'FilterResult',
    'FilterManager',
    'ADXFilter',
    'RSIBandFilter',
    'RSIRangeFilter',
    'MomentumScoreFilter',
    'VolumeRatioFilter',
    'TrendStrengthFilter',
    'TrendDirectionFilter',
    'BollingerPositionFilter',
    'SessionWindow',
]
