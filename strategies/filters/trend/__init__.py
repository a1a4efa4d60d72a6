"""Trend filters."""

from strategies.filters.trend.trend_strength_filter import TrendStrengthFilter
from strategies.filters.trend.trend_direction_filter import TrendDirectionFilter
from strategies.filters.trend.bollinger_position_filter import BollingerPositionFilter

__all__ = ['TrendStrengthFilter', 'TrendDirectionFilter', 'BollingerPositionFilter']
