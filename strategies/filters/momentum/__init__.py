"""Momentum filters (RSI, momentum score)."""

from strategies.filters.momentum.rsi_filter import RSIBandFilter, RSIRangeFilter
from strategies.filters.momentum.momentum_score_filter import MomentumScoreFilter, momentum_score

__all__ = ['RSIBandFilter', 'RSIRangeFilter', 'MomentumScoreFilter', 'momentum_score']
