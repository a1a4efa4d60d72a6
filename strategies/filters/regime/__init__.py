"""Regime filters for market condition detection."""

from strategies.filters.regime.adx_filter import ADXFilter

__all__ = ['ADXFilter']
