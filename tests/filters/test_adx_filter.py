"""Unit tests for ADX filter."""

import math

import pandas as pd

from strategies.filters.base import FilterContext
from strategies.filters.regime.adx_filter import ADXFilter


def _context(data, direction=1):
    return FilterContext(
        timestamp=pd.Timestamp('2024-01-01 12:00:00'),
        symbol='BTCUSDT',
        signal_direction=direction,
        signal_data=pd.Series(data, dtype=float),
    )


def test_adx_filter_pass():
    """Test ADX filter passes when ADX is at or above threshold."""
    filter_obj = ADXFilter({'enabled': True, 'min_adx': 23.0})

    result = filter_obj.check(_context({'adx': 25.0}))
    assert result.passed is True
    assert result.reason is None
    assert result.metadata['value'] == 25.0
    assert result.metadata['threshold'] == 23.0
    assert result.metadata['symbol'] == 'BTCUSDT'

    assert filter_obj.check(_context({'adx': 23.0})).passed is True


def test_adx_filter_fail():
    """Test ADX filter fails when ADX is below threshold."""
    filter_obj = ADXFilter({'enabled': True, 'min_adx': 23.0})

    result = filter_obj.check(_context({'adx': 20.0}))
    assert result.passed is False
    assert 'below minimum' in result.reason.lower()
    assert result.metadata['value'] == 20.0


def test_adx_filter_is_direction_agnostic():
    filter_obj = ADXFilter({'min_adx': 20.0})
    assert filter_obj.check(_context({'adx': 30.0}, direction=-1)).passed is True


def test_adx_filter_default_threshold():
    filter_obj = ADXFilter({})
    assert filter_obj.min_adx == 20.0
    assert filter_obj.enabled is True


def test_adx_filter_disabled():
    """Test ADX filter passes when disabled."""
    filter_obj = ADXFilter({'enabled': False, 'min_adx': 23.0})

    result = filter_obj.check(_context({'adx': 10.0}))
    assert result.passed is True  # Passes because filter is disabled


def test_adx_filter_missing_value():
    """Test ADX filter fails when ADX value is missing or NaN."""
    filter_obj = ADXFilter({'enabled': True, 'min_adx': 23.0})

    for data in ({}, {'adx': math.nan}):
        result = filter_obj.check(_context(data))
        assert result.passed is False
        assert 'not available' in result.reason.lower()


def test_adx_filter_reads_config_object():
    class Settings:
        enabled = True
        min_adx = 30.0

    filter_obj = ADXFilter(Settings())
    assert filter_obj.check(_context({'adx': 25.0})).passed is False
