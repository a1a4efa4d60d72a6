"""Tests for count-based resampling."""

import pytest
import pandas as pd
import numpy as np

from engine.resampler import resample_by_count


def create_sample_1m_data(n_bars=100):
    """Create sample 1-minute OHLCV data."""
    dates = pd.date_range(start='2024-01-01 00:00:00', periods=n_bars, freq='1min')
    rng = np.random.default_rng(42)
    prices = 100.0 + np.cumsum(rng.normal(0.0, 0.1, n_bars))

    return pd.DataFrame({
        'open': prices,
        'high': prices * 1.001,
        'low': prices * 0.999,
        'close': prices * 1.0005,
        'volume': rng.integers(100, 1000, n_bars).astype(float),
    }, index=dates)


def test_resample_by_count_aggregates_chunks():
    """Each output candle is the OHLCV aggregate of one chunk."""
    df = create_sample_1m_data(15)

    out = resample_by_count(df, 5)

    assert len(out) == 3
    assert list(out.index) == list(df.index[::5])
    chunk = df.iloc[5:10]
    row = out.iloc[1]
    assert row['open'] == chunk['open'].iloc[0]
    assert row['high'] == chunk['high'].max()
    assert row['low'] == chunk['low'].min()
    assert row['close'] == chunk['close'].iloc[-1]
    assert row['volume'] == pytest.approx(chunk['volume'].sum())


def test_trailing_partial_chunk_is_dropped():
    """Only complete chunks are emitted."""
    df = create_sample_1m_data(17)

    out = resample_by_count(df, 5)

    assert len(out) == 3
    assert out['close'].iloc[-1] == df['close'].iloc[14]


def test_fewer_candles_than_factor_gives_empty_frame():
    out = resample_by_count(create_sample_1m_data(3), 5)
    assert out.empty
    assert list(out.columns) == ['open', 'high', 'low', 'close', 'volume']


def test_factor_one_returns_copy():
    df = create_sample_1m_data(10)
    out = resample_by_count(df, 1)

    pd.testing.assert_frame_equal(out, df)
    out.iloc[0, 0] = -1.0
    assert df.iloc[0, 0] != -1.0


def test_resample_validation():
    """Test resampling validation."""
    df = create_sample_1m_data(10)

    with pytest.raises(ValueError):
        resample_by_count(df.drop(columns=['close']), 5)

    with pytest.raises(ValueError):
        resample_by_count(df.reset_index(drop=True), 5)

    with pytest.raises(ValueError):
        resample_by_count(df, 0)


def test_completed_chunk_does_not_depend_on_later_candles():
    df = create_sample_1m_data(20)
    mutated = df.copy()
    mutated.iloc[10:, :4] = mutated.iloc[10:, :4] * 2.0

    pd.testing.assert_frame_equal(
        resample_by_count(df, 5).iloc[:2],
        resample_by_count(mutated, 5).iloc[:2],
    )
