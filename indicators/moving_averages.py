"""Moving averages and exponential smoothing.

All functions return a float Series aligned index-for-index with the input,
NaN until enough history exists.
"""

import numpy as np
import pandas as pd


def _seeded_smoothing(series: pd.Series, period: int, alpha: float) -> pd.Series:
    """Exponential smoothing seeded with the SMA of the first `period` valid values.

    Leading NaNs are skipped, so the smoothing can run on a series that is
    itself still warming up (e.g. the MACD line). A NaN after the seed carries
    the previous smoothed value forward.
    """
    values = series.to_numpy(dtype=float)
    out = np.full(len(values), np.nan)
    valid = np.flatnonzero(~np.isnan(values))
    if period <= 0 or len(valid) < period:
        return pd.Series(out, index=series.index)

    seed_idx = valid[period - 1]
    prev = float(np.mean(values[valid[:period]]))
    out[seed_idx] = prev
    for j in range(seed_idx + 1, len(values)):
        v = values[j]
        if not np.isnan(v):
            prev = prev + alpha * (v - prev)
        out[j] = prev
    return pd.Series(out, index=series.index)


def sma(series: pd.Series, period: int) -> pd.Series:
    """Simple moving average."""
    return series.astype(float).rolling(window=period, min_periods=period).mean()


def ema(series: pd.Series, period: int) -> pd.Series:
    """
    Exponential moving average.
    
    Multiplier 2 / (period + 1), seeded with the SMA of the first `period`
    valid values.
    
    Args:
        series: Input series
        period: EMA period
    
    Returns:
        EMA series (NaN during warm-up)
    """
    return _seeded_smoothing(series, period, 2.0 / (period + 1))


def wilder_smooth(series: pd.Series, period: int) -> pd.Series:
    """Wilder's smoothing (RMA): alpha 1 / period, SMA seeded."""
    return _seeded_smoothing(series, period, 1.0 / period)


def wma(series: pd.Series, period: int) -> pd.Series:
    """Linearly weighted moving average (most recent value weighted highest)."""
    weights = np.arange(1, period + 1, dtype=float)
    total = weights.sum()
    return series.astype(float).rolling(window=period, min_periods=period).apply(
        lambda window: float(np.dot(window, weights) / total), raw=True
    )
