"""Volatility indicators: true range, ATR and Bollinger Bands."""

import numpy as np
import pandas as pd

from indicators.moving_averages import sma, wilder_smooth


def true_range(df: pd.DataFrame) -> pd.Series:
    """True range; the first bar has no previous close and is NaN."""
    prev_close = df['close'].astype(float).shift(1)
    high = df['high'].astype(float)
    low = df['low'].astype(float)
    ranges = pd.concat([
        high - low,
        (high - prev_close).abs(),
        (low - prev_close).abs(),
    ], axis=1)
    return ranges.max(axis=1, skipna=False)


def atr(df: pd.DataFrame, period: int = 14) -> pd.Series:
    """
    Average True Range (Wilder).
    
    Seeded with the mean of the first `period` true ranges, so the first
    value appears at index `period`.
    
    Args:
        df: OHLC DataFrame
        period: ATR period
    
    Returns:
        ATR series
    """
    return wilder_smooth(true_range(df), period)


def bollinger_bands(close: pd.Series, period: int = 20, std_dev: float = 2.0) -> pd.DataFrame:
    """
    Bollinger Bands using the population standard deviation.
    
    Returns:
        DataFrame with columns: upper, middle, lower
    """
    middle = sma(close, period)
    std = close.astype(float).rolling(window=period, min_periods=period).std(ddof=0)
    return pd.DataFrame({
        'upper': middle + std_dev * std,
        'middle': middle,
        'lower': middle - std_dev * std,
    }, index=close.index)


def bollinger_position(close: pd.Series, upper: pd.Series, lower: pd.Series) -> pd.Series:
    """Position of the close inside the bands, 0 (lower) to 1 (upper).

    Values outside the bands are clipped; a collapsed band yields 0.5.
    """
    width = upper - lower
    position = (close - lower) / width.replace(0.0, np.nan)
    position = position.clip(lower=0.0, upper=1.0)
    return position.where(~((width == 0.0) & close.notna()), 0.5)
