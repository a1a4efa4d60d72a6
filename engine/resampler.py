"""Resampling utilities for building higher timeframes from base candles."""

import numpy as np
import pandas as pd


# OHLCV aggregation rules
OHLCV_AGG = {
    'open': 'first',
    'high': 'max',
    'low': 'min',
    'close': 'last',
    'volume': 'sum',
}


def _validate_ohlcv(df: pd.DataFrame) -> None:
    required_cols = list(OHLCV_AGG.keys())
    missing = [col for col in required_cols if col not in df.columns]
    if missing:
        raise ValueError(f"DataFrame missing required columns: {missing}")
    
    if not isinstance(df.index, pd.DatetimeIndex):
        raise ValueError("DataFrame index must be DatetimeIndex")


def resample_by_count(df: pd.DataFrame, factor: int) -> pd.DataFrame:
    """
    Aggregate every `factor` consecutive base candles into one candle.
    
    Chunks are counted from the first base candle. Only complete chunks are
    emitted: a trailing partial chunk is dropped, so higher-timeframe candle
    k only depends on base candles [k * factor, (k + 1) * factor).
    
    Proper OHLC aggregation:
    - open: first value in chunk
    - high: maximum value in chunk
    - low: minimum value in chunk
    - close: last value in chunk
    - volume: sum of volumes in chunk
    
    Args:
        df: DataFrame with datetime index and OHLCV columns
        factor: Number of base candles per aggregated candle
    
    Returns:
        Aggregated DataFrame indexed by the open time of each chunk's first candle
    
    Raises:
        ValueError if required columns are missing or factor is invalid
    """
    _validate_ohlcv(df)
    if factor < 1:
        raise ValueError(f"Resample factor must be >= 1, got {factor}")
    if factor == 1:
        return df[list(OHLCV_AGG.keys())].copy()

    complete = (len(df) // factor) * factor
    if complete == 0:
        return df.iloc[0:0][list(OHLCV_AGG.keys())].copy()

    base = df.iloc[:complete]
    groups = np.arange(complete) // factor
    resampled = base[list(OHLCV_AGG.keys())].groupby(groups).agg(OHLCV_AGG)
    resampled.index = base.index[::factor]
    resampled.index.name = df.index.name
    return resampled
