"""Trend indicators: ADX / DI and the composite trend-strength score."""

import math

import numpy as np
import pandas as pd

from indicators.moving_averages import wilder_smooth
from indicators.volatility import true_range


def adx(df: pd.DataFrame, period: int = 14) -> pd.DataFrame:
    """
    Average Directional Index with Wilder smoothing.
    
    Args:
        df: OHLC DataFrame
        period: Smoothing period
    
    Returns:
        DataFrame with columns: plus_di, minus_di, adx
    """
    high = df['high'].astype(float)
    low = df['low'].astype(float)
    up_move = high.diff()
    down_move = -low.diff()

    plus_dm = up_move.where((up_move > down_move) & (up_move > 0), 0.0)
    minus_dm = down_move.where((down_move > up_move) & (down_move > 0), 0.0)
    # First bar has no previous high/low
    plus_dm.iloc[:1] = np.nan
    minus_dm.iloc[:1] = np.nan

    smoothed_tr = wilder_smooth(true_range(df), period).replace(0.0, np.nan)
    plus_di = 100.0 * wilder_smooth(plus_dm, period) / smoothed_tr
    minus_di = 100.0 * wilder_smooth(minus_dm, period) / smoothed_tr

    di_sum = plus_di + minus_di
    dx = 100.0 * (plus_di - minus_di).abs() / di_sum.replace(0.0, np.nan)
    dx = dx.where(~((di_sum == 0.0) & plus_di.notna()), 0.0)

    return pd.DataFrame({
        'plus_di': plus_di,
        'minus_di': minus_di,
        'adx': wilder_smooth(dx, period),
    }, index=df.index)


def trend_strength(
    fast_ma: float,
    slow_ma: float,
    adx_value: float,
    rsi_value: float,
    bb_position: float,
    direction: int = 1,
) -> float:
    """
    Composite trend-strength score in [0, 1].
    
    Components:
    - MA alignment with the trade direction (0.3)
    - ADX normalised over 0-50 (0.3)
    - RSI distance from 50 (0.2)
    - Distance from the Bollinger middle, scaled to -1..1 (0.2)
    
    Args:
        fast_ma: Fast moving average value
        slow_ma: Slow moving average value
        adx_value: ADX value
        rsi_value: RSI value
        bb_position: Bollinger position in 0..1
        direction: 1 for long, -1 for short
    
    Returns:
        Score capped at 1.0 (0.0 if any input is NaN)
    """
    inputs = (fast_ma, slow_ma, adx_value, rsi_value, bb_position)
    if any(v is None or math.isnan(v) for v in inputs):
        return 0.0

    aligned = fast_ma > slow_ma if direction >= 0 else fast_ma < slow_ma
    score = (1.0 if aligned else 0.0) * 0.3
    score += min(adx_value / 50.0, 1.0) * 0.3
    score += abs(rsi_value - 50.0) / 50.0 * 0.2
    score += abs(bb_position * 2.0 - 1.0) * 0.2
    return min(score, 1.0)
