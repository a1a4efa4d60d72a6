"""Volume indicators."""

import numpy as np
import pandas as pd


def volume_sma(volume: pd.Series, period: int = 20) -> pd.Series:
    """Simple moving average of volume."""
    return volume.astype(float).rolling(window=period, min_periods=period).mean()


def volume_ratio(volume: pd.Series, period: int = 20, include_current: bool = True) -> pd.Series:
    """
    Current volume divided by the average volume.
    
    Args:
        volume: Volume series
        period: Averaging window
        include_current: Average over the window ending at the current bar
            (True) or over the `period` bars before it (False)
    
    Returns:
        Ratio series (NaN when the average is zero or warming up)
    """
    avg = volume_sma(volume, period)
    if not include_current:
        avg = avg.shift(1)
    return volume.astype(float) / avg.replace(0.0, np.nan)


def obv(df: pd.DataFrame) -> pd.Series:
    """On-balance volume, starting at 0."""
    direction = np.sign(df['close'].astype(float).diff()).fillna(0.0)
    return (direction * df['volume'].astype(float)).cumsum()


def vwap(df: pd.DataFrame) -> pd.Series:
    """Cumulative volume-weighted average price over the whole frame."""
    typical = (df['high'] + df['low'] + df['close']).astype(float) / 3.0
    cum_volume = df['volume'].astype(float).cumsum()
    return (typical * df['volume'].astype(float)).cumsum() / cum_volume.replace(0.0, np.nan)
