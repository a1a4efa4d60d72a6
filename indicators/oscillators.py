"""Momentum oscillators: RSI, MACD, stochastic, momentum, ROC, CCI."""

import numpy as np
import pandas as pd

from indicators.moving_averages import ema, sma, wilder_smooth


def rsi(close: pd.Series, period: int = 14) -> pd.Series:
    """
    Relative Strength Index with Wilder smoothing.
    
    Average gain/loss are seeded with the mean of the first `period` changes.
    An average loss of zero yields 100.
    
    Args:
        close: Close prices
        period: RSI period
    
    Returns:
        RSI series in [0, 100] (NaN for the first `period` bars)
    """
    delta = close.astype(float).diff()
    gains = delta.clip(lower=0.0)
    losses = (-delta).clip(lower=0.0)

    avg_gain = wilder_smooth(gains, period)
    avg_loss = wilder_smooth(losses, period)

    rs = avg_gain / avg_loss.replace(0.0, np.nan)
    result = 100.0 - (100.0 / (1.0 + rs))
    result = result.where(~((avg_loss == 0.0) & avg_gain.notna()), 100.0)
    return result


def macd(close: pd.Series, fast: int = 12, slow: int = 26, signal: int = 9) -> pd.DataFrame:
    """
    Moving Average Convergence Divergence.
    
    Args:
        close: Close prices
        fast: Fast EMA period
        slow: Slow EMA period
        signal: Signal EMA period (applied to the MACD line)
    
    Returns:
        DataFrame with columns: macd, signal, histogram
    """
    line = ema(close, fast) - ema(close, slow)
    signal_line = ema(line, signal)
    return pd.DataFrame({
        'macd': line,
        'signal': signal_line,
        'histogram': line - signal_line,
    }, index=close.index)


def stochastic(df: pd.DataFrame, k_period: int = 14, d_period: int = 3) -> pd.DataFrame:
    """Stochastic oscillator (%K and its SMA %D); a flat range yields 50."""
    lowest = df['low'].rolling(window=k_period, min_periods=k_period).min()
    highest = df['high'].rolling(window=k_period, min_periods=k_period).max()
    span = highest - lowest
    k = 100.0 * (df['close'] - lowest) / span.replace(0.0, np.nan)
    k = k.where(~((span == 0.0) & lowest.notna()), 50.0)
    return pd.DataFrame({'stoch_k': k, 'stoch_d': sma(k, d_period)}, index=df.index)


def momentum(close: pd.Series, period: int = 10) -> pd.Series:
    """Price change over `period` bars."""
    return close.astype(float) - close.astype(float).shift(period)


def roc(close: pd.Series, period: int = 10) -> pd.Series:
    """Rate of change in percent over `period` bars."""
    prev = close.astype(float).shift(period)
    return (close.astype(float) / prev.replace(0.0, np.nan) - 1.0) * 100.0


def cci(df: pd.DataFrame, period: int = 20) -> pd.Series:
    """Commodity Channel Index (constant 0.015); zero mean deviation yields 0."""
    typical = (df['high'] + df['low'] + df['close']).astype(float) / 3.0
    mean = typical.rolling(window=period, min_periods=period).mean()
    mean_dev = typical.rolling(window=period, min_periods=period).apply(
        lambda window: float(np.mean(np.abs(window - window.mean()))), raw=True
    )
    result = (typical - mean) / (0.015 * mean_dev.replace(0.0, np.nan))
    return result.where(~((mean_dev == 0.0) & mean.notna()), 0.0)
