"""Indicator key parsing and dispatch.

Indicator keys name an indicator and its numeric parameters joined by
underscores, e.g. ``ema_9``, ``bb_upper_20_2`` or ``macd_hist_8_21_5``.
Unknown or malformed keys return an all-NaN series instead of raising so a
strategy asking for an unsupported indicator simply never triggers.
"""

from typing import Callable, Dict, List, Optional, Tuple
import logging
import re

import numpy as np
import pandas as pd

from indicators.moving_averages import ema, sma, wma
from indicators.oscillators import cci, macd, momentum, roc, rsi, stochastic
from indicators.trend import adx
from indicators.volatility import atr, bollinger_bands, bollinger_position, true_range
from indicators.volume import obv, volume_ratio, volume_sma, vwap

logger = logging.getLogger(__name__)

KEY_PATTERN = re.compile(r'^([a-z_]+?)(?:_(\d+(?:\.\d+)?(?:_\d+(?:\.\d+)?)*))?$')

Builder = Callable[[pd.DataFrame, List[float]], pd.Series]


def _int(value: float) -> int:
    if value != int(value) or value <= 0:
        raise ValueError(f"Expected a positive integer period, got {value}")
    return int(value)


def _bb(column: str) -> Builder:
    def build(df: pd.DataFrame, args: List[float]) -> pd.Series:
        period, std_dev = _int(args[0]), float(args[1])
        bands = bollinger_bands(df['close'], period, std_dev)
        if column == 'position':
            return bollinger_position(df['close'], bands['upper'], bands['lower'])
        return bands[column]
    return build


def _macd(column: str) -> Builder:
    def build(df: pd.DataFrame, args: List[float]) -> pd.Series:
        fast, slow, signal = (_int(a) for a in args)
        return macd(df['close'], fast, slow, signal)[column]
    return build


def _adx(column: str) -> Builder:
    def build(df: pd.DataFrame, args: List[float]) -> pd.Series:
        return adx(df, _int(args[0]))[column]
    return build


def _stoch(column: str) -> Builder:
    def build(df: pd.DataFrame, args: List[float]) -> pd.Series:
        return stochastic(df, _int(args[0]), _int(args[1]))[column]
    return build


# name -> (number of numeric parameters, builder)
INDICATOR_BUILDERS: Dict[str, Tuple[int, Builder]] = {
    'sma': (1, lambda df, a: sma(df['close'], _int(a[0]))),
    'ema': (1, lambda df, a: ema(df['close'], _int(a[0]))),
    'wma': (1, lambda df, a: wma(df['close'], _int(a[0]))),
    'rsi': (1, lambda df, a: rsi(df['close'], _int(a[0]))),
    'atr': (1, lambda df, a: atr(df, _int(a[0]))),
    'tr': (0, lambda df, a: true_range(df)),
    'adx': (1, _adx('adx')),
    'plus_di': (1, _adx('plus_di')),
    'minus_di': (1, _adx('minus_di')),
    'macd': (3, _macd('macd')),
    'macd_signal': (3, _macd('signal')),
    'macd_hist': (3, _macd('histogram')),
    'bb_upper': (2, _bb('upper')),
    'bb_middle': (2, _bb('middle')),
    'bb_lower': (2, _bb('lower')),
    'bb_position': (2, _bb('position')),
    'volume_sma': (1, lambda df, a: volume_sma(df['volume'], _int(a[0]))),
    'volume_ratio': (1, lambda df, a: volume_ratio(df['volume'], _int(a[0]))),
    'momentum': (1, lambda df, a: momentum(df['close'], _int(a[0]))),
    'roc': (1, lambda df, a: roc(df['close'], _int(a[0]))),
    'stoch_k': (2, _stoch('stoch_k')),
    'stoch_d': (2, _stoch('stoch_d')),
    'cci': (1, lambda df, a: cci(df, _int(a[0]))),
    'obv': (0, lambda df, a: obv(df)),
    'vwap': (0, lambda df, a: vwap(df)),
}


def parse_indicator_key(key: str) -> Optional[Tuple[str, List[float]]]:
    """
    Split an indicator key into its name and numeric parameters.
    
    Args:
        key: Indicator key (e.g. 'bb_upper_20_2')
    
    Returns:
        (name, params) or None if the key is malformed or unknown
    """
    match = KEY_PATTERN.match(key.strip().lower())
    if not match:
        return None
    name = match.group(1)
    params = [float(p) for p in match.group(2).split('_')] if match.group(2) else []
    spec = INDICATOR_BUILDERS.get(name)
    if spec is None or spec[0] != len(params):
        return None
    return name, params


def nan_series(index: pd.Index) -> pd.Series:
    """All-NaN float series on the given index."""
    return pd.Series(np.nan, index=index, dtype=float)


def is_known_indicator(key: str) -> bool:
    """Whether the key parses to a supported indicator."""
    return parse_indicator_key(key) is not None


def compute_indicator(key: str, candles: pd.DataFrame) -> pd.Series:
    """
    Compute an indicator over a full candle frame.
    
    Args:
        key: Indicator key
        candles: OHLCV DataFrame
    
    Returns:
        Float series aligned with candles (all NaN for unknown keys or
        invalid parameters)
    """
    parsed = parse_indicator_key(key)
    if parsed is None:
        return nan_series(candles.index)
    name, params = parsed
    try:
        result = INDICATOR_BUILDERS[name][1](candles, params)
    except ValueError as exc:
        logger.debug(f"Indicator {key} has invalid parameters: {exc}")
        return nan_series(candles.index)
    return result.astype(float).rename(key)


def indicator_key(name: str, *params: float) -> str:
    """
    Build an indicator key from a name and parameters.
    
    Whole-number parameters are written without a decimal point, so
    indicator_key('bb_upper', 20, 2.0) == 'bb_upper_20_2'.
    """
    parts = [name]
    for p in params:
        p = float(p)
        parts.append(str(int(p)) if p.is_integer() else repr(p))
    return '_'.join(parts)


# name -> candles needed before the first defined value, from the parameters
INDICATOR_WARMUPS: Dict[str, Callable[[List[int]], int]] = {
    'sma': lambda a: a[0],
    'ema': lambda a: a[0],
    'wma': lambda a: a[0],
    'rsi': lambda a: a[0] + 1,
    'atr': lambda a: a[0] + 1,
    'tr': lambda a: 2,
    'adx': lambda a: 2 * a[0],
    'plus_di': lambda a: a[0] + 1,
    'minus_di': lambda a: a[0] + 1,
    'macd': lambda a: a[1],
    'macd_signal': lambda a: a[1] + a[2] - 1,
    'macd_hist': lambda a: a[1] + a[2] - 1,
    'bb_upper': lambda a: a[0],
    'bb_middle': lambda a: a[0],
    'bb_lower': lambda a: a[0],
    'bb_position': lambda a: a[0],
    'volume_sma': lambda a: a[0],
    'volume_ratio': lambda a: a[0],
    'momentum': lambda a: a[0] + 1,
    'roc': lambda a: a[0] + 1,
    'stoch_k': lambda a: a[0],
    'stoch_d': lambda a: a[0] + a[1] - 1,
    'cci': lambda a: a[0],
    'obv': lambda a: 1,
    'vwap': lambda a: 1,
}


def indicator_warmup(key: str) -> int:
    """
    Number of candles an indicator needs before its first defined value.
    
    Unknown keys and invalid parameters return 0: they produce an all-NaN
    series whatever the history length.
    """
    parsed = parse_indicator_key(key)
    if parsed is None:
        return 0
    name, params = parsed
    if name.startswith('bb_'):
        params = params[:1]  # second parameter is the std multiplier
    try:
        periods = [_int(p) for p in params]
    except ValueError:
        return 0
    return INDICATOR_WARMUPS[name](periods)
