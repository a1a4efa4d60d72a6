"""Candle representation and validation.

The engine works on a pandas DataFrame indexed by candle open time with
``open, high, low, close, volume`` columns. ``Candle`` is the record form
used by callers that build candles one at a time.
"""

from dataclasses import dataclass
from typing import Iterable, Optional
import pandas as pd

from engine.errors import CandleDataError


OHLCV_COLUMNS = ['open', 'high', 'low', 'close', 'volume']


@dataclass(frozen=True)
class Candle:
    """Immutable OHLCV bar.
    
    Attributes:
        open_time: Bar open timestamp
        open: Open price
        high: High price
        low: Low price
        close: Close price
        volume: Traded volume
        close_time: Bar close timestamp (optional)
    """
    open_time: pd.Timestamp
    open: float
    high: float
    low: float
    close: float
    volume: float
    close_time: Optional[pd.Timestamp] = None


def candles_to_frame(candles: Iterable[Candle]) -> pd.DataFrame:
    """Convert Candle records into a validated OHLCV DataFrame."""
    rows = list(candles)
    if not rows:
        raise CandleDataError("No candles provided")
    df = pd.DataFrame(
        [[c.open, c.high, c.low, c.close, c.volume] for c in rows],
        columns=OHLCV_COLUMNS,
        index=pd.DatetimeIndex([pd.Timestamp(c.open_time) for c in rows], name='timestamp'),
    )
    return validate_candles(df)


def validate_candles(df: pd.DataFrame) -> pd.DataFrame:
    """
    Validate candle input and return a private float copy.
    
    Args:
        df: DataFrame with datetime index and OHLCV columns
    
    Returns:
        Copy of the OHLCV columns as floats
    
    Raises:
        CandleDataError: if the frame is empty, misses columns, has a
            non-datetime index, unordered or repeated timestamps or non-finite prices
    """
    if df is None or len(df) == 0:
        raise CandleDataError("Candle data is empty")

    missing = [col for col in OHLCV_COLUMNS if col not in df.columns]
    if missing:
        raise CandleDataError(f"Candle data missing required columns: {missing}")

    if not isinstance(df.index, pd.DatetimeIndex):
        raise CandleDataError("Candle index must be a DatetimeIndex")

    if not (df.index.is_monotonic_increasing and df.index.is_unique):
        raise CandleDataError("Candle timestamps must be strictly increasing")

    try:
        frame = df[OHLCV_COLUMNS].astype(float).copy()
    except (TypeError, ValueError) as exc:
        raise CandleDataError(f"Candle values must be numeric: {exc}") from exc

    prices = frame[['open', 'high', 'low', 'close']]
    if prices.isna().any().any():
        raise CandleDataError("Candle prices contain NaN values")
    if (prices <= 0).any().any():
        raise CandleDataError("Candle prices must be positive")

    frame['volume'] = frame['volume'].fillna(0.0)
    return frame
