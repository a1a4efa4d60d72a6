"""Data loader adapter for CSV and Parquet candle files."""

from pathlib import Path
from typing import Optional, Union
import logging

import pandas as pd

from engine.candles import OHLCV_COLUMNS, validate_candles
from engine.errors import CandleDataError

logger = logging.getLogger(__name__)

# Candidate timestamp column names, checked in order (after lowercasing).
TIMESTAMP_COLUMNS = [
    'timestamp', 'datetime', 'date', 'time',
    'open_time', 'opentime', 'open time', 'timestamp_ms', 'open_time_ms',
]

# Short and vendor-specific spellings of the OHLCV columns.
COLUMN_ALIASES = {
    'o': 'open',
    'h': 'high',
    'l': 'low',
    'c': 'close',
    'v': 'volume',
    'vol': 'volume',
    'tickvol': 'volume',
}

# Epoch values above this are milliseconds; 1e11 seconds is far in the future.
_EPOCH_MS_THRESHOLD = 1e11


def _normalize_column(name) -> str:
    clean = str(name).strip().strip('<>').lower()
    return COLUMN_ALIASES.get(clean, clean)


def parse_timestamps(values: pd.Series) -> pd.DatetimeIndex:
    """
    Parse a timestamp column into a DatetimeIndex.

    Numeric values are treated as epoch milliseconds when they exceed
    1e11, otherwise as epoch seconds. Anything else goes through
    pd.to_datetime.

    Args:
        values: Raw timestamp column

    Returns:
        DatetimeIndex (naive, UTC wall time for epoch input)

    Raises:
        CandleDataError: Values cannot be parsed as timestamps
    """
    try:
        if pd.api.types.is_numeric_dtype(values):
            numeric = values.astype(float)
            unit = 'ms' if numeric.abs().max() > _EPOCH_MS_THRESHOLD else 's'
            parsed = pd.to_datetime(numeric, unit=unit)
        else:
            parsed = pd.to_datetime(values)
    except (ValueError, TypeError, OverflowError) as e:
        raise CandleDataError(f"Cannot parse timestamps: {e}") from e
    return pd.DatetimeIndex(parsed)


class CandleCSVLoader:
    """Loads OHLCV candles from CSV or Parquet files."""

    def __init__(self, timestamp_column: Optional[str] = None):
        """
        Initialize loader.

        Args:
            timestamp_column: Explicit timestamp column (default: auto-detect)
        """
        self.timestamp_column = timestamp_column

    def _read(self, file_path: Path, **kwargs) -> pd.DataFrame:
        if file_path.suffix.lower() == '.parquet':
            return pd.read_parquet(file_path, **kwargs)

        if 'sep' not in kwargs and 'delimiter' not in kwargs:
            with open(file_path, 'r', encoding='utf-8') as f:
                first_line = f.readline()
            if '\t' in first_line:
                kwargs['sep'] = '\t'
            elif ';' in first_line:
                kwargs['sep'] = ';'
        return pd.read_csv(file_path, **kwargs)

    def _find_timestamp_column(self, df: pd.DataFrame) -> Optional[str]:
        if self.timestamp_column is not None:
            wanted = _normalize_column(self.timestamp_column)
            return wanted if wanted in df.columns else None
        for col in TIMESTAMP_COLUMNS:
            if col in df.columns:
                return col
        return None

    def load(self, file_path: Union[str, Path], **kwargs) -> pd.DataFrame:
        """
        Load candles from a CSV or Parquet file.

        Expected format:
        - a timestamp column (ISO strings or epoch ms/s), or a datetime index
        - open, high, low, close, volume columns (case-insensitive)

        Args:
            file_path: Path to CSV or Parquet file
            **kwargs: Additional arguments passed to the pandas read function

        Returns:
            Validated DataFrame with datetime index and OHLCV columns

        Raises:
            FileNotFoundError: File does not exist
            CandleDataError: Timestamps or OHLCV columns are missing or invalid
        """
        file_path = Path(file_path)
        if not file_path.exists():
            raise FileNotFoundError(f"Candle file not found: {file_path}")

        df = self._read(file_path, **kwargs)
        df.columns = [_normalize_column(c) for c in df.columns]
        logger.debug(f"Loaded {file_path.name}: shape={df.shape}, columns={df.columns.tolist()}")

        if not isinstance(df.index, pd.DatetimeIndex):
            timestamp_col = self._find_timestamp_column(df)
            if timestamp_col is None:
                raise CandleDataError(
                    f"No timestamp column found in {file_path.name}; columns: {df.columns.tolist()}"
                )
            df.index = parse_timestamps(df[timestamp_col])
            df = df.drop(columns=[timestamp_col])
        df.index.name = 'timestamp'

        missing = [c for c in OHLCV_COLUMNS if c not in df.columns]
        if missing:
            raise CandleDataError(f"Missing OHLCV columns in {file_path.name}: {missing}")

        df = df[OHLCV_COLUMNS].sort_index()
        if df.index.has_duplicates:
            dropped = int(df.index.duplicated().sum())
            logger.warning(f"Dropping {dropped} duplicate timestamps from {file_path.name}")
            df = df[~df.index.duplicated(keep='first')]

        return validate_candles(df)
