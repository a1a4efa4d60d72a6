"""Per-run indicator cache and the look-ahead-safe view strategies read from.

The cache computes each indicator once over the full candle frame. Strategies
never see the cache directly: at step i they receive an ``IndicatorView``
whose reads are truncated to indices < i, so values at or after the current
candle are unreachable.

Key principles:
- A cache belongs to exactly one backtest run; nothing is shared globally.
- Indicators are causal (value at j depends only on candles <= j), so
  computing over the full frame and truncating reads is equivalent to
  recomputing on candles[:i].
- Higher timeframes are child caches over count-resampled candles; a view
  only exposes chunks that are complete before the current candle.
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, Iterable, Optional
import logging
import math

import numpy as np
import pandas as pd

from engine.resampler import resample_by_count
from indicators.registry import compute_indicator, is_known_indicator, nan_series

logger = logging.getLogger(__name__)


class IndicatorCache:
    """Run-owned store of full-length indicator series."""
    
    def __init__(
        self,
        candles: pd.DataFrame,
        parallel: bool = True,
        max_workers: Optional[int] = None,
    ):
        """
        Initialize indicator cache.
        
        Args:
            candles: Validated OHLCV DataFrame (treated as read-only)
            parallel: Compute distinct indicator keys concurrently
            max_workers: Thread pool size (None = executor default)
        """
        self._candles = candles
        self.parallel = parallel
        self.max_workers = max_workers
        self._series: Dict[str, pd.Series] = {}
        self._children: Dict[int, 'IndicatorCache'] = {}
        self._warned_keys: set = set()
    
    @property
    def candles(self) -> pd.DataFrame:
        return self._candles
    
    def __len__(self) -> int:
        return len(self._candles)
    
    def __contains__(self, key: str) -> bool:
        return key in self._series
    
    def _unknown(self, key: str) -> pd.Series:
        if key not in self._warned_keys:
            self._warned_keys.add(key)
            logger.warning(f"Unknown indicator key '{key}', using NaN series")
        return nan_series(self._candles.index)
    
    def _compute(self, key: str) -> pd.Series:
        if not is_known_indicator(key):
            return self._unknown(key)
        return compute_indicator(key, self._candles)
    
    def precompute(self, keys: Iterable[str]) -> None:
        """
        Compute all missing keys over the full frame.
        
        Distinct keys are independent, so they may be computed in a thread
        pool. Workers only run the pure indicator functions; results and
        unknown-key warnings are recorded from the calling thread.
        
        Args:
            keys: Indicator keys to compute
        """
        pending = [k for k in dict.fromkeys(keys) if k not in self._series]
        if not pending:
            return
        
        known = []
        for key in pending:
            if is_known_indicator(key):
                known.append(key)
            else:
                self._series[key] = self._unknown(key)
        
        if not self.parallel or len(known) <= 1:
            for key in known:
                self._series[key] = compute_indicator(key, self._candles)
            return
        
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {executor.submit(compute_indicator, key, self._candles): key for key in known}
            for future in as_completed(futures):
                self._series[futures[future]] = future.result()
        logger.debug(f"Precomputed {len(known)} indicators over {len(self._candles)} candles")
    
    def get(self, key: str) -> pd.Series:
        """Full-length series for a key, computed on first use."""
        series = self._series.get(key)
        if series is None:
            series = self._compute(key)
            self._series[key] = series
        return series
    
    def register(self, key: str, series: pd.Series) -> None:
        """
        Register a derived series (e.g. a session range).
        
        The series must be causal and aligned with the candle index.
        
        Raises:
            ValueError: if the series length does not match the candles
        """
        if len(series) != len(self._candles):
            raise ValueError(
                f"Derived series '{key}' has {len(series)} values, expected {len(self._candles)}"
            )
        self._series[key] = pd.Series(
            np.asarray(series, dtype=float), index=self._candles.index, name=key
        )
    
    def timeframe(self, factor: int) -> 'IndicatorCache':
        """Child cache over candles aggregated in chunks of `factor`."""
        if factor == 1:
            return self
        child = self._children.get(factor)
        if child is None:
            child = IndicatorCache(
                resample_by_count(self._candles, factor),
                parallel=self.parallel,
                max_workers=self.max_workers,
            )
            self._children[factor] = child
        return child


class IndicatorView:
    """Read-only window over an IndicatorCache ending before index `end`.
    
    Offsets count back from the end of the window: offset 1 is the last
    visible value (index end - 1), offset 2 the one before it.
    """
    
    def __init__(self, cache: IndicatorCache, end: int):
        self._cache = cache
        self._end = max(0, min(end, len(cache)))
    
    @property
    def end(self) -> int:
        return self._end
    
    def __len__(self) -> int:
        return self._end
    
    def _position(self, offset: int) -> Optional[int]:
        if offset < 1:
            raise ValueError(f"Offset must be >= 1, got {offset}")
        pos = self._end - offset
        return pos if pos >= 0 else None
    
    def value(self, key: str, offset: int = 1) -> float:
        """Indicator value `offset` bars before the window end (NaN if unavailable)."""
        pos = self._position(offset)
        if pos is None:
            return math.nan
        return float(self._cache.get(key).iat[pos])
    
    def series(self, key: str) -> pd.Series:
        """Indicator series truncated to the visible window."""
        return self._cache.get(key).iloc[:self._end]
    
    def price(self, column: str = 'close', offset: int = 1) -> float:
        """Candle field `offset` bars before the window end."""
        pos = self._position(offset)
        if pos is None:
            return math.nan
        return float(self._cache.candles[column].iat[pos])
    
    def timestamp(self, offset: int = 1) -> Optional[pd.Timestamp]:
        pos = self._position(offset)
        if pos is None:
            return None
        return self._cache.candles.index[pos]
    
    @property
    def candles(self) -> pd.DataFrame:
        """Visible candles (all strictly before the window end)."""
        return self._cache.candles.iloc[:self._end]
    
    def timeframe(self, factor: int) -> 'IndicatorView':
        """View over the higher timeframe showing only chunks completed before the window end."""
        if factor == 1:
            return self
        return IndicatorView(self._cache.timeframe(factor), self._end // factor)
