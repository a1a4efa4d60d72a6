"""Session window in a named time zone and the causal session range.

Candle timestamps are UTC (naive timestamps are treated as UTC). Session
bounds are wall-clock "HH:MM" times in the session's time zone, inclusive at
both ends, so daylight-saving shifts follow the tz database.
"""

from typing import Tuple
import pandas as pd
import pytz

from config.schema import parse_hhmm


class SessionWindow:
    """Daily wall-clock session, e.g. 00:00-03:59 America/New_York.
    
    Sessions may span midnight (e.g. 22:00-02:00); such a session belongs to
    the local date on which it starts.
    """
    
    def __init__(self, start: str = "00:00", end: str = "03:59", timezone: str = "America/New_York"):
        """
        Initialize session window.
        
        Args:
            start: Session start "HH:MM" (inclusive)
            end: Session end "HH:MM" (inclusive)
            timezone: tz database name
        """
        start_time = parse_hhmm(start)
        end_time = parse_hhmm(end)
        self.start = start
        self.end = end
        self.timezone = timezone
        self._tz = pytz.timezone(timezone)
        self._start_minutes = start_time.hour * 60 + start_time.minute
        self._end_minutes = end_time.hour * 60 + end_time.minute
    
    @property
    def wraps_midnight(self) -> bool:
        return self._start_minutes > self._end_minutes
    
    def _in_window(self, minutes):
        if self.wraps_midnight:
            return (minutes >= self._start_minutes) | (minutes <= self._end_minutes)
        return (minutes >= self._start_minutes) & (minutes <= self._end_minutes)
    
    def to_local(self, timestamp: pd.Timestamp) -> pd.Timestamp:
        """Convert a (UTC) timestamp to the session time zone."""
        ts = pd.Timestamp(timestamp)
        if ts.tzinfo is None:
            ts = ts.tz_localize('UTC')
        return ts.tz_convert(self._tz)
    
    def contains(self, timestamp: pd.Timestamp) -> bool:
        """Whether the timestamp falls inside the session (inclusive)."""
        local = self.to_local(timestamp)
        return bool(self._in_window(local.hour * 60 + local.minute))
    
    def _local_index(self, index: pd.DatetimeIndex) -> pd.DatetimeIndex:
        if index.tz is None:
            index = index.tz_localize('UTC')
        return index.tz_convert(self._tz)
    
    def session_mask(self, index: pd.DatetimeIndex) -> pd.Series:
        """Boolean Series marking in-session candles."""
        local = self._local_index(index)
        minutes = local.hour * 60 + local.minute
        return pd.Series(self._in_window(minutes), index=index)
    
    def session_days(self, index: pd.DatetimeIndex) -> pd.Series:
        """Local date each candle's session belongs to."""
        local = self._local_index(index)
        days = pd.Series(local.normalize().tz_localize(None), index=index)
        if self.wraps_midnight:
            minutes = pd.Series(local.hour * 60 + local.minute, index=index)
            days = days.where(minutes > self._end_minutes, days - pd.Timedelta(days=1))
        return days
    
    def session_range(self, candles: pd.DataFrame) -> Tuple[pd.Series, pd.Series]:
        """
        Running session high/low per candle.
        
        During the session the range accumulates the highs/lows of that
        session's candles so far (including the current candle). After the
        session ends the last range persists until the next session starts,
        which resets it. Before the first session the range is NaN. Each value
        only depends on candles at or before its index.
        
        Args:
            candles: OHLCV DataFrame indexed by UTC open time
        
        Returns:
            Tuple of (range_high, range_low) Series aligned with candles
        """
        mask = self.session_mask(candles.index)
        days = self.session_days(candles.index)
        range_high = candles['high'].where(mask.to_numpy()).groupby(days.to_numpy()).cummax().ffill()
        range_low = candles['low'].where(mask.to_numpy()).groupby(days.to_numpy()).cummin().ffill()
        return range_high.rename('session_high'), range_low.rename('session_low')
