"""Session-range reentry strategy.

Tracks the high/low of a daily session (default 00:00-03:59 New York time)
and trades a close back inside the range after a close outside it:

- Long when close[i-2] < range low <= close[i-1]
- Short when close[i-2] > range high >= close[i-1]

Confirmed by ADX, an RSI range, a momentum score, Bollinger position,
volume versus the previous bars and the side of a trend EMA. Stop and target
are fixed percentages from the last close.
"""

from typing import List, Optional
import logging
import math

from config.schema import SessionReentryParams
from indicators.registry import indicator_key
from indicators.volume import volume_ratio
from strategies.base import EvaluationContext, Signal, SignalType, StrategyBase
from strategies.filters import (
    ADXFilter,
    BollingerPositionFilter,
    MomentumScoreFilter,
    RSIRangeFilter,
    SessionWindow,
    TrendDirectionFilter,
    VolumeRatioFilter,
)
from strategies.filters.momentum import momentum_score

logger = logging.getLogger(__name__)

SESSION_HIGH_KEY = 'session_high'
SESSION_LOW_KEY = 'session_low'


def session_strength(close: float, range_high: float, range_low: float) -> float:
    """Position of the close inside the session range, clipped to 0..1."""
    span = range_high - range_low
    if span <= 0:
        return 0.0
    return max(0.0, min(1.0, (close - range_low) / span))


def reentry_confidence(
    rsi_value: float,
    adx_value: float,
    momentum: float,
    bb_position: float,
    volume_confirmed: bool,
    strength: float,
) -> float:
    """
    Point score (0-100) from indicator quality.
    
    RSI up to 20, ADX up to 25, momentum up to 20, Bollinger position up to
    15, volume 10 and session strength up to 10 points.
    """
    points = 0.0
    
    if 40 < rsi_value < 60:
        points += 20
    elif 30 < rsi_value < 70:
        points += 15
    elif 20 < rsi_value < 80:
        points += 10
    else:
        points += 5
    
    if adx_value > 25:
        points += 25
    elif adx_value > 20:
        points += 20
    elif adx_value > 15:
        points += 15
    else:
        points += 5
    
    if abs(momentum) > 15:
        points += 20
    elif abs(momentum) > 10:
        points += 15
    elif abs(momentum) > 5:
        points += 10
    else:
        points += 5
    
    if 0.2 < bb_position < 0.8:
        points += 15
    elif 0.1 < bb_position < 0.9:
        points += 10
    else:
        points += 5
    
    if volume_confirmed:
        points += 10
    
    if strength > 0.7:
        points += 10
    elif strength > 0.5:
        points += 5
    
    return min(100.0, max(0.0, points))


class SessionReentryStrategy(StrategyBase):
    """Reentry into the session range after a false breakout."""
    
    def __init__(self, params: SessionReentryParams, name: Optional[str] = None):
        p = params
        self.window = SessionWindow(p.session_start, p.session_end, p.timezone)
        self.adx_key = indicator_key('adx', p.adx_period)
        self.rsi_key = indicator_key('rsi', p.rsi_period)
        self.bb_key = indicator_key('bb_position', p.bollinger_period, p.bollinger_std)
        self.ema_key = indicator_key('ema', p.trend_ema_period)
        self.volume_key = f"volume_ratio_prev_{p.volume_lookback}"
        super().__init__(params, name=name)
    
    def build_filters(self) -> list:
        p = self.params
        return [
            ADXFilter({'min_adx': p.adx_threshold}),
            RSIRangeFilter({'lower': p.rsi_lower, 'upper': p.rsi_upper}),
            MomentumScoreFilter({'min_momentum': p.min_momentum}),
            BollingerPositionFilter({'lower': p.bb_position_lower, 'upper': p.bb_position_upper}),
            VolumeRatioFilter({'multiplier': p.volume_multiplier}),
            TrendDirectionFilter({}),
        ]
    
    def required_indicators(self) -> List[str]:
        return [self.adx_key, self.rsi_key, self.bb_key, self.ema_key]
    
    def min_candles(self) -> int:
        # The session volume ratio averages the bars before the current one
        return max(self.params.min_candles, self.indicator_warmup(), self.params.volume_lookback + 1)
    
    def prepare(self, cache) -> None:
        """Register the running session range and the previous-bars volume ratio."""
        candles = cache.candles
        range_high, range_low = self.window.session_range(candles)
        cache.register(SESSION_HIGH_KEY, range_high)
        cache.register(SESSION_LOW_KEY, range_low)
        cache.register(
            self.volume_key,
            volume_ratio(candles['volume'], self.params.volume_lookback, include_current=False),
        )
    
    def evaluate(self, ctx: EvaluationContext, position=None) -> Signal:
        view = ctx.view
        if len(view) < self.min_candles():
            return Signal.none("Insufficient candle data")
        if position is not None:
            return Signal.none("Position open - exits managed by stop, target and expiry")
        
        range_high = view.value(SESSION_HIGH_KEY)
        range_low = view.value(SESSION_LOW_KEY)
        if math.isnan(range_high) or math.isnan(range_low):
            return Signal.none("Waiting for session range")
        
        prev_close = view.price('close', 2)
        close = view.price('close', 1)
        
        if prev_close < range_low <= close:
            direction = 1
        elif prev_close > range_high >= close:
            direction = -1
        else:
            return Signal.none("No reentry into session range",
                               range_high=range_high, range_low=range_low)
        
        p = self.params
        rsi_value = view.value(self.rsi_key)
        adx_value = view.value(self.adx_key)
        bb_position = view.value(self.bb_key)
        trend_ema = view.value(self.ema_key)
        volume = view.value(self.volume_key)
        momentum = momentum_score(prev_close, close, rsi_value) if not math.isnan(rsi_value) else math.nan
        
        values = {
            'close': close,
            'range_high': range_high,
            'range_low': range_low,
            'rsi': rsi_value,
            'adx': adx_value,
            'bb_position': bb_position,
            'momentum_score': momentum,
            'volume_ratio': volume,
            'trend_ema': trend_ema,
        }
        result = self.apply_filters(ctx, direction, values)
        if not result.passed:
            side = "LONG" if direction > 0 else "SHORT"
            return Signal.none(f"{side} reentry rejected: {result.reason}", **values)
        
        if direction > 0:
            stop_loss = close * (1 - p.stop_loss_pct / 100.0)
            take_profit = close * (1 + p.take_profit_pct / 100.0)
        else:
            stop_loss = close * (1 + p.stop_loss_pct / 100.0)
            take_profit = close * (1 - p.take_profit_pct / 100.0)
        
        volume_confirmed = not math.isnan(volume) and volume >= p.volume_multiplier
        strength = session_strength(close, range_high, range_low)
        points = reentry_confidence(
            rsi_value if not math.isnan(rsi_value) else 50.0,
            adx_value if not math.isnan(adx_value) else 0.0,
            momentum if not math.isnan(momentum) else 0.0,
            bb_position if not math.isnan(bb_position) else 0.5,
            volume_confirmed,
            strength,
        )
        
        metadata = dict(values)
        metadata['session_strength'] = strength
        metadata.update(result.metadata)
        edge = "low" if direction > 0 else "high"
        level = range_low if direction > 0 else range_high
        return Signal(
            SignalType.BUY if direction > 0 else SignalType.SELL,
            stop_loss=stop_loss,
            take_profit=take_profit,
            reference_price=close,
            time_to_expire=p.time_to_expire,
            confidence=points / 100.0,
            reason=f"{'LONG' if direction > 0 else 'SHORT'} reentry: close {prev_close} -> {close} "
                   f"back inside session {edge} {level}",
            metadata=metadata,
        )
