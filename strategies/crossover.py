"""Moving-average crossover strategy with RSI, volume, ADX and trend-strength confirmation.

Entry:
- Long when the fast MA crosses above the slow MA between the last two
  closed candles; short on the opposite cross.
- Confirmation filters (strict or advisory):
  RSI band, volume ratio, ADX threshold, composite trend strength.
- Stop / target are ATR multiples from the last close.

Exit:
- The opposite cross against the open side.
"""

from typing import List, Optional
import logging
import math

from config.schema import CrossoverParams
from indicators.registry import indicator_key
from indicators.trend import trend_strength
from strategies.base import EvaluationContext, Signal, SignalType, StrategyBase
from strategies.filters import ADXFilter, RSIBandFilter, TrendStrengthFilter, VolumeRatioFilter

logger = logging.getLogger(__name__)


class CrossoverStrategy(StrategyBase):
    """Fast/slow SMA or EMA crossover."""
    
    def __init__(self, params: CrossoverParams, name: Optional[str] = None):
        p = params
        self.fast_key = indicator_key(p.ma_type, p.fast_period)
        self.slow_key = indicator_key(p.ma_type, p.slow_period)
        self.rsi_key = indicator_key('rsi', p.rsi_period)
        self.atr_key = indicator_key('atr', p.atr_period)
        self.adx_key = indicator_key('adx', p.adx_period)
        self.bb_key = indicator_key('bb_position', p.bollinger_period, p.bollinger_std)
        self.volume_key = indicator_key('volume_ratio', p.volume_lookback)
        super().__init__(params, name=name)
    
    def build_filters(self) -> list:
        p = self.params
        return [
            RSIBandFilter({'overbought': p.rsi_overbought, 'oversold': p.rsi_oversold}),
            VolumeRatioFilter({'multiplier': p.volume_multiplier}),
            ADXFilter({'min_adx': p.adx_threshold}),
            TrendStrengthFilter({'min_strength': p.min_trend_strength}),
        ]
    
    def required_indicators(self) -> List[str]:
        return [
            self.fast_key, self.slow_key, self.rsi_key, self.atr_key,
            self.adx_key, self.bb_key, self.volume_key,
        ]
    
    def min_candles(self) -> int:
        p = self.params
        # The crossover compares the last two values of every indicator
        return max(max(p.slow_period, p.rsi_period, p.bollinger_period) + 20, self.indicator_warmup() + 1)
    
    def evaluate(self, ctx: EvaluationContext, position=None) -> Signal:
        view = ctx.view
        if len(view) < self.min_candles():
            return Signal.none("Insufficient candle data")
        
        fast_now, fast_prev = view.value(self.fast_key, 1), view.value(self.fast_key, 2)
        slow_now, slow_prev = view.value(self.slow_key, 1), view.value(self.slow_key, 2)
        if any(math.isnan(v) for v in (fast_now, fast_prev, slow_now, slow_prev)):
            return Signal.none("Moving averages not ready")
        
        bullish_cross = fast_prev <= slow_prev and fast_now > slow_now
        bearish_cross = fast_prev >= slow_prev and fast_now < slow_now
        
        if position is not None:
            if position.direction == 'long' and bearish_cross:
                return Signal(SignalType.SELL, reason="Exit LONG: fast MA crossed below slow MA")
            if position.direction == 'short' and bullish_cross:
                return Signal(SignalType.BUY, reason="Exit SHORT: fast MA crossed above slow MA")
            return Signal.none("Holding position - no opposite crossover")
        
        if not bullish_cross and not bearish_cross:
            return Signal.none("No crossover")
        
        direction = 1 if bullish_cross else -1
        p = self.params
        rsi_value = view.value(self.rsi_key)
        adx_value = view.value(self.adx_key)
        bb_position = view.value(self.bb_key)
        volume_ratio = view.value(self.volume_key)
        atr_value = view.value(self.atr_key)
        strength = trend_strength(fast_now, slow_now, adx_value, rsi_value, bb_position, direction)
        
        values = {
            'fast_ma': fast_now,
            'slow_ma': slow_now,
            'rsi': rsi_value,
            'adx': adx_value,
            'bb_position': bb_position,
            'volume_ratio': volume_ratio,
            'atr': atr_value,
            'trend_strength': strength,
        }
        result = self.apply_filters(ctx, direction, values)
        if not result.passed:
            return Signal.none(f"Crossover rejected: {result.reason}", **values)
        
        if math.isnan(atr_value) or atr_value <= 0:
            return Signal.none("ATR not available for stop placement", **values)
        
        reference = view.price('close')
        if direction > 0:
            stop_loss = reference - p.atr_sl_multiplier * atr_value
            take_profit = reference + p.atr_tp_multiplier * atr_value
        else:
            stop_loss = reference + p.atr_sl_multiplier * atr_value
            take_profit = reference - p.atr_tp_multiplier * atr_value
        
        adx_ok = not math.isnan(adx_value) and adx_value >= p.adx_threshold
        volume_ok = not math.isnan(volume_ratio) and volume_ratio >= p.volume_multiplier
        confidence = (strength + (0.2 if adx_ok else 0.0) + (0.1 if volume_ok else 0.0)) / 1.3
        
        cross = "Golden Cross" if direction > 0 else "Death Cross"
        metadata = dict(values)
        metadata.update(result.metadata)
        return Signal(
            SignalType.BUY if direction > 0 else SignalType.SELL,
            stop_loss=stop_loss,
            take_profit=take_profit,
            reference_price=reference,
            time_to_expire=p.max_position_time,
            confidence=confidence,
            reason=f"{cross}: {self.fast_key} vs {self.slow_key}, RSI {rsi_value:.2f}, "
                   f"ADX {adx_value:.2f}, trend strength {strength:.2f}",
            metadata=metadata,
        )
