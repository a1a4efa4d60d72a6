"""Multi-timeframe momentum strategy.

Builds two higher timeframes from the base candles by count (default 5x and
15x) and enters when RSI and MACD histogram agree across timeframes:

- Long: at least `min_agreement` of (rsi1 > threshold, rsi5 > 50, rsi15 > 50)
  and of (hist1 > 0, hist5 > 0, hist15 > 0), plus volume confirmation.
- Short: mirrored with 100 - threshold, < 50 and < 0.

Higher-timeframe values only come from chunks completed before the entry
candle. Exits are left to stop, target and expiry.
"""

from typing import List, Optional, Tuple
import logging
import math

from config.schema import MTFMomentumParams
from indicators.registry import indicator_key, indicator_warmup
from strategies.base import EvaluationContext, Signal, SignalType, StrategyBase
from strategies.filters import VolumeRatioFilter

logger = logging.getLogger(__name__)


def confluence_confidence(
    rsi_checks: Tuple[bool, bool, bool],
    macd_checks: Tuple[bool, bool, bool],
    volume_ratio: float,
    volume_multiplier: float,
) -> float:
    """
    Confidence from timeframe confluence.
    
    Each score weights the base timeframe 1.0 and each higher timeframe 0.5,
    divided by 2. Confidence = rsi*0.4 + macd*0.4 + min(vol/mult, 1)*0.2.
    
    Args:
        rsi_checks: RSI condition per timeframe (base, mid, high)
        macd_checks: MACD histogram condition per timeframe
        volume_ratio: Current volume ratio
        volume_multiplier: Required volume multiple
    
    Returns:
        Confidence capped at 1.0
    """
    def score(checks):
        return ((1.0 if checks[0] else 0.0) + (0.5 if checks[1] else 0.0) + (0.5 if checks[2] else 0.0)) / 2.0
    
    if volume_multiplier > 0 and not math.isnan(volume_ratio):
        volume_score = min(volume_ratio / volume_multiplier, 1.0)
    else:
        volume_score = 1.0 if volume_multiplier <= 0 else 0.0
    confidence = score(rsi_checks) * 0.4 + score(macd_checks) * 0.4 + volume_score * 0.2
    return min(confidence, 1.0)


class MTFMomentumStrategy(StrategyBase):
    """RSI / MACD confluence across base, mid and high timeframes."""
    
    def __init__(self, params: MTFMomentumParams, name: Optional[str] = None):
        p = params
        self.rsi_key = indicator_key('rsi', p.rsi_period)
        self.hist_key = indicator_key('macd_hist', p.macd_fast, p.macd_slow, p.macd_signal)
        self.volume_key = indicator_key('volume_ratio', p.volume_lookback)
        self.atr_key = indicator_key('atr', p.atr_period)
        super().__init__(params, name=name)
    
    def build_filters(self) -> list:
        return [VolumeRatioFilter({'multiplier': self.params.volume_multiplier})]
    
    def required_indicators(self) -> List[str]:
        return [self.rsi_key, self.hist_key, self.volume_key, self.atr_key]
    
    def min_candles(self) -> int:
        p = self.params
        return p.min_candles_per_timeframe * max(p.timeframe_factors)
    
    def required_history(self) -> int:
        """Base history for the highest timeframe to warm up RSI and the MACD histogram."""
        p = self.params
        per_timeframe = max(
            p.min_candles_per_timeframe,
            indicator_warmup(self.rsi_key),
            indicator_warmup(self.hist_key),
        )
        return max(per_timeframe * max(p.timeframe_factors), super().required_history())
    
    def prepare(self, cache) -> None:
        for factor in self.params.timeframe_factors:
            cache.timeframe(factor).precompute([self.rsi_key, self.hist_key])
    
    def evaluate(self, ctx: EvaluationContext, position=None) -> Signal:
        if position is not None:
            return Signal.none("Position open - exits managed by stop, target and expiry")
        
        p = self.params
        views = [ctx.view] + [ctx.view.timeframe(f) for f in p.timeframe_factors]
        if any(len(v) < p.min_candles_per_timeframe for v in views):
            return Signal.none("Insufficient candles for MTF evaluation")
        
        rsis = [v.value(self.rsi_key) for v in views]
        hists = [v.value(self.hist_key) for v in views]
        if any(math.isnan(x) for x in rsis + hists):
            return Signal.none("MTF indicators not ready")
        
        long_rsi = (rsis[0] > p.rsi_entry_threshold, rsis[1] > 50, rsis[2] > 50)
        long_macd = (hists[0] > 0, hists[1] > 0, hists[2] > 0)
        short_rsi = (rsis[0] < 100 - p.rsi_entry_threshold, rsis[1] < 50, rsis[2] < 50)
        short_macd = (hists[0] < 0, hists[1] < 0, hists[2] < 0)
        
        if sum(long_rsi) >= p.min_agreement and sum(long_macd) >= p.min_agreement:
            direction, rsi_checks, macd_checks = 1, long_rsi, long_macd
        elif sum(short_rsi) >= p.min_agreement and sum(short_macd) >= p.min_agreement:
            direction, rsi_checks, macd_checks = -1, short_rsi, short_macd
        else:
            return Signal.none(
                f"No MTF convergence (RSI {sum(long_rsi)}/3 long, {sum(short_rsi)}/3 short; "
                f"MACD {sum(long_macd)}/3 long, {sum(short_macd)}/3 short)"
            )
        
        volume_ratio = ctx.view.value(self.volume_key)
        atr_value = ctx.view.value(self.atr_key)
        values = {
            'rsi': rsis[0], 'rsi_mid': rsis[1], 'rsi_high': rsis[2],
            'macd_hist': hists[0], 'macd_hist_mid': hists[1], 'macd_hist_high': hists[2],
            'volume_ratio': volume_ratio,
            'atr': atr_value,
        }
        result = self.apply_filters(ctx, direction, values)
        if not result.passed:
            return Signal.none(f"MTF signal rejected: {result.reason}", **values)
        
        if math.isnan(atr_value) or atr_value <= 0:
            return Signal.none("ATR not available for stop placement", **values)
        
        reference = ctx.view.price('close')
        if direction > 0:
            stop_loss = reference - p.atr_sl_multiplier * atr_value
            take_profit = reference + p.atr_tp_multiplier * atr_value
        else:
            stop_loss = reference + p.atr_sl_multiplier * atr_value
            take_profit = reference - p.atr_tp_multiplier * atr_value
        
        confidence = confluence_confidence(rsi_checks, macd_checks, volume_ratio, p.volume_multiplier)
        side = "BUY" if direction > 0 else "SELL"
        metadata = dict(values)
        metadata.update(result.metadata)
        return Signal(
            SignalType.BUY if direction > 0 else SignalType.SELL,
            stop_loss=stop_loss,
            take_profit=take_profit,
            reference_price=reference,
            time_to_expire=p.max_position_time,
            confidence=confidence,
            reason=f"MTF {side}: RSI({rsis[0]:.1f}/{rsis[1]:.1f}/{rsis[2]:.1f}), "
                   f"MACD hist {sum(macd_checks)}/3, volume {volume_ratio:.2f}x",
            metadata=metadata,
        )
