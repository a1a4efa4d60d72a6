"""Trend direction filter: trade only on the side of a trend EMA."""

from strategies.filters.base import FilterBase, FilterContext, FilterResult


class TrendDirectionFilter(FilterBase):
    """Long only when close > trend EMA, short only when close < trend EMA.
    
    Reads 'close' and 'trend_ema' from the signal data.
    """
    
    value_key = 'trend_ema'
    
    def check(self, context: FilterContext) -> FilterResult:
        if not self.enabled:
            return self._create_pass_result()
        
        trend_ema = self._read_value(context)
        close = self._read_value(context, 'close')
        if trend_ema is None or close is None:
            return self._missing_value_result()
        
        metadata = {'filter': 'trend_direction', 'close': close, 'trend_ema': trend_ema}
        if context.signal_direction > 0 and not close > trend_ema:
            return self._create_fail_result(
                reason=f"Close {close} not above trend EMA {trend_ema:.4f}",
                metadata=metadata
            )
        if context.signal_direction < 0 and not close < trend_ema:
            return self._create_fail_result(
                reason=f"Close {close} not below trend EMA {trend_ema:.4f}",
                metadata=metadata
            )
        return self._create_pass_result(metadata=metadata)
