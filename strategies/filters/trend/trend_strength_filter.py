"""Trend strength filter (composite score from indicators.trend.trend_strength)."""

from strategies.filters.base import FilterBase, FilterContext, FilterResult, config_value


class TrendStrengthFilter(FilterBase):
    """Requires trend_strength >= min_strength."""
    
    value_key = 'trend_strength'
    
    def __init__(self, config):
        super().__init__(config)
        self.min_strength = float(config_value(config, 'min_strength', 0.4))
    
    def check(self, context: FilterContext) -> FilterResult:
        if not self.enabled:
            return self._create_pass_result()
        
        strength = self._read_value(context)
        if strength is None:
            return self._missing_value_result()
        
        metadata = {'filter': 'trend_strength', 'value': strength, 'threshold': self.min_strength}
        if strength < self.min_strength:
            return self._create_fail_result(
                reason=f"Trend strength {strength:.2f} below {self.min_strength}",
                metadata=metadata
            )
        return self._create_pass_result(metadata=metadata)
