"""Momentum score filter."""

from strategies.filters.base import FilterBase, FilterContext, FilterResult, config_value


def momentum_score(prev_close: float, close: float, rsi_value: float) -> float:
    """Blend of the last percent price change and RSI side, clamped to +/-100.
    
    score = pct_change * 0.7 + (1 if rsi > 50 else -1) * 0.3
    """
    price_change = (close - prev_close) / prev_close * 100.0
    rsi_side = 1.0 if rsi_value > 50 else -1.0
    score = price_change * 0.7 + rsi_side * 0.3
    return max(-100.0, min(100.0, score))


class MomentumScoreFilter(FilterBase):
    """Requires |momentum_score| >= min_momentum."""
    
    value_key = 'momentum_score'
    
    def __init__(self, config):
        """
        Args:
            config: Filter configuration with:
                - enabled: bool
                - min_momentum: float (default 10.0)
        """
        super().__init__(config)
        self.min_momentum = float(config_value(config, 'min_momentum', 10.0))
    
    def check(self, context: FilterContext) -> FilterResult:
        if not self.enabled:
            return self._create_pass_result()
        
        score = self._read_value(context)
        if score is None:
            return self._missing_value_result()
        
        metadata = {'filter': 'momentum_score', 'value': score, 'threshold': self.min_momentum}
        if abs(score) < self.min_momentum:
            return self._create_fail_result(
                reason=f"Momentum score {score:.2f} weaker than {self.min_momentum}",
                metadata=metadata
            )
        return self._create_pass_result(metadata=metadata)
