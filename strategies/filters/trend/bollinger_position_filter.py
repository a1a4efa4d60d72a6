"""Bollinger position filter: avoid entries pinned to either band."""

from strategies.filters.base import FilterBase, FilterContext, FilterResult, config_value


class BollingerPositionFilter(FilterBase):
    """Requires lower < bb_position < upper (bb_position in 0..1)."""
    
    value_key = 'bb_position'
    
    def __init__(self, config):
        """
        Args:
            config: Filter configuration with:
                - enabled: bool
                - lower: float (default 0.1)
                - upper: float (default 0.9)
        """
        super().__init__(config)
        self.lower = float(config_value(config, 'lower', 0.1))
        self.upper = float(config_value(config, 'upper', 0.9))
    
    def check(self, context: FilterContext) -> FilterResult:
        if not self.enabled:
            return self._create_pass_result()
        
        position = self._read_value(context)
        if position is None:
            return self._missing_value_result()
        
        metadata = {'filter': 'bollinger_position', 'value': position}
        if not (self.lower < position < self.upper):
            return self._create_fail_result(
                reason=f"Bollinger position {position:.3f} outside ({self.lower}, {self.upper})",
                metadata=metadata
            )
        return self._create_pass_result(metadata=metadata)
