"""Volume ratio filter.

Confirms a signal when volume is at least a multiple of its recent average.
The ratio itself is computed by the strategy (some average over a window
including the current bar, others over the bars before it) and passed in the
signal data as 'volume_ratio'.
"""

from strategies.filters.base import FilterBase, FilterContext, FilterResult, config_value


class VolumeRatioFilter(FilterBase):
    """Requires volume_ratio >= multiplier."""
    
    value_key = 'volume_ratio'
    
    def __init__(self, config):
        """
        Args:
            config: Filter configuration with:
                - enabled: bool
                - multiplier: float (default 1.0)
        """
        super().__init__(config)
        self.multiplier = float(config_value(config, 'multiplier', 1.0))
    
    def check(self, context: FilterContext) -> FilterResult:
        if not self.enabled:
            return self._create_pass_result()
        
        ratio = self._read_value(context)
        if ratio is None:
            return self._missing_value_result()
        
        metadata = {'filter': 'volume_ratio', 'value': ratio, 'threshold': self.multiplier}
        if ratio < self.multiplier:
            return self._create_fail_result(
                reason=f"Volume ratio {ratio:.2f}x below {self.multiplier}x",
                metadata=metadata
            )
        return self._create_pass_result(metadata=metadata)
