"""ADX (Average Directional Index) filter for trend strength."""

from strategies.filters.base import FilterBase, FilterContext, FilterResult, config_value


class ADXFilter(FilterBase):
    """Requires ADX at or above a minimum threshold.
    
    Reads 'adx' from the signal data.
    """
    
    value_key = 'adx'
    
    def __init__(self, config):
        """
        Initialize ADX filter.
        
        Args:
            config: Filter configuration with:
                - enabled: bool
                - min_adx: float (minimum ADX, default 20.0)
        """
        super().__init__(config)
        self.min_adx = float(config_value(config, 'min_adx', 20.0))
    
    def check(self, context: FilterContext) -> FilterResult:
        """
        Check if ADX meets the minimum threshold.
        
        Args:
            context: FilterContext with signal values
            
        Returns:
            FilterResult with pass/fail and reason
        """
        if not self.enabled:
            return self._create_pass_result()
        
        adx_value = self._read_value(context)
        if adx_value is None:
            return self._missing_value_result()
        
        metadata = {
            'filter': 'adx',
            'value': adx_value,
            'threshold': self.min_adx,
            'symbol': context.symbol
        }
        if adx_value < self.min_adx:
            return self._create_fail_result(
                reason=f"ADX {adx_value:.1f} below minimum {self.min_adx:.1f}",
                metadata=metadata
            )
        return self._create_pass_result(metadata=metadata)
