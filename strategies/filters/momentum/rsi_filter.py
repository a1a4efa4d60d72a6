"""RSI filters: directional overbought/oversold band and a neutral range."""

from strategies.filters.base import FilterBase, FilterContext, FilterResult, config_value


class RSIBandFilter(FilterBase):
    """Rejects longs into overbought and shorts into oversold RSI.
    
    Long passes when rsi <= overbought; short passes when rsi >= oversold.
    """
    
    value_key = 'rsi'
    
    def __init__(self, config):
        """
        Args:
            config: Filter configuration with:
                - enabled: bool
                - overbought: float (default 75.0)
                - oversold: float (default 25.0)
        """
        super().__init__(config)
        self.overbought = float(config_value(config, 'overbought', 75.0))
        self.oversold = float(config_value(config, 'oversold', 25.0))
    
    def check(self, context: FilterContext) -> FilterResult:
        if not self.enabled:
            return self._create_pass_result()
        
        rsi_value = self._read_value(context)
        if rsi_value is None:
            return self._missing_value_result()
        
        metadata = {'filter': 'rsi_band', 'value': rsi_value}
        if context.signal_direction > 0 and rsi_value > self.overbought:
            return self._create_fail_result(
                reason=f"RSI {rsi_value:.2f} overbought (> {self.overbought})",
                metadata=metadata
            )
        if context.signal_direction < 0 and rsi_value < self.oversold:
            return self._create_fail_result(
                reason=f"RSI {rsi_value:.2f} oversold (< {self.oversold})",
                metadata=metadata
            )
        return self._create_pass_result(metadata=metadata)


class RSIRangeFilter(FilterBase):
    """Requires lower < RSI < upper regardless of direction."""
    
    value_key = 'rsi'
    
    def __init__(self, config):
        """
        Args:
            config: Filter configuration with:
                - enabled: bool
                - lower: float (default 30.0)
                - upper: float (default 70.0)
        """
        super().__init__(config)
        self.lower = float(config_value(config, 'lower', 30.0))
        self.upper = float(config_value(config, 'upper', 70.0))
    
    def check(self, context: FilterContext) -> FilterResult:
        if not self.enabled:
            return self._create_pass_result()
        
        rsi_value = self._read_value(context)
        if rsi_value is None:
            return self._missing_value_result()
        
        metadata = {'filter': 'rsi_range', 'value': rsi_value, 'lower': self.lower, 'upper': self.upper}
        if not (self.lower < rsi_value < self.upper):
            return self._create_fail_result(
                reason=f"RSI {rsi_value:.2f} outside ({self.lower}, {self.upper})",
                metadata=metadata
            )
        return self._create_pass_result(metadata=metadata)
