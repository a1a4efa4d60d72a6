"""Base classes for filter system."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, TYPE_CHECKING
import math
import pandas as pd

if TYPE_CHECKING:
    from engine.indicator_cache import IndicatorView


@dataclass
class FilterContext:
    """Context passed to filters for decision making.
    
    Filters read pre-computed values for the candidate signal from
    `signal_data` (e.g. 'adx', 'rsi', 'volume_ratio'). All values come from
    candles strictly before the entry candle.
    """
    timestamp: pd.Timestamp
    symbol: str
    signal_direction: int  # 1=long, -1=short
    signal_data: pd.Series  # Values evaluated for this signal
    view: Optional['IndicatorView'] = None  # Truncated indicator access


@dataclass
class FilterResult:
    """Result from filter check.
    
    Attributes:
        passed: Whether the filter passed (True) or failed (False)
        reason: Optional reason for failure (human-readable)
        metadata: Optional dictionary with additional information
    """
    passed: bool
    reason: Optional[str] = None
    metadata: Dict = field(default_factory=dict)
    
    def __post_init__(self):
        """Ensure metadata is always a dict."""
        if self.metadata is None:
            self.metadata = {}


def config_value(config, key: str, default: Any = None) -> Any:
    """Read a filter setting from a config object or a dict."""
    if isinstance(config, dict):
        value = config.get(key, default)
    else:
        value = getattr(config, key, default)
    return default if value is None else value


class FilterBase(ABC):
    """Base class for all filters.
    
    All filters must inherit from this class and implement the `check` method.
    
    Example:
        class MyFilter(FilterBase):
            def check(self, context: FilterContext) -> FilterResult:
                # Filter logic here
                if condition:
                    return self._create_pass_result()
                else:
                    return self._create_fail_result("Reason for failure")
    """
    
    # Key this filter reads from FilterContext.signal_data
    value_key: str = ''
    
    def __init__(self, config):
        """
        Initialize filter with configuration.
        
        Args:
            config: Filter configuration (dict or config object)
        """
        self.config = config
        self.enabled = bool(config_value(config, 'enabled', True))
        self.name = self.__class__.__name__
    
    @abstractmethod
    def check(self, context: FilterContext) -> FilterResult:
        """
        Check if filter passes.
        
        Args:
            context: FilterContext with signal values
            
        Returns:
            FilterResult indicating pass/fail and reason
        """
        pass
    
    def is_enabled(self) -> bool:
        """
        Check if filter is enabled.
        
        Returns:
            True if filter is enabled, False otherwise
        """
        return self.enabled
    
    def _read_value(self, context: FilterContext, key: Optional[str] = None) -> Optional[float]:
        """Read a numeric value from signal_data; None when missing or NaN."""
        key = key or self.value_key
        if key not in context.signal_data:
            return None
        value = context.signal_data[key]
        if value is None or (isinstance(value, float) and math.isnan(value)) or pd.isna(value):
            return None
        return float(value)
    
    def _missing_value_result(self, key: Optional[str] = None) -> FilterResult:
        key = key or self.value_key
        return self._create_fail_result(
            reason=f"{key} value not available",
            metadata={'filter': self.name, 'value': None}
        )
    
    def _create_pass_result(self, metadata: Optional[Dict] = None) -> FilterResult:
        """
        Helper to create a pass result.
        
        Args:
            metadata: Optional metadata to include in result
            
        Returns:
            FilterResult with passed=True
        """
        return FilterResult(passed=True, metadata=metadata or {})
    
    def _create_fail_result(self, reason: str, metadata: Optional[Dict] = None) -> FilterResult:
        """
        Helper to create a fail result.
        
        Args:
            reason: Human-readable reason for failure
            metadata: Optional metadata to include in result
            
        Returns:
            FilterResult with passed=False
        """
        return FilterResult(
            passed=False,
            reason=reason,
            metadata=metadata or {}
        )
