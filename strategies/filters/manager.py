"""Filter manager for applying filter chain to signals."""

from typing import Dict, List, Optional
import logging

from strategies.filters.base import FilterBase, FilterContext, FilterResult

logger = logging.getLogger(__name__)

FILTER_MODES = ('strict', 'advisory')


class FilterManager:
    """Manages and applies a filter chain to candidate signals.
    
    Two modes:
    - strict: filters are applied in order and the first enabled filter that
      fails rejects the signal (short-circuiting).
    - advisory: every enabled filter runs; failures are logged and returned
      in the result metadata, but the signal still passes.
    
    Example:
        manager = FilterManager([ADXFilter({'min_adx': 20})], mode='strict')
        result = manager.apply_filters(context)
        if result.passed:
            # Signal passed all filters
            pass
    """
    
    def __init__(self, filters: Optional[List[FilterBase]] = None, mode: str = 'strict'):
        """
        Initialize filter manager.
        
        Args:
            filters: Ordered filter chain
            mode: 'strict' or 'advisory'
        """
        if mode not in FILTER_MODES:
            raise ValueError(f"Invalid filter mode: {mode}. Must be one of {FILTER_MODES}")
        self.filters: List[FilterBase] = list(filters or [])
        self.mode = mode
        self.failure_counts: Dict[str, int] = {}
    
    def add_filter(self, filter_obj: FilterBase) -> None:
        self.filters.append(filter_obj)
    
    def _record_failure(self, filter_obj: FilterBase, result: FilterResult) -> None:
        self.failure_counts[filter_obj.name] = self.failure_counts.get(filter_obj.name, 0) + 1
    
    def apply_filters(self, context: FilterContext) -> FilterResult:
        """
        Apply all enabled filters to a candidate signal.
        
        Args:
            context: FilterContext with the signal's values
            
        Returns:
            FilterResult indicating if signal passed. In advisory mode the
            metadata holds 'advisory_failures' (list of reasons).
        """
        advisory_failures = []
        
        for filter_obj in self.filters:
            if not filter_obj.is_enabled():
                continue
            
            result = filter_obj.check(context)
            if result.passed:
                continue
            
            self._record_failure(filter_obj, result)
            if self.mode == 'strict':
                logger.debug(f"Filter {filter_obj.name} rejected signal: {result.reason}")
                return result  # Short-circuit on first failure
            
            logger.info(f"Filter {filter_obj.name} failed ({result.reason}) - continuing anyway")
            advisory_failures.append(f"{filter_obj.name}: {result.reason}")
        
        if advisory_failures:
            return FilterResult(passed=True, metadata={'advisory_failures': advisory_failures})
        return FilterResult(passed=True)
