"""Base strategy interface that all strategies must implement."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, List, Optional, TYPE_CHECKING
import pandas as pd

from indicators.registry import indicator_warmup
from strategies.filters import FilterManager
from strategies.filters.base import FilterContext, FilterResult

if TYPE_CHECKING:
    from engine.backtest_engine import Position
    from engine.indicator_cache import IndicatorCache, IndicatorView


class SignalType(Enum):
    """Signal direction."""
    BUY = "buy"
    SELL = "sell"
    NONE = "none"


@dataclass(frozen=True)
class Signal:
    """Strategy output for one step.
    
    Attributes:
        signal_type: BUY, SELL or NONE
        stop_loss: Stop price computed from reference_price (optional)
        take_profit: Target price computed from reference_price (optional)
        reference_price: Price the levels were computed from
        time_to_expire: Maximum holding time in minutes (optional)
        confidence: Signal confidence in [0, 1]
        reason: Human-readable explanation
        metadata: Indicator values and filter notes behind the decision
    """
    signal_type: SignalType = SignalType.NONE
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    reference_price: Optional[float] = None
    time_to_expire: Optional[int] = None
    confidence: float = 0.0
    reason: str = ''
    metadata: Dict = field(default_factory=dict)
    
    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            object.__setattr__(self, 'confidence', min(1.0, max(0.0, self.confidence)))
    
    @classmethod
    def none(cls, reason: str = '', **metadata) -> 'Signal':
        return cls(SignalType.NONE, reason=reason, metadata=metadata)
    
    @property
    def is_entry(self) -> bool:
        return self.signal_type != SignalType.NONE
    
    @property
    def direction(self) -> Optional[str]:
        """'long' for BUY, 'short' for SELL, None otherwise."""
        if self.signal_type == SignalType.BUY:
            return 'long'
        if self.signal_type == SignalType.SELL:
            return 'short'
        return None
    
    def anchor(self, fill_price: float) -> 'Signal':
        """
        Re-base stop and target onto the actual fill price.
        
        The distance of each level from the fill equals its distance from
        reference_price. Without a reference price the levels are unchanged.
        
        Args:
            fill_price: Executed entry price
        
        Returns:
            New Signal with shifted levels
        """
        if self.reference_price is None:
            return self
        shift = fill_price - self.reference_price
        return replace(
            self,
            stop_loss=self.stop_loss + shift if self.stop_loss is not None else None,
            take_profit=self.take_profit + shift if self.take_profit is not None else None,
            reference_price=fill_price,
        )


@dataclass(frozen=True)
class EvaluationContext:
    """What a strategy may see at step i.
    
    Attributes:
        index: Current step i (the candle being traded)
        timestamp: Open time of candle i
        symbol: Trading symbol
        view: Indicator view truncated to candles before i
    """
    index: int
    timestamp: pd.Timestamp
    symbol: str
    view: 'IndicatorView'


class StrategyBase(ABC):
    """Abstract base class for all trading strategies.
    
    A strategy is evaluated once per candle with an EvaluationContext that
    only exposes data up to the previous candle. Without a position it may
    return an entry signal; with a position, a signal opposite to the open
    side requests an exit.
    """
    
    def __init__(self, params, name: Optional[str] = None):
        """
        Initialize strategy with parameters.
        
        Args:
            params: Validated strategy parameters
            name: Display name (defaults to the parameter kind)
        """
        self.params = params
        self.name = name or getattr(params, 'kind', self.__class__.__name__)
        self.filter_manager = FilterManager(
            self.build_filters(),
            mode=getattr(params, 'filter_mode', 'strict'),
        )
    
    def build_filters(self) -> list:
        """Confirmation filters, applied in order. None by default."""
        return []
    
    @abstractmethod
    def required_indicators(self) -> List[str]:
        """
        Indicator keys to precompute before the run.
        
        Returns:
            List of indicator keys (e.g. ['sma_9', 'rsi_14'])
        """
        pass
    
    @abstractmethod
    def min_candles(self) -> int:
        """Minimum candles needed before the strategy can signal."""
        pass

    def indicator_warmup(self) -> int:
        """Longest warm-up among the declared indicators."""
        return max((indicator_warmup(key) for key in self.required_indicators()), default=0)

    def required_history(self) -> int:
        """
        Candles a run must provide for this strategy.

        Covers both min_candles() and the warm-up of every declared
        indicator, so a too-short series fails before the loop starts.
        """
        return max(self.min_candles(), self.indicator_warmup())

    def prepare(self, cache: 'IndicatorCache') -> None:
        """Register derived causal series on the run's cache. No-op by default."""
        return None
    
    @abstractmethod
    def evaluate(self, ctx: EvaluationContext, position: Optional['Position'] = None) -> Signal:
        """
        Evaluate the strategy at step ctx.index.
        
        Args:
            ctx: Evaluation context (data strictly before candle ctx.index)
            position: Open position, if any
        
        Returns:
            Signal (NONE when nothing to do or history is insufficient)
        """
        pass
    
    def apply_filters(self, ctx: EvaluationContext, direction: int, values: Dict) -> FilterResult:
        """
        Run the filter chain for a candidate signal.
        
        Args:
            ctx: Evaluation context
            direction: 1 for long, -1 for short
            values: Indicator values the filters read
        
        Returns:
            FilterResult from the FilterManager
        """
        context = FilterContext(
            timestamp=ctx.timestamp,
            symbol=ctx.symbol,
            signal_direction=direction,
            signal_data=pd.Series(values, dtype=float),
            view=ctx.view,
        )
        return self.filter_manager.apply_filters(context)
