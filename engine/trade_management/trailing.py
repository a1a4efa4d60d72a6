"""Percent-based trailing stop tracked per position."""

from dataclasses import dataclass
import logging

from config.schema import TrailingStopConfig

logger = logging.getLogger(__name__)


@dataclass
class TrailingStop:
    """Trailing stop state for one open position.
    
    Profit is expressed in percent from the entry price. The stop arms once
    profit exceeds the activation threshold, then follows the peak profit.
    
    Attributes:
        config: Trailing stop configuration
        active: Whether the stop has armed
        peak_profit_pct: Highest profit seen since arming
    """
    config: TrailingStopConfig
    active: bool = False
    peak_profit_pct: float = 0.0
    
    @staticmethod
    def profit_pct(direction: str, entry_price: float, price: float) -> float:
        """Unrealized profit in percent of the entry price."""
        if direction == 'long':
            return (price - entry_price) / entry_price * 100.0
        return (entry_price - price) / entry_price * 100.0
    
    def threshold(self) -> float:
        """Profit level below which the stop triggers."""
        if self.config.trail_mode == 'points':
            return self.peak_profit_pct - self.config.trail_pct
        return self.peak_profit_pct * (1.0 - self.config.trail_pct / 100.0)
    
    def update(self, profit_pct: float) -> bool:
        """Feed the current profit; return True when the stop triggers.
        
        Args:
            profit_pct: Current unrealized profit in percent
            
        Returns:
            True if the position should close
        """
        if not self.config.enabled:
            return False
        
        if not self.active:
            if profit_pct <= self.config.activation_pct:
                return False
            self.active = True
            self.peak_profit_pct = profit_pct
            logger.debug(f"Trailing stop armed at {profit_pct:.4f}% profit")
        
        self.peak_profit_pct = max(self.peak_profit_pct, profit_pct)
        
        if self.config.trail_mode == 'points':
            return profit_pct <= self.threshold()
        return profit_pct < self.threshold()
