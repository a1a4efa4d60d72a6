"""Exit condition resolution logic for handling simultaneous stop / target hits."""

from dataclasses import dataclass
from typing import Optional
from enum import Enum


class ExitReason(Enum):
    """Why a position was closed."""
    STOP_LOSS = "stop_loss"
    TAKE_PROFIT = "take_profit"
    TRAILING_STOP = "trailing_stop"
    SIGNAL_EXIT = "signal_exit"
    TIME_EXPIRED = "time_expired"
    END_OF_DATA = "end_of_data"


@dataclass(frozen=True)
class ExitCondition:
    """Represents a triggered exit.
    
    Attributes:
        exit_reason: Why the position closes
        exit_price: Price at which the exit fills
    """
    exit_reason: ExitReason
    exit_price: float


class ExitResolver:
    """Resolves static stop-loss / take-profit hits within one candle.
    
    A candle only carries open/high/low/close, so when both levels lie inside
    its range the intrabar order is unknown. Resolution rules:
    1. Open already beyond a level (gap): that level fills.
    2. Open strictly between the levels: the closer level is assumed to be
       touched first; equal distances resolve to the stop.
    Exits fill at the level price.
    """
    
    @staticmethod
    def stop_hit(direction: str, stop_loss: Optional[float], high: float, low: float) -> bool:
        if stop_loss is None:
            return False
        return low <= stop_loss if direction == 'long' else high >= stop_loss
    
    @staticmethod
    def target_hit(direction: str, take_profit: Optional[float], high: float, low: float) -> bool:
        if take_profit is None:
            return False
        return high >= take_profit if direction == 'long' else low <= take_profit
    
    @staticmethod
    def resolve(
        direction: str,
        stop_loss: Optional[float],
        take_profit: Optional[float],
        open_price: float,
        high: float,
        low: float,
    ) -> Optional[ExitCondition]:
        """Resolve stop-loss / take-profit for one candle.
        
        Args:
            direction: 'long' or 'short'
            stop_loss: Stop level (None = no stop)
            take_profit: Target level (None = no target)
            open_price: Candle open
            high: Candle high
            low: Candle low
            
        Returns:
            ExitCondition at the level price, or None if neither level was hit
        """
        sl_hit = ExitResolver.stop_hit(direction, stop_loss, high, low)
        tp_hit = ExitResolver.target_hit(direction, take_profit, high, low)
        
        if not sl_hit and not tp_hit:
            return None
        if sl_hit and not tp_hit:
            return ExitCondition(ExitReason.STOP_LOSS, stop_loss)
        if tp_hit and not sl_hit:
            return ExitCondition(ExitReason.TAKE_PROFIT, take_profit)
        
        # Both levels inside the candle range
        if direction == 'long':
            stop_passed = open_price <= stop_loss
            target_passed = open_price >= take_profit
            stop_distance = open_price - stop_loss
            target_distance = take_profit - open_price
        else:
            stop_passed = open_price >= stop_loss
            target_passed = open_price <= take_profit
            stop_distance = stop_loss - open_price
            target_distance = open_price - take_profit
        
        if stop_passed:
            return ExitCondition(ExitReason.STOP_LOSS, stop_loss)
        if target_passed:
            return ExitCondition(ExitReason.TAKE_PROFIT, take_profit)
        if stop_distance <= target_distance:
            return ExitCondition(ExitReason.STOP_LOSS, stop_loss)
        return ExitCondition(ExitReason.TAKE_PROFIT, take_profit)
