"""Account state management for backtesting.

This module defines AccountState, which tracks:
- available: Balance not locked as margin
- locked_margin: Margin held by the open position
- balance: available + locked_margin
- balance history and running max drawdown
"""

from dataclasses import dataclass, field
from typing import List
import pandas as pd


@dataclass
class AccountState:
    """Account state tracking for backtesting.
    
    It enforces the accounting invariant:
        balance == available + locked_margin
    
    Attributes:
        available: Balance free for new positions
        locked_margin: Margin locked in the open position
        fees_paid: Total fees paid
        peak_balance: Highest balance recorded so far
        max_drawdown_pct: Running maximum drawdown in percent (never decreases)
    """
    available: float
    locked_margin: float = 0.0
    fees_paid: float = 0.0
    peak_balance: float = 0.0
    max_drawdown_pct: float = 0.0
    _timestamps: List[pd.Timestamp] = field(default_factory=list, repr=False)
    _balances: List[float] = field(default_factory=list, repr=False)
    _drawdowns: List[float] = field(default_factory=list, repr=False)
    
    def __post_init__(self):
        if self.peak_balance <= 0:
            self.peak_balance = self.available + self.locked_margin
    
    @property
    def balance(self) -> float:
        """Total balance: available + locked margin."""
        return self.available + self.locked_margin
    
    def lock(self, margin: float, fee: float) -> None:
        """Lock margin and charge the entry fee from the available balance."""
        self.available -= margin + fee
        self.locked_margin += margin
        self.fees_paid += fee
    
    def release(self, margin: float, gross_pnl: float, fee: float) -> None:
        """Release position margin, realise P&L and charge the exit fee."""
        self.available += margin + gross_pnl - fee
        self.locked_margin = 0.0
        self.fees_paid += fee
    
    def record_balance(self, timestamp: pd.Timestamp) -> None:
        """Record the balance and update the running drawdown.
        
        Args:
            timestamp: Candle timestamp for this step
        """
        balance = self.balance
        self.peak_balance = max(self.peak_balance, balance)
        if self.peak_balance > 0:
            drawdown = (self.peak_balance - balance) / self.peak_balance * 100.0
        else:
            drawdown = 0.0
        self.max_drawdown_pct = max(self.max_drawdown_pct, drawdown)
        
        self._timestamps.append(timestamp)
        self._balances.append(balance)
        self._drawdowns.append(self.max_drawdown_pct)
    
    def get_balance_history(self) -> pd.Series:
        """Balance per recorded step as a Series indexed by candle time."""
        return pd.Series(self._balances, index=pd.DatetimeIndex(self._timestamps), dtype=float)
    
    def get_drawdown_history(self) -> pd.Series:
        """Running max drawdown (percent) per recorded step."""
        return pd.Series(self._drawdowns, index=pd.DatetimeIndex(self._timestamps), dtype=float)
