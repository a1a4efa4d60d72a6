"""Broker model for fills, fees and margin.

The BrokerModel handles:
- Fill prices (slippage against the trader, rounded to the price tick)
- Fees (maker for limit entries, taker for market entries and all exits)
- Margin locked per position (notional / leverage on futures, full notional on spot)
- Affordability checks and realized P&L

Key principle: The broker enforces exchange constraints, the strategy doesn't know about them.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from engine.market import ExchangeConstraints, round_to_tick_size


@dataclass
class BrokerModel:
    """Broker abstraction for a single symbol.
    
    Attributes:
        constraints: Exchange constraints for the symbol
        market_type: 'futures' or 'spot'
        leverage: Leverage applied to futures margin (1.0 on spot)
        slippage_pct: Slippage in percent applied to market fills
        order_type: Entry order type ('market' or 'limit')
        maker_fee_pct: Maker fee override in percent (None = constraints)
        taker_fee_pct: Taker fee override in percent (None = constraints)
    """
    constraints: ExchangeConstraints
    market_type: str = 'futures'
    leverage: float = 1.0
    slippage_pct: float = 0.0
    order_type: str = 'market'
    maker_fee_pct: Optional[float] = None
    taker_fee_pct: Optional[float] = None
    
    @property
    def maker_fee_rate(self) -> float:
        pct = self.maker_fee_pct if self.maker_fee_pct is not None else self.constraints.maker_fee_pct
        return pct / 100.0
    
    @property
    def taker_fee_rate(self) -> float:
        pct = self.taker_fee_pct if self.taker_fee_pct is not None else self.constraints.taker_fee_pct
        return pct / 100.0
    
    @property
    def entry_fee_rate(self) -> float:
        """Entry fee rate: maker for limit orders, taker for market orders."""
        return self.maker_fee_rate if self.order_type == 'limit' else self.taker_fee_rate
    
    def apply_slippage(self, price: float, is_buy: bool) -> float:
        """Apply slippage to a price and round to the tick.
        
        Args:
            price: Reference price
            is_buy: True when the fill buys (long entry, short exit)
            
        Returns:
            Fill price: higher for buys, lower for sells
        """
        s = self.slippage_pct / 100.0
        filled = price * (1.0 + s) if is_buy else price * (1.0 - s)
        return round_to_tick_size(filled, self.constraints.tick_size)
    
    def entry_fill_price(self, reference_price: float, direction: str) -> float:
        """Fill price for an entry in `direction` ('long' or 'short')."""
        return self.apply_slippage(reference_price, is_buy=(direction == 'long'))
    
    def exit_fill_price(self, reference_price: float, direction: str) -> float:
        """Fill price for a market exit of a position in `direction`."""
        return self.apply_slippage(reference_price, is_buy=(direction == 'short'))
    
    def calculate_margin_required(self, price: float, quantity: float) -> float:
        """Margin locked for a position.
        
        Args:
            price: Entry price
            quantity: Position quantity
            
        Returns:
            notional / leverage on futures, full notional on spot
        """
        notional = price * quantity
        if self.market_type == 'futures':
            return notional / self.leverage
        return notional
    
    def calculate_entry_fee(self, price: float, quantity: float) -> float:
        return price * quantity * self.entry_fee_rate
    
    def calculate_exit_fee(self, price: float, quantity: float) -> float:
        return price * quantity * self.taker_fee_rate
    
    def can_afford_position(
        self,
        entry_price: float,
        quantity: float,
        available_cash: float
    ) -> Tuple[bool, float]:
        """Check if account can afford a position.
        
        Args:
            entry_price: Entry price
            quantity: Position quantity
            available_cash: Available (unlocked) balance
            
        Returns:
            Tuple of (can_afford, required_cash)
            required_cash = margin + entry fee
        """
        margin = self.calculate_margin_required(entry_price, quantity)
        fee = self.calculate_entry_fee(entry_price, quantity)
        required_cash = margin + fee
        return required_cash <= available_cash, required_cash
    
    def calculate_realized_pnl(
        self,
        entry_price: float,
        exit_price: float,
        quantity: float,
        direction: str
    ) -> float:
        """Gross P&L for a closed position (before fees).
        
        Args:
            entry_price: Entry price
            exit_price: Exit price
            quantity: Position quantity
            direction: 'long' or 'short'
            
        Returns:
            (exit - entry) * qty for longs, (entry - exit) * qty for shorts
        """
        if direction == 'long':
            return (exit_price - entry_price) * quantity
        return (entry_price - exit_price) * quantity
