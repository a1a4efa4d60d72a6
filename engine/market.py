"""Exchange constraints for symbol-level order validation.

This module defines ExchangeConstraints, the reference data that decides
whether an order is executable on a venue: quantity granularity, price tick,
minimum/maximum quantity and notional, fee rates and the leverage cap.

Key principles:
- Constraints are reference data loaded from config/exchange_profiles.yml.
  Nothing is fetched over the network during a run.
- Unknown symbols never fail: they resolve to the exchange's default row.
- Quantities are always floored to the step size (never rounded up past
  what the balance allows); prices are rounded to the nearest tick.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional
import math

from config.market_loader import (
    DEFAULT_EXCHANGE,
    get_exchange_defaults,
    get_slippage_profile,
    get_symbol_profile,
)


# Relative tolerance used when deciding whether a float is a multiple of a step.
_ALIGNMENT_TOLERANCE = 1e-9


@dataclass(frozen=True)
class ExchangeConstraints:
    """Exchange trading constraints for one symbol.

    Attributes:
        symbol: Trading symbol (e.g., 'BTCUSDT')
        exchange: Exchange name (e.g., 'bybit')
        step_size: Quantity increment
        tick_size: Price increment
        min_qty: Minimum order quantity
        max_qty: Maximum order quantity
        min_notional: Minimum order value (quantity * price)
        max_notional: Maximum order value (advisory)
        maker_fee_pct: Maker fee in percent (0.02 = 0.02%)
        taker_fee_pct: Taker fee in percent
        max_leverage: Maximum leverage allowed
    """
    symbol: str
    exchange: str
    step_size: float
    tick_size: float
    min_qty: float
    max_qty: float
    min_notional: float
    max_notional: float
    maker_fee_pct: float
    taker_fee_pct: float
    max_leverage: float

    @property
    def maker_fee_rate(self) -> float:
        """Maker fee as a fraction (0.0002 for 0.02%)."""
        return self.maker_fee_pct / 100.0

    @property
    def taker_fee_rate(self) -> float:
        """Taker fee as a fraction."""
        return self.taker_fee_pct / 100.0

    @classmethod
    def from_profile(cls, symbol: str, exchange: str, row: dict) -> 'ExchangeConstraints':
        """Build constraints from a profile row."""
        return cls(
            symbol=symbol,
            exchange=exchange,
            step_size=float(row['step_size']),
            tick_size=float(row.get('tick_size', 0.01)),
            min_qty=float(row['min_qty']),
            max_qty=float(row.get('max_qty', math.inf)),
            min_notional=float(row['min_notional']),
            max_notional=float(row.get('max_notional', math.inf)),
            maker_fee_pct=float(row['maker_fee_pct']),
            taker_fee_pct=float(row['taker_fee_pct']),
            max_leverage=float(row['max_leverage']),
        )


@dataclass(frozen=True)
class OrderValidation:
    """Result of validating an order against exchange constraints.

    Attributes:
        valid: Whether the order is executable
        reason: Human-readable reason for rejection (None when valid)
    """
    valid: bool
    reason: Optional[str] = None


def constraints_for(symbol: str, exchange: str = DEFAULT_EXCHANGE) -> ExchangeConstraints:
    """Look up exchange constraints for a symbol.

    Unknown symbols fall back to the exchange default (BTCUSDT values on Bybit,
    the generic row on Binance). Unknown exchanges fall back to Bybit.

    Args:
        symbol: Trading symbol
        exchange: Exchange name

    Returns:
        ExchangeConstraints for the symbol
    """
    exchange = (exchange or DEFAULT_EXCHANGE).lower()
    row = get_symbol_profile(symbol, exchange)
    if row is None:
        row = get_exchange_defaults(exchange)
    return ExchangeConstraints.from_profile(symbol.upper(), exchange, row)


def realistic_slippage_pct(symbol: str, exchange: str = DEFAULT_EXCHANGE) -> float:
    """Typical market-order slippage in percent for a symbol.

    High-liquidity pairs (BTC, ETH) slip less than altcoins.
    """
    profile = get_slippage_profile((exchange or DEFAULT_EXCHANGE).lower())
    slippage = profile['slippage_pct']
    if symbol.upper() in profile['high_liquidity_symbols']:
        return float(slippage.get('high_liquidity', 0.0))
    return float(slippage.get('default', 0.0))


def _step_decimals(step: float) -> int:
    exponent = Decimal(str(step)).normalize().as_tuple().exponent
    return max(0, -exponent)


def round_to_step_size(quantity: float, step_size: float) -> float:
    """Floor a quantity to a multiple of the step size.

    Never rounds up, so the result never exceeds what was affordable.
    Non-finite input (e.g. an unbounded max_qty) is returned unchanged.

    Args:
        quantity: Raw quantity
        step_size: Quantity increment

    Returns:
        Step-aligned quantity (<= quantity)
    """
    if step_size <= 0 or not math.isfinite(quantity):
        return quantity
    steps = math.floor(quantity / step_size + _ALIGNMENT_TOLERANCE)
    return round(steps * step_size, _step_decimals(step_size))


def ceil_to_step_size(quantity: float, step_size: float) -> float:
    """Smallest multiple of the step size that is >= quantity."""
    if step_size <= 0 or not math.isfinite(quantity):
        return quantity
    steps = math.ceil(quantity / step_size - _ALIGNMENT_TOLERANCE)
    return round(steps * step_size, _step_decimals(step_size))


def round_to_tick_size(price: float, tick_size: float) -> float:
    """Round a price to the nearest tick.

    Unlike quantities, prices round to nearest (not floor) to match observed
    exchange fills.
    """
    if tick_size <= 0:
        return price
    return round(round(price / tick_size) * tick_size, _step_decimals(tick_size))


def is_step_aligned(value: float, step: float) -> bool:
    """Check whether value is a multiple of step (within float tolerance)."""
    if step <= 0:
        return True
    ratio = value / step
    return abs(ratio - round(ratio)) <= _ALIGNMENT_TOLERANCE * max(1.0, abs(ratio))


def validate_order(quantity: float, price: float, constraints: ExchangeConstraints) -> OrderValidation:
    """Validate an order against exchange constraints.

    Checks, in order: minimum quantity, maximum quantity, step alignment,
    minimum notional, price tick alignment. The first failing check decides
    the reason.

    Args:
        quantity: Order quantity
        price: Order price
        constraints: Exchange constraints for the symbol

    Returns:
        OrderValidation with pass/fail and reason
    """
    if quantity < constraints.min_qty:
        return OrderValidation(False, f"Quantity {quantity} is below minimum quantity {constraints.min_qty}")
    if quantity > constraints.max_qty:
        return OrderValidation(False, f"Quantity {quantity} exceeds maximum quantity {constraints.max_qty}")
    if not is_step_aligned(quantity, constraints.step_size):
        return OrderValidation(False, f"Quantity {quantity} is not a multiple of step size {constraints.step_size}")
    notional = quantity * price
    if notional < constraints.min_notional:
        return OrderValidation(
            False,
            f"Notional {notional:.8f} is below minimum notional {constraints.min_notional}"
        )
    if not is_step_aligned(price, constraints.tick_size):
        return OrderValidation(False, f"Price {price} is not a multiple of tick size {constraints.tick_size}")
    return OrderValidation(True)
