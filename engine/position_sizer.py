"""Risk- and volatility-based position sizing.

The PositionSizer turns an account balance, an entry/stop pair and a recent
volatility measure into an executable quantity:

1. risk size  = risk budget / distance to stop
2. vol size   = (balance * 1%) / (2 * ATR)
3. take the smaller of the two
4. clamp to the configured min/max position size
5. apply the regime multiplier
6. floor to the exchange step size
7. if the notional is below the exchange minimum, bump to the smallest
   step-aligned quantity that clears it (capped at the exchange maximum)

A portfolio-level adjustment can then scale the size down by a correlation
factor and never allocates more than 80% of the remaining risk budget.
"""

from dataclasses import dataclass, field
from typing import List, Optional
import logging
import math

from config.schema import PositionSizingConfig
from engine.market import (
    ExchangeConstraints,
    ceil_to_step_size,
    is_step_aligned,
    round_to_step_size,
)

logger = logging.getLogger(__name__)

# Fraction of the remaining portfolio risk budget a new position may take.
PORTFOLIO_RISK_SAFETY_FRACTION = 0.8


@dataclass(frozen=True)
class SizingResult:
    """Recommended position size with the risk it implies.

    Attributes:
        quantity: Step-aligned quantity (0 when nothing can be allocated)
        risk_amount: Quote-currency loss if the stop is hit
        risk_percent: risk_amount as a percentage of balance
        volatility: ATR used for the volatility leg
        confidence: 0-100 score from volatility and regime
    """
    quantity: float
    risk_amount: float
    risk_percent: float
    volatility: float
    confidence: float


@dataclass(frozen=True)
class SizeValidation:
    """Result of validating a size against exchange constraints."""
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def _is_positive(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value) and value > 0


class PositionSizer:
    """Computes order quantities from balance, stop distance and volatility."""

    def __init__(self, config: PositionSizingConfig, constraints: ExchangeConstraints):
        """
        Initialize position sizer.

        Args:
            config: Sizing configuration
            constraints: Exchange constraints for the traded symbol
        """
        self.config = config
        self.constraints = constraints

    def apply_exchange_constraints(self, quantity: float, price: float) -> float:
        """Floor to the step size and bump to clear the minimum notional.

        Args:
            quantity: Raw quantity
            price: Expected fill price

        Returns:
            Step-aligned quantity; the bump is capped at max_qty, so the result
            can still fail validation when the cap is too small.
        """
        c = self.constraints
        step_adjusted = round_to_step_size(quantity, c.step_size)
        if step_adjusted > c.max_qty:
            step_adjusted = round_to_step_size(c.max_qty, c.step_size)

        if step_adjusted * price < c.min_notional:
            bumped = ceil_to_step_size(c.min_notional / price, c.step_size)
            if bumped * price < c.min_notional:
                bumped = ceil_to_step_size(bumped + c.step_size / 2.0, c.step_size)
            bumped = max(bumped, ceil_to_step_size(c.min_qty, c.step_size))
            capped = min(bumped, round_to_step_size(c.max_qty, c.step_size))
            logger.debug(
                f"Bumped quantity {step_adjusted} -> {capped} to meet min notional {c.min_notional}"
            )
            return capped

        return step_adjusted

    def calculate_position_size(
        self,
        balance: float,
        entry_price: float,
        stop_loss_price: float,
        atr: float,
        regime_multiplier: float = 1.0,
    ) -> float:
        """Calculate a step-aligned position size from risk and volatility.

        Args:
            balance: Account balance
            entry_price: Expected entry price
            stop_loss_price: Stop loss price
            atr: Current ATR over the configured lookback
            regime_multiplier: Scales the clamped size (1.0 = neutral)

        Returns:
            Quantity (0.0 when inputs cannot produce a size)
        """
        if not (_is_positive(balance) and _is_positive(entry_price) and _is_positive(atr)):
            return 0.0
        stop_distance = abs(entry_price - stop_loss_price)
        if not _is_positive(stop_distance):
            return 0.0

        risk_amount = balance * (self.config.max_risk_percent / 100.0)
        risk_based_size = risk_amount / stop_distance
        volatility_based_size = (balance * 0.01) / (atr * 2.0)

        size = min(risk_based_size, volatility_based_size)
        size = max(self.config.min_position_size, min(self.config.max_position_size, size))
        size *= regime_multiplier
        if size <= 0:
            return 0.0

        return self.apply_exchange_constraints(size, entry_price)

    def size_for_notional(self, target_notional: float, price: float) -> float:
        """Convert a target notional into a step-aligned quantity.

        Used for fixed-fraction sizing; applies the same minimum-notional bump
        as risk-based sizing.
        """
        if not (_is_positive(target_notional) and _is_positive(price)):
            return 0.0
        return self.apply_exchange_constraints(target_notional / price, price)

    def calculate_portfolio_adjusted_size(
        self,
        base_position_size: float,
        current_portfolio_risk: float,
        max_portfolio_risk: Optional[float] = None,
        correlation_factor: float = 1.0,
    ) -> float:
        """Scale a size down for committed portfolio risk.

        Returns 0.0 when no risk budget remains. Never allocates more than
        80% of the remaining budget.
        """
        if max_portfolio_risk is None:
            max_portfolio_risk = self.config.max_portfolio_risk
        available_risk = max_portfolio_risk - current_portfolio_risk
        if available_risk <= 0:
            return 0.0

        adjusted = min(
            base_position_size * correlation_factor,
            available_risk * PORTFOLIO_RISK_SAFETY_FRACTION,
        )
        return round_to_step_size(max(adjusted, 0.0), self.constraints.step_size)

    def calculate_optimal_position_size(
        self,
        balance: float,
        entry_price: float,
        stop_loss_price: float,
        atr: float,
        regime_multiplier: Optional[float] = None,
        correlation_factor: Optional[float] = None,
        current_portfolio_risk: float = 0.0,
    ) -> SizingResult:
        """Full sizing pipeline: risk/vol size, regime, portfolio adjustment.

        Args:
            balance: Account balance
            entry_price: Expected entry price
            stop_loss_price: Stop loss price
            atr: Current ATR
            regime_multiplier: Defaults to config.regime_multiplier
            correlation_factor: Defaults to config.correlation_factor
            current_portfolio_risk: Risk already committed elsewhere

        Returns:
            SizingResult
        """
        if regime_multiplier is None:
            regime_multiplier = self.config.regime_multiplier
        if correlation_factor is None:
            correlation_factor = self.config.correlation_factor

        base_size = self.calculate_position_size(
            balance, entry_price, stop_loss_price, atr, regime_multiplier
        )
        final_size = self.calculate_portfolio_adjusted_size(
            base_size,
            current_portfolio_risk,
            self.config.max_portfolio_risk,
            correlation_factor,
        )

        stop_distance = abs(entry_price - stop_loss_price)
        risk_amount = final_size * stop_distance
        risk_percent = (risk_amount / balance) * 100.0 if balance > 0 else 0.0

        if _is_positive(atr) and _is_positive(entry_price):
            volatility_confidence = max(0.0, 100.0 - (atr / entry_price) * 1000.0)
        else:
            volatility_confidence = 0.0
        regime_confidence = regime_multiplier * 100.0
        confidence = min(volatility_confidence, regime_confidence)

        return SizingResult(
            quantity=final_size,
            risk_amount=risk_amount,
            risk_percent=risk_percent,
            volatility=atr,
            confidence=confidence,
        )

    def validate_position_size(self, quantity: float, price: float) -> SizeValidation:
        """Validate a size against all exchange constraints.

        Exceeding max_notional is reported as a warning, everything else as an
        error.
        """
        c = self.constraints
        errors: List[str] = []
        warnings: List[str] = []

        if quantity < c.min_qty:
            errors.append(f"Position size {quantity} is below minimum quantity {c.min_qty}")
        if quantity > c.max_qty:
            errors.append(f"Position size {quantity} exceeds maximum quantity {c.max_qty}")
        if not is_step_aligned(quantity, c.step_size):
            errors.append(f"Position size {quantity} is not a multiple of step size {c.step_size}")

        notional = quantity * price
        if notional < c.min_notional:
            errors.append(f"Notional value {notional} is below minimum {c.min_notional}")
        if notional > c.max_notional:
            warnings.append(f"Notional value {notional} exceeds maximum {c.max_notional}")

        return SizeValidation(is_valid=not errors, errors=errors, warnings=warnings)
