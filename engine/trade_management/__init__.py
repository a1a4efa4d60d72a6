"""Trade management module for exit logic."""

from engine.trade_management.exit_resolver import ExitResolver, ExitCondition, ExitReason
from engine.trade_management.trailing import TrailingStop

__all__ = ['ExitResolver', 'ExitCondition', 'ExitReason', 'TrailingStop']
