"""Performance metrics calculation.

All functions are pure: they take the closed trade list and/or the per-step
balance history recorded by the engine and return plain floats (or a Series
for the drawdown curve). Trades are read through their ``net_pnl`` and
``fees`` attributes only, so any object with those fields works.
"""

from typing import Dict, Optional, Sequence, Tuple, TYPE_CHECKING
import math

import numpy as np
import pandas as pd

if TYPE_CHECKING:
    from engine.backtest_engine import Trade


def calculate_balance_returns(balance: pd.Series) -> np.ndarray:
    """
    Calculate per-step returns from a balance history.

    Args:
        balance: Balance per step

    Returns:
        Array of fractional returns (length len(balance) - 1)
    """
    if balance is None or len(balance) < 2:
        return np.array([], dtype=float)
    values = np.asarray(balance, dtype=float)
    previous = values[:-1]
    with np.errstate(divide='ignore', invalid='ignore'):
        returns = np.where(previous != 0, values[1:] / previous - 1.0, 0.0)
    return returns[np.isfinite(returns)]


def calculate_sharpe_ratio(balance: pd.Series) -> float:
    """
    Sharpe-like ratio of the balance curve.

    Mean of per-step returns over their population standard deviation. No
    risk-free rate is subtracted and no annualisation is applied.

    Args:
        balance: Balance per step

    Returns:
        Ratio, or 0.0 when returns have no dispersion
    """
    returns = calculate_balance_returns(balance)
    if len(returns) == 0:
        return 0.0
    std = float(np.std(returns, ddof=0))
    if std == 0.0 or not math.isfinite(std):
        return 0.0
    return float(np.mean(returns)) / std


def calculate_drawdown_series(balance: pd.Series, initial_balance: Optional[float] = None) -> pd.Series:
    """
    Running maximum drawdown in percent.

    At each step: max over all prior steps of (peak - balance) / peak * 100,
    where peak is the running peak balance. Never decreases.

    Args:
        balance: Balance per step
        initial_balance: Starting balance counted as the first peak (optional)

    Returns:
        Series aligned with balance
    """
    if balance is None or len(balance) == 0:
        return pd.Series(dtype=float)
    peak = balance.cummax()
    if initial_balance is not None:
        peak = peak.clip(lower=initial_balance)
    drawdown = ((peak - balance) / peak.where(peak > 0)).fillna(0.0) * 100.0
    return drawdown.cummax()


def calculate_max_drawdown_pct(balance: pd.Series, initial_balance: Optional[float] = None) -> float:
    """Maximum drawdown in percent over the whole balance history."""
    series = calculate_drawdown_series(balance, initial_balance)
    if series.empty:
        return 0.0
    return float(series.iloc[-1])


def calculate_win_rate(trades: Sequence['Trade']) -> float:
    """Percentage of trades with positive net P&L."""
    if not trades:
        return 0.0
    wins = sum(1 for t in trades if t.net_pnl > 0)
    return wins / len(trades) * 100.0


def calculate_average_win_loss(trades: Sequence['Trade']) -> Tuple[float, float]:
    """
    Average winning and losing trade.

    Args:
        trades: Closed trades

    Returns:
        Tuple of (avg_win, avg_loss); avg_loss is a positive magnitude
    """
    wins = [t.net_pnl for t in trades if t.net_pnl > 0]
    losses = [t.net_pnl for t in trades if t.net_pnl <= 0]
    avg_win = float(np.mean(wins)) if wins else 0.0
    avg_loss = abs(float(np.mean(losses))) if losses else 0.0
    return avg_win, avg_loss


def calculate_profit_factor(trades: Sequence['Trade']) -> float:
    """
    Gross winning P&L over gross losing P&L.

    Returns:
        inf when there are wins but no losses, 0.0 when there are no wins
    """
    gross_win = sum(t.net_pnl for t in trades if t.net_pnl > 0)
    gross_loss = abs(sum(t.net_pnl for t in trades if t.net_pnl < 0))
    if gross_win <= 0:
        return 0.0
    if gross_loss == 0:
        return math.inf
    return gross_win / gross_loss


def calculate_total_return_pct(initial_balance: float, final_balance: float) -> float:
    if initial_balance <= 0:
        return 0.0
    return (final_balance - initial_balance) / initial_balance * 100.0


def summarize(
    trades: Sequence['Trade'],
    balance_history: pd.Series,
    initial_balance: float,
) -> Dict[str, float]:
    """
    Calculate the headline metrics of a run.

    Args:
        trades: Closed trades in order
        balance_history: Balance per step
        initial_balance: Starting balance

    Returns:
        Dictionary of metrics keyed by BacktestResult field name
    """
    final_balance = float(balance_history.iloc[-1]) if len(balance_history) else initial_balance
    avg_win, avg_loss = calculate_average_win_loss(trades)
    wins = sum(1 for t in trades if t.net_pnl > 0)

    return {
        'initial_balance': float(initial_balance),
        'final_balance': final_balance,
        'total_return_pct': calculate_total_return_pct(initial_balance, final_balance),
        'total_trades': len(trades),
        'wins': wins,
        'losses': len(trades) - wins,
        'win_rate': calculate_win_rate(trades),
        'avg_win': avg_win,
        'avg_loss': avg_loss,
        'max_drawdown_pct': calculate_max_drawdown_pct(balance_history, initial_balance),
        'profit_factor': float(calculate_profit_factor(trades)),
        'sharpe_ratio': calculate_sharpe_ratio(balance_history),
        'total_fees': float(sum(t.fees for t in trades)),
    }
