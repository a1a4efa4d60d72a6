"""Performance metrics calculation."""

from metrics.metrics import (
    calculate_balance_returns,
    calculate_sharpe_ratio,
    calculate_drawdown_series,
    calculate_max_drawdown_pct,
    calculate_win_rate,
    calculate_average_win_loss,
    calculate_profit_factor,
    calculate_total_return_pct,
    summarize,
)

__all__ = [
    'calculate_balance_returns',
    'calculate_sharpe_ratio',
    'calculate_drawdown_series',
    'calculate_max_drawdown_pct',
    'calculate_win_rate',
    'calculate_average_win_loss',
    'calculate_profit_factor',
    'calculate_total_return_pct',
    'summarize',
]
