"""Tests for performance metrics."""

from types import SimpleNamespace
import math

import numpy as np
import pandas as pd
import pytest

from metrics import (
    calculate_average_win_loss,
    calculate_drawdown_series,
    calculate_max_drawdown_pct,
    calculate_profit_factor,
    calculate_sharpe_ratio,
    calculate_total_return_pct,
    calculate_win_rate,
    summarize,
)


def _trades(*pnls, fee=1.0):
    return [SimpleNamespace(net_pnl=p, fees=fee) for p in pnls]


def _balance(values):
    idx = pd.date_range('2024-01-01', periods=len(values), freq='1min')
    return pd.Series(values, index=idx, dtype=float)


def test_win_rate_and_averages():
    trades = _trades(10.0, -5.0, 20.0, 0.0)

    assert calculate_win_rate(trades) == pytest.approx(50.0)
    avg_win, avg_loss = calculate_average_win_loss(trades)
    assert avg_win == pytest.approx(15.0)
    # Break-even trades count as losses
    assert avg_loss == pytest.approx(2.5)


def test_profit_factor_edges():
    assert calculate_profit_factor(_trades(10.0, -5.0)) == pytest.approx(2.0)
    assert math.isinf(calculate_profit_factor(_trades(10.0)))
    assert calculate_profit_factor(_trades(-10.0)) == 0.0
    assert calculate_profit_factor([]) == 0.0


def test_empty_trade_list():
    assert calculate_win_rate([]) == 0.0
    assert calculate_average_win_loss([]) == (0.0, 0.0)


def test_drawdown_series_is_running_maximum():
    balance = _balance([100.0, 110.0, 99.0, 105.0, 88.0, 120.0])

    dd = calculate_drawdown_series(balance)

    assert list(dd) == pytest.approx([0.0, 0.0, 10.0, 10.0, 20.0, 20.0])
    assert calculate_max_drawdown_pct(balance) == pytest.approx(20.0)


def test_drawdown_peak_starts_at_initial_balance():
    balance = _balance([95.0, 97.0])

    assert calculate_max_drawdown_pct(balance) == pytest.approx(0.0)
    assert calculate_max_drawdown_pct(balance, initial_balance=100.0) == pytest.approx(5.0)


def test_sharpe_ratio():
    flat = _balance([100.0] * 5)
    assert calculate_sharpe_ratio(flat) == 0.0
    assert calculate_sharpe_ratio(_balance([100.0])) == 0.0

    balance = _balance([100.0, 101.0, 100.0, 102.0])
    returns = np.array([0.01, 100.0 / 101.0 - 1.0, 0.02])
    assert calculate_sharpe_ratio(balance) == pytest.approx(returns.mean() / returns.std())


def test_total_return():
    assert calculate_total_return_pct(1000.0, 1100.0) == pytest.approx(10.0)
    assert calculate_total_return_pct(0.0, 1100.0) == 0.0


def test_summarize_keys_and_counts():
    trades = _trades(30.0, -10.0, -5.0)
    balance = _balance([1000.0, 1030.0, 1020.0, 1015.0])

    summary = summarize(trades, balance, 1000.0)

    assert summary['final_balance'] == 1015.0
    assert summary['total_return_pct'] == pytest.approx(1.5)
    assert summary['total_trades'] == 3
    assert summary['wins'] == 1
    assert summary['losses'] == 2
    assert summary['profit_factor'] == pytest.approx(2.0)
    assert summary['total_fees'] == pytest.approx(3.0)
    assert summary['max_drawdown_pct'] == pytest.approx(15.0 / 1030.0 * 100.0)
    assert isinstance(summary['profit_factor'], float)


def test_summarize_empty_history_uses_initial_balance():
    summary = summarize([], pd.Series(dtype=float), 500.0)
    assert summary['final_balance'] == 500.0
    assert summary['max_drawdown_pct'] == 0.0
    assert summary['sharpe_ratio'] == 0.0
