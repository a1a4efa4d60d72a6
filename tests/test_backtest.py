"""Tests for the backtest engine's step order, fills and accounting."""

import math
from dataclasses import replace

import pandas as pd
import pytest
from pydantic import ValidationError

from config.schema import BacktestConfig
from conftest import ScriptedStrategy, build_candles, zero_cost_config
from engine.backtest_engine import BacktestEngine, BacktestResult
from engine.errors import CandleDataError, ConfigurationError
from engine.market import constraints_for
from engine.trade_management import ExitReason
from strategies.base import Signal, SignalType


def _bars(rows, freq='1h'):
    idx = pd.date_range('2024-01-01 00:00:00', periods=len(rows), freq=freq)
    return pd.DataFrame(rows, columns=['open', 'high', 'low', 'close', 'volume'], index=idx)


QUIET = (100.0, 100.5, 99.5, 100.0, 1000.0)


def _long(stop_loss=None, take_profit=None, reference=100.0, **kwargs):
    return Signal(
        SignalType.BUY,
        stop_loss=stop_loss,
        take_profit=take_profit,
        reference_price=reference,
        **kwargs,
    )


def test_stop_loss_wins_equidistant_tie():
    """Open midway between stop and target with both touched resolves to the stop."""
    df = _bars([QUIET, QUIET, (100.0, 101.2, 98.8, 100.0, 1000.0), QUIET])
    strategy = ScriptedStrategy(entries={1: _long(99.0, 101.0)})

    result = BacktestEngine(zero_cost_config(), strategy).run(df)

    assert isinstance(result, BacktestResult)
    assert result.total_trades == 1
    trade = result.trades[0]
    assert trade.exit_reason == ExitReason.STOP_LOSS
    assert trade.exit_price == 99.0
    assert trade.entry_time == df.index[1]
    assert trade.exit_time == df.index[2]
    assert trade.quantity == pytest.approx(10.0)
    assert trade.net_pnl == pytest.approx(-10.0)
    assert result.final_balance == pytest.approx(9990.0)


def test_gap_through_target_fills_target():
    """An open already beyond the target resolves to the target even if the stop is in range."""
    df = _bars([QUIET, QUIET, (101.1, 101.5, 98.9, 100.0, 1000.0), QUIET])
    strategy = ScriptedStrategy(entries={1: _long(99.0, 101.0)})

    trade = BacktestEngine(zero_cost_config(), strategy).run(df).trades[0]

    assert trade.exit_reason == ExitReason.TAKE_PROFIT
    assert trade.exit_price == 101.0


def test_fees_are_charged_on_entry_and_exit():
    """Taker fee is paid on a market entry and on the exit notional."""
    df = _bars([QUIET, QUIET, (100.0, 101.5, 99.6, 101.0, 1000.0), QUIET])
    strategy = ScriptedStrategy(entries={1: _long(99.0, 101.0)})
    config = zero_cost_config(taker_fee_pct=0.1)

    result = BacktestEngine(config, strategy).run(df)

    trade = result.trades[0]
    assert trade.exit_reason == ExitReason.TAKE_PROFIT
    assert trade.gross_pnl == pytest.approx(10.0)
    assert trade.fees == pytest.approx(1.0 + 1.01)
    assert trade.net_pnl == pytest.approx(7.99)
    assert result.total_fees == pytest.approx(2.01)
    assert result.final_balance == pytest.approx(10007.99)


def test_limit_entries_pay_maker_fee():
    """Limit orders pay the maker rate on entry; exits always pay taker."""
    df = _bars([QUIET, QUIET, QUIET, QUIET])
    strategy = ScriptedStrategy(entries={1: _long()})
    config = zero_cost_config(order_type='limit', maker_fee_pct=0.02, taker_fee_pct=0.1)

    trade = BacktestEngine(config, strategy).run(df).trades[0]

    assert trade.exit_reason == ExitReason.END_OF_DATA
    assert trade.fees == pytest.approx(1000.0 * 0.0002 + 1000.0 * 0.001)


def test_margin_stays_in_balance_while_position_is_open():
    """Locked margin counts toward balance; only the entry fee reduces it."""
    df = _bars([QUIET] * 5)
    strategy = ScriptedStrategy(entries={1: _long()})
    config = zero_cost_config(taker_fee_pct=0.1)

    result = BacktestEngine(config, strategy).run(df)

    assert result.balance_history.iloc[0] == pytest.approx(10000.0)
    assert result.balance_history.iloc[1] == pytest.approx(10000.0 - 1.0)
    assert result.balance_history.iloc[3] == pytest.approx(10000.0 - 1.0)


def test_signal_exit_closes_at_market():
    """A signal opposite to the open side closes the position at the fill price."""
    df = build_candles([100.0, 100.0, 100.0, 102.0, 103.0, 104.0], spread=0.0)
    strategy = ScriptedStrategy(entries={1: _long()}, exits={4})

    trade = BacktestEngine(zero_cost_config(), strategy).run(df).trades[0]

    assert trade.exit_reason == ExitReason.SIGNAL_EXIT
    assert trade.exit_time == df.index[4]
    assert trade.exit_price == df['open'].iloc[4]


def test_signal_expiry_closes_position():
    """time_to_expire on the signal closes the position once that many minutes passed."""
    df = build_candles([100.0] * 6, spread=0.0)
    strategy = ScriptedStrategy(entries={1: _long(time_to_expire=2)})

    trade = BacktestEngine(zero_cost_config(), strategy).run(df).trades[0]

    assert trade.exit_reason == ExitReason.TIME_EXPIRED
    assert trade.exit_time == df.index[3]


def test_config_holding_limit_applies_without_signal_expiry():
    """max_position_minutes is the fallback holding limit."""
    df = build_candles([100.0] * 8, spread=0.0)
    strategy = ScriptedStrategy(entries={1: _long()})
    config = zero_cost_config(max_position_minutes=3)

    trade = BacktestEngine(config, strategy).run(df).trades[0]

    assert trade.exit_reason == ExitReason.TIME_EXPIRED
    assert trade.exit_time == df.index[4]


def test_open_position_closes_at_end_of_data():
    """A position still open on the last candle closes there with END_OF_DATA."""
    df = build_candles([100.0, 100.0, 101.0, 102.0, 103.0], spread=0.0)
    strategy = ScriptedStrategy(entries={1: _long()})

    result = BacktestEngine(zero_cost_config(), strategy).run(df)

    trade = result.trades[0]
    assert trade.exit_reason == ExitReason.END_OF_DATA
    assert trade.exit_time == df.index[-1]
    assert trade.exit_price == df['open'].iloc[-1]
    assert trade.gross_pnl == pytest.approx((102.0 - 100.0) * 10.0)


def test_no_reentry_on_exit_candle():
    """An entry is not evaluated on the candle where a position closed."""
    df = build_candles([100.0] * 7, spread=0.0)
    strategy = ScriptedStrategy(entries={1: _long(), 3: _long(), 4: _long()}, exits={3})

    result = BacktestEngine(zero_cost_config(), strategy).run(df)

    assert [t.entry_time for t in result.trades] == [df.index[1], df.index[4]]
    assert (3, False) not in strategy.calls


def test_no_entry_on_last_candle():
    """The last candle never opens a position."""
    df = build_candles([100.0] * 5, spread=0.0)
    strategy = ScriptedStrategy(entries={4: _long()})

    result = BacktestEngine(zero_cost_config(), strategy).run(df)

    assert result.total_trades == 0
    assert result.skipped_entries == []


def test_config_percent_levels_fill_missing_strategy_levels():
    """stop_loss_pct / take_profit_pct apply when the signal carries no levels."""
    df = _bars([QUIET, QUIET, (100.0, 102.5, 99.5, 102.0, 1000.0), QUIET])
    strategy = ScriptedStrategy(entries={1: Signal(SignalType.BUY)})
    config = zero_cost_config(stop_loss_pct=1.0, take_profit_pct=2.0)

    trade = BacktestEngine(config, strategy).run(df).trades[0]

    assert trade.exit_reason == ExitReason.TAKE_PROFIT
    assert trade.exit_price == pytest.approx(102.0)


def test_short_position_pnl():
    """Shorts profit when price falls; stop sits above entry."""
    df = _bars([QUIET, QUIET, (100.0, 100.2, 97.5, 98.0, 1000.0), QUIET])
    signal = Signal(SignalType.SELL, stop_loss=101.0, take_profit=98.0, reference_price=100.0)
    strategy = ScriptedStrategy(entries={1: signal})

    trade = BacktestEngine(zero_cost_config(), strategy).run(df).trades[0]

    assert trade.direction == 'short'
    assert trade.exit_reason == ExitReason.TAKE_PROFIT
    assert trade.gross_pnl == pytest.approx(20.0)


def test_unaffordable_entry_is_skipped():
    """An entry whose bumped notional exceeds the balance becomes a SkippedEntry."""
    df = build_candles([100.0] * 5, spread=0.0)
    strategy = ScriptedStrategy(entries={1: _long()})
    config = zero_cost_config(initial_balance=5.0, position_size_pct=100.0)

    result = BacktestEngine(config, strategy).run(df)

    assert result.total_trades == 0
    assert len(result.skipped_entries) == 1
    skipped = result.skipped_entries[0]
    assert skipped.reason == 'insufficient_balance'
    assert skipped.timestamp == df.index[1]
    assert skipped.quantity == pytest.approx(0.1)
    assert result.final_balance == pytest.approx(5.0)


def test_risk_based_sizing_without_stop_is_skipped():
    """Risk-based sizing needs a stop; without one the entry is skipped."""
    df = build_candles([100.0] * 30, spread=0.2)
    strategy = ScriptedStrategy(entries={20: _long()})
    config = zero_cost_config(sizing={'mode': 'risk_based'})

    result = BacktestEngine(config, strategy).run(df)

    assert result.total_trades == 0
    assert result.skipped_entries[0].reason == 'no_stop_loss'


def test_risk_based_sizing_uses_stop_distance():
    """Risk-based size is the smaller of risk/stop distance and the ATR size, clamped."""
    df = build_candles([100.0] * 30, spread=0.5)
    strategy = ScriptedStrategy(entries={20: _long(stop_loss=99.0, take_profit=110.0)})
    config = zero_cost_config(sizing={'mode': 'risk_based', 'max_position_size': 5.0})

    trade = BacktestEngine(config, strategy).run(df).trades[0]

    # risk size = 200 / 1 = 200; ATR = 1.0 -> vol size = 100 / 2 = 50; clamp to 5
    assert trade.quantity == pytest.approx(5.0)


def test_insufficient_history_raises():
    """Fewer candles than the strategy's warm-up is a configuration error."""
    df = build_candles([100.0] * 10)
    with pytest.raises(ConfigurationError):
        BacktestEngine(zero_cost_config(), ScriptedStrategy(warmup=50)).run(df)


def test_leverage_above_exchange_cap_raises():
    """Leverage above the symbol's exchange maximum is rejected before the loop."""
    df = build_candles([100.0] * 10)
    config = zero_cost_config(symbol='SOLUSDT', leverage=75)
    with pytest.raises(ConfigurationError):
        BacktestEngine(config, ScriptedStrategy()).run(df)


def test_spot_with_leverage_rejected_by_config():
    """Spot markets cannot be configured with leverage."""
    with pytest.raises(ValidationError):
        BacktestConfig(market_type='spot', leverage=2)


def test_unordered_candles_raise():
    """Timestamps going backwards are a candle data error."""
    df = build_candles([100.0] * 5)
    df = df.iloc[[0, 2, 1, 3, 4]]
    with pytest.raises(CandleDataError):
        BacktestEngine(zero_cost_config(), ScriptedStrategy()).run(df)


def test_futures_leverage_scales_notional():
    """Fixed-fraction notional is multiplied by leverage on futures."""
    df = build_candles([100.0] * 5, spread=0.0)
    strategy = ScriptedStrategy(entries={1: _long()})
    config = zero_cost_config(leverage=5)

    trade = BacktestEngine(config, strategy).run(df).trades[0]

    assert trade.quantity == pytest.approx(50.0)


def test_result_to_dict_is_plain_data():
    """to_dict exports metrics and trades with string exit reasons."""
    df = build_candles([100.0, 100.0, 101.0, 102.0], spread=0.0)
    strategy = ScriptedStrategy(entries={1: _long()})

    data = BacktestEngine(zero_cost_config(), strategy).run(df).to_dict(include_history=True)

    assert data['strategy_name'] == 'scripted'
    assert data['symbol'] == 'BTCUSDT'
    assert data['trades'][0]['exit_reason'] == 'end_of_data'
    assert isinstance(data['trades'][0]['entry_price'], float)
    assert len(data['balance_history']) == len(df)


def test_repeated_timestamps_raise():
    """Two candles sharing a timestamp would let a trade exit at its entry time."""
    df = build_candles([100.0] * 5)
    idx = df.index.tolist()
    idx[2] = idx[1]
    df.index = pd.DatetimeIndex(idx)
    strategy = ScriptedStrategy(entries={1: _long()}, exits={2})

    with pytest.raises(CandleDataError, match='strictly increasing'):
        BacktestEngine(zero_cost_config(), strategy).run(df)


def test_indicator_warmup_beyond_min_candles_raises():
    """History must cover the slowest declared indicator, not just min_candles()."""
    strategy = ScriptedStrategy(indicators=['sma_5', 'adx_40'], warmup=10)
    assert strategy.required_history() == 80

    with pytest.raises(ConfigurationError):
        BacktestEngine(zero_cost_config(), strategy).run(build_candles([100.0] * 60))

    result = BacktestEngine(zero_cost_config(), strategy).run(build_candles([100.0] * 80))
    assert result.total_trades == 0


@pytest.mark.parametrize(
    "strategy_config, n_candles",
    [
        ({'kind': 'crossover', 'adx_period': 40}, 60),
        ({'kind': 'session_reentry', 'min_candles': 5, 'trend_ema_period': 200}, 50),
        ({'kind': 'mtf_momentum', 'min_candles_per_timeframe': 10, 'timeframe_factors': (2, 3)}, 60),
    ],
)
def test_configured_strategies_fail_fast_on_short_history(strategy_config, n_candles):
    config = BacktestConfig(strategy=strategy_config, parallel_indicators=False)
    df = build_candles([100.0] * n_candles)

    with pytest.raises(ConfigurationError):
        BacktestEngine(config).run(df)


def test_risk_based_sizing_needs_atr_history():
    """Risk-based sizing reads the sizing ATR, so its warm-up counts too."""
    config = zero_cost_config(sizing={'mode': 'risk_based', 'volatility_lookback': 14})
    with pytest.raises(ConfigurationError):
        BacktestEngine(config, ScriptedStrategy()).run(build_candles([100.0] * 14))


def test_unbounded_max_qty_constraints():
    """Constraints without a quantity cap still size and bump orders."""
    constraints = replace(constraints_for('BTCUSDT', 'bybit'), max_qty=math.inf)
    df = build_candles([100.0] * 5, spread=0.0)
    strategy = ScriptedStrategy(entries={1: _long()})
    config = zero_cost_config(position_size_pct=0.05)

    trade = BacktestEngine(config, strategy, constraints=constraints).run(df).trades[0]

    assert trade.quantity == pytest.approx(0.1)
