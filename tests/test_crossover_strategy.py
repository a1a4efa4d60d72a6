"""Tests for the moving-average crossover strategy."""

from types import SimpleNamespace

import pandas as pd
import pytest

from config.schema import BacktestConfig, CrossoverParams
from conftest import build_candles, random_walk_candles
from engine.backtest_engine import BacktestEngine
from engine.indicator_cache import IndicatorCache, IndicatorView
from strategies.base import EvaluationContext, SignalType
from strategies.crossover import CrossoverStrategy

N = 60


def _context(fast, rsi=60.0, bb_position=0.8, adx=30.0, volume_ratio=1.5, atr=2.0, end=50):
    candles = build_candles([100.0] * N)
    cache = IndicatorCache(candles)
    constant = {
        'sma_21': 100.0,
        'rsi_14': rsi,
        'adx_14': adx,
        'bb_position_20_2': bb_position,
        'volume_ratio_20': volume_ratio,
        'atr_14': atr,
    }
    for key, value in constant.items():
        cache.register(key, pd.Series(value, index=candles.index))
    cache.register('sma_9', pd.Series(fast, index=candles.index))
    return EvaluationContext(end, candles.index[end], 'BTCUSDT', IndicatorView(cache, end))


def _cross_up():
    return [99.0] * 49 + [101.0] * (N - 49)


def _cross_down():
    return [101.0] * 49 + [99.0] * (N - 49)


def test_required_indicators_follow_params():
    strategy = CrossoverStrategy(CrossoverParams(ma_type='ema', fast_period=5, slow_period=30))
    keys = strategy.required_indicators()

    assert 'ema_5' in keys
    assert 'ema_30' in keys
    assert 'bb_position_20_2' in keys
    assert strategy.min_candles() == 50


def test_min_candles_covers_slow_adx_warmup():
    strategy = CrossoverStrategy(CrossoverParams(adx_period=40))

    # adx_40 is first defined on candle 80, and the crossover reads two values
    assert strategy.min_candles() == 81
    assert strategy.required_history() == 81


def test_golden_cross_enters_long_with_atr_levels():
    strategy = CrossoverStrategy(CrossoverParams())

    signal = strategy.evaluate(_context(_cross_up()))

    assert signal.signal_type == SignalType.BUY
    assert signal.reference_price == 100.0
    assert signal.stop_loss == pytest.approx(96.0)
    assert signal.take_profit == pytest.approx(106.0)
    assert signal.time_to_expire == 240
    # trend strength 0.64, plus ADX and volume bonuses, over 1.3
    assert signal.metadata['trend_strength'] == pytest.approx(0.64)
    assert signal.confidence == pytest.approx(0.94 / 1.3)
    assert 'Golden Cross' in signal.reason


def test_death_cross_enters_short():
    strategy = CrossoverStrategy(CrossoverParams())

    signal = strategy.evaluate(_context(_cross_down(), rsi=40.0, bb_position=0.2))

    assert signal.signal_type == SignalType.SELL
    assert signal.stop_loss == pytest.approx(104.0)
    assert signal.take_profit == pytest.approx(94.0)
    assert signal.metadata['trend_strength'] == pytest.approx(0.64)


def test_no_cross_no_signal():
    strategy = CrossoverStrategy(CrossoverParams())
    signal = strategy.evaluate(_context([101.0] * N))
    assert signal.signal_type == SignalType.NONE
    assert signal.reason == 'No crossover'


def test_insufficient_history():
    strategy = CrossoverStrategy(CrossoverParams())
    signal = strategy.evaluate(_context(_cross_up(), end=30))
    assert not signal.is_entry


def test_strict_filters_reject_overbought_long():
    strategy = CrossoverStrategy(CrossoverParams())

    signal = strategy.evaluate(_context(_cross_up(), rsi=80.0))

    assert not signal.is_entry
    assert 'overbought' in signal.reason
    assert strategy.filter_manager.failure_counts == {'RSIBandFilter': 1}


def test_advisory_filters_let_signal_through():
    strategy = CrossoverStrategy(CrossoverParams(filter_mode='advisory'))

    signal = strategy.evaluate(_context(_cross_up(), rsi=80.0, adx=10.0))

    assert signal.signal_type == SignalType.BUY
    failures = signal.metadata['advisory_failures']
    assert any(f.startswith('RSIBandFilter') for f in failures)
    assert any(f.startswith('ADXFilter') for f in failures)


def test_missing_atr_blocks_entry():
    strategy = CrossoverStrategy(CrossoverParams(filter_mode='advisory'))
    signal = strategy.evaluate(_context(_cross_up(), atr=float('nan')))
    assert not signal.is_entry
    assert 'ATR' in signal.reason


def test_opposite_cross_exits_position():
    strategy = CrossoverStrategy(CrossoverParams())

    long_exit = strategy.evaluate(_context(_cross_down()), SimpleNamespace(direction='long'))
    short_exit = strategy.evaluate(_context(_cross_up()), SimpleNamespace(direction='short'))
    hold = strategy.evaluate(_context(_cross_up()), SimpleNamespace(direction='long'))

    assert long_exit.signal_type == SignalType.SELL
    assert short_exit.signal_type == SignalType.BUY
    assert not hold.is_entry


def test_backtest_with_configured_crossover():
    config = BacktestConfig(
        strategy={'kind': 'crossover', 'fast_period': 5, 'slow_period': 20, 'filter_mode': 'advisory'},
    )
    candles = random_walk_candles(n=500, seed=5)

    result = BacktestEngine(config).run(candles)

    assert result.strategy_name == 'crossover'
    assert result.total_trades > 0
    for trade in result.trades:
        assert trade.exit_time > trade.entry_time
        assert trade.entry_time >= candles.index[40]
