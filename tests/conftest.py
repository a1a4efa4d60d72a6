"""Shared test fixtures: candle builders and a scripted strategy."""

from typing import Dict, Iterable, Optional

import numpy as np
import pandas as pd
import pytest

from config.schema import BacktestConfig, CrossoverParams
from strategies.base import EvaluationContext, Signal, SignalType, StrategyBase


def build_candles(closes, start='2024-01-01 00:00:00', freq='1min', spread=0.5, volume=1000.0):
    """OHLCV frame where each candle opens at the previous close."""
    closes = np.asarray(closes, dtype=float)
    opens = np.concatenate([[closes[0]], closes[:-1]])
    highs = np.maximum(opens, closes) + spread
    lows = np.minimum(opens, closes) - spread
    idx = pd.date_range(start, periods=len(closes), freq=freq)
    return pd.DataFrame(
        {
            'open': opens,
            'high': highs,
            'low': lows,
            'close': closes,
            'volume': np.full(len(closes), volume),
        },
        index=idx,
    )


def random_walk_candles(n=400, seed=7, start_price=100.0, freq='1min'):
    """Seeded random-walk candles with varying volume."""
    rng = np.random.default_rng(seed)
    closes = start_price * np.exp(np.cumsum(rng.normal(0.0, 0.004, n)))
    df = build_candles(closes, freq=freq, spread=0.0)
    wiggle = np.abs(rng.normal(0.0, 0.002, n)) * closes
    df['high'] = df[['open', 'close']].max(axis=1) + wiggle
    df['low'] = df[['open', 'close']].min(axis=1) - wiggle
    df['volume'] = rng.uniform(500.0, 1500.0, n)
    return df


def zero_cost_config(**overrides) -> BacktestConfig:
    """BTCUSDT futures config without fees or slippage."""
    values = dict(slippage_pct=0.0, maker_fee_pct=0.0, taker_fee_pct=0.0)
    values.update(overrides)
    return BacktestConfig(**values)


class ScriptedStrategy(StrategyBase):
    """Returns pre-scripted entry signals by candle index.

    Exit requests are scripted the same way: at an index in `exits` the
    strategy returns a signal opposite to the open position.
    """

    def __init__(
        self,
        entries: Optional[Dict[int, Signal]] = None,
        exits: Iterable[int] = (),
        indicators: Iterable[str] = (),
        warmup: int = 1,
    ):
        self.entries = dict(entries or {})
        self.exits = set(exits)
        self.indicators = list(indicators)
        self.warmup = warmup
        self.calls = []
        super().__init__(CrossoverParams(), name='scripted')

    def required_indicators(self):
        return self.indicators

    def min_candles(self):
        return self.warmup

    def evaluate(self, ctx: EvaluationContext, position=None) -> Signal:
        self.calls.append((ctx.index, position is not None))
        if position is not None:
            if ctx.index in self.exits:
                opposite = SignalType.SELL if position.direction == 'long' else SignalType.BUY
                return Signal(opposite, reason='scripted exit')
            return Signal.none()
        return self.entries.get(ctx.index, Signal.none())


class AlwaysLongStrategy(StrategyBase):
    """Requests a long entry on every flat candle; levels come from config."""

    def __init__(self):
        super().__init__(CrossoverParams(), name='always_long')

    def required_indicators(self):
        return []

    def min_candles(self):
        return 1

    def evaluate(self, ctx, position=None):
        if position is not None:
            return Signal.none()
        return Signal(SignalType.BUY, reason='always long')


@pytest.fixture
def flat_candles():
    return build_candles([100.0] * 50, spread=0.0)


@pytest.fixture
def walk_candles():
    return random_walk_candles()
