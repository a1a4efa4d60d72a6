"""Exceptions raised by the backtest engine before a run starts."""


class BacktestError(Exception):
    """Base class for backtest failures."""


class ConfigurationError(BacktestError, ValueError):
    """Run configuration cannot produce a meaningful backtest.

    Raised before the simulation loop starts (e.g. not enough candles for the
    strategy's indicator warm-up, leverage above the exchange cap).
    """


class CandleDataError(BacktestError, ValueError):
    """Candle input is malformed (missing columns, unordered timestamps, empty)."""
