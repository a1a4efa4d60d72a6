"""Configuration validation schemas using Pydantic."""

from typing import Literal, Optional, Dict, Any, Tuple, Union
from typing_extensions import Annotated
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pathlib import Path
from datetime import time
import pytz
import yaml


class FrozenModel(BaseModel):
    """Immutable config model; one instance is shared by a whole run."""
    model_config = ConfigDict(frozen=True, extra='forbid')


FilterMode = Literal["strict", "advisory"]


def parse_hhmm(value: str) -> time:
    """Parse 'HH:MM' into a time object."""
    parts = str(value).split(':')
    if len(parts) != 2:
        raise ValueError(f"Invalid time '{value}', expected HH:MM")
    try:
        return time(int(parts[0]), int(parts[1]))
    except ValueError as exc:
        raise ValueError(f"Invalid time '{value}': {exc}") from exc


class PositionSizingConfig(FrozenModel):
    """Position sizing configuration.

    mode options:
    - "fixed_fraction": notional = available balance * position_size_pct * leverage
    - "risk_based": risk budget / stop distance, capped by an ATR volatility size
    """
    mode: Literal["fixed_fraction", "risk_based"] = Field(
        default="fixed_fraction",
        description="Sizing mode: 'fixed_fraction' (percent of balance) or 'risk_based' (risk to stop + ATR)"
    )
    max_risk_percent: float = Field(default=2.0, gt=0.0, le=100.0, description="Risk per trade in percent of balance")
    volatility_lookback: int = Field(default=14, gt=0, description="ATR period for the volatility leg")
    min_position_size: float = Field(default=0.01, ge=0.0, description="Lower clamp on the risk/vol size (base units)")
    max_position_size: float = Field(default=0.1, gt=0.0, description="Upper clamp on the risk/vol size (base units)")
    max_portfolio_risk: float = Field(default=10.0, gt=0.0, description="Total risk budget for the portfolio adjustment")
    regime_multiplier: float = Field(default=1.0, gt=0.0, description="Market regime size multiplier (1.0 = neutral)")
    correlation_factor: float = Field(default=1.0, gt=0.0, le=1.0, description="Correlation haircut for portfolio sizing")

    @model_validator(mode='after')
    def check_bounds(self):
        """Min position size must not exceed max position size."""
        if self.min_position_size > self.max_position_size:
            raise ValueError(
                f"min_position_size ({self.min_position_size}) exceeds max_position_size ({self.max_position_size})"
            )
        return self


class TrailingStopConfig(FrozenModel):
    """Trailing stop configuration.

    Profit is measured in percent from the entry price at the configured fill
    price. The stop activates once profit exceeds activation_pct and triggers
    when profit falls trail_pct below the running peak:
    - "relative": profit < peak * (1 - trail_pct / 100)
    - "points": profit <= peak - trail_pct
    """
    enabled: bool = False
    trail_pct: float = Field(default=1.0, gt=0.0, description="Trailing distance in percent")
    activation_pct: float = Field(default=0.0, ge=0.0, description="Profit percent that arms the trailing stop")
    trail_mode: Literal["relative", "points"] = Field(default="relative")


class CrossoverParams(FrozenModel):
    """Moving-average crossover strategy parameters."""
    kind: Literal["crossover"] = "crossover"
    ma_type: Literal["sma", "ema"] = "sma"
    fast_period: int = Field(default=9, gt=0)
    slow_period: int = Field(default=21, gt=0)
    rsi_period: int = Field(default=14, gt=0)
    rsi_overbought: float = Field(default=75.0, gt=0.0, lt=100.0)
    rsi_oversold: float = Field(default=25.0, gt=0.0, lt=100.0)
    volume_multiplier: float = Field(default=0.9, ge=0.0)
    volume_lookback: int = Field(default=20, gt=0)
    atr_period: int = Field(default=14, gt=0)
    atr_sl_multiplier: float = Field(default=2.0, gt=0.0)
    atr_tp_multiplier: float = Field(default=3.0, gt=0.0)
    adx_period: int = Field(default=14, gt=0)
    adx_threshold: float = Field(default=20.0, ge=0.0)
    bollinger_period: int = Field(default=20, gt=1)
    bollinger_std: float = Field(default=2.0, gt=0.0)
    min_trend_strength: float = Field(default=0.4, ge=0.0, le=1.0)
    max_position_time: Optional[int] = Field(default=240, gt=0, description="Minutes before a position expires")
    filter_mode: FilterMode = "strict"

    @model_validator(mode='after')
    def check_consistency(self):
        """Fast MA must be faster than slow MA; stop must sit closer than target."""
        if self.fast_period >= self.slow_period:
            raise ValueError(f"fast_period ({self.fast_period}) must be below slow_period ({self.slow_period})")
        if self.atr_sl_multiplier >= self.atr_tp_multiplier:
            raise ValueError(
                f"atr_sl_multiplier ({self.atr_sl_multiplier}) must be below atr_tp_multiplier ({self.atr_tp_multiplier})"
            )
        if self.rsi_oversold >= self.rsi_overbought:
            raise ValueError("rsi_oversold must be below rsi_overbought")
        return self


class MTFMomentumParams(FrozenModel):
    """Multi-timeframe momentum strategy parameters.

    Higher timeframes are built from the base candles in fixed-size chunks
    (timeframe_factors, e.g. 5 and 15 base candles).
    """
    kind: Literal["mtf_momentum"] = "mtf_momentum"
    rsi_period: int = Field(default=14, gt=0)
    rsi_entry_threshold: float = Field(default=55.0, gt=0.0, lt=100.0)
    macd_fast: int = Field(default=8, gt=0)
    macd_slow: int = Field(default=21, gt=0)
    macd_signal: int = Field(default=5, gt=0)
    volume_multiplier: float = Field(default=1.3, ge=0.0)
    volume_lookback: int = Field(default=20, gt=0)
    atr_period: int = Field(default=14, gt=0)
    atr_sl_multiplier: float = Field(default=1.2, gt=0.0)
    atr_tp_multiplier: float = Field(default=1.8, gt=0.0)
    max_position_time: Optional[int] = Field(default=20, gt=0)
    timeframe_factors: Tuple[int, int] = (5, 15)
    min_agreement: int = Field(default=2, ge=1, le=3)
    min_candles_per_timeframe: int = Field(default=100, gt=0)
    filter_mode: FilterMode = "strict"

    @model_validator(mode='after')
    def check_consistency(self):
        """MACD periods must be ordered; factors must be increasing; stop closer than target."""
        if self.macd_fast >= self.macd_slow:
            raise ValueError(f"macd_fast ({self.macd_fast}) must be below macd_slow ({self.macd_slow})")
        low, high = self.timeframe_factors
        if not (1 < low < high):
            raise ValueError(f"timeframe_factors must be increasing and > 1, got {self.timeframe_factors}")
        if self.atr_sl_multiplier >= self.atr_tp_multiplier:
            raise ValueError(
                f"atr_sl_multiplier ({self.atr_sl_multiplier}) must be below atr_tp_multiplier ({self.atr_tp_multiplier})"
            )
        return self


class SessionReentryParams(FrozenModel):
    """Session-range reentry strategy parameters.

    The range is accumulated during [session_start, session_end] (inclusive)
    in the named time zone; daylight-saving transitions come from the tz
    database.
    """
    kind: Literal["session_reentry"] = "session_reentry"
    session_start: str = "00:00"
    session_end: str = "03:59"
    timezone: str = "America/New_York"
    stop_loss_pct: float = Field(default=2.5, gt=0.0, lt=100.0)
    take_profit_pct: float = Field(default=7.5, gt=0.0)
    adx_period: int = Field(default=14, gt=0)
    adx_threshold: float = Field(default=20.0, ge=0.0)
    rsi_period: int = Field(default=14, gt=0)
    rsi_lower: float = Field(default=30.0, ge=0.0, le=100.0)
    rsi_upper: float = Field(default=70.0, ge=0.0, le=100.0)
    min_momentum: float = Field(default=10.0, ge=0.0)
    bollinger_period: int = Field(default=20, gt=1)
    bollinger_std: float = Field(default=2.0, gt=0.0)
    bb_position_lower: float = Field(default=0.1, ge=0.0, le=1.0)
    bb_position_upper: float = Field(default=0.9, ge=0.0, le=1.0)
    volume_multiplier: float = Field(default=1.2, ge=0.0)
    volume_lookback: int = Field(default=20, gt=0)
    trend_ema_period: int = Field(default=20, gt=0)
    time_to_expire: Optional[int] = Field(default=240, gt=0)
    min_candles: int = Field(default=200, gt=1)
    filter_mode: FilterMode = "strict"

    @field_validator('session_start', 'session_end')
    @classmethod
    def validate_session_time(cls, v: str) -> str:
        """Session bounds must be HH:MM."""
        parse_hhmm(v)
        return v

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Time zone must exist in the tz database."""
        try:
            pytz.timezone(v)
        except pytz.UnknownTimeZoneError as exc:
            raise ValueError(f"Unknown time zone '{v}'") from exc
        return v

    @model_validator(mode='after')
    def check_consistency(self):
        """Stop must sit closer than target; bands must be ordered."""
        if self.stop_loss_pct >= self.take_profit_pct:
            raise ValueError(
                f"stop_loss_pct ({self.stop_loss_pct}) must be below take_profit_pct ({self.take_profit_pct})"
            )
        if self.rsi_lower >= self.rsi_upper:
            raise ValueError("rsi_lower must be below rsi_upper")
        if self.bb_position_lower >= self.bb_position_upper:
            raise ValueError("bb_position_lower must be below bb_position_upper")
        return self


StrategyParams = Annotated[
    Union[CrossoverParams, MTFMomentumParams, SessionReentryParams],
    Field(discriminator="kind"),
]


class BacktestConfig(FrozenModel):
    """Complete per-run backtest configuration."""
    symbol: str = "BTCUSDT"
    exchange: Literal["bybit", "binance"] = "bybit"
    market_type: Literal["futures", "spot"] = "futures"
    initial_balance: float = Field(default=10000.0, gt=0.0)
    position_size_pct: float = Field(
        default=10.0, gt=0.0, le=100.0,
        description="Percent of available balance committed per entry (fixed_fraction sizing)"
    )
    leverage: float = Field(default=1.0, ge=1.0, le=125.0)
    sizing: PositionSizingConfig = Field(default_factory=PositionSizingConfig)
    maker_fee_pct: Optional[float] = Field(default=None, ge=0.0, description="Override exchange maker fee (percent)")
    taker_fee_pct: Optional[float] = Field(default=None, ge=0.0, description="Override exchange taker fee (percent)")
    order_type: Literal["market", "limit"] = Field(
        default="market",
        description="Entry order type: 'market' pays taker fee, 'limit' pays maker fee"
    )
    slippage_pct: Optional[float] = Field(
        default=None, ge=0.0,
        description="Slippage in percent; None uses the exchange's typical slippage for the symbol"
    )
    fill_timing: Literal["open", "close"] = Field(
        default="open",
        description="Fill at the current bar open (default) or close; signals only see prior bars either way"
    )
    stop_loss_pct: Optional[float] = Field(default=None, gt=0.0, lt=100.0, description="Fallback stop when the signal has none")
    take_profit_pct: Optional[float] = Field(default=None, gt=0.0, description="Fallback target when the signal has none")
    trailing_stop: TrailingStopConfig = Field(default_factory=TrailingStopConfig)
    max_position_minutes: Optional[int] = Field(default=None, gt=0, description="Max holding time when the signal has no expiry")
    parallel_indicators: bool = Field(default=True, description="Precompute indicators concurrently across indicator keys")
    indicator_workers: Optional[int] = Field(default=None, gt=0)
    strategy: StrategyParams = Field(default_factory=CrossoverParams)

    @field_validator('symbol')
    @classmethod
    def normalize_symbol(cls, v: str) -> str:
        """Symbols are upper-case on every supported exchange."""
        if not v or not v.strip():
            raise ValueError("symbol must not be empty")
        return v.strip().upper()

    @model_validator(mode='after')
    def check_consistency(self):
        """Stop must sit closer than target; spot trades without leverage."""
        if (
            self.stop_loss_pct is not None
            and self.take_profit_pct is not None
            and self.stop_loss_pct >= self.take_profit_pct
        ):
            raise ValueError(
                f"stop_loss_pct ({self.stop_loss_pct}) must be below take_profit_pct ({self.take_profit_pct})"
            )
        if self.market_type == "spot" and self.leverage != 1.0:
            raise ValueError("spot markets cannot use leverage; set leverage to 1.0")
        return self


def load_config(config_path: Path) -> Dict[str, Any]:
    """Load YAML configuration file."""
    with open(config_path, 'r') as f:
        return yaml.safe_load(f) or {}


def validate_backtest_config(config_dict: Dict[str, Any]) -> BacktestConfig:
    """Validate and return BacktestConfig object."""
    return BacktestConfig(**config_dict)


def load_and_validate_backtest_config(config_path: Path) -> BacktestConfig:
    """Load and validate backtest configuration from file."""
    config_dict = load_config(config_path)
    return validate_backtest_config(config_dict)


def load_defaults() -> Dict[str, Any]:
    """Load default configuration values."""
    defaults_path = Path(__file__).parent / "defaults.yml"
    return load_config(defaults_path)
