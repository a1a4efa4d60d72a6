"""Candle-by-candle backtesting engine for a single symbol.

This module implements a backtesting engine that:
- Replays an ordered OHLCV candle series for one symbol
- Asks a strategy for entry and exit signals using only past candles
- Fills orders with slippage, fees and exchange quantity/notional rules
- Tracks margin, balance and running drawdown per step
- Produces deterministic, reproducible results

Key architectural principles:
1. Strategies NEVER know about leverage, margin, fees or exchange constraints
2. Strategy outputs ONLY intent: direction, stop, target, expiry, confidence
3. Engine owns execution, sequencing and state transitions
4. Broker/Account layer handles fills, fees and margin
5. At step i a strategy only sees data up to candle i-1
6. Time is read only from candle timestamps, never from a clock
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional
import logging
import math

import pandas as pd

from config.schema import BacktestConfig
from engine.account import AccountState
from engine.broker import BrokerModel
from engine.candles import validate_candles
from engine.errors import ConfigurationError
from engine.indicator_cache import IndicatorCache, IndicatorView
from engine.market import ExchangeConstraints, constraints_for, realistic_slippage_pct, validate_order
from engine.position_sizer import PositionSizer
from engine.trade_management import ExitCondition, ExitReason, ExitResolver, TrailingStop
from indicators.registry import indicator_key, indicator_warmup
from metrics.metrics import summarize
from strategies.base import EvaluationContext, Signal, StrategyBase
from strategies.registry import build_strategy


# ============================================================================
# Data Models
# ============================================================================

@dataclass
class Position:
    """Open position model.

    Attributes:
        direction: 'long' or 'short'
        quantity: Step-aligned position quantity
        entry_price: Executed entry price (after slippage)
        entry_time: Open time of the entry candle
        entry_index: Candle index of the entry
        stop_loss: Stop loss price (None = no stop)
        take_profit: Take profit price (None = no target)
        margin: Margin locked for this position
        entry_fee: Fee paid on entry
        expires_after: Maximum holding time in minutes (None = no limit)
        trailing: Trailing stop state
        confidence: Confidence of the entry signal
    """
    direction: str
    quantity: float
    entry_price: float
    entry_time: pd.Timestamp
    entry_index: int
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    margin: float = 0.0
    entry_fee: float = 0.0
    expires_after: Optional[float] = None
    trailing: Optional[TrailingStop] = None
    confidence: float = 0.0

    @property
    def notional(self) -> float:
        return self.entry_price * self.quantity

    def minutes_open(self, timestamp: pd.Timestamp) -> float:
        """Holding time in minutes at the given candle time."""
        return (timestamp - self.entry_time).total_seconds() / 60.0


@dataclass(frozen=True)
class Trade:
    """Completed trade model (immutable).

    Attributes:
        entry_time: Entry timestamp
        exit_time: Exit timestamp (strictly after entry_time)
        direction: 'long' or 'short'
        entry_price: Entry fill price
        exit_price: Exit fill price
        quantity: Position quantity
        gross_pnl: P&L before fees
        fees: Entry fee + exit fee
        net_pnl: gross_pnl - fees
        exit_reason: Why the position was closed
        confidence: Confidence of the entry signal
    """
    entry_time: pd.Timestamp
    exit_time: pd.Timestamp
    direction: str
    entry_price: float
    exit_price: float
    quantity: float
    gross_pnl: float
    fees: float
    net_pnl: float
    exit_reason: ExitReason
    confidence: float = 0.0

    def to_dict(self) -> Dict:
        return {
            'entry_time': self.entry_time.isoformat(),
            'exit_time': self.exit_time.isoformat(),
            'direction': self.direction,
            'entry_price': float(self.entry_price),
            'exit_price': float(self.exit_price),
            'quantity': float(self.quantity),
            'gross_pnl': float(self.gross_pnl),
            'fees': float(self.fees),
            'net_pnl': float(self.net_pnl),
            'exit_reason': self.exit_reason.value,
            'confidence': float(self.confidence),
        }


@dataclass(frozen=True)
class SkippedEntry:
    """An entry signal the engine could not execute.

    Attributes:
        timestamp: Open time of the candle the entry was attempted on
        direction: 'long' or 'short'
        reason: Machine-readable code (e.g. 'zero_quantity', 'insufficient_balance')
        detail: Human-readable explanation
        quantity: Quantity that was attempted (0 when sizing produced none)
        price: Fill price that was attempted
    """
    timestamp: pd.Timestamp
    direction: str
    reason: str
    detail: str = ''
    quantity: float = 0.0
    price: float = 0.0

    def to_dict(self) -> Dict:
        return {
            'timestamp': self.timestamp.isoformat(),
            'direction': self.direction,
            'reason': self.reason,
            'detail': self.detail,
            'quantity': float(self.quantity),
            'price': float(self.price),
        }


@dataclass
class BacktestResult:
    """Results of one backtest run.

    Attributes:
        initial_balance: Starting balance
        final_balance: Balance after the last candle
        total_return_pct: Total return in percent
        total_trades: Number of closed trades
        wins: Trades with positive net P&L
        losses: Trades with zero or negative net P&L
        win_rate: Winning trades in percent
        avg_win: Average net P&L of winning trades
        avg_loss: Average net loss of losing trades (positive magnitude)
        max_drawdown_pct: Maximum drawdown in percent
        profit_factor: Gross wins / gross losses (inf without losses)
        sharpe_ratio: Mean / population std of per-step balance returns
        total_fees: Fees paid across all trades
        trades: Closed trades in order
        skipped_entries: Entry signals that could not be executed
        balance_history: Balance per candle
        drawdown_history: Running max drawdown per candle
        strategy_name: Strategy that produced the signals
        symbol: Traded symbol
    """
    initial_balance: float
    final_balance: float
    total_return_pct: float
    total_trades: int
    wins: int
    losses: int
    win_rate: float
    avg_win: float
    avg_loss: float
    max_drawdown_pct: float
    profit_factor: float
    sharpe_ratio: float
    total_fees: float
    trades: List[Trade] = field(default_factory=list)
    skipped_entries: List[SkippedEntry] = field(default_factory=list)
    balance_history: pd.Series = field(default_factory=lambda: pd.Series(dtype=float))
    drawdown_history: pd.Series = field(default_factory=lambda: pd.Series(dtype=float))
    strategy_name: str = ''
    symbol: str = ''

    def to_dict(self, include_history: bool = False) -> Dict:
        """
        Plain-data representation for JSON/YAML export.

        Args:
            include_history: Also export the per-candle balance and drawdown

        Returns:
            Dictionary of metrics, trades and skipped entries
        """
        data = {
            'strategy_name': self.strategy_name,
            'symbol': self.symbol,
            'initial_balance': float(self.initial_balance),
            'final_balance': float(self.final_balance),
            'total_return_pct': float(self.total_return_pct),
            'total_trades': self.total_trades,
            'wins': self.wins,
            'losses': self.losses,
            'win_rate': float(self.win_rate),
            'avg_win': float(self.avg_win),
            'avg_loss': float(self.avg_loss),
            'max_drawdown_pct': float(self.max_drawdown_pct),
            'profit_factor': float(self.profit_factor),
            'sharpe_ratio': float(self.sharpe_ratio),
            'total_fees': float(self.total_fees),
            'trades': [t.to_dict() for t in self.trades],
            'skipped_entries': [s.to_dict() for s in self.skipped_entries],
        }
        if include_history:
            data['balance_history'] = {
                ts.isoformat(): float(v) for ts, v in self.balance_history.items()
            }
            data['drawdown_history'] = {
                ts.isoformat(): float(v) for ts, v in self.drawdown_history.items()
            }
        return data


# ============================================================================
# Backtest Engine
# ============================================================================

class BacktestEngine:
    """Candle-by-candle backtest engine for one symbol.

    An engine instance owns its account, broker, indicator cache and trade
    log. Call run() once per candle series; each call starts from a fresh
    account, so independent runs share no mutable state.
    """

    def __init__(
        self,
        config: BacktestConfig,
        strategy: Optional[StrategyBase] = None,
        constraints: Optional[ExchangeConstraints] = None,
    ):
        """
        Initialize backtest engine.

        Args:
            config: Validated backtest configuration
            strategy: Strategy instance (default: built from config.strategy)
            constraints: Exchange constraints (default: looked up by symbol)
        """
        self.config = config
        self.strategy = strategy if strategy is not None else build_strategy(config.strategy)
        self.constraints = constraints or constraints_for(config.symbol, config.exchange)
        self.logger = logging.getLogger(__name__)

        slippage_pct = config.slippage_pct
        if slippage_pct is None:
            slippage_pct = realistic_slippage_pct(config.symbol, config.exchange)

        self.broker = BrokerModel(
            constraints=self.constraints,
            market_type=config.market_type,
            leverage=config.leverage,
            slippage_pct=slippage_pct,
            order_type=config.order_type,
            maker_fee_pct=config.maker_fee_pct,
            taker_fee_pct=config.taker_fee_pct,
        )
        self.sizer = PositionSizer(config.sizing, self.constraints)
        self.atr_key = indicator_key('atr', config.sizing.volatility_lookback)

        self._reset()

    def _reset(self) -> None:
        self.account = AccountState(available=self.config.initial_balance)
        self.position: Optional[Position] = None
        self.trades: List[Trade] = []
        self.skipped_entries: List[SkippedEntry] = []
        self.cache: Optional[IndicatorCache] = None

    # ------------------------------------------------------------------
    # Pre-run checks
    # ------------------------------------------------------------------

    def _check_configuration(self, n_candles: int) -> None:
        config = self.config
        if config.market_type == 'spot' and config.leverage != 1:
            msg = f"Spot markets require leverage 1, got {config.leverage}"
            self.logger.error(msg)
            raise ConfigurationError(msg)
        if config.leverage > self.constraints.max_leverage:
            msg = (
                f"Leverage {config.leverage} exceeds {self.constraints.exchange} maximum "
                f"{self.constraints.max_leverage} for {self.constraints.symbol}"
            )
            self.logger.error(msg)
            raise ConfigurationError(msg)

        required = self.strategy.required_history()
        if self.config.sizing.mode == 'risk_based':
            required = max(required, indicator_warmup(self.atr_key))
        if n_candles < required:
            msg = (
                f"Strategy '{self.strategy.name}' needs at least {required} candles "
                f"(strategy warm-up and indicator history), got {n_candles}"
            )
            self.logger.error(msg)
            raise ConfigurationError(msg)

    def _indicator_keys(self) -> List[str]:
        keys = list(self.strategy.required_indicators())
        if self.config.sizing.mode == 'risk_based' and self.atr_key not in keys:
            keys.append(self.atr_key)
        return keys

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    def run(self, candles: pd.DataFrame) -> BacktestResult:
        """
        Run the backtest over a candle series.

        Per candle i, in order: trailing stop, stop-loss / take-profit,
        strategy exit signal, holding-time expiry, then (only when flat, no
        position closed on this candle and i is not the last candle) entry
        evaluation on data through i-1. The balance is recorded last.

        Args:
            candles: OHLCV DataFrame indexed by candle open time

        Returns:
            BacktestResult

        Raises:
            CandleDataError: Candle input is malformed
            ConfigurationError: Leverage or history length is unusable
        """
        df = validate_candles(candles)
        self._check_configuration(len(df))
        self._reset()

        self.logger.info(
            f"Starting backtest: {self.config.symbol} on {self.config.exchange} "
            f"({self.config.market_type}), strategy={self.strategy.name}, "
            f"{len(df)} candles from {df.index[0]} to {df.index[-1]}"
        )

        self.cache = IndicatorCache(
            df,
            parallel=self.config.parallel_indicators,
            max_workers=self.config.indicator_workers,
        )
        self.cache.precompute(self._indicator_keys())
        self.strategy.prepare(self.cache)

        opens = df['open'].to_numpy()
        highs = df['high'].to_numpy()
        lows = df['low'].to_numpy()
        closes = df['close'].to_numpy()
        timestamps = df.index
        last = len(df) - 1

        for i in range(len(df)):
            ts = timestamps[i]
            fill_ref = float(opens[i] if self.config.fill_timing == 'open' else closes[i])
            closed_this_step = False

            if self.position is not None and i > self.position.entry_index:
                exit_condition = self._process_exits(i, ts, opens[i], highs[i], lows[i], fill_ref)
                if exit_condition is not None:
                    self._close_position(ts, exit_condition)
                    closed_this_step = True

            if self.position is not None and i == last:
                self._close_position(
                    ts,
                    ExitCondition(
                        ExitReason.END_OF_DATA,
                        self.broker.exit_fill_price(fill_ref, self.position.direction),
                    ),
                )
                closed_this_step = True

            if self.position is None and not closed_this_step and i < last:
                self._process_entries(i, ts, fill_ref)

            self.account.record_balance(ts)

        result = self._create_result()
        self.logger.info(
            f"Backtest complete: {result.total_trades} trades, "
            f"{len(result.skipped_entries)} skipped entries, "
            f"final balance {result.final_balance:.2f} ({result.total_return_pct:+.2f}%), "
            f"max drawdown {result.max_drawdown_pct:.2f}%"
        )
        return result

    # ------------------------------------------------------------------
    # Exits
    # ------------------------------------------------------------------

    def _context(self, i: int, ts: pd.Timestamp) -> EvaluationContext:
        return EvaluationContext(
            index=i,
            timestamp=ts,
            symbol=self.config.symbol,
            view=IndicatorView(self.cache, end=i),
        )

    def _process_exits(
        self,
        i: int,
        ts: pd.Timestamp,
        open_price: float,
        high: float,
        low: float,
        fill_ref: float,
    ) -> Optional[ExitCondition]:
        """Check exit rules for the open position in priority order.

        Args:
            i: Candle index
            ts: Candle open time
            open_price: Candle open
            high: Candle high
            low: Candle low
            fill_ref: Reference price for market fills on this candle

        Returns:
            ExitCondition for the first rule that fires, or None
        """
        pos = self.position

        if pos.trailing is not None:
            profit = TrailingStop.profit_pct(pos.direction, pos.entry_price, fill_ref)
            if pos.trailing.update(profit):
                self.logger.debug(
                    f"Trailing stop hit at {ts}: profit {profit:.4f}% "
                    f"(peak {pos.trailing.peak_profit_pct:.4f}%)"
                )
                return ExitCondition(
                    ExitReason.TRAILING_STOP,
                    self.broker.exit_fill_price(fill_ref, pos.direction),
                )

        level_exit = ExitResolver.resolve(
            pos.direction, pos.stop_loss, pos.take_profit, open_price, high, low
        )
        if level_exit is not None:
            return level_exit

        signal = self.strategy.evaluate(self._context(i, ts), pos)
        if signal.is_entry and signal.direction != pos.direction:
            self.logger.debug(f"Exit signal at {ts}: {signal.reason}")
            return ExitCondition(
                ExitReason.SIGNAL_EXIT,
                self.broker.exit_fill_price(fill_ref, pos.direction),
            )

        if pos.expires_after is not None and pos.minutes_open(ts) >= pos.expires_after:
            return ExitCondition(
                ExitReason.TIME_EXPIRED,
                self.broker.exit_fill_price(fill_ref, pos.direction),
            )

        return None

    def _close_position(self, exit_time: pd.Timestamp, exit_condition: ExitCondition) -> None:
        """Close the open position and create the Trade record.

        Args:
            exit_time: Exit timestamp
            exit_condition: Exit reason and fill price
        """
        pos = self.position
        exit_price = exit_condition.exit_price
        gross_pnl = self.broker.calculate_realized_pnl(
            pos.entry_price, exit_price, pos.quantity, pos.direction
        )
        exit_fee = self.broker.calculate_exit_fee(exit_price, pos.quantity)
        self.account.release(pos.margin, gross_pnl, exit_fee)

        fees = pos.entry_fee + exit_fee
        trade = Trade(
            entry_time=pos.entry_time,
            exit_time=exit_time,
            direction=pos.direction,
            entry_price=pos.entry_price,
            exit_price=exit_price,
            quantity=pos.quantity,
            gross_pnl=gross_pnl,
            fees=fees,
            net_pnl=gross_pnl - fees,
            exit_reason=exit_condition.exit_reason,
            confidence=pos.confidence,
        )
        self.trades.append(trade)
        self.position = None

        self.logger.debug(
            f"Closed {trade.direction} {trade.quantity} @ {exit_price} "
            f"({trade.exit_reason.value}) at {exit_time}: net P&L {trade.net_pnl:.4f}"
        )

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def _skip(
        self,
        ts: pd.Timestamp,
        direction: str,
        reason: str,
        detail: str = '',
        quantity: float = 0.0,
        price: float = 0.0,
    ) -> None:
        skipped = SkippedEntry(ts, direction, reason, detail, quantity, price)
        self.skipped_entries.append(skipped)
        self.logger.debug(f"Skipped {direction} entry at {ts}: {reason} {detail}".rstrip())

    def _resolve_levels(self, signal: Signal, fill_price: float) -> Signal:
        """Anchor strategy levels to the fill and fill gaps from config percentages."""
        anchored = signal.anchor(fill_price)
        sign = 1.0 if signal.direction == 'long' else -1.0
        stop_loss = anchored.stop_loss
        take_profit = anchored.take_profit
        if stop_loss is None and self.config.stop_loss_pct is not None:
            stop_loss = fill_price * (1.0 - sign * self.config.stop_loss_pct / 100.0)
        if take_profit is None and self.config.take_profit_pct is not None:
            take_profit = fill_price * (1.0 + sign * self.config.take_profit_pct / 100.0)
        if stop_loss is anchored.stop_loss and take_profit is anchored.take_profit:
            return anchored
        return Signal(
            signal_type=anchored.signal_type,
            stop_loss=stop_loss,
            take_profit=take_profit,
            reference_price=fill_price,
            time_to_expire=anchored.time_to_expire,
            confidence=anchored.confidence,
            reason=anchored.reason,
            metadata=anchored.metadata,
        )

    def _calculate_quantity(self, view: IndicatorView, fill_price: float, stop_loss: Optional[float]) -> float:
        """Size an entry from the configured sizing mode.

        Args:
            view: Indicator view at the entry step
            fill_price: Expected fill price
            stop_loss: Anchored stop (required for risk-based sizing)

        Returns:
            Step-aligned quantity (0.0 when nothing can be sized)
        """
        if self.config.sizing.mode == 'risk_based':
            atr = view.value(self.atr_key)
            sizing = self.sizer.calculate_optimal_position_size(
                self.account.balance, fill_price, stop_loss, atr
            )
            return sizing.quantity

        notional = self.account.available * self.config.position_size_pct / 100.0
        if self.config.market_type == 'futures':
            notional *= self.config.leverage
        return self.sizer.size_for_notional(notional, fill_price)

    def _process_entries(self, i: int, ts: pd.Timestamp, fill_ref: float) -> None:
        """Evaluate the strategy and open a position if the entry is executable.

        Args:
            i: Candle index (the strategy sees candles < i)
            ts: Candle open time
            fill_ref: Reference fill price on this candle
        """
        ctx = self._context(i, ts)
        signal = self.strategy.evaluate(ctx, None)
        if not signal.is_entry:
            return

        direction = signal.direction
        fill_price = self.broker.entry_fill_price(fill_ref, direction)
        if not (math.isfinite(fill_price) and fill_price > 0):
            self._skip(ts, direction, 'invalid_price', f"fill price {fill_price}")
            return

        signal = self._resolve_levels(signal, fill_price)

        if self.config.sizing.mode == 'risk_based' and signal.stop_loss is None:
            self._skip(ts, direction, 'no_stop_loss', 'risk-based sizing needs a stop', price=fill_price)
            return

        quantity = self._calculate_quantity(ctx.view, fill_price, signal.stop_loss)
        if quantity <= 0:
            self._skip(ts, direction, 'zero_quantity', 'sizing produced no quantity', price=fill_price)
            return

        validation = validate_order(quantity, fill_price, self.constraints)
        if not validation.valid:
            self._skip(ts, direction, 'invalid_order', validation.reason, quantity, fill_price)
            return
        for warning in self.sizer.validate_position_size(quantity, fill_price).warnings:
            self.logger.warning(warning)

        can_afford, required = self.broker.can_afford_position(
            fill_price, quantity, self.account.available
        )
        if not can_afford:
            self._skip(
                ts,
                direction,
                'insufficient_balance',
                f"requires {required:.4f}, available {self.account.available:.4f}",
                quantity,
                fill_price,
            )
            return

        margin = self.broker.calculate_margin_required(fill_price, quantity)
        entry_fee = self.broker.calculate_entry_fee(fill_price, quantity)
        self.account.lock(margin, entry_fee)

        expires_after = signal.time_to_expire
        if expires_after is None:
            expires_after = self.config.max_position_minutes
        trailing = TrailingStop(self.config.trailing_stop) if self.config.trailing_stop.enabled else None

        self.position = Position(
            direction=direction,
            quantity=quantity,
            entry_price=fill_price,
            entry_time=ts,
            entry_index=i,
            stop_loss=signal.stop_loss,
            take_profit=signal.take_profit,
            margin=margin,
            entry_fee=entry_fee,
            expires_after=expires_after,
            trailing=trailing,
            confidence=signal.confidence,
        )
        self.logger.debug(
            f"Opened {direction} {quantity} @ {fill_price} at {ts} "
            f"(SL={signal.stop_loss}, TP={signal.take_profit}, margin={margin:.4f}, fee={entry_fee:.4f}): "
            f"{signal.reason}"
        )

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def _create_result(self) -> BacktestResult:
        balance_history = self.account.get_balance_history()
        summary = summarize(self.trades, balance_history, self.config.initial_balance)
        return BacktestResult(
            trades=list(self.trades),
            skipped_entries=list(self.skipped_entries),
            balance_history=balance_history,
            drawdown_history=self.account.get_drawdown_history(),
            strategy_name=self.strategy.name,
            symbol=self.config.symbol,
            **summary,
        )
