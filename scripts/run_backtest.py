#!/usr/bin/env python3
"""Script to run backtests from command line."""

import argparse
import logging
import sys
from pathlib import Path

import yaml

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from adapters.data.csv_loader import CandleCSVLoader
from config.config_loader import load_backtest_config
from engine.backtest_engine import BacktestEngine, BacktestResult
from engine.errors import BacktestError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Run a candle backtest for one symbol')
    parser.add_argument(
        '--config',
        type=str,
        help='Path to run configuration YAML (merged over config/defaults.yml)'
    )
    parser.add_argument(
        '--data',
        type=str,
        required=True,
        help='Path to candle data file (CSV or Parquet)'
    )
    parser.add_argument(
        '--symbol',
        type=str,
        help='Override the configured symbol (e.g. ETHUSDT)'
    )
    parser.add_argument(
        '--exchange',
        type=str,
        choices=['bybit', 'binance'],
        help='Override the configured exchange'
    )
    parser.add_argument(
        '--output',
        type=str,
        help='Write the result summary and trades to this YAML file'
    )
    parser.add_argument(
        '--log-level',
        type=str,
        default='INFO',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (default: INFO)'
    )
    return parser


def print_summary(result: BacktestResult) -> None:
    print("\n" + "=" * 60)
    print("BACKTEST RESULTS")
    print("=" * 60)
    print(f"Strategy: {result.strategy_name}")
    print(f"Symbol: {result.symbol}")
    print(f"Initial Balance: ${result.initial_balance:,.2f}")
    print(f"Final Balance: ${result.final_balance:,.2f}")
    print(f"Total Return: {result.total_return_pct:.2f}%")
    print(f"Total Trades: {result.total_trades}")
    print(f"Winning Trades: {result.wins}")
    print(f"Losing Trades: {result.losses}")
    print(f"Win Rate: {result.win_rate:.2f}%")
    print(f"Average Win: ${result.avg_win:,.2f}")
    print(f"Average Loss: ${result.avg_loss:,.2f}")
    print(f"Max Drawdown: {result.max_drawdown_pct:.2f}%")
    print(f"Profit Factor: {result.profit_factor:.2f}")
    print(f"Sharpe Ratio: {result.sharpe_ratio:.4f}")
    print(f"Total Fees: ${result.total_fees:,.2f}")
    print(f"Skipped Entries: {len(result.skipped_entries)}")
    print("=" * 60)


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    try:
        config = load_backtest_config(
            args.config,
            overrides={'symbol': args.symbol, 'exchange': args.exchange},
        )
        candles = CandleCSVLoader().load(args.data)
        result = BacktestEngine(config).run(candles)
    except (FileNotFoundError, ValueError, BacktestError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print_summary(result)

    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'w') as f:
            yaml.safe_dump(result.to_dict(), f, sort_keys=False)
        print(f"\nResults saved to: {output_path}")

    return 0


if __name__ == '__main__':
    sys.exit(main())
