"""Smoke tests for scripts/run_backtest.py."""

import importlib.util
from pathlib import Path

import yaml

from conftest import random_walk_candles

SCRIPT = Path(__file__).resolve().parent.parent / 'scripts' / 'run_backtest.py'


def _load_script():
    spec = importlib.util.spec_from_file_location('run_backtest_script', SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_run_writes_yaml_summary(tmp_path):
    data_path = tmp_path / 'candles.csv'
    random_walk_candles(n=400).to_csv(data_path, index_label='timestamp')
    config_path = tmp_path / 'run.yml'
    config_path.write_text(
        "stop_loss_pct: 1.0\n"
        "take_profit_pct: 2.0\n"
        "parallel_indicators: false\n"
        "strategy:\n"
        "  kind: crossover\n"
        "  fast_period: 5\n"
        "  slow_period: 20\n"
        "  filter_mode: advisory\n"
    )
    output_path = tmp_path / 'out' / 'result.yml'

    exit_code = _load_script().main([
        '--config', str(config_path),
        '--data', str(data_path),
        '--symbol', 'ethusdt',
        '--output', str(output_path),
        '--log-level', 'WARNING',
    ])

    assert exit_code == 0
    result = yaml.safe_load(output_path.read_text())
    assert result['symbol'] == 'ETHUSDT'
    assert result['strategy_name'] == 'crossover'
    assert result['initial_balance'] == 10000.0
    assert result['total_trades'] == len(result['trades'])


def test_missing_data_file_returns_error(tmp_path, capsys):
    exit_code = _load_script().main(['--data', str(tmp_path / 'missing.csv')])

    assert exit_code == 1
    assert 'Error' in capsys.readouterr().err
