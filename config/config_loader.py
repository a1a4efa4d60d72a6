"""
Layered configuration loading.

A run configuration is built from three layers, later layers winning:

1. config/defaults.yml
2. the run's YAML file (optional)
3. explicit overrides (e.g. from command-line flags)

Nested dicts are merged key by key, except the ``strategy`` block: when a
layer switches strategy ``kind``, the earlier strategy block is replaced
rather than merged, since parameter sets of different kinds do not mix.
"""

from pathlib import Path
from typing import Any, Dict, Optional, Union
import copy
import logging

from config.schema import BacktestConfig, load_config, load_defaults, validate_backtest_config

logger = logging.getLogger(__name__)


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep merge override dict into base dict.

    Values in override take precedence. Nested dicts are merged recursively.

    Args:
        base: Base configuration dictionary
        override: Override configuration dictionary

    Returns:
        Merged configuration dictionary
    """
    result = copy.deepcopy(base)

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)

    return result


def merge_layers(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge one configuration layer onto another, replacing the strategy block on a kind change."""
    base_strategy = base.get('strategy') or {}
    override_strategy = override.get('strategy')
    merged = deep_merge(base, override)
    if isinstance(override_strategy, dict):
        kind = override_strategy.get('kind', base_strategy.get('kind'))
        if kind != base_strategy.get('kind'):
            logger.debug(f"Strategy kind changed to '{kind}', dropping inherited strategy parameters")
            merged['strategy'] = copy.deepcopy(override_strategy)
    return merged


def load_backtest_config(
    config_path: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> BacktestConfig:
    """
    Build a validated BacktestConfig from defaults, a YAML file and overrides.

    Args:
        config_path: Run configuration YAML (optional)
        overrides: Values applied last (None values are ignored)

    Returns:
        Validated BacktestConfig

    Raises:
        FileNotFoundError: config_path does not exist
        pydantic.ValidationError: Merged values are invalid
    """
    merged = load_defaults()

    if config_path is not None:
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        merged = merge_layers(merged, load_config(config_path))
        logger.info(f"Loaded config from {config_path}")

    if overrides:
        merged = merge_layers(merged, {k: v for k, v in overrides.items() if v is not None})

    return validate_backtest_config(merged)
