"""Exchange profile loader for symbol-level trading constraints."""

from functools import lru_cache
from pathlib import Path
from typing import Dict, Any, Optional
import yaml


DEFAULT_EXCHANGE = "bybit"


@lru_cache(maxsize=None)
def _read_profiles(profiles_path: str) -> Dict[str, Any]:
    path = Path(profiles_path)
    if not path.exists():
        raise FileNotFoundError(f"Exchange profiles not found: {path}")
    with open(path, 'r') as f:
        return yaml.safe_load(f) or {}


def load_exchange_profiles(profiles_path: Optional[Path] = None) -> Dict[str, Any]:
    """Load exchange profiles from YAML file.

    The parsed file is cached per path; callers get a read-only view and must
    not mutate it.
    """
    if profiles_path is None:
        profiles_path = Path(__file__).parent / "exchange_profiles.yml"
    return _read_profiles(str(profiles_path))


def get_exchange_profile(exchange: str, profiles_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Get the profile block for an exchange.

    Unknown exchanges resolve to the default exchange (Bybit).

    Args:
        exchange: Exchange name (e.g., 'bybit', 'binance')
        profiles_path: Optional override for the profiles file

    Returns:
        Exchange profile dict
    """
    exchanges = load_exchange_profiles(profiles_path).get('exchanges', {})
    profile = exchanges.get(exchange.lower())
    if profile is None:
        profile = exchanges.get(DEFAULT_EXCHANGE, {})
    return profile


def get_exchange_defaults(exchange: str, profiles_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Get the fallback constraint row for an exchange.

    Exchanges either name a default symbol whose row is reused
    (`default_symbol`) or carry an explicit `default` row.

    Args:
        exchange: Exchange name

    Returns:
        Constraint row dict
    """
    profile = get_exchange_profile(exchange, profiles_path)
    symbols = profile.get('symbols', {})
    if 'default' in profile:
        return dict(profile['default'])
    default_symbol = profile.get('default_symbol')
    if default_symbol and default_symbol in symbols:
        return dict(symbols[default_symbol])
    raise ValueError(f"Exchange profile '{exchange}' has no default constraint row")


def get_symbol_profile(
    symbol: str,
    exchange: str = DEFAULT_EXCHANGE,
    profiles_path: Optional[Path] = None
) -> Optional[Dict[str, Any]]:
    """
    Get the constraint row for a symbol on an exchange.

    Args:
        symbol: Trading symbol (e.g., 'BTCUSDT')
        exchange: Exchange name

    Returns:
        Constraint row dict or None if the symbol is not listed
    """
    profile = get_exchange_profile(exchange, profiles_path)
    row = profile.get('symbols', {}).get(symbol.upper())
    return dict(row) if row is not None else None


def get_slippage_profile(exchange: str, profiles_path: Optional[Path] = None) -> Dict[str, Any]:
    """Get slippage settings (percent) and the high-liquidity symbol list for an exchange."""
    profile = get_exchange_profile(exchange, profiles_path)
    return {
        'slippage_pct': dict(profile.get('slippage_pct', {})),
        'high_liquidity_symbols': list(profile.get('high_liquidity_symbols', [])),
    }
