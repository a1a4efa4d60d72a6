import math
from dataclasses import replace

import pytest

from config.schema import PositionSizingConfig
from engine.market import constraints_for
from engine.position_sizer import PositionSizer


@pytest.fixture
def sizer():
    return PositionSizer(PositionSizingConfig(), constraints_for("BTCUSDT", "bybit"))


def test_size_is_minimum_of_risk_and_volatility_legs():
    sizer = PositionSizer(
        PositionSizingConfig(max_position_size=100.0),
        constraints_for("BTCUSDT", "bybit"),
    )
    # risk: 10000 * 2% / 100 = 2.0; vol: 10000 * 1% / (2 * 50) = 1.0
    size = sizer.calculate_position_size(10000.0, 50000.0, 49900.0, atr=50.0)
    assert size == pytest.approx(1.0)


def test_size_is_clamped_to_configured_maximum(sizer):
    size = sizer.calculate_position_size(10000.0, 50000.0, 49900.0, atr=50.0)
    assert size == pytest.approx(0.1)


def test_size_is_clamped_to_configured_minimum(sizer):
    # risk leg 10000 * 2% / 25000 = 0.008 is below min_position_size 0.01
    size = sizer.calculate_position_size(10000.0, 50000.0, 25000.0, atr=50.0)
    assert size == pytest.approx(0.01)


def test_regime_multiplier_scales_clamped_size(sizer):
    size = sizer.calculate_position_size(10000.0, 50000.0, 49900.0, atr=50.0, regime_multiplier=0.5)
    assert size == pytest.approx(0.05)


@pytest.mark.parametrize(
    "balance, entry, stop, atr",
    [
        (0.0, 50000.0, 49900.0, 50.0),
        (10000.0, 50000.0, 50000.0, 50.0),
        (10000.0, 50000.0, 49900.0, 0.0),
        (10000.0, 50000.0, 49900.0, math.nan),
        (10000.0, -1.0, 49900.0, 50.0),
    ],
)
def test_unusable_inputs_size_to_zero(sizer, balance, entry, stop, atr):
    assert sizer.calculate_position_size(balance, entry, stop, atr) == 0.0


def test_min_notional_bump(sizer):
    # 0.0001 BTC at 50000 = 5 USDT is below the 10 USDT minimum
    assert sizer.apply_exchange_constraints(0.0001, 50000.0) == pytest.approx(0.001)
    assert sizer.apply_exchange_constraints(0.05, 100.0) == pytest.approx(0.1)


def test_bump_is_capped_at_max_qty(sizer):
    # Price so low that the minimum notional needs more than max_qty
    qty = sizer.apply_exchange_constraints(1.0, 0.05)
    assert qty == pytest.approx(100.0)
    assert qty * 0.05 < 10.0


def test_quantity_above_max_is_floored_to_max(sizer):
    assert sizer.apply_exchange_constraints(250.0, 100.0) == pytest.approx(100.0)


def test_size_for_notional(sizer):
    assert sizer.size_for_notional(1000.0, 100.0) == pytest.approx(10.0)
    assert sizer.size_for_notional(1000.0, 30000.0) == pytest.approx(0.033)
    assert sizer.size_for_notional(0.0, 100.0) == 0.0


def test_portfolio_adjustment(sizer):
    assert sizer.calculate_portfolio_adjusted_size(5.0, 0.0, 10.0) == pytest.approx(5.0)
    # Only 80% of the remaining budget may be allocated
    assert sizer.calculate_portfolio_adjusted_size(5.0, 6.0, 10.0) == pytest.approx(3.2)
    assert sizer.calculate_portfolio_adjusted_size(5.0, 10.0, 10.0) == 0.0
    assert sizer.calculate_portfolio_adjusted_size(5.0, 0.0, 10.0, correlation_factor=0.5) == pytest.approx(2.5)


def test_optimal_position_size_reports_risk(sizer):
    result = sizer.calculate_optimal_position_size(10000.0, 50000.0, 49900.0, atr=50.0)

    assert result.quantity == pytest.approx(0.1)
    assert result.risk_amount == pytest.approx(10.0)
    assert result.risk_percent == pytest.approx(0.1)
    assert result.volatility == 50.0
    # volatility confidence 100 - 1 = 99, regime confidence 100
    assert result.confidence == pytest.approx(99.0)


def test_validate_position_size(sizer):
    ok = sizer.validate_position_size(0.01, 50000.0)
    assert ok.is_valid
    assert ok.warnings == []

    bad = sizer.validate_position_size(0.0005, 50000.0)
    assert not bad.is_valid
    assert any("below minimum quantity" in e for e in bad.errors)

    large = sizer.validate_position_size(100.0, 200000.0)
    assert large.is_valid
    assert any("exceeds maximum" in w for w in large.warnings)


def test_min_above_max_is_rejected():
    with pytest.raises(ValueError):
        PositionSizingConfig(min_position_size=1.0, max_position_size=0.5)


def test_unbounded_max_qty_is_not_a_cap():
    constraints = replace(constraints_for("BTCUSDT", "bybit"), max_qty=math.inf)
    sizer = PositionSizer(PositionSizingConfig(), constraints)

    assert sizer.size_for_notional(5.0, 100.0) == pytest.approx(0.1)
    assert sizer.apply_exchange_constraints(250.0, 100.0) == pytest.approx(250.0)
