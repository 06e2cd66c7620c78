import pytest
from src.index.returns import (
    ReturnAccumulator,
    asset_return,
    compound,
    compound_series,
    dividend_points,
    weighted_yield,
)

# --- Asset return ---

def test_asset_return_price_only():
    assert asset_return(10.5, 10.0) == pytest.approx(0.05)
    assert asset_return(19.6, 20.0) == pytest.approx(-0.02)

def test_asset_return_adds_dividend_back():
    # Price drops by exactly the dividend: total return is zero
    assert asset_return(19.2, 19.6, dividend=0.4) == pytest.approx(0.0)

def test_dividend_points():
    # 0.4 / 20 * 0.5 * 100 = 1 point
    assert dividend_points(0.4, 20.0, 0.5, 100.0) == pytest.approx(1.0)

# --- Compounding ---

def test_compound_identity():
    assert compound(100.0, 0.022) == pytest.approx(102.2)

def test_compound_series_carries_base():
    series = compound_series(100.0, [0.01, -0.02, 0.0])
    assert series[0] == pytest.approx(101.0)
    assert series[1] == pytest.approx(101.0 * 0.98)
    assert series[2] == pytest.approx(series[1])

def test_compound_series_empty():
    assert compound_series(100.0, []) == []

# --- Yield ---

def test_weighted_yield_skips_missing():
    # Only AAA has a yield: 5% regardless of BBB's weight
    assert weighted_yield([(0.6, 0.05), (0.4, None)]) == pytest.approx(5.0)

def test_weighted_yield_average():
    assert weighted_yield([(0.6, 0.05), (0.4, 0.10)]) == pytest.approx(7.0)

def test_weighted_yield_none_available():
    assert weighted_yield([(0.5, None)]) is None
    assert weighted_yield([]) is None

# --- Accumulator ---

def test_accumulator_weighted_sum():
    acc = ReturnAccumulator(100.0)
    acc.add("AAA", 0.6, 10.5, 10.0)
    acc.add("BBB", 0.4, 19.6, 20.0)
    assert acc.daily_change == pytest.approx(2.2)
    assert acc.points == pytest.approx(102.2)
    assert acc.total_weight == pytest.approx(1.0)
    assert acc.dividends_by_ticker == {}
    assert acc.dividend_points == 0.0

def test_accumulator_does_not_renormalize_missing_weight():
    acc = ReturnAccumulator(100.0)
    acc.add("AAA", 0.6, 10.5, 10.0)
    # BBB missing: its 40% counts as a zero return
    assert acc.daily_change == pytest.approx(3.0)
    assert acc.total_weight == pytest.approx(0.6)

def test_accumulator_dividend_tracking():
    acc = ReturnAccumulator(200.0)
    r = acc.add("BBB", 0.5, 19.2, 19.6, dividend=0.4)
    assert r == pytest.approx(0.0)
    assert acc.points == pytest.approx(200.0)
    assert acc.dividends_by_ticker == {"BBB": 0.4}
    assert acc.dividend_points == pytest.approx(0.4 / 19.6 * 0.5 * 200.0)
