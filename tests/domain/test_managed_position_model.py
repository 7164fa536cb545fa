"""
Managed Position Model Tests

Threshold maths, P&L, trigger checks and the trailing-stop candidate rule.
"""

import pytest
from decimal import Decimal

from stopguard.domain.models.managed_position import (
    ManagedPosition,
    ManagedPositionStatus,
    PositionSide,
    calculate_thresholds,
)


def make_position(side=PositionSide.LONG, entry="150", sl_pct="2", tp_pct="5", **overrides):
    entry = Decimal(entry)
    sl, tp = calculate_thresholds(entry, Decimal(sl_pct), Decimal(tp_pct), side)
    data = dict(
        symbol="AAPL",
        qty=Decimal("10"),
        side=side,
        entry_price=entry,
        stop_loss_pct=Decimal(sl_pct),
        take_profit_pct=Decimal(tp_pct),
        stop_loss_price=sl,
        take_profit_price=tp,
    )
    data.update(overrides)
    return ManagedPosition(**data)


# ==================== THRESHOLD TESTS ====================

def test_long_thresholds():
    """entry=150, sl=2%, tp=5% -> 147.00 / 157.50"""
    sl, tp = calculate_thresholds(Decimal("150"), Decimal("2"), Decimal("5"), PositionSide.LONG)
    
    assert sl == Decimal("147.00")
    assert tp == Decimal("157.50")


def test_short_thresholds():
    """entry=200, sl=3%, tp=4% -> 206.00 / 192.00"""
    sl, tp = calculate_thresholds(Decimal("200"), Decimal("3"), Decimal("4"), PositionSide.SHORT)
    
    assert sl == Decimal("206.00")
    assert tp == Decimal("192.00")


@pytest.mark.parametrize("entry,sl_pct,tp_pct", [
    ("0.5", "0.1", "0.1"),
    ("150", "2", "5"),
    ("98765.4321", "50", "50"),
])
def test_threshold_ordering(entry, sl_pct, tp_pct):
    """Long: sl < entry < tp. Short: tp < entry < sl."""
    entry = Decimal(entry)
    
    sl, tp = calculate_thresholds(entry, Decimal(sl_pct), Decimal(tp_pct), PositionSide.LONG)
    assert sl < entry < tp
    
    sl, tp = calculate_thresholds(entry, Decimal(sl_pct), Decimal(tp_pct), PositionSide.SHORT)
    assert tp < entry < sl


def test_thresholds_accept_order_side_aliases():
    assert calculate_thresholds(Decimal("100"), Decimal("1"), Decimal("1"), "buy") == (Decimal("99"), Decimal("101"))
    assert calculate_thresholds(Decimal("100"), Decimal("1"), Decimal("1"), "sell") == (Decimal("101"), Decimal("99"))


def test_side_parse():
    assert PositionSide.parse("BUY") == PositionSide.LONG
    assert PositionSide.parse("short") == PositionSide.SHORT
    with pytest.raises(ValueError):
        PositionSide.parse("sideways")


# ==================== P&L TESTS ====================

def test_long_pnl():
    position = make_position()
    
    pl, plpc = position.calculate_pnl(Decimal("153"))
    
    assert pl == Decimal("30")
    assert plpc == Decimal("2")


def test_short_pnl_is_mirrored():
    position = make_position(side=PositionSide.SHORT, entry="200", sl_pct="3", tp_pct="4")
    
    pl, plpc = position.calculate_pnl(Decimal("190"))
    
    assert pl == Decimal("100")
    assert plpc == Decimal("5")


# ==================== TRIGGER TESTS ====================

def test_long_triggers():
    position = make_position()
    
    assert position.stop_loss_hit(Decimal("147"))
    assert position.stop_loss_hit(Decimal("145"))
    assert not position.stop_loss_hit(Decimal("147.01"))
    assert position.take_profit_hit(Decimal("157.50"))
    assert not position.take_profit_hit(Decimal("157.49"))


def test_short_triggers():
    position = make_position(side=PositionSide.SHORT, entry="200", sl_pct="3", tp_pct="4")
    
    assert position.stop_loss_hit(Decimal("206"))
    assert not position.stop_loss_hit(Decimal("205.99"))
    assert position.take_profit_hit(Decimal("192"))
    assert not position.take_profit_hit(Decimal("192.01"))


# ==================== TRAILING TESTS ====================

def test_trailing_candidate_long_only_tightens():
    position = make_position()
    
    assert position.trailing_stop_candidate(Decimal("150")) is None  # 147.00, equal
    assert position.trailing_stop_candidate(Decimal("160")) == Decimal("156.80")
    assert position.trailing_stop_candidate(Decimal("140")) is None


def test_trailing_candidate_short_only_tightens():
    position = make_position(side=PositionSide.SHORT, entry="200", sl_pct="3", tp_pct="4")
    
    assert position.trailing_stop_candidate(Decimal("190")) == Decimal("195.70")
    assert position.trailing_stop_candidate(Decimal("210")) is None


# ==================== CLOSE PRICE TESTS ====================

def test_close_price_fallback_order():
    position = make_position(current_price=Decimal("151"))
    
    assert position.resolve_close_price(Decimal("149"), Decimal("150.5")) == Decimal("149")
    assert position.resolve_close_price(None, Decimal("150.5")) == Decimal("150.5")
    assert position.resolve_close_price() == Decimal("151")


def test_close_price_falls_back_to_entry():
    position = make_position(current_price=None)
    
    assert position.resolve_close_price() == Decimal("150")


def test_status_helpers():
    position = make_position()
    assert position.is_open()
    
    position.status = ManagedPositionStatus.MONITORING
    assert position.is_open()
    
    position.status = ManagedPositionStatus.ERROR
    assert not position.is_open()
    assert not position.is_closed()
    
    position.status = ManagedPositionStatus.CLOSED
    assert position.is_closed()
