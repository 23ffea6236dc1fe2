from decimal import Decimal

import pytest

from stock_sync.core.sync.errors import InvalidPriceAdjustment
from stock_sync.core.sync.price_adjust import (
    PriceAdjustment, parse_adjust_amount, resolve_price_adjustment, to_decimal
)


def test_integer_rounding_example():
    adj = PriceAdjustment(amount=Decimal("50"), round="integer")

    assert adj.apply("100.00") == "150.00"


def test_no_rounding_example():
    adj = PriceAdjustment(amount=Decimal("50.5"), round="none")

    assert adj.apply("100.00") == "150.50"


def test_integer_rounding_half_up():
    adj = PriceAdjustment(amount=Decimal("0.5"), round="integer")

    assert adj.apply("10.00") == "11.00"
    assert adj.apply("10.49") == "11.00"
    assert adj.apply("9.99") == "10.00"


def test_negative_amount_is_not_clamped():
    adj = PriceAdjustment(amount=Decimal("-20"))

    assert adj.apply("15.00") == "-5.00"


def test_default_is_identity():
    assert PriceAdjustment().apply("59.00") == "59.00"


def test_resolve_uses_override_per_field():
    saved = PriceAdjustment(amount=Decimal("5"), round="integer")

    assert resolve_price_adjustment(saved, amount="10") == PriceAdjustment(Decimal("10"), "integer")
    assert resolve_price_adjustment(saved, round_mode="none") == PriceAdjustment(Decimal("5"), "none")


def test_resolve_without_saved_or_override():
    assert resolve_price_adjustment(None) == PriceAdjustment(Decimal("0"), "none")


def test_resolve_blank_amount_falls_back_to_saved():
    saved = PriceAdjustment(amount=Decimal("2.5"))

    assert resolve_price_adjustment(saved, amount="").amount == Decimal("2.5")


def test_dict_round_trip_and_unknown_round():
    adj = PriceAdjustment.from_dict({"amount": "7.25", "round": "integer"})

    assert adj == PriceAdjustment(Decimal("7.25"), "integer")
    assert PriceAdjustment.from_dict(adj.to_dict()) == adj
    assert PriceAdjustment.from_dict({"amount": "1", "round": "weird"}).round == "none"
    assert PriceAdjustment.from_dict(None) == PriceAdjustment()


def test_to_decimal_accepts_decimal_comma_and_garbage():
    assert to_decimal("2,5") == Decimal("2.5")
    assert to_decimal("abc") == Decimal("0")
    assert to_decimal(None) == Decimal("0")


@pytest.mark.parametrize("value", ["nan", "NaN", "Infinity", "-inf", "1e30", "abc", "1000000.01"])
def test_parse_adjust_amount_rejects_unusable_values(value):
    with pytest.raises(InvalidPriceAdjustment):
        parse_adjust_amount(value)


def test_parse_adjust_amount_accepts_bounds_and_comma():
    assert parse_adjust_amount("-1000000") == Decimal("-1000000")
    assert parse_adjust_amount("2,5") == Decimal("2.5")
    assert parse_adjust_amount(5.5) == Decimal("5.5")


def test_resolve_rejects_non_finite_override():
    with pytest.raises(InvalidPriceAdjustment):
        resolve_price_adjustment(PriceAdjustment(), amount="nan")


def test_stored_non_finite_or_huge_amount_is_ignored():
    assert PriceAdjustment.from_dict({"amount": "Infinity"}).amount == Decimal("0")
    assert PriceAdjustment.from_dict({"amount": "NaN"}).amount == Decimal("0")
    assert PriceAdjustment.from_dict({"amount": "1e30"}).amount == Decimal("0")


def test_to_decimal_drops_non_finite():
    assert to_decimal("nan") == Decimal("0")
    assert to_decimal("Infinity", default="1") == Decimal("1")
