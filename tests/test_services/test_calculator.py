"""
Tests for the purchase preview calculator.
"""
from decimal import Decimal

import pytest

from escrow_presale.chain.catalog import build_fallback_metadata, resolve_currencies
from escrow_presale.services.calculator import build_intent, compute_token_amount, compute_usd_value


def test_worked_example():
    assert compute_token_amount("2", Decimal("4200"), Decimal("0.015")) == Decimal("560000")


def test_stablecoin_purchase():
    assert compute_token_amount("150", Decimal("1"), Decimal("0.015")) == Decimal("10000")


@pytest.mark.parametrize("amount", ["", "0", "abc", None, "-5"])
def test_degenerate_amount_yields_zero(amount):
    assert compute_token_amount(amount, Decimal("4200"), Decimal("0.015")) == 0


@pytest.mark.parametrize("price,unit_price", [
    (Decimal("0"), Decimal("0.015")),
    (Decimal("-1"), Decimal("0.015")),
    (Decimal("4200"), Decimal("0")),
    (Decimal("4200"), Decimal("-0.015")),
])
def test_non_positive_prices_yield_zero(price, unit_price):
    assert compute_token_amount("2", price, unit_price) == 0


def test_usd_value_uses_same_formula():
    assert compute_usd_value("2", Decimal("4200")) == Decimal("8400")
    assert compute_usd_value("", Decimal("4200")) == 0


def test_build_intent_is_idempotent():
    eth = resolve_currencies(build_fallback_metadata())[0]
    first = build_intent("2", eth, Decimal("0.015"))
    second = build_intent("2", eth, Decimal("0.015"))

    assert first == second
    assert first.usd_value == Decimal("8400")
    assert first.token_amount == Decimal("560000")
    assert first.amount == Decimal("2")


def test_build_intent_without_currency():
    intent = build_intent("2", None, Decimal("0.015"))
    assert intent.token_amount == 0
    assert intent.currency is None
