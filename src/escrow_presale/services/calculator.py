"""
Purchase Calculator

Pure functions deriving the purchase preview from user input. Degenerate
input (empty, zero, unparseable, non-positive prices) yields zero, never an
error.

Example:
    >>> compute_token_amount("2", Decimal("4200"), Decimal("0.015")) == 560000
    True
"""

from decimal import Decimal
from typing import Optional

from ..chain.constants import parse_decimal
from ..schemas.currencies import ResolvedCurrency
from ..schemas.purchases import PurchaseIntent


def compute_usd_value(amount, price_usd) -> Decimal:
    """``amount * price_usd``; the same value is sent to the backend as ``usdAmount``."""
    amount = parse_decimal(amount)
    price = parse_decimal(price_usd)
    if amount <= 0 or price <= 0:
        return Decimal(0)
    return amount * price


def compute_token_amount(amount, price_usd, token_unit_usd_price) -> Decimal:
    """``(amount * price_usd) / token_unit_usd_price``."""
    unit_price = parse_decimal(token_unit_usd_price)
    if unit_price <= 0:
        return Decimal(0)
    usd_value = compute_usd_value(amount, price_usd)
    if usd_value <= 0:
        return Decimal(0)
    return usd_value / unit_price


def build_intent(
    raw_amount_input: str,
    currency: Optional[ResolvedCurrency],
    token_unit_usd_price: Decimal,
) -> PurchaseIntent:
    """Recompute the preview for the current amount, currency and unit price."""
    raw = raw_amount_input or ""
    if currency is None:
        return PurchaseIntent(raw_amount_input=raw)
    return PurchaseIntent(
        raw_amount_input=raw,
        currency=currency,
        amount=parse_decimal(raw),
        usd_value=compute_usd_value(raw, currency.price_usd),
        token_amount=compute_token_amount(raw, currency.price_usd, token_unit_usd_price),
    )
