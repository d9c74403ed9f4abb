"""
Presale Contract Constants and Unit Conversion

Fixed-point scales used by the presale contract and the canonical
conversions between human-readable amounts and smallest-unit integers.
"""

from decimal import Decimal, InvalidOperation

#: Marker address the presale contract uses for the chain's native currency.
NATIVE_ADDRESS: str = "0x0000000000000000000000000000000000000000"

#: ``getTokenPrice`` returns USD prices scaled by 10**8. Contract-level
#: constant, independent of the payment token's own decimals.
PRICE_DECIMALS: int = 8

#: ``presaleRate`` (tokens per USD) is scaled by 10**18.
RATE_DECIMALS: int = 18

#: Decimals of the presale token (``totalPurchased``, supply figures).
PRESALE_TOKEN_DECIMALS: int = 18

#: Upper bound accepted for ERC-20 ``decimals``.
MAX_TOKEN_DECIMALS: int = 18


def amount_to_value(*, amount: float | int | str | Decimal, decimals: int) -> int:
    """Convert a human-readable token `amount` into smallest-unit integer `value`.

    This is the canonical conversion used for ``approve``, ``buyWithTokenVoucher``
    and the native ``value`` of ``buyWithNativeVoucher``.

    Args:
        amount: Human-readable amount (e.g. "1.5" ETH). Accepts float/int/str/Decimal.
        decimals: Token decimals (e.g. 6 for USDC).

    Returns:
        int: Smallest-unit integer value.

    Raises:
        ValueError: If inputs are invalid or the amount cannot be represented in smallest units.
    """
    if not isinstance(decimals, int) or decimals < 0:
        raise ValueError("decimals must be a non-negative int")

    try:
        # str() avoids binary-float artefacts (0.1 -> 0.1000000000000000055...)
        dec_amount = amount if isinstance(amount, Decimal) else Decimal(str(amount).strip())
    except (InvalidOperation, ValueError, TypeError) as e:
        raise ValueError(f"Invalid amount: {amount!r}") from e

    if not dec_amount.is_finite():
        raise ValueError(f"Invalid amount: {amount!r}")

    if dec_amount < 0:
        raise ValueError("amount must be non-negative")

    scale = Decimal(10) ** decimals
    scaled = dec_amount * scale

    if scaled != scaled.to_integral_value():
        raise ValueError(
            f"amount {amount!r} is not representable with decimals={decimals} "
            f"(would create fractional smallest units)"
        )

    return int(scaled)


def value_to_amount(*, value: int | str | Decimal, decimals: int) -> Decimal:
    """Convert a smallest-unit integer `value` into a human-readable Decimal amount.

    Args:
        value: Smallest-unit integer value (e.g. 1230000 for 1.23 USDC).
        decimals: Token decimals (e.g. 6 for USDC).

    Returns:
        Decimal: Human-readable amount.

    Raises:
        ValueError: If inputs are invalid.
    """
    if not isinstance(decimals, int) or decimals < 0:
        raise ValueError("decimals must be a non-negative int")

    try:
        dec_value = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as e:
        raise ValueError(f"Invalid value: {value!r}") from e

    if dec_value < 0:
        raise ValueError("value must be non-negative")

    if dec_value != dec_value.to_integral_value():
        raise ValueError("value must be an integer in smallest units")

    return dec_value.scaleb(-decimals)


def parse_decimal(raw: object) -> Decimal:
    """
    Parse user input into a Decimal, returning ``Decimal(0)`` for anything
    empty, unparseable, non-finite or negative.
    """
    if raw is None:
        return Decimal(0)
    try:
        value = raw if isinstance(raw, Decimal) else Decimal(str(raw).strip())
    except (InvalidOperation, ValueError, TypeError):
        return Decimal(0)
    if not value.is_finite() or value < 0:
        return Decimal(0)
    return value
