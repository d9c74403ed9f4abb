"""
Authorization Backend Schema Models

Pydantic models for the JSON exchanged with the authorization backend.
Field aliases carry the wire names; Python attributes use snake_case.

Voucher flow:
1. Client reads ``nonces(buyer)`` from the authorizer contract
2. Client posts a ``VoucherRequest`` to ``/api/presale/voucher``
3. Backend answers with a ``VoucherResponse`` (voucher + signature)
4. Client passes ``Voucher.to_struct()`` and the signature to the presale contract
"""

from decimal import Decimal
from typing import Literal, Optional, Tuple

from eth_utils import to_bytes
from pydantic import ConfigDict, Field, field_serializer
from web3 import AsyncWeb3

from .bases import CanonicalModel


class Voucher(CanonicalModel):
    """
    Signed purchase authorization issued by the backend.

    Authorizes one purchase, for one buyer, up to ``usd_limit``, paid in
    ``payment_token``, valid until ``deadline``. The model is frozen: the
    client never edits or recomputes voucher fields before submission.

    Attributes:
        buyer: Address allowed to spend the voucher
        beneficiary: Address credited with the purchased tokens
        payment_token: ERC-20 address, or the native marker
        usd_limit: USD cap in the contract's fixed-point units
        nonce: Authorizer nonce the voucher is bound to
        deadline: Unix timestamp after which the voucher is invalid
        presale: Presale contract the voucher is valid for
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    buyer: str
    beneficiary: str
    payment_token: str = Field(..., alias="paymentToken")
    usd_limit: int = Field(..., ge=0, alias="usdLimit")
    nonce: int = Field(..., ge=0)
    deadline: int = Field(..., ge=0)
    presale: str

    def to_struct(self) -> Tuple[str, str, str, int, int, int, str]:
        """
        Positional tuple for the contract's ``Voucher`` struct.

        Order is part of the wire contract with the presale contract:
        ``(buyer, beneficiary, paymentToken, usdLimit, nonce, deadline, presale)``.
        Addresses are checksummed for ABI encoding; values are unchanged.
        """
        return (
            AsyncWeb3.to_checksum_address(self.buyer),
            AsyncWeb3.to_checksum_address(self.beneficiary),
            AsyncWeb3.to_checksum_address(self.payment_token),
            self.usd_limit,
            self.nonce,
            self.deadline,
            AsyncWeb3.to_checksum_address(self.presale),
        )


class VoucherResponse(CanonicalModel):
    """Body returned by ``POST /api/presale/voucher``."""

    model_config = ConfigDict(frozen=True)

    voucher: Voucher
    signature: str = Field(..., description="Hex-encoded signature bytes")

    def signature_bytes(self) -> bytes:
        return to_bytes(hexstr=self.signature)


class VoucherRequest(CanonicalModel):
    """Body sent to ``POST /api/presale/voucher``."""

    buyer: str
    beneficiary: str
    payment_token: str = Field(..., alias="paymentToken")
    usd_amount: Decimal = Field(..., ge=0, alias="usdAmount")
    user_id: str = Field(..., alias="userId")
    usernonce: str = Field(..., description="Authorizer nonce as a decimal string")
    decimals: int = Field(..., ge=0, le=18)

    @field_serializer("usd_amount")
    def _serialize_usd_amount(self, value: Decimal) -> float:
        return float(value)


class VerificationStartRequest(CanonicalModel):
    """Body sent to ``POST /api/verify/start``."""

    user_id: str = Field(..., alias="userId")
    email: str
    phone: str
    country: Literal["US", "Other"] = "Other"


class VerificationStatus(CanonicalModel):
    """Body returned by ``GET /api/verify/status/{userId}``."""

    verified: bool = False
    status: Optional[str] = Field(default=None, description="pending / verified / rejected")

    @property
    def effective_status(self) -> str:
        if self.verified:
            return "verified"
        return self.status or "pending"
