"""
Nonce & Voucher Acquisition

Two sequential steps per acquisition, with nothing awaited in between:

1. ``nonces(buyer)`` on the authorizer contract
2. ``POST /api/presale/voucher`` carrying that nonce as ``usernonce``

The nonce is never cached across attempts. A voucher whose nonce differs from
the one just read is stale and is never returned; the whole acquisition is
re-run up to ``max_retries`` times, then ``StaleVoucherError`` is raised.
"""

import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Callable, Optional

from ..chain.reader import PresaleChainReader
from ..engine.exceptions import StaleVoucherError
from ..schemas.currencies import ResolvedCurrency
from ..schemas.purchases import PurchasePhase
from ..schemas.vouchers import VoucherRequest, VoucherResponse

if TYPE_CHECKING:
    from ..clients.backend_client import AuthorizationClient

logger = logging.getLogger(__name__)

PhaseCallback = Callable[[PurchasePhase], None]


class VoucherAcquirer:
    """
    Fetches a fresh nonce and a voucher bound to it.

    Args:
        reader: Chain reader used for ``nonces(buyer)``
        backend: Authorization backend client
        max_retries: Extra acquisitions allowed after a stale voucher
    """

    def __init__(self, reader: PresaleChainReader, backend: "AuthorizationClient", max_retries: int = 1) -> None:
        self.reader = reader
        self.backend = backend
        self.max_retries = max_retries

    async def acquire(
        self,
        buyer: str,
        beneficiary: str,
        currency: ResolvedCurrency,
        usd_amount: Decimal,
        user_id: Optional[str] = None,
        on_phase: Optional[PhaseCallback] = None,
    ) -> VoucherResponse:
        """
        Read the buyer's nonce, then immediately request a voucher for it.

        Args:
            buyer: Connected account
            beneficiary: Account credited with the purchase
            currency: Payment currency (address and live decimals are sent)
            usd_amount: Purchase value in USD, computed like the preview
            user_id: Backend user id; defaults to the buyer address
            on_phase: Called (synchronously) before each step with
                FETCHING_NONCE / REQUESTING_VOUCHER

        Raises:
            RpcError: Nonce read failed; no voucher is requested.
            VoucherRequestError: Backend rejected or was unreachable.
            StaleVoucherError: Voucher nonce kept mismatching the read nonce.
        """
        attempts = self.max_retries + 1
        for attempt in range(1, attempts + 1):
            if on_phase is not None:
                on_phase(PurchasePhase.FETCHING_NONCE)
            nonce = await self.reader.get_nonce(buyer)

            if on_phase is not None:
                on_phase(PurchasePhase.REQUESTING_VOUCHER)
            issued = await self.backend.request_voucher(VoucherRequest(
                buyer=buyer,
                beneficiary=beneficiary,
                payment_token=currency.address,
                usd_amount=usd_amount,
                user_id=user_id or buyer,
                usernonce=str(nonce),
                decimals=currency.decimals,
            ))

            if issued.voucher.nonce == nonce:
                return issued

            logger.warning(
                "Stale voucher for %s (read nonce %s, voucher nonce %s), attempt %s/%s",
                buyer, nonce, issued.voucher.nonce, attempt, attempts,
            )
            last_voucher_nonce = issued.voucher.nonce

        raise StaleVoucherError(
            "Voucher nonce does not match the current authorizer nonce",
            expected_nonce=nonce,
            voucher_nonce=last_voucher_nonce,
        )
