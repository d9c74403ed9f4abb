"""
Transaction Submission State Machine

Drives one purchase from voucher acquisition to an on-chain receipt:

    IDLE -> FETCHING_NONCE -> REQUESTING_VOUCHER -> [APPROVING] -> SUBMITTING
         -> CONFIRMING -> SETTLED | FAILED

Preconditions are checked before an attempt exists; a failed precondition
raises ``PurchaseRejected`` with no state change and no network call. Once an
attempt starts, every failure is captured on the attempt (phase FAILED plus a
human-readable reason) and exactly one terminal event is published. The
session's in-flight guard is always released.
"""

import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Awaitable, Callable, List, Optional, Tuple

from web3 import AsyncWeb3

from ..chain.constants import amount_to_value, parse_decimal
from ..chain.reader import PresaleChainReader
from ..chain.signer import Wallet, WalletSigner
from ..engine.events import (
    EventBus,
    PhaseChangedEvent,
    PurchaseFailedEvent,
    PurchaseSettledEvent,
)
from ..engine.exceptions import (
    ApprovalFailure,
    PresaleError,
    PurchaseInFlightError,
    PurchaseRejected,
    RpcError,
    TransactionRevertError,
    UserRejection,
)
from ..schemas.currencies import ResolvedCurrency
from ..schemas.purchases import PurchasePhase, TransactionAttempt
from ..schemas.vouchers import VoucherResponse
from .acquisition import VoucherAcquirer
from .calculator import compute_usd_value

if TYPE_CHECKING:
    from ..engine.session import PresaleSession

logger = logging.getLogger(__name__)

RefreshCallback = Callable[[], Awaitable[None]]


def describe_failure(exc: BaseException) -> str:
    """
    Human-readable reason for an aborted attempt.

    Priority: backend error payload, contract revert reason, generic error
    message, then "Unknown error".
    """
    backend_message = getattr(exc, "backend_message", None)
    if backend_message:
        return str(backend_message)

    revert_reason = getattr(exc, "revert_reason", None)
    if revert_reason:
        return str(revert_reason)

    if isinstance(exc, PresaleError):
        message = exc.reason
    else:
        message = getattr(exc, "message", None) or str(exc)
    return message or "Unknown error"


class PurchaseStateMachine:
    """
    Runs purchases for one session.

    Args:
        session: Session state (selection, amount, guards, verification)
        reader: Shared chain reader and contract bindings
        wallet: Connected wallet; a fresh signer is requested per attempt
        acquirer: Nonce & voucher acquisition; None when the backend is not configured
        bus: Event bus receiving phase and terminal events
        on_settled: Refresh run once after a settled purchase; errors are logged

    Example:
        machine = PurchaseStateMachine(session, reader, wallet, acquirer, bus)
        attempt = await machine.buy()
        if attempt.phase is PurchasePhase.FAILED:
            print(attempt.error)
    """

    def __init__(
        self,
        session: "PresaleSession",
        reader: PresaleChainReader,
        wallet: Wallet,
        acquirer: Optional[VoucherAcquirer],
        bus: EventBus,
        on_settled: Optional[RefreshCallback] = None,
    ) -> None:
        self.session = session
        self.reader = reader
        self.wallet = wallet
        self.acquirer = acquirer
        self.bus = bus
        self.on_settled = on_settled

    # ---- preconditions ----

    def check_preconditions(self) -> Tuple[ResolvedCurrency, Decimal, int, Decimal]:
        """
        Validate the session before any network call.

        Returns:
            ``(currency, amount, required_amount, usd_amount)``

        Raises:
            PurchaseInFlightError: Another purchase is running.
            PurchaseRejected: Any other precondition failed.
        """
        session = self.session
        settings = self.reader.settings

        if session.purchase_in_flight:
            raise PurchaseInFlightError("A purchase is already in progress")
        if session.claim_in_flight:
            raise PurchaseRejected("A claim is in progress")
        if not self.wallet.is_connected:
            raise PurchaseRejected("Please connect your wallet")
        if not settings.presale_configured:
            raise PurchaseRejected("Presale contract is not configured")
        if not settings.authorizer_configured:
            raise PurchaseRejected("Authorizer contract is not configured")
        if self.acquirer is None:
            raise PurchaseRejected("Authorization backend is not configured")

        currency = session.selected_currency
        if currency is None or not currency.is_active:
            raise PurchaseRejected("Selected currency is not active")

        amount = parse_decimal(session.amount_input)
        if amount <= 0:
            raise PurchaseRejected("Please enter a valid amount")
        try:
            required_amount = amount_to_value(amount=amount, decimals=currency.decimals)
        except ValueError as e:
            raise PurchaseRejected(
                f"Amount has more decimal places than {currency.symbol} supports ({currency.decimals})"
            ) from e

        if settings.require_verification and not session.is_verified:
            raise PurchaseRejected("Identity verification is required before purchasing")

        usd_amount = compute_usd_value(amount, currency.price_usd)
        return currency, amount, required_amount, usd_amount

    # ---- phase bookkeeping ----

    def _enter(self, attempt: TransactionAttempt, phase: PurchasePhase, pending: List[PhaseChangedEvent]) -> None:
        previous = attempt.phase
        attempt.advance(phase)
        logger.debug("Purchase %s: %s -> %s", attempt.currency_symbol, previous.value, phase.value)
        pending.append(PhaseChangedEvent(previous=previous, phase=phase, currency_symbol=attempt.currency_symbol))

    def _fail(self, attempt: TransactionAttempt, reason: str, pending: List[PhaseChangedEvent]) -> None:
        previous = attempt.phase
        attempt.fail(reason)
        pending.append(PhaseChangedEvent(
            previous=previous,
            phase=PurchasePhase.FAILED,
            currency_symbol=attempt.currency_symbol,
        ))

    async def _flush(self, pending: List[PhaseChangedEvent]) -> None:
        while pending:
            await self.bus.notify(pending.pop(0))

    async def _advance(self, attempt: TransactionAttempt, phase: PurchasePhase, pending: List[PhaseChangedEvent]) -> None:
        self._enter(attempt, phase, pending)
        await self._flush(pending)

    # ---- flow ----

    async def buy(self, beneficiary: Optional[str] = None) -> TransactionAttempt:
        """
        Run one purchase for the session's current selection and amount.

        Args:
            beneficiary: Account credited with the tokens; defaults to the buyer

        Returns:
            The attempt, in phase SETTLED or FAILED.

        Raises:
            PurchaseRejected: A precondition failed (no attempt was started).
        """
        currency, amount, required_amount, usd_amount = self.check_preconditions()
        buyer = self.wallet.address
        beneficiary = beneficiary or buyer

        attempt = TransactionAttempt(
            currency_symbol=currency.symbol,
            token_amount=amount,
            required_amount=required_amount,
            usd_amount=usd_amount,
        )
        self.session.last_attempt = attempt
        self.session.purchase_in_flight = True
        pending: List[PhaseChangedEvent] = []

        try:
            await self._run(attempt, currency, buyer, beneficiary, pending)
        except Exception as e:
            reason = describe_failure(e)
            logger.error("Purchase failed during %s: %s", attempt.phase.value, reason)
            await self._flush(pending)
            if not attempt.is_terminal:
                self._fail(attempt, reason, pending)
                await self._flush(pending)
        finally:
            self.session.purchase_in_flight = False

        if attempt.succeeded:
            logger.info("Purchase settled: %s", attempt.tx_hash)
            await self.bus.notify(PurchaseSettledEvent(
                tx_hash=attempt.tx_hash,
                currency_symbol=attempt.currency_symbol,
                token_amount=str(attempt.token_amount),
                approval_tx_hash=attempt.approval_tx_hash,
            ))
            await self._refresh_after_settle()
        else:
            await self.bus.notify(PurchaseFailedEvent(
                reason=attempt.error or "Unknown error",
                phase=attempt.history[-2] if len(attempt.history) > 1 else PurchasePhase.IDLE,
                currency_symbol=attempt.currency_symbol,
                tx_hash=attempt.tx_hash,
            ))
        return attempt

    async def _run(
        self,
        attempt: TransactionAttempt,
        currency: ResolvedCurrency,
        buyer: str,
        beneficiary: str,
        pending: List[PhaseChangedEvent],
    ) -> None:
        issued = await self.acquirer.acquire(
            buyer,
            beneficiary,
            currency,
            attempt.usd_amount,
            on_phase=lambda phase: self._enter(attempt, phase, pending),
        )
        await self._flush(pending)
        attempt.voucher = issued.voucher

        if not currency.is_native:
            await self._advance(attempt, PurchasePhase.APPROVING, pending)
            await self._ensure_allowance(attempt, currency, buyer)

        await self._advance(attempt, PurchasePhase.SUBMITTING, pending)
        signer = self.wallet.get_signer(self.reader.w3)
        attempt.tx_hash = await self._submit(signer, currency, beneficiary, attempt.required_amount, issued)

        await self._advance(attempt, PurchasePhase.CONFIRMING, pending)
        receipt = await signer.wait_for_receipt(attempt.tx_hash)
        if receipt.get("status") != 1:
            raise TransactionRevertError("Transaction reverted on-chain", tx_hash=attempt.tx_hash)

        await self._advance(attempt, PurchasePhase.SETTLED, pending)

    async def _ensure_allowance(
        self,
        attempt: TransactionAttempt,
        currency: ResolvedCurrency,
        buyer: str,
    ) -> None:
        """
        Approve the presale contract iff the allowance is below the required amount.

        The approval receipt is awaited before returning, so the purchase is
        never submitted against a pending approval.
        """
        presale_address = self.reader.settings.presale_address
        try:
            allowance = await self.reader.get_allowance(currency.address, buyer, presale_address)
        except RpcError as e:
            raise ApprovalFailure(f"Allowance check failed: {e.reason}") from e

        if allowance >= attempt.required_amount:
            logger.debug("Allowance %s covers %s, skipping approval", allowance, attempt.required_amount)
            return

        fn_call = self.reader.erc20_contract(currency.address).functions.approve(
            AsyncWeb3.to_checksum_address(presale_address),
            attempt.required_amount,
        )
        signer = self.wallet.get_signer(self.reader.w3)
        try:
            attempt.approval_tx_hash = await signer.send(fn_call)
            receipt = await signer.wait_for_receipt(attempt.approval_tx_hash)
        except UserRejection:
            raise
        except PresaleError as e:
            raise ApprovalFailure(f"Approval failed: {describe_failure(e)}", tx_hash=attempt.approval_tx_hash) from e
        except Exception as e:
            raise ApprovalFailure(f"Approval failed: {e}", tx_hash=attempt.approval_tx_hash) from e

        if receipt.get("status") != 1:
            raise ApprovalFailure("Approval transaction reverted", tx_hash=attempt.approval_tx_hash)
        logger.info("Approved %s %s for presale: %s", attempt.required_amount, currency.symbol, attempt.approval_tx_hash)

    async def _submit(
        self,
        signer: WalletSigner,
        currency: ResolvedCurrency,
        beneficiary: str,
        required_amount: int,
        issued: VoucherResponse,
    ) -> str:
        presale = self.reader.presale_contract()
        voucher_struct = issued.voucher.to_struct()
        signature = issued.signature_bytes()
        beneficiary = AsyncWeb3.to_checksum_address(beneficiary)

        if currency.is_native:
            fn_call = presale.functions.buyWithNativeVoucher(beneficiary, voucher_struct, signature)
            return await signer.send(fn_call, value=required_amount)

        fn_call = presale.functions.buyWithTokenVoucher(
            AsyncWeb3.to_checksum_address(currency.address),
            required_amount,
            beneficiary,
            voucher_struct,
            signature,
        )
        return await signer.send(fn_call)

    async def _refresh_after_settle(self) -> None:
        if self.on_settled is None:
            return
        try:
            await self.on_settled()
        except Exception as e:
            logger.warning("Post-purchase refresh failed: %s", e)
