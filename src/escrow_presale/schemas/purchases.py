"""
Purchase Attempt and Display Schema Models

    - PurchasePhase: phases of one purchase attempt
    - TransactionAttempt: mutable state of one attempt, with validated transitions
    - PurchaseIntent: derived preview of what the current input would buy
    - BalanceSnapshot / SupplyStats: polled display figures
    - ClaimResult: outcome of a claim
"""

from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from pydantic import ConfigDict, Field

from ..engine.exceptions import InvalidTransition
from .bases import CanonicalModel
from .currencies import ResolvedCurrency
from .vouchers import Voucher


def _quantize(value: Decimal, places: int) -> str:
    return str(value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP))


class PurchasePhase(str, Enum):
    IDLE = "idle"
    FETCHING_NONCE = "fetching_nonce"
    REQUESTING_VOUCHER = "requesting_voucher"
    APPROVING = "approving"
    SUBMITTING = "submitting"
    CONFIRMING = "confirming"
    SETTLED = "settled"
    FAILED = "failed"


# REQUESTING_VOUCHER -> FETCHING_NONCE is the stale-voucher re-acquisition
ALLOWED_TRANSITIONS: Dict[PurchasePhase, FrozenSet[PurchasePhase]] = {
    PurchasePhase.IDLE: frozenset({PurchasePhase.FETCHING_NONCE, PurchasePhase.FAILED}),
    PurchasePhase.FETCHING_NONCE: frozenset({PurchasePhase.REQUESTING_VOUCHER, PurchasePhase.FAILED}),
    PurchasePhase.REQUESTING_VOUCHER: frozenset({
        PurchasePhase.FETCHING_NONCE,
        PurchasePhase.APPROVING,
        PurchasePhase.SUBMITTING,
        PurchasePhase.FAILED,
    }),
    PurchasePhase.APPROVING: frozenset({PurchasePhase.SUBMITTING, PurchasePhase.FAILED}),
    PurchasePhase.SUBMITTING: frozenset({PurchasePhase.CONFIRMING, PurchasePhase.FAILED}),
    PurchasePhase.CONFIRMING: frozenset({PurchasePhase.SETTLED, PurchasePhase.FAILED}),
    PurchasePhase.SETTLED: frozenset(),
    PurchasePhase.FAILED: frozenset(),
}

TERMINAL_PHASES: FrozenSet[PurchasePhase] = frozenset({PurchasePhase.SETTLED, PurchasePhase.FAILED})


class TransactionAttempt(CanonicalModel):
    """
    Ephemeral state of one purchase.

    Phases only move along ``ALLOWED_TRANSITIONS``; ``advance`` raises
    ``InvalidTransition`` otherwise. ``history`` records every phase entered,
    starting with IDLE.

    Attributes:
        phase: Current phase
        error: Human-readable failure reason (FAILED only)
        currency_symbol: Payment currency
        token_amount: Payment amount in human units
        required_amount: Payment amount in the currency's smallest units
        usd_amount: USD value sent to the backend
        voucher: Voucher used for submission, once acquired
        approval_tx_hash: Approval transaction, if one was needed
        tx_hash: Purchase transaction
    """

    phase: PurchasePhase = PurchasePhase.IDLE
    error: Optional[str] = None
    currency_symbol: str
    token_amount: Decimal
    required_amount: int = Field(..., ge=0)
    usd_amount: Decimal
    voucher: Optional[Voucher] = None
    approval_tx_hash: Optional[str] = None
    tx_hash: Optional[str] = None
    history: List[PurchasePhase] = Field(default_factory=lambda: [PurchasePhase.IDLE])

    @property
    def is_terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES

    @property
    def in_flight(self) -> bool:
        return self.phase not in TERMINAL_PHASES and self.phase != PurchasePhase.IDLE

    @property
    def succeeded(self) -> bool:
        return self.phase == PurchasePhase.SETTLED

    def advance(self, phase: PurchasePhase) -> None:
        if phase not in ALLOWED_TRANSITIONS[self.phase]:
            raise InvalidTransition(
                f"Cannot move from {self.phase.value} to {phase.value}",
                current_phase=self.phase,
                requested_phase=phase,
            )
        self.phase = phase
        self.history.append(phase)

    def fail(self, reason: str) -> None:
        self.advance(PurchasePhase.FAILED)
        self.error = reason


class PurchaseIntent(CanonicalModel):
    """
    Preview of the current input. Derived on every input change, never persisted.

    ``usd_value`` is the value later sent to the backend as ``usdAmount``;
    ``token_amount`` is the presale-token preview.
    """

    model_config = ConfigDict(frozen=True)

    raw_amount_input: str = ""
    currency: Optional[ResolvedCurrency] = None
    amount: Decimal = Decimal(0)
    usd_value: Decimal = Decimal(0)
    token_amount: Decimal = Decimal(0)


class BalanceSnapshot(CanonicalModel):
    """Wallet balance of the selected currency and escrowed presale tokens."""

    model_config = ConfigDict(frozen=True)

    wallet_balance: Decimal = Decimal(0)
    escrow_balance: Decimal = Decimal(0)

    @property
    def display_wallet_balance(self) -> str:
        return _quantize(self.wallet_balance, 6)

    @property
    def display_escrow_balance(self) -> str:
        return _quantize(self.escrow_balance, 6)


class SupplyStats(CanonicalModel):
    """Global presale figures read from the presale contract."""

    model_config = ConfigDict(frozen=True)

    max_supply: Decimal
    minted: Decimal = Decimal(0)
    can_claim: bool = False
    token_usd_price: Decimal

    @property
    def remaining(self) -> Decimal:
        return max(self.max_supply - self.minted, Decimal(0))

    @property
    def display_price(self) -> str:
        return _quantize(self.token_usd_price, 3)


class ClaimResult(CanonicalModel):
    """Outcome of one ``claimTokens()`` call."""

    success: bool
    tx_hash: Optional[str] = None
    error: Optional[str] = None
