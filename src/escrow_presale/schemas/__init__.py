from .bases import CanonicalModel, Refreshed
from .currencies import CurrencyDefinition, TokenMetadata, ResolvedCurrency
from .vouchers import Voucher, VoucherResponse, VoucherRequest, VerificationStartRequest, VerificationStatus
from .purchases import (
    PurchasePhase,
    TransactionAttempt,
    PurchaseIntent,
    BalanceSnapshot,
    SupplyStats,
    ClaimResult,
    ALLOWED_TRANSITIONS,
    TERMINAL_PHASES,
)

__all__ = [
    "CanonicalModel",
    "Refreshed",
    "CurrencyDefinition",
    "TokenMetadata",
    "ResolvedCurrency",
    "Voucher",
    "VoucherResponse",
    "VoucherRequest",
    "VerificationStartRequest",
    "VerificationStatus",
    "PurchasePhase",
    "TransactionAttempt",
    "PurchaseIntent",
    "BalanceSnapshot",
    "SupplyStats",
    "ClaimResult",
    "ALLOWED_TRANSITIONS",
    "TERMINAL_PHASES",
]
