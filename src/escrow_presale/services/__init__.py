from .calculator import compute_usd_value, compute_token_amount, build_intent
from .resolver import MetadataResolver, MetadataRefresh, merge_metadata
from .acquisition import VoucherAcquirer
from .purchase import PurchaseStateMachine, describe_failure
from .poller import BalancePoller, SupplyTracker, unit_price_from_rate
from .claim import ClaimFlow

__all__ = [
    "compute_usd_value",
    "compute_token_amount",
    "build_intent",
    "MetadataResolver",
    "MetadataRefresh",
    "merge_metadata",
    "VoucherAcquirer",
    "PurchaseStateMachine",
    "describe_failure",
    "BalancePoller",
    "SupplyTracker",
    "unit_price_from_rate",
    "ClaimFlow",
]
