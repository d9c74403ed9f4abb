"""
Exception and Error Definitions Module

Defines the exception hierarchy for presale purchase orchestration: contract
reads, voucher acquisition, wallet signing and on-chain submission. All
exceptions inherit from PresaleError for unified exception handling.

Exception Hierarchy:
    PresaleError (root)
    ├── ConfigError
    ├── RpcError
    ├── VoucherRequestError
    │   └── StaleVoucherError
    ├── ApprovalFailure (alias: AllowanceError)
    ├── TransactionRevertError
    ├── UserRejection
    ├── PurchaseRejected
    │   └── PurchaseInFlightError
    ├── ClaimUnavailableError
    └── InvalidTransition
"""

from typing import Optional


class PresaleError(Exception):
    """
    Root exception class for all presale-specific exceptions.

    Carries a human-readable ``reason`` suitable for a user-facing
    notification. ``str(exc)`` returns the same text.
    """

    def __init__(self, reason: str = "", *args) -> None:
        super().__init__(reason, *args)
        self.reason = reason

    def __str__(self) -> str:
        return self.reason or self.__class__.__name__


class ConfigError(PresaleError):
    """
    Raised when configuration is missing or still a placeholder.

    This includes scenarios such as:
    - Presale contract address unset or containing ``...``
    - Authorizer contract address unset
    - Authorization backend URL unset

    Read paths degrade to fallback data instead of surfacing this error.
    """
    pass


class RpcError(PresaleError):
    """
    Raised when a read-only chain call fails.

    This includes scenarios such as:
    - RPC node unreachable or timing out
    - View call reverted
    - Malformed return data

    Attributes:
        method: Contract function or RPC method that was called
    """

    def __init__(self, reason: str = "", method: Optional[str] = None) -> None:
        super().__init__(reason)
        self.method = method


class VoucherRequestError(PresaleError):
    """
    Raised when the authorization backend rejects or cannot serve a voucher.

    Attributes:
        backend_message: Error text returned by the backend, kept verbatim
        status_code: HTTP status code when a response was received
    """

    def __init__(
        self,
        reason: str = "",
        backend_message: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(reason)
        self.backend_message = backend_message
        self.status_code = status_code


class StaleVoucherError(VoucherRequestError):
    """
    Raised when the issued voucher does not carry the nonce that was just read.

    A stale voucher would be rejected on-chain as already consumed or
    invalid, so it is never submitted.

    Attributes:
        expected_nonce: Nonce read from the authorizer
        voucher_nonce: Nonce carried by the voucher
    """

    def __init__(self, reason: str = "", expected_nonce: Optional[int] = None, voucher_nonce: Optional[int] = None) -> None:
        super().__init__(reason)
        self.expected_nonce = expected_nonce
        self.voucher_nonce = voucher_nonce


class ApprovalFailure(PresaleError):
    """
    Raised when an ERC-20 approval cannot be completed.

    This includes scenarios such as:
    - Allowance query failed
    - ``approve`` transaction reverted
    - ``approve`` receipt reported failure

    Attributes:
        tx_hash: Approval transaction hash if it was broadcast
    """

    def __init__(self, reason: str = "", tx_hash: Optional[str] = None) -> None:
        super().__init__(reason)
        self.tx_hash = tx_hash


AllowanceError = ApprovalFailure


class TransactionRevertError(PresaleError):
    """
    Raised when a purchase or claim transaction reverts.

    Attributes:
        tx_hash: Transaction hash if available
        revert_reason: Revert reason decoded from the node, if any
    """

    def __init__(self, reason: str = "", tx_hash: Optional[str] = None, revert_reason: Optional[str] = None) -> None:
        super().__init__(reason)
        self.tx_hash = tx_hash
        self.revert_reason = revert_reason


class UserRejection(PresaleError):
    """
    Raised when the wallet owner declines a signing prompt.
    """
    pass


class PurchaseRejected(PresaleError):
    """
    Raised when a purchase request fails a precondition.

    No attempt is created, no state changes and no network call is made.
    """
    pass


class PurchaseInFlightError(PurchaseRejected):
    """
    Raised when a purchase is requested while another attempt is in flight.
    """
    pass


class ClaimUnavailableError(PresaleError):
    """
    Raised when a claim is requested but cannot start.

    This includes scenarios such as:
    - Wallet not connected
    - ``canClaim`` is false
    - A claim or purchase is already in flight
    """
    pass


class InvalidTransition(PresaleError):
    """
    Raised when a purchase attempt is moved to a phase that is not a
    legal successor of its current phase.

    Attributes:
        current_phase: Phase the attempt was in
        requested_phase: Phase that was requested
    """

    def __init__(self, reason: str = "", current_phase=None, requested_phase=None) -> None:
        super().__init__(reason)
        self.current_phase = current_phase
        self.requested_phase = requested_phase
