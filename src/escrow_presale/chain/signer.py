"""
Wallet Signing for Presale Transactions

``WalletSigner`` is the interface the purchase and claim flows use to submit
state-changing contract calls. ``LocalAccountSigner`` signs with a private key
held in process, building transactions the same way for ``approve``,
``buyWith*Voucher`` and ``claimTokens``:

1. Estimate gas and add a 10% buffer (fallback limit if estimation fails
   for a reason other than a contract revert)
2. Price with EIP-1559 fees from ``fee_history``, or legacy ``gas_price``
3. Optionally ask the owner to confirm (models the wallet's approve/reject prompt)
4. Sign, broadcast, and return the transaction hash

``Wallet`` tracks the connected account and hands out a fresh signer for
every mutating call; signers are never cached across attempts.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from eth_account import Account
from web3 import AsyncWeb3
from web3.exceptions import ContractLogicError
from web3.types import TxReceipt

from ..engine.exceptions import ConfigError, TransactionRevertError, UserRejection

logger = logging.getLogger(__name__)

DEFAULT_GAS_LIMIT = 300000
USER_REJECTED_CODE = 4001


@dataclass(frozen=True)
class SigningRequest:
    """What the owner is asked to sign."""
    function_name: str
    to: str
    value: int
    sender: str


ConfirmFunc = Callable[[SigningRequest], Awaitable[bool]]


class WalletSigner(ABC):
    """Submits contract calls on behalf of the connected account."""

    @property
    @abstractmethod
    def address(self) -> str:
        pass

    @abstractmethod
    async def send(self, fn_call: Any, value: int = 0) -> str:
        """
        Sign and broadcast ``fn_call``.

        Returns:
            0x-prefixed transaction hash.

        Raises:
            UserRejection: Owner declined the prompt.
            TransactionRevertError: Call reverts during estimation or broadcast fails.
        """

    @abstractmethod
    async def wait_for_receipt(self, tx_hash: str) -> TxReceipt:
        pass


def is_user_rejection(exc: BaseException) -> bool:
    """Wallet errors carrying EIP-1193 code 4001 mean the user declined."""
    code = getattr(exc, "code", None)
    if code is None and exc.args and isinstance(exc.args[0], dict):
        code = exc.args[0].get("code")
    return code == USER_REJECTED_CODE


class LocalAccountSigner(WalletSigner):
    """
    Signer backed by a local private key.

    Args:
        w3: AsyncWeb3 instance used to estimate, broadcast and wait
        private_key: 0x-prefixed hex private key
        confirm: Optional async callback; returning False rejects the request
        expected_chain_id: Refuse to sign when the node reports another chain
    """

    def __init__(
        self,
        w3: AsyncWeb3,
        private_key: str,
        confirm: Optional[ConfirmFunc] = None,
        expected_chain_id: Optional[int] = None,
    ) -> None:
        if not private_key:
            raise ValueError("Private key is required for signing.")
        self.w3 = w3
        self._account = Account.from_key(private_key)
        self._confirm = confirm
        self._expected_chain_id = expected_chain_id

    @property
    def address(self) -> str:
        return AsyncWeb3.to_checksum_address(self._account.address)

    async def _build_params(self, fn_call: Any, value: int) -> Dict[str, Any]:
        chain_id = await self.w3.eth.chain_id
        if self._expected_chain_id is not None and chain_id != self._expected_chain_id:
            raise ConfigError(
                f"Wallet is on chain {chain_id}, expected chain {self._expected_chain_id}"
            )

        tx_params: Dict[str, Any] = {
            "chainId": chain_id,
            "from": self.address,
            "nonce": await self.w3.eth.get_transaction_count(self.address),
            "value": value,
        }

        try:
            gas_estimate = await fn_call.estimate_gas({"from": self.address, "value": value})
            tx_params["gas"] = int(gas_estimate * 1.1)
        except ContractLogicError as e:
            reason = getattr(e, "message", None) or str(e)
            raise TransactionRevertError(reason, revert_reason=reason) from e
        except Exception as e:
            logger.warning("Gas estimation failed (%s), using default limit", e)
            tx_params["gas"] = DEFAULT_GAS_LIMIT

        try:
            fee_history = await self.w3.eth.fee_history(1, "latest", [25.0])
            base_fee = fee_history["baseFeePerGas"][-1]
            priority_fee = fee_history["reward"][0][0]
            tx_params["maxPriorityFeePerGas"] = priority_fee
            tx_params["maxFeePerGas"] = (base_fee * 2) + priority_fee
        except Exception:
            tx_params["gasPrice"] = await self.w3.eth.gas_price

        return tx_params

    async def send(self, fn_call: Any, value: int = 0) -> str:
        tx_params = await self._build_params(fn_call, value)

        if self._confirm is not None:
            request = SigningRequest(
                function_name=getattr(fn_call, "fn_name", "unknown"),
                to=str(getattr(fn_call, "address", "")),
                value=value,
                sender=self.address,
            )
            if not await self._confirm(request):
                raise UserRejection("User rejected the request.")

        transaction = await fn_call.build_transaction(tx_params)
        signed_tx = self._account.sign_transaction(transaction)
        try:
            tx_hash = await self.w3.eth.send_raw_transaction(signed_tx.raw_transaction)
        except Exception as e:
            if is_user_rejection(e):
                raise UserRejection("User rejected the request.") from e
            raise TransactionRevertError(f"Failed to broadcast transaction: {e}") from e

        tx_hex = AsyncWeb3.to_hex(tx_hash)
        logger.info("Broadcast %s from %s (nonce %s): %s", getattr(fn_call, "fn_name", "call"), self.address, tx_params["nonce"], tx_hex)
        return tx_hex

    async def wait_for_receipt(self, tx_hash: str) -> TxReceipt:
        # web3's default timeout (120s) applies; TimeExhausted propagates
        return await self.w3.eth.wait_for_transaction_receipt(tx_hash)


class Wallet:
    """
    Connected-account holder.

    Example:
        wallet = Wallet(expected_chain_id=1)
        wallet.connect(private_key)
        signer = wallet.get_signer(reader.w3)   # fresh per mutating call
    """

    def __init__(self, confirm: Optional[ConfirmFunc] = None, expected_chain_id: Optional[int] = None) -> None:
        self._private_key: Optional[str] = None
        self._address: Optional[str] = None
        self._confirm = confirm
        self._expected_chain_id = expected_chain_id

    @property
    def address(self) -> Optional[str]:
        return self._address

    @property
    def is_connected(self) -> bool:
        return self._address is not None

    def connect(self, private_key: str) -> str:
        account = Account.from_key(private_key)
        self._private_key = private_key
        self._address = AsyncWeb3.to_checksum_address(account.address)
        return self._address

    def disconnect(self) -> None:
        self._private_key = None
        self._address = None

    def get_signer(self, w3: AsyncWeb3) -> WalletSigner:
        if not self.is_connected:
            raise ConfigError("Wallet is not connected")
        return LocalAccountSigner(
            w3,
            self._private_key,
            confirm=self._confirm,
            expected_chain_id=self._expected_chain_id,
        )
