"""
Read-only Presale Contract Bindings

``PresaleChainReader`` owns the shared ``AsyncWeb3`` handle and the presale /
authorizer contract bindings. Bindings are stateless and safe to reuse across
concurrent reads. Every failure is translated into ``RpcError`` so callers
decide per call site whether to degrade or abort.
"""

import asyncio
import logging
from typing import Any, Optional, Tuple

from web3 import AsyncWeb3
from web3.contract import AsyncContract

from ..config import PresaleSettings
from ..engine.exceptions import ConfigError, RpcError
from .abis import get_authorizer_abi, get_erc20_abi, get_presale_abi

logger = logging.getLogger(__name__)


class PresaleChainReader:
    """
    View-call access to the presale, authorizer and ERC-20 contracts.

    Args:
        settings: Presale configuration (RPC URL, contract addresses, timeout)
        w3: Optional pre-built AsyncWeb3 instance. Created lazily from
            ``settings.rpc_url`` when omitted.

    Example:
        reader = PresaleChainReader(load_settings())
        raw_price, is_active, decimals = await reader.get_token_price(usdc_address)
        nonce = await reader.get_nonce(buyer)
    """

    def __init__(self, settings: PresaleSettings, w3: Optional[AsyncWeb3] = None) -> None:
        self.settings = settings
        self._w3 = w3
        self._presale: Optional[AsyncContract] = None
        self._authorizer: Optional[AsyncContract] = None

    @property
    def w3(self) -> AsyncWeb3:
        if self._w3 is None:
            self._w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(
                self.settings.rpc_url,
                request_kwargs={"timeout": self.settings.request_timeout},
            ))
        return self._w3

    def presale_contract(self) -> AsyncContract:
        """Shared presale binding. Raises ConfigError when the address is a placeholder."""
        if not self.settings.presale_configured:
            raise ConfigError("Presale contract address is not configured")
        if self._presale is None:
            self._presale = self.w3.eth.contract(
                address=AsyncWeb3.to_checksum_address(self.settings.presale_address),
                abi=get_presale_abi(),
            )
        return self._presale

    def authorizer_contract(self) -> AsyncContract:
        """Shared authorizer binding. Raises ConfigError when the address is unset."""
        if not self.settings.authorizer_configured:
            raise ConfigError("Authorizer contract address is not configured")
        if self._authorizer is None:
            self._authorizer = self.w3.eth.contract(
                address=AsyncWeb3.to_checksum_address(self.settings.authorizer_address),
                abi=get_authorizer_abi(),
            )
        return self._authorizer

    def erc20_contract(self, token_address: str) -> AsyncContract:
        return self.w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(token_address),
            abi=get_erc20_abi(),
        )

    async def _call(self, method: str, fn) -> Any:
        try:
            return await fn.call()
        except Exception as e:
            raise RpcError(f"{method} failed: {e}", method=method) from e

    # ---- presale views ----

    async def get_token_price(self, token_address: str) -> Tuple[int, bool, int]:
        """
        Read ``getTokenPrice(token)``.

        Returns:
            ``(raw_price, is_active, decimals)`` where ``raw_price`` is the USD
            price scaled by 10**8.
        """
        contract = self.presale_contract()
        fn = contract.functions.getTokenPrice(AsyncWeb3.to_checksum_address(token_address))
        raw_price, is_active, decimals = await self._call("getTokenPrice", fn)
        return int(raw_price), bool(is_active), int(decimals)

    async def get_total_purchased(self, address: str) -> int:
        """Buyer's escrowed presale tokens in smallest units (18 decimals)."""
        contract = self.presale_contract()
        fn = contract.functions.totalPurchased(AsyncWeb3.to_checksum_address(address))
        return int(await self._call("totalPurchased", fn))

    async def get_supply_snapshot(self) -> Tuple[int, int, bool, int]:
        """
        Read supply figures concurrently.

        Returns:
            ``(max_tokens_to_mint, total_tokens_minted, can_claim, presale_rate)``
            as raw contract values.
        """
        contract = self.presale_contract()
        max_supply, minted, can_claim, rate = await asyncio.gather(
            self._call("maxTokensToMint", contract.functions.maxTokensToMint()),
            self._call("totalTokensMinted", contract.functions.totalTokensMinted()),
            self._call("canClaim", contract.functions.canClaim()),
            self._call("presaleRate", contract.functions.presaleRate()),
        )
        return int(max_supply), int(minted), bool(can_claim), int(rate)

    # ---- authorizer views ----

    async def get_nonce(self, buyer: str) -> int:
        """Current anti-replay nonce for ``buyer``. Never cached."""
        contract = self.authorizer_contract()
        fn = contract.functions.nonces(AsyncWeb3.to_checksum_address(buyer))
        return int(await self._call("nonces", fn))

    # ---- ERC-20 / account views ----

    async def get_allowance(self, token_address: str, owner: str, spender: str) -> int:
        fn = self.erc20_contract(token_address).functions.allowance(
            AsyncWeb3.to_checksum_address(owner),
            AsyncWeb3.to_checksum_address(spender),
        )
        return int(await self._call("allowance", fn))

    async def get_native_balance(self, address: str) -> int:
        try:
            return int(await self.w3.eth.get_balance(AsyncWeb3.to_checksum_address(address)))
        except Exception as e:
            raise RpcError(f"eth_getBalance failed: {e}", method="eth_getBalance") from e

    async def has_code(self, address: str) -> bool:
        """True when a contract is deployed at ``address``."""
        try:
            code = await self.w3.eth.get_code(AsyncWeb3.to_checksum_address(address))
        except Exception as e:
            raise RpcError(f"eth_getCode failed: {e}", method="eth_getCode") from e
        return bool(code) and bytes(code) not in (b"", b"\x00")

    async def get_token_balance(self, token_address: str, address: str) -> int:
        """
        ERC-20 ``balanceOf``. A token address without deployed code reports 0
        instead of failing on an empty return.
        """
        if not await self.has_code(token_address):
            logger.warning("No contract code at %s, reporting zero balance", token_address)
            return 0
        fn = self.erc20_contract(token_address).functions.balanceOf(AsyncWeb3.to_checksum_address(address))
        return int(await self._call("balanceOf", fn))
