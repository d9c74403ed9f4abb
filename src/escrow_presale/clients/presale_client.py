"""
Presale Client

Session-level orchestrator wiring the catalog, resolver, calculator,
acquisition protocol, purchase state machine, poller and claim flow around a
single ``PresaleSession``.

Usage:
    ```python
    async with PresaleClient(load_settings()) as client:
        await client.start()
        await client.connect(private_key)
        await client.select_currency("USDC")
        client.set_amount("250")
        attempt = await client.buy()
    ```
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Sequence

from web3 import AsyncWeb3

from ..chain.catalog import BASE_CURRENCIES
from ..chain.reader import PresaleChainReader
from ..chain.signer import ConfirmFunc, Wallet
from ..config import PresaleSettings, load_settings
from ..engine.events import Dependencies, EventBus, RefreshDegradedEvent
from ..engine.exceptions import PresaleError
from ..engine.session import PresaleSession
from ..schemas.bases import Refreshed
from ..schemas.currencies import CurrencyDefinition
from ..schemas.purchases import BalanceSnapshot, ClaimResult, PurchaseIntent, SupplyStats, TransactionAttempt
from ..schemas.vouchers import VerificationStatus
from ..services.acquisition import VoucherAcquirer
from ..services.claim import ClaimFlow
from ..services.poller import BalancePoller, SupplyTracker
from ..services.purchase import PurchaseStateMachine
from ..services.resolver import MetadataRefresh, MetadataResolver
from .backend_client import AuthorizationClient

logger = logging.getLogger(__name__)


class PresaleClient:
    """
    One buyer session against one presale deployment.

    Missing configuration never raises here: without a presale address the
    resolver and supply reads return fallback data, and without an
    authorizer address or backend URL purchases are rejected by precondition.

    Args:
        settings: Configuration; loaded from the environment when omitted
        w3: Optional AsyncWeb3 instance shared by reads and signing
        backend: Optional pre-built backend client (e.g. with a mock transport)
        wallet: Optional wallet; a local-key wallet is created when omitted
        confirm: Optional async signing prompt for the default wallet
        currencies: Payment currency catalog
    """

    def __init__(
        self,
        settings: Optional[PresaleSettings] = None,
        *,
        w3: Optional[AsyncWeb3] = None,
        backend: Optional[AuthorizationClient] = None,
        wallet: Optional[Wallet] = None,
        confirm: Optional[ConfirmFunc] = None,
        currencies: Sequence[CurrencyDefinition] = BASE_CURRENCIES,
    ) -> None:
        self.settings = settings or load_settings()
        self.session = PresaleSession(self.settings, currencies)
        self.bus = EventBus(Dependencies(settings=self.settings, session=self.session))
        self.reader = PresaleChainReader(self.settings, w3=w3)
        self.wallet = wallet or Wallet(confirm=confirm, expected_chain_id=self.settings.chain_id)

        self._owns_backend = backend is None and self.settings.backend_configured
        if backend is None and self.settings.backend_configured:
            backend = AuthorizationClient(self.settings.backend_base_url, timeout=self.settings.request_timeout)
        self.backend = backend

        acquirer = VoucherAcquirer(self.reader, backend, self.settings.voucher_retries) if backend else None
        self.resolver = MetadataResolver(self.reader, currencies)
        self.poller = BalancePoller(self.session, self.reader, self.settings.poll_interval, self.bus)
        self.supply_tracker = SupplyTracker(self.session, self.reader, self.bus)
        self.purchases = PurchaseStateMachine(
            self.session, self.reader, self.wallet, acquirer, self.bus,
            on_settled=self._refresh_after_purchase,
        )
        self.claims = ClaimFlow(
            self.session, self.reader, self.wallet, self.bus,
            on_settled=self._refresh_after_claim,
        )

    # ---- lifecycle ----

    async def start(self) -> None:
        """Initial metadata and supply reads, independent of the wallet."""
        await asyncio.gather(self.refresh_metadata(), self.refresh_supply())

    async def connect(self, private_key: str) -> str:
        """Connect a wallet, start balance polling and check verification."""
        if self.wallet.is_connected:
            await self.disconnect()
        address = self.wallet.connect(private_key)
        self.session.wallet_address = address
        self.poller.start(address)
        if self.backend is not None:
            await self.check_verification()
        logger.info("Wallet connected: %s", address)
        return address

    async def disconnect(self) -> None:
        """Stop polling, forget the account and zero the displayed balances."""
        await self.poller.stop()
        self.wallet.disconnect()
        self.session.wallet_address = None
        self.session.reset_balances()
        self.session.is_verified = False
        self.session.verification_status = None

    async def aclose(self) -> None:
        await self.poller.stop()
        if self._owns_backend and self.backend is not None:
            await self.backend.aclose()

    async def __aenter__(self) -> "PresaleClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # ---- reads ----

    async def refresh_metadata(self) -> MetadataRefresh:
        result = await self.resolver.refresh()
        self.session.apply_metadata(result.metadata)
        if result.degraded:
            await self.bus.notify(RefreshDegradedEvent(source="metadata", reason="; ".join(result.warnings)))
        return result

    async def refresh_supply(self) -> Refreshed[SupplyStats]:
        return await self.supply_tracker.refresh()

    async def refresh_balances(self) -> Refreshed[BalanceSnapshot]:
        return await self.poller.refresh_once()

    async def _gather_refresh(self, *coros) -> None:
        results = await asyncio.gather(*coros, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.warning("Refresh failed: %s", result)

    async def _refresh_after_purchase(self) -> None:
        await self._gather_refresh(self.refresh_balances(), self.refresh_metadata(), self.refresh_supply())

    async def _refresh_after_claim(self) -> None:
        await self._gather_refresh(self.refresh_balances(), self.refresh_supply())

    # ---- input ----

    def set_amount(self, raw_amount: str) -> PurchaseIntent:
        return self.session.set_amount(raw_amount)

    async def select_currency(self, symbol: str) -> PurchaseIntent:
        """Select a currency; the wallet balance is re-read for it when connected."""
        intent = self.session.select_currency(symbol)
        if self.session.is_connected:
            await self.refresh_balances()
        return intent

    # ---- writes ----

    async def buy(self, beneficiary: Optional[str] = None) -> TransactionAttempt:
        return await self.purchases.buy(beneficiary)

    async def claim(self) -> ClaimResult:
        return await self.claims.claim()

    # ---- identity verification ----

    async def start_verification(self, email: str, phone: str, country: str = "Other") -> Dict[str, Any]:
        if self.backend is None:
            raise PresaleError("Authorization backend is not configured")
        if not self.session.is_connected:
            raise PresaleError("Please connect your wallet")
        return await self.backend.start_verification(self.session.wallet_address, email, phone, country)

    async def check_verification(self) -> Optional[VerificationStatus]:
        """Read verification status; errors are logged and the previous state kept."""
        if self.backend is None or not self.session.is_connected:
            return None
        try:
            status = await self.backend.get_verification_status(self.session.wallet_address)
        except PresaleError as e:
            logger.warning("Verification status check failed: %s", e)
            return None
        self.session.is_verified = status.verified
        self.session.verification_status = status.effective_status
        return status
