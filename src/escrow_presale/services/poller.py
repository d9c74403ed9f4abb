"""
Balance & Supply Poller

``BalancePoller`` refreshes the connected wallet's balance of the selected
currency and its escrowed presale tokens, on connect and then every
``poll_interval`` seconds, as a single cancellable asyncio task.
``SupplyTracker`` reads the global presale figures independently of the
wallet connection.

Both are display-only: a failed read keeps the last-known-good value and is
reported through ``Refreshed.degraded`` rather than raised. Neither ever
triggers a write.
"""

import asyncio
import contextlib
import logging
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional

from ..chain.constants import PRESALE_TOKEN_DECIMALS, RATE_DECIMALS, value_to_amount
from ..chain.reader import PresaleChainReader
from ..engine.events import EventBus, RefreshDegradedEvent
from ..engine.exceptions import PresaleError
from ..schemas.bases import Refreshed
from ..schemas.purchases import BalanceSnapshot, SupplyStats

if TYPE_CHECKING:
    from ..engine.session import PresaleSession

logger = logging.getLogger(__name__)


def unit_price_from_rate(raw_rate: int, fallback: Decimal) -> Decimal:
    """
    USD per presale token from ``presaleRate`` (tokens per USD, scaled 1e18).

    A non-positive rate yields ``fallback``.
    """
    if raw_rate <= 0:
        return fallback
    return Decimal(10) ** RATE_DECIMALS / Decimal(raw_rate)


class BalancePoller:
    """
    Periodic wallet / escrow balance refresh tied to the connection lifecycle.

    At most one polling task exists at any time. ``start`` on an already
    running poller restarts it for the new address; ``stop`` is idempotent.

    Example:
        poller = BalancePoller(session, reader, interval=120)
        poller.start(address)      # refreshes immediately, then every 120s
        ...
        await poller.stop()        # on disconnect / close
    """

    def __init__(
        self,
        session: "PresaleSession",
        reader: PresaleChainReader,
        interval: Optional[float] = None,
        bus: Optional[EventBus] = None,
    ) -> None:
        self.session = session
        self.reader = reader
        self.interval = interval if interval is not None else reader.settings.poll_interval
        self.bus = bus
        self._task: Optional[asyncio.Task] = None
        self._address: Optional[str] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, address: str) -> asyncio.Task:
        if self.is_running:
            if address == self._address:
                return self._task
            self._task.cancel()
        self._address = address
        self._task = asyncio.get_running_loop().create_task(self._loop())
        return self._task

    async def stop(self) -> None:
        task, self._task = self._task, None
        self._address = None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _loop(self) -> None:
        while True:
            try:
                await self.refresh_once()
            except Exception as e:
                logger.warning("Balance poll failed: %s", e)
            await asyncio.sleep(self.interval)

    async def refresh_once(self) -> Refreshed[BalanceSnapshot]:
        """
        Read wallet and escrow balances once and apply them to the session.

        Each figure falls back to its previous value independently.
        """
        previous = self.session.balances
        address = self._address or self.session.wallet_address
        if address is None:
            return Refreshed.fallback(previous, "Wallet not connected")

        reasons: List[str] = []
        wallet_balance = previous.wallet_balance
        escrow_balance = previous.escrow_balance

        currency = self.session.selected_currency
        if currency is not None:
            try:
                if currency.is_native:
                    raw = await self.reader.get_native_balance(address)
                else:
                    raw = await self.reader.get_token_balance(currency.address, address)
                wallet_balance = value_to_amount(value=raw, decimals=currency.decimals)
            except PresaleError as e:
                reasons.append(f"{currency.symbol} balance: {e}")

        if self.reader.settings.presale_configured:
            try:
                raw = await self.reader.get_total_purchased(address)
                escrow_balance = value_to_amount(value=raw, decimals=PRESALE_TOKEN_DECIMALS)
            except PresaleError as e:
                reasons.append(f"escrow balance: {e}")

        snapshot = BalanceSnapshot(wallet_balance=wallet_balance, escrow_balance=escrow_balance)
        self.session.apply_balances(snapshot)

        if not reasons:
            return Refreshed.fresh(snapshot)

        reason = "; ".join(reasons)
        logger.warning("Balance refresh degraded: %s", reason)
        if self.bus is not None:
            await self.bus.notify(RefreshDegradedEvent(source="balances", reason=reason))
        return Refreshed.fallback(snapshot, reason)


class SupplyTracker:
    """
    Reads ``{maxTokensToMint, totalTokensMinted, canClaim, presaleRate}``.

    Unit price is ``1 / presaleRate``; the configured fallback price is used
    when the rate is non-positive, the contract is unconfigured, or the read
    fails.
    """

    def __init__(self, session: "PresaleSession", reader: PresaleChainReader, bus: Optional[EventBus] = None) -> None:
        self.session = session
        self.reader = reader
        self.bus = bus

    async def _degraded(self, stats: SupplyStats, reason: str) -> Refreshed[SupplyStats]:
        logger.warning("Supply refresh degraded: %s", reason)
        if self.bus is not None:
            await self.bus.notify(RefreshDegradedEvent(source="supply", reason=reason))
        return Refreshed.fallback(stats, reason)

    async def refresh(self) -> Refreshed[SupplyStats]:
        settings = self.reader.settings

        if not settings.presale_configured:
            stats = SupplyStats(
                max_supply=settings.fallback_max_supply,
                token_usd_price=settings.fallback_token_usd_price,
            )
            self.session.apply_supply(stats)
            return Refreshed.fallback(stats, "Presale contract not configured")

        try:
            max_raw, minted_raw, can_claim, rate_raw = await self.reader.get_supply_snapshot()
        except PresaleError as e:
            return await self._degraded(self.session.supply, str(e))

        stats = SupplyStats(
            max_supply=value_to_amount(value=max_raw, decimals=PRESALE_TOKEN_DECIMALS),
            minted=value_to_amount(value=minted_raw, decimals=PRESALE_TOKEN_DECIMALS),
            can_claim=can_claim,
            token_usd_price=unit_price_from_rate(rate_raw, settings.fallback_token_usd_price),
        )
        self.session.apply_supply(stats)

        if rate_raw <= 0:
            return await self._degraded(stats, "presaleRate is not positive")
        return Refreshed.fresh(stats)
