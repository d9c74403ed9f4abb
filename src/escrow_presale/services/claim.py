"""
Claim Flow

Single ``claimTokens()`` call gated by ``canClaim``. Uses its own in-flight
guard; claims and purchases never interleave within a session.
"""

import logging
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from ..chain.reader import PresaleChainReader
from ..chain.signer import Wallet
from ..engine.events import ClaimFailedEvent, ClaimSettledEvent, EventBus
from ..engine.exceptions import ClaimUnavailableError, TransactionRevertError
from ..schemas.purchases import ClaimResult
from .purchase import describe_failure

if TYPE_CHECKING:
    from ..engine.session import PresaleSession

logger = logging.getLogger(__name__)


class ClaimFlow:
    """
    Claims escrowed presale tokens for the connected wallet.

    Example:
        result = await ClaimFlow(session, reader, wallet, bus).claim()
        if not result.success:
            print(result.error)
    """

    def __init__(
        self,
        session: "PresaleSession",
        reader: PresaleChainReader,
        wallet: Wallet,
        bus: EventBus,
        on_settled: Optional[Callable[[], Awaitable[None]]] = None,
    ) -> None:
        self.session = session
        self.reader = reader
        self.wallet = wallet
        self.bus = bus
        self.on_settled = on_settled

    def check_available(self) -> None:
        """
        Raises:
            ClaimUnavailableError: Not connected, nothing claimable, or another
                claim / purchase is in flight. No transaction is sent.
        """
        if not self.wallet.is_connected:
            raise ClaimUnavailableError("Please connect your wallet")
        if not self.reader.settings.presale_configured:
            raise ClaimUnavailableError("Presale contract is not configured")
        if not self.session.can_claim:
            raise ClaimUnavailableError("Claiming is not available yet")
        if self.session.claim_in_flight:
            raise ClaimUnavailableError("A claim is already in progress")
        if self.session.purchase_in_flight:
            raise ClaimUnavailableError("A purchase is in progress")

    async def claim(self) -> ClaimResult:
        self.check_available()
        self.session.claim_in_flight = True
        tx_hash: Optional[str] = None
        try:
            signer = self.wallet.get_signer(self.reader.w3)
            fn_call = self.reader.presale_contract().functions.claimTokens()
            tx_hash = await signer.send(fn_call)
            receipt = await signer.wait_for_receipt(tx_hash)
            if receipt.get("status") != 1:
                raise TransactionRevertError("Claim transaction reverted", tx_hash=tx_hash)
            result = ClaimResult(success=True, tx_hash=tx_hash)
        except Exception as e:
            reason = describe_failure(e)
            logger.error("Claim failed: %s", reason)
            result = ClaimResult(success=False, tx_hash=tx_hash, error=reason)
        finally:
            self.session.claim_in_flight = False

        if result.success:
            logger.info("Tokens claimed: %s", tx_hash)
            await self.bus.notify(ClaimSettledEvent(tx_hash=tx_hash))
            if self.on_settled is not None:
                try:
                    await self.on_settled()
                except Exception as e:
                    logger.warning("Post-claim refresh failed: %s", e)
        else:
            await self.bus.notify(ClaimFailedEvent(reason=result.error, tx_hash=tx_hash))
        return result
