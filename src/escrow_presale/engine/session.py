"""
Session-scoped Presale State

``PresaleSession`` holds everything the purchase view derives from: the
selected currency, raw amount input, current token metadata, balances, supply
figures and the purchase / claim in-flight guards. Nothing is recomputed
implicitly; every mutator that changes a named input calls ``_recompute``.
"""

import logging
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from ..chain.catalog import BASE_CURRENCIES, build_fallback_metadata, resolve_currencies
from ..config import PresaleSettings
from ..schemas.currencies import CurrencyDefinition, ResolvedCurrency, TokenMetadata
from ..schemas.purchases import BalanceSnapshot, PurchaseIntent, SupplyStats, TransactionAttempt
from ..services.calculator import build_intent

logger = logging.getLogger(__name__)


class PresaleSession:
    """
    Explicit state object for one buyer session.

    Args:
        settings: Supplies the fallback unit price and max supply
        currencies: Catalog, in display order

    Example:
        session = PresaleSession(settings)
        session.set_amount("2")
        session.select_currency("ETH")
        session.intent.token_amount   # (2 * 4200) / 0.015
    """

    def __init__(
        self,
        settings: Optional[PresaleSettings] = None,
        currencies: Sequence[CurrencyDefinition] = BASE_CURRENCIES,
    ) -> None:
        self.settings = settings or PresaleSettings()
        self.currencies: List[CurrencyDefinition] = list(currencies)
        self.metadata: Dict[str, TokenMetadata] = build_fallback_metadata(self.currencies)
        self.resolved: List[ResolvedCurrency] = resolve_currencies(self.metadata, self.currencies)

        self.amount_input: str = ""
        self.selected_symbol: Optional[str] = None
        self.intent: PurchaseIntent = PurchaseIntent()

        self.wallet_address: Optional[str] = None
        self.balances = BalanceSnapshot()
        self.supply = SupplyStats(
            max_supply=self.settings.fallback_max_supply,
            token_usd_price=self.settings.fallback_token_usd_price,
        )
        self.is_verified: bool = False
        self.verification_status: Optional[str] = None

        self.purchase_in_flight: bool = False
        self.claim_in_flight: bool = False
        self.last_attempt: Optional[TransactionAttempt] = None

        self.reconcile_selection()
        self._recompute()

    # ---- derived views ----

    @property
    def is_connected(self) -> bool:
        return self.wallet_address is not None

    @property
    def can_claim(self) -> bool:
        return self.supply.can_claim

    @property
    def token_unit_price(self) -> Decimal:
        return self.supply.token_usd_price

    @property
    def selected_currency(self) -> Optional[ResolvedCurrency]:
        return self.get_resolved(self.selected_symbol) if self.selected_symbol else None

    def get_resolved(self, symbol: str) -> Optional[ResolvedCurrency]:
        for currency in self.resolved:
            if currency.symbol == symbol:
                return currency
        return None

    def active_currencies(self) -> List[ResolvedCurrency]:
        return [c for c in self.resolved if c.is_active]

    # ---- mutators ----

    def set_amount(self, raw_amount: str) -> PurchaseIntent:
        self.amount_input = raw_amount or ""
        return self._recompute()

    def select_currency(self, symbol: str) -> PurchaseIntent:
        """
        Select a payment currency.

        Raises:
            ValueError: Unknown symbol, or the currency is inactive.
        """
        currency = self.get_resolved(symbol)
        if currency is None:
            raise ValueError(f"Unknown currency: {symbol}")
        if not currency.is_active:
            raise ValueError(f"Currency {symbol} is not active")
        self.selected_symbol = symbol
        return self._recompute()

    def apply_metadata(self, metadata: Dict[str, TokenMetadata]) -> None:
        """Replace token metadata wholesale and re-resolve every currency."""
        self.metadata = dict(metadata)
        self.resolved = resolve_currencies(self.metadata, self.currencies)
        self.reconcile_selection()
        self._recompute()

    def apply_supply(self, supply: SupplyStats) -> None:
        self.supply = supply
        self._recompute()

    def apply_balances(self, balances: BalanceSnapshot) -> None:
        self.balances = balances

    def reset_balances(self) -> None:
        self.balances = BalanceSnapshot()

    def reconcile_selection(self) -> Optional[ResolvedCurrency]:
        """
        Keep the selection on an active currency.

        An inactive (or missing) selection moves to the first active currency
        in catalog order. With no active currency the selection is left as is
        and purchases are rejected by precondition.
        """
        current = self.selected_currency
        if current is not None and current.is_active:
            return current

        active = self.active_currencies()
        if not active:
            logger.warning("No active payment currency; selection left unresolved")
            return None

        if self.selected_symbol is not None:
            logger.info("Currency %s became inactive, switching to %s", self.selected_symbol, active[0].symbol)
        self.selected_symbol = active[0].symbol
        return active[0]

    def _recompute(self) -> PurchaseIntent:
        self.intent = build_intent(self.amount_input, self.selected_currency, self.token_unit_price)
        return self.intent
