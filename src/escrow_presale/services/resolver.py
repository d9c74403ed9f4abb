"""
Price & Metadata Resolver

Merges catalog fallbacks with live ``getTokenPrice`` reads. Reads are issued
concurrently, one per currency, and each is isolated: a failed read keeps
that currency's fallback and adds a warning, the refresh as a whole never
fails.
"""

import asyncio
import logging
from typing import Dict, List, Optional, Sequence, Tuple

from pydantic import Field

from ..chain.catalog import BASE_CURRENCIES, build_fallback_metadata
from ..chain.constants import MAX_TOKEN_DECIMALS, PRICE_DECIMALS, value_to_amount
from ..chain.reader import PresaleChainReader
from ..engine.exceptions import PresaleError
from ..schemas.bases import CanonicalModel
from ..schemas.currencies import CurrencyDefinition, TokenMetadata

logger = logging.getLogger(__name__)


class MetadataRefresh(CanonicalModel):
    """
    Result of one resolver pass.

    Attributes:
        metadata: TokenMetadata per lower-cased address, one entry per catalog currency
        degraded: True when any entry holds fallback data
        warnings: One message per currency whose read failed
    """

    metadata: Dict[str, TokenMetadata]
    degraded: bool = False
    warnings: List[str] = Field(default_factory=list)


def merge_metadata(definition: CurrencyDefinition, raw: Tuple[int, bool, int]) -> TokenMetadata:
    """
    Convert a raw ``(price * 1e8, is_active, decimals)`` tuple into metadata.

    A non-positive price keeps the fallback price; a zero or out-of-range
    ``decimals`` keeps the catalog default.
    """
    raw_price, is_active, decimals = raw
    if raw_price > 0:
        price = value_to_amount(value=raw_price, decimals=PRICE_DECIMALS)
    else:
        price = definition.fallback_price_usd
    if not 0 < decimals <= MAX_TOKEN_DECIMALS:
        decimals = definition.default_decimals
    return TokenMetadata(price_usd=price, decimals=decimals, is_active=is_active)


class MetadataResolver:
    """
    Refreshes TokenMetadata for every catalog currency.

    Example:
        resolver = MetadataResolver(reader)
        result = await resolver.refresh()
        for warning in result.warnings:
            ...
    """

    def __init__(
        self,
        reader: PresaleChainReader,
        currencies: Optional[Sequence[CurrencyDefinition]] = None,
    ) -> None:
        self.reader = reader
        self.currencies = list(currencies) if currencies is not None else list(BASE_CURRENCIES)

    async def _read_one(self, currency: CurrencyDefinition) -> Tuple[TokenMetadata, Optional[str]]:
        try:
            raw = await self.reader.get_token_price(currency.address)
        except PresaleError as e:
            logger.warning("Price read failed for %s, keeping fallback: %s", currency.symbol, e)
            return TokenMetadata.from_definition(currency), f"{currency.symbol}: {e}"
        return merge_metadata(currency, raw), None

    async def refresh(self) -> MetadataRefresh:
        fallback = build_fallback_metadata(self.currencies)

        if not self.reader.settings.presale_configured:
            logger.info("Presale contract not configured, using fallback token metadata")
            return MetadataRefresh(
                metadata=fallback,
                degraded=True,
                warnings=["Presale contract address is not configured"],
            )

        results = await asyncio.gather(*(self._read_one(c) for c in self.currencies))

        metadata = dict(fallback)
        warnings = []
        for currency, (meta, warning) in zip(self.currencies, results):
            metadata[currency.key] = meta
            if warning:
                warnings.append(warning)

        return MetadataRefresh(metadata=metadata, degraded=bool(warnings), warnings=warnings)
