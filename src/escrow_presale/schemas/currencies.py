"""
Currency Schema Models

    - CurrencyDefinition: static catalog entry (immutable)
    - TokenMetadata: live or fallback price/decimals/active flag for one currency
    - ResolvedCurrency: definition merged with current metadata
"""

from decimal import Decimal

from pydantic import ConfigDict, Field

from .bases import CanonicalModel


class CurrencyDefinition(CanonicalModel):
    """
    Supported payment instrument.

    Attributes:
        name: Display name (e.g. "Wrapped Bitcoin")
        symbol: Ticker, unique within the catalog
        address: ERC-20 contract address, or the native marker address
        is_native: True for the chain's native currency
        default_decimals: Decimals used until a live read succeeds
        fallback_price_usd: USD price used until a live read succeeds
        default_active: Active flag used until a live read succeeds
    """

    model_config = ConfigDict(frozen=True)

    name: str
    symbol: str
    address: str = Field(..., description="Token contract address or native marker")
    is_native: bool = False
    default_decimals: int = Field(..., ge=0, le=18)
    fallback_price_usd: Decimal = Field(..., gt=0)
    default_active: bool = True

    @property
    def key(self) -> str:
        """Metadata map key: lower-cased address."""
        return self.address.lower()


class TokenMetadata(CanonicalModel):
    """Price, decimals and active flag for one currency."""

    model_config = ConfigDict(frozen=True)

    price_usd: Decimal = Field(..., ge=0)
    decimals: int = Field(..., ge=0, le=18)
    is_active: bool

    @classmethod
    def from_definition(cls, definition: CurrencyDefinition) -> "TokenMetadata":
        return cls(
            price_usd=definition.fallback_price_usd,
            decimals=definition.default_decimals,
            is_active=definition.default_active,
        )


class ResolvedCurrency(CanonicalModel):
    """
    A catalog entry merged with its current metadata.

    Recomputed whenever metadata or the selection changes; never stored
    beyond the session's current view.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    symbol: str
    address: str
    is_native: bool
    decimals: int
    price_usd: Decimal
    is_active: bool
