"""
Supported Payment Currencies

Static catalog of the currencies the presale accepts, in display order.
Fallback prices and decimals are used until the resolver reads live values
from the presale contract's price oracle.

Usage:
    from escrow_presale.chain.catalog import BASE_CURRENCIES, get_currency

    usdc = get_currency("USDC")
    fallback = build_fallback_metadata()
"""

from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from ..schemas.currencies import CurrencyDefinition, ResolvedCurrency, TokenMetadata
from .constants import NATIVE_ADDRESS


BASE_CURRENCIES: List[CurrencyDefinition] = [
    CurrencyDefinition(
        name="Ethereum",
        symbol="ETH",
        address=NATIVE_ADDRESS,
        is_native=True,
        default_decimals=18,
        fallback_price_usd=Decimal("4200"),
    ),
    CurrencyDefinition(
        name="Wrapped Ether",
        symbol="WETH",
        address="0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
        default_decimals=18,
        fallback_price_usd=Decimal("4200"),
    ),
    CurrencyDefinition(
        name="Wrapped BNB",
        symbol="WBNB",
        address="0x418D75f65a02b3D53B2418FB8E1fe493759c7605",
        default_decimals=18,
        fallback_price_usd=Decimal("1000"),
    ),
    CurrencyDefinition(
        name="Chainlink",
        symbol="LINK",
        address="0x514910771AF9Ca656af840dff83E8264EcF986CA",
        default_decimals=18,
        fallback_price_usd=Decimal("20"),
    ),
    CurrencyDefinition(
        name="Wrapped Bitcoin",
        symbol="WBTC",
        address="0x2260FAC5E5542a773Aa44fBCfeDf7C193bc2C599",
        default_decimals=8,
        fallback_price_usd=Decimal("45000"),
    ),
    CurrencyDefinition(
        name="USD Coin",
        symbol="USDC",
        address="0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
        default_decimals=6,
        fallback_price_usd=Decimal("1"),
    ),
    CurrencyDefinition(
        name="Tether USD",
        symbol="USDT",
        address="0xdAC17F958D2ee523a2206206994597C13D831ec7",
        default_decimals=6,
        fallback_price_usd=Decimal("1"),
    ),
]


def validate_catalog(currencies: Sequence[CurrencyDefinition]) -> None:
    """
    Check catalog uniqueness: one entry per symbol, addresses unique ignoring case.

    Raises:
        ValueError: On a duplicate symbol or address.
    """
    symbols = set()
    keys = set()
    for currency in currencies:
        if currency.symbol in symbols:
            raise ValueError(f"Duplicate currency symbol: {currency.symbol}")
        if currency.key in keys:
            raise ValueError(f"Duplicate currency address: {currency.address}")
        symbols.add(currency.symbol)
        keys.add(currency.key)


validate_catalog(BASE_CURRENCIES)


def get_currency(symbol: str, currencies: Sequence[CurrencyDefinition] = BASE_CURRENCIES) -> Optional[CurrencyDefinition]:
    """Look up a catalog entry by symbol; None if unknown."""
    for currency in currencies:
        if currency.symbol == symbol:
            return currency
    return None


def build_fallback_metadata(currencies: Sequence[CurrencyDefinition] = BASE_CURRENCIES) -> Dict[str, TokenMetadata]:
    """Metadata map seeded from catalog fallbacks, keyed by lower-cased address."""
    return {currency.key: TokenMetadata.from_definition(currency) for currency in currencies}


def resolve_currencies(
    metadata: Dict[str, TokenMetadata],
    currencies: Sequence[CurrencyDefinition] = BASE_CURRENCIES,
) -> List[ResolvedCurrency]:
    """
    Merge every definition with its metadata, in catalog order.

    A currency missing from ``metadata`` resolves to its catalog fallback.
    """
    resolved = []
    for currency in currencies:
        meta = metadata.get(currency.key) or TokenMetadata.from_definition(currency)
        resolved.append(ResolvedCurrency(
            name=currency.name,
            symbol=currency.symbol,
            address=currency.address,
            is_native=currency.is_native,
            decimals=meta.decimals,
            price_usd=meta.price_usd,
            is_active=meta.is_active,
        ))
    return resolved
