from .constants import (
    NATIVE_ADDRESS,
    PRICE_DECIMALS,
    RATE_DECIMALS,
    PRESALE_TOKEN_DECIMALS,
    amount_to_value,
    value_to_amount,
    parse_decimal,
)
from .catalog import BASE_CURRENCIES, get_currency, build_fallback_metadata, resolve_currencies, validate_catalog
from .abis import get_erc20_abi, get_authorizer_abi, get_presale_abi
from .reader import PresaleChainReader
from .signer import WalletSigner, LocalAccountSigner, Wallet, SigningRequest

__all__ = [
    "NATIVE_ADDRESS",
    "PRICE_DECIMALS",
    "RATE_DECIMALS",
    "PRESALE_TOKEN_DECIMALS",
    "amount_to_value",
    "value_to_amount",
    "parse_decimal",
    "BASE_CURRENCIES",
    "get_currency",
    "build_fallback_metadata",
    "resolve_currencies",
    "validate_catalog",
    "get_erc20_abi",
    "get_authorizer_abi",
    "get_presale_abi",
    "PresaleChainReader",
    "WalletSigner",
    "LocalAccountSigner",
    "Wallet",
    "SigningRequest",
]
