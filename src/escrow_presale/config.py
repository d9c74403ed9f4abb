"""
Presale Configuration

Environment-aware settings for the RPC endpoint, contract addresses and the
authorization backend. Values are read from the process environment (a local
``.env`` file is loaded first). Missing or placeholder values never raise:
they switch the affected components into fallback or disabled mode.

Environment Variables:
    - PRESALE_RPC_URL: JSON-RPC endpoint (default: public Ethereum node)
    - PRESALE_CHAIN_ID: Numeric chain id (default: 1)
    - PRESALE_CONTRACT_ADDRESS: Presale contract address
    - AUTHORIZER_CONTRACT_ADDRESS: Voucher authorizer contract address
    - PRESALE_API_URL: Authorization backend base URL
    - PRESALE_POLL_INTERVAL: Balance polling interval in seconds (default: 120)
    - PRESALE_RPC_TIMEOUT: HTTP timeout for RPC and backend calls (default: 60)
    - PRESALE_REQUIRE_VERIFICATION: Gate purchases on identity verification
    - PRESALE_VOUCHER_RETRIES: Re-acquisitions allowed after a stale voucher
"""

import logging
import os
from decimal import Decimal
from typing import Callable, Optional, TypeVar

import dotenv
from pydantic import BaseModel, Field

dotenv.load_dotenv()

logger = logging.getLogger(__name__)

N = TypeVar("N", int, float)


DEFAULT_RPC_URL = "https://ethereum.publicnode.com"
DEFAULT_CHAIN_ID = 1
PLACEHOLDER_PRESALE_ADDRESS = "0x...PRESALE_CONTRACT_ADDRESS"


def is_configured_address(address: Optional[str]) -> bool:
    """
    Check whether ``address`` is a usable EVM contract address.

    Rejects empty values, placeholders containing ``...`` and anything that
    is not a 0x-prefixed 42-character hex string. Checksum is not validated.
    """
    if not isinstance(address, str):
        return False
    address = address.strip()
    if not address or "..." in address:
        return False
    if not address.startswith("0x") or len(address) != 42:
        return False
    try:
        int(address[2:], 16)
    except ValueError:
        return False
    return True


class PresaleSettings(BaseModel):
    """Runtime configuration for one presale session."""

    rpc_url: str = Field(default=DEFAULT_RPC_URL, description="JSON-RPC endpoint URL")
    chain_id: int = Field(default=DEFAULT_CHAIN_ID, ge=1, description="EVM chain id")
    presale_address: Optional[str] = Field(default=PLACEHOLDER_PRESALE_ADDRESS, description="Presale contract address")
    authorizer_address: Optional[str] = Field(default=None, description="Voucher authorizer contract address")
    api_url: Optional[str] = Field(default=None, description="Authorization backend base URL")
    poll_interval: float = Field(default=120.0, gt=0, description="Balance polling interval (seconds)")
    request_timeout: float = Field(default=60.0, gt=0, description="RPC / HTTP timeout (seconds)")
    require_verification: bool = Field(default=False, description="Reject purchases from unverified buyers")
    voucher_retries: int = Field(default=1, ge=0, description="Extra acquisitions after a stale voucher")
    fallback_token_usd_price: Decimal = Field(default=Decimal("0.015"), description="Unit price when presaleRate is unavailable")
    fallback_max_supply: Decimal = Field(default=Decimal("5000000000"), description="Max supply when the contract is unavailable")

    @property
    def presale_configured(self) -> bool:
        return is_configured_address(self.presale_address)

    @property
    def authorizer_configured(self) -> bool:
        return is_configured_address(self.authorizer_address)

    @property
    def backend_configured(self) -> bool:
        return bool(self.api_url and self.api_url.strip())

    @property
    def backend_base_url(self) -> str:
        return (self.api_url or "").strip().rstrip("/")


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_number(name: str, default: N, cast: Callable[[str], N], minimum: N) -> N:
    """Numeric env var; unparseable or below-``minimum`` values fall back to ``default``."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = cast(raw.strip())
    except ValueError:
        logger.warning("Ignoring unparseable %s=%r, using %s", name, raw, default)
        return default
    if not value >= minimum:
        logger.warning("Ignoring out-of-range %s=%r, using %s", name, raw, default)
        return default
    return value


def load_settings(**overrides) -> PresaleSettings:
    """
    Build settings from environment variables.

    Keyword overrides take precedence over the environment, which makes it
    easy to pin values in tests or scripts.

    Example:
        settings = load_settings()
        if not settings.presale_configured:
            ...  # resolver and supply reads return fallback data
    """
    values = {
        "rpc_url": os.getenv("PRESALE_RPC_URL") or DEFAULT_RPC_URL,
        "chain_id": _env_number("PRESALE_CHAIN_ID", DEFAULT_CHAIN_ID, int, 1),
        "presale_address": os.getenv("PRESALE_CONTRACT_ADDRESS") or PLACEHOLDER_PRESALE_ADDRESS,
        "authorizer_address": os.getenv("AUTHORIZER_CONTRACT_ADDRESS") or None,
        "api_url": os.getenv("PRESALE_API_URL") or None,
        "poll_interval": _env_number("PRESALE_POLL_INTERVAL", 120.0, float, 1e-3),
        "request_timeout": _env_number("PRESALE_RPC_TIMEOUT", 60.0, float, 1e-3),
        "require_verification": _env_bool("PRESALE_REQUIRE_VERIFICATION"),
        "voucher_retries": _env_number("PRESALE_VOUCHER_RETRIES", 1, int, 0),
    }
    values.update(overrides)
    return PresaleSettings(**values)
