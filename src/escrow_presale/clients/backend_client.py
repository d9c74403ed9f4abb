"""
Authorization Backend Client

httpx client for the presale authorization backend: voucher issuance and
identity verification. Transport and HTTP errors are translated into the
presale exception taxonomy; backend-provided error text is kept verbatim.
"""

import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from ..engine.exceptions import PresaleError, VoucherRequestError
from ..schemas.vouchers import (
    VerificationStartRequest,
    VerificationStatus,
    VoucherRequest,
    VoucherResponse,
)

logger = logging.getLogger(__name__)

VOUCHER_PATH = "/api/presale/voucher"
VERIFY_START_PATH = "/api/verify/start"
VERIFY_STATUS_PATH = "/api/verify/status/{user_id}"


def extract_backend_error(response: httpx.Response) -> Optional[str]:
    """Pull the backend's ``error`` (or ``message``) field out of an error response."""
    try:
        data = response.json()
    except ValueError:
        return response.text.strip() or None
    if isinstance(data, dict):
        message = data.get("error") or data.get("message")
        if message:
            return str(message)
    return None


class AuthorizationClient(httpx.AsyncClient):
    """
    httpx.AsyncClient bound to the authorization backend.

    Fully compatible with httpx.AsyncClient: can be used as an async context
    manager and accepts all standard client arguments (``transport``,
    ``headers`` ...).

    Usage:
        ```python
        async with AuthorizationClient("https://api.example.com") as backend:
            issued = await backend.request_voucher(voucher_request)
            status = await backend.get_verification_status(buyer)
        ```
    """

    def __init__(self, base_url: str, timeout: float = 60.0, **kwargs):
        """
        Args:
            base_url: Backend base URL (no trailing slash needed)
            timeout: Request timeout in seconds
            **kwargs: All standard httpx.AsyncClient arguments
        """
        super().__init__(base_url=base_url.rstrip("/"), timeout=timeout, **kwargs)

    async def request_voucher(self, voucher_request: VoucherRequest) -> VoucherResponse:
        """
        ``POST /api/presale/voucher``.

        The response is returned as-is; voucher fields are never edited.

        Raises:
            VoucherRequestError: Unreachable backend, HTTP error or malformed body.
        """
        try:
            response = await self.post(VOUCHER_PATH, json=voucher_request.to_payload())
        except httpx.HTTPError as e:
            raise VoucherRequestError(f"Voucher request failed: {e}") from e

        if response.is_error:
            message = extract_backend_error(response)
            raise VoucherRequestError(
                message or f"Voucher request failed with HTTP {response.status_code}",
                backend_message=message,
                status_code=response.status_code,
            )

        try:
            return VoucherResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise VoucherRequestError(
                f"Malformed voucher response: {e}",
                status_code=response.status_code,
            ) from e

    async def start_verification(
        self,
        user_id: str,
        email: str,
        phone: str,
        country: str = "Other",
    ) -> Dict[str, Any]:
        """``POST /api/verify/start``; returns the backend's acknowledgement."""
        body = VerificationStartRequest(user_id=user_id, email=email, phone=phone, country=country)
        try:
            response = await self.post(VERIFY_START_PATH, json=body.to_payload())
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            message = extract_backend_error(e.response)
            raise PresaleError(message or f"Verification start failed with HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise PresaleError(f"Verification start failed: {e}") from e

        try:
            ack = response.json()
        except ValueError:
            ack = {}
        return ack if isinstance(ack, dict) else {"result": ack}

    async def get_verification_status(self, user_id: str) -> VerificationStatus:
        """``GET /api/verify/status/{userId}``."""
        path = VERIFY_STATUS_PATH.format(user_id=quote(user_id, safe=""))
        try:
            response = await self.get(path)
            response.raise_for_status()
            return VerificationStatus.model_validate(response.json())
        except httpx.HTTPError as e:
            raise PresaleError(f"Verification status check failed: {e}") from e
        except ValueError as e:
            raise PresaleError(f"Malformed verification status: {e}") from e
