"""
Tests for the authorization backend client using httpx.MockTransport.
"""
from decimal import Decimal

import httpx
import pytest

from escrow_presale.chain.constants import NATIVE_ADDRESS
from escrow_presale.clients.backend_client import AuthorizationClient, extract_backend_error
from escrow_presale.engine.exceptions import PresaleError, VoucherRequestError
from escrow_presale.schemas.vouchers import VoucherRequest

from presale_mocks import (
    MOCK_API_URL,
    MOCK_BUYER_ADDRESS,
    MOCK_SIGNATURE,
    BackendRecorder,
)


def _request(nonce="4"):
    return VoucherRequest(
        buyer=MOCK_BUYER_ADDRESS,
        beneficiary=MOCK_BUYER_ADDRESS,
        payment_token=NATIVE_ADDRESS,
        usd_amount=Decimal("8400"),
        user_id=MOCK_BUYER_ADDRESS,
        usernonce=nonce,
        decimals=18,
    )


def _client(handler):
    return AuthorizationClient(MOCK_API_URL, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_request_voucher_posts_payload():
    backend = BackendRecorder()

    async with backend.client() as client:
        issued = await client.request_voucher(_request())

    assert backend.requests[0].method == "POST"
    assert backend.requests[0].url == f"{MOCK_API_URL}/api/presale/voucher"
    assert backend.bodies[0]["usdAmount"] == 8400.0
    assert issued.voucher.nonce == 4
    assert issued.voucher.usd_limit == 840_000_000_000
    assert issued.signature == MOCK_SIGNATURE


@pytest.mark.asyncio
async def test_request_voucher_http_error_keeps_backend_message():
    backend = BackendRecorder(error=(429, {"message": "Too many requests"}))

    async with backend.client() as client:
        with pytest.raises(VoucherRequestError) as exc_info:
            await client.request_voucher(_request())

    assert exc_info.value.backend_message == "Too many requests"
    assert exc_info.value.status_code == 429
    assert str(exc_info.value) == "Too many requests"


@pytest.mark.asyncio
async def test_request_voucher_http_error_without_body():
    async with _client(lambda request: httpx.Response(502, text="")) as client:
        with pytest.raises(VoucherRequestError) as exc_info:
            await client.request_voucher(_request())

    assert exc_info.value.backend_message is None
    assert "HTTP 502" in str(exc_info.value)


@pytest.mark.asyncio
async def test_request_voucher_transport_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as client:
        with pytest.raises(VoucherRequestError, match="connection refused"):
            await client.request_voucher(_request())


@pytest.mark.asyncio
async def test_request_voucher_malformed_body():
    async with _client(lambda request: httpx.Response(200, json={"voucher": {"buyer": "0x"}})) as client:
        with pytest.raises(VoucherRequestError, match="Malformed"):
            await client.request_voucher(_request())


@pytest.mark.asyncio
async def test_start_verification():
    backend = BackendRecorder()

    async with backend.client() as client:
        ack = await client.start_verification("user-1", "a@b.c", "+100", country="US")

    assert ack == {"success": True}
    assert backend.bodies[0] == {"userId": "user-1", "email": "a@b.c", "phone": "+100", "country": "US"}


@pytest.mark.asyncio
async def test_start_verification_error():
    async with _client(lambda request: httpx.Response(400, json={"error": "Invalid phone"})) as client:
        with pytest.raises(PresaleError, match="Invalid phone"):
            await client.start_verification("user-1", "a@b.c", "bad")


@pytest.mark.asyncio
async def test_verification_status_quotes_user_id():
    backend = BackendRecorder(verification={"verified": True, "status": "verified"})

    async with backend.client() as client:
        status = await client.get_verification_status("user/1")

    assert status.verified is True
    assert backend.requests[0].url.raw_path == b"/api/verify/status/user%2F1"


def test_extract_backend_error():
    assert extract_backend_error(httpx.Response(400, json={"error": "bad", "message": "other"})) == "bad"
    assert extract_backend_error(httpx.Response(400, json={"message": "other"})) == "other"
    assert extract_backend_error(httpx.Response(500, text="Gateway down")) == "Gateway down"
    assert extract_backend_error(httpx.Response(500, json=["x"])) is None
