"""
Tests for the nonce & voucher acquisition protocol.
"""
from decimal import Decimal

import pytest

from escrow_presale.chain.catalog import build_fallback_metadata, resolve_currencies
from escrow_presale.engine.exceptions import RpcError, StaleVoucherError, VoucherRequestError
from escrow_presale.schemas.purchases import PurchasePhase
from escrow_presale.services.acquisition import VoucherAcquirer

from presale_mocks import (
    MOCK_BENEFICIARY_ADDRESS,
    MOCK_BUYER_ADDRESS,
    BackendRecorder,
    FakeChainReader,
)


def _currency(symbol):
    return next(c for c in resolve_currencies(build_fallback_metadata()) if c.symbol == symbol)


@pytest.mark.asyncio
async def test_nonce_read_precedes_voucher_request():
    calls = []
    reader = FakeChainReader(nonces=[12])
    reader.calls = calls
    backend = BackendRecorder(calls=calls)
    phases = []

    issued = await VoucherAcquirer(reader, backend.client()).acquire(
        MOCK_BUYER_ADDRESS,
        MOCK_BENEFICIARY_ADDRESS,
        _currency("USDC"),
        Decimal("150"),
        on_phase=phases.append,
    )

    assert calls == ["nonces", "voucher"]
    assert phases == [PurchasePhase.FETCHING_NONCE, PurchasePhase.REQUESTING_VOUCHER]
    assert issued.voucher.nonce == 12


@pytest.mark.asyncio
async def test_voucher_request_body():
    backend = BackendRecorder()
    usdc = _currency("USDC")

    await VoucherAcquirer(FakeChainReader(nonces=[3]), backend.client()).acquire(
        MOCK_BUYER_ADDRESS, MOCK_BENEFICIARY_ADDRESS, usdc, Decimal("150.5"),
    )

    assert backend.bodies == [{
        "buyer": MOCK_BUYER_ADDRESS,
        "beneficiary": MOCK_BENEFICIARY_ADDRESS,
        "paymentToken": usdc.address,
        "usdAmount": 150.5,
        "userId": MOCK_BUYER_ADDRESS,
        "usernonce": "3",
        "decimals": 6,
    }]


@pytest.mark.asyncio
async def test_stale_voucher_triggers_fresh_acquisition():
    reader = FakeChainReader(nonces=[4, 5])
    backend = BackendRecorder(voucher_nonces=[3, 5])

    issued = await VoucherAcquirer(reader, backend.client(), max_retries=1).acquire(
        MOCK_BUYER_ADDRESS, MOCK_BUYER_ADDRESS, _currency("ETH"), Decimal("8400"),
    )

    assert issued.voucher.nonce == 5
    assert reader.calls == ["nonces", "nonces"]
    assert [body["usernonce"] for body in backend.bodies] == ["4", "5"]


@pytest.mark.asyncio
async def test_stale_voucher_exhausts_retries():
    reader = FakeChainReader(nonces=[4])
    backend = BackendRecorder(voucher_nonces=[3, 3])

    with pytest.raises(StaleVoucherError) as exc_info:
        await VoucherAcquirer(reader, backend.client(), max_retries=1).acquire(
            MOCK_BUYER_ADDRESS, MOCK_BUYER_ADDRESS, _currency("ETH"), Decimal("8400"),
        )

    assert exc_info.value.expected_nonce == 4
    assert exc_info.value.voucher_nonce == 3
    assert len(backend.bodies) == 2


@pytest.mark.asyncio
async def test_nonce_failure_aborts_before_voucher_request():
    reader = FakeChainReader(failing={"nonces"})
    backend = BackendRecorder()

    with pytest.raises(RpcError):
        await VoucherAcquirer(reader, backend.client()).acquire(
            MOCK_BUYER_ADDRESS, MOCK_BUYER_ADDRESS, _currency("ETH"), Decimal("8400"),
        )

    assert backend.requests == []


@pytest.mark.asyncio
async def test_backend_error_message_is_preserved():
    backend = BackendRecorder(error=(400, {"error": "Purchase exceeds your remaining limit"}))

    with pytest.raises(VoucherRequestError) as exc_info:
        await VoucherAcquirer(FakeChainReader(), backend.client()).acquire(
            MOCK_BUYER_ADDRESS, MOCK_BUYER_ADDRESS, _currency("ETH"), Decimal("8400"),
        )

    assert exc_info.value.backend_message == "Purchase exceeds your remaining limit"
    assert exc_info.value.status_code == 400
