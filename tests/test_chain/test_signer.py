"""
Tests for LocalAccountSigner transaction building and the Wallet holder.
"""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from web3.exceptions import ContractLogicError

from escrow_presale.chain.signer import LocalAccountSigner, SigningRequest, Wallet, is_user_rejection
from escrow_presale.engine.exceptions import ConfigError, TransactionRevertError, UserRejection

from presale_mocks import MOCK_BUYER_ADDRESS, MOCK_BUYER_PRIVATE_KEY, MOCK_PRESALE_ADDRESS

MOCK_RAW_HASH = bytes.fromhex("ab" * 32)


def _done(value):
    future = asyncio.get_running_loop().create_future()
    future.set_result(value)
    return future


def _mock_w3(chain_id: int = 1):
    w3 = MagicMock()
    w3.eth.chain_id = _done(chain_id)
    w3.eth.get_transaction_count = AsyncMock(return_value=3)
    w3.eth.fee_history = AsyncMock(return_value={"baseFeePerGas": [10, 20], "reward": [[2]]})
    w3.eth.gas_price = _done(15)
    w3.eth.send_raw_transaction = AsyncMock(return_value=MOCK_RAW_HASH)
    w3.eth.wait_for_transaction_receipt = AsyncMock(return_value={"status": 1})
    return w3


def _fn_call(estimate=100_000):
    fn_call = MagicMock()
    fn_call.fn_name = "claimTokens"
    fn_call.address = MOCK_PRESALE_ADDRESS
    if isinstance(estimate, Exception):
        fn_call.estimate_gas = AsyncMock(side_effect=estimate)
    else:
        fn_call.estimate_gas = AsyncMock(return_value=estimate)
    fn_call.build_transaction = AsyncMock(
        side_effect=lambda params: {**params, "to": MOCK_PRESALE_ADDRESS, "data": "0x4e71d92d"}
    )
    return fn_call


@pytest.mark.asyncio
async def test_send_builds_eip1559_transaction_with_gas_buffer():
    w3 = _mock_w3()
    signer = LocalAccountSigner(w3, MOCK_BUYER_PRIVATE_KEY, expected_chain_id=1)
    fn_call = _fn_call(estimate=100_000)

    tx_hash = await signer.send(fn_call, value=5)

    assert tx_hash == "0x" + "ab" * 32
    params = fn_call.build_transaction.call_args.args[0]
    assert params["gas"] == 110_000
    assert params["maxPriorityFeePerGas"] == 2
    assert params["maxFeePerGas"] == 20 * 2 + 2
    assert params["value"] == 5
    assert params["nonce"] == 3
    assert params["from"] == MOCK_BUYER_ADDRESS
    w3.eth.send_raw_transaction.assert_awaited_once()


@pytest.mark.asyncio
async def test_legacy_gas_price_when_fee_history_unavailable():
    w3 = _mock_w3()
    w3.eth.fee_history = AsyncMock(side_effect=ValueError("method not found"))
    signer = LocalAccountSigner(w3, MOCK_BUYER_PRIVATE_KEY)
    fn_call = _fn_call()

    await signer.send(fn_call)

    params = fn_call.build_transaction.call_args.args[0]
    assert params["gasPrice"] == 15
    assert "maxFeePerGas" not in params


@pytest.mark.asyncio
async def test_revert_during_estimation_raises_with_reason():
    w3 = _mock_w3()
    signer = LocalAccountSigner(w3, MOCK_BUYER_PRIVATE_KEY)
    fn_call = _fn_call(estimate=ContractLogicError("execution reverted: Claim not enabled"))

    with pytest.raises(TransactionRevertError) as exc_info:
        await signer.send(fn_call)

    assert "Claim not enabled" in exc_info.value.revert_reason
    w3.eth.send_raw_transaction.assert_not_called()


@pytest.mark.asyncio
async def test_declined_prompt_raises_user_rejection():
    w3 = _mock_w3()
    prompts = []

    async def decline(request: SigningRequest) -> bool:
        prompts.append(request)
        return False

    signer = LocalAccountSigner(w3, MOCK_BUYER_PRIVATE_KEY, confirm=decline)

    with pytest.raises(UserRejection):
        await signer.send(_fn_call())

    assert prompts[0].function_name == "claimTokens"
    w3.eth.send_raw_transaction.assert_not_called()


@pytest.mark.asyncio
async def test_wrong_chain_is_refused():
    w3 = _mock_w3(chain_id=11155111)
    signer = LocalAccountSigner(w3, MOCK_BUYER_PRIVATE_KEY, expected_chain_id=1)
    with pytest.raises(ConfigError):
        await signer.send(_fn_call())


def test_user_rejection_code_detection():
    assert is_user_rejection(ValueError({"code": 4001, "message": "User rejected"}))
    assert not is_user_rejection(ValueError({"code": -32000, "message": "insufficient funds"}))


def test_wallet_connect_and_disconnect():
    wallet = Wallet()
    assert not wallet.is_connected
    with pytest.raises(ConfigError):
        wallet.get_signer(MagicMock())

    assert wallet.connect(MOCK_BUYER_PRIVATE_KEY) == MOCK_BUYER_ADDRESS
    first = wallet.get_signer(MagicMock())
    second = wallet.get_signer(MagicMock())
    assert first is not second
    assert first.address == MOCK_BUYER_ADDRESS

    wallet.disconnect()
    assert wallet.address is None
