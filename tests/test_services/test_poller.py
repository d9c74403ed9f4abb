"""
Tests for balance polling lifecycle and supply / unit price reads.
"""
import asyncio
from decimal import Decimal

import pytest

from escrow_presale.engine.events import EventBus, RefreshDegradedEvent
from escrow_presale.engine.session import PresaleSession
from escrow_presale.schemas.purchases import BalanceSnapshot
from escrow_presale.services.poller import BalancePoller, SupplyTracker, unit_price_from_rate

from presale_mocks import MOCK_BUYER_ADDRESS, FakeChainReader, make_settings


def _session(reader, symbol="ETH"):
    session = PresaleSession(reader.settings)
    session.wallet_address = MOCK_BUYER_ADDRESS
    session.select_currency(symbol)
    return session


# ========================================================================
# Balance polling
# ========================================================================

@pytest.mark.asyncio
async def test_refresh_once_native_and_escrow():
    reader = FakeChainReader(native_balance=1_234_567_890_000_000_000, total_purchased=560_000 * 10**18)
    session = _session(reader)

    result = await BalancePoller(session, reader).refresh_once()

    assert result.degraded is False
    assert result.value.wallet_balance == Decimal("1.23456789")
    assert result.value.escrow_balance == Decimal("560000")
    assert session.balances == result.value
    assert session.balances.display_wallet_balance == "1.234568"


@pytest.mark.asyncio
async def test_refresh_once_token_balance_uses_token_decimals():
    reader = FakeChainReader(token_balance=2_500_000)
    session = _session(reader, symbol="USDC")

    result = await BalancePoller(session, reader).refresh_once()

    assert result.value.wallet_balance == Decimal("2.5")
    assert "balanceOf" in reader.calls
    assert "eth_getBalance" not in reader.calls


@pytest.mark.asyncio
async def test_failed_read_keeps_last_known_good():
    reader = FakeChainReader(failing={"eth_getBalance"}, total_purchased=10**18)
    session = _session(reader)
    session.apply_balances(BalanceSnapshot(wallet_balance=Decimal("3"), escrow_balance=Decimal("0")))
    bus = EventBus()
    degraded = []

    async def on_degraded(event, deps):
        degraded.append(event)

    bus.subscribe(RefreshDegradedEvent, on_degraded)

    result = await BalancePoller(session, reader, bus=bus).refresh_once()

    assert result.degraded is True
    assert "ETH balance" in result.reason
    assert result.value.wallet_balance == Decimal("3")
    assert result.value.escrow_balance == Decimal("1")
    assert degraded[0].source == "balances"


@pytest.mark.asyncio
async def test_start_refreshes_immediately_and_stop_cancels():
    reader = FakeChainReader(native_balance=10**18)
    session = _session(reader)
    poller = BalancePoller(session, reader, interval=3600)

    task = poller.start(MOCK_BUYER_ADDRESS)
    await asyncio.sleep(0)

    assert poller.is_running
    assert reader.calls.count("eth_getBalance") == 1

    await poller.stop()
    assert not poller.is_running
    assert task.cancelled()


@pytest.mark.asyncio
async def test_repeated_start_does_not_duplicate_tasks():
    reader = FakeChainReader()
    poller = BalancePoller(_session(reader), reader, interval=3600)

    first = poller.start(MOCK_BUYER_ADDRESS)
    second = poller.start(MOCK_BUYER_ADDRESS)
    assert first is second

    await poller.stop()
    await poller.stop()
    assert not poller.is_running


@pytest.mark.asyncio
async def test_connect_disconnect_cycles_leave_no_running_task():
    reader = FakeChainReader()
    poller = BalancePoller(_session(reader), reader, interval=3600)
    tasks = []

    for _ in range(3):
        tasks.append(poller.start(MOCK_BUYER_ADDRESS))
        await asyncio.sleep(0)
        await poller.stop()

    assert all(task.done() for task in tasks)
    assert not poller.is_running


@pytest.mark.asyncio
async def test_polls_on_interval():
    reader = FakeChainReader()
    poller = BalancePoller(_session(reader), reader, interval=0.01)

    poller.start(MOCK_BUYER_ADDRESS)
    await asyncio.sleep(0.05)
    await poller.stop()

    polls = reader.calls.count("eth_getBalance")
    assert polls >= 2
    await asyncio.sleep(0.03)
    assert reader.calls.count("eth_getBalance") == polls


@pytest.mark.asyncio
async def test_refresh_without_wallet_is_degraded():
    reader = FakeChainReader()
    session = PresaleSession(reader.settings)

    result = await BalancePoller(session, reader).refresh_once()

    assert result.degraded is True
    assert reader.calls == []


# ========================================================================
# Supply
# ========================================================================

def test_unit_price_from_rate():
    assert unit_price_from_rate(50 * 10**18, Decimal("0.015")) == Decimal("0.02")
    assert unit_price_from_rate(0, Decimal("0.015")) == Decimal("0.015")


@pytest.mark.asyncio
async def test_supply_refresh_updates_session_and_preview():
    reader = FakeChainReader(supply=(5_000_000_000 * 10**18, 1_000_000 * 10**18, True, 50 * 10**18))
    session = _session(reader)
    session.set_amount("2")

    result = await SupplyTracker(session, reader).refresh()

    assert result.degraded is False
    assert result.value.max_supply == Decimal("5000000000")
    assert result.value.minted == Decimal("1000000")
    assert result.value.token_usd_price == Decimal("0.02")
    assert session.can_claim is True
    assert session.intent.token_amount == Decimal("420000")


@pytest.mark.asyncio
async def test_non_positive_rate_falls_back_to_default_price():
    reader = FakeChainReader(supply=(10**27, 0, False, 0))
    session = _session(reader)

    result = await SupplyTracker(session, reader).refresh()

    assert result.degraded is True
    assert result.value.token_usd_price == Decimal("0.015")
    assert result.value.display_price == "0.015"


@pytest.mark.asyncio
async def test_unreachable_contract_keeps_previous_supply():
    reader = FakeChainReader(supply=(10**27, 0, True, 50 * 10**18))
    session = _session(reader)
    tracker = SupplyTracker(session, reader)
    await tracker.refresh()

    reader.failing.add("supply")
    result = await tracker.refresh()

    assert result.degraded is True
    assert result.value.token_usd_price == Decimal("0.02")
    assert session.can_claim is True


@pytest.mark.asyncio
async def test_unconfigured_presale_uses_fallback_supply():
    reader = FakeChainReader(make_settings(presale_address=""))
    session = PresaleSession(reader.settings)

    result = await SupplyTracker(session, reader).refresh()

    assert reader.calls == []
    assert result.degraded is True
    assert result.value.max_supply == Decimal("5000000000")
    assert result.value.token_usd_price == Decimal("0.015")
