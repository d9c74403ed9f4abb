"""
Test suite for EventBus.
Tests: 1) Hooks run before subscribers 2) Results are collected 3) Non-coroutine handlers are rejected
"""
import pytest

from escrow_presale.engine.events import (
    ClaimSettledEvent,
    Dependencies,
    EventBus,
    PhaseChangedEvent,
    RefreshDegradedEvent,
)
from escrow_presale.schemas.purchases import PurchasePhase

from presale_mocks import MOCK_TX_HASH, make_settings


@pytest.mark.asyncio
async def test_hooks_run_before_subscribers():
    order = []
    bus = EventBus()

    async def hook(event, deps):
        order.append("hook")

    async def handler(event, deps):
        order.append("handler")
        return event.tx_hash

    bus.hook(ClaimSettledEvent, hook)
    bus.subscribe(ClaimSettledEvent, handler)

    results = await bus.publish(ClaimSettledEvent(tx_hash=MOCK_TX_HASH))

    assert order == ["hook", "handler"]
    assert results == [MOCK_TX_HASH]


@pytest.mark.asyncio
async def test_all_subscribers_receive_event():
    bus = EventBus()
    seen = []

    async def first(event, deps):
        seen.append(("first", event.source))
        return 1

    async def second(event, deps):
        seen.append(("second", event.source))
        return 2

    bus.subscribe(RefreshDegradedEvent, first)
    bus.subscribe(RefreshDegradedEvent, second)

    results = await bus.publish(RefreshDegradedEvent(source="supply", reason="timeout"))

    assert sorted(results) == [1, 2]
    assert sorted(seen) == [("first", "supply"), ("second", "supply")]


@pytest.mark.asyncio
async def test_dispatch_without_subscribers_yields_nothing():
    bus = EventBus()
    event = PhaseChangedEvent(
        previous=PurchasePhase.IDLE,
        phase=PurchasePhase.FETCHING_NONCE,
        currency_symbol="ETH",
    )

    results = [r async for r in bus.dispatch(event, bus.deps)]

    assert results == []


@pytest.mark.asyncio
async def test_subscribers_receive_bus_dependencies():
    settings = make_settings()
    bus = EventBus(Dependencies(settings=settings))
    received = []

    async def handler(event, deps):
        received.append(deps.settings)

    bus.subscribe(ClaimSettledEvent, handler)
    await bus.publish(ClaimSettledEvent(tx_hash=MOCK_TX_HASH))

    assert received == [settings]


def test_sync_handler_rejected():
    bus = EventBus()

    def handler(event, deps):
        return None

    with pytest.raises(TypeError):
        bus.subscribe(ClaimSettledEvent, handler)
    with pytest.raises(TypeError):
        bus.hook(ClaimSettledEvent, handler)


def test_event_repr():
    event = PhaseChangedEvent(
        previous=PurchasePhase.SUBMITTING,
        phase=PurchasePhase.CONFIRMING,
        currency_symbol="ETH",
    )
    assert repr(event) == "PhaseChangedEvent(submitting -> confirming)"


@pytest.mark.asyncio
async def test_notify_contains_subscriber_errors():
    bus = EventBus()

    async def explode(event, deps):
        raise RuntimeError("listener crashed")

    bus.subscribe(ClaimSettledEvent, explode)

    with pytest.raises(RuntimeError):
        await bus.publish(ClaimSettledEvent(tx_hash=MOCK_TX_HASH))
    assert await bus.notify(ClaimSettledEvent(tx_hash=MOCK_TX_HASH)) == []
