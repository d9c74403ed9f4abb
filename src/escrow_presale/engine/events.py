"""
Event-driven notifications with typed events.

Events carry their own data; subscribers receive the event plus a read-only
dependencies container. Every purchase or claim attempt publishes exactly one
terminal event (settled or failed); phase changes and degraded refreshes are
published as they happen.
"""

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Awaitable, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from ..config import PresaleSettings
from ..schemas.purchases import PurchasePhase

logger = logging.getLogger(__name__)

# ==================== Base Event ====================

class BaseEvent(ABC):
    """Base class for all events in the system."""

    @abstractmethod
    def __repr__(self) -> str:
        """String representation of the event."""
        pass


# ==================== Purchase Events ====================

class PhaseChangedEvent(BaseModel, BaseEvent):
    """A purchase attempt entered a new phase."""
    previous: PurchasePhase
    phase: PurchasePhase
    currency_symbol: str

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"PhaseChangedEvent({self.previous.value} -> {self.phase.value})"


class PurchaseSettledEvent(BaseModel, BaseEvent):
    """Terminal: purchase confirmed on-chain."""
    tx_hash: str
    currency_symbol: str
    token_amount: str
    approval_tx_hash: Optional[str] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"PurchaseSettledEvent(tx={self.tx_hash})"


class PurchaseFailedEvent(BaseModel, BaseEvent):
    """Terminal: purchase attempt aborted."""
    reason: str
    phase: PurchasePhase
    currency_symbol: str
    tx_hash: Optional[str] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"PurchaseFailedEvent(phase={self.phase.value}, reason={self.reason})"


# ==================== Claim Events ====================

class ClaimSettledEvent(BaseModel, BaseEvent):
    """Terminal: claimTokens() confirmed."""
    tx_hash: str

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"ClaimSettledEvent(tx={self.tx_hash})"


class ClaimFailedEvent(BaseModel, BaseEvent):
    """Terminal: claim aborted."""
    reason: str
    tx_hash: Optional[str] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"ClaimFailedEvent(reason={self.reason})"


# ==================== Refresh Events ====================

class RefreshDegradedEvent(BaseModel, BaseEvent):
    """A display-only read fell back to last-known-good data."""
    source: str
    reason: str

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"RefreshDegradedEvent(source={self.source})"


# ==================== Dependencies Container ====================

@dataclass(frozen=True)
class Dependencies:
    """Container for infrastructure dependencies (read-only)."""
    settings: Optional[PresaleSettings] = None
    session: Optional[Any] = None


# ==================== Event Bus ====================

EventHandlerFunc = Callable[[BaseEvent, Dependencies], Awaitable[Optional[Any]]]
EventHookFunc = Callable[[BaseEvent, Dependencies], Awaitable[None]]


class EventBus:
    """Event dispatcher for publishing and subscribing to events."""

    def __init__(self, deps: Optional[Dependencies] = None) -> None:
        """Initialize with empty subscribers and hooks."""
        self._subscribers: Dict[type, List[EventHandlerFunc]] = {}
        self._hooks: Dict[type, List[EventHookFunc]] = {}
        self.deps = deps or Dependencies()

    def subscribe(self, event_class: type, handler: EventHandlerFunc) -> None:
        """
        Register an async handler for the given event class.
        Multiple handlers can be subscribed to the same event type and run in parallel.

        Args:
            event_class: The event class to subscribe to.
            handler: The async handler function to call when the event is published.

        Raises:
            TypeError: If handler is not a coroutine function.
        """
        if not inspect.iscoroutinefunction(handler):
            raise TypeError(f"Handler must be a coroutine function, got {type(handler).__name__}")

        self._subscribers.setdefault(event_class, []).append(handler)

    def hook(self, event_class: type, hook_func: EventHookFunc) -> None:
        """
        Register a hook for the given event class.
        Hooks are executed before subscribers when the event is dispatched.
        """
        if not inspect.iscoroutinefunction(hook_func):
            raise TypeError(f"Handler must be a coroutine function, got {type(hook_func).__name__}")

        self._hooks.setdefault(event_class, []).append(hook_func)

    async def dispatch(self, event: BaseEvent, deps: Dependencies) -> AsyncGenerator[Optional[Any], None]:
        """
        Dispatch an event to all registered hooks and subscribers.
        Hooks run first, then all subscribers run in parallel.

        Yields:
            Results from all subscribers as they complete. Yields nothing if no subscribers are registered.
        """
        hooks = self._hooks.get(type(event), [])
        await asyncio.gather(*(hook(event, deps) for hook in hooks))

        handlers = self._subscribers.get(type(event), [])
        if not handlers:
            return

        tasks = [handler(event, deps) for handler in handlers]
        for coro in asyncio.as_completed(tasks):
            result = await coro
            yield result

    async def publish(self, event: BaseEvent) -> List[Optional[Any]]:
        """Dispatch ``event`` with the bus's own dependencies and collect results."""
        return [result async for result in self.dispatch(event, self.deps)]

    async def notify(self, event: BaseEvent) -> List[Optional[Any]]:
        """
        Like ``publish``, but a failing hook or subscriber is logged instead of raised.

        Used where the outcome being announced has already happened (e.g. a
        confirmed transaction) and must not be undone by a listener.
        """
        try:
            return await self.publish(event)
        except Exception as e:
            logger.exception("Subscriber failed for %r: %s", event, e)
            return []
