"""
Base Schema Models for the Presale Client

This module defines the base classes every other schema model inherits from.

Core Classes:
    - CanonicalModel: Pydantic base model producing wire-ready JSON payloads
    - Refreshed: Result of a display-only read that may have fallen back to
      last-known-good data

Dependencies:
    - pydantic: For data validation and serialization
"""

from typing import Any, Dict, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field


T = TypeVar("T")


class CanonicalModel(BaseModel):
    """
    Pydantic base model shared by every schema.

    Fields are populated by name or by their wire alias; ``to_payload`` emits
    the alias form with Decimals, enums and nested models converted to
    standard JSON types.

    Example:
        class MyModel(CanonicalModel):
            user_id: str = Field(..., alias="userId")

        MyModel(user_id="u1").to_payload()  # {"userId": "u1"}
    """

    model_config = ConfigDict(populate_by_name=True)

    def to_payload(self) -> Dict[str, Any]:
        """JSON-ready dict keyed by wire aliases."""
        return self.model_dump(mode="json", by_alias=True)


class Refreshed(CanonicalModel, Generic[T]):
    """
    Outcome of a display-only read.

    ``value`` is always populated: either freshly read data, or the
    last-known-good / fallback value when the read failed or was skipped.
    Callers use ``degraded`` to tell the two apart instead of relying on logs.

    Attributes:
        value: Fresh or fallback value
        degraded: True when ``value`` is not the result of a successful read
        reason: Why the read degraded, if it did

    Example:
        result = await poller.refresh_once()
        if result.degraded:
            show_stale_marker(result.reason)
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    value: T
    degraded: bool = Field(default=False, description="True when value is fallback data")
    reason: Optional[str] = Field(default=None, description="Reason for degradation")

    @classmethod
    def fresh(cls, value: T) -> "Refreshed[T]":
        return cls(value=value)

    @classmethod
    def fallback(cls, value: T, reason: str) -> "Refreshed[T]":
        return cls(value=value, degraded=True, reason=reason)
