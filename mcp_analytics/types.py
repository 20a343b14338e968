"""
Core data types for the MCP analytics SDK.

TrackerConfig is validated once and frozen. EventPayload and TrackingResult are created per tracking call.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from mcp_analytics.utils.config import ENV_PREFIX, get_env

DEFAULT_ENDPOINT = "https://dersubrqatbvvmzwkmsj.supabase.co/functions/v1/track-mcp-event"
DEFAULT_TIMEOUT_MS = 5000
DEFAULT_RETRIES = 3

Metadata = dict[str, Any]


class EventType(str, Enum):
    """Lifecycle point of a tool call."""

    INVOCATION = "invocation"
    SUCCESS = "success"
    FAILURE = "failure"


class TrackerConfig(BaseModel):
    """Resolved tracker configuration. Immutable once constructed."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    api_key: str = Field(
        ..., min_length=1, repr=False, description="Secret sent in the x-api-key header"
    )
    endpoint: str = Field(DEFAULT_ENDPOINT, min_length=1, description="Event ingestion URL")
    timeout: int = Field(DEFAULT_TIMEOUT_MS, gt=0, description="Per-attempt timeout in milliseconds")
    retries: int = Field(DEFAULT_RETRIES, ge=0, description="Retries after the initial attempt")
    debug: bool = Field(False, description="Emit diagnostic logs for every delivery step")

    @classmethod
    def from_env(cls, **overrides: Any) -> TrackerConfig:
        """Build a config from MCP_ANALYTICS_* environment variables.

        Keyword overrides that are not None win over the environment.

        Raises:
            ValueError: If no API key is available from either source
        """
        values: dict[str, Any] = {
            "api_key": get_env("API_KEY"),
            "endpoint": get_env("ENDPOINT"),
            "timeout": get_env("TIMEOUT_MS"),
            "retries": get_env("RETRIES"),
            "debug": get_env("DEBUG"),
        }
        values.update({key: value for key, value in overrides.items() if value is not None})

        if not values.get("api_key"):
            raise ValueError(f"Environment variable {ENV_PREFIX}API_KEY is required")

        return cls(**{key: value for key, value in values.items() if value is not None})


@dataclass(frozen=True)
class EventPayload:
    tool_name: str
    event_type: EventType
    duration_ms: int | None = None
    metadata: Metadata | None = None

    def to_dict(self) -> dict[str, Any]:
        """Wire body. Undefined optional fields are left out rather than sent as null."""
        body: dict[str, Any] = {
            "tool_name": self.tool_name,
            "event_type": self.event_type.value,
        }
        if self.duration_ms is not None:
            body["duration_ms"] = self.duration_ms
        if self.metadata is not None:
            body["metadata"] = self.metadata
        return body


def build_payload(
    tool_name: str,
    event_type: EventType | str,
    metadata: Metadata | None = None,
    duration_ms: int | None = None,
) -> EventPayload:
    """Create the payload for one tracking call.

    Raises:
        ValueError: If event_type is not a known event type
    """
    event = EventType(event_type)
    if event is EventType.INVOCATION:
        # Invocation events happen before the tool runs and never carry a duration
        duration_ms = None

    return EventPayload(
        tool_name=tool_name,
        event_type=event,
        duration_ms=duration_ms,
        metadata=metadata,
    )


@dataclass(frozen=True)
class TrackingResult:
    """Outcome of a tracking call. Delivery failures are reported here instead of raised."""

    success: bool
    error: Exception | None = None
