"""MCP analytics SDK: invocation, success and failure tracking for MCP tool calls."""

from mcp_analytics.errors import DeliveryError, DeliveryTimeoutError, ErrorKind
from mcp_analytics.metadata import (
    ErrorMetadata,
    InputMetadata,
    Location,
    OutputMetadata,
    Product,
    RequestContext,
    RichMetadata,
    StructuredContent,
    describe_error,
    merge_metadata,
)
from mcp_analytics.tracking import MCPTracker, create_tracker
from mcp_analytics.types import (
    DEFAULT_ENDPOINT,
    EventPayload,
    EventType,
    Metadata,
    TrackerConfig,
    TrackingResult,
)
from mcp_analytics.utils.logging import configure_logging, get_logger

__version__ = "1.0.0"

__all__ = [
    "DEFAULT_ENDPOINT",
    "DeliveryError",
    "DeliveryTimeoutError",
    "ErrorKind",
    "ErrorMetadata",
    "EventPayload",
    "EventType",
    "InputMetadata",
    "Location",
    "MCPTracker",
    "Metadata",
    "OutputMetadata",
    "Product",
    "RequestContext",
    "RichMetadata",
    "StructuredContent",
    "TrackerConfig",
    "TrackingResult",
    "configure_logging",
    "create_tracker",
    "describe_error",
    "get_logger",
    "merge_metadata",
]
