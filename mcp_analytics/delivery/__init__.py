"""Event delivery: transport and retry."""

from mcp_analytics.delivery.client import EventClient
from mcp_analytics.delivery.retry import RetryHandler, backoff_delay_ms, is_retryable_error

__all__ = [
    "EventClient",
    "RetryHandler",
    "backoff_delay_ms",
    "is_retryable_error",
]
