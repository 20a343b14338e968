"""Tracking orchestrator for MCP tool calls.

MCPTracker sends invocation/success/failure events for tool calls. It is the fault-isolation boundary of the SDK:
delivery failures are returned as TrackingResult data and never raised, so an analytics outage degrades to
"no events sent" and never to "tool call fails".

Example:
    tracker = create_tracker(api_key="...")

    @tracker.instrument("search_products", get_metadata=lambda params, meta: {"input": params})
    async def search_products(params, meta=None):
        ...
"""

import functools
import inspect
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import httpx
import structlog

from mcp_analytics.delivery.client import EventClient
from mcp_analytics.metadata import merge_metadata
from mcp_analytics.types import (
    EventType,
    Metadata,
    TrackerConfig,
    TrackingResult,
    build_payload,
)
from mcp_analytics.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)

ToolFunc = Callable[..., Any]
WrappedTool = Callable[..., Awaitable[Any]]


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class MCPTracker:
    """Tracks MCP tool calls against the analytics endpoint."""

    def __init__(
        self,
        config: TrackerConfig | None = None,
        *,
        api_key: str | None = None,
        endpoint: str | None = None,
        timeout: int | None = None,
        retries: int | None = None,
        debug: bool | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize the tracker.

        Args:
            config: A ready TrackerConfig. When omitted, one is built from the keyword arguments.
            api_key: API key sent with every event (required without `config`)
            endpoint: Ingestion URL, defaults to the hosted endpoint
            timeout: Per-attempt timeout in milliseconds, default 5000
            retries: Retries after the initial attempt, default 3
            debug: Log every delivery step, default False
            http_client: Optional shared httpx client. It is never closed by the tracker.
        """
        if config is None:
            fields = {
                "api_key": api_key,
                "endpoint": endpoint,
                "timeout": timeout,
                "retries": retries,
                "debug": debug,
            }
            config = TrackerConfig(**{k: v for k, v in fields.items() if v is not None})

        self._config = config
        self._client = EventClient(config, http_client=http_client)

        if config.debug and not structlog.is_configured():
            configure_logging()

    @property
    def config(self) -> TrackerConfig:
        return self._config

    async def track(
        self,
        tool_name: str,
        event_type: EventType | str,
        metadata: Metadata | None = None,
        duration_ms: int | None = None,
    ) -> TrackingResult:
        """Track an MCP event. Never raises on delivery failure."""
        try:
            payload = build_payload(tool_name, event_type, metadata, duration_ms)
            await self._client.send_event(payload)
            return TrackingResult(success=True)
        except Exception as e:
            if self._config.debug:
                event_label = getattr(event_type, "value", event_type)
                logger.warning(
                    f"Failed to track {event_label} event for {tool_name}",
                    tool_name=tool_name,
                    event_type=event_label,
                    error=str(e),
                )
            return TrackingResult(success=False, error=e)

    async def track_invocation(
        self, tool_name: str, metadata: Metadata | None = None
    ) -> TrackingResult:
        return await self.track(tool_name, EventType.INVOCATION, metadata)

    async def track_success(
        self, tool_name: str, metadata: Metadata | None = None, duration_ms: int | None = None
    ) -> TrackingResult:
        return await self.track(tool_name, EventType.SUCCESS, metadata, duration_ms)

    async def track_failure(
        self, tool_name: str, metadata: Metadata | None = None, duration_ms: int | None = None
    ) -> TrackingResult:
        return await self.track(tool_name, EventType.FAILURE, metadata, duration_ms)

    async def _extract(
        self, extractor: Callable[..., Any] | None, label: str, tool_name: str, *args: Any
    ) -> Metadata | None:
        """Run one metadata extractor. A broken extractor only loses its own metadata."""
        if extractor is None:
            return None
        try:
            metadata = await _resolve(extractor(*args))
        except Exception as e:
            if self._config.debug:
                logger.warning(
                    f"Error getting {label} for {tool_name}",
                    tool_name=tool_name,
                    error_type=type(e).__name__,
                    error=str(e),
                )
            return None

        if metadata is not None and not isinstance(metadata, Mapping):
            if self._config.debug:
                logger.warning(
                    f"Error getting {label} for {tool_name}",
                    tool_name=tool_name,
                    error_type="TypeError",
                    error=f"expected a mapping, got {type(metadata).__name__}",
                )
            return None
        return dict(metadata) if metadata is not None else None

    def wrap(
        self,
        tool_name: str,
        fn: ToolFunc,
        *,
        get_metadata: Callable[[Any, Any], Metadata] | None = None,
        get_output_metadata: Callable[[Any], Metadata] | None = None,
        get_error_metadata: Callable[[Exception], Metadata] | None = None,
        track_invocation: bool = True,
        rethrow_errors: bool = True,
    ) -> WrappedTool:
        """Wrap a tool function with automatic event tracking.

        The returned coroutine function takes `(params, meta=None)` like the tool itself. The tool's return value
        and exceptions pass through unchanged. With `rethrow_errors=False` a failing call returns None after the
        failure event is sent.

        Args:
            tool_name: Name reported with every event
            fn: The tool. Sync functions and functions returning awaitables are both accepted.
            get_metadata: Builds invocation metadata from `(params, meta)`
            get_output_metadata: Builds success metadata from the result
            get_error_metadata: Builds failure metadata from the exception
            track_invocation: Send the invocation event before running the tool
            rethrow_errors: Re-raise the tool's exception after tracking it
        """

        @functools.wraps(fn)
        async def wrapped(params: Any = None, meta: Any = None) -> Any:
            start_time = time.perf_counter()

            invocation_metadata = await self._extract(
                get_metadata, "metadata", tool_name, params, meta
            )

            if track_invocation:
                await self.track_invocation(tool_name, invocation_metadata)

            try:
                result = await _resolve(fn(params, meta))
            except Exception as e:
                duration_ms = int((time.perf_counter() - start_time) * 1000)
                error_metadata = await self._extract(
                    get_error_metadata, "error metadata", tool_name, e
                )
                await self.track_failure(
                    tool_name, merge_metadata(invocation_metadata, error_metadata), duration_ms
                )
                if rethrow_errors:
                    raise
                return None

            duration_ms = int((time.perf_counter() - start_time) * 1000)
            output_metadata = await self._extract(
                get_output_metadata, "output metadata", tool_name, result
            )
            await self.track_success(
                tool_name, merge_metadata(invocation_metadata, output_metadata), duration_ms
            )
            return result

        return wrapped

    def instrument(self, tool_name: str, **options: Any) -> Callable[[ToolFunc], WrappedTool]:
        """Decorator form of wrap(). Accepts the same keyword options."""

        def decorator(fn: ToolFunc) -> WrappedTool:
            return self.wrap(tool_name, fn, **options)

        return decorator


def create_tracker(config: TrackerConfig | None = None, **kwargs: Any) -> MCPTracker:
    """Create a tracker. Keyword arguments are those of MCPTracker."""
    return MCPTracker(config, **kwargs)
