"""MCP analytics logging config

## Setup

The SDK logs through structlog. Nothing is configured on import: a host application that already configured
structlog keeps full control of rendering. When a tracker is created with `debug=True` and structlog is still
unconfigured, `configure_logging()` is called for you. You can also call it yourself.

Logs are pretty-printed by default and JSON-formatted when `LOG_RENDERER=json`.

Example usage:

```
from mcp_analytics.utils.logging import get_logger

logger = get_logger(__name__)
logger.info("Event sent", tool_name="search_products", event_type="success")
```

## Log context

Use add_log_context() to add context that will be included in all subsequent log messages within the current async
context:

```
from mcp_analytics.utils.logging import add_log_context, get_logger

add_log_context(session_id="sess-123")

logger = get_logger(__name__)
logger.info("Tracking tool call")  # Includes session_id
```

### Standard logging integration

Only the `mcp_analytics` stdlib logger gets our handler. The host's root logger and its handlers are never touched.
"""

from __future__ import annotations

import logging
from typing import Any

import structlog
import structlog.contextvars

from mcp_analytics.utils.config import get_log_level, get_log_renderer_override

PACKAGE_LOGGER_NAME = "mcp_analytics"

_handler: logging.Handler | None = None


def _get_log_renderer() -> structlog.types.Processor:
    """Get the appropriate renderer.

    Can be overridden with LOG_RENDERER environment variable:
    - 'console': ConsoleRenderer (human-readable with colors), the default
    - 'json': JSONRenderer (structured JSON output)
    """
    if get_log_renderer_override() == "json":
        return structlog.processors.JSONRenderer()

    return structlog.dev.ConsoleRenderer(
        colors=True,
        pad_event=0,  # No padding to prevent wrapping
        force_colors=False,
        repr_native_str=False,
        exception_formatter=structlog.dev.plain_traceback,
        sort_keys=True,
        event_key="message",
    )


def _common_processors() -> list[structlog.types.Processor]:
    return [
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.contextvars.merge_contextvars,
        structlog.processors.EventRenamer("message"),
        structlog.stdlib.filter_by_level,  # Must come after add_log_level
    ]


def configure_logging(force: bool = False) -> None:
    """Configure structlog and attach a handler to the package logger.

    Safe to call repeatedly. Global structlog configuration is only applied when the host has not configured
    structlog already, unless `force` is set.
    """
    global _handler

    common_processors = _common_processors()

    if force or not structlog.is_configured():
        structlog.configure(
            processors=common_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )

    package_logger = logging.getLogger(PACKAGE_LOGGER_NAME)
    package_logger.setLevel(getattr(logging, get_log_level(), logging.INFO))

    if _handler is not None and not force:
        return

    # foreign_pre_chain runs for stdlib records, which have no structlog level to filter on
    foreign_processors = [p for p in common_processors if p != structlog.stdlib.filter_by_level]
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=_get_log_renderer(),
            foreign_pre_chain=foreign_processors,
        )
    )

    if _handler is not None:
        package_logger.removeHandler(_handler)
    package_logger.addHandler(stream_handler)
    package_logger.propagate = False  # Prevent duplicate logs through the host's root handlers
    _handler = stream_handler


def add_log_context(**kwargs: Any) -> None:
    """Add values to the logging context. Simple wrapper for structlog's contextvars."""
    structlog.contextvars.bind_contextvars(**kwargs)


def remove_log_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_log_context() -> None:
    """Clear all values from the logging context."""
    structlog.contextvars.clear_contextvars()


LogContext = structlog.contextvars.bound_contextvars


def get_logger(name: str, **kwargs: Any) -> structlog.BoundLogger:
    """Get a logger instance. Wrapper around structlog.get_logger for convenience.

    Args:
        name: Logger name (usually __name__ from the calling module)

    Example:
        ```python
        from mcp_analytics.utils.logging import get_logger

        logger = get_logger(__name__, component="delivery")
        logger.info("Starting")  # Includes component
        ```
    """
    return structlog.get_logger(name, **kwargs)
