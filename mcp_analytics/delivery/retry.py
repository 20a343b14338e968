"""
Bounded retry with exponential backoff for event delivery.

Delays are 100ms, 200ms, 400ms, 800ms, 1600ms, then capped at 3000ms. Client errors (4xx) are never retried;
network failures, timeouts, server errors and anything unclassified are.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from mcp_analytics.errors import DeliveryError, ErrorKind
from mcp_analytics.utils.logging import get_logger

logger = get_logger(__name__)

BASE_DELAY_MS = 100
MAX_DELAY_MS = 3000

T = TypeVar("T")


def backoff_delay_ms(attempt: int) -> int:
    """Delay before the retry that follows `attempt` (0-indexed)."""
    return min(BASE_DELAY_MS * (2**attempt), MAX_DELAY_MS)


def is_retryable_error(error: BaseException) -> bool:
    """Decide whether a failed attempt is worth repeating."""
    if not isinstance(error, DeliveryError):
        return True

    if error.kind in (ErrorKind.NETWORK, ErrorKind.TIMEOUT):
        return True

    status = error.status_code
    if status is not None:
        if 400 <= status < 500:
            return False
        if status >= 500:
            return True

    return True


class RetryHandler:
    """Runs an async operation up to `max_retries + 1` times."""

    def __init__(self, max_retries: int, debug: bool = False):
        if max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        self.max_retries = max_retries
        self.debug = debug

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        attempt = 0
        while True:
            try:
                return await operation()
            except Exception as e:
                if not is_retryable_error(e):
                    if self.debug:
                        logger.warning(
                            "Non-retryable error, giving up",
                            attempt=attempt + 1,
                            error=str(e),
                        )
                    raise

                if attempt >= self.max_retries:
                    if self.debug:
                        logger.warning(
                            f"Max retries ({self.max_retries}) reached, giving up",
                            attempts=attempt + 1,
                            error=str(e),
                        )
                    raise

                delay_ms = backoff_delay_ms(attempt)
                if self.debug:
                    logger.info(
                        f"Retry attempt {attempt + 1}/{self.max_retries} after {delay_ms}ms",
                        delay_ms=delay_ms,
                        error=str(e),
                    )

                await asyncio.sleep(delay_ms / 1000)
                attempt += 1
