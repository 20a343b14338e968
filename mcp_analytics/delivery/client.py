"""
Outbound event delivery.

One attempt is one HTTP POST to the configured endpoint. Every attempt ends in exactly one of:
- the parsed JSON acknowledgement
- a DeliveryError classified as network, timeout, http-client, http-server or other
"""

import asyncio
import json
from typing import Any

import httpx

from mcp_analytics.delivery.retry import RetryHandler
from mcp_analytics.errors import DeliveryError, DeliveryTimeoutError, ErrorKind
from mcp_analytics.types import EventPayload, TrackerConfig
from mcp_analytics.utils.logging import get_logger

logger = get_logger(__name__)

USER_AGENT = "mcp-analytics-python/1.0"


class EventClient:
    """Sends event payloads to the analytics endpoint with timeout and retries."""

    def __init__(self, config: TrackerConfig, *, http_client: httpx.AsyncClient | None = None):
        self._config = config
        self._http_client = http_client
        self._retry_handler = RetryHandler(config.retries, config.debug)

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": self._config.api_key,
            "User-Agent": USER_AGENT,
        }

    async def send_event(self, payload: EventPayload) -> dict[str, Any]:
        """Deliver one event, retrying retryable failures.

        Raises:
            DeliveryError: The last classified error once retries are exhausted or a non-retryable error occurs
        """
        return await self._retry_handler.execute(lambda: self.send_once(payload))

    async def _post(self, body: str) -> dict[str, Any]:
        if self._http_client is not None:
            return await self._exchange(self._http_client, body)

        async with httpx.AsyncClient(timeout=self._config.timeout / 1000) as client:
            return await self._exchange(client, body)

    async def _exchange(self, client: httpx.AsyncClient, body: str) -> dict[str, Any]:
        request = client.build_request(
            "POST", self._config.endpoint, content=body, headers=self._headers()
        )
        # A failed read of an error body must still surface as an HTTP error
        response = await client.send(request, stream=True)
        try:
            if not response.is_success:
                try:
                    await response.aread()
                    error_body = response.text
                except httpx.HTTPError:
                    error_body = ""
                self._raise_for_status(response.status_code, response.reason_phrase, error_body)

            await response.aread()
        finally:
            await response.aclose()

        try:
            return response.json()
        except ValueError as e:
            raise DeliveryError(
                f"Invalid acknowledgement body: {e}",
                kind=ErrorKind.OTHER,
                status_code=response.status_code,
            ) from e

    def _raise_for_status(self, status: int, reason: str, error_body: str) -> None:
        if self._config.debug:
            if status == 401:
                logger.warning("Invalid API key", status=status)
            elif status == 400:
                logger.warning("Invalid payload", status=status, response_body=error_body)
            elif status == 429:
                logger.warning("Rate limit exceeded", status=status)

        raise DeliveryError.from_status(status, error_body, reason)

    async def send_once(self, payload: EventPayload) -> dict[str, Any]:
        """Make a single delivery attempt."""
        debug = self._config.debug
        event = payload.to_dict()
        if debug:
            logger.info("Sending event", endpoint=self._config.endpoint, payload=event)

        body = json.dumps(event, default=str)

        try:
            data = await asyncio.wait_for(self._post(body), timeout=self._config.timeout / 1000)
        except (TimeoutError, httpx.TimeoutException):
            if debug:
                logger.warning(
                    f"Request timeout after {self._config.timeout}ms",
                    tool_name=payload.tool_name,
                    event_type=payload.event_type.value,
                )
            raise DeliveryTimeoutError(self._config.timeout) from None
        except httpx.TransportError as e:
            raise DeliveryError(f"Network error: {e}", kind=ErrorKind.NETWORK) from e

        if debug:
            logger.info("Event sent successfully", response=data)
        return data
