"""Classified delivery errors raised at the transport boundary."""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """What went wrong during one delivery attempt. Drives the retry decision."""

    NETWORK = "network"
    TIMEOUT = "timeout"
    HTTP_CLIENT = "http-client"
    HTTP_SERVER = "http-server"
    OTHER = "other"


class DeliveryError(Exception):
    """Base exception for analytics event delivery failures."""

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind = ErrorKind.OTHER,
        status_code: int | None = None,
        response_body: Any | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.status_code = status_code
        self.response_body = response_body

    @classmethod
    def from_status(cls, status_code: int, body: str = "", reason: str = "") -> DeliveryError:
        """Build the error for a non-2xx response."""
        if 400 <= status_code < 500:
            kind = ErrorKind.HTTP_CLIENT
        elif status_code >= 500:
            kind = ErrorKind.HTTP_SERVER
        else:
            kind = ErrorKind.OTHER

        return cls(
            f"HTTP {status_code}: {body or reason}",
            kind=kind,
            status_code=status_code,
            response_body=body,
        )

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({self.message!r}, kind={self.kind.value!r}, "
            f"status_code={self.status_code!r})"
        )


class DeliveryTimeoutError(DeliveryError):
    """The request did not complete within the configured timeout."""

    def __init__(self, timeout_ms: int):
        super().__init__(f"Request timeout after {timeout_ms}ms", kind=ErrorKind.TIMEOUT)
        self.timeout_ms = timeout_ms
