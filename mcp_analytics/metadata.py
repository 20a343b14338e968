"""
Metadata shapes understood by the analytics dashboard, plus helpers for composing them.

The TypedDicts below are descriptive only. Tracking calls accept any dict and never validate it against these
shapes, but using them enables the dashboard's insights (top queries, filters, geographic distribution), product
analytics and the recent-errors view.

Example:
    metadata: RichMetadata = {
        "input": {"query": "wireless headphones", "brand": "Sony", "price_max": 200},
        "output": {"result_count": 42, "brands_returned": ["Sony", "Bose"]},
        "context": {"locale": "en-US", "location": {"country": "US"}, "session_id": "sess_abc123"},
    }
"""

from __future__ import annotations

import traceback
from typing import Any, TypedDict

from mcp_analytics.types import Metadata


class Location(TypedDict, total=False):
    """Geographic context, used for the geo distribution charts."""

    city: str
    country: str
    region: str
    timezone: str  # IANA identifier


class RequestContext(TypedDict, total=False):
    user_agent: str
    locale: str  # e.g. "en-US"
    location: Location
    subject: str
    session_id: str
    user_id: str


class Product(TypedDict, total=False):
    title: str
    brand: str
    price: float
    currency: str  # e.g. "USD"
    category: str
    inStock: bool
    imageUrl: str
    url: str


class StructuredContent(TypedDict, total=False):
    """Product-search result content."""

    source: str
    exclusive: bool
    searchTime: float  # API response time in milliseconds
    products: list[Product]


class InputMetadata(TypedDict, total=False):
    """Search query plus any filter parameters (extra keys are expected)."""

    query: str


class PriceRange(TypedDict, total=False):
    min: float
    max: float


class ResponsePayload(TypedDict, total=False):
    result: dict[str, StructuredContent]  # {"structuredContent": ...}
    structuredContent: StructuredContent


class OutputMetadata(TypedDict, total=False):
    result_count: int
    brands_returned: list[str]
    price_range_returned: PriceRange
    response_payload: ResponsePayload


class ErrorMetadata(TypedDict, total=False):
    """Shown in the Tools table's recent errors."""

    message: str
    code: str
    type: str
    stack: str


class RichMetadata(TypedDict, total=False):
    input: InputMetadata
    output: OutputMetadata
    context: RequestContext
    error: ErrorMetadata


def merge_metadata(*fragments: Metadata | None) -> Metadata:
    """Shallow-merge metadata fragments into a new dict.

    None fragments are skipped. Later fragments win on key collisions, and nested dicts are replaced
    rather than combined.

    >>> merge_metadata({"a": 1, "b": 2}, {"b": 3, "c": 4})
    {'a': 1, 'b': 3, 'c': 4}
    >>> merge_metadata(None, None)
    {}
    """
    merged: Metadata = {}
    for fragment in fragments:
        if fragment:
            merged.update(fragment)
    return merged


def describe_error(error: BaseException, stack_lines: int = 3) -> ErrorMetadata:
    """Build failure metadata from an exception.

    Usable directly as a `get_error_metadata` extractor:

        tracker.wrap("search", search, get_error_metadata=lambda e: {"error": describe_error(e)})
    """
    described: ErrorMetadata = {
        "message": str(error),
        "type": type(error).__name__,
    }

    code: Any = getattr(error, "code", None) or getattr(error, "status_code", None)
    if code is not None:
        described["code"] = str(code)

    if error.__traceback__ is not None and stack_lines > 0:
        formatted = "".join(traceback.format_exception(error)).splitlines()
        described["stack"] = "\n".join(formatted[:stack_lines])

    return described
