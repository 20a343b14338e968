"""Tests for MCPTracker.wrap() and instrument()."""

import asyncio
import json
from typing import Any
from unittest.mock import patch

import httpx
import pytest

from mcp_analytics import MCPTracker, describe_error


class EventLog:
    """Shared timeline of delivered events and tool executions."""

    def __init__(self, status_code: int = 200):
        self.status_code = status_code
        self.timeline: list[str] = []
        self.events: list[dict[str, Any]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.events.append(body)
        self.timeline.append(body["event_type"])
        if self.status_code >= 400:
            return httpx.Response(self.status_code, text="down")
        return httpx.Response(self.status_code, json={"ok": True})

    def tracker(self, **kwargs: Any) -> MCPTracker:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
        return MCPTracker(api_key="test-key", http_client=http_client, **kwargs)


@pytest.fixture
def sleep_calls(monkeypatch) -> list[float]:
    calls: list[float] = []

    async def fake_sleep(delay: float):
        calls.append(delay)

    monkeypatch.setattr("mcp_analytics.delivery.retry.asyncio.sleep", fake_sleep)
    return calls


class TestWrapSuccess:
    @pytest.mark.asyncio
    async def test_tracks_invocation_and_success(self):
        log = EventLog()
        tracker = log.tracker()
        received: list[tuple[Any, Any]] = []

        async def tool(params, meta=None):
            received.append((params, meta))
            return {"data": "r"}

        wrapped = tracker.wrap("test_tool", tool)
        result = await wrapped({"input": "test"})

        assert result == {"data": "r"}
        assert received == [({"input": "test"}, None)]
        assert log.timeline == ["invocation", "success"]

    @pytest.mark.asyncio
    async def test_returns_same_result_object(self):
        log = EventLog()
        sentinel = object()

        async def tool(params, meta=None):
            return sentinel

        assert await log.tracker().wrap("test_tool", tool)({}) is sentinel

    @pytest.mark.asyncio
    async def test_passes_meta_through(self):
        log = EventLog()
        received: list[Any] = []

        async def tool(params, meta=None):
            received.append(meta)
            return None

        await log.tracker().wrap("test_tool", tool)({"q": 1}, {"session_id": "s1"})

        assert received == [{"session_id": "s1"}]

    @pytest.mark.asyncio
    async def test_success_carries_duration_and_invocation_does_not(self):
        log = EventLog()

        async def tool(params, meta=None):
            await asyncio.sleep(0.02)
            return "ok"

        await log.tracker().wrap("test_tool", tool)({})

        invocation, success = log.events
        assert "duration_ms" not in invocation
        assert isinstance(success["duration_ms"], int)
        assert success["duration_ms"] >= 15

    @pytest.mark.asyncio
    async def test_invocation_completes_before_tool_runs(self):
        log = EventLog()

        async def tool(params, meta=None):
            log.timeline.append("tool")
            return "ok"

        await log.tracker().wrap("test_tool", tool)({})

        assert log.timeline == ["invocation", "tool", "success"]

    @pytest.mark.asyncio
    async def test_invocation_retries_finish_before_tool_runs(self, sleep_calls):
        log = EventLog(status_code=503)

        async def tool(params, meta=None):
            log.timeline.append("tool")
            return "ok"

        result = await log.tracker(retries=2).wrap("test_tool", tool)({})

        assert result == "ok"
        assert log.timeline == [
            "invocation",
            "invocation",
            "invocation",
            "tool",
            "success",
            "success",
            "success",
        ]

    @pytest.mark.asyncio
    async def test_skips_invocation_when_disabled(self):
        log = EventLog()

        async def tool(params, meta=None):
            return {"data": "r"}

        await log.tracker().wrap("test_tool", tool, track_invocation=False)({})

        assert log.timeline == ["success"]

    @pytest.mark.asyncio
    async def test_preserves_function_identity(self):
        log = EventLog()

        async def search_products(params, meta=None):
            """Search the catalog."""
            return []

        wrapped = log.tracker().wrap("search_products", search_products)

        assert wrapped.__name__ == "search_products"
        assert wrapped.__doc__ == "Search the catalog."

    @pytest.mark.asyncio
    async def test_accepts_sync_tool(self):
        log = EventLog()

        def tool(params, meta=None):
            return params["x"] * 2

        assert await log.tracker().wrap("double", tool)({"x": 21}) == 42
        assert log.timeline == ["invocation", "success"]

    @pytest.mark.asyncio
    async def test_analytics_outage_does_not_fail_tool(self, sleep_calls):
        log = EventLog(status_code=500)

        async def tool(params, meta=None):
            return {"data": "r"}

        assert await log.tracker(retries=1).wrap("test_tool", tool)({}) == {"data": "r"}


class TestWrapFailure:
    @pytest.mark.asyncio
    async def test_tracks_failure_and_rethrows(self):
        log = EventLog()
        error = ValueError("boom")

        async def tool(params, meta=None):
            raise error

        wrapped = log.tracker().wrap("test_tool", tool)

        with pytest.raises(ValueError, match="boom") as exc_info:
            await wrapped({"input": "test"})

        assert exc_info.value is error
        assert log.timeline == ["invocation", "failure"]
        assert isinstance(log.events[1]["duration_ms"], int)

    @pytest.mark.asyncio
    async def test_swallows_error_when_rethrow_disabled(self):
        log = EventLog()

        async def tool(params, meta=None):
            raise ValueError("boom")

        result = await log.tracker().wrap("test_tool", tool, rethrow_errors=False)({})

        assert result is None
        assert log.timeline == ["invocation", "failure"]

    @pytest.mark.asyncio
    async def test_rethrows_even_when_analytics_is_down(self, sleep_calls):
        log = EventLog(status_code=500)

        async def tool(params, meta=None):
            raise KeyError("missing")

        with pytest.raises(KeyError):
            await log.tracker(retries=0).wrap("test_tool", tool)({})


class TestWrapMetadata:
    @pytest.mark.asyncio
    async def test_uses_get_metadata(self):
        log = EventLog()

        async def tool(params, meta=None):
            return {"data": "r"}

        wrapped = log.tracker().wrap(
            "test_tool", tool, get_metadata=lambda params, meta: {"input": params}
        )
        await wrapped({"query": "test"})

        assert log.events[0]["metadata"] == {"input": {"query": "test"}}

    @pytest.mark.asyncio
    async def test_merges_output_metadata_over_invocation_metadata(self):
        log = EventLog()

        async def tool(params, meta=None):
            return {"items": [1, 2, 3]}

        wrapped = log.tracker().wrap(
            "test_tool",
            tool,
            get_metadata=lambda params, meta: {"input": params, "shared": {"from": "input"}},
            get_output_metadata=lambda result: {
                "output": {"result_count": len(result["items"])},
                "shared": {"to": "output"},
            },
        )
        await wrapped({"query": "test"})

        assert log.events[1]["metadata"] == {
            "input": {"query": "test"},
            "output": {"result_count": 3},
            "shared": {"to": "output"},
        }

    @pytest.mark.asyncio
    async def test_merges_error_metadata_over_invocation_metadata(self):
        log = EventLog()

        async def tool(params, meta=None):
            raise RuntimeError("Test error")

        wrapped = log.tracker().wrap(
            "test_tool",
            tool,
            get_metadata=lambda params, meta: {"input": params, "stage": "start"},
            get_error_metadata=lambda error: {"error": {"message": str(error)}, "stage": "failed"},
        )

        with pytest.raises(RuntimeError):
            await wrapped({"q": 1})

        assert log.events[1]["metadata"] == {
            "input": {"q": 1},
            "error": {"message": "Test error"},
            "stage": "failed",
        }

    @pytest.mark.asyncio
    async def test_describe_error_as_extractor(self):
        log = EventLog()

        async def tool(params, meta=None):
            raise TypeError("bad params")

        wrapped = log.tracker().wrap(
            "test_tool", tool, get_error_metadata=lambda e: {"error": describe_error(e)}
        )

        with pytest.raises(TypeError):
            await wrapped({})

        error = log.events[1]["metadata"]["error"]
        assert error["message"] == "bad params"
        assert error["type"] == "TypeError"
        assert "Traceback" in error["stack"]

    @pytest.mark.asyncio
    async def test_accepts_async_extractors(self):
        log = EventLog()

        async def get_metadata(params, meta):
            return {"input": params}

        async def tool(params, meta=None):
            return "ok"

        await log.tracker().wrap("test_tool", tool, get_metadata=get_metadata)({"q": "x"})

        assert log.events[0]["metadata"] == {"input": {"q": "x"}}
        assert log.events[1]["metadata"] == {"input": {"q": "x"}}

    @pytest.mark.asyncio
    async def test_success_without_extractors_sends_empty_metadata(self):
        log = EventLog()

        async def tool(params, meta=None):
            return "ok"

        await log.tracker().wrap("test_tool", tool)({})

        assert "metadata" not in log.events[0]
        assert log.events[1]["metadata"] == {}


class TestExtractorIsolation:
    @staticmethod
    def _broken(*args):
        raise RuntimeError("extractor exploded")

    @pytest.mark.asyncio
    async def test_broken_get_metadata(self):
        log = EventLog()
        calls: list[int] = []

        async def tool(params, meta=None):
            calls.append(1)
            return "ok"

        result = await log.tracker().wrap("test_tool", tool, get_metadata=self._broken)({})

        assert result == "ok"
        assert calls == [1]
        assert log.timeline == ["invocation", "success"]
        assert "metadata" not in log.events[0]

    @pytest.mark.asyncio
    async def test_broken_get_output_metadata(self):
        log = EventLog()

        async def tool(params, meta=None):
            return "ok"

        wrapped = log.tracker().wrap(
            "test_tool",
            tool,
            get_metadata=lambda params, meta: {"input": "kept"},
            get_output_metadata=self._broken,
        )

        assert await wrapped({}) == "ok"
        assert log.timeline == ["invocation", "success"]
        assert log.events[1]["metadata"] == {"input": "kept"}

    @pytest.mark.asyncio
    async def test_broken_get_error_metadata(self):
        log = EventLog()

        async def tool(params, meta=None):
            raise ValueError("boom")

        wrapped = log.tracker().wrap("test_tool", tool, get_error_metadata=self._broken)

        with pytest.raises(ValueError, match="boom"):
            await wrapped({})

        assert log.timeline == ["invocation", "failure"]

    @pytest.mark.asyncio
    async def test_non_mapping_get_metadata_is_dropped(self):
        log = EventLog()

        async def tool(params, meta=None):
            return "result"

        wrapped = log.tracker().wrap(
            "test_tool",
            tool,
            get_metadata=lambda params, meta: "oops",
            get_output_metadata=lambda result: {"output": result},
        )

        assert await wrapped({}) == "result"
        assert log.timeline == ["invocation", "success"]
        assert "metadata" not in log.events[0]
        assert log.events[1]["metadata"] == {"output": "result"}

    @pytest.mark.asyncio
    async def test_non_mapping_get_output_metadata_is_dropped(self):
        log = EventLog()

        async def tool(params, meta=None):
            return "result"

        wrapped = log.tracker().wrap(
            "test_tool",
            tool,
            get_metadata=lambda params, meta: {"input": "kept"},
            get_output_metadata=lambda result: "oops",
        )

        assert await wrapped({}) == "result"
        assert log.timeline == ["invocation", "success"]
        assert log.events[1]["metadata"] == {"input": "kept"}

    @pytest.mark.asyncio
    async def test_non_mapping_get_error_metadata_is_dropped(self):
        log = EventLog()

        async def tool(params, meta=None):
            raise ValueError("boom")

        wrapped = log.tracker().wrap(
            "test_tool", tool, get_error_metadata=lambda error: ["not", "a", "dict"]
        )

        with pytest.raises(ValueError, match="boom"):
            await wrapped({})

        assert log.timeline == ["invocation", "failure"]
        assert log.events[1]["metadata"] == {}

    @pytest.mark.asyncio
    @patch("mcp_analytics.tracking.tracker.logger")
    async def test_logs_non_mapping_extractor_in_debug_mode(self, mock_logger):
        log = EventLog()

        async def tool(params, meta=None):
            return "ok"

        await log.tracker(debug=True).wrap(
            "test_tool", tool, get_output_metadata=lambda result: 42
        )({})

        mock_logger.warning.assert_called_once()
        assert "Error getting output metadata for test_tool" in mock_logger.warning.call_args[0][0]
        assert mock_logger.warning.call_args[1]["error_type"] == "TypeError"

    @pytest.mark.asyncio
    @patch("mcp_analytics.tracking.tracker.logger")
    async def test_logs_broken_extractor_in_debug_mode(self, mock_logger):
        log = EventLog()

        async def tool(params, meta=None):
            return "ok"

        await log.tracker(debug=True).wrap("test_tool", tool, get_metadata=self._broken)({})

        mock_logger.warning.assert_called_once()
        assert "Error getting metadata for test_tool" in mock_logger.warning.call_args[0][0]
        assert mock_logger.warning.call_args[1]["error_type"] == "RuntimeError"


class TestInstrument:
    @pytest.mark.asyncio
    async def test_decorator_form(self):
        log = EventLog()
        tracker = log.tracker()

        @tracker.instrument("lookup", track_invocation=False, get_output_metadata=lambda r: {"n": r})
        async def lookup(params, meta=None):
            return len(params["keys"])

        assert await lookup({"keys": ["a", "b"]}) == 2
        assert log.timeline == ["success"]
        assert log.events[0]["metadata"] == {"n": 2}
