"""MCP tool call tracking."""

from mcp_analytics.tracking.tracker import MCPTracker, create_tracker

__all__ = [
    "MCPTracker",
    "create_tracker",
]
