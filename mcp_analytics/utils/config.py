"""Environment lookups for the MCP analytics SDK.

Values are returned as raw strings. Type coercion of tracker settings is left to
TrackerConfig validation.
"""

import os

ENV_PREFIX = "MCP_ANALYTICS_"


def get_env(name: str) -> str | None:
    """Read `MCP_ANALYTICS_<name>`. Empty values count as unset."""
    return os.environ.get(f"{ENV_PREFIX}{name}") or None


def get_log_level() -> str:
    return (get_env("LOG_LEVEL") or "INFO").upper()


def get_log_renderer_override() -> str:
    return os.environ.get("LOG_RENDERER", "").lower()
