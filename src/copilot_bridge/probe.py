"""Check the Gemini MCP allowlist against the tools the server really registers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from pydantic_ai import mcp as mcp_client  # type: ignore

from copilot_bridge.config import BridgeSettings
from copilot_bridge.log_utils import log_event

logger = logging.getLogger(__name__)

PROBE_TIMEOUT_S = 15.0

ToolLister = Callable[[BridgeSettings], Awaitable[list[str]]]


@dataclass(frozen=True)
class ProbeReport:
    available: tuple[str, ...] = ()
    missing: tuple[str, ...] = ()
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and not self.missing


async def list_gemini_tools(settings: BridgeSettings) -> list[str]:
    """Launch gemini-mcp-tool over stdio and list its tool names."""

    server = mcp_client.MCPServerStdio(
        settings.gemini_mcp_command,
        [str(settings.gemini_mcp_path)],
        timeout=PROBE_TIMEOUT_S,
        id="gemini",
    )
    async with server:
        tools = await server.list_tools()
    return [tool.name for tool in tools]


async def probe_allowlist(settings: BridgeSettings, *, lister: ToolLister = list_gemini_tools) -> ProbeReport:
    try:
        available = await lister(settings)
    except Exception as exc:
        log_event(logger, "bridge.probe.failed", level=logging.WARNING, error=str(exc))
        return ProbeReport(error=str(exc) or type(exc).__name__)
    missing = tuple(name for name in settings.gemini_tools if name not in available)
    if missing:
        log_event(logger, "bridge.probe.missing_tools", level=logging.WARNING, missing=list(missing))
    return ProbeReport(available=tuple(available), missing=missing)
