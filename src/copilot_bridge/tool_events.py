"""Session event helpers: event classification and the per-session tool log."""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)

TOOL_EXECUTION_START = "tool.execution_start"
ASSISTANT_MESSAGE = "assistant.message"


def event_type(event: Any) -> str:
    """Return the dotted event type string (`SessionEventType` or plain str)."""

    raw = getattr(event, "type", None)
    value = getattr(raw, "value", raw)
    return value if isinstance(value, str) else ""


def event_content(event: Any) -> str | None:
    data = getattr(event, "data", None)
    content = getattr(data, "content", None)
    return content if isinstance(content, str) and content else None


def tool_label(data: Any) -> str | None:
    """`server:tool` for MCP tools, the bare tool name for Copilot's own."""

    tool_name = getattr(data, "tool_name", None)
    if not tool_name:
        return None
    server = getattr(data, "mcp_server_name", None)
    return f"{server}:{tool_name}" if server else str(tool_name)


class ToolUsageLog:
    """Append-only record of tool executions started during one session.

    `handle_event` is the session listener and only appends; `distinct()` is
    read once when the result is assembled.
    """

    def __init__(self) -> None:
        self._labels: list[str] = []

    def handle_event(self, event: Any) -> None:
        if event_type(event) != TOOL_EXECUTION_START:
            return
        label = tool_label(getattr(event, "data", None))
        if label is None:
            return
        logger.debug("Tool call: %s", label)
        self.record(label)

    def record(self, label: str) -> None:
        self._labels.append(label)

    @property
    def labels(self) -> tuple[str, ...]:
        return tuple(self._labels)

    def distinct(self) -> tuple[str, ...]:
        """Labels without repeats, in first-seen order."""
        return tuple(dict.fromkeys(self._labels))

    def __len__(self) -> int:
        return len(self._labels)
