"""Permission policy and tool allowlists for Copilot sessions."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any

# Copilot tools removed from a session when write access is off.
# Read-class tools (view, grep, glob, web_fetch, web_search) stay available.
WRITE_TOOLS: tuple[str, ...] = ("bash", "write_bash", "create", "edit", "task")

# Tool names registered by gemini-mcp-tool that the session may call.
# Gemini CLI's internal tools run inside ask-gemini and are not listed here.
DEFAULT_GEMINI_TOOLS: tuple[str, ...] = ("ask-gemini", "brainstorm", "fetch-chunk")

WRITE_DISABLED_REASON = "Write access is disabled - only read operations permitted"
UNKNOWN_KIND_REASON = "Unrecognized permission kind - denied by default"


class PermissionKind(str, enum.Enum):
    SHELL = "shell"
    WRITE = "write"
    MCP = "mcp"
    READ = "read"
    URL = "url"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: Any) -> "PermissionKind":
        try:
            kind = cls(str(raw))
        except ValueError:
            return cls.UNKNOWN
        return kind


# Kinds that cannot mutate durable state.
READ_ONLY_KINDS = frozenset({PermissionKind.MCP, PermissionKind.READ, PermissionKind.URL})
WRITE_KINDS = frozenset({PermissionKind.SHELL, PermissionKind.WRITE})


@dataclass(frozen=True)
class PolicyDecision:
    kind: PermissionKind
    approved: bool
    reason: str | None = None

    def to_sdk_result(self) -> dict[str, Any]:
        """Render as a Copilot SDK `PermissionRequestResult`."""
        if self.approved:
            return {"kind": "approved"}
        return {"kind": "denied-by-rules", "rules": [{"description": self.reason or WRITE_DISABLED_REASON}]}


def evaluate_permission(kind: PermissionKind | str, write_access: bool) -> PolicyDecision:
    """Approve or deny one privileged action.

    Read-only kinds are always approved; shell and write only when the request
    enabled write access. Anything else is denied.
    """

    parsed = kind if isinstance(kind, PermissionKind) else PermissionKind.parse(kind)
    if parsed in READ_ONLY_KINDS:
        return PolicyDecision(parsed, True)
    if parsed in WRITE_KINDS:
        if write_access:
            return PolicyDecision(parsed, True)
        return PolicyDecision(parsed, False, WRITE_DISABLED_REASON)
    return PolicyDecision(parsed, False, UNKNOWN_KIND_REASON)


def excluded_tools_for(write_access: bool) -> list[str]:
    return [] if write_access else list(WRITE_TOOLS)
