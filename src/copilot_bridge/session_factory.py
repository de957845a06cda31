"""Builds one Copilot session per bridge request.

Each session gets the requested model and effort, the delegation guidance,
Gemini as a restricted MCP server, the permission policy, and an automatic
answer for ask-user prompts since no human is attached mid-session.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from copilot_bridge.config import VALID_REASONING_EFFORTS, BridgeSettings
from copilot_bridge.errors import CleanupError, SessionCreationError
from copilot_bridge.log_utils import log_event
from copilot_bridge.policy import PermissionKind, PolicyDecision, evaluate_permission, excluded_tools_for
from copilot_bridge.prompt import AUTONOMOUS_ANSWER, build_delegation_guidance
from copilot_bridge.request import BridgeRequest
from copilot_bridge.runtime import RuntimeHandle
from copilot_bridge.tool_events import ToolUsageLog

logger = logging.getLogger(__name__)

GEMINI_SERVER_NAME = "gemini"


def clamp_reasoning_effort(requested: str, supported: tuple[str, ...] | None) -> str | None:
    """Map `requested` onto the levels a model supports.

    None for `supported` means the model is unknown and the effort passes
    through; an empty tuple means the model takes no effort setting at all.
    Otherwise the nearest supported level wins, the lower one on a tie.
    """

    if supported is None:
        return requested
    if not supported:
        return None
    if requested in supported:
        return requested
    rank = {level: idx for idx, level in enumerate(VALID_REASONING_EFFORTS)}
    target = rank.get(requested, rank["medium"])
    return min(supported, key=lambda level: (abs(rank[level] - target), rank[level]))


def build_permission_handler(write_access: bool):
    """Return the `on_permission_request` callback for one session."""

    def on_permission_request(request: Mapping[str, Any] | Any, invocation: Any = None) -> dict[str, Any]:
        try:
            raw_kind = request.get("kind") if isinstance(request, Mapping) else getattr(request, "kind", None)
            decision = evaluate_permission(PermissionKind.parse(raw_kind), write_access)
        except Exception as exc:
            log_event(logger, "bridge.permission.error", level=logging.WARNING, error=str(exc))
            decision = PolicyDecision(PermissionKind.UNKNOWN, False, "Permission check failed - denied")
        if decision.approved:
            log_event(logger, "bridge.permission.approved", level=logging.DEBUG, kind=decision.kind.value)
        else:
            log_event(
                logger,
                "bridge.permission.denied",
                level=logging.WARNING,
                kind=decision.kind.value,
                reason=decision.reason,
            )
        return decision.to_sdk_result()

    return on_permission_request


def answer_user_input(request: Any, invocation: Any = None) -> dict[str, Any]:
    question = request.get("question") if isinstance(request, Mapping) else None
    log_event(logger, "bridge.user_input.auto_answered", question=question)
    return {"answer": AUTONOMOUS_ANSWER, "wasFreeform": True}


class SessionFactory:
    def __init__(self, settings: BridgeSettings) -> None:
        self._settings = settings

    def gemini_server(self) -> dict[str, Any]:
        return {
            "type": "local",
            "command": self._settings.gemini_mcp_command,
            "args": [str(self._settings.gemini_mcp_path)],
            "tools": list(self._settings.gemini_tools),
        }

    def build_config(self, request: BridgeRequest, runtime: RuntimeHandle) -> dict[str, Any]:
        """Assemble the `SessionConfig` dict passed to `create_session`."""

        config: dict[str, Any] = {
            "model": request.model,
            "system_message": {"mode": "append", "content": build_delegation_guidance(request.gemini_model)},
            "mcp_servers": {GEMINI_SERVER_NAME: self.gemini_server()},
            "on_permission_request": build_permission_handler(request.write_access),
            "on_user_input_request": answer_user_input,
        }
        effort = clamp_reasoning_effort(request.reasoning_effort, runtime.supported_efforts(request.model))
        if effort is not None:
            config["reasoning_effort"] = effort
        if effort != request.reasoning_effort:
            log_event(
                logger,
                "bridge.session.effort_clamped",
                model=request.model,
                requested=request.reasoning_effort,
                effective=effort or "none",
            )
        excluded = excluded_tools_for(request.write_access)
        if excluded:
            config["excluded_tools"] = excluded
        return config

    async def create_session(
        self, client: Any, request: BridgeRequest, runtime: RuntimeHandle, usage_log: ToolUsageLog
    ) -> Any:
        """Create a session and subscribe `usage_log` to its events.

        A session whose subscription fails is destroyed before the
        `SessionCreationError` is raised.
        """

        config = self.build_config(request, runtime)
        log_event(logger, "bridge.session.creating", model=request.model, gemini_tools=list(self._settings.gemini_tools))
        try:
            session = await client.create_session(config)
        except Exception as exc:
            raise SessionCreationError(f"Failed to create Copilot session: {exc}", cause=exc) from exc
        try:
            session.on(usage_log.handle_event)
        except Exception as exc:
            await destroy_session(session)
            raise SessionCreationError(f"Failed to subscribe to Copilot session events: {exc}", cause=exc) from exc
        log_event(logger, "bridge.session.created", session_id=getattr(session, "session_id", None))
        return session


async def destroy_session(session: Any) -> None:
    """Destroy `session`, logging (never raising) a cleanup failure."""

    try:
        await session.destroy()
    except Exception as exc:
        failure = CleanupError(f"Session cleanup failed: {exc}", cause=exc)
        log_event(logger, "bridge.session.destroy_failed", level=logging.WARNING, error=str(failure))
    else:
        log_event(logger, "bridge.session.destroyed", level=logging.DEBUG)
