"""Request-level driver: runtime, session, prompt, result, cleanup."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import uuid
from dataclasses import dataclass
from typing import Any, AsyncIterator

from copilot_bridge.config import BridgeSettings, load_settings
from copilot_bridge.errors import BridgeError, BridgeTimeoutError
from copilot_bridge.log_utils import log_context, log_event
from copilot_bridge.prompt import NO_RESPONSE_TEXT, build_effective_prompt
from copilot_bridge.request import BridgeRequest
from copilot_bridge.runtime import RuntimeHandle, get_runtime
from copilot_bridge.session_factory import SessionFactory, destroy_session
from copilot_bridge.tool_events import ASSISTANT_MESSAGE, ToolUsageLog, event_content, event_type

logger = logging.getLogger(__name__)

# Extra time beyond the request timeout before the bridge stops waiting on the
# SDK's own deadline handling.
SEND_GRACE_S = 0.5


@dataclass(frozen=True)
class BridgeResult:
    text: str
    tools_used: tuple[str, ...] = ()

    def render(self) -> str:
        if not self.tools_used:
            return self.text
        return f"{self.text}\n\n[Tools used: {', '.join(self.tools_used)}]"


async def extract_response_text(response: Any, session: Any) -> str:
    """Final assistant text: the reply event, else the latest assistant message."""

    content = event_content(response)
    if content:
        return content
    log_event(logger, "bridge.response.empty", level=logging.WARNING)
    messages = await session.get_messages()
    for message in reversed(list(messages or [])):
        if event_type(message) == ASSISTANT_MESSAGE:
            return event_content(message) or NO_RESPONSE_TEXT
    return NO_RESPONSE_TEXT


class Bridge:
    """Runs bridge requests against a shared runtime handle."""

    def __init__(
        self,
        runtime: RuntimeHandle,
        settings: BridgeSettings,
        *,
        session_factory: SessionFactory | None = None,
    ) -> None:
        self._runtime = runtime
        self._settings = settings
        self._factory = session_factory or SessionFactory(settings)

    @contextlib.asynccontextmanager
    async def session_scope(
        self, client: Any, request: BridgeRequest, usage_log: ToolUsageLog
    ) -> AsyncIterator[Any]:
        """Yield a fresh session and destroy it exactly once on every exit path."""

        session = await self._factory.create_session(client, request, self._runtime, usage_log)
        with log_context(session_id=getattr(session, "session_id", None)):
            try:
                yield session
            finally:
                await destroy_session(session)

    async def run(self, request: BridgeRequest) -> BridgeResult:
        with log_context(request_id=uuid.uuid4().hex[:8]):
            log_event(
                logger,
                "bridge.request.start",
                model=request.model,
                reasoning=request.reasoning_effort,
                gemini=request.gemini_model,
                write=request.write_access,
                timeout_ms=request.timeout_ms,
            )
            prompt = build_effective_prompt(request.prompt, request.context)
            usage_log = ToolUsageLog()
            try:
                client = await self._runtime.ensure_started()
                async with self.session_scope(client, request, usage_log) as session:
                    response = await self._send(session, prompt, request)
                    text = await extract_response_text(response, session)
            except BridgeError as exc:
                log_event(logger, "bridge.request.failed", level=logging.ERROR, error=str(exc))
                raise
            except Exception as exc:
                log_event(logger, "bridge.request.failed", level=logging.ERROR, error=str(exc))
                raise BridgeError(f"Copilot-Gemini bridge failed: {exc}", cause=exc) from exc

            result = BridgeResult(text=text, tools_used=usage_log.distinct())
            log_event(logger, "bridge.request.done", tools=list(result.tools_used) or "none")
            return result

    async def _send(self, session: Any, prompt: str, request: BridgeRequest) -> Any:
        log_event(logger, "bridge.prompt.sending", chars=len(prompt))
        try:
            return await asyncio.wait_for(
                session.send_and_wait({"prompt": prompt}, timeout=request.timeout_s),
                timeout=request.timeout_s + SEND_GRACE_S,
            )
        except asyncio.TimeoutError as exc:
            raise BridgeTimeoutError(
                f"Timed out after {request.timeout_ms:g}ms waiting for Copilot", cause=exc
            ) from exc


async def run_bridge(request: BridgeRequest, settings: BridgeSettings | None = None) -> BridgeResult:
    """Run one request on the process-wide runtime handle."""

    settings = settings or load_settings()
    return await Bridge(get_runtime(settings), settings).run(request)
