"""Stdio MCP server exposing the `ask-copilot-with-gemini` tool.

Usage:
    copilot-bridge serve
    python -m copilot_bridge serve --verbose
"""

import asyncio
import contextlib
import logging
import signal
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Annotated, Any, AsyncIterator, Mapping

from mcp.server.fastmcp import Context, FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from pydantic import Field

from copilot_bridge import __version__
from copilot_bridge.bridge import Bridge
from copilot_bridge.config import (
    COPILOT_MODELS,
    VALID_GEMINI_MODELS,
    VALID_REASONING_EFFORTS,
    BridgeSettings,
    load_settings,
    validate_settings,
)
from copilot_bridge.errors import BridgeError
from copilot_bridge.log_utils import log_event
from copilot_bridge.prompt import TOOL_DESCRIPTION, TOOL_NAME
from copilot_bridge.request import BridgeRequest
from copilot_bridge.runtime import RuntimeHandle, get_runtime

logger = logging.getLogger(__name__)

SERVER_NAME = "copilot-gemini-bridge"


@dataclass(frozen=True)
class ToolOutcome:
    text: str
    is_error: bool = False


@dataclass(frozen=True)
class BridgeContext:
    settings: BridgeSettings
    bridge: Bridge


async def handle_tool_call(arguments: Mapping[str, Any] | None, bridge: Bridge, settings: BridgeSettings) -> ToolOutcome:
    """Validate arguments, run the bridge, and fold any failure into one message."""

    try:
        request = BridgeRequest.from_arguments(arguments, settings)
        result = await bridge.run(request)
    except BridgeError as exc:
        return ToolOutcome(f"Error: {exc}", is_error=True)
    return ToolOutcome(result.render())


def report_configuration(settings: BridgeSettings, env: Mapping[str, str] | None = None) -> list[str]:
    """Log startup warnings and the effective configuration."""

    warnings = validate_settings(settings, env)
    for warning in warnings:
        logger.warning(warning)
    logger.info(
        "Config: model=%s, reasoning=%s, write=%s, timeout=%gms",
        settings.model,
        settings.reasoning_effort,
        settings.write_access,
        settings.timeout_ms,
    )
    logger.info("Gemini: model=%s, path=%s", settings.gemini_model, settings.gemini_mcp_path)
    logger.info("Gemini MCP tool allowlist: %s", ", ".join(settings.gemini_tools))
    excluded = "" if settings.write_access else f" (excluded: {', '.join(settings.excluded_write_tools)})"
    logger.info("Copilot write access: %s%s", settings.write_access, excluded)
    return warnings


def create_server(settings: BridgeSettings, runtime: RuntimeHandle) -> FastMCP:
    """Build the FastMCP app; the runtime is shut down by `serve`, not here."""

    @asynccontextmanager
    async def bridge_lifespan(_server: FastMCP) -> AsyncIterator[BridgeContext]:
        log_event(logger, "bridge.server.listening", transport="stdio", version=__version__)
        yield BridgeContext(settings=settings, bridge=Bridge(runtime, settings))

    mcp = FastMCP(name=SERVER_NAME, lifespan=bridge_lifespan)

    # Arguments stay untyped here; BridgeRequest.from_arguments is the only validator.
    @mcp.tool(name=TOOL_NAME, description=TOOL_DESCRIPTION.format(model=settings.model))
    async def ask_copilot_with_gemini(
        prompt: Annotated[
            Any,
            Field(description="The prompt/question to send to Copilot. Be specific about what you want analyzed."),
        ],
        model: Annotated[
            Any,
            Field(description=f"Model to use (string). Default: {settings.model}. Options: {', '.join(COPILOT_MODELS)}"),
        ] = None,
        reasoningEffort: Annotated[
            Any,
            Field(
                description=(
                    f"Reasoning effort level ({'|'.join(VALID_REASONING_EFFORTS)}). "
                    f"Default: {settings.reasoning_effort}. Higher = better quality but slower/more tokens."
                )
            ),
        ] = None,
        geminiModel: Annotated[
            Any,
            Field(
                description=(
                    f"Gemini model to use (string). Default: {settings.gemini_model}. Auto modes let Gemini CLI "
                    f"pick pro/flash. Options: {', '.join(VALID_GEMINI_MODELS)}"
                )
            ),
        ] = None,
        context: Annotated[
            Any,
            Field(description="Optional additional context (code snippets, file contents, etc.) to include with the prompt."),
        ] = None,
        timeout: Annotated[
            Any,
            Field(description=f"Timeout in ms (number). Default: {settings.timeout_ms:g}. Increase for very large tasks."),
        ] = None,
        writeAccess: Annotated[
            Any,
            Field(
                description=(
                    "Allow Copilot to use write/execute tools (bash, create, edit); boolean. Gemini is always "
                    f"read-only. Default: {str(settings.write_access).lower()}."
                )
            ),
        ] = None,
        ctx: Context = None,
    ) -> str:
        state: BridgeContext = ctx.request_context.lifespan_context
        outcome = await handle_tool_call(
            {
                "prompt": prompt,
                "model": model,
                "reasoningEffort": reasoningEffort,
                "geminiModel": geminiModel,
                "context": context,
                "timeout": timeout,
                "writeAccess": writeAccess,
            },
            state.bridge,
            state.settings,
        )
        if outcome.is_error:
            raise ToolError(outcome.text)
        return outcome.text

    return mcp


async def serve(settings: BridgeSettings | None = None) -> None:
    """Serve on stdio until EOF or SIGINT/SIGTERM, then stop the runtime."""

    settings = settings or load_settings()
    log_event(logger, "bridge.server.starting", name=SERVER_NAME)
    report_configuration(settings)
    runtime = get_runtime(settings)
    server = create_server(settings, runtime)

    loop = asyncio.get_running_loop()
    main_task = asyncio.current_task()
    installed: list[signal.Signals] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, _request_stop, sig, main_task)
            installed.append(sig)

    try:
        await server.run_stdio_async()
    except asyncio.CancelledError:
        log_event(logger, "bridge.server.interrupted")
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)
        await runtime.shutdown()
        log_event(logger, "bridge.server.stopped")


def _request_stop(sig: signal.Signals, task: asyncio.Task[Any] | None) -> None:
    log_event(logger, "bridge.server.signal", signal=sig.name)
    if task is not None and not task.done():
        task.cancel()
