"""Process-wide handle on the Copilot CLI runtime.

One `CopilotClient` serves every request. It is started lazily by the first
caller; concurrent first callers await the same start attempt, and a failed
attempt is cleared so the next call starts over.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Any, Callable

from copilot import CopilotClient

from copilot_bridge.config import VALID_REASONING_EFFORTS, BridgeSettings, load_settings
from copilot_bridge.errors import CleanupError, RuntimeStartError
from copilot_bridge.log_utils import log_event

logger = logging.getLogger(__name__)

ClientFactory = Callable[[BridgeSettings], Any]


class RuntimeState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    STARTING = "starting"
    READY = "ready"
    STOPPED = "stopped"


def create_copilot_client(settings: BridgeSettings) -> CopilotClient:
    return CopilotClient({"log_level": settings.copilot_log_level})


def _model_efforts(info: Any) -> tuple[str, ...] | None:
    """Supported efforts for one `ModelInfo`; None when the model does not say."""

    efforts = getattr(info, "supported_reasoning_efforts", None)
    if efforts:
        return tuple(e for e in VALID_REASONING_EFFORTS if e in efforts)
    supports = getattr(getattr(info, "capabilities", None), "supports", None)
    if supports is not None and getattr(supports, "reasoning_effort", None) is False:
        return ()
    return None


class RuntimeHandle:
    """Lifecycle owner for the shared Copilot client."""

    def __init__(self, settings: BridgeSettings, *, client_factory: ClientFactory | None = None) -> None:
        self._settings = settings
        self._client_factory = client_factory or create_copilot_client
        self._client: Any | None = None
        self._start_task: asyncio.Task[Any] | None = None
        self._state = RuntimeState.UNINITIALIZED
        self._model_efforts: dict[str, tuple[str, ...]] = {}

    @property
    def state(self) -> RuntimeState:
        return self._state

    def supported_efforts(self, model: str) -> tuple[str, ...] | None:
        """Memoized effort levels for `model`, or None if the model is unknown."""
        return self._model_efforts.get(model)

    async def ensure_started(self) -> Any:
        """Return the started client, starting it at most once per attempt."""

        if self._state is RuntimeState.READY and self._client is not None:
            return self._client
        if self._start_task is None:
            self._state = RuntimeState.STARTING
            task = asyncio.ensure_future(self._start())
            task.add_done_callback(_consume_exception)
            self._start_task = task
        return await asyncio.shield(self._start_task)

    async def _start(self) -> Any:
        log_event(logger, "bridge.runtime.starting", log_level=self._settings.copilot_log_level)
        client = self._client_factory(self._settings)
        try:
            await client.start()
            model_efforts = await self._load_model_efforts(client)
        except asyncio.CancelledError:
            # Abandoned by shutdown; the CLI child may already be running.
            self._reset_after_failed_start()
            log_event(logger, "bridge.runtime.start_cancelled", level=logging.WARNING)
            await _force_stop_quietly(client)
            raise
        except Exception as exc:
            self._reset_after_failed_start()
            log_event(logger, "bridge.runtime.start_failed", level=logging.ERROR, error=str(exc))
            await _force_stop_quietly(client)
            raise RuntimeStartError(f"Copilot runtime failed to start: {exc}", cause=exc) from exc

        self._model_efforts = model_efforts
        self._client = client
        self._state = RuntimeState.READY
        self._start_task = None
        log_event(logger, "bridge.runtime.ready", models=len(self._model_efforts))
        return client

    def _reset_after_failed_start(self) -> None:
        self._state = RuntimeState.UNINITIALIZED
        self._start_task = None

    async def _load_model_efforts(self, client: Any) -> dict[str, tuple[str, ...]]:
        try:
            models = await client.list_models()
        except Exception as exc:
            log_event(logger, "bridge.runtime.list_models_failed", level=logging.WARNING, error=str(exc))
            return {}
        memo: dict[str, tuple[str, ...]] = {}
        for info in models or []:
            model_id = getattr(info, "id", None)
            efforts = _model_efforts(info)
            if model_id and efforts is not None:
                memo[str(model_id)] = efforts
        return memo

    async def shutdown(self) -> None:
        """Stop the client gracefully, falling back to a force stop. Never raises."""

        pending = self._start_task
        if pending is not None and not pending.done():
            await asyncio.wait({pending}, timeout=self._settings.shutdown_timeout_s)
            if not pending.done():
                pending.cancel()
                # Let the cancelled start force-stop its client.
                await asyncio.wait({pending}, timeout=self._settings.shutdown_timeout_s)

        client = self._client
        self._client = None
        self._start_task = None
        self._model_efforts = {}
        self._state = RuntimeState.STOPPED
        if client is None:
            return

        log_event(logger, "bridge.runtime.stopping")
        try:
            errors = await asyncio.wait_for(client.stop(), timeout=self._settings.shutdown_timeout_s)
        except Exception as exc:
            log_event(logger, "bridge.runtime.stop_failed", level=logging.WARNING, error=str(exc) or type(exc).__name__)
            await _force_stop_quietly(client)
            return
        if errors:
            log_event(logger, "bridge.runtime.stop_errors", level=logging.WARNING, errors=[str(e) for e in errors])
        log_event(logger, "bridge.runtime.stopped")


async def _force_stop_quietly(client: Any) -> None:
    try:
        await client.force_stop()
    except Exception as exc:
        failure = CleanupError(f"force stop failed: {exc}", cause=exc)
        log_event(logger, "bridge.runtime.force_stop_failed", level=logging.WARNING, error=str(failure))


def _consume_exception(task: asyncio.Task[Any]) -> None:
    # Waiters may all have been cancelled; keep a failed start from warning at GC.
    if not task.cancelled():
        task.exception()


_RUNTIME: RuntimeHandle | None = None


def get_runtime(settings: BridgeSettings | None = None) -> RuntimeHandle:
    """Return the process-wide runtime handle, creating it on first use."""

    global _RUNTIME
    if _RUNTIME is None:
        _RUNTIME = RuntimeHandle(settings or load_settings())
    return _RUNTIME
