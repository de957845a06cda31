"""In-memory stand-ins for the Copilot SDK client and session."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from typing import Any, Callable, Iterable

from copilot_bridge.config import BridgeSettings
from copilot_bridge.request import BridgeRequest


def make_event(event_type: str, **data: Any) -> SimpleNamespace:
    """Mimic a `SessionEvent`: `.type.value` plus attribute-style `.data`."""

    return SimpleNamespace(type=SimpleNamespace(value=event_type), data=SimpleNamespace(**data))


def tool_start(tool_name: str, server: str | None = None) -> SimpleNamespace:
    return make_event("tool.execution_start", tool_name=tool_name, mcp_server_name=server)


def assistant_message(content: str | None) -> SimpleNamespace:
    return make_event("assistant.message", content=content)


def make_model(model_id: str, efforts: list[str] | None = None, *, supports_effort: bool = True) -> SimpleNamespace:
    return SimpleNamespace(
        id=model_id,
        name=model_id,
        supported_reasoning_efforts=efforts,
        capabilities=SimpleNamespace(supports=SimpleNamespace(reasoning_effort=supports_effort)),
    )


class FakeSession:
    def __init__(
        self,
        *,
        response: Any = None,
        messages: Iterable[Any] = (),
        tool_events: Iterable[Any] = (),
        delay: float = 0.0,
        send_error: BaseException | None = None,
        destroy_error: BaseException | None = None,
        subscribe_error: BaseException | None = None,
    ) -> None:
        self.session_id = "session-1"
        self.response = response
        self.messages = list(messages)
        self.tool_events = list(tool_events)
        self.delay = delay
        self.send_error = send_error
        self.destroy_error = destroy_error
        self.subscribe_error = subscribe_error
        self.handlers: list[Callable[[Any], None]] = []
        self.sent: list[tuple[dict[str, Any], float | None]] = []
        self.destroy_calls = 0

    def on(self, handler: Callable[[Any], None]) -> Callable[[], None]:
        if self.subscribe_error is not None:
            raise self.subscribe_error
        self.handlers.append(handler)
        return lambda: self.handlers.remove(handler)

    async def send_and_wait(self, options: dict[str, Any], timeout: float | None = None) -> Any:
        self.sent.append((options, timeout))
        for event in self.tool_events:
            for handler in list(self.handlers):
                handler(event)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.send_error is not None:
            raise self.send_error
        return self.response

    async def get_messages(self) -> list[Any]:
        return list(self.messages)

    async def destroy(self) -> None:
        self.destroy_calls += 1
        if self.destroy_error is not None:
            raise self.destroy_error


class FakeCopilotClient:
    def __init__(
        self,
        *,
        session: FakeSession | None = None,
        models: Iterable[Any] | BaseException = (),
        start_delay: float = 0.0,
        start_error: BaseException | None = None,
        create_error: BaseException | None = None,
        stop_error: BaseException | None = None,
        stop_delay: float = 0.0,
        force_stop_error: BaseException | None = None,
    ) -> None:
        self.session = session or FakeSession()
        self.models = models
        self.start_delay = start_delay
        self.start_error = start_error
        self.create_error = create_error
        self.stop_error = stop_error
        self.stop_delay = stop_delay
        self.force_stop_error = force_stop_error
        self.configs: list[dict[str, Any]] = []
        self.start_calls = 0
        self.stop_calls = 0
        self.force_stop_calls = 0

    async def start(self) -> None:
        self.start_calls += 1
        if self.start_delay:
            await asyncio.sleep(self.start_delay)
        if self.start_error is not None:
            raise self.start_error

    async def list_models(self) -> list[Any]:
        if isinstance(self.models, BaseException):
            raise self.models
        return list(self.models)

    async def create_session(self, config: dict[str, Any]) -> FakeSession:
        self.configs.append(config)
        if self.create_error is not None:
            raise self.create_error
        return self.session

    async def stop(self) -> list[Any]:
        self.stop_calls += 1
        if self.stop_delay:
            await asyncio.sleep(self.stop_delay)
        if self.stop_error is not None:
            raise self.stop_error
        return []

    async def force_stop(self) -> None:
        self.force_stop_calls += 1
        if self.force_stop_error is not None:
            raise self.force_stop_error


def make_request(settings: BridgeSettings, **arguments: Any) -> BridgeRequest:
    arguments.setdefault("prompt", "summarize X")
    return BridgeRequest.from_arguments(arguments, settings)
