from __future__ import annotations

import contextlib
import dataclasses
import logging
from typing import Any, AsyncIterator

import pytest
from mcp.shared.memory import create_connected_server_and_client_session

from copilot_bridge.bridge import Bridge
from copilot_bridge.config import BridgeSettings
from copilot_bridge.policy import WRITE_TOOLS
from copilot_bridge.prompt import TOOL_NAME
from copilot_bridge.runtime import RuntimeHandle
from copilot_bridge.server import SERVER_NAME, create_server, handle_tool_call, report_configuration

from tests.utils import FakeCopilotClient, FakeSession, assistant_message, tool_start


def _bridge(settings: BridgeSettings, client: FakeCopilotClient) -> Bridge:
    return Bridge(RuntimeHandle(settings, client_factory=lambda _settings: client), settings)


@pytest.mark.asyncio
async def test_tool_call_returns_rendered_result(settings: BridgeSettings) -> None:
    session = FakeSession(response=assistant_message("Synthesized."), tool_events=[tool_start("ask-gemini", "gemini")])
    bridge = _bridge(settings, FakeCopilotClient(session=session))

    outcome = await handle_tool_call({"prompt": "analyze the repo", "writeAccess": False}, bridge, settings)

    assert not outcome.is_error
    assert outcome.text == "Synthesized.\n\n[Tools used: gemini:ask-gemini]"


@pytest.mark.asyncio
async def test_missing_prompt_is_rejected_before_runtime_start(settings: BridgeSettings) -> None:
    client = FakeCopilotClient()
    bridge = _bridge(settings, client)

    outcome = await handle_tool_call({"model": "gpt-5"}, bridge, settings)

    assert outcome.is_error
    assert outcome.text == "Error: prompt is required and must be a string"
    assert client.start_calls == 0


@pytest.mark.asyncio
async def test_bridge_failures_become_single_error_message(settings: BridgeSettings) -> None:
    session = FakeSession(delay=10.0)
    bridge = _bridge(settings, FakeCopilotClient(session=session))

    outcome = await handle_tool_call({"prompt": "slow", "timeout": 5}, bridge, settings)

    assert outcome.is_error
    assert outcome.text.startswith("Error: Timed out after 5ms")
    assert "Traceback" not in outcome.text
    assert session.destroy_calls == 1


@pytest.mark.asyncio
async def test_server_registers_bridge_tool(settings: BridgeSettings) -> None:
    server = create_server(settings, RuntimeHandle(settings, client_factory=lambda _s: FakeCopilotClient()))

    tools = await server.list_tools()

    assert server.name == SERVER_NAME
    assert [tool.name for tool in tools] == [TOOL_NAME]
    schema = tools[0].inputSchema
    assert schema["required"] == ["prompt"]
    assert {"model", "reasoningEffort", "geminiModel", "context", "timeout", "writeAccess"} <= set(schema["properties"])
    assert "ctx" not in schema["properties"]
    assert settings.model in (tools[0].description or "")


def test_report_configuration_logs_warnings(settings: BridgeSettings, caplog) -> None:
    caplog.set_level(logging.INFO)

    warnings = report_configuration(settings, {"COPILOT_TIMEOUT": "abc"})

    assert warnings == ['Invalid COPILOT_TIMEOUT="abc", using 300000ms']
    assert "Invalid COPILOT_TIMEOUT" in caplog.text
    assert "Gemini MCP tool allowlist: ask-gemini, brainstorm, fetch-chunk" in caplog.text


@contextlib.asynccontextmanager
async def _connected(settings: BridgeSettings, client: FakeCopilotClient) -> AsyncIterator[Any]:
    server = create_server(settings, RuntimeHandle(settings, client_factory=lambda _s: client))
    async with create_connected_server_and_client_session(server._mcp_server) as session:
        yield session


def _text(result: Any) -> str:
    return "".join(getattr(item, "text", "") for item in result.content)


@pytest.mark.asyncio
async def test_tool_call_over_mcp_returns_annotated_answer(settings: BridgeSettings) -> None:
    session = FakeSession(response=assistant_message("Synthesized."), tool_events=[tool_start("ask-gemini", "gemini")])
    client = FakeCopilotClient(session=session)

    async with _connected(settings, client) as mcp_session:
        result = await mcp_session.call_tool(TOOL_NAME, {"prompt": "analyze the repo", "context": "def f(): ..."})

    assert not result.isError
    assert _text(result) == "Synthesized.\n\n[Tools used: gemini:ask-gemini]"
    assert session.sent[0][0]["prompt"] == "analyze the repo\n\n--- Additional Context ---\ndef f(): ..."
    assert session.destroy_calls == 1


@pytest.mark.asyncio
async def test_missing_prompt_over_mcp_is_an_error_result(settings: BridgeSettings) -> None:
    client = FakeCopilotClient()

    async with _connected(settings, client) as mcp_session:
        missing = await mcp_session.call_tool(TOOL_NAME, {"model": "gpt-5"})
        not_a_string = await mcp_session.call_tool(TOOL_NAME, {"prompt": 42})

    assert missing.isError
    assert not_a_string.isError
    assert "prompt is required and must be a string" in _text(not_a_string)
    assert client.start_calls == 0


@pytest.mark.asyncio
async def test_string_write_access_keeps_configured_read_only(settings: BridgeSettings) -> None:
    read_only = dataclasses.replace(settings, write_access=False)
    client = FakeCopilotClient(session=FakeSession(response=assistant_message("ok")))

    async with _connected(read_only, client) as mcp_session:
        result = await mcp_session.call_tool(TOOL_NAME, {"prompt": "x", "writeAccess": "yes"})

    assert not result.isError
    assert client.configs[0]["excluded_tools"] == list(WRITE_TOOLS)
    assert client.configs[0]["on_permission_request"]({"kind": "shell"}) == {
        "kind": "denied-by-rules",
        "rules": [{"description": "Write access is disabled - only read operations permitted"}],
    }


@pytest.mark.asyncio
async def test_malformed_optional_arguments_fall_back_to_defaults(settings: BridgeSettings) -> None:
    client = FakeCopilotClient(session=FakeSession(response=assistant_message("ok")))
    arguments = {"prompt": "x", "model": 42, "reasoningEffort": 7, "geminiModel": ["pro"], "timeout": "soon"}

    async with _connected(settings, client) as mcp_session:
        result = await mcp_session.call_tool(TOOL_NAME, arguments)

    assert not result.isError
    config = client.configs[0]
    assert config["model"] == settings.model
    assert config["reasoning_effort"] == settings.reasoning_effort
    assert settings.gemini_model in config["system_message"]["content"]
    assert client.session.sent[0][1] == settings.timeout_ms / 1000.0


@pytest.mark.asyncio
async def test_unknown_tool_name_is_reported(settings: BridgeSettings) -> None:
    async with _connected(settings, FakeCopilotClient()) as mcp_session:
        result = await mcp_session.call_tool("ask-someone-else", {"prompt": "x"})

    assert result.isError
    assert "Unknown tool: ask-someone-else" in _text(result)
