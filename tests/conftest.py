from __future__ import annotations

from pathlib import Path

import pytest

from copilot_bridge import runtime as runtime_module
from copilot_bridge.config import BridgeSettings

_BRIDGE_ENV_VARS = (
    "COPILOT_MODEL",
    "COPILOT_REASONING_EFFORT",
    "COPILOT_TIMEOUT",
    "COPILOT_WRITE_ACCESS",
    "COPILOT_LOG_LEVEL",
    "COPILOT_SHUTDOWN_TIMEOUT",
    "GEMINI_MODEL",
    "GEMINI_MCP_PATH",
    "GEMINI_MCP_COMMAND",
    "GEMINI_TOOLS",
    "BRIDGE_LOG_LEVEL",
    "BRIDGE_LOG_FILE",
    "BRIDGE_LOG_JSON",
    "BRIDGE_LOG_DIR",
)


@pytest.fixture(autouse=True)
def _isolate_home(tmp_path_factory, monkeypatch):
    """Force tests to use a temporary HOME/XDG dirs and a clean bridge environment."""
    base = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("HOME", str(base))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(base / ".config"))
    monkeypatch.setenv("XDG_STATE_HOME", str(base / ".local" / "state"))
    monkeypatch.setenv("XDG_DATA_HOME", str(base / ".local" / "share"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(base / ".cache"))
    monkeypatch.setattr(Path, "home", lambda: base)
    for name in _BRIDGE_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(runtime_module, "_RUNTIME", None)


@pytest.fixture
def settings(tmp_path) -> BridgeSettings:
    gemini_entry = tmp_path / "gemini-mcp-tool" / "dist" / "index.js"
    gemini_entry.parent.mkdir(parents=True)
    gemini_entry.write_text("// stub entrypoint\n", encoding="utf-8")
    return BridgeSettings(gemini_mcp_path=gemini_entry, shutdown_timeout_s=0.2)
