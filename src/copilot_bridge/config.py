"""Process configuration read from the environment and optional `.env` files.

Every setting has a default; invalid values fall back to it and are reported
by `validate_settings` as warnings instead of failing startup.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from dotenv import load_dotenv

from copilot_bridge.paths import env_file
from copilot_bridge.policy import DEFAULT_GEMINI_TOOLS, WRITE_TOOLS

VALID_REASONING_EFFORTS: tuple[str, ...] = ("low", "medium", "high", "xhigh")

VALID_GEMINI_MODELS: tuple[str, ...] = (
    "auto-gemini-3",
    "auto-gemini-2.5",
    "gemini-3-pro-preview",
    "gemini-3-flash-preview",
    "gemini-2.5-pro",
    "gemini-2.5-flash",
    "gemini-2.5-flash-lite",
)

COPILOT_MODELS: tuple[str, ...] = ("gpt-5.2", "gpt-5.2-codex", "gpt-5.1", "gpt-5.1-codex", "gpt-5", "gpt-4.1")

DEFAULT_MODEL = "gpt-5.2"
DEFAULT_REASONING_EFFORT = "high"
DEFAULT_TIMEOUT_MS = 300_000
DEFAULT_GEMINI_MODEL = "auto-gemini-3"
DEFAULT_GEMINI_COMMAND = "node"
DEFAULT_COPILOT_LOG_LEVEL = "warning"
DEFAULT_SHUTDOWN_TIMEOUT_S = 10.0


def default_gemini_mcp_path() -> Path:
    return Path.home() / "mcp-servers" / "gemini-mcp-tool" / "dist" / "index.js"


def parse_reasoning_effort(value: object, default: str = DEFAULT_REASONING_EFFORT) -> str:
    if isinstance(value, str) and value in VALID_REASONING_EFFORTS:
        return value
    return default


def parse_timeout_ms(value: object) -> float | None:
    """Return a positive millisecond timeout, or None when the value is unusable."""

    if isinstance(value, bool) or value is None:
        return None
    try:
        parsed = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    if parsed != parsed or parsed <= 0:
        return None
    return parsed


def parse_tool_list(raw: str | None) -> tuple[str, ...]:
    if not raw:
        return DEFAULT_GEMINI_TOOLS
    return tuple(t.strip() for t in raw.split(",") if t.strip())


@dataclass(frozen=True)
class BridgeSettings:
    """Effective defaults for requests plus the Gemini MCP launch settings."""

    model: str = DEFAULT_MODEL
    reasoning_effort: str = DEFAULT_REASONING_EFFORT
    timeout_ms: float = DEFAULT_TIMEOUT_MS
    write_access: bool = True
    gemini_model: str = DEFAULT_GEMINI_MODEL
    gemini_mcp_path: Path = field(default_factory=default_gemini_mcp_path)
    gemini_mcp_command: str = DEFAULT_GEMINI_COMMAND
    gemini_tools: tuple[str, ...] = DEFAULT_GEMINI_TOOLS
    copilot_log_level: str = DEFAULT_COPILOT_LOG_LEVEL
    shutdown_timeout_s: float = DEFAULT_SHUTDOWN_TIMEOUT_S

    @property
    def excluded_write_tools(self) -> tuple[str, ...]:
        return WRITE_TOOLS


def load_settings(env: Mapping[str, str] | None = None, *, load_env_files: bool = True) -> BridgeSettings:
    """Build settings from `env` (defaults to `os.environ` after loading `.env`)."""

    if env is None:
        if load_env_files:
            load_dotenv(env_file(), override=False)
            load_dotenv()
        env = os.environ

    timeout_ms = parse_timeout_ms(env.get("COPILOT_TIMEOUT")) or DEFAULT_TIMEOUT_MS
    shutdown_timeout = parse_timeout_ms(env.get("COPILOT_SHUTDOWN_TIMEOUT")) or DEFAULT_SHUTDOWN_TIMEOUT_S
    mcp_path = env.get("GEMINI_MCP_PATH")

    return BridgeSettings(
        model=env.get("COPILOT_MODEL") or DEFAULT_MODEL,
        reasoning_effort=parse_reasoning_effort(env.get("COPILOT_REASONING_EFFORT")),
        timeout_ms=timeout_ms,
        write_access=env.get("COPILOT_WRITE_ACCESS") != "false",
        gemini_model=env.get("GEMINI_MODEL") or DEFAULT_GEMINI_MODEL,
        gemini_mcp_path=Path(mcp_path).expanduser() if mcp_path else default_gemini_mcp_path(),
        gemini_mcp_command=env.get("GEMINI_MCP_COMMAND") or DEFAULT_GEMINI_COMMAND,
        gemini_tools=parse_tool_list(env.get("GEMINI_TOOLS")),
        copilot_log_level=env.get("COPILOT_LOG_LEVEL") or DEFAULT_COPILOT_LOG_LEVEL,
        shutdown_timeout_s=shutdown_timeout,
    )


def validate_settings(settings: BridgeSettings, env: Mapping[str, str] | None = None) -> list[str]:
    """Return human-readable warnings for suspicious configuration."""

    env = os.environ if env is None else env
    warnings: list[str] = []
    if not settings.gemini_mcp_path.exists():
        warnings.append(
            f"Gemini MCP not found at {settings.gemini_mcp_path} - tool calls will fail until it's installed"
        )
    raw_effort = env.get("COPILOT_REASONING_EFFORT")
    if raw_effort and raw_effort not in VALID_REASONING_EFFORTS:
        warnings.append(
            f'Invalid COPILOT_REASONING_EFFORT="{raw_effort}", using "{settings.reasoning_effort}". '
            f"Valid: {', '.join(VALID_REASONING_EFFORTS)}"
        )
    raw_timeout = env.get("COPILOT_TIMEOUT")
    if raw_timeout and parse_timeout_ms(raw_timeout) is None:
        warnings.append(f'Invalid COPILOT_TIMEOUT="{raw_timeout}", using {settings.timeout_ms:g}ms')
    raw_gemini = env.get("GEMINI_MODEL")
    if raw_gemini and raw_gemini not in VALID_GEMINI_MODELS:
        warnings.append(f'Unrecognized GEMINI_MODEL="{raw_gemini}" - passing through (may be a new model)')
    raw_write = env.get("COPILOT_WRITE_ACCESS")
    if raw_write and raw_write not in {"true", "false"}:
        warnings.append(f'COPILOT_WRITE_ACCESS="{raw_write}" is not "true" or "false"; write access stays enabled')
    if not settings.gemini_tools:
        warnings.append("GEMINI_TOOLS is empty - Gemini will not be reachable from Copilot sessions")
    return warnings
