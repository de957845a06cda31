"""Bridge a Copilot session to Gemini's MCP tools behind a mediated permission policy."""

from copilot_bridge.bridge import Bridge, BridgeResult, run_bridge
from copilot_bridge.errors import (
    BridgeError,
    BridgeTimeoutError,
    RequestValidationError,
    RuntimeStartError,
    SessionCreationError,
)
from copilot_bridge.request import BridgeRequest

__all__ = [
    "Bridge",
    "BridgeError",
    "BridgeRequest",
    "BridgeResult",
    "BridgeTimeoutError",
    "RequestValidationError",
    "RuntimeStartError",
    "SessionCreationError",
    "run_bridge",
]

__version__ = "1.0.0"
