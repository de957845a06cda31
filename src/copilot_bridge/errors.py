"""Exception types raised across the bridge."""

from __future__ import annotations


class BridgeError(RuntimeError):
    """Base failure returned to the caller as a single descriptive message."""

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class RequestValidationError(BridgeError):
    """Raised for malformed tool arguments before any runtime work starts."""


class RuntimeStartError(BridgeError):
    """Raised when the Copilot runtime could not be started."""


class SessionCreationError(BridgeError):
    """Raised when a session could not be created; nothing is left to clean up."""


class BridgeTimeoutError(BridgeError, TimeoutError):
    """Raised when the session did not go idle before the request deadline."""


class CleanupError(BridgeError):
    """Teardown failure. Logged only, never raised to callers."""
