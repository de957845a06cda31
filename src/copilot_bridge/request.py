"""Validated bridge request built from raw MCP tool arguments."""

from __future__ import annotations

from typing import Any, Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator

from copilot_bridge.config import (
    VALID_GEMINI_MODELS,
    BridgeSettings,
    parse_reasoning_effort,
    parse_timeout_ms,
)
from copilot_bridge.errors import RequestValidationError

ReasoningEffort = Literal["low", "medium", "high", "xhigh"]


class BridgeRequest(BaseModel):
    """One task for the bridge; immutable once built."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    prompt: str = Field(..., min_length=1, description="Prompt sent to the Copilot session.")
    context: str | None = Field(None, description="Extra context appended after the prompt.")
    model: str
    reasoning_effort: ReasoningEffort
    gemini_model: str
    timeout_ms: float = Field(..., gt=0)
    write_access: bool

    @field_validator("prompt")
    @classmethod
    def _prompt_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("prompt must not be blank")
        return value

    @property
    def timeout_s(self) -> float:
        return self.timeout_ms / 1000.0

    @classmethod
    def from_arguments(cls, arguments: Mapping[str, Any] | None, settings: BridgeSettings) -> "BridgeRequest":
        """Build a request from tool-call arguments.

        Only a missing or non-string prompt is rejected. Other optional fields
        that are malformed fall back to the configured defaults.
        """

        args = dict(arguments or {})
        prompt = args.get("prompt")
        if not prompt or not isinstance(prompt, str) or not prompt.strip():
            raise RequestValidationError("prompt is required and must be a string")

        model = args.get("model")
        gemini_model = args.get("geminiModel")
        context = args.get("context")
        write_access = args.get("writeAccess")
        return cls(
            prompt=prompt,
            context=context if isinstance(context, str) and context else None,
            model=model if isinstance(model, str) and model else settings.model,
            reasoning_effort=parse_reasoning_effort(args.get("reasoningEffort"), settings.reasoning_effort),
            gemini_model=gemini_model
            if isinstance(gemini_model, str) and gemini_model in VALID_GEMINI_MODELS
            else settings.gemini_model,
            timeout_ms=parse_timeout_ms(args.get("timeout")) or settings.timeout_ms,
            write_access=write_access if isinstance(write_access, bool) else settings.write_access,
        )
