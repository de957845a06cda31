"""Logging setup and structured context for the bridge process.

Stdout belongs to the MCP stdio transport, so records go to stderr and,
optionally, to a rotating file under the platform log directory.
"""

from __future__ import annotations

import contextlib
import contextvars
import json
import logging
import os
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Iterator, Mapping

from copilot_bridge.paths import log_dir

DEFAULT_LOG_FILE_NAME = "bridge.log"
DEFAULT_LOG_MAX_BYTES = 5_000_000
DEFAULT_LOG_BACKUPS = 3
TEXT_FORMAT = "[%(asctime)s] [%(levelname)s] [%(bridge_scope)s] %(name)s %(message)s"
# Context keys promoted into the line prefix (text) or top-level keys (JSON).
SCOPE_KEYS = ("request_id", "session_id")
# Copilot error strings can be large; text lines keep a prefix, JSON keeps all.
MAX_TEXT_VALUE_CHARS = 240

_REQUEST_CONTEXT: contextvars.ContextVar[Dict[str, Any]] = contextvars.ContextVar(
    "copilot_bridge_log_context", default={}
)


@dataclass(frozen=True)
class LogConfig:
    """Resolved logging settings for one process."""

    level: int = logging.INFO
    log_file: Path | None = None
    json: bool = False
    max_bytes: int = DEFAULT_LOG_MAX_BYTES
    backup_count: int = DEFAULT_LOG_BACKUPS


def _env_level(raw: str | None, fallback: int) -> int:
    if not raw:
        return fallback
    if raw.isdigit():
        return int(raw)
    return logging._nameToLevel.get(raw.upper(), fallback)


def _env_flag(raw: str | None) -> bool:
    return raw is not None and raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(raw: str | None, fallback: int) -> int:
    if raw is None:
        return fallback
    with contextlib.suppress(ValueError):
        return int(raw)
    return fallback


def build_log_config(
    env: Mapping[str, str] | None = None,
    *,
    verbose: bool = False,
    log_file: str | None = None,
) -> LogConfig:
    """Resolve `BRIDGE_LOG_*` variables plus CLI overrides into a LogConfig.

    A file handler is only attached when `BRIDGE_LOG_FILE` is set (a bare
    `1`/`true` selects the default file in the platform log directory) or when
    the CLI passes `--log-file`.
    """

    source = os.environ if env is None else env
    level = _env_level(source.get("BRIDGE_LOG_LEVEL"), logging.INFO)
    if verbose:
        level = logging.DEBUG

    file_setting = log_file or source.get("BRIDGE_LOG_FILE")
    resolved_file: Path | None = None
    if file_setting:
        if _env_flag(file_setting):
            base = Path(source.get("BRIDGE_LOG_DIR") or log_dir())
            base.mkdir(parents=True, exist_ok=True)
            resolved_file = base / DEFAULT_LOG_FILE_NAME
        else:
            resolved_file = Path(file_setting).expanduser()
            resolved_file.parent.mkdir(parents=True, exist_ok=True)

    return LogConfig(
        level=level,
        log_file=resolved_file,
        json=_env_flag(source.get("BRIDGE_LOG_JSON")),
        max_bytes=_env_int(source.get("BRIDGE_LOG_MAX_BYTES"), DEFAULT_LOG_MAX_BYTES),
        backup_count=_env_int(source.get("BRIDGE_LOG_BACKUPS"), DEFAULT_LOG_BACKUPS),
    )


def configure_logging(config: LogConfig) -> None:
    """Replace root handlers with a stderr handler (and an optional file)."""

    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    root.setLevel(config.level)

    formatter: logging.Formatter = JsonFormatter() if config.json else ContextFormatter(TEXT_FORMAT)
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.log_file is not None:
        handlers.append(
            RotatingFileHandler(
                config.log_file,
                maxBytes=config.max_bytes,
                backupCount=config.backup_count,
                encoding="utf-8",
            )
        )
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(ContextFilter())
        root.addHandler(handler)


@contextlib.contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """Attach fields such as `request_id` or `session_id` to records in this block."""

    merged = {**_REQUEST_CONTEXT.get(), **{k: v for k, v in fields.items() if v is not None}}
    token = _REQUEST_CONTEXT.set(merged)
    try:
        yield
    finally:
        _REQUEST_CONTEXT.reset(token)


def log_event(logger: logging.Logger, event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    """Log a stable event name with key=value fields."""

    logger.log(level, event, extra={"event_fields": fields})


def _render_value(value: Any) -> str:
    if isinstance(value, str):
        if not value:
            return '""'
        if len(value) > MAX_TEXT_VALUE_CHARS:
            value = value[:MAX_TEXT_VALUE_CHARS] + "..."
        if any(ch.isspace() for ch in value) or "=" in value or '"' in value:
            return json.dumps(value)
        return value
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, ensure_ascii=True, separators=(",", ":"))
    return str(value)


def _render_fields(fields: Mapping[str, Any]) -> str:
    return " ".join(f"{key}={_render_value(fields[key])}" for key in sorted(fields) if fields[key] is not None)


class ContextFilter(logging.Filter):
    """Stamp records with the active request scope.

    `bridge_scope` is `request_id/session_id` (or `-` outside a request); any
    other context fields ride along in `context_fields`.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003 - logging API name
        context = dict(_REQUEST_CONTEXT.get())
        scope = {key: context.pop(key) for key in SCOPE_KEYS if key in context}
        record.bridge_scope = "/".join(str(value) for value in scope.values()) or "-"
        record.scope_fields = scope
        record.context_fields = context
        record.event_fields = getattr(record, "event_fields", {})
        return True


def _ensure_scope(record: logging.LogRecord) -> None:
    if not hasattr(record, "bridge_scope"):
        ContextFilter().filter(record)


class ContextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        _ensure_scope(record)
        line = super().format(record)
        tail = " ".join(part for part in (_render_fields(record.context_fields), _render_fields(record.event_fields)) if part)
        return f"{line} {tail}" if tail else line


class JsonFormatter(logging.Formatter):
    """One JSON object per line; request and session ids are top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        _ensure_scope(record)
        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **record.scope_fields,
        }
        if record.context_fields:
            payload["context"] = record.context_fields
        if record.event_fields:
            payload["fields"] = record.event_fields
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, default=str)
