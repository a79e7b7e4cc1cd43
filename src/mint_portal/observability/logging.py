"""
mint-portal: structured run logging.

File: src/mint_portal/observability/logging.py

Purpose
- Give every CLI run its own log file under ``<log_dir>/<run_id>/`` written by a background
  listener, so command code only pays for an enqueue.

What should be included in this file
- JSON-lines and plain text renderers sharing one event layout.
- A correlation scope that stamps ``build_id``/``layer_id``/``project_id`` on records.
- Masking of credential-looking keys and inline ``token=...``/``Bearer ...`` values.
- A single active handle with idempotent shutdown (also registered with ``atexit``).

Non-functional requirements
- Never block the caller: a full queue drops the record and counts it.
"""

from __future__ import annotations

import atexit
import contextvars
import json
import logging
import logging.handlers
import math
import queue
import re
import threading
import time
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Final, Literal

JSONValue = str | int | float | bool | None | list["JSONValue"] | dict[str, "JSONValue"]
LogFormat = Literal["json", "text"]

MASK: Final[str] = "***REDACTED***"
ROOT_LOGGER: Final[str] = "mint_portal"

_FILE_NAMES: Final[Mapping[str, str]] = {"json": "portal.jsonl", "text": "portal.log"}
_CONTEXT_FIELDS: Final[tuple[str, ...]] = (
    "run_id",
    "correlation_id",
    "project_id",
    "layer_id",
    "build_id",
)
_SECRET_KEY_HINTS: Final[tuple[str, ...]] = (
    "apikey",
    "api_key",
    "authorization",
    "cookie",
    "credential",
    "password",
    "private_key",
    "secret",
    "token",
)
_INLINE_ASSIGNMENT = re.compile(
    r"(?i)\b(?P<name>api[_-]?key|token|password|secret|authorization)\b"
    r"(?P<sep>\s*[:=]\s*)[^\s,;]+"
)
_INLINE_BEARER = re.compile(r"(?i)\bbearer\s+[\w.~+/-]+=*")

# Everything a bare LogRecord already has; other attributes arrived through ``extra=``.
_RECORD_BUILTINS: Final[frozenset[str]] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", None, None))
) | {"message", "asctime", "taskName", "portal_context"}

_context: contextvars.ContextVar[Mapping[str, str]] = contextvars.ContextVar(
    "mint_portal_log_context", default={}
)
_active_lock = threading.Lock()
_active: LoggingHandle | None = None
_atexit_hooked = False


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    run_id: str
    base_log_dir: Path | str = Path("logs")
    logger_name: str = ROOT_LOGGER
    level: int | str = "INFO"
    log_format: LogFormat = "json"
    queue_size: int = 2048
    log_to_stdout: bool = False
    redact: bool = True


# ---------------------------------------------------------------------------
# Correlation context
# ---------------------------------------------------------------------------


def get_correlation_context() -> dict[str, str]:
    return dict(_context.get())


@contextmanager
def correlation_scope(**fields: str | None) -> Iterator[None]:
    """Bind correlation ids for records logged inside the block; ``None`` unbinds a key."""

    bound = get_correlation_context()
    for name, value in fields.items():
        if value is None:
            bound.pop(name, None)
        elif isinstance(value, str) and value.strip():
            bound[name] = value.strip()
        else:
            raise ValueError(f"correlation field {name!r} must be a non-empty string")
    token = _context.set(bound)
    try:
        yield
    finally:
        _context.reset(token)


# ---------------------------------------------------------------------------
# Redaction
# ---------------------------------------------------------------------------


def default_log_redactor(value: object) -> JSONValue:
    """Convert ``value`` to JSON-safe data and mask anything that looks like a credential."""

    return _mask(_jsonable(value))


def _jsonable(value: object) -> JSONValue:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else str(value)
    if isinstance(value, datetime):
        as_utc = value.astimezone(UTC) if value.tzinfo else value.replace(tzinfo=UTC)
        return as_utc.isoformat().replace("+00:00", "Z")
    if isinstance(value, Path):
        return value.as_posix()
    if isinstance(value, Enum):
        return _jsonable(value.value)
    if isinstance(value, Mapping):
        return {str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(item) for item in value]
    return repr(value)


def _mask(value: JSONValue) -> JSONValue:
    if isinstance(value, dict):
        return {
            key: MASK if _is_secret_key(key) else _mask(item) for key, item in value.items()
        }
    if isinstance(value, list):
        return [_mask(item) for item in value]
    if isinstance(value, str):
        value = _INLINE_ASSIGNMENT.sub(lambda m: f"{m['name']}{m['sep']}{MASK}", value)
        return _INLINE_BEARER.sub(f"Bearer {MASK}", value)
    return value


def _is_secret_key(key: str) -> bool:
    lowered = key.lower()
    return any(hint in lowered for hint in _SECRET_KEY_HINTS)


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


class _EventFormatter(logging.Formatter):
    """Builds the event mapping shared by the JSON and text renderers."""

    def __init__(self, *, run_id: str, scrub: Callable[[object], JSONValue]) -> None:
        super().__init__()
        self._run_id = run_id
        self._scrub = scrub

    def event(self, record: logging.LogRecord) -> dict[str, JSONValue]:
        stamp = datetime.fromtimestamp(record.created, tz=UTC)
        event: dict[str, JSONValue] = {
            "timestamp": stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": self._text(record.getMessage()),
            "run_id": self._run_id,
        }
        captured = getattr(record, "portal_context", None) or {}
        for name in _CONTEXT_FIELDS:
            value = getattr(record, name, None) or captured.get(name)
            if isinstance(value, str) and value.strip():
                event[name] = value.strip()

        extras = {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_BUILTINS and key not in _CONTEXT_FIELDS and key[:1] != "_"
        }
        if extras:
            event["fields"] = self._scrub(extras)
        if record.exc_info:
            event["exception"] = self._text(self.formatException(record.exc_info))
        if record.stack_info:
            event["stack"] = self._text(record.stack_info)
        return event

    def _text(self, raw: str) -> str:
        scrubbed = self._scrub(raw)
        return scrubbed if isinstance(scrubbed, str) else json.dumps(scrubbed)


class _JsonLinesFormatter(_EventFormatter):
    def format(self, record: logging.LogRecord) -> str:
        return json.dumps(
            self.event(record), sort_keys=True, separators=(",", ":"), ensure_ascii=False
        )


class _TextFormatter(_EventFormatter):
    """``<ts> LEVEL logger: message key=<json> ...`` with any traceback on following lines."""

    def format(self, record: logging.LogRecord) -> str:
        event = self.event(record)
        parts = [
            str(event.pop("timestamp")),
            f"{event.pop('level'):<7}",
            f"{event.pop('logger')}:",
            str(event.pop("message")),
        ]
        trailer = event.pop("exception", None)
        parts.extend(
            f"{key}={json.dumps(event[key], sort_keys=True, ensure_ascii=False)}"
            for key in sorted(event)
        )
        line = " ".join(parts)
        return f"{line}\n{trailer}" if trailer else line


_FORMATTERS: Final[dict[str, type[_EventFormatter]]] = {
    "json": _JsonLinesFormatter,
    "text": _TextFormatter,
}


# ---------------------------------------------------------------------------
# Queue plumbing
# ---------------------------------------------------------------------------


class _ContextQueueHandler(logging.handlers.QueueHandler):
    """Copies the caller's correlation context onto the record before it crosses threads."""

    def __init__(self, sink: queue.Queue[logging.LogRecord]) -> None:
        super().__init__(sink)
        self.dropped = 0
        self._drop_lock = threading.Lock()

    def prepare(self, record: logging.LogRecord) -> logging.LogRecord:
        record.portal_context = get_correlation_context()
        return super().prepare(record)

    def enqueue(self, record: logging.LogRecord) -> None:
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            with self._drop_lock:
                self.dropped += 1


class LoggingHandle:
    """One configured run: the logger, its file and the listener draining the queue."""

    def __init__(
        self,
        logger: logging.Logger,
        log_path: Path,
        entry: _ContextQueueHandler,
        listener: logging.handlers.QueueListener,
        outputs: tuple[logging.Handler, ...],
    ) -> None:
        self.logger = logger
        self.log_path = log_path
        self._entry = entry
        self._listener = listener
        self._outputs = outputs
        self._closed = False
        self._close_lock = threading.Lock()

    @property
    def dropped_records(self) -> int:
        return self._entry.dropped

    @property
    def is_shutdown(self) -> bool:
        return self._closed

    def flush(self, *, timeout_seconds: float = 2.0) -> None:
        pending: queue.Queue[logging.LogRecord] = self._entry.queue  # type: ignore[assignment]
        give_up = time.monotonic() + max(0.0, timeout_seconds)
        while pending.unfinished_tasks and time.monotonic() < give_up:
            time.sleep(0.01)
        for output in self._outputs:
            output.flush()

    def shutdown(self, *, timeout_seconds: float = 2.0) -> None:
        with self._close_lock:
            if self._closed:
                return
            self.flush(timeout_seconds=timeout_seconds)
            self._listener.stop()
            self.logger.removeHandler(self._entry)
            self._entry.close()
            for output in self._outputs:
                output.close()
            self._closed = True


# ---------------------------------------------------------------------------
# Setup and teardown
# ---------------------------------------------------------------------------


def setup_structured_logging(config: LoggingConfig) -> LoggingHandle:
    """Start logging for one run, replacing whatever run was active before."""

    shutdown_logging()

    run_id = _non_empty(config.run_id, "run_id")
    logger_name = _non_empty(config.logger_name, "logger_name")
    formatter_type = _FORMATTERS.get(config.log_format)
    if formatter_type is None:
        raise ValueError(f"unsupported log format {config.log_format!r}")
    if config.queue_size < 1:
        raise ValueError("queue_size must be > 0")
    level = _level_number(config.level)

    log_path = Path(config.base_log_dir) / run_id / _FILE_NAMES[config.log_format]
    log_path.parent.mkdir(parents=True, exist_ok=True)

    scrub = default_log_redactor if config.redact else _jsonable
    formatter = formatter_type(run_id=run_id, scrub=scrub)
    outputs: list[logging.Handler] = [logging.FileHandler(log_path, encoding="utf-8")]
    if config.log_to_stdout:
        outputs.append(logging.StreamHandler())
    for output in outputs:
        output.setFormatter(formatter)
        output.setLevel(level)

    logger = logging.getLogger(logger_name)
    for stale in list(logger.handlers):
        logger.removeHandler(stale)
        stale.close()
    logger.setLevel(level)
    logger.propagate = False

    entry = _ContextQueueHandler(queue.Queue(maxsize=config.queue_size))
    entry.setLevel(level)
    listener = logging.handlers.QueueListener(entry.queue, *outputs, respect_handler_level=True)
    listener.start()
    logger.addHandler(entry)

    handle = LoggingHandle(logger, log_path, entry, listener, tuple(outputs))
    _activate(handle)
    return handle


def setup_logging(
    observability_config: Mapping[str, object] | None = None,
    *,
    run_id: str,
    log_dir: Path | str | None = None,
    logger_name: str = ROOT_LOGGER,
) -> logging.Logger:
    """Start run logging from an ``[observability]`` config section; returns the logger."""

    section = observability_config or {}
    directory = log_dir if log_dir is not None else section.get("log_dir", "logs")
    level = section.get("log_level", "INFO")
    handle = setup_structured_logging(
        LoggingConfig(
            run_id=run_id,
            base_log_dir=directory if isinstance(directory, (str, Path)) else "logs",
            logger_name=logger_name,
            level=level if isinstance(level, (str, int)) else "INFO",
            log_format="text" if section.get("log_format") == "text" else "json",
            log_to_stdout=section.get("log_to_stdout") is True,
            redact=section.get("redact_secrets", True) is not False,
        )
    )
    return handle.logger


def get_active_logging_handle() -> LoggingHandle | None:
    with _active_lock:
        return _active


def flush_logging(handle: LoggingHandle | None = None, *, timeout_seconds: float = 2.0) -> None:
    target = handle or get_active_logging_handle()
    if target is not None:
        target.flush(timeout_seconds=timeout_seconds)


def shutdown_logging(handle: LoggingHandle | None = None, *, timeout_seconds: float = 2.0) -> None:
    """Close ``handle`` (the active run by default); calling it twice is harmless."""

    global _active
    target = handle or get_active_logging_handle()
    if target is None:
        return
    target.shutdown(timeout_seconds=timeout_seconds)
    with _active_lock:
        if _active is target:
            _active = None


def _activate(handle: LoggingHandle) -> None:
    global _active, _atexit_hooked
    with _active_lock:
        _active = handle
        if not _atexit_hooked:
            atexit.register(shutdown_logging)
            _atexit_hooked = True


def _non_empty(value: object, label: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    raise ValueError(f"{label} must be a non-empty string")


def _level_number(level: int | str) -> int:
    if isinstance(level, int):
        return level
    number = logging.getLevelNamesMapping().get(level.strip().upper())
    if number is None:
        raise ValueError(f"unsupported logging level {level!r}")
    return number


__all__ = [
    "JSONValue",
    "LogFormat",
    "LoggingConfig",
    "LoggingHandle",
    "correlation_scope",
    "default_log_redactor",
    "flush_logging",
    "get_active_logging_handle",
    "get_correlation_context",
    "setup_logging",
    "setup_structured_logging",
    "shutdown_logging",
]
