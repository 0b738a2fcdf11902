import logging
import os
import sys
from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

import structlog
from structlog.types import EventDict, WrappedLogger

# ============================================================================
# Configuration & Constants
# ============================================================================

PACKAGE_PREFIX = "nostalgia_bot"


class LogKeys(str, Enum):
    """Log field keys shared by the processors and the formatter."""

    RUN_ID = "run_id"
    MODE = "mode"
    CONTEXT = "context"
    TIMESTAMP = "timestamp"
    LOGGER = "logger"
    MESSAGE = "message"
    LEVEL = "level"
    EXTRA = "extra"


@dataclass(frozen=True)
class LogDefaults:
    """Default values for logging configuration."""

    context: str = "bot"
    run_id: str = "none"
    log_level: str = "INFO"
    max_value_length: int = 80
    run_id_display_length: int = 8


DEFAULTS = LogDefaults()


# ============================================================================
# Context Operations
# ============================================================================


def _get_context_value(key: str, default: str) -> str:
    return str(structlog.contextvars.get_contextvars().get(key, default))


def get_run_id() -> str:
    """Get the orchestration run id bound to the current task context."""
    return _get_context_value(LogKeys.RUN_ID.value, DEFAULTS.run_id)


# ============================================================================
# Log Processing
# ============================================================================


def _process_log_fields(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    """Move the event to ``message`` and every non-standard key under ``extra``."""
    event_dict[LogKeys.MESSAGE.value] = event_dict.pop("event", "")
    event_dict[LogKeys.CONTEXT.value] = _get_context_value(LogKeys.CONTEXT.value, DEFAULTS.context)
    run_id = _get_context_value(LogKeys.RUN_ID.value, DEFAULTS.run_id)

    standard_fields = (
        LogKeys.TIMESTAMP.value,
        LogKeys.LOGGER.value,
        LogKeys.MESSAGE.value,
        LogKeys.CONTEXT.value,
        LogKeys.LEVEL.value,
    )
    extra_fields = {key: event_dict.pop(key) for key in list(event_dict.keys()) if key not in standard_fields}

    if run_id != DEFAULTS.run_id:
        extra_fields[LogKeys.RUN_ID.value] = run_id

    if extra_fields:
        event_dict[LogKeys.EXTRA.value] = extra_fields

    return event_dict


# ============================================================================
# Human-Readable Formatting
# ============================================================================


class HumanReadableFormatter:
    """structlog renderer used by the CLI and in tests.

    Format: ``HH:MM:SS [LEVEL] logger: message [key=value, ...] [run:abcd1234 strict]``

    The run tag carries the prompt mode so interleaved strict and relaxed runs
    of one digest can be told apart.
    """

    def __init__(self, defaults: LogDefaults = DEFAULTS):
        self.defaults = defaults

    def __call__(self, _: WrappedLogger, __: str, event_dict: EventDict) -> str:
        level = event_dict.get(LogKeys.LEVEL.value, "info").upper()
        logger_name = self.format_logger_name(event_dict.get(LogKeys.LOGGER.value, ""))
        message = event_dict.get(LogKeys.MESSAGE.value, "")
        extra = dict(event_dict.get(LogKeys.EXTRA.value, {}))
        run_id = extra.pop(LogKeys.RUN_ID.value, "")
        mode = extra.pop(LogKeys.MODE.value, "") if run_id else ""

        time_str = self.format_timestamp(event_dict.get(LogKeys.TIMESTAMP.value, ""))
        return f"{time_str} [{level}] {logger_name}: {message}{self.format_extra_fields(extra)}{self.format_run_tag(run_id, mode)}"

    def format_field_value(self, value: Any) -> str:
        str_value = str(value)
        if len(str_value) > self.defaults.max_value_length:
            return f"{str_value[: self.defaults.max_value_length - 3]}..."
        return str_value

    def format_timestamp(self, timestamp_str: str) -> str:
        if not timestamp_str:
            return ""
        try:
            return datetime.fromisoformat(timestamp_str.replace("Z", "+00:00")).strftime("%H:%M:%S")
        except (ValueError, AttributeError):
            return timestamp_str.split("T")[1][:8] if "T" in timestamp_str else ""

    def format_run_tag(self, run_id: str, mode: str = "") -> str:
        if not run_id:
            return ""
        tag = f"run:{run_id[: self.defaults.run_id_display_length]}"
        return f" [{tag} {mode}]" if mode else f" [{tag}]"

    def format_logger_name(self, logger_name: str) -> str:
        """Drop the package prefix, ``nostalgia_bot.workflow`` -> ``workflow``."""
        if not logger_name.startswith(PACKAGE_PREFIX):
            return logger_name
        return logger_name[len(PACKAGE_PREFIX) :].lstrip(".") or logger_name

    def format_extra_fields(self, extra: dict[str, Any]) -> str:
        if not extra:
            return ""
        formatted_parts = [f"{key}={self.format_field_value(value)}" for key, value in extra.items()]
        return f" [{', '.join(formatted_parts)}]"


# ============================================================================
# Configuration
# ============================================================================


def configure_structlog(testing: bool = False) -> None:
    """Configure structured logging with JSON or human-readable output."""
    log_level = os.environ.get("LOGGING_LEVEL", DEFAULTS.log_level).upper()
    level = getattr(logging, log_level, logging.INFO)

    logging.basicConfig(format="%(message)s", level=level, stream=sys.stdout)
    logging.getLogger().setLevel(level)
    # httpx logs every request at INFO, which drowns the workflow events
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))

    processors = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.contextvars.merge_contextvars,
        _process_log_fields,
        structlog.processors.TimeStamper(fmt="iso"),
        HumanReadableFormatter() if testing else structlog.processors.JSONRenderer(),
    ]

    structlog.configure(
        processors=processors,  # type: ignore[arg-type]
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )


# ============================================================================
# Public API
# ============================================================================


def clear_context_fields() -> None:
    structlog.contextvars.clear_contextvars()


def bind_context_vars(**kwargs: Any) -> None:
    structlog.contextvars.bind_contextvars(**kwargs)


def bound_context_vars(**kwargs: Any) -> AbstractContextManager[None]:
    """Bind context variables for the duration of a ``with`` block."""
    return structlog.contextvars.bound_contextvars(**kwargs)


def get_context_vars() -> dict[str, Any]:
    return structlog.contextvars.get_contextvars()


def get_logger(name: str = "") -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name or __name__)  # type: ignore
