"""
Structured Logging Configuration.

- JSON lines for log aggregation (LOG_FORMAT=json)
- Colored human-readable lines for terminals (LOG_FORMAT=text)
- Per-module levels (LOG_LEVELS="stepwise.pipeline=DEBUG,httpx=INFO")
- Run context propagation (run_id, session_id, step_label) through ContextVars,
  so concurrent runs on one event loop keep their own context
"""

import json
import logging
import os
import sys
import time
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, TextIO

# =============================================================================
# Context Variables for Run Tracking
# =============================================================================

run_id_var: ContextVar[Optional[str]] = ContextVar("run_id", default=None)
session_id_var: ContextVar[Optional[str]] = ContextVar("session_id", default=None)
step_label_var: ContextVar[Optional[str]] = ContextVar("step_label", default=None)

_CONTEXT_VARS = {
    "run_id": run_id_var,
    "session_id": session_id_var,
    "step_label": step_label_var,
}


def set_run_context(
    run_id: Optional[str] = None,
    session_id: Optional[str] = None,
    step_label: Optional[str] = None,
) -> None:
    """
    Set run context for logging.

    Values are included in every log record emitted from the current
    asyncio task (and tasks it spawns afterwards).

    Args:
        run_id: Execution context run identifier
        session_id: Logical session
        step_label: Label of the step currently executing
    """
    if run_id is not None:
        run_id_var.set(run_id)
    if session_id is not None:
        session_id_var.set(session_id)
    if step_label is not None:
        step_label_var.set(step_label)


def clear_run_context() -> None:
    for var in _CONTEXT_VARS.values():
        var.set(None)


def get_run_context() -> Dict[str, Optional[str]]:
    return {name: var.get() for name, var in _CONTEXT_VARS.items()}


# =============================================================================
# JSON Formatter
# =============================================================================


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line.

    Format:
    {
        "timestamp": "2026-01-22T12:00:00+00:00",
        "level": "INFO",
        "logger": "stepwise.orchestrator.machine",
        "message": "Orchestration run_1a2b3c4d: planning -> executing",
        "run_id": "run_1a2b3c4d",
        "extra": {...}
    }
    """

    # Attributes every LogRecord carries; anything else came from ``extra=``
    _RECORD_ATTRIBUTES = frozenset(vars(logging.makeLogRecord({}))) | {
        "message",
        "asctime",
        *_CONTEXT_VARS,
    }

    def __init__(self, extra_fields: Optional[Dict[str, Any]] = None):
        """
        Args:
            extra_fields: Static fields added to every record
        """
        super().__init__()
        self.static_fields = dict(extra_fields or {})

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: Dict[str, Any] = {
            "timestamp": created.isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **{name: value for name, value in get_run_context().items() if value},
            **self.static_fields,
        }

        if record.levelno >= logging.WARNING:
            entry["source"] = {"file": record.pathname, "line": record.lineno, "function": record.funcName}

        if record.exc_info and record.exc_info[1] is not None:
            error = record.exc_info[1]
            entry["exception"] = {
                "type": type(error).__name__,
                "message": str(error),
                "traceback": self.formatException(record.exc_info),
            }

        extra = {
            key: value
            for key, value in vars(record).items()
            if key not in self._RECORD_ATTRIBUTES and not key.startswith("_")
        }
        if extra:
            entry["extra"] = extra

        return json.dumps(entry, default=str, ensure_ascii=False)


# =============================================================================
# Human-Readable Formatter
# =============================================================================


class ColoredFormatter(logging.Formatter):
    """
    Format:
    2026-01-22 12:00:00 [INFO    ] stepwise.facade - Message [run:1a2b3c4d step:ask#1]
    """

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"
    DIM = "\033[90m"
    NAME_WIDTH = 30

    def __init__(self, use_colors: bool = True, stream: Optional[TextIO] = None):
        super().__init__(datefmt="%Y-%m-%d %H:%M:%S")
        stream = stream or sys.stderr
        self.use_colors = use_colors and hasattr(stream, "isatty") and stream.isatty()

    def _paint(self, text: str, color: str) -> str:
        return f"{color}{text}{self.RESET}" if self.use_colors and color else text

    @staticmethod
    def _context_tags() -> List[str]:
        context = get_run_context()
        tags = []
        if context["run_id"]:
            tags.append(f"run:{context['run_id'].removeprefix('run_')}")
        if context["session_id"] and context["session_id"] != "default":
            tags.append(f"session:{context['session_id']}")
        if context["step_label"]:
            tags.append(f"step:{context['step_label']}")
        return tags

    def format(self, record: logging.LogRecord) -> str:
        name = record.name
        if len(name) > self.NAME_WIDTH:
            name = "..." + name[-(self.NAME_WIDTH - 3):]

        level = self._paint(f"[{record.levelname:8s}]", self.LEVEL_COLORS.get(record.levelname, ""))
        line = f"{self.formatTime(record, self.datefmt)} {level} {name} - {record.getMessage()}"

        tags = self._context_tags()
        if tags:
            line += " " + self._paint(f"[{' '.join(tags)}]", self.DIM)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


# =============================================================================
# Context Filter
# =============================================================================


class ContextFilter(logging.Filter):
    """
    Copies run context onto each record so plain format strings can use
    %(run_id)s %(session_id)s %(step_label)s
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for name, value in get_run_context().items():
            setattr(record, name, value or "-")
        return True


# =============================================================================
# Logging Configuration
# =============================================================================


def _level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


class LoggingConfig:
    """
    Logging settings read from the environment.

    LOG_LEVEL   base handler level (default INFO)
    LOG_FORMAT  "text" or "json" (default text)
    LOG_LEVELS  comma-separated module=level pairs
    NO_COLOR    disables ANSI colors in text mode
    """

    NOISY_LOGGERS = ("httpx", "httpcore", "asyncio")

    def __init__(self, environ: Optional[Dict[str, str]] = None):
        env = os.environ if environ is None else environ
        self.log_level = env.get("LOG_LEVEL", "INFO").upper()
        self.log_format = env.get("LOG_FORMAT", "text").lower()
        self.use_colors = env.get("NO_COLOR", "").lower() not in ("1", "true", "yes")
        self.module_levels: Dict[str, str] = dict(
            (module.strip(), level.strip().upper())
            for module, _, level in (
                pair.partition("=") for pair in env.get("LOG_LEVELS", "").split(",") if "=" in pair
            )
        )

    def build_handler(self, stream: Optional[TextIO] = None) -> logging.Handler:
        stream = stream or sys.stderr
        handler = logging.StreamHandler(stream)
        if self.log_format == "json":
            formatter: logging.Formatter = JSONFormatter(extra_fields={"service": "stepwise"})
        else:
            formatter = ColoredFormatter(use_colors=self.use_colors, stream=stream)
        handler.setFormatter(formatter)
        handler.setLevel(_level(self.log_level))
        handler.addFilter(ContextFilter())
        return handler

    def configure(self, stream: Optional[TextIO] = None) -> logging.Handler:
        """Replace the root logger's handlers with one configured handler"""
        root = logging.getLogger()
        root.setLevel(logging.DEBUG)
        root.handlers.clear()
        handler = self.build_handler(stream)
        root.addHandler(handler)

        levels = {name: logging.WARNING for name in self.NOISY_LOGGERS}
        levels.update({module: _level(level) for module, level in self.module_levels.items()})
        for module, level in levels.items():
            logging.getLogger(module).setLevel(level)

        logging.getLogger(__name__).debug(
            f"Logging configured: format={self.log_format}, level={self.log_level}"
        )
        return handler


def configure_logging(stream: Optional[TextIO] = None) -> logging.Handler:
    """Configure application logging (call once at startup)"""
    return LoggingConfig().configure(stream)


# =============================================================================
# Timing
# =============================================================================


class timed_operation:
    """
    Context manager logging the duration of a block.

    Usage:
        with timed_operation("orchestrate", logger, warn_threshold_ms=30000):
            outcome = await orchestrator.run(goal)
    """

    def __init__(
        self,
        operation_name: str,
        logger: Optional[logging.Logger] = None,
        level: int = logging.DEBUG,
        warn_threshold_ms: Optional[float] = None,
    ):
        self.operation_name = operation_name
        self.logger = logger or logging.getLogger(__name__)
        self.level = level
        self.warn_threshold_ms = warn_threshold_ms
        self.duration_ms: Optional[float] = None
        self._started = 0.0

    def __enter__(self):
        self._started = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration_ms = (time.perf_counter() - self._started) * 1000
        slow = self.warn_threshold_ms is not None and self.duration_ms > self.warn_threshold_ms
        outcome = "failed after" if exc_type is not None else "completed in"
        self.logger.log(
            logging.WARNING if slow else self.level,
            f"{self.operation_name} {outcome} {self.duration_ms:.2f}ms",
            extra={"operation": self.operation_name, "duration_ms": round(self.duration_ms, 3)},
        )
        return False
