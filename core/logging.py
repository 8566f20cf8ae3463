# ============================================================================
# STRUCTURED LOGGING
# ============================================================================
# STATUS: Core - Structured logging with per-job context
# PURPOSE: Consistent, queryable progress lines for every job transition
# CREATED: 18 OCT 2026
# ============================================================================
"""
Structured Logging

Provides human-readable or JSON logging for the RNA-Seq orchestrator.

Features:
- Contextual fields (sample, phase, task_id) pushed with log_context()
- JSON output for log aggregation (RNASEQ_LOG_FORMAT=json)
- Named job events (job_started, job_retry, phase_completed, ...)

Usage:
    from core.logging import get_logger, log_context, log_event

    logger = get_logger("orchestrator.loop")

    with log_context(sample="S1", phase="trim"):
        log_event("job_started", {"task_id": "123"})
"""

import json
import logging
import os
import sys
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union


@dataclass
class LogContext:
    """
    Context for structured logging.

    Thread-local storage for contextual fields.
    """
    run_id: Optional[str] = None
    sample: Optional[str] = None
    phase: Optional[str] = None
    task_id: Optional[str] = None
    component: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict, excluding None values."""
        result = {}
        for key, value in asdict(self).items():
            if value is not None and key != "extra":
                result[key] = value
        if self.extra:
            result.update(self.extra)
        return result


_context_stack = threading.local()


def _get_context_stack() -> list:
    if not hasattr(_context_stack, "stack"):
        _context_stack.stack = []
    return _context_stack.stack


def get_current_context() -> LogContext:
    """Get current logging context."""
    stack = _get_context_stack()
    if stack:
        return stack[-1]
    return LogContext()


@contextmanager
def log_context(**kwargs):
    """
    Context manager for adding logging context.

    Fields not given are inherited from the enclosing context.

    Example:
        with log_context(sample="S1", phase="align"):
            logger.info("Submitting alignment")
    """
    parent = get_current_context()
    new_context = LogContext(
        run_id=kwargs.get("run_id", parent.run_id),
        sample=kwargs.get("sample", parent.sample),
        phase=kwargs.get("phase", parent.phase),
        task_id=kwargs.get("task_id", parent.task_id),
        component=kwargs.get("component", parent.component),
        extra={**parent.extra, **kwargs.get("extra", {})},
    )

    stack = _get_context_stack()
    stack.append(new_context)
    try:
        yield new_context
    finally:
        stack.pop()


def _timestamp() -> datetime:
    return datetime.now(timezone.utc)


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    One JSON object per line, for log aggregators.
    """

    def __init__(self, include_context: bool = True, include_source: bool = True):
        super().__init__()
        self.include_context = include_context
        self.include_source = include_source

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": _timestamp().isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if self.include_context:
            context_dict = get_current_context().to_dict()
            if context_dict:
                log_data["context"] = context_dict

        if hasattr(record, "extra") and record.extra:
            log_data["data"] = record.extra

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if self.include_source:
            log_data["source"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            }

        return json.dumps(log_data, default=str)


class HumanFormatter(logging.Formatter):
    """
    Human-readable formatter for terminals.

    Includes the sample/phase/task context inline.
    """

    def format(self, record: logging.LogRecord) -> str:
        timestamp = _timestamp().strftime("%Y-%m-%d %H:%M:%S")
        level = record.levelname.ljust(8)

        context = get_current_context()
        context_parts = []
        if context.sample:
            context_parts.append(f"sample={context.sample}")
        if context.phase:
            context_parts.append(f"phase={context.phase}")
        if context.task_id:
            context_parts.append(f"task={context.task_id}")

        context_str = f" [{', '.join(context_parts)}]" if context_parts else ""

        result = f"{timestamp} {level} {record.name}{context_str}: {record.getMessage()}"

        if record.exc_info:
            result += f"\n{self.formatException(record.exc_info)}"

        return result


class ContextLogger(logging.LoggerAdapter):
    """
    Logger adapter that attaches the current context to every record.
    """

    def process(self, msg, kwargs):
        context = get_current_context()

        extra = dict(kwargs.get("extra") or {})
        extra.update(context.to_dict())

        # Stored under one attribute so formatters find it in one place
        kwargs["extra"] = {"extra": extra}

        return msg, kwargs


def get_logger(name: str) -> ContextLogger:
    """
    Get a context-aware logger.

    Args:
        name: Logger name (e.g., "orchestrator.loop")
    """
    return ContextLogger(logging.getLogger(name), {})


def configure_logging(
    level: Union[str, int] = "INFO",
    json_output: bool = False,
    stream=None,
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_output: Use JSON format
        stream: Output stream (default stderr, keeping stdout for reports)
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    if json_output or os.getenv("RNASEQ_LOG_FORMAT", "").lower() == "json":
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = HumanFormatter()

    root = logging.getLogger()
    root.setLevel(level)

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(formatter)
    root.addHandler(handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ============================================================================
# JOB EVENTS
# ============================================================================

def log_event(
    name: str,
    data: Optional[Dict[str, Any]] = None,
    level: int = logging.INFO,
    logger: Optional[logging.Logger] = None,
) -> None:
    """
    Log a named job transition.

    Events carry the current sample/phase/task context so a run can be
    reconstructed by filtering on the event name.

    Args:
        name: Event name (e.g., "job_started", "job_failed")
        data: Optional event data
        level: Log level for the line
        logger: Optional specific logger to use
    """
    if logger is None:
        logger = logging.getLogger("rnaseq.events")

    event_data: Dict[str, Any] = {"event": name}
    event_data.update(get_current_context().to_dict())
    if data:
        event_data.update(data)

    details = " ".join(f"{k}={v}" for k, v in (data or {}).items())
    message = f"EVENT: {name}" + (f" {details}" if details else "")
    logger.log(level, message, extra={"extra": event_data})


__all__ = [
    "LogContext",
    "StructuredFormatter",
    "HumanFormatter",
    "ContextLogger",
    "get_logger",
    "configure_logging",
    "log_context",
    "get_current_context",
    "log_event",
]
