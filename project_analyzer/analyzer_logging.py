"""Logging and pipeline events for the project analyzer.

Everything logs under the ``project_analyzer`` logger tree. ``setup_logging``
wires a stderr handler (stdout belongs to the MCP stdio transport) and an
optional JSON-lines file. Timed operations feed ``performance_monitor`` and
the scan/completion/feature passes announce themselves through
``observability_hooks`` so callers can subscribe without touching the
pipeline code.
"""

from __future__ import annotations

import json
import logging as std_logging
import time
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from functools import wraps
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Union

ROOT_LOGGER_NAME = "project_analyzer"

CONSOLE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
CONSOLE_DATE_FORMAT = "%H:%M:%S"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _child(suffix: str) -> std_logging.Logger:
    return std_logging.getLogger(f"{ROOT_LOGGER_NAME}.{suffix}")


def setup_logging(log_level: Union[str, int] = std_logging.INFO, log_file: Optional[Path] = None) -> None:
    """Configure the analyzer logger tree.

    Calling it again replaces the handlers installed by a previous call.
    The file handler, when requested, always captures DEBUG records.
    """
    if isinstance(log_level, str):
        log_level = log_level.upper()

    root = std_logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(log_level)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    console = std_logging.StreamHandler()
    console.setLevel(log_level)
    console.setFormatter(std_logging.Formatter(CONSOLE_FORMAT, CONSOLE_DATE_FORMAT))
    root.addHandler(console)

    if log_file is not None:
        json_lines = std_logging.FileHandler(log_file, encoding="utf-8")
        json_lines.setLevel(std_logging.DEBUG)
        json_lines.setFormatter(JsonFormatter())
        root.addHandler(json_lines)

    root.debug("Logging configured at %s", std_logging.getLevelName(root.level))


class JsonFormatter(std_logging.Formatter):
    """One JSON object per record; ``extra_fields`` are merged at the top level."""

    def format(self, record: std_logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "where": f"{record.module}:{record.funcName}:{record.lineno}",
            "message": record.getMessage(),
        }
        entry.update(getattr(record, "extra_fields", {}))
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


@dataclass(slots=True)
class Timing:
    operation: str
    seconds: float
    outcome: str = "ok"
    error_type: Optional[str] = None
    recorded_at: str = field(default_factory=_now)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class PerformanceMonitor:
    """In-process store of operation timings."""

    def __init__(self):
        self._timings: Dict[str, List[Timing]] = {}

    def record(self, operation: str, seconds: float, outcome: str = "ok",
               error_type: Optional[str] = None) -> Timing:
        timing = Timing(operation, seconds, outcome, error_type)
        self._timings.setdefault(operation, []).append(timing)
        _child("performance").debug(
            "%s took %.3fs (%s)", operation, seconds, outcome,
            extra={"extra_fields": timing.to_dict()},
        )
        return timing

    def timings(self, operation: Optional[str] = None) -> List[Timing]:
        if operation is not None:
            return list(self._timings.get(operation, []))
        return [t for entries in self._timings.values() for t in entries]

    def summary(self) -> Dict[str, Dict[str, Any]]:
        """Per-operation call count, total and slowest duration, and failures."""
        report = {}
        for operation, entries in self._timings.items():
            durations = [t.seconds for t in entries]
            report[operation] = {
                "calls": len(entries),
                "total_seconds": round(sum(durations), 6),
                "slowest_seconds": round(max(durations), 6),
                "failures": sum(1 for t in entries if t.outcome != "ok"),
            }
        return report

    def clear(self) -> None:
        self._timings.clear()


performance_monitor = PerformanceMonitor()


@contextmanager
def log_operation(operation_name: str, *, record_timing: bool = False, **extra_fields) -> Iterator[None]:
    """Log the start and end of a block; failures are logged and re-raised."""
    logger = _child("operations")
    fields = {"operation": operation_name, **extra_fields}
    logger.debug("%s started", operation_name, extra={"extra_fields": fields})
    started = time.perf_counter()

    try:
        yield
    except Exception as e:
        elapsed = time.perf_counter() - started
        if record_timing:
            performance_monitor.record(operation_name, elapsed, "error", type(e).__name__)
        logger.error(
            "%s failed after %.3fs: %s", operation_name, elapsed, e,
            extra={"extra_fields": {**fields, "seconds": elapsed, "outcome": "error",
                                    "error_type": type(e).__name__}},
            exc_info=True,
        )
        raise

    elapsed = time.perf_counter() - started
    if record_timing:
        performance_monitor.record(operation_name, elapsed)
    logger.info(
        "%s finished in %.3fs", operation_name, elapsed,
        extra={"extra_fields": {**fields, "seconds": elapsed, "outcome": "ok"}},
    )


def log_performance(operation_name: str):
    """Decorator form of ``log_operation`` that also records the timing."""
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            with log_operation(operation_name, record_timing=True):
                return func(*args, **kwargs)
        return wrapper
    return decorator


class ObservabilityHooks:
    """Named pipeline events with keyword-argument listeners."""

    def __init__(self):
        self._listeners: Dict[str, List[Callable[..., Any]]] = {}
        self.logger = _child("events")

    def register_hook(self, event_type: str, callback: Callable[..., Any]) -> None:
        self._listeners.setdefault(event_type, []).append(callback)

    def unregister_hook(self, event_type: str, callback: Callable[..., Any]) -> None:
        listeners = self._listeners.get(event_type, [])
        if callback in listeners:
            listeners.remove(callback)

    def trigger_hooks(self, event_type: str, **data) -> None:
        """Call every listener for ``event_type``; one failing listener does not stop the rest."""
        for listener in list(self._listeners.get(event_type, [])):
            try:
                listener(**data)
            except Exception:
                self.logger.exception("Listener %r raised on %s", listener, event_type)

    def log_pipeline_event(self, event_type: str, root_path: Optional[str] = None, **data) -> None:
        payload = {"timestamp": _now(), "root_path": root_path, **data}
        self.logger.info(event_type, extra={"extra_fields": {"event": event_type, **payload}})
        self.trigger_hooks(event_type, **payload)


observability_hooks = ObservabilityHooks()


def log_error_with_context(error: Exception, context: Dict[str, Any], **extra_fields) -> None:
    """Log ``error`` with its traceback and the caller's context dict."""
    operation = context.get("operation", "analyzer")
    _child("errors").error(
        "%s failed: %s", operation, error,
        extra={"extra_fields": {"error_type": type(error).__name__, "context": context, **extra_fields}},
        exc_info=error,
    )


def log_file_skipped(path: str, reason: str, **extra_fields) -> None:
    _child("files").warning("Skipping %s: %s", path, reason)
    observability_hooks.log_pipeline_event("file_skipped", path=path, reason=reason, **extra_fields)


def log_scan_completed(root_path: str, total_todos: int, files_scanned: int, **extra_fields) -> None:
    observability_hooks.log_pipeline_event(
        "scan_completed", root_path=root_path,
        total_todos=total_todos, files_scanned=files_scanned, **extra_fields,
    )


def log_completion_analysis(root_path: str, analyzed: int, likely_completed: int, **extra_fields) -> None:
    observability_hooks.log_pipeline_event(
        "completion_analyzed", root_path=root_path,
        analyzed=analyzed, likely_completed=likely_completed, **extra_fields,
    )


def log_feature_detection(root_path: str, plan_documents: int, features: int, **extra_fields) -> None:
    observability_hooks.log_pipeline_event(
        "features_detected", root_path=root_path,
        plan_documents=plan_documents, features=features, **extra_fields,
    )
