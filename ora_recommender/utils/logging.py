"""
Logging setup for the Ora recommendation engine.

Call ``configure_logging(config)`` once at CLI or server entry. Library
modules only ever do ``logging.getLogger(__name__)``.

Run context
-----------
Per-user pipeline messages pass their context with ``extra=``::

    logger.error("User run failed", extra=run_context(uid, trigger, step))

``RUN_CONTEXT_FIELDS`` lists the keys that are recognised. The text format
appends them as ``key=value`` pairs; the JSON format (``json_format = true``)
writes them as top-level fields::

    {"ts": "2025-12-08T03:00:05Z", "level": "ERROR", "logger": "ora_recommender.pipeline.run",
     "msg": "User run failed", "uid": "user-2", "trigger": "weekly_cron", "step": "candidates_loaded"}
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from ora_recommender.config import LoggingConfig

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

RUN_CONTEXT_FIELDS: tuple[str, ...] = ("uid", "trigger", "step", "run_slug")

_QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


def run_context(
    uid: str,
    trigger: Optional[str] = None,
    step: Optional[str] = None,
    run_slug: Optional[str] = None,
) -> dict[str, str]:
    """Build the ``extra=`` mapping for a per-user log line (``None`` values dropped)."""
    values = {"uid": uid, "trigger": trigger, "step": step, "run_slug": run_slug}
    return {k: str(v) for k, v in values.items() if v is not None}


def _context_of(record: logging.LogRecord) -> dict[str, Any]:
    return {
        name: getattr(record, name)
        for name in RUN_CONTEXT_FIELDS
        if getattr(record, name, None) is not None
    }


class ContextTextFormatter(logging.Formatter):
    """Plain text lines with any run context appended as ``key=value``."""

    def __init__(self) -> None:
        super().__init__(TEXT_FORMAT, datefmt=TIMESTAMP_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _context_of(record)
        if not context:
            return line
        return line + " | " + " ".join(f"{k}={v}" for k, v in context.items())


class JsonLineFormatter(logging.Formatter):
    """One JSON object per record: ts, level, logger, msg, run context, exc."""

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: dict[str, Any] = {
            "ts": ts.strftime(TIMESTAMP_FORMAT),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        payload.update(_context_of(record))
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _handler(handler: logging.Handler, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def configure_logging(config: "LoggingConfig") -> None:
    """Install stdout (and optionally file) handlers on the root logger.

    Args:
        config: ``AppConfig.logging``. ``log_file`` may be empty to log to
            stdout only; its parent directory is created when missing.
    """
    level = logging.getLevelName(config.level)
    formatter = JsonLineFormatter() if config.json_format else ContextTextFormatter()

    handlers = [_handler(logging.StreamHandler(sys.stdout), level, formatter)]
    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            _handler(logging.FileHandler(log_path, encoding="utf-8"), level, formatter)
        )

    logging.basicConfig(level=level, handlers=handlers, force=True)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
