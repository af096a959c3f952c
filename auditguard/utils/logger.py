"""Logging configuration for AuditGuard."""

import json
import logging
import sys
from typing import Optional


DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class ContextFormatter(logging.Formatter):
    """
    Formatter that appends the ``context`` extra as JSON.

    Usage:
        logger.error("Partial persistence", extra={"context": {"job_id": job_id}})
    """

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        context = getattr(record, "context", None)
        if context:
            message = f"{message} | {json.dumps(context, default=str, sort_keys=True)}"
        return message


def _build_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(ContextFormatter(DEFAULT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def configure_logging(level: Optional[str] = None) -> None:
    """Configure the ``auditguard`` logger tree once per process."""
    root = logging.getLogger("auditguard")
    log_level = getattr(logging, (level or "INFO").upper(), logging.INFO)
    root.setLevel(log_level)

    if not any(isinstance(h.formatter, ContextFormatter) for h in root.handlers):
        root.addHandler(_build_handler(log_level))
