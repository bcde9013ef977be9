"""Shared utilities: structured logging and text helpers."""

from __future__ import annotations

import json
import logging
import os
from datetime import UTC, datetime

from src.shared.trace import current_transaction


def truncate(text: str, max_len: int = 200) -> str:
    """Truncate text with ellipsis indicator."""
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def _trace_fields() -> dict[str, str]:
    """Ids of the active transaction, so log lines join up with outbound headers."""
    txn = current_transaction.get()
    if txn is None:
        return {}
    return {"trace_id": txn.trace_id, "transaction_id": txn.id}


class StructuredFormatter(logging.Formatter):
    """JSON lines: one object per record, tagged with the active trace."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_trace_fields(),
        }
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


class TextFormatter(logging.Formatter):
    """Single-line format for development: ``HH:MM:SS LEVEL logger [trace] message``."""

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created, UTC).strftime("%H:%M:%S")
        trace_id = _trace_fields().get("trace_id")
        trace = f" [{trace_id[:8]}]" if trace_id else ""
        line = f"{ts} {record.levelname:<7} {record.name}{trace}: {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(name: str, level: str | None = None) -> logging.Logger:
    """Configure logging for a named logger.

    Format controlled by DTHEADERS_LOG_FORMAT env var:
      - "json" (default): structured JSON lines
      - "text": human-readable single-line format

    Level defaults to DTHEADERS_LOG_LEVEL, then INFO.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        if logger.level == logging.NOTSET:
            level = level or os.environ.get("DTHEADERS_LOG_LEVEL", "INFO")
            logger.setLevel(getattr(logging, level.upper()))
        handler = logging.StreamHandler()
        log_format = os.environ.get("DTHEADERS_LOG_FORMAT", "json").lower()
        if log_format == "text":
            handler.setFormatter(TextFormatter())
        else:
            handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)
    return logger
