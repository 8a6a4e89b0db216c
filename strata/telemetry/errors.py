"""Structured error telemetry helpers."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Canonical error codes for operational telemetry."""

    WORKBOOK_READ_FAILED = "WORKBOOK_READ_FAILED"
    EXTRACTION_ABORTED = "EXTRACTION_ABORTED"
    SEMANTIC_RULE_VIOLATION = "SEMANTIC_RULE_VIOLATION"
    SCHEMA_VALIDATION_FAILED = "SCHEMA_VALIDATION_FAILED"
    STORAGE_WRITE_FAILED = "STORAGE_WRITE_FAILED"
    SAVE_FAILED = "SAVE_FAILED"
    NOTIFIER_FAILED = "NOTIFIER_FAILED"
    SIGNAL_SUBSCRIBER_FAILURE = "SIGNAL_SUBSCRIBER_FAILURE"


def emit_structured_error(
    logger: logging.Logger,
    *,
    code: ErrorCode,
    message: str,
    suppressed: bool,
    session_id: str | None = None,
    phase: str | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    """Emit a structured telemetry event via logging."""
    logger.error(
        "strata_error",
        extra={
            "error_code": code,
            "error_message": message,
            "suppressed": suppressed,
            "session_id": session_id,
            "phase": phase,
            "details": details or {},
        },
    )


def configure_logging(level: str = "INFO") -> None:
    """Attach a single stream handler to the root logger at ``level``."""
    root = logging.getLogger()
    root.setLevel(level.upper())
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        root.addHandler(handler)
