"""Persistence port contracts and their default implementations.

The review core never talks to a database, a session store or a UI directly.
Everything it needs from the outside world is injected through one of these
protocols, so tests and host applications can supply their own.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone
from typing import Any, Awaitable, Literal, Protocol

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

ToastKind = Literal["success", "error", "warning", "info"]


class User(BaseModel):
    username: str


class SchemaCheck(BaseModel):
    """Outcome of a record schema check."""

    valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class StoragePort(Protocol):
    """Writes one record to a named collection. A single atomic put."""

    def put(self, collection: str, record: dict[str, Any]) -> Awaitable[None]: ...


class IdentityPort(Protocol):
    def get_current_user(self) -> User | None: ...


class ClockPort(Protocol):
    def now_iso(self) -> str: ...


class IdGeneratorPort(Protocol):
    def uid(self, prefix: str = "") -> str: ...


class NotifierPort(Protocol):
    """Fire-and-forget user feedback; never a functional dependency."""

    def show_toast(self, message: str, kind: ToastKind = "info") -> None: ...


class SchemaValidatorPort(Protocol):
    def validate_record(self, record: dict[str, Any]) -> SchemaCheck: ...


class SystemClock:
    """UTC wall clock in ISO-8601 with millisecond precision."""

    def now_iso(self) -> str:
        now = datetime.now(timezone.utc)
        return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class RandomIdGenerator:
    def uid(self, prefix: str = "") -> str:
        token = secrets.token_hex(6)
        return f"{prefix}_{token}" if prefix else token


class AnonymousIdentity:
    def get_current_user(self) -> User | None:
        return None


class LoggingNotifier:
    """Notifier that writes toasts to the log when no UI is attached."""

    def show_toast(self, message: str, kind: ToastKind = "info") -> None:
        level = logging.ERROR if kind == "error" else logging.INFO
        logger.log(level, "toast[%s]: %s", kind, message)
