"""
Error types and error logging for marginalia.

Every failure surfaced to callers is a MarginaliaError carrying one of four
kinds. The CLI logs full stack traces to a file while showing clean messages
to users.
"""

import os
import traceback
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Optional


class ErrorCode(str, Enum):
    """Kinds of failure exposed to the surrounding runtime."""
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    INTERNAL = "INTERNAL"


class MarginaliaError(Exception):
    """Base error with a machine-readable kind and optional details."""

    code: ErrorCode = ErrorCode.INTERNAL

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
        *,
        code: Optional[ErrorCode] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details
        if code is not None:
            self.code = code

    def to_dict(self) -> dict[str, Any]:
        """Envelope payload for the UI/IPC layer."""
        payload: dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(MarginaliaError):
    code = ErrorCode.VALIDATION


class NotFoundError(MarginaliaError):
    code = ErrorCode.NOT_FOUND


class ConflictError(MarginaliaError):
    code = ErrorCode.CONFLICT


class InternalError(MarginaliaError):
    code = ErrorCode.INTERNAL


def _error_log_path() -> Path:
    """Resolve error log path, respecting MARGINALIA_STORE_PATH."""
    store = os.environ.get("MARGINALIA_STORE_PATH")
    if store:
        return Path(store) / "marginalia-errors.log"
    return Path.home() / ".marginalia" / "marginalia-errors.log"


def log_exception(exc: Exception, context: str = "") -> Path:
    """
    Log exception with full traceback to file.

    Args:
        exc: The exception that occurred
        context: Optional context string (e.g., command name)

    Returns:
        Path to the error log file
    """
    log_path = _error_log_path()
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(log_path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
        with os.fdopen(fd, "a") as f:
            f.write(f"\n{'='*60}\n")
            f.write(f"[{timestamp}]")
            if context:
                f.write(f" {context}")
            if isinstance(exc, MarginaliaError):
                f.write(f" [{exc.code.value}]")
            f.write("\n")
            f.write("".join(traceback.format_exception(exc)))
    except OSError:
        pass  # Can't write error log; don't crash over it
    return log_path
