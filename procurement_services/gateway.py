"""
procurement_services.gateway -- Error translation at the outer boundary.

Responsibility:
    Run one workflow operation and turn its outcome into an
    ``OperationResult`` a caller can show.  Typed errors become a status and
    a safe message; backend detail is logged, never returned.

Classification:
    ValidationError / GuardRejectedError  -> VALIDATION, message verbatim.
    StateConflictError                    -> CONFLICT, message verbatim.
    NotFoundError                         -> NOT_FOUND, message verbatim.
    AuthorizationError                    -> UNAUTHORIZED, generic message.
    IntegrityFailure                      -> SYSTEM, retry message.
    sqlalchemy IntegrityError             -> CONFLICT/VALIDATION by constraint.
    anything else                         -> SYSTEM, generic message.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any
from uuid import uuid4

from sqlalchemy.exc import IntegrityError

from procurement_kernel.exceptions import (
    AuthorizationError,
    DocumentUploadError,
    IntegrityFailure,
    InvoiceInsertError,
    NotFoundError,
    ProcurementError,
    StateConflictError,
    ValidationError,
)
from procurement_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.gateway")

NOT_AUTHORIZED_MESSAGE = "You are not authorized to perform this action."
GENERIC_ERROR_MESSAGE = "An error occurred. Please try again or contact support."

_INTEGRITY_FAILURE_MESSAGES: dict[type[IntegrityFailure], str] = {
    InvoiceInsertError: "Failed to create invoice record. Please try again.",
    DocumentUploadError: "Failed to upload document. Please try again.",
}

# PostgreSQL SQLSTATE -> (status, message)
_CONSTRAINT_MESSAGES: dict[str, tuple[str, str]] = {
    "23505": ("CONFLICT", "This record already exists."),
    "23503": ("VALIDATION", "This operation references data that does not exist."),
    "23502": ("VALIDATION", "Required information is missing."),
    "23514": ("VALIDATION", "The provided data is invalid."),
}

# SQLite reports constraints by message text only.
_SQLITE_MARKERS: tuple[tuple[str, str], ...] = (
    ("UNIQUE constraint failed", "23505"),
    ("FOREIGN KEY constraint failed", "23503"),
    ("NOT NULL constraint failed", "23502"),
    ("CHECK constraint failed", "23514"),
)


class OperationStatus(str, Enum):
    OK = "ok"
    VALIDATION = "validation"
    UNAUTHORIZED = "unauthorized"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    SYSTEM = "system"


@dataclass(frozen=True)
class OperationResult:
    """Outcome of a gateway call. ``value`` is set only on success."""

    status: OperationStatus
    value: Any = None
    error_code: str | None = None
    message: str | None = None

    @property
    def is_success(self) -> bool:
        return self.status == OperationStatus.OK


def _constraint_code(exc: IntegrityError) -> str | None:
    pgcode = getattr(exc.orig, "pgcode", None)
    if pgcode in _CONSTRAINT_MESSAGES:
        return pgcode
    text = str(exc.orig)
    for marker, code in _SQLITE_MARKERS:
        if marker in text:
            return code
    return None


def classify(exc: BaseException) -> tuple[OperationStatus, str, str]:
    """Return (status, error_code, safe message) for ``exc``."""
    if isinstance(exc, ValidationError):
        return OperationStatus.VALIDATION, exc.code, str(exc)
    if isinstance(exc, StateConflictError):
        return OperationStatus.CONFLICT, exc.code, str(exc)
    if isinstance(exc, NotFoundError):
        return OperationStatus.NOT_FOUND, exc.code, str(exc)
    if isinstance(exc, AuthorizationError):
        return OperationStatus.UNAUTHORIZED, exc.code, NOT_AUTHORIZED_MESSAGE
    if isinstance(exc, IntegrityFailure):
        message = _INTEGRITY_FAILURE_MESSAGES.get(type(exc), GENERIC_ERROR_MESSAGE)
        return OperationStatus.SYSTEM, exc.code, message
    if isinstance(exc, IntegrityError):
        code = _constraint_code(exc)
        if code is not None:
            status, message = _CONSTRAINT_MESSAGES[code]
            return OperationStatus(status.lower()), f"DB_{code}", message
        return OperationStatus.SYSTEM, "SYSTEM_ERROR", GENERIC_ERROR_MESSAGE
    if isinstance(exc, ProcurementError):
        return OperationStatus.SYSTEM, exc.code, GENERIC_ERROR_MESSAGE
    return OperationStatus.SYSTEM, "SYSTEM_ERROR", GENERIC_ERROR_MESSAGE


def safe_error_message(exc: BaseException) -> str:
    """Message that may be shown to the caller for ``exc``."""
    return classify(exc)[2]


def execute_operation(
    operation: str,
    fn: Callable[..., Any],
    *args: Any,
    correlation_id: str | None = None,
    **kwargs: Any,
) -> OperationResult:
    """Call ``fn(*args, **kwargs)`` and translate the outcome.

    Never raises for exceptions derived from ``Exception``.
    """
    with LogContext.bind(operation=operation, correlation_id=correlation_id or str(uuid4())):
        try:
            value = fn(*args, **kwargs)
        except Exception as exc:
            status, code, message = classify(exc)
            if status == OperationStatus.SYSTEM:
                logger.error(
                    "operation_failed",
                    extra={"error_code": code, "status": status.value},
                    exc_info=exc,
                )
            else:
                logger.warning(
                    "operation_rejected",
                    extra={
                        "error_code": code,
                        "status": status.value,
                        "detail": str(exc),
                    },
                )
            return OperationResult(status=status, error_code=code, message=message)

    return OperationResult(status=OperationStatus.OK, value=value)
