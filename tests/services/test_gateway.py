"""Tests for error translation at the outer boundary."""

from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from procurement_kernel.exceptions import (
    DocumentUploadError,
    DuplicateInvoiceError,
    GuardRejectedError,
    ImmutabilityViolationError,
    InvoiceInsertError,
    NotAuthorizedError,
    QuoteNotAcceptedError,
    RequisitionNotFoundError,
)
from procurement_kernel.logging_config import LogContext
from procurement_services.gateway import (
    GENERIC_ERROR_MESSAGE,
    NOT_AUTHORIZED_MESSAGE,
    OperationStatus,
    classify,
    execute_operation,
    safe_error_message,
)


def integrity_error(text, pgcode=None):
    orig = Exception(text)
    if pgcode is not None:
        orig.pgcode = pgcode
    return IntegrityError("INSERT ...", {}, orig)


class TestClassify:

    @pytest.mark.parametrize(
        "exc, status, code",
        [
            (GuardRejectedError("purchase_requisition", "hod_approve", "comment_present",
                                "Comments are required for this action"),
             OperationStatus.VALIDATION, "GUARD_REJECTED"),
            (QuoteNotAcceptedError(uuid4(), uuid4(), None), OperationStatus.CONFLICT, "QUOTE_NOT_ACCEPTED"),
            (DuplicateInvoiceError(uuid4(), uuid4()), OperationStatus.CONFLICT, "DUPLICATE_INVOICE"),
            (RequisitionNotFoundError(uuid4()), OperationStatus.NOT_FOUND, "PR_NOT_FOUND"),
        ],
    )
    def test_caller_errors_keep_their_message(self, exc, status, code):
        assert classify(exc) == (status, code, str(exc))

    def test_authorization_message_is_generic(self):
        exc = NotAuthorizedError(uuid4(), "EMPLOYEE", "purchase_requisition.split", "role EMPLOYEE lacks split")

        status, _, message = classify(exc)

        assert status == OperationStatus.UNAUTHORIZED
        assert message == NOT_AUTHORIZED_MESSAGE

    def test_integrity_failures_ask_for_retry(self):
        assert safe_error_message(InvoiceInsertError(uuid4(), "deadlock")) == (
            "Failed to create invoice record. Please try again."
        )
        assert safe_error_message(DocumentUploadError("invoices", "a/b.pdf", "timeout")) == (
            "Failed to upload document. Please try again."
        )
        assert safe_error_message(ImmutabilityViolationError("Invoice", "x", "nope")) == GENERIC_ERROR_MESSAGE

    @pytest.mark.parametrize(
        "error, status, code",
        [
            (integrity_error("duplicate key", pgcode="23505"), OperationStatus.CONFLICT, "DB_23505"),
            (integrity_error("UNIQUE constraint failed: quotes.supplier_id"), OperationStatus.CONFLICT, "DB_23505"),
            (integrity_error("FOREIGN KEY constraint failed"), OperationStatus.VALIDATION, "DB_23503"),
            (integrity_error("NOT NULL constraint failed: invoices.pr_id"), OperationStatus.VALIDATION, "DB_23502"),
            (integrity_error("something odd"), OperationStatus.SYSTEM, "SYSTEM_ERROR"),
        ],
    )
    def test_database_constraints(self, error, status, code):
        assert classify(error)[:2] == (status, code)

    def test_backend_detail_never_returned(self):
        message = safe_error_message(RuntimeError("password authentication failed for user 'app'"))

        assert message == GENERIC_ERROR_MESSAGE


class TestExecuteOperation:

    def test_success_carries_value(self):
        result = execute_operation("add", lambda a, b: a + b, 2, 3)

        assert result.is_success
        assert result.value == 5
        assert result.error_code is None

    def test_failure_is_translated(self):
        def explode():
            raise RequisitionNotFoundError(uuid4())

        result = execute_operation("get_requisition", explode)

        assert result.status == OperationStatus.NOT_FOUND
        assert result.message == "Purchase requisition not found"
        assert result.value is None

    def test_operation_bound_to_log_context(self):
        seen = {}

        def capture():
            seen.update(LogContext.get_all())

        execute_operation("accept_quote", capture, correlation_id="req-42")

        assert seen == {"operation": "accept_quote", "correlation_id": "req-42"}
        assert LogContext.get_all() == {}

    def test_system_failure_logged_with_traceback(self, captured_logs):
        def explode():
            raise RuntimeError("disk on fire")

        result = execute_operation("upload_invoice", explode)

        assert result.status == OperationStatus.SYSTEM
        [record] = [r for r in captured_logs() if r["message"] == "operation_failed"]
        assert record["exc_type"] == "RuntimeError"
        assert record["operation"] == "upload_invoice"
        assert "traceback" in record

    def test_rejection_logged_as_warning(self, captured_logs):
        def explode():
            raise DuplicateInvoiceError(uuid4(), uuid4())

        execute_operation("upload_invoice", explode)

        [record] = [r for r in captured_logs() if r["message"] == "operation_rejected"]
        assert record["level"] == "WARNING"
        assert record["error_code"] == "DUPLICATE_INVOICE"
