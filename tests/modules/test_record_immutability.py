"""
ORM-level immutability: writes that bypass the services are refused at flush.

Each test edits a persisted row directly through the session, the way a
careless script would, and expects ImmutabilityViolationError before any SQL
reaches the database.
"""

import pytest

from procurement_kernel.exceptions import ImmutabilityViolationError
from procurement_modules.categories.models import CategoryType
from procurement_modules.invoices.models import InvoiceStatus
from procurement_modules.invoices.orm import InvoiceModel
from procurement_modules.messaging.orm import PRMessageModel
from procurement_modules.requisitions.orm import PurchaseRequisitionModel


@pytest.fixture
def invoice(quotation_service, invoice_service, finance, approved_pr, supplier, submit_quote, invoice_pdf):
    quote = submit_quote(approved_pr, supplier, "1450.00")
    quotation_service.accept_quote(finance, approved_pr.id, quote.id)
    return invoice_service.upload_invoice(supplier, quote.id, approved_pr.id, invoice_pdf)


def _flush_refused(session, match=None):
    with pytest.raises(ImmutabilityViolationError, match=match):
        session.flush()
    session.rollback()


class TestRequisitionHistory:

    def test_entry_cannot_be_edited(self, session, approved_pr):
        pr = session.get(PurchaseRequisitionModel, approved_pr.id)
        pr.history[0].details = "rewritten"

        _flush_refused(session, "append-only")

    def test_entry_cannot_be_deleted(self, session, approved_pr):
        pr = session.get(PurchaseRequisitionModel, approved_pr.id)
        session.delete(pr.history[0])

        _flush_refused(session, "cannot be deleted")

    def test_violation_logged(self, session, approved_pr, captured_logs):
        pr = session.get(PurchaseRequisitionModel, approved_pr.id)
        pr.history[0].user_name = "Someone Else"

        _flush_refused(session)

        [record] = [r for r in captured_logs() if r["message"] == "immutability_violation_blocked"]
        assert record["entity_type"] == "RequisitionHistory"
        assert record["level"] == "ERROR"


class TestPurchaseRequisition:

    def test_final_status_cannot_change(self, session, approved_pr):
        pr = session.get(PurchaseRequisitionModel, approved_pr.id)
        pr.status = "PENDING_FINANCE_APPROVAL"

        _flush_refused(session, "FINANCE_APPROVED is final")

    def test_category_fixed_once_assigned(self, session, category_service, finance, approved_pr):
        travel = category_service.create_category(finance, "Travel", CategoryType.EXPENSE)
        pr = session.get(PurchaseRequisitionModel, approved_pr.id)
        pr.category_id = travel.id

        _flush_refused(session, "Category cannot be changed")

    def test_category_may_be_assigned_once(self, session, finance_queue_pr, category):
        pr = session.get(PurchaseRequisitionModel, finance_queue_pr.id)
        pr.category_id = category.id

        session.flush()

        assert pr.category_id == category.id

    def test_identity_fixed(self, session, finance_queue_pr):
        pr = session.get(PurchaseRequisitionModel, finance_queue_pr.id)
        pr.transaction_id = "PR-REUSED"

        _flush_refused(session, "transaction_id cannot be changed")

    def test_open_status_may_move(self, session, finance_queue_pr):
        pr = session.get(PurchaseRequisitionModel, finance_queue_pr.id)
        pr.status = "FINANCE_DECLINED"

        session.flush()

    def test_cannot_be_deleted(self, session, finance_queue_pr):
        pr = session.get(PurchaseRequisitionModel, finance_queue_pr.id)
        session.delete(pr)

        _flush_refused(session)


class TestInvoice:

    def test_document_fixed(self, session, invoice):
        row = session.get(InvoiceModel, invoice.id)
        row.document_path = "elsewhere/replacement.pdf"

        _flush_refused(session, "document_path cannot be changed")

    def test_status_cannot_skip(self, session, invoice):
        row = session.get(InvoiceModel, invoice.id)
        row.status = InvoiceStatus.PAID.value

        _flush_refused(session, "cannot move from UPLOADED to PAID")

    def test_status_cannot_go_back(self, session, invoice_service, finance, invoice):
        invoice_service.mark_awaiting_payment(finance, invoice.id)
        row = session.get(InvoiceModel, invoice.id)
        row.status = InvoiceStatus.UPLOADED.value

        _flush_refused(session, "cannot move from AWAITING_PAYMENT to UPLOADED")

    def test_single_step_forward_allowed(self, session, invoice):
        row = session.get(InvoiceModel, invoice.id)
        row.status = InvoiceStatus.AWAITING_PAYMENT.value

        session.flush()

    def test_cannot_be_deleted(self, session, invoice):
        session.delete(session.get(InvoiceModel, invoice.id))

        _flush_refused(session, "Invoices cannot be deleted")


class TestMessages:

    @pytest.fixture
    def message(self, messaging_service, employee, finance_queue_pr):
        return messaging_service.send_message(employee, finance_queue_pr.id, "Can we get this by Friday?")

    def test_cannot_be_edited(self, session, message):
        row = session.get(PRMessageModel, message.id)
        row.text = "Never mind"

        _flush_refused(session, "Messages cannot be edited")

    def test_cannot_be_deleted(self, session, message):
        session.delete(session.get(PRMessageModel, message.id))

        _flush_refused(session)
