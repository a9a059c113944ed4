"""
Invoice Module Service (``procurement_modules.invoices.service``).

Responsibility
--------------
Supplier invoice upload, gated on an accepted quote, and finance's payment
progression including the bulk "mark as paid".

Architecture position
---------------------
**Modules layer** -- ``InvoiceService`` is the sole public entry point for
invoices.  Payment transitions come from ``INVOICE_WORKFLOW``; the quote's
move to INVOICE_UPLOADED from ``QUOTE_WORKFLOW``.

Invariants enforced
-------------------
* Quotation-first gate: an invoice is accepted only for a quote of the
  calling supplier on the given requisition that is ACCEPTED (or already
  INVOICE_UPLOADED, so a retry is recognised).
* The requisition must still be awaiting or holding finance approval; a
  declined or split requisition takes no invoice.
* One invoice per quote, never replaced.  A concurrent upload that loses on
  the unique constraint is reported as ``DuplicateInvoiceError``.
* Invoice row and quote status change commit together.  A blob whose row
  could not be written is deleted again.
* Payment status only moves forward, one step at a time.

Failure modes
-------------
* ``InvalidDocumentError`` (INVALID_FILE), ``SupplierNotFoundError``,
  ``QuoteNotAcceptedError``, ``InvalidTransitionError``, ``DuplicateInvoiceError``,
  ``DocumentUploadError`` (UPLOAD_FAILED), ``InvoiceInsertError``
  (INSERT_FAILED).
* The trailing history entry and system note are best effort: a failure
  there is logged as ``invoice_audit_note_failed`` and the upload still
  succeeds.
"""

from __future__ import annotations

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from procurement_config.schema import ProcurementSettings
from procurement_kernel.domain.actor import ActorContext
from procurement_kernel.domain.clock import Clock, SystemClock
from procurement_kernel.exceptions import (
    DocumentUploadError,
    DuplicateInvoiceError,
    InvalidPaymentTransitionError,
    InvalidTransitionError,
    InvoiceInsertError,
    InvoiceNotFoundError,
    NoInvoicesSelectedError,
    ProcurementError,
    QuoteNotAcceptedError,
    SupplierNotFoundError,
)
from procurement_kernel.logging_config import get_logger
from procurement_kernel.models.directory import Supplier
from procurement_modules.invoices.models import Invoice, InvoiceStatus
from procurement_modules.invoices.orm import InvoiceModel
from procurement_modules.invoices.workflows import INVOICE_WORKFLOW
from procurement_modules.messaging.service import MessagingService
from procurement_modules.quotations.models import QuoteStatus
from procurement_modules.quotations.orm import QuoteModel
from procurement_modules.quotations.service import QUOTABLE_STATUSES
from procurement_modules.quotations.workflows import QUOTE_WORKFLOW
from procurement_modules.requisitions.models import HistoryAction
from procurement_modules.requisitions.orm import PurchaseRequisitionModel
from procurement_modules.requisitions.service import append_history
from procurement_services.authority import require_capability
from procurement_services.document_store import (
    DocumentStore,
    DocumentUpload,
    scoped_path,
    validate_upload,
)
from procurement_services.workflow_executor import WorkflowExecutor

logger = get_logger("modules.invoices.service")

INVOICEABLE_QUOTE_STATUSES = frozenset({
    QuoteStatus.ACCEPTED.value,
    QuoteStatus.INVOICE_UPLOADED.value,
})


class InvoiceService:
    """
    Orchestrates invoice upload and payment tracking.

    Contract
    --------
    * ``upload_invoice`` returns the new ``Invoice`` once the row and the
      quote status are committed, whatever happens to the trailing audit
      note.
    * Clock is injectable for deterministic testing.
    """

    def __init__(
        self,
        session: Session,
        document_store: DocumentStore,
        workflow_executor: WorkflowExecutor | None = None,
        clock: Clock | None = None,
        settings: ProcurementSettings | None = None,
        messaging: MessagingService | None = None,
    ):
        self._session = session
        self._store = document_store
        self._executor = workflow_executor or WorkflowExecutor()
        self._clock = clock or SystemClock()
        self._settings = settings or ProcurementSettings.with_defaults()
        self._messaging = messaging or MessagingService(session, clock=self._clock, settings=self._settings)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _load(self, actor: ActorContext, invoice_id: UUID) -> InvoiceModel:
        invoice = self._session.get(InvoiceModel, invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(invoice_id)
        if actor.is_supplier:
            visible = invoice.supplier_id == actor.supplier_id
        else:
            visible = invoice.organization_id == actor.organization_id
        if not visible:
            raise InvoiceNotFoundError(invoice_id)
        return invoice

    def _store_document(self, path: str, upload: DocumentUpload) -> None:
        bucket = self._settings.invoice_bucket
        try:
            self._store.upload(bucket, path, upload.data, upload.content_type)
        except DocumentUploadError:
            raise
        except Exception as exc:
            raise DocumentUploadError(bucket, path, str(exc)) from exc

    def _discard_document(self, path: str) -> None:
        try:
            self._store.remove(self._settings.invoice_bucket, path)
        except Exception:
            logger.warning(
                "invoice_document_cleanup_failed",
                extra={"bucket": self._settings.invoice_bucket, "path": path},
                exc_info=True,
            )

    # =========================================================================
    # Upload
    # =========================================================================

    def upload_invoice(
        self,
        actor: ActorContext,
        quote_id: UUID,
        pr_id: UUID,
        upload: DocumentUpload,
    ) -> Invoice:
        """
        Upload the final invoice for an accepted quote.

        Sequence: validate file, resolve supplier, quotation-first gate,
        single-invoice guard, store blob, insert row and advance the quote
        (one commit), then the best-effort history entry and system note.
        """
        require_capability(actor, "invoice", "upload")
        validate_upload(upload, self._settings.invoice_max_bytes, self._settings.invoice_allowed_types)

        supplier = self._session.get(Supplier, actor.supplier_id) if actor.supplier_id else None
        if supplier is None:
            raise SupplierNotFoundError(user_id=actor.user_id)

        quote = self._session.scalar(
            select(QuoteModel)
            .where(QuoteModel.id == quote_id)
            .where(QuoteModel.pr_id == pr_id)
            .where(QuoteModel.supplier_id == supplier.id)
        )
        if quote is None:
            raise QuoteNotAcceptedError(quote_id, pr_id, None)
        if quote.status not in INVOICEABLE_QUOTE_STATUSES:
            raise QuoteNotAcceptedError(quote_id, pr_id, quote.status)

        pr = self._session.get(PurchaseRequisitionModel, quote.pr_id)
        if pr.status not in QUOTABLE_STATUSES:
            raise InvalidTransitionError("invoice", pr.status, "upload_invoice")

        existing = self._session.scalar(select(InvoiceModel).where(InvoiceModel.quote_id == quote_id))
        if existing is not None:
            raise DuplicateInvoiceError(quote_id, existing.id)

        extension = "pdf" if upload.content_type == "application/pdf" else upload.extension
        path = scoped_path(actor.user_id, quote_id, extension)
        self._store_document(path, upload)

        now = self._clock.now()
        try:
            invoice = InvoiceModel(
                quote_id=quote.id,
                pr_id=quote.pr_id,
                supplier_id=supplier.id,
                organization_id=quote.organization_id,
                document_path=path,
                file_name=upload.file_name,
                file_size=upload.size,
                status=InvoiceStatus.UPLOADED.value,
                uploaded_by_id=actor.user_id,
                uploaded_at=now,
                created_by_id=actor.user_id,
            )
            self._session.add(invoice)
            if quote.status == QuoteStatus.ACCEPTED.value:
                quote.status = self._executor.require_transition(
                    QUOTE_WORKFLOW, "quote", quote.id, quote.status, "attach_invoice", actor,
                )
                quote.updated_by_id = actor.user_id
            self._session.flush()
            dto = invoice.to_dto()
            self._session.commit()
        except IntegrityError as exc:
            # A concurrent upload for the same quote committed first
            self._session.rollback()
            self._discard_document(path)
            winner = self._session.scalar(select(InvoiceModel).where(InvoiceModel.quote_id == quote_id))
            if winner is None:
                logger.error(
                    "invoice_insert_failed",
                    extra={"quote_id": str(quote_id), "pr_id": str(pr_id), "path": path},
                    exc_info=True,
                )
                raise InvoiceInsertError(quote_id, str(exc)) from exc
            logger.info(
                "invoice_upload_superseded",
                extra={**actor.log_fields(), "quote_id": str(quote_id), "invoice_id": str(winner.id)},
            )
            raise DuplicateInvoiceError(quote_id, winner.id) from None
        except Exception as exc:
            self._session.rollback()
            self._discard_document(path)
            logger.error(
                "invoice_insert_failed",
                extra={"quote_id": str(quote_id), "pr_id": str(pr_id), "path": path},
                exc_info=True,
            )
            if isinstance(exc, ProcurementError):
                raise
            raise InvoiceInsertError(quote_id, str(exc)) from exc

        logger.info("invoice_uploaded", extra={
            **actor.log_fields(),
            "invoice_id": str(dto.id),
            "quote_id": str(quote_id),
            "pr_id": str(pr_id),
            "file_size": dto.file_size,
        })
        self._record_upload_notes(actor, supplier.company_name, pr_id, quote_id)
        return dto

    def _record_upload_notes(
        self,
        actor: ActorContext,
        company_name: str,
        pr_id: UUID,
        quote_id: UUID,
    ) -> None:
        try:
            pr = self._session.get(PurchaseRequisitionModel, pr_id)
            if pr is None:
                raise InvoiceInsertError(quote_id, f"requisition {pr_id} vanished")
            append_history(
                pr,
                HistoryAction.INVOICE_UPLOADED,
                actor.user_id,
                company_name,
                f"Final invoice uploaded after quotation approval. Quote ID: {str(quote_id)[:8]}…",
                self._clock.now(),
            )
            self._session.commit()
        except Exception:
            self._session.rollback()
            logger.warning(
                "invoice_audit_note_failed",
                extra={"pr_id": str(pr_id), "quote_id": str(quote_id), "step": "history"},
                exc_info=True,
            )

        try:
            self._messaging.post_system_note(
                pr_id, f"Final invoice uploaded by {company_name} after quotation approval.",
            )
        except Exception:
            logger.warning(
                "invoice_audit_note_failed",
                extra={"pr_id": str(pr_id), "quote_id": str(quote_id), "step": "system_note"},
                exc_info=True,
            )

    # =========================================================================
    # Payment progression
    # =========================================================================

    def _advance(self, actor: ActorContext, invoice_id: UUID, action: str, target: InvoiceStatus) -> Invoice:
        require_capability(actor, "invoice", action)
        try:
            invoice = self._load(actor, invoice_id)
            current = invoice.status

            def _backwards() -> Exception:
                return InvalidPaymentTransitionError(invoice_id, current, target.value)

            invoice.status = self._executor.require_transition(
                INVOICE_WORKFLOW, "invoice", invoice.id, current, action, actor,
                conflict=_backwards,
            )
            if target == InvoiceStatus.PAID:
                invoice.paid_at = self._clock.now()
            invoice.updated_by_id = actor.user_id
            self._session.flush()
            dto = invoice.to_dto()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info("invoice_status_changed", extra={
            **actor.log_fields(),
            "invoice_id": str(invoice_id),
            "from_status": current,
            "to_status": dto.status.value,
        })
        return dto

    def mark_awaiting_payment(self, actor: ActorContext, invoice_id: UUID) -> Invoice:
        return self._advance(actor, invoice_id, "mark_awaiting_payment", InvoiceStatus.AWAITING_PAYMENT)

    def mark_paid(self, actor: ActorContext, invoice_id: UUID) -> Invoice:
        return self._advance(actor, invoice_id, "mark_paid", InvoiceStatus.PAID)

    def mark_invoices_paid(self, actor: ActorContext, invoice_ids: Sequence[UUID]) -> list[Invoice]:
        """
        Mark several AWAITING_PAYMENT invoices as paid in one bulk update.

        All or nothing: if any selected invoice is missing or not awaiting
        payment, nothing changes.
        """
        require_capability(actor, "invoice", "mark_paid")
        ids = list(dict.fromkeys(invoice_ids))
        if not ids:
            raise NoInvoicesSelectedError()

        try:
            rows = {
                row.id: row
                for row in self._session.scalars(
                    select(InvoiceModel)
                    .where(InvoiceModel.id.in_(ids))
                    .where(InvoiceModel.organization_id == actor.organization_id)
                )
            }
            for invoice_id in ids:
                row = rows.get(invoice_id)
                if row is None:
                    raise InvoiceNotFoundError(invoice_id)
                if row.status != InvoiceStatus.AWAITING_PAYMENT.value:
                    raise InvalidPaymentTransitionError(invoice_id, row.status, InvoiceStatus.PAID.value)

            now = self._clock.now()
            result = self._session.execute(
                update(InvoiceModel)
                .where(InvoiceModel.id.in_(ids))
                .where(InvoiceModel.status == InvoiceStatus.AWAITING_PAYMENT.value)
                .values(status=InvoiceStatus.PAID.value, paid_at=now, updated_by_id=actor.user_id)
            )
            if result.rowcount != len(ids):
                raise InvalidPaymentTransitionError(ids[0], "changed concurrently", InvoiceStatus.PAID.value)
            for row in rows.values():
                self._session.refresh(row)
            dtos = [rows[invoice_id].to_dto() for invoice_id in ids]
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info("invoices_marked_paid", extra={
            **actor.log_fields(),
            "invoice_count": len(dtos),
        })
        return dtos

    # =========================================================================
    # Queries
    # =========================================================================

    def get_invoice(self, actor: ActorContext, invoice_id: UUID) -> Invoice:
        require_capability(actor, "invoice", "view")
        return self._load(actor, invoice_id).to_dto()

    def get_invoice_for_quote(self, actor: ActorContext, quote_id: UUID) -> Invoice | None:
        require_capability(actor, "invoice", "view")
        invoice = self._session.scalar(select(InvoiceModel).where(InvoiceModel.quote_id == quote_id))
        if invoice is None:
            return None
        return self._load(actor, invoice.id).to_dto()

    def get_invoice_url(self, actor: ActorContext, invoice_id: UUID) -> str:
        """Time-limited signed URL for the invoice document."""
        require_capability(actor, "invoice", "view")
        invoice = self._load(actor, invoice_id)
        return self._store.create_signed_url(
            self._settings.invoice_bucket,
            invoice.document_path,
            self._settings.signed_url_ttl_seconds,
        )

    def list_invoices(self, actor: ActorContext, status: InvoiceStatus | None = None) -> list[Invoice]:
        """Invoices visible to the caller, newest first."""
        require_capability(actor, "invoice", "view")
        if actor.is_supplier:
            stmt = select(InvoiceModel).where(InvoiceModel.supplier_id == actor.supplier_id)
        else:
            stmt = select(InvoiceModel).where(InvoiceModel.organization_id == actor.organization_id)
        if status is not None:
            stmt = stmt.where(InvoiceModel.status == InvoiceStatus(status).value)
        rows = self._session.scalars(stmt.order_by(InvoiceModel.uploaded_at.desc(), InvoiceModel.id))
        return [row.to_dto() for row in rows]
