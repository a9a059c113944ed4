"""
Quotation Module Service (``procurement_modules.quotations.service``).

Responsibility
--------------
The request-for-quote cycle: finance sends quote requests for a
requisition's items, invited suppliers accept, decline or quote, and finance
accepts exactly one quote per requisition or rejects quotes individually.

Architecture position
---------------------
**Modules layer** -- ``QuotationService`` is the sole public entry point.
Quote and request transitions come from ``QUOTE_WORKFLOW`` and
``QUOTE_REQUEST_WORKFLOW`` through ``WorkflowExecutor``; overview and
supplier statistics from the pure ``procurement_engines.quote_overview``.

Invariants enforced
-------------------
* At most one quote per supplier per request (pre-check plus unique
  constraint).
* Quote acceptance is one transaction: the chosen quote moves
  SUBMITTED -> ACCEPTED by a conditional update, every other SUBMITTED or
  ACCEPTED quote of the requisition moves to REJECTED, the requisition total
  becomes the quote amount and one history entry is appended.  Two
  concurrent acceptances on one requisition end with exactly one ACCEPTED.
* Quotes are requested and accepted only while the requisition is awaiting
  or holding finance approval, and only from suppliers the organization
  has ACCEPTED.
* Once any quote of a requisition has an invoice, the decision is locked.
* Suppliers only ever see their own requests and quotes.

Failure modes
-------------
* ``QuoteRequestNotPendingError`` -- supplier acting on a request twice.
* ``DuplicateQuoteError`` -- second quote for the same request.
* ``QuoteNotAcceptableError`` -- chosen quote is not (or no longer)
  SUBMITTED, including losing a concurrent acceptance.
* ``QuoteDecisionLockedError`` -- a sibling quote was already invoiced.
* ``InvalidTransitionError`` -- the requisition was declined or split.
"""

from __future__ import annotations

from collections import defaultdict
from decimal import Decimal, InvalidOperation
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from procurement_config.schema import ProcurementSettings
from procurement_engines.quote_overview import (
    SupplierActivity,
    derive_quote_workflow_status,
    summarize_supplier_activity,
)
from procurement_kernel.db.types import round_money
from procurement_kernel.domain.actor import ActorContext
from procurement_kernel.domain.clock import Clock, SystemClock
from procurement_kernel.exceptions import (
    DuplicateQuoteError,
    InvalidTransitionError,
    QuoteDecisionLockedError,
    QuoteNotAcceptableError,
    QuoteNotFoundError,
    QuoteRequestNotFoundError,
    QuoteRequestNotPendingError,
    RequisitionNotFoundError,
    SupplierNotFoundError,
    ValidationError,
)
from procurement_kernel.logging_config import get_logger
from procurement_kernel.models.directory import Supplier
from procurement_kernel.selectors.directory import DirectorySelector
from procurement_modules.quotations.models import (
    Quote,
    QuoteOverviewEntry,
    QuoteRequest,
    QuoteRequestStatus,
    QuoteStatus,
    QuoteSubmission,
)
from procurement_modules.quotations.orm import QuoteModel, QuoteRequestModel
from procurement_modules.quotations.workflows import QUOTE_REQUEST_WORKFLOW, QUOTE_WORKFLOW
from procurement_modules.requisitions.models import HistoryAction, RequisitionStatus
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

logger = get_logger("modules.quotations.service")

# Requisition statuses against which finance may solicit quotes
QUOTABLE_STATUSES = frozenset({
    RequisitionStatus.PENDING_FINANCE_APPROVAL.value,
    RequisitionStatus.FINANCE_APPROVED.value,
})

# Sibling quotes swept aside when another quote of the requisition is accepted
_SUPERSEDE = [t for t in QUOTE_WORKFLOW.transitions if t.action == "supersede"]
SUPERSEDABLE_STATUSES = frozenset(t.from_state for t in _SUPERSEDE)
(SUPERSEDED_STATUS,) = {t.to_state for t in _SUPERSEDE}

# Requisition statuses shown in the procurement overview
OVERVIEW_STATUSES = (
    RequisitionStatus.PENDING_FINANCE_APPROVAL.value,
    RequisitionStatus.FINANCE_APPROVED.value,
    RequisitionStatus.SPLIT.value,
)


class QuotationService:
    """
    Orchestrates quote requests and quotes.

    Contract
    --------
    * Mutating methods return the affected DTO.
    * Session is committed on success and rolled back on any exception.
    """

    def __init__(
        self,
        session: Session,
        workflow_executor: WorkflowExecutor | None = None,
        clock: Clock | None = None,
        settings: ProcurementSettings | None = None,
        document_store: DocumentStore | None = None,
    ):
        self._session = session
        self._executor = workflow_executor or WorkflowExecutor()
        self._clock = clock or SystemClock()
        self._settings = settings or ProcurementSettings.with_defaults()
        self._store = document_store
        self._directory = DirectorySelector(session)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _load_pr(self, actor: ActorContext, pr_id: UUID, *, lock: bool = False) -> PurchaseRequisitionModel:
        stmt = select(PurchaseRequisitionModel).where(
            PurchaseRequisitionModel.id == pr_id,
            PurchaseRequisitionModel.organization_id == actor.organization_id,
        )
        if lock:
            stmt = stmt.with_for_update()
        pr = self._session.scalar(stmt)
        if pr is None:
            raise RequisitionNotFoundError(pr_id)
        return pr

    def _load_own_request(self, actor: ActorContext, request_id: UUID) -> QuoteRequestModel:
        request = self._session.scalar(
            select(QuoteRequestModel)
            .where(QuoteRequestModel.id == request_id)
            .where(QuoteRequestModel.supplier_id == actor.supplier_id)
            .with_for_update()
        )
        if request is None:
            raise QuoteRequestNotFoundError(request_id)
        return request

    def _load_quote(self, actor: ActorContext, quote_id: UUID) -> QuoteModel:
        quote = self._session.get(QuoteModel, quote_id)
        if quote is None:
            raise QuoteNotFoundError(quote_id)
        if actor.is_supplier:
            visible = quote.supplier_id == actor.supplier_id
        else:
            visible = quote.organization_id == actor.organization_id
        if not visible:
            raise QuoteNotFoundError(quote_id)
        return quote

    def _request_transition(self, actor: ActorContext, request: QuoteRequestModel, action: str) -> str:
        current = request.status

        def _not_pending() -> Exception:
            return QuoteRequestNotPendingError(request.id, current)

        return self._executor.require_transition(
            QUOTE_REQUEST_WORKFLOW,
            "quote_request",
            request.id,
            current,
            action,
            actor,
            conflict=_not_pending,
        )

    # =========================================================================
    # Quote requests
    # =========================================================================

    def send_quote_request(
        self,
        actor: ActorContext,
        pr_id: UUID,
        supplier_id: UUID,
        item_ids: list[UUID] | tuple[UUID, ...],
        message: str | None = None,
    ) -> QuoteRequest:
        """
        Ask one supplier to quote for a subset of a requisition's items.

        Many requests per requisition are expected (competing quotes).
        """
        require_capability(actor, "quote_request", "send")
        try:
            pr = self._load_pr(actor, pr_id)
            if pr.status not in QUOTABLE_STATUSES:
                raise InvalidTransitionError("quote_request", pr.status, "send_quote_request")

            supplier = self._directory.get_supplier(supplier_id)
            if supplier is None or not self._directory.supplier_serves_organization(
                supplier_id, pr.organization_id
            ):
                raise SupplierNotFoundError(supplier_id=supplier_id)

            if not item_ids:
                raise ValidationError("Select at least one item to request a quote for")
            by_id = {item.id: item for item in pr.items}
            missing = [item_id for item_id in item_ids if item_id not in by_id]
            if missing:
                raise ValidationError("Quote request references items that are not on this requisition")

            snapshot = [by_id[item_id].to_dto().snapshot() for item_id in dict.fromkeys(item_ids)]
            request = QuoteRequestModel(
                pr_id=pr.id,
                supplier_id=supplier.id,
                organization_id=pr.organization_id,
                items=snapshot,
                message=message.strip() if message and message.strip() else None,
                status=QuoteRequestStatus.PENDING.value,
                sent_by_id=actor.user_id,
                sent_at=self._clock.now(),
                created_by_id=actor.user_id,
            )
            self._session.add(request)
            self._session.flush()
            dto = request.to_dto()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info("quote_request_sent", extra={
            **actor.log_fields(),
            "pr_id": str(pr_id),
            "quote_request_id": str(dto.id),
            "supplier_id": str(supplier_id),
            "item_count": len(dto.items),
        })
        return dto

    def _respond(self, actor: ActorContext, request_id: UUID, action: str) -> QuoteRequest:
        require_capability(actor, "quote_request", action)
        try:
            request = self._load_own_request(actor, request_id)
            request.status = self._request_transition(actor, request, action)
            request.updated_by_id = actor.user_id
            self._session.flush()
            dto = request.to_dto()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info("quote_request_answered", extra={
            **actor.log_fields(),
            "quote_request_id": str(request_id),
            "action": action,
            "status": dto.status.value,
        })
        return dto

    def accept_request(self, actor: ActorContext, request_id: UUID) -> QuoteRequest:
        return self._respond(actor, request_id, "accept")

    def decline_request(self, actor: ActorContext, request_id: UUID) -> QuoteRequest:
        return self._respond(actor, request_id, "decline")

    # =========================================================================
    # Quotes
    # =========================================================================

    def submit_quote(
        self,
        actor: ActorContext,
        request_id: UUID,
        submission: QuoteSubmission,
        document: DocumentUpload | None = None,
    ) -> Quote:
        """
        Submit the supplier's quote for a request.

        The request becomes QUOTED and the quote SUBMITTED.  An optional
        supporting document is stored under the supplier's user id and the
        request id, and removed again if the quote cannot be written.
        """
        require_capability(actor, "quote_request", "submit_quote")
        try:
            amount = Decimal(str(submission.amount))
        except InvalidOperation:
            raise ValidationError("Quote amount must be a number") from None
        if not amount.is_finite() or amount <= 0:
            raise ValidationError("Quote amount must be greater than zero")
        if document is not None:
            if self._store is None:
                raise RuntimeError("QuotationService has no document store configured")
            validate_upload(document, self._settings.invoice_max_bytes)

        stored_path: str | None = None
        try:
            request = self._load_own_request(actor, request_id)
            existing = self._session.scalar(
                select(QuoteModel.id)
                .where(QuoteModel.quote_request_id == request.id)
                .where(QuoteModel.supplier_id == actor.supplier_id)
            )
            if existing is not None:
                raise DuplicateQuoteError(request.id, actor.supplier_id)
            request.status = self._request_transition(actor, request, "submit_quote")
            request.updated_by_id = actor.user_id

            if document is not None:
                stored_path = scoped_path(actor.user_id, request.id, document.extension)
                self._store.upload(
                    self._settings.quote_bucket, stored_path, document.data, document.content_type,
                )

            quote = QuoteModel(
                quote_request_id=request.id,
                pr_id=request.pr_id,
                supplier_id=actor.supplier_id,
                organization_id=request.organization_id,
                amount=amount,
                delivery_time=submission.delivery_time,
                valid_until=submission.valid_until,
                notes=submission.notes,
                document_path=stored_path,
                status=QuoteStatus.SUBMITTED.value,
                submitted_at=self._clock.now(),
                created_by_id=actor.user_id,
            )
            self._session.add(quote)
            self._session.flush()
            dto = quote.to_dto()
            self._session.commit()
        except IntegrityError:
            self._session.rollback()
            self._discard(stored_path)
            raise DuplicateQuoteError(request_id, actor.supplier_id) from None
        except Exception:
            self._session.rollback()
            self._discard(stored_path)
            raise

        logger.info("quote_submitted", extra={
            **actor.log_fields(),
            "quote_id": str(dto.id),
            "quote_request_id": str(request_id),
            "pr_id": str(dto.pr_id),
            "amount": str(dto.amount),
        })
        return dto

    def _discard(self, path: str | None) -> None:
        if path is None:
            return
        try:
            self._store.remove(self._settings.quote_bucket, path)
        except Exception:
            logger.warning(
                "quote_document_cleanup_failed",
                extra={"bucket": self._settings.quote_bucket, "path": path},
                exc_info=True,
            )

    def accept_quote(self, actor: ActorContext, pr_id: UUID, quote_id: UUID) -> Quote:
        """
        Accept one quote for a requisition and reject all of its competitors.

        Single transaction.  The conditional update on the chosen quote is
        what serializes concurrent acceptances: the loser matches zero rows.
        """
        require_capability(actor, "quote", "accept")
        try:
            pr = self._load_pr(actor, pr_id, lock=True)
            if pr.status not in QUOTABLE_STATUSES:
                raise InvalidTransitionError("quote", pr.status, "accept")
            quotes = list(
                self._session.scalars(
                    select(QuoteModel).where(QuoteModel.pr_id == pr.id).with_for_update()
                )
            )
            chosen = next((q for q in quotes if q.id == quote_id), None)
            if chosen is None:
                raise QuoteNotFoundError(quote_id)
            current = chosen.status

            def _not_acceptable() -> Exception:
                return QuoteNotAcceptableError(quote_id, current)

            self._executor.require_transition(
                QUOTE_WORKFLOW, "quote", quote_id, current, "accept", actor,
                conflict=_not_acceptable,
            )
            invoiced = next(
                (q for q in quotes if q.id != quote_id and q.status == QuoteStatus.INVOICE_UPLOADED.value),
                None,
            )
            if invoiced is not None:
                raise QuoteDecisionLockedError(pr.id, invoiced.id)

            now = self._clock.now()
            accepted = self._session.execute(
                update(QuoteModel)
                .where(QuoteModel.id == quote_id)
                .where(QuoteModel.status == QuoteStatus.SUBMITTED.value)
                .values(
                    status=QuoteStatus.ACCEPTED.value,
                    decided_at=now,
                    decided_by_id=actor.user_id,
                    updated_by_id=actor.user_id,
                )
            )
            if accepted.rowcount != 1:
                raise QuoteNotAcceptableError(quote_id, "no longer SUBMITTED")

            rejected = self._session.execute(
                update(QuoteModel)
                .where(QuoteModel.pr_id == pr.id)
                .where(QuoteModel.id != quote_id)
                .where(QuoteModel.status.in_(sorted(SUPERSEDABLE_STATUSES)))
                .values(
                    status=SUPERSEDED_STATUS,
                    decided_at=now,
                    decided_by_id=actor.user_id,
                    updated_by_id=actor.user_id,
                )
            )

            supplier = self._session.get(Supplier, chosen.supplier_id)
            supplier_name = supplier.company_name if supplier is not None else "supplier"
            pr.total_amount = chosen.amount
            pr.updated_by_id = actor.user_id
            append_history(
                pr,
                HistoryAction.QUOTE_ACCEPTED,
                actor.user_id,
                actor.display_name,
                f"Accepted quote from {supplier_name} for {pr.currency} "
                f"{round_money(chosen.amount)}. Other quotes have been automatically rejected.",
                now,
            )

            self._session.flush()
            self._session.refresh(chosen)
            dto = chosen.to_dto()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info("quote_accepted", extra={
            **actor.log_fields(),
            "pr_id": str(pr_id),
            "quote_id": str(quote_id),
            "amount": str(dto.amount),
            "rejected_count": rejected.rowcount,
        })
        return dto

    def reject_quote(self, actor: ActorContext, quote_id: UUID) -> Quote:
        """Reject one SUBMITTED quote without accepting another."""
        require_capability(actor, "quote", "reject")
        try:
            quote = self._load_quote(actor, quote_id)
            current = quote.status
            new_status = self._executor.require_transition(
                QUOTE_WORKFLOW, "quote", quote.id, current, "reject", actor,
            )
            result = self._session.execute(
                update(QuoteModel)
                .where(QuoteModel.id == quote.id)
                .where(QuoteModel.status == current)
                .values(
                    status=new_status,
                    decided_at=self._clock.now(),
                    decided_by_id=actor.user_id,
                    updated_by_id=actor.user_id,
                )
            )
            if result.rowcount != 1:
                raise InvalidTransitionError("quote", current, "reject")
            self._session.refresh(quote)
            dto = quote.to_dto()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info("quote_rejected", extra={**actor.log_fields(), "quote_id": str(quote_id)})
        return dto

    # =========================================================================
    # Queries
    # =========================================================================

    def get_quote(self, actor: ActorContext, quote_id: UUID) -> Quote:
        require_capability(actor, "quote", "view")
        return self._load_quote(actor, quote_id).to_dto()

    def list_quotes_for_requisition(self, actor: ActorContext, pr_id: UUID) -> list[Quote]:
        require_capability(actor, "quote", "view")
        if actor.is_supplier:
            stmt = select(QuoteModel).where(
                QuoteModel.pr_id == pr_id, QuoteModel.supplier_id == actor.supplier_id,
            )
        else:
            pr = self._load_pr(actor, pr_id)
            stmt = select(QuoteModel).where(QuoteModel.pr_id == pr.id)
        rows = self._session.scalars(stmt.order_by(QuoteModel.submitted_at, QuoteModel.id))
        return [row.to_dto() for row in rows]

    def list_requests_for_requisition(self, actor: ActorContext, pr_id: UUID) -> list[QuoteRequest]:
        require_capability(actor, "quote_request", "view")
        pr = self._load_pr(actor, pr_id)
        rows = self._session.scalars(
            select(QuoteRequestModel)
            .where(QuoteRequestModel.pr_id == pr.id)
            .order_by(QuoteRequestModel.sent_at, QuoteRequestModel.id)
        )
        return [row.to_dto() for row in rows]

    def _supplier_only(self, actor: ActorContext, scope: str) -> None:
        require_capability(actor, scope, "view")
        if not actor.is_supplier:
            raise SupplierNotFoundError(user_id=actor.user_id)

    def list_requests_for_supplier(
        self,
        actor: ActorContext,
        status: QuoteRequestStatus | None = None,
    ) -> list[QuoteRequest]:
        """The calling supplier's quote requests, newest first."""
        self._supplier_only(actor, "quote_request")
        stmt = select(QuoteRequestModel).where(QuoteRequestModel.supplier_id == actor.supplier_id)
        if status is not None:
            stmt = stmt.where(QuoteRequestModel.status == QuoteRequestStatus(status).value)
        rows = self._session.scalars(stmt.order_by(QuoteRequestModel.sent_at.desc()))
        return [row.to_dto() for row in rows]

    def list_quotes_for_supplier(self, actor: ActorContext) -> list[Quote]:
        self._supplier_only(actor, "quote")
        rows = self._session.scalars(
            select(QuoteModel)
            .where(QuoteModel.supplier_id == actor.supplier_id)
            .order_by(QuoteModel.submitted_at.desc())
        )
        return [row.to_dto() for row in rows]

    def quote_workflow_overview(self, actor: ActorContext) -> list[QuoteOverviewEntry]:
        """Where each open or recently decided requisition stands in the quote cycle."""
        require_capability(actor, "quote", "view")
        prs = list(
            self._session.scalars(
                select(PurchaseRequisitionModel)
                .where(PurchaseRequisitionModel.organization_id == actor.organization_id)
                .where(PurchaseRequisitionModel.status.in_(OVERVIEW_STATUSES))
                .order_by(PurchaseRequisitionModel.submitted_at.desc())
            )
        )
        pr_ids = [pr.id for pr in prs]
        request_statuses: dict[UUID, list[str]] = defaultdict(list)
        quote_statuses: dict[UUID, list[str]] = defaultdict(list)
        if pr_ids:
            for pr_id, status in self._session.execute(
                select(QuoteRequestModel.pr_id, QuoteRequestModel.status)
                .where(QuoteRequestModel.pr_id.in_(pr_ids))
            ):
                request_statuses[pr_id].append(status)
            for pr_id, status in self._session.execute(
                select(QuoteModel.pr_id, QuoteModel.status).where(QuoteModel.pr_id.in_(pr_ids))
            ):
                quote_statuses[pr_id].append(status)

        return [
            QuoteOverviewEntry(
                pr_id=pr.id,
                transaction_id=pr.transaction_id,
                pr_status=pr.status,
                workflow_status=derive_quote_workflow_status(
                    request_statuses[pr.id], quote_statuses[pr.id],
                ),
                request_count=len(request_statuses[pr.id]),
                quote_count=len(quote_statuses[pr.id]),
            )
            for pr in prs
        ]

    def supplier_stats(self, actor: ActorContext) -> SupplierActivity:
        """Dashboard counters for the calling supplier."""
        self._supplier_only(actor, "supplier_dashboard")
        request_statuses = self._session.scalars(
            select(QuoteRequestModel.status).where(QuoteRequestModel.supplier_id == actor.supplier_id)
        )
        quotes: list[tuple[str, Decimal]] = [
            (status, amount)
            for status, amount in self._session.execute(
                select(QuoteModel.status, QuoteModel.amount)
                .where(QuoteModel.supplier_id == actor.supplier_id)
            )
        ]
        return summarize_supplier_activity(list(request_statuses), quotes)

