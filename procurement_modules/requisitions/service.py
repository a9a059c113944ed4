"""
Requisition Module Service (``procurement_modules.requisitions.service``).

Responsibility
--------------
The PR lifecycle: creation with HOD routing, HOD and finance decisions,
the finance split into child requisitions, and the read side (single PR,
queues, children, paginated history search).

Architecture position
---------------------
**Modules layer** -- ``RequisitionService`` is the sole public entry point
for requisition mutations.  Transition rules come from
``REQUISITION_WORKFLOW`` through ``WorkflowExecutor``; split validation from
the pure ``procurement_engines.split`` planner.

Invariants enforced
-------------------
* Each public method owns the transaction boundary (``commit`` on success,
  ``rollback`` and re-raise on any exception).
* Every status change appends exactly one history entry in the same
  transaction.
* A split writes all children and the parent's SPLIT status together, or
  nothing.
* Every read and write is scoped to the caller's organization; a PR in
  another organization is reported as not found.

Failure modes
-------------
* ``GuardRejectedError`` -- blank comment, missing category, nested split.
* ``InvalidTransitionError`` -- action not allowed from the current status
  (terminal statuses have no outgoing transitions).
* ``InvalidSplitError`` -- split groups do not partition the items.
* ``RequisitionNotFoundError`` / ``CategoryNotFoundError``.

Audit relevance
---------------
History entries carry the acting user id and display name from the explicit
``ActorContext`` and the execution time from the injected ``Clock``.
Status changes are published to the optional change feed after commit.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import UTC, datetime, time, timedelta
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from procurement_config.schema import ProcurementSettings
from procurement_engines.alerts import StatusChange
from procurement_engines.split import SplitGroup, plan_split
from procurement_kernel.domain.actor import ActorContext
from procurement_kernel.domain.clock import Clock, SystemClock
from procurement_kernel.domain.items import items_total
from procurement_kernel.domain.transaction_ids import (
    child_transaction_id,
    generate_transaction_id,
)
from procurement_kernel.exceptions import (
    CategoryNotFoundError,
    InvalidLineItemError,
    RequisitionNotFoundError,
)
from procurement_kernel.logging_config import get_logger
from procurement_kernel.selectors.directory import DirectorySelector
from procurement_modules.categories.orm import CategoryModel
from procurement_modules.requisitions.models import (
    SUBSTATUS_APPROVED,
    SUBSTATUS_DECLINED,
    SUBSTATUS_NOT_APPLICABLE,
    SUBSTATUS_PENDING,
    SUBSTATUS_SPLIT,
    HistoryAction,
    HistoryQuery,
    PurchaseRequisition,
    RequisitionDraft,
    RequisitionPage,
    RequisitionStatus,
)
from procurement_modules.requisitions.orm import (
    PurchaseRequisitionModel,
    RequisitionHistoryModel,
    RequisitionItemModel,
)
from procurement_modules.requisitions.workflows import REQUISITION_WORKFLOW
from procurement_services.authority import require_capability
from procurement_services.change_feed import StatusChangeFeed
from procurement_services.workflow_executor import WorkflowExecutor

logger = get_logger("modules.requisitions.service")

_TRANSACTION_ID_ATTEMPTS = 5

# action -> (history action, substatus field, substatus value)
_DECISIONS: dict[str, tuple[HistoryAction, str, str]] = {
    "hod_approve": (HistoryAction.HOD_APPROVED, "hod_status", SUBSTATUS_APPROVED),
    "hod_decline": (HistoryAction.HOD_DECLINED, "hod_status", SUBSTATUS_DECLINED),
    "finance_approve": (HistoryAction.FINANCE_APPROVED, "finance_status", SUBSTATUS_APPROVED),
    "finance_decline": (HistoryAction.FINANCE_DECLINED, "finance_status", SUBSTATUS_DECLINED),
}


def append_history(
    pr: PurchaseRequisitionModel,
    action: HistoryAction,
    user_id: UUID,
    user_name: str,
    details: str,
    occurred_at: datetime,
) -> RequisitionHistoryModel:
    """Append one audit entry to ``pr``.  Caller owns the transaction."""
    entry = RequisitionHistoryModel(
        position=pr.next_history_position,
        action=action.value,
        user_id=user_id,
        user_name=user_name,
        occurred_at=occurred_at,
        details=details,
        created_by_id=user_id,
    )
    pr.history.append(entry)
    return entry


def _status_change(pr: PurchaseRequisition, old_status: str | None) -> StatusChange:
    return StatusChange(
        pr_id=pr.id,
        transaction_id=pr.transaction_id,
        organization_id=pr.organization_id,
        requester_id=pr.requested_by_id,
        requester_name=pr.requested_by_name,
        new_status=pr.status.value,
        old_status=old_status,
    )


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class RequisitionService:
    """
    Orchestrates the purchase requisition lifecycle.

    Contract
    --------
    * Mutating methods return the updated ``PurchaseRequisition`` DTO (the
      split returns the children).
    * Clock is injectable for deterministic testing.
    """

    def __init__(
        self,
        session: Session,
        workflow_executor: WorkflowExecutor | None = None,
        clock: Clock | None = None,
        settings: ProcurementSettings | None = None,
        change_feed: StatusChangeFeed | None = None,
    ):
        self._session = session
        self._executor = workflow_executor or WorkflowExecutor()
        self._clock = clock or SystemClock()
        self._settings = settings or ProcurementSettings.with_defaults()
        self._change_feed = change_feed
        self._directory = DirectorySelector(session)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _load(self, actor: ActorContext, pr_id: UUID, *, lock: bool = False) -> PurchaseRequisitionModel:
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

    def _new_transaction_id(self, now: datetime) -> str:
        for _ in range(_TRANSACTION_ID_ATTEMPTS):
            candidate = generate_transaction_id(now)
            taken = self._session.scalar(
                select(PurchaseRequisitionModel.id).where(
                    PurchaseRequisitionModel.transaction_id == candidate
                )
            )
            if taken is None:
                return candidate
            logger.debug("transaction_id_collision", extra={"transaction_id": candidate})
        raise RuntimeError("Could not allocate a unique transaction id")

    def _publish(self, changes: Iterable[StatusChange]) -> None:
        if self._change_feed is None:
            return
        for change in changes:
            self._change_feed.publish(change)

    # =========================================================================
    # Creation
    # =========================================================================

    def create_requisition(self, actor: ActorContext, draft: RequisitionDraft) -> PurchaseRequisition:
        """
        Create a requisition from an employee's draft.

        Routed to the HOD queue when the organization has at least one HOD
        (checked on every call), otherwise straight to finance.
        """
        require_capability(actor, "purchase_requisition", "create")
        if not draft.items:
            raise InvalidLineItemError("At least one item is required")

        try:
            now = self._clock.now()
            has_hod = self._directory.organization_has_hod(actor.organization_id)
            if has_hod:
                status = RequisitionStatus.PENDING_HOD_APPROVAL
                hod_status = SUBSTATUS_PENDING
                details = "Submitted for HOD approval"
            else:
                status = RequisitionStatus.PENDING_FINANCE_APPROVAL
                hod_status = SUBSTATUS_NOT_APPLICABLE
                details = "Submitted directly for Finance approval (no HOD in organization)"

            pr = PurchaseRequisitionModel(
                transaction_id=self._new_transaction_id(now),
                organization_id=actor.organization_id,
                requested_by_id=actor.user_id,
                requested_by_name=actor.display_name,
                requested_by_department=draft.department or actor.department,
                total_amount=items_total(draft.items),
                currency=draft.currency or self._settings.default_currency,
                urgency=draft.urgency.value,
                due_date=draft.due_date,
                payment_due_date=draft.payment_due_date,
                document_url=draft.document_url,
                status=status.value,
                hod_status=hod_status,
                finance_status=SUBSTATUS_PENDING,
                submitted_at=now,
                created_by_id=actor.user_id,
            )
            for position, item in enumerate(draft.items, start=1):
                pr.items.append(RequisitionItemModel.from_line_item(item, position, actor.user_id))
            append_history(pr, HistoryAction.PR_CREATED, actor.user_id, actor.display_name, details, now)

            self._session.add(pr)
            self._session.flush()
            dto = pr.to_dto()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info("requisition_created", extra={
            **actor.log_fields(),
            "pr_id": str(dto.id),
            "transaction_id": dto.transaction_id,
            "status": dto.status.value,
            "item_count": len(dto.items),
            "total_amount": str(dto.total_amount),
        })
        self._publish([_status_change(dto, None)])
        return dto

    # =========================================================================
    # Decisions
    # =========================================================================

    def _decide(
        self,
        actor: ActorContext,
        pr_id: UUID,
        action: str,
        comments: str,
        category_id: UUID | None = None,
    ) -> PurchaseRequisition:
        history_action, substatus_field, substatus = _DECISIONS[action]
        try:
            pr = self._load(actor, pr_id, lock=True)
            old_status = pr.status
            new_status = self._executor.require_transition(
                REQUISITION_WORKFLOW,
                "purchase_requisition",
                pr.id,
                pr.status,
                action,
                actor,
                context={
                    "comments": comments,
                    "category_id": category_id,
                    "parent_pr_id": pr.parent_pr_id,
                },
            )

            if action == "finance_approve":
                category = self._session.get(CategoryModel, category_id)
                if category is None or category.organization_id != pr.organization_id:
                    raise CategoryNotFoundError(category_id)
                pr.category_id = category.id

            now = self._clock.now()
            pr.status = new_status
            setattr(pr, substatus_field, substatus)
            pr.updated_by_id = actor.user_id
            append_history(pr, history_action, actor.user_id, actor.display_name, comments.strip(), now)

            self._session.flush()
            dto = pr.to_dto()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info("requisition_status_changed", extra={
            **actor.log_fields(),
            "pr_id": str(pr_id),
            "action": action,
            "from_status": old_status,
            "to_status": new_status,
        })
        self._publish([_status_change(dto, old_status)])
        return dto

    def hod_approve(self, actor: ActorContext, pr_id: UUID, comments: str) -> PurchaseRequisition:
        return self._decide(actor, pr_id, "hod_approve", comments)

    def hod_decline(self, actor: ActorContext, pr_id: UUID, comments: str) -> PurchaseRequisition:
        return self._decide(actor, pr_id, "hod_decline", comments)

    def finance_approve(
        self,
        actor: ActorContext,
        pr_id: UUID,
        category_id: UUID | None,
        comments: str,
    ) -> PurchaseRequisition:
        """Approve at finance and attach the category, which is final from here on."""
        return self._decide(actor, pr_id, "finance_approve", comments, category_id=category_id)

    def finance_decline(self, actor: ActorContext, pr_id: UUID, comments: str) -> PurchaseRequisition:
        return self._decide(actor, pr_id, "finance_decline", comments)

    # =========================================================================
    # Split
    # =========================================================================

    def split_requisition(
        self,
        actor: ActorContext,
        pr_id: UUID,
        groups: Sequence[SplitGroup],
        comments: str = "",
    ) -> tuple[PurchaseRequisition, ...]:
        """
        Split a requisition into child requisitions, one per non-empty group.

        Children start in PENDING_FINANCE_APPROVAL with their own history.
        The parent becomes SPLIT.  Returns the children in group order.
        """
        try:
            pr = self._load(actor, pr_id, lock=True)
            old_status = pr.status
            self._executor.require_transition(
                REQUISITION_WORKFLOW,
                "purchase_requisition",
                pr.id,
                pr.status,
                "split",
                actor,
                context={"parent_pr_id": pr.parent_pr_id},
            )
            parent_items = [item.to_dto() for item in pr.items]
            plan = plan_split(parent_items, groups)

            now = self._clock.now()
            children: list[PurchaseRequisitionModel] = []
            for index, child_plan in enumerate(plan.children, start=1):
                child = PurchaseRequisitionModel(
                    transaction_id=child_transaction_id(pr.transaction_id, index),
                    organization_id=pr.organization_id,
                    requested_by_id=pr.requested_by_id,
                    requested_by_name=pr.requested_by_name,
                    requested_by_department=pr.requested_by_department,
                    total_amount=child_plan.total,
                    currency=pr.currency,
                    urgency=pr.urgency,
                    due_date=pr.due_date,
                    payment_due_date=pr.payment_due_date,
                    document_url=pr.document_url,
                    parent_pr_id=pr.id,
                    status=RequisitionStatus.PENDING_FINANCE_APPROVAL.value,
                    hod_status=SUBSTATUS_APPROVED,
                    finance_status=SUBSTATUS_PENDING,
                    submitted_at=now,
                    created_by_id=actor.user_id,
                )
                for position, item in enumerate(child_plan.items, start=1):
                    child.items.append(
                        RequisitionItemModel.from_line_item(
                            item, position, actor.user_id, source_item_id=item.id,
                        )
                    )
                append_history(
                    child,
                    HistoryAction.PR_SPLIT_CREATED_BY_FINANCE,
                    actor.user_id,
                    actor.display_name,
                    f"Split from {pr.transaction_id} by Finance. {child_plan.comments}",
                    now,
                )
                self._session.add(child)
                children.append(child)

            details = f"Split into {plan.child_count} child PRs by Finance"
            if comments and comments.strip():
                details = f"{details}. {comments.strip()}"
            pr.status = RequisitionStatus.SPLIT.value
            pr.finance_status = SUBSTATUS_SPLIT
            pr.updated_by_id = actor.user_id
            append_history(pr, HistoryAction.PR_SPLIT_BY_FINANCE, actor.user_id, actor.display_name, details, now)

            self._session.flush()
            parent_dto = pr.to_dto()
            child_dtos = tuple(child.to_dto() for child in children)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info("requisition_split", extra={
            **actor.log_fields(),
            "pr_id": str(pr_id),
            "child_count": len(child_dtos),
            "child_transaction_ids": [c.transaction_id for c in child_dtos],
            "parent_total": str(plan.parent_total),
        })
        self._publish(
            [_status_change(parent_dto, old_status)]
            + [_status_change(child, None) for child in child_dtos]
        )
        return child_dtos

    # =========================================================================
    # Queries
    # =========================================================================

    def get_requisition(self, actor: ActorContext, pr_id: UUID) -> PurchaseRequisition:
        require_capability(actor, "purchase_requisition", "view")
        return self._load(actor, pr_id).to_dto()

    def list_for_status(
        self,
        actor: ActorContext,
        statuses: Iterable[RequisitionStatus],
    ) -> list[PurchaseRequisition]:
        """Requisitions of the caller's organization in any of ``statuses``, newest first."""
        require_capability(actor, "purchase_requisition", "view")
        values = [RequisitionStatus(s).value for s in statuses]
        rows = self._session.scalars(
            select(PurchaseRequisitionModel)
            .where(PurchaseRequisitionModel.organization_id == actor.organization_id)
            .where(PurchaseRequisitionModel.status.in_(values))
            .order_by(PurchaseRequisitionModel.submitted_at.desc(), PurchaseRequisitionModel.transaction_id)
        )
        return [row.to_dto() for row in rows]

    def list_children(self, actor: ActorContext, parent_id: UUID) -> list[PurchaseRequisition]:
        require_capability(actor, "purchase_requisition", "view")
        parent = self._load(actor, parent_id)
        rows = self._session.scalars(
            select(PurchaseRequisitionModel)
            .where(PurchaseRequisitionModel.parent_pr_id == parent.id)
            .order_by(PurchaseRequisitionModel.transaction_id)
        )
        return [row.to_dto() for row in rows]

    def search_history(self, actor: ActorContext, query: HistoryQuery | None = None) -> RequisitionPage:
        """
        Paginated requisition history for the caller's organization.

        Date bounds are inclusive whole days (UTC) on the submission time.
        Search matches transaction id or requester name, case-insensitively.
        """
        require_capability(actor, "purchase_requisition", "view")
        query = query or HistoryQuery()
        page_size = query.page_size or self._settings.history_page_size

        stmt = select(PurchaseRequisitionModel).where(
            PurchaseRequisitionModel.organization_id == actor.organization_id
        )
        if query.statuses:
            stmt = stmt.where(PurchaseRequisitionModel.status.in_([s.value for s in query.statuses]))
        if query.urgency is not None:
            stmt = stmt.where(PurchaseRequisitionModel.urgency == query.urgency.value)
        if query.date_from is not None:
            start = datetime.combine(query.date_from, time.min, tzinfo=UTC)
            stmt = stmt.where(PurchaseRequisitionModel.submitted_at >= start)
        if query.date_to is not None:
            end = datetime.combine(query.date_to + timedelta(days=1), time.min, tzinfo=UTC)
            stmt = stmt.where(PurchaseRequisitionModel.submitted_at < end)
        if query.search and query.search.strip():
            pattern = f"%{_escape_like(query.search.strip().lower())}%"
            stmt = stmt.where(
                or_(
                    func.lower(PurchaseRequisitionModel.transaction_id).like(pattern, escape="\\"),
                    func.lower(PurchaseRequisitionModel.requested_by_name).like(pattern, escape="\\"),
                )
            )

        total_count = self._session.scalar(select(func.count()).select_from(stmt.subquery())) or 0
        rows = self._session.scalars(
            stmt.order_by(
                PurchaseRequisitionModel.submitted_at.desc(),
                PurchaseRequisitionModel.transaction_id.desc(),
            )
            .limit(page_size)
            .offset((query.page - 1) * page_size)
        )
        return RequisitionPage(
            items=tuple(row.to_dto() for row in rows),
            total_count=total_count,
            page=query.page,
            page_size=page_size,
        )
