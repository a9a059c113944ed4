"""
procurement_engines.alerts -- Role-targeted alerts for PR status changes.

Given one status change, decide who should hear about it and what they are
told.  Delivery belongs to ``procurement_services.change_feed``.

Rules:
    * The requester hears about every change to an existing requisition.
    * HODs of the organization hear about requisitions entering their queue.
    * Finance hears about requisitions entering the finance queue.
    * Admins hear about every change.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from procurement_kernel.domain.actor import Role

STATUS_LABELS: dict[str, str] = {
    "PENDING_HOD_APPROVAL": "Pending HOD Approval",
    "HOD_APPROVED": "HOD Approved",
    "HOD_DECLINED": "HOD Declined",
    "PENDING_FINANCE_APPROVAL": "Pending Finance Approval",
    "FINANCE_APPROVED": "Finance Approved",
    "FINANCE_DECLINED": "Finance Declined",
    "SPLIT": "Split",
}


@dataclass(frozen=True)
class StatusChange:
    """A committed requisition status change. ``old_status`` is None on creation."""

    pr_id: UUID
    transaction_id: str
    organization_id: UUID
    requester_id: UUID
    requester_name: str
    new_status: str
    old_status: str | None = None


@dataclass(frozen=True)
class StatusAlert:
    """One alert. Exactly one of ``recipient_user_id`` / ``recipient_role`` is set."""

    pr_id: UUID
    organization_id: UUID
    message: str
    recipient_user_id: UUID | None = None
    recipient_role: Role | None = None


def status_label(status: str) -> str:
    return STATUS_LABELS.get(status, status.replace("_", " ").title())


def alerts_for_change(change: StatusChange) -> tuple[StatusAlert, ...]:
    alerts: list[StatusAlert] = []
    label = status_label(change.new_status)
    txn = change.transaction_id

    def _alert(message: str, *, user: UUID | None = None, role: Role | None = None) -> None:
        alerts.append(
            StatusAlert(
                pr_id=change.pr_id,
                organization_id=change.organization_id,
                message=message,
                recipient_user_id=user,
                recipient_role=role,
            )
        )

    if change.old_status is not None and change.old_status != change.new_status:
        _alert(f"Your PR #{txn} status changed to: {label}", user=change.requester_id)

    if change.new_status == "PENDING_HOD_APPROVAL":
        _alert(
            f"New PR #{txn} from {change.requester_name} requires your approval",
            role=Role.HOD,
        )
    elif change.new_status == "PENDING_FINANCE_APPROVAL":
        _alert(f"PR #{txn} is ready for finance review", role=Role.FINANCE)

    _alert(f"PR #{txn} status changed to: {label}", role=Role.ADMIN)
    return tuple(alerts)
