"""
Requisition Domain Models.

The nouns of the PR lifecycle: the requisition, its line items and its
append-only history.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from procurement_kernel.domain.items import LineItem
from procurement_kernel.logging_config import get_logger

logger = get_logger("modules.requisitions.models")


class RequisitionStatus(str, Enum):
    """Requisition lifecycle states."""
    PENDING_HOD_APPROVAL = "PENDING_HOD_APPROVAL"
    HOD_APPROVED = "HOD_APPROVED"
    HOD_DECLINED = "HOD_DECLINED"
    PENDING_FINANCE_APPROVAL = "PENDING_FINANCE_APPROVAL"
    FINANCE_APPROVED = "FINANCE_APPROVED"
    FINANCE_DECLINED = "FINANCE_DECLINED"
    SPLIT = "SPLIT"


TERMINAL_STATUSES = frozenset({
    RequisitionStatus.HOD_DECLINED,
    RequisitionStatus.FINANCE_DECLINED,
    RequisitionStatus.FINANCE_APPROVED,
    RequisitionStatus.SPLIT,
})


class Urgency(str, Enum):
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"


class HistoryAction(str, Enum):
    """Action tags recorded in requisition history."""
    PR_CREATED = "PR_CREATED"
    HOD_APPROVED = "HOD_APPROVED"
    HOD_DECLINED = "HOD_DECLINED"
    FINANCE_APPROVED = "FINANCE_APPROVED"
    FINANCE_DECLINED = "FINANCE_DECLINED"
    PR_SPLIT_BY_FINANCE = "PR_SPLIT_BY_FINANCE"
    PR_SPLIT_CREATED_BY_FINANCE = "PR_SPLIT_CREATED_BY_FINANCE"
    QUOTE_ACCEPTED = "QUOTE_ACCEPTED"
    INVOICE_UPLOADED = "INVOICE_UPLOADED"


# Display-only substatus strings
SUBSTATUS_PENDING = "Pending"
SUBSTATUS_NOT_APPLICABLE = "N/A"
SUBSTATUS_APPROVED = "Approved"
SUBSTATUS_DECLINED = "Declined"
SUBSTATUS_SPLIT = "Split"


@dataclass(frozen=True)
class HistoryEntry:
    """One audit entry. Never edited or removed once written."""
    position: int
    action: HistoryAction
    user_id: UUID
    user_name: str
    timestamp: datetime
    details: str = ""


@dataclass(frozen=True)
class RequisitionDraft:
    """What an employee submits to create a requisition."""
    items: tuple[LineItem, ...]
    due_date: date
    urgency: Urgency = Urgency.NORMAL
    payment_due_date: date | None = None
    document_url: str | None = None
    department: str | None = None
    currency: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "items", tuple(self.items))


@dataclass(frozen=True)
class PurchaseRequisition:
    """A purchase requisition with its items and history."""
    id: UUID
    transaction_id: str
    organization_id: UUID
    requested_by_id: UUID
    requested_by_name: str
    total_amount: Decimal
    currency: str
    urgency: Urgency
    due_date: date
    status: RequisitionStatus
    hod_status: str
    finance_status: str
    submitted_at: datetime
    items: tuple[LineItem, ...] = ()
    history: tuple[HistoryEntry, ...] = ()
    requested_by_department: str | None = None
    payment_due_date: date | None = None
    document_url: str | None = None
    parent_pr_id: UUID | None = None
    category_id: UUID | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_split_child(self) -> bool:
        return self.parent_pr_id is not None

    @property
    def items_total(self) -> Decimal:
        return sum((item.total for item in self.items), Decimal("0"))


@dataclass(frozen=True)
class HistoryQuery:
    """Filters for the requisition history view. Empty filters match all."""
    statuses: tuple[RequisitionStatus, ...] = ()
    urgency: Urgency | None = None
    date_from: date | None = None
    date_to: date | None = None
    search: str | None = None
    page: int = 1
    page_size: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "statuses", tuple(self.statuses))
        if self.page < 1:
            raise ValueError("page must be >= 1")
        if self.page_size is not None and self.page_size < 1:
            raise ValueError("page_size must be >= 1")


@dataclass(frozen=True)
class RequisitionPage:
    items: tuple[PurchaseRequisition, ...]
    total_count: int
    page: int
    page_size: int

    @property
    def page_count(self) -> int:
        if self.total_count == 0:
            return 0
        return -(-self.total_count // self.page_size)
