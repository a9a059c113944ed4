"""
Quotation Domain Models.

Finance's requests for quotes, suppliers' quotes, and the read models for
finance's procurement overview.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from procurement_engines.quote_overview import QuoteWorkflowStatus


class QuoteRequestStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    QUOTED = "QUOTED"


class QuoteStatus(str, Enum):
    SUBMITTED = "SUBMITTED"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    INVOICE_UPLOADED = "INVOICE_UPLOADED"


@dataclass(frozen=True)
class QuotedItem:
    """Snapshot of a requisition item at the time the request was sent."""
    item_id: UUID
    description: str
    quantity: Decimal
    unit_price: Decimal
    total: Decimal

    @classmethod
    def from_snapshot(cls, data: dict) -> "QuotedItem":
        return cls(
            item_id=UUID(data["id"]),
            description=data["description"],
            quantity=Decimal(data["quantity"]),
            unit_price=Decimal(data["unit_price"]),
            total=Decimal(data["total"]),
        )


@dataclass(frozen=True)
class QuoteRequest:
    id: UUID
    pr_id: UUID
    supplier_id: UUID
    organization_id: UUID
    items: tuple[QuotedItem, ...]
    status: QuoteRequestStatus
    sent_by_id: UUID
    sent_at: datetime
    message: str | None = None


@dataclass(frozen=True)
class QuoteSubmission:
    """What a supplier submits in response to a quote request."""
    amount: Decimal
    delivery_time: str | None = None
    valid_until: date | None = None
    notes: str | None = None


@dataclass(frozen=True)
class Quote:
    id: UUID
    quote_request_id: UUID
    pr_id: UUID
    supplier_id: UUID
    organization_id: UUID
    amount: Decimal
    status: QuoteStatus
    submitted_at: datetime
    delivery_time: str | None = None
    valid_until: date | None = None
    notes: str | None = None
    document_path: str | None = None
    decided_at: datetime | None = None
    decided_by_id: UUID | None = None


@dataclass(frozen=True)
class QuoteOverviewEntry:
    """One row of finance's procurement overview."""
    pr_id: UUID
    transaction_id: str
    pr_status: str
    workflow_status: QuoteWorkflowStatus
    request_count: int
    quote_count: int
