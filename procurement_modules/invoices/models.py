"""
Invoice Domain Models.

One invoice per accepted quote.  The document is immutable; only the
payment status moves, and only forward.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID


class InvoiceStatus(str, Enum):
    UPLOADED = "UPLOADED"
    AWAITING_PAYMENT = "AWAITING_PAYMENT"
    PAID = "PAID"


# Forward order of payment statuses
PAYMENT_SEQUENCE: tuple[InvoiceStatus, ...] = (
    InvoiceStatus.UPLOADED,
    InvoiceStatus.AWAITING_PAYMENT,
    InvoiceStatus.PAID,
)


@dataclass(frozen=True)
class Invoice:
    id: UUID
    quote_id: UUID
    pr_id: UUID
    supplier_id: UUID
    organization_id: UUID
    document_path: str
    file_name: str
    file_size: int
    status: InvoiceStatus
    uploaded_by_id: UUID
    uploaded_at: datetime
    paid_at: datetime | None = None
