"""
SQLAlchemy ORM persistence models for the Quotations module.

Invariants enforced
-------------------
* At most one quote per supplier per quote request
  (``uq_quote_request_supplier``).
* Quote amounts are ``Decimal`` (Numeric(38,9)).
* The quote request's item list is a JSON snapshot with a fixed shape:
  ``{id, description, quantity, unit_price, total}``, all strings.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, Date, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from procurement_kernel.db.base import TrackedBase


class QuoteRequestModel(TrackedBase):
    """Maps to ``QuoteRequest``."""

    __tablename__ = "quote_requests"

    __table_args__ = (
        Index("idx_quote_request_pr", "pr_id"),
        Index("idx_quote_request_supplier", "supplier_id", "status"),
    )

    pr_id: Mapped[UUID] = mapped_column(ForeignKey("purchase_requisitions.id"), nullable=False)
    supplier_id: Mapped[UUID] = mapped_column(ForeignKey("suppliers.id"), nullable=False)
    organization_id: Mapped[UUID] = mapped_column(ForeignKey("organizations.id"), nullable=False)
    items: Mapped[list] = mapped_column(JSON, nullable=False)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    sent_by_id: Mapped[UUID] = mapped_column(nullable=False)
    sent_at: Mapped[datetime] = mapped_column(nullable=False)

    def to_dto(self):
        from procurement_modules.quotations.models import (
            QuotedItem,
            QuoteRequest,
            QuoteRequestStatus,
        )

        return QuoteRequest(
            id=self.id,
            pr_id=self.pr_id,
            supplier_id=self.supplier_id,
            organization_id=self.organization_id,
            items=tuple(QuotedItem.from_snapshot(item) for item in self.items),
            message=self.message,
            status=QuoteRequestStatus(self.status),
            sent_by_id=self.sent_by_id,
            sent_at=self.sent_at,
        )

    def __repr__(self) -> str:
        return f"<QuoteRequestModel {self.id} [{self.status}]>"


class QuoteModel(TrackedBase):
    """Maps to ``Quote``."""

    __tablename__ = "quotes"

    __table_args__ = (
        UniqueConstraint("quote_request_id", "supplier_id", name="uq_quote_request_supplier"),
        Index("idx_quote_pr_status", "pr_id", "status"),
        Index("idx_quote_supplier", "supplier_id"),
    )

    quote_request_id: Mapped[UUID] = mapped_column(ForeignKey("quote_requests.id"), nullable=False)
    pr_id: Mapped[UUID] = mapped_column(ForeignKey("purchase_requisitions.id"), nullable=False)
    supplier_id: Mapped[UUID] = mapped_column(ForeignKey("suppliers.id"), nullable=False)
    organization_id: Mapped[UUID] = mapped_column(ForeignKey("organizations.id"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    delivery_time: Mapped[str | None] = mapped_column(String(255), nullable=True)
    valid_until: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    document_path: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(nullable=False)
    decided_at: Mapped[datetime | None] = mapped_column(nullable=True)
    decided_by_id: Mapped[UUID | None] = mapped_column(nullable=True)

    def to_dto(self):
        from procurement_modules.quotations.models import Quote, QuoteStatus

        return Quote(
            id=self.id,
            quote_request_id=self.quote_request_id,
            pr_id=self.pr_id,
            supplier_id=self.supplier_id,
            organization_id=self.organization_id,
            amount=self.amount,
            status=QuoteStatus(self.status),
            submitted_at=self.submitted_at,
            delivery_time=self.delivery_time,
            valid_until=self.valid_until,
            notes=self.notes,
            document_path=self.document_path,
            decided_at=self.decided_at,
            decided_by_id=self.decided_by_id,
        )

    def __repr__(self) -> str:
        return f"<QuoteModel {self.id} [{self.status}]>"
