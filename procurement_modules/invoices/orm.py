"""
SQLAlchemy ORM persistence model for supplier invoices.

Invariants enforced
-------------------
* ``quote_id`` is unique: one invoice per quote.
* Rows are never deleted, document fields never change, and ``status``
  only advances one step at a time (see
  ``procurement_kernel.db.immutability``).
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from procurement_kernel.db.base import TrackedBase


class InvoiceModel(TrackedBase):
    """Maps to the ``Invoice`` DTO in ``procurement_modules.invoices.models``."""

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("quote_id", name="uq_invoice_quote"),
        Index("idx_invoice_organization_status", "organization_id", "status"),
        Index("idx_invoice_supplier", "supplier_id"),
    )

    quote_id: Mapped[UUID] = mapped_column(ForeignKey("quotes.id"), nullable=False)
    pr_id: Mapped[UUID] = mapped_column(ForeignKey("purchase_requisitions.id"), nullable=False)
    supplier_id: Mapped[UUID] = mapped_column(ForeignKey("suppliers.id"), nullable=False)
    organization_id: Mapped[UUID] = mapped_column(ForeignKey("organizations.id"), nullable=False)
    document_path: Mapped[str] = mapped_column(String(1000), nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_size: Mapped[int] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    uploaded_by_id: Mapped[UUID] = mapped_column(nullable=False)
    uploaded_at: Mapped[datetime] = mapped_column(nullable=False)
    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def to_dto(self):
        from procurement_modules.invoices.models import Invoice, InvoiceStatus

        return Invoice(
            id=self.id,
            quote_id=self.quote_id,
            pr_id=self.pr_id,
            supplier_id=self.supplier_id,
            organization_id=self.organization_id,
            document_path=self.document_path,
            file_name=self.file_name,
            file_size=self.file_size,
            status=InvoiceStatus(self.status),
            uploaded_by_id=self.uploaded_by_id,
            uploaded_at=self.uploaded_at,
            paid_at=self.paid_at,
        )

    def __repr__(self) -> str:
        return f"<InvoiceModel {self.id} [{self.status}]>"
