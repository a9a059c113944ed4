"""
SQLAlchemy ORM persistence models for the Requisitions module.

Responsibility
--------------
Persist purchase requisitions, their line items and their audit history.
Items and history are child tables with a fixed schema (one row per item,
one row per history entry).

Architecture position
---------------------
**Modules layer** -- ORM models consumed by ``RequisitionService``.
Inherits from ``TrackedBase`` (kernel db layer).

Invariants enforced
-------------------
* All monetary fields use ``Decimal`` (Numeric(38,9)) -- NEVER float.
* ``transaction_id`` is unique across all requisitions.
* History ``position`` is unique per requisition; rows are append-only
  (see ``procurement_kernel.db.immutability``).
* ``parent_pr_id`` is set only on split children.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from procurement_kernel.db.base import TrackedBase


# ---------------------------------------------------------------------------
# PurchaseRequisitionModel
# ---------------------------------------------------------------------------


class PurchaseRequisitionModel(TrackedBase):
    """
    A purchase requisition.

    Maps to the ``PurchaseRequisition`` DTO in
    ``procurement_modules.requisitions.models``.
    """

    __tablename__ = "purchase_requisitions"

    __table_args__ = (
        UniqueConstraint("transaction_id", name="uq_pr_transaction_id"),
        Index("idx_pr_organization_status", "organization_id", "status"),
        Index("idx_pr_parent", "parent_pr_id"),
        Index("idx_pr_submitted_at", "submitted_at"),
    )

    transaction_id: Mapped[str] = mapped_column(String(50), nullable=False)
    organization_id: Mapped[UUID] = mapped_column(ForeignKey("organizations.id"), nullable=False)
    requested_by_id: Mapped[UUID] = mapped_column(nullable=False)
    requested_by_name: Mapped[str] = mapped_column(String(255), nullable=False)
    requested_by_department: Mapped[str | None] = mapped_column(String(255), nullable=True)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    urgency: Mapped[str] = mapped_column(String(10), nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    document_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    parent_pr_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("purchase_requisitions.id"), nullable=True,
    )
    category_id: Mapped[UUID | None] = mapped_column(ForeignKey("categories.id"), nullable=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    hod_status: Mapped[str] = mapped_column(String(20), nullable=False)
    finance_status: Mapped[str] = mapped_column(String(20), nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(nullable=False)

    items: Mapped[list["RequisitionItemModel"]] = relationship(
        "RequisitionItemModel",
        back_populates="requisition",
        cascade="all, delete-orphan",
        order_by="RequisitionItemModel.position",
        lazy="selectin",
    )
    history: Mapped[list["RequisitionHistoryModel"]] = relationship(
        "RequisitionHistoryModel",
        back_populates="requisition",
        order_by="RequisitionHistoryModel.position",
        lazy="selectin",
    )

    @property
    def next_history_position(self) -> int:
        return len(self.history) + 1

    def to_dto(self):
        from procurement_modules.requisitions.models import (
            PurchaseRequisition,
            RequisitionStatus,
            Urgency,
        )

        return PurchaseRequisition(
            id=self.id,
            transaction_id=self.transaction_id,
            organization_id=self.organization_id,
            requested_by_id=self.requested_by_id,
            requested_by_name=self.requested_by_name,
            requested_by_department=self.requested_by_department,
            total_amount=self.total_amount,
            currency=self.currency,
            urgency=Urgency(self.urgency),
            due_date=self.due_date,
            payment_due_date=self.payment_due_date,
            document_url=self.document_url,
            parent_pr_id=self.parent_pr_id,
            category_id=self.category_id,
            status=RequisitionStatus(self.status),
            hod_status=self.hod_status,
            finance_status=self.finance_status,
            submitted_at=self.submitted_at,
            items=tuple(item.to_dto() for item in self.items),
            history=tuple(entry.to_dto() for entry in self.history),
        )

    def __repr__(self) -> str:
        return f"<PurchaseRequisitionModel {self.transaction_id} [{self.status}]>"


# ---------------------------------------------------------------------------
# RequisitionItemModel
# ---------------------------------------------------------------------------


class RequisitionItemModel(TrackedBase):
    """
    One line item.  ``source_item_id`` points at the parent's item when the
    row was copied into a split child.
    """

    __tablename__ = "requisition_items"

    __table_args__ = (
        UniqueConstraint("requisition_id", "position", name="uq_pr_item_position"),
    )

    requisition_id: Mapped[UUID] = mapped_column(
        ForeignKey("purchase_requisitions.id"), nullable=False,
    )
    position: Mapped[int] = mapped_column(nullable=False)
    description: Mapped[str] = mapped_column(String(1000), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    total: Mapped[Decimal] = mapped_column(nullable=False)
    source_item_id: Mapped[UUID | None] = mapped_column(nullable=True)

    requisition: Mapped["PurchaseRequisitionModel"] = relationship(
        "PurchaseRequisitionModel",
        back_populates="items",
    )

    def to_dto(self):
        from procurement_kernel.domain.items import LineItem

        return LineItem(
            id=self.id,
            description=self.description,
            quantity=self.quantity,
            unit_price=self.unit_price,
        )

    @classmethod
    def from_line_item(
        cls,
        item,
        position: int,
        created_by_id: UUID,
        source_item_id: UUID | None = None,
    ) -> "RequisitionItemModel":
        return cls(
            position=position,
            description=item.description.strip(),
            quantity=item.quantity,
            unit_price=item.unit_price,
            total=item.total,
            source_item_id=source_item_id,
            created_by_id=created_by_id,
        )


# ---------------------------------------------------------------------------
# RequisitionHistoryModel
# ---------------------------------------------------------------------------


class RequisitionHistoryModel(TrackedBase):
    """An audit entry.  Append-only: update and delete are rejected."""

    __tablename__ = "requisition_history"

    __table_args__ = (
        UniqueConstraint("requisition_id", "position", name="uq_pr_history_position"),
    )

    requisition_id: Mapped[UUID] = mapped_column(
        ForeignKey("purchase_requisitions.id"), nullable=False,
    )
    position: Mapped[int] = mapped_column(nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    user_id: Mapped[UUID] = mapped_column(nullable=False)
    user_name: Mapped[str] = mapped_column(String(255), nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(nullable=False)
    details: Mapped[str] = mapped_column(Text, nullable=False, default="")

    requisition: Mapped["PurchaseRequisitionModel"] = relationship(
        "PurchaseRequisitionModel",
        back_populates="history",
    )

    def to_dto(self):
        from procurement_modules.requisitions.models import HistoryAction, HistoryEntry

        return HistoryEntry(
            position=self.position,
            action=HistoryAction(self.action),
            user_id=self.user_id,
            user_name=self.user_name,
            timestamp=self.occurred_at,
            details=self.details,
        )

    def __repr__(self) -> str:
        return f"<RequisitionHistoryModel #{self.position} {self.action}>"
