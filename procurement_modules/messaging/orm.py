"""
SQLAlchemy ORM persistence models for the PR conversation thread.

Messages and attachments are immutable once written (see
``procurement_kernel.db.immutability``).  ``seq`` orders messages within one
requisition.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from procurement_kernel.db.base import TrackedBase


class PRMessageModel(TrackedBase):
    __tablename__ = "pr_messages"

    __table_args__ = (
        UniqueConstraint("pr_id", "seq", name="uq_pr_message_seq"),
    )

    pr_id: Mapped[UUID] = mapped_column(ForeignKey("purchase_requisitions.id"), nullable=False)
    organization_id: Mapped[UUID] = mapped_column(ForeignKey("organizations.id"), nullable=False)
    seq: Mapped[int] = mapped_column(nullable=False)
    sender_id: Mapped[UUID] = mapped_column(nullable=False)
    sender_name: Mapped[str] = mapped_column(String(255), nullable=False)
    text: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_system_note: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sent_at: Mapped[datetime] = mapped_column(nullable=False)

    attachments: Mapped[list["PRMessageAttachmentModel"]] = relationship(
        "PRMessageAttachmentModel",
        back_populates="message",
        order_by="PRMessageAttachmentModel.file_name",
        lazy="selectin",
    )

    def to_dto(self):
        from procurement_modules.messaging.models import PRMessage

        return PRMessage(
            id=self.id,
            pr_id=self.pr_id,
            organization_id=self.organization_id,
            seq=self.seq,
            sender_id=self.sender_id,
            sender_name=self.sender_name,
            sent_at=self.sent_at,
            text=self.text,
            is_system_note=self.is_system_note,
            attachments=tuple(a.to_dto() for a in self.attachments),
        )


class PRMessageAttachmentModel(TrackedBase):
    __tablename__ = "pr_message_attachments"

    message_id: Mapped[UUID] = mapped_column(ForeignKey("pr_messages.id"), nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    path: Mapped[str] = mapped_column(String(1000), nullable=False)
    size: Mapped[int] = mapped_column(nullable=False)
    mime_type: Mapped[str] = mapped_column(String(255), nullable=False)

    message: Mapped["PRMessageModel"] = relationship(
        "PRMessageModel",
        back_populates="attachments",
    )

    def to_dto(self):
        from procurement_modules.messaging.models import MessageAttachment

        return MessageAttachment(
            id=self.id,
            file_name=self.file_name,
            path=self.path,
            size=self.size,
            mime_type=self.mime_type,
        )
