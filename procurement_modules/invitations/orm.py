"""
SQLAlchemy ORM persistence model for organization invitations.

``token`` is unique.  At most one ``pending`` invitation per email and
organization is enforced by the service.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from procurement_kernel.db.base import TrackedBase


class InvitationModel(TrackedBase):
    """Maps to the ``Invitation`` DTO in ``procurement_modules.invitations.models``."""

    __tablename__ = "invitations"

    __table_args__ = (
        UniqueConstraint("token", name="uq_invitation_token"),
        Index("idx_invitation_org_email_status", "organization_id", "email", "status"),
    )

    organization_id: Mapped[UUID] = mapped_column(ForeignKey("organizations.id"), nullable=False)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    token: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(nullable=False)
    invited_by_id: Mapped[UUID] = mapped_column(nullable=False)
    department: Mapped[str | None] = mapped_column(String(255), nullable=True)
    company_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    accepted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    accepted_by_id: Mapped[UUID | None] = mapped_column(nullable=True)

    def to_dto(self):
        from procurement_kernel.domain.actor import Role
        from procurement_modules.invitations.models import (
            Invitation,
            InvitationKind,
            InvitationStatus,
        )

        return Invitation(
            id=self.id,
            organization_id=self.organization_id,
            kind=InvitationKind(self.kind),
            email=self.email,
            role=Role(self.role),
            token=self.token,
            status=InvitationStatus(self.status),
            expires_at=self.expires_at,
            invited_by_id=self.invited_by_id,
            department=self.department,
            company_name=self.company_name,
            accepted_at=self.accepted_at,
            accepted_by_id=self.accepted_by_id,
        )

    def __repr__(self) -> str:
        return f"<InvitationModel {self.kind} [{self.status}]>"
