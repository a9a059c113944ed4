"""
Invitation Domain Models.

Single-use, time-limited invitations that bring a member into an
organization (``USER``) or register a supplier and link it to the inviting
organization (``SUPPLIER``).
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID

from procurement_kernel.domain.actor import Role


class InvitationKind(str, Enum):
    USER = "USER"
    SUPPLIER = "SUPPLIER"


class InvitationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"


@dataclass(frozen=True)
class Invitation:
    id: UUID
    organization_id: UUID
    kind: InvitationKind
    email: str
    role: Role
    token: str
    status: InvitationStatus
    expires_at: datetime
    invited_by_id: UUID
    department: str | None = None
    company_name: str | None = None
    accepted_at: datetime | None = None
    accepted_by_id: UUID | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at < now
