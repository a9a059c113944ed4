"""
Caller context (``procurement_kernel.domain.actor``).

Every workflow operation receives an explicit ``ActorContext`` describing
who is calling: the acting user, their resolved role and organization, and
the display name recorded in audit history.  Nothing in the workflow core
reads an ambient session or current-user global.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class Role(str, Enum):
    """Application roles.  A user holds exactly one role."""

    EMPLOYEE = "EMPLOYEE"
    HOD = "HOD"
    FINANCE = "FINANCE"
    ADMIN = "ADMIN"
    SUPPLIER = "SUPPLIER"


@dataclass(frozen=True)
class ActorContext:
    """Resolved identity of the caller.

    ``organization_id`` is None for suppliers, who act across every
    organization they are linked to.  ``supplier_id`` is set only for
    suppliers.
    """

    user_id: UUID
    role: Role
    display_name: str
    organization_id: UUID | None = None
    department: str | None = None
    supplier_id: UUID | None = None

    def __post_init__(self) -> None:
        if not self.display_name or not self.display_name.strip():
            raise ValueError("display_name is required")
        if self.role == Role.SUPPLIER and self.supplier_id is None:
            raise ValueError("supplier actors require supplier_id")
        if self.role != Role.SUPPLIER and self.organization_id is None:
            raise ValueError(f"{self.role.value} actors require organization_id")

    @property
    def is_supplier(self) -> bool:
        return self.role == Role.SUPPLIER

    def log_fields(self) -> dict[str, str]:
        fields = {"actor_id": str(self.user_id), "actor_role": self.role.value}
        if self.organization_id is not None:
            fields["organization_id"] = str(self.organization_id)
        return fields


def display_name(name: str, surname: str | None = None) -> str:
    """Name shown in history entries: first name plus surname when present."""
    name = (name or "").strip()
    if surname and surname.strip():
        return f"{name} {surname.strip()}"
    return name
