"""
Administration Domain Models.

Views handed to organization admins: members with their single role, and
suppliers with the organization's decision on each.
"""

from dataclasses import dataclass
from uuid import UUID

from procurement_kernel.domain.actor import Role, display_name
from procurement_kernel.models.directory import SupplierLinkStatus


@dataclass(frozen=True)
class Member:
    user_id: UUID
    organization_id: UUID
    role: Role
    name: str
    surname: str | None = None
    email: str | None = None
    department: str | None = None

    @property
    def display_name(self) -> str:
        return display_name(self.name, self.surname)


@dataclass(frozen=True)
class SupplierLink:
    """A supplier as seen by one organization.

    ``status`` is None when the organization has not decided on the
    supplier yet.
    """

    supplier_id: UUID
    organization_id: UUID
    company_name: str
    is_verified: bool
    status: SupplierLinkStatus | None = None
    contact_name: str | None = None
    email: str | None = None

    @property
    def can_receive_quote_requests(self) -> bool:
        return self.status == SupplierLinkStatus.ACCEPTED
