"""
Organization directory models.

Organizations, member profiles, role assignments, suppliers and the link
between suppliers and the organizations that buy from them.  These tables
back three workflow decisions: whether an organization has an HOD (routing
at PR creation), the display name recorded in history, and the supplier
identity used by the invoice gate.
"""

from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from procurement_kernel.db.base import TrackedBase
from procurement_kernel.domain.actor import Role, display_name


class SupplierLinkStatus(str, Enum):
    """Organization's decision on a supplier.  Only ACCEPTED suppliers get quote requests."""

    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"


class Organization(TrackedBase):
    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    def __repr__(self) -> str:
        return f"<Organization {self.name}>"


class Profile(TrackedBase):
    """A member of an organization, keyed by the identity provider's user id."""

    __tablename__ = "profiles"

    __table_args__ = (
        UniqueConstraint("user_id", name="uq_profile_user"),
        Index("idx_profile_organization", "organization_id"),
    )

    user_id: Mapped[UUID] = mapped_column(nullable=False)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id"), nullable=False,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    surname: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    department: Mapped[str | None] = mapped_column(String(255), nullable=True)

    @property
    def display_name(self) -> str:
        return display_name(self.name, self.surname)

    def __repr__(self) -> str:
        return f"<Profile {self.display_name}>"


class UserRole(TrackedBase):
    __tablename__ = "user_roles"

    __table_args__ = (
        UniqueConstraint("user_id", name="uq_user_role_user"),
        Index("idx_user_role_role", "role"),
    )

    user_id: Mapped[UUID] = mapped_column(nullable=False)
    role: Mapped[Role] = mapped_column(String(20), nullable=False)


class Supplier(TrackedBase):
    __tablename__ = "suppliers"

    __table_args__ = (
        UniqueConstraint("user_id", name="uq_supplier_user"),
    )

    company_name: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    # Identity-provider user that acts for this supplier
    user_id: Mapped[UUID | None] = mapped_column(nullable=True)
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<Supplier {self.company_name}>"


class OrganizationSupplier(TrackedBase):
    __tablename__ = "organization_suppliers"

    __table_args__ = (
        UniqueConstraint(
            "organization_id", "supplier_id", name="uq_organization_supplier",
        ),
    )

    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id"), nullable=False,
    )
    supplier_id: Mapped[UUID] = mapped_column(
        ForeignKey("suppliers.id"), nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SupplierLinkStatus.PENDING.value,
    )
