"""
Directory selector: who is calling, and who is in an organization.

Acts as the adapter to the authentication identity provider: given the
stable user id of an authenticated caller it resolves role, organization and
display name into an ``ActorContext``.  Also answers the HOD presence
question asked on every requisition creation.
"""

from uuid import UUID

from sqlalchemy import exists, select

from procurement_kernel.domain.actor import ActorContext, Role
from procurement_kernel.exceptions import NotAuthenticatedError, SupplierNotFoundError
from procurement_kernel.logging_config import get_logger
from procurement_kernel.models.directory import (
    OrganizationSupplier,
    Profile,
    Supplier,
    SupplierLinkStatus,
    UserRole,
)
from procurement_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.directory")


class DirectorySelector(BaseSelector):
    """Read-only queries over organizations, profiles, roles and suppliers."""

    def resolve_actor(self, user_id: UUID | None) -> ActorContext:
        """Build the caller context for an authenticated user id.

        Raises:
            NotAuthenticatedError: no user id, no role, or (for non-suppliers)
                no profile in an organization.
            SupplierNotFoundError: SUPPLIER role without a supplier record.
        """
        if user_id is None:
            raise NotAuthenticatedError(None)

        role_value = self.session.scalar(
            select(UserRole.role).where(UserRole.user_id == user_id)
        )
        if role_value is None:
            logger.warning("actor_role_missing", extra={"user_id": str(user_id)})
            raise NotAuthenticatedError(user_id)
        role = Role(role_value)

        if role == Role.SUPPLIER:
            supplier = self.supplier_for_user(user_id)
            return ActorContext(
                user_id=user_id,
                role=role,
                display_name=supplier.company_name,
                supplier_id=supplier.id,
            )

        profile = self.session.scalar(select(Profile).where(Profile.user_id == user_id))
        if profile is None:
            logger.warning("actor_profile_missing", extra={"user_id": str(user_id)})
            raise NotAuthenticatedError(user_id)

        return ActorContext(
            user_id=user_id,
            role=role,
            display_name=profile.display_name or "Unknown",
            organization_id=profile.organization_id,
            department=profile.department,
        )

    def supplier_for_user(self, user_id: UUID) -> Supplier:
        supplier = self.session.scalar(select(Supplier).where(Supplier.user_id == user_id))
        if supplier is None:
            raise SupplierNotFoundError(user_id=user_id)
        return supplier

    def get_supplier(self, supplier_id: UUID) -> Supplier | None:
        return self.session.get(Supplier, supplier_id)

    def organization_has_hod(self, organization_id: UUID) -> bool:
        """True when at least one member of the organization holds the HOD role.

        Evaluated against current data on every call; never cached.
        """
        return bool(
            self.session.scalar(
                select(
                    exists()
                    .where(UserRole.role == Role.HOD.value)
                    .where(UserRole.user_id == Profile.user_id)
                    .where(Profile.organization_id == organization_id)
                )
            )
        )

    def members_with_role(self, organization_id: UUID, role: Role) -> list[UUID]:
        return list(
            self.session.scalars(
                select(Profile.user_id)
                .join(UserRole, UserRole.user_id == Profile.user_id)
                .where(Profile.organization_id == organization_id)
                .where(UserRole.role == role.value)
                .order_by(Profile.user_id)
            )
        )

    def supplier_link(self, supplier_id: UUID, organization_id: UUID) -> OrganizationSupplier | None:
        return self.session.scalar(
            select(OrganizationSupplier)
            .where(OrganizationSupplier.supplier_id == supplier_id)
            .where(OrganizationSupplier.organization_id == organization_id)
        )

    def supplier_serves_organization(self, supplier_id: UUID, organization_id: UUID) -> bool:
        """True only when the organization has ACCEPTED the supplier."""
        return bool(
            self.session.scalar(
                select(
                    exists()
                    .where(OrganizationSupplier.supplier_id == supplier_id)
                    .where(OrganizationSupplier.organization_id == organization_id)
                    .where(OrganizationSupplier.status == SupplierLinkStatus.ACCEPTED.value)
                )
            )
        )

    def members(self, organization_id: UUID) -> list[tuple[Profile, str]]:
        """Profiles of the organization with their role, ordered by name."""
        return list(
            self.session.execute(
                select(Profile, UserRole.role)
                .join(UserRole, UserRole.user_id == Profile.user_id)
                .where(Profile.organization_id == organization_id)
                .order_by(Profile.name, Profile.surname, Profile.user_id)
            ).tuples()
        )

    def organization_suppliers(
        self,
        organization_id: UUID,
        status: SupplierLinkStatus | None = None,
    ) -> list[tuple[Supplier, str]]:
        stmt = (
            select(Supplier, OrganizationSupplier.status)
            .join(OrganizationSupplier, OrganizationSupplier.supplier_id == Supplier.id)
            .where(OrganizationSupplier.organization_id == organization_id)
        )
        if status is not None:
            stmt = stmt.where(OrganizationSupplier.status == SupplierLinkStatus(status).value)
        return list(self.session.execute(stmt.order_by(Supplier.company_name)).tuples())

    def profile_for_email(self, email: str) -> Profile | None:
        return self.session.scalar(
            select(Profile).where(Profile.email == email.strip().lower())
        )
