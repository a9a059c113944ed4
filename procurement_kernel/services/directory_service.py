"""Writes to the organization directory (flush-only, caller commits)."""

from uuid import UUID

from sqlalchemy import select

from procurement_kernel.domain.actor import Role
from procurement_kernel.logging_config import get_logger
from procurement_kernel.models.directory import (
    Organization,
    OrganizationSupplier,
    Profile,
    Supplier,
    SupplierLinkStatus,
    UserRole,
)
from procurement_kernel.services.base import BaseService

logger = get_logger("services.directory")


class DirectoryService(BaseService):
    """Creates organizations, members, role assignments and suppliers."""

    def create_organization(self, name: str, created_by_id: UUID) -> Organization:
        org = Organization(name=name.strip(), created_by_id=created_by_id)
        self.session.add(org)
        self.session.flush()
        logger.info(
            "organization_created",
            extra={"organization_id": str(org.id), "name_length": len(org.name)},
        )
        return org

    def add_member(
        self,
        *,
        user_id: UUID,
        organization_id: UUID,
        role: Role,
        name: str,
        created_by_id: UUID,
        surname: str | None = None,
        email: str | None = None,
        department: str | None = None,
    ) -> Profile:
        if role == Role.SUPPLIER:
            raise ValueError("Suppliers are registered with register_supplier()")
        profile = Profile(
            user_id=user_id,
            organization_id=organization_id,
            name=name.strip(),
            surname=surname.strip() if surname else None,
            email=email.strip().lower() if email else None,
            department=department,
            created_by_id=created_by_id,
        )
        self.session.add(profile)
        self.session.add(UserRole(user_id=user_id, role=role.value, created_by_id=created_by_id))
        self.session.flush()
        logger.info(
            "member_added",
            extra={
                "user_id": str(user_id),
                "organization_id": str(organization_id),
                "role": role.value,
            },
        )
        return profile

    def change_role(self, user_id: UUID, role: Role, actor_id: UUID) -> UserRole:
        """Reassign a member's single role.  Supplier roles are never granted here."""
        if role == Role.SUPPLIER:
            raise ValueError("Suppliers are registered with register_supplier()")
        assignment = self.session.scalar(
            select(UserRole).where(UserRole.user_id == user_id).with_for_update()
        )
        if assignment is None:
            raise LookupError(f"no role assigned to {user_id}")
        previous = assignment.role
        assignment.role = role.value
        assignment.updated_by_id = actor_id
        self.session.flush()
        logger.info(
            "member_role_changed",
            extra={"user_id": str(user_id), "from_role": previous, "to_role": role.value},
        )
        return assignment

    def register_supplier(
        self,
        *,
        company_name: str,
        created_by_id: UUID,
        user_id: UUID | None = None,
        contact_name: str | None = None,
        email: str | None = None,
        phone: str | None = None,
    ) -> Supplier:
        supplier = Supplier(
            company_name=company_name.strip(),
            contact_name=contact_name,
            email=email.strip().lower() if email else None,
            phone=phone,
            user_id=user_id,
            created_by_id=created_by_id,
        )
        self.session.add(supplier)
        if user_id is not None:
            self.session.add(
                UserRole(user_id=user_id, role=Role.SUPPLIER.value, created_by_id=created_by_id)
            )
        self.session.flush()
        logger.info("supplier_registered", extra={"supplier_id": str(supplier.id)})
        return supplier

    def link_supplier(
        self,
        organization_id: UUID,
        supplier_id: UUID,
        created_by_id: UUID,
        status: SupplierLinkStatus = SupplierLinkStatus.PENDING,
    ) -> OrganizationSupplier:
        link = OrganizationSupplier(
            organization_id=organization_id,
            supplier_id=supplier_id,
            status=SupplierLinkStatus(status).value,
            created_by_id=created_by_id,
        )
        self.session.add(link)
        self.session.flush()
        logger.info(
            "supplier_linked",
            extra={
                "organization_id": str(organization_id),
                "supplier_id": str(supplier_id),
                "link_status": link.status,
            },
        )
        return link

    def set_link_status(
        self,
        organization_id: UUID,
        supplier_id: UUID,
        status: SupplierLinkStatus,
        actor_id: UUID,
    ) -> OrganizationSupplier:
        """Upsert the organization's decision on a supplier."""
        link = self.session.scalar(
            select(OrganizationSupplier)
            .where(OrganizationSupplier.organization_id == organization_id)
            .where(OrganizationSupplier.supplier_id == supplier_id)
            .with_for_update()
        )
        if link is None:
            return self.link_supplier(organization_id, supplier_id, created_by_id=actor_id, status=status)
        previous = link.status
        link.status = SupplierLinkStatus(status).value
        link.updated_by_id = actor_id
        self.session.flush()
        logger.info(
            "supplier_link_status_changed",
            extra={
                "organization_id": str(organization_id),
                "supplier_id": str(supplier_id),
                "from_status": previous,
                "to_status": link.status,
            },
        )
        return link

    def set_verified(self, supplier: Supplier, verified: bool, actor_id: UUID) -> Supplier:
        supplier.is_verified = bool(verified)
        supplier.updated_by_id = actor_id
        self.session.flush()
        logger.info(
            "supplier_verification_changed",
            extra={"supplier_id": str(supplier.id), "is_verified": supplier.is_verified},
        )
        return supplier
