"""
Administration Module Service (``procurement_modules.administration.service``).

Responsibility
--------------
What an organization admin does outside invitations: list members and
reassign their role, and decide which suppliers the organization buys from.

Invariants enforced
-------------------
* Every operation is ADMIN only and scoped to the admin's organization.
* A member holds exactly one role; the SUPPLIER role is never granted to a
  member, and admins cannot change their own role.
* Accepting or declining a supplier upserts the organization's link to it.
  Only ACCEPTED suppliers can be sent quote requests.
* Verification is a property of the supplier itself, shared by every
  organization that sees it.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from procurement_kernel.domain.actor import ActorContext, Role
from procurement_kernel.exceptions import (
    MemberNotFoundError,
    SupplierNotFoundError,
    ValidationError,
)
from procurement_kernel.logging_config import get_logger
from procurement_kernel.models.directory import Profile, Supplier, SupplierLinkStatus
from procurement_kernel.selectors.directory import DirectorySelector
from procurement_kernel.services.directory_service import DirectoryService
from procurement_modules.administration.models import Member, SupplierLink
from procurement_services.authority import require_capability

logger = get_logger("modules.administration.service")


def _member_dto(profile: Profile, role: str) -> Member:
    return Member(
        user_id=profile.user_id,
        organization_id=profile.organization_id,
        role=Role(role),
        name=profile.name,
        surname=profile.surname,
        email=profile.email,
        department=profile.department,
    )


def _link_dto(supplier: Supplier, organization_id: UUID, status: str | None) -> SupplierLink:
    return SupplierLink(
        supplier_id=supplier.id,
        organization_id=organization_id,
        company_name=supplier.company_name,
        is_verified=bool(supplier.is_verified),
        status=SupplierLinkStatus(status) if status else None,
        contact_name=supplier.contact_name,
        email=supplier.email,
    )


class AdministrationService:
    """Member roles and supplier decisions for one organization."""

    def __init__(self, session: Session):
        self._session = session
        self._directory = DirectoryService(session)
        self._selector = DirectorySelector(session)

    # =========================================================================
    # Members
    # =========================================================================

    def list_members(self, actor: ActorContext) -> list[Member]:
        require_capability(actor, "member", "manage")
        return [_member_dto(profile, role) for profile, role in self._selector.members(actor.organization_id)]

    def change_member_role(self, actor: ActorContext, user_id: UUID, role: Role) -> Member:
        """
        Give a member of the caller's organization a different role.

        Takes effect on the member's next request: routing at requisition
        creation reads roles afresh every time.
        """
        require_capability(actor, "member", "manage")
        role = Role(role)
        if role == Role.SUPPLIER:
            raise ValidationError("Suppliers are invited with create_supplier_invitation")
        if user_id == actor.user_id:
            raise ValidationError("Admins cannot change their own role")
        try:
            profile = self._session.scalar(
                select(Profile)
                .where(Profile.user_id == user_id)
                .where(Profile.organization_id == actor.organization_id)
            )
            if profile is None:
                raise MemberNotFoundError(user_id)
            assignment = self._directory.change_role(user_id, role, actor_id=actor.user_id)
            dto = _member_dto(profile, assignment.role)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info("member_role_reassigned", extra={
            **actor.log_fields(),
            "user_id": str(user_id),
            "to_role": role.value,
        })
        return dto

    # =========================================================================
    # Suppliers
    # =========================================================================

    def list_suppliers(
        self,
        actor: ActorContext,
        status: SupplierLinkStatus | None = None,
    ) -> list[SupplierLink]:
        require_capability(actor, "supplier", "manage")
        return [
            _link_dto(supplier, actor.organization_id, link_status)
            for supplier, link_status in self._selector.organization_suppliers(actor.organization_id, status)
        ]

    def _decide(self, actor: ActorContext, supplier_id: UUID, status: SupplierLinkStatus) -> SupplierLink:
        require_capability(actor, "supplier", "manage")
        try:
            supplier = self._load_supplier(supplier_id)
            link = self._directory.set_link_status(
                actor.organization_id, supplier.id, status, actor_id=actor.user_id,
            )
            dto = _link_dto(supplier, actor.organization_id, link.status)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info("supplier_decided", extra={
            **actor.log_fields(),
            "supplier_id": str(supplier_id),
            "link_status": dto.status.value,
        })
        return dto

    def _load_supplier(self, supplier_id: UUID) -> Supplier:
        supplier = self._selector.get_supplier(supplier_id)
        if supplier is None:
            raise SupplierNotFoundError(supplier_id=supplier_id)
        return supplier

    def accept_supplier(self, actor: ActorContext, supplier_id: UUID) -> SupplierLink:
        """Accept a supplier so finance may send it quote requests."""
        return self._decide(actor, supplier_id, SupplierLinkStatus.ACCEPTED)

    def decline_supplier(self, actor: ActorContext, supplier_id: UUID) -> SupplierLink:
        """Decline a supplier.  Requests already sent to it are left as they are."""
        return self._decide(actor, supplier_id, SupplierLinkStatus.DECLINED)

    def verify_supplier(self, actor: ActorContext, supplier_id: UUID, verified: bool = True) -> SupplierLink:
        require_capability(actor, "supplier", "manage")
        try:
            supplier = self._directory.set_verified(
                self._load_supplier(supplier_id), verified, actor_id=actor.user_id,
            )
            link = self._selector.supplier_link(supplier.id, actor.organization_id)
            dto = _link_dto(supplier, actor.organization_id, link.status if link else None)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info("supplier_verified", extra={
            **actor.log_fields(),
            "supplier_id": str(supplier_id),
            "is_verified": dto.is_verified,
        })
        return dto
