"""
Invitation Module Service (``procurement_modules.invitations.service``).

Responsibility
--------------
Admins invite members (EMPLOYEE, HOD, FINANCE, ADMIN) and suppliers into
their organization.  The invitee redeems the emailed token once, which
creates the profile and role (or the supplier record and its link to the
organization) in the same transaction that marks the invitation accepted.

Invariants enforced
-------------------
* Emails are stored lowercased; one ``pending`` invitation per email and
  organization.
* Tokens are 32 random bytes, hex encoded, single use.
* An invitation found past its expiry while still pending is marked
  ``expired`` on validation.
"""

from __future__ import annotations

from datetime import timedelta
from secrets import token_hex
from urllib.parse import quote
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from procurement_config.schema import ProcurementSettings
from procurement_kernel.domain.actor import ActorContext, Role
from procurement_kernel.domain.clock import Clock, SystemClock
from procurement_kernel.exceptions import (
    DuplicateInvitationError,
    InvitationExpiredError,
    InvitationNotFoundError,
    InvitationUsedError,
    OrganizationMismatchError,
    ValidationError,
)
from procurement_kernel.logging_config import get_logger
from procurement_kernel.models.directory import Profile, Supplier, SupplierLinkStatus
from procurement_kernel.selectors.directory import DirectorySelector
from procurement_kernel.services.directory_service import DirectoryService
from procurement_modules.invitations.models import Invitation, InvitationKind, InvitationStatus
from procurement_modules.invitations.orm import InvitationModel
from procurement_services.authority import require_capability

logger = get_logger("modules.invitations.service")

TOKEN_BYTES = 32


def _clean_email(email: str) -> str:
    cleaned = (email or "").strip().lower()
    if "@" not in cleaned:
        raise ValidationError("A valid email address is required")
    return cleaned


def invite_link(invitation: Invitation, base_url: str) -> str:
    """Link sent to the invitee: ``{base}/invite?token=...&email=...``."""
    return (
        f"{base_url.rstrip('/')}/invite?token={invitation.token}"
        f"&email={quote(invitation.email, safe='')}"
    )


class InvitationService:
    """Issues, validates, redeems and cancels invitations."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: ProcurementSettings | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._settings = settings or ProcurementSettings.with_defaults()
        self._directory = DirectoryService(session)
        self._selector = DirectorySelector(session)

    def _pending_for(self, organization_id: UUID, email: str) -> InvitationModel | None:
        return self._session.scalar(
            select(InvitationModel)
            .where(InvitationModel.organization_id == organization_id)
            .where(InvitationModel.email == email)
            .where(InvitationModel.status == InvitationStatus.PENDING.value)
        )

    def _issue(
        self,
        actor: ActorContext,
        kind: InvitationKind,
        email: str,
        role: Role,
        department: str | None = None,
        company_name: str | None = None,
    ) -> Invitation:
        try:
            if self._pending_for(actor.organization_id, email) is not None:
                raise DuplicateInvitationError(email)
            invitation = InvitationModel(
                organization_id=actor.organization_id,
                kind=kind.value,
                email=email,
                role=role.value,
                token=token_hex(TOKEN_BYTES),
                status=InvitationStatus.PENDING.value,
                expires_at=self._clock.now() + timedelta(days=self._settings.invitation_ttl_days),
                invited_by_id=actor.user_id,
                department=department,
                company_name=company_name,
                created_by_id=actor.user_id,
            )
            self._session.add(invitation)
            self._session.flush()
            dto = invitation.to_dto()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info("invitation_created", extra={
            **actor.log_fields(),
            "invitation_id": str(dto.id),
            "invitation_kind": dto.kind.value,
            "invited_role": dto.role.value,
        })
        return dto

    def create_invitation(
        self,
        actor: ActorContext,
        email: str,
        role: Role,
        department: str | None = None,
    ) -> Invitation:
        """Invite a member of the caller's organization."""
        require_capability(actor, "invitation", "manage")
        role = Role(role)
        if role == Role.SUPPLIER:
            raise ValidationError("Suppliers are invited with create_supplier_invitation")
        return self._issue(actor, InvitationKind.USER, _clean_email(email), role, department=department)

    def create_supplier_invitation(self, actor: ActorContext, email: str, company_name: str) -> Invitation:
        """Invite a supplier company to quote for the caller's organization."""
        require_capability(actor, "invitation", "manage")
        company = (company_name or "").strip()
        if not company:
            raise ValidationError("Company name is required")
        return self._issue(
            actor, InvitationKind.SUPPLIER, _clean_email(email), Role.SUPPLIER, company_name=company,
        )

    def _check_redeemable(self, invitation: InvitationModel) -> None:
        if invitation.status == InvitationStatus.ACCEPTED.value:
            raise InvitationUsedError(invitation.id)
        if invitation.status == InvitationStatus.EXPIRED.value:
            raise InvitationExpiredError(invitation.id)
        if invitation.expires_at < self._clock.now():
            invitation.status = InvitationStatus.EXPIRED.value
            self._session.flush()
            self._session.commit()
            logger.info("invitation_expired", extra={"invitation_id": str(invitation.id)})
            raise InvitationExpiredError(invitation.id)

    def _find(self, token: str, email: str | None) -> InvitationModel:
        invitation = self._session.scalar(
            select(InvitationModel).where(InvitationModel.token == (token or "").strip())
        )
        if invitation is None:
            raise InvitationNotFoundError("token")
        if email is not None and invitation.email != email.strip().lower():
            raise InvitationNotFoundError("token")
        return invitation

    def validate_token(self, token: str, email: str | None = None) -> Invitation:
        """
        Return the pending invitation for ``token``.

        Raises ``InvitationNotFoundError`` for an unknown token (or an email
        that does not match it), ``InvitationUsedError`` once accepted and
        ``InvitationExpiredError`` when cancelled or past its expiry.
        """
        try:
            invitation = self._find(token, email)
            self._check_redeemable(invitation)
            return invitation.to_dto()
        except InvitationExpiredError:
            raise
        except Exception:
            self._session.rollback()
            raise

    def accept_invitation(
        self,
        token: str,
        email: str,
        user_id: UUID,
        name: str,
        surname: str | None = None,
    ) -> Invitation:
        """
        Redeem an invitation for the newly authenticated ``user_id``.

        USER invitations create the profile and role; SUPPLIER invitations
        register the supplier (or reuse the user's existing supplier) and link
        it to the inviting organization.
        """
        try:
            invitation = self._find(token, email)
            self._check_redeemable(invitation)

            if invitation.kind == InvitationKind.SUPPLIER.value:
                self._join_as_supplier(invitation, user_id, name)
            else:
                self._join_as_member(invitation, user_id, name, surname)

            invitation.status = InvitationStatus.ACCEPTED.value
            invitation.accepted_at = self._clock.now()
            invitation.accepted_by_id = user_id
            invitation.updated_by_id = user_id
            self._session.flush()
            dto = invitation.to_dto()
            self._session.commit()
        except InvitationExpiredError:
            raise
        except Exception:
            self._session.rollback()
            raise

        logger.info("invitation_accepted", extra={
            "invitation_id": str(dto.id),
            "invitation_kind": dto.kind.value,
            "user_id": str(user_id),
            "organization_id": str(dto.organization_id),
        })
        return dto

    def _join_as_member(
        self,
        invitation: InvitationModel,
        user_id: UUID,
        name: str,
        surname: str | None,
    ) -> None:
        existing = self._session.scalar(select(Profile).where(Profile.user_id == user_id))
        if existing is not None:
            if existing.organization_id != invitation.organization_id:
                raise OrganizationMismatchError(user_id, invitation.organization_id)
            raise ValidationError("User is already a member of this organization")
        if not (name or "").strip():
            raise ValidationError("Name is required")
        self._directory.add_member(
            user_id=user_id,
            organization_id=invitation.organization_id,
            role=Role(invitation.role),
            name=name,
            surname=surname,
            email=invitation.email,
            department=invitation.department,
            created_by_id=user_id,
        )

    def _join_as_supplier(self, invitation: InvitationModel, user_id: UUID, name: str) -> None:
        supplier = self._session.scalar(select(Supplier).where(Supplier.user_id == user_id))
        if supplier is None:
            supplier = self._directory.register_supplier(
                company_name=invitation.company_name or name,
                contact_name=(name or "").strip() or None,
                email=invitation.email,
                user_id=user_id,
                created_by_id=user_id,
            )
        # The organization invited this supplier, so the link is accepted outright
        if not self._selector.supplier_serves_organization(supplier.id, invitation.organization_id):
            self._directory.set_link_status(
                invitation.organization_id, supplier.id, SupplierLinkStatus.ACCEPTED, actor_id=user_id,
            )

    def cancel_invitation(self, actor: ActorContext, invitation_id: UUID) -> Invitation:
        require_capability(actor, "invitation", "manage")
        try:
            invitation = self._session.get(InvitationModel, invitation_id)
            if invitation is None or invitation.organization_id != actor.organization_id:
                raise InvitationNotFoundError(str(invitation_id))
            if invitation.status == InvitationStatus.ACCEPTED.value:
                raise InvitationUsedError(invitation.id)
            invitation.status = InvitationStatus.EXPIRED.value
            invitation.updated_by_id = actor.user_id
            self._session.flush()
            dto = invitation.to_dto()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info("invitation_cancelled", extra={
            **actor.log_fields(),
            "invitation_id": str(invitation_id),
        })
        return dto

    def list_invitations(
        self,
        actor: ActorContext,
        status: InvitationStatus | None = None,
    ) -> list[Invitation]:
        require_capability(actor, "invitation", "manage")
        stmt = select(InvitationModel).where(InvitationModel.organization_id == actor.organization_id)
        if status is not None:
            stmt = stmt.where(InvitationModel.status == InvitationStatus(status).value)
        rows = self._session.scalars(stmt.order_by(InvitationModel.expires_at.desc(), InvitationModel.email))
        return [row.to_dto() for row in rows]
