"""Organization and supplier invitations (``procurement_modules.invitations``)."""

from procurement_modules.invitations.models import Invitation, InvitationKind, InvitationStatus

__all__ = ["Invitation", "InvitationKind", "InvitationStatus"]
