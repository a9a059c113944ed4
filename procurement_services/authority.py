"""
procurement_services.authority -- Capability checks at the operation boundary.

Responsibility:
    Answer one question per operation: may this caller's role perform this
    action?  Every service method asks exactly once, at its entry, through
    ``require_capability`` (or via ``WorkflowExecutor.require_transition``,
    which also checks that the action is valid from the record's state).

Architecture position:
    Services layer.  Consumes ``ActorContext`` from the kernel; never resolves
    identity itself.

Invariants:
    - Deny by default: an action missing from ``CAPABILITIES`` is refused.
    - Organization scoping is not decided here; services filter every read by
      the caller's organization (or, for suppliers, by supplier id).
"""

from __future__ import annotations

from procurement_kernel.domain.actor import ActorContext, Role
from procurement_kernel.exceptions import NotAuthorizedError
from procurement_kernel.logging_config import get_logger

logger = get_logger("services.authority")

_MEMBERS = frozenset({Role.EMPLOYEE, Role.HOD, Role.FINANCE, Role.ADMIN})
_FINANCE = frozenset({Role.FINANCE})
_FINANCE_OR_ADMIN = frozenset({Role.FINANCE, Role.ADMIN})
_SUPPLIER = frozenset({Role.SUPPLIER})
_ADMIN = frozenset({Role.ADMIN})

# (scope, action) -> roles allowed.  Scope is the workflow name for stateful
# records, or a resource name for plain records.
CAPABILITIES: dict[tuple[str, str], frozenset[Role]] = {
    # Requisitions
    ("purchase_requisition", "create"): _MEMBERS,
    ("purchase_requisition", "view"): _MEMBERS,
    ("purchase_requisition", "hod_approve"): frozenset({Role.HOD}),
    ("purchase_requisition", "hod_decline"): frozenset({Role.HOD}),
    ("purchase_requisition", "finance_approve"): _FINANCE,
    ("purchase_requisition", "finance_decline"): _FINANCE,
    ("purchase_requisition", "split"): _FINANCE,
    # Quote requests
    ("quote_request", "send"): _FINANCE,
    ("quote_request", "view"): _FINANCE_OR_ADMIN | _SUPPLIER,
    ("quote_request", "accept"): _SUPPLIER,
    ("quote_request", "decline"): _SUPPLIER,
    ("quote_request", "submit_quote"): _SUPPLIER,
    # Quotes
    ("quote", "view"): _FINANCE_OR_ADMIN | _SUPPLIER,
    ("quote", "accept"): _FINANCE,
    ("quote", "reject"): _FINANCE,
    ("quote", "attach_invoice"): _SUPPLIER,
    # Invoices
    ("invoice", "upload"): _SUPPLIER,
    ("invoice", "view"): _FINANCE_OR_ADMIN | _SUPPLIER,
    ("invoice", "mark_awaiting_payment"): _FINANCE,
    ("invoice", "mark_paid"): _FINANCE,
    # Reference data and administration
    ("category", "view"): _MEMBERS,
    ("category", "manage"): _FINANCE_OR_ADMIN,
    ("invitation", "manage"): _ADMIN,
    ("member", "manage"): _ADMIN,
    ("supplier", "manage"): _ADMIN,
    ("pr_message", "send"): _MEMBERS,
    ("pr_message", "view"): _MEMBERS,
    ("supplier_dashboard", "view"): _SUPPLIER,
}


def allowed_roles(scope: str, action: str) -> frozenset[Role]:
    return CAPABILITIES.get((scope, action), frozenset())


def check_capability(actor: ActorContext, scope: str, action: str) -> tuple[bool, str]:
    """Return (allowed, reason). reason is empty when allowed."""
    roles = allowed_roles(scope, action)
    if not roles:
        return (False, f"no capability defined for {scope}.{action}")
    if actor.role not in roles:
        return (False, f"role {actor.role.value} lacks {scope}.{action}")
    return (True, "")


def require_capability(actor: ActorContext, scope: str, action: str) -> None:
    """Raise NotAuthorizedError unless the caller may perform ``scope.action``."""
    allowed, reason = check_capability(actor, scope, action)
    if not allowed:
        logger.warning(
            "capability_denied",
            extra={
                **actor.log_fields(),
                "scope": scope,
                "action": action,
                "reason": reason,
            },
        )
        raise NotAuthorizedError(actor.user_id, actor.role.value, f"{scope}.{action}", reason)
