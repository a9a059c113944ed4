"""Capability table checks."""

from uuid import uuid4

import pytest

from procurement_kernel.domain.actor import ActorContext, Role
from procurement_kernel.exceptions import NotAuthorizedError
from procurement_services.authority import (
    CAPABILITIES,
    allowed_roles,
    check_capability,
    require_capability,
)


def actor_with(role: Role) -> ActorContext:
    if role == Role.SUPPLIER:
        return ActorContext(uuid4(), role, "Bolt Supplies", supplier_id=uuid4())
    return ActorContext(uuid4(), role, "Thandi Mokoena", organization_id=uuid4())


class TestCapabilityTable:

    def test_every_entry_names_at_least_one_role(self):
        assert all(roles for roles in CAPABILITIES.values())

    @pytest.mark.parametrize(
        "scope, action, roles",
        [
            ("purchase_requisition", "hod_approve", {Role.HOD}),
            ("purchase_requisition", "finance_approve", {Role.FINANCE}),
            ("purchase_requisition", "split", {Role.FINANCE}),
            ("quote", "accept", {Role.FINANCE}),
            ("quote_request", "submit_quote", {Role.SUPPLIER}),
            ("invoice", "upload", {Role.SUPPLIER}),
            ("invoice", "mark_paid", {Role.FINANCE}),
            ("invitation", "manage", {Role.ADMIN}),
            ("member", "manage", {Role.ADMIN}),
            ("supplier", "manage", {Role.ADMIN}),
        ],
    )
    def test_decisions_are_role_bound(self, scope, action, roles):
        assert allowed_roles(scope, action) == roles

    def test_sibling_supersede_is_not_a_caller_action(self):
        assert allowed_roles("quote", "supersede") == frozenset()

    def test_suppliers_never_touch_requisitions(self):
        supplier_actions = [key for key, roles in CAPABILITIES.items() if Role.SUPPLIER in roles]

        assert supplier_actions
        assert all(scope != "purchase_requisition" for scope, _ in supplier_actions)


class TestCheckCapability:

    def test_allowed(self):
        assert check_capability(actor_with(Role.FINANCE), "quote", "accept") == (True, "")

    def test_role_missing(self):
        allowed, reason = check_capability(actor_with(Role.EMPLOYEE), "quote", "accept")

        assert not allowed
        assert reason == "role EMPLOYEE lacks quote.accept"

    def test_unknown_action_denied(self):
        allowed, reason = check_capability(actor_with(Role.ADMIN), "quote", "delete")

        assert not allowed
        assert reason == "no capability defined for quote.delete"


class TestRequireCapability:

    def test_passes_silently(self, captured_logs):
        require_capability(actor_with(Role.HOD), "purchase_requisition", "hod_decline")

        assert not [r for r in captured_logs() if r["message"] == "capability_denied"]

    def test_denial_raises_and_logs(self, captured_logs):
        actor = actor_with(Role.SUPPLIER)

        with pytest.raises(NotAuthorizedError) as exc_info:
            require_capability(actor, "invoice", "mark_paid")

        assert exc_info.value.action == "invoice.mark_paid"
        assert exc_info.value.role == "SUPPLIER"
        [record] = [r for r in captured_logs() if r["message"] == "capability_denied"]
        assert record["actor_id"] == str(actor.user_id)
        assert record["reason"] == "role SUPPLIER lacks invoice.mark_paid"
