"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

The approval trail of a purchase requisition is its audit record.  Once an
entry is written it is never edited or removed, a decision that ended a
requisition's lifecycle is never reversed, and a supplier's invoice document
is never swapped out.  Services already follow these rules; the listeners
here make the ORM refuse a write that breaks them, whatever code path issued
it.

===============================================================================
HOW IT WORKS
===============================================================================

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
We register listeners that intercept these events and check our invariants:

    session.flush()
         |
         v
    [before_update event] --> _check_*_immutability() --> ImmutabilityViolationError
         |                                                        ^
         v                                                        |
    [before_delete event] --> _check_*_delete() -----------------+
         |
         v
    SQL sent to database (only if checks pass)

``before_update`` fires for every dirty instance, including a requisition
that is only dirty because a history row was appended to it.  Checks
therefore inspect per-attribute history and never reject an update merely
because it happened.

Bulk ``update()`` statements bypass these events.  Every bulk write (the
invoice payment marks and the quote accept/reject decisions) constrains its
WHERE clause to the statuses its workflow transition leaves from.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity                     | Rule
---------------------------|---------------------------------------------------
RequisitionHistoryModel    | Append-only: no update, no delete
PurchaseRequisitionModel   | No delete; identity fields fixed; category fixed
                           | once set; terminal status never changes
InvoiceModel               | No delete; document and ownership fields fixed;
                           | status advances exactly one step forward
PRMessageModel             | No update, no delete
PRMessageAttachmentModel   | No update, no delete

updated_at/updated_by_id are audit metadata and may always change.

===============================================================================
USAGE
===============================================================================

    from procurement_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # Called once at startup

To temporarily disable (TESTS ONLY):

    from procurement_kernel.db.immutability import unregister_immutability_listeners
    unregister_immutability_listeners()
"""

from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from procurement_kernel.exceptions import ImmutabilityViolationError
from procurement_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

REQUISITION_IDENTITY_FIELDS = frozenset({
    "transaction_id",
    "organization_id",
    "parent_pr_id",
    "requested_by_id",
})

INVOICE_FIXED_FIELDS = frozenset({
    "quote_id",
    "pr_id",
    "supplier_id",
    "organization_id",
    "document_path",
    "file_name",
    "file_size",
})


def _block(entity_type: str, target, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
            "reason": reason,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _changed(target, attribute: str) -> tuple[bool, object, object]:
    """Return (changed, old, new) for a column attribute."""
    history = get_history(target, attribute)
    if not history.has_changes():
        return (False, None, None)
    old = history.deleted[0] if history.deleted else None
    new = history.added[0] if history.added else None
    return (old != new, old, new)


# =============================================================================
# Requisition history (append-only)
# =============================================================================


def _check_history_update(mapper, connection, target):
    _block("RequisitionHistory", target, "UPDATE", "History entries are append-only and cannot be modified")


def _check_history_delete(mapper, connection, target):
    _block("RequisitionHistory", target, "DELETE", "History entries cannot be deleted")


# =============================================================================
# Purchase requisitions
# =============================================================================


def _check_requisition_immutability(mapper, connection, target):
    """
    Guard identity, category and terminal status of a requisition.

    Logic:
        1. Identity fields never change after insert.
        2. category_id may go from NULL to a value once (finance approval).
        3. status may not move away from a terminal state.
    """
    from procurement_modules.requisitions.models import TERMINAL_STATUSES

    for field_name in REQUISITION_IDENTITY_FIELDS:
        changed, _, _ = _changed(target, field_name)
        if changed:
            _block("PurchaseRequisition", target, "UPDATE", f"{field_name} cannot be changed")

    changed, old_category, _ = _changed(target, "category_id")
    if changed and old_category is not None:
        _block("PurchaseRequisition", target, "UPDATE", "Category cannot be changed once assigned")

    changed, old_status, new_status = _changed(target, "status")
    terminal = {status.value for status in TERMINAL_STATUSES}
    if changed and old_status in terminal:
        _block(
            "PurchaseRequisition",
            target,
            "UPDATE",
            f"Status {old_status} is final and cannot change to {new_status}",
        )


def _check_requisition_delete(mapper, connection, target):
    _block("PurchaseRequisition", target, "DELETE", "Purchase requisitions cannot be deleted")


# =============================================================================
# Invoices
# =============================================================================


def _check_invoice_immutability(mapper, connection, target):
    """Invoice documents are fixed; payment status only moves one step forward."""
    from procurement_modules.invoices.models import PAYMENT_SEQUENCE

    for field_name in INVOICE_FIXED_FIELDS:
        changed, _, _ = _changed(target, field_name)
        if changed:
            _block("Invoice", target, "UPDATE", f"{field_name} cannot be changed")

    changed, old_status, new_status = _changed(target, "status")
    if changed:
        order = [status.value for status in PAYMENT_SEQUENCE]
        if (
            old_status not in order
            or new_status not in order
            or order.index(new_status) != order.index(old_status) + 1
        ):
            _block(
                "Invoice",
                target,
                "UPDATE",
                f"Invoice status cannot move from {old_status} to {new_status}",
            )


def _check_invoice_delete(mapper, connection, target):
    _block("Invoice", target, "DELETE", "Invoices cannot be deleted")


# =============================================================================
# Conversation messages
# =============================================================================


def _check_message_update(mapper, connection, target):
    _block("PRMessage", target, "UPDATE", "Messages cannot be edited")


def _check_message_delete(mapper, connection, target):
    _block("PRMessage", target, "DELETE", "Messages cannot be deleted")


def _check_attachment_update(mapper, connection, target):
    _block("PRMessageAttachment", target, "UPDATE", "Attachments cannot be edited")


def _check_attachment_delete(mapper, connection, target):
    _block("PRMessageAttachment", target, "DELETE", "Attachments cannot be deleted")


def _listeners():
    from procurement_modules.invoices.orm import InvoiceModel
    from procurement_modules.messaging.orm import PRMessageAttachmentModel, PRMessageModel
    from procurement_modules.requisitions.orm import (
        PurchaseRequisitionModel,
        RequisitionHistoryModel,
    )

    return (
        (RequisitionHistoryModel, "before_update", _check_history_update),
        (RequisitionHistoryModel, "before_delete", _check_history_delete),
        (PurchaseRequisitionModel, "before_update", _check_requisition_immutability),
        (PurchaseRequisitionModel, "before_delete", _check_requisition_delete),
        (InvoiceModel, "before_update", _check_invoice_immutability),
        (InvoiceModel, "before_delete", _check_invoice_delete),
        (PRMessageModel, "before_update", _check_message_update),
        (PRMessageModel, "before_delete", _check_message_delete),
        (PRMessageAttachmentModel, "before_update", _check_attachment_update),
        (PRMessageAttachmentModel, "before_delete", _check_attachment_delete),
    )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Call this after all models are imported but before any database
    operations begin.  Registering twice is harmless.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)
    logger.debug("immutability_listeners_registered")


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate immutability rules to verify detection.
    """
    for target, event_name, listener_fn in _listeners():
        _safe_remove_listener(target, event_name, listener_fn)
    logger.debug("immutability_listeners_unregistered")
