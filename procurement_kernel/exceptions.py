"""
Typed Exception Hierarchy for the Procurement Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Every error raised by the workflow core carries:
  1. A TYPED exception class (catch by type, not message)
  2. A CODE class attribute (machine-readable, safe to hand to a caller)
  3. Structured DATA as attributes (ids, states, limits)

The message of a validation or state-conflict error is written for the end
user and may be shown verbatim.  The message of an integrity error may carry
backend detail and is NEVER shown; procurement_services.gateway replaces it
with a generic retry message after logging it.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ProcurementError (base)
    |
    +-- ValidationError
    |   +-- GuardRejectedError
    |   +-- InvalidLineItemError
    |   +-- InvalidSplitError
    |   +-- InvalidDocumentError
    |   +-- EmptyMessageError
    |   +-- NoInvoicesSelectedError
    |
    +-- AuthorizationError
    |   +-- NotAuthenticatedError
    |   +-- NotAuthorizedError
    |   +-- OrganizationMismatchError
    |
    +-- NotFoundError
    |   +-- RequisitionNotFoundError
    |   +-- QuoteRequestNotFoundError
    |   +-- QuoteNotFoundError
    |   +-- InvoiceNotFoundError
    |   +-- CategoryNotFoundError
    |   +-- SupplierNotFoundError
    |   +-- InvitationNotFoundError
    |   +-- MemberNotFoundError
    |
    +-- StateConflictError
    |   +-- InvalidTransitionError
    |   +-- QuoteRequestNotPendingError
    |   +-- DuplicateQuoteError
    |   +-- QuoteNotAcceptableError
    |   +-- QuoteDecisionLockedError
    |   +-- QuoteNotAcceptedError
    |   +-- DuplicateInvoiceError
    |   +-- InvalidPaymentTransitionError
    |   +-- DuplicateCategoryError
    |   +-- DuplicateInvitationError
    |   +-- InvitationExpiredError
    |   +-- InvitationUsedError
    |
    +-- IntegrityFailure
        +-- DocumentUploadError
        +-- InvoiceInsertError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | GUARD_REJECTED              | Workflow guard not satisfied (blank comment, ...)
                | INVALID_LINE_ITEM           | Quantity/price/description invalid
                | INVALID_SPLIT               | Split groups do not partition the items
                | INVALID_FILE                | Wrong document type or oversized file
                | EMPTY_MESSAGE               | Message has neither text nor attachment
                | NO_INVOICES_SELECTED        | Bulk payment called with nothing selected
----------------|-----------------------------|-----------------------------------------
Authorization   | NOT_AUTHENTICATED           | Caller identity could not be resolved
                | NOT_AUTHORIZED              | Role lacks the capability
                | ORGANIZATION_MISMATCH       | Record belongs to another organization
----------------|-----------------------------|-----------------------------------------
Not found       | PR_NOT_FOUND, ...           | Record missing or outside caller scope
----------------|-----------------------------|-----------------------------------------
State conflict  | INVALID_TRANSITION          | No transition from the current status
                | QUOTE_REQUEST_NOT_PENDING   | Supplier acting twice on a request
                | DUPLICATE_QUOTE             | Second quote for the same request
                | QUOTE_NOT_ACCEPTABLE        | Chosen quote is no longer SUBMITTED
                | QUOTE_DECISION_LOCKED       | Sibling quote already invoiced
                | QUOTE_NOT_ACCEPTED          | Invoice gate: quote not approved
                | DUPLICATE_INVOICE           | Invoice already uploaded for quote
                | INVALID_PAYMENT_TRANSITION  | Backward or skipped payment status
                | DUPLICATE_CATEGORY          | Category name taken in organization
                | DUPLICATE_INVITATION        | Pending invitation for email exists
                | INVITATION_EXPIRED          | Token past its expiry
                | INVITATION_USED             | Token already accepted or cancelled
----------------|-----------------------------|-----------------------------------------
Integrity       | UPLOAD_FAILED               | Document store rejected the upload
                | INSERT_FAILED               | Invoice row could not be written
                | IMMUTABILITY_VIOLATION      | Append-only record modified

===============================================================================
"""

from uuid import UUID


class ProcurementError(Exception):
    """
    Base exception for all procurement workflow errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "PROCUREMENT_ERROR"


# =============================================================================
# Validation
# =============================================================================


class ValidationError(ProcurementError):
    """Malformed or missing input. Detected before any mutation."""

    code: str = "VALIDATION_ERROR"


class GuardRejectedError(ValidationError):
    """A workflow guard on the requested transition was not satisfied."""

    code: str = "GUARD_REJECTED"

    def __init__(self, workflow: str, action: str, guard_name: str, message: str):
        self.workflow = workflow
        self.action = action
        self.guard_name = guard_name
        super().__init__(message)


class InvalidLineItemError(ValidationError):
    """A requisition line item is malformed."""

    code: str = "INVALID_LINE_ITEM"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class InvalidSplitError(ValidationError):
    """Split groups do not form a valid partition of the parent's items."""

    code: str = "INVALID_SPLIT"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class InvalidDocumentError(ValidationError):
    """Uploaded document has the wrong type or exceeds the size ceiling."""

    code: str = "INVALID_FILE"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class EmptyMessageError(ValidationError):
    """A conversation message needs text or at least one attachment."""

    code: str = "EMPTY_MESSAGE"

    def __init__(self):
        super().__init__(
            "A message must contain either text or at least one attachment."
        )


class NoInvoicesSelectedError(ValidationError):
    """Bulk payment was requested for an empty selection."""

    code: str = "NO_INVOICES_SELECTED"

    def __init__(self):
        super().__init__("No invoices selected")


# =============================================================================
# Authorization / identity
# =============================================================================


class AuthorizationError(ProcurementError):
    """Base for identity and permission failures.

    Messages of this family are never shown; the gateway substitutes a
    generic "not authorized" message so the blocking rule is not revealed.
    """

    code: str = "AUTHORIZATION_ERROR"


class NotAuthenticatedError(AuthorizationError):
    """The caller's identity, role or organization could not be resolved."""

    code: str = "NOT_AUTHENTICATED"

    def __init__(self, user_id: UUID | None = None):
        self.user_id = user_id
        super().__init__(f"Could not resolve caller identity for user {user_id}")


class NotAuthorizedError(AuthorizationError):
    """The caller's role lacks the capability for the attempted action."""

    code: str = "NOT_AUTHORIZED"

    def __init__(self, actor_id: UUID, role: str, action: str, reason: str = ""):
        self.actor_id = actor_id
        self.role = role
        self.action = action
        self.reason = reason
        super().__init__(
            f"Role '{role}' may not perform '{action}'"
            + (f": {reason}" if reason else "")
        )


class OrganizationMismatchError(AuthorizationError):
    """The record belongs to a different organization than the caller."""

    code: str = "ORGANIZATION_MISMATCH"

    def __init__(self, actor_id: UUID, organization_id: UUID | None):
        self.actor_id = actor_id
        self.organization_id = organization_id
        super().__init__(
            f"Actor {actor_id} does not belong to organization {organization_id}"
        )


# =============================================================================
# Not found
# =============================================================================


class NotFoundError(ProcurementError):
    """Record does not exist or is outside the caller's organization."""

    code: str = "NOT_FOUND"


class RequisitionNotFoundError(NotFoundError):
    code: str = "PR_NOT_FOUND"

    def __init__(self, pr_id: UUID):
        self.pr_id = pr_id
        super().__init__("Purchase requisition not found")


class QuoteRequestNotFoundError(NotFoundError):
    code: str = "QUOTE_REQUEST_NOT_FOUND"

    def __init__(self, request_id: UUID):
        self.request_id = request_id
        super().__init__("Quote request not found")


class QuoteNotFoundError(NotFoundError):
    code: str = "QUOTE_NOT_FOUND"

    def __init__(self, quote_id: UUID):
        self.quote_id = quote_id
        super().__init__("Quote not found")


class InvoiceNotFoundError(NotFoundError):
    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, invoice_id: UUID):
        self.invoice_id = invoice_id
        super().__init__("Invoice not found")


class CategoryNotFoundError(NotFoundError):
    code: str = "CATEGORY_NOT_FOUND"

    def __init__(self, category_id: UUID | None):
        self.category_id = category_id
        super().__init__("Category not found")


class SupplierNotFoundError(NotFoundError):
    code: str = "SUPPLIER_NOT_FOUND"

    def __init__(self, user_id: UUID | None = None, supplier_id: UUID | None = None):
        self.user_id = user_id
        self.supplier_id = supplier_id
        super().__init__("Supplier profile not found")


class InvitationNotFoundError(NotFoundError):
    code: str = "INVITATION_NOT_FOUND"

    def __init__(self, reference: str):
        self.reference = reference
        super().__init__("Invitation not found")


class MemberNotFoundError(NotFoundError):
    code: str = "MEMBER_NOT_FOUND"

    def __init__(self, user_id: UUID):
        self.user_id = user_id
        super().__init__("Member not found in this organization")


# =============================================================================
# Precondition / state conflict
# =============================================================================


class StateConflictError(ProcurementError):
    """The record's current state does not allow the operation.

    Messages explain why, in user language, so the caller can correct course.
    """

    code: str = "STATE_CONFLICT"


class InvalidTransitionError(StateConflictError):
    """No transition exists from the current state via the requested action."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, workflow: str, current_state: str, action: str):
        self.workflow = workflow
        self.current_state = current_state
        self.action = action
        super().__init__(
            f"Cannot {action.replace('_', ' ')} while status is {current_state}"
        )


class QuoteRequestNotPendingError(StateConflictError):
    code: str = "QUOTE_REQUEST_NOT_PENDING"

    def __init__(self, request_id: UUID, status: str):
        self.request_id = request_id
        self.status = status
        super().__init__("Quote request is no longer pending")


class DuplicateQuoteError(StateConflictError):
    code: str = "DUPLICATE_QUOTE"

    def __init__(self, request_id: UUID, supplier_id: UUID):
        self.request_id = request_id
        self.supplier_id = supplier_id
        super().__init__("You have already submitted a quote for this request")


class QuoteNotAcceptableError(StateConflictError):
    """The quote chosen for acceptance is not (or no longer) SUBMITTED."""

    code: str = "QUOTE_NOT_ACCEPTABLE"

    def __init__(self, quote_id: UUID, status: str):
        self.quote_id = quote_id
        self.status = status
        super().__init__(
            f"Only submitted quotes can be accepted; this quote is {status}"
        )


class QuoteDecisionLockedError(StateConflictError):
    """Another quote on the requisition already has an invoice against it."""

    code: str = "QUOTE_DECISION_LOCKED"

    def __init__(self, pr_id: UUID, invoiced_quote_id: UUID):
        self.pr_id = pr_id
        self.invoiced_quote_id = invoiced_quote_id
        super().__init__(
            "A supplier has already invoiced against another quote for this "
            "requisition; the quote decision can no longer be changed"
        )


class QuoteNotAcceptedError(StateConflictError):
    """Invoice gate: no ACCEPTED quote exists for this supplier and PR."""

    code: str = "QUOTE_NOT_ACCEPTED"

    def __init__(self, quote_id: UUID, pr_id: UUID, status: str | None):
        self.quote_id = quote_id
        self.pr_id = pr_id
        self.status = status
        if status is None:
            detail = "No matching quotation found."
        else:
            detail = "Your quote has not yet been approved by Finance."
        super().__init__(
            f"Invoice upload allowed only after quotation approval. {detail}"
        )


class DuplicateInvoiceError(StateConflictError):
    code: str = "DUPLICATE_INVOICE"

    def __init__(self, quote_id: UUID, invoice_id: UUID):
        self.quote_id = quote_id
        self.invoice_id = invoice_id
        super().__init__(
            "An invoice has already been uploaded for this quote and cannot "
            "be replaced."
        )


class InvalidPaymentTransitionError(StateConflictError):
    code: str = "INVALID_PAYMENT_TRANSITION"

    def __init__(self, invoice_id: UUID, current_status: str, target_status: str):
        self.invoice_id = invoice_id
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(
            f"Invoice status cannot move from {current_status} to {target_status}"
        )


class DuplicateCategoryError(StateConflictError):
    code: str = "DUPLICATE_CATEGORY"

    def __init__(self, name: str):
        self.name = name
        super().__init__("A category with this name already exists")


class DuplicateInvitationError(StateConflictError):
    code: str = "DUPLICATE_INVITATION"

    def __init__(self, email: str):
        self.email = email
        super().__init__("An invitation already exists for this email")


class InvitationExpiredError(StateConflictError):
    code: str = "INVITATION_EXPIRED"

    def __init__(self, invitation_id: UUID):
        self.invitation_id = invitation_id
        super().__init__("This invitation has expired")


class InvitationUsedError(StateConflictError):
    code: str = "INVITATION_USED"

    def __init__(self, invitation_id: UUID):
        self.invitation_id = invitation_id
        super().__init__("This invitation has already been used")


# =============================================================================
# Integrity / system
# =============================================================================


class IntegrityFailure(ProcurementError):
    """Backend write or storage failure. Logged in full, never shown."""

    code: str = "SYSTEM_ERROR"


class DocumentUploadError(IntegrityFailure):
    code: str = "UPLOAD_FAILED"

    def __init__(self, bucket: str, path: str, reason: str):
        self.bucket = bucket
        self.path = path
        self.reason = reason
        super().__init__(f"Upload to {bucket}/{path} failed: {reason}")


class InvoiceInsertError(IntegrityFailure):
    code: str = "INSERT_FAILED"

    def __init__(self, quote_id: UUID, reason: str):
        self.quote_id = quote_id
        self.reason = reason
        super().__init__(f"Invoice row for quote {quote_id} not written: {reason}")


class ImmutabilityViolationError(IntegrityFailure):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
