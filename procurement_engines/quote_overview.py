"""
procurement_engines.quote_overview -- Quote progress and supplier totals.

Pure derivations over the statuses of quote requests and quotes:

* ``derive_quote_workflow_status`` -- where a requisition stands in the
  request-for-quote cycle, for finance's procurement overview.
* ``summarize_supplier_activity`` -- a supplier's dashboard counters.

Statuses are passed as their string values so the engine stays independent
of the quotation module's ORM and DTO types.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from procurement_engines.tracer import traced_engine

REQUEST_PENDING = "PENDING"
REQUEST_ACCEPTED = "ACCEPTED"
QUOTE_SUBMITTED = "SUBMITTED"
QUOTE_ACCEPTED = "ACCEPTED"
QUOTE_INVOICE_UPLOADED = "INVOICE_UPLOADED"


class QuoteWorkflowStatus(str, Enum):
    PENDING_REVIEW = "PENDING_REVIEW"
    QUOTE_SENT = "QUOTE_SENT"
    QUOTE_ACCEPTED = "QUOTE_ACCEPTED"
    QUOTE_SUBMITTED = "QUOTE_SUBMITTED"
    COMPLETED = "COMPLETED"


def derive_quote_workflow_status(
    request_statuses: Sequence[str],
    quote_statuses: Sequence[str],
) -> QuoteWorkflowStatus:
    """Most advanced stage reached by any request or quote on one requisition."""
    if any(s in (QUOTE_ACCEPTED, QUOTE_INVOICE_UPLOADED) for s in quote_statuses):
        return QuoteWorkflowStatus.COMPLETED
    if any(s == QUOTE_SUBMITTED for s in quote_statuses):
        return QuoteWorkflowStatus.QUOTE_SUBMITTED
    if any(s == REQUEST_ACCEPTED for s in request_statuses):
        return QuoteWorkflowStatus.QUOTE_ACCEPTED
    if request_statuses:
        return QuoteWorkflowStatus.QUOTE_SENT
    return QuoteWorkflowStatus.PENDING_REVIEW


@dataclass(frozen=True)
class SupplierActivity:
    pending_requests: int
    submitted_quotes: int
    accepted_quotes: int
    total_accepted_value: Decimal


@traced_engine("supplier_activity", "1.0")
def summarize_supplier_activity(
    request_statuses: Iterable[str],
    quotes: Iterable[tuple[str, Decimal]],
) -> SupplierActivity:
    """Dashboard counters for one supplier.

    ``quotes`` yields ``(status, amount)`` pairs.  A quote that has moved on
    to INVOICE_UPLOADED still counts as accepted.
    """
    pending = sum(1 for s in request_statuses if s == REQUEST_PENDING)
    submitted = 0
    accepted = 0
    value = Decimal("0")
    for status, amount in quotes:
        if status == QUOTE_SUBMITTED:
            submitted += 1
        elif status in (QUOTE_ACCEPTED, QUOTE_INVOICE_UPLOADED):
            accepted += 1
            value += amount
    return SupplierActivity(
        pending_requests=pending,
        submitted_quotes=submitted,
        accepted_quotes=accepted,
        total_accepted_value=value,
    )
