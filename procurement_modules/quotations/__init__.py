"""
Quotations Module (``procurement_modules.quotations``).

Requests for quote, supplier quotes, and the atomic accept-one,
reject-the-rest decision that gates invoice upload.
"""

from procurement_modules.quotations.models import (
    Quote,
    QuotedItem,
    QuoteOverviewEntry,
    QuoteRequest,
    QuoteRequestStatus,
    QuoteStatus,
    QuoteSubmission,
)
from procurement_modules.quotations.workflows import QUOTE_REQUEST_WORKFLOW, QUOTE_WORKFLOW

__all__ = [
    "Quote",
    "QuotedItem",
    "QuoteOverviewEntry",
    "QuoteRequest",
    "QuoteRequestStatus",
    "QuoteStatus",
    "QuoteSubmission",
    "QUOTE_REQUEST_WORKFLOW",
    "QUOTE_WORKFLOW",
]
