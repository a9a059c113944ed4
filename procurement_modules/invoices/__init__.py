"""
Invoices Module (``procurement_modules.invoices``).

Supplier invoices against accepted quotes and finance's forward-only payment
tracking.
"""

from procurement_modules.invoices.models import PAYMENT_SEQUENCE, Invoice, InvoiceStatus
from procurement_modules.invoices.workflows import INVOICE_WORKFLOW

__all__ = [
    "Invoice",
    "InvoiceStatus",
    "PAYMENT_SEQUENCE",
    "INVOICE_WORKFLOW",
]
