"""
Module: procurement_engines
Responsibility:
    Pure calculation engines for the procurement workflow: split planning,
    quote progress, supplier activity and status alert targeting.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import procurement_kernel domain types and exceptions.
    MUST NOT import procurement_services or procurement_modules.

Invariants enforced:
    - Purity: engines never read the clock or the database; callers pass
      everything in.
    - Decimal-only arithmetic for amounts.
"""

from procurement_engines.alerts import StatusAlert, StatusChange, alerts_for_change, status_label
from procurement_engines.quote_overview import (
    QuoteWorkflowStatus,
    SupplierActivity,
    derive_quote_workflow_status,
    summarize_supplier_activity,
)
from procurement_engines.split import SplitChildPlan, SplitGroup, SplitPlan, plan_split

__all__ = [
    "StatusAlert",
    "StatusChange",
    "alerts_for_change",
    "status_label",
    "QuoteWorkflowStatus",
    "SupplierActivity",
    "derive_quote_workflow_status",
    "summarize_supplier_activity",
    "SplitChildPlan",
    "SplitGroup",
    "SplitPlan",
    "plan_split",
]
