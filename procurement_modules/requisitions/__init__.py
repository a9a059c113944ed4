"""
Requisitions Module (``procurement_modules.requisitions``).

Responsibility
--------------
The purchase requisition lifecycle: creation with HOD routing, HOD and
finance decisions, the finance split, and the append-only history that
accompanies every status change.

Architecture position
---------------------
**Modules layer** -- DTOs, ORM models, the workflow declaration and the
``RequisitionService`` facade.

Invariants enforced
-------------------
* Terminal statuses (HOD_DECLINED, FINANCE_DECLINED, FINANCE_APPROVED,
  SPLIT) are final.
* History is append-only.
* ``total_amount`` equals the sum of item totals at creation and split.
* Split children are never split again.
"""

from procurement_modules.requisitions.models import (
    TERMINAL_STATUSES,
    HistoryAction,
    HistoryEntry,
    HistoryQuery,
    PurchaseRequisition,
    RequisitionDraft,
    RequisitionPage,
    RequisitionStatus,
    Urgency,
)
from procurement_modules.requisitions.workflows import REQUISITION_WORKFLOW

__all__ = [
    "TERMINAL_STATUSES",
    "HistoryAction",
    "HistoryEntry",
    "HistoryQuery",
    "PurchaseRequisition",
    "RequisitionDraft",
    "RequisitionPage",
    "RequisitionStatus",
    "Urgency",
    "REQUISITION_WORKFLOW",
]
