"""
Invoice Workflow.

Payment progression, strictly forward: UPLOADED -> AWAITING_PAYMENT -> PAID.
"""

from procurement_kernel.domain.workflow import Transition, Workflow
from procurement_kernel.logging_config import get_logger

logger = get_logger("modules.invoices.workflows")


INVOICE_WORKFLOW = Workflow(
    name="invoice",
    description="Supplier invoice payment progression",
    initial_state="UPLOADED",
    states=("UPLOADED", "AWAITING_PAYMENT", "PAID"),
    transitions=(
        Transition("UPLOADED", "AWAITING_PAYMENT", action="mark_awaiting_payment"),
        Transition("AWAITING_PAYMENT", "PAID", action="mark_paid"),
    ),
    terminal_states=("PAID",),
)

logger.info(
    "invoice_workflow_registered",
    extra={
        "workflow_name": INVOICE_WORKFLOW.name,
        "state_count": len(INVOICE_WORKFLOW.states),
        "transition_count": len(INVOICE_WORKFLOW.transitions),
        "initial_state": INVOICE_WORKFLOW.initial_state,
    },
)
