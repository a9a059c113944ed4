"""
Quotation Workflows.

State machines for quote requests (driven by the invited supplier) and
quotes (driven by finance, then by the invoice upload).
"""

from procurement_kernel.domain.workflow import Transition, Workflow
from procurement_kernel.logging_config import get_logger

logger = get_logger("modules.quotations.workflows")


QUOTE_REQUEST_WORKFLOW = Workflow(
    name="quote_request",
    description="Request for quote, from finance to one supplier",
    initial_state="PENDING",
    states=("PENDING", "ACCEPTED", "DECLINED", "QUOTED"),
    transitions=(
        Transition("PENDING", "ACCEPTED", action="accept"),
        Transition("PENDING", "DECLINED", action="decline"),
        # Accepting first is optional
        Transition("PENDING", "QUOTED", action="submit_quote"),
        Transition("ACCEPTED", "QUOTED", action="submit_quote"),
    ),
    terminal_states=("DECLINED", "QUOTED"),
)

QUOTE_WORKFLOW = Workflow(
    name="quote",
    description="Supplier quote lifecycle",
    initial_state="SUBMITTED",
    states=("SUBMITTED", "ACCEPTED", "REJECTED", "INVOICE_UPLOADED"),
    transitions=(
        Transition("SUBMITTED", "ACCEPTED", action="accept", records_history=True),
        Transition("SUBMITTED", "REJECTED", action="reject"),
        # Sibling rejection when another quote of the PR is accepted
        Transition("SUBMITTED", "REJECTED", action="supersede"),
        Transition("ACCEPTED", "REJECTED", action="supersede"),
        Transition("ACCEPTED", "INVOICE_UPLOADED", action="attach_invoice", records_history=True),
    ),
    terminal_states=("REJECTED", "INVOICE_UPLOADED"),
)

for _workflow in (QUOTE_REQUEST_WORKFLOW, QUOTE_WORKFLOW):
    logger.info(
        "quotation_workflow_registered",
        extra={
            "workflow_name": _workflow.name,
            "state_count": len(_workflow.states),
            "transition_count": len(_workflow.transitions),
            "initial_state": _workflow.initial_state,
        },
    )
