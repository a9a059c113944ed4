"""
Requisition Workflow.

State machine for the purchase requisition: HOD review, finance review and
the finance split.  Every transition here records one history entry.
"""

from procurement_kernel.domain.workflow import Guard, Transition, Workflow
from procurement_kernel.logging_config import get_logger

logger = get_logger("modules.requisitions.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

COMMENT_PRESENT = Guard(
    name="comment_present",
    description="Comments are required for this action",
)

CATEGORY_ASSIGNED = Guard(
    name="category_assigned",
    description="A category must be selected before approval",
)

NOT_SPLIT_CHILD = Guard(
    name="not_split_child",
    description="A PR created by a split cannot be split again",
)


# -----------------------------------------------------------------------------
# Requisition Workflow
# -----------------------------------------------------------------------------

REQUISITION_WORKFLOW = Workflow(
    name="purchase_requisition",
    description="Purchase requisition approval lifecycle",
    initial_state="PENDING_HOD_APPROVAL",
    states=(
        "PENDING_HOD_APPROVAL",
        "HOD_APPROVED",
        "HOD_DECLINED",
        "PENDING_FINANCE_APPROVAL",
        "FINANCE_APPROVED",
        "FINANCE_DECLINED",
        "SPLIT",
    ),
    transitions=(
        Transition("PENDING_HOD_APPROVAL", "PENDING_FINANCE_APPROVAL", action="hod_approve",
                   guards=(COMMENT_PRESENT,), records_history=True),
        Transition("PENDING_HOD_APPROVAL", "HOD_DECLINED", action="hod_decline",
                   guards=(COMMENT_PRESENT,), records_history=True),
        Transition("PENDING_FINANCE_APPROVAL", "FINANCE_APPROVED", action="finance_approve",
                   guards=(COMMENT_PRESENT, CATEGORY_ASSIGNED), records_history=True),
        Transition("PENDING_FINANCE_APPROVAL", "FINANCE_DECLINED", action="finance_decline",
                   guards=(COMMENT_PRESENT,), records_history=True),
        Transition("PENDING_FINANCE_APPROVAL", "SPLIT", action="split",
                   guards=(NOT_SPLIT_CHILD,), records_history=True),
        # Rows written before HOD approval routed straight to the finance queue
        Transition("HOD_APPROVED", "FINANCE_APPROVED", action="finance_approve",
                   guards=(COMMENT_PRESENT, CATEGORY_ASSIGNED), records_history=True),
        Transition("HOD_APPROVED", "FINANCE_DECLINED", action="finance_decline",
                   guards=(COMMENT_PRESENT,), records_history=True),
        Transition("HOD_APPROVED", "SPLIT", action="split",
                   guards=(NOT_SPLIT_CHILD,), records_history=True),
    ),
    terminal_states=("HOD_DECLINED", "FINANCE_DECLINED", "FINANCE_APPROVED", "SPLIT"),
)

logger.info(
    "requisition_workflow_registered",
    extra={
        "workflow_name": REQUISITION_WORKFLOW.name,
        "state_count": len(REQUISITION_WORKFLOW.states),
        "transition_count": len(REQUISITION_WORKFLOW.transitions),
        "initial_state": REQUISITION_WORKFLOW.initial_state,
    },
)
