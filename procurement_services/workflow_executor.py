"""
procurement_services.workflow_executor -- Workflow transition execution.

Responsibility:
    Resolve and authorize one state transition: the caller's role must hold
    the capability, a transition must exist from the record's current state
    via the requested action, and every guard on that transition must pass.
    Emits a structured ``workflow_transition`` record for every outcome.

Architecture position:
    Services layer.  Thin coordinator: role checks delegated to
    ``authority``, guard evaluation to ``GuardExecutor``.  The executor never
    mutates records; module services apply the resolved transition inside
    their own transaction.

Invariants enforced:
    - Terminal states have no outgoing transitions, so any action on a
      terminal record is refused here.
    - Authorization is checked before state, so callers without the
      capability never learn the record's state.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from procurement_kernel.domain.actor import ActorContext
from procurement_kernel.domain.workflow import Guard, Transition, TransitionResult, Workflow
from procurement_kernel.exceptions import (
    GuardRejectedError,
    InvalidTransitionError,
    NotAuthorizedError,
)
from procurement_kernel.logging_config import get_logger
from procurement_services.authority import check_capability

logger = get_logger("services.workflow_executor")

TRACE_TYPE_WORKFLOW_TRANSITION = "WORKFLOW_TRANSITION"
OUTCOME_SUCCESS = "success"
OUTCOME_UNAUTHORIZED = "unauthorized"
OUTCOME_NO_TRANSITION = "no_transition"
OUTCOME_GUARD_FAILED = "guard_failed"


def _emit_workflow_trace(
    workflow_name: str,
    action: str,
    entity_type: str,
    entity_id: UUID,
    from_state: str,
    outcome: str,
    reason: str,
    duration_ms: float,
    actor: ActorContext,
    to_state: str | None = None,
) -> None:
    """Emit a structured workflow transition record."""
    record: dict[str, Any] = {
        "trace_type": TRACE_TYPE_WORKFLOW_TRANSITION,
        "trace_ts": datetime.now(UTC).isoformat(),
        "workflow": workflow_name,
        "action": action,
        "entity_type": entity_type,
        "entity_id": str(entity_id),
        "from_state": from_state,
        "outcome": outcome,
        "reason": reason,
        "duration_ms": round(duration_ms, 3),
        "actor_role": actor.role.value,
    }
    if to_state is not None:
        record["to_state"] = to_state
    logger.info("workflow_transition", extra=record)


# ---------------------------------------------------------------------------
# Guard evaluation
# ---------------------------------------------------------------------------


def _text_present(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _comment_present(context: Mapping[str, Any]) -> bool:
    return _text_present(context.get("comments"))


def _category_assigned(context: Mapping[str, Any]) -> bool:
    return context.get("category_id") is not None


def _not_split_child(context: Mapping[str, Any]) -> bool:
    return context.get("parent_pr_id") is None


class GuardExecutor:
    """Evaluates workflow guards against a context mapping.

    Guards are declared on transitions (name + description).  This executor
    holds the evaluation logic per guard name.  An unknown guard fails closed.
    """

    def __init__(self) -> None:
        self._evaluators: dict[str, Callable[[Mapping[str, Any]], bool]] = {}

    def register(self, guard_name: str, evaluator: Callable[[Mapping[str, Any]], bool]) -> None:
        self._evaluators[guard_name] = evaluator

    def evaluate(self, guard: Guard, context: Mapping[str, Any]) -> bool:
        fn = self._evaluators.get(guard.name)
        if fn is None:
            logger.warning("guard_no_evaluator", extra={"guard_name": guard.name})
            return False
        return bool(fn(context))


def default_guard_executor() -> GuardExecutor:
    """Return a GuardExecutor with the built-in evaluators registered."""
    ex = GuardExecutor()
    ex.register("comment_present", _comment_present)
    ex.register("category_assigned", _category_assigned)
    ex.register("not_split_child", _not_split_child)
    return ex


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------


class WorkflowExecutor:
    """Authorizes and resolves transitions for every procurement workflow."""

    def __init__(self, guard_executor: GuardExecutor | None = None):
        self._guard_executor = guard_executor or default_guard_executor()

    def execute_transition(
        self,
        workflow: Workflow,
        entity_type: str,
        entity_id: UUID,
        current_state: str,
        action: str,
        actor: ActorContext,
        context: Mapping[str, Any] | None = None,
    ) -> TransitionResult:
        """Resolve the transition without raising.

        Returns a TransitionResult whose ``outcome`` is one of the OUTCOME_*
        constants.
        """
        t0 = time.monotonic()
        ctx = context or {}

        def _done(outcome: str, reason: str, transition: Transition | None = None,
                  guard: Guard | None = None) -> TransitionResult:
            _emit_workflow_trace(
                workflow_name=workflow.name,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                from_state=current_state,
                outcome=outcome,
                reason=reason,
                duration_ms=(time.monotonic() - t0) * 1000,
                actor=actor,
                to_state=transition.to_state if transition else None,
            )
            return TransitionResult(
                success=outcome == OUTCOME_SUCCESS,
                new_state=transition.to_state if transition else None,
                outcome=outcome,
                reason=reason,
                guard=guard,
            )

        allowed, reason = check_capability(actor, workflow.name, action)
        if not allowed:
            return _done(OUTCOME_UNAUTHORIZED, reason)

        transition = workflow.find_transition(current_state, action)
        if transition is None:
            return _done(
                OUTCOME_NO_TRANSITION,
                f"No transition from '{current_state}' via action '{action}' "
                f"in workflow '{workflow.name}'",
            )

        for guard in transition.guards:
            if not self._guard_executor.evaluate(guard, ctx):
                return _done(OUTCOME_GUARD_FAILED, f"Guard not satisfied: {guard.name}", guard=guard)

        return _done(OUTCOME_SUCCESS, "", transition)

    def require_transition(
        self,
        workflow: Workflow,
        entity_type: str,
        entity_id: UUID,
        current_state: str,
        action: str,
        actor: ActorContext,
        context: Mapping[str, Any] | None = None,
        conflict: Callable[[], Exception] | None = None,
    ) -> str:
        """Resolve the transition or raise; returns the target state.

        Raises:
            NotAuthorizedError: role lacks the capability.
            InvalidTransitionError: no transition from ``current_state``
                (or the exception built by ``conflict``, when given).
            GuardRejectedError: a guard failed; message is the guard's
                description.
        """
        result = self.execute_transition(
            workflow, entity_type, entity_id, current_state, action, actor, context,
        )
        if result.success:
            return result.new_state  # type: ignore[return-value]
        if result.outcome == OUTCOME_UNAUTHORIZED:
            raise NotAuthorizedError(actor.user_id, actor.role.value, f"{workflow.name}.{action}", result.reason)
        if result.outcome == OUTCOME_GUARD_FAILED and result.guard is not None:
            raise GuardRejectedError(workflow.name, action, result.guard.name, result.guard.description)
        if conflict is not None:
            raise conflict()
        raise InvalidTransitionError(workflow.name, current_state, action)
