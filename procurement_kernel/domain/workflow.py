"""
Canonical workflow types (``procurement_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for workflow state machines.  Requisitions, quote
requests, quotes and invoices all declare their lifecycle with these types
so that Guard, Transition, and Workflow are defined once.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* ``terminal_states`` have no outgoing transitions, which is what makes a
  terminal status final.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Contract: frozen, descriptive only.  ``description`` is phrased as the
    message shown to the caller when the guard fails.
    Non-goals: does not evaluate the condition -- the workflow executor does.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow.

    ``records_history=True`` means the transition appends one entry to the
    owning requisition's audit history in the same unit of work.
    """
    from_state: str
    to_state: str
    action: str
    guards: tuple[Guard, ...] = ()
    records_history: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def find_transition(self, from_state: str, action: str) -> Transition | None:
        for transition in self.transitions:
            if transition.from_state == from_state and transition.action == action:
                return transition
        return None

    def actions(self) -> frozenset[str]:
        return frozenset(t.action for t in self.transitions)


@dataclass(frozen=True)
class TransitionResult:
    """Result of resolving a workflow transition."""

    success: bool
    new_state: str | None = None
    outcome: str = ""
    reason: str = ""
    guard: Guard | None = None
