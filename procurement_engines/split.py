"""
procurement_engines.split -- Pure split-plan validation.

Responsibility:
    Turn finance's proposed split groups into a validated plan of child
    requisitions, or reject the proposal before anything is written.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import procurement_kernel/domain types and kernel exceptions.

Invariants enforced:
    - Every parent item is assigned to exactly one group: no orphans, no
      duplicates, no foreign item ids.
    - At least two groups contain one or more items.
    - Every non-empty group carries a non-blank comment.
    - Each child's total is the sum of its items' totals, so child totals
      always add up to the parent's item total.

Failure modes:
    - InvalidSplitError naming the first rule that the proposal breaks.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from procurement_engines.tracer import traced_engine
from procurement_kernel.domain.items import LineItem, items_total
from procurement_kernel.exceptions import InvalidSplitError

MIN_SPLIT_GROUPS = 2


@dataclass(frozen=True)
class SplitGroup:
    """Finance's proposal for one child requisition."""

    item_ids: tuple[UUID, ...]
    comments: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "item_ids", tuple(self.item_ids))


@dataclass(frozen=True)
class SplitChildPlan:
    items: tuple[LineItem, ...]
    comments: str

    @property
    def total(self) -> Decimal:
        return items_total(self.items)


@dataclass(frozen=True)
class SplitPlan:
    children: tuple[SplitChildPlan, ...]
    parent_total: Decimal

    @property
    def child_count(self) -> int:
        return len(self.children)


@traced_engine("split_planner", "1.0")
def plan_split(parent_items: Sequence[LineItem], groups: Sequence[SplitGroup]) -> SplitPlan:
    """Validate ``groups`` against ``parent_items`` and build the child plan.

    Groups with no items are dropped; they need no comment.  Children keep
    the order of the groups, and items keep the order given in each group.
    """
    by_id = {item.id: item for item in parent_items}

    assigned = Counter(item_id for group in groups for item_id in group.item_ids)

    unknown = [item_id for item_id in assigned if item_id not in by_id]
    if unknown:
        raise InvalidSplitError("Split references items that are not on this requisition")

    duplicated = [by_id[item_id] for item_id, count in assigned.items() if count > 1]
    if duplicated:
        raise InvalidSplitError(
            f"Item '{duplicated[0].description}' is assigned to more than one group"
        )

    orphans = [item for item in parent_items if item.id not in assigned]
    if orphans:
        raise InvalidSplitError(
            f"Every item must be assigned to a group; '{orphans[0].description}' is unassigned"
        )

    non_empty = [group for group in groups if group.item_ids]
    if len(non_empty) < MIN_SPLIT_GROUPS:
        raise InvalidSplitError(
            f"A split needs at least {MIN_SPLIT_GROUPS} groups that contain items"
        )

    for position, group in enumerate(non_empty, start=1):
        if not group.comments or not group.comments.strip():
            raise InvalidSplitError(f"Group {position} needs a comment")

    children = tuple(
        SplitChildPlan(
            items=tuple(by_id[item_id] for item_id in group.item_ids),
            comments=group.comments.strip(),
        )
        for group in non_empty
    )
    return SplitPlan(children=children, parent_total=items_total(parent_items))
