"""
Requisition line items (``procurement_kernel.domain.items``).

Pure value objects for PR line items and the total-amount rule: a
requisition's total is always the sum of its item totals, and an item's total
is always quantity times unit price.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from uuid import UUID, uuid4

from procurement_kernel.exceptions import InvalidLineItemError


def _to_decimal(value: object, label: str) -> Decimal:
    if isinstance(value, float):
        # Floats are converted through str so 0.1 stays 0.1.
        value = str(value)
    try:
        result = Decimal(value)  # type: ignore[arg-type]
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidLineItemError(f"{label} must be a number, got {value!r}") from None
    if not result.is_finite():
        raise InvalidLineItemError(f"{label} must be a finite number")
    return result


@dataclass(frozen=True)
class LineItem:
    """One requested good or service on a requisition."""

    description: str
    quantity: Decimal
    unit_price: Decimal
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        object.__setattr__(self, "quantity", _to_decimal(self.quantity, "Quantity"))
        object.__setattr__(self, "unit_price", _to_decimal(self.unit_price, "Unit price"))
        if not self.description or not self.description.strip():
            raise InvalidLineItemError("Item description is required")
        if self.quantity <= 0:
            raise InvalidLineItemError("Quantity must be greater than zero")
        if self.unit_price < 0:
            raise InvalidLineItemError("Unit price cannot be negative")

    @property
    def total(self) -> Decimal:
        return self.quantity * self.unit_price

    def snapshot(self) -> dict[str, str]:
        """JSON-safe copy, used when items are quoted to a supplier."""
        return {
            "id": str(self.id),
            "description": self.description,
            "quantity": str(self.quantity),
            "unit_price": str(self.unit_price),
            "total": str(self.total),
        }


def items_total(items: Iterable[LineItem]) -> Decimal:
    return sum((item.total for item in items), Decimal("0"))
