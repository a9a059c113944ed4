"""
Category Domain Models.

Organization-scoped classification attached to a requisition at finance
approval.
"""

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class CategoryType(str, Enum):
    EXPENSE = "EXPENSE"
    ASSET = "ASSET"


@dataclass(frozen=True)
class Category:
    id: UUID
    organization_id: UUID
    name: str
    type: CategoryType
    description: str | None = None
