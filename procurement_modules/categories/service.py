"""
Category Module Service (``procurement_modules.categories.service``).

Responsibility
--------------
Create, rename and list the organization's requisition categories.
Finance and admins manage them; every organization member may list them.

Invariants enforced
-------------------
* Names are trimmed and unique per organization.  A duplicate is reported
  as ``DuplicateCategoryError`` whether it is caught by the pre-check or by
  the unique constraint under a concurrent insert.
* Each public method owns the transaction boundary.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from procurement_kernel.domain.actor import ActorContext
from procurement_kernel.exceptions import (
    CategoryNotFoundError,
    DuplicateCategoryError,
    ValidationError,
)
from procurement_kernel.logging_config import get_logger
from procurement_modules.categories.models import Category, CategoryType
from procurement_modules.categories.orm import CategoryModel
from procurement_services.authority import require_capability

logger = get_logger("modules.categories.service")


def _clean_name(name: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("Category name is required")
    return cleaned


class CategoryService:
    """Manages organization-scoped categories."""

    def __init__(self, session: Session):
        self._session = session

    def _name_taken(self, organization_id: UUID, name: str, exclude_id: UUID | None = None) -> bool:
        stmt = select(CategoryModel.id).where(
            CategoryModel.organization_id == organization_id,
            CategoryModel.name == name,
        )
        if exclude_id is not None:
            stmt = stmt.where(CategoryModel.id != exclude_id)
        return self._session.scalar(stmt) is not None

    def _load(self, actor: ActorContext, category_id: UUID) -> CategoryModel:
        category = self._session.get(CategoryModel, category_id)
        if category is None or category.organization_id != actor.organization_id:
            raise CategoryNotFoundError(category_id)
        return category

    def create_category(
        self,
        actor: ActorContext,
        name: str,
        type: CategoryType,
        description: str | None = None,
    ) -> Category:
        require_capability(actor, "category", "manage")
        cleaned = _clean_name(name)
        try:
            if self._name_taken(actor.organization_id, cleaned):
                raise DuplicateCategoryError(cleaned)
            category = CategoryModel(
                organization_id=actor.organization_id,
                name=cleaned,
                type=CategoryType(type).value,
                description=description.strip() if description else None,
                created_by_id=actor.user_id,
            )
            self._session.add(category)
            self._session.flush()
            dto = category.to_dto()
            self._session.commit()
        except IntegrityError:
            self._session.rollback()
            raise DuplicateCategoryError(cleaned) from None
        except Exception:
            self._session.rollback()
            raise

        logger.info("category_created", extra={
            **actor.log_fields(),
            "category_id": str(dto.id),
            "category_type": dto.type.value,
        })
        return dto

    def update_category(
        self,
        actor: ActorContext,
        category_id: UUID,
        name: str | None = None,
        description: str | None = None,
    ) -> Category:
        """Rename or re-describe a category.  The type is fixed at creation."""
        require_capability(actor, "category", "manage")
        try:
            category = self._load(actor, category_id)
            if name is not None:
                cleaned = _clean_name(name)
                if self._name_taken(actor.organization_id, cleaned, exclude_id=category.id):
                    raise DuplicateCategoryError(cleaned)
                category.name = cleaned
            if description is not None:
                category.description = description.strip() or None
            category.updated_by_id = actor.user_id
            self._session.flush()
            dto = category.to_dto()
            self._session.commit()
        except IntegrityError:
            self._session.rollback()
            raise DuplicateCategoryError(name or "") from None
        except Exception:
            self._session.rollback()
            raise

        logger.info("category_updated", extra={**actor.log_fields(), "category_id": str(category_id)})
        return dto

    def get_category(self, actor: ActorContext, category_id: UUID) -> Category:
        require_capability(actor, "category", "view")
        return self._load(actor, category_id).to_dto()

    def list_categories(self, actor: ActorContext) -> list[Category]:
        """All categories of the caller's organization, by type then name."""
        require_capability(actor, "category", "view")
        rows = self._session.scalars(
            select(CategoryModel)
            .where(CategoryModel.organization_id == actor.organization_id)
            .order_by(CategoryModel.type, CategoryModel.name)
        )
        return [row.to_dto() for row in rows]

    def group_by_type(self, actor: ActorContext) -> dict[CategoryType, list[Category]]:
        grouped: dict[CategoryType, list[Category]] = {t: [] for t in CategoryType}
        for category in self.list_categories(actor):
            grouped[category.type].append(category)
        return grouped
