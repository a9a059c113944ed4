"""
SQLAlchemy ORM persistence model for requisition categories.

Names are stored trimmed and are unique within an organization.
"""

from uuid import UUID

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from procurement_kernel.db.base import TrackedBase


class CategoryModel(TrackedBase):
    """Maps to the ``Category`` DTO in ``procurement_modules.categories.models``."""

    __tablename__ = "categories"

    __table_args__ = (
        UniqueConstraint("organization_id", "name", name="uq_category_org_name"),
    )

    organization_id: Mapped[UUID] = mapped_column(ForeignKey("organizations.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    def to_dto(self):
        from procurement_modules.categories.models import Category, CategoryType

        return Category(
            id=self.id,
            organization_id=self.organization_id,
            name=self.name,
            type=CategoryType(self.type),
            description=self.description,
        )

    def __repr__(self) -> str:
        return f"<CategoryModel {self.name} [{self.type}]>"
