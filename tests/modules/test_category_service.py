"""Tests for CategoryService."""

import pytest

from procurement_kernel.exceptions import (
    CategoryNotFoundError,
    DuplicateCategoryError,
    NotAuthorizedError,
    ValidationError,
)
from procurement_modules.categories.models import CategoryType


class TestCreateCategory:

    def test_create(self, category_service, finance):
        category = category_service.create_category(
            finance, "  Laptops ", CategoryType.ASSET, description=" Computing hardware ",
        )

        assert category.name == "Laptops"
        assert category.type == CategoryType.ASSET
        assert category.description == "Computing hardware"
        assert category.organization_id == finance.organization_id

    def test_admin_may_manage(self, category_service, admin):
        assert category_service.create_category(admin, "Travel", "EXPENSE").type == CategoryType.EXPENSE

    def test_duplicate_name_rejected(self, category_service, finance, category):
        with pytest.raises(DuplicateCategoryError):
            category_service.create_category(finance, "Office Supplies", CategoryType.ASSET)

    def test_same_name_in_other_organization(self, category_service, category, outsider):
        other = category_service.create_category(outsider, "Office Supplies", CategoryType.EXPENSE)

        assert other.organization_id != category.organization_id

    def test_blank_name_rejected(self, category_service, finance):
        with pytest.raises(ValidationError, match="Category name is required"):
            category_service.create_category(finance, "   ", CategoryType.EXPENSE)

    def test_employee_cannot_manage(self, category_service, employee):
        with pytest.raises(NotAuthorizedError):
            category_service.create_category(employee, "Snacks", CategoryType.EXPENSE)


class TestUpdateCategory:

    def test_rename(self, category_service, finance, category):
        renamed = category_service.update_category(finance, category.id, name="Stationery")

        assert renamed.name == "Stationery"
        assert renamed.type == CategoryType.EXPENSE

    def test_rename_to_taken_name(self, category_service, finance, category):
        category_service.create_category(finance, "Stationery", CategoryType.EXPENSE)

        with pytest.raises(DuplicateCategoryError):
            category_service.update_category(finance, category.id, name="Stationery")

    def test_clear_description(self, category_service, finance, category):
        category_service.update_category(finance, category.id, description="Pens and paper")
        cleared = category_service.update_category(finance, category.id, description="  ")

        assert cleared.description is None

    def test_other_organization_not_found(self, category_service, outsider, category):
        with pytest.raises(CategoryNotFoundError):
            category_service.update_category(outsider, category.id, name="Mine now")


class TestListCategories:

    def test_members_list_by_type_then_name(self, category_service, finance, employee, category):
        category_service.create_category(finance, "Vehicles", CategoryType.ASSET)
        category_service.create_category(finance, "Cleaning", CategoryType.EXPENSE)

        names = [c.name for c in category_service.list_categories(employee)]

        assert names == ["Vehicles", "Cleaning", "Office Supplies"]

    def test_group_by_type(self, category_service, finance, category):
        category_service.create_category(finance, "Vehicles", CategoryType.ASSET)

        grouped = category_service.group_by_type(finance)

        assert [c.name for c in grouped[CategoryType.ASSET]] == ["Vehicles"]
        assert [c.name for c in grouped[CategoryType.EXPENSE]] == ["Office Supplies"]

    def test_supplier_cannot_list(self, category_service, supplier):
        with pytest.raises(NotAuthorizedError):
            category_service.list_categories(supplier)
