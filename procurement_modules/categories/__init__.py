"""Requisition categories (``procurement_modules.categories``)."""

from procurement_modules.categories.models import Category, CategoryType

__all__ = ["Category", "CategoryType"]
