"""Kernel ORM models shared by every procurement module."""

from procurement_kernel.models.directory import (
    Organization,
    OrganizationSupplier,
    Profile,
    Supplier,
    SupplierLinkStatus,
    UserRole,
)

__all__ = [
    "Organization",
    "OrganizationSupplier",
    "Profile",
    "Supplier",
    "SupplierLinkStatus",
    "UserRole",
]
