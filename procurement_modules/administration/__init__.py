"""Organization administration: members and supplier decisions (``procurement_modules.administration``)."""

from procurement_modules.administration.models import Member, SupplierLink

__all__ = ["Member", "SupplierLink"]
