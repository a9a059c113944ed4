"""
Procurement Settings Schema.

Defines the structure and defaults for the workflow's tunable limits:
currency, document storage buckets, invoice file rules, signed-URL lifetime,
invitation lifetime and history page size.
"""

from dataclasses import dataclass, fields
from typing import Any, Self

from procurement_kernel.logging_config import get_logger

logger = get_logger("config.schema")

MEBIBYTE = 1024 * 1024


@dataclass(frozen=True)
class ProcurementSettings:
    """
    Configuration schema for the procurement workflow core.

    Override at instantiation or load from YAML with
    ``procurement_config.load_settings(path)``.
    """

    # Requisitions
    default_currency: str = "ZAR"
    history_page_size: int = 20

    # Invoices
    invoice_max_bytes: int = 10 * MEBIBYTE
    invoice_allowed_types: tuple[str, ...] = ("application/pdf",)

    # Document storage
    invoice_bucket: str = "invoice-documents"
    quote_bucket: str = "quote-documents"
    pr_document_bucket: str = "pr-documents"
    message_bucket: str = "pr-message-attachments"
    signed_url_ttl_seconds: int = 600

    # Invitations
    invitation_ttl_days: int = 7

    # Persistence
    database_url: str = "sqlite://"

    def __post_init__(self):
        if len(self.default_currency) != 3 or not self.default_currency.isalpha():
            raise ValueError(f"default_currency must be a 3-letter code: {self.default_currency!r}")
        object.__setattr__(self, "default_currency", self.default_currency.upper())
        object.__setattr__(self, "invoice_allowed_types", tuple(self.invoice_allowed_types))
        for name in (
            "history_page_size",
            "invoice_max_bytes",
            "signed_url_ttl_seconds",
            "invitation_ttl_days",
        ):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")
        if not self.invoice_allowed_types:
            raise ValueError("invoice_allowed_types must not be empty")

        logger.debug(
            "procurement_settings_initialized",
            extra={
                "default_currency": self.default_currency,
                "invoice_max_bytes": self.invoice_max_bytes,
                "invitation_ttl_days": self.invitation_ttl_days,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        return cls()

    @classmethod
    def field_names(cls) -> frozenset[str]:
        return frozenset(f.name for f in fields(cls))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Create settings from a mapping, rejecting unknown keys."""
        unknown = set(data) - cls.field_names()
        if unknown:
            raise KeyError(f"Unknown procurement settings: {sorted(unknown)}")
        logger.info(
            "procurement_settings_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        values = dict(data)
        if "invoice_allowed_types" in values:
            values["invoice_allowed_types"] = tuple(values["invoice_allowed_types"])
        return cls(**values)
