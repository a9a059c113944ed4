"""
Module ORM Registry (``procurement_modules._orm_registry``).

Responsibility
--------------
Ensure the kernel directory models and every module ORM model are imported
so that ``Base.metadata`` contains their table definitions before
``create_tables()`` runs.

Architecture position
---------------------
**Modules layer** -- utility.  Called lazily by
``procurement_kernel.db.engine.create_tables``.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``procurement_modules.*.orm`` module.

    Idempotent -- repeated calls are harmless.
    """
    import procurement_kernel.models  # noqa: F401
    # fmt: off
    import procurement_modules.categories.orm  # noqa: F401
    import procurement_modules.invitations.orm  # noqa: F401
    import procurement_modules.invoices.orm  # noqa: F401
    import procurement_modules.messaging.orm  # noqa: F401
    import procurement_modules.quotations.orm  # noqa: F401
    import procurement_modules.requisitions.orm  # noqa: F401
    # fmt: on
