"""
BaseService -- abstract base for kernel services.

Kernel services flush within the caller's transaction and never commit or
roll back.  Module services (``procurement_modules.*.service``) own the
transaction boundary and compose kernel services inside it, so a kernel
write and the module write that triggered it commit or fail together.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseService(ABC):
    """
    Abstract base class for kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active transaction.
    """

    def __init__(self, session: Session):
        self.session = session
