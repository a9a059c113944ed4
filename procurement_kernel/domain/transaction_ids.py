"""Human-readable requisition numbers: ``PR-YYYYMMDD-XXXX``."""

import re
import secrets
import string
from datetime import datetime

TRANSACTION_ID_PATTERN = re.compile(r"^PR-\d{8}-[A-Z]{4}(-\d+)*$")

_LETTERS = string.ascii_uppercase


def generate_transaction_id(now: datetime) -> str:
    suffix = "".join(secrets.choice(_LETTERS) for _ in range(4))
    return f"PR-{now:%Y%m%d}-{suffix}"


def child_transaction_id(parent_transaction_id: str, index: int) -> str:
    """Number of the ``index``-th (1-based) child produced by a split."""
    if index < 1:
        raise ValueError(f"split child index must be >= 1, got {index}")
    return f"{parent_transaction_id}-{index}"
