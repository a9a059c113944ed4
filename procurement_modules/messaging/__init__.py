"""PR conversation threads (``procurement_modules.messaging``)."""

from procurement_modules.messaging.models import (
    SYSTEM_SENDER_ID,
    SYSTEM_SENDER_NAME,
    MessageAttachment,
    PRMessage,
)

__all__ = ["SYSTEM_SENDER_ID", "SYSTEM_SENDER_NAME", "MessageAttachment", "PRMessage"]
