"""
Messaging Domain Models.

The per-requisition conversation thread.  System notes are written by the
workflow core itself (for example after an invoice upload).
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

SYSTEM_SENDER_ID = UUID(int=0)
SYSTEM_SENDER_NAME = "System"


@dataclass(frozen=True)
class MessageAttachment:
    id: UUID
    file_name: str
    path: str
    size: int
    mime_type: str


@dataclass(frozen=True)
class PRMessage:
    id: UUID
    pr_id: UUID
    organization_id: UUID
    seq: int
    sender_id: UUID
    sender_name: str
    sent_at: datetime
    text: str | None = None
    is_system_note: bool = False
    attachments: tuple[MessageAttachment, ...] = ()
