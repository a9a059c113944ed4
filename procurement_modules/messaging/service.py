"""
Messaging Module Service (``procurement_modules.messaging.service``).

Responsibility
--------------
The per-requisition conversation thread: members post messages with
optional attachments, and the workflow core posts system notes.  Messages
are listed oldest first and are never edited.

Failure modes
-------------
* ``EmptyMessageError`` -- neither text nor attachment.
* ``RequisitionNotFoundError`` -- PR missing or in another organization.
* Attachment blobs are removed again if the message row cannot be written.
"""

from __future__ import annotations

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from procurement_config.schema import ProcurementSettings
from procurement_kernel.domain.actor import ActorContext
from procurement_kernel.domain.clock import Clock, SystemClock
from procurement_kernel.exceptions import EmptyMessageError, RequisitionNotFoundError
from procurement_kernel.logging_config import get_logger
from procurement_modules.messaging.models import (
    SYSTEM_SENDER_ID,
    SYSTEM_SENDER_NAME,
    PRMessage,
)
from procurement_modules.messaging.orm import PRMessageAttachmentModel, PRMessageModel
from procurement_modules.requisitions.orm import PurchaseRequisitionModel
from procurement_services.authority import require_capability
from procurement_services.document_store import (
    DocumentStore,
    DocumentUpload,
    scoped_path,
    validate_upload,
)

logger = get_logger("modules.messaging.service")


class MessagingService:
    """Writes and reads PR conversation threads."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: ProcurementSettings | None = None,
        document_store: DocumentStore | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._settings = settings or ProcurementSettings.with_defaults()
        self._store = document_store

    def _next_seq(self, pr_id: UUID) -> int:
        current = self._session.scalar(
            select(func.max(PRMessageModel.seq)).where(PRMessageModel.pr_id == pr_id)
        )
        return (current or 0) + 1

    def _load_pr(self, actor: ActorContext, pr_id: UUID) -> PurchaseRequisitionModel:
        pr = self._session.get(PurchaseRequisitionModel, pr_id)
        if pr is None or pr.organization_id != actor.organization_id:
            raise RequisitionNotFoundError(pr_id)
        return pr

    def post_system_note(self, pr_id: UUID, text: str) -> PRMessage:
        """Append a system note to the PR's thread.  Commits on its own."""
        try:
            pr = self._session.get(PurchaseRequisitionModel, pr_id)
            if pr is None:
                raise RequisitionNotFoundError(pr_id)
            message = PRMessageModel(
                pr_id=pr.id,
                organization_id=pr.organization_id,
                seq=self._next_seq(pr.id),
                sender_id=SYSTEM_SENDER_ID,
                sender_name=SYSTEM_SENDER_NAME,
                text=text,
                is_system_note=True,
                sent_at=self._clock.now(),
                created_by_id=SYSTEM_SENDER_ID,
            )
            self._session.add(message)
            self._session.flush()
            dto = message.to_dto()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info("system_note_posted", extra={"pr_id": str(pr_id), "seq": dto.seq})
        return dto

    def send_message(
        self,
        actor: ActorContext,
        pr_id: UUID,
        text: str | None = None,
        attachments: Sequence[DocumentUpload] = (),
    ) -> PRMessage:
        require_capability(actor, "pr_message", "send")
        body = text.strip() if text and text.strip() else None
        if body is None and not attachments:
            raise EmptyMessageError()
        if attachments and self._store is None:
            raise RuntimeError("MessagingService has no document store configured")
        for upload in attachments:
            validate_upload(upload, self._settings.invoice_max_bytes)

        stored: list[str] = []
        try:
            pr = self._load_pr(actor, pr_id)
            message = PRMessageModel(
                pr_id=pr.id,
                organization_id=pr.organization_id,
                seq=self._next_seq(pr.id),
                sender_id=actor.user_id,
                sender_name=actor.display_name,
                text=body,
                is_system_note=False,
                sent_at=self._clock.now(),
                created_by_id=actor.user_id,
            )
            for upload in attachments:
                path = scoped_path(actor.user_id, pr.id, upload.extension)
                self._store.upload(self._settings.message_bucket, path, upload.data, upload.content_type)
                stored.append(path)
                message.attachments.append(
                    PRMessageAttachmentModel(
                        file_name=upload.file_name,
                        path=path,
                        size=upload.size,
                        mime_type=upload.content_type,
                        created_by_id=actor.user_id,
                    )
                )
            self._session.add(message)
            self._session.flush()
            dto = message.to_dto()
            self._session.commit()
        except Exception:
            self._session.rollback()
            for path in stored:
                try:
                    self._store.remove(self._settings.message_bucket, path)
                except Exception:
                    logger.warning(
                        "message_attachment_cleanup_failed",
                        extra={"path": path},
                        exc_info=True,
                    )
            raise

        logger.info("pr_message_sent", extra={
            **actor.log_fields(),
            "pr_id": str(pr_id),
            "seq": dto.seq,
            "attachment_count": len(dto.attachments),
        })
        return dto

    def list_messages(self, actor: ActorContext, pr_id: UUID) -> list[PRMessage]:
        """The PR's thread, oldest first.  Safe to poll."""
        require_capability(actor, "pr_message", "view")
        pr = self._load_pr(actor, pr_id)
        rows = self._session.scalars(
            select(PRMessageModel)
            .where(PRMessageModel.pr_id == pr.id)
            .order_by(PRMessageModel.seq)
        )
        return [row.to_dto() for row in rows]

    def attachment_url(self, actor: ActorContext, pr_id: UUID, attachment_id: UUID) -> str:
        require_capability(actor, "pr_message", "view")
        pr = self._load_pr(actor, pr_id)
        attachment = self._session.get(PRMessageAttachmentModel, attachment_id)
        if attachment is None or attachment.message.pr_id != pr.id or self._store is None:
            raise RequisitionNotFoundError(pr_id)
        return self._store.create_signed_url(
            self._settings.message_bucket, attachment.path, self._settings.signed_url_ttl_seconds,
        )
