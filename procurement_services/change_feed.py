"""
procurement_services.change_feed -- In-process fan-out of PR status changes.

Responsibility:
    Turn each committed requisition status change into role-targeted alerts
    (``procurement_engines.alerts``) and hand them to subscribers, scoped to
    the subscriber's organization.

Architecture position:
    Services layer.  Module services call ``publish`` after commit, so a
    subscriber never sees a change that was rolled back.

Failure modes:
    A failing subscriber is logged (``change_feed_subscriber_failed``) and
    skipped; it cannot block other subscribers or the publishing operation.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from uuid import UUID, uuid4

from procurement_engines.alerts import StatusAlert, StatusChange, alerts_for_change
from procurement_kernel.domain.actor import Role
from procurement_kernel.logging_config import get_logger

logger = get_logger("services.change_feed")

AlertHandler = Callable[[StatusAlert], None]


@dataclass(frozen=True)
class Subscription:
    subscription_id: UUID
    organization_id: UUID
    handler: AlertHandler
    user_id: UUID | None = None
    role: Role | None = None

    def matches(self, alert: StatusAlert) -> bool:
        if alert.organization_id != self.organization_id:
            return False
        if alert.recipient_user_id is not None:
            return alert.recipient_user_id == self.user_id
        return alert.recipient_role is not None and alert.recipient_role == self.role


class StatusChangeFeed:
    """Thread-safe registry of alert subscribers."""

    def __init__(self) -> None:
        self._subscriptions: dict[UUID, Subscription] = {}
        self._lock = threading.Lock()

    def subscribe(
        self,
        organization_id: UUID,
        handler: AlertHandler,
        *,
        user_id: UUID | None = None,
        role: Role | None = None,
    ) -> UUID:
        """Register ``handler`` for alerts addressed to ``user_id`` or ``role``."""
        if user_id is None and role is None:
            raise ValueError("subscribe requires user_id or role")
        sub = Subscription(uuid4(), organization_id, handler, user_id, role)
        with self._lock:
            self._subscriptions[sub.subscription_id] = sub
        return sub.subscription_id

    def unsubscribe(self, subscription_id: UUID) -> None:
        with self._lock:
            self._subscriptions.pop(subscription_id, None)

    def publish(self, change: StatusChange) -> int:
        """Deliver alerts for ``change``; returns the number of deliveries."""
        alerts = alerts_for_change(change)
        with self._lock:
            subscribers = list(self._subscriptions.values())

        delivered = 0
        for alert in alerts:
            for sub in subscribers:
                if not sub.matches(alert):
                    continue
                try:
                    sub.handler(alert)
                    delivered += 1
                except Exception:
                    logger.exception(
                        "change_feed_subscriber_failed",
                        extra={
                            "subscription_id": str(sub.subscription_id),
                            "pr_id": str(change.pr_id),
                        },
                    )

        logger.info(
            "status_change_published",
            extra={
                "pr_id": str(change.pr_id),
                "new_status": change.new_status,
                "alert_count": len(alerts),
                "delivered": delivered,
            },
        )
        return delivered
