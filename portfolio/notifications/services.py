"""Create notifications and fan them out over their delivery channels.

Rows are persisted first (one per recipient) so recipients can fetch them
later; dispatch happens once the transaction commits. The realtime channel
is best effort: a recipient with no live socket simply gets nothing pushed.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from typing import Any

from asgiref.sync import async_to_sync
from django.contrib.auth import get_user_model
from django.db import transaction

from portfolio.notifications.models import Notification
from portfolio.notifications.tasks import send_notification_email

if TYPE_CHECKING:  # import for type checking only
    from collections.abc import Iterable
    from collections.abc import Sequence
    from datetime import datetime

    from portfolio.realtime.router import BroadcastRouter

logger = logging.getLogger(__name__)

User = get_user_model()


def build_notification_payload(notification: Notification) -> dict[str, Any]:
    return {
        "id": notification.id,
        "kind": notification.kind,
        "title": notification.title,
        "body": notification.message,
        "payload": notification.payload,
        "priority": notification.priority,
        "timestamp": notification.created_at.isoformat(),
    }


class NotificationService:
    def __init__(self, router: BroadcastRouter | None):
        self.router = router

    def send(  # noqa: PLR0913
        self,
        recipient_ids: Iterable[int],
        *,
        title: str,
        message: str,
        kind: str = Notification.Kind.INFO,
        payload: dict[str, Any] | None = None,
        channels: Sequence[str] = (Notification.Channel.SOCKET,),
        priority: str = Notification.Priority.NORMAL,
        expires_at: datetime | None = None,
    ) -> list[Notification]:
        ids = set(
            User.objects.filter(pk__in=set(recipient_ids)).values_list("pk", flat=True),
        )
        channel_list = list(dict.fromkeys(channels))
        with transaction.atomic():
            created = [
                Notification.objects.create(
                    recipient_id=rid,
                    kind=kind,
                    title=title,
                    message=message,
                    payload=payload or {},
                    channels=channel_list,
                    priority=priority,
                    expires_at=expires_at,
                )
                for rid in sorted(ids)
            ]
            transaction.on_commit(lambda: self.dispatch(created))
        return created

    def dispatch(self, notifications: Sequence[Notification]) -> None:
        for notification in notifications:
            for channel in notification.channels:
                if channel == Notification.Channel.SOCKET:
                    self.publish_realtime(notification)
                elif channel == Notification.Channel.EMAIL:
                    self.queue_email(notification)
                elif channel == Notification.Channel.PUSH:
                    logger.info(
                        "Push delivery not configured; skipping notification %s",
                        notification.pk,
                    )
                else:
                    logger.warning("Unknown notification channel %r", channel)

        urgent = [
            n
            for n in notifications
            if n.priority == Notification.Priority.URGENT
            and Notification.Channel.SOCKET in n.channels
        ]
        if urgent:
            self.publish_urgent(urgent[0], recipients=[n.recipient_id for n in urgent])

    def queue_email(self, notification: Notification) -> bool:
        try:
            send_notification_email.delay(notification.pk)
        except Exception:  # noqa: BLE001 - a broker outage must not stop other channels
            logger.exception("Failed to queue email for notification %s", notification.pk)
            return False
        return True

    def publish_realtime(self, notification: Notification) -> int:
        """Push a notification to every live connection of its recipient."""

        if self.router is None:
            return 0
        try:
            return async_to_sync(self.router.send_to_user)(
                notification.recipient_id,
                "notification",
                build_notification_payload(notification),
            )
        except Exception:  # noqa: BLE001 - realtime delivery is best effort
            logger.exception("Failed to send socket notification %s", notification.pk)
            return 0

    def publish_urgent(self, notification: Notification, recipients: list[int]) -> int:
        if self.router is None:
            return 0
        payload = build_notification_payload(notification)
        payload["recipients"] = recipients
        try:
            return async_to_sync(self.router.broadcast_to_admins)(
                "urgent_notification",
                payload,
            )
        except Exception:  # noqa: BLE001 - realtime delivery is best effort
            logger.exception("Failed to broadcast urgent notification %s", notification.pk)
            return 0


def get_notification_service() -> NotificationService:
    from portfolio.realtime.gateway import get_gateway  # noqa: PLC0415

    return NotificationService(get_gateway().router)
