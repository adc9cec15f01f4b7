import logging

from celery import shared_task
from django.core.mail import send_mail

from portfolio.notifications.models import Notification

logger = logging.getLogger(__name__)


@shared_task(name="notifications.send_email")
def send_notification_email(notification_id: int) -> bool:
    """Email one notification to its recipient.

    Returns False when the notification is gone or the recipient has no
    address.
    """
    notification = (
        Notification.objects.select_related("recipient")
        .filter(pk=notification_id)
        .first()
    )
    if notification is None:
        logger.warning("Notification %s vanished before email delivery", notification_id)
        return False
    email = notification.recipient.email
    if not email:
        return False
    send_mail(
        subject=notification.title,
        message=notification.message,
        from_email=None,
        recipient_list=[email],
    )
    return True
