"""
Application layer - persists notification payloads for PDR events.
"""

import logging

from .factory import create_pdr_notification
from .models import Notification

logger = logging.getLogger(__name__)


def notify_pdr_event(
    *, pdr, recipient, notification_type, triggered_by=None
) -> Notification:
    """
    Builds the payload for the event and stores it as an in-app
    notification for the recipient.
    """
    actor_name = triggered_by.full_name if triggered_by else None
    payload = create_pdr_notification(
        pdr.id, recipient.id, notification_type, actor_name
    )

    notification = Notification.objects.create(
        user=recipient,
        pdr=pdr,
        type=payload.type.value,
        title=payload.title,
        message=payload.message,
        triggered_by=triggered_by,
        status=Notification.Status.SENT,
    )
    logger.info(
        "Notification %s sent to user %s on PDR %s",
        payload.type.value,
        recipient.id,
        pdr.id,
    )
    return notification
