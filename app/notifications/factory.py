"""
Domain layer - pure, Django-unaware, notification payloads for PDR events.
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Optional


class UnknownNotificationTypeError(ValueError):
    """Raised for a notification type outside NotificationType."""

    pass


class NotificationType(str, Enum):
    PDR_SUBMITTED = "PDR_SUBMITTED"
    PDR_LOCKED = "PDR_LOCKED"
    PDR_RETURNED = "PDR_RETURNED"
    MID_YEAR_SUBMITTED = "MID_YEAR_SUBMITTED"
    MID_YEAR_APPROVED = "MID_YEAR_APPROVED"
    END_YEAR_SUBMITTED = "END_YEAR_SUBMITTED"
    PDR_COMPLETED = "PDR_COMPLETED"
    MEETING_BOOKED = "MEETING_BOOKED"
    PDR_REMINDER = "PDR_REMINDER"

    def __str__(self):
        return self.value


DEFAULT_ACTOR_NAME = "Your manager"

# type -> (title, message); "{actor}" is filled with the acting user's name
TEMPLATES = {
    NotificationType.PDR_SUBMITTED: (
        "PDR Submitted for Review",
        "Your PDR has been submitted and is now available for CEO review.",
    ),
    NotificationType.PDR_LOCKED: (
        "PDR Locked",
        "{actor} has locked your review pending PDR meeting.",
    ),
    NotificationType.PDR_RETURNED: (
        "PDR Returned",
        "{actor} has returned your PDR for changes.",
    ),
    NotificationType.MID_YEAR_SUBMITTED: (
        "Mid-Year Review Submitted",
        "Your mid-year review has been submitted for CEO review.",
    ),
    NotificationType.MID_YEAR_APPROVED: (
        "Mid-Year Review Approved",
        "{actor} has approved your mid-year review.",
    ),
    NotificationType.END_YEAR_SUBMITTED: (
        "End-Year Review Submitted",
        "Your end-year review has been submitted for CEO review.",
    ),
    NotificationType.PDR_COMPLETED: (
        "PDR Completed",
        "{actor} has completed your final review.",
    ),
    NotificationType.MEETING_BOOKED: (
        "PDR Meeting Booked",
        "{actor} has booked your PDR meeting.",
    ),
    NotificationType.PDR_REMINDER: (
        "PDR Reminder",
        "Don't forget to complete your PDR before the deadline.",
    ),
}


@dataclass(frozen=True)
class PDRNotification:
    user_id: object
    pdr_id: object
    type: NotificationType
    title: str
    message: str

    def to_dict(self) -> dict:
        data = asdict(self)
        data["type"] = self.type.value
        return data


def create_pdr_notification(
    pdr_id,
    user_id,
    notification_type,
    actor_name: Optional[str] = None,
) -> PDRNotification:
    """
    Builds the notification payload for a PDR event.
    Raises UnknownNotificationTypeError for anything outside
    NotificationType.
    """
    try:
        notification_type = NotificationType(notification_type)
    except ValueError:
        raise UnknownNotificationTypeError(
            f"Unknown notification type: {notification_type}"
        ) from None

    title, template = TEMPLATES[notification_type]
    return PDRNotification(
        user_id=user_id,
        pdr_id=pdr_id,
        type=notification_type,
        title=title,
        message=template.format(actor=actor_name or DEFAULT_ACTOR_NAME),
    )
