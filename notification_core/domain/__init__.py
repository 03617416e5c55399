"""Domain layer: channel rules, rendering and records."""

from .email import send_email_notification
from .models import (
    AttendeeReminder,
    ChannelKind,
    DispatchContext,
    DispatchRecord,
    DispatchStatus,
    FeedEntry,
    Recipient,
    Template,
    UserContact,
)
from .push import send_push_notification
from .render import render_plain, render_rich, truncate_sms
from .sms import send_sms_notification

__all__ = [
    "AttendeeReminder",
    "ChannelKind",
    "DispatchContext",
    "DispatchRecord",
    "DispatchStatus",
    "FeedEntry",
    "Recipient",
    "Template",
    "UserContact",
    "render_plain",
    "render_rich",
    "send_email_notification",
    "send_push_notification",
    "send_sms_notification",
    "truncate_sms",
]
