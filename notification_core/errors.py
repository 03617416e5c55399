"""Error taxonomy for notification handling."""

from __future__ import annotations


class NotificationError(Exception):
    """Base class for notification-core errors."""


class TemplateNotFound(NotificationError):
    def __init__(self, template_key: str, reason: str = "not found") -> None:
        super().__init__(f"Template {template_key!r} {reason}")
        self.template_key = template_key


class RenderError(NotificationError):
    pass


class ChannelSendError(NotificationError, RuntimeError):
    def __init__(self, channel: str, message: str) -> None:
        super().__init__(f"{channel} send failed: {message}")
        self.channel = channel


class DirectoryLookupError(NotificationError, RuntimeError):
    pass


class DuplicateAttendee(NotificationError):
    def __init__(self, event_id: str, user_id: str) -> None:
        super().__init__(f"Attendee already stored for event={event_id} user={user_id}")
        self.event_id = event_id
        self.user_id = user_id


class CircuitOpenError(DirectoryLookupError):
    pass


class BulkheadFullError(DirectoryLookupError):
    pass
