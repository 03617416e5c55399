"""Storage and lookup contracts the application layer depends on."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from ..domain.models import AttendeeReminder, DispatchRecord, Template, UserContact


class TemplateStore(Protocol):
    def get(self, key: str) -> Template | None: ...


class DispatchLog(Protocol):
    def append(self, record: DispatchRecord) -> DispatchRecord: ...


class AttendeeStore(Protocol):
    def get(self, event_id: str, user_id: str) -> AttendeeReminder | None: ...

    def insert(self, reminder: AttendeeReminder) -> AttendeeReminder:
        """Store a new reminder; raises `DuplicateAttendee` on (event, user) clash."""
        ...

    def find_starting_between(
        self, start: datetime, end: datetime
    ) -> list[AttendeeReminder]: ...

    def mark_sent(
        self, reminder_id: str, sent_at: datetime, dispatch_record_id: str | None
    ) -> None: ...


class DirectoryClient(Protocol):
    def get_user(self, user_id: str) -> UserContact | None: ...
