"""In-memory stores for tests, demos and single-process runs.

Each store guards its state with a lock; the attendee store enforces the
(event id, user id) uniqueness inside that lock so racing inserts cannot
both succeed.
"""

from __future__ import annotations

import dataclasses
import json
import threading
from datetime import datetime
from pathlib import Path
from typing import Iterable

from ..domain.models import AttendeeReminder, DispatchRecord, FeedEntry, Template
from ..errors import DuplicateAttendee


class InMemoryTemplateStore:
    def __init__(self, templates: Iterable[Template] = ()) -> None:
        self._templates: dict[str, Template] = {}
        self._lock = threading.Lock()
        for template in templates:
            self.add(template)

    def add(self, template: Template) -> None:
        with self._lock:
            if template.key in self._templates:
                raise ValueError(f"Template key already exists: {template.key}")
            self._templates[template.key] = template

    def get(self, key: str) -> Template | None:
        with self._lock:
            return self._templates.get(key)


def load_templates(path: Path) -> list[Template]:
    """Read a JSON list of template objects."""
    with path.open("r", encoding="utf-8") as file_handle:
        raw = json.load(file_handle)
    if not isinstance(raw, list):
        raise ValueError(f"{path} must contain a JSON list of templates")
    return [Template.from_dict(item) for item in raw]


class InMemoryDispatchLog:
    def __init__(self) -> None:
        self._records: list[DispatchRecord] = []
        self._lock = threading.Lock()

    def append(self, record: DispatchRecord) -> DispatchRecord:
        with self._lock:
            self._records.append(record)
        return record

    def records(self) -> list[DispatchRecord]:
        with self._lock:
            return list(self._records)


class InMemoryAttendeeStore:
    def __init__(self) -> None:
        self._rows: dict[tuple[str, str], AttendeeReminder] = {}
        self._lock = threading.Lock()

    def get(self, event_id: str, user_id: str) -> AttendeeReminder | None:
        with self._lock:
            row = self._rows.get((event_id, user_id))
            return dataclasses.replace(row) if row is not None else None

    def insert(self, reminder: AttendeeReminder) -> AttendeeReminder:
        key = (reminder.event_id, reminder.user_id)
        with self._lock:
            if key in self._rows:
                raise DuplicateAttendee(reminder.event_id, reminder.user_id)
            self._rows[key] = dataclasses.replace(reminder)
        return reminder

    def find_starting_between(self, start: datetime, end: datetime) -> list[AttendeeReminder]:
        with self._lock:
            rows = [
                dataclasses.replace(row)
                for row in self._rows.values()
                if start <= row.event_start_at < end
            ]
        return sorted(rows, key=lambda row: (row.event_start_at, row.created_at))

    def mark_sent(
        self, reminder_id: str, sent_at: datetime, dispatch_record_id: str | None
    ) -> None:
        with self._lock:
            for row in self._rows.values():
                if row.id == reminder_id:
                    row.sent = True
                    row.sent_at = sent_at
                    row.dispatch_record_id = dispatch_record_id
                    return
        raise KeyError(f"Unknown attendee reminder: {reminder_id}")

    def all(self) -> list[AttendeeReminder]:
        with self._lock:
            return [dataclasses.replace(row) for row in self._rows.values()]


class InMemoryNotificationFeed:
    def __init__(self) -> None:
        self._entries: list[FeedEntry] = []
        self._lock = threading.Lock()

    def save(self, entry: FeedEntry) -> FeedEntry:
        with self._lock:
            self._entries.append(entry)
        return entry

    def for_user(self, user_id: str) -> list[FeedEntry]:
        with self._lock:
            return [entry for entry in self._entries if entry.user_id == user_id]
