from __future__ import annotations

import json
import tempfile
import unittest
from datetime import UTC, datetime
from pathlib import Path

from notification_core.adapters.stores import (
    InMemoryAttendeeStore,
    InMemoryTemplateStore,
    load_templates,
)
from notification_core.application.reminders import FALLBACK_TEMPLATE_KEY
from notification_core.application.router import ROUTES
from notification_core.domain.models import AttendeeReminder, ChannelKind, Template
from notification_core.errors import DuplicateAttendee

REPO_ROOT = Path(__file__).resolve().parents[1]


class TemplateStoreTests(unittest.TestCase):
    def test_duplicate_key_is_rejected(self) -> None:
        store = InMemoryTemplateStore([Template("A", ChannelKind.PUSH, "s", "b")])
        with self.assertRaises(ValueError):
            store.add(Template("A", ChannelKind.EMAIL, "s", "b"))

    def test_load_templates_reads_json_list(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "templates.json"
            path.write_text(
                json.dumps(
                    [
                        {"key": "A", "kind": "push_email", "subject": "s", "body": "b"},
                        {"key": "B", "kind": "SMS", "subject": "s", "body": "b", "sms_body": "x", "active": False},
                    ]
                ),
                encoding="utf-8",
            )
            templates = load_templates(path)

        self.assertEqual([t.key for t in templates], ["A", "B"])
        self.assertEqual(templates[0].kind, ChannelKind.PUSH_EMAIL)
        self.assertEqual(templates[1].sms_body, "x")
        self.assertFalse(templates[1].active)

    def test_load_templates_rejects_non_list(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "templates.json"
            path.write_text('{"key": "A"}', encoding="utf-8")
            with self.assertRaises(ValueError):
                load_templates(path)

    def test_shipped_templates_cover_every_route(self) -> None:
        store = InMemoryTemplateStore(load_templates(REPO_ROOT / "config" / "templates.json"))

        for route in ROUTES.values():
            self.assertIsNotNone(store.get(route.template_key), route.template_key)
        self.assertIsNotNone(store.get(FALLBACK_TEMPLATE_KEY))


class InMemoryAttendeeStoreTests(unittest.TestCase):
    def test_rows_are_copies(self) -> None:
        store = InMemoryAttendeeStore()
        reminder = store.insert(
            AttendeeReminder("evt-1", "user-1", "Meetup", datetime(2026, 3, 2, tzinfo=UTC))
        )
        reminder.sent = True

        self.assertFalse(store.get("evt-1", "user-1").sent)

    def test_duplicate_insert_raises(self) -> None:
        store = InMemoryAttendeeStore()
        start = datetime(2026, 3, 2, tzinfo=UTC)
        store.insert(AttendeeReminder("evt-1", "user-1", "A", start))
        with self.assertRaises(DuplicateAttendee):
            store.insert(AttendeeReminder("evt-1", "user-1", "B", start))

    def test_mark_sent_unknown_id_raises(self) -> None:
        with self.assertRaises(KeyError):
            InMemoryAttendeeStore().mark_sent("missing", datetime.now(tz=UTC), None)


if __name__ == "__main__":
    unittest.main()
