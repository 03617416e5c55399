from __future__ import annotations

import threading
import unittest
from datetime import UTC, datetime, timedelta, timezone
from typing import Any

from notification_core.adapters.stores import (
    InMemoryAttendeeStore,
    InMemoryDispatchLog,
    InMemoryTemplateStore,
)
from notification_core.application.dispatch import DispatchEngine
from notification_core.application.reminders import (
    ReminderScheduler,
    format_reminder_message,
    tomorrow_window,
)
from notification_core.domain.models import (
    AttendeeReminder,
    ChannelKind,
    DispatchStatus,
    Template,
    UserContact,
)
from notification_core.errors import DirectoryLookupError

NOW = datetime(2026, 3, 1, 22, 30, tzinfo=UTC)
TOMORROW_EVENING = datetime(2026, 3, 2, 18, 0, tzinfo=UTC)

FALLBACK_TEMPLATE = Template(
    key="SMS_REMINDER_FALLBACK",
    kind=ChannelKind.EMAIL,
    subject="Reminder: $${event_title}",
    body="$${event_title} starts $${event_start_at}",
)


def make_contact(**overrides: Any) -> UserContact:
    base: dict[str, Any] = {
        "email": "ana@example.com",
        "email_consent": True,
        "phone_number": "+15555550123",
        "sms_consent": True,
    }
    return UserContact(**(base | overrides))


class FakeDirectory:
    def __init__(
        self, contacts: dict[str, UserContact] | None = None, *, error: Exception | None = None
    ) -> None:
        self.contacts = contacts or {}
        self.error = error
        self.calls: list[str] = []

    def get_user(self, user_id: str) -> UserContact | None:
        self.calls.append(user_id)
        if self.error is not None:
            raise self.error
        return self.contacts.get(user_id)


class ReminderSchedulerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.attendees = InMemoryAttendeeStore()
        self.log = InMemoryDispatchLog()
        self.sms: list[dict[str, str]] = []
        self.emails: list[dict[str, str]] = []
        self.sms_error: Exception | None = None
        self.email_error: Exception | None = None
        self.directory = FakeDirectory({"user-1": make_contact()})

    def send_sms(self, *, to_phone_e164: str, message: str) -> str:
        if self.sms_error is not None:
            raise self.sms_error
        self.sms.append({"to_phone_e164": to_phone_e164, "message": message})
        return "SM1"

    def send_email(self, *, to_email: str, subject: str, html_body: str) -> str:
        if self.email_error is not None:
            raise self.email_error
        self.emails.append({"to_email": to_email, "subject": subject, "html_body": html_body})
        return "mg-1"

    def make_scheduler(self, **overrides: Any) -> ReminderScheduler:
        engine = DispatchEngine(
            templates=InMemoryTemplateStore([FALLBACK_TEMPLATE]),
            dispatch_log=self.log,
            send_email=self.send_email,
            send_sms=self.send_sms,
            clock=lambda: NOW,
        )
        options: dict[str, Any] = {
            "attendees": self.attendees,
            "directory": self.directory,
            "dispatch_log": self.log,
            "engine": engine,
            "send_sms": self.send_sms,
            "clock": lambda: NOW,
        }
        return ReminderScheduler(**(options | overrides))

    def add_attendee(self, user_id: str = "user-1", **overrides: Any) -> AttendeeReminder:
        reminder = AttendeeReminder(
            event_id=overrides.pop("event_id", "evt-1"),
            user_id=user_id,
            event_title=overrides.pop("event_title", "Meetup"),
            event_start_at=overrides.pop("event_start_at", TOMORROW_EVENING),
            **overrides,
        )
        return self.attendees.insert(reminder)

    def test_sends_sms_and_marks_reminder_sent(self) -> None:
        reminder = self.add_attendee()

        sent = self.make_scheduler().run_due()

        self.assertEqual(sent, 1)
        self.assertEqual(
            self.sms,
            [
                {
                    "to_phone_e164": "+15555550123",
                    "message": "You have an event coming tomorrow! Event: Meetup Start time: 02.03.2026 18:00",
                }
            ],
        )
        [record] = self.log.records()
        self.assertEqual(record.template_key, "EVENT_REMINDER_SMS")
        self.assertEqual(record.subject, "Event Reminder")
        self.assertEqual(record.kind, ChannelKind.SMS)
        self.assertEqual(record.status, DispatchStatus.SENT)
        self.assertEqual(record.external_id, "SM1")
        stored = self.attendees.get(reminder.event_id, reminder.user_id)
        self.assertTrue(stored.sent)
        self.assertEqual(stored.sent_at, NOW)
        self.assertEqual(stored.dispatch_record_id, record.id)

    def test_already_sent_reminder_returns_zero_without_sending(self) -> None:
        self.add_attendee(sent=True, sent_at=NOW)

        sent = self.make_scheduler().run_due()

        self.assertEqual(sent, 0)
        self.assertEqual(self.sms, [])
        self.assertEqual(self.emails, [])
        self.assertEqual(self.directory.calls, [])

    def test_second_run_does_not_resend(self) -> None:
        self.add_attendee()
        scheduler = self.make_scheduler()

        self.assertEqual(scheduler.run_due(), 1)
        self.assertEqual(scheduler.run_due(), 0)
        self.assertEqual(len(self.sms), 1)

    def test_events_outside_tomorrow_are_not_considered(self) -> None:
        self.add_attendee(event_id="today", event_start_at=NOW + timedelta(minutes=10))
        self.add_attendee(event_id="later", event_start_at=TOMORROW_EVENING + timedelta(days=1))

        self.assertEqual(self.make_scheduler().run_due(), 0)
        self.assertEqual(self.directory.calls, [])

    def test_sms_failure_records_failure_and_sends_fallback_without_marking_sent(self) -> None:
        reminder = self.add_attendee()
        self.sms_error = RuntimeError("twilio down")

        sent = self.make_scheduler().run_due()

        self.assertEqual(sent, 0)
        sms_record, fallback_record = self.log.records()
        self.assertEqual(sms_record.template_key, "EVENT_REMINDER_SMS")
        self.assertEqual(sms_record.status, DispatchStatus.FAILED)
        self.assertEqual(sms_record.error, "twilio down")
        self.assertEqual(fallback_record.template_key, "SMS_REMINDER_FALLBACK")
        self.assertEqual(fallback_record.status, DispatchStatus.SENT)
        self.assertEqual(fallback_record.source_event_id, "evt-1")
        self.assertEqual(self.emails[0]["to_email"], "ana@example.com")
        self.assertEqual(self.emails[0]["html_body"], "Meetup starts 02.03.2026 18:00")
        self.assertFalse(self.attendees.get(reminder.event_id, reminder.user_id).sent)

    def test_fallback_can_count_as_sent_when_configured(self) -> None:
        reminder = self.add_attendee()
        self.sms_error = RuntimeError("twilio down")

        sent = self.make_scheduler(mark_sent_on_fallback=True).run_due()

        self.assertEqual(sent, 1)
        stored = self.attendees.get(reminder.event_id, reminder.user_id)
        self.assertTrue(stored.sent)
        self.assertEqual(stored.dispatch_record_id, self.log.records()[1].id)

    def test_failed_fallback_never_marks_sent(self) -> None:
        reminder = self.add_attendee()
        self.sms_error = RuntimeError("twilio down")
        self.email_error = RuntimeError("mailgun down")

        sent = self.make_scheduler(mark_sent_on_fallback=True).run_due()

        self.assertEqual(sent, 0)
        self.assertEqual(self.log.records()[1].status, DispatchStatus.FAILED)
        self.assertFalse(self.attendees.get(reminder.event_id, reminder.user_id).sent)

    def test_sms_failure_without_email_consent_stops(self) -> None:
        self.add_attendee()
        self.directory.contacts["user-1"] = make_contact(email_consent=False)
        self.sms_error = RuntimeError("twilio down")

        self.assertEqual(self.make_scheduler().run_due(), 0)
        [record] = self.log.records()
        self.assertEqual(record.status, DispatchStatus.FAILED)
        self.assertEqual(self.emails, [])

    def test_no_sms_consent_or_phone_skips_without_fallback(self) -> None:
        self.add_attendee("user-1")
        self.add_attendee("user-2")
        self.directory.contacts["user-1"] = make_contact(sms_consent=False)
        self.directory.contacts["user-2"] = make_contact(phone_number="  ")

        self.assertEqual(self.make_scheduler().run_due(), 0)
        self.assertEqual(self.sms, [])
        self.assertEqual(self.emails, [])
        self.assertEqual(self.log.records(), [])

    def test_directory_failure_skips_attendee_and_continues(self) -> None:
        self.add_attendee("user-1")
        self.add_attendee("user-2")
        self.directory.contacts["user-2"] = make_contact(phone_number="+15555550999")

        class PartlyBrokenDirectory(FakeDirectory):
            def get_user(self, user_id: str) -> UserContact | None:
                if user_id == "user-1":
                    raise DirectoryLookupError("directory down")
                return super().get_user(user_id)

        directory = PartlyBrokenDirectory(self.directory.contacts)
        sent = self.make_scheduler(directory=directory).run_due()

        self.assertEqual(sent, 1)
        self.assertEqual([item["to_phone_e164"] for item in self.sms], ["+15555550999"])

    def test_unknown_user_is_skipped(self) -> None:
        self.add_attendee("ghost")

        self.assertEqual(self.make_scheduler().run_due(), 0)
        self.assertEqual(self.sms, [])

    def test_overlapping_run_returns_zero(self) -> None:
        self.add_attendee()
        entered = threading.Event()
        release = threading.Event()
        inner_results: list[int] = []

        class SlowDirectory(FakeDirectory):
            def get_user(self, user_id: str) -> UserContact | None:
                entered.set()
                release.wait(timeout=5)
                return super().get_user(user_id)

        scheduler = self.make_scheduler(directory=SlowDirectory({"user-1": make_contact()}))
        thread = threading.Thread(target=lambda: inner_results.append(scheduler.run_due()))
        thread.start()
        self.assertTrue(entered.wait(timeout=5))

        overlapping = scheduler.run_due()
        release.set()
        thread.join(timeout=5)

        self.assertEqual(overlapping, 0)
        self.assertEqual(inner_results, [1])
        self.assertEqual(len(self.sms), 1)

    def test_run_forever_stops_when_event_is_set(self) -> None:
        stop = threading.Event()
        scheduler = self.make_scheduler()
        calls: list[int] = []

        def fake_run_due() -> int:
            calls.append(1)
            stop.set()
            return 0

        scheduler.run_due = fake_run_due  # type: ignore[method-assign]
        scheduler.run_forever(0.01, stop)

        self.assertEqual(calls, [1])


class ReminderHelperTests(unittest.TestCase):
    def test_tomorrow_window_is_next_utc_calendar_day(self) -> None:
        start, end = tomorrow_window(datetime(2026, 3, 1, 23, 59, tzinfo=UTC))
        self.assertEqual(start, datetime(2026, 3, 2, tzinfo=UTC))
        self.assertEqual(end, datetime(2026, 3, 3, tzinfo=UTC))

    def test_tomorrow_window_uses_utc_for_aware_local_times(self) -> None:
        local = datetime(2026, 3, 2, 1, 30, tzinfo=timezone(timedelta(hours=2)))
        start, _end = tomorrow_window(local)
        self.assertEqual(start, datetime(2026, 3, 2, tzinfo=UTC))

    def test_format_reminder_message_uses_utc_pattern(self) -> None:
        message = format_reminder_message("Chess", datetime(2026, 3, 2, 7, 5, tzinfo=UTC))
        self.assertEqual(
            message, "You have an event coming tomorrow! Event: Chess Start time: 02.03.2026 07:05"
        )


if __name__ == "__main__":
    unittest.main()
