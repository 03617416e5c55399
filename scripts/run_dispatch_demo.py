#!/usr/bin/env python3
"""Run the consumer flow, push registry and reminders in memory, without Kafka."""

from __future__ import annotations

import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

# Allow running this file directly from repository root.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from notification_core.adapters.connections import ConnectionRegistry  # noqa: E402
from notification_core.adapters.consumer_handler import (  # noqa: E402
    build_topic_bindings,
    handle_batch,
)
from notification_core.adapters.fake_senders import (  # noqa: E402
    send_email_via_console,
    send_sms_via_console,
)
from notification_core.adapters.push_sessions import PushSessionHooks  # noqa: E402
from notification_core.adapters.stores import (  # noqa: E402
    InMemoryAttendeeStore,
    InMemoryDispatchLog,
    InMemoryNotificationFeed,
    InMemoryTemplateStore,
    load_templates,
)
from notification_core.application.dispatch import DispatchEngine  # noqa: E402
from notification_core.application.reminders import ReminderScheduler  # noqa: E402
from notification_core.application.router import EventRouter  # noqa: E402
from notification_core.config import TopicSettings, setup_logging  # noqa: E402
from notification_core.domain.models import UserContact  # noqa: E402


class ConsoleSession:
    def __init__(self, label: str) -> None:
        self.label = label
        self.is_open = True

    def send(self, message: str) -> None:
        print(f"[PUSH] session={self.label} message={message}")

    def close(self) -> None:
        self.is_open = False


class DemoDirectory:
    def __init__(self, contacts: dict[str, UserContact]) -> None:
        self.contacts = contacts

    def get_user(self, user_id: str) -> UserContact | None:
        return self.contacts.get(user_id)


def main() -> int:
    setup_logging()
    topics = TopicSettings.from_env()
    now = datetime.now(tz=UTC)

    registry = ConnectionRegistry()
    sessions = PushSessionHooks(registry)
    sessions.on_connect("admin-1", ConsoleSession("admin-1"))
    sessions.on_connect("user-1", ConsoleSession("user-1"))
    sessions.on_connect(None, ConsoleSession("anonymous"))

    dispatch_log = InMemoryDispatchLog()
    attendees = InMemoryAttendeeStore()
    engine = DispatchEngine(
        templates=InMemoryTemplateStore(load_templates(REPO_ROOT / "config" / "templates.json")),
        dispatch_log=dispatch_log,
        send_email=send_email_via_console,
        send_sms=send_sms_maybe_fail,
        registry=registry,
        feed=InMemoryNotificationFeed(),
    )
    router = EventRouter(engine, attendees)
    bindings = build_topic_bindings(router, topics)

    committed: list[int] = []
    rejected: list[tuple[int, str]] = []

    def commit(record: dict[str, Any]) -> None:
        committed.append(int(record.get("offset", -1)))

    def reject(record: dict[str, Any], reason: str) -> None:
        rejected.append((int(record.get("offset", -1)), reason))
        print(f"[NO-COMMIT] offset={record.get('offset')} reason={reason}")

    results = handle_batch(
        sample_records(topics, now), bindings=bindings, commit=commit, reject=reject
    )

    print("")
    print("[BATCH SUMMARY]")
    for result in results:
        handling = result["handling"] or {}
        print(
            f"offset={result['record_meta']['offset']} status={result['status']} "
            f"handling={handling.get('status')} error={result['error'] or handling.get('error')}"
        )

    scheduler = ReminderScheduler(
        attendees=attendees,
        directory=DemoDirectory(
            {
                "user-1": UserContact(phone_number="+15555550123", sms_consent=True),
                "user-2": UserContact(
                    email="person@example.com",
                    email_consent=True,
                    phone_number="+15555559999",
                    sms_consent=True,
                ),
            }
        ),
        dispatch_log=dispatch_log,
        engine=engine,
        send_sms=send_sms_maybe_fail,
    )
    sent = scheduler.run_due()

    print("")
    print("[REMINDERS]")
    print(f"sent={sent}")

    print("")
    print("[DISPATCH LOG]")
    for record in dispatch_log.records():
        print(
            f"template={record.template_key} user_id={record.user_id} "
            f"status={record.status} error={record.error}"
        )

    print("")
    print("[OFFSETS]")
    print(f"committed={committed}")
    print(f"rejected={rejected}")
    return 0


def send_sms_maybe_fail(*, to_phone_e164: str, message: str) -> str:
    if to_phone_e164 == "+15555559999":
        raise RuntimeError("sms provider unavailable")
    return send_sms_via_console(to_phone_e164=to_phone_e164, message=message)


def sample_records(topics: TopicSettings, now: datetime) -> list[dict[str, Any]]:
    tomorrow_evening = (now + timedelta(days=1)).replace(hour=18, minute=0, second=0, microsecond=0)
    return [
        {
            "topic": topics.join_request_sent,
            "partition": 0,
            "offset": 100,
            "value": {
                "joinRequestId": "jr-100",
                "adminIds": ["admin-1", "admin-2"],
                "organizationId": "org-1",
                "organizationName": "Chess Club",
                "requesterUserId": "user-1",
                "requesterUsername": "ana",
            },
        },
        {
            "topic": topics.join_request_responded,
            "partition": 0,
            "offset": 101,
            "value": {
                "eventType": "APPROVED",
                "joinRequestId": "jr-100",
                "organizationName": "Chess Club",
                "requesterUserId": "user-1",
                "requesterFirstName": "Ana",
                "requesterLastName": "Novak",
                "requesterEmail": "ana@example.com",
            },
        },
        {
            "topic": topics.event_attendance_accepted,
            "partition": 0,
            "offset": 102,
            "value": {
                "eventId": "evt-1",
                "eventTitle": "Blitz night",
                "eventStartAt": tomorrow_evening.isoformat(),
                "userId": "user-1",
            },
        },
        {
            "topic": topics.event_attendance_accepted,
            "partition": 0,
            "offset": 103,
            "value": {
                "eventId": "evt-1",
                "eventTitle": "Blitz night",
                "eventStartAt": tomorrow_evening.isoformat(),
                "userId": "user-1",
            },
        },
        {
            "topic": topics.event_attendance_accepted,
            "partition": 0,
            "offset": 104,
            "value": {
                "eventId": "evt-1",
                "eventTitle": "Blitz night",
                "eventStartAt": tomorrow_evening.isoformat(),
                "userId": "user-2",
            },
        },
        {
            "topic": topics.invitation_sent,
            "partition": 0,
            "offset": 105,
            "value": {"organizationName": "Chess Club"},
        },
    ]


if __name__ == "__main__":
    sys.exit(main())
