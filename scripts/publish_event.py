#!/usr/bin/env python3
"""Publish one sample organization/event message to Kafka for local testing."""

from __future__ import annotations

import argparse
import sys
import uuid
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

# Allow running this file directly from repository root.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from notification_core.adapters.kafka_runtime import publish_event  # noqa: E402
from notification_core.config import TopicSettings, load_env_file  # noqa: E402

EVENT_CHOICES = (
    "join-request-sent",
    "join-request-responded",
    "invitation-sent",
    "invitation-responded",
    "attendance-accepted",
)


def main() -> int:
    load_env_file(REPO_ROOT / ".env")
    args = parse_args()
    topic, payload = build_payload(args, TopicSettings.from_env())
    metadata = publish_event(topic, payload, key=args.user_id)

    print("[PUBLISHED]")
    print(f"topic={metadata['topic']}")
    print(f"partition={metadata['partition']}")
    print(f"offset={metadata['offset']}")
    print(f"payload={payload}")
    return 0


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Publish one sample notification event.")
    parser.add_argument("event", choices=EVENT_CHOICES, help="Which event to publish.")
    parser.add_argument("--user-id", default="user-demo-1", help="Requester/invitee/attendee id.")
    parser.add_argument(
        "--admin-id",
        action="append",
        default=None,
        help="Admin id for admin-facing events. Repeatable. Default: admin-demo-1.",
    )
    parser.add_argument("--email", default="person@example.com", help="Recipient email.")
    parser.add_argument("--org-name", default="Demo Org", help="Organization name.")
    parser.add_argument(
        "--outcome",
        default=None,
        help="eventType for responded events (APPROVED/REJECTED or ACCEPTED/DECLINED).",
    )
    parser.add_argument(
        "--start-at",
        default=None,
        help="Event start ISO timestamp for attendance events. Default: tomorrow 18:00 UTC.",
    )
    return parser.parse_args()


def build_payload(args: argparse.Namespace, topics: TopicSettings) -> tuple[str, dict[str, Any]]:
    admin_ids = args.admin_id or ["admin-demo-1"]
    occurred_at = datetime.now(tz=UTC).isoformat()
    org = {"organizationId": f"org-{uuid.uuid4().hex[:8]}", "organizationName": args.org_name}

    if args.event == "join-request-sent":
        return topics.join_request_sent, {
            "joinRequestId": f"jr-{uuid.uuid4()}",
            "adminIds": admin_ids,
            "requesterUserId": args.user_id,
            "requesterUsername": args.user_id,
            "occurredAt": occurred_at,
            **org,
        }
    if args.event == "join-request-responded":
        return topics.join_request_responded, {
            "eventType": args.outcome or "APPROVED",
            "joinRequestId": f"jr-{uuid.uuid4()}",
            "requesterUserId": args.user_id,
            "requesterFirstName": "Demo",
            "requesterLastName": "User",
            "requesterEmail": args.email,
            "occurredAt": occurred_at,
            **org,
        }
    if args.event == "invitation-sent":
        return topics.invitation_sent, {
            "invitationId": f"inv-{uuid.uuid4()}",
            "invitedUserId": args.user_id,
            "invitedFirstName": "Demo",
            "invitedLastName": "User",
            "invitedEmail": args.email,
            "occurredAt": occurred_at,
            **org,
        }
    if args.event == "invitation-responded":
        return topics.invitation_responded, {
            "eventType": args.outcome or "ACCEPTED",
            "invitationId": f"inv-{uuid.uuid4()}",
            "adminIds": admin_ids,
            "invitedUserId": args.user_id,
            "invitedUsername": args.user_id,
            "occurredAt": occurred_at,
            **org,
        }

    start_at = args.start_at or _tomorrow_evening().isoformat()
    return topics.event_attendance_accepted, {
        "eventId": f"evt-{uuid.uuid4()}",
        "eventTitle": "Demo meetup",
        "eventStartAt": start_at,
        "userId": args.user_id,
    }


def _tomorrow_evening() -> datetime:
    tomorrow = datetime.now(tz=UTC) + timedelta(days=1)
    return tomorrow.replace(hour=18, minute=0, second=0, microsecond=0)


if __name__ == "__main__":
    sys.exit(main())
