"""Inbound event routing.

Each (event type, outcome) pair maps to a template, a variable builder and a
recipient resolver. Admin-facing notifications fan out to one dispatch per
admin id; a failing admin dispatch does not stop the rest. Attendance events
store an attendee reminder once per (event id, user id).

Every public handler returns a result dictionary and never raises, so the
transport never has a reason to redeliver.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from ..domain.models import AttendeeReminder, DispatchContext, Recipient, utcnow
from ..errors import DuplicateAttendee, TemplateNotFound
from ..types import Event, HandlingResult
from .dispatch import DispatchEngine
from .ports import AttendeeStore

logger = logging.getLogger(__name__)

JOIN_REQUEST_SENT = "join_request_sent"
JOIN_REQUEST_RESPONDED = "join_request_responded"
INVITATION_SENT = "invitation_sent"
INVITATION_RESPONDED = "invitation_responded"
EVENT_ATTENDANCE_ACCEPTED = "event_attendance_accepted"

ADMIN_REVIEW_LINK = "/organizations/admin"
MY_ORGANIZATIONS_LINK = "/organizations/my"


@dataclass(frozen=True)
class Route:
    template_key: str
    notification_type: str
    reference_type: str
    reference_field: str
    build_variables: Callable[[Event], dict[str, Any]]
    resolve_recipients: Callable[[Event], list[Recipient]]


def _admin_name(event: Event) -> str:
    return f"{event.get('organization_name') or ''}'s Admin"


def _full_name(first: Any, last: Any) -> str:
    return " ".join(part for part in (first, last) if part)


def _admins(event: Event) -> list[Recipient]:
    return [
        Recipient(user_id=admin_id)
        for admin_id in event.get("admin_ids") or []
        if admin_id
    ]


def _requester(event: Event) -> list[Recipient]:
    return [
        Recipient(
            user_id=event.get("requester_user_id"),
            email=event.get("requester_email"),
        )
    ]


def _invitee(event: Event) -> list[Recipient]:
    return [
        Recipient(
            user_id=event.get("invited_user_id"),
            email=event.get("invited_email"),
        )
    ]


def _requester_response_variables(event: Event) -> dict[str, Any]:
    return {
        "userName": _full_name(event.get("requester_first_name"), event.get("requester_last_name")),
        "orgName": event.get("organization_name"),
    }


ROUTES: dict[tuple[str, str | None], Route] = {
    (JOIN_REQUEST_SENT, None): Route(
        template_key="NEW_REQUEST",
        notification_type="join_request_received",
        reference_type="join_request",
        reference_field="join_request_id",
        build_variables=lambda event: {
            "adminName": _admin_name(event),
            "userName": event.get("requester_username"),
            "orgName": event.get("organization_name"),
            "requestReviewLink": ADMIN_REVIEW_LINK,
        },
        resolve_recipients=_admins,
    ),
    (JOIN_REQUEST_RESPONDED, "APPROVED"): Route(
        template_key="REQUEST_ACCEPTED",
        notification_type="join_request_approved",
        reference_type="join_request",
        reference_field="join_request_id",
        build_variables=_requester_response_variables,
        resolve_recipients=_requester,
    ),
    (JOIN_REQUEST_RESPONDED, "REJECTED"): Route(
        template_key="REQUEST_DECLINED",
        notification_type="join_request_rejected",
        reference_type="join_request",
        reference_field="join_request_id",
        build_variables=_requester_response_variables,
        resolve_recipients=_requester,
    ),
    (INVITATION_SENT, None): Route(
        template_key="NEW_INVITATION",
        notification_type="invitation_received",
        reference_type="invitation",
        reference_field="invitation_id",
        build_variables=lambda event: {
            "recipientName": _full_name(
                event.get("invited_first_name"), event.get("invited_last_name")
            ),
            "orgName": event.get("organization_name"),
            "invitationAcceptLink": MY_ORGANIZATIONS_LINK,
        },
        resolve_recipients=_invitee,
    ),
    (INVITATION_RESPONDED, "ACCEPTED"): Route(
        template_key="INVITATION_ACCEPTED",
        notification_type="invitation_accepted",
        reference_type="invitation",
        reference_field="invitation_id",
        build_variables=lambda event: {
            "adminName": _admin_name(event),
            "userName": event.get("invited_username"),
            "orgName": event.get("organization_name"),
            "memberListLink": ADMIN_REVIEW_LINK,
        },
        resolve_recipients=_admins,
    ),
    (INVITATION_RESPONDED, "DECLINED"): Route(
        template_key="INVITATION_DECLINED",
        notification_type="invitation_declined",
        reference_type="invitation",
        reference_field="invitation_id",
        build_variables=lambda event: {
            "adminName": _admin_name(event),
            "userName": event.get("invited_username"),
            "orgName": event.get("organization_name"),
        },
        resolve_recipients=_admins,
    ),
}


def find_route(event_type: str, event: Event) -> Route | None:
    outcome = event.get("outcome")
    return ROUTES.get((event_type, str(outcome).upper() if outcome else None))


class EventRouter:
    def __init__(
        self,
        engine: DispatchEngine,
        attendees: AttendeeStore,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.engine = engine
        self.attendees = attendees
        self.clock = clock

    def handle_event(self, event_type: str, event: Event) -> HandlingResult:
        """Handle one decoded event. Never raises."""
        try:
            if event_type == EVENT_ATTENDANCE_ACCEPTED:
                return self.record_attendance(event)
            return self.route_notification(event_type, event)
        except Exception as exc:
            logger.exception("[EVENT ERROR] event_type=%s error=%s", event_type, exc)
            return _handling(event_type, "failed", error=str(exc))

    def route_notification(self, event_type: str, event: Event) -> HandlingResult:
        route = find_route(event_type, event)
        if route is None:
            logger.warning(
                "[EVENT IGNORED] event_type=%s outcome=%s", event_type, event.get("outcome")
            )
            return _handling(event_type, "ignored", error="no_route")

        try:
            template = self.engine.find_template(route.template_key)
        except TemplateNotFound as exc:
            logger.error("[TEMPLATE MISSING] event_type=%s error=%s", event_type, exc)
            return _handling(event_type, "template_missing", error=str(exc))

        variables = route.build_variables(event)
        context = DispatchContext(
            kind=route.notification_type,
            reference_id=event.get(route.reference_field),
            reference_type=route.reference_type,
        )

        records = []
        failures = 0
        for recipient in route.resolve_recipients(event):
            try:
                record = self.engine.dispatch(template, variables, recipient, context)
            except Exception as exc:
                failures += 1
                logger.exception(
                    "[DISPATCH ERROR] event_type=%s user_id=%s error=%s",
                    event_type,
                    recipient.user_id,
                    exc,
                )
                continue
            if record is not None:
                records.append(record)

        logger.info(
            "[EVENT HANDLED] event_type=%s template_key=%s dispatches=%d failures=%d",
            event_type,
            template.key,
            len(records),
            failures,
        )
        return _handling(event_type, "dispatched", records=records)

    def record_attendance(self, event: Event) -> HandlingResult:
        event_id = str(event["event_id"])
        user_id = str(event["user_id"])

        if self.attendees.get(event_id, user_id) is not None:
            logger.info("[ATTENDEE EXISTS] event_id=%s user_id=%s", event_id, user_id)
            return _handling(EVENT_ATTENDANCE_ACCEPTED, "duplicate")

        reminder = AttendeeReminder(
            event_id=event_id,
            user_id=user_id,
            event_title=str(event.get("event_title") or ""),
            event_start_at=event["event_start_at"],
            created_at=self.clock(),
        )
        try:
            self.attendees.insert(reminder)
        except DuplicateAttendee:
            logger.info("[ATTENDEE EXISTS] event_id=%s user_id=%s race=true", event_id, user_id)
            return _handling(EVENT_ATTENDANCE_ACCEPTED, "duplicate")

        logger.info(
            "[ATTENDEE STORED] event_id=%s user_id=%s start_at=%s",
            event_id,
            user_id,
            reminder.event_start_at.isoformat(),
        )
        return _handling(EVENT_ATTENDANCE_ACCEPTED, "stored")


def _handling(
    event_type: str,
    status: str,
    *,
    records: list | None = None,
    error: str | None = None,
) -> HandlingResult:
    return {
        "event_type": event_type,
        "status": status,
        "records": records or [],
        "error": error,
    }
