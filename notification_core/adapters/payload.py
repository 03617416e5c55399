"""Payload adapter functions.

Mental model refresher:
- This is an adapter/edge module.
- It translates transport-shaped data (camelCase JSON event payloads) into
  the snake_case event dictionaries the router works with.
- It validates shape and required fields, but it does not decide business
  outcomes like which template to use.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from ..types import Event, EventDict


def parse_join_request_sent(payload: Event) -> EventDict:
    return {
        "join_request_id": _as_required_str(payload.get("joinRequestId"), "joinRequestId"),
        "admin_ids": _as_str_list(payload.get("adminIds"), "adminIds"),
        "organization_id": _as_optional_str(payload.get("organizationId")),
        "organization_name": _as_optional_str(payload.get("organizationName")),
        "requester_user_id": _as_optional_str(payload.get("requesterUserId")),
        "requester_username": _as_optional_str(payload.get("requesterUsername")),
        "occurred_at": _as_optional_str(payload.get("occurredAt")),
    }


def parse_join_request_responded(payload: Event) -> EventDict:
    return {
        "outcome": _as_required_str(payload.get("eventType"), "eventType").upper(),
        "join_request_id": _as_required_str(payload.get("joinRequestId"), "joinRequestId"),
        "organization_id": _as_optional_str(payload.get("organizationId")),
        "organization_name": _as_optional_str(payload.get("organizationName")),
        "requester_user_id": _as_required_str(payload.get("requesterUserId"), "requesterUserId"),
        "requester_first_name": _as_optional_str(payload.get("requesterFirstName")),
        "requester_last_name": _as_optional_str(payload.get("requesterLastName")),
        "requester_email": _as_optional_str(payload.get("requesterEmail")),
        "occurred_at": _as_optional_str(payload.get("occurredAt")),
    }


def parse_invitation_sent(payload: Event) -> EventDict:
    return {
        "invitation_id": _as_required_str(payload.get("invitationId"), "invitationId"),
        "organization_id": _as_optional_str(payload.get("organizationId")),
        "organization_name": _as_optional_str(payload.get("organizationName")),
        "invited_user_id": _as_required_str(payload.get("invitedUserId"), "invitedUserId"),
        "invited_first_name": _as_optional_str(payload.get("invitedFirstName")),
        "invited_last_name": _as_optional_str(payload.get("invitedLastName")),
        "invited_email": _as_optional_str(payload.get("invitedEmail")),
        "occurred_at": _as_optional_str(payload.get("occurredAt")),
    }


def parse_invitation_responded(payload: Event) -> EventDict:
    return {
        "outcome": _as_required_str(payload.get("eventType"), "eventType").upper(),
        "invitation_id": _as_required_str(payload.get("invitationId"), "invitationId"),
        "admin_ids": _as_str_list(payload.get("adminIds"), "adminIds"),
        "organization_id": _as_optional_str(payload.get("organizationId")),
        "organization_name": _as_optional_str(payload.get("organizationName")),
        "invited_user_id": _as_optional_str(payload.get("invitedUserId")),
        "invited_username": _as_optional_str(payload.get("invitedUsername")),
        "occurred_at": _as_optional_str(payload.get("occurredAt")),
    }


def parse_event_attendance_accepted(payload: Event) -> EventDict:
    return {
        "event_id": _as_required_str(payload.get("eventId"), "eventId"),
        "event_title": _as_optional_str(payload.get("eventTitle")) or "",
        "event_start_at": _as_utc_datetime(payload.get("eventStartAt"), "eventStartAt"),
        "user_id": _as_required_str(payload.get("userId"), "userId"),
    }


def _as_required_str(value: Any, field_name: str) -> str:
    text = str(value).strip() if value is not None else ""
    if not text:
        raise ValueError(f"Missing required field: {field_name}")
    return text


def _as_optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _as_str_list(value: Any, field_name: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"Field {field_name} must be a list")
    return [text for text in (_as_optional_str(item) for item in value) if text]


def _as_utc_datetime(value: Any, field_name: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        parsed = datetime.fromtimestamp(value, tz=UTC)
    else:
        text = _as_required_str(value, field_name)
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise ValueError(f"Invalid timestamp for {field_name}: {value!r}") from exc
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)
