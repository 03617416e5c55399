"""Notification records and value types."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Mapping


class ChannelKind(StrEnum):
    PUSH = "PUSH"
    EMAIL = "EMAIL"
    PUSH_EMAIL = "PUSH_EMAIL"
    SMS = "SMS"
    ALL = "ALL"

    @property
    def includes_push(self) -> bool:
        return self in {ChannelKind.PUSH, ChannelKind.PUSH_EMAIL, ChannelKind.ALL}

    @property
    def includes_email(self) -> bool:
        return self in {ChannelKind.EMAIL, ChannelKind.PUSH_EMAIL, ChannelKind.ALL}

    @property
    def includes_sms(self) -> bool:
        return self in {ChannelKind.SMS, ChannelKind.ALL}


class DispatchStatus(StrEnum):
    SENT = "SENT"
    FAILED = "FAILED"


def utcnow() -> datetime:
    return datetime.now(tz=UTC)


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class Template:
    key: str
    kind: ChannelKind
    subject: str
    body: str
    sms_body: str | None = None
    active: bool = True
    language: str = "sl"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Template":
        return cls(
            key=str(data["key"]),
            kind=ChannelKind(str(data["kind"]).upper()),
            subject=str(data.get("subject", "")),
            body=str(data.get("body", "")),
            sms_body=data.get("sms_body"),
            active=bool(data.get("active", True)),
            language=str(data.get("language", "sl")),
        )


@dataclass(frozen=True)
class Recipient:
    user_id: str | None = None
    email: str | None = None
    phone: str | None = None


@dataclass(frozen=True)
class DispatchContext:
    """Why a dispatch happens: the source event and what it refers to."""

    kind: str
    source_event_id: str | None = None
    reference_id: str | None = None
    reference_type: str | None = None


@dataclass(frozen=True)
class DispatchRecord:
    """One audit entry per dispatch attempt. Never mutated after write."""

    template_key: str
    kind: ChannelKind
    status: DispatchStatus
    source_event_id: str | None = None
    user_id: str | None = None
    email: str | None = None
    phone: str | None = None
    subject: str | None = None
    body: str | None = None
    sent_at: datetime | None = None
    error: str | None = None
    external_id: str | None = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class AttendeeReminder:
    event_id: str
    user_id: str
    event_title: str
    event_start_at: datetime
    sent: bool = False
    sent_at: datetime | None = None
    dispatch_record_id: str | None = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class UserContact:
    email: str | None = None
    email_consent: bool = False
    phone_number: str | None = None
    sms_consent: bool = False
    first_name: str | None = None
    last_name: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "UserContact":
        return cls(
            email=_optional_str(data.get("email")),
            email_consent=data.get("emailConsent") is True,
            phone_number=_optional_str(data.get("phoneNumber")),
            sms_consent=data.get("smsConsent") is True,
            first_name=_optional_str(data.get("firstName")),
            last_name=_optional_str(data.get("lastName")),
        )


@dataclass(frozen=True)
class FeedEntry:
    """In-app notification kept in the user's notification feed."""

    user_id: str
    title: str
    message: str
    notification_type: str
    reference_id: str | None = None
    reference_type: str | None = None
    is_read: bool = False
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "title": self.title,
            "message": self.message,
            "notificationType": self.notification_type,
            "referenceId": self.reference_id,
            "referenceType": self.reference_type,
            "isRead": self.is_read,
            "createdAt": self.created_at.isoformat(),
        }


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
