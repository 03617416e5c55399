"""SQL-backed stores using SQLAlchemy Core.

Datetimes are stored as naive UTC and returned timezone-aware. The
(event_id, user_id) uniqueness of attendee reminders is a table
constraint, so concurrent inserts resolve in the database.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.pool import StaticPool

from ..domain.models import (
    AttendeeReminder,
    ChannelKind,
    DispatchRecord,
    DispatchStatus,
    FeedEntry,
)
from ..errors import DuplicateAttendee

logger = logging.getLogger(__name__)

metadata = MetaData()

dispatch_records = Table(
    "dispatch_records",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("template_key", String(100), nullable=False),
    Column("kind", String(20), nullable=False),
    Column("status", String(20), nullable=False),
    Column("source_event_id", String(100)),
    Column("user_id", String(100)),
    Column("email", String(320)),
    Column("phone", String(32)),
    Column("subject", Text),
    Column("body", Text),
    Column("sent_at", DateTime),
    Column("error", Text),
    Column("external_id", String(255)),
    Column("created_at", DateTime, nullable=False),
)

event_attendee_reminders = Table(
    "event_attendee_reminders",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("event_id", String(100), nullable=False),
    Column("user_id", String(100), nullable=False),
    Column("event_title", String(255), nullable=False),
    Column("event_start_at", DateTime, nullable=False, index=True),
    Column("sent", Boolean, nullable=False, default=False),
    Column("sent_at", DateTime),
    Column("dispatch_record_id", String(36)),
    Column("created_at", DateTime, nullable=False),
    UniqueConstraint("event_id", "user_id", name="uq_event_attendee"),
)

in_app_notifications = Table(
    "in_app_notifications",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("user_id", String(100), nullable=False, index=True),
    Column("title", Text, nullable=False),
    Column("message", Text, nullable=False),
    Column("notification_type", String(50), nullable=False),
    Column("reference_id", String(100)),
    Column("reference_type", String(50)),
    Column("is_read", Boolean, nullable=False, default=False),
    Column("created_at", DateTime, nullable=False),
)


def create_storage_engine(url: str, *, create_tables: bool = True) -> Engine:
    if url in {"sqlite://", "sqlite:///:memory:"}:
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(url, pool_pre_ping=True)
    if create_tables:
        metadata.create_all(engine)
    return engine


def _to_db(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(UTC)
    return value.replace(tzinfo=None)


def _from_db(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class SqlDispatchLog:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def append(self, record: DispatchRecord) -> DispatchRecord:
        with self.engine.begin() as conn:
            conn.execute(
                insert(dispatch_records).values(
                    id=record.id,
                    template_key=record.template_key,
                    kind=record.kind.value,
                    status=record.status.value,
                    source_event_id=record.source_event_id,
                    user_id=record.user_id,
                    email=record.email,
                    phone=record.phone,
                    subject=record.subject,
                    body=record.body,
                    sent_at=_to_db(record.sent_at),
                    error=record.error,
                    external_id=record.external_id,
                    created_at=_to_db(record.created_at),
                )
            )
        return record

    def records(self) -> list[DispatchRecord]:
        query = select(dispatch_records).order_by(dispatch_records.c.created_at)
        with self.engine.connect() as conn:
            rows = conn.execute(query).mappings().all()
        return [_dispatch_record_from_row(row) for row in rows]


def _dispatch_record_from_row(row: Any) -> DispatchRecord:
    return DispatchRecord(
        template_key=row["template_key"],
        kind=ChannelKind(row["kind"]),
        status=DispatchStatus(row["status"]),
        source_event_id=row["source_event_id"],
        user_id=row["user_id"],
        email=row["email"],
        phone=row["phone"],
        subject=row["subject"],
        body=row["body"],
        sent_at=_from_db(row["sent_at"]),
        error=row["error"],
        external_id=row["external_id"],
        id=row["id"],
        created_at=_from_db(row["created_at"]),
    )


class SqlAttendeeStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def get(self, event_id: str, user_id: str) -> AttendeeReminder | None:
        query = select(event_attendee_reminders).where(
            event_attendee_reminders.c.event_id == event_id,
            event_attendee_reminders.c.user_id == user_id,
        )
        with self.engine.connect() as conn:
            row = conn.execute(query).mappings().first()
        return _reminder_from_row(row) if row is not None else None

    def insert(self, reminder: AttendeeReminder) -> AttendeeReminder:
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    insert(event_attendee_reminders).values(
                        id=reminder.id,
                        event_id=reminder.event_id,
                        user_id=reminder.user_id,
                        event_title=reminder.event_title,
                        event_start_at=_to_db(reminder.event_start_at),
                        sent=reminder.sent,
                        sent_at=_to_db(reminder.sent_at),
                        dispatch_record_id=reminder.dispatch_record_id,
                        created_at=_to_db(reminder.created_at),
                    )
                )
        except IntegrityError as exc:
            raise DuplicateAttendee(reminder.event_id, reminder.user_id) from exc
        return reminder

    def find_starting_between(self, start: datetime, end: datetime) -> list[AttendeeReminder]:
        table = event_attendee_reminders
        query = (
            select(table)
            .where(table.c.event_start_at >= _to_db(start), table.c.event_start_at < _to_db(end))
            .order_by(table.c.event_start_at, table.c.created_at)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query).mappings().all()
        return [_reminder_from_row(row) for row in rows]

    def mark_sent(
        self, reminder_id: str, sent_at: datetime, dispatch_record_id: str | None
    ) -> None:
        statement = (
            update(event_attendee_reminders)
            .where(event_attendee_reminders.c.id == reminder_id)
            .values(sent=True, sent_at=_to_db(sent_at), dispatch_record_id=dispatch_record_id)
        )
        with self.engine.begin() as conn:
            result = conn.execute(statement)
        if result.rowcount == 0:
            raise KeyError(f"Unknown attendee reminder: {reminder_id}")

    def all(self) -> list[AttendeeReminder]:
        query = select(event_attendee_reminders).order_by(event_attendee_reminders.c.created_at)
        with self.engine.connect() as conn:
            rows = conn.execute(query).mappings().all()
        return [_reminder_from_row(row) for row in rows]


def _reminder_from_row(row: Any) -> AttendeeReminder:
    return AttendeeReminder(
        event_id=row["event_id"],
        user_id=row["user_id"],
        event_title=row["event_title"],
        event_start_at=_from_db(row["event_start_at"]),
        sent=bool(row["sent"]),
        sent_at=_from_db(row["sent_at"]),
        dispatch_record_id=row["dispatch_record_id"],
        id=row["id"],
        created_at=_from_db(row["created_at"]),
    )


class SqlNotificationFeed:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def save(self, entry: FeedEntry) -> FeedEntry:
        with self.engine.begin() as conn:
            conn.execute(
                insert(in_app_notifications).values(
                    id=entry.id,
                    user_id=entry.user_id,
                    title=entry.title,
                    message=entry.message,
                    notification_type=entry.notification_type,
                    reference_id=entry.reference_id,
                    reference_type=entry.reference_type,
                    is_read=entry.is_read,
                    created_at=_to_db(entry.created_at),
                )
            )
        return entry

    def for_user(self, user_id: str) -> list[FeedEntry]:
        table = in_app_notifications
        query = select(table).where(table.c.user_id == user_id).order_by(table.c.created_at)
        with self.engine.connect() as conn:
            rows = conn.execute(query).mappings().all()
        return [
            FeedEntry(
                user_id=row["user_id"],
                title=row["title"],
                message=row["message"],
                notification_type=row["notification_type"],
                reference_id=row["reference_id"],
                reference_type=row["reference_type"],
                is_read=bool(row["is_read"]),
                id=row["id"],
                created_at=_from_db(row["created_at"]),
            )
            for row in rows
        ]
