"""Day-ahead SMS reminders for event attendees.

Each run looks at attendees whose event starts tomorrow (UTC calendar day),
sends one SMS per consenting attendee and marks the reminder sent. When the
SMS provider fails, an email/in-app fallback goes out through the dispatch
engine. Whether that fallback counts as "sent" is a policy switch; by
default it does not, so the next run retries the SMS.
"""

from __future__ import annotations

import logging
import threading
from datetime import UTC, datetime, time, timedelta
from typing import Callable

from ..domain.models import (
    AttendeeReminder,
    ChannelKind,
    DispatchContext,
    DispatchRecord,
    DispatchStatus,
    Recipient,
    UserContact,
    utcnow,
)
from ..domain.render import truncate_sms
from ..types import SendSMSFn
from .dispatch import DispatchEngine
from .ports import AttendeeStore, DirectoryClient, DispatchLog

logger = logging.getLogger(__name__)

REMINDER_TEMPLATE_KEY = "EVENT_REMINDER_SMS"
REMINDER_SUBJECT = "Event Reminder"
FALLBACK_TEMPLATE_KEY = "SMS_REMINDER_FALLBACK"
FALLBACK_NOTIFICATION_TYPE = "sms_reminder_fallback"
REMINDER_TIME_FORMAT = "%d.%m.%Y %H:%M"


def tomorrow_window(now: datetime) -> tuple[datetime, datetime]:
    """Return `[start, start + 24h)` for the UTC calendar day after `now`."""
    tomorrow = (now.astimezone(UTC) + timedelta(days=1)).date()
    start = datetime.combine(tomorrow, time.min, tzinfo=UTC)
    return start, start + timedelta(days=1)


def format_start(start_at: datetime) -> str:
    return start_at.astimezone(UTC).strftime(REMINDER_TIME_FORMAT)


def format_reminder_message(event_title: str, start_at: datetime) -> str:
    return (
        f"You have an event coming tomorrow! Event: {event_title} "
        f"Start time: {format_start(start_at)}"
    )


class ReminderScheduler:
    def __init__(
        self,
        *,
        attendees: AttendeeStore,
        directory: DirectoryClient,
        dispatch_log: DispatchLog,
        engine: DispatchEngine,
        send_sms: SendSMSFn,
        clock: Callable[[], datetime] = utcnow,
        mark_sent_on_fallback: bool = False,
    ) -> None:
        self.attendees = attendees
        self.directory = directory
        self.dispatch_log = dispatch_log
        self.engine = engine
        self.send_sms = send_sms
        self.clock = clock
        self.mark_sent_on_fallback = mark_sent_on_fallback
        self._run_lock = threading.Lock()

    def run_due(self) -> int:
        """Send tomorrow's reminders; returns how many were marked sent.

        Overlapping calls do not run twice: a call made while another run is
        in progress logs and returns 0.
        """
        if not self._run_lock.acquire(blocking=False):
            logger.warning("[REMINDERS SKIPPED] reason=run_in_progress")
            return 0
        try:
            return self._run_batch()
        finally:
            self._run_lock.release()

    def run_forever(self, interval_seconds: float, stop: threading.Event) -> None:
        """Call `run_due` every `interval_seconds` until `stop` is set."""
        logger.info("[REMINDERS START] interval_seconds=%s", interval_seconds)
        while not stop.is_set():
            try:
                self.run_due()
            except Exception as exc:
                logger.exception("[REMINDERS ERROR] error=%s", exc)
            stop.wait(interval_seconds)
        logger.info("[REMINDERS STOP]")

    def _run_batch(self) -> int:
        start, end = tomorrow_window(self.clock())
        reminders = self.attendees.find_starting_between(start, end)
        logger.info(
            "[REMINDERS] due=%d window_start=%s window_end=%s",
            len(reminders),
            start.isoformat(),
            end.isoformat(),
        )

        sent = 0
        for reminder in reminders:
            try:
                if self.process_attendee(reminder):
                    sent += 1
            except Exception as exc:
                logger.exception(
                    "[REMINDER ERROR] event_id=%s user_id=%s error=%s",
                    reminder.event_id,
                    reminder.user_id,
                    exc,
                )

        logger.info("[REMINDERS DONE] sent=%d due=%d", sent, len(reminders))
        return sent

    def process_attendee(self, reminder: AttendeeReminder) -> bool:
        """Handle one attendee; True when the reminder got marked sent."""
        if reminder.sent:
            logger.info(
                "[REMINDER SKIP] event_id=%s user_id=%s reason=already_sent",
                reminder.event_id,
                reminder.user_id,
            )
            return False

        try:
            contact = self.directory.get_user(reminder.user_id)
        except Exception as exc:
            logger.error(
                "[REMINDER SKIP] user_id=%s reason=directory_error error=%s",
                reminder.user_id,
                exc,
            )
            return False
        if contact is None:
            logger.error("[REMINDER SKIP] user_id=%s reason=user_not_found", reminder.user_id)
            return False

        if not contact.sms_consent:
            logger.info(
                "[REMINDER SKIP] event_id=%s user_id=%s reason=no_sms_consent",
                reminder.event_id,
                reminder.user_id,
            )
            return False
        phone = (contact.phone_number or "").strip()
        if not phone:
            logger.info(
                "[REMINDER SKIP] event_id=%s user_id=%s reason=no_phone",
                reminder.event_id,
                reminder.user_id,
            )
            return False

        message = truncate_sms(
            format_reminder_message(reminder.event_title, reminder.event_start_at)
        )
        try:
            message_id = self.send_sms(to_phone_e164=phone, message=message)
        except Exception as exc:
            self._record_sms(reminder, phone, message, error=str(exc))
            logger.error(
                "[REMINDER SMS FAILED] event_id=%s user_id=%s error=%s",
                reminder.event_id,
                reminder.user_id,
                exc,
            )
            return self._send_fallback(reminder, contact)

        record = self._record_sms(reminder, phone, message, external_id=message_id)
        self.attendees.mark_sent(reminder.id, self.clock(), record.id)
        logger.info(
            "[REMINDER SENT] event_id=%s user_id=%s message_id=%s",
            reminder.event_id,
            reminder.user_id,
            message_id,
        )
        return True

    def _record_sms(
        self,
        reminder: AttendeeReminder,
        phone: str,
        message: str,
        *,
        external_id: str | None = None,
        error: str | None = None,
    ) -> DispatchRecord:
        failed = error is not None
        record = DispatchRecord(
            template_key=REMINDER_TEMPLATE_KEY,
            kind=ChannelKind.SMS,
            status=DispatchStatus.FAILED if failed else DispatchStatus.SENT,
            source_event_id=reminder.event_id,
            user_id=reminder.user_id,
            phone=phone,
            subject=REMINDER_SUBJECT,
            body=message,
            sent_at=None if failed else self.clock(),
            error=error,
            external_id=external_id,
        )
        return self.dispatch_log.append(record)

    def _send_fallback(self, reminder: AttendeeReminder, contact: UserContact) -> bool:
        email = (contact.email or "").strip()
        if not contact.email_consent or not email:
            logger.info(
                "[REMINDER FALLBACK SKIP] event_id=%s user_id=%s reason=%s",
                reminder.event_id,
                reminder.user_id,
                "no_email_consent_or_address",
            )
            return False

        record = self.engine.dispatch(
            FALLBACK_TEMPLATE_KEY,
            {
                "event_title": reminder.event_title,
                "event_start_at": format_start(reminder.event_start_at),
            },
            Recipient(user_id=reminder.user_id, email=email),
            DispatchContext(
                kind=FALLBACK_NOTIFICATION_TYPE,
                source_event_id=reminder.event_id,
                reference_id=reminder.event_id,
                reference_type="event",
            ),
        )
        if record is None:
            return False

        logger.info(
            "[REMINDER FALLBACK] event_id=%s user_id=%s status=%s",
            reminder.event_id,
            reminder.user_id,
            record.status,
        )
        if self.mark_sent_on_fallback and record.status is DispatchStatus.SENT:
            self.attendees.mark_sent(reminder.id, self.clock(), record.id)
            return True
        return False
