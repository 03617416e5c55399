"""Assemble the runtime object graph from environment configuration."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from .adapters.connections import ConnectionRegistry
from .adapters.consumer_handler import TopicBinding, build_topic_bindings
from .adapters.directory import ResilientDirectoryClient
from .adapters.fake_senders import send_email_via_console, send_sms_via_console
from .adapters.push_sessions import PushSessionHooks
from .adapters.real_senders import send_email_via_mailgun_from_env, send_sms_via_twilio_from_env
from .adapters.sql_stores import (
    SqlAttendeeStore,
    SqlDispatchLog,
    SqlNotificationFeed,
    create_storage_engine,
)
from .adapters.stores import InMemoryTemplateStore, load_templates
from .application.dispatch import DispatchEngine
from .application.reminders import ReminderScheduler
from .application.router import EventRouter
from .config import DirectorySettings, ServiceSettings, TopicSettings

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATES_FILE = Path(__file__).resolve().parents[1] / "config" / "templates.json"


@dataclass
class NotificationRuntime:
    registry: ConnectionRegistry
    sessions: PushSessionHooks
    engine: DispatchEngine
    router: EventRouter
    scheduler: ReminderScheduler
    bindings: dict[str, TopicBinding]
    settings: ServiceSettings


def build_runtime(
    settings: ServiceSettings | None = None,
    *,
    topics: TopicSettings | None = None,
    directory_settings: DirectorySettings | None = None,
    registry: ConnectionRegistry | None = None,
) -> NotificationRuntime:
    settings = settings or ServiceSettings.from_env()
    topics = topics or TopicSettings.from_env()
    directory_settings = directory_settings or DirectorySettings.from_env()
    registry = registry or ConnectionRegistry()

    templates_file = settings.templates_file or DEFAULT_TEMPLATES_FILE
    templates = InMemoryTemplateStore(load_templates(templates_file))

    storage = create_storage_engine(settings.database_url)
    dispatch_log = SqlDispatchLog(storage)
    attendees = SqlAttendeeStore(storage)
    feed = SqlNotificationFeed(storage)

    send_email = (
        send_email_via_mailgun_from_env if settings.email_enabled else send_email_via_console
    )
    send_sms = send_sms_via_twilio_from_env if settings.sms_enabled else send_sms_via_console

    engine = DispatchEngine(
        templates=templates,
        dispatch_log=dispatch_log,
        send_email=send_email,
        send_sms=send_sms,
        registry=registry,
        feed=feed,
    )
    router = EventRouter(engine, attendees)
    scheduler = ReminderScheduler(
        attendees=attendees,
        directory=ResilientDirectoryClient.from_settings(directory_settings),
        dispatch_log=dispatch_log,
        engine=engine,
        send_sms=send_sms,
        mark_sent_on_fallback=settings.mark_sent_on_fallback,
    )
    logger.info(
        "[RUNTIME] templates=%s database=%s email_enabled=%s sms_enabled=%s",
        templates_file,
        storage.url.render_as_string(hide_password=True),
        settings.email_enabled,
        settings.sms_enabled,
    )
    return NotificationRuntime(
        registry=registry,
        sessions=PushSessionHooks(registry),
        engine=engine,
        router=router,
        scheduler=scheduler,
        bindings=build_topic_bindings(router, topics),
        settings=settings,
    )
