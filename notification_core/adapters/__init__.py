"""Adapter layer: transport, providers, registry and storage."""

from .connections import ConnectionRegistry
from .consumer_handler import TopicBinding, build_topic_bindings, handle_batch, handle_message
from .directory import HttpDirectoryClient, ResilientDirectoryClient
from .fake_senders import send_email_via_console, send_sms_via_console
from .kafka_runtime import publish_event, run_notification_worker_forever
from .push_sessions import PushSessionHooks
from .real_senders import send_email_via_mailgun_from_env, send_sms_via_twilio_from_env
from .stores import (
    InMemoryAttendeeStore,
    InMemoryDispatchLog,
    InMemoryNotificationFeed,
    InMemoryTemplateStore,
    load_templates,
)

__all__ = [
    "ConnectionRegistry",
    "HttpDirectoryClient",
    "InMemoryAttendeeStore",
    "InMemoryDispatchLog",
    "InMemoryNotificationFeed",
    "InMemoryTemplateStore",
    "PushSessionHooks",
    "ResilientDirectoryClient",
    "TopicBinding",
    "build_topic_bindings",
    "handle_batch",
    "handle_message",
    "load_templates",
    "publish_event",
    "run_notification_worker_forever",
    "send_email_via_console",
    "send_email_via_mailgun_from_env",
    "send_sms_via_console",
    "send_sms_via_twilio_from_env",
]
