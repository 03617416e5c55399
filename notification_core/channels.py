"""Compatibility facade for notification functions.

Module layout by abstraction layer:
- adapters: payload decoding, transport, providers, registry and stores
- domain: channel rules, rendering and records
- application: dispatch, routing and reminders
"""

from .adapters.connections import ConnectionRegistry
from .adapters.consumer_handler import build_topic_bindings, handle_batch, handle_message
from .adapters.fake_senders import send_email_via_console, send_sms_via_console
from .adapters.kafka_runtime import publish_event, run_notification_worker_forever
from .adapters.push_sessions import PushSessionHooks
from .adapters.real_senders import (
    send_email_via_mailgun_from_env,
    send_sms_via_twilio_from_env,
)
from .application.dispatch import DispatchEngine
from .application.process import process_notification_channels, reduce_channel_results
from .application.reminders import ReminderScheduler
from .application.router import EventRouter
from .domain.email import send_email_notification
from .domain.push import send_push_notification
from .domain.render import render_plain, render_rich, truncate_sms
from .domain.sms import send_sms_notification

__all__ = [
    "ConnectionRegistry",
    "DispatchEngine",
    "EventRouter",
    "PushSessionHooks",
    "ReminderScheduler",
    "build_topic_bindings",
    "handle_batch",
    "handle_message",
    "process_notification_channels",
    "publish_event",
    "reduce_channel_results",
    "render_plain",
    "render_rich",
    "run_notification_worker_forever",
    "send_email_notification",
    "send_email_via_console",
    "send_email_via_mailgun_from_env",
    "send_push_notification",
    "send_sms_notification",
    "send_sms_via_console",
    "send_sms_via_twilio_from_env",
    "truncate_sms",
]
