"""Multi-channel notification core: push, email and SMS dispatch."""

from .channels import (
    ConnectionRegistry,
    DispatchEngine,
    EventRouter,
    PushSessionHooks,
    ReminderScheduler,
    build_topic_bindings,
    handle_batch,
    handle_message,
    process_notification_channels,
    publish_event,
    reduce_channel_results,
    render_plain,
    render_rich,
    run_notification_worker_forever,
    send_email_notification,
    send_email_via_console,
    send_email_via_mailgun_from_env,
    send_push_notification,
    send_sms_notification,
    send_sms_via_console,
    send_sms_via_twilio_from_env,
    truncate_sms,
)

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
