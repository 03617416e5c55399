"""Application layer: dispatch, event routing and reminders."""

from .dispatch import DispatchEngine
from .process import process_notification_channels, reduce_channel_results
from .reminders import ReminderScheduler
from .router import EventRouter

__all__ = [
    "DispatchEngine",
    "EventRouter",
    "ReminderScheduler",
    "process_notification_channels",
    "reduce_channel_results",
]
