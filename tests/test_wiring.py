from __future__ import annotations

import os
import unittest
from unittest import mock

from notification_core.adapters.fake_senders import send_email_via_console, send_sms_via_console
from notification_core.adapters.real_senders import send_email_via_mailgun_from_env
from notification_core.config import ServiceSettings, TopicSettings
from notification_core.wiring import build_runtime


def make_settings(**overrides: object) -> ServiceSettings:
    base: dict[str, object] = {
        "database_url": "sqlite://",
        "templates_file": None,
        "reminder_interval_seconds": 0.0,
        "mark_sent_on_fallback": True,
        "email_enabled": False,
        "sms_enabled": False,
    }
    return ServiceSettings(**(base | overrides))


class BuildRuntimeTests(unittest.TestCase):
    @mock.patch.dict(os.environ, {}, clear=True)
    def test_disabled_channels_use_console_senders(self) -> None:
        runtime = build_runtime(make_settings())

        self.assertIs(runtime.engine.send_email, send_email_via_console)
        self.assertIs(runtime.engine.send_sms, send_sms_via_console)
        self.assertIs(runtime.scheduler.send_sms, send_sms_via_console)
        self.assertTrue(runtime.scheduler.mark_sent_on_fallback)
        self.assertIs(runtime.engine.registry, runtime.registry)
        self.assertIs(runtime.sessions.registry, runtime.registry)
        self.assertEqual(set(runtime.bindings), set(vars(TopicSettings.from_env()).values()))
        self.assertIsNotNone(runtime.engine.templates.get("NEW_REQUEST"))

    @mock.patch.dict(os.environ, {}, clear=True)
    def test_enabled_email_uses_mailgun(self) -> None:
        runtime = build_runtime(make_settings(email_enabled=True))
        self.assertIs(runtime.engine.send_email, send_email_via_mailgun_from_env)

    @mock.patch.dict(os.environ, {}, clear=True)
    def test_runtime_stores_attendance_in_sql(self) -> None:
        runtime = build_runtime(make_settings())
        binding = runtime.bindings["events.attendance.accepted"]
        event = binding.decoder(
            {
                "eventId": "evt-1",
                "eventTitle": "Meetup",
                "eventStartAt": "2026-03-02T18:00:00Z",
                "userId": "user-1",
            }
        )

        self.assertEqual(binding.handler(event)["status"], "stored")
        self.assertEqual(binding.handler(event)["status"], "duplicate")
        self.assertEqual(len(runtime.router.attendees.all()), 1)

    @mock.patch.dict(os.environ, {}, clear=True)
    def test_session_hooks_feed_the_push_registry(self) -> None:
        runtime = build_runtime(make_settings())
        session = mock.Mock(is_open=True)

        self.assertTrue(runtime.sessions.on_connect("user-1", session))
        self.assertTrue(runtime.registry.send_to_user("user-1", {"title": "Hi"}))
        runtime.sessions.on_close("user-1", session)

        session.send.assert_called_once()
        self.assertEqual(runtime.registry.active_count(), 0)


if __name__ == "__main__":
    unittest.main()
