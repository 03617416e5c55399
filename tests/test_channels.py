from __future__ import annotations

import unittest
from typing import Any

from notification_core.adapters.connections import ConnectionRegistry
from notification_core.adapters.stores import InMemoryNotificationFeed
from notification_core.application.process import (
    NO_CHANNEL_SUCCEEDED,
    process_notification_channels,
    reduce_channel_results,
)
from notification_core.domain.email import send_email_notification
from notification_core.domain.models import (
    ChannelKind,
    DispatchContext,
    DispatchStatus,
    Recipient,
    Template,
)
from notification_core.domain.push import send_push_notification
from notification_core.domain.sms import send_sms_notification


def make_recipient(**overrides: Any) -> Recipient:
    base: dict[str, Any] = {
        "user_id": "user-1",
        "email": "person@example.com",
        "phone": "+15555550123",
    }
    return Recipient(**(base | overrides))


def make_context() -> DispatchContext:
    return DispatchContext(
        kind="invitation_received", reference_id="inv-1", reference_type="invitation"
    )


class RecordingSession:
    def __init__(self) -> None:
        self.is_open = True
        self.messages: list[str] = []

    def send(self, message: str) -> None:
        self.messages.append(message)

    def close(self) -> None:
        self.is_open = False


class ChannelFunctionTests(unittest.TestCase):
    def test_send_email_notification_success_returns_message_id(self) -> None:
        sent: list[dict[str, str]] = []

        def fake_send_email(*, to_email: str, subject: str, html_body: str) -> str:
            sent.append({"to_email": to_email, "subject": subject, "html_body": html_body})
            return "mg-1"

        result = send_email_notification(
            ChannelKind.EMAIL, make_recipient(), "Hello", "<p>Hi</p>", fake_send_email
        )

        self.assertTrue(result["requested"])
        self.assertTrue(result["success"])
        self.assertEqual(result["message_id"], "mg-1")
        self.assertEqual(sent, [{"to_email": "person@example.com", "subject": "Hello", "html_body": "<p>Hi</p>"}])

    def test_send_email_notification_skips_without_address(self) -> None:
        def fake_send_email(**_kwargs: Any) -> str:
            raise AssertionError("must not be called")

        result = send_email_notification(
            ChannelKind.ALL, make_recipient(email=None), "s", "b", fake_send_email
        )

        self.assertFalse(result["requested"])
        self.assertFalse(result["success"])

    def test_send_email_notification_skips_push_only_kind(self) -> None:
        result = send_email_notification(
            ChannelKind.PUSH, make_recipient(), "s", "b", lambda **_kwargs: "never"
        )
        self.assertFalse(result["requested"])

    def test_send_email_notification_converts_sender_error(self) -> None:
        def fake_send_email(**_kwargs: Any) -> str:
            raise RuntimeError("email provider unavailable")

        result = send_email_notification(
            ChannelKind.PUSH_EMAIL, make_recipient(), "s", "b", fake_send_email
        )

        self.assertTrue(result["requested"])
        self.assertFalse(result["success"])
        self.assertIn("email provider unavailable", result["error"] or "")

    def test_send_sms_notification_renders_plain_and_truncates(self) -> None:
        sent: list[dict[str, str]] = []

        def fake_send_sms(*, to_phone_e164: str, message: str) -> str:
            sent.append({"to_phone_e164": to_phone_e164, "message": message})
            return "SM1"

        result = send_sms_notification(
            ChannelKind.SMS,
            make_recipient(),
            "$${text} $${unknown}",
            {"text": "x" * 200},
            fake_send_sms,
        )

        self.assertTrue(result["success"])
        self.assertEqual(result["message_id"], "SM1")
        self.assertEqual(sent[0]["to_phone_e164"], "+15555550123")
        self.assertEqual(sent[0]["message"], "x" * 157 + "...")

    def test_send_sms_notification_needs_sms_body(self) -> None:
        result = send_sms_notification(
            ChannelKind.ALL, make_recipient(), None, {}, lambda **_kwargs: "never"
        )
        self.assertFalse(result["requested"])

    def test_send_sms_notification_needs_phone(self) -> None:
        result = send_sms_notification(
            ChannelKind.SMS, make_recipient(phone=None), "hi", {}, lambda **_kwargs: "never"
        )
        self.assertFalse(result["requested"])

    def test_send_sms_notification_converts_sender_error(self) -> None:
        def fake_send_sms(**_kwargs: Any) -> str:
            raise RuntimeError("sms provider unavailable")

        result = send_sms_notification(
            ChannelKind.SMS, make_recipient(), "hi", {}, fake_send_sms
        )

        self.assertTrue(result["requested"])
        self.assertFalse(result["success"])
        self.assertIn("sms provider unavailable", result["error"] or "")

    def test_send_push_notification_stores_feed_entry_and_pushes_it(self) -> None:
        registry = ConnectionRegistry()
        session = RecordingSession()
        registry.register("user-1", session)
        feed = InMemoryNotificationFeed()

        result = send_push_notification(
            ChannelKind.PUSH,
            make_recipient(),
            "Invite",
            "You are invited",
            make_context(),
            registry=registry,
            feed=feed,
        )

        self.assertTrue(result["success"])
        [entry] = feed.for_user("user-1")
        self.assertEqual(entry.notification_type, "invitation_received")
        self.assertEqual(entry.reference_id, "inv-1")
        self.assertEqual(len(session.messages), 1)
        self.assertIn(f'"id":"{entry.id}"', session.messages[0])
        self.assertIn('"referenceType":"invitation"', session.messages[0])

    def test_send_push_notification_offline_user_still_succeeds(self) -> None:
        feed = InMemoryNotificationFeed()

        result = send_push_notification(
            ChannelKind.ALL,
            make_recipient(),
            "s",
            "b",
            make_context(),
            registry=ConnectionRegistry(),
            feed=feed,
        )

        self.assertTrue(result["success"])
        self.assertEqual(len(feed.for_user("user-1")), 1)

    def test_send_push_notification_feed_failure_is_a_failed_result(self) -> None:
        class BrokenFeed:
            def save(self, entry: Any) -> Any:
                raise RuntimeError("db down")

        result = send_push_notification(
            ChannelKind.PUSH,
            make_recipient(),
            "s",
            "b",
            make_context(),
            registry=ConnectionRegistry(),
            feed=BrokenFeed(),
        )

        self.assertTrue(result["requested"])
        self.assertFalse(result["success"])
        self.assertEqual(result["error"], "db down")

    def test_send_push_notification_needs_user_id(self) -> None:
        result = send_push_notification(
            ChannelKind.PUSH,
            make_recipient(user_id=None),
            "s",
            "b",
            make_context(),
            registry=ConnectionRegistry(),
        )
        self.assertFalse(result["requested"])


class ProcessChannelsTests(unittest.TestCase):
    def test_all_kind_with_user_id_only_attempts_push_only(self) -> None:
        calls: list[str] = []

        def fake_send_email(**_kwargs: Any) -> str:
            calls.append("email")
            return "mg"

        def fake_send_sms(**_kwargs: Any) -> str:
            calls.append("sms")
            return "sm"

        template = Template(key="T", kind=ChannelKind.ALL, subject="s", body="b", sms_body="x")
        results = process_notification_channels(
            template,
            "s",
            "b",
            {},
            Recipient(user_id="user-1"),
            make_context(),
            send_email=fake_send_email,
            send_sms=fake_send_sms,
            registry=ConnectionRegistry(),
        )

        self.assertEqual([item["channel"] for item in results], ["push", "email", "sms"])
        self.assertEqual([item["requested"] for item in results], [True, False, False])
        self.assertEqual(calls, [])
        self.assertEqual(reduce_channel_results(results)["status"], DispatchStatus.SENT)


class ReduceChannelResultsTests(unittest.TestCase):
    def _result(
        self,
        channel: str,
        *,
        requested: bool = True,
        success: bool,
        message_id: str | None = None,
    ) -> dict[str, Any]:
        return {
            "channel": channel,
            "requested": requested,
            "success": success,
            "error": None if success else "boom",
            "message_id": message_id,
        }

    def test_no_success_is_failed_with_fixed_message(self) -> None:
        outcome = reduce_channel_results(
            [self._result("email", success=False), self._result("sms", success=False)]
        )
        self.assertEqual(outcome["status"], DispatchStatus.FAILED)
        self.assertEqual(outcome["error"], "No notification channels were successful")
        self.assertEqual(outcome["error"], NO_CHANNEL_SUCCEEDED)

    def test_nothing_requested_is_failed(self) -> None:
        outcome = reduce_channel_results([self._result("push", requested=False, success=False)])
        self.assertEqual(outcome["status"], DispatchStatus.FAILED)

    def test_any_success_is_sent(self) -> None:
        outcome = reduce_channel_results(
            [self._result("email", success=False), self._result("sms", success=True, message_id="SM1")]
        )
        self.assertEqual(outcome["status"], DispatchStatus.SENT)
        self.assertIsNone(outcome["error"])
        self.assertEqual(outcome["external_id"], "SM1")

    def test_email_id_wins_over_sms_id(self) -> None:
        outcome = reduce_channel_results(
            [
                self._result("push", success=True),
                self._result("email", success=True, message_id="mg-1"),
                self._result("sms", success=True, message_id="SM1"),
            ]
        )
        self.assertEqual(outcome["external_id"], "mg-1")


if __name__ == "__main__":
    unittest.main()
