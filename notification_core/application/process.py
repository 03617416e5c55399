"""Application orchestration for notification channel execution.

Mental model refresher:
- Application layer coordinates use-case flow across domain modules.
- It is the right place for cross-channel workflow logic.
- In this module it:
  1) calls push, email and sms domain logic in that order
  2) reduces the channel results into one dispatch outcome
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Sequence

from ..domain.email import send_email_notification
from ..domain.models import DispatchContext, DispatchStatus, Recipient, Template
from ..domain.push import NotificationFeed, send_push_notification
from ..domain.sms import send_sms_notification
from ..types import ChannelResult, SendEmailFn, SendSMSFn, Variables

if TYPE_CHECKING:
    from ..adapters.connections import ConnectionRegistry

NO_CHANNEL_SUCCEEDED = "No notification channels were successful"


def process_notification_channels(
    template: Template,
    subject: str,
    body: str,
    variables: Variables,
    recipient: Recipient,
    context: DispatchContext,
    *,
    send_email: SendEmailFn,
    send_sms: SendSMSFn,
    registry: ConnectionRegistry | None = None,
    feed: NotificationFeed | None = None,
) -> list[ChannelResult]:
    """Attempt every channel the template kind allows for this recipient."""
    return [
        send_push_notification(
            template.kind, recipient, subject, body, context, registry=registry, feed=feed
        ),
        send_email_notification(template.kind, recipient, subject, body, send_email),
        send_sms_notification(template.kind, recipient, template.sms_body, variables, send_sms),
    ]


def reduce_channel_results(channel_results: Sequence[ChannelResult]) -> dict[str, Any]:
    """Any successful channel means SENT; otherwise FAILED.

    The external id is the email provider id when there is one, else the
    first other provider id reported.
    """
    succeeded = [item for item in channel_results if item["requested"] and item["success"]]
    if not succeeded:
        return {
            "status": DispatchStatus.FAILED,
            "error": NO_CHANNEL_SUCCEEDED,
            "external_id": None,
        }

    ids = {item["channel"]: item.get("message_id") for item in succeeded}
    external_id = ids.get("email") or next(
        (value for value in ids.values() if value), None
    )
    return {"status": DispatchStatus.SENT, "error": None, "external_id": external_id}
