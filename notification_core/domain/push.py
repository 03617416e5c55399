"""Push (in-app) channel decision logic.

A push attempt stores the notification in the user's feed first, then hands
the stored entry to the connection registry. Live delivery is best-effort:
an offline user still counts as a successful push because the feed holds it.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from ..types import ChannelResult
from .models import ChannelKind, DispatchContext, FeedEntry, Recipient

if TYPE_CHECKING:
    from ..adapters.connections import ConnectionRegistry

logger = logging.getLogger(__name__)


class NotificationFeed(Protocol):
    def save(self, entry: FeedEntry) -> FeedEntry: ...


def send_push_notification(
    kind: ChannelKind,
    recipient: Recipient,
    subject: str,
    body: str,
    context: DispatchContext,
    *,
    registry: ConnectionRegistry | None,
    feed: NotificationFeed | None = None,
) -> ChannelResult:
    """Run push-channel rules and return a plain channel result dictionary."""
    if not kind.includes_push or not recipient.user_id:
        return _result(requested=False, success=False)

    entry = FeedEntry(
        user_id=recipient.user_id,
        title=subject,
        message=body,
        notification_type=context.kind,
        reference_id=context.reference_id,
        reference_type=context.reference_type,
    )
    try:
        if feed is not None:
            entry = feed.save(entry)
        if registry is not None:
            registry.send_to_user(recipient.user_id, entry.to_payload())
    except Exception as exc:
        logger.error("[PUSH ERROR] user_id=%s error=%s", recipient.user_id, exc)
        return _result(requested=True, success=False, error=str(exc))

    logger.info("[PUSH] user_id=%s feed_id=%s", recipient.user_id, entry.id)
    return _result(requested=True, success=True)


def _result(*, requested: bool, success: bool, error: str | None = None) -> ChannelResult:
    return {
        "channel": "push",
        "requested": requested,
        "success": success,
        "error": error,
        "message_id": None,
    }
