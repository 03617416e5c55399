"""Email channel decision logic.

Mental model refresher:
- Domain modules hold channel/business rules.
- They decide what should happen for this channel:
  - does the template kind include this channel?
  - is the recipient address present?
  - what content goes out?
- They never raise: a sender failure becomes a failed channel result.
"""

from __future__ import annotations

import logging

from ..types import ChannelResult, SendEmailFn
from .models import ChannelKind, Recipient

logger = logging.getLogger(__name__)


def send_email_notification(
    kind: ChannelKind,
    recipient: Recipient,
    subject: str,
    html_body: str,
    send_email: SendEmailFn,
) -> ChannelResult:
    """Run email-channel rules and return a plain channel result dictionary."""
    if not kind.includes_email or not recipient.email:
        return _result(requested=False, success=False)

    try:
        message_id = send_email(to_email=recipient.email, subject=subject, html_body=html_body)
    except Exception as exc:
        logger.error("[EMAIL ERROR] to=%s error=%s", recipient.email, exc)
        return _result(requested=True, success=False, error=str(exc))

    logger.info("[EMAIL] to=%s message_id=%s", recipient.email, message_id)
    return _result(requested=True, success=True, message_id=message_id)


def _result(
    *,
    requested: bool,
    success: bool,
    error: str | None = None,
    message_id: str | None = None,
) -> ChannelResult:
    return {
        "channel": "email",
        "requested": requested,
        "success": success,
        "error": error,
        "message_id": message_id,
    }
