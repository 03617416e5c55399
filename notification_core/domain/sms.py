"""SMS channel decision logic.

SMS goes out only when the template kind includes SMS, the recipient has a
phone number and the template carries an SMS body. The body is rendered in
plain mode and capped at 160 characters.
"""

from __future__ import annotations

import logging

from ..types import ChannelResult, SendSMSFn, Variables
from .models import ChannelKind, Recipient
from .render import render_plain, truncate_sms

logger = logging.getLogger(__name__)


def send_sms_notification(
    kind: ChannelKind,
    recipient: Recipient,
    sms_template: str | None,
    variables: Variables,
    send_sms: SendSMSFn,
) -> ChannelResult:
    """Run SMS-channel rules and return a plain channel result dictionary."""
    if not kind.includes_sms or not recipient.phone or sms_template is None:
        return _result(requested=False, success=False)

    try:
        message = truncate_sms(render_plain(sms_template, variables))
        message_id = send_sms(to_phone_e164=recipient.phone, message=message)
    except Exception as exc:
        logger.error("[SMS ERROR] to=%s error=%s", recipient.phone, exc)
        return _result(requested=True, success=False, error=str(exc))

    logger.info("[SMS] to=%s message_id=%s", recipient.phone, message_id)
    return _result(requested=True, success=True, message_id=message_id)


def _result(
    *,
    requested: bool,
    success: bool,
    error: str | None = None,
    message_id: str | None = None,
) -> ChannelResult:
    return {
        "channel": "sms",
        "requested": requested,
        "success": success,
        "error": error,
        "message_id": message_id,
    }
