"""Multi-channel dispatch: render once, try every eligible channel, record once."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Callable

from ..domain.models import (
    DispatchContext,
    DispatchRecord,
    DispatchStatus,
    Recipient,
    Template,
    utcnow,
)
from ..domain.push import NotificationFeed
from ..domain.render import render_rich
from ..errors import TemplateNotFound
from ..types import SendEmailFn, SendSMSFn, Variables
from .ports import DispatchLog, TemplateStore
from .process import process_notification_channels, reduce_channel_results

if TYPE_CHECKING:
    from ..adapters.connections import ConnectionRegistry

logger = logging.getLogger(__name__)


class DispatchEngine:
    """Synchronous dispatcher. No queuing, retry or timeout of its own;
    senders are expected to raise rather than hang."""

    def __init__(
        self,
        *,
        templates: TemplateStore,
        dispatch_log: DispatchLog,
        send_email: SendEmailFn,
        send_sms: SendSMSFn,
        registry: ConnectionRegistry | None = None,
        feed: NotificationFeed | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.templates = templates
        self.dispatch_log = dispatch_log
        self.send_email = send_email
        self.send_sms = send_sms
        self.registry = registry
        self.feed = feed
        self.clock = clock

    def find_template(self, key: str) -> Template:
        template = self.templates.get(key)
        if template is None:
            raise TemplateNotFound(key)
        if not template.active:
            raise TemplateNotFound(key, "is inactive")
        return template

    def resolve_template(self, template_or_key: Template | str) -> Template | None:
        """Return the template, or None (logged) when it cannot be used."""
        if isinstance(template_or_key, Template):
            return template_or_key
        try:
            return self.find_template(template_or_key)
        except TemplateNotFound as exc:
            logger.error("[TEMPLATE MISSING] template_key=%s error=%s", template_or_key, exc)
            return None

    def dispatch(
        self,
        template_or_key: Template | str,
        variables: Variables,
        recipient: Recipient,
        context: DispatchContext,
    ) -> DispatchRecord | None:
        """Deliver one notification and append exactly one audit record.

        Returns None without recording anything when the template is missing.
        """
        template = self.resolve_template(template_or_key)
        if template is None:
            return None

        base = {
            "template_key": template.key,
            "kind": template.kind,
            "source_event_id": context.source_event_id,
            "user_id": recipient.user_id,
            "email": recipient.email,
            "phone": recipient.phone,
        }

        try:
            subject = render_rich(template.subject, variables)
            body = render_rich(template.body, variables)
        except Exception as exc:
            logger.error("[RENDER ERROR] template_key=%s error=%s", template.key, exc)
            record = DispatchRecord(status=DispatchStatus.FAILED, error=str(exc), **base)
            return self.dispatch_log.append(record)

        channel_results = process_notification_channels(
            template,
            subject,
            body,
            variables,
            recipient,
            context,
            send_email=self.send_email,
            send_sms=self.send_sms,
            registry=self.registry,
            feed=self.feed,
        )
        outcome = reduce_channel_results(channel_results)
        sent = outcome["status"] is DispatchStatus.SENT

        record = DispatchRecord(
            status=outcome["status"],
            subject=subject,
            body=body,
            sent_at=self.clock() if sent else None,
            error=outcome["error"],
            external_id=outcome["external_id"],
            **base,
        )
        logger.info(
            "[DISPATCH] template_key=%s user_id=%s status=%s channels=%s",
            template.key,
            recipient.user_id,
            record.status,
            ",".join(item["channel"] for item in channel_results if item["requested"]) or "-",
        )
        return self.dispatch_log.append(record)
