"""Real provider adapters for production sending.

Mental model refresher:
- This module is an outbound adapter.
- It integrates with external providers using environment-variable config.
- Domain/application code only sees simple keyword sender callables that
  return the provider message id and raise on failure.
"""

from __future__ import annotations

import base64
import json
import os
import urllib.error
import urllib.parse
import urllib.request
from typing import Any

from ..config import env_float, required_env
from ..errors import ChannelSendError


def send_email_via_mailgun_from_env(*, to_email: str, subject: str, html_body: str) -> str | None:
    """Send an HTML email via the Mailgun REST API; returns the Mailgun id."""
    api_key = required_env("MAILGUN_API_KEY")
    domain = required_env("MAILGUN_DOMAIN")
    from_email = required_env("MAILGUN_FROM_EMAIL")
    base_url = os.getenv("MAILGUN_API_BASE_URL", "https://api.mailgun.net").rstrip("/")
    timeout_seconds = env_float("MAILGUN_TIMEOUT_SECONDS", 10.0)

    encoded_domain = urllib.parse.quote(domain, safe="")
    endpoint = f"{base_url}/v3/{encoded_domain}/messages"
    payload = urllib.parse.urlencode(
        {"from": from_email, "to": to_email, "subject": subject, "html": html_body}
    ).encode("utf-8")

    request = urllib.request.Request(endpoint, data=payload, method="POST")
    request.add_header("Authorization", _basic_auth_header("api", api_key))
    request.add_header("Content-Type", "application/x-www-form-urlencoded")

    body = _post("email", "Mailgun", request, timeout_seconds)
    message_id = body.get("id")
    return str(message_id) if message_id else None


def send_sms_via_twilio_from_env(*, to_phone_e164: str, message: str) -> str | None:
    """Send SMS via the Twilio REST API; returns the message SID."""
    account_sid = required_env("TWILIO_ACCOUNT_SID")
    auth_token = required_env("TWILIO_AUTH_TOKEN")
    from_phone = required_env("TWILIO_FROM_PHONE")
    base_url = os.getenv("TWILIO_API_BASE_URL", "https://api.twilio.com").rstrip("/")
    timeout_seconds = env_float("TWILIO_TIMEOUT_SECONDS", 10.0)

    endpoint = f"{base_url}/2010-04-01/Accounts/{account_sid}/Messages.json"
    payload = urllib.parse.urlencode(
        {"To": to_phone_e164, "From": from_phone, "Body": message}
    ).encode("utf-8")

    request = urllib.request.Request(endpoint, data=payload, method="POST")
    request.add_header("Authorization", _basic_auth_header(account_sid, auth_token))
    request.add_header("Content-Type", "application/x-www-form-urlencoded")

    body = _post("sms", "Twilio", request, timeout_seconds)
    sid = body.get("sid")
    return str(sid) if sid else None


def _post(
    channel: str,
    provider: str,
    request: urllib.request.Request,
    timeout_seconds: float,
) -> dict[str, Any]:
    try:
        with urllib.request.urlopen(request, timeout=timeout_seconds) as response:
            status = int(response.getcode())
            if status < 200 or status >= 300:
                raise ChannelSendError(channel, f"{provider} returned status {status}")
            raw = response.read()
    except urllib.error.HTTPError as exc:
        details = exc.read().decode("utf-8", errors="replace")
        raise ChannelSendError(
            channel, f"{provider} HTTP {exc.code}: {details[:300]}"
        ) from exc
    except urllib.error.URLError as exc:
        raise ChannelSendError(channel, f"{provider} unreachable: {exc.reason}") from exc

    return _json_object(raw)


def _json_object(raw: bytes | str) -> dict[str, Any]:
    text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else str(raw or "")
    try:
        parsed = json.loads(text) if text.strip() else {}
    except ValueError:
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _basic_auth_header(username: str, password: str) -> str:
    token = f"{username}:{password}".encode("utf-8")
    encoded = base64.b64encode(token).decode("ascii")
    return f"Basic {encoded}"
