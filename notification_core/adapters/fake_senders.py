"""Console sender adapters for local runs and disabled channels.

They have the same keyword signatures as the real senders and return a
synthetic message id, so the dispatch log looks the same either way.
"""

from __future__ import annotations

import uuid


def send_email_via_console(*, to_email: str, subject: str, html_body: str) -> str:
    print("[EMAIL]")
    print(f"to={to_email}")
    print(f"subject={subject}")
    print(f"body={html_body}")
    return f"console-email-{uuid.uuid4().hex[:12]}"


def send_sms_via_console(*, to_phone_e164: str, message: str) -> str:
    print("[SMS]")
    print(f"to={to_phone_e164}")
    print(f"message={message}")
    return f"console-sms-{uuid.uuid4().hex[:12]}"
