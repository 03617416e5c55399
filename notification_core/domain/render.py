"""Placeholder substitution for notification templates.

Both modes share the `$${name}` marker:
- rich mode fills markup bodies (email/in-app) and HTML-escapes values;
  a key missing from the variables renders as an empty string.
- plain mode fills SMS bodies by literal replacement and leaves placeholders
  for unknown keys untouched.
"""

from __future__ import annotations

import re
from typing import Any

from markupsafe import escape

from ..errors import RenderError
from ..types import Variables

PLACEHOLDER_PATTERN = re.compile(r"\$\$\{([^}]+)\}")
SMS_MAX_LENGTH = 160


def render_rich(template: str | None, variables: Variables | None) -> str:
    if template is None:
        raise RenderError("Template body is missing")
    values = variables or {}

    def substitute(match: re.Match[str]) -> str:
        value = values.get(match.group(1))
        if value is None:
            return ""
        return str(escape(_stringify(value)))

    try:
        return PLACEHOLDER_PATTERN.sub(substitute, template)
    except RenderError:
        raise
    except Exception as exc:
        raise RenderError(f"Failed to render template: {exc}") from exc


def render_plain(template: str | None, variables: Variables | None) -> str:
    result = template if template is not None else ""
    if not variables:
        return result

    try:
        for key, value in variables.items():
            placeholder = "$${" + str(key) + "}"
            result = result.replace(placeholder, "" if value is None else _stringify(value))
    except Exception as exc:
        raise RenderError(f"Failed to render SMS template: {exc}") from exc
    return result


def truncate_sms(body: str, limit: int = SMS_MAX_LENGTH) -> str:
    if len(body) <= limit:
        return body
    return body[: limit - 3] + "..."


def _stringify(value: Any) -> str:
    return value if isinstance(value, str) else str(value)
