"""Shared type aliases for the notification package."""

from __future__ import annotations

from typing import Any, Callable, Mapping, Protocol

Event = Mapping[str, Any]
EventDict = dict[str, Any]
Variables = Mapping[str, Any]
ChannelResult = dict[str, Any]
HandlingResult = dict[str, Any]
Payload = Mapping[str, Any]

# Senders return the provider message id (or None when the provider has none).
SendEmailFn = Callable[..., "str | None"]
SendSMSFn = Callable[..., "str | None"]


class Session(Protocol):
    """Live push session handle as seen by the connection registry."""

    @property
    def is_open(self) -> bool: ...

    def send(self, message: str) -> None: ...

    def close(self) -> None: ...
