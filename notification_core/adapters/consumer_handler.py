"""Consumer-handler adapter functions (Kafka-like flow without Kafka).

Mental model refresher:
- This is the controller-like entrypoint for event processing.
- Topics are bound once at startup: topic -> (decoder, handler).
- Flow:
  record -> binding lookup -> decoder -> router handler -> commit
- Records that cannot be decoded (or arrive on an unbound topic) are
  rejected; the runtime decides whether to dead-letter them.
- Decoded records are always committed. Handlers report failures in their
  result instead of raising, so a bad event never causes a redelivery storm.
"""

from __future__ import annotations

from functools import partial
from typing import Any, Callable, Mapping, NamedTuple, Sequence

from ..application.router import (
    EVENT_ATTENDANCE_ACCEPTED,
    INVITATION_RESPONDED,
    INVITATION_SENT,
    JOIN_REQUEST_RESPONDED,
    JOIN_REQUEST_SENT,
    EventRouter,
)
from ..config import TopicSettings
from ..types import Event, EventDict, HandlingResult
from .payload import (
    parse_event_attendance_accepted,
    parse_invitation_responded,
    parse_invitation_sent,
    parse_join_request_responded,
    parse_join_request_sent,
)

Record = Mapping[str, Any]
CommitFn = Callable[[Record], None]
RejectFn = Callable[[Record, str], None]
Decoder = Callable[[Event], EventDict]
Handler = Callable[[EventDict], HandlingResult]


class TopicBinding(NamedTuple):
    topic: str
    event_type: str
    decoder: Decoder
    handler: Handler


def build_topic_bindings(router: EventRouter, topics: TopicSettings) -> dict[str, TopicBinding]:
    """Startup-time registration table consulted by `handle_message`."""
    table = [
        (topics.join_request_sent, JOIN_REQUEST_SENT, parse_join_request_sent),
        (topics.join_request_responded, JOIN_REQUEST_RESPONDED, parse_join_request_responded),
        (topics.invitation_sent, INVITATION_SENT, parse_invitation_sent),
        (topics.invitation_responded, INVITATION_RESPONDED, parse_invitation_responded),
        (
            topics.event_attendance_accepted,
            EVENT_ATTENDANCE_ACCEPTED,
            parse_event_attendance_accepted,
        ),
    ]
    return {
        topic: TopicBinding(topic, event_type, decoder, partial(router.handle_event, event_type))
        for topic, event_type, decoder in table
    }


def handle_message(
    record: Record,
    *,
    bindings: Mapping[str, TopicBinding],
    commit: CommitFn,
    reject: RejectFn | None = None,
) -> dict[str, Any]:
    """Handle one incoming record and decide commit/reject."""
    binding = bindings.get(str(record.get("topic")))
    if binding is None:
        error = f"unknown_topic: {record.get('topic')}"
        if reject is not None:
            reject(record, error)
        return _message_result(record, "unknown_topic", error=error)

    try:
        payload = _get_record_payload(record)
        event = binding.decoder(payload)
    except Exception as exc:
        error = f"parse_failed: {exc}"
        if reject is not None:
            reject(record, error)
        return _message_result(record, "parse_failed", event_type=binding.event_type, error=error)

    handling = binding.handler(event)
    commit(record)
    return _message_result(
        record,
        "processed_and_committed",
        event_type=binding.event_type,
        event=event,
        handling=handling,
        should_commit=True,
    )


def handle_batch(
    records: Sequence[Record],
    *,
    bindings: Mapping[str, TopicBinding],
    commit: CommitFn,
    reject: RejectFn | None = None,
) -> list[dict[str, Any]]:
    """Handle a batch of records sequentially using `handle_message`."""
    return [
        handle_message(record, bindings=bindings, commit=commit, reject=reject)
        for record in records
    ]


def _get_record_payload(record: Record) -> EventDict:
    payload = record.get("value")
    if not isinstance(payload, dict):
        raise ValueError("record.value must be a dict payload")
    return payload


def _message_result(
    record: Record,
    status: str,
    *,
    event_type: str | None = None,
    event: EventDict | None = None,
    handling: HandlingResult | None = None,
    should_commit: bool = False,
    error: str | None = None,
) -> dict[str, Any]:
    return {
        "status": status,
        "record_meta": _record_meta(record),
        "event_type": event_type,
        "event": event,
        "handling": handling,
        "should_commit": should_commit,
        "error": error,
    }


def _record_meta(record: Record) -> dict[str, Any]:
    return {
        "topic": record.get("topic"),
        "partition": record.get("partition"),
        "offset": record.get("offset"),
    }
