"""Kafka transport adapters for publishing and consuming notification events.

Mental model refresher:
- This module is transport glue to Kafka itself.
- One consumer subscribes to every bound topic and maps Kafka records into
  the consumer-handler flow.
- Business/channel logic still lives in domain/application layers.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from datetime import UTC, datetime
from typing import Any, Callable, Mapping

from ..config import env_bool, env_float, env_int, required_env
from .consumer_handler import TopicBinding, handle_message

logger = logging.getLogger(__name__)


def publish_event(
    topic: str,
    payload: Mapping[str, Any],
    *,
    key: str | None = None,
) -> dict[str, Any]:
    """Publish one JSON event to Kafka and return the record metadata."""
    _KafkaConsumer, KafkaProducer, _TopicPartition, _OffsetAndMetadata = _import_kafka_python()
    send_timeout_seconds = env_float("KAFKA_SEND_TIMEOUT_SECONDS", 10.0)

    producer = KafkaProducer(
        bootstrap_servers=_bootstrap_servers_from_env(),
        value_serializer=_serialize_json_object,
        acks=os.getenv("KAFKA_PRODUCER_ACKS", "all"),
    )
    try:
        future = producer.send(
            topic,
            value=dict(payload),
            key=key.encode("utf-8") if key else None,
        )
        metadata = future.get(timeout=send_timeout_seconds)
        producer.flush(timeout=send_timeout_seconds)
    finally:
        producer.close()

    return {
        "topic": metadata.topic,
        "partition": metadata.partition,
        "offset": metadata.offset,
    }


def run_notification_worker_forever(
    bindings: Mapping[str, TopicBinding],
    *,
    stop: threading.Event | None = None,
) -> int:
    """Run the Kafka consumer loop over every bound topic.

    Decode failures and unbound topics go to `<topic>.dlq` (when enabled)
    and are committed once dead-lettered; decoded records are committed
    after their handler returns.
    """
    KafkaConsumer, KafkaProducer, TopicPartition, OffsetAndMetadata = _import_kafka_python()
    bootstrap_servers = _bootstrap_servers_from_env()
    topics = sorted(bindings)
    group_id = os.getenv("KAFKA_GROUP_ID", "notification-service")
    poll_timeout_ms = _poll_timeout_ms_from_env()
    max_records = env_int("KAFKA_MAX_RECORDS_PER_POLL", 50)

    consumer = KafkaConsumer(
        *topics,
        bootstrap_servers=bootstrap_servers,
        group_id=group_id,
        enable_auto_commit=False,
        auto_offset_reset=os.getenv("KAFKA_AUTO_OFFSET_RESET", "earliest"),
    )
    dead_letters = _DeadLetterPublisher.from_env(KafkaProducer, bootstrap_servers)
    logger.info(
        "[WORKER START] topics=%s group_id=%s dlq_enabled=%s",
        ",".join(topics),
        group_id,
        dead_letters.enabled,
    )

    def commit(message: Any) -> None:
        partition = TopicPartition(message.topic, int(message.partition))
        offset = _offset_and_metadata(OffsetAndMetadata, int(message.offset) + 1)
        consumer.commit(offsets={partition: offset})
        logger.debug(
            "[COMMIT] topic=%s partition=%s offset=%s",
            message.topic,
            message.partition,
            message.offset,
        )

    try:
        while stop is None or not stop.is_set():
            batches = consumer.poll(timeout_ms=poll_timeout_ms, max_records=max_records)
            for records in (batches or {}).values():
                for message in records:
                    process_kafka_message(
                        message, bindings=bindings, commit=commit, dead_letters=dead_letters
                    )
    except KeyboardInterrupt:
        logger.info("[WORKER STOP] received keyboard interrupt")
        return 0
    except Exception as exc:
        logger.exception("[WORKER ERROR] %s", exc)
        return 1
    finally:
        _close_quietly(consumer.close)
        dead_letters.close()

    logger.info("[WORKER STOP] stop requested")
    return 0


def process_kafka_message(
    message: Any,
    *,
    bindings: Mapping[str, TopicBinding],
    commit: Callable[[Any], None],
    dead_letters: "_DeadLetterPublisher",
) -> dict[str, Any] | None:
    """Decode one consumer record and run it through `handle_message`.

    A rejected record is committed only once it reached the dead-letter
    topic; otherwise it stays uncommitted and is redelivered.
    """
    meta = {
        "topic": message.topic,
        "partition": int(message.partition),
        "offset": int(message.offset),
    }

    def reject(record: Mapping[str, Any], reason: str) -> None:
        if dead_letters.publish(meta, record.get("value"), reason):
            commit(message)
        else:
            logger.error(
                "[NO-COMMIT] topic=%s partition=%s offset=%s reason=%s",
                meta["topic"],
                meta["partition"],
                meta["offset"],
                reason,
            )

    try:
        payload = _deserialize_json_object(message.value)
    except Exception as exc:
        reject({"value": message.value}, f"decode_failed: {exc}")
        return None

    result = handle_message(
        {**meta, "value": payload},
        bindings=bindings,
        commit=lambda _record: commit(message),
        reject=reject,
    )
    handling = result["handling"] or {}
    logger.info(
        "[RESULT] topic=%s offset=%s status=%s handling=%s error=%s",
        meta["topic"],
        meta["offset"],
        result["status"],
        handling.get("status"),
        result["error"] or handling.get("error"),
    )
    return result


class _DeadLetterPublisher:
    """Publishes rejected records to `<source topic>.dlq`."""

    def __init__(self, producer: Any | None, send_timeout_seconds: float) -> None:
        self.producer = producer
        self.send_timeout_seconds = send_timeout_seconds

    @classmethod
    def from_env(cls, producer_type: Any, bootstrap_servers: list[str]) -> "_DeadLetterPublisher":
        send_timeout_seconds = env_float(
            "KAFKA_DLQ_SEND_TIMEOUT_SECONDS",
            env_float("KAFKA_SEND_TIMEOUT_SECONDS", 10.0),
        )
        if not env_bool("KAFKA_DLQ_ENABLED", default=True):
            return cls(None, send_timeout_seconds)
        producer = producer_type(
            bootstrap_servers=bootstrap_servers,
            value_serializer=_serialize_json_object,
            acks=os.getenv("KAFKA_PRODUCER_ACKS", "all"),
        )
        return cls(producer, send_timeout_seconds)

    @property
    def enabled(self) -> bool:
        return self.producer is not None

    def publish(self, meta: Mapping[str, Any], source_payload: Any, reason: str) -> bool:
        if self.producer is None:
            return False

        dlq_payload = _build_dlq_payload(
            source_topic=meta["topic"],
            source_partition=meta["partition"],
            source_offset=meta["offset"],
            source_payload=source_payload,
            failure_reason=reason,
        )
        try:
            future = self.producer.send(f"{meta['topic']}.dlq", value=dlq_payload)
            metadata = future.get(timeout=self.send_timeout_seconds)
        except Exception as exc:
            logger.error(
                "[DLQ ERROR] source_topic=%s source_offset=%s reason=%s error=%s",
                meta["topic"],
                meta["offset"],
                reason,
                exc,
            )
            return False

        logger.warning(
            "[DLQ] source_topic=%s source_offset=%s dlq_topic=%s dlq_offset=%s reason=%s",
            meta["topic"],
            meta["offset"],
            metadata.topic,
            metadata.offset,
            reason,
        )
        return True

    def close(self) -> None:
        if self.producer is None:
            return
        _close_quietly(lambda: self.producer.flush(timeout=self.send_timeout_seconds))
        _close_quietly(self.producer.close)


def _import_kafka_python() -> tuple[Any, Any, Any, Any]:
    try:
        from kafka import KafkaConsumer, KafkaProducer, TopicPartition
        from kafka.structs import OffsetAndMetadata
    except Exception as exc:
        raise RuntimeError(
            "Kafka support requires `kafka-python`. Install with: pip install kafka-python"
        ) from exc
    return KafkaConsumer, KafkaProducer, TopicPartition, OffsetAndMetadata


def _bootstrap_servers_from_env() -> list[str]:
    raw = required_env("KAFKA_BOOTSTRAP_SERVERS")
    servers = [item.strip() for item in raw.split(",") if item.strip()]
    if not servers:
        raise RuntimeError("KAFKA_BOOTSTRAP_SERVERS must include at least one host:port")
    return servers


def _poll_timeout_ms_from_env() -> int:
    timeout_ms = int(env_float("KAFKA_POLL_TIMEOUT_SECONDS", 1.0) * 1000)
    if timeout_ms <= 0:
        raise RuntimeError("KAFKA_POLL_TIMEOUT_SECONDS must be > 0")
    return timeout_ms


def _serialize_json_object(payload: Mapping[str, Any]) -> bytes:
    return json.dumps(payload, separators=(",", ":"), default=str).encode("utf-8")


def _deserialize_json_object(raw: bytes | str | Mapping[str, Any]) -> dict[str, Any]:
    if isinstance(raw, Mapping):
        return dict(raw)

    if isinstance(raw, bytes):
        text = raw.decode("utf-8")
    elif isinstance(raw, str):
        text = raw
    else:
        raise ValueError(f"Unsupported Kafka payload type: {type(raw).__name__}")

    parsed = json.loads(text)
    if not isinstance(parsed, dict):
        raise ValueError("Kafka payload must decode to a JSON object")
    return parsed


def _build_dlq_payload(
    *,
    source_topic: str,
    source_partition: int,
    source_offset: int,
    source_payload: Any,
    failure_reason: str,
) -> dict[str, Any]:
    return {
        "event_type": f"{source_topic}.dlq",
        "failed_at": datetime.now(tz=UTC).isoformat(),
        "failure_reason": failure_reason,
        "source": {
            "topic": source_topic,
            "partition": source_partition,
            "offset": source_offset,
        },
        "payload": _to_json_compatible(source_payload),
    }


def _to_json_compatible(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, Mapping):
        return {str(key): _to_json_compatible(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_to_json_compatible(item) for item in value]
    return repr(value)


def _close_quietly(close: Any) -> None:
    try:
        close()
    except Exception as exc:
        logger.warning("[WORKER CLOSE] error=%s", exc)


def _offset_and_metadata(offset_and_metadata_type: Any, offset: int) -> Any:
    """Build kafka-python OffsetAndMetadata across version signatures."""
    try:
        return offset_and_metadata_type(offset, "", -1)
    except TypeError:
        try:
            return offset_and_metadata_type(offset, "", None)
        except TypeError:
            return offset_and_metadata_type(offset, "")
