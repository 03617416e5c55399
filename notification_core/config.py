"""Environment-variable configuration helpers."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path


def required_env(name: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value.strip()


def env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    normalized = raw.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise RuntimeError(f"Invalid boolean value for {name}: {raw!r}")


def env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(f"Invalid number for {name}: {raw!r}") from exc


def env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"Invalid integer for {name}: {raw!r}") from exc


def load_env_file(path: Path) -> None:
    """Load `KEY=value` lines into the environment without overriding."""
    if not path.exists():
        return

    for line in path.read_text(encoding="utf-8").splitlines():
        text = line.strip()
        if not text or text.startswith("#") or "=" not in text:
            continue
        key, value = text.split("=", 1)
        key = key.strip()
        value = value.strip()
        if not key:
            continue
        if value.startswith(("'", '"')) and value.endswith(("'", '"')) and len(value) >= 2:
            value = value[1:-1]
        os.environ.setdefault(key, value)


def setup_logging() -> None:
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, log_level, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


@dataclass(frozen=True)
class TopicSettings:
    join_request_sent: str
    join_request_responded: str
    invitation_sent: str
    invitation_responded: str
    event_attendance_accepted: str

    @classmethod
    def from_env(cls) -> "TopicSettings":
        return cls(
            join_request_sent=os.getenv(
                "KAFKA_TOPIC_JOIN_REQUEST_SENT", "organizations.join-request.sent"
            ),
            join_request_responded=os.getenv(
                "KAFKA_TOPIC_JOIN_REQUEST_RESPONDED", "organizations.join-request.responded"
            ),
            invitation_sent=os.getenv(
                "KAFKA_TOPIC_INVITATION_SENT", "organizations.invitation.sent"
            ),
            invitation_responded=os.getenv(
                "KAFKA_TOPIC_INVITATION_RESPONDED", "organizations.invitation.responded"
            ),
            event_attendance_accepted=os.getenv(
                "KAFKA_TOPIC_EVENT_ATTENDANCE_ACCEPTED", "events.attendance.accepted"
            ),
        )


@dataclass(frozen=True)
class DirectorySettings:
    base_url: str
    user_endpoint: str
    timeout_seconds: float
    retry_attempts: int
    retry_backoff_seconds: float
    circuit_failure_threshold: int
    circuit_recovery_seconds: float
    bulkhead_max_concurrent: int
    bulkhead_max_wait_seconds: float

    @classmethod
    def from_env(cls) -> "DirectorySettings":
        return cls(
            base_url=os.getenv("USER_SERVICE_BASE_URL", "http://localhost:8082").rstrip("/"),
            user_endpoint=os.getenv("USER_SERVICE_USER_ENDPOINT", "/api/users/{id}"),
            timeout_seconds=env_float("USER_SERVICE_TIMEOUT_SECONDS", 10.0),
            retry_attempts=env_int("DIRECTORY_RETRY_ATTEMPTS", 3),
            retry_backoff_seconds=env_float("DIRECTORY_RETRY_BACKOFF_SECONDS", 0.5),
            circuit_failure_threshold=env_int("DIRECTORY_CIRCUIT_FAILURE_THRESHOLD", 5),
            circuit_recovery_seconds=env_float("DIRECTORY_CIRCUIT_RECOVERY_SECONDS", 30.0),
            bulkhead_max_concurrent=env_int("DIRECTORY_BULKHEAD_MAX_CONCURRENT", 10),
            bulkhead_max_wait_seconds=env_float("DIRECTORY_BULKHEAD_MAX_WAIT_SECONDS", 0.5),
        )


@dataclass(frozen=True)
class ServiceSettings:
    database_url: str
    templates_file: Path | None
    reminder_interval_seconds: float
    mark_sent_on_fallback: bool
    email_enabled: bool
    sms_enabled: bool

    @classmethod
    def from_env(cls) -> "ServiceSettings":
        templates_file = os.getenv("NOTIFICATION_TEMPLATES_FILE")
        return cls(
            database_url=os.getenv("NOTIFICATION_DATABASE_URL", "sqlite:///notifications.db"),
            templates_file=Path(templates_file) if templates_file else None,
            reminder_interval_seconds=env_float("REMINDER_INTERVAL_SECONDS", 1800.0),
            mark_sent_on_fallback=env_bool("REMINDER_MARK_SENT_ON_FALLBACK", default=False),
            email_enabled=env_bool("NOTIFY_EMAIL_ENABLED", default=True),
            sms_enabled=env_bool("NOTIFY_SMS_ENABLED", default=True),
        )
