"""User-directory lookups for contact details and consent flags."""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.parse
import urllib.request

from ..config import DirectorySettings
from ..domain.models import UserContact
from ..errors import BulkheadFullError, CircuitOpenError, DirectoryLookupError
from .resilience import Bulkhead, CircuitBreaker, RetryPolicy

logger = logging.getLogger(__name__)


class HttpDirectoryClient:
    """GET `<base_url><user_endpoint>` with `{id}` replaced by the user id.

    404 means the user does not exist and yields None. Any other failure
    raises DirectoryLookupError.
    """

    def __init__(self, settings: DirectorySettings) -> None:
        self.settings = settings

    def url_for(self, user_id: str) -> str:
        path = self.settings.user_endpoint.replace("{id}", urllib.parse.quote(user_id, safe=""))
        return f"{self.settings.base_url}{path}"

    def get_user(self, user_id: str) -> UserContact | None:
        request = urllib.request.Request(self.url_for(user_id), method="GET")
        request.add_header("Accept", "application/json")
        try:
            with urllib.request.urlopen(request, timeout=self.settings.timeout_seconds) as response:
                status = int(response.getcode())
                if status < 200 or status >= 300:
                    raise DirectoryLookupError(f"Directory returned status {status}")
                raw = response.read()
        except urllib.error.HTTPError as exc:
            if exc.code == 404:
                logger.info("[DIRECTORY] user_id=%s not found", user_id)
                return None
            raise DirectoryLookupError(f"Directory HTTP {exc.code} for user {user_id}") from exc
        except urllib.error.URLError as exc:
            raise DirectoryLookupError(f"Directory unreachable: {exc.reason}") from exc

        return UserContact.from_dict(_decode_profile(raw, user_id))


class ResilientDirectoryClient:
    """Wraps a directory client in retry, circuit breaker and bulkhead.

    When the directory is shedding load (open circuit, full bulkhead) the
    lookup degrades to None so callers skip the user instead of failing.
    Exhausted retries still raise DirectoryLookupError.
    """

    def __init__(
        self,
        client,
        *,
        retry: RetryPolicy,
        breaker: CircuitBreaker,
        bulkhead: Bulkhead,
    ) -> None:
        self.client = client
        self.retry = retry
        self.breaker = breaker
        self.bulkhead = bulkhead

    @classmethod
    def from_settings(cls, settings: DirectorySettings, client=None) -> "ResilientDirectoryClient":
        return cls(
            client if client is not None else HttpDirectoryClient(settings),
            retry=RetryPolicy(
                max_attempts=settings.retry_attempts,
                backoff_seconds=settings.retry_backoff_seconds,
            ),
            breaker=CircuitBreaker(
                name="user-directory",
                failure_threshold=settings.circuit_failure_threshold,
                recovery_timeout=settings.circuit_recovery_seconds,
            ),
            bulkhead=Bulkhead(
                name="user-directory",
                max_concurrent=settings.bulkhead_max_concurrent,
                max_wait=settings.bulkhead_max_wait_seconds,
            ),
        )

    def get_user(self, user_id: str) -> UserContact | None:
        try:
            return self.retry.call(self._guarded_lookup, user_id)
        except (CircuitOpenError, BulkheadFullError) as exc:
            logger.warning("[DIRECTORY UNAVAILABLE] user_id=%s error=%s", user_id, exc)
            return None

    def _guarded_lookup(self, user_id: str) -> UserContact | None:
        return self.breaker.call(self.bulkhead.call, self.client.get_user, user_id)


def _decode_profile(raw: bytes | str, user_id: str) -> dict:
    text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else str(raw or "")
    if not text.strip():
        raise DirectoryLookupError(f"Directory returned an empty body for user {user_id}")
    try:
        parsed = json.loads(text)
    except ValueError as exc:
        raise DirectoryLookupError(f"Directory returned invalid JSON for user {user_id}") from exc
    if not isinstance(parsed, dict) or not parsed:
        raise DirectoryLookupError(f"Directory returned no profile object for user {user_id}")
    return parsed
