"""In-process registry of live push sessions.

One session per user id. Registering a second session for the same user
replaces the first; the caller owns closing the superseded session
(`PushSessionHooks` does). Sends happen outside the lock so a slow socket
never blocks other users, and a session that is closed or fails a send is
dropped.

The registry only sees sessions opened against this process. Fan-out across
several worker processes needs an external pub/sub layer.
"""

from __future__ import annotations

import json
import logging
import threading

from ..types import Payload, Session

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    def register(self, user_id: str, session: Session) -> Session | None:
        """Store `session` for `user_id` and return the session it replaced."""
        with self._lock:
            previous = self._sessions.get(user_id)
            self._sessions[user_id] = session
            total = len(self._sessions)
        logger.info("[WS CONNECT] user_id=%s total_connections=%d", user_id, total)
        if previous is not None and previous is not session:
            return previous
        return None

    def unregister(self, user_id: str, session: Session | None = None) -> bool:
        """Drop the user's session.

        With `session` given, the entry is removed only while it still points
        at that session, so a late close of a replaced socket cannot evict
        its successor.
        """
        with self._lock:
            current = self._sessions.get(user_id)
            if current is None or (session is not None and current is not session):
                return False
            del self._sessions[user_id]
            total = len(self._sessions)
        logger.info("[WS DISCONNECT] user_id=%s total_connections=%d", user_id, total)
        return True

    def send_to_user(self, user_id: str, payload: Payload) -> bool:
        with self._lock:
            session = self._sessions.get(user_id)

        if session is None:
            logger.info("[WS SKIP] user_id=%s reason=not_connected", user_id)
            return False
        if not _is_open(session):
            logger.info("[WS SKIP] user_id=%s reason=session_closed", user_id)
            self.unregister(user_id, session)
            return False

        try:
            session.send(_encode(payload))
        except Exception as exc:
            logger.error("[WS ERROR] user_id=%s error=%s", user_id, exc)
            self.unregister(user_id, session)
            return False

        logger.debug("[WS SENT] user_id=%s", user_id)
        return True

    def broadcast(self, payload: Payload) -> int:
        """Send `payload` to every open session; returns how many received it.

        Closed or failing sessions are dropped from the registry.
        """
        try:
            message = _encode(payload)
        except Exception as exc:
            logger.error("[WS BROADCAST ERROR] encode_failed error=%s", exc)
            return 0

        with self._lock:
            snapshot = list(self._sessions.items())

        delivered = 0
        for user_id, session in snapshot:
            if not _is_open(session):
                self.unregister(user_id, session)
                continue
            try:
                session.send(message)
            except Exception as exc:
                logger.error("[WS BROADCAST ERROR] user_id=%s error=%s", user_id, exc)
                self.unregister(user_id, session)
                continue
            delivered += 1

        logger.info("[WS BROADCAST] delivered=%d sessions=%d", delivered, len(snapshot))
        return delivered

    def is_online(self, user_id: str) -> bool:
        with self._lock:
            session = self._sessions.get(user_id)
        return session is not None and _is_open(session)

    def active_count(self) -> int:
        with self._lock:
            return len(self._sessions)


def _is_open(session: Session) -> bool:
    try:
        return bool(session.is_open)
    except Exception:
        return False


def _encode(payload: Payload) -> str:
    return json.dumps(dict(payload), separators=(",", ":"), default=str)
