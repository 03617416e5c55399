"""Session lifecycle hooks a push transport calls into.

The transport (a WebSocket server, an SSE endpoint, a test double) owns the
socket and the authentication that yields a user id. It reports connect,
close and transport errors here; the hooks keep the connection registry in
step with what is actually open.
"""

from __future__ import annotations

import logging

from ..types import Session
from .connections import ConnectionRegistry

logger = logging.getLogger(__name__)


class PushSessionHooks:
    def __init__(self, registry: ConnectionRegistry) -> None:
        self.registry = registry

    def on_connect(self, user_id: str | None, session: Session) -> bool:
        """Register `session`; returns False when it was rejected.

        A session without a user id is closed. A session replaced by this
        one is closed too.
        """
        user_id = (user_id or "").strip()
        if not user_id:
            logger.warning("[WS REJECT] reason=missing_user_id")
            _close_session(session, user_id="-")
            return False

        previous = self.registry.register(user_id, session)
        if previous is not None:
            logger.info("[WS SUPERSEDED] user_id=%s", user_id)
            _close_session(previous, user_id=user_id)
        return True

    def on_close(self, user_id: str | None, session: Session) -> bool:
        if not user_id:
            return False
        return self.registry.unregister(user_id, session)

    def on_transport_error(
        self, user_id: str | None, session: Session, exc: BaseException
    ) -> bool:
        logger.error("[WS TRANSPORT ERROR] user_id=%s error=%s", user_id or "-", exc)
        if not user_id:
            return False
        return self.registry.unregister(user_id, session)


def _close_session(session: Session, *, user_id: str) -> None:
    try:
        session.close()
    except Exception as exc:
        logger.warning("[WS CLOSE ERROR] user_id=%s error=%s", user_id, exc)
