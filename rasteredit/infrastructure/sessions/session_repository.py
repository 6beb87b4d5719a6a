from __future__ import annotations

import logging
import os
import time
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime

from rasteredit.domain.entities.image import Image
from rasteredit.domain.services.edit_history import EditHistory

logger = logging.getLogger(__name__)

DEFAULT_MAX_HISTORY = 30
DEFAULT_SESSION_TTL = 3600

# module-level in-memory store; sessions are never persisted.
# RASTEREDIT_MAX_HISTORY=0 disables the history cap; sessions idle for longer
# than RASTEREDIT_SESSION_TTL seconds are evicted (0 keeps them forever).
_MEM_SESSIONS: dict[str, "EditSession"] = {}


@dataclass
class EditSession:
    id: str
    history: EditHistory
    source_mime_type: str
    original_filename: str | None = None
    user_id: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    # set while an operation is in flight; clients use it to serialize input
    processing: bool = False
    last_access: float = field(default_factory=time.monotonic)


class SessionNotFound(LookupError):
    """No editing session with the requested id."""


class SessionRepository:
    """Keeps one EditHistory per editing session in process memory."""

    def __init__(self, store: dict[str, EditSession] | None = None) -> None:
        self._store = _MEM_SESSIONS if store is None else store
        self.max_history = int(os.getenv("RASTEREDIT_MAX_HISTORY", str(DEFAULT_MAX_HISTORY)))
        self.ttl = float(os.getenv("RASTEREDIT_SESSION_TTL", str(DEFAULT_SESSION_TTL)))

    def create(
        self,
        original: Image,
        source_mime_type: str,
        *,
        original_filename: str | None = None,
        user_id: str | None = None,
        session_id: str | None = None,
    ) -> EditSession:
        """Create a session, or replace the one at ``session_id`` (its history is destroyed)."""
        self.purge_expired()
        sid = session_id or uuid.uuid4().hex
        if sid in self._store:
            logger.info("Replacing source of session %s; previous history discarded", sid)
        session = EditSession(
            id=sid,
            history=EditHistory(original, max_entries=self.max_history or None),
            source_mime_type=source_mime_type,
            original_filename=original_filename,
            user_id=user_id,
        )
        self._store[sid] = session
        return session

    def get(self, session_id: str) -> EditSession | None:
        self.purge_expired()
        session = self._store.get(session_id)
        if session is not None:
            session.last_access = time.monotonic()
        return session

    def require(self, session_id: str) -> EditSession:
        session = self.get(session_id)
        if session is None:
            raise SessionNotFound(f"Session not found: {session_id}")
        return session

    def delete(self, session_id: str) -> bool:
        return self._store.pop(session_id, None) is not None

    def list_ids(self) -> list[str]:
        return list(self._store.keys())

    def purge_expired(self, now: float | None = None) -> int:
        """Drop sessions idle for longer than the TTL. Busy sessions are kept."""
        if self.ttl <= 0:
            return 0
        now = time.monotonic() if now is None else now
        expired = [
            sid
            for sid, s in self._store.items()
            if not s.processing and now - s.last_access > self.ttl
        ]
        for sid in expired:
            del self._store[sid]
        if expired:
            logger.info("Evicted %d idle session(s)", len(expired))
        return len(expired)
