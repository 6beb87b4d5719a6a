from __future__ import annotations

from dataclasses import dataclass

from rasteredit.infrastructure.sessions.session_repository import EditSession, SessionRepository


@dataclass
class NavigateHistoryUseCase:
    """Undo, redo and timeline seeks. These only move the history pointer."""

    sessions: SessionRepository

    def undo(self, session_id: str) -> EditSession:
        session = self.sessions.require(session_id)
        session.history.undo()
        return session

    def redo(self, session_id: str) -> EditSession:
        session = self.sessions.require(session_id)
        session.history.redo()
        return session

    def jump_to(self, session_id: str, index: int) -> EditSession:
        session = self.sessions.require(session_id)
        session.history.jump_to(index)
        return session
