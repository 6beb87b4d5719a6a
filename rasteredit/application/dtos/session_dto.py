from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from rasteredit.domain.entities.edit_history import HistoryEntry
from rasteredit.infrastructure.sessions.session_repository import EditSession


class HistoryEntryItem(BaseModel):
    """One snapshot in the edit timeline."""
    index: int = Field(..., description="Position in the timeline (0 is the original)", ge=0)
    id: str = Field(..., description="Opaque entry identifier")
    tool_id: str | None = Field(None, description="Operation id; null for the original entry", examples=["sharpen"])
    tool_name: str = Field(..., description="Display name", examples=["Sharpen"])
    timestamp: datetime = Field(..., description="When the entry was created")
    settings: dict[str, Any] = Field(default_factory=dict, description="Parameters the edit was applied with")
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)

    @classmethod
    def from_entry(cls, index: int, entry: HistoryEntry, width: int, height: int) -> "HistoryEntryItem":
        return cls(
            index=index,
            id=entry.id,
            tool_id=entry.tool_id,
            tool_name=entry.tool_name,
            timestamp=entry.timestamp,
            settings=dict(entry.settings),
            width=width,
            height=height,
        )


class SessionState(BaseModel):
    """Full state of an editing session."""
    id: str = Field(..., description="Session identifier")
    original_filename: str | None = Field(None, examples=["photo.jpg"])
    source_mime_type: str = Field(..., examples=["image/jpeg"])
    width: int = Field(..., description="Width of the current image", gt=0)
    height: int = Field(..., description="Height of the current image", gt=0)
    current_index: int = Field(..., ge=0)
    can_undo: bool
    can_redo: bool
    processing: bool = False
    history: list[HistoryEntryItem]
    elapsed_ms: int | None = Field(None, description="Duration of the operation that produced this state")

    @classmethod
    def from_session(cls, session: EditSession, elapsed_ms: int | None = None) -> "SessionState":
        hist = session.history
        items = []
        for i, entry in enumerate(hist.entries):
            img = hist.image_at(i)
            items.append(HistoryEntryItem.from_entry(i, entry, img.width, img.height))
        current = hist.current_image
        return cls(
            id=session.id,
            original_filename=session.original_filename,
            source_mime_type=session.source_mime_type,
            width=current.width,
            height=current.height,
            current_index=hist.current_index,
            can_undo=hist.can_undo,
            can_redo=hist.can_redo,
            processing=session.processing,
            history=items,
            elapsed_ms=elapsed_ms,
        )


class ApplyOperationRequest(BaseModel):
    """Parameters for a single edit."""
    params: dict[str, Any] = Field(
        default_factory=dict,
        description="Operation-specific parameters",
        examples=[{"brightness": 1.1, "contrast": 1.2}],
    )
    tool_name: str | None = Field(None, description="Optional display name for the timeline entry")


class JumpRequest(BaseModel):
    index: int = Field(..., description="Timeline index to seek to", ge=0)


class DeleteSessionResponse(BaseModel):
    ok: bool = Field(True, description="Indicates whether the session was removed")
