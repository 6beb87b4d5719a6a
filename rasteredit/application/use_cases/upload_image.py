from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from rasteredit.domain.services import pixel_buffer
from rasteredit.infrastructure.sessions.session_repository import EditSession, SessionRepository

logger = logging.getLogger(__name__)


@dataclass
class UploadImageUseCase:
    sessions: SessionRepository

    async def execute(
        self,
        data: bytes,
        mime_type: str,
        original_filename: str | None = None,
        *,
        user_id: str | None = None,
        session_id: str | None = None,
    ) -> EditSession:
        """
        Decode an uploaded image and start a fresh edit history for it.

        Passing an existing ``session_id`` loads a new source into that session:
        the previous history is destroyed and the new image becomes the root.
        Decoding runs in a worker thread; a DecodeError leaves any existing
        session untouched.
        """
        image = await asyncio.to_thread(pixel_buffer.decode, data, mime_type)
        session = self.sessions.create(
            image,
            mime_type,
            original_filename=original_filename,
            user_id=user_id,
            session_id=session_id,
        )
        logger.info(
            "Session %s started from %s (%dx%d, %d bytes)",
            session.id,
            original_filename or "upload",
            image.width,
            image.height,
            image.byte_size,
        )
        return session
