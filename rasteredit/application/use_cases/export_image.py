from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass

from rasteredit.domain.entities.filter_result import FilterResult
from rasteredit.domain.services import ascii_art, pixel_buffer
from rasteredit.infrastructure.sessions.session_repository import SessionRepository
from rasteredit.infrastructure.telemetry.activity_sink import AI_ENHANCEMENT, ActivitySink, dispatch

logger = logging.getLogger(__name__)


@dataclass
class ExportImageUseCase:
    sessions: SessionRepository
    activity: ActivitySink

    async def encode_current(
        self, session_id: str, fmt: str | None = None, quality: float = 92
    ) -> tuple[bytes, str]:
        """Encode the image at the history pointer. Returns (bytes, mime type)."""
        session = self.sessions.require(session_id)
        image = session.history.current_image
        target = fmt or pixel_buffer.recommend_format(image, session.source_mime_type)
        data = await asyncio.to_thread(pixel_buffer.encode, image, target, quality)
        return data, pixel_buffer.mime_type_for(target)

    async def ascii(self, session_id: str, width: int = 80, colored: bool = False) -> FilterResult:
        """Render the current image as ASCII art. Does not touch the history."""
        session = self.sessions.require(session_id)
        started = time.perf_counter()
        text = await asyncio.to_thread(
            ascii_art.to_ascii, session.history.current_image, width, colored
        )
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        logger.info("ASCII export for session %s (%d cols) in %dms", session_id, width, elapsed_ms)
        dispatch(
            self.activity,
            AI_ENHANCEMENT,
            {"tool": "ascii_art", "duration": elapsed_ms, "success": True, "user_id": session.user_id},
        )
        return FilterResult(operation="ascii_art", elapsed_ms=elapsed_ms, text=text)
