from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from rasteredit.domain.entities.image import Image
from rasteredit.domain.errors import RangeError
from rasteredit.domain.services import pixel_buffer
from rasteredit.domain.services.geometry_service import GeometryService
from rasteredit.infrastructure.telemetry.activity_sink import IMAGE_CONVERTED, ActivitySink, dispatch

logger = logging.getLogger(__name__)

THUMBNAIL_QUALITY = 80
MIN_COMPRESS_QUALITY = 10
COMPRESS_SHRINK = 0.8
MAX_COMPRESS_ROUNDS = 20


@dataclass
class ConvertImageUseCase:
    geometry: GeometryService
    activity: ActivitySink

    def convert(
        self,
        data: bytes,
        mime_type: str,
        target_format: str,
        quality: float = 92,
        max_width: int | None = None,
        max_height: int | None = None,
    ) -> tuple[bytes, str]:
        """
        One-shot format conversion, outside of any edit session.

        When only one of max_width/max_height is given the other follows the
        source aspect ratio; when both are given the output is exactly that size.
        """
        image = pixel_buffer.decode(data, mime_type)
        if max_width or max_height:
            image = self.geometry.resize(image, max_width or 0, max_height or 0, maintain_aspect=False)
        out = pixel_buffer.encode(image, target_format, quality)
        return out, pixel_buffer.mime_type_for(target_format)

    async def execute(
        self,
        data: bytes,
        mime_type: str,
        target_format: str,
        quality: float = 92,
        max_width: int | None = None,
        max_height: int | None = None,
    ) -> tuple[bytes, str]:
        out, mime = await asyncio.to_thread(
            self.convert, data, mime_type, target_format, quality, max_width, max_height
        )
        dispatch(self.activity, IMAGE_CONVERTED, {"format": mime, "size": len(out), "success": True})
        return out, mime

    def describe(self, data: bytes, mime_type: str) -> dict[str, Any]:
        """Dimensions, byte size, format and the recommended output format of an upload."""
        image = pixel_buffer.decode(data, mime_type)
        return {
            "width": image.width,
            "height": image.height,
            "size": len(data),
            "format": image.format,
            "aspect_ratio": image.aspect_ratio,
            "recommended_format": pixel_buffer.recommend_format(image, mime_type),
        }

    def thumbnail(self, data: bytes, mime_type: str, size: int = 150) -> tuple[bytes, str]:
        image = self.geometry.thumbnail(pixel_buffer.decode(data, mime_type), size)
        return pixel_buffer.encode(image, "jpeg", THUMBNAIL_QUALITY), "image/jpeg"

    def compress_to_size(
        self,
        data: bytes,
        mime_type: str,
        max_size_mb: float,
        max_width_or_height: int | None = None,
        quality: float = 80,
        target_format: str | None = None,
    ) -> tuple[bytes, str]:
        """
        Re-encode an upload until it fits in ``max_size_mb``.

        The longest side is first capped at ``max_width_or_height``. Lossy
        formats then lose 10 quality points per round down to 10; after that
        (or straight away for lossless formats) the image shrinks by 20% per
        round. Returns the last attempt if the budget is still not met.
        """
        if max_size_mb <= 0:
            raise RangeError("max_size_mb must be > 0")
        image = pixel_buffer.decode(data, mime_type)
        fmt = pixel_buffer.normalize_format(target_format or image.format)
        mime = pixel_buffer.mime_type_for(fmt)
        lossy = pixel_buffer.OUTPUT_FORMATS[fmt][2]
        budget = int(max_size_mb * 1024 * 1024)

        if max_width_or_height and max(image.size) > max_width_or_height:
            if image.width >= image.height:
                image = self.geometry.resize(image, max_width_or_height, 0)
            else:
                image = self.geometry.resize(image, 0, max_width_or_height)

        q = pixel_buffer.clamp_quality(quality)
        out = pixel_buffer.encode(image, fmt, q)
        for _ in range(MAX_COMPRESS_ROUNDS):
            if len(out) <= budget:
                break
            if lossy and q > MIN_COMPRESS_QUALITY:
                q = max(MIN_COMPRESS_QUALITY, q - 10)
            elif image.width > 1 or image.height > 1:
                image = self._shrink(image)
            else:
                break
            out = pixel_buffer.encode(image, fmt, q)
        if len(out) > budget:
            logger.warning("Could not compress below %.2fMB (got %d bytes)", max_size_mb, len(out))
        return out, mime

    async def compress(
        self,
        data: bytes,
        mime_type: str,
        max_size_mb: float,
        max_width_or_height: int | None = None,
        quality: float = 80,
        target_format: str | None = None,
    ) -> tuple[bytes, str]:
        out, mime = await asyncio.to_thread(
            self.compress_to_size, data, mime_type, max_size_mb, max_width_or_height, quality, target_format
        )
        dispatch(
            self.activity,
            IMAGE_CONVERTED,
            {"format": mime, "size": len(out), "original_size": len(data), "success": True},
        )
        return out, mime

    def _shrink(self, image: Image) -> Image:
        w = max(1, int(image.width * COMPRESS_SHRINK))
        h = max(1, int(image.height * COMPRESS_SHRINK))
        return self.geometry.resize(image, w, h, maintain_aspect=False)
