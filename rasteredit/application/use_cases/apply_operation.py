from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Any

from rasteredit.domain.entities.filter_result import FilterResult
from rasteredit.domain.entities.image import Image
from rasteredit.domain.errors import RemoteUnavailable
from rasteredit.domain.services.geometry_service import GeometryService
from rasteredit.domain.services.processing_service import COLOR_PRESETS, ProcessingService
from rasteredit.infrastructure.gateway.remote_gateway import REMOTE_OPERATIONS, RemoteEnhancementGateway
from rasteredit.infrastructure.sessions.session_repository import SessionRepository
from rasteredit.infrastructure.telemetry.activity_sink import (
    AI_ENHANCEMENT,
    IMAGE_EDITED,
    ActivitySink,
    dispatch,
)

logger = logging.getLogger(__name__)

# operation id -> display name shown in the history timeline
OPERATIONS: dict[str, str] = {
    "adjust_colors": "Color Adjustments",
    "grayscale": "Grayscale",
    "sepia": "Sepia",
    "vintage": "Vintage",
    "invert": "Invert",
    "sharpen": "Sharpen",
    "blur": "Blur",
    "edge_detect": "Edge Detection",
    "median_denoise": "Noise Reduction",
    "auto_enhance": "Auto Enhance",
    "remove_background": "Background Removal",
    "stylize": "Style Transfer",
    "rotate": "Rotate",
    "flip": "Flip",
    "resize": "Resize",
    "crop": "Crop",
    "upscale": "Upscale",
    "face_restore": "Face Restoration",
}

ALIASES = {
    "noise_reduction": "median_denoise",
    "denoise": "median_denoise",
    "enhance": "auto_enhance",
    "background_remove": "remove_background",
    "style_transfer": "stylize",
}

AI_OPERATIONS = {"upscale", "face_restore", "remove_background", "stylize", "auto_enhance"}


def normalize_operation(operation: str) -> str:
    op = operation.strip().lower().replace("-", "_")
    return ALIASES.get(op, op)


def _number(params: dict[str, Any], key: str, default: float | None = None, cast=float):
    # null falls back to the default; no default means the parameter is required
    value = params.get(key)
    if value is None:
        if default is None:
            raise ValueError(f"Missing parameter: {key}")
        value = default
    if isinstance(value, bool):
        raise ValueError(f"Invalid parameter {key}: {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid parameter {key}: {value!r}") from exc
    if not math.isfinite(number):
        raise ValueError(f"Invalid parameter {key}: {value!r}")
    return cast(number)


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


@dataclass
class ApplyOperationUseCase:
    sessions: SessionRepository
    processing: ProcessingService
    geometry: GeometryService
    gateway: RemoteEnhancementGateway
    activity: ActivitySink

    async def execute(
        self,
        session_id: str,
        operation: str,
        params: dict[str, Any] | None = None,
        tool_name: str | None = None,
    ) -> FilterResult:
        """
        Apply one edit to the session's current image and commit it to history.

        The source is the image at the history pointer when the call starts.
        Pixel work runs in a worker thread. A failure leaves the history exactly
        as it was and propagates to the caller.
        """
        session = self.sessions.require(session_id)
        op = normalize_operation(operation)
        if op not in OPERATIONS:
            raise ValueError(f"Unsupported operation: {operation}")
        params = dict(params or {})

        async def produce(src: Image) -> Image:
            if op in REMOTE_OPERATIONS:
                return await self._run_remote_capable(op, src, params)
            return await asyncio.to_thread(self.run_local, op, src, params)

        started = time.perf_counter()
        session.processing = True
        try:
            entry = await session.history.apply_async(
                op, tool_name or OPERATIONS[op], params, produce
            )
        finally:
            session.processing = False
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        logger.info("Applied %s to session %s in %dms", op, session_id, elapsed_ms)

        dispatch(
            self.activity,
            AI_ENHANCEMENT if op in AI_OPERATIONS else IMAGE_EDITED,
            {
                "tool": op,
                "duration": elapsed_ms,
                "success": True,
                "session_id": session_id,
                "user_id": session.user_id,
            },
        )
        return FilterResult(operation=op, elapsed_ms=elapsed_ms, image=entry.produced_image)

    def run_local(self, op: str, src: Image, params: dict[str, Any]) -> Image:
        """Route an operation to the local filter/geometry implementation."""
        out: Image
        if op == "adjust_colors":
            out = self.processing.adjust_colors(
                src,
                brightness=_number(params, "brightness", 1.0),
                contrast=_number(params, "contrast", 1.0),
                saturation=_number(params, "saturation", 1.0),
                hue=_number(params, "hue", 0.0),
                gamma=_number(params, "gamma", 1.0),
            )
        elif op in COLOR_PRESETS:
            out = self.processing.apply_preset(src, op)
        elif op == "sharpen":
            out = self.processing.sharpen(src)
        elif op == "blur":
            out = self.processing.blur(src)
        elif op == "edge_detect":
            out = self.processing.edge_detect(src)
        elif op == "median_denoise":
            out = self.processing.median_denoise(src)
        elif op == "auto_enhance":
            out = self.processing.auto_enhance(src)
        elif op == "remove_background":
            out = self.processing.remove_background(
                src,
                threshold=_number(params, "threshold", 40.0),
                feather=_number(params, "feather", 20.0),
            )
        elif op == "stylize":
            out = self.processing.stylize(src, str(params.get("style", "sketch")))
        elif op == "rotate":
            key = "degrees" if "degrees" in params else "angle"
            out = self.geometry.rotate(src, _number(params, key, 0.0))
        elif op == "flip":
            out = self.geometry.flip(
                src,
                _as_bool(params.get("horizontal", False)),
                _as_bool(params.get("vertical", False)),
            )
        elif op == "resize":
            out = self.geometry.resize(
                src,
                _number(params, "width", 0, int),
                _number(params, "height", 0, int),
                _as_bool(params.get("maintain_aspect", True)),
            )
        elif op == "crop":
            out = self.geometry.crop(
                src,
                _number(params, "x", cast=int),
                _number(params, "y", cast=int),
                _number(params, "width", cast=int),
                _number(params, "height", cast=int),
            )
        elif op == "upscale":
            out = self.processing.upscale(src, _number(params, "scale", 2.0))
        elif op == "face_restore":
            raise RemoteUnavailable("Face restoration requires a remote provider")
        else:
            raise ValueError("Unsupported operation")
        return out

    async def _run_remote_capable(self, op: str, src: Image, params: dict[str, Any]) -> Image:
        # upscale degrades to the local path once the provider chain is exhausted;
        # face_restore has no local implementation
        if not self.gateway.configured:
            return await asyncio.to_thread(self.run_local, op, src, params)
        try:
            return await self.gateway.enhance(src, op, params)
        except RemoteUnavailable:
            if op != "upscale":
                raise
            logger.warning("Remote upscale unavailable, falling back to local upscale")
            return await asyncio.to_thread(self.run_local, op, src, params)
