from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import Response

from rasteredit.application.dtos.common_dto import ImageInfoResponse, OperationInfo, OperationListResponse
from rasteredit.application.dtos.session_dto import ApplyOperationRequest, SessionState
from rasteredit.application.use_cases.apply_operation import OPERATIONS, ApplyOperationUseCase
from rasteredit.application.use_cases.convert_image import ConvertImageUseCase
from rasteredit.domain.services.geometry_service import GeometryService
from rasteredit.domain.services.processing_service import ProcessingService
from rasteredit.infrastructure.api.dependencies import (
    get_activity_sink,
    get_geometry_service,
    get_max_upload_bytes,
    get_processing_service,
    get_remote_gateway,
    get_session_repo,
)
from rasteredit.infrastructure.api.errors import to_http_exception
from rasteredit.infrastructure.gateway.remote_gateway import REMOTE_OPERATIONS
from rasteredit.infrastructure.sessions.session_repository import SessionRepository

router = APIRouter(
    tags=["Image Processing"],
    responses={
        400: {"description": "Bad Request - Invalid operation or parameters"},
        404: {"description": "Not Found - Session does not exist"},
        422: {"description": "Validation Error - Invalid request format"},
        503: {"description": "Remote providers unavailable"},
    },
)


async def _read_upload(file: UploadFile, max_bytes: int) -> bytes:
    data = await file.read()
    if len(data) > max_bytes:
        raise HTTPException(status_code=413, detail="File size too large.")
    return data


@router.get(
    "/operations",
    response_model=OperationListResponse,
    summary="List Operations",
    description="Every edit operation accepted by the apply endpoint.",
)
async def list_operations():
    return OperationListResponse(
        operations=[
            OperationInfo(id=op, name=name, remote=op in REMOTE_OPERATIONS)
            for op, name in OPERATIONS.items()
        ]
    )


@router.post(
    "/sessions/{session_id}/operations/{operation}",
    response_model=SessionState,
    summary="Apply Edit",
    description="""
    Apply one operation to the image at the current history position and append
    the result to the timeline. Entries ahead of the current position (redo
    history) are discarded. On failure the timeline is left unchanged.

    **Supported operations:**
    - `adjust_colors` - params: `{"brightness": 1.1, "contrast": 1.2, "saturation": 1.0, "hue": 30, "gamma": 1.0}`
    - `grayscale`, `sepia`, `vintage`, `invert` - params: `{}`
    - `sharpen`, `blur`, `edge_detect`, `median_denoise` - params: `{}`
    - `auto_enhance` - params: `{}`
    - `remove_background` - params: `{"threshold": 40, "feather": 20}`
    - `stylize` - params: `{"style": "sketch" | "watercolor" | "oil_painting" | "cartoon"}`
    - `rotate` - params: `{"degrees": 90}`
    - `flip` - params: `{"horizontal": true, "vertical": false}`
    - `resize` - params: `{"width": 800, "height": 0, "maintain_aspect": true}`
    - `crop` - params: `{"x": 0, "y": 0, "width": 100, "height": 100}`
    - `upscale` - params: `{"scale": 2}` (remote when providers are configured)
    - `face_restore` - params: `{}` (remote only)
    """,
)
async def apply_operation(
    session_id: str,
    operation: str,
    body: ApplyOperationRequest | None = None,
    sessions: SessionRepository = Depends(get_session_repo),
    processing: ProcessingService = Depends(get_processing_service),
    geometry: GeometryService = Depends(get_geometry_service),
    gateway=Depends(get_remote_gateway),
    activity=Depends(get_activity_sink),
):
    body = body or ApplyOperationRequest()
    uc = ApplyOperationUseCase(
        sessions=sessions,
        processing=processing,
        geometry=geometry,
        gateway=gateway,
        activity=activity,
    )
    try:
        result = await uc.execute(session_id, operation, body.params, body.tool_name)
    except Exception as e:
        raise to_http_exception(e) from e
    return SessionState.from_session(sessions.require(session_id), elapsed_ms=result.elapsed_ms)


@router.post(
    "/convert",
    summary="Convert Image Format",
    description="""
    One-shot conversion of an uploaded image to another format, optionally resized.
    When only one of `max_width`/`max_height` is set the other keeps the aspect ratio.
    """,
    responses={200: {"content": {"image/png": {}}, "description": "Converted image"}},
)
async def convert_image(
    file: UploadFile = File(...),
    format: str = Form("png"),
    quality: int = Form(92),
    max_width: int | None = Form(None),
    max_height: int | None = Form(None),
    geometry: GeometryService = Depends(get_geometry_service),
    activity=Depends(get_activity_sink),
    max_bytes: int = Depends(get_max_upload_bytes),
):
    data = await _read_upload(file, max_bytes)
    uc = ConvertImageUseCase(geometry=geometry, activity=activity)
    try:
        out, mime = await uc.execute(
            data, file.content_type or "", format, quality, max_width, max_height
        )
    except Exception as e:
        raise to_http_exception(e) from e
    return Response(content=out, media_type=mime)


@router.post(
    "/convert/info",
    response_model=ImageInfoResponse,
    summary="Inspect Image",
    description="Dimensions, byte size, detected format and the recommended output format of an upload.",
)
async def image_info(
    file: UploadFile = File(...),
    geometry: GeometryService = Depends(get_geometry_service),
    activity=Depends(get_activity_sink),
    max_bytes: int = Depends(get_max_upload_bytes),
):
    data = await _read_upload(file, max_bytes)
    uc = ConvertImageUseCase(geometry=geometry, activity=activity)
    try:
        info = await asyncio.to_thread(uc.describe, data, file.content_type or "")
    except Exception as e:
        raise to_http_exception(e) from e
    return ImageInfoResponse(**info)


@router.post(
    "/convert/thumbnail",
    summary="Generate Thumbnail",
    description="JPEG thumbnail (quality 80) that fits inside a `size` x `size` square.",
    responses={200: {"content": {"image/jpeg": {}}, "description": "Thumbnail"}},
)
async def image_thumbnail(
    file: UploadFile = File(...),
    size: int = Form(150, ge=1, le=1024),
    geometry: GeometryService = Depends(get_geometry_service),
    activity=Depends(get_activity_sink),
    max_bytes: int = Depends(get_max_upload_bytes),
):
    data = await _read_upload(file, max_bytes)
    uc = ConvertImageUseCase(geometry=geometry, activity=activity)
    try:
        out, mime = await asyncio.to_thread(uc.thumbnail, data, file.content_type or "", size)
    except Exception as e:
        raise to_http_exception(e) from e
    return Response(content=out, media_type=mime)


@router.post(
    "/convert/compress",
    summary="Compress To Size",
    description="""
    Re-encode an upload until it fits in `max_size_mb`.

    - `max_width_or_height` caps the longest side first
    - lossy formats step quality down by 10 (to a floor of 10), then shrink
    - lossless formats shrink by 20% per round
    - `format` defaults to the upload's own format
    """,
    responses={200: {"content": {"image/jpeg": {}}, "description": "Compressed image"}},
)
async def compress_image(
    file: UploadFile = File(...),
    max_size_mb: float = Form(1.0, gt=0),
    max_width_or_height: int | None = Form(None, ge=1),
    quality: int = Form(80),
    format: str | None = Form(None),
    geometry: GeometryService = Depends(get_geometry_service),
    activity=Depends(get_activity_sink),
    max_bytes: int = Depends(get_max_upload_bytes),
):
    data = await _read_upload(file, max_bytes)
    uc = ConvertImageUseCase(geometry=geometry, activity=activity)
    try:
        out, mime = await uc.compress(
            data, file.content_type or "", max_size_mb, max_width_or_height, quality, format
        )
    except Exception as e:
        raise to_http_exception(e) from e
    return Response(content=out, media_type=mime)
