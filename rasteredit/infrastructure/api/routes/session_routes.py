from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import PlainTextResponse, Response

from rasteredit.application.dtos.common_dto import HistogramResponse
from rasteredit.application.dtos.session_dto import DeleteSessionResponse, SessionState
from rasteredit.application.use_cases.export_image import ExportImageUseCase
from rasteredit.application.use_cases.upload_image import UploadImageUseCase
from rasteredit.domain.services.processing_service import ProcessingService
from rasteredit.infrastructure.api.dependencies import (
    get_activity_sink,
    get_max_upload_bytes,
    get_processing_service,
    get_session_repo,
)
from rasteredit.infrastructure.api.errors import to_http_exception
from rasteredit.infrastructure.sessions.session_repository import SessionNotFound, SessionRepository

router = APIRouter(
    prefix="/sessions",
    tags=["Edit Sessions"],
    responses={
        404: {"description": "Not Found - Session does not exist"},
        422: {"description": "Validation Error - Invalid request format"},
    },
)


async def _read_upload(file: UploadFile, max_bytes: int) -> tuple[bytes, str]:
    data = await file.read()
    if len(data) > max_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File size too large. Maximum size is {max_bytes // (1024 * 1024)}MB.",
        )
    return data, (file.content_type or "").lower()


@router.post(
    "",
    response_model=SessionState,
    status_code=status.HTTP_201_CREATED,
    summary="Start Edit Session",
    description="""
    Upload an image and start a new edit session for it.

    **Supported formats**: JPEG, PNG, GIF, WEBP, BMP, TIFF
    **Maximum file size**: 50MB by default (RASTEREDIT_MAX_UPLOAD_MB)

    The image is decoded to RGBA and becomes entry 0 ("Original") of the
    session's edit history.
    """,
    response_description="State of the new session",
)
async def create_session(
    file: UploadFile = File(..., description="Image file to edit"),
    user_id: str | None = Form(None, description="Optional user id for activity tracking"),
    sessions: SessionRepository = Depends(get_session_repo),
    max_bytes: int = Depends(get_max_upload_bytes),
):
    data, mime = await _read_upload(file, max_bytes)
    uc = UploadImageUseCase(sessions=sessions)
    try:
        session = await uc.execute(data, mime, file.filename, user_id=user_id)
    except Exception as e:
        raise to_http_exception(e) from e
    return SessionState.from_session(session)


@router.put(
    "/{session_id}/source",
    response_model=SessionState,
    summary="Load New Source Image",
    description="""
    Replace the session's source image. The existing edit history is destroyed
    and the new image becomes the "Original" entry.
    """,
)
async def replace_source(
    session_id: str,
    file: UploadFile = File(...),
    sessions: SessionRepository = Depends(get_session_repo),
    max_bytes: int = Depends(get_max_upload_bytes),
):
    previous = sessions.get(session_id)
    if previous is None:
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
    data, mime = await _read_upload(file, max_bytes)
    uc = UploadImageUseCase(sessions=sessions)
    try:
        session = await uc.execute(
            data, mime, file.filename, user_id=previous.user_id, session_id=session_id
        )
    except Exception as e:
        raise to_http_exception(e) from e
    return SessionState.from_session(session)


@router.get(
    "/{session_id}",
    response_model=SessionState,
    summary="Get Session State",
    description="Current image size, history timeline and undo/redo availability.",
)
async def get_session(session_id: str, sessions: SessionRepository = Depends(get_session_repo)):
    try:
        return SessionState.from_session(sessions.require(session_id))
    except SessionNotFound as e:
        raise to_http_exception(e) from e


@router.delete(
    "/{session_id}",
    response_model=DeleteSessionResponse,
    summary="Close Session",
    description="Drop the session and its whole edit history.",
)
async def delete_session(session_id: str, sessions: SessionRepository = Depends(get_session_repo)):
    if not sessions.delete(session_id):
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
    return {"ok": True}


@router.get(
    "/{session_id}/image",
    summary="Download Current Image",
    description="""
    Encode the image at the current history position.

    **format**: png, jpeg, webp, gif, bmp, tiff (default: recommended for the image)
    **quality**: 1-100, only used by lossy formats (jpeg, webp)
    """,
    responses={200: {"content": {"image/png": {}}, "description": "Encoded image"}},
)
async def download_image(
    session_id: str,
    format: str | None = Query(None, description="Output format"),
    quality: int = Query(92, description="Output quality (clamped to 1-100)"),
    sessions: SessionRepository = Depends(get_session_repo),
    activity=Depends(get_activity_sink),
):
    uc = ExportImageUseCase(sessions=sessions, activity=activity)
    try:
        data, mime = await uc.encode_current(session_id, format, quality)
    except Exception as e:
        raise to_http_exception(e) from e
    return Response(content=data, media_type=mime)


@router.get(
    "/{session_id}/ascii",
    response_class=PlainTextResponse,
    summary="Export ASCII Art",
    description="""
    Render the current image as ASCII art using the ramp `@%#*+=-:. ` (dark to light).
    Row count is `width * aspect * 0.5` to compensate for glyph cell aspect.
    With `colored=true` each character carries an inline rgb color span.
    """,
)
async def export_ascii(
    session_id: str,
    width: int = Query(80, ge=1, le=1000, description="Characters per row"),
    colored: bool = Query(False, description="Emit per-character color spans"),
    sessions: SessionRepository = Depends(get_session_repo),
    activity=Depends(get_activity_sink),
):
    uc = ExportImageUseCase(sessions=sessions, activity=activity)
    try:
        result = await uc.ascii(session_id, width, colored)
    except Exception as e:
        raise to_http_exception(e) from e
    return PlainTextResponse(
        content=result.text,
        headers={"Content-Disposition": f'attachment; filename="ascii-art-{session_id}.txt"'},
    )


@router.get(
    "/{session_id}/histogram",
    response_model=HistogramResponse,
    summary="Current Image Histogram",
    description="256-bin red/green/blue histograms of the image at the current history position.",
)
async def get_histogram(
    session_id: str,
    sessions: SessionRepository = Depends(get_session_repo),
    processing: ProcessingService = Depends(get_processing_service),
):
    try:
        session = sessions.require(session_id)
    except SessionNotFound as e:
        raise to_http_exception(e) from e
    return HistogramResponse(histogram=processing.calculate_histogram(session.history.current_image))
