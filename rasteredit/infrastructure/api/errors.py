from __future__ import annotations

import logging

from fastapi import HTTPException, status

from rasteredit.domain.errors import (
    ContextUnavailable,
    DecodeError,
    EncodeError,
    RasterEditError,
    RemoteUnavailable,
)
from rasteredit.infrastructure.sessions.session_repository import SessionNotFound

logger = logging.getLogger(__name__)


def to_http_exception(exc: Exception) -> HTTPException:
    """Translate an engine failure into the HTTP error the client sees."""
    if isinstance(exc, SessionNotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, (DecodeError, EncodeError, ValueError)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, RemoteUnavailable):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
    if isinstance(exc, ContextUnavailable):
        return HTTPException(status_code=status.HTTP_507_INSUFFICIENT_STORAGE, detail=str(exc))
    if isinstance(exc, RasterEditError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    logger.exception("Unexpected processing failure")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Processing failed: {exc}"
    )
