from __future__ import annotations

from fastapi import APIRouter, Depends

from rasteredit.application.dtos.session_dto import JumpRequest, SessionState
from rasteredit.application.use_cases.navigate_history import NavigateHistoryUseCase
from rasteredit.infrastructure.api.dependencies import get_session_repo
from rasteredit.infrastructure.api.errors import to_http_exception
from rasteredit.infrastructure.sessions.session_repository import SessionRepository

router = APIRouter(
    prefix="/sessions/{session_id}",
    tags=["Edit History"],
    responses={
        400: {"description": "Bad Request - History index out of range"},
        404: {"description": "Not Found - Session does not exist"},
    },
)


@router.post(
    "/undo",
    response_model=SessionState,
    summary="Undo",
    description="Step back one entry in the timeline. No-op at the original.",
)
async def undo(session_id: str, sessions: SessionRepository = Depends(get_session_repo)):
    try:
        session = NavigateHistoryUseCase(sessions).undo(session_id)
    except Exception as e:
        raise to_http_exception(e) from e
    return SessionState.from_session(session)


@router.post(
    "/redo",
    response_model=SessionState,
    summary="Redo",
    description="Step forward one entry. No-op when nothing is ahead of the current position.",
)
async def redo(session_id: str, sessions: SessionRepository = Depends(get_session_repo)):
    try:
        session = NavigateHistoryUseCase(sessions).redo(session_id)
    except Exception as e:
        raise to_http_exception(e) from e
    return SessionState.from_session(session)


@router.post(
    "/jump",
    response_model=SessionState,
    summary="Jump To History Entry",
    description="""
    Seek directly to a timeline entry. Entries ahead of it stay available for redo
    until the next edit is applied.
    """,
)
async def jump(
    session_id: str,
    body: JumpRequest,
    sessions: SessionRepository = Depends(get_session_repo),
):
    try:
        session = NavigateHistoryUseCase(sessions).jump_to(session_id, body.index)
    except Exception as e:
        raise to_http_exception(e) from e
    return SessionState.from_session(session)
