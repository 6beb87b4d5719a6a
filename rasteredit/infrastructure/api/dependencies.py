from __future__ import annotations

import os
from functools import lru_cache

from rasteredit.domain.services.geometry_service import GeometryService
from rasteredit.domain.services.processing_service import ProcessingService
from rasteredit.infrastructure.database.supabase_client import get_supabase_client
from rasteredit.infrastructure.gateway.remote_gateway import RemoteEnhancementGateway
from rasteredit.infrastructure.sessions.session_repository import SessionRepository
from rasteredit.infrastructure.telemetry.activity_sink import ActivitySink, SupabaseActivitySink


def get_session_repo() -> SessionRepository:
    return SessionRepository()


def get_processing_service() -> ProcessingService:
    return ProcessingService()


def get_geometry_service() -> GeometryService:
    return GeometryService()


@lru_cache(maxsize=1)
def get_remote_gateway() -> RemoteEnhancementGateway:
    return RemoteEnhancementGateway()


def get_activity_sink() -> ActivitySink:
    return SupabaseActivitySink(get_supabase_client())


def get_max_upload_bytes() -> int:
    return int(float(os.getenv("RASTEREDIT_MAX_UPLOAD_MB", "50")) * 1024 * 1024)
