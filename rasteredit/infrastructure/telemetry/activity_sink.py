from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Protocol

from supabase import Client

logger = logging.getLogger(__name__)

IMAGE_CONVERTED = "image_converted"
IMAGE_EDITED = "image_edited"
AI_ENHANCEMENT = "ai_enhancement"

# in-flight dispatches, referenced until their worker thread finishes
_PENDING: set[asyncio.Future] = set()


class ActivitySink(Protocol):
    def record(self, event_type: str, metadata: dict[str, Any]) -> None: ...


class SupabaseActivitySink:
    """Fire-and-forget activity tracking through the ``increment_user_activity`` RPC.

    When SUPABASE_DISABLED=1 or no client is configured, events are only logged.
    Errors never propagate to the caller.
    """

    def __init__(self, client: Client | None) -> None:
        self.client = client
        self.disabled = os.getenv("SUPABASE_DISABLED", "0") == "1"

    def record(self, event_type: str, metadata: dict[str, Any]) -> None:
        try:
            if self.disabled or self.client is None:
                logger.info("Activity %s %s", event_type, metadata)
                return
            user_id = metadata.get("user_id")
            if not user_id:
                logger.debug("No user on activity %s, not tracked", event_type)
                return
            self.client.rpc(  # type: ignore[attr-defined]
                "increment_user_activity",
                {
                    "p_user_id": user_id,
                    "p_activity_type": event_type,
                    "p_metadata": metadata,
                },
            ).execute()
        except Exception as exc:
            logger.warning("Activity tracking failed for %s: %s", event_type, exc)


def dispatch(sink: ActivitySink, event_type: str, metadata: dict[str, Any]) -> None:
    """Hand an event to ``sink`` on a worker thread without waiting for it.

    Must be called from a running event loop. The caller never sees the
    sink's latency or its errors.
    """
    loop = asyncio.get_running_loop()
    future = loop.run_in_executor(None, sink.record, event_type, metadata)
    _PENDING.add(future)
    future.add_done_callback(_dispatch_done)


def _dispatch_done(future: asyncio.Future) -> None:
    _PENDING.discard(future)
    if not future.cancelled() and future.exception() is not None:
        logger.warning("Activity sink failed: %s", future.exception())
