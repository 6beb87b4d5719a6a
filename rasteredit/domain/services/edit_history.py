from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from typing import Any, Awaitable, Callable, Mapping

from rasteredit.domain.entities.edit_history import HistoryEntry
from rasteredit.domain.entities.image import Image
from rasteredit.domain.errors import RangeError

logger = logging.getLogger(__name__)

ORIGINAL_TOOL_NAME = "Original"

Producer = Callable[[Image], Image]
AsyncProducer = Callable[[Image], Awaitable[Image]]


class EditHistory:
    """Linear, non-destructive edit timeline.

    Entries are an append-only vector of immutable snapshots plus a
    ``current_index`` pointer. Index 0 is always the root entry (``tool_id`` is
    None, no produced image). Undo/redo only move the pointer. Applying an edit
    after an undo drops every entry ahead of the pointer, so there are no forks.

    ``max_entries`` caps the stack; when exceeded the oldest non-root entry is
    evicted.
    """

    def __init__(self, original: Image, max_entries: int | None = None) -> None:
        if max_entries is not None and max_entries < 2:
            raise ValueError("max_entries must be >= 2")
        self._original = original
        self._max_entries = max_entries
        root = HistoryEntry(
            id=uuid.uuid4().hex,
            produced_image=None,
            tool_id=None,
            tool_name=ORIGINAL_TOOL_NAME,
            timestamp=datetime.now(UTC),
            settings={},
        )
        self._entries: list[HistoryEntry] = [root]
        self._index = 0

    @property
    def original(self) -> Image:
        return self._original

    @property
    def entries(self) -> tuple[HistoryEntry, ...]:
        return tuple(self._entries)

    @property
    def current_index(self) -> int:
        return self._index

    @property
    def current_entry(self) -> HistoryEntry:
        return self._entries[self._index]

    @property
    def current_image(self) -> Image:
        return self.image_at(self._index)

    @property
    def can_undo(self) -> bool:
        return self._index > 0

    @property
    def can_redo(self) -> bool:
        return self._index < len(self._entries) - 1

    def __len__(self) -> int:
        return len(self._entries)

    def image_at(self, index: int) -> Image:
        entry = self._entries[index]
        return entry.produced_image if entry.produced_image is not None else self._original

    def apply(
        self,
        tool_id: str,
        tool_name: str,
        settings: Mapping[str, Any] | None,
        producer: Producer,
    ) -> HistoryEntry:
        """Run ``producer`` on the current image and commit its result.

        If the producer raises, the stack is left untouched and the error
        propagates to the caller.
        """
        self._check_tool(tool_id)
        result = producer(self.current_image)
        return self._commit(tool_id, tool_name, settings, result)

    async def apply_async(
        self,
        tool_id: str,
        tool_name: str,
        settings: Mapping[str, Any] | None,
        producer: AsyncProducer,
    ) -> HistoryEntry:
        """Awaitable variant of :meth:`apply`.

        The source image is read when the call starts; the entry is committed
        only once the producer resolves successfully.
        """
        self._check_tool(tool_id)
        source = self.current_image
        result = await producer(source)
        return self._commit(tool_id, tool_name, settings, result)

    def undo(self) -> bool:
        if self._index > 0:
            self._index -= 1
            return True
        return False

    def redo(self) -> bool:
        if self._index < len(self._entries) - 1:
            self._index += 1
            return True
        return False

    def jump_to(self, index: int) -> HistoryEntry:
        if not 0 <= index < len(self._entries):
            raise RangeError(f"History index {index} out of range [0, {len(self._entries) - 1}]")
        self._index = index
        return self._entries[index]

    # --------- helpers ---------
    @staticmethod
    def _check_tool(tool_id: str) -> None:
        if not tool_id:
            raise ValueError("tool_id is required for edits")

    def _commit(
        self,
        tool_id: str,
        tool_name: str,
        settings: Mapping[str, Any] | None,
        result: Image,
    ) -> HistoryEntry:
        if not isinstance(result, Image):
            raise TypeError(f"Producer for {tool_id} returned {type(result).__name__}, not Image")
        entry = HistoryEntry(
            id=uuid.uuid4().hex,
            produced_image=result,
            tool_id=tool_id,
            tool_name=tool_name or tool_id,
            timestamp=datetime.now(UTC),
            settings=dict(settings or {}),
        )
        dropped = len(self._entries) - (self._index + 1)
        del self._entries[self._index + 1 :]
        self._entries.append(entry)
        if self._max_entries is not None and len(self._entries) > self._max_entries:
            # keep the root at index 0
            del self._entries[1 : len(self._entries) - self._max_entries + 1]
        self._index = len(self._entries) - 1
        if dropped:
            logger.debug("Discarded %d redo entries before applying %s", dropped, tool_id)
        return entry
