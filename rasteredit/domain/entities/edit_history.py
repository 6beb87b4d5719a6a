from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping

from rasteredit.domain.entities.image import Image


@dataclass(frozen=True)
class HistoryEntry:
    id: str
    produced_image: Image | None  # None only for the root ("Original") entry
    tool_id: str | None
    tool_name: str
    timestamp: datetime
    settings: Mapping[str, Any] = field(default_factory=dict)

    @property
    def is_root(self) -> bool:
        return self.tool_id is None
