from __future__ import annotations

from dataclasses import dataclass

from rasteredit.domain.entities.image import Image


@dataclass
class FilterResult:
    """Output of one filter/transform run, owned by the caller until committed."""

    operation: str
    elapsed_ms: int
    image: Image | None = None
    text: str | None = None
