from __future__ import annotations

import math

import numpy as np
from PIL import Image as PILImage

from rasteredit.domain.entities.image import Image
from rasteredit.domain.errors import RangeError
from rasteredit.domain.services import pixel_buffer

# darkest -> lightest
ASCII_RAMP = "@%#*+=-:. "

# glyph cells are roughly twice as tall as they are wide
CELL_ASPECT = 0.5


def grid_size(image: Image, width: int) -> tuple[int, int]:
    rows = int(math.floor(width * (image.height / image.width) * CELL_ASPECT))
    return width, max(1, rows)


def to_ascii(image: Image, width: int = 80, colored: bool = False) -> str:
    """Render an Image as text, one ramp character per cell, newline after every row.

    With ``colored`` each character is wrapped in a span carrying the cell color.
    """
    if width <= 0:
        raise RangeError("ASCII width must be > 0")
    cols, rows = grid_size(image, int(width))
    # transparent pixels read as black, as on a cleared canvas;
    # BOX resampling averages every source pixel that falls in a cell
    cells = pixel_buffer.flatten(image).resize((cols, rows), PILImage.Resampling.BOX)
    rgb = np.asarray(cells, dtype=np.float32)
    brightness = rgb.sum(axis=2) / 3.0
    indices = np.floor(brightness / 255.0 * (len(ASCII_RAMP) - 1)).astype(np.int64)
    indices = np.clip(indices, 0, len(ASCII_RAMP) - 1)

    lines = []
    for y in range(rows):
        if colored:
            row = "".join(
                '<span style="color:rgb({},{},{})">{}</span>'.format(
                    *(int(v) for v in rgb[y, x]), ASCII_RAMP[indices[y, x]]
                )
                for x in range(cols)
            )
        else:
            row = "".join(ASCII_RAMP[i] for i in indices[y])
        lines.append(row + "\n")
    return "".join(lines)
