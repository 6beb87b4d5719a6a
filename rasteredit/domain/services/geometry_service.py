from __future__ import annotations

import math

import numpy as np
from PIL import Image as PILImage

from rasteredit.domain.entities.image import Image
from rasteredit.domain.errors import RangeError
from rasteredit.domain.services import pixel_buffer


class GeometryService:
    """Rotate, flip, crop and resize on RGBA Images. Every call returns a new Image."""

    # Rotate by `degrees` (clockwise on screen) onto a canvas sized to the rotated
    # bounding box, nearest-neighbor sampling, transparent outside the source.
    @staticmethod
    def rotate(image: Image, degrees: float) -> Image:
        src = image.pixels
        h, w = image.height, image.width
        rad = math.radians(float(degrees))
        cos_a = math.cos(rad)
        sin_a = math.sin(rad)
        new_w = max(1, int(round(w * abs(cos_a) + h * abs(sin_a))))
        new_h = max(1, int(round(w * abs(sin_a) + h * abs(cos_a))))
        out = pixel_buffer.allocate_surface(new_h, new_w)

        # map each destination pixel center back into the source
        ys, xs = np.indices((new_h, new_w), dtype=np.float64)
        x_rel = xs + 0.5 - new_w / 2.0
        y_rel = ys + 0.5 - new_h / 2.0
        x_src = cos_a * x_rel + sin_a * y_rel + w / 2.0 - 0.5
        y_src = -sin_a * x_rel + cos_a * y_rel + h / 2.0 - 0.5
        x_idx = np.rint(x_src).astype(np.int64)
        y_idx = np.rint(y_src).astype(np.int64)
        valid = (x_idx >= 0) & (x_idx < w) & (y_idx >= 0) & (y_idx < h)
        out[valid] = src[y_idx[valid], x_idx[valid]]
        return Image(width=new_w, height=new_h, pixels=out, format=image.format)

    @staticmethod
    def flip(image: Image, horizontal: bool, vertical: bool) -> Image:
        arr = image.pixels
        if horizontal:
            arr = arr[:, ::-1]
        if vertical:
            arr = arr[::-1, :]
        return Image(width=image.width, height=image.height, pixels=arr, format=image.format)

    @staticmethod
    def crop(image: Image, x: int, y: int, w: int, h: int) -> Image:
        x, y, w, h = int(x), int(y), int(w), int(h)
        if w <= 0 or h <= 0:
            raise RangeError("Crop width and height must be > 0")
        if x < 0 or y < 0 or x + w > image.width or y + h > image.height:
            raise RangeError(
                f"Crop rectangle ({x}, {y}, {w}, {h}) exceeds image bounds "
                f"{image.width}x{image.height}"
            )
        return Image(width=w, height=h, pixels=image.pixels[y : y + h, x : x + w], format=image.format)

    @staticmethod
    def target_size(
        src_w: int, src_h: int, target_w: int, target_h: int, maintain_aspect: bool
    ) -> tuple[int, int]:
        """Resolve the output size of a resize request.

        A zero dimension is derived from the other one through the source aspect
        ratio. With maintain_aspect and both dimensions given, the one that is
        larger relative to the source aspect is recomputed.
        """
        target_w, target_h = int(target_w or 0), int(target_h or 0)
        if target_w < 0 or target_h < 0:
            raise RangeError("Resize dimensions must be >= 0")
        if target_w == 0 and target_h == 0:
            raise RangeError("At least one resize dimension is required")
        aspect = src_w / src_h
        width: float = target_w
        height: float = target_h
        if target_w == 0:
            width = target_h * aspect
        elif target_h == 0:
            height = target_w / aspect
        elif maintain_aspect:
            if target_w / target_h > aspect:
                width = target_h * aspect
            else:
                height = target_w / aspect
        return max(1, int(round(width))), max(1, int(round(height)))

    @staticmethod
    def resize(image: Image, target_w: int, target_h: int, maintain_aspect: bool = True) -> Image:
        new_w, new_h = GeometryService.target_size(
            image.width, image.height, target_w, target_h, maintain_aspect
        )
        if (new_w, new_h) == image.size:
            return Image(width=new_w, height=new_h, pixels=image.pixels, format=image.format)
        return pixel_buffer.resample(image, new_w, new_h, PILImage.Resampling.BILINEAR)

    # Fit inside a size x size square keeping aspect
    @staticmethod
    def thumbnail(image: Image, size: int = 150) -> Image:
        if size <= 0:
            raise RangeError("Thumbnail size must be > 0")
        if image.aspect_ratio > 1:
            return GeometryService.resize(image, size, 0)
        return GeometryService.resize(image, 0, size)
