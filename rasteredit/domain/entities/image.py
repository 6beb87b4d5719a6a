from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True, eq=False)
class Image:
    """Decoded raster: row-major RGBA8 samples of shape (height, width, 4).

    The sample buffer is copied on construction and made read-only, so an
    Image handed to the edit history can never be mutated through an alias.
    """

    width: int
    height: int
    pixels: np.ndarray
    format: str = "png"
    byte_size: int = 0

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError("Image dimensions must be > 0")
        arr = np.array(self.pixels, dtype=np.uint8, copy=True)
        if arr.shape != (self.height, self.width, 4):
            raise ValueError(
                f"Pixel buffer shape {arr.shape} does not match {self.height}x{self.width}x4"
            )
        arr.setflags(write=False)
        object.__setattr__(self, "pixels", arr)

    @classmethod
    def from_array(cls, array: np.ndarray, fmt: str = "png", byte_size: int = 0) -> Image:
        """Wrap an (H, W, 4) array. Values are rounded and clipped to [0, 255]."""
        arr = np.asarray(array)
        if arr.dtype != np.uint8:
            arr = np.clip(np.rint(arr), 0, 255).astype(np.uint8)
        if arr.ndim != 3 or arr.shape[2] != 4:
            raise ValueError("array must be HxWx4")
        height, width = arr.shape[:2]
        return cls(width=width, height=height, pixels=arr, format=fmt, byte_size=byte_size)

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height

    def rgb(self) -> np.ndarray:
        """Float32 copy of the RGB planes, shape (H, W, 3)."""
        return self.pixels[..., :3].astype(np.float32)

    def with_rgb(self, rgb: np.ndarray) -> Image:
        """New Image with the given RGB planes and this image's alpha."""
        out = np.empty((self.height, self.width, 4), dtype=np.uint8)
        out[..., :3] = np.clip(np.rint(rgb), 0, 255)
        out[..., 3] = self.pixels[..., 3]
        return Image(width=self.width, height=self.height, pixels=out, format=self.format)

    def same_pixels(self, other: Image) -> bool:
        return self.size == other.size and np.array_equal(self.pixels, other.pixels)
