from __future__ import annotations

import math

import numpy as np
from PIL import Image as PILImage

from rasteredit.domain.entities.image import Image
from rasteredit.domain.errors import RangeError
from rasteredit.domain.services import pixel_buffer

SHARPEN_KERNEL = np.array([[0, -1, 0], [-1, 5, -1], [0, -1, 0]], dtype=np.float32)
BLUR_KERNEL = np.array([[1, 2, 1], [2, 4, 2], [1, 2, 1]], dtype=np.float32) / 16.0
EDGE_KERNEL = np.array([[-1, -1, -1], [-1, 8, -1], [-1, -1, -1]], dtype=np.float32)

LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114], dtype=np.float32)

STYLES = ("sketch", "watercolor", "oil_painting", "cartoon")
COLOR_PRESETS = ("grayscale", "sepia", "vintage", "invert")

BACKGROUND_THRESHOLD = 40.0
BACKGROUND_FEATHER = 20.0

# local upscale factor ceiling
MAX_UPSCALE = 8.0


class ProcessingService:
    """Pure NumPy filter library over RGBA8 Images.

    Every filter takes an Image and returns a new Image; nothing is shared
    between calls. Working math is float32 on the RGB planes in [0, 255];
    alpha passes through unless the filter is about alpha.
    """

    # Color pipeline: brightness -> contrast -> saturation -> hue -> gamma,
    # clamped to [0, 255] after each stage.
    @staticmethod
    def adjust_colors(
        image: Image,
        brightness: float = 1.0,
        contrast: float = 1.0,
        saturation: float = 1.0,
        hue: float = 0.0,
        gamma: float = 1.0,
    ) -> Image:
        if brightness < 0 or contrast < 0 or saturation < 0:
            raise RangeError("brightness, contrast and saturation must be >= 0")
        if gamma <= 0:
            raise RangeError("gamma must be > 0")
        rgb = image.rgb()

        rgb = np.clip(rgb * float(brightness), 0.0, 255.0)
        rgb = np.clip(((rgb / 255.0 - 0.5) * float(contrast) + 0.5) * 255.0, 0.0, 255.0)

        gray = ProcessingService._luma(rgb)[..., None]
        rgb = np.clip(gray + (rgb - gray) * float(saturation), 0.0, 255.0)

        if hue:
            rgb = np.clip(rgb @ ProcessingService.hue_matrix(hue).T, 0.0, 255.0)

        rgb = np.clip(np.power(rgb / 255.0, 1.0 / float(gamma)) * 255.0, 0.0, 255.0)
        return image.with_rgb(rgb)

    # Rotation about the achromatic (1,1,1) axis
    @staticmethod
    def hue_matrix(degrees: float) -> np.ndarray:
        rad = math.radians(float(degrees))
        cos_a = math.cos(rad)
        sin_a = math.sin(rad)
        third = (1.0 - cos_a) / 3.0
        root = sin_a / math.sqrt(3.0)
        return np.array(
            [
                [cos_a + third, third - root, third + root],
                [third + root, cos_a + third, third - root],
                [third - root, third + root, cos_a + third],
            ],
            dtype=np.float32,
        )

    @staticmethod
    def apply_preset(image: Image, preset: str) -> Image:
        rgb = image.rgb()
        if preset == "grayscale":
            gray = ProcessingService._luma(rgb)
            out = np.repeat(gray[..., None], 3, axis=2)
        elif preset == "sepia":
            sepia = np.array(
                [[0.393, 0.769, 0.189], [0.349, 0.686, 0.168], [0.272, 0.534, 0.131]],
                dtype=np.float32,
            )
            out = rgb @ sepia.T
        elif preset == "vintage":
            out = rgb * np.array([1.2, 1.1, 0.8], dtype=np.float32)
        elif preset == "invert":
            out = 255.0 - rgb
        else:
            raise ValueError(f"Unsupported preset: {preset}")
        return image.with_rgb(np.clip(out, 0.0, 255.0))

    # 3x3 convolution with a "valid" policy: the 1-pixel frame is copied through
    @staticmethod
    def convolve(image: Image, kernel: np.ndarray) -> Image:
        k = np.asarray(kernel, dtype=np.float32)
        if k.shape != (3, 3):
            raise ValueError("kernel must be 3x3")
        src = image.pixels
        out = pixel_buffer.allocate_surface(image.height, image.width)
        out[...] = src
        h, w = image.height, image.width
        if h < 3 or w < 3:
            return Image(width=w, height=h, pixels=out, format=image.format)

        rgb = src[..., :3].astype(np.float32)
        acc = np.zeros((h - 2, w - 2, 3), dtype=np.float32)
        for ky in range(3):
            for kx in range(3):
                weight = k[ky, kx]
                if weight:
                    acc += weight * rgb[ky : ky + h - 2, kx : kx + w - 2]
        out[1:-1, 1:-1, :3] = np.clip(np.rint(acc), 0, 255).astype(np.uint8)
        return Image(width=w, height=h, pixels=out, format=image.format)

    @staticmethod
    def sharpen(image: Image) -> Image:
        return ProcessingService.convolve(image, SHARPEN_KERNEL)

    @staticmethod
    def blur(image: Image) -> Image:
        return ProcessingService.convolve(image, BLUR_KERNEL)

    @staticmethod
    def edge_detect(image: Image) -> Image:
        return ProcessingService.convolve(image, EDGE_KERNEL)

    # Median of the 3x3 neighborhood per RGB channel, interior pixels only
    @staticmethod
    def median_denoise(image: Image) -> Image:
        src = image.pixels
        out = pixel_buffer.allocate_surface(image.height, image.width)
        out[...] = src
        h, w = image.height, image.width
        if h < 3 or w < 3:
            return Image(width=w, height=h, pixels=out, format=image.format)
        windows = np.stack(
            [src[ky : ky + h - 2, kx : kx + w - 2, :3] for ky in range(3) for kx in range(3)],
            axis=0,
        )
        out[1:-1, 1:-1, :3] = np.median(windows, axis=0).astype(np.uint8)
        return Image(width=w, height=h, pixels=out, format=image.format)

    # Auto-levels -> +20% contrast -> pull channel mean 10% toward 128.
    # A channel with min == max is passed through untouched.
    @staticmethod
    def auto_enhance(image: Image) -> Image:
        rgb = image.rgb()
        flat = rgb.reshape(-1, 3)
        lo = flat.min(axis=0)
        hi = flat.max(axis=0)
        mean = flat.mean(axis=0)

        out = rgb.copy()
        for c in range(3):
            span = hi[c] - lo[c]
            if span <= 0:
                continue
            v = (rgb[..., c] - lo[c]) / span * 255.0
            v = ((v / 255.0 - 0.5) * 1.2 + 0.5) * 255.0
            v = v + (128.0 - mean[c]) * 0.1
            out[..., c] = np.clip(v, 0.0, 255.0)
        return image.with_rgb(out)

    @staticmethod
    def estimate_background(image: Image) -> np.ndarray:
        """Mean RGB of the four corner pixels."""
        px = image.pixels
        corners = np.stack([px[0, 0, :3], px[0, -1, :3], px[-1, 0, :3], px[-1, -1, :3]])
        return corners.astype(np.float32).mean(axis=0)

    # Corner-color heuristic, not real matting: pixels close to the corner
    # average go transparent, alpha ramps up over `feather` beyond `threshold`.
    @staticmethod
    def remove_background(
        image: Image,
        threshold: float = BACKGROUND_THRESHOLD,
        feather: float = BACKGROUND_FEATHER,
    ) -> Image:
        if threshold < 0 or feather <= 0:
            raise RangeError("threshold must be >= 0 and feather > 0")
        bg = ProcessingService.estimate_background(image)
        dist = np.sqrt(np.sum((image.rgb() - bg) ** 2, axis=2))
        ramp = np.clip((dist - float(threshold)) / float(feather), 0.0, 1.0)
        out = np.array(image.pixels)
        out[..., 3] = np.rint(image.pixels[..., 3].astype(np.float32) * ramp).astype(np.uint8)
        return Image(width=image.width, height=image.height, pixels=out, format=image.format)

    @staticmethod
    def stylize(image: Image, style: str, rng: np.random.Generator | None = None) -> Image:
        style = style.replace("-", "_")
        rgb = image.rgb()
        if style == "sketch":
            gray = ProcessingService._luma(rgb)
            inverted = 255.0 - gray
            sketch = gray + (inverted - inverted * 0.8) * 2.0
            out = np.repeat(np.clip(sketch, 0.0, 255.0)[..., None], 3, axis=2)
        elif style == "watercolor":
            boosted = np.minimum(
                255.0,
                rgb * np.array([1.2, 1.1, 1.3], dtype=np.float32)
                + np.array([20.0, 15.0, 10.0], dtype=np.float32),
            )
            gen = rng if rng is not None else np.random.default_rng()
            noise = (gen.random((image.height, image.width, 1)) - 0.5) * 30.0
            out = np.clip(boosted + noise.astype(np.float32), 0.0, 255.0)
        elif style == "oil_painting":
            q = ProcessingService._quantize(rgb, 32)
            gray = ProcessingService._luma(q)[..., None]
            out = np.clip(gray + (q - gray) * 1.5, 0.0, 255.0)
        elif style == "cartoon":
            q = ProcessingService._quantize(rgb, 64)
            out = np.where(q > 128, np.minimum(255.0, q * 1.2), np.maximum(0.0, q * 0.8))
        else:
            raise ValueError(f"Unsupported style: {style}")
        return image.with_rgb(out)

    # Local upscale: bicubic resampling followed by a sharpen pass
    @staticmethod
    def upscale(image: Image, scale: float = 2.0) -> Image:
        if not 0 < scale <= MAX_UPSCALE:
            raise RangeError(f"scale must be in (0, {MAX_UPSCALE:g}]")
        new_w = max(1, int(round(image.width * scale)))
        new_h = max(1, int(round(image.height * scale)))
        resized = pixel_buffer.resample(image, new_w, new_h, PILImage.Resampling.BICUBIC)
        return ProcessingService.sharpen(resized)

    # Per-channel 256-bin histogram of the RGB planes
    @staticmethod
    def calculate_histogram(image: Image) -> dict[str, list[int]]:
        out: dict[str, list[int]] = {}
        for c, name in enumerate(("red", "green", "blue")):
            counts = np.bincount(image.pixels[..., c].ravel(), minlength=256)
            out[name] = counts.astype(np.int64).tolist()
        return out

    # --------- helpers ---------
    @staticmethod
    def _luma(rgb: np.ndarray) -> np.ndarray:
        return np.dot(rgb[..., :3], LUMA_WEIGHTS).astype(np.float32)

    # round-half-up to the nearest multiple of `step`
    @staticmethod
    def _quantize(rgb: np.ndarray, step: int) -> np.ndarray:
        return np.floor(rgb / step + 0.5) * step
