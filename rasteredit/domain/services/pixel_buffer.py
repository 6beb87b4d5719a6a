from __future__ import annotations

import logging
from io import BytesIO

import numpy as np
from PIL import Image as PILImage
from PIL import UnidentifiedImageError

from rasteredit.domain.entities.image import Image
from rasteredit.domain.errors import ContextUnavailable, DecodeError, EncodeError

logger = logging.getLogger(__name__)

# Accepted input MIME types -> Pillow format names
MIME_TO_FORMAT: dict[str, str] = {
    "image/jpeg": "JPEG",
    "image/jpg": "JPEG",
    "image/png": "PNG",
    "image/gif": "GIF",
    "image/webp": "WEBP",
    "image/bmp": "BMP",
    "image/tiff": "TIFF",
}

# Output format tag -> (Pillow format, MIME type, lossy)
OUTPUT_FORMATS: dict[str, tuple[str, str, bool]] = {
    "png": ("PNG", "image/png", False),
    "jpeg": ("JPEG", "image/jpeg", True),
    "jpg": ("JPEG", "image/jpeg", True),
    "webp": ("WEBP", "image/webp", True),
    "gif": ("GIF", "image/gif", False),
    "bmp": ("BMP", "image/bmp", False),
    "tiff": ("TIFF", "image/tiff", False),
}

# Largest working surface the engine will allocate (400 MB of RGBA8)
MAX_SURFACE_PIXELS = 100_000_000


def normalize_format(fmt: str) -> str:
    key = fmt.lower().lstrip(".")
    if key.startswith("image/"):
        key = key.split("/", 1)[1]
    if key == "jpg":
        key = "jpeg"
    if key == "tif":
        key = "tiff"
    return key


def mime_type_for(fmt: str) -> str:
    key = normalize_format(fmt)
    if key not in OUTPUT_FORMATS:
        raise EncodeError(f"Unsupported output format: {fmt}")
    return OUTPUT_FORMATS[key][1]


def clamp_quality(quality: float) -> int:
    return int(min(100, max(1, round(float(quality)))))


def check_surface(height: int, width: int) -> None:
    if int(height) * int(width) > MAX_SURFACE_PIXELS:
        raise ContextUnavailable(
            f"Cannot allocate {width}x{height} surface: exceeds {MAX_SURFACE_PIXELS} pixels"
        )


def allocate_surface(height: int, width: int, channels: int = 4) -> np.ndarray:
    """Zeroed uint8 drawing surface, or ContextUnavailable if it cannot be allocated."""
    check_surface(height, width)
    try:
        return np.zeros((int(height), int(width), channels), dtype=np.uint8)
    except (MemoryError, ValueError) as exc:
        raise ContextUnavailable(f"Cannot allocate {width}x{height} surface: {exc}") from exc


def resample(
    image: Image, width: int, height: int, method: PILImage.Resampling = PILImage.Resampling.BILINEAR
) -> Image:
    """Pillow resize onto a width x height surface that passed the allocation limit."""
    check_surface(height, width)
    try:
        pil = to_pil(image).resize((int(width), int(height)), method)
        return from_pil(pil, fmt=image.format)
    except MemoryError as exc:
        raise ContextUnavailable(f"Cannot allocate {width}x{height} surface: {exc}") from exc


def flatten(image: Image, background: tuple[int, int, int] = (0, 0, 0)) -> PILImage.Image:
    """RGB rendering of an Image composited over an opaque background color."""
    base = PILImage.new("RGBA", (image.width, image.height), (*background, 255))
    return PILImage.alpha_composite(base, to_pil(image)).convert("RGB")


def decode(data: bytes, mime_type: str) -> Image:
    """Decode encoded bytes into an RGBA Image.

    Multi-frame inputs (GIF, TIFF) yield their first frame.
    """
    mime = (mime_type or "").lower().split(";")[0].strip()
    expected = MIME_TO_FORMAT.get(mime)
    if expected is None:
        raise DecodeError(f"Unsupported image type: {mime_type!r}")
    if not data:
        raise DecodeError("Empty image payload")
    try:
        with PILImage.open(BytesIO(data)) as pil:
            pil.load()
            detected = (pil.format or expected).upper()
            rgba = pil.convert("RGBA")
    except (
        UnidentifiedImageError,
        PILImage.DecompressionBombError,
        OSError,
        ValueError,
        SyntaxError,
    ) as exc:
        raise DecodeError(f"Failed to load image: {exc}") from exc
    if detected != expected:
        logger.debug("Declared %s but content is %s", mime, detected)
    arr = np.asarray(rgba, dtype=np.uint8)
    return Image(
        width=rgba.width,
        height=rgba.height,
        pixels=arr,
        format=normalize_format(detected),
        byte_size=len(data),
    )


def to_pil(image: Image) -> PILImage.Image:
    return PILImage.fromarray(np.ascontiguousarray(image.pixels))


def from_pil(pil: PILImage.Image, fmt: str = "png") -> Image:
    return Image.from_array(np.asarray(pil.convert("RGBA"), dtype=np.uint8), fmt=fmt)


def encode(image: Image, target_format: str, quality: float = 92) -> bytes:
    """Serialize an Image. Quality is clamped to [1, 100] and only used for lossy formats."""
    key = normalize_format(target_format)
    if key not in OUTPUT_FORMATS:
        raise EncodeError(f"Unsupported output format: {target_format}")
    pil_format, _, lossy = OUTPUT_FORMATS[key]
    q = clamp_quality(quality)

    # no alpha in JPEG: composite over black like a canvas export
    pil = flatten(image) if pil_format == "JPEG" else to_pil(image)

    save_kwargs: dict = {}
    if lossy:
        save_kwargs["quality"] = q
    buf = BytesIO()
    try:
        pil.save(buf, format=pil_format, **save_kwargs)
    except (OSError, ValueError, KeyError) as exc:
        raise EncodeError(f"Failed to encode {key}: {exc}") from exc
    return buf.getvalue()


def recommend_format(image: Image, source_mime: str | None = None) -> str:
    """Suggest an output format: webp for large images, png for png sources or small ones."""
    pixel_count = image.width * image.height
    if pixel_count > 500_000:
        return "webp"
    if (source_mime or "").lower() == "image/png" or pixel_count < 100_000:
        return "png"
    return "jpeg"
