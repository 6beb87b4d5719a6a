import io

import numpy as np
import pytest
from PIL import Image as PILImage

from rasteredit.domain.entities.image import Image
from rasteredit.domain.errors import ContextUnavailable, DecodeError, EncodeError
from rasteredit.domain.services import pixel_buffer as pb


def make_png_bytes(w=4, h=3, color=(128, 64, 32)) -> bytes:
    arr = np.zeros((h, w, 3), dtype=np.uint8)
    arr[:, :] = color
    buf = io.BytesIO()
    PILImage.fromarray(arr).save(buf, format="PNG")
    return buf.getvalue()


def test_decode_png_to_rgba():
    data = make_png_bytes()
    img = pb.decode(data, "image/png")
    assert img.size == (4, 3)
    assert img.pixels.shape == (3, 4, 4)
    assert tuple(img.pixels[0, 0]) == (128, 64, 32, 255)
    assert img.format == "png"
    assert img.byte_size == len(data)


def test_decode_rejects_unsupported_mime():
    with pytest.raises(DecodeError):
        pb.decode(make_png_bytes(), "text/plain")


def test_decode_rejects_empty_and_garbage():
    with pytest.raises(DecodeError):
        pb.decode(b"", "image/png")
    with pytest.raises(DecodeError):
        pb.decode(b"definitely not an image", "image/jpeg")


def test_image_pixels_are_read_only_copies():
    arr = np.zeros((2, 2, 4), dtype=np.uint8)
    img = Image.from_array(arr)
    arr[0, 0, 0] = 99
    assert img.pixels[0, 0, 0] == 0
    with pytest.raises(ValueError):
        img.pixels[0, 0, 0] = 1


def test_image_rejects_mismatched_shape():
    with pytest.raises(ValueError):
        Image(width=3, height=2, pixels=np.zeros((2, 2, 4), dtype=np.uint8))


def test_png_encode_is_lossless():
    rng = np.random.default_rng(1)
    img = Image.from_array(rng.integers(0, 256, size=(5, 6, 4), dtype=np.uint8))
    back = pb.decode(pb.encode(img, "png"), "image/png")
    assert back.same_pixels(img)


def test_jpeg_export_composites_alpha_over_black():
    arr = np.zeros((8, 8, 4), dtype=np.uint8)
    arr[..., 0] = 255  # fully transparent red
    img = Image.from_array(arr)
    data = pb.encode(img, "jpg", quality=95)
    back = pb.decode(data, "image/jpeg")
    assert back.format == "jpeg"
    assert back.pixels[..., :3].max() < 16


def test_encode_unknown_format():
    img = pb.decode(make_png_bytes(), "image/png")
    with pytest.raises(EncodeError):
        pb.encode(img, "psd")
    with pytest.raises(EncodeError):
        pb.mime_type_for("psd")


def test_mime_and_quality_helpers():
    assert pb.mime_type_for("jpg") == "image/jpeg"
    assert pb.mime_type_for("image/webp") == "image/webp"
    assert pb.clamp_quality(0) == 1
    assert pb.clamp_quality(150) == 100
    assert pb.clamp_quality(80.4) == 80


def test_recommend_format():
    big = Image.from_array(np.zeros((1000, 1000, 4), dtype=np.uint8))
    small = Image.from_array(np.zeros((10, 10, 4), dtype=np.uint8))
    medium = Image.from_array(np.zeros((400, 400, 4), dtype=np.uint8))
    assert pb.recommend_format(big) == "webp"
    assert pb.recommend_format(small, "image/jpeg") == "png"
    assert pb.recommend_format(medium, "image/jpeg") == "jpeg"
    assert pb.recommend_format(medium, "image/png") == "png"


def test_allocate_surface_failure_is_context_unavailable():
    with pytest.raises(ContextUnavailable):
        pb.allocate_surface(1 << 40, 1 << 40)


def test_decompression_bomb_is_decode_error(monkeypatch):
    monkeypatch.setattr(PILImage, "MAX_IMAGE_PIXELS", 1000)
    with pytest.raises(DecodeError):
        pb.decode(make_png_bytes(100, 100), "image/png")


def test_resample_refuses_oversized_surface():
    img = Image.from_array(np.zeros((2, 2, 4), dtype=np.uint8))
    with pytest.raises(ContextUnavailable):
        pb.resample(img, 200_000, 200_000)
    assert pb.resample(img, 4, 3).size == (4, 3)


def test_flatten_composites_over_black():
    arr = np.zeros((1, 2, 4), dtype=np.uint8)
    arr[0, 0] = (200, 100, 50, 255)
    arr[0, 1] = (200, 100, 50, 0)
    flat = np.asarray(pb.flatten(Image.from_array(arr)))
    assert tuple(flat[0, 0]) == (200, 100, 50)
    assert tuple(flat[0, 1]) == (0, 0, 0)
