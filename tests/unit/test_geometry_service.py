import numpy as np
import pytest

from rasteredit.domain.entities.image import Image
from rasteredit.domain.errors import ContextUnavailable, RangeError
from rasteredit.domain.services.geometry_service import GeometryService as GS


def pattern(w, h):
    arr = np.zeros((h, w, 4), dtype=np.uint8)
    arr[..., 0] = np.arange(w * h, dtype=np.uint8).reshape(h, w)
    arr[..., 1] = 7
    arr[..., 3] = 255
    return Image.from_array(arr)


def test_rotate_90_is_clockwise():
    img = pattern(3, 2)
    out = GS.rotate(img, 90)
    assert out.size == (2, 3)
    assert np.array_equal(out.pixels, np.rot90(img.pixels, k=-1))


def test_rotate_zero_is_identity():
    img = pattern(5, 4)
    assert GS.rotate(img, 0).same_pixels(img)


def test_rotate_90_twice_matches_180_dimensions():
    img = pattern(6, 3)
    twice = GS.rotate(GS.rotate(img, 90), 90)
    once = GS.rotate(img, 180)
    assert twice.size == once.size == img.size


def test_rotate_45_expands_canvas_with_transparent_corners():
    img = pattern(10, 10)
    out = GS.rotate(img, 45)
    assert out.size == (14, 14)
    assert out.pixels[0, 0, 3] == 0
    assert out.pixels[7, 7, 3] == 255


def test_flip_horizontal_and_vertical():
    img = pattern(4, 3)
    assert np.array_equal(GS.flip(img, True, False).pixels, img.pixels[:, ::-1])
    assert np.array_equal(GS.flip(img, False, True).pixels, img.pixels[::-1])
    assert GS.flip(GS.flip(img, True, True), True, True).same_pixels(img)


def test_crop_inside_bounds():
    img = pattern(5, 4)
    out = GS.crop(img, 1, 1, 3, 2)
    assert out.size == (3, 2)
    assert np.array_equal(out.pixels, img.pixels[1:3, 1:4])


def test_crop_full_image_allowed():
    img = pattern(5, 4)
    assert GS.crop(img, 0, 0, 5, 4).same_pixels(img)


@pytest.mark.parametrize(
    "rect",
    [(0, 0, 6, 4), (0, 0, 5, 5), (-1, 0, 2, 2), (0, 0, 0, 2), (4, 3, 2, 1)],
)
def test_crop_out_of_bounds_raises(rect):
    with pytest.raises(RangeError):
        GS.crop(pattern(5, 4), *rect)


def test_target_size_derives_missing_dimension():
    assert GS.target_size(200, 100, 100, 0, True) == (100, 50)
    assert GS.target_size(200, 100, 0, 50, False) == (100, 50)


def test_target_size_maintain_aspect_fits_box():
    assert GS.target_size(200, 100, 100, 100, True) == (100, 50)
    assert GS.target_size(200, 100, 300, 100, True) == (200, 100)
    assert GS.target_size(200, 100, 100, 100, False) == (100, 100)


def test_target_size_rejects_invalid():
    with pytest.raises(RangeError):
        GS.target_size(10, 10, 0, 0, True)
    with pytest.raises(RangeError):
        GS.target_size(10, 10, -5, 10, True)


def test_resize_single_dimension_keeps_aspect():
    img = Image.from_array(np.zeros((480, 640, 4), dtype=np.uint8))
    out = GS.resize(img, 100, 0)
    assert out.width == 100
    assert abs(out.height - 75) <= 1


def test_thumbnail_fits_square():
    img = Image.from_array(np.zeros((150, 300, 4), dtype=np.uint8))
    assert GS.thumbnail(img, 150).size == (150, 75)


def test_resize_beyond_surface_limit_is_context_unavailable():
    with pytest.raises(ContextUnavailable):
        GS.resize(pattern(4, 4), 200_000, 200_000, maintain_aspect=False)
