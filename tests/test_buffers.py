import re

import numpy as np
import pytest
from PIL import Image

from pixel_art_converter.buffers import (
    as_pixel_buffer,
    block_grid,
    check_pixel_buffer,
    count_unique_colors,
    download_filename,
    get_pixel,
    load_image,
    rotate_buffer,
    save_png,
)
from pixel_art_converter.errors import InvalidInputError, PixelBoundsError


def test_rgb_array_gains_opaque_alpha():
    rgb = np.zeros((2, 3, 3), dtype=np.uint8)
    buf = as_pixel_buffer(rgb)
    assert buf.shape == (2, 3, 4)
    assert np.all(buf[:, :, 3] == 255)


def test_pil_image_is_converted_to_rgba():
    img = Image.new("L", (3, 2), color=100)
    buf = as_pixel_buffer(img)
    assert buf.shape == (2, 3, 4)
    np.testing.assert_array_equal(buf[0, 0], [100, 100, 100, 255])


@pytest.mark.parametrize("shape", [(0, 4, 4), (4, 0, 3), (4, 4), (4, 4, 2)])
def test_rejects_malformed_buffers(shape):
    with pytest.raises(InvalidInputError):
        as_pixel_buffer(np.zeros(shape, dtype=np.uint8))


def test_rejects_out_of_range_channels():
    with pytest.raises(InvalidInputError):
        as_pixel_buffer(np.full((2, 2, 3), 300, dtype=np.int32))


def test_block_grid_clips_last_row_and_column():
    blocks = list(block_grid(5, 3, 2))
    assert len(blocks) == 3 * 2
    assert blocks[0] == (0, 0, 2, 2)
    assert blocks[2] == (4, 0, 5, 2)
    assert blocks[-1] == (4, 2, 5, 3)


def test_get_pixel_bounds():
    buf = as_pixel_buffer(np.zeros((2, 3, 3), dtype=np.uint8))
    assert get_pixel(buf, 2, 1) == (0, 0, 0)
    with pytest.raises(PixelBoundsError):
        get_pixel(buf, 3, 0)
    with pytest.raises(IndexError):
        get_pixel(buf, 0, -1)


def test_rotate_clockwise_swaps_dimensions():
    buf = np.zeros((1, 2, 4), dtype=np.uint8)
    buf[0, 0] = [255, 0, 0, 255]
    buf[0, 1] = [0, 0, 255, 255]

    rotated = rotate_buffer(buf, 90)
    assert rotated.shape == (2, 1, 4)
    # Left end of a row ends up on top after a clockwise turn
    np.testing.assert_array_equal(rotated[0, 0], [255, 0, 0, 255])
    np.testing.assert_array_equal(rotated[1, 0], [0, 0, 255, 255])

    np.testing.assert_array_equal(rotate_buffer(rotate_buffer(buf, 90), 270), buf)
    assert rotate_buffer(buf, 180).shape == buf.shape


def test_rotate_does_not_alias_input():
    buf = np.zeros((2, 2, 4), dtype=np.uint8)
    out = rotate_buffer(buf, 0)
    out[0, 0] = 7
    assert buf[0, 0, 0] == 0


def test_rotate_rejects_other_angles():
    with pytest.raises(InvalidInputError):
        rotate_buffer(np.zeros((2, 2, 4), dtype=np.uint8), 45)


def test_count_unique_colors_ignores_alpha():
    buf = np.zeros((2, 2, 4), dtype=np.uint8)
    buf[0, 0] = [10, 20, 30, 0]
    buf[0, 1] = [10, 20, 30, 255]
    buf[1, 0] = [1, 2, 3, 255]
    assert count_unique_colors(buf) == 3


def test_png_round_trip(tmp_path):
    buf = np.zeros((3, 4, 4), dtype=np.uint8)
    buf[..., 0] = 200
    buf[..., 3] = 255
    path = save_png(buf, tmp_path / "out.png")
    np.testing.assert_array_equal(load_image(path), buf)


def test_load_image_rejects_non_images(tmp_path):
    bogus = tmp_path / "not_an_image.png"
    bogus.write_text("hello")
    with pytest.raises(InvalidInputError):
        load_image(bogus)


def test_download_filename():
    assert download_filename(1700000000123) == "pixel-art-1700000000123.png"
    assert re.fullmatch(r"pixel-art-\d+\.png", download_filename())


def test_check_pixel_buffer():
    check_pixel_buffer(np.zeros((1, 1, 4), dtype=np.uint8))
    check_pixel_buffer(np.zeros((2, 3, 3), dtype=np.uint8))
    for bad in (np.zeros((0, 3, 4)), np.zeros((3, 0, 4)), np.zeros((3, 3)), [[1, 2, 3]]):
        with pytest.raises(InvalidInputError):
            check_pixel_buffer(bad)
