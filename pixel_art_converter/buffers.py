"""
Pixel buffer helpers: validation, block tiling, rotation and image I/O.

A pixel buffer is a ``(height, width, 4)`` uint8 RGBA array. Stages never
write into the array they were given; they return a fresh one.
"""

import logging
import math
import time
from pathlib import Path
from typing import Iterator

import numpy as np
from PIL import Image

from .colormath import Color
from .errors import InvalidInputError, PixelBoundsError

logger = logging.getLogger(__name__)

VALID_ROTATIONS = (0, 90, 180, 270)


def as_pixel_buffer(data) -> np.ndarray:
    """
    Coerce an image or array into an RGBA pixel buffer.

    Accepts a PIL image (any mode), an ``(h, w, 3)`` RGB array or an
    ``(h, w, 4)`` RGBA array. RGB input gets an opaque alpha channel.

    Raises:
        InvalidInputError: If the input is empty or not an image-shaped array
    """
    if isinstance(data, Image.Image):
        if data.width <= 0 or data.height <= 0:
            raise InvalidInputError(f"Image has non-positive dimensions: {data.width}x{data.height}")
        return np.array(data.convert("RGBA"), dtype=np.uint8)

    arr = np.asarray(data)
    check_pixel_buffer(arr)
    if arr.dtype != np.uint8:
        if np.issubdtype(arr.dtype, np.integer) and (arr.min() < 0 or arr.max() > 255):
            raise InvalidInputError("Channel values must lie in 0-255")
        if not np.issubdtype(arr.dtype, np.integer):
            raise InvalidInputError(f"Expected integer channels, got dtype {arr.dtype}")
        arr = arr.astype(np.uint8)

    if arr.shape[2] == 3:
        alpha = np.full(arr.shape[:2] + (1,), 255, dtype=np.uint8)
        return np.concatenate([arr, alpha], axis=2)
    return arr.copy()


def check_pixel_buffer(buffer: np.ndarray) -> None:
    """
    Reject anything a pipeline stage cannot work on.

    Raises:
        InvalidInputError: If the buffer is not a non-empty (h, w, 3|4) array
    """
    shape = getattr(buffer, "shape", None)
    if shape is None or len(shape) != 3 or shape[2] not in (3, 4):
        raise InvalidInputError(f"Expected an (h, w, 3) or (h, w, 4) array, got shape {shape}")
    if shape[0] <= 0 or shape[1] <= 0:
        raise InvalidInputError(f"Buffer has non-positive dimensions: {shape[1]}x{shape[0]}")


def block_grid(width: int, height: int, block_size: int) -> Iterator[tuple[int, int, int, int]]:
    """
    Yield ``(x0, y0, x1, y1)`` half-open bounds of every block, row by row.

    The grid is ``ceil(width / block_size) x ceil(height / block_size)``;
    blocks in the last row and column are clipped to the buffer.
    """
    if block_size < 1:
        raise InvalidInputError(f"Block size must be at least 1, got {block_size}")
    n_cols = math.ceil(width / block_size)
    n_rows = math.ceil(height / block_size)
    for by in range(n_rows):
        y0 = by * block_size
        y1 = min(y0 + block_size, height)
        for bx in range(n_cols):
            x0 = bx * block_size
            x1 = min(x0 + block_size, width)
            yield x0, y0, x1, y1


def get_pixel(buffer: np.ndarray, x: int, y: int) -> Color:
    """Read the RGB color at (x, y)."""
    height, width = buffer.shape[:2]
    if not (0 <= x < width and 0 <= y < height):
        raise PixelBoundsError(x, y, width, height)
    r, g, b = buffer[y, x, :3]
    return (int(r), int(g), int(b))


def rotate_buffer(buffer: np.ndarray, degrees: int) -> np.ndarray:
    """Rotate clockwise by a multiple of 90 degrees. 90 and 270 swap width and height."""
    if degrees not in VALID_ROTATIONS:
        raise InvalidInputError(f"Rotation must be one of {VALID_ROTATIONS}, got {degrees}")
    # np.rot90 turns counter-clockwise for positive k
    return np.rot90(buffer, k=-(degrees // 90)).copy()


def count_unique_colors(buffer: np.ndarray) -> int:
    """Number of distinct RGB triples, alpha ignored."""
    rgb = buffer[:, :, :3].reshape(-1, 3)
    return int(len(np.unique(rgb, axis=0)))


def load_image(input_path: str | Path) -> np.ndarray:
    """
    Load an image file as an RGBA pixel buffer.

    Raises:
        InvalidInputError: If the file cannot be decoded as an image
    """
    try:
        img = Image.open(input_path)
        img.load()
    except (OSError, Image.DecompressionBombError) as e:
        raise InvalidInputError(f"Failed to load image: {e}") from e

    logger.debug("Loaded %s (%s, %dx%d)", input_path, img.mode, img.width, img.height)
    return as_pixel_buffer(img)


def to_image(buffer: np.ndarray) -> Image.Image:
    return Image.fromarray(buffer)


def save_png(buffer: np.ndarray, output_path: str | Path) -> Path:
    """Encode the buffer as PNG."""
    output_path = Path(output_path)
    to_image(buffer).save(output_path, format="PNG")
    return output_path


def download_filename(timestamp_ms: int | None = None) -> str:
    """Default export name, ``pixel-art-<unix milliseconds>.png``."""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"pixel-art-{timestamp_ms}.png"
