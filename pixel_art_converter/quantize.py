"""
Block quantization ("pixelation").

The buffer is tiled into ``block_size`` squares (clipped at the right and
bottom edges). Each block is reduced to one representative color, snapped to
the nearest palette entry, and painted back over the whole block.
"""

import logging
import math

import numpy as np

from .buffers import block_grid, check_pixel_buffer
from .colormath import Color
from .errors import InvalidInputError

logger = logging.getLogger(__name__)

MODES = ("average", "dominant")


def snap_to_palette(colors: np.ndarray, palette: list[Color]) -> np.ndarray:
    """
    Find the nearest palette color for each row of an (n, 3) array.

    Equidistant palette entries resolve to the earliest one, i.e. the
    lightest given the palette's sort order.
    """
    pal = np.asarray(palette, dtype=np.float64)
    colors = np.asarray(colors, dtype=np.float64)
    best_dist = np.full(len(colors), np.inf)
    best_idx = np.zeros(len(colors), dtype=np.intp)
    for i, p in enumerate(pal):
        dist = np.sum((colors - p) ** 2, axis=1)
        closer = dist < best_dist
        best_dist[closer] = dist[closer]
        best_idx[closer] = i
    return pal[best_idx].astype(np.uint8)


def block_means(buffer: np.ndarray, block_size: int) -> np.ndarray:
    """Mean RGB of every block, shape (block_rows, block_cols, 3), float."""
    height, width = buffer.shape[:2]
    ys = np.arange(0, height, block_size)
    xs = np.arange(0, width, block_size)
    rgb = buffer[:, :, :3].astype(np.float64)

    sums = np.add.reduceat(np.add.reduceat(rgb, ys, axis=0), xs, axis=1)
    rows = np.diff(np.append(ys, height))
    cols = np.diff(np.append(xs, width))
    counts = rows[:, None] * cols[None, :]
    return sums / counts[:, :, None]


def block_color_dominant(block: np.ndarray) -> Color:
    """
    Most frequent exact RGB triple in a block.

    Ties go to the color seen first in row-major order.
    """
    pixels = block[:, :, :3].reshape(-1, 3).astype(np.uint32)
    keys = (pixels[:, 0] << 16) | (pixels[:, 1] << 8) | pixels[:, 2]
    values, first_seen, counts = np.unique(keys, return_index=True, return_counts=True)
    top = counts == counts.max()
    key = int(values[top][np.argmin(first_seen[top])])
    return ((key >> 16) & 0xFF, (key >> 8) & 0xFF, key & 0xFF)


def block_dominants(buffer: np.ndarray, block_size: int) -> np.ndarray:
    """Dominant color of every block, shape (block_rows, block_cols, 3)."""
    height, width = buffer.shape[:2]
    n_rows = math.ceil(height / block_size)
    n_cols = math.ceil(width / block_size)
    out = np.zeros((n_rows, n_cols, 3), dtype=np.float64)

    for x0, y0, x1, y1 in block_grid(width, height, block_size):
        out[y0 // block_size, x0 // block_size] = block_color_dominant(buffer[y0:y1, x0:x1])

    return out


def pixelate(
    buffer: np.ndarray,
    palette: list[Color],
    block_size: int,
    mode: str = "average",
    grayscale: bool = False,
) -> np.ndarray:
    """
    Reduce the buffer to palette-colored blocks.

    Args:
        buffer: RGBA pixel buffer
        palette: Colors to snap each block to
        block_size: Block edge length in pixels (>= 1)
        mode: 'average' (block mean) or 'dominant' (most frequent color)
        grayscale: Replace each snapped color by its channel average

    Returns:
        New buffer of the same shape. Alpha is carried over from the input.
    """
    check_pixel_buffer(buffer)
    if block_size < 1:
        raise InvalidInputError(f"Block size must be at least 1, got {block_size}")
    if not palette:
        raise InvalidInputError("Palette is empty")
    if mode not in MODES:
        raise InvalidInputError(f"Unknown pixelation mode {mode!r}, expected one of {MODES}")

    height, width = buffer.shape[:2]

    if mode == "average":
        reps = block_means(buffer, block_size)
    else:
        reps = block_dominants(buffer, block_size)

    n_rows, n_cols = reps.shape[:2]
    snapped = snap_to_palette(reps.reshape(-1, 3), palette).reshape(n_rows, n_cols, 3)

    # Applied after snapping, so gray values may fall outside the palette
    if grayscale:
        gray = np.rint(snapped.astype(np.float64).sum(axis=2) / 3).astype(np.uint8)
        snapped = np.repeat(gray[:, :, None], 3, axis=2)

    logger.debug("Pixelated %dx%d into %dx%d blocks (%s)", width, height, n_cols, n_rows, mode)

    full = np.repeat(np.repeat(snapped, block_size, axis=0), block_size, axis=1)
    out = buffer.copy()
    out[:, :, :3] = full[:height, :width]
    return out
