"""Grid lines over block boundaries."""

import numpy as np
from PIL import ImageDraw

from .buffers import check_pixel_buffer, to_image
from .errors import InvalidInputError

LINE_COLOR = (0, 0, 0, 255)


def line_positions(length: int, block_size: int) -> list[int]:
    """Every multiple of block_size in [0, length], plus the far edge."""
    positions = list(range(0, length + 1, block_size))
    if positions[-1] != length:
        positions.append(length)
    return positions


def line_span(pos: int, line_width: int, length: int) -> tuple[int, int]:
    """First and last pixel (inclusive) covered by a line centred on ``pos``, kept inside the buffer."""
    start = pos - line_width // 2
    start = max(0, min(start, length - line_width))
    return start, start + line_width - 1


def draw_grid_lines(buffer: np.ndarray, block_size: int, line_width: int) -> np.ndarray:
    """
    Draw black lines along every block boundary.

    A zero line width returns an unchanged copy.
    """
    check_pixel_buffer(buffer)
    if block_size < 1:
        raise InvalidInputError(f"Block size must be at least 1, got {block_size}")
    if line_width < 0:
        raise InvalidInputError(f"Line width must be non-negative, got {line_width}")
    if line_width == 0:
        return buffer.copy()

    height, width = buffer.shape[:2]
    img = to_image(buffer.copy())
    draw = ImageDraw.Draw(img)

    # Vertical lines
    for x in line_positions(width, block_size):
        x0, x1 = line_span(x, line_width, width)
        draw.rectangle([(x0, 0), (x1, height - 1)], fill=LINE_COLOR)

    # Horizontal lines
    for y in line_positions(height, block_size):
        y0, y1 = line_span(y, line_width, height)
        draw.rectangle([(0, y0), (width - 1, y1)], fill=LINE_COLOR)

    return np.array(img, dtype=np.uint8)
