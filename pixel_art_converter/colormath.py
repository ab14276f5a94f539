"""Distance and luminance helpers shared by every stage."""

import numpy as np

from .errors import InvalidInputError

Color = tuple[int, int, int]


def color_distance(c1: tuple[int, int, int], c2: tuple[int, int, int]) -> float:
    """Simple RGB Euclidean distance, 0-~441 range."""
    dr = int(c1[0]) - int(c2[0])
    dg = int(c1[1]) - int(c2[1])
    db = int(c1[2]) - int(c2[2])
    return float(np.sqrt(dr * dr + dg * dg + db * db))


def luminance(color: tuple[int, int, int]) -> float:
    """Perceptual luminance (ITU-R BT.601 weights)."""
    r, g, b = color[:3]
    return 0.299 * r + 0.587 * g + 0.114 * b


def sort_by_luminance(colors: list[Color]) -> list[Color]:
    """Lightest first. Stable, so equal luminance keeps input order."""
    return sorted(colors, key=luminance, reverse=True)


def as_color(value) -> Color:
    """Normalize any 3+ element sequence (numpy row, RGBA tuple) to an RGB tuple of ints."""
    if len(value) < 3:
        raise InvalidInputError(f"Color needs at least 3 channels, got {value!r}")
    r, g, b = (int(c) for c in value[:3])
    for c in (r, g, b):
        if not 0 <= c <= 255:
            raise InvalidInputError(f"Color channel out of range: {value!r}")
    return (r, g, b)
