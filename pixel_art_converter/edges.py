"""Sobel edge overlay, applied after quantization."""

import logging

import numpy as np
from scipy.ndimage import correlate

from .buffers import check_pixel_buffer
from .errors import InvalidInputError

logger = logging.getLogger(__name__)

SOBEL_X = np.array([
    [-1, 0, 1],
    [-2, 0, 2],
    [-1, 0, 1],
], dtype=np.float64)

SOBEL_Y = np.array([
    [-1, -2, -1],
    [0, 0, 0],
    [1, 2, 1],
], dtype=np.float64)

EDGE_COLOR = (0, 0, 0, 255)


def sobel_magnitude(buffer: np.ndarray) -> np.ndarray:
    """
    Gradient magnitude of the channel-average intensity.

    Only interior values are meaningful; border values depend on scipy's
    boundary mode and are ignored by callers.
    """
    gray = buffer[:, :, :3].astype(np.float64).mean(axis=2)
    gx = correlate(gray, SOBEL_X, mode="nearest")
    gy = correlate(gray, SOBEL_Y, mode="nearest")
    return np.sqrt(gx * gx + gy * gy)


def apply_edge_detection(buffer: np.ndarray, threshold: float) -> np.ndarray:
    """
    Paint strong edges opaque black.

    Interior pixels whose Sobel magnitude exceeds ``threshold`` become
    black; everything else, including the one-pixel border, is copied
    through unchanged.
    """
    check_pixel_buffer(buffer)
    if threshold < 0:
        raise InvalidInputError(f"Edge threshold must be non-negative, got {threshold}")

    out = buffer.copy()
    height, width = buffer.shape[:2]
    if height < 3 or width < 3:
        return out

    magnitude = sobel_magnitude(buffer)
    edges = np.zeros((height, width), dtype=bool)
    edges[1:-1, 1:-1] = magnitude[1:-1, 1:-1] > threshold

    out[edges] = EDGE_COLOR
    logger.debug("Edge detection marked %d pixels (threshold %s)", int(edges.sum()), threshold)
    return out
