"""
Palette extraction and palette merging.

Palettes are lists of unique RGB tuples sorted lightest first; the list
position (1-based) is the color number shown to the user.
"""

import logging

import numpy as np

from .buffers import check_pixel_buffer
from .colormath import Color, color_distance, sort_by_luminance
from .errors import InvalidInputError

logger = logging.getLogger(__name__)

MIN_PALETTE_SIZE = 4
MAX_PALETTE_SIZE = 32

SAMPLE_STRIDE = 2
MAX_ITERATIONS = 20
CONVERGENCE_DISTANCE = 1.0

# 5% of the channel range, scaled for three channels
SMART_COMBINE_THRESHOLD = 0.05 * 255 * 3


def validate_palette_size(num_colors: int) -> None:
    if not MIN_PALETTE_SIZE <= num_colors <= MAX_PALETTE_SIZE or num_colors % 2:
        raise InvalidInputError(
            f"Palette size must be an even number in [{MIN_PALETTE_SIZE}, {MAX_PALETTE_SIZE}], got {num_colors}"
        )


def sample_pixels(buffer: np.ndarray, stride: int = SAMPLE_STRIDE) -> np.ndarray:
    """Every ``stride``-th pixel in row-major order, as an (n, 3) float array."""
    rgb = buffer[:, :, :3].reshape(-1, 3)
    return rgb[::stride].astype(np.float64)


def nearest_centroid(pixels: np.ndarray, centroids: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """
    Nearest centroid index and squared distance per pixel.

    Keeps a running minimum so memory stays O(n) for large images. The strict
    comparison keeps the earlier centroid on ties.
    """
    best_dist = np.full(len(pixels), np.inf)
    best_idx = np.zeros(len(pixels), dtype=np.intp)
    for i, c in enumerate(centroids):
        dist = np.sum((pixels - c) ** 2, axis=1)
        closer = dist < best_dist
        best_dist[closer] = dist[closer]
        best_idx[closer] = i
    return best_idx, best_dist


def within_cluster_sse(pixels: np.ndarray, centroids: np.ndarray) -> float:
    """Total squared distance from each pixel to its nearest centroid."""
    _, dists = nearest_centroid(pixels, centroids)
    return float(dists.sum())


def kmeans_plusplus_init(
    pixels: np.ndarray,
    n_colors: int,
    rng: np.random.Generator,
) -> np.ndarray:
    """
    K-means++ seeding.

    The first centroid is a uniform draw; each following one is drawn with
    probability proportional to the squared distance to its nearest centroid.
    """
    n_pixels = len(pixels)
    centroids = [pixels[rng.integers(n_pixels)]]
    dists = np.sum((pixels - centroids[0]) ** 2, axis=1)

    for _ in range(1, n_colors):
        total = dists.sum()
        if total <= 0:
            # Every sample already sits on a centroid
            break
        idx = rng.choice(n_pixels, p=dists / total)
        centroids.append(pixels[idx])
        dists = np.minimum(dists, np.sum((pixels - pixels[idx]) ** 2, axis=1))

    return np.array(centroids, dtype=np.float64)


def run_kmeans(
    pixels: np.ndarray,
    centroids: np.ndarray,
    max_iter: int = MAX_ITERATIONS,
) -> np.ndarray:
    """Lloyd iterations; a centroid with no members keeps its previous value."""
    k = len(centroids)
    for iteration in range(max_iter):
        labels, _ = nearest_centroid(pixels, centroids)

        counts = np.bincount(labels, minlength=k)
        sums = np.stack([np.bincount(labels, weights=pixels[:, ch], minlength=k) for ch in range(3)], axis=1)
        new_centroids = centroids.copy()
        populated = counts > 0
        new_centroids[populated] = sums[populated] / counts[populated, None]

        shift = np.max(np.linalg.norm(new_centroids - centroids, axis=1))
        centroids = new_centroids
        if shift <= CONVERGENCE_DISTANCE:
            logger.debug("k-means converged after %d iterations", iteration + 1)
            break

    return centroids


def extract_palette(
    buffer: np.ndarray,
    num_colors: int,
    rng: np.random.Generator | None = None,
) -> list[Color]:
    """
    Cluster sampled pixels into ``num_colors`` representative colors.

    Args:
        buffer: RGBA pixel buffer
        num_colors: Requested palette size, even, 4-32
        rng: Random source for k-means++ seeding (system entropy if None)

    Returns:
        Palette sorted by descending luminance. Shorter than requested only
        when the samples hold fewer distinct colors than ``num_colors``.
    """
    check_pixel_buffer(buffer)
    validate_palette_size(num_colors)
    if rng is None:
        rng = np.random.default_rng()

    pixels = sample_pixels(buffer)
    distinct = np.unique(pixels, axis=0)
    k = min(num_colors, len(distinct))
    if k < num_colors:
        logger.debug("Only %d distinct sampled colors, clamping palette from %d", k, num_colors)

    centroids = kmeans_plusplus_init(pixels, k, rng)
    centroids = run_kmeans(pixels, centroids)

    palette: list[Color] = []
    for c in np.rint(centroids).astype(int):
        color = (int(c[0]), int(c[1]), int(c[2]))
        if color not in palette:
            palette.append(color)

    # Rounding can collapse centroids; cover the gap with the worst-served sample
    candidates = [(int(r), int(g), int(b)) for r, g, b in distinct]
    while len(palette) < k:
        worst_color = max(
            (c for c in candidates if c not in palette),
            key=lambda c: min(color_distance(c, p) for p in palette),
        )
        palette.append(worst_color)

    return sort_by_luminance(palette)


def smart_combine(
    palette: list[Color],
    buffer: np.ndarray,
    threshold: float = SMART_COMBINE_THRESHOLD,
) -> tuple[list[Color], np.ndarray]:
    """
    Merge near-duplicate palette colors and remap the image to match.

    Greedy single pass in palette order: each color not yet merged pulls in
    every other unmerged color within ``threshold`` and the group is
    replaced by its rounded mean.

    Returns:
        Tuple of (merged palette, remapped copy of the buffer)
    """
    check_pixel_buffer(buffer)
    merged = [False] * len(palette)
    mapping: dict[Color, Color] = {}
    combined: list[Color] = []

    for i, color in enumerate(palette):
        if merged[i]:
            continue
        group = []
        for j in range(i, len(palette)):
            if not merged[j] and color_distance(color, palette[j]) <= threshold:
                merged[j] = True
                group.append(palette[j])

        mean = np.rint(np.mean(group, axis=0)).astype(int)
        rep = (int(mean[0]), int(mean[1]), int(mean[2]))
        for member in group:
            mapping[member] = rep
        if rep not in combined:
            combined.append(rep)

    if len(combined) < len(palette):
        logger.debug("Smart combine merged %d colors into %d", len(palette), len(combined))

    out = buffer.copy()
    rgb = buffer[:, :, :3]
    for old, new in mapping.items():
        if old == new:
            continue
        mask = np.all(rgb == old, axis=2)
        out[mask, :3] = new

    return sort_by_luminance(combined), out


def palette_entries(palette: list[Color]) -> list[tuple[int, Color]]:
    """Pair each color with its 1-based display number."""
    return [(i + 1, color) for i, color in enumerate(palette)]


def format_palette(palette: list[Color]) -> str:
    return "\n".join(f"#{n} rgb({r},{g},{b})" for n, (r, g, b) in palette_entries(palette))
