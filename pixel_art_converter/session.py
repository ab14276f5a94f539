"""
Conversion settings and the per-image editing session.

``recompute`` is the single entry point that turns the loaded image and the
current settings into a (buffer, palette) pair. Hosts change settings through
``Session.update`` and read the result back; nothing is recomputed behind
their back.
"""

import dataclasses
import logging
from dataclasses import dataclass
from pathlib import Path

import numpy as np

from .buffers import (
    VALID_ROTATIONS,
    as_pixel_buffer,
    count_unique_colors,
    download_filename,
    rotate_buffer,
    save_png,
)
from .colormath import Color
from .edges import apply_edge_detection
from .editor import PaletteEditor
from .errors import InvalidInputError
from .grid import draw_grid_lines
from .palette import MAX_PALETTE_SIZE, MIN_PALETTE_SIZE, extract_palette, validate_palette_size
from .quantize import pixelate

logger = logging.getLogger(__name__)

BLOCK_SIZE_RANGE = (1, 20)
EDGE_THRESHOLD_RANGE = (0, 100)
LINE_WIDTH_RANGE = (0, 5)
PALETTE_SIZE_STEP = 2


@dataclass
class ConversionSettings:
    """User-adjustable conversion parameters."""

    block_size: int = 7
    palette_size: int = 8
    edge_threshold: int = 15
    grid_line_width: int = 1
    rotation: int = 0  # degrees clockwise

    grayscale: bool = False
    grid_lines: bool = False
    edge_detection: bool = False
    dominant_color_mode: bool = False
    confirmation_mode: bool = False

    # Seed for k-means++; None draws fresh entropy on every extraction
    seed: int | None = None

    def validate(self) -> None:
        """
        Raises:
            InvalidInputError: If any parameter is out of range
        """
        _check_range("block_size", self.block_size, BLOCK_SIZE_RANGE)
        _check_range("edge_threshold", self.edge_threshold, EDGE_THRESHOLD_RANGE)
        _check_range("grid_line_width", self.grid_line_width, LINE_WIDTH_RANGE)
        validate_palette_size(self.palette_size)
        if self.rotation not in VALID_ROTATIONS:
            raise InvalidInputError(f"Rotation must be one of {VALID_ROTATIONS}, got {self.rotation}")

    def replace(self, **changes) -> "ConversionSettings":
        """Validated copy with some fields changed."""
        settings = dataclasses.replace(self, **changes)
        settings.validate()
        return settings

    @property
    def mode(self) -> str:
        return "dominant" if self.dominant_color_mode else "average"


def _check_range(name: str, value: int, bounds: tuple[int, int]) -> None:
    lo, hi = bounds
    if not lo <= value <= hi:
        raise InvalidInputError(f"{name} must be in [{lo}, {hi}], got {value}")


def render(rotated: np.ndarray, palette: list[Color], settings: ConversionSettings) -> np.ndarray:
    """Pixelate, then optionally add the edge and grid overlays."""
    buffer = pixelate(
        rotated,
        palette,
        settings.block_size,
        mode=settings.mode,
        grayscale=settings.grayscale,
    )
    if settings.edge_detection:
        buffer = apply_edge_detection(buffer, settings.edge_threshold)
    if settings.grid_lines and settings.grid_line_width > 0:
        buffer = draw_grid_lines(buffer, settings.block_size, settings.grid_line_width)
    return buffer


def recompute(session: "Session") -> tuple[np.ndarray, list[Color]]:
    """
    Produce the pixel art and palette for the session's image and settings.

    Reuses the session's palette when it has one; otherwise extracts a new
    one from the rotated image. Does not modify the session.
    """
    settings = session.settings
    rotated = rotate_buffer(session.original, settings.rotation)

    palette = session.palette
    if palette is None:
        palette = extract_palette(rotated, settings.palette_size, np.random.default_rng(settings.seed))
        if len(palette) < settings.palette_size:
            logger.debug("Palette clamped to %d colors", len(palette))

    return render(rotated, palette, settings), palette


def image_summary(original: np.ndarray, rotation: int) -> str:
    """One-line description of the source and result dimensions."""
    height, width = original.shape[:2]
    rotated = rotate_buffer(original, rotation)
    r_height, r_width = rotated.shape[:2]
    unique = count_unique_colors(rotated)
    return (
        f"Original: {width}x{height}px | "
        f"Rotated: {r_width}x{r_height}px (Rotation: {rotation}°) | "
        f"Unique Colors: {unique:,} | "
        f"Pixel Art: {r_width}x{r_height}px"
    )


class Session:
    """
    State for one loaded image: settings, palette and the recolor editor.

    Any settings change rebuilds the pixel art from the original image, which
    also discards recolor edits.
    """

    def __init__(self, image, settings: ConversionSettings | None = None):
        self.settings = settings or ConversionSettings()
        self.settings.validate()
        self.original = as_pixel_buffer(image)
        self.palette: list[Color] | None = None
        self.editor: PaletteEditor | None = None
        self.refresh()

    @property
    def buffer(self) -> np.ndarray:
        """Current working image, including recolor edits."""
        return self.editor.working

    def refresh(self) -> None:
        buffer, palette = recompute(self)
        self.palette = palette
        self.editor = PaletteEditor(
            buffer,
            palette,
            self.settings.block_size,
            confirmation_mode=self.settings.confirmation_mode,
        )

    def update(self, **changes) -> None:
        """
        Change settings and rebuild.

        The palette is only re-extracted when the palette size or rotation
        changes.
        """
        settings = self.settings.replace(**changes)
        if (settings.palette_size, settings.rotation) != (self.settings.palette_size, self.settings.rotation):
            self.palette = None
        self.settings = settings
        self.refresh()

    def load_image(self, image) -> None:
        """Replace the image wholesale; rotation goes back to 0."""
        self.original = as_pixel_buffer(image)
        self.palette = None
        self.settings = self.settings.replace(rotation=0)
        self.refresh()

    def rotate_left(self) -> None:
        self.update(rotation=(self.settings.rotation - 90) % 360)

    def rotate_right(self) -> None:
        self.update(rotation=(self.settings.rotation + 90) % 360)

    def increase_palette_size(self) -> None:
        self.update(palette_size=min(MAX_PALETTE_SIZE, self.settings.palette_size + PALETTE_SIZE_STEP))

    def decrease_palette_size(self) -> None:
        self.update(palette_size=max(MIN_PALETTE_SIZE, self.settings.palette_size - PALETTE_SIZE_STEP))

    def smart_combine(self) -> list[Color]:
        """Merge near-duplicate palette colors in place of the current palette."""
        self.palette = self.editor.apply_smart_combine()
        return self.palette

    def summary(self) -> str:
        return image_summary(self.original, self.settings.rotation)

    def save(self, output_path: str | Path | None = None) -> Path:
        """Write the working image as PNG (``pixel-art-<timestamp>.png`` by default)."""
        if output_path is None:
            output_path = download_filename()
        return save_png(self.buffer, output_path)
