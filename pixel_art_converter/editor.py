"""
Interactive palette recoloring.

The editor owns a working copy of the pixelated image. A palette color is
chosen as the replacement, then a pixel is picked: every pixel sharing that
pixel's exact color is repainted with the replacement, and the old color is
marked as replaced so it cannot be chosen again until ``reset()``.
"""

import logging
from dataclasses import dataclass
from enum import Enum

import numpy as np
from PIL import ImageDraw

from .buffers import block_grid, get_pixel, to_image
from .colormath import Color, as_color
from .palette import SMART_COMBINE_THRESHOLD, smart_combine

logger = logging.getLogger(__name__)

DIM_FACTOR = 0.3
HIGHLIGHT_BORDER_WIDTH = 2
HIGHLIGHT_BORDER_COLOR = (255, 255, 0, 255)  # Yellow


class EditorState(Enum):
    """Recolor workflow states."""

    IDLE = "idle"
    SOURCE_SELECTED = "source_selected"  # Replacement color chosen, waiting for a target pixel


@dataclass(frozen=True)
class PendingSubstitution:
    """A substitution waiting for approval when confirmation mode is on."""

    old_color: Color
    new_color: Color


class PaletteEditor:
    """Exact-color substitution over a working pixel buffer."""

    def __init__(
        self,
        buffer: np.ndarray,
        palette: list[Color],
        block_size: int,
        confirmation_mode: bool = False,
    ):
        self.working = buffer.copy()
        self.palette = list(palette)
        self.block_size = block_size
        self.confirmation_mode = confirmation_mode

        self.replaced: set[Color] = set()
        self.state = EditorState.IDLE
        self.pending_replacement: Color | None = None
        self.pending_confirmation: PendingSubstitution | None = None
        self.highlight_target: Color | None = None
        self.highlight_visible = False

    def select_replacement_color(self, color) -> bool:
        """
        Choose the color that picked pixels will be repainted with.

        Usually a palette entry, but any RGB color is accepted so that the
        eyedropper can pick colors that are not in the palette, such as edge
        or grid black.

        Returns:
            False (and changes nothing) if the color was already replaced
        """
        color = as_color(color)
        if color in self.replaced:
            logger.debug("Ignoring selection of replaced color %s", color)
            return False

        self.state = EditorState.SOURCE_SELECTED
        self.pending_replacement = color
        self.pending_confirmation = None
        self.highlight_target = color
        self.highlight_visible = True
        return True

    def pick_source_pixel(self, x: int, y: int) -> bool:
        """Eyedropper: select the color under (x, y) as the replacement."""
        return self.select_replacement_color(get_pixel(self.working, x, y))

    def pick_target_pixel(self, x: int, y: int) -> bool:
        """
        Replace every pixel matching the color at (x, y) with the pending replacement.

        With confirmation mode on, the substitution is only recorded in
        ``pending_confirmation`` and applied by ``confirm()``.

        Returns:
            True if a substitution was performed or queued for confirmation

        Raises:
            PixelBoundsError: If (x, y) lies outside the buffer
        """
        if self.state is not EditorState.SOURCE_SELECTED:
            return False

        old_color = get_pixel(self.working, x, y)
        if old_color in self.replaced or old_color == self.pending_replacement:
            logger.debug("Ignoring target %s at (%d, %d)", old_color, x, y)
            return False

        if self.confirmation_mode:
            self.pending_confirmation = PendingSubstitution(old_color, self.pending_replacement)
            return True

        self.perform_substitution(old_color, self.pending_replacement)
        return True

    def confirm(self) -> bool:
        """Apply the substitution awaiting approval."""
        if self.pending_confirmation is None:
            return False
        pending = self.pending_confirmation
        self.perform_substitution(pending.old_color, pending.new_color)
        return True

    def decline(self) -> bool:
        """Drop the substitution awaiting approval; the replacement stays selected."""
        if self.pending_confirmation is None:
            return False
        self.pending_confirmation = None
        return True

    def perform_substitution(self, old_color, new_color) -> np.ndarray:
        """Rewrite every pixel whose RGB exactly equals ``old_color``."""
        old_color = as_color(old_color)
        new_color = as_color(new_color)

        mask = self.color_mask(old_color)
        out = self.working.copy()
        out[mask, :3] = new_color
        self.working = out
        logger.debug("Replaced %d pixels of %s with %s", int(mask.sum()), old_color, new_color)

        self.replaced.add(old_color)
        self.cancel()
        return self.working

    def cancel(self) -> None:
        """Drop the current selection without touching the image."""
        self.state = EditorState.IDLE
        self.pending_replacement = None
        self.pending_confirmation = None
        self.highlight_target = None
        self.highlight_visible = False

    def reset(self) -> None:
        """Forget replaced colors and any selection. The working image is left as is."""
        self.replaced.clear()
        self.cancel()

    def toggle_highlight(self) -> bool:
        """Show or hide the highlight overlay for the pending replacement color."""
        if self.pending_replacement is None:
            return False
        self.highlight_target = self.pending_replacement
        self.highlight_visible = not self.highlight_visible
        return self.highlight_visible

    def color_mask(self, color: Color) -> np.ndarray:
        return np.all(self.working[:, :, :3] == color, axis=2)

    def highlight_mask(self) -> np.ndarray | None:
        if self.highlight_target is None:
            return None
        return self.color_mask(self.highlight_target)

    def display_buffer(self) -> np.ndarray:
        """
        Image to show, with the highlight overlay if active.

        Pixels not matching the highlighted color are dimmed, and blocks whose
        center pixel matches get a border. Always a copy; the working buffer
        is never modified here.
        """
        display = self.working.copy()
        mask = self.highlight_mask()
        if not self.highlight_visible or mask is None:
            return display

        dimmed = np.rint(display[:, :, :3].astype(np.float64) * DIM_FACTOR).astype(np.uint8)
        display[~mask, :3] = dimmed[~mask]

        height, width = display.shape[:2]
        img = to_image(display)
        draw = ImageDraw.Draw(img)
        for x0, y0, x1, y1 in block_grid(width, height, self.block_size):
            if mask[(y0 + y1) // 2, (x0 + x1) // 2]:
                draw.rectangle(
                    [(x0, y0), (x1 - 1, y1 - 1)],
                    outline=HIGHLIGHT_BORDER_COLOR,
                    width=HIGHLIGHT_BORDER_WIDTH,
                )

        return np.array(img, dtype=np.uint8)

    def apply_smart_combine(self, threshold: float = SMART_COMBINE_THRESHOLD) -> list[Color]:
        """Merge near-duplicate palette colors and remap the working image."""
        self.palette, self.working = smart_combine(self.palette, self.working, threshold)
        self.cancel()
        return self.palette
