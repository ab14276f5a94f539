"""Exceptions raised by the pixel art converter."""


class PixelArtError(Exception):
    """Base class for all converter errors."""


class InvalidInputError(PixelArtError, ValueError):
    """Raised for malformed buffers or out-of-range parameters, before any output is produced."""


class PixelBoundsError(PixelArtError, IndexError):
    """Raised when a pixel coordinate falls outside the buffer."""

    def __init__(self, x: int, y: int, width: int, height: int):
        super().__init__(f"Pixel ({x}, {y}) is outside the {width}x{height} buffer")
        self.x = x
        self.y = y
        self.width = width
        self.height = height
