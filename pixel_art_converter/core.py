"""
Convert an image file into pixel art.

The image is rotated, reduced to a k-means palette, pixelated block by block,
and optionally outlined with Sobel edges and grid lines before being written
out as PNG.
"""

from pathlib import Path

from .buffers import download_filename, load_image
from .palette import format_palette
from .session import ConversionSettings, Session


def convert_image(
    input_path: str | Path,
    output_path: str | Path | None = None,
    settings: ConversionSettings | None = None,
    smart_combine: bool = False,
    verbose: bool = True,
) -> Session:
    """
    Convert an image file and save the result.

    Args:
        input_path: Path to the input image
        output_path: Where to write the PNG (default: pixel-art-<timestamp>.png
            next to the input)
        settings: Conversion parameters (defaults if None)
        smart_combine: Merge near-duplicate palette colors before saving
        verbose: Print progress info

    Returns:
        The session holding the result, palette and recolor editor
    """
    input_path = Path(input_path)
    settings = settings or ConversionSettings()

    # Load image
    image = load_image(input_path)
    if verbose:
        print(f"Input image: {image.shape[1]}x{image.shape[0]}")

    session = Session(image, settings)

    if verbose:
        print(session.summary())
        print(f"Block size {settings.block_size}px, {settings.mode} mode")
        if len(session.palette) < settings.palette_size:
            print(f"  Only {len(session.palette)} distinct colors available (requested {settings.palette_size})")

    if smart_combine:
        before = len(session.palette)
        session.smart_combine()
        if verbose:
            print(f"Smart combine: {before} -> {len(session.palette)} colors")

    if verbose:
        print(f"Palette ({len(session.palette)} colors):")
        print(format_palette(session.palette))

    if output_path is None:
        output_path = input_path.parent / download_filename()

    saved = session.save(output_path)
    if verbose:
        print(f"Saved to: {saved}")

    return session
