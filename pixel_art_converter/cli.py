"""Command-line interface for pixel-art-converter."""

import argparse
import logging
import sys

from .core import convert_image
from .errors import PixelArtError
from .session import ConversionSettings


def build_parser() -> argparse.ArgumentParser:
    defaults = ConversionSettings()
    parser = argparse.ArgumentParser(
        description="Turn an image into block-quantized pixel art with a k-means palette"
    )
    parser.add_argument("input", help="Input image path")
    parser.add_argument("-o", "--output", help="Output image path (default: pixel-art-<timestamp>.png)")
    parser.add_argument("-b", "--block-size", type=int, default=defaults.block_size, help="Block size in pixels (1-20)")
    parser.add_argument("-p", "--palette-size", type=int, default=defaults.palette_size, help="Palette size (even, 4-32)")
    parser.add_argument("-t", "--threshold", type=int, default=defaults.edge_threshold, help="Edge threshold (0-100)")
    parser.add_argument("-w", "--line-width", type=int, default=defaults.grid_line_width, help="Grid line width (0-5)")
    parser.add_argument("-r", "--rotate", type=int, default=0, choices=(0, 90, 180, 270), help="Clockwise rotation")
    parser.add_argument("--grayscale", action="store_true", help="Convert palette colors to gray")
    parser.add_argument("--grid", action="store_true", help="Draw grid lines between blocks")
    parser.add_argument("--edges", action="store_true", help="Outline edges in black")
    parser.add_argument("--dominant", action="store_true", help="Use each block's most frequent color instead of its average")
    parser.add_argument("--smart-combine", action="store_true", help="Merge near-duplicate palette colors")
    parser.add_argument("--seed", type=int, help="Random seed for palette extraction")
    parser.add_argument("-q", "--quiet", action="store_true", help="Suppress output")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.debug:
        logging.basicConfig(level=logging.DEBUG)

    try:
        settings = ConversionSettings(
            block_size=args.block_size,
            palette_size=args.palette_size,
            edge_threshold=args.threshold,
            grid_line_width=args.line_width,
            rotation=args.rotate,
            grayscale=args.grayscale,
            grid_lines=args.grid,
            edge_detection=args.edges,
            dominant_color_mode=args.dominant,
            seed=args.seed,
        )
        settings.validate()
        convert_image(
            args.input,
            args.output,
            settings=settings,
            smart_combine=args.smart_combine,
            verbose=not args.quiet,
        )
    except (PixelArtError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
