"""Command-line interface for png2svg."""

import argparse
import sys

from PIL import Image

from .core import IncompleteCoverageError, __version__, png_to_svg


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="png2svg",
        description="Convert a raster image to an SVG made of solid-color rectangles",
    )
    parser.add_argument("input", nargs="?", help="Input image path")
    parser.add_argument("-o", "--output", default="-", help="Output SVG path (default: - for stdout)")
    parser.add_argument("-p", "--single-pixel", action="store_true", help="Use only single pixel rectangles")
    parser.add_argument("-c", "--pink", action="store_true", help="Color expanded rectangles pink")
    parser.add_argument("-q", "--quantize", action="store_true", help="Quantize colors (max 4096 colors)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Print progress to stderr")
    parser.add_argument("-V", "--version", action="version", version=f"png2svg {__version__}")

    args = parser.parse_args(argv)

    if args.input is None:
        print("An input PNG filename is required.", file=sys.stderr)
        return 1

    try:
        png_to_svg(
            args.input,
            args.output,
            single_pixel=args.single_pixel,
            pink=args.pink,
            quantize=args.quantize,
            verbose=args.verbose,
        )
    except (OSError, ValueError, Image.DecompressionBombError, IncompleteCoverageError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
