"""
Convert raster images to SVG documents made of solid-color rectangles.

Every opaque pixel of the input is covered by exactly one axis-aligned rectangle.
Rectangles are found greedily: take the first uncovered pixel in scan order, grow a
box from it to the right and then downwards for as long as the new pixels are
uncovered and have the same color, then commit the box. Transparent pixels are
never drawn. The result is exact (unless quantize mode is on) but not necessarily
the smallest possible set of rectangles.
"""

import sys
from dataclasses import dataclass
from pathlib import Path

import numpy as np
from PIL import Image

from .svg import RenderedRectangle, SVGDocument

__version__ = "1.1.0"

# Fill used for expanded boxes in pink debug mode
PINK = "#ff69b4"


class IncompleteCoverageError(RuntimeError):
    """Raised when writing a document that does not cover every opaque pixel."""


def quantize_color(color: tuple[int, int, int]) -> tuple[int, int, int]:
    """Reduce a color to 4 bits per channel (at most 4096 colors)."""
    return (int(color[0]) >> 4, int(color[1]) >> 4, int(color[2]) >> 4)


def hex_color(color: tuple[int, int, int], quantize: bool = False) -> str:
    """Format a color as '#rrggbb', or as '#rgb' after quantizing."""
    if quantize:
        r, g, b = quantize_color(color)
        return f"#{r:x}{g:x}{b:x}"
    return "#" + "".join(f"{int(c):02x}" for c in color)


@dataclass
class Box:
    """Inclusive rectangle (x1, y1)-(x2, y2) grown from a seed pixel of `color`."""

    x1: int
    y1: int
    x2: int
    y2: int
    color: tuple[int, int, int]

    @property
    def width(self) -> int:
        return self.x2 - self.x1 + 1

    @property
    def height(self) -> int:
        return self.y2 - self.y1 + 1

    @property
    def is_single_pixel(self) -> bool:
        return self.x1 == self.x2 and self.y1 == self.y2


class PixelGrid:
    """
    Colors and coverage state of an image.

    Colors are kept in an (h, w, 3) array and coverage in an (h, w) bool bitmap, both
    indexed [y, x]. Pixels with alpha 0 start out covered since they need no
    rectangle. Coverage only ever goes from False to True.
    """

    def __init__(self, rgba: np.ndarray):
        rgba = np.asarray(rgba)
        if rgba.ndim != 3 or rgba.shape[2] != 4:
            raise ValueError(f"Expected an (h, w, 4) RGBA array, got shape {rgba.shape}")
        if rgba.dtype != np.uint8:
            if rgba.size and (rgba.min() < 0 or rgba.max() > 255):
                raise ValueError("RGBA values must be in [0, 255]")
            rgba = rgba.astype(np.uint8)
        self.height, self.width = rgba.shape[:2]
        self.rgb = rgba[:, :, :3].copy()
        self.alpha = rgba[:, :, 3].copy()
        self.covered = self.alpha == 0
        self._buckets = self.rgb >> 4

    @classmethod
    def from_image(cls, img: Image.Image) -> "PixelGrid":
        if img.mode in ("I", "F") or img.mode.startswith("I;16"):
            # 16-bit gray; convert("RGBA") would clamp instead of scaling
            gray = (np.clip(np.asarray(img, dtype=np.int64), 0, 65535) >> 8).astype(np.uint8)
            rgba = np.empty(gray.shape + (4,), dtype=np.uint8)
            rgba[:, :, :3] = gray[:, :, np.newaxis]
            rgba[:, :, 3] = 255
            return cls(rgba)
        return cls(np.array(img.convert("RGBA")))

    def color_at(self, x: int, y: int) -> tuple[int, int, int]:
        r, g, b = self.rgb[y, x]
        return (int(r), int(g), int(b))

    def is_covered(self, x: int, y: int) -> bool:
        return bool(self.covered[y, x])

    def all_covered(self) -> bool:
        return bool(self.covered.all())

    def uncovered_count(self) -> int:
        return int(self.covered.size - np.count_nonzero(self.covered))

    def first_uncovered(self) -> tuple[int, int]:
        """
        Return the uncovered pixel with the smallest y, then the smallest x.

        Must not be called once every pixel is covered.
        """
        if self.covered.size == 0:
            raise RuntimeError("All pixels are covered")
        # argmin finds the first False in row-major order
        i = int(np.argmin(self.covered))
        if self.covered.flat[i]:
            raise RuntimeError("All pixels are covered")
        y, x = divmod(i, self.width)
        return x, y

    def box_at(self, x: int, y: int) -> Box:
        """A 1x1 box seeded at (x, y) with that pixel's color."""
        return Box(x, y, x, y, self.color_at(x, y))

    def region_matches(
        self,
        x1: int,
        y1: int,
        x2: int,
        y2: int,
        color: tuple[int, int, int],
        quantize: bool = False,
    ) -> bool:
        """
        Check that every pixel in the inclusive region is uncovered and has `color`.

        With quantize, colors only need to fall into the same 4-bit bucket.
        """
        if self.covered[y1:y2 + 1, x1:x2 + 1].any():
            return False
        if quantize:
            region = self._buckets[y1:y2 + 1, x1:x2 + 1]
            target = np.array(quantize_color(color), dtype=np.uint8)
        else:
            region = self.rgb[y1:y2 + 1, x1:x2 + 1]
            target = np.array(color, dtype=np.uint8)
        return bool(np.all(region == target))

    def cover(self, x1: int, y1: int, x2: int, y2: int) -> None:
        self.covered[y1:y2 + 1, x1:x2 + 1] = True


class BoxStrategy:
    """How seed boxes are picked and grown."""

    def select(self, grid: PixelGrid) -> Box:
        raise NotImplementedError

    def expand(self, grid: PixelGrid, box: Box, quantize: bool = False) -> bool:
        raise NotImplementedError


class ScanlineStrategy(BoxStrategy):
    """
    Seed at the first uncovered pixel, grow right as far as possible, then down.

    Never tries down-then-right, so the boxes are not always the largest ones
    available.
    """

    def select(self, grid: PixelGrid) -> Box:
        x, y = grid.first_uncovered()
        return grid.box_at(x, y)

    def expand(self, grid: PixelGrid, box: Box, quantize: bool = False) -> bool:
        grew = False

        # Rightwards, one column at a time over the box's rows
        while box.x2 + 1 < grid.width and grid.region_matches(
            box.x2 + 1, box.y1, box.x2 + 1, box.y2, box.color, quantize
        ):
            box.x2 += 1
            grew = True

        # Downwards, one full-width row at a time
        while box.y2 + 1 < grid.height and grid.region_matches(
            box.x1, box.y2 + 1, box.x2, box.y2 + 1, box.color, quantize
        ):
            box.y2 += 1
            grew = True

        return grew


class RandomStrategy(BoxStrategy):
    """
    Seed at a random uncovered pixel and grow in all four directions.

    Gives larger outputs than ScanlineStrategy on most images.
    """

    def __init__(self, seed: int | None = None):
        self.rng = np.random.default_rng(seed)

    def select(self, grid: PixelGrid) -> Box:
        ys, xs = np.nonzero(~grid.covered)
        if len(xs) == 0:
            raise RuntimeError("All pixels are covered")
        i = int(self.rng.integers(len(xs)))
        return grid.box_at(int(xs[i]), int(ys[i]))

    def expand(self, grid: PixelGrid, box: Box, quantize: bool = False) -> bool:
        grew = False
        while True:
            progressed = False
            for direction in self.rng.permutation(4):
                if self._grow(grid, box, int(direction), quantize):
                    progressed = True
            if not progressed:
                return grew
            grew = True

    @staticmethod
    def _grow(grid: PixelGrid, box: Box, direction: int, quantize: bool) -> bool:
        if direction == 0:  # up
            if box.y1 == 0 or not grid.region_matches(box.x1, box.y1 - 1, box.x2, box.y1 - 1, box.color, quantize):
                return False
            box.y1 -= 1
        elif direction == 1:  # right
            if box.x2 + 1 == grid.width or not grid.region_matches(box.x2 + 1, box.y1, box.x2 + 1, box.y2, box.color, quantize):
                return False
            box.x2 += 1
        elif direction == 2:  # down
            if box.y2 + 1 == grid.height or not grid.region_matches(box.x1, box.y2 + 1, box.x2, box.y2 + 1, box.color, quantize):
                return False
            box.y2 += 1
        else:  # left
            if box.x1 == 0 or not grid.region_matches(box.x1 - 1, box.y1, box.x1 - 1, box.y2, box.color, quantize):
                return False
            box.x1 -= 1
        return True


class CoveringEngine:
    """
    Covers a PixelGrid with rectangles, emitting them into an SVGDocument.

    The engine is the only writer of the grid's coverage state.
    """

    def __init__(
        self,
        grid: PixelGrid,
        document: SVGDocument | None = None,
        pink: bool = False,
        quantize: bool = False,
        strategy: BoxStrategy | None = None,
        verbose: bool = False,
    ):
        self.grid = grid
        self.document = document if document is not None else SVGDocument(grid.width, grid.height)
        self.pink = pink
        self.quantize = quantize
        self.strategy = strategy if strategy is not None else ScanlineStrategy()
        self.verbose = verbose

    def create_box(self) -> Box:
        return self.strategy.select(self.grid)

    def expand(self, box: Box) -> bool:
        """Grow the box in place. Returns True if it is now larger than 1x1."""
        return self.strategy.expand(self.grid, box, self.quantize)

    def cover_box(self, box: Box, pink: bool = False, quantize: bool = False) -> RenderedRectangle:
        """Mark the box covered and emit its rectangle."""
        self.grid.cover(box.x1, box.y1, box.x2, box.y2)
        if pink and not box.is_single_pixel:
            fill = PINK
        else:
            fill = hex_color(box.color, quantize)
        return self.document.add_rect(box.x1, box.y1, box.width, box.height, fill)

    def cover(self) -> int:
        """
        Cover every remaining pixel with expanded boxes.

        Returns the number of rectangles emitted.
        """
        count = 0
        expanded_count = 0
        while not self.grid.all_covered():
            box = self.create_box()
            expanded = self.expand(box)
            self.cover_box(box, expanded and self.pink, self.quantize)
            count += 1
            if expanded:
                expanded_count += 1

        if self.verbose:
            print(f"Covered pixels with {count} rectangles ({expanded_count} expanded).", file=sys.stderr)
        return count

    def cover_all_pixels(self) -> int:
        """Cover every remaining pixel with its own 1x1 rectangle, in scan order."""
        ys, xs = np.nonzero(~self.grid.covered)
        for y, x in zip(ys.tolist(), xs.tolist()):
            self.document.add_rect(x, y, 1, 1, hex_color(self.grid.color_at(x, y)))
            self.grid.cover(x, y, x, y)

        if self.verbose:
            print(f"Covered {len(xs)} pixels with 1x1 rectangles.", file=sys.stderr)
        return len(xs)


def read_image(path: str | Path, verbose: bool = False) -> Image.Image:
    """Open and decode an image. Decoding errors propagate to the caller."""
    if verbose:
        print(f"Reading {path}...", end="", file=sys.stderr)
    img = Image.open(path)
    img.load()
    if verbose:
        print("ok", file=sys.stderr)
    return img


def convert(
    grid: PixelGrid,
    single_pixel: bool = False,
    pink: bool = False,
    quantize: bool = False,
    strategy: BoxStrategy | None = None,
    verbose: bool = False,
) -> SVGDocument:
    """
    Cover the grid and return the resulting document.

    Args:
        grid: Pixels to cover; its coverage state is consumed
        single_pixel: Emit one 1x1 rectangle per pixel, no expansion
        pink: Fill expanded boxes pink (turns single_pixel off)
        quantize: Limit fill colors to 4096
        strategy: Box selection strategy (default: ScanlineStrategy)
    """
    if pink:
        single_pixel = False

    document = SVGDocument(grid.width, grid.height)
    engine = CoveringEngine(grid, document, pink=pink, quantize=quantize, strategy=strategy, verbose=verbose)
    if single_pixel:
        engine.cover_all_pixels()
    else:
        engine.cover()
    return document


def write_svg(
    grid: PixelGrid,
    document: SVGDocument,
    output_path: str | Path,
    verbose: bool = False,
) -> None:
    """
    Write the compacted document to output_path, or to stdout if it is "-".

    Refuses to write anything unless every pixel of the grid is covered.
    """
    if not grid.all_covered():
        raise IncompleteCoverageError("the SVG representation does not cover all pixels")

    svg_text = str(document)
    if verbose:
        print(f"Writing {output_path}...", end="", file=sys.stderr)
    if str(output_path) == "-":
        sys.stdout.write(svg_text)
        sys.stdout.flush()
    else:
        Path(output_path).write_text(svg_text, encoding="utf-8")
    if verbose:
        print("ok", file=sys.stderr)


def png_to_svg(
    input_path: str | Path,
    output_path: str | Path | None = "-",
    single_pixel: bool = False,
    pink: bool = False,
    quantize: bool = False,
    verbose: bool = False,
) -> SVGDocument:
    """
    Convert an image file to an SVG document made of rectangles.

    Args:
        input_path: Image to read (any format Pillow can decode)
        output_path: Where to write the SVG, "-" for stdout, None to skip writing
        single_pixel: Use only 1x1 rectangles
        pink: Color expanded rectangles pink, for inspecting the covering
        quantize: Quantize colors to at most 4096
        verbose: Print progress to stderr

    Returns:
        The SVG document
    """
    img = read_image(input_path, verbose=verbose)

    if verbose:
        print(f"Converting {img.size[0]}x{img.size[1]} image to pixels...", end="", file=sys.stderr)
    grid = PixelGrid.from_image(img)
    if verbose:
        print(f"ok ({grid.uncovered_count()} opaque)", file=sys.stderr)

    document = convert(grid, single_pixel=single_pixel, pink=pink, quantize=quantize, verbose=verbose)

    if output_path is not None:
        write_svg(grid, document, output_path, verbose=verbose)

    return document
