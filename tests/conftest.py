import xml.etree.ElementTree as ET

import numpy as np
import pytest
from PIL import Image

NAMED_COLORS = {
    "red": (255, 0, 0),
    "white": (255, 255, 255),
    "black": (0, 0, 0),
}


def parse_fill(fill: str) -> tuple[int, int, int]:
    if fill in NAMED_COLORS:
        return NAMED_COLORS[fill]
    digits = fill.lstrip("#")
    if len(digits) == 3:
        return tuple(int(c * 2, 16) for c in digits)
    return tuple(int(digits[i:i + 2], 16) for i in (0, 2, 4))


def rasterize_svg(svg_text: str) -> tuple[np.ndarray, np.ndarray]:
    """
    Paint the rects of a compacted document onto a canvas.

    Returns (rgb, hits) where hits counts how many rects touched each pixel.
    """
    root = ET.fromstring(svg_text.encode("utf-8"))
    w, h = int(root.get("width")), int(root.get("height"))
    rgb = np.zeros((h, w, 3), dtype=int)
    hits = np.zeros((h, w), dtype=int)

    def walk(element, inherited_fill):
        for child in element:
            tag = child.tag.split("}")[-1]
            fill = child.get("fill", inherited_fill)
            if tag == "g":
                walk(child, fill)
            elif tag == "rect":
                x, y = int(child.get("x", 0)), int(child.get("y", 0))
                rw, rh = int(child.get("width", 0)), int(child.get("height", 0))
                rgb[y:y + rh, x:x + rw] = parse_fill(fill)
                hits[y:y + rh, x:x + rw] += 1

    walk(root, None)
    return rgb, hits


@pytest.fixture
def rasterize():
    return rasterize_svg


@pytest.fixture
def make_png(tmp_path):
    """Save an (h, w, 4) uint8 array as a PNG and return its path."""
    def _make(rgba, name="input.png"):
        path = tmp_path / name
        Image.fromarray(np.asarray(rgba, dtype=np.uint8)).save(path)
        return path
    return _make
