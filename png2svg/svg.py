"""
Line-oriented SVG output for covered pixel images.

Every rectangle is rendered on its own line so that the compaction pass can work on
the document text directly: rectangles sharing a fill color are gathered into one
<g fill="..."> group, then a fixed list of lossless rewrites shrinks the markup.
"""

from dataclasses import dataclass, field

SVG_NS = "http://www.w3.org/2000/svg"


@dataclass(frozen=True)
class RenderedRectangle:
    x: int
    y: int
    width: int
    height: int
    fill: str

    def to_svg(self) -> str:
        return (
            f'<rect x="{self.x}" y="{self.y}" width="{self.width}" '
            f'height="{self.height}" fill="{self.fill}" />'
        )


@dataclass
class SVGDocument:
    """An SVG document sized to match an image, holding emitted rectangles."""

    width: int
    height: int
    rects: list[RenderedRectangle] = field(default_factory=list)

    def add_rect(self, x: int, y: int, width: int, height: int, fill: str) -> RenderedRectangle:
        rect = RenderedRectangle(x, y, width, height, fill)
        self.rects.append(rect)
        return rect

    def render(self) -> str:
        """Render the uncompacted document, one element per line."""
        lines = [
            '<?xml version="1.0" encoding="utf-8"?>',
            f'<svg xmlns="{SVG_NS}" version="1.2" baseProfile="tiny" '
            f'viewBox="0 0 {self.width} {self.height}" '
            f'width="{self.width}" height="{self.height}">',
        ]
        lines.extend("  " + rect.to_svg() for rect in self.rects)
        lines.append("</svg>")
        return "\n".join(lines)

    def __str__(self) -> str:
        return compact(self.render())


def color_from_line(line: str) -> str:
    """
    Extract the fill color from a rendered element line.

    '<rect ... fill="#ff0000" />' gives '#ff0000'. Lines without a fill attribute,
    such as the envelope, give an empty string.
    """
    if ' fill="' not in line:
        return ""
    for token in line.split():
        if token.startswith("fill="):
            parts = token.split('"')
            if len(parts) >= 3:
                return parts[1]
    return ""


def group_lines_by_fill_color(lines: list[str]) -> list[str]:
    """
    Gather lines that carry a fill color into <g fill="..."> groups.

    The fill attribute is removed from each grouped line since the group supplies it.
    All groups are concatenated into the position of the first grouped line, and the
    other grouped lines are left empty. Lines without a fill are kept where they are.
    """
    lines = list(lines)
    grouped: dict[str, list[str]] = {}
    first_index = None

    for i, line in enumerate(lines):
        fill = color_from_line(line)
        if not fill:
            continue
        if first_index is None:
            first_index = i
        grouped.setdefault(fill, []).append(line)
        lines[i] = ""

    if first_index is None:
        return lines

    parts = []
    for fill, members in grouped.items():
        parts.append(f'<g fill="{fill}">')
        for member in members:
            parts.append(member.replace(f' fill="{fill}"', "", 1))
        parts.append("</g>")
    lines[first_index] = "".join(parts)

    return lines


# Applied in order, each one over the whole document. Only rewrites that leave the
# rendered result unchanged belong here. width="1" and height="1" must stay, GIMP
# renders rectangles without them incorrectly.
MINIMIZATIONS: list[tuple[str, str]] = [
    ("\n", ""),
    (" />", "/>"),
    ("  ", " "),
    (' x="0"', ""),
    (' y="0"', ""),
    (' width="0"', ""),
    (' height="0"', ""),
    ("> <", "><"),
    # Named colors that are shorter than their hex forms
    ('"#f00"', '"red"'),
    ('"#ff0000"', '"red"'),
    ('"#ffffff"', '"white"'),
    ('"#000000"', '"black"'),
]


def minimize(document: str) -> str:
    for old, new in MINIMIZATIONS:
        document = document.replace(old, new)
    return document


def compact(document: str) -> str:
    """Group elements by fill color, then strip redundant markup."""
    lines = group_lines_by_fill_color(document.split("\n"))
    return minimize("\n".join(lines))
