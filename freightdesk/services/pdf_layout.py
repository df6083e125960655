# ============================================================================
# services/pdf_layout.py - Region Layout Engine for Generated Documents
# ============================================================================
#
# A document is a list of regions. Each region measures its own height from
# its content for a given width; `layout` stacks the regions top-down into
# pages and `render` draws the placed regions with reportlab.

import io
import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfgen import canvas

PAGE_WIDTH, PAGE_HEIGHT = A4
MARGIN = 40
CONTENT_WIDTH = PAGE_WIDTH - 2 * MARGIN
SECTION_GAP = 15
BOX_PADDING = 12
LINE_FACTOR = 1.3

BORDER = colors.HexColor("#CCCCCC")
TABLE_HEADER_FILL = colors.HexColor("#F0F0F0")
BLACK = colors.black

REGULAR = "Helvetica"
BOLD = "Helvetica-Bold"


class LayoutError(Exception):
    """Regions cannot be placed on a page (bad geometry or oversize content)."""


# ---------------------------------------------------------------------------
# Text
# ---------------------------------------------------------------------------

@dataclass
class TextLine:
    text: str
    font: str = REGULAR
    size: float = 11
    space_before: float = 0

    def wrap(self, width: float) -> List[str]:
        if width <= 0:
            raise LayoutError(f"Cannot wrap text into width {width}")
        return simpleSplit(str(self.text), self.font, self.size, width) or [""]

    def height(self, width: float) -> float:
        return self.space_before + len(self.wrap(width)) * self.size * LINE_FACTOR


@dataclass
class TextBlock:
    lines: List[TextLine] = field(default_factory=list)

    def height(self, width: float) -> float:
        return sum(line.height(width) for line in self.lines)

    def draw(self, c: canvas.Canvas, x: float, top: float, width: float):
        y = top
        for line in self.lines:
            y -= line.space_before
            c.setFont(line.font, line.size)
            c.setFillColor(BLACK)
            for row in line.wrap(width):
                y -= line.size * LINE_FACTOR
                # baseline sits a little above the bottom of the line box
                c.drawString(x, y + line.size * 0.3, row)


# ---------------------------------------------------------------------------
# Regions
# ---------------------------------------------------------------------------

class Region:
    name = "region"

    def measure(self, width: float) -> float:
        raise NotImplementedError

    def draw(self, c: canvas.Canvas, x: float, top: float, width: float, height: float):
        raise NotImplementedError


@dataclass
class HeaderRegion(Region):
    """Title lines on the left, a dashed badge on the right, a rule below."""

    lines: TextBlock
    badge: str = "INVOICE"
    badge_width: float = 100
    badge_height: float = 35
    name: str = "header"

    def measure(self, width: float) -> float:
        text_height = self.lines.height(width - self.badge_width - 10)
        return max(text_height, self.badge_height) + SECTION_GAP

    def draw(self, c, x, top, width, height):
        self.lines.draw(c, x, top, width - self.badge_width - 10)

        badge_x = x + width - self.badge_width
        c.setStrokeColor(BLACK)
        c.setLineWidth(0.5)
        c.setDash(3, 2)
        c.roundRect(badge_x, top - self.badge_height, self.badge_width, self.badge_height, 3, stroke=1, fill=0)
        c.setDash()
        c.setFont(BOLD, 17)
        c.drawCentredString(badge_x + self.badge_width / 2, top - self.badge_height / 2 - 6, self.badge)

        rule_y = top - height + 2
        c.line(x, rule_y, x + width, rule_y)


@dataclass
class Box:
    """A rounded, bordered text box inside a BoxRowRegion."""

    width: float
    content: TextBlock
    fixed_height: Optional[float] = None
    border: bool = True

    def measure(self) -> float:
        if self.fixed_height is not None:
            return self.fixed_height
        return self.content.height(self.width - 2 * BOX_PADDING) + 2 * BOX_PADDING


@dataclass
class BoxRowRegion(Region):
    """Boxes side by side; the row is as tall as its tallest stretching box."""

    boxes: List[Box]
    min_height: float = 0
    gap: float = 10
    name: str = "box-row"

    def measure(self, width: float) -> float:
        used = sum(box.width for box in self.boxes) + self.gap * (len(self.boxes) - 1)
        if used > width + 0.5:
            raise LayoutError(f"{self.name}: boxes need {used:.0f}pt, only {width:.0f}pt available")
        return max([self.min_height] + [box.measure() for box in self.boxes])

    def draw(self, c, x, top, width, height):
        box_x = x
        for box in self.boxes:
            box_height = box.fixed_height if box.fixed_height is not None else height
            if box.border:
                c.setStrokeColor(BORDER)
                c.setLineWidth(0.5)
                c.roundRect(box_x, top - box_height, box.width, box_height, 5, stroke=1, fill=0)
            box.content.draw(c, box_x + BOX_PADDING, top - BOX_PADDING, box.width - 2 * BOX_PADDING)
            box_x += box.width + self.gap


@dataclass
class TableColumn:
    title: str
    width: float
    align: str = "left"  # left / right


@dataclass
class TableRegion(Region):
    columns: List[TableColumn]
    rows: List[List[str]]
    header_height: float = 20
    min_row_height: float = 25
    font_size: float = 11
    name: str = "items-table"

    def _row_height(self, row: Sequence[str]) -> float:
        tallest = 1
        for column, value in zip(self.columns, row):
            tallest = max(tallest, len(simpleSplit(str(value), REGULAR, self.font_size, column.width - 8)))
        return max(self.min_row_height, tallest * self.font_size * LINE_FACTOR + 10)

    def measure(self, width: float) -> float:
        total = sum(column.width for column in self.columns)
        if total > width + 0.5:
            raise LayoutError(f"{self.name}: columns need {total:.0f}pt, only {width:.0f}pt available")
        for row in self.rows:
            if len(row) != len(self.columns):
                raise LayoutError(f"{self.name}: row has {len(row)} cells for {len(self.columns)} columns")
        return self.header_height + sum(self._row_height(row) for row in self.rows)

    def _cell(self, c, text, col_x, column, y):
        if column.align == "right":
            c.drawRightString(col_x + column.width - 4, y, text)
        else:
            c.drawString(col_x + 4, y, text)

    def draw(self, c, x, top, width, height):
        c.setLineWidth(0.5)
        c.setStrokeColor(BLACK)
        c.setFillColor(TABLE_HEADER_FILL)
        c.rect(x, top - self.header_height, width, self.header_height, stroke=1, fill=1)
        c.setFillColor(BLACK)
        c.setFont(BOLD, self.font_size)
        col_x = x
        for column in self.columns:
            self._cell(c, column.title, col_x, column, top - self.header_height + 6)
            col_x += column.width

        y = top - self.header_height
        c.setFont(REGULAR, self.font_size)
        for row in self.rows:
            row_height = self._row_height(row)
            c.rect(x, y - row_height, width, row_height, stroke=1, fill=0)
            col_x = x
            for column, value in zip(self.columns, row):
                wrapped = simpleSplit(str(value), REGULAR, self.font_size, column.width - 8) or [""]
                line_y = y - 8 - self.font_size
                for part in wrapped:
                    self._cell(c, part, col_x, column, line_y)
                    line_y -= self.font_size * LINE_FACTOR
                col_x += column.width
            y -= row_height


@dataclass
class ImagePanelRegion(Region):
    """Caption row above a bordered image box, with an optional side image
    (stamp) and caption on the right."""

    caption: str
    box_width: float
    box_height: float
    image: Optional[bytes] = None
    side_caption: Optional[str] = None
    side_image: Optional[bytes] = None
    side_image_size: float = 80
    caption_height: float = 15
    name: str = "image-panel"

    def measure(self, width: float) -> float:
        if self.box_width > width + 0.5 or self.box_height <= 0:
            raise LayoutError(f"{self.name}: image box {self.box_width}x{self.box_height} does not fit")
        return self.caption_height + self.box_height

    def draw(self, c, x, top, width, height):
        c.setFillColor(BLACK)
        c.setFont(BOLD, 9)
        c.drawString(x, top - 9, self.caption)
        if self.side_caption:
            c.setFont(REGULAR, 9)
            c.drawRightString(x + width - 10, top - 9, self.side_caption)

        box_top = top - self.caption_height
        c.setStrokeColor(BORDER)
        c.setLineWidth(0.5)
        c.roundRect(x, box_top - self.box_height, self.box_width, self.box_height, 5, stroke=1, fill=0)

        if self.image:
            c.drawImage(
                ImageReader(io.BytesIO(self.image)),
                x + 10,
                box_top - self.box_height + 10,
                width=self.box_width - 20,
                height=self.box_height - 20,
                preserveAspectRatio=True,
                anchor="c",
                mask="auto",
            )
        if self.side_image:
            size = self.side_image_size
            c.drawImage(
                ImageReader(io.BytesIO(self.side_image)),
                x + width - size - 15,
                box_top - size - 20,
                width=size,
                height=size,
                preserveAspectRatio=True,
                anchor="c",
                mask="auto",
            )


@dataclass
class LogoTitleRegion(Region):
    """Centered logo (when available) above a centered title and subtitle."""

    title: str
    subtitle: Optional[str] = None
    logo: Optional[bytes] = None
    logo_height: float = 50
    name: str = "title"

    def measure(self, width: float) -> float:
        height = 24 + SECTION_GAP
        if self.logo:
            height += self.logo_height + 8
        if self.subtitle:
            height += 16
        return height

    def draw(self, c, x, top, width, height):
        y = top
        if self.logo:
            c.drawImage(
                ImageReader(io.BytesIO(self.logo)),
                x,
                y - self.logo_height,
                width=width,
                height=self.logo_height,
                preserveAspectRatio=True,
                anchor="c",
                mask="auto",
            )
            y -= self.logo_height + 8
        c.setFillColor(BLACK)
        c.setFont(BOLD, 18)
        c.drawCentredString(x + width / 2, y - 18, self.title)
        y -= 24
        if self.subtitle:
            c.setFont(REGULAR, 10)
            c.drawCentredString(x + width / 2, y - 11, self.subtitle)
        c.setStrokeColor(BLACK)
        c.setLineWidth(0.5)
        c.line(x, top - height + 4, x + width, top - height + 4)


@dataclass
class KeyValueRegion(Region):
    """Two-column label / value grid."""

    pairs: List[Tuple[str, str]]
    label_width: float = 170
    font_size: float = 10
    name: str = "key-values"

    def _rows(self, width):
        value_width = width - self.label_width - 10
        if value_width <= 0:
            raise LayoutError(f"{self.name}: label column leaves no room for values")
        return [
            (label, simpleSplit(str(value), REGULAR, self.font_size, value_width) or [""])
            for label, value in self.pairs
        ]

    def measure(self, width: float) -> float:
        return sum(len(lines) * self.font_size * LINE_FACTOR + 6 for _, lines in self._rows(width))

    def draw(self, c, x, top, width, height):
        y = top
        c.setFillColor(BLACK)
        for label, lines in self._rows(width):
            c.setFont(BOLD, self.font_size)
            c.drawString(x, y - self.font_size, label)
            c.setFont(REGULAR, self.font_size)
            line_y = y - self.font_size
            for line in lines:
                c.drawString(x + self.label_width + 10, line_y, line)
                line_y -= self.font_size * LINE_FACTOR
            y -= len(lines) * self.font_size * LINE_FACTOR + 6


@dataclass
class ParagraphRegion(Region):
    block: TextBlock
    name: str = "paragraph"

    def measure(self, width: float) -> float:
        return self.block.height(width)

    def draw(self, c, x, top, width, height):
        self.block.draw(c, x, top, width)


# ---------------------------------------------------------------------------
# Layout and render passes
# ---------------------------------------------------------------------------

@dataclass
class PlacedRegion:
    region: Region
    top: float
    height: float


def layout(regions: Sequence[Region], width: float = CONTENT_WIDTH, gap: float = SECTION_GAP) -> List[List[PlacedRegion]]:
    """Stack regions top-down, starting a new page when one does not fit."""
    top_limit = PAGE_HEIGHT - MARGIN
    usable = PAGE_HEIGHT - 2 * MARGIN
    pages: List[List[PlacedRegion]] = [[]]
    cursor = top_limit

    for region in regions:
        height = region.measure(width)
        if height is None or math.isnan(height) or height <= 0:
            raise LayoutError(f"{region.name}: invalid height {height}")
        if height > usable:
            raise LayoutError(f"{region.name}: {height:.0f}pt does not fit on a page ({usable:.0f}pt)")
        if cursor - height < MARGIN and pages[-1]:
            pages.append([])
            cursor = top_limit
        pages[-1].append(PlacedRegion(region, cursor, height))
        cursor -= height + gap

    return pages


def render(pages: List[List[PlacedRegion]], title: Optional[str] = None) -> bytes:
    buffer = io.BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4)
    if title:
        c.setTitle(title)
    for placed_regions in pages:
        for placed in placed_regions:
            placed.region.draw(c, MARGIN, placed.top, CONTENT_WIDTH, placed.height)
        c.showPage()
    c.save()
    return buffer.getvalue()
