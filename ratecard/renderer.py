from __future__ import annotations

import logging
import math
import os
import random
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from PIL import Image, ImageChops, ImageColor, ImageDraw, ImageFont

log = logging.getLogger(__name__)

# A4 at 72 DPI
CANVAS_WIDTH = 595
CANVAS_HEIGHT = 842

COLUMNS = 2
TABLE_WIDTH = 400
ROW_HEIGHT = 30
TITLE_SPACE = 40   # reserved above the grid for title and date
TITLE_BAND = 20    # part of TITLE_SPACE excluded from the bordered box
BASE_FONT_SIZE = 18
TABLE_TITLE = "Rates"

BORDER_COLOR = "#333333"
DIVIDER_COLOR = "#666666"

GRADIENT_STOPS = ((0.0, "#667eea"), (0.5, "#764ba2"), (1.0, "#f093fb"))


# ===== Geometry =====
@dataclass(frozen=True)
class ImageFit:
    draw_width: float
    draw_height: float
    offset_x: float
    offset_y: float


def fit_image_cover(image_w: float, image_h: float, frame_w: float, frame_h: float) -> ImageFit:
    """Scale an image so it fully covers the frame, centring the overflow.

    The overflowing axis is cropped evenly on both sides; the other axis
    matches the frame exactly.
    """
    if image_w <= 0 or image_h <= 0:
        raise ValueError(f"image must have positive dimensions, got {image_w}x{image_h}")
    image_ratio = image_w / image_h
    frame_ratio = frame_w / frame_h
    if image_ratio > frame_ratio:
        # wider than the frame: fit height, crop width
        draw_h = float(frame_h)
        draw_w = frame_h * image_ratio
        return ImageFit(draw_w, draw_h, (frame_w - draw_w) / 2, 0.0)
    # taller (or same shape): fit width, crop height
    draw_w = float(frame_w)
    draw_h = frame_w / image_ratio
    return ImageFit(draw_w, draw_h, 0.0, (frame_h - draw_h) / 2)


def source_crop_box(fit: ImageFit, image_w: float, image_h: float,
                    frame_w: float, frame_h: float) -> Tuple[float, float, float, float]:
    """Region of the source image that lands inside the frame under ``fit``."""
    scale = fit.draw_width / image_w
    left = max(0.0, -fit.offset_x / scale)
    top = max(0.0, -fit.offset_y / scale)
    right = min(float(image_w), left + frame_w / scale)
    bottom = min(float(image_h), top + frame_h / scale)
    return (left, top, right, bottom)


@dataclass(frozen=True)
class TableLayout:
    rows: int
    cols: int
    table_width: float
    table_height: float
    cell_width: float
    cell_height: float
    origin_x: float
    origin_y: float

    @property
    def border_box(self) -> Tuple[float, float, float, float]:
        return (
            self.origin_x,
            self.origin_y,
            self.origin_x + self.table_width,
            self.origin_y + self.table_height - TITLE_BAND,
        )

    @property
    def divider_x(self) -> float:
        return self.origin_x + self.cell_width

    @property
    def heading_y(self) -> float:
        return self.origin_y - 15

    def cell_origin(self, row: int, col: int) -> Tuple[float, float]:
        return (
            self.origin_x + col * self.cell_width,
            self.origin_y + TITLE_BAND + row * self.cell_height,
        )

    def cell_center(self, row: int, col: int) -> Tuple[float, float]:
        x, y = self.cell_origin(row, col)
        return (x + self.cell_width / 2, y + self.cell_height / 2)


def row_count(item_count: int, cols: int = COLUMNS) -> int:
    return math.ceil(item_count / cols) if item_count > 0 else 0


def compute_table_layout(item_count: int,
                         canvas_w: float = CANVAS_WIDTH,
                         canvas_h: float = CANVAS_HEIGHT) -> TableLayout:
    rows = row_count(item_count)
    table_h = rows * ROW_HEIGHT + TITLE_SPACE
    # an empty table keeps its title and border; no cells to divide
    cell_h = (table_h - TITLE_SPACE) / rows if rows else float(ROW_HEIGHT)
    return TableLayout(
        rows=rows,
        cols=COLUMNS,
        table_width=float(TABLE_WIDTH),
        table_height=float(table_h),
        cell_width=TABLE_WIDTH / COLUMNS,
        cell_height=cell_h,
        origin_x=(canvas_w - TABLE_WIDTH) / 2,
        origin_y=(canvas_h - table_h) / 2,
    )


def grid_cells(items: Sequence[str], cols: int = COLUMNS) -> List[List[str]]:
    """Arrange items row-major into a grid, padding the last row with ''."""
    rows = row_count(len(items), cols)
    grid: List[List[str]] = []
    for r in range(rows):
        grid.append([items[r * cols + c] if r * cols + c < len(items) else "" for c in range(cols)])
    return grid


# ===== Text =====
def wrap_text(text: str, max_width: float, measure: Callable[[str], float]) -> List[str]:
    """Greedy word-wrap on single spaces. Words are never split, so a line
    holding one overlong word may exceed max_width."""
    lines: List[str] = []
    line = ""
    for n, word in enumerate(text.split(" ")):
        candidate = f"{line} {word}" if n > 0 else word
        if n > 0 and measure(candidate) > max_width:
            lines.append(line)
            line = word
        else:
            line = candidate
    lines.append(line)
    return lines


def line_height(font_size: int) -> int:
    return font_size + 4


def line_positions(line_total: int, x: float, y: float, font_size: int) -> List[Tuple[float, float]]:
    """Middle points of each line for a block centred on (x, y)."""
    lh = line_height(font_size)
    top = y - (line_total * lh) / 2
    return [(x, top + (i + 0.5) * lh) for i in range(line_total)]


def parse_rows(raw: str) -> List[str]:
    return [line for line in raw.split("\n") if line.strip()]


def parse_color(value: str) -> Tuple[int, int, int, int]:
    try:
        return ImageColor.getcolor(value.strip(), "RGBA")  # type: ignore[return-value]
    except (ValueError, AttributeError):
        log.debug("Unparseable color %r, using black", value)
        return (0, 0, 0, 255)


# ===== Fonts =====
_BOLD_FONT_CANDIDATES = [
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf",
    "/usr/share/fonts/liberation-sans/LiberationSans-Bold.ttf",
    "/usr/share/fonts/TTF/DejaVuSans-Bold.ttf",
    "C:/Windows/Fonts/arialbd.ttf",
    "/Library/Fonts/Arial Bold.ttf",
    "/System/Library/Fonts/Supplemental/Arial Bold.ttf",
]


def _font_dirs() -> List[Path]:
    if os.name == "nt":
        return [Path(os.environ.get("WINDIR", "C:/Windows")) / "Fonts"]
    return [
        Path("/usr/share/fonts"),
        Path("/usr/local/share/fonts"),
        Path.home() / ".fonts",
        Path("/Library/Fonts"),
        Path("/System/Library/Fonts"),
        Path.home() / "Library/Fonts",
    ]


def _find_bold_font_file(family: Optional[str]) -> Optional[str]:
    if family:
        # Fuzzy match by filename stem, preferring bold faces
        key = family.lower().replace(" ", "").replace("-", "").replace("_", "")
        plain: Optional[str] = None
        for root in _font_dirs():
            if not root.exists():
                continue
            for p in root.rglob("*"):
                if p.suffix.lower() not in (".ttf", ".otf", ".ttc"):
                    continue
                stem = p.stem.lower().replace(" ", "").replace("-", "").replace("_", "")
                if key not in stem:
                    continue
                if "bold" in stem or stem.endswith("bd"):
                    return str(p)
                plain = plain or str(p)
        if plain:
            return plain
    for c in _BOLD_FONT_CANDIDATES:
        if Path(c).exists():
            return c
    return None


@lru_cache(maxsize=32)
def get_bold_font(size: int, family: Optional[str] = None, path: Optional[str] = None):
    fpath = path if path and Path(path).exists() else _find_bold_font_file(family)
    if fpath:
        try:
            return ImageFont.truetype(fpath, size)
        except OSError as e:
            log.warning("Could not load font %s: %s", fpath, e)
    log.debug("No bold font found, using Pillow default at size %s", size)
    return ImageFont.load_default(size)


# ===== Default background =====
def _gradient_lut(channel: int) -> List[int]:
    lut = []
    for i in range(256):
        t = i / 255
        for (t0, c0), (t1, c1) in zip(GRADIENT_STOPS, GRADIENT_STOPS[1:]):
            if t0 <= t <= t1:
                a = ImageColor.getrgb(c0)[channel]
                b = ImageColor.getrgb(c1)[channel]
                k = (t - t0) / (t1 - t0)
                lut.append(round(a + (b - a) * k))
                break
    return lut


def make_default_background(width: int = CANVAS_WIDTH,
                            height: int = CANVAS_HEIGHT,
                            seed: Optional[int] = None) -> Image.Image:
    """Diagonal three-stop gradient sprinkled with faint white circles."""
    # gradient position t = (x*w + y*h) / (w^2 + h^2), built from two 8-bit ramps
    d = width * width + height * height
    hx = Image.new("L", (width, 1))
    hx.putdata([round(255 * x * width / d) for x in range(width)])
    vy = Image.new("L", (1, height))
    vy.putdata([round(255 * y * height / d) for y in range(height)])
    t = ImageChops.add(hx.resize((width, height), Image.Resampling.NEAREST),
                       vy.resize((width, height), Image.Resampling.NEAREST))
    canvas = Image.merge("RGB", [t.point(_gradient_lut(ch)) for ch in range(3)]).convert("RGBA")

    rng = random.Random(seed)
    for _ in range(20):
        cx = rng.random() * width
        cy = rng.random() * height
        r = rng.random() * 50 + 10
        layer = Image.new("RGBA", (width, height), (0, 0, 0, 0))
        ImageDraw.Draw(layer).ellipse((cx - r, cy - r, cx + r, cy + r), fill=(255, 255, 255, 26))
        canvas = Image.alpha_composite(canvas, layer)
    return canvas


@lru_cache(maxsize=4)
def default_background(seed: Optional[int] = None) -> Image.Image:
    # Rendered once per seed; callers must not mutate the cached image
    log.debug("Rendering default background (seed=%s)", seed)
    return make_default_background(seed=seed)


# ===== Render =====
@dataclass(frozen=True)
class RenderParams:
    opacity: float = 1.0
    rows: Tuple[str, ...] = ()
    text_color: str = "#000000"
    date_text: str = ""
    title: str = TABLE_TITLE
    font_family: Optional[str] = None
    font_path: Optional[str] = None

    @classmethod
    def from_inputs(cls, opacity: float, table_text: str, text_color: str, date_text: str,
                    **kwargs) -> "RenderParams":
        return cls(
            opacity=max(0.0, min(1.0, float(opacity))),
            rows=tuple(parse_rows(table_text)),
            text_color=text_color,
            date_text=date_text,
            **kwargs,
        )


def _draw_background(canvas: Image.Image, background: Image.Image, opacity: float) -> None:
    fit = fit_image_cover(background.width, background.height, canvas.width, canvas.height)
    # resample only the visible window straight to canvas size
    box = source_crop_box(fit, background.width, background.height, canvas.width, canvas.height)
    bg = background.convert("RGBA").resize(canvas.size, Image.Resampling.LANCZOS, box=box)
    alpha = max(0.0, min(1.0, opacity))
    if alpha < 1.0:
        bg.putalpha(bg.getchannel("A").point(lambda a: round(a * alpha)))
    canvas.alpha_composite(bg)


def _draw_wrapped_text(draw: ImageDraw.ImageDraw, text: str, x: float, y: float,
                       max_width: float, max_height: float, font, font_size: int,
                       fill: Tuple[int, int, int, int]) -> List[str]:
    lines = wrap_text(text, max_width, lambda s: draw.textlength(s, font=font))
    if len(lines) * line_height(font_size) > max_height:
        # overflow is drawn as-is
        log.debug("Cell text %r overflows %.1fpx box with %d lines", text, max_height, len(lines))
    for line, pos in zip(lines, line_positions(len(lines), x, y, font_size)):
        if line:
            draw.text(pos, line, font=font, fill=fill, anchor="mm")
    return lines


def draw_table(canvas: Image.Image, params: RenderParams) -> TableLayout:
    layout = compute_table_layout(len(params.rows), canvas.width, canvas.height)
    draw = ImageDraw.Draw(canvas)
    fill = parse_color(params.text_color)
    fs = BASE_FONT_SIZE
    x0, y0 = layout.origin_x, layout.origin_y

    # Date (right) and title (centre) share one baseline above the grid
    date_font = get_bold_font(fs + 4, params.font_family, params.font_path)
    if params.date_text:
        draw.text((x0 + layout.table_width - 10, layout.heading_y), params.date_text,
                  font=date_font, fill=fill, anchor="rs")
    title_font = get_bold_font(fs + 8, params.font_family, params.font_path)
    draw.text((x0 + layout.table_width / 2, layout.heading_y), params.title,
              font=title_font, fill=fill, anchor="ms")

    # Outer border and the single vertical divider; no horizontal lines
    bx0, by0, bx1, by1 = (round(v) for v in layout.border_box)
    draw.rectangle((bx0, by0, bx1, by1), outline=BORDER_COLOR, width=2)
    dx = round(layout.divider_x)
    draw.line((dx, by0, dx, by1), fill=DIVIDER_COLOR, width=1)

    cell_font = get_bold_font(fs, params.font_family, params.font_path)
    for r, cells in enumerate(grid_cells(params.rows, layout.cols)):
        for c, text in enumerate(cells):
            cx, cy = layout.cell_center(r, c)
            _draw_wrapped_text(draw, text, cx, cy, layout.cell_width - 5, layout.cell_height - 5,
                               cell_font, fs, fill)
    return layout


def render(background: Image.Image, params: RenderParams,
           size: Tuple[int, int] = (CANVAS_WIDTH, CANVAS_HEIGHT)) -> Image.Image:
    """Compose the background and the rate table into a fresh RGBA canvas."""
    canvas = Image.new("RGBA", size, (0, 0, 0, 0))
    _draw_background(canvas, background, params.opacity)
    draw_table(canvas, params)
    return canvas


@dataclass
class RenderContext:
    """The one mutable piece: the loaded background and the last output."""
    background: Optional[Image.Image] = None
    size: Tuple[int, int] = (CANVAS_WIDTH, CANVAS_HEIGHT)
    last_image: Optional[Image.Image] = field(default=None, repr=False)

    def set_background(self, image: Optional[Image.Image]) -> None:
        self.background = image

    def render(self, params: RenderParams) -> Optional[Image.Image]:
        if self.background is None:
            log.debug("Render skipped: no background loaded")
            return None
        self.last_image = render(self.background, params, self.size)
        return self.last_image
