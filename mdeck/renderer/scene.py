"""
mdeck/renderer/scene.py — Resolution-independent scene graph

Layouts are composed in a 1920x1080 reference space. SceneBuilder maps
every coordinate, font size, radius and stroke width through one scale
factor s = min(width / 1920, height / 1080) and centres the result, so
the same slide has the same relative composition at any output size.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence, Union

import numpy as np

from mdeck.dsl.models import Span, TextSpan, spans_text

REFERENCE_WIDTH = 1920.0
REFERENCE_HEIGHT = 1080.0

Point = tuple[float, float]


def compute_scale(width: float, height: float) -> float:
    return min(width / REFERENCE_WIDTH, height / REFERENCE_HEIGHT)


# ── Primitives ────────────────────────────────────────────────────


@dataclass(frozen=True)
class ColorSpan:
    """A run of text with its own color (highlighted code tokens)."""

    text: str
    color: str


TextRun = Union[Span, ColorSpan]


@dataclass(frozen=True)
class RectPrim:
    x: float
    y: float
    w: float
    h: float
    fill: Optional[str] = None
    stroke: Optional[str] = None
    stroke_width: float = 0.0
    radius: float = 0.0
    opacity: float = 1.0


@dataclass(frozen=True)
class TextPrim:
    x: float
    y: float
    w: float
    h: float
    spans: tuple[TextRun, ...]
    font_size: float
    color: str
    font: str = "Calibri"
    bold: bool = False
    italic: bool = False
    align: str = "left"  # "left" | "center" | "right"
    opacity: float = 1.0

    @property
    def text(self) -> str:
        return spans_text(list(self.spans))


@dataclass(frozen=True)
class LinePrim:
    x1: float
    y1: float
    x2: float
    y2: float
    color: str
    width: float = 1.0
    opacity: float = 1.0


@dataclass(frozen=True)
class PolygonPrim:
    points: tuple[Point, ...]
    fill: str
    opacity: float = 1.0


@dataclass(frozen=True)
class PolylinePrim:
    points: tuple[Point, ...]
    color: str
    width: float = 1.0
    opacity: float = 1.0


@dataclass(frozen=True)
class ImagePrim:
    path: str
    x: float
    y: float
    w: float
    h: float
    clip: Optional[tuple[float, float, float, float]] = None  # visible x, y, w, h
    opacity: float = 1.0


Primitive = Union[RectPrim, TextPrim, LinePrim, PolygonPrim, PolylinePrim, ImagePrim]


@dataclass
class Scene:
    """Positioned draw primitives for one slide at one viewport size."""

    width: float
    height: float
    scale: float
    offset_x: float
    offset_y: float
    background: str
    layout: str = ""
    primitives: list[Primitive] = field(default_factory=list)
    pending_images: list[str] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        """True once no image on the slide is still loading."""
        return not self.pending_images

    def of_type(self, cls: type) -> list:
        return [p for p in self.primitives if isinstance(p, cls)]

    def texts(self) -> list[str]:
        return [p.text for p in self.primitives if isinstance(p, TextPrim)]


# ── Geometry helpers ──────────────────────────────────────────────


def arrow_head(start: Point, end: Point, size: float, spread: float = 0.45) -> tuple[Point, ...]:
    """Triangle with its tip at `end`, pointing away from `start`."""
    tip = np.asarray(end, dtype=float)
    direction = tip - np.asarray(start, dtype=float)
    length = float(np.hypot(*direction))
    if length < 1e-6:
        return (end, end, end)
    direction /= length
    perp = np.array([-direction[1], direction[0]])
    base = tip - direction * size
    left = base + perp * size * spread
    right = base - perp * size * spread
    return (
        (float(tip[0]), float(tip[1])),
        (float(left[0]), float(left[1])),
        (float(right[0]), float(right[1])),
    )


def as_spans(content: Union[str, Sequence[TextRun]]) -> tuple[TextRun, ...]:
    if isinstance(content, str):
        return (TextSpan(text=content),)
    return tuple(content)


# ── Builder ───────────────────────────────────────────────────────


class SceneBuilder:
    """Collects primitives given in reference units and scales them for output."""

    def __init__(self, width: float, height: float, background: str = "FFFFFF"):
        if width <= 0 or height <= 0:
            raise ValueError(f"viewport must be positive, got {width}x{height}")
        self.width = float(width)
        self.height = float(height)
        self.scale = compute_scale(width, height)
        self.offset_x = (self.width - REFERENCE_WIDTH * self.scale) / 2
        self.offset_y = (self.height - REFERENCE_HEIGHT * self.scale) / 2
        self.background = background
        self.primitives: list[Primitive] = []
        self.pending_images: list[str] = []

    def scratch(self) -> "SceneBuilder":
        """A throwaway builder with the same geometry, used for measuring."""
        return SceneBuilder(self.width, self.height, self.background)

    # Reference → output mapping

    def px(self, x: float) -> float:
        return self.offset_x + x * self.scale

    def py(self, y: float) -> float:
        return self.offset_y + y * self.scale

    def pl(self, length: float) -> float:
        return length * self.scale

    def pp(self, point: Point) -> Point:
        return (self.px(point[0]), self.py(point[1]))

    # Primitive constructors (all arguments in reference units)

    def rect(self, x, y, w, h, fill=None, stroke=None, stroke_width=0.0, radius=0.0, opacity=1.0):
        self.primitives.append(
            RectPrim(
                self.px(x), self.py(y), self.pl(w), self.pl(h),
                fill=fill, stroke=stroke, stroke_width=self.pl(stroke_width),
                radius=self.pl(radius), opacity=opacity,
            )
        )

    def text(self, x, y, w, h, content, font_size, color, font="Calibri",
             bold=False, italic=False, align="left", opacity=1.0):
        self.primitives.append(
            TextPrim(
                self.px(x), self.py(y), self.pl(w), self.pl(h),
                spans=as_spans(content), font_size=self.pl(font_size), color=color,
                font=font, bold=bold, italic=italic, align=align, opacity=opacity,
            )
        )

    def line(self, x1, y1, x2, y2, color, width=1.0, opacity=1.0):
        self.primitives.append(
            LinePrim(
                self.px(x1), self.py(y1), self.px(x2), self.py(y2),
                color=color, width=self.pl(width), opacity=opacity,
            )
        )

    def polygon(self, points: Sequence[Point], fill: str, opacity=1.0):
        self.primitives.append(
            PolygonPrim(tuple(self.pp(p) for p in points), fill=fill, opacity=opacity)
        )

    def polyline(self, points: Sequence[Point], color: str, width=1.0, opacity=1.0):
        self.primitives.append(
            PolylinePrim(
                tuple(self.pp(p) for p in points), color=color,
                width=self.pl(width), opacity=opacity,
            )
        )

    def image(self, path, x, y, w, h, clip=None, opacity=1.0):
        out_clip = None
        if clip is not None:
            cx, cy, cw, ch = clip
            out_clip = (self.px(cx), self.py(cy), self.pl(cw), self.pl(ch))
        self.primitives.append(
            ImagePrim(path, self.px(x), self.py(y), self.pl(w), self.pl(h), clip=out_clip, opacity=opacity)
        )

    def mark_pending(self, key: str):
        if key not in self.pending_images:
            self.pending_images.append(key)

    def build(self, layout: str = "") -> Scene:
        return Scene(
            width=self.width,
            height=self.height,
            scale=self.scale,
            offset_x=self.offset_x,
            offset_y=self.offset_y,
            background=self.background,
            layout=layout,
            primitives=list(self.primitives),
            pending_images=list(self.pending_images),
        )
