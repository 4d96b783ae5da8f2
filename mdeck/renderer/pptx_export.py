"""
mdeck/renderer/pptx_export.py — Static .pptx export of rendered scenes

Each Scene becomes one blank-layout slide: rectangles and circles become
auto shapes, text boxes keep bold/italic/code runs, lines become
connectors, polygons and polylines become freeforms, and bitmaps become
pictures (cropped for fill images). Highlighted code keeps one colored
run per token. Opacity is flattened by blending the color over the slide
background.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import numpy as np
from pptx import Presentation as PptxPresentation
from pptx.dml.color import RGBColor
from pptx.enum.shapes import MSO_CONNECTOR, MSO_SHAPE
from pptx.enum.text import MSO_ANCHOR, PP_ALIGN
from pptx.util import Emu, Inches, Pt

from mdeck.dsl.models import BoldSpan, CodeSpan, ItalicSpan, Slide

from .scene import ColorSpan, ImagePrim, LinePrim, PolygonPrim, PolylinePrim, RectPrim, Scene, TextPrim
from .theme import hex_to_rgb

logger = logging.getLogger(__name__)

# ── Geometry Constants (inches, 16:9) ─────────────────────────────

SLIDE_WIDTH_IN = 13.333
SLIDE_HEIGHT_IN = 7.5
SLIDE_WIDTH = Inches(SLIDE_WIDTH_IN)
SLIDE_HEIGHT = Inches(SLIDE_HEIGHT_IN)
POINTS_PER_INCH = 72

CODE_FONT = "Consolas"

_ALIGN = {"left": PP_ALIGN.LEFT, "center": PP_ALIGN.CENTER, "right": PP_ALIGN.RIGHT}


# ── Color Utilities ───────────────────────────────────────────────


def blend(color: str, background: str, opacity: float) -> RGBColor:
    """Flatten `color` at `opacity` over `background`."""
    fg = np.array(hex_to_rgb(color), dtype=float)
    bg = np.array(hex_to_rgb(background), dtype=float)
    r, g, b = np.clip(np.rint(fg * opacity + bg * (1 - opacity)), 0, 255).astype(int)
    return RGBColor(int(r), int(g), int(b))


class _Mapper:
    """Scene pixels → EMU and points for one scene."""

    def __init__(self, scene: Scene):
        self.scene = scene
        self.inch_per_px = SLIDE_WIDTH_IN / scene.width

    def emu(self, v: float) -> Emu:
        return Emu(int(round(Inches(v * self.inch_per_px))))

    def pt(self, px: float) -> Pt:
        return Pt(max(px * self.inch_per_px * POINTS_PER_INCH, 1.0))

    def color(self, hex_val: str, opacity: float = 1.0) -> RGBColor:
        if opacity >= 1.0:
            return RGBColor(*hex_to_rgb(hex_val))
        return blend(hex_val, self.scene.background, opacity)


# ── Primitive Writers ─────────────────────────────────────────────


def _add_rect(slide, prim: RectPrim, m: _Mapper):
    if prim.w <= 0 or prim.h <= 0:
        return
    if prim.radius and prim.radius >= min(prim.w, prim.h) / 2 - 0.5:
        shape_type = MSO_SHAPE.OVAL
    elif prim.radius:
        shape_type = MSO_SHAPE.ROUNDED_RECTANGLE
    else:
        shape_type = MSO_SHAPE.RECTANGLE
    shape = slide.shapes.add_shape(shape_type, m.emu(prim.x), m.emu(prim.y), m.emu(prim.w), m.emu(prim.h))
    if shape_type is MSO_SHAPE.ROUNDED_RECTANGLE:
        shape.adjustments[0] = min(prim.radius / min(prim.w, prim.h), 0.5)
    if prim.fill:
        shape.fill.solid()
        shape.fill.fore_color.rgb = m.color(prim.fill, prim.opacity)
    else:
        shape.fill.background()
    if prim.stroke and prim.stroke_width > 0:
        shape.line.color.rgb = m.color(prim.stroke, prim.opacity)
        shape.line.width = m.pt(prim.stroke_width)
    else:
        shape.line.fill.background()


def _add_text(slide, prim: TextPrim, m: _Mapper):
    txBox = slide.shapes.add_textbox(m.emu(prim.x), m.emu(prim.y), m.emu(max(prim.w, 1)), m.emu(max(prim.h, 1)))
    tf = txBox.text_frame
    tf.word_wrap = True
    tf.vertical_anchor = MSO_ANCHOR.TOP
    tf.margin_left = tf.margin_right = tf.margin_top = tf.margin_bottom = 0

    lines: list[list] = [[]]
    for span in prim.spans:
        chunks = span.text.split("\n")
        for n, chunk in enumerate(chunks):
            if n:
                lines.append([])
            lines[-1].append((span, chunk))

    color = m.color(prim.color, prim.opacity)
    for i, runs in enumerate(lines):
        p = tf.paragraphs[0] if i == 0 else tf.add_paragraph()
        p.alignment = _ALIGN.get(prim.align, PP_ALIGN.LEFT)
        for span, chunk in runs:
            run = p.add_run()
            run.text = chunk
            font = run.font
            font.size = m.pt(prim.font_size)
            font.bold = prim.bold or isinstance(span, BoldSpan)
            font.italic = prim.italic or isinstance(span, ItalicSpan)
            font.name = CODE_FONT if isinstance(span, CodeSpan) else prim.font
            if isinstance(span, ColorSpan):
                font.color.rgb = m.color(span.color, prim.opacity)
            else:
                font.color.rgb = color
    return txBox


def _add_line(slide, prim: LinePrim, m: _Mapper):
    connector = slide.shapes.add_connector(
        MSO_CONNECTOR.STRAIGHT, m.emu(prim.x1), m.emu(prim.y1), m.emu(prim.x2), m.emu(prim.y2)
    )
    connector.line.color.rgb = m.color(prim.color, prim.opacity)
    connector.line.width = m.pt(prim.width)


def _add_freeform(slide, points, m: _Mapper, close: bool):
    emu_points = [(m.emu(x), m.emu(y)) for x, y in points]
    builder = slide.shapes.build_freeform(*emu_points[0], scale=1.0)
    builder.add_line_segments(emu_points[1:], close=close)
    return builder.convert_to_shape()


def _add_polygon(slide, prim: PolygonPrim, m: _Mapper):
    if len(prim.points) < 3:
        return
    shape = _add_freeform(slide, prim.points, m, close=True)
    shape.fill.solid()
    shape.fill.fore_color.rgb = m.color(prim.fill, prim.opacity)
    shape.line.fill.background()


def _add_polyline(slide, prim: PolylinePrim, m: _Mapper):
    if len(prim.points) < 2:
        return
    shape = _add_freeform(slide, prim.points, m, close=False)
    shape.fill.background()
    shape.line.color.rgb = m.color(prim.color, prim.opacity)
    shape.line.width = m.pt(prim.width)


def _add_image(slide, prim: ImagePrim, m: _Mapper):
    """Picture at its scene rect; fill images are cropped to their clip rect."""
    if prim.clip is None:
        left, top, width, height = prim.x, prim.y, prim.w, prim.h
    else:
        left, top, width, height = prim.clip
    try:
        picture = slide.shapes.add_picture(prim.path, m.emu(left), m.emu(top), m.emu(width), m.emu(height))
    except (OSError, ValueError) as e:
        logger.warning("Could not embed image %s: %s", prim.path, e)
        return
    if prim.clip is not None and prim.w > 0 and prim.h > 0:
        picture.crop_left = (left - prim.x) / prim.w
        picture.crop_top = (top - prim.y) / prim.h
        picture.crop_right = (prim.x + prim.w - left - width) / prim.w
        picture.crop_bottom = (prim.y + prim.h - top - height) / prim.h


_WRITERS = {
    RectPrim: _add_rect,
    TextPrim: _add_text,
    LinePrim: _add_line,
    PolygonPrim: _add_polygon,
    PolylinePrim: _add_polyline,
    ImagePrim: _add_image,
}


# ── Speaker Notes ─────────────────────────────────────────────────


def _add_speaker_notes(slide, notes: str):
    notes_slide = slide.notes_slide
    notes_slide.notes_text_frame.text = notes


# ── Public API ────────────────────────────────────────────────────


class PptxSink:
    """Collects rendered scenes into a .pptx deck, one slide per scene.

    Usable as the sink of PresentationSession.export().
    """

    def __init__(self, title: Optional[str] = None):
        self.title = title or "presentation"
        self.prs = PptxPresentation()
        self.prs.slide_width = SLIDE_WIDTH
        self.prs.slide_height = SLIDE_HEIGHT
        self._blank = self.prs.slide_layouts[6]  # blank layout
        self.count = 0

    def __call__(self, slide: Slide, scene: Scene):
        self.add_scene(scene, notes=slide.overrides.extra.get("notes"))

    def add_scene(self, scene: Scene, notes: Optional[str] = None):
        pptx_slide = self.prs.slides.add_slide(self._blank)
        fill = pptx_slide.background.fill
        fill.solid()
        fill.fore_color.rgb = RGBColor(*hex_to_rgb(scene.background))

        mapper = _Mapper(scene)
        for prim in scene.primitives:
            _WRITERS[type(prim)](pptx_slide, prim, mapper)
        if notes:
            _add_speaker_notes(pptx_slide, notes)
        self.count += 1

    def save(self, output_dir: str | Path, filename: Optional[str] = None) -> Path:
        """Write the deck; the file name defaults to the sanitized title."""
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        if filename is None:
            safe_title = "".join(
                c if c.isalnum() or c in " -_" else "_" for c in self.title
            ).strip()[:80]
            filename = f"{safe_title or 'presentation'}.pptx"
        output_path = output_dir / filename
        self.prs.save(str(output_path))
        logger.info("Exported %d slides to %s", self.count, output_path)
        return output_path
