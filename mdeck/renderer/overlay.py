"""
mdeck/renderer/overlay.py — Annotation strokes drawn over a slide

Pen strokes get a soft glow and a dark outline so they read on both
themes; arrows get a drop shadow, a shaft and a filled head.
"""

from __future__ import annotations

from mdeck.dsl.models import AnnotationLayer, Stroke, StrokeKind

from .scene import SceneBuilder, arrow_head

OUTLINE_COLOR = "000000"
SHADOW_OFFSET = 3.0


def draw_annotations(builder: SceneBuilder, layer: AnnotationLayer):
    for stroke in layer.strokes:
        if stroke.kind is StrokeKind.ARROW:
            draw_arrow(builder, stroke)
        else:
            draw_pen(builder, stroke)


def draw_pen(builder: SceneBuilder, stroke: Stroke):
    points = stroke.points
    if not points:
        return
    if len(points) == 1:
        x, y = points[0]
        r = stroke.width
        builder.rect(x - r, y - r, 2 * r, 2 * r, fill=stroke.color, radius=r)
        return
    builder.polyline(points, stroke.color, width=stroke.width * 3, opacity=0.25)
    builder.polyline(points, OUTLINE_COLOR, width=stroke.width + 2, opacity=0.6)
    builder.polyline(points, stroke.color, width=stroke.width)


def draw_arrow(builder: SceneBuilder, stroke: Stroke):
    if len(stroke.points) < 2:
        return
    start, end = stroke.points[0], stroke.points[-1]
    head = stroke.width * 5

    shadow_start = (start[0] + SHADOW_OFFSET, start[1] + SHADOW_OFFSET)
    shadow_end = (end[0] + SHADOW_OFFSET, end[1] + SHADOW_OFFSET)
    builder.line(*shadow_start, *shadow_end, OUTLINE_COLOR, width=stroke.width, opacity=0.35)
    builder.polygon(arrow_head(shadow_start, shadow_end, head), fill=OUTLINE_COLOR, opacity=0.35)

    builder.line(*start, *end, stroke.color, width=stroke.width)
    builder.polygon(arrow_head(start, end, head), fill=stroke.color)
