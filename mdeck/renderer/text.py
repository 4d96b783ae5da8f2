"""
mdeck/renderer/text.py — Text measurement and block drawing

Shared by every layout renderer. Each draw_* function takes a DrawContext,
a top-left position and an available width in reference units, appends
primitives to the context's builder and returns the height it used.

Text width is estimated from an average glyph advance per font size; the
estimate only has to be stable, since every renderer measures with it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Optional, Sequence

import numpy as np

from mdeck.dsl.models import (
    Block,
    BlockquoteBlock,
    CodeBlock,
    ColumnBreakBlock,
    DiagramBlock,
    HeadingBlock,
    ImageBlock,
    ListBlock,
    ListMarker,
    ParagraphBlock,
    Sizing,
    SizingMode,
    Span,
    TableBlock,
    ThematicBreakBlock,
    spans_text,
)

from .image_cache import CacheState, ImageCache
from .scene import SceneBuilder, arrow_head, as_spans
from .syntax import highlight_code
from .theme import Theme

logger = logging.getLogger(__name__)

CHAR_WIDTH_EM = 0.5
MONO_CHAR_WIDTH_EM = 0.6
LINE_HEIGHT = 1.3
CODE_LINE_HEIGHT = 1.4
CODE_PADDING = 24.0
LIST_INDENT = 48.0
CELL_PADDING = 16.0
DEFAULT_MEDIA_HEIGHT = 480.0


@dataclass
class DrawContext:
    """Everything a block needs to draw itself on one slide."""

    builder: SceneBuilder
    theme: Theme
    slide_index: int = 0
    image_cache: Optional[ImageCache] = None
    reveal_step: Optional[int] = None  # None = every item visible
    body_scale: float = 1.0
    item_spacing: float = 12.0
    step: int = 0  # running reveal counter while drawing lists

    @property
    def body_size(self) -> float:
        return self.theme.body_size * self.body_scale

    def measuring(self) -> "DrawContext":
        return replace(self, builder=self.builder.scratch())


# ── Measurement ───────────────────────────────────────────────────


def wrap_text(text: str, font_size: float, width: float, mono: bool = False) -> list[str]:
    """Greedy word wrap using the average glyph advance for the font size."""
    advance = font_size * (MONO_CHAR_WIDTH_EM if mono else CHAR_WIDTH_EM)
    max_chars = max(1, int(width / advance)) if advance > 0 else 1
    lines: list[str] = []
    for paragraph in text.split("\n"):
        current = ""
        for word in paragraph.split():
            while len(word) > max_chars:
                if current:
                    lines.append(current)
                    current = ""
                lines.append(word[:max_chars])
                word = word[max_chars:]
            candidate = f"{current} {word}" if current else word
            if len(candidate) <= max_chars:
                current = candidate
            else:
                lines.append(current)
                current = word
        lines.append(current)
    return lines or [""]


def text_height(text: str, font_size: float, width: float, mono: bool = False) -> float:
    return len(wrap_text(text, font_size, width, mono)) * font_size * LINE_HEIGHT


def measure_blocks(ctx: DrawContext, blocks: Sequence[Block], width: float, spacing: float) -> float:
    return draw_blocks(ctx.measuring(), blocks, 0.0, 0.0, width, spacing)


def count_reveal_steps(blocks: Sequence[Block]) -> int:
    """Number of "+" reveal steps on a slide; 0 when everything shows at once."""
    return sum(
        1
        for b in blocks
        if isinstance(b, ListBlock)
        for item in b.items
        if item.marker is ListMarker.NEXT
    )


# ── Image geometry ────────────────────────────────────────────────


def compute_image_rect(
    sizing: Sizing,
    image_size: tuple[int, int],
    area: tuple[float, float, float, float],
) -> tuple[float, float, float, float]:
    """Where an image of `image_size` pixels lands inside `area` (x, y, w, h).

    fill covers the area (the caller clips); width:N% takes that share of
    the area width, capped by its height; default fits inside the area
    without upscaling. The result is always centred in the area.
    """
    ax, ay, aw, ah = area
    iw, ih = max(image_size[0], 1), max(image_size[1], 1)

    if sizing.mode is SizingMode.FILL:
        scale = max(aw / iw, ah / ih)
    elif sizing.mode is SizingMode.WIDTH:
        scale = aw * (sizing.percent or 0) / 100 / iw
        if ih * scale > ah:
            scale = ah / ih
    else:
        scale = min(aw / iw, ah / ih, 1.0)

    w, h = iw * scale, ih * scale
    return ax + (aw - w) / 2, ay + (ah - h) / 2, w, h


def _placeholder_rect(sizing: Sizing, area: tuple[float, float, float, float]):
    ax, ay, aw, ah = area
    if sizing.mode is SizingMode.FILL:
        return area
    share = (sizing.percent or 0) / 100 if sizing.mode is SizingMode.WIDTH else 0.6
    w = max(aw * share, 120.0)
    h = min(w * 9 / 16, ah)
    return ax + (aw - w) / 2, ay + (ah - h) / 2, w, h


# ── Blocks ────────────────────────────────────────────────────────


def draw_blocks(
    ctx: DrawContext,
    blocks: Sequence[Block],
    x: float,
    y: float,
    width: float,
    spacing: float,
    max_height: Optional[float] = None,
) -> float:
    """Stack blocks top to bottom. A non-fill image followed by a paragraph
    draws that paragraph as its caption."""
    top = y
    i = 0
    drawn = 0
    while i < len(blocks):
        block = blocks[i]
        if isinstance(block, ColumnBreakBlock):
            i += 1
            continue
        if drawn:
            y += spacing
        remaining = None if max_height is None else max(max_height - (y - top), 0.0)

        if (
            isinstance(block, ImageBlock)
            and block.sizing.mode is not SizingMode.FILL
            and i + 1 < len(blocks)
            and isinstance(blocks[i + 1], ParagraphBlock)
        ):
            y += draw_image(ctx, block, x, y, width, remaining)
            y += draw_caption(ctx, blocks[i + 1].spans, x, y + 12, width) + 12
            i += 2
        else:
            y += draw_block(ctx, block, x, y, width, remaining)
            i += 1
        drawn += 1
    return y - top


def draw_block(
    ctx: DrawContext,
    block: Block,
    x: float,
    y: float,
    width: float,
    max_height: Optional[float] = None,
) -> float:
    if isinstance(block, HeadingBlock):
        return draw_heading(ctx, block, x, y, width)
    if isinstance(block, ParagraphBlock):
        return draw_paragraph(ctx, block.spans, x, y, width)
    if isinstance(block, ListBlock):
        return draw_list(ctx, block, x, y, width)
    if isinstance(block, CodeBlock):
        return draw_code(ctx, block, x, y, width, max_height)
    if isinstance(block, TableBlock):
        return draw_table(ctx, block, x, y, width)
    if isinstance(block, BlockquoteBlock):
        return draw_blockquote(ctx, block, x, y, width)
    if isinstance(block, ImageBlock):
        return draw_image(ctx, block, x, y, width, max_height)
    if isinstance(block, DiagramBlock):
        return draw_diagram(ctx, block, x, y, width, max_height)
    if isinstance(block, ThematicBreakBlock):
        return draw_rule(ctx, x, y, width)
    return 0.0


def draw_heading(ctx: DrawContext, block: HeadingBlock, x, y, width, align="left", size=None) -> float:
    theme = ctx.theme
    size = size or theme.heading_size(block.level)
    h = text_height(spans_text(block.spans), size, width)
    ctx.builder.text(
        x, y, width, h, block.spans, size, theme.heading_color,
        font=theme.header_font, bold=True, align=align,
    )
    return h


def draw_paragraph(ctx: DrawContext, spans: str | Sequence[Span], x, y, width,
                   align="left", size=None, color=None, italic=False) -> float:
    theme = ctx.theme
    size = size or ctx.body_size
    spans = as_spans(spans)
    h = text_height(spans_text(list(spans)), size, width)
    ctx.builder.text(
        x, y, width, h, spans, size, color or theme.foreground,
        font=theme.body_font, italic=italic, align=align,
    )
    return h


def draw_caption(ctx: DrawContext, spans: Sequence[Span], x, y, width) -> float:
    return draw_paragraph(
        ctx, spans, x, y, width, align="center",
        size=ctx.body_size * 0.7, color=ctx.theme.muted, italic=True,
    )


def draw_list(ctx: DrawContext, block: ListBlock, x, y, width) -> float:
    """Bullets and numbers, one level of indent per nesting depth.

    Hidden items (reveal step not reached yet) keep their space.
    """
    theme = ctx.theme
    top = y
    counters: dict[int, int] = {}
    for n, item in enumerate(block.items):
        if item.marker is ListMarker.NEXT:
            ctx.step += 1
        visible = ctx.reveal_step is None or ctx.step <= ctx.reveal_step

        size = ctx.body_size * (0.9 ** min(item.level, 2))
        indent = item.level * LIST_INDENT
        for deeper in [lvl for lvl in counters if lvl > item.level]:
            del counters[deeper]
        counters[item.level] = counters.get(item.level, 0) + 1

        if block.ordered or item.marker is ListMarker.ORDERED:
            marker = f"{counters[item.level]}."
            marker_w = size * 1.4
        else:
            marker = "•" if item.level == 0 else "–"
            marker_w = size * 0.9
        text_w = max(width - indent - marker_w, size)
        h = text_height(item.text, size, text_w)

        if visible:
            marker_color = theme.accent if block.emphasis or item.level == 0 else theme.muted
            ctx.builder.text(
                x + indent, y, marker_w, size * LINE_HEIGHT, marker, size, marker_color,
                font=theme.body_font, bold=block.ordered,
            )
            ctx.builder.text(
                x + indent + marker_w, y, text_w, h, item.spans, size, theme.foreground,
                font=theme.body_font,
            )
        y += h
        if n < len(block.items) - 1:
            y += ctx.item_spacing
    return y - top


def draw_code(ctx: DrawContext, block: CodeBlock, x, y, width, max_height=None) -> float:
    """Syntax-colored code panel; lines never wrap and the font shrinks to fit `max_height`."""
    theme = ctx.theme
    lines = block.code.split("\n")
    size = theme.code_size
    if max_height:
        fit = (max_height - 2 * CODE_PADDING) / (len(lines) * CODE_LINE_HEIGHT)
        size = max(min(size, fit), 8.0)
    line_h = size * CODE_LINE_HEIGHT
    h = len(lines) * line_h + 2 * CODE_PADDING

    ctx.builder.rect(x, y, width, h, fill=theme.code_background, radius=8)
    for n in block.highlight_lines:
        if 1 <= n <= len(lines):
            ctx.builder.rect(
                x, y + CODE_PADDING + (n - 1) * line_h, width, line_h,
                fill=theme.accent, opacity=0.25,
            )
    if block.language:
        ctx.builder.text(
            x + width - 200 - CODE_PADDING, y + 6, 200, size * 0.7 * LINE_HEIGHT,
            block.language, size * 0.6, theme.muted, font=theme.code_font, align="right",
        )
    ctx.builder.text(
        x + CODE_PADDING, y + CODE_PADDING, width - 2 * CODE_PADDING, len(lines) * line_h,
        highlight_code(block.code, block.language, theme), size, theme.code_foreground,
        font=theme.code_font,
    )
    return h


def draw_table(ctx: DrawContext, block: TableBlock, x, y, width) -> float:
    """Header row on the accent color, alternating body row fills."""
    theme = ctx.theme
    rows = ([block.headers] if block.headers else []) + list(block.rows)
    if not rows:
        return 0.0
    cols = max(len(r) for r in rows)
    col_w = width / max(cols, 1)
    size = ctx.body_size * 0.75
    top = y

    for r, row in enumerate(rows):
        is_header = bool(block.headers) and r == 0
        cells = list(row) + [[]] * (cols - len(row))
        row_h = max(
            text_height(spans_text(cell), size, col_w - 2 * CELL_PADDING) for cell in cells
        ) + 2 * CELL_PADDING

        if is_header:
            ctx.builder.rect(x, y, width, row_h, fill=theme.accent)
        elif r % 2 == 1:
            ctx.builder.rect(x, y, width, row_h, fill=theme.code_background)
        for c, cell in enumerate(cells):
            ctx.builder.text(
                x + c * col_w + CELL_PADDING, y + CELL_PADDING,
                col_w - 2 * CELL_PADDING, row_h - 2 * CELL_PADDING,
                cell, size, "FFFFFF" if is_header else theme.foreground,
                font=theme.header_font if is_header else theme.body_font,
                bold=is_header,
            )
        y += row_h

    ctx.builder.rect(x, top, width, y - top, stroke=theme.muted, stroke_width=1)
    return y - top


def draw_blockquote(ctx: DrawContext, block: BlockquoteBlock, x, y, width) -> float:
    theme = ctx.theme
    top = y
    text_x = x + 32
    text_w = width - 32
    for line in block.lines:
        y += draw_paragraph(ctx, line, text_x, y, text_w, italic=True)
    if block.attribution:
        y += 8
        y += draw_paragraph(
            ctx, f"— {block.attribution}", text_x, y, text_w,
            align="right", size=ctx.body_size * 0.8, color=theme.muted,
        )
    ctx.builder.rect(x, top, 8, y - top, fill=theme.accent)
    return y - top


def draw_rule(ctx: DrawContext, x, y, width) -> float:
    ctx.builder.line(x, y + 12, x + width, y + 12, ctx.theme.muted, width=2)
    return 24.0


def draw_image(ctx: DrawContext, block: ImageBlock, x, y, width, max_height=None) -> float:
    height = min(max_height, DEFAULT_MEDIA_HEIGHT) if max_height else DEFAULT_MEDIA_HEIGHT
    if block.sizing.mode is SizingMode.FILL and max_height:
        height = max_height
    return place_image(ctx, block, (x, y, width, height))


def place_image(ctx: DrawContext, block: ImageBlock, area: tuple[float, float, float, float]) -> float:
    """Draw an image (or its placeholder) inside `area`; returns the height used."""
    entry = ctx.image_cache.request(block.path, ctx.slide_index) if ctx.image_cache else None

    if entry is not None and entry.state is CacheState.LOADED:
        ix, iy, iw, ih = compute_image_rect(block.sizing, entry.size, area)
        clip = area if block.sizing.mode is SizingMode.FILL else None
        ctx.builder.image(entry.key, ix, iy, iw, ih, clip=clip)
        if block.sizing.mode is SizingMode.FILL:
            return area[3]
        return ih + (iy - area[1])

    if entry is not None and entry.state is CacheState.PENDING:
        ctx.builder.mark_pending(entry.key)

    px, py, pw, ph = _placeholder_rect(block.sizing, area)
    draw_placeholder(ctx, block.alt or block.path, px, py, pw, ph)
    if block.sizing.mode is SizingMode.FILL:
        return area[3]
    return ph + (py - area[1])


def draw_placeholder(ctx: DrawContext, label: str, x, y, w, h):
    theme = ctx.theme
    ctx.builder.rect(x, y, w, h, fill=theme.code_background, stroke=theme.muted, stroke_width=2, radius=8)
    size = min(ctx.theme.body_size * 0.6, h * 0.4)
    ctx.builder.text(
        x, y + (h - size * LINE_HEIGHT) / 2, w, size * LINE_HEIGHT,
        f"[Image: {label}]", size, theme.muted, font=theme.body_font, align="center",
    )


# ── Diagrams ──────────────────────────────────────────────────────


def draw_diagram(ctx: DrawContext, block: DiagramBlock, x, y, width, max_height=None) -> float:
    """Grid diagram: nodes on a col/row grid, edges as arrows between boxes.

    A diagram that failed validation shows its source in a code panel
    with the error above it.
    """
    height = max_height or DEFAULT_MEDIA_HEIGHT
    if block.is_fallback:
        return _draw_diagram_fallback(ctx, block, x, y, width, height)

    theme = ctx.theme
    graph = block.graph
    if not graph.nodes:
        return 0.0

    # Explicit positions may be negative; the grid starts at the smallest one
    min_col = min(n.col for n in graph.nodes)
    min_row = min(n.row for n in graph.nodes)
    cols = max(n.col for n in graph.nodes) - min_col + 1
    rows = max(n.row for n in graph.nodes) - min_row + 1
    cell_w = width / cols
    cell_h = min(height / rows, 260.0)
    node_w = min(cell_w * 0.75, 360.0)
    node_h = min(cell_h * 0.6, 120.0)
    y0 = y + (height - rows * cell_h) / 2

    centers = {
        n.label: np.array([x + (n.col - min_col + 0.5) * cell_w, y0 + (n.row - min_row + 0.5) * cell_h])
        for n in graph.nodes
    }
    half = np.array([node_w / 2, node_h / 2])
    label_size = ctx.theme.body_size * 0.45

    for edge in graph.edges:
        if edge.source == edge.target:
            logger.debug("Slide %d: self edge on %r not drawn", ctx.slide_index, edge.source)
            continue
        a, b = centers[edge.source], centers[edge.target]
        start = _box_exit(a, b, half)
        end = _box_exit(b, a, half)
        ctx.builder.line(float(start[0]), float(start[1]), float(end[0]), float(end[1]), theme.muted, width=3)
        ctx.builder.polygon(arrow_head(tuple(start), tuple(end), 18.0), fill=theme.muted)
        if edge.label:
            mx, my = (float(v) for v in (start + end) / 2)
            lw = len(edge.label) * label_size * CHAR_WIDTH_EM + 24
            lh = label_size * LINE_HEIGHT
            ctx.builder.rect(mx - lw / 2, my - lh / 2, lw, lh, fill=theme.background, radius=lh / 2)
            ctx.builder.text(
                mx - lw / 2, my - lh / 2, lw, lh, edge.label, label_size,
                theme.muted, font=theme.body_font, align="center",
            )

    text_size = ctx.theme.body_size * 0.55
    for node in graph.nodes:
        cx, cy = (float(v) for v in centers[node.label])
        left, top = cx - node_w / 2, cy - node_h / 2
        ctx.builder.rect(
            left, top, node_w, node_h, fill=theme.code_background,
            stroke=theme.accent, stroke_width=3, radius=12,
        )
        text_left, text_w = left, node_w
        if node.icon:
            d = node_h * 0.5
            ctx.builder.rect(left + 16, cy - d / 2, d, d, fill=theme.accent, radius=d / 2)
            ctx.builder.text(
                left + 16, cy - d / 2, d, d, node.icon[0].upper(), d * 0.5, "FFFFFF",
                font=theme.header_font, bold=True, align="center",
            )
            text_left, text_w = left + 24 + d, node_w - 32 - d
        ctx.builder.text(
            text_left, cy - text_size * LINE_HEIGHT / 2, text_w, text_size * LINE_HEIGHT,
            node.label, text_size, theme.foreground, font=theme.body_font, align="center",
        )
    return height


def _box_exit(center: np.ndarray, toward: np.ndarray, half: np.ndarray) -> np.ndarray:
    """Point where the ray from `center` to `toward` leaves a box of half-size `half`."""
    d = toward - center
    with np.errstate(divide="ignore"):
        t = np.min(np.where(d != 0, half / np.abs(d), np.inf))
    return center + d * min(float(t), 1.0)


def _draw_diagram_fallback(ctx: DrawContext, block: DiagramBlock, x, y, width, height) -> float:
    top = y
    if block.error:
        y += draw_paragraph(
            ctx, f"Diagram error: {block.error}", x, y, width,
            size=ctx.body_size * 0.5, color=ctx.theme.accent,
        ) + 8
    y += draw_code(ctx, CodeBlock(code=block.source), x, y, width, max(height - (y - top), 80.0))
    return y - top
