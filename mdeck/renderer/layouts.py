"""
mdeck/renderer/layouts.py — Slide → Scene rendering

One renderer per LayoutKind, picked through a dispatch table. Renderers
compose in 1920x1080 reference units; SceneBuilder scales the result to
the requested viewport. Rendering is pure apart from asking the optional
image cache for bitmaps: a missing cache or an image that is still
loading (or failed) draws a placeholder box.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional

from mdeck.dsl.models import (
    Block,
    BlockquoteBlock,
    HeadingBlock,
    ImageBlock,
    ParagraphBlock,
    Presentation,
    SizingMode,
    Slide,
)
from mdeck.layout.classifier import BulletVariant, ClassifiedSlide, LayoutKind, classify_slide

from .image_cache import ImageCache
from .overlay import draw_annotations
from .scene import REFERENCE_HEIGHT, REFERENCE_WIDTH, Scene, SceneBuilder
from .text import (
    LINE_HEIGHT,
    DrawContext,
    draw_blocks,
    draw_heading,
    draw_paragraph,
    measure_blocks,
    place_image,
    text_height,
)
from .theme import Theme, get_theme

logger = logging.getLogger(__name__)

# ── Geometry (reference pixels) ───────────────────────────────────

PADDING = 80.0
CONTENT_WIDTH = REFERENCE_WIDTH - 2 * PADDING
FOOTER_ZONE = 100.0
CONTENT_BOTTOM = REFERENCE_HEIGHT - FOOTER_ZONE
FOOTER_SIZE = 24.0

BLOCK_SPACING = 32.0
BULLET_WIDTH_SHARE = 0.70
TWO_COLUMN_WIDTH_SHARE = 0.80
COLUMN_GAP = 40.0
QUOTE_WIDTH_SHARE = 0.80


def _leading_headings(blocks: list[Block]) -> tuple[list[Block], list[Block]]:
    n = 0
    while n < len(blocks) and isinstance(blocks[n], HeadingBlock):
        n += 1
    return blocks[:n], blocks[n:]


def _draw_top_heading(ctx: DrawContext, headings: list[Block]) -> float:
    """Headings stacked from the top padding; returns the y below them."""
    y = PADDING
    for h in headings:
        y += draw_heading(ctx, h, PADDING, y, CONTENT_WIDTH) + 16
    return y + (BLOCK_SPACING - 16 if headings else 0)


def _centered_top(height: float, top: float = PADDING, bottom: float = CONTENT_BOTTOM) -> float:
    return max(top, top + (bottom - top - height) / 2)


# ── Per-layout renderers ──────────────────────────────────────────


def _render_title(ctx: DrawContext, slide: Slide, cls: ClassifiedSlide, deck: Presentation):
    """Centred title, optional subtitle, and author/date on the opening slide."""
    theme = ctx.theme
    blocks = list(slide.blocks)
    title = next((b for b in blocks if isinstance(b, HeadingBlock)), None)
    rest = [b for b in blocks if b is not title]
    subtitle = rest.pop(0) if rest and isinstance(rest[0], (HeadingBlock, ParagraphBlock)) else None

    title_size = theme.h1_size * 1.1
    sub_size = theme.h2_size * 0.7
    meta_size = theme.body_size * 0.6
    meta = " · ".join(v for v in (deck.author, deck.date) if v) if slide.index == 0 else ""

    heights = []
    if title is not None:
        heights.append(text_height(_plain(title), title_size, CONTENT_WIDTH))
    if subtitle is not None:
        heights.append(text_height(_plain(subtitle), sub_size, CONTENT_WIDTH))
    if meta:
        heights.append(meta_size * LINE_HEIGHT)
    rest_h = measure_blocks(ctx, rest, CONTENT_WIDTH, BLOCK_SPACING) if rest else 0.0
    total = sum(heights) + 32 * (len(heights) - 1) + (rest_h + BLOCK_SPACING if rest else 0)

    y = _centered_top(total)
    if title is not None:
        y += draw_heading(ctx, title, PADDING, y, CONTENT_WIDTH, align="center", size=title_size) + 32
    if subtitle is not None:
        y += draw_paragraph(
            ctx, subtitle.spans, PADDING, y, CONTENT_WIDTH,
            align="center", size=sub_size, color=theme.muted,
        ) + 32
    if meta:
        y += draw_paragraph(ctx, meta, PADDING, y, CONTENT_WIDTH, align="center", size=meta_size, color=theme.muted) + 32
    if rest:
        draw_blocks(ctx, rest, PADDING, y, CONTENT_WIDTH, BLOCK_SPACING)


def _render_section(ctx: DrawContext, slide: Slide, cls: ClassifiedSlide, deck: Presentation):
    """Section divider: centred heading over an accent strip."""
    theme = ctx.theme
    headings, rest = _leading_headings(list(slide.blocks))
    sizes = [theme.h1_size if h.level == 1 else theme.h2_size for h in headings]
    heading_h = sum(text_height(_plain(h), s, CONTENT_WIDTH) for h, s in zip(headings, sizes))
    rest_h = measure_blocks(ctx, rest, CONTENT_WIDTH, BLOCK_SPACING) if rest else 0.0

    y = _centered_top(heading_h + 48 + rest_h)
    for heading, size in zip(headings, sizes):
        y += draw_heading(ctx, heading, PADDING, y, CONTENT_WIDTH, align="center", size=size)
    y += 20
    ctx.builder.rect(REFERENCE_WIDTH / 2 - 160, y, 320, 8, fill=theme.accent)
    y += 28
    if rest:
        draw_blocks(ctx, rest, PADDING, y, CONTENT_WIDTH, BLOCK_SPACING)


def _render_bullet(ctx: DrawContext, slide: Slide, cls: ClassifiedSlide, deck: Presentation):
    """Lists in a centred column; the SHORT variant is larger and airier."""
    if cls.variant is BulletVariant.SHORT:
        ctx = replace(ctx, body_scale=1.1, item_spacing=28.0)
        spacing = 40.0
    else:
        ctx = replace(ctx, body_scale=0.85, item_spacing=10.0)
        spacing = 24.0

    width = REFERENCE_WIDTH * BULLET_WIDTH_SHARE
    x = (REFERENCE_WIDTH - width) / 2
    blocks = list(slide.blocks)
    height = measure_blocks(ctx, blocks, width, spacing)
    draw_blocks(ctx, blocks, x, _centered_top(height), width, spacing)


def _render_two_column(ctx: DrawContext, slide: Slide, cls: ClassifiedSlide, deck: Presentation):
    """Leading headings span both columns; the panes split the rest at the break."""
    width = REFERENCE_WIDTH * TWO_COLUMN_WIDTH_SHARE
    x = (REFERENCE_WIDTH - width) / 2
    col_w = (width - COLUMN_GAP) / 2

    headings, left = _leading_headings(list(cls.left))
    right = list(cls.right)

    heading_h = measure_blocks(ctx, headings, width, 16) if headings else 0.0
    left_h = measure_blocks(ctx, left, col_w, BLOCK_SPACING)
    right_h = measure_blocks(ctx, right, col_w, BLOCK_SPACING)
    body_h = max(left_h, right_h)
    total = heading_h + (BLOCK_SPACING if headings else 0) + body_h

    y = _centered_top(total)
    if headings:
        y += draw_blocks(ctx, headings, x, y, width, 16) + BLOCK_SPACING
    draw_blocks(ctx, left, x, y, col_w, BLOCK_SPACING)
    draw_blocks(ctx, right, x + col_w + COLUMN_GAP, y, col_w, BLOCK_SPACING)
    if left and right:
        mid = x + col_w + COLUMN_GAP / 2
        ctx.builder.line(mid, y, mid, y + body_h, ctx.theme.muted, width=1, opacity=0.4)


def _render_quote(ctx: DrawContext, slide: Slide, cls: ClassifiedSlide, deck: Presentation):
    """Large quote marks, accent bar, right-aligned attribution."""
    theme = ctx.theme
    headings, rest = _leading_headings(list(slide.blocks))
    quote = next((b for b in rest if isinstance(b, BlockquoteBlock)), None)
    others = [b for b in rest if b is not quote]
    top = _draw_top_heading(ctx, headings) if headings else PADDING

    width = REFERENCE_WIDTH * QUOTE_WIDTH_SHARE
    x = (REFERENCE_WIDTH - width) / 2
    size = theme.body_size * 1.3
    lines = quote.lines if quote is not None else []
    quote_h = sum(text_height(_spans_plain(line), size, width) for line in lines)
    attr_h = theme.body_size * 0.8 * LINE_HEIGHT + 24 if quote and quote.attribution else 0.0

    y = _centered_top(quote_h + attr_h, top=top)
    mark_size = theme.h1_size * 2
    ctx.builder.text(
        x - mark_size * 0.6, y - mark_size * 0.6, mark_size, mark_size,
        "“", mark_size, theme.accent, font=theme.header_font, bold=True,
    )
    ctx.builder.rect(x - 32, y, 8, quote_h, fill=theme.accent)
    for line in lines:
        y += draw_paragraph(ctx, line, x, y, width, align="center", size=size, italic=True)
    ctx.builder.text(
        x + width - mark_size * 0.4, y - mark_size * 0.3, mark_size, mark_size,
        "”", mark_size, theme.accent, font=theme.header_font, bold=True,
    )
    if quote is not None and quote.attribution:
        y += 24
        y += draw_paragraph(
            ctx, f"— {quote.attribution}", x, y, width,
            align="right", size=theme.body_size * 0.8, color=theme.muted,
        )
    if others:
        draw_blocks(ctx, others, PADDING, y + BLOCK_SPACING, CONTENT_WIDTH, BLOCK_SPACING)


def _render_image(ctx: DrawContext, slide: Slide, cls: ClassifiedSlide, deck: Presentation):
    """Full-bleed image with the heading on a translucent band, or a framed image."""
    theme = ctx.theme
    headings, rest = _leading_headings(list(slide.blocks))
    image = next((b for b in rest if isinstance(b, ImageBlock)), None)

    if image is not None and image.sizing.mode is SizingMode.FILL:
        place_image(ctx, image, (0.0, 0.0, REFERENCE_WIDTH, REFERENCE_HEIGHT))
        if headings:
            band_h = 200.0
            ctx.builder.rect(0, REFERENCE_HEIGHT - band_h, REFERENCE_WIDTH, band_h, fill="000000", opacity=0.5)
            heading = headings[0]
            size = theme.h2_size
            h = text_height(_plain(heading), size, CONTENT_WIDTH)
            ctx.builder.text(
                PADDING, REFERENCE_HEIGHT - band_h + (band_h - h) / 2, CONTENT_WIDTH, h,
                heading.spans, size, "FFFFFF", font=theme.header_font, bold=True,
            )
        return

    top = _draw_top_heading(ctx, headings)
    draw_blocks(ctx, rest, PADDING, top, CONTENT_WIDTH, BLOCK_SPACING, max_height=CONTENT_BOTTOM - top)


def _render_diagram(ctx: DrawContext, slide: Slide, cls: ClassifiedSlide, deck: Presentation):
    headings, rest = _leading_headings(list(slide.blocks))
    top = _draw_top_heading(ctx, headings)
    draw_blocks(ctx, rest, PADDING, top, CONTENT_WIDTH, BLOCK_SPACING, max_height=CONTENT_BOTTOM - top)


def _render_table(ctx: DrawContext, slide: Slide, cls: ClassifiedSlide, deck: Presentation):
    headings, rest = _leading_headings(list(slide.blocks))
    top = _draw_top_heading(ctx, headings)
    height = measure_blocks(ctx, rest, CONTENT_WIDTH, BLOCK_SPACING)
    draw_blocks(ctx, rest, PADDING, _centered_top(height, top=top), CONTENT_WIDTH, BLOCK_SPACING)


def _render_code(ctx: DrawContext, slide: Slide, cls: ClassifiedSlide, deck: Presentation):
    """Heading on top, code panel shrunk to fit the rest of the slide."""
    headings, rest = _leading_headings(list(slide.blocks))
    top = _draw_top_heading(ctx, headings)
    draw_blocks(ctx, rest, PADDING, top, CONTENT_WIDTH, BLOCK_SPACING, max_height=CONTENT_BOTTOM - top)


def _render_content(ctx: DrawContext, slide: Slide, cls: ClassifiedSlide, deck: Presentation):
    if cls.error:
        logger.debug("Slide %d rendered as content after layout error: %s", slide.index, cls.error)
    headings, rest = _leading_headings(list(slide.blocks))
    top = _draw_top_heading(ctx, headings[:1])
    blocks = headings[1:] + rest
    draw_blocks(ctx, blocks, PADDING, top, CONTENT_WIDTH, BLOCK_SPACING, max_height=CONTENT_BOTTOM - top)


# ── Chrome ────────────────────────────────────────────────────────


def _render_footer(ctx: DrawContext, deck: Presentation, index: int, kind: LayoutKind):
    """Footer text bottom-left and "n / total" bottom-right."""
    theme = ctx.theme
    y = REFERENCE_HEIGHT - 60
    h = FOOTER_SIZE * LINE_HEIGHT
    footer = deck.footer_for(index)
    if footer:
        ctx.builder.text(PADDING, y, CONTENT_WIDTH * 0.7, h, footer, FOOTER_SIZE, theme.muted, font=theme.body_font)
    if kind is not LayoutKind.TITLE:
        ctx.builder.text(
            REFERENCE_WIDTH - PADDING - 200, y, 200, h, f"{index + 1} / {len(deck.slides)}",
            FOOTER_SIZE, theme.muted, font=theme.body_font, align="right",
        )


def _plain(block: Block) -> str:
    return _spans_plain(block.spans)


def _spans_plain(spans) -> str:
    return "".join(s.text for s in spans)


# ── Dispatch Table ────────────────────────────────────────────────

_RENDERERS = {
    LayoutKind.TITLE: _render_title,
    LayoutKind.SECTION: _render_section,
    LayoutKind.DIAGRAM: _render_diagram,
    LayoutKind.TABLE: _render_table,
    LayoutKind.CODE: _render_code,
    LayoutKind.TWO_COLUMN: _render_two_column,
    LayoutKind.QUOTE: _render_quote,
    LayoutKind.IMAGE: _render_image,
    LayoutKind.BULLET: _render_bullet,
    LayoutKind.CONTENT: _render_content,
}


# ── Public API ────────────────────────────────────────────────────


def render(
    presentation: Presentation,
    index: int,
    width: float,
    height: float,
    theme: Optional[Theme] = None,
    image_cache: Optional[ImageCache] = None,
    reveal_step: Optional[int] = None,
    annotations: bool = True,
) -> Scene:
    """Render one slide into a scene for a width x height viewport.

    Args:
        presentation: Parsed deck.
        index: Slide position (0-based).
        width, height: Output viewport in pixels.
        theme: Overrides the deck/slide theme when given.
        image_cache: Bitmap source; without one every image is a placeholder.
        reveal_step: Show list items up to this "+" step; None shows all.
        annotations: Draw the slide's annotation strokes on top.

    Returns:
        Scene with primitives in output pixels; `pending_images` lists
        bitmaps that were still loading.
    """
    if not 0 <= index < len(presentation.slides):
        raise IndexError(f"slide {index} out of range (deck has {len(presentation.slides)})")

    theme = theme or get_theme(presentation.theme_for(index))
    slide = presentation.slides[index]
    classified = classify_slide(slide, index)

    builder = SceneBuilder(width, height, background=theme.background)
    ctx = DrawContext(
        builder=builder,
        theme=theme,
        slide_index=index,
        image_cache=image_cache,
        reveal_step=reveal_step,
    )
    _RENDERERS[classified.kind](ctx, slide, classified, presentation)
    _render_footer(ctx, presentation, index, classified.kind)
    if annotations:
        draw_annotations(builder, slide.annotations)

    return builder.build(layout=classified.kind.value)
