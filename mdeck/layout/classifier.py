"""
mdeck/layout/classifier.py — Per-slide layout selection

classify() is a total function from a slide to one LayoutKind. Rules are
evaluated in order and the first match wins:

  1. a single heading                     → TITLE (first slide) / SECTION
  2. a single diagram (+ headings)        → DIAGRAM
  3. a single table (+ headings, text)    → TABLE
  4. a single code block (+ headings, text) → CODE
  5. exactly one column break             → TWO_COLUMN
  6. a single blockquote (+ headings)     → QUOTE
  7. a single @fill image (+ headings)    → IMAGE
  8. only lists (+ headings)              → BULLET (SHORT / LONG)
  9. anything else                        → CONTENT

More than one column break forces CONTENT. An explicit @layout directive
wins when the slide has the structure that layout needs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from mdeck.dsl.errors import LayoutError
from mdeck.dsl.models import (
    Block,
    BlockquoteBlock,
    CodeBlock,
    ColumnBreakBlock,
    Diagnostic,
    DiagramBlock,
    HeadingBlock,
    ImageBlock,
    ListBlock,
    ParagraphBlock,
    Presentation,
    SizingMode,
    Slide,
    TableBlock,
)

logger = logging.getLogger(__name__)


class LayoutKind(str, Enum):
    TITLE = "title"
    SECTION = "section"
    DIAGRAM = "diagram"
    TABLE = "table"
    CODE = "code"
    TWO_COLUMN = "two_column"
    QUOTE = "quote"
    IMAGE = "image"
    BULLET = "bullet"
    CONTENT = "content"


class BulletVariant(str, Enum):
    SHORT = "short"
    LONG = "long"


# Bullet slides with at most this many items, none longer than the
# character limit, get the roomier SHORT arrangement.
SHORT_BULLET_MAX_ITEMS = 4
SHORT_BULLET_MAX_CHARS = 60

_HINTS = {
    "title": LayoutKind.TITLE,
    "section": LayoutKind.SECTION,
    "diagram": LayoutKind.DIAGRAM,
    "table": LayoutKind.TABLE,
    "code": LayoutKind.CODE,
    "two-column": LayoutKind.TWO_COLUMN,
    "two_column": LayoutKind.TWO_COLUMN,
    "columns": LayoutKind.TWO_COLUMN,
    "quote": LayoutKind.QUOTE,
    "image": LayoutKind.IMAGE,
    "bullet": LayoutKind.BULLET,
    "bullets": LayoutKind.BULLET,
    "content": LayoutKind.CONTENT,
}


@dataclass(frozen=True)
class ClassifiedSlide:
    """Classifier output: the layout plus the data its renderer needs."""

    kind: LayoutKind
    variant: Optional[BulletVariant] = None
    left: tuple[Block, ...] = ()
    right: tuple[Block, ...] = ()
    error: Optional[str] = None


def classify(slide: Slide, index: Optional[int] = None) -> LayoutKind:
    """Pick the layout kind for a slide at position `index` in its deck."""
    return classify_slide(slide, index).kind


def classify_slide(slide: Slide, index: Optional[int] = None) -> ClassifiedSlide:
    index = slide.index if index is None else index
    blocks = list(slide.blocks)
    breaks = sum(1 for b in blocks if isinstance(b, ColumnBreakBlock))

    if breaks > 1:
        return _layout_error(index, f"slide has {breaks} column breaks, expected at most one")

    hint = (slide.overrides.layout or "").strip().lower()
    if hint:
        hinted = _from_hint(hint, blocks, index, breaks)
        if hinted is not None:
            return hinted

    return _infer(blocks, index, breaks)


def bullet_variant(blocks: list[Block]) -> BulletVariant:
    items = [item for b in blocks if isinstance(b, ListBlock) for item in b.items]
    if len(items) <= SHORT_BULLET_MAX_ITEMS and all(
        len(item.text) <= SHORT_BULLET_MAX_CHARS for item in items
    ):
        return BulletVariant.SHORT
    return BulletVariant.LONG


def split_columns(blocks: list[Block]) -> tuple[tuple[Block, ...], tuple[Block, ...]]:
    """Blocks before the (single) column break, and blocks after it."""
    for i, block in enumerate(blocks):
        if isinstance(block, ColumnBreakBlock):
            return tuple(blocks[:i]), tuple(blocks[i + 1 :])
    return tuple(blocks), ()


def layout_diagnostics(presentation: Presentation) -> list[Diagnostic]:
    """Layout errors for every slide in the deck."""
    out: list[Diagnostic] = []
    for slide in presentation.slides:
        result = classify_slide(slide)
        if result.error:
            out.append(LayoutError(result.error, slide_index=slide.index).to_diagnostic())
    return out


# ── Internals ─────────────────────────────────────────────────────


def _layout_error(index: int, message: str) -> ClassifiedSlide:
    logger.warning("Slide %d: %s; falling back to content layout", index, message)
    return ClassifiedSlide(kind=LayoutKind.CONTENT, error=message)


def _two_column(blocks: list[Block]) -> ClassifiedSlide:
    left, right = split_columns(blocks)
    return ClassifiedSlide(kind=LayoutKind.TWO_COLUMN, left=left, right=right)


def _from_hint(hint: str, blocks: list[Block], index: int, breaks: int) -> Optional[ClassifiedSlide]:
    kind = _HINTS.get(hint)
    if kind is None:
        logger.warning("Slide %d: unknown @layout %r ignored", index, hint)
        return None

    if kind is LayoutKind.TWO_COLUMN:
        if breaks != 1:
            return _layout_error(index, "two-column layout needs exactly one column break")
        return _two_column(blocks)

    if kind is LayoutKind.BULLET:
        if any(isinstance(b, ListBlock) for b in blocks):
            return ClassifiedSlide(kind=kind, variant=bullet_variant(blocks))
        return None

    required = {
        LayoutKind.TITLE: HeadingBlock,
        LayoutKind.SECTION: HeadingBlock,
        LayoutKind.DIAGRAM: DiagramBlock,
        LayoutKind.TABLE: TableBlock,
        LayoutKind.CODE: CodeBlock,
        LayoutKind.QUOTE: BlockquoteBlock,
        LayoutKind.IMAGE: ImageBlock,
    }.get(kind)
    if required is None or any(isinstance(b, required) for b in blocks):
        return ClassifiedSlide(kind=kind)

    logger.info("Slide %d: @layout %s does not fit its content, inferring", index, hint)
    return None


def _infer(blocks: list[Block], index: int, breaks: int) -> ClassifiedSlide:
    headings = [b for b in blocks if isinstance(b, HeadingBlock)]
    rest = [b for b in blocks if not isinstance(b, HeadingBlock)]

    # 1. Title / section
    if len(headings) == 1 and not rest:
        return ClassifiedSlide(kind=LayoutKind.TITLE if index == 0 else LayoutKind.SECTION)
    if index == 0 and _is_title_with_subtitle(blocks):
        return ClassifiedSlide(kind=LayoutKind.TITLE)

    if breaks == 0:
        # 2. Diagram
        if len(rest) == 1 and isinstance(rest[0], DiagramBlock):
            return ClassifiedSlide(kind=LayoutKind.DIAGRAM)
        # 3. Table, 4. Code
        for block_type, kind in ((TableBlock, LayoutKind.TABLE), (CodeBlock, LayoutKind.CODE)):
            if _single_with_text(rest, block_type):
                return ClassifiedSlide(kind=kind)

    # 5. Two columns
    if breaks == 1:
        return _two_column(blocks)

    # 6. Quote, 7. full-bleed image
    if len(rest) == 1:
        only = rest[0]
        if isinstance(only, BlockquoteBlock):
            return ClassifiedSlide(kind=LayoutKind.QUOTE)
        if isinstance(only, ImageBlock) and only.sizing.mode is SizingMode.FILL:
            return ClassifiedSlide(kind=LayoutKind.IMAGE)

    # 8. Bullets
    if rest and all(isinstance(b, ListBlock) for b in rest):
        return ClassifiedSlide(kind=LayoutKind.BULLET, variant=bullet_variant(blocks))

    # 9. Fallback
    return ClassifiedSlide(kind=LayoutKind.CONTENT)


def _single_with_text(rest: list[Block], block_type: type) -> bool:
    matches = [b for b in rest if isinstance(b, block_type)]
    return len(matches) == 1 and all(
        isinstance(b, (block_type, ParagraphBlock)) for b in rest
    )


def _is_title_with_subtitle(blocks: list[Block]) -> bool:
    if len(blocks) != 2:
        return False
    first, second = blocks
    if not (isinstance(first, HeadingBlock) and first.level == 1):
        return False
    if isinstance(second, HeadingBlock):
        return second.level > 1
    return isinstance(second, ParagraphBlock)
