"""
mdeck/dsl/models.py — Pydantic data models for markdown decks

These are the typed representations of the deck grammar. Everything
flows through these models: the parser produces them, the layout
classifier inspects them, the renderers read them.

Presentation, Slide and every Block are frozen once parsed. The only
mutable state hanging off a slide is its AnnotationLayer.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# ── Enums ──────────────────────────────────────────────────────────


class ListMarker(str, Enum):
    STATIC = "static"  # "- item"
    NEXT = "next"  # "+ item": revealed one step later
    WITH_PREV = "with_prev"  # "* item": revealed together with the previous step
    ORDERED = "ordered"  # "1. item"


class SizingMode(str, Enum):
    DEFAULT = "default"
    FILL = "fill"
    WIDTH = "width"


class StrokeKind(str, Enum):
    PEN = "pen"
    ARROW = "arrow"


class DiagnosticKind(str, Enum):
    PARSE = "parse"
    DIAGRAM = "diagram"
    LAYOUT = "layout"
    IMAGE = "image"
    EMPTY = "empty"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# ── Inline spans ───────────────────────────────────────────────────


class TextSpan(_Frozen):
    kind: Literal["text"] = "text"
    text: str


class BoldSpan(_Frozen):
    kind: Literal["bold"] = "bold"
    text: str


class ItalicSpan(_Frozen):
    kind: Literal["italic"] = "italic"
    text: str


class CodeSpan(_Frozen):
    kind: Literal["code"] = "code"
    text: str


Span = Annotated[
    Union[TextSpan, BoldSpan, ItalicSpan, CodeSpan],
    Field(discriminator="kind"),
]


def spans_text(spans: list[Span]) -> str:
    """Plain text of a span run, formatting dropped."""
    return "".join(s.text for s in spans)


# ── Sizing directive ───────────────────────────────────────────────


class Sizing(_Frozen):
    """Image display-size hint: fill, width:N% or the intrinsic default."""

    mode: SizingMode = SizingMode.DEFAULT
    percent: Optional[float] = Field(default=None, ge=0, le=100)

    @classmethod
    def fill(cls) -> "Sizing":
        return cls(mode=SizingMode.FILL)

    @classmethod
    def width_percent(cls, percent: float) -> "Sizing":
        return cls(mode=SizingMode.WIDTH, percent=percent)

    @classmethod
    def default(cls) -> "Sizing":
        return cls()


# ── Diagram graph ──────────────────────────────────────────────────


class DiagramNode(_Frozen):
    label: str
    icon: Optional[str] = None
    col: int = 0
    row: int = 0


class DiagramEdge(_Frozen):
    source: str
    target: str
    label: Optional[str] = None


class DiagramGraph(_Frozen):
    nodes: list[DiagramNode] = Field(default_factory=list)
    edges: list[DiagramEdge] = Field(default_factory=list)

    def node(self, label: str) -> Optional[DiagramNode]:
        for n in self.nodes:
            if n.label == label:
                return n
        return None


# ── Blocks ─────────────────────────────────────────────────────────


class ListItem(_Frozen):
    spans: list[Span] = Field(default_factory=list)
    marker: ListMarker = ListMarker.STATIC
    level: int = 0  # 0 = top-level, 1 = sub, 2 = sub-sub

    @property
    def text(self) -> str:
        return spans_text(self.spans)


class HeadingBlock(_Frozen):
    kind: Literal["heading"] = "heading"
    level: int = Field(default=1, ge=1, le=6)
    spans: list[Span] = Field(default_factory=list)


class ParagraphBlock(_Frozen):
    kind: Literal["paragraph"] = "paragraph"
    spans: list[Span] = Field(default_factory=list)


class ListBlock(_Frozen):
    kind: Literal["list"] = "list"
    items: list[ListItem] = Field(default_factory=list)
    ordered: bool = False
    emphasis: bool = False  # at least one "+" or "*" (build) marker


class CodeBlock(_Frozen):
    kind: Literal["code"] = "code"
    language: Optional[str] = None
    code: str = ""
    highlight_lines: list[int] = Field(default_factory=list)


class TableBlock(_Frozen):
    kind: Literal["table"] = "table"
    headers: list[list[Span]] = Field(default_factory=list)
    rows: list[list[list[Span]]] = Field(default_factory=list)


class BlockquoteBlock(_Frozen):
    kind: Literal["blockquote"] = "blockquote"
    lines: list[list[Span]] = Field(default_factory=list)
    attribution: Optional[str] = None


class ImageBlock(_Frozen):
    kind: Literal["image"] = "image"
    alt: str = ""
    path: str
    sizing: Sizing = Field(default_factory=Sizing)


class DiagramBlock(_Frozen):
    kind: Literal["diagram"] = "diagram"
    source: str = ""
    graph: Optional[DiagramGraph] = None
    error: Optional[str] = None  # set when the graph failed validation

    @property
    def is_fallback(self) -> bool:
        return self.graph is None


class ColumnBreakBlock(_Frozen):
    kind: Literal["column_break"] = "column_break"


class ThematicBreakBlock(_Frozen):
    kind: Literal["thematic_break"] = "thematic_break"


Block = Annotated[
    Union[
        HeadingBlock,
        ParagraphBlock,
        ListBlock,
        CodeBlock,
        TableBlock,
        BlockquoteBlock,
        ImageBlock,
        DiagramBlock,
        ColumnBreakBlock,
        ThematicBreakBlock,
    ],
    Field(discriminator="kind"),
]


# ── Annotations (mutable) ──────────────────────────────────────────


class Stroke(BaseModel):
    """A freehand pen stroke or a two-point arrow, in 1920x1080 reference space."""

    kind: StrokeKind = StrokeKind.PEN
    points: list[tuple[float, float]] = Field(default_factory=list)
    color: str = "FF3B30"
    width: float = 4.0


class AnnotationLayer(BaseModel):
    strokes: list[Stroke] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.strokes

    def add(self, stroke: Stroke) -> Stroke:
        self.strokes.append(stroke)
        return stroke

    def clear(self) -> None:
        self.strokes.clear()


# ── Diagnostics ────────────────────────────────────────────────────


class Diagnostic(_Frozen):
    """A recoverable problem found while parsing or classifying."""

    kind: DiagnosticKind
    message: str
    line: Optional[int] = None
    slide_index: Optional[int] = None


# ── Slide & Presentation ───────────────────────────────────────────


class SlideOverrides(_Frozen):
    """Per-slide directives; they apply to this slide only."""

    theme: Optional[str] = None
    transition: Optional[str] = None
    layout: Optional[str] = None
    footer: Optional[str] = None
    extra: dict[str, str] = Field(default_factory=dict)


class Slide(_Frozen):
    """A single slide. Identity is its position in the deck."""

    index: int
    blocks: list[Block] = Field(default_factory=list)
    overrides: SlideOverrides = Field(default_factory=SlideOverrides)
    annotations: AnnotationLayer = Field(default_factory=AnnotationLayer)

    @property
    def layout(self):
        """The LayoutKind the classifier picks for this slide."""
        from mdeck.layout.classifier import classify

        return classify(self, self.index)


class PresentationMeta(_Frozen):
    """Presentation-level settings from the frontmatter."""

    title: Optional[str] = None
    author: Optional[str] = None
    date: Optional[str] = None
    theme: str = "dark"
    transition: str = "slide"
    footer: Optional[str] = None
    metadata: dict[str, str] = Field(default_factory=dict)


class Presentation(_Frozen):
    """Full parsed deck = metadata + ordered slides + parse diagnostics."""

    meta: PresentationMeta = Field(default_factory=PresentationMeta)
    slides: list[Slide] = Field(min_length=1)
    diagnostics: list[Diagnostic] = Field(default_factory=list)

    @property
    def title(self) -> Optional[str]:
        return self.meta.title

    @property
    def author(self) -> Optional[str]:
        return self.meta.author

    @property
    def date(self) -> Optional[str]:
        return self.meta.date

    @property
    def theme(self) -> str:
        return self.meta.theme

    @property
    def transition(self) -> str:
        return self.meta.transition

    @property
    def footer(self) -> Optional[str]:
        return self.meta.footer

    def theme_for(self, index: int) -> str:
        return self.slides[index].overrides.theme or self.meta.theme

    def transition_for(self, index: int) -> str:
        return self.slides[index].overrides.transition or self.meta.transition

    def footer_for(self, index: int) -> Optional[str]:
        return self.slides[index].overrides.footer or self.meta.footer
