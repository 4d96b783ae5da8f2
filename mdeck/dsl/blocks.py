"""
mdeck/dsl/blocks.py — Block parser for a single slide body

Turns the text of one slide (directives already removed) into an ordered
list of Block models. Lenient: anything that is not a recognized
construct becomes a paragraph.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from .diagram import DIAGRAM_TAG, parse_diagram
from .errors import DeckError, DiagramError, ParseError
from .inline import parse_inline
from .models import (
    Block,
    BlockquoteBlock,
    CodeBlock,
    ColumnBreakBlock,
    DiagramBlock,
    HeadingBlock,
    ImageBlock,
    ListBlock,
    ListItem,
    ListMarker,
    ParagraphBlock,
    Sizing,
    TableBlock,
    ThematicBreakBlock,
)

logger = logging.getLogger(__name__)

COLUMN_BREAK = "+++"

_MARKERS = {"-": ListMarker.STATIC, "+": ListMarker.NEXT, "*": ListMarker.WITH_PREV}


class BlockParser:
    """Parses slide body text → list[Block]."""

    # ── Compiled patterns ──────────────────────────────────────────

    RE_HEADING = re.compile(r"^(#{1,6})(?:\s+(.*?))?\s*#*\s*$")
    RE_FENCE = re.compile(r"^(`{3,}|~{3,})\s*(.*)$")
    RE_THEMATIC = re.compile(r"^(?:\*\s*){3,}$|^(?:_\s*){3,}$")
    RE_IMAGE = re.compile(r'^!\[(?P<alt>[^\]]*)\]\((?P<path>[^)\s]+)(?:\s+"[^"]*")?\)$')
    RE_WIDTH = re.compile(r"^width:(\d+(?:\.\d+)?)%$")
    RE_BULLET = re.compile(r"^(\s*)([-+*])\s+(.*)$")
    RE_ORDERED = re.compile(r"^(\s*)(\d+)[.)]\s+(.*)$")
    RE_TABLE_DELIM = re.compile(r"^\|?\s*:?-+:?\s*(?:\|\s*:?-+:?\s*)*\|?$")
    RE_ATTRIBUTION = re.compile(r"^(?:--|—|―)\s*(.+)$")
    RE_HIGHLIGHT = re.compile(r"\{([\d,\s-]*)\}")

    def __init__(self):
        self.errors: list[DeckError] = []
        self._line_offset = 0
        self._slide_index: Optional[int] = None

    def parse(
        self, text: str, line_offset: int = 0, slide_index: Optional[int] = None
    ) -> list[Block]:
        """Parse one slide body. Recoverable problems accumulate in self.errors."""
        self.errors = []
        self._line_offset = line_offset
        self._slide_index = slide_index

        lines = text.split("\n")
        blocks: list[Block] = []
        i = 0

        while i < len(lines):
            stripped = lines[i].strip()

            if not stripped:
                i += 1
                continue

            if stripped == COLUMN_BREAK:
                blocks.append(ColumnBreakBlock())
                i += 1
                continue

            if self.RE_THEMATIC.match(stripped):
                blocks.append(ThematicBreakBlock())
                i += 1
                continue

            heading = self._parse_heading(stripped)
            if heading is not None:
                blocks.append(heading)
                i += 1
                continue

            if self.RE_FENCE.match(stripped):
                block, i = self._parse_fence(lines, i)
                blocks.append(block)
                continue

            image = self._parse_image(stripped, i)
            if image is not None:
                blocks.append(image)
                i += 1
                continue

            if stripped.startswith(">"):
                block, i = self._parse_blockquote(lines, i)
                blocks.append(block)
                continue

            if stripped.startswith("|"):
                block, i = self._parse_table(lines, i)
                blocks.append(block)
                continue

            if self._is_list_line(lines[i]):
                block, i = self._parse_list(lines, i)
                blocks.append(block)
                continue

            block, i = self._parse_paragraph(lines, i)
            blocks.append(block)

        return blocks

    # ── Diagnostics ────────────────────────────────────────────────

    def _record(self, err: DeckError, local_line: int) -> None:
        err.line = self._line_offset + local_line + 1
        err.slide_index = self._slide_index
        logger.warning("Slide %s: %s", self._slide_index, err)
        self.errors.append(err)

    # ── Headings ───────────────────────────────────────────────────

    def _parse_heading(self, stripped: str) -> Optional[HeadingBlock]:
        m = self.RE_HEADING.match(stripped)
        if not m:
            return None
        return HeadingBlock(level=len(m.group(1)), spans=parse_inline(m.group(2) or ""))

    # ── Fenced code / diagrams ─────────────────────────────────────

    def _parse_fence(self, lines: list[str], start: int) -> tuple[Block, int]:
        m = self.RE_FENCE.match(lines[start].strip())
        fence, info = m.group(1), m.group(2).strip()
        fence_char, fence_len = fence[0], len(fence)

        body: list[str] = []
        i = start + 1
        while i < len(lines):
            stripped = lines[i].strip()
            run = len(stripped) - len(stripped.lstrip(fence_char))
            if run >= fence_len and not stripped[run:].strip():
                i += 1
                break
            body.append(lines[i])
            i += 1

        code = "\n".join(body)

        if info.startswith(DIAGRAM_TAG):
            try:
                graph = parse_diagram(code)
            except DiagramError as exc:
                # Diagram line numbers are relative to the fence body
                self._record(exc, start + (exc.line or 0))
                return DiagramBlock(source=code, graph=None, error=exc.message), i
            return DiagramBlock(source=code, graph=graph), i

        language, highlight = self._parse_code_info(info)
        return CodeBlock(language=language, code=code, highlight_lines=highlight), i

    def _parse_code_info(self, info: str) -> tuple[Optional[str], list[int]]:
        if not info:
            return None, []
        highlight: list[int] = []
        m = self.RE_HIGHLIGHT.search(info)
        if m:
            highlight = parse_highlight_spec(m.group(1))
            info = info[: m.start()]
        parts = info.split()
        return (parts[0] if parts else None), highlight

    # ── Images ─────────────────────────────────────────────────────

    def _parse_image(self, stripped: str, local_line: int) -> Optional[ImageBlock]:
        m = self.RE_IMAGE.match(stripped)
        if not m:
            return None

        sizing = Sizing.default()
        alt_words: list[str] = []
        for word in m.group("alt").split():
            if not word.startswith("@"):
                alt_words.append(word)
                continue
            directive = word[1:]
            if directive == "fill":
                sizing = Sizing.fill()
                continue
            wm = self.RE_WIDTH.match(directive)
            if wm and 0 <= float(wm.group(1)) <= 100:
                sizing = Sizing.width_percent(float(wm.group(1)))
            elif directive.startswith("width:"):
                self._record(
                    ParseError(f"invalid image width {directive!r}, using intrinsic size"),
                    local_line,
                )
            else:
                logger.debug("Ignoring unknown image directive @%s", directive)

        return ImageBlock(alt=" ".join(alt_words), path=m.group("path"), sizing=sizing)

    # ── Blockquotes ────────────────────────────────────────────────

    def _parse_blockquote(self, lines: list[str], start: int) -> tuple[BlockquoteBlock, int]:
        quote_lines: list[str] = []
        attribution: Optional[str] = None
        i = start

        while i < len(lines):
            stripped = lines[i].strip()
            if not stripped.startswith(">"):
                break
            content = stripped[1:].strip()
            attr = self.RE_ATTRIBUTION.match(content)
            if attr and quote_lines:
                attribution = attr.group(1).strip()
            elif content:
                if attribution is not None:
                    # Attribution only counts as the trailing line
                    quote_lines.append(f"— {attribution}")
                    attribution = None
                quote_lines.append(content)
            i += 1

        if attribution is None and i < len(lines):
            attr = self.RE_ATTRIBUTION.match(lines[i].strip())
            if attr:
                attribution = attr.group(1).strip()
                i += 1

        return (
            BlockquoteBlock(
                lines=[parse_inline(line) for line in quote_lines],
                attribution=attribution,
            ),
            i,
        )

    # ── Tables ─────────────────────────────────────────────────────

    def _parse_table(self, lines: list[str], start: int) -> tuple[TableBlock, int]:
        rows: list[str] = []
        i = start
        while i < len(lines) and lines[i].strip().startswith("|"):
            rows.append(lines[i].strip())
            i += 1

        if len(rows) >= 2 and self.RE_TABLE_DELIM.match(rows[1]):
            headers = self._split_row(rows[0])
            body = rows[2:]
        else:
            headers = []
            body = rows

        return (
            TableBlock(
                headers=[parse_inline(c) for c in headers],
                rows=[[parse_inline(c) for c in self._split_row(r)] for r in body],
            ),
            i,
        )

    @staticmethod
    def _split_row(row: str) -> list[str]:
        row = row.strip()
        if row.startswith("|"):
            row = row[1:]
        if row.endswith("|"):
            row = row[:-1]
        return [cell.strip() for cell in row.split("|")]

    # ── Lists ──────────────────────────────────────────────────────

    def _is_list_line(self, line: str) -> bool:
        return bool(self.RE_BULLET.match(line) or self.RE_ORDERED.match(line))

    def _parse_list(self, lines: list[str], start: int) -> tuple[ListBlock, int]:
        raw_items: list[tuple[int, ListMarker, str]] = []
        i = start

        while i < len(lines):
            line = lines[i]
            if not line.strip():
                # A blank line continues the list only if another item follows
                j = i + 1
                while j < len(lines) and not lines[j].strip():
                    j += 1
                if j < len(lines) and self._is_list_line(lines[j]):
                    i = j
                    continue
                break

            bm = self.RE_BULLET.match(line)
            om = self.RE_ORDERED.match(line)
            if bm and not self.RE_THEMATIC.match(line.strip()):
                raw_items.append((len(bm.group(1)), _MARKERS[bm.group(2)], bm.group(3)))
            elif om:
                raw_items.append((len(om.group(1)), ListMarker.ORDERED, om.group(3)))
            elif raw_items and line[:1].isspace() and not self._starts_block(line.strip()):
                # Lazy continuation of the previous item
                indent, marker, text = raw_items[-1]
                raw_items[-1] = (indent, marker, f"{text} {line.strip()}")
            else:
                break
            i += 1

        base = min(indent for indent, _, _ in raw_items)
        items = [
            ListItem(spans=parse_inline(text.strip()), marker=marker, level=(indent - base) // 2)
            for indent, marker, text in raw_items
        ]
        top = [it for it in items if it.level == 0] or items
        return (
            ListBlock(
                items=items,
                ordered=top[0].marker == ListMarker.ORDERED,
                emphasis=any(it.marker in (ListMarker.NEXT, ListMarker.WITH_PREV) for it in items),
            ),
            i,
        )

    # ── Paragraphs ─────────────────────────────────────────────────

    def _starts_block(self, stripped: str) -> bool:
        return bool(
            stripped == COLUMN_BREAK
            or self.RE_THEMATIC.match(stripped)
            or self.RE_HEADING.match(stripped)
            or self.RE_FENCE.match(stripped)
            or self.RE_IMAGE.match(stripped)
            or stripped.startswith(">")
            or stripped.startswith("|")
            or self.RE_BULLET.match(stripped)
            or self.RE_ORDERED.match(stripped)
        )

    def _parse_paragraph(self, lines: list[str], start: int) -> tuple[ParagraphBlock, int]:
        parts = [lines[start].strip()]
        i = start + 1
        while i < len(lines):
            stripped = lines[i].strip()
            if not stripped or self._starts_block(stripped):
                break
            parts.append(stripped)
            i += 1
        return ParagraphBlock(spans=parse_inline(" ".join(parts))), i


def parse_highlight_spec(spec: str) -> list[int]:
    """'3,5-7' → [3, 5, 6, 7]"""
    result: list[int] = []
    for part in spec.split(","):
        part = part.strip()
        if not part:
            continue
        start, sep, end = part.partition("-")
        if sep:
            if start.strip().isdigit() and end.strip().isdigit():
                result.extend(range(int(start), int(end) + 1))
        elif part.isdigit():
            result.append(int(part))
    return result
