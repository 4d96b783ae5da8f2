"""
mdeck/dsl/parser.py — Markdown deck parser

Parses extended-markdown text into a Presentation. Lenient: malformed
frontmatter lines, broken diagrams and bad image directives are recorded
as diagnostics and skipped. Only a document without any slide is
rejected (EmptyDocumentError).

Deterministic: the same text always produces an equal Presentation.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from . import frontmatter, splitter
from .blocks import BlockParser
from .errors import DeckError, EmptyDocumentError
from .models import Diagnostic, Presentation, Slide, SlideOverrides
from .splitter import SplitOptions

logger = logging.getLogger(__name__)

_OVERRIDE_KEYS = ("theme", "transition", "layout", "footer")


class MarkdownDeckParser:
    """Parses deck markdown → Presentation."""

    def __init__(self, split_options: Optional[SplitOptions] = None):
        self.split_options = split_options or SplitOptions()

    def parse(self, text: str) -> Presentation:
        """Parse full document text into a Presentation."""
        fm = frontmatter.extract(text)
        errors: list[DeckError] = list(fm.errors)

        raw_slides = splitter.split(fm.body, fm.body_line_offset, self.split_options)
        if not raw_slides:
            raise EmptyDocumentError("document contains no slides")

        block_parser = BlockParser()
        slides: list[Slide] = []
        for index, raw in enumerate(raw_slides):
            blocks = block_parser.parse(raw.body, raw.line_offset, slide_index=index)
            errors.extend(block_parser.errors)
            slides.append(
                Slide(index=index, blocks=blocks, overrides=self._overrides(raw.directives))
            )

        diagnostics: list[Diagnostic] = [e.to_diagnostic() for e in errors]
        logger.info(
            "Parsed %d slides (%d diagnostics)", len(slides), len(diagnostics)
        )
        return Presentation(meta=fm.meta, slides=slides, diagnostics=diagnostics)

    def parse_file(self, path: str) -> Presentation:
        """Parse a markdown deck file."""
        with open(path, "r", encoding="utf-8") as f:
            return self.parse(f.read())

    @staticmethod
    def _overrides(directives: dict[str, str]) -> SlideOverrides:
        kwargs: dict = {k: directives[k] for k in _OVERRIDE_KEYS if directives.get(k)}
        extra = {k: v for k, v in directives.items() if k not in _OVERRIDE_KEYS}
        return SlideOverrides(extra=extra, **kwargs)


def parse_presentation(text: str, split_options: Optional[SplitOptions] = None) -> Presentation:
    return MarkdownDeckParser(split_options).parse(text)


def load_presentation(path: str | Path, split_options: Optional[SplitOptions] = None) -> Presentation:
    """Read and parse a deck file; raises EmptyDocumentError for an empty deck."""
    return MarkdownDeckParser(split_options).parse_file(str(path))
