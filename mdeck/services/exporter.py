"""
mdeck/services/exporter.py — Deck file → .pptx pipeline

Coordinates the full static export:
  markdown file → parse → classify → render (sequential) → .pptx

Parse and layout problems never stop the export; they are collected on
the result next to the output path.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from mdeck.dsl.errors import DeckError
from mdeck.dsl.models import Diagnostic, Presentation
from mdeck.dsl.parser import MarkdownDeckParser
from mdeck.dsl.splitter import SplitOptions
from mdeck.layout.classifier import layout_diagnostics
from mdeck.renderer.pptx_export import PptxSink

from .session import PresentationSession, SessionConfig

logger = logging.getLogger(__name__)


@dataclass
class ExportResult:
    """Result from a deck export."""

    presentation: Optional[Presentation]
    output_path: Optional[Path] = None
    slide_count: int = 0
    diagnostics: list[Diagnostic] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


class DeckExporter:
    """
    Markdown deck → .pptx.

    Usage:
        result = DeckExporter().export("talk.md", "./output")
        # result.output_path → path to the generated .pptx
    """

    def __init__(self, config: Optional[SessionConfig] = None, split_options: Optional[SplitOptions] = None):
        self.config = config or SessionConfig()
        self.parser = MarkdownDeckParser(split_options)

    def export(self, deck_path: str | Path, output_dir: str | Path, filename: Optional[str] = None) -> ExportResult:
        deck_path = Path(deck_path)
        try:
            presentation = self.parser.parse_file(str(deck_path))
        except DeckError as e:
            logger.error("Cannot export %s: %s", deck_path, e)
            return ExportResult(presentation=None, errors=[str(e)])

        diagnostics = list(presentation.diagnostics) + layout_diagnostics(presentation)
        for diag in diagnostics:
            logger.warning("%s: %s", diag.kind.value, diag.message)

        sink = PptxSink(title=presentation.title or deck_path.stem)
        with PresentationSession(presentation, base_dir=deck_path.parent, config=self.config) as session:
            count = session.export(sink)
        output_path = sink.save(output_dir, filename=filename)

        return ExportResult(
            presentation=presentation,
            output_path=output_path,
            slide_count=count,
            diagnostics=diagnostics,
        )
