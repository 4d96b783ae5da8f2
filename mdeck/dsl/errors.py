"""
mdeck/dsl/errors.py — Error taxonomy for deck parsing and rendering

Every error except EmptyDocumentError is recoverable: it is recorded as a
Diagnostic on the Presentation (or on the image cache entry) and the rest
of the deck keeps working.
"""

from __future__ import annotations

from typing import Optional

from .models import Diagnostic, DiagnosticKind


class DeckError(Exception):
    """Base class for all mdeck errors."""

    kind: DiagnosticKind = DiagnosticKind.PARSE

    def __init__(self, message: str, line: Optional[int] = None, slide_index: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.line = line
        self.slide_index = slide_index

    def to_diagnostic(self) -> Diagnostic:
        return Diagnostic(
            kind=self.kind,
            message=self.message,
            line=self.line,
            slide_index=self.slide_index,
        )

    def __str__(self) -> str:
        if self.line is not None:
            return f"line {self.line}: {self.message}"
        return self.message


class ParseError(DeckError):
    """Malformed frontmatter or directive line. The line is skipped."""

    kind = DiagnosticKind.PARSE


class DiagramError(DeckError):
    """Diagram edge references an undeclared node, or a node line is invalid."""

    kind = DiagnosticKind.DIAGRAM


class LayoutError(DeckError):
    """Column-break structure does not match the requested layout."""

    kind = DiagnosticKind.LAYOUT


class ImageLoadError(DeckError):
    """An image could not be read or decoded."""

    kind = DiagnosticKind.IMAGE

    def __init__(self, message: str, path: str = ""):
        super().__init__(message)
        self.path = path


class EmptyDocumentError(DeckError):
    """The document contains no slides. Fatal: there is nothing to show."""

    kind = DiagnosticKind.EMPTY
