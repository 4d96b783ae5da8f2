"""
skills/deck_parse.py — Parse markdown decks into data models.

Wraps mdeck.dsl.parser.MarkdownDeckParser.
"""

from mdeck.dsl.models import Presentation
from mdeck.dsl.parser import MarkdownDeckParser
from mdeck.layout.classifier import LayoutKind, classify

_parser = MarkdownDeckParser()


def parse_text(markdown: str) -> Presentation:
    """Parse raw deck markdown into a Presentation."""
    return _parser.parse(markdown)


def parse_file(path: str) -> Presentation:
    """Parse a markdown deck file into a Presentation."""
    return _parser.parse_file(path)


def layouts(presentation: Presentation) -> list[LayoutKind]:
    """Layout kind of every slide, in order."""
    return [classify(slide, i) for i, slide in enumerate(presentation.slides)]
