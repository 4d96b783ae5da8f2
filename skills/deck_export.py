"""
skills/deck_export.py — Export a markdown deck to .pptx.

Wraps mdeck.services.exporter.DeckExporter.
"""

from pathlib import Path
from typing import Optional

from mdeck.services.exporter import DeckExporter
from mdeck.services.session import SessionConfig


def export(
    deck_path: str,
    output_dir: str,
    theme: Optional[str] = None,
    width: int = 1920,
    height: int = 1080,
) -> Optional[Path]:
    """Export a deck file to a .pptx file.

    Args:
        deck_path: Markdown deck to export.
        output_dir: Directory to write the output file.
        theme: Theme name overriding the deck's own ("dark" / "light").
        width, height: Render resolution used for layout.

    Returns:
        Path to the generated .pptx file, or None if the deck was empty.
    """
    config = SessionConfig(theme=theme, export_width=width, export_height=height)
    return DeckExporter(config).export(deck_path, output_dir).output_path
