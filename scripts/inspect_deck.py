#!/usr/bin/env python3
"""
scripts/inspect_deck.py — Show how a markdown deck parses and lays out.

Prints frontmatter settings, one line per slide (layout, blocks, theme
and transition), and every diagnostic found.

Usage:
    python scripts/inspect_deck.py docs/examples/sample.md
    python scripts/inspect_deck.py talk.md --heading-breaks --verbose
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))


def main():
    ap = argparse.ArgumentParser(description="Inspect a markdown deck.")
    ap.add_argument("deck", help="Markdown deck file")
    ap.add_argument("--heading-breaks", action="store_true", help="Start a new slide at every H1")
    ap.add_argument("--blank-line-breaks", action="store_true", help="Three blank lines end a slide")
    ap.add_argument("--verbose", action="store_true", help="Enable debug logging")
    args = ap.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    from mdeck.dsl.errors import EmptyDocumentError
    from mdeck.dsl.parser import load_presentation
    from mdeck.dsl.splitter import SplitOptions
    from mdeck.layout.classifier import classify_slide, layout_diagnostics

    options = SplitOptions(heading_breaks=args.heading_breaks, blank_line_breaks=args.blank_line_breaks)
    try:
        deck = load_presentation(args.deck, options)
    except EmptyDocumentError as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    meta = deck.meta
    print(f"\n{meta.title or Path(args.deck).stem}")
    print(f"{'─' * 50}")
    print(f"Author     : {meta.author or '-'}")
    print(f"Date       : {meta.date or '-'}")
    print(f"Theme      : {meta.theme}")
    print(f"Transition : {meta.transition}")
    if meta.metadata:
        print(f"Metadata   : {', '.join(f'{k}={v}' for k, v in meta.metadata.items())}")
    print(f"{'─' * 50}")

    for i, slide in enumerate(deck.slides):
        result = classify_slide(slide, i)
        layout = result.kind.value + (f"({result.variant.value})" if result.variant else "")
        kinds = ", ".join(b.kind for b in slide.blocks) or "empty"
        print(f"{i + 1:>3}. {layout:<16} {kinds}")
        if deck.theme_for(i) != meta.theme or deck.transition_for(i) != meta.transition:
            print(f"     theme={deck.theme_for(i)} transition={deck.transition_for(i)}")

    diagnostics = list(deck.diagnostics) + layout_diagnostics(deck)
    if diagnostics:
        print(f"\nDiagnostics ({len(diagnostics)}):")
        for diag in diagnostics:
            where = f"line {diag.line}" if diag.line else f"slide {diag.slide_index + 1}" if diag.slide_index is not None else "-"
            print(f"  ! [{diag.kind.value}] {where}: {diag.message}")


if __name__ == "__main__":
    main()
