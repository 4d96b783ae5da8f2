#!/usr/bin/env python3
"""
scripts/export_deck.py — Export a markdown deck to .pptx.

Renders every slide through the same layout path used for live display,
one slide at a time, waiting for images, and writes one .pptx.

Usage:
    python scripts/export_deck.py docs/examples/sample.md --output-dir ./output

Options:
    --output-dir DIR     Where to write the .pptx (default: ./output)
    --filename NAME      Output file name (default: derived from the deck title)
    --theme NAME         Override the deck theme ("dark" | "light")
    --width / --height   Render resolution (default: 1920x1080)
    --timeout SECONDS    Max wait for a slide's images (default: 10)
    --verbose            Show debug logging
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))


def main():
    ap = argparse.ArgumentParser(
        description="Export a markdown deck to .pptx.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    ap.add_argument("deck", help="Markdown deck file")
    ap.add_argument("--output-dir", default="./output", help="Output directory (default: ./output)")
    ap.add_argument("--filename", default=None, help="Output file name")
    ap.add_argument("--theme", default=None, choices=["dark", "light"], help="Override the deck theme")
    ap.add_argument("--width", type=int, default=1920, help="Render width in pixels")
    ap.add_argument("--height", type=int, default=1080, help="Render height in pixels")
    ap.add_argument("--timeout", type=float, default=10.0, help="Image wait per slide, seconds")
    ap.add_argument("--verbose", action="store_true", help="Enable debug logging")
    args = ap.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    from mdeck.services.exporter import DeckExporter
    from mdeck.services.session import SessionConfig

    config = SessionConfig(
        theme=args.theme,
        export_width=args.width,
        export_height=args.height,
        image_timeout=args.timeout,
    )
    result = DeckExporter(config).export(args.deck, args.output_dir, filename=args.filename)

    if result.errors:
        print(f"\nErrors ({len(result.errors)}):")
        for err in result.errors:
            print(f"  ✗ {err}")
        sys.exit(1)

    print(f"Slides exported : {result.slide_count}")
    if result.diagnostics:
        print(f"Diagnostics ({len(result.diagnostics)}):")
        for diag in result.diagnostics[:10]:
            where = f"line {diag.line}" if diag.line else f"slide {diag.slide_index + 1}" if diag.slide_index is not None else "-"
            print(f"  ! [{diag.kind.value}] {where}: {diag.message}")
        if len(result.diagnostics) > 10:
            print(f"  ... and {len(result.diagnostics) - 10} more")
    print(f"\nOutput: {result.output_path}")


if __name__ == "__main__":
    main()
