"""
tests/test_syntax.py — Tests for code coloring

Run with: pytest tests/test_syntax.py -v
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from mdeck.dsl.parser import load_presentation
from mdeck.renderer.layouts import render
from mdeck.renderer.scene import ColorSpan, TextPrim
from mdeck.renderer.syntax import get_style, highlight_code
from mdeck.renderer.theme import DARK, LIGHT

SAMPLE_PATH = Path(__file__).parent.parent / "docs" / "examples" / "sample.md"


class TestHighlight:
    def test_runs_cover_the_code_exactly(self):
        code = "def f(x):\n\n    return x * 2\n"
        spans = highlight_code(code, "python", LIGHT)
        assert "".join(s.text for s in spans) == code

    def test_keywords_take_the_style_color(self):
        spans = highlight_code("def f():\n    return 1", "python", LIGHT)
        assert ColorSpan("def", "008000") in spans
        assert len({s.color for s in spans}) > 1

    def test_unknown_language_is_plain(self):
        assert highlight_code("x = 1", "nosuchlang", LIGHT) == [ColorSpan("x = 1", LIGHT.code_foreground)]

    def test_no_language_is_plain(self):
        assert highlight_code("a\nb", None, LIGHT) == [ColorSpan("a\nb", LIGHT.code_foreground)]

    def test_empty_code(self):
        assert highlight_code("", "python", LIGHT) == []

    def test_unknown_style_falls_back(self):
        assert get_style("no-such-style") is get_style("default")

    def test_dark_theme_uses_its_own_style(self):
        light = highlight_code("return 1", "python", LIGHT)
        dark = highlight_code("return 1", "python", DARK)
        assert light[0].color != dark[0].color


class TestCodeSlide:
    def test_code_panel_is_colored(self):
        scene = render(load_presentation(SAMPLE_PATH), 6, 1920, 1080)
        code = next(p for p in scene.of_type(TextPrim) if p.text.startswith("deck = "))
        assert all(isinstance(s, ColorSpan) for s in code.spans)
        assert len({s.color for s in code.spans}) > 1
