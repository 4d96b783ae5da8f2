"""
tests/test_parser.py — Tests for the markdown deck parser

Validates parsing of the sample.md fixture, frontmatter handling, slide
splitting and error recovery.
Run with: pytest tests/test_parser.py -v
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from mdeck.dsl import frontmatter, splitter
from mdeck.dsl.errors import EmptyDocumentError
from mdeck.dsl.models import (
    DiagnosticKind,
    DiagramBlock,
    HeadingBlock,
    ParagraphBlock,
)
from mdeck.dsl.parser import MarkdownDeckParser, load_presentation, parse_presentation
from mdeck.dsl.splitter import SplitOptions
from mdeck.layout.classifier import LayoutKind


SAMPLE_PATH = Path(__file__).parent.parent / "docs" / "examples" / "sample.md"


def _load_sample() -> str:
    return SAMPLE_PATH.read_text(encoding="utf-8")


@pytest.fixture
def sample():
    return MarkdownDeckParser().parse(_load_sample())


class TestFrontmatter:
    def test_parses_title(self, sample):
        assert sample.title == "Shipping Decks From Markdown"

    def test_parses_author_and_date(self, sample):
        assert sample.author == "Ada Lovelace"
        assert sample.date == "2025-03-14"

    def test_parses_directives(self, sample):
        assert sample.meta.theme == "dark"
        assert sample.meta.transition == "fade"
        assert sample.meta.footer == "mdeck demo"

    def test_unknown_keys_kept_as_metadata(self, sample):
        assert sample.meta.metadata == {"venue": "PyCon"}

    def test_comment_lines_ignored(self, sample):
        assert not sample.diagnostics

    def test_missing_frontmatter_returns_defaults(self):
        pres = parse_presentation("# Just a slide")
        assert pres.title is None
        assert pres.meta.theme == "dark"
        assert pres.meta.transition == "slide"

    def test_single_quotes_unquoted(self):
        pres = parse_presentation("---\ntitle: 'Quoted'\n---\n# Hi")
        assert pres.title == "Quoted"

    def test_bom_and_crlf(self):
        pres = parse_presentation("\ufeff---\r\ntitle: T\r\n---\r\n# Hi\r\n")
        assert pres.title == "T"
        heading = pres.slides[0].blocks[0]
        assert isinstance(heading, HeadingBlock)
        assert heading.spans[0].text == "Hi"

    def test_malformed_line_skipped_with_line_number(self):
        pres = parse_presentation("---\ntitle: T\nnot a pair\nauthor: A\n---\n# Hi")
        assert pres.title == "T"
        assert pres.author == "A"
        assert len(pres.diagnostics) == 1
        diag = pres.diagnostics[0]
        assert diag.kind == DiagnosticKind.PARSE
        assert diag.line == 3

    def test_unterminated_block_is_not_frontmatter(self):
        result = frontmatter.extract("---\ntitle: T\n# Hi")
        assert result.meta.title is None
        assert result.body.startswith("---")

    def test_body_line_offset(self):
        result = frontmatter.extract("---\ntitle: T\n---\n# Hi")
        assert result.body_line_offset == 3
        assert result.body == "# Hi"


class TestSlideCount:
    def test_sample_has_expected_slides(self, sample):
        # Title, Section, Bullets, TwoCol, Diagram, Table, Code, Quote,
        # Image, Content (image + caption), Long bullets, Content = 12
        assert len(sample.slides) == 12

    @pytest.mark.parametrize("n", [1, 2, 5])
    def test_n_segments_give_n_slides_in_order(self, n):
        text = "\n---\n".join(f"# Slide {i}" for i in range(n))
        pres = parse_presentation(text)
        assert len(pres.slides) == n
        assert [s.blocks[0].spans[0].text for s in pres.slides] == [f"Slide {i}" for i in range(n)]

    def test_slide_indexes(self, sample):
        assert [s.index for s in sample.slides] == list(range(12))

    def test_separator_inside_fence_does_not_split(self):
        pres = parse_presentation("```\n---\n```\n---\n# Next")
        assert len(pres.slides) == 2
        assert pres.slides[0].blocks[0].code == "---"

    def test_longer_dash_runs_split(self):
        assert len(parse_presentation("# A\n-----\n# B").slides) == 2

    def test_empty_segments_dropped(self):
        pres = parse_presentation("# A\n---\n   \n---\n# B")
        assert len(pres.slides) == 2


class TestSplitter:
    def test_directives_peeled(self):
        raw = splitter.split("@layout: bullet\n@Footer: 'x'\n\n- a")
        assert raw[0].directives == {"layout": "bullet", "footer": "x"}
        assert raw[0].body.strip() == "- a"

    def test_line_offsets(self):
        raw = splitter.split("A\n---\nB", line_offset=4)
        assert raw[0].line_offset == 4
        assert raw[1].line_offset == 6

    def test_heading_breaks_off_by_default(self):
        assert len(splitter.split("# A\ntext\n# B\nmore")) == 1

    def test_heading_breaks_option(self):
        raw = splitter.split("# A\ntext\n# B\nmore", options=SplitOptions(heading_breaks=True))
        assert len(raw) == 2
        assert raw[1].body.startswith("# B")

    def test_blank_line_breaks_option(self):
        text = "A\n\n\n\nB"
        assert len(splitter.split(text)) == 1
        assert len(splitter.split(text, options=SplitOptions(blank_line_breaks=True))) == 2


class TestSlideOverrides:
    def test_override_applies_to_one_slide(self, sample):
        assert sample.theme_for(8) == "light"
        assert sample.theme_for(7) == "dark"
        assert sample.theme_for(9) == "dark"

    def test_layout_hint(self, sample):
        assert sample.slides[3].overrides.layout == "two-column"

    def test_unknown_directive_kept_in_extra(self, sample):
        assert sample.slides[8].overrides.extra == {"notes": "Pause here for questions."}

    def test_transition_and_footer_fallback(self, sample):
        assert sample.transition_for(2) == "fade"
        assert sample.footer_for(2) == "mdeck demo"

    def test_directives_are_not_blocks(self, sample):
        kinds = [b.kind for b in sample.slides[3].blocks]
        assert kinds == ["heading", "paragraph", "column_break", "paragraph"]


class TestScenarios:
    def test_title_from_frontmatter_and_title_layout(self):
        pres = parse_presentation('---\ntitle: "T"\n---\n# Heading')
        assert pres.title == "T"
        assert pres.slides[0].layout == LayoutKind.TITLE

    def test_deterministic(self):
        text = _load_sample()
        assert parse_presentation(text) == parse_presentation(text)


class TestErrorRecovery:
    def test_empty_document_rejected(self):
        with pytest.raises(EmptyDocumentError):
            parse_presentation("")

    def test_frontmatter_only_rejected(self):
        with pytest.raises(EmptyDocumentError):
            parse_presentation("---\ntitle: Nothing\n---\n\n   \n")

    def test_diagram_error_is_block_local(self):
        text = "---\ntitle: T\n---\n# Slide\n\n```@diagram\n- A\nA -> B\n```\n\nStill here."
        pres = parse_presentation(text)
        blocks = pres.slides[0].blocks
        diagram = next(b for b in blocks if isinstance(b, DiagramBlock))
        assert diagram.is_fallback
        assert "B" in diagram.error
        assert isinstance(blocks[-1], ParagraphBlock)

    def test_diagram_error_line_is_document_line(self):
        text = "---\ntitle: T\n---\n# Slide\n\n```@diagram\n- A\nA -> B\n```"
        pres = parse_presentation(text)
        assert len(pres.diagnostics) == 1
        diag = pres.diagnostics[0]
        assert diag.kind == DiagnosticKind.DIAGRAM
        assert diag.line == 8
        assert diag.slide_index == 0

    def test_bad_slide_does_not_stop_others(self):
        pres = parse_presentation("```@diagram\nX -> Y\n```\n---\n# Fine")
        assert len(pres.slides) == 2
        assert pres.slides[1].blocks[0].spans[0].text == "Fine"


class TestParseFile:
    def test_load_presentation(self):
        pres = load_presentation(SAMPLE_PATH)
        assert len(pres.slides) == 12

    def test_parse_file_utf8(self, tmp_path):
        path = tmp_path / "deck.md"
        path.write_text("# Café", encoding="utf-8")
        pres = MarkdownDeckParser().parse_file(str(path))
        assert pres.slides[0].blocks[0].spans[0].text == "Café"
