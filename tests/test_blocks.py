"""
tests/test_blocks.py — Tests for block and inline parsing

Run with: pytest tests/test_blocks.py -v
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from mdeck.dsl.blocks import BlockParser, parse_highlight_spec
from mdeck.dsl.errors import ParseError
from mdeck.dsl.inline import parse_inline
from mdeck.dsl.models import (
    BlockquoteBlock,
    BoldSpan,
    CodeBlock,
    CodeSpan,
    ColumnBreakBlock,
    HeadingBlock,
    ImageBlock,
    ItalicSpan,
    ListBlock,
    ListMarker,
    ParagraphBlock,
    SizingMode,
    TableBlock,
    TextSpan,
    ThematicBreakBlock,
)


@pytest.fixture
def parser():
    return BlockParser()


def _text(spans) -> str:
    return "".join(s.text for s in spans)


class TestHeadings:
    @pytest.mark.parametrize("level", [1, 2, 3, 6])
    def test_levels(self, parser, level):
        blocks = parser.parse("#" * level + " Title")
        assert isinstance(blocks[0], HeadingBlock)
        assert blocks[0].level == level
        assert _text(blocks[0].spans) == "Title"

    def test_inline_formatting_in_heading(self, parser):
        heading = parser.parse("## Use **bold**")[0]
        assert heading.spans == [TextSpan(text="Use "), BoldSpan(text="bold")]

    def test_hash_without_space_is_paragraph(self, parser):
        blocks = parser.parse("#hashtag")
        assert isinstance(blocks[0], ParagraphBlock)


class TestFencedCode:
    def test_language_and_code(self, parser):
        block = parser.parse("```python\nx = 1\ny = 2\n```")[0]
        assert isinstance(block, CodeBlock)
        assert block.language == "python"
        assert block.code == "x = 1\ny = 2"
        assert block.highlight_lines == []

    def test_highlight_spec(self, parser):
        block = parser.parse("```rust {1,3-4}\na\nb\nc\nd\n```")[0]
        assert block.language == "rust"
        assert block.highlight_lines == [1, 3, 4]

    def test_tilde_fence(self, parser):
        block = parser.parse("~~~\nplain\n~~~")[0]
        assert block.language is None
        assert block.code == "plain"

    def test_unterminated_fence_runs_to_end(self, parser):
        block = parser.parse("```\nline one\nline two")[0]
        assert block.code == "line one\nline two"

    def test_markdown_inside_fence_is_literal(self, parser):
        block = parser.parse("```\n# not a heading\n- not a list\n```")[0]
        assert isinstance(block, CodeBlock)
        assert "# not a heading" in block.code

    def test_parse_highlight_spec(self):
        assert parse_highlight_spec("3,5-7") == [3, 5, 6, 7]
        assert parse_highlight_spec(" 2 , x, 4-a ") == [2]


class TestImages:
    def test_fill(self, parser):
        block = parser.parse("![x @fill](p.png)")[0]
        assert isinstance(block, ImageBlock)
        assert block.sizing.mode == SizingMode.FILL
        assert block.alt == "x"
        assert block.path == "p.png"

    def test_width_percent(self, parser):
        block = parser.parse("![x @width:80%](p.png)")[0]
        assert block.sizing.mode == SizingMode.WIDTH
        assert block.sizing.percent == 80

    def test_default(self, parser):
        block = parser.parse("![x](p.png)")[0]
        assert block.sizing.mode == SizingMode.DEFAULT

    def test_multiword_alt(self, parser):
        block = parser.parse("![Team photo @fill](images/team.png)")[0]
        assert block.alt == "Team photo"

    def test_width_out_of_range_falls_back(self, parser):
        block = parser.parse("![x @width:150%](p.png)", line_offset=10)[0]
        assert block.sizing.mode == SizingMode.DEFAULT
        assert len(parser.errors) == 1
        assert isinstance(parser.errors[0], ParseError)
        assert parser.errors[0].line == 11


class TestBlockquotes:
    def test_lines(self, parser):
        block = parser.parse("> one\n> two")[0]
        assert isinstance(block, BlockquoteBlock)
        assert [_text(line) for line in block.lines] == ["one", "two"]
        assert block.attribution is None

    def test_attribution_inside_quote(self, parser):
        block = parser.parse("> Stay hungry.\n> -- Steve")[0]
        assert block.attribution == "Steve"
        assert len(block.lines) == 1

    def test_attribution_after_quote(self, parser):
        blocks = parser.parse("> Stay hungry.\n— Steve")
        assert len(blocks) == 1
        assert blocks[0].attribution == "Steve"


class TestTables:
    def test_header_and_rows(self, parser):
        block = parser.parse("| a | b |\n|---|:-:|\n| 1 | 2 |\n| 3 | 4 |")[0]
        assert isinstance(block, TableBlock)
        assert [_text(c) for c in block.headers] == ["a", "b"]
        assert [[_text(c) for c in row] for row in block.rows] == [["1", "2"], ["3", "4"]]

    def test_no_delimiter_row_means_no_header(self, parser):
        block = parser.parse("| a | b |\n| 1 | 2 |")[0]
        assert block.headers == []
        assert len(block.rows) == 2

    def test_inline_in_cells(self, parser):
        block = parser.parse("| `code` |\n|---|\n| **x** |")[0]
        assert block.headers[0] == [CodeSpan(text="code")]
        assert block.rows[0][0] == [BoldSpan(text="x")]


class TestLists:
    def test_markers(self, parser):
        block = parser.parse("- plain\n+ next\n* with previous")[0]
        assert isinstance(block, ListBlock)
        assert [i.marker for i in block.items] == [
            ListMarker.STATIC,
            ListMarker.NEXT,
            ListMarker.WITH_PREV,
        ]
        assert block.emphasis is True
        assert block.ordered is False

    def test_plain_list_has_no_emphasis(self, parser):
        assert parser.parse("- a\n- b")[0].emphasis is False

    def test_nesting(self, parser):
        block = parser.parse("- top\n  - sub\n    - subsub\n- top again")[0]
        assert [i.level for i in block.items] == [0, 1, 2, 0]

    def test_ordered(self, parser):
        block = parser.parse("1. one\n2) two")[0]
        assert block.ordered is True
        assert all(i.marker == ListMarker.ORDERED for i in block.items)

    def test_blank_line_between_items(self, parser):
        blocks = parser.parse("- a\n\n- b")
        assert len(blocks) == 1
        assert len(blocks[0].items) == 2

    def test_lazy_continuation(self, parser):
        block = parser.parse("- first line\n  continues here")[0]
        assert block.items[0].text == "first line continues here"


class TestBreaks:
    def test_column_break(self, parser):
        blocks = parser.parse("left\n\n+++\n\nright")
        assert isinstance(blocks[1], ColumnBreakBlock)
        assert len(blocks) == 3

    @pytest.mark.parametrize("token", ["***", "___", "* * *"])
    def test_thematic_break(self, parser, token):
        blocks = parser.parse(f"above\n\n{token}\n\nbelow")
        assert isinstance(blocks[1], ThematicBreakBlock)


class TestParagraphs:
    def test_lines_joined(self, parser):
        block = parser.parse("one\ntwo\nthree")[0]
        assert _text(block.spans) == "one two three"

    def test_paragraph_ends_at_block(self, parser):
        blocks = parser.parse("text\n- item")
        assert isinstance(blocks[0], ParagraphBlock)
        assert isinstance(blocks[1], ListBlock)

    def test_order_preserved(self, parser):
        blocks = parser.parse("# H\n\npara\n\n- item\n\n```\ncode\n```")
        assert [b.kind for b in blocks] == ["heading", "paragraph", "list", "code"]


class TestInline:
    def test_plain(self):
        assert parse_inline("plain") == [TextSpan(text="plain")]

    def test_bold(self):
        assert parse_inline("a **b** c") == [
            TextSpan(text="a "),
            BoldSpan(text="b"),
            TextSpan(text=" c"),
        ]

    def test_underscore_bold_and_italic(self):
        assert parse_inline("__b__ _i_") == [
            BoldSpan(text="b"),
            TextSpan(text=" "),
            ItalicSpan(text="i"),
        ]

    def test_code_protects_stars(self):
        assert parse_inline("use `x*y` now") == [
            TextSpan(text="use "),
            CodeSpan(text="x*y"),
            TextSpan(text=" now"),
        ]

    def test_italic(self):
        assert parse_inline("*it*") == [ItalicSpan(text="it")]

    def test_intraword_underscore_is_literal(self):
        assert parse_inline("snake_case_name") == [TextSpan(text="snake_case_name")]

    def test_spaced_stars_are_literal(self):
        assert parse_inline("2 * 3 * 4") == [TextSpan(text="2 * 3 * 4")]

    def test_unclosed_bold_is_literal(self):
        assert parse_inline("**unclosed") == [TextSpan(text="**unclosed")]

    def test_link_renders_as_text(self):
        assert parse_inline("see [docs](https://example.org)") == [TextSpan(text="see docs")]

    def test_nested_marks_flattened(self):
        assert parse_inline("**bold *and* italic**") == [BoldSpan(text="bold and italic")]

    def test_italic_around_bold_flattened(self):
        assert parse_inline("*a **b** c*") == [ItalicSpan(text="a b c")]

    def test_trailing_double_star_closes_italic(self):
        assert parse_inline("*a**") == [ItalicSpan(text="a"), TextSpan(text="*")]
