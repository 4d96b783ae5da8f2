"""
mdeck/dsl/inline.py — Inline span parser

Recognizes `code`, **bold** / __bold__, *italic* / _italic_ and renders
[text](url) links as their text. Spans do not nest: the content of a
bold or italic run is kept as flat text. Unmatched delimiters stay literal.
"""

from __future__ import annotations

import re

from .models import BoldSpan, CodeSpan, ItalicSpan, Span, TextSpan

RE_LINK = re.compile(r"\[([^\]]+)\]\(([^)\s]*)\)")
RE_INNER_MARKS = re.compile(r"\*\*|__|\*|`")


def parse_inline(text: str) -> list[Span]:
    """Parse a run of text into inline spans."""
    text = RE_LINK.sub(r"\1", text)
    spans: list[Span] = []
    buf: list[str] = []
    i = 0
    n = len(text)

    def flush():
        if buf:
            _append_text(spans, "".join(buf))
            buf.clear()

    while i < n:
        ch = text[i]

        if ch == "`":
            end = text.find("`", i + 1)
            if end > i + 1:
                flush()
                spans.append(CodeSpan(text=text[i + 1 : end]))
                i = end + 1
                continue

        elif ch in "*_":
            double = text.startswith(ch * 2, i)
            delim = ch * 2 if double else ch
            end = _find_closing(text, i + len(delim), delim)
            if end is not None and _can_open(text, i, delim):
                flush()
                inner = _strip_inner_marks(text[i + len(delim) : end])
                spans.append(BoldSpan(text=inner) if double else ItalicSpan(text=inner))
                i = end + len(delim)
                continue
            if double:
                buf.append(delim)
                i += 2
                continue

        buf.append(ch)
        i += 1

    flush()
    return spans


def _can_open(text: str, start: int, delim: str) -> bool:
    """An opening delimiter must be followed by non-space; '_' must not sit inside a word."""
    after = start + len(delim)
    if after >= len(text) or text[after].isspace():
        return False
    if delim[0] == "_" and start > 0 and text[start - 1].isalnum():
        return False
    return True


def _find_closing(text: str, start: int, delim: str):
    i = start
    n = len(text)
    while i < n:
        if text[i] == "`":
            end = text.find("`", i + 1)
            if end == -1:
                return None
            i = end + 1
            continue
        if text.startswith(delim, i) and i > start and not text[i - 1].isspace():
            # A single star never closes inside a "**" run, unless the run ends the text ("*a**")
            if len(delim) == 1 and (text.startswith(delim * 2, i) or text[i - 1] == delim):
                run_end = i
                while run_end < n and text[run_end] == delim:
                    run_end += 1
                if run_end < n:
                    i = run_end
                    continue
            if delim[0] == "_" and i + len(delim) < n and text[i + len(delim)].isalnum():
                i += 1
                continue
            return i
        i += 1
    return None


def _strip_inner_marks(text: str) -> str:
    """Drop nested emphasis markers and code ticks; spans are one level deep."""
    return RE_INNER_MARKS.sub("", text)


def _append_text(spans: list[Span], text: str) -> None:
    if spans and isinstance(spans[-1], TextSpan):
        spans[-1] = TextSpan(text=spans[-1].text + text)
    else:
        spans.append(TextSpan(text=text))
