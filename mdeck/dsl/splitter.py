"""
mdeck/dsl/splitter.py — Split a document body into raw slide segments

A line made only of dashes (three or more) outside a fenced code block
ends the current slide. Leading `@key: value` lines of a segment are that
slide's directives and apply to it alone.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

RE_SEPARATOR = re.compile(r"^-{3,}$")
RE_DIRECTIVE = re.compile(r"^@([A-Za-z][\w-]*)\s*:\s*(.*)$")
RE_FENCE = re.compile(r"^(`{3,}|~{3,})")


@dataclass
class SplitOptions:
    """Extra slide-break rules, all off by default."""

    heading_breaks: bool = False  # "# Heading" after content starts a new slide
    blank_line_breaks: bool = False  # three or more blank lines end a slide


@dataclass
class RawSlide:
    """One slide segment before block parsing."""

    body: str
    line_offset: int  # 0-based document line where `body` starts
    directives: dict[str, str] = field(default_factory=dict)


def split(body: str, line_offset: int = 0, options: SplitOptions | None = None) -> list[RawSlide]:
    """Split the body into ordered slide segments and peel off their directives."""
    options = options or SplitOptions()
    segments: list[tuple[int, list[str]]] = []
    current: list[str] = []
    current_start = line_offset
    has_content = False
    blank_run = 0
    fence: str | None = None

    def close(next_start: int):
        nonlocal current, current_start, has_content
        if any(line.strip() for line in current):
            segments.append((current_start, current))
        current = []
        current_start = next_start
        has_content = False

    for i, line in enumerate(body.split("\n")):
        lineno = line_offset + i
        stripped = line.strip()

        if fence is not None:
            if stripped.startswith(fence) and not stripped.lstrip(fence[0]).strip():
                fence = None
            current.append(line)
            continue

        fm = RE_FENCE.match(stripped)
        if fm:
            fence = fm.group(1)
        elif RE_SEPARATOR.match(stripped):
            close(lineno + 1)
            blank_run = 0
            continue
        elif options.heading_breaks and line.startswith("# ") and has_content:
            close(lineno)

        if not stripped:
            blank_run += 1
            if options.blank_line_breaks and blank_run == 3:
                close(lineno + 1)
                continue
        else:
            blank_run = 0
            if not RE_DIRECTIVE.match(stripped):
                has_content = True

        if not current:
            current_start = lineno
        current.append(line)

    close(line_offset + len(body.split("\n")))
    return [_peel_directives(start, seg) for start, seg in segments]


def _peel_directives(start: int, lines: list[str]) -> RawSlide:
    directives: dict[str, str] = {}
    i = 0
    while i < len(lines):
        stripped = lines[i].strip()
        if not stripped:
            i += 1
            continue
        m = RE_DIRECTIVE.match(stripped)
        if not m:
            break
        directives[m.group(1).lower()] = m.group(2).strip().strip("\"'")
        i += 1
    return RawSlide(body="\n".join(lines[i:]), line_offset=start + i, directives=directives)
