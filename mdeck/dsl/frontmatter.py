"""
mdeck/dsl/frontmatter.py — Leading metadata block

    ---
    title: "Q3 Platform Update"
    author: Nitin
    @theme: light
    @footer: Internal
    ---

A malformed line inside the block is reported as a ParseError and skipped;
the rest of the block still applies.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from .errors import ParseError
from .models import PresentationMeta

logger = logging.getLogger(__name__)

DELIMITER = "---"

RE_KEY_VALUE = re.compile(r"^(@?[A-Za-z][\w-]*)\s*:\s*(.*)$")

_FM_MAP = {
    "title": "title",
    "author": "author",
    "date": "date",
    "@theme": "theme",
    "@transition": "transition",
    "@footer": "footer",
}


@dataclass
class FrontmatterResult:
    """Presentation settings plus the document text left after the block."""

    meta: PresentationMeta
    body: str
    body_line_offset: int = 0  # lines consumed before the body starts
    errors: list[ParseError] = field(default_factory=list)


def normalize(text: str) -> str:
    """Strip a BOM and normalize line endings."""
    return text.lstrip("\ufeff").replace("\r\n", "\n").replace("\r", "\n")


def unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    return value


def extract(text: str) -> FrontmatterResult:
    """Split a document into frontmatter settings and the remaining body."""
    text = normalize(text)
    lines = text.split("\n")

    if not lines or lines[0].strip() != DELIMITER:
        return FrontmatterResult(meta=PresentationMeta(), body=text)

    closing = None
    for i in range(1, len(lines)):
        if lines[i].strip() == DELIMITER:
            closing = i
            break
    if closing is None:
        # Unterminated: treat the leading --- as an ordinary slide separator
        return FrontmatterResult(meta=PresentationMeta(), body=text)

    meta_kwargs: dict = {}
    metadata: dict[str, str] = {}
    errors: list[ParseError] = []

    for i in range(1, closing):
        line = lines[i].strip()
        if not line or line.startswith("#"):
            continue
        m = RE_KEY_VALUE.match(line)
        if not m:
            err = ParseError(f"expected 'key: value', got {line!r}", line=i + 1)
            logger.warning("Frontmatter %s", err)
            errors.append(err)
            continue

        key, val = m.group(1), unquote(m.group(2))
        if key in _FM_MAP:
            if val:
                meta_kwargs[_FM_MAP[key]] = val
        else:
            metadata[key] = val

    body = "\n".join(lines[closing + 1 :])
    meta = PresentationMeta(metadata=metadata, **meta_kwargs)
    return FrontmatterResult(meta=meta, body=body, body_line_offset=closing + 1, errors=errors)
