"""
mdeck/renderer/syntax.py — Syntax coloring for code panels

Code is lexed with Pygments by its fence language; every token takes the
color the theme's Pygments style gives it. Unknown languages, and tokens
the style leaves uncolored, use the theme's plain code color.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

from pygments.lexer import Lexer
from pygments.lexers import TextLexer, get_lexer_by_name
from pygments.style import StyleMeta
from pygments.styles import get_style_by_name
from pygments.util import ClassNotFound

from .scene import ColorSpan
from .theme import Theme

logger = logging.getLogger(__name__)

FALLBACK_STYLE = "default"


def get_lexer(language: Optional[str]) -> Lexer:
    """Lexer for a fence language; plain text when there is none."""
    # Lexers must not trim or append newlines, or code lines would shift
    if language:
        try:
            return get_lexer_by_name(language, stripnl=False, ensurenl=False)
        except ClassNotFound:
            logger.debug("No lexer for %r, drawing code uncolored", language)
    return TextLexer(stripnl=False, ensurenl=False)


@lru_cache(maxsize=None)
def get_style(name: str) -> StyleMeta:
    try:
        return get_style_by_name(name)
    except ClassNotFound:
        logger.warning("Unknown Pygments style %r, using %s", name, FALLBACK_STYLE)
        return get_style_by_name(FALLBACK_STYLE)


def highlight_code(code: str, language: Optional[str], theme: Theme) -> list[ColorSpan]:
    """Colored runs covering `code` exactly; neighbouring tokens of one color merge."""
    style = get_style(theme.code_style)
    spans: list[ColorSpan] = []
    for token_type, value in get_lexer(language).get_tokens(code):
        if not value:
            continue
        while not style.styles_token(token_type) and token_type.parent is not None:
            token_type = token_type.parent
        color = (style.style_for_token(token_type)["color"] or theme.code_foreground).upper()
        if spans and spans[-1].color == color:
            spans[-1] = ColorSpan(spans[-1].text + value, color)
        else:
            spans.append(ColorSpan(value, color))
    return spans
