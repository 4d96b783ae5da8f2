"""
mdeck/renderer/theme.py — Color palettes and type sizes

Colors are 6-digit hex strings. Sizes are in 1920x1080 reference pixels;
the scene builder scales them to the output viewport.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class Theme(BaseModel):
    """Palette + typography for one presentation theme."""

    name: str = "light"
    background: str = "FFFFFF"
    foreground: str = "1A1A2E"
    heading_color: str = "16213E"
    accent: str = "0F3460"
    muted: str = "666666"
    code_background: str = "F5F5F5"
    code_foreground: str = "333333"
    header_font: str = "Arial"
    body_font: str = "Calibri"
    code_font: str = "Consolas"
    code_style: str = "default"  # Pygments style for code tokens
    h1_size: float = 96.0
    h2_size: float = 72.0
    h3_size: float = 52.0
    body_size: float = 44.0
    code_size: float = 30.0

    def heading_size(self, level: int) -> float:
        return {1: self.h1_size, 2: self.h2_size, 3: self.h3_size}.get(level, self.body_size)


LIGHT = Theme()

DARK = Theme(
    name="dark",
    background="1E1E1E",
    foreground="C8C8C8",
    heading_color="FFFFFF",
    accent="5294E2",
    muted="999999",
    code_background="2D2D2D",
    code_foreground="D4D4D4",
    code_style="monokai",
)

THEMES = {"light": LIGHT, "dark": DARK}


def get_theme(name: str | None) -> Theme:
    """Look up a theme by name, falling back to the light theme."""
    key = (name or "").strip().lower()
    if key in THEMES:
        return THEMES[key]
    if key:
        logger.warning("Unknown theme %r, using light", name)
    return LIGHT


def hex_to_rgb(hex_val: str) -> tuple[int, int, int]:
    hex_val = hex_val.lstrip("#")
    return int(hex_val[0:2], 16), int(hex_val[2:4], 16), int(hex_val[4:6], 16)
