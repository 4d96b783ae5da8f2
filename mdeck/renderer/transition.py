"""
mdeck/renderer/transition.py — Animated slide changes

A transition moves from the scene being left to the scene being entered
over TRANSITION_DURATION seconds, with ease-in-out progress:

  fade     the old slide fades out while the new one fades in
  slide    both slides travel horizontally; forward pushes to the left
  spatial  slides sit on a 4-wide grid by index and travel along the
           grid direction from the old slide to the new one
  none     the new slide shows at once

Nothing here reads a clock: callers pass `now`, so frames are reproducible.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from .scene import (
    ImagePrim,
    LinePrim,
    PolygonPrim,
    PolylinePrim,
    Primitive,
    RectPrim,
    Scene,
)

logger = logging.getLogger(__name__)

TRANSITION_DURATION = 0.3  # seconds
SPATIAL_COLUMNS = 4


class TransitionKind(str, Enum):
    FADE = "fade"
    SLIDE = "slide"
    SPATIAL = "spatial"
    NONE = "none"

    @classmethod
    def from_name(cls, name: Optional[str]) -> "TransitionKind":
        """Transition for a `@transition` value; unknown names slide."""
        key = (name or "").strip().lower()
        for kind in cls:
            if kind.value == key:
                return kind
        if key:
            logger.debug("Unknown transition %r, using slide", name)
        return cls.SLIDE


class TransitionDirection(str, Enum):
    FORWARD = "forward"
    BACKWARD = "backward"


def ease_in_out(t: float) -> float:
    """Quadratic ease: slow start, slow finish, 0 → 0 and 1 → 1."""
    if t < 0.5:
        return 2 * t * t
    return 1 - (-2 * t + 2) ** 2 / 2


@dataclass(frozen=True)
class Placement:
    """Where one of the two slides is drawn: output-pixel offset and opacity."""

    dx: float = 0.0
    dy: float = 0.0
    opacity: float = 1.0


@dataclass(frozen=True)
class ActiveTransition:
    from_index: int
    to_index: int
    kind: TransitionKind
    direction: TransitionDirection
    start: float
    duration: float = TRANSITION_DURATION
    from_reveal: Optional[int] = None  # reveal step the old slide was left at

    def elapsed(self, now: float) -> float:
        return max(now - self.start, 0.0)

    def is_complete(self, now: float) -> bool:
        return self.elapsed(now) >= self.duration

    def progress(self, now: float) -> float:
        if self.duration <= 0:
            return 1.0
        return ease_in_out(min(self.elapsed(now) / self.duration, 1.0))

    def spatial_direction(self, cols: int = SPATIAL_COLUMNS) -> tuple[int, int]:
        """Unit grid step (dx, dy), each -1, 0 or 1, from the old slide to the new."""
        from_col, from_row = self.from_index % cols, self.from_index // cols
        to_col, to_row = self.to_index % cols, self.to_index // cols
        return _sign(to_col - from_col), _sign(to_row - from_row)

    def placements(self, now: float, width: float, height: float) -> tuple[Optional[Placement], Placement]:
        """(old, new) placements at `now`; old is None when it is not drawn."""
        p = self.progress(now)

        if self.kind is TransitionKind.FADE:
            return Placement(opacity=1 - p), Placement(opacity=p)

        if self.kind is TransitionKind.SLIDE:
            sign = -1.0 if self.direction is TransitionDirection.FORWARD else 1.0
            from_dx = sign * p * width
            return Placement(dx=from_dx), Placement(dx=from_dx - sign * width)

        if self.kind is TransitionKind.SPATIAL:
            dx, dy = self.spatial_direction()
            return (
                Placement(dx=-dx * p * width, dy=-dy * p * height),
                Placement(dx=dx * (1 - p) * width, dy=dy * (1 - p) * height),
            )

        return None, Placement()


def _sign(v: int) -> int:
    return (v > 0) - (v < 0)


# ── Compositing ───────────────────────────────────────────────────


def translate(prim: Primitive, dx: float, dy: float, opacity: float = 1.0) -> Primitive:
    """Copy of `prim` moved by (dx, dy) output pixels, its opacity scaled."""
    alpha = prim.opacity * opacity
    if isinstance(prim, LinePrim):
        return replace(prim, x1=prim.x1 + dx, y1=prim.y1 + dy, x2=prim.x2 + dx, y2=prim.y2 + dy, opacity=alpha)
    if isinstance(prim, (PolygonPrim, PolylinePrim)):
        return replace(prim, points=tuple((x + dx, y + dy) for x, y in prim.points), opacity=alpha)
    if isinstance(prim, ImagePrim) and prim.clip is not None:
        cx, cy, cw, ch = prim.clip
        return replace(prim, x=prim.x + dx, y=prim.y + dy, clip=(cx + dx, cy + dy, cw, ch), opacity=alpha)
    return replace(prim, x=prim.x + dx, y=prim.y + dy, opacity=alpha)


def composite(old: Scene, new: Scene, transition: ActiveTransition, now: float) -> Scene:
    """One frame of `transition`: both scenes, each behind its own background."""
    old_place, new_place = transition.placements(now, new.width, new.height)
    primitives: list[Primitive] = []
    for scene, place in ((old, old_place), (new, new_place)):
        if place is None or place.opacity <= 0:
            continue
        primitives.append(
            RectPrim(place.dx, place.dy, scene.width, scene.height, fill=scene.background, opacity=place.opacity)
        )
        primitives.extend(translate(p, place.dx, place.dy, place.opacity) for p in scene.primitives)

    return Scene(
        width=new.width,
        height=new.height,
        scale=new.scale,
        offset_x=new.offset_x,
        offset_y=new.offset_y,
        background=new.background,
        layout=new.layout,
        primitives=primitives,
        pending_images=list(dict.fromkeys(old.pending_images + new.pending_images)),
    )
