"""
mdeck/services/annotations.py — Live annotation capture and clear/quit logic

Primary-button drags stream points into a pen stroke; secondary-button
drags record a start and a live end point for an arrow. Strokes land on
the current slide's AnnotationLayer as soon as the drag starts, so a
frame drawn mid-drag shows the preview.

The clear trigger (Esc / Ctrl+C) is an explicit state machine per
session:

  Idle ── trigger, layer has strokes ──→ clear layer, Idle
  Idle ── trigger, layer empty ────────→ QuitPending
  QuitPending ── trigger within window ─→ Quit
  QuitPending ── timeout / other input ─→ Idle
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Callable, Optional

from mdeck.dsl.models import AnnotationLayer, Stroke, StrokeKind
from mdeck.renderer.overlay import draw_annotations
from mdeck.renderer.scene import REFERENCE_HEIGHT, REFERENCE_WIDTH, SceneBuilder, compute_scale

logger = logging.getLogger(__name__)

DEFAULT_QUIT_WINDOW = 1.0  # seconds between the two triggers that quit


class ExitState(str, Enum):
    IDLE = "idle"
    QUIT_PENDING = "quit_pending"
    QUIT = "quit"


class PointerButton(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"


class ExitStateMachine:
    def __init__(self, quit_window: float = DEFAULT_QUIT_WINDOW):
        self.quit_window = quit_window
        self.state = ExitState.IDLE
        self.pending_since: Optional[float] = None

    @property
    def quit_requested(self) -> bool:
        return self.state is ExitState.QUIT

    def on_clear_trigger(self, layer: AnnotationLayer, now: float) -> ExitState:
        if self.state is ExitState.QUIT:
            return self.state
        self.tick(now)

        if self.state is ExitState.QUIT_PENDING:
            self._enter(ExitState.QUIT)
            return self.state

        if not layer.is_empty:
            count = len(layer.strokes)
            layer.clear()
            logger.debug("Cleared %d annotation strokes", count)
            return self.state

        self._enter(ExitState.QUIT_PENDING, now)
        return self.state

    def on_other_input(self) -> ExitState:
        if self.state is ExitState.QUIT_PENDING:
            self._enter(ExitState.IDLE)
        return self.state

    def tick(self, now: float) -> ExitState:
        """Expire a pending quit whose window has passed."""
        if (
            self.state is ExitState.QUIT_PENDING
            and self.pending_since is not None
            and now - self.pending_since > self.quit_window
        ):
            self._enter(ExitState.IDLE)
        return self.state

    def _enter(self, state: ExitState, now: Optional[float] = None):
        logger.debug("Exit state %s -> %s", self.state.value, state.value)
        self.state = state
        self.pending_since = now if state is ExitState.QUIT_PENDING else None


class AnnotationEngine:
    """Turns pointer input in viewport pixels into strokes in reference space."""

    def __init__(
        self,
        quit_window: float = DEFAULT_QUIT_WINDOW,
        color: str = "FF3B30",
        width: float = 4.0,
        viewport: tuple[float, float] = (REFERENCE_WIDTH, REFERENCE_HEIGHT),
        clock: Callable[[], float] = time.monotonic,
    ):
        self.exit = ExitStateMachine(quit_window)
        self.color = color
        self.width = width
        self.clock = clock
        self._active: Optional[tuple[PointerButton, Stroke]] = None
        self.set_viewport(*viewport)

    def set_viewport(self, width: float, height: float):
        self.scale = compute_scale(width, height)
        self.offset_x = (width - REFERENCE_WIDTH * self.scale) / 2
        self.offset_y = (height - REFERENCE_HEIGHT * self.scale) / 2

    def to_reference(self, x: float, y: float) -> tuple[float, float]:
        return ((x - self.offset_x) / self.scale, (y - self.offset_y) / self.scale)

    @property
    def drawing(self) -> bool:
        return self._active is not None

    # Pointer input

    def pointer_down(self, layer: AnnotationLayer, x: float, y: float, button: PointerButton) -> Stroke:
        self.exit.on_other_input()
        point = self.to_reference(x, y)
        if button is PointerButton.SECONDARY:
            stroke = Stroke(kind=StrokeKind.ARROW, points=[point, point], color=self.color, width=self.width)
        else:
            stroke = Stroke(kind=StrokeKind.PEN, points=[point], color=self.color, width=self.width)
        layer.add(stroke)
        self._active = (button, stroke)
        return stroke

    def pointer_move(self, x: float, y: float):
        if self._active is None:
            return
        _, stroke = self._active
        point = self.to_reference(x, y)
        if stroke.kind is StrokeKind.ARROW:
            stroke.points[-1] = point
        elif stroke.points[-1] != point:
            stroke.points.append(point)

    def pointer_up(self, x: float, y: float) -> Optional[Stroke]:
        if self._active is None:
            return None
        self.pointer_move(x, y)
        _, stroke = self._active
        self._active = None
        return stroke

    # Keyboard

    def clear_trigger(self, layer: AnnotationLayer, now: Optional[float] = None) -> ExitState:
        self._active = None
        return self.exit.on_clear_trigger(layer, self.clock() if now is None else now)

    def other_input(self) -> ExitState:
        return self.exit.on_other_input()

    def tick(self, now: Optional[float] = None) -> ExitState:
        return self.exit.tick(self.clock() if now is None else now)

    @property
    def quit_requested(self) -> bool:
        return self.exit.quit_requested

    def draw(self, builder: SceneBuilder, layer: AnnotationLayer):
        draw_annotations(builder, layer)
