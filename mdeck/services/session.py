"""
mdeck/services/session.py — Presentation session (navigation + export)

Owns everything that lives for one showing of a deck: the current slide
and reveal step, the running slide transition, the image cache, and the
annotation engine with its clear/quit state machine. A host window calls
frame() once per paint; nothing on that path blocks. export() drives the
same render path headlessly, one slide at a time, waiting for each
slide's images before handing the finished scene to a sink.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from mdeck.dsl.models import ImageBlock, Presentation, Slide
from mdeck.dsl.parser import load_presentation
from mdeck.renderer.image_cache import ImageCache
from mdeck.renderer.layouts import render
from mdeck.renderer.scene import Scene
from mdeck.renderer.text import count_reveal_steps
from mdeck.renderer.theme import Theme, get_theme
from mdeck.renderer.transition import (
    TRANSITION_DURATION,
    ActiveTransition,
    TransitionDirection,
    TransitionKind,
    composite,
)

from .annotations import AnnotationEngine, ExitState, PointerButton

logger = logging.getLogger(__name__)

SceneSink = Callable[[Slide, Scene], None]


@dataclass
class SessionConfig:
    """Configuration for a presentation session."""

    # Navigation
    initial_slide: int = 0
    reveal_steps: bool = True  # "+" list items appear one step at a time

    # Appearance
    theme: Optional[str] = None  # overrides deck and slide themes
    transitions: bool = True  # animate next/prev slide changes
    transition_duration: float = TRANSITION_DURATION

    # Images
    retention_radius: int = 2  # slides kept on each side of the current one
    image_workers: int = 2
    prefetch: bool = True  # start loading the next slide's images early
    image_timeout: float = 10.0  # export wait per slide, seconds

    # Annotations
    quit_window: float = 1.0

    # Export
    export_width: int = 1920
    export_height: int = 1080


class PresentationSession:
    """Navigation state over one Presentation."""

    def __init__(
        self,
        presentation: Presentation,
        base_dir: str | Path = ".",
        config: Optional[SessionConfig] = None,
        image_cache: Optional[ImageCache] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.presentation = presentation
        self.clock = clock or time.monotonic
        self.config = config or SessionConfig()
        self.cache = image_cache or ImageCache(
            base_dir,
            retention_radius=self.config.retention_radius,
            max_workers=self.config.image_workers,
        )
        self.annotations = AnnotationEngine(quit_window=self.config.quit_window)
        self.theme: Optional[Theme] = get_theme(self.config.theme) if self.config.theme else None
        self.index = 0
        self.reveal_step: Optional[int] = None
        self.active_transition: Optional[ActiveTransition] = None
        self.goto(self.config.initial_slide)

    @classmethod
    def from_file(cls, path: str | Path, config: Optional[SessionConfig] = None) -> "PresentationSession":
        """Parse a deck file; images resolve relative to its directory."""
        path = Path(path)
        return cls(load_presentation(path), base_dir=path.parent, config=config)

    # ── Navigation ───────────────────────────────────────────────

    @property
    def slide(self) -> Slide:
        return self.presentation.slides[self.index]

    @property
    def slide_count(self) -> int:
        return len(self.presentation.slides)

    @property
    def transition(self) -> str:
        return self.presentation.transition_for(self.index)

    def goto(self, index: int) -> bool:
        """Jump to a slide (clamped) without animating. Returns True if the slide changed."""
        index = max(0, min(index, self.slide_count - 1))
        changed = index != self.index
        self.index = index
        self.reveal_step = 0 if self._steps() else None
        self.active_transition = None
        self.annotations.other_input()
        self.cache.on_navigate(index)
        if self.config.prefetch and index + 1 < self.slide_count:
            self._prefetch(index + 1)
        logger.debug("Slide %d/%d", index + 1, self.slide_count)
        return changed

    def next(self) -> bool:
        """Reveal the next list step, or advance to the next slide."""
        if self.reveal_step is not None and self.reveal_step < self._steps():
            self.reveal_step += 1
            self.annotations.other_input()
            return True
        return self._move(self.index + 1, TransitionDirection.FORWARD)

    def prev(self) -> bool:
        """Go back one slide, shown fully revealed."""
        return self._move(self.index - 1, TransitionDirection.BACKWARD)

    def _move(self, index: int, direction: TransitionDirection) -> bool:
        old_index, old_reveal = self.index, self.reveal_step
        changed = self.goto(index)
        if direction is TransitionDirection.BACKWARD and self.reveal_step is not None:
            self.reveal_step = self._steps()
        if changed:
            self._begin_transition(old_index, old_reveal, direction)
        return changed

    def _begin_transition(self, old_index: int, old_reveal: Optional[int], direction: TransitionDirection):
        kind = TransitionKind.from_name(self.transition)
        if not self.config.transitions or kind is TransitionKind.NONE:
            return
        self.active_transition = ActiveTransition(
            from_index=old_index,
            to_index=self.index,
            kind=kind,
            direction=direction,
            start=self.clock(),
            duration=self.config.transition_duration,
            from_reveal=old_reveal,
        )

    def _steps(self) -> int:
        if not self.config.reveal_steps:
            return 0
        return count_reveal_steps(self.slide.blocks)

    def _prefetch(self, index: int):
        for block in self.presentation.slides[index].blocks:
            if isinstance(block, ImageBlock):
                self.cache.request(block.path, index)

    # ── Frames ───────────────────────────────────────────────────

    def frame(self, width: float, height: float) -> Scene:
        """Scene for the current slide, mid-transition when one is running.

        Never blocks on image loads.
        """
        self.annotations.tick()
        self.annotations.set_viewport(width, height)
        scene = self._render(self.index, width, height, self.reveal_step)

        transition = self.active_transition
        if transition is None:
            return scene
        now = self.clock()
        if transition.is_complete(now):
            self.active_transition = None
            return scene
        old = self._render(transition.from_index, width, height, transition.from_reveal)
        return composite(old, scene, transition, now)

    @property
    def in_transition(self) -> bool:
        return self.active_transition is not None

    def _render(self, index: int, width: float, height: float, reveal_step: Optional[int]) -> Scene:
        return render(
            self.presentation,
            index,
            width,
            height,
            theme=self.theme,
            image_cache=self.cache,
            reveal_step=reveal_step,
        )

    # ── Input ────────────────────────────────────────────────────

    def pointer_down(self, x: float, y: float, button: PointerButton = PointerButton.PRIMARY):
        return self.annotations.pointer_down(self.slide.annotations, x, y, button)

    def pointer_move(self, x: float, y: float):
        self.annotations.pointer_move(x, y)

    def pointer_up(self, x: float, y: float):
        return self.annotations.pointer_up(x, y)

    def clear_trigger(self, now: Optional[float] = None) -> ExitState:
        return self.annotations.clear_trigger(self.slide.annotations, now)

    @property
    def quit_requested(self) -> bool:
        return self.annotations.quit_requested

    # ── Export ───────────────────────────────────────────────────

    def export(
        self,
        sink: SceneSink,
        width: Optional[float] = None,
        height: Optional[float] = None,
        timeout: Optional[float] = None,
    ) -> int:
        """Render every slide in order and hand each finished scene to `sink`.

        Slides are strictly sequential: a slide is re-rendered until its
        images have settled (or the timeout passes) before the next one
        starts. Returns the number of slides exported.
        """
        width = width or self.config.export_width
        height = height or self.config.export_height
        timeout = self.config.image_timeout if timeout is None else timeout
        current = self.index

        for index, slide in enumerate(self.presentation.slides):
            self.cache.on_navigate(index)
            scene = render(self.presentation, index, width, height, theme=self.theme, image_cache=self.cache)
            while scene.pending_images:
                if not self.cache.wait_idle(timeout):
                    logger.warning(
                        "Slide %d: %d images still loading after %.1fs, exporting placeholders",
                        index + 1, len(scene.pending_images), timeout,
                    )
                    break
                scene = render(self.presentation, index, width, height, theme=self.theme, image_cache=self.cache)
            sink(slide, scene)

        self.cache.on_navigate(current)
        logger.info("Exported %d slides at %dx%d", self.slide_count, width, height)
        return self.slide_count

    def close(self):
        self.cache.shutdown()

    def __enter__(self) -> "PresentationSession":
        return self

    def __exit__(self, *exc):
        self.close()
