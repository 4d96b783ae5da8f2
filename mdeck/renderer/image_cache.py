"""
mdeck/renderer/image_cache.py — Asynchronous bitmap cache

Images are decoded on a small worker pool so rendering never blocks on
disk. Each key (the resolved absolute path) moves through:

  (absent) → PENDING → LOADED
                     ↘ FAILED   (remembered, never retried)

At most one load per key is in flight. Entries owned only by slides
outside the retention window around the current slide are evicted on
navigation; a load that finishes for an evicted entry is discarded.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

import numpy as np
from PIL import Image

from mdeck.dsl.errors import ImageLoadError

logger = logging.getLogger(__name__)

Loader = Callable[[Path], np.ndarray]


class CacheState(str, Enum):
    PENDING = "pending"
    LOADED = "loaded"
    FAILED = "failed"


@dataclass(frozen=True)
class CacheEntry:
    key: str
    state: CacheState
    size: tuple[int, int] = (0, 0)  # width, height in pixels
    pixels: Optional[np.ndarray] = None  # H x W x 4, uint8 RGBA
    error: Optional[str] = None


def decode_image(path: Path) -> np.ndarray:
    """Decode any format Pillow reads into an RGBA pixel array."""
    try:
        with Image.open(path) as img:
            return np.asarray(img.convert("RGBA"))
    except (OSError, ValueError) as exc:
        raise ImageLoadError(f"cannot load image: {exc}", path=str(path)) from exc


class ImageCache:
    """Per-deck bitmap cache keyed by resolved path."""

    def __init__(
        self,
        base_dir: str | Path = ".",
        retention_radius: int = 2,
        loader: Optional[Loader] = None,
        max_workers: int = 2,
        on_loaded: Optional[Callable[[str], None]] = None,
    ):
        self.base_dir = Path(base_dir)
        self.retention_radius = retention_radius
        self.on_loaded = on_loaded  # redraw hook, called from a worker thread
        self._loader = loader or decode_image
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="mdeck-image")
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._entries: dict[str, CacheEntry] = {}
        self._owners: dict[str, set[int]] = {}
        self._failures: dict[str, str] = {}
        self._inflight: dict[str, tuple[Future, int]] = {}
        self._generation: dict[str, int] = {}
        self._next_generation = 0
        self._resolved: dict[str, str] = {}
        self.current_index = 0

    # ── Public API ───────────────────────────────────────────────

    def resolve(self, path: str) -> str:
        """Cache key for `path`; the filesystem lookup happens once per raw path."""
        key = self._resolved.get(path)
        if key is None:
            p = Path(path).expanduser()
            if not p.is_absolute():
                p = self.base_dir / p
            key = self._resolved[path] = str(p.resolve())
        return key

    def request(self, path: str, slide_index: Optional[int] = None) -> CacheEntry:
        """Current entry for `path`, starting a load if there is none.

        A request with no slide index pins the entry against eviction.
        """
        key = self.resolve(path)
        with self._lock:
            if key in self._failures:
                return CacheEntry(key, CacheState.FAILED, error=self._failures[key])

            self._owners.setdefault(key, set()).add(-1 if slide_index is None else slide_index)
            entry = self._entries.get(key)
            if entry is not None:
                return entry

            entry = CacheEntry(key, CacheState.PENDING)
            self._entries[key] = entry
            if key in self._inflight:
                # An evicted load is still running; adopt it instead of starting another.
                self._generation[key] = self._inflight[key][1]
                return entry

            self._next_generation += 1
            generation = self._next_generation
            self._generation[key] = generation
            future = self._executor.submit(self._load, key, generation)
            self._inflight[key] = (future, generation)
            logger.debug("Loading image %s", key)
            return entry

    def get(self, path: str) -> Optional[CacheEntry]:
        key = self.resolve(path)
        with self._lock:
            if key in self._failures:
                return CacheEntry(key, CacheState.FAILED, error=self._failures[key])
            return self._entries.get(key)

    def on_navigate(self, index: int) -> int:
        """Evict entries no slide within the retention window uses. Returns the count."""
        evicted = 0
        with self._lock:
            self.current_index = index
            for key, owners in list(self._owners.items()):
                if -1 in owners or any(abs(o - index) <= self.retention_radius for o in owners):
                    continue
                self._owners.pop(key)
                self._entries.pop(key, None)
                self._generation.pop(key, None)
                inflight = self._inflight.get(key)
                if inflight is not None and inflight[0].cancel():
                    self._inflight.pop(key)
                evicted += 1
            if not self._inflight:
                self._idle.notify_all()
        if evicted:
            logger.debug("Evicted %d images outside slide %d ± %d", evicted, index, self.retention_radius)
        return evicted

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until no load is in flight. False on timeout."""
        with self._idle:
            return self._idle.wait_for(lambda: not self._inflight, timeout)

    def pending_keys(self) -> list[str]:
        with self._lock:
            return [k for k, e in self._entries.items() if e.state is CacheState.PENDING]

    def shutdown(self, wait: bool = True):
        self._executor.shutdown(wait=wait, cancel_futures=True)
        with self._lock:
            self._inflight.clear()
            self._idle.notify_all()

    def __enter__(self) -> "ImageCache":
        return self

    def __exit__(self, *exc):
        self.shutdown()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, path: str) -> bool:
        key = self.resolve(path)
        with self._lock:
            return key in self._entries

    # ── Worker ───────────────────────────────────────────────────

    def _load(self, key: str, generation: int):
        pixels = None
        error = None
        try:
            pixels = self._loader(Path(key))
        except ImageLoadError as exc:
            error = exc.message
        except Exception as exc:
            logger.exception("Image loader crashed on %s", key)
            error = str(exc) or exc.__class__.__name__

        with self._lock:
            inflight = self._inflight.get(key)
            if inflight is not None and inflight[1] == generation:
                self._inflight.pop(key)
            current = self._generation.get(key) == generation
            if current:
                if error is not None:
                    self._failures[key] = error
                    self._entries[key] = CacheEntry(key, CacheState.FAILED, error=error)
                    logger.warning("Image %s failed to load: %s", key, error)
                else:
                    height, width = pixels.shape[:2]
                    self._entries[key] = CacheEntry(
                        key, CacheState.LOADED, size=(int(width), int(height)), pixels=pixels
                    )
                    logger.debug("Loaded image %s (%dx%d)", key, width, height)
            else:
                logger.debug("Discarding stale load for %s", key)
            if not self._inflight:
                self._idle.notify_all()

        if current and self.on_loaded is not None:
            self.on_loaded(key)
