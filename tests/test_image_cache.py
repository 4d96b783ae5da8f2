"""
tests/test_image_cache.py — Tests for the asynchronous image cache

Loaders are injected so tests control exactly when a load finishes.
Run with: pytest tests/test_image_cache.py -v
"""

import sys
import threading
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from mdeck.dsl.errors import ImageLoadError
from mdeck.renderer.image_cache import CacheState, ImageCache, decode_image


class Gate:
    """Loader that blocks until released and counts its calls."""

    def __init__(self, shape=(10, 20, 4)):
        self.shape = shape
        self.started = threading.Event()
        self.release = threading.Event()
        self.calls = []

    def __call__(self, path):
        self.calls.append(path)
        self.started.set()
        if not self.release.wait(5):
            raise ImageLoadError("gate never opened", path=str(path))
        return np.zeros(self.shape, dtype=np.uint8)


def _instant(path):
    return np.zeros((10, 20, 4), dtype=np.uint8)


@pytest.fixture
def gate():
    return Gate()


@pytest.fixture
def gated_cache(gate, tmp_path):
    cache = ImageCache(base_dir=tmp_path, loader=gate)
    yield cache
    gate.release.set()
    cache.shutdown()


@pytest.fixture
def cache(tmp_path):
    cache = ImageCache(base_dir=tmp_path, loader=_instant)
    yield cache
    cache.shutdown()


class TestStates:
    def test_first_request_is_pending(self, gated_cache):
        entry = gated_cache.request("a.png", 0)
        assert entry.state is CacheState.PENDING
        assert gated_cache.pending_keys() == [entry.key]

    def test_loaded_after_load_completes(self, gated_cache, gate):
        gated_cache.request("a.png", 0)
        gate.release.set()
        assert gated_cache.wait_idle(timeout=5)
        entry = gated_cache.get("a.png")
        assert entry.state is CacheState.LOADED
        assert entry.size == (20, 10)
        assert entry.pixels.shape == (10, 20, 4)
        assert gated_cache.pending_keys() == []

    def test_get_never_starts_a_load(self, gated_cache, gate):
        assert gated_cache.get("a.png") is None
        assert gate.calls == []

    def test_keys_are_resolved_paths(self, cache, tmp_path):
        entry = cache.request("img/../a.png", 0)
        assert entry.key == str((tmp_path / "a.png").resolve())
        assert "a.png" in cache
        assert len(cache) == 1

    def test_path_resolved_once(self, cache, monkeypatch):
        calls = []
        real_resolve = Path.resolve

        def counting_resolve(self, *args, **kwargs):
            calls.append(self)
            return real_resolve(self, *args, **kwargs)

        monkeypatch.setattr(Path, "resolve", counting_resolve)
        for _ in range(5):
            cache.request("a.png", 0)
        cache.get("a.png")
        assert len(calls) == 1


class TestSingleFlight:
    def test_concurrent_requests_share_one_load(self, gated_cache, gate):
        first = gated_cache.request("a.png", 0)
        second = gated_cache.request("a.png", 1)
        third = gated_cache.request("./a.png", 2)
        assert first.key == second.key == third.key
        gate.release.set()
        assert gated_cache.wait_idle(timeout=5)
        assert len(gate.calls) == 1

    def test_different_keys_load_separately(self, gated_cache, gate):
        gated_cache.request("a.png", 0)
        gated_cache.request("b.png", 0)
        gate.release.set()
        assert gated_cache.wait_idle(timeout=5)
        assert len(gate.calls) == 2


class TestFailures:
    def test_failed_load_is_not_retried(self, tmp_path):
        calls = []

        def broken(path):
            calls.append(path)
            raise ImageLoadError("corrupt", path=str(path))

        with ImageCache(base_dir=tmp_path, loader=broken) as cache:
            cache.request("bad.png", 0)
            assert cache.wait_idle(timeout=5)
            entry = cache.request("bad.png", 0)
            assert entry.state is CacheState.FAILED
            assert entry.error == "corrupt"

            cache.on_navigate(40)
            entry = cache.request("bad.png", 40)
            assert entry.state is CacheState.FAILED
        assert len(calls) == 1

    def test_crashing_loader_marks_failed(self, tmp_path):
        def crash(path):
            raise RuntimeError("boom")

        with ImageCache(base_dir=tmp_path, loader=crash) as cache:
            cache.request("x.png", 0)
            assert cache.wait_idle(timeout=5)
            entry = cache.get("x.png")
        assert entry.state is CacheState.FAILED
        assert entry.error == "boom"

    def test_missing_file_fails(self, tmp_path):
        with ImageCache(base_dir=tmp_path) as cache:
            cache.request("nowhere.png", 0)
            assert cache.wait_idle(timeout=5)
            entry = cache.get("nowhere.png")
        assert entry.state is CacheState.FAILED
        assert "cannot load image" in entry.error


class TestDecode:
    def test_real_png(self, tmp_path):
        Image.new("RGB", (30, 20), color=(255, 0, 0)).save(tmp_path / "red.png")
        with ImageCache(base_dir=tmp_path) as cache:
            cache.request("red.png", 0)
            assert cache.wait_idle(timeout=5)
            entry = cache.get("red.png")
        assert entry.state is CacheState.LOADED
        assert entry.size == (30, 20)
        assert entry.pixels.shape == (20, 30, 4)
        assert tuple(entry.pixels[0, 0]) == (255, 0, 0, 255)

    def test_decode_rejects_non_image(self, tmp_path):
        path = tmp_path / "notes.png"
        path.write_text("not an image")
        with pytest.raises(ImageLoadError) as exc:
            decode_image(path)
        assert exc.value.path == str(path)


class TestEviction:
    def test_far_slides_evicted(self, cache):
        cache.request("a.png", 0)
        cache.request("b.png", 10)
        assert cache.wait_idle(timeout=5)
        assert cache.on_navigate(10) == 1
        assert "a.png" not in cache
        assert "b.png" in cache

    def test_window_is_inclusive(self, cache):
        cache.request("a.png", 0)
        assert cache.wait_idle(timeout=5)
        assert cache.on_navigate(2) == 0
        assert cache.on_navigate(3) == 1

    def test_shared_image_kept_while_any_owner_is_near(self, cache):
        cache.request("logo.png", 0)
        cache.request("logo.png", 9)
        assert cache.wait_idle(timeout=5)
        assert cache.on_navigate(9) == 0
        assert "logo.png" in cache

    def test_unowned_request_is_pinned(self, cache):
        cache.request("pinned.png")
        assert cache.wait_idle(timeout=5)
        assert cache.on_navigate(100) == 0
        assert "pinned.png" in cache

    def test_evicted_image_reloads_on_return(self, tmp_path):
        calls = []

        def loader(path):
            calls.append(path)
            return np.zeros((4, 4, 4), dtype=np.uint8)

        with ImageCache(base_dir=tmp_path, loader=loader) as cache:
            cache.request("a.png", 0)
            assert cache.wait_idle(timeout=5)
            cache.on_navigate(10)
            cache.request("a.png", 0)
            assert cache.wait_idle(timeout=5)
        assert len(calls) == 2


class TestStaleLoads:
    def test_load_finishing_after_eviction_is_discarded(self, gated_cache, gate):
        gated_cache.request("a.png", 0)
        assert gate.started.wait(5)
        gated_cache.on_navigate(10)
        gate.release.set()
        assert gated_cache.wait_idle(timeout=5)
        assert "a.png" not in gated_cache

    def test_rerequest_adopts_running_load(self, gated_cache, gate):
        gated_cache.request("a.png", 0)
        assert gate.started.wait(5)
        gated_cache.on_navigate(10)
        entry = gated_cache.request("a.png", 10)
        assert entry.state is CacheState.PENDING
        gate.release.set()
        assert gated_cache.wait_idle(timeout=5)
        assert gated_cache.get("a.png").state is CacheState.LOADED
        assert len(gate.calls) == 1


class TestNotifications:
    def test_on_loaded_called_with_key(self, tmp_path):
        seen = []
        done = threading.Event()

        def on_loaded(key):
            seen.append(key)
            done.set()

        with ImageCache(base_dir=tmp_path, loader=_instant, on_loaded=on_loaded) as cache:
            entry = cache.request("a.png", 0)
            assert done.wait(5)
        assert seen == [entry.key]

    def test_wait_idle_times_out(self, gated_cache, gate):
        gated_cache.request("a.png", 0)
        assert gated_cache.wait_idle(timeout=0.05) is False
        gate.release.set()
        assert gated_cache.wait_idle(timeout=5) is True

    def test_idle_cache_returns_immediately(self, cache):
        assert cache.wait_idle(timeout=0) is True
