"""Tests for view_cache.py: per-map zoom/pan memory."""
from __future__ import annotations

import pytest

from geometry import CanvasSize, ViewTransform
from settings import ZoomSettings
from view_cache import ViewTransformCache

CANVAS = CanvasSize(3840, 2160)
CONTAINER = (1920, 1080)


@pytest.fixture()
def cache():
    return ViewTransformCache()


class TestEnsureFit:
    def test_first_visit_fits(self, cache):
        t = cache.ensure_fit("A", CANVAS, CONTAINER)
        assert t == ViewTransform(0.5, 0, 0)
        assert "A" in cache

    def test_returning_restores_cached(self, cache):
        cache.store("A", ViewTransform(3, 40, 50))
        assert cache.ensure_fit("A", CANVAS, CONTAINER) == ViewTransform(3, 40, 50)

    def test_per_map(self, cache):
        cache.store("A", ViewTransform(3, 40, 50))
        assert cache.ensure_fit("B", CANVAS, CONTAINER).scale == pytest.approx(0.5)
        assert len(cache) == 2


class TestStepping:
    def test_zoom_in_adds_step(self, cache):
        cache.store("A", ViewTransform(1.0))
        assert cache.zoom_in("A").scale == pytest.approx(1.5)

    def test_zoom_out_respects_min(self, cache):
        cache.store("A", ViewTransform(0.5))
        assert cache.zoom_out("A").scale == pytest.approx(0.3)
        assert cache.zoom_out("A").scale == pytest.approx(0.3)

    def test_zoom_in_respects_max(self, cache):
        cache.store("A", ViewTransform(8.8))
        assert cache.zoom_in("A").scale == pytest.approx(9.0)

    def test_zoom_keeps_anchor(self, cache):
        cache.store("A", ViewTransform(1.0, 0, 0))
        t = cache.zoom_in("A", anchor=(200, 100))
        assert 200 * t.scale + t.pan_x == pytest.approx(200)
        assert 100 * t.scale + t.pan_y == pytest.approx(100)

    def test_uncached_map_starts_at_identity(self, cache):
        assert cache.zoom_in("new").scale == pytest.approx(1.5)

    def test_reset_refits(self, cache):
        cache.store("A", ViewTransform(4, 10, 10))
        assert cache.reset("A", CANVAS, CONTAINER) == ViewTransform(0.5, 0, 0)


class TestMaintenance:
    def test_prune(self, cache):
        for map_id in ("A", "B", "C"):
            cache.store(map_id, ViewTransform())
        cache.prune(["A", "C"])
        assert "B" not in cache
        assert len(cache) == 2

    def test_forget_and_clear(self, cache):
        cache.store("A", ViewTransform())
        cache.forget("A")
        cache.forget("missing")
        assert "A" not in cache
        cache.store("B", ViewTransform())
        cache.clear()
        assert len(cache) == 0

    def test_from_settings(self):
        cache = ViewTransformCache.from_settings(ZoomSettings(min_scale=0.5, max_scale=4.0, step=1.0))
        cache.store("A", ViewTransform(3.5))
        assert cache.zoom_in("A").scale == pytest.approx(4.0)
        assert cache.step == 1.0
