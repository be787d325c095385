"""
view_cache.py

Per-map zoom/pan memory, so returning to a map restores the view the user
left it with.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional, Tuple

from geometry import (
    MAX_SCALE,
    MIN_SCALE,
    CanvasSize,
    ViewTransform,
    fit_to_container,
    zoom_about,
)

log = logging.getLogger(__name__)


class ViewTransformCache:
    """
    Map id -> ViewTransform.

    Args:
        min_scale: Lower zoom limit for the stepping helpers.
        max_scale: Upper zoom limit for the stepping helpers.
        step: Scale added or removed by ``zoom_in``/``zoom_out``.
    """

    def __init__(self, min_scale: float = MIN_SCALE, max_scale: float = MAX_SCALE, step: float = 0.5):
        self.min_scale = min_scale
        self.max_scale = max_scale
        self.step = step
        self._transforms: Dict[str, ViewTransform] = {}

    @classmethod
    def from_settings(cls, zoom_settings) -> "ViewTransformCache":
        return cls(
            min_scale=zoom_settings.min_scale,
            max_scale=zoom_settings.max_scale,
            step=zoom_settings.step,
        )

    def __contains__(self, map_id: str) -> bool:
        return map_id in self._transforms

    def __len__(self) -> int:
        return len(self._transforms)

    def get(self, map_id: str) -> Optional[ViewTransform]:
        return self._transforms.get(map_id)

    def store(self, map_id: str, transform: ViewTransform) -> None:
        self._transforms[map_id] = transform

    def forget(self, map_id: str) -> None:
        self._transforms.pop(map_id, None)

    def clear(self) -> None:
        self._transforms.clear()

    def prune(self, keep: Iterable[str]) -> None:
        """Forget every map not in ``keep`` (e.g. maps removed from the graph)."""
        keep = set(keep)
        for map_id in [m for m in self._transforms if m not in keep]:
            del self._transforms[map_id]

    def ensure_fit(self, map_id: str, canvas: CanvasSize,
                   container: Tuple[float, float]) -> ViewTransform:
        """Cached transform for ``map_id``, or a fresh contain-fit stored for next time."""
        cached = self._transforms.get(map_id)
        if cached is not None:
            return cached
        fit = fit_to_container(canvas, container[0], container[1])
        self._transforms[map_id] = fit
        log.debug("Fitted view for '%s': %s", map_id, fit)
        return fit

    # ---- stepping helpers ----

    def _step_to(self, map_id: str, new_scale: float, anchor: Tuple[float, float]) -> ViewTransform:
        current = self._transforms.get(map_id, ViewTransform())
        factor = new_scale / current.scale
        updated = zoom_about(current, factor, anchor, self.min_scale, self.max_scale)
        self._transforms[map_id] = updated
        return updated

    def zoom_in(self, map_id: str, anchor: Tuple[float, float] = (0.0, 0.0)) -> ViewTransform:
        current = self._transforms.get(map_id, ViewTransform())
        return self._step_to(map_id, current.scale + self.step, anchor)

    def zoom_out(self, map_id: str, anchor: Tuple[float, float] = (0.0, 0.0)) -> ViewTransform:
        current = self._transforms.get(map_id, ViewTransform())
        return self._step_to(map_id, max(self.min_scale, current.scale - self.step), anchor)

    def reset(self, map_id: str, canvas: CanvasSize, container: Tuple[float, float]) -> ViewTransform:
        """Drop any zoom/pan and fit again."""
        self.forget(map_id)
        return self.ensure_fit(map_id, canvas, container)
