"""
canvas/view.py

QGraphicsView for the map canvas: wheel zoom about the cursor and
drag-to-draw of new hotspots.
"""

from __future__ import annotations

from typing import Callable, Optional

from PyQt6.QtCore import Qt, QPointF, QRectF
from PyQt6.QtGui import QPainter, QTransform
from PyQt6.QtWidgets import QGraphicsView

from canvas.scene import MapScene
from geometry import (
    DrawGesture,
    ScreenRect,
    ViewTransform,
    fit_to_container,
    screen_to_canvas,
    zoom_about,
)
from settings import AppSettings


class MapView(QGraphicsView):
    """
    Graphics view reporting its zoom/pan as a ``ViewTransform``.

    The transform maps canvas pixels to viewport pixels:
    ``screen = canvas * scale + pan``.

    Args:
        scene: The map scene.
        on_rect_drawn: Called with the drawn viewport rect and the transform
            it was drawn under.
        on_transform_changed: Called after every zoom or pan.
        settings: Zoom limits and drag threshold; defaults when omitted.
    """

    def __init__(self, scene: MapScene,
                 on_rect_drawn: Optional[Callable[[ScreenRect, ViewTransform], None]] = None,
                 on_transform_changed: Optional[Callable[[ViewTransform], None]] = None,
                 settings: Optional[AppSettings] = None,
                 parent=None):
        super().__init__(scene, parent)
        self.on_rect_drawn = on_rect_drawn
        self.on_transform_changed = on_transform_changed
        self.settings = settings or AppSettings()
        self.setRenderHint(QPainter.RenderHint.Antialiasing, True)
        self.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform, True)
        self.setDragMode(QGraphicsView.DragMode.ScrollHandDrag)
        self.setTransformationAnchor(QGraphicsView.ViewportAnchor.NoAnchor)
        self.setResizeAnchor(QGraphicsView.ViewportAnchor.NoAnchor)
        self.setMouseTracking(True)

        # Minimum drag from settings. Default: 1.0 pixel
        self._gesture = DrawGesture(self.settings.canvas.min_drag_pixels)
        self._drawing_enabled = False

    def map_scene(self) -> MapScene:
        return self.scene()

    # ---- transform ----

    def view_transform(self) -> ViewTransform:
        origin = self.mapFromScene(QPointF(0, 0))
        scale = self.transform().m11()
        return ViewTransform(scale=scale if scale > 0 else 1.0, pan_x=float(origin.x()), pan_y=float(origin.y()))

    def apply_view_transform(self, transform: ViewTransform) -> None:
        """Show the canvas so that ``transform`` holds."""
        self.setTransform(QTransform.fromScale(transform.scale, transform.scale))
        vp = self.viewport().rect()
        center = QPointF(
            (vp.width() / 2.0 - transform.pan_x) / transform.scale,
            (vp.height() / 2.0 - transform.pan_y) / transform.scale,
        )
        self.centerOn(center)

    def _notify_transform(self):
        if self.on_transform_changed:
            self.on_transform_changed(self.view_transform())

    def zoom_fit(self) -> ViewTransform:
        """Contain-fit the canonical canvas in the viewport."""
        vp = self.viewport().rect()
        fit = fit_to_container(self.map_scene().canvas, max(1, vp.width()), max(1, vp.height()))
        self.apply_view_transform(fit)
        self._notify_transform()
        return fit

    def wheelEvent(self, event):
        """Zoom with mouse wheel."""
        delta = event.angleDelta().y()
        if delta == 0:
            return
        zoom = self.settings.zoom
        # Zoom factor from settings. Default: 1.15 (15% per scroll step)
        factor = zoom.wheel_factor if delta > 0 else 1 / zoom.wheel_factor
        pos = event.position()
        updated = zoom_about(self.view_transform(), factor, (pos.x(), pos.y()), zoom.min_scale, zoom.max_scale)
        self.apply_view_transform(updated)
        self._notify_transform()
        event.accept()

    def scrollContentsBy(self, dx: int, dy: int):
        super().scrollContentsBy(dx, dy)
        self._notify_transform()

    # ---- drawing ----

    def set_drawing_enabled(self, enabled: bool) -> None:
        """Enable drag-to-draw; panning by drag is disabled meanwhile."""
        self._drawing_enabled = enabled
        self._gesture.reset()
        self.map_scene().hide_preview()
        if enabled:
            self.setDragMode(QGraphicsView.DragMode.NoDrag)
            self.viewport().setCursor(Qt.CursorShape.CrossCursor)
        else:
            self.setDragMode(QGraphicsView.DragMode.ScrollHandDrag)
            self.viewport().unsetCursor()

    def _preview(self, rect: ScreenRect):
        x, y, w, h = screen_to_canvas(rect, self.view_transform())
        self.map_scene().show_preview(QRectF(x, y, w, h))

    def mousePressEvent(self, event):
        if self._drawing_enabled and event.button() == Qt.MouseButton.LeftButton:
            pos = event.position()
            self._gesture.press(pos.x(), pos.y())
            event.accept()
            return
        super().mousePressEvent(event)

    def mouseMoveEvent(self, event):
        if self._drawing_enabled and self._gesture.current_rect is not None:
            pos = event.position()
            rect = self._gesture.move(pos.x(), pos.y())
            if rect is not None:
                self._preview(rect)
            event.accept()
            return
        super().mouseMoveEvent(event)

    def mouseReleaseEvent(self, event):
        if self._drawing_enabled and event.button() == Qt.MouseButton.LeftButton:
            pos = event.position()
            rect = self._gesture.release(pos.x(), pos.y())
            self.map_scene().hide_preview()
            self._gesture.reset()
            if rect is not None and self.on_rect_drawn:
                self.on_rect_drawn(rect, self.view_transform())
            event.accept()
            return
        super().mouseReleaseEvent(event)

    def leaveEvent(self, event):
        # Abandon a half-drawn rectangle when the pointer leaves the canvas
        self._gesture.leave()
        self.map_scene().hide_preview()
        super().leaveEvent(event)

    def keyPressEvent(self, event):
        if event.key() == Qt.Key.Key_Escape and self._gesture.current_rect is not None:
            self._gesture.leave()
            self.map_scene().hide_preview()
            event.accept()
            return
        super().keyPressEvent(event)
