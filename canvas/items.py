"""
canvas/items.py

Graphics items for the map canvas: the clickable hotspot rectangle and the
rubber band preview shown while drawing a new one.

Scene coordinates are canonical canvas pixels, so an item's rect is the
hotspot's percent rect scaled by the canvas size.
"""

from __future__ import annotations

from typing import Callable, Optional

from PyQt6.QtCore import Qt, QRectF
from PyQt6.QtGui import QBrush, QColor, QPen, QPainter
from PyQt6.QtWidgets import QGraphicsItem, QGraphicsRectItem, QStyle, QStyleOptionGraphicsItem

from geometry import CanvasSize
from models import Hotspot

# Data key holding the hotspot id on every hotspot item
HOTSPOT_ID_KEY = 0

HOTSPOT_Z = 100
PREVIEW_Z = 200

# Colors per display state: (pen, brush)
_STYLE = {
    "view": (QColor(0, 0, 0, 0), QColor(0, 0, 0, 0)),
    "hover": (QColor(59, 130, 246), QColor(59, 130, 246, 40)),
    "edit": (QColor(234, 179, 8), QColor(234, 179, 8, 40)),
    "delete": (QColor(239, 68, 68), QColor(239, 68, 68, 60)),
    "selected": (QColor(220, 38, 38), QColor(220, 38, 38, 110)),
    "preview": (QColor(34, 197, 94), QColor(34, 197, 94, 50)),
}


def percent_to_scene_rect(hotspot: Hotspot, canvas: CanvasSize) -> QRectF:
    return QRectF(
        hotspot.x / 100.0 * canvas.width,
        hotspot.y / 100.0 * canvas.height,
        hotspot.width / 100.0 * canvas.width,
        hotspot.height / 100.0 * canvas.height,
    )


class HotspotItem(QGraphicsRectItem):
    """
    One hotspot on the current map.

    The item does not move or resize; geometry edits go through the edit
    form.  Clicks are forwarded to ``on_click(hotspot_id)``.
    """

    def __init__(self, hotspot: Hotspot, canvas: CanvasSize,
                 on_click: Optional[Callable[[str], None]] = None):
        super().__init__(percent_to_scene_rect(hotspot, canvas))
        self.hotspot = hotspot
        self.on_click = on_click
        self.setData(HOTSPOT_ID_KEY, hotspot.id)
        self.setZValue(HOTSPOT_Z)
        self.setAcceptHoverEvents(True)
        self.setFlag(QGraphicsItem.GraphicsItemFlag.ItemIsSelectable, False)
        self.setToolTip(hotspot.describe())
        self.setCursor(Qt.CursorShape.PointingHandCursor)

        self._hovered = False
        self._state = "view"
        self._apply_style()

    @property
    def hotspot_id(self) -> str:
        return self.hotspot.id

    def set_display_state(self, state: str) -> None:
        """One of view, edit, delete, selected."""
        if state != self._state:
            self._state = state
            self._apply_style()

    def _apply_style(self):
        key = self._state
        if key == "view" and self._hovered:
            key = "hover"
        pen_color, brush_color = _STYLE[key]
        pen = QPen(pen_color, 2)
        pen.setCosmetic(True)
        if self._state == "edit":
            pen.setStyle(Qt.PenStyle.DashLine)
        self.setPen(pen)
        self.setBrush(QBrush(brush_color))

    def hoverEnterEvent(self, event):
        self._hovered = True
        self._apply_style()
        super().hoverEnterEvent(event)

    def hoverLeaveEvent(self, event):
        self._hovered = False
        self._apply_style()
        super().hoverLeaveEvent(event)

    def mousePressEvent(self, event):
        if event.button() == Qt.MouseButton.LeftButton:
            event.accept()
            return
        super().mousePressEvent(event)

    def mouseReleaseEvent(self, event):
        if event.button() == Qt.MouseButton.LeftButton and self.on_click:
            if self.rect().contains(event.pos()):
                self.on_click(self.hotspot.id)
            event.accept()
            return
        super().mouseReleaseEvent(event)

    def paint(self, painter: QPainter, option, widget=None):
        # Suppress the default dotted selection frame
        my_option = QStyleOptionGraphicsItem(option)
        my_option.state &= ~QStyle.StateFlag.State_Selected
        super().paint(painter, my_option, widget)
        if self.hotspot.title and self._state != "view":
            painter.setPen(self.pen().color())
            painter.drawText(self.rect().adjusted(4, 2, -4, -2),
                             Qt.AlignmentFlag.AlignLeft | Qt.AlignmentFlag.AlignTop,
                             self.hotspot.title)


class DrawPreviewItem(QGraphicsRectItem):
    """Dashed rectangle following the pointer while a hotspot is drawn."""

    def __init__(self):
        super().__init__()
        pen_color, brush_color = _STYLE["preview"]
        pen = QPen(pen_color, 2, Qt.PenStyle.DashLine)
        pen.setCosmetic(True)
        self.setPen(pen)
        self.setBrush(QBrush(brush_color))
        self.setZValue(PREVIEW_Z)
        self.setAcceptedMouseButtons(Qt.MouseButton.NoButton)
        self.hide()
