"""
canvas/scene.py

QGraphicsScene holding one map: the background image stretched over the
canonical canvas and a HotspotItem per hotspot.
"""

from __future__ import annotations

from typing import Callable, Dict, Optional

from PyQt6.QtCore import Qt, QRectF
from PyQt6.QtGui import QColor, QPixmap
from PyQt6.QtWidgets import QGraphicsPixmapItem, QGraphicsScene, QGraphicsSimpleTextItem

from canvas.items import DrawPreviewItem, HotspotItem
from edit_actions import EditAction, EditOn, EditState
from geometry import CanvasSize
from models import DisplayData

BACKGROUND_Z = -1000


class MapScene(QGraphicsScene):
    """
    Scene for the current map.

    Scene coordinates are canonical canvas pixels.  A margin around the
    canvas lets the view pan past the edges.
    """

    def __init__(self, canvas: CanvasSize = CanvasSize(), parent=None):
        super().__init__(parent)
        self.canvas = canvas
        margin_x, margin_y = canvas.width, canvas.height
        self.setSceneRect(-margin_x, -margin_y, canvas.width + 2 * margin_x, canvas.height + 2 * margin_y)
        self.setBackgroundBrush(QColor(243, 244, 246))

        self._on_hotspot_clicked: Optional[Callable[[str], None]] = None
        self._bg_item: Optional[QGraphicsPixmapItem] = None
        self._message_item: Optional[QGraphicsSimpleTextItem] = None
        self._hotspot_items: Dict[str, HotspotItem] = {}
        self._edit_state: Optional[EditState] = None

        self.preview = DrawPreviewItem()
        self.addItem(self.preview)

    def configure_linkage(self, on_hotspot_clicked: Callable[[str], None]):
        """
        Configure the click callback.

        Args:
            on_hotspot_clicked: Called with the hotspot id on a left click.
        """
        self._on_hotspot_clicked = on_hotspot_clicked

    def canvas_rect(self) -> QRectF:
        return QRectF(0, 0, self.canvas.width, self.canvas.height)

    # ---- content ----

    def show_map(self, display: Optional[DisplayData]) -> None:
        """Replace hotspots (and drop the background) for a new display."""
        self._clear_map_items()
        if display is None:
            self.show_message("No map selected")
            return
        for hs in display.hotspots:
            item = HotspotItem(hs, self.canvas, self._hotspot_clicked)
            self.addItem(item)
            self._hotspot_items[hs.id] = item
        if self._edit_state is not None:
            self.apply_edit_state(self._edit_state)

    def update_hotspots(self, display: DisplayData) -> None:
        """Re-create hotspot items, keeping the background."""
        for item in self._hotspot_items.values():
            self.removeItem(item)
        self._hotspot_items.clear()
        for hs in display.hotspots:
            item = HotspotItem(hs, self.canvas, self._hotspot_clicked)
            self.addItem(item)
            self._hotspot_items[hs.id] = item
        if self._edit_state is not None:
            self.apply_edit_state(self._edit_state)

    def set_background(self, pixmap: QPixmap) -> None:
        """Stretch ``pixmap`` over the canonical canvas."""
        if self._bg_item is not None:
            self.removeItem(self._bg_item)
        self._hide_message()
        scaled = pixmap.scaled(
            int(self.canvas.width), int(self.canvas.height),
            Qt.AspectRatioMode.IgnoreAspectRatio,
            Qt.TransformationMode.SmoothTransformation,
        )
        self._bg_item = QGraphicsPixmapItem(scaled)
        self._bg_item.setZValue(BACKGROUND_Z)
        self._bg_item.setAcceptedMouseButtons(Qt.MouseButton.NoButton)
        self.addItem(self._bg_item)

    def show_message(self, text: str) -> None:
        self._hide_message()
        self._message_item = QGraphicsSimpleTextItem(text)
        font = self._message_item.font()
        font.setPointSize(48)
        self._message_item.setFont(font)
        br = self._message_item.boundingRect()
        self._message_item.setPos(
            (self.canvas.width - br.width()) / 2,
            (self.canvas.height - br.height()) / 2,
        )
        self.addItem(self._message_item)

    def _hide_message(self):
        if self._message_item is not None:
            self.removeItem(self._message_item)
            self._message_item = None

    def _clear_map_items(self):
        for item in self._hotspot_items.values():
            self.removeItem(item)
        self._hotspot_items.clear()
        if self._bg_item is not None:
            self.removeItem(self._bg_item)
            self._bg_item = None
        self._hide_message()
        self.preview.hide()

    def hotspot_item(self, hotspot_id: str) -> Optional[HotspotItem]:
        return self._hotspot_items.get(hotspot_id)

    def hotspot_count(self) -> int:
        return len(self._hotspot_items)

    def _hotspot_clicked(self, hotspot_id: str):
        if self._on_hotspot_clicked:
            self._on_hotspot_clicked(hotspot_id)

    # ---- edit state ----

    def apply_edit_state(self, state: EditState) -> None:
        """Restyle hotspots for the edit action (and pending deletion)."""
        self._edit_state = state
        if not isinstance(state, EditOn):
            for item in self._hotspot_items.values():
                item.set_display_state("view")
            return
        for hs_id, item in self._hotspot_items.items():
            if state.action == EditAction.SELECTING_FOR_DELETE:
                item.set_display_state("selected" if hs_id == state.pending_deletion_id else "delete")
            elif state.action == EditAction.EDITING and hs_id == state.subject_id:
                item.set_display_state("selected")
            else:
                item.set_display_state("edit")

    # ---- drawing preview ----

    def show_preview(self, rect: QRectF) -> None:
        self.preview.setRect(rect)
        self.preview.show()

    def hide_preview(self) -> None:
        self.preview.hide()
