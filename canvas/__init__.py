"""
canvas package

PyQt6 graphics items, scene, and view for the map canvas.
"""

from canvas.items import DrawPreviewItem, HotspotItem
from canvas.scene import MapScene
from canvas.view import MapView

__all__ = [
    "DrawPreviewItem",
    "HotspotItem",
    "MapScene",
    "MapView",
]
