"""
navigation.py

Navigation engine: which map is on screen and how the user got there.

The engine reads the graph through a ``GraphStore`` and listens to it, so
incremental edits refresh the display data without touching the history.
Replacing the whole document starts over at the new root via ``load_root``.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from errors import ConsistencyError, NotFoundError, OpResult, ValidationError
from graph_store import GraphStore, check_map_id_format
from models import DisplayData, MapGraph

log = logging.getLogger(__name__)

NavigationListener = Callable[[Optional[DisplayData], bool], None]


class NavigationEngine:
    """
    Tracks the current map id and the back-navigation history.

    Attributes:
        current_map_id: Map on screen, or None when nothing could be shown.
        history: Previously visited ids, most recent last.
        display: Image + hotspots of the current map, or None.
        error: Last navigation or consistency error message.
    """

    def __init__(self, store: GraphStore):
        self.store = store
        self.current_map_id: Optional[str] = None
        self.history: List[str] = []
        self.display: Optional[DisplayData] = None
        self.error: Optional[str] = None
        self._listeners: List[NavigationListener] = []
        store.add_listener(self._on_store_changed)

    # ---- state accessors ----

    @property
    def can_go_back(self) -> bool:
        return bool(self.history)

    @property
    def is_on_root(self) -> bool:
        return self.current_map_id is not None and self.current_map_id == self.store.root_id

    def add_listener(self, callback: NavigationListener) -> None:
        """Register ``callback(display, can_go_back)``."""
        self._listeners.append(callback)

    def _publish(self) -> None:
        for cb in list(self._listeners):
            cb(self.display, self.can_go_back)

    def _derive_display(self, map_id: str) -> Optional[DisplayData]:
        node = self.store.get(map_id)
        if node is None:
            return None
        return DisplayData(map_id=map_id, image_url=node.image_url, hotspots=node.hotspots)

    # ---- operations ----

    def load_root(self, root_id: str) -> OpResult[DisplayData]:
        """Start over at ``root_id`` with an empty history."""
        self.history = []
        display = self._derive_display(root_id) if root_id else None
        if display is None:
            self.current_map_id = None
            self.display = None
            err = ConsistencyError(f"Error loading map: Map data not found for ID: '{root_id}'")
            self.error = str(err)
            log.error(self.error)
            self._publish()
            return OpResult.failure(err)
        self.current_map_id = root_id
        self.display = display
        self.error = None
        self._publish()
        return OpResult.success(display)

    def navigate_to_child(self, target_id: str) -> OpResult[DisplayData]:
        try:
            check_map_id_format(target_id)
            if target_id not in self.store:
                raise NotFoundError(f"Navigation failed: Target map ID '{target_id}' not found in map data.")
            if self.current_map_id is None:
                raise ConsistencyError("Navigation failed: no map is currently selected.")
        except (ValidationError, NotFoundError, ConsistencyError) as e:
            self.error = str(e)
            log.warning(self.error)
            return OpResult.failure(e)

        self.history.append(self.current_map_id)
        self.current_map_id = target_id
        self.display = self._derive_display(target_id)
        self.error = None
        self._publish()
        return OpResult.success(self.display)

    def navigate_back(self) -> OpResult[Optional[DisplayData]]:
        """Return to the previous map; a no-op when history is empty.

        A history entry whose map has since been deleted is reported as a
        consistency error and left in place.
        """
        if not self.history:
            return OpResult.success(self.display)
        parent_id = self.history[-1]
        if parent_id not in self.store:
            err = ConsistencyError(
                f"Error navigating back: Parent map ID '{parent_id}' from history not found "
                "in current map data. History might be corrupted."
            )
            self.error = str(err)
            log.error(self.error)
            return OpResult.failure(err)

        self.history.pop()
        self.current_map_id = parent_id
        self.display = self._derive_display(parent_id)
        self.error = None
        self._publish()
        return OpResult.success(self.display)

    def refresh(self) -> OpResult[Optional[DisplayData]]:
        """Re-derive display data for the current map from the store."""
        if self.current_map_id is None:
            return OpResult.success(None)
        display = self._derive_display(self.current_map_id)
        if display is None:
            err = ConsistencyError(
                f"Inconsistency detected: Current map ID '{self.current_map_id}' no longer exists in data."
            )
            self.error = str(err)
            log.error(self.error)
            self.current_map_id = None
            self.display = None
            self._publish()
            return OpResult.failure(err)
        if display != self.display:
            self.display = display
            self._publish()
        return OpResult.success(display)

    def reset(self) -> None:
        self.current_map_id = None
        self.history = []
        self.display = None
        self.error = None

    def _on_store_changed(self, graph: MapGraph, version: int, replaced: bool) -> None:
        if replaced:
            self.load_root(self.store.root_id)
        else:
            self.refresh()
