"""
session.py

MapdrawSession: the single entry point used by the GUI.

The session owns one GraphStore and wires the navigation engine, the edit
state machine and the per-map view cache around it.  Every presentation
event (click, drawn rectangle, form submit, toolbar button, file load) is a
method here and returns an ``OpResult``; the GUI only renders what comes back
and what the listeners publish.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple, Union

from edit_actions import EditAction, EditStateMachine
from errors import (
    ConsistencyError,
    MapdrawError,
    NotFoundError,
    OpResult,
    ValidationError,
)
from geometry import (
    IDENTITY,
    PercentRect,
    ScreenRect,
    ViewTransform,
    drawn_rect_to_hotspot_rect,
)
from graph_store import GraphStore, check_map_id_format, find_orphans, text_field
from models import DEFAULT_DOCUMENT, Hotspot, LinkType, MapGraph, MapNode, UrlTarget
from navigation import NavigationEngine
from settings import AppSettings
from utils import (
    dumps_document,
    is_valid_link_url,
    new_hotspot_id,
    new_map_id,
    read_document_file,
    write_document_file,
)
from view_cache import ViewTransformCache

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class OpenUrl:
    """Request for the GUI to open an external resource."""
    url: str
    target: str = UrlTarget.DEFAULT


@dataclass(frozen=True)
class PendingHotspot:
    """A drawn rectangle waiting for the new-hotspot form to be submitted."""
    map_id: str
    rect: PercentRect
    hotspot_id: str
    suggested_map_id: str


@dataclass(frozen=True)
class ImageLoadToken:
    """Identifies one image load request; see ``begin_image_load``."""
    generation: int
    document_generation: int
    map_id: str


class MapdrawSession:
    """
    Core of one open map document.

    Args:
        settings: Application settings; defaults are used when omitted.
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self.settings = settings or AppSettings()
        self.canvas = self.settings.canvas.size()
        self.edit = EditStateMachine()
        self.views = ViewTransformCache.from_settings(self.settings.zoom)
        self.pending: Optional[PendingHotspot] = None
        self.document_path: Optional[Path] = None
        self.last_error: Optional[str] = None
        self._document_generation = 0
        self._document_request = 0
        self._image_generation = 0
        self.store = GraphStore()
        # Registered before the navigation engine: a replaced document must
        # have its new generation and cleared edit state before it is shown.
        self.store.add_listener(self._on_graph_changed)
        self.navigation = NavigationEngine(self.store)

    # -------------------------------------------------------------------------
    # State accessors
    # -------------------------------------------------------------------------

    @property
    def current_map_id(self) -> Optional[str]:
        return self.navigation.current_map_id

    @property
    def display(self):
        return self.navigation.display

    @property
    def can_go_back(self) -> bool:
        return self.navigation.can_go_back

    @property
    def admin_enabled(self) -> bool:
        return self.settings.general.admin_enabled

    def current_transform(self) -> ViewTransform:
        map_id = self.current_map_id
        if map_id is None:
            return IDENTITY
        return self.views.get(map_id) or IDENTITY

    def set_view_transform(self, transform: ViewTransform) -> None:
        """Remember the zoom/pan the view reports for the current map."""
        if self.current_map_id is not None:
            self.views.store(self.current_map_id, transform)

    def _fail(self, exc: MapdrawError) -> OpResult:
        self.last_error = str(exc)
        return OpResult.failure(exc)

    def _track(self, result: OpResult) -> OpResult:
        self.last_error = None if result.ok else result.error
        return result

    def _require_admin(self) -> None:
        if not self.admin_enabled:
            raise ValidationError("Editing is disabled in settings")

    def _require_current(self) -> MapNode:
        map_id = self.current_map_id
        node = self.store.get(map_id) if map_id else None
        if node is None:
            raise ConsistencyError("No map selected")
        return node

    # -------------------------------------------------------------------------
    # Documents
    # -------------------------------------------------------------------------

    def load_document(self, raw: Any) -> OpResult:
        """Replace the whole graph and start again at the root.

        Navigation history, edit state, the pending drawing and cached views
        are all reset.  On failure the previous document stays loaded.
        """
        result = self.store.replace_whole_document(raw, preferred_root=self.settings.navigation.root_map_id)
        if not result.ok:
            return self._track(result)
        if self.navigation.current_map_id is None:
            return self._fail(ConsistencyError(self.navigation.error or "Document root could not be shown"))
        self.last_error = None
        return OpResult.success(result.value, result.warnings)

    def _on_graph_changed(self, graph: MapGraph, version: int, replaced: bool) -> None:
        if not replaced:
            return
        self._document_generation += 1
        self._document_request += 1
        self.pending = None
        self.edit.reset()
        self.views.clear()

    def load_default_document(self) -> OpResult:
        result = self.load_document(DEFAULT_DOCUMENT)
        if result.ok:
            self.document_path = None
        return result

    def open_document(self, path: Union[str, Path], token: Optional[int] = None) -> OpResult:
        """Load a document file.

        ``document_path`` is switched before loading so relative image paths
        of the new document resolve against its folder; it is restored when
        the document is rejected.
        """
        try:
            text = read_document_file(path)
        except OSError as e:
            return self._fail(ValidationError(f"Cannot read '{path}': {e}"))
        previous = self.document_path
        self.document_path = Path(path)
        if token is None:
            result = self.load_document(text)
        else:
            result = self.finish_document_load(token, text)
        if not result.ok or result.value is None:
            self.document_path = previous
        else:
            log.info("Opened %s", path)
        return result

    def export_document(self) -> OpResult[str]:
        """Serialize the graph as document JSON.

        Maps that cannot be reached from the root are still exported; they are
        reported as warnings.
        """
        if not self.store.graph:
            return self._fail(ConsistencyError("No map data available to export."))
        warnings = []
        if self.store.root_id:
            for orphan in sorted(find_orphans(self.store.graph, self.store.root_id)):
                warnings.append(f"Map '{orphan}' is not reachable from '{self.store.root_id}'")
        text = dumps_document(self.store.graph, indent=self.settings.export.indent)
        return OpResult.success(text, warnings)

    def save_document(self, path: Union[str, Path]) -> OpResult[Path]:
        exported = self.export_document()
        if not exported.ok:
            return exported
        try:
            written = write_document_file(path, self.store.graph, indent=self.settings.export.indent)
        except OSError as e:
            return self._fail(ValidationError(f"Cannot write '{path}': {e}"))
        self.document_path = written
        log.info("Saved %s", written)
        return OpResult.success(written, exported.warnings)

    # ---- async guards ----

    def begin_document_load(self) -> int:
        """Token for a document that will arrive later (file dialog, fetch)."""
        self._document_request += 1
        return self._document_request

    def finish_document_load(self, token: int, raw: Any) -> OpResult:
        if token != self._document_request:
            msg = "Ignored a document that arrived after a newer load was started"
            log.info(msg)
            return OpResult.success(None, [msg])
        return self.load_document(raw)

    def begin_image_load(self, map_id: Optional[str] = None) -> ImageLoadToken:
        self._image_generation += 1
        return ImageLoadToken(
            generation=self._image_generation,
            document_generation=self._document_generation,
            map_id=map_id or self.current_map_id or "",
        )

    def image_load_is_stale(self, token: ImageLoadToken) -> bool:
        """True when a newer image request, a new document or navigation superseded ``token``."""
        return (
            token.generation != self._image_generation
            or token.document_generation != self._document_generation
            or token.map_id != self.current_map_id
        )

    def finish_image_load(self, token: ImageLoadToken, natural: Tuple[float, float],
                          container: Tuple[float, float]) -> OpResult[Optional[ViewTransform]]:
        """Fit the freshly loaded image unless the request went stale.

        Args:
            token: Value returned by ``begin_image_load``.
            natural: Natural (width, height) of the loaded image.
            container: (width, height) of the viewer widget.

        Returns:
            OpResult with the view transform to apply, or None when ignored.
        """
        if self.image_load_is_stale(token):
            msg = f"Ignored stale image load for map '{token.map_id}'"
            log.debug(msg)
            return OpResult.success(None, [msg])
        if natural[0] <= 0 or natural[1] <= 0:
            return self._fail(ValidationError(f"Image for map '{token.map_id}' failed to load"))
        if container[0] <= 0 or container[1] <= 0:
            return OpResult.success(None, ["Viewer has no size yet"])
        return OpResult.success(self.views.ensure_fit(token.map_id, self.canvas, container))

    # -------------------------------------------------------------------------
    # Navigation
    # -------------------------------------------------------------------------

    def navigate_to_child(self, map_id: str) -> OpResult:
        self.pending = None
        return self._track(self.navigation.navigate_to_child(map_id))

    def navigate_back(self) -> OpResult:
        self.pending = None
        return self._track(self.navigation.navigate_back())

    def click_hotspot(self, hotspot_id: str) -> OpResult:
        """Dispatch a click according to the edit action.

        Outside the selection actions a map hotspot navigates and a URL
        hotspot yields an ``OpenUrl`` request.  While drawing, clicks on
        existing hotspots are ignored.
        """
        try:
            node = self._require_current()
        except MapdrawError as e:
            return self._fail(e)

        action = self.edit.action
        if action == EditAction.SELECTING_FOR_DELETE:
            return self.select_for_deletion(hotspot_id)
        if action == EditAction.SELECTING_FOR_EDIT:
            return self.select_for_edit(hotspot_id)
        if action in (EditAction.DRAWING, EditAction.EDITING):
            return OpResult.success(None)

        hotspot = node.find_hotspot(hotspot_id)
        if hotspot is None:
            return self._fail(NotFoundError(f"Hotspot '{hotspot_id}' not found on map '{node.id}'"))
        if hotspot.is_map_link:
            return self.navigate_to_child(hotspot.link_to_map_id)
        log.info("Opening URL %s (%s)", hotspot.linked_url, hotspot.url_target)
        return OpResult.success(OpenUrl(hotspot.linked_url, hotspot.url_target))

    # -------------------------------------------------------------------------
    # Edit mode
    # -------------------------------------------------------------------------

    def toggle_edit_mode(self) -> OpResult[bool]:
        if not self.edit.is_edit_mode:
            try:
                self._require_admin()
            except MapdrawError as e:
                return self._fail(e)
        self.pending = None
        return OpResult.success(self.edit.toggle())

    def set_edit_action(self, action: str) -> OpResult[str]:
        try:
            self._require_admin()
            if action not in EditAction.ALL:
                raise ValidationError(f"Unknown edit action '{action}'")
            if action == EditAction.EDITING:
                raise ValidationError("Select a hotspot to edit first")
            if action == EditAction.CHANGING_ROOT_IMAGE and not self.navigation.is_on_root:
                raise ValidationError("The root image can only be changed on the root map")
        except MapdrawError as e:
            return self._fail(e)
        self.pending = None
        self.edit.set_action(action)
        return OpResult.success(action)

    # ---- drawing ----

    def draw_rect(self, screen_rect: ScreenRect, transform: Optional[ViewTransform] = None) -> OpResult:
        """Turn a finished drag into a pending hotspot.

        Args:
            screen_rect: Normalized drag rectangle in viewer pixels.
            transform: View transform the rectangle was drawn under; the
                cached transform of the current map when omitted.

        Returns:
            OpResult carrying a ``PendingHotspot``, or None for a drag too
            small to be intentional.
        """
        if not self.edit.accepts_drawing:
            return self._fail(ValidationError("Drawing is only possible in the Add Hotspot action"))
        try:
            node = self._require_current()
        except MapdrawError as e:
            return self._fail(e)

        rect = drawn_rect_to_hotspot_rect(
            screen_rect,
            transform or self.current_transform(),
            self.canvas,
            min_pixels=self.settings.canvas.min_drag_pixels,
            min_percent=self.settings.canvas.min_hotspot_percent,
        )
        if rect is None:
            log.debug("Ignored accidental drag %s", screen_rect)
            return OpResult.success(None)

        self.pending = PendingHotspot(
            map_id=node.id,
            rect=rect,
            hotspot_id=new_hotspot_id(node.id),
            suggested_map_id=new_map_id(),
        )
        return OpResult.success(self.pending)

    def submit_new_hotspot(self, fields: Mapping[str, Any]) -> OpResult:
        """Create the pending hotspot from the new-hotspot form.

        Form fields (camelCase): ``linkType`` (default map), ``title``,
        ``linkToMapId`` and ``newMapImageUrl`` for map links, ``linkedUrl``
        and ``urlTarget`` for URL links.  On failure the pending hotspot is
        kept so the form can be corrected.
        """
        pending = self.pending
        if pending is None:
            return self._fail(ValidationError("No drawn hotspot to save"))
        try:
            self._require_admin()
            hotspot = self._hotspot_from_form(pending, fields)
            new_map_image_url = text_field(fields, "newMapImageUrl")
        except MapdrawError as e:
            return self._fail(e)

        result = self.store.add_hotspot_and_linked_map(pending.map_id, hotspot, new_map_image_url)
        if result.ok:
            self.pending = None
            stored = self.store.graph[pending.map_id].find_hotspot(hotspot.id)
            return self._track(OpResult.success(stored))
        return self._track(result)

    def _hotspot_from_form(self, pending: PendingHotspot, fields: Mapping[str, Any]) -> Hotspot:
        link_type = fields.get("linkType") or LinkType.MAP
        title = text_field(fields, "title")
        if link_type == LinkType.MAP:
            target = text_field(fields, "linkToMapId") or pending.suggested_map_id
            check_map_id_format(target)
            return Hotspot.map_link(pending.hotspot_id, pending.rect, target, title=title)
        if link_type == LinkType.URL:
            url = text_field(fields, "linkedUrl")
            if not url:
                raise ValidationError("A URL hotspot needs a linked URL")
            if not is_valid_link_url(url):
                raise ValidationError(f"Invalid link URL '{url}'")
            target = text_field(fields, "urlTarget") or UrlTarget.DEFAULT
            if target not in UrlTarget.ALL:
                raise ValidationError(f"Unknown URL target '{target}'")
            return Hotspot.url_link(pending.hotspot_id, pending.rect, url, url_target=target, title=title)
        raise ValidationError(f"Unknown link type '{link_type}'")

    def cancel_new_hotspot(self) -> OpResult:
        self.pending = None
        return OpResult.success(None)

    # ---- deleting ----

    def select_for_deletion(self, hotspot_id: str) -> OpResult[Optional[str]]:
        if self.edit.action != EditAction.SELECTING_FOR_DELETE:
            return self._fail(ValidationError("Not selecting hotspots for deletion"))
        try:
            node = self._require_current()
            if node.find_hotspot(hotspot_id) is None:
                raise NotFoundError(f"Hotspot '{hotspot_id}' not found on map '{node.id}'")
        except MapdrawError as e:
            return self._fail(e)
        return OpResult.success(self.edit.select_for_deletion(hotspot_id))

    def clear_deletion_selection(self) -> OpResult:
        self.edit.clear_selection()
        return OpResult.success(None)

    def confirm_deletion(self, hotspot_id: str) -> OpResult:
        """Delete a hotspot of the current map (and the map it orphans)."""
        try:
            self._require_admin()
            node = self._require_current()
        except MapdrawError as e:
            return self._fail(e)
        result = self.store.delete_hotspot(node.id, hotspot_id)
        if result.ok:
            self.edit.clear_selection()
            self.views.prune(self.store.graph)
        return self._track(result)

    # ---- editing ----

    def select_for_edit(self, hotspot_id: str) -> OpResult[Hotspot]:
        if self.edit.action != EditAction.SELECTING_FOR_EDIT:
            return self._fail(ValidationError("Not selecting hotspots for editing"))
        try:
            node = self._require_current()
            hotspot = node.find_hotspot(hotspot_id)
            if hotspot is None:
                raise NotFoundError(f"Hotspot '{hotspot_id}' not found on map '{node.id}'")
        except MapdrawError as e:
            return self._fail(e)
        self.edit.begin_editing(hotspot_id)
        return OpResult.success(hotspot)

    def submit_edit(self, fields: Mapping[str, Any]) -> OpResult:
        subject = self.edit.subject_id
        if subject is None:
            return self._fail(ValidationError("No hotspot is being edited"))
        try:
            self._require_admin()
            node = self._require_current()
        except MapdrawError as e:
            return self._fail(e)
        result = self.store.update_hotspot(node.id, subject, fields)
        if result.ok:
            self.edit.finish_editing()
        return self._track(result)

    def cancel_edit(self) -> OpResult:
        self.edit.finish_editing()
        return OpResult.success(None)

    # ---- images ----

    def change_map_image(self, map_id: str, url: str) -> OpResult:
        try:
            self._require_admin()
        except MapdrawError as e:
            return self._fail(e)
        result = self.store.update_map_image(map_id, url)
        if result.ok and self.edit.action == EditAction.CHANGING_ROOT_IMAGE:
            self.edit.set_action(EditAction.IDLE)
        return self._track(result)

    def zoom_in(self, anchor: Tuple[float, float] = (0.0, 0.0)) -> Optional[ViewTransform]:
        if self.current_map_id is None:
            return None
        return self.views.zoom_in(self.current_map_id, anchor)

    def zoom_out(self, anchor: Tuple[float, float] = (0.0, 0.0)) -> Optional[ViewTransform]:
        if self.current_map_id is None:
            return None
        return self.views.zoom_out(self.current_map_id, anchor)

    def reset_view(self, container: Tuple[float, float]) -> Optional[ViewTransform]:
        if self.current_map_id is None:
            return None
        return self.views.reset(self.current_map_id, self.canvas, container)
