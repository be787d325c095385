"""
graph_store.py

Mutation operations on the map graph.

The module-level functions are pure: they take a graph, return a new graph
and raise a ``MapdrawError`` subclass when the operation is not allowed.  The
caller's graph is never modified.

``GraphStore`` owns the current graph reference.  It runs the pure functions,
swaps the reference in one assignment, bumps ``version`` and notifies
listeners, converting errors into ``OpResult`` values.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Set, Tuple

from errors import (
    ConsistencyError,
    DuplicateIdError,
    MapdrawError,
    NotFoundError,
    OpResult,
    ValidationError,
)
from geometry import PercentRect, clamp_percent_rect
from models import Hotspot, LinkType, MapGraph, MapNode, UrlTarget, graph_to_dict
from normalizer import normalize_document
from utils import is_valid_image_url, is_valid_link_url

log = logging.getLogger(__name__)

# Fields update_hotspot() accepts (camelCase, as sent by the edit form)
UPDATABLE_FIELDS = frozenset({
    "title", "linkType", "linkToMapId", "linkedUrl", "urlTarget",
    "x", "y", "width", "height", "newMapImageUrl",
})

GraphListener = Callable[[MapGraph, int, bool], None]


# -------------------------------------------------------------------------
# Lookups
# -------------------------------------------------------------------------

def get_node(graph: Mapping[str, MapNode], map_id: str) -> MapNode:
    node = graph.get(map_id)
    if node is None:
        raise NotFoundError(f"Map '{map_id}' not found")
    return node


def get_hotspot(graph: Mapping[str, MapNode], map_id: str, hotspot_id: str) -> Hotspot:
    node = get_node(graph, map_id)
    hs = node.find_hotspot(hotspot_id)
    if hs is None:
        raise NotFoundError(f"Hotspot '{hotspot_id}' not found on map '{map_id}'")
    return hs


def references_to(graph: Mapping[str, MapNode], map_id: str) -> List[Tuple[str, str]]:
    """All (map id, hotspot id) pairs whose hotspot links to ``map_id``."""
    refs = []
    for owner_id, node in graph.items():
        for hs in node.hotspots:
            if hs.is_map_link and hs.link_to_map_id == map_id:
                refs.append((owner_id, hs.id))
    return refs


def find_orphans(graph: Mapping[str, MapNode], root_id: str) -> Set[str]:
    """Map ids not reachable from ``root_id`` by following map links."""
    seen: Set[str] = set()
    stack = [root_id] if root_id in graph else []
    while stack:
        map_id = stack.pop()
        if map_id in seen:
            continue
        seen.add(map_id)
        for hs in graph[map_id].hotspots:
            if hs.is_map_link and hs.link_to_map_id in graph and hs.link_to_map_id not in seen:
                stack.append(hs.link_to_map_id)
    return set(graph) - seen


def check_map_id_format(map_id: object) -> str:
    """Reject ids that look like paths or URLs instead of document keys."""
    if not isinstance(map_id, str) or not map_id:
        raise ValidationError(f"Invalid map ID {map_id!r}: expected a non-empty string")
    if "://" in map_id or "/" in map_id:
        raise ValidationError(
            f"Invalid format for target map ID '{map_id}'. Expected a valid key."
        )
    return map_id


def text_field(fields: Mapping[str, Any], key: str) -> Optional[str]:
    """Stripped string value of ``fields[key]``; None when absent or blank."""
    value = fields.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"Hotspot field '{key}' must be text, got {type(value).__name__}")
    return value.strip() or None


def _require_link_url(url: str) -> str:
    if not isinstance(url, str) or not is_valid_link_url(url):
        raise ValidationError(f"Invalid linked URL '{url}'")
    return url


def _require_image_url(url: Optional[str]) -> str:
    if url is not None and not isinstance(url, str):
        raise ValidationError(f"Image URL must be text, got {type(url).__name__}")
    url = (url or "").strip()
    if not url:
        raise ValidationError("Image URL must not be empty")
    if not is_valid_image_url(url):
        raise ValidationError(
            f"Invalid image URL '{url}': expected http://, https:// or a path starting with /"
        )
    return url


def _normalized_hotspot(hotspot: Hotspot) -> Hotspot:
    """Clamp geometry and strip the title, as ``normalize_hotspot`` does."""
    if hotspot.title is not None and not isinstance(hotspot.title, str):
        raise ValidationError(f"Hotspot title must be text, got {type(hotspot.title).__name__}")
    try:
        rect = clamp_percent_rect(PercentRect(
            float(hotspot.x), float(hotspot.y), float(hotspot.width), float(hotspot.height),
        ))
    except (TypeError, ValueError):
        raise ValidationError("Hotspot geometry must be numeric") from None
    if not hotspot.is_map_link:
        _require_link_url(hotspot.linked_url)
    return hotspot.with_fields(
        x=rect.x, y=rect.y, width=rect.width, height=rect.height,
        title=(hotspot.title or "").strip() or None,
    )


def _with_node(graph: Mapping[str, MapNode], node: MapNode) -> MapGraph:
    new_graph = dict(graph)
    new_graph[node.id] = node
    return new_graph


# -------------------------------------------------------------------------
# Pure operations
# -------------------------------------------------------------------------

def add_hotspot_and_linked_map(
    graph: Mapping[str, MapNode],
    target_map_id: str,
    hotspot: Hotspot,
    new_map_image_url: Optional[str] = None,
) -> MapGraph:
    """Append ``hotspot`` to a map and, for map links, create the linked map.

    The stored hotspot has its rectangle clamped to the canvas and its title
    stripped, the same way a loaded document is normalized.

    Raises:
        NotFoundError: target map does not exist.
        DuplicateIdError: the linked map id is already a node.
        ValidationError: bad title, map id or URL, or a map link without a
            usable image URL.
    """
    target = get_node(graph, target_map_id)
    hotspot = _normalized_hotspot(hotspot)
    new_graph = _with_node(graph, replace(target, hotspots=target.hotspots + (hotspot,)))

    if hotspot.is_map_link:
        new_map_id = check_map_id_format(hotspot.link_to_map_id)
        if new_map_id in graph:
            raise DuplicateIdError(
                f"Map ID '{new_map_id}' already exists. Please choose a unique ID."
            )
        image_url = _require_image_url(new_map_image_url)
        new_graph[new_map_id] = MapNode(id=new_map_id, image_url=image_url)
    return new_graph


def update_hotspot(
    graph: Mapping[str, MapNode],
    target_map_id: str,
    hotspot_id: str,
    fields: Mapping[str, Any],
) -> MapGraph:
    """Replace the supplied fields of one hotspot.

    Only keys in ``fields`` change.  When ``linkType`` changes the payload of
    the previous variant is cleared.  A map link pointing at an id that is
    not a node yet needs ``newMapImageUrl`` to create it.  A new target id
    or linked URL is checked the same way as on the add path.
    """
    unknown = set(fields) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Unknown hotspot fields: {', '.join(sorted(unknown))}")

    node = get_node(graph, target_map_id)
    current = get_hotspot(graph, target_map_id, hotspot_id)

    link_type = fields.get("linkType", current.link_type)
    if link_type not in LinkType.ALL:
        raise ValidationError(f"Unknown link type '{link_type}'")

    changes: Dict[str, Any] = {}
    if "title" in fields:
        changes["title"] = text_field(fields, "title")

    if any(k in fields for k in ("x", "y", "width", "height")):
        try:
            rect = PercentRect(
                x=float(fields.get("x", current.x)),
                y=float(fields.get("y", current.y)),
                width=float(fields.get("width", current.width)),
                height=float(fields.get("height", current.height)),
            )
        except (TypeError, ValueError):
            raise ValidationError("Hotspot geometry must be numeric") from None
        rect = clamp_percent_rect(rect)
        changes.update(x=rect.x, y=rect.y, width=rect.width, height=rect.height)

    new_graph = dict(graph)
    if link_type == LinkType.MAP:
        new_link_to = text_field(fields, "linkToMapId")
        if new_link_to:
            check_map_id_format(new_link_to)
        link_to = new_link_to or current.link_to_map_id
        if not link_to:
            raise ValidationError("A map hotspot needs a target map ID")
        new_image_url = text_field(fields, "newMapImageUrl")
        if link_to not in graph:
            if not new_image_url:
                raise NotFoundError(f"Target map '{link_to}' not found")
            new_graph[link_to] = MapNode(id=link_to, image_url=_require_image_url(new_image_url))
        changes.update(link_type=LinkType.MAP, link_to_map_id=link_to, linked_url=None, url_target=None)
    else:
        new_url = text_field(fields, "linkedUrl")
        if new_url:
            _require_link_url(new_url)
        url = new_url or current.linked_url
        if not url:
            raise ValidationError("A URL hotspot needs a linked URL")
        target = text_field(fields, "urlTarget") or current.url_target or UrlTarget.DEFAULT
        if target not in UrlTarget.ALL:
            raise ValidationError(f"Unknown URL target '{target}'")
        changes.update(link_type=LinkType.URL, linked_url=url, url_target=target, link_to_map_id=None)

    updated = current.with_fields(**changes)
    hotspots = tuple(updated if hs.id == hotspot_id else hs for hs in node.hotspots)
    new_graph[target_map_id] = replace(node, hotspots=hotspots)
    return new_graph


def delete_hotspot(
    graph: Mapping[str, MapNode],
    target_map_id: str,
    hotspot_id: str,
    protected_ids: Tuple[str, ...] = (),
) -> Tuple[MapGraph, List[str]]:
    """Remove a hotspot and, for map links, the map it orphans.

    Orphan cleanup is a single level: only the deleted hotspot's own target
    is considered.  Maps that lose their last referrer as a side effect stay
    in the graph.  Ids in ``protected_ids`` (the document root) are never
    removed.

    Returns:
        (new graph, warnings).  A missing hotspot is a warning, not an error.
    """
    node = get_node(graph, target_map_id)
    removed = node.find_hotspot(hotspot_id)
    if removed is None:
        msg = f"Hotspot '{hotspot_id}' not found on map '{target_map_id}', nothing to delete"
        log.warning(msg)
        return dict(graph), [msg]

    hotspots = tuple(hs for hs in node.hotspots if hs.id != hotspot_id)
    new_graph = _with_node(graph, replace(node, hotspots=hotspots))

    if removed.is_map_link:
        orphan_id = removed.link_to_map_id
        if orphan_id in new_graph and orphan_id not in protected_ids and not references_to(new_graph, orphan_id):
            del new_graph[orphan_id]
            log.info("Removed orphaned map '%s'", orphan_id)
    return new_graph, []


def update_map_image(graph: Mapping[str, MapNode], map_id: str, new_image_url: str) -> MapGraph:
    node = get_node(graph, map_id)
    url = _require_image_url(new_image_url)
    return _with_node(graph, replace(node, image_url=url))


# -------------------------------------------------------------------------
# Store
# -------------------------------------------------------------------------

class GraphStore:
    """Holds the current map graph and publishes changes.

    Every mutation produces a new graph and swaps ``self.graph`` in a single
    assignment, so a reader never sees a half-applied change.

    Args:
        graph: Initial graph (already normalized).
        root_id: Document root; protected from orphan cleanup.
    """

    def __init__(self, graph: Optional[MapGraph] = None, root_id: Optional[str] = None):
        self.graph: MapGraph = dict(graph or {})
        self.root_id = root_id
        self.version = 0
        self._listeners: List[GraphListener] = []

    def add_listener(self, callback: GraphListener) -> None:
        """Register ``callback(graph, version, replaced)``."""
        self._listeners.append(callback)

    def remove_listener(self, callback: GraphListener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def __contains__(self, map_id: str) -> bool:
        return map_id in self.graph

    def get(self, map_id: str) -> Optional[MapNode]:
        return self.graph.get(map_id)

    def to_document(self) -> Dict[str, Any]:
        return graph_to_dict(self.graph)

    def _swap(self, new_graph: MapGraph, replaced: bool = False) -> None:
        self.graph = new_graph
        self.version += 1
        for cb in list(self._listeners):
            cb(self.graph, self.version, replaced)

    def replace_graph(self, graph: MapGraph, root_id: Optional[str]) -> None:
        """Swap in a whole new document."""
        self.root_id = root_id
        self._swap(dict(graph), replaced=True)
        log.info("Loaded document with %d map(s), root '%s'", len(graph), root_id)

    def add_hotspot_and_linked_map(
        self,
        target_map_id: str,
        hotspot: Hotspot,
        new_map_image_url: Optional[str] = None,
    ) -> OpResult[MapGraph]:
        try:
            new_graph = add_hotspot_and_linked_map(self.graph, target_map_id, hotspot, new_map_image_url)
        except MapdrawError as e:
            log.warning("Cannot add hotspot '%s' to '%s': %s", hotspot.id, target_map_id, e)
            return OpResult.failure(e)
        self._swap(new_graph)
        if hotspot.is_map_link:
            log.info("Added hotspot '%s' to '%s' and map '%s'", hotspot.id, target_map_id, hotspot.link_to_map_id)
        else:
            log.info("Added URL hotspot '%s' to '%s'", hotspot.id, target_map_id)
        return OpResult.success(self.graph)

    def update_hotspot(self, target_map_id: str, hotspot_id: str, fields: Mapping[str, Any]) -> OpResult[MapGraph]:
        try:
            new_graph = update_hotspot(self.graph, target_map_id, hotspot_id, fields)
        except MapdrawError as e:
            log.warning("Cannot update hotspot '%s' on '%s': %s", hotspot_id, target_map_id, e)
            return OpResult.failure(e)
        self._swap(new_graph)
        log.info("Updated hotspot '%s' on '%s'", hotspot_id, target_map_id)
        return OpResult.success(self.graph)

    def delete_hotspot(self, target_map_id: str, hotspot_id: str) -> OpResult[MapGraph]:
        protected = (self.root_id,) if self.root_id else ()
        try:
            new_graph, warnings = delete_hotspot(self.graph, target_map_id, hotspot_id, protected)
        except MapdrawError as e:
            log.warning("Cannot delete hotspot '%s' on '%s': %s", hotspot_id, target_map_id, e)
            return OpResult.failure(e)
        if warnings:
            return OpResult.success(self.graph, warnings)
        self._swap(new_graph)
        log.info("Deleted hotspot '%s' from '%s'", hotspot_id, target_map_id)
        return OpResult.success(self.graph)

    def update_map_image(self, map_id: str, new_image_url: str) -> OpResult[MapGraph]:
        try:
            new_graph = update_map_image(self.graph, map_id, new_image_url)
        except MapdrawError as e:
            log.warning("Cannot change image of '%s': %s", map_id, e)
            return OpResult.failure(e)
        self._swap(new_graph)
        log.info("Changed image of '%s' to '%s'", map_id, new_graph[map_id].image_url)
        return OpResult.success(self.graph)

    def replace_whole_document(self, raw_input: Any, preferred_root: Optional[str] = None) -> OpResult:
        """Normalize external input and, if valid, replace the whole graph.

        Returns:
            OpResult whose value is the ``NormalizedDocument``.  On failure
            the current graph is left untouched.
        """
        try:
            doc = normalize_document(raw_input, preferred_root=preferred_root)
        except MapdrawError as e:
            log.warning("Document rejected: %s", e)
            return OpResult.failure(e)
        if doc.root_id is None:
            return OpResult.failure(ConsistencyError("Document has no root map"))
        self.replace_graph(doc.graph, doc.root_id)
        return OpResult.success(doc, doc.warnings)
