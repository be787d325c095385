"""
normalizer.py

Turns an externally supplied document (file import, embedded data, remote
fetch) into a well-formed map graph.

The top level must be a non-empty mapping of map id -> node; anything else
is a hard failure.  Individual hotspots are treated leniently: entries that
cannot be repaired are dropped with a warning instead of rejecting the whole
document.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from errors import ValidationError
from geometry import PercentRect, clamp_percent_rect
from models import Hotspot, LinkType, MapGraph, MapNode, UrlTarget
from schemas import validate_document, validate_hotspot

log = logging.getLogger(__name__)

# Early documents spelled the map link in snake_case
LEGACY_LINK_KEY = "link_to_map_id"


@dataclass
class NormalizedDocument:
    """Result of normalizing a raw document."""
    graph: MapGraph
    root_id: Optional[str]
    warnings: List[str] = field(default_factory=list)


def parse_raw_document(raw: Any) -> Any:
    """Decode JSON text or bytes; other values pass through unchanged."""
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise ValidationError(f"Document is not UTF-8 text: {e}") from None
    if isinstance(raw, str):
        if not raw.strip():
            raise ValidationError("Document is empty")
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Document is not valid JSON: {e}") from None
    return raw


def _infer_link_type(raw: Mapping[str, Any]) -> Optional[str]:
    if raw.get("linkToMapId"):
        return LinkType.MAP
    if raw.get("linkedUrl"):
        return LinkType.URL
    return None


def normalize_hotspot(raw: Any, where: str) -> Tuple[Optional[Hotspot], List[str]]:
    """
    Normalize one raw hotspot entry.

    Args:
        raw: The hotspot as found in the document
        where: Location used in warnings, e.g. ``"rootMap.hotspots[2]"``

    Returns:
        (hotspot or None if dropped, warnings)
    """
    warnings: List[str] = []

    if not isinstance(raw, dict):
        return None, [f"{where}: dropped, hotspot is not an object"]

    ok, errors = validate_hotspot(raw)
    if not ok:
        return None, [f"{where}: dropped, {'; '.join(errors)}"]

    rec = dict(raw)
    if not rec.get("linkToMapId") and rec.get(LEGACY_LINK_KEY):
        rec["linkToMapId"] = rec[LEGACY_LINK_KEY]

    link_type = rec.get("linkType") or _infer_link_type(rec)
    if link_type is None:
        return None, [f"{where}: dropped, no linkType and neither linkToMapId nor linkedUrl"]

    if link_type == LinkType.MAP and not rec.get("linkToMapId"):
        return None, [f"{where}: dropped, map hotspot without linkToMapId"]
    if link_type == LinkType.URL and not rec.get("linkedUrl"):
        return None, [f"{where}: dropped, url hotspot without linkedUrl"]

    url_target = None
    if link_type == LinkType.URL:
        url_target = rec.get("urlTarget") or UrlTarget.DEFAULT
        if url_target not in UrlTarget.ALL:
            warnings.append(f"{where}: unknown urlTarget '{url_target}', using '{UrlTarget.DEFAULT}'")
            url_target = UrlTarget.DEFAULT

    rect = PercentRect(float(rec["x"]), float(rec["y"]), float(rec["width"]), float(rec["height"]))
    clamped = clamp_percent_rect(rect)
    if clamped != rect:
        warnings.append(f"{where}: geometry clamped to the canvas")

    title = rec.get("title")
    hotspot = Hotspot(
        id=rec["id"],
        x=clamped.x,
        y=clamped.y,
        width=clamped.width,
        height=clamped.height,
        link_type=link_type,
        link_to_map_id=rec["linkToMapId"] if link_type == LinkType.MAP else None,
        linked_url=rec["linkedUrl"] if link_type == LinkType.URL else None,
        url_target=url_target,
        title=(title.strip() or None) if isinstance(title, str) else None,
    )
    return hotspot, warnings


def infer_root(graph: Mapping[str, MapNode], preferred: Optional[str] = None) -> Optional[str]:
    """
    Pick the document root.

    The preferred id wins when present; otherwise the first map (document
    order) that no map hotspot links to; otherwise the first map.
    """
    if not graph:
        return None
    if preferred and preferred in graph:
        return preferred
    referenced = {
        hs.link_to_map_id
        for node in graph.values()
        for hs in node.hotspots
        if hs.is_map_link
    }
    for map_id in graph:
        if map_id not in referenced:
            return map_id
    return next(iter(graph))


def normalize_document(raw: Any, preferred_root: Optional[str] = None) -> NormalizedDocument:
    """
    Validate and normalize a raw document into a MapGraph.

    Args:
        raw: Decoded JSON object, or JSON text/bytes
        preferred_root: Root map id to use when present in the document

    Returns:
        NormalizedDocument with graph, inferred root and warnings

    Raises:
        ValidationError: the input is not a non-empty keyed mapping of
            well-formed map nodes
    """
    data = parse_raw_document(raw)
    if not isinstance(data, dict) or not data:
        raise ValidationError("Document must be a non-empty object keyed by map id")

    ok, errors = validate_document(data)
    if not ok:
        shown = errors[:5]
        more = f" (+{len(errors) - 5} more)" if len(errors) > 5 else ""
        raise ValidationError("Malformed document: " + "; ".join(shown) + more)

    warnings: List[str] = []
    graph: Dict[str, MapNode] = {}
    for map_id, node in data.items():
        if "/" in map_id:
            warnings.append(f"{map_id}: map id contains '/', it cannot be navigated to")
        hotspots = []
        for i, raw_hs in enumerate(node.get("hotspots") or []):
            hs, hs_warnings = normalize_hotspot(raw_hs, f"{map_id}.hotspots[{i}]")
            warnings.extend(hs_warnings)
            if hs is not None:
                hotspots.append(hs)
        image_url = node["imageUrl"].strip()
        if not image_url:
            raise ValidationError(f"Malformed document: {map_id} -> imageUrl: must not be blank")
        graph[map_id] = MapNode(id=map_id, image_url=image_url, hotspots=tuple(hotspots))

    for map_id, node in graph.items():
        for hs in node.hotspots:
            if hs.is_map_link and hs.link_to_map_id not in graph:
                warnings.append(f"{map_id}: hotspot '{hs.id}' links to unknown map '{hs.link_to_map_id}'")

    for w in warnings:
        log.warning("Normalize: %s", w)

    return NormalizedDocument(graph=graph, root_id=infer_root(graph, preferred_root), warnings=warnings)
