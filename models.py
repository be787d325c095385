"""
models.py

Data models and constants for the Mapdraw navigator.

The map graph is a flat mapping of map id -> MapNode.  Hotspots never hold
references to other nodes, only the id of the map they link to, so cloning,
serialization and cycle handling are plain dict work.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Tuple

if TYPE_CHECKING:
    from geometry import PercentRect


# ----------------------------
# Link type constants
# ----------------------------

class LinkType:
    """Hotspot link discriminants."""
    MAP = "map"
    URL = "url"

    ALL = (MAP, URL)


class UrlTarget:
    """Where a URL hotspot opens its resource."""
    SELF = "self"
    BLANK = "blank"

    ALL = (SELF, BLANK)
    DEFAULT = BLANK


# Serialized (camelCase) hotspot keys in canonical order
HOTSPOT_KEY_ORDER = [
    "id", "title", "x", "y", "width", "height",
    "linkType", "linkToMapId", "linkedUrl", "urlTarget",
]

# Smallest width/height a hotspot may have, in canvas percent
MIN_HOTSPOT_PERCENT = 0.1

DEFAULT_ROOT_MAP_ID = "rootMap"


# ----------------------------
# Hotspot model
# ----------------------------

@dataclass(frozen=True)
class Hotspot:
    """A percentage-positioned clickable region on one map.

    Geometry is expressed in percent (0-100) of the canonical canvas, so a
    hotspot keeps its place whatever size the map is displayed at.

    Exactly one link payload is populated: ``link_to_map_id`` for
    ``LinkType.MAP`` hotspots, ``linked_url``/``url_target`` for
    ``LinkType.URL`` hotspots.
    """
    id: str
    x: float
    y: float
    width: float
    height: float
    link_type: str = LinkType.MAP
    link_to_map_id: Optional[str] = None
    linked_url: Optional[str] = None
    url_target: Optional[str] = None
    title: Optional[str] = None

    def __post_init__(self):
        if self.link_type not in LinkType.ALL:
            raise ValueError(f"Unknown link type: {self.link_type!r}")
        if self.link_type == LinkType.MAP:
            if not self.link_to_map_id:
                raise ValueError(f"Map hotspot '{self.id}' has no linkToMapId")
            if self.linked_url is not None or self.url_target is not None:
                raise ValueError(f"Map hotspot '{self.id}' carries URL fields")
        else:
            if not self.linked_url:
                raise ValueError(f"URL hotspot '{self.id}' has no linkedUrl")
            if self.link_to_map_id is not None:
                raise ValueError(f"URL hotspot '{self.id}' carries linkToMapId")
            if self.url_target is None:
                object.__setattr__(self, "url_target", UrlTarget.DEFAULT)
            elif self.url_target not in UrlTarget.ALL:
                raise ValueError(f"Unknown url target: {self.url_target!r}")

    @classmethod
    def map_link(cls, hotspot_id: str, rect: "PercentRect", link_to_map_id: str,
                 title: Optional[str] = None) -> "Hotspot":
        """Build a hotspot that jumps to another map."""
        return cls(
            id=hotspot_id, x=rect.x, y=rect.y, width=rect.width, height=rect.height,
            link_type=LinkType.MAP, link_to_map_id=link_to_map_id, title=title,
        )

    @classmethod
    def url_link(cls, hotspot_id: str, rect: "PercentRect", linked_url: str,
                 url_target: str = UrlTarget.DEFAULT, title: Optional[str] = None) -> "Hotspot":
        """Build a hotspot that opens an external resource."""
        return cls(
            id=hotspot_id, x=rect.x, y=rect.y, width=rect.width, height=rect.height,
            link_type=LinkType.URL, linked_url=linked_url, url_target=url_target,
            title=title,
        )

    @property
    def is_map_link(self) -> bool:
        return self.link_type == LinkType.MAP

    def describe(self) -> str:
        """Tooltip text used in view mode."""
        if self.title:
            return self.title
        if self.is_map_link:
            return f"Go to map: {self.link_to_map_id}"
        return f"Open URL: {self.linked_url}"

    def with_fields(self, **changes: Any) -> "Hotspot":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a camelCase dict in canonical key order."""
        d: Dict[str, Any] = {"id": self.id}
        if self.title:
            d["title"] = self.title
        d["x"] = self.x
        d["y"] = self.y
        d["width"] = self.width
        d["height"] = self.height
        d["linkType"] = self.link_type
        if self.is_map_link:
            d["linkToMapId"] = self.link_to_map_id
        else:
            d["linkedUrl"] = self.linked_url
            d["urlTarget"] = self.url_target
        return d


# ----------------------------
# Map node model
# ----------------------------

@dataclass(frozen=True)
class MapNode:
    """One navigable image and the hotspots drawn on it."""
    id: str
    image_url: str
    hotspots: Tuple[Hotspot, ...] = field(default_factory=tuple)

    def find_hotspot(self, hotspot_id: str) -> Optional[Hotspot]:
        for hs in self.hotspots:
            if hs.id == hotspot_id:
                return hs
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "imageUrl": self.image_url,
            "hotspots": [hs.to_dict() for hs in self.hotspots],
        }


# The whole document: map id -> node.  Treated as immutable; store operations
# always build a new dict.
MapGraph = Dict[str, MapNode]


def graph_to_dict(graph: Mapping[str, MapNode]) -> Dict[str, Any]:
    """Serialize a graph to the plain document structure."""
    return {map_id: node.to_dict() for map_id, node in graph.items()}


@dataclass(frozen=True)
class DisplayData:
    """What the presentation layer needs to draw the current map."""
    map_id: str
    image_url: str
    hotspots: Tuple[Hotspot, ...]


# ----------------------------
# Built-in default document
# ----------------------------

DEFAULT_DOCUMENT: Dict[str, Any] = {
    DEFAULT_ROOT_MAP_ID: {
        "imageUrl": "/images/root-map.png",
        "hotspots": [],
    },
}
