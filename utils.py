"""
utils.py

Utility functions for the Mapdraw navigator: document serialization,
file I/O, id generation and URL checks.
"""

from __future__ import annotations

import json
import random
import string
import time
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union
from urllib.parse import urlparse

from PIL import Image

from models import HOTSPOT_KEY_ORDER, MapNode, graph_to_dict

DOCUMENT_INDENT = 2

_BASE36 = string.digits + string.ascii_lowercase


def _to_base36(n: int) -> str:
    if n == 0:
        return "0"
    out = []
    while n:
        n, r = divmod(n, 36)
        out.append(_BASE36[r])
    return "".join(reversed(out))


def generate_unique_id_part() -> str:
    """Short, practically unique suffix: base36 milliseconds + 3 random chars."""
    millis = int(time.time() * 1000)
    return _to_base36(millis) + "".join(random.choice(_BASE36) for _ in range(3))


def new_map_id() -> str:
    """Suggested id for a map created from a drawn hotspot."""
    return f"map_{generate_unique_id_part()}"


def new_hotspot_id(map_id: str) -> str:
    """Id for a hotspot drawn on ``map_id``."""
    return f"hs_{map_id}_{generate_unique_id_part()}"


def is_valid_image_url(url: str) -> bool:
    """
    Minimal check for an image locator.

    Accepts absolute URLs with a scheme and host (http, https, ...),
    ``data:`` URIs and absolute paths starting with ``/``.

    Args:
        url: The candidate locator (already stripped)

    Returns:
        True if the locator looks usable
    """
    if not url or any(c.isspace() for c in url):
        return False
    if url.startswith("/"):
        return True
    parsed = urlparse(url)
    if parsed.scheme == "data":
        return bool(parsed.path)
    return bool(parsed.scheme) and bool(parsed.netloc)


def is_valid_link_url(url: str) -> bool:
    """Check a URL hotspot target.  Relative paths are allowed like image URLs."""
    return is_valid_image_url(url) or url.startswith("./") or url.startswith("#")


# ----------------------------
# Serialization
# ----------------------------

def sort_hotspot_keys(rec: dict) -> dict:
    """
    Sort hotspot record keys in canonical order.

    Order: id, title, x, y, width, height, linkType, linkToMapId, linkedUrl, urlTarget
    Any keys not in this list are appended at the end in their original order.
    """
    result = {}
    for key in HOTSPOT_KEY_ORDER:
        if key in rec:
            result[key] = rec[key]
    for key in rec:
        if key not in result:
            result[key] = rec[key]
    return result


def sort_document(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Apply canonical key ordering to every node of a document dict."""
    result: Dict[str, Any] = {}
    for map_id, node in data.items():
        if not isinstance(node, dict):
            result[map_id] = node
            continue
        out = {"imageUrl": node.get("imageUrl", "")}
        hotspots = node.get("hotspots", [])
        out["hotspots"] = [
            sort_hotspot_keys(h) if isinstance(h, dict) else h
            for h in hotspots
        ] if isinstance(hotspots, list) else hotspots
        for key, value in node.items():
            if key not in out:
                out[key] = value
        result[map_id] = out
    return result


def dumps_document(graph: Mapping[str, MapNode], indent: int = DOCUMENT_INDENT) -> str:
    """Serialize a graph to pretty-printed document JSON."""
    return json.dumps(sort_document(graph_to_dict(graph)), indent=indent, ensure_ascii=False)


def read_document_file(path: Union[str, Path]) -> str:
    """Read raw document text; parsing/normalization is the caller's job."""
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def write_document_file(path: Union[str, Path], graph: Mapping[str, MapNode],
                        indent: int = DOCUMENT_INDENT) -> Path:
    """Write the graph as JSON, creating parent directories as needed."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(dumps_document(graph, indent=indent) + "\n", encoding="utf-8")
    return p


def resolve_image_path(image_url: str, base_dir: Optional[Union[str, Path]] = None) -> Optional[Path]:
    """
    Map an image locator to a local file, if it is one.

    ``/images/x.png`` is tried as an absolute path first, then relative to
    ``base_dir`` (the folder of the loaded document).  Remote URLs return None.
    """
    parsed = urlparse(image_url)
    if parsed.scheme and parsed.scheme != "file":
        return None
    raw = parsed.path if parsed.scheme == "file" else image_url
    candidate = Path(raw)
    if candidate.is_file():
        return candidate
    if base_dir is not None:
        relative = Path(base_dir) / raw.lstrip("/")
        if relative.is_file():
            return relative
    return None


def image_size(path: Union[str, Path]) -> Tuple[int, int]:
    """Natural (width, height) of an image file."""
    with Image.open(path) as img:
        return img.size
