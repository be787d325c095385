"""Tests for graph_store.py: hotspot add/update/delete, orphan cleanup and
the GraphStore change notifications.
"""
from __future__ import annotations

import pytest

import graph_store
from errors import DuplicateIdError, ErrorKind, NotFoundError, ValidationError
from geometry import PercentRect
from graph_store import GraphStore, find_orphans, references_to
from models import Hotspot, LinkType, MapNode, UrlTarget
from normalizer import normalize_document
from utils import dumps_document

RECT = PercentRect(10, 10, 20, 20)


def _graph():
    """root -> A (h1), A -> B (h2), root has a URL hotspot too."""
    return {
        "root": MapNode("root", "/images/root.png", (
            Hotspot.map_link("h1", RECT, "A"),
            Hotspot.url_link("u1", RECT, "https://example.com"),
        )),
        "A": MapNode("A", "/images/a.png", (Hotspot.map_link("h2", RECT, "B"),)),
        "B": MapNode("B", "/images/b.png"),
    }


@pytest.fixture()
def store():
    return GraphStore(_graph(), root_id="root")


# ─────────────────────────────────────────────────────────
# Lookups
# ─────────────────────────────────────────────────────────


class TestLookups:
    def test_get_node_missing(self):
        with pytest.raises(NotFoundError):
            graph_store.get_node(_graph(), "nope")

    def test_get_hotspot_missing(self):
        with pytest.raises(NotFoundError):
            graph_store.get_hotspot(_graph(), "root", "nope")

    def test_references_to(self):
        assert references_to(_graph(), "A") == [("root", "h1")]
        assert references_to(_graph(), "root") == []

    def test_find_orphans(self):
        g = _graph()
        g["lonely"] = MapNode("lonely", "/images/l.png")
        assert find_orphans(g, "root") == {"lonely"}

    def test_find_orphans_handles_cycles(self):
        g = _graph()
        g["B"] = MapNode("B", "/images/b.png", (Hotspot.map_link("back", RECT, "root"),))
        assert find_orphans(g, "root") == set()


# ─────────────────────────────────────────────────────────
# Add
# ─────────────────────────────────────────────────────────


class TestAddHotspot:
    def test_map_link_creates_map(self, store):
        hs = Hotspot.map_link("h3", RECT, "C")
        result = store.add_hotspot_and_linked_map("B", hs, "/images/c.png")
        assert result.ok
        assert store.graph["B"].hotspots == (hs,)
        assert store.graph["C"] == MapNode("C", "/images/c.png")

    def test_url_link_creates_no_map(self, store):
        before = set(store.graph)
        hs = Hotspot.url_link("u2", RECT, "https://example.org", UrlTarget.SELF)
        assert store.add_hotspot_and_linked_map("A", hs).ok
        assert set(store.graph) == before
        assert store.graph["A"].hotspots[-1] == hs

    def test_duplicate_map_id_rejected_without_mutation(self, store):
        original = store.graph
        version = store.version
        result = store.add_hotspot_and_linked_map("B", Hotspot.map_link("h3", RECT, "A"), "/images/x.png")
        assert not result.ok
        assert result.kind == ErrorKind.DUPLICATE_ID
        assert "already exists" in result.error
        assert store.graph is original
        assert store.version == version

    def test_invalid_image_url(self, store):
        result = store.add_hotspot_and_linked_map("B", Hotspot.map_link("h3", RECT, "C"), "images/c.png")
        assert not result.ok
        assert result.kind == ErrorKind.VALIDATION
        assert "C" not in store.graph

    def test_missing_image_url(self, store):
        result = store.add_hotspot_and_linked_map("B", Hotspot.map_link("h3", RECT, "C"), "   ")
        assert not result.ok
        assert result.kind == ErrorKind.VALIDATION

    def test_unknown_target_map(self, store):
        result = store.add_hotspot_and_linked_map("Z", Hotspot.url_link("u", RECT, "https://x.io"))
        assert result.kind == ErrorKind.NOT_FOUND

    def test_pure_function_leaves_input_untouched(self):
        g = _graph()
        snapshot = dict(g)
        graph_store.add_hotspot_and_linked_map(g, "B", Hotspot.map_link("h3", RECT, "C"), "/images/c.png")
        assert g == snapshot

    def test_pure_duplicate_raises(self):
        with pytest.raises(DuplicateIdError):
            graph_store.add_hotspot_and_linked_map(_graph(), "B", Hotspot.map_link("h", RECT, "root"), "/x.png")

    def test_geometry_clamped_and_title_stripped(self, store):
        hs = Hotspot.url_link("u2", PercentRect(90, 0, 50, 10), "https://example.org", title=" t ")
        assert store.add_hotspot_and_linked_map("A", hs).ok
        stored = store.graph["A"].find_hotspot("u2")
        assert stored.x == 90
        assert stored.width == pytest.approx(10)
        assert stored.title == "t"

    def test_blank_title_dropped(self, store):
        hs = Hotspot.map_link("h3", RECT, "C", title="   ")
        assert store.add_hotspot_and_linked_map("B", hs, "/images/c.png").ok
        assert store.graph["B"].find_hotspot("h3").title is None

    def test_added_graph_survives_reload(self, store):
        store.add_hotspot_and_linked_map(
            "A", Hotspot.url_link("u2", PercentRect(90, 95, 50, 50), "https://example.org", title=" t "),
        )
        store.add_hotspot_and_linked_map(
            "B", Hotspot.map_link("h3", PercentRect(-5, 10, 20, 0), "C", title="Cellar "), "/images/c.png",
        )
        again = normalize_document(dumps_document(store.graph))
        assert again.graph == store.graph

    def test_path_like_map_id_rejected(self, store):
        result = store.add_hotspot_and_linked_map("B", Hotspot.map_link("h3", RECT, "x/y"), "/images/c.png")
        assert result.kind == ErrorKind.VALIDATION
        assert "x/y" not in store.graph

    def test_bad_linked_url_rejected(self, store):
        result = store.add_hotspot_and_linked_map("A", Hotspot.url_link("u2", RECT, "not a url"))
        assert result.kind == ErrorKind.VALIDATION
        assert store.graph["A"].find_hotspot("u2") is None

    def test_non_text_title_rejected(self, store):
        hs = Hotspot.url_link("u2", RECT, "https://example.org", title=5)
        assert store.add_hotspot_and_linked_map("A", hs).kind == ErrorKind.VALIDATION


# ─────────────────────────────────────────────────────────
# Update
# ─────────────────────────────────────────────────────────


class TestUpdateHotspot:
    def test_title_is_stripped(self, store):
        assert store.update_hotspot("root", "h1", {"title": "  Hall  "}).ok
        assert store.graph["root"].find_hotspot("h1").title == "Hall"

    def test_blank_title_clears(self, store):
        store.update_hotspot("root", "h1", {"title": "Hall"})
        store.update_hotspot("root", "h1", {"title": "   "})
        assert store.graph["root"].find_hotspot("h1").title is None

    def test_switch_to_url_clears_map_link(self, store):
        result = store.update_hotspot("root", "h1", {"linkType": "url", "linkedUrl": "https://x.io"})
        assert result.ok
        hs = store.graph["root"].find_hotspot("h1")
        assert hs.link_type == LinkType.URL
        assert hs.link_to_map_id is None
        assert hs.url_target == UrlTarget.DEFAULT

    def test_switch_to_map_clears_url_fields(self, store):
        result = store.update_hotspot("root", "u1", {"linkType": "map", "linkToMapId": "B"})
        assert result.ok
        hs = store.graph["root"].find_hotspot("u1")
        assert hs.link_to_map_id == "B"
        assert hs.linked_url is None and hs.url_target is None

    def test_switch_to_url_without_url_fails(self, store):
        result = store.update_hotspot("root", "h1", {"linkType": "url"})
        assert result.kind == ErrorKind.VALIDATION

    def test_unknown_map_needs_image(self, store):
        result = store.update_hotspot("root", "u1", {"linkType": "map", "linkToMapId": "New"})
        assert result.kind == ErrorKind.NOT_FOUND
        result = store.update_hotspot(
            "root", "u1", {"linkType": "map", "linkToMapId": "New", "newMapImageUrl": "/images/new.png"},
        )
        assert result.ok
        assert store.graph["New"].image_url == "/images/new.png"

    def test_unknown_fields_rejected(self, store):
        result = store.update_hotspot("root", "h1", {"colour": "red"})
        assert result.kind == ErrorKind.VALIDATION
        assert "colour" in result.error

    def test_geometry_is_clamped(self, store):
        assert store.update_hotspot("root", "h1", {"x": 95, "width": 30}).ok
        hs = store.graph["root"].find_hotspot("h1")
        assert hs.x == 95
        assert hs.width == pytest.approx(5)

    def test_non_numeric_geometry(self, store):
        result = store.update_hotspot("root", "h1", {"x": "left"})
        assert result.kind == ErrorKind.VALIDATION

    def test_unknown_url_target(self, store):
        result = store.update_hotspot("root", "u1", {"urlTarget": "popup"})
        assert result.kind == ErrorKind.VALIDATION

    def test_missing_hotspot(self, store):
        assert store.update_hotspot("root", "nope", {"title": "x"}).kind == ErrorKind.NOT_FOUND

    def test_other_hotspots_untouched(self, store):
        before = store.graph["root"].find_hotspot("u1")
        store.update_hotspot("root", "h1", {"title": "Hall"})
        assert store.graph["root"].find_hotspot("u1") is before

    def test_path_like_map_id_rejected(self, store):
        version = store.version
        result = store.update_hotspot(
            "root", "u1", {"linkType": "map", "linkToMapId": "x/y", "newMapImageUrl": "/n.png"},
        )
        assert result.kind == ErrorKind.VALIDATION
        assert "x/y" not in store.graph
        assert store.version == version

    def test_bad_linked_url_rejected(self, store):
        result = store.update_hotspot("root", "u1", {"linkedUrl": "bad url"})
        assert result.kind == ErrorKind.VALIDATION
        assert store.graph["root"].find_hotspot("u1").linked_url == "https://example.com"

    def test_bad_linked_url_on_switch_rejected(self, store):
        result = store.update_hotspot("root", "h1", {"linkType": "url", "linkedUrl": "bad url"})
        assert result.kind == ErrorKind.VALIDATION

    @pytest.mark.parametrize("fields", [
        {"title": 5},
        {"linkToMapId": ["B"]},
        {"linkType": "url", "linkedUrl": 42},
        {"urlTarget": 1},
        {"linkToMapId": "New", "newMapImageUrl": 7},
    ])
    def test_non_text_fields_rejected(self, store, fields):
        hotspot_id = "u1" if "urlTarget" in fields else "h1"
        result = store.update_hotspot("root", hotspot_id, fields)
        assert not result.ok
        assert result.kind == ErrorKind.VALIDATION

    def test_pure_non_text_title_raises(self):
        with pytest.raises(ValidationError):
            graph_store.update_hotspot(_graph(), "root", "h1", {"title": 5})


# ─────────────────────────────────────────────────────────
# Delete
# ─────────────────────────────────────────────────────────


class TestDeleteHotspot:
    def test_orphan_with_single_referrer_removed(self, store):
        assert store.delete_hotspot("A", "h2").ok
        assert "B" not in store.graph
        assert store.graph["A"].hotspots == ()

    def test_target_kept_with_second_referrer(self, store):
        store.add_hotspot_and_linked_map("root", Hotspot.url_link("tmp", RECT, "https://x.io"))
        store.update_hotspot("root", "tmp", {"linkType": "map", "linkToMapId": "B"})
        assert len(references_to(store.graph, "B")) == 2
        assert store.delete_hotspot("A", "h2").ok
        assert "B" in store.graph

    def test_cleanup_is_single_level(self, store):
        # Removing root.h1 orphans A; B loses its only referrer with A but stays
        assert store.delete_hotspot("root", "h1").ok
        assert "A" not in store.graph
        assert "B" in store.graph

    def test_root_is_protected(self, store):
        store.add_hotspot_and_linked_map("B", Hotspot.url_link("tmp", RECT, "https://x.io"))
        store.update_hotspot("B", "tmp", {"linkType": "map", "linkToMapId": "root"})
        assert store.delete_hotspot("B", "tmp").ok
        assert "root" in store.graph

    def test_url_hotspot_delete_keeps_maps(self, store):
        before = set(store.graph)
        assert store.delete_hotspot("root", "u1").ok
        assert set(store.graph) == before

    def test_missing_hotspot_is_warning(self, store):
        version = store.version
        result = store.delete_hotspot("root", "nope")
        assert result.ok
        assert result.warnings
        assert store.version == version

    def test_missing_map_is_error(self, store):
        assert store.delete_hotspot("nope", "h1").kind == ErrorKind.NOT_FOUND


# ─────────────────────────────────────────────────────────
# Map image and whole-document replace
# ─────────────────────────────────────────────────────────


class TestMapImage:
    def test_change_image(self, store):
        assert store.update_map_image("A", " https://cdn.example.com/a.jpg ").ok
        assert store.graph["A"].image_url == "https://cdn.example.com/a.jpg"

    def test_invalid_image(self, store):
        result = store.update_map_image("A", "not a url")
        assert result.kind == ErrorKind.VALIDATION
        assert store.graph["A"].image_url == "/images/a.png"

    def test_pure_missing_map(self):
        with pytest.raises(NotFoundError):
            graph_store.update_map_image(_graph(), "Z", "/x.png")

    def test_pure_blank_image(self):
        with pytest.raises(ValidationError):
            graph_store.update_map_image(_graph(), "A", "")


class TestStoreNotifications:
    def test_listener_receives_version(self, store):
        calls = []
        store.add_listener(lambda g, v, replaced: calls.append((v, replaced)))
        store.update_map_image("A", "/images/a2.png")
        assert calls == [(1, False)]

    def test_replace_flags_listeners(self, store):
        calls = []
        store.add_listener(lambda g, v, replaced: calls.append(replaced))
        assert store.replace_whole_document({"only": {"imageUrl": "/x.png"}}).ok
        assert calls == [True]
        assert store.root_id == "only"

    def test_failed_replace_keeps_graph(self, store):
        original = store.graph
        result = store.replace_whole_document("{not json")
        assert not result.ok
        assert result.kind == ErrorKind.VALIDATION
        assert store.graph is original
        assert store.root_id == "root"

    def test_remove_listener(self, store):
        calls = []
        cb = lambda g, v, r: calls.append(v)  # noqa: E731
        store.add_listener(cb)
        store.remove_listener(cb)
        store.update_map_image("A", "/images/a2.png")
        assert calls == []

    def test_previous_graph_is_unchanged(self, store):
        old = store.graph
        old_root = old["root"]
        store.delete_hotspot("root", "h1")
        assert old["root"] is old_root
        assert "A" in old
        assert len(old_root.hotspots) == 2

    def test_to_document(self, store):
        doc = store.to_document()
        assert doc["B"] == {"imageUrl": "/images/b.png", "hotspots": []}
        assert doc["root"]["hotspots"][0]["linkToMapId"] == "A"
