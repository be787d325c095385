"""Tests for normalizer.py and the JSON schema behind it.

Covers hard failures on malformed documents, lenient per-hotspot repair
and root inference.
"""
from __future__ import annotations

import json

import pytest

from errors import ValidationError
from models import LinkType, MapNode, UrlTarget
from normalizer import infer_root, normalize_document, normalize_hotspot, parse_raw_document
from schemas import validate_document, validate_hotspot
from utils import dumps_document


def _hs(**overrides):
    base = {"id": "h", "x": 10, "y": 10, "width": 5, "height": 5}
    base.update(overrides)
    return base


# ─────────────────────────────────────────────────────────
# Schema
# ─────────────────────────────────────────────────────────


class TestSchema:
    def test_valid_document(self):
        ok, errors = validate_document({"root": {"imageUrl": "/a.png", "hotspots": []}})
        assert ok and errors == []

    def test_missing_image_url(self):
        ok, errors = validate_document({"root": {"hotspots": []}})
        assert not ok
        assert any("imageUrl" in e for e in errors)

    def test_hotspot_needs_geometry(self):
        ok, errors = validate_hotspot({"id": "h", "x": 1, "y": 1})
        assert not ok

    def test_hotspot_link_type_enum(self):
        ok, _ = validate_hotspot(_hs(linkType="email"))
        assert not ok


# ─────────────────────────────────────────────────────────
# Hard failures
# ─────────────────────────────────────────────────────────


class TestRejectedDocuments:
    @pytest.mark.parametrize("raw", ["{not json", "", "   ", b"\xff\xfe\x00"])
    def test_unparseable(self, raw):
        with pytest.raises(ValidationError):
            normalize_document(raw)

    @pytest.mark.parametrize("raw", [[], {}, 42, None, "[1, 2]"])
    def test_not_a_keyed_mapping(self, raw):
        with pytest.raises(ValidationError, match="non-empty object"):
            normalize_document(raw)

    def test_node_without_image(self):
        with pytest.raises(ValidationError, match="Malformed document"):
            normalize_document({"root": {"hotspots": []}})

    def test_node_not_an_object(self):
        with pytest.raises(ValidationError):
            normalize_document({"root": "image.png"})

    def test_blank_image_url(self):
        with pytest.raises(ValidationError, match="blank"):
            normalize_document({"root": {"imageUrl": "   "}})


# ─────────────────────────────────────────────────────────
# Lenient hotspot repair
# ─────────────────────────────────────────────────────────


class TestNormalizeHotspot:
    def test_non_object_dropped(self):
        hs, warnings = normalize_hotspot("h", "m.hotspots[0]")
        assert hs is None
        assert "m.hotspots[0]" in warnings[0]

    def test_schema_failure_dropped(self):
        hs, warnings = normalize_hotspot({"id": "h", "x": "ten"}, "w")
        assert hs is None
        assert warnings

    def test_link_type_inferred_from_map_id(self):
        hs, warnings = normalize_hotspot(_hs(linkToMapId="B"), "w")
        assert hs.link_type == LinkType.MAP
        assert hs.link_to_map_id == "B"
        assert warnings == []

    def test_link_type_inferred_from_url(self):
        hs, _ = normalize_hotspot(_hs(linkedUrl="https://x.io"), "w")
        assert hs.link_type == LinkType.URL
        assert hs.url_target == UrlTarget.DEFAULT

    def test_legacy_link_key(self):
        hs, _ = normalize_hotspot(_hs(link_to_map_id="B"), "w")
        assert hs.link_to_map_id == "B"

    def test_no_payload_dropped(self):
        hs, warnings = normalize_hotspot(_hs(), "w")
        assert hs is None
        assert "no linkType" in warnings[0]

    def test_declared_map_without_target_dropped(self):
        hs, _ = normalize_hotspot(_hs(linkType="map", linkedUrl="https://x.io"), "w")
        assert hs is None

    def test_declared_url_without_url_dropped(self):
        hs, _ = normalize_hotspot(_hs(linkType="url", linkToMapId="B"), "w")
        assert hs is None

    def test_declared_type_wins_and_other_payload_is_dropped(self):
        hs, _ = normalize_hotspot(_hs(linkType="url", linkedUrl="https://x.io", linkToMapId="B"), "w")
        assert hs.link_type == LinkType.URL
        assert hs.link_to_map_id is None

    def test_unknown_url_target_replaced(self):
        hs, warnings = normalize_hotspot(_hs(linkedUrl="https://x.io", urlTarget="_top"), "w")
        assert hs.url_target == UrlTarget.DEFAULT
        assert "urlTarget" in warnings[0]

    def test_geometry_clamped_with_warning(self):
        hs, warnings = normalize_hotspot(_hs(x=98, width=10, linkToMapId="B"), "w")
        assert hs.x + hs.width <= 100
        assert "clamped" in warnings[0]

    def test_title_stripped(self):
        hs, _ = normalize_hotspot(_hs(linkToMapId="B", title="  Lobby "), "w")
        assert hs.title == "Lobby"
        hs, _ = normalize_hotspot(_hs(linkToMapId="B", title=None), "w")
        assert hs.title is None


# ─────────────────────────────────────────────────────────
# Whole documents
# ─────────────────────────────────────────────────────────


class TestNormalizeDocument:
    def test_bad_hotspots_dropped_not_fatal(self):
        doc = normalize_document({
            "root": {"imageUrl": "/r.png", "hotspots": [_hs(linkToMapId="A"), {"bogus": True}]},
            "A": {"imageUrl": "/a.png"},
        })
        assert len(doc.graph["root"].hotspots) == 1
        assert any("root.hotspots[1]" in w for w in doc.warnings)

    def test_missing_hotspots_key(self):
        doc = normalize_document({"root": {"imageUrl": "/r.png"}})
        assert doc.graph["root"] == MapNode("root", "/r.png")

    def test_dangling_link_warns(self):
        doc = normalize_document({"root": {"imageUrl": "/r.png", "hotspots": [_hs(linkToMapId="ghost")]}})
        assert "root" in doc.graph
        assert any("ghost" in w for w in doc.warnings)

    def test_slash_in_map_id_warns(self):
        doc = normalize_document({"a/b": {"imageUrl": "/r.png"}})
        assert any("'/'" in w for w in doc.warnings)

    def test_accepts_bytes_with_bom(self):
        raw = "\ufeff" + json.dumps({"root": {"imageUrl": "/r.png"}})
        doc = normalize_document(raw.encode("utf-8"))
        assert list(doc.graph) == ["root"]

    def test_export_round_trip(self):
        source = {
            "root": {"imageUrl": "/r.png", "hotspots": [
                _hs(id="h1", title="Go", linkType="map", linkToMapId="A"),
                _hs(id="u1", linkType="url", linkedUrl="https://x.io", urlTarget="self"),
            ]},
            "A": {"imageUrl": "https://cdn.example.com/a.png", "hotspots": []},
        }
        first = normalize_document(source)
        second = normalize_document(dumps_document(first.graph))
        assert second.graph == first.graph
        assert second.warnings == []


class TestInferRoot:
    def test_preferred_root(self):
        doc = normalize_document({"A": {"imageUrl": "/a.png"}, "rootMap": {"imageUrl": "/r.png"}},
                                 preferred_root="rootMap")
        assert doc.root_id == "rootMap"

    def test_missing_preferred_falls_back(self):
        doc = normalize_document({"A": {"imageUrl": "/a.png"}}, preferred_root="rootMap")
        assert doc.root_id == "A"

    def test_first_unreferenced_map(self):
        doc = normalize_document({
            "child": {"imageUrl": "/c.png"},
            "top": {"imageUrl": "/t.png", "hotspots": [_hs(linkToMapId="child")]},
        })
        assert doc.root_id == "top"

    def test_cycle_uses_first_map(self):
        doc = normalize_document({
            "A": {"imageUrl": "/a.png", "hotspots": [_hs(linkToMapId="B")]},
            "B": {"imageUrl": "/b.png", "hotspots": [_hs(linkToMapId="A")]},
        })
        assert doc.root_id == "A"

    def test_empty_graph(self):
        assert infer_root({}) is None


class TestParseRawDocument:
    def test_passes_objects_through(self):
        data = {"root": {}}
        assert parse_raw_document(data) is data

    def test_decodes_text(self):
        assert parse_raw_document('{"a": 1}') == {"a": 1}
