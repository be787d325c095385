"""Tests for settings.py: TOML persistence and fallback to defaults."""
from __future__ import annotations

from pathlib import Path

import pytest

from geometry import CanvasSize
from settings import AppSettings, SettingsManager


@pytest.fixture()
def manager(tmp_path):
    return SettingsManager(settings_dir=tmp_path)


class TestDefaults:
    def test_missing_file_gives_defaults(self, manager):
        assert manager.settings == AppSettings()
        assert not manager.get_settings_path().exists()

    def test_ensure_file_complete_writes_file(self, manager):
        manager.ensure_file_complete()
        assert manager.get_settings_path().exists()
        text = manager.get_settings_path().read_text(encoding="utf-8")
        for section in ("[general]", "[canvas]", "[zoom]", "[navigation]", "[export]"):
            assert section in text

    def test_canvas_size(self, manager):
        assert manager.settings.canvas.size() == CanvasSize(3840.0, 2160.0)

    def test_workspace_default(self, manager):
        assert manager.get_workspace_dir() == Path.home() / "Documents" / "Mapdraw"


class TestRoundTrip:
    def test_save_and_reload(self, tmp_path, manager):
        manager.settings.general.admin_enabled = False
        manager.settings.navigation.root_map_id = "campus"
        manager.settings.zoom.step = 0.25
        manager.settings.export.indent = 4
        manager.save()

        reloaded = SettingsManager(settings_dir=tmp_path)
        assert reloaded.settings.general.admin_enabled is False
        assert reloaded.settings.navigation.root_map_id == "campus"
        assert reloaded.settings.zoom.step == 0.25
        assert reloaded.settings.export.indent == 4

    def test_to_toml(self, manager):
        assert 'root_map_id = "rootMap"' in manager.to_toml()


class TestBadFiles:
    def _write(self, tmp_path, text):
        (tmp_path / "settings.toml").write_text(text, encoding="utf-8")
        return SettingsManager(settings_dir=tmp_path)

    def test_corrupt_file(self, tmp_path):
        assert self._write(tmp_path, "this is [not toml").settings == AppSettings()

    def test_wrong_section_type(self, tmp_path):
        assert self._write(tmp_path, 'general = "oops"\n').settings == AppSettings()

    def test_non_numeric_value(self, tmp_path):
        assert self._write(tmp_path, '[canvas]\nbase_width = "wide"\n').settings == AppSettings()

    def test_partial_file_keeps_other_defaults(self, tmp_path):
        m = self._write(tmp_path, "[canvas]\nbase_width = 1920\nbase_height = 1080\n")
        assert m.settings.canvas.size() == CanvasSize(1920.0, 1080.0)
        assert m.settings.zoom.max_scale == 9.0

    def test_invalid_zoom_limits_reset(self, tmp_path):
        m = self._write(tmp_path, "[zoom]\nmin_scale = 5.0\nmax_scale = 2.0\n")
        assert m.settings.zoom.min_scale == 0.3
        assert m.settings.zoom.max_scale == 9.0

    def test_non_positive_canvas_reset(self, tmp_path):
        m = self._write(tmp_path, "[canvas]\nbase_width = 0\n")
        assert m.settings.canvas.base_width == 3840
