"""
settings.py

Persistent settings management for Mapdraw.

Handles cross-platform settings storage using TOML format with platformdirs
for proper user config directory detection.

Settings file location:
    - Windows: %APPDATA%/mapdraw/settings.toml
    - macOS: ~/Library/Application Support/mapdraw/settings.toml
    - Linux: ~/.config/mapdraw/settings.toml

Default values are documented in comments throughout this file.
If settings.toml is corrupted, these defaults will be used.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import platformdirs

# TOML reading - use tomllib for Python 3.11+, tomli for earlier versions
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

import tomli_w

from geometry import CanvasSize

log = logging.getLogger(__name__)

APP_NAME = "mapdraw"

# Global settings manager instance (singleton)
_settings_manager: Optional["SettingsManager"] = None


def get_settings() -> "SettingsManager":
    """Get the global settings manager instance.

    Returns:
        The singleton SettingsManager instance.
    """
    global _settings_manager
    if _settings_manager is None:
        _settings_manager = SettingsManager()
    return _settings_manager


# =============================================================================
# Section dataclasses
# =============================================================================

@dataclass
class GeneralSettings:
    """General application settings.

    Defaults:
        workspace_dir: "" (~/Documents/Mapdraw)
        last_document: ""
        admin_enabled: True
    """
    workspace_dir: str = ""        # Default: "" (resolved by get_workspace_dir)
    last_document: str = ""        # Default: "" (start with the built-in document)
    admin_enabled: bool = True     # Default: True (edit controls available)


@dataclass
class CanvasSettings:
    """Canonical canvas and drawing settings.

    Hotspot percentages are measured against the canonical canvas, not the
    window, so changing these values rescales every existing hotspot.

    Defaults:
        base_width: 3840
        base_height: 2160
        min_drag_pixels: 1.0
        min_hotspot_percent: 0.1
    """
    base_width: int = 3840              # Default: 3840 pixels
    base_height: int = 2160             # Default: 2160 pixels
    min_drag_pixels: float = 1.0        # Default: 1.0 screen pixel
    min_hotspot_percent: float = 0.1    # Default: 0.1% of the canvas

    def size(self) -> CanvasSize:
        return CanvasSize(float(self.base_width), float(self.base_height))


@dataclass
class ZoomSettings:
    """Zoom behavior settings.

    Defaults:
        min_scale: 0.3
        max_scale: 9.0
        step: 0.5
        wheel_factor: 1.15
    """
    min_scale: float = 0.3       # Default: 0.3
    max_scale: float = 9.0       # Default: 9.0
    step: float = 0.5            # Default: 0.5 (added/removed per zoom button press)
    wheel_factor: float = 1.15   # Default: 1.15 (15% per scroll step)


@dataclass
class NavigationSettings:
    """Navigation settings.

    Defaults:
        root_map_id: "rootMap"
    """
    root_map_id: str = "rootMap"  # Default: "rootMap"


@dataclass
class ExportSettings:
    """Document export settings.

    Defaults:
        filename: "map-data.json"
        indent: 2
    """
    filename: str = "map-data.json"  # Default: "map-data.json"
    indent: int = 2                  # Default: 2 spaces


# =============================================================================
# Main App Settings
# =============================================================================

@dataclass
class AppSettings:
    """Application settings with default values.

    Attributes:
        general: Workspace, last document and admin switch.
        canvas: Canonical canvas size and drawing thresholds.
        zoom: Zoom limits and steps.
        navigation: Root map id.
        export: Export file name and formatting.
    """
    general: GeneralSettings = field(default_factory=GeneralSettings)
    canvas: CanvasSettings = field(default_factory=CanvasSettings)
    zoom: ZoomSettings = field(default_factory=ZoomSettings)
    navigation: NavigationSettings = field(default_factory=NavigationSettings)
    export: ExportSettings = field(default_factory=ExportSettings)


# =============================================================================
# Settings Manager
# =============================================================================

class SettingsManager:
    """Manages loading, saving, and accessing application settings.

    Settings are stored in a TOML file at the platform-appropriate location.
    If the settings file doesn't exist, defaults are used and the file is
    created on first save.

    Args:
        app_name: Application name used for the config directory.
        settings_dir: Explicit directory, overriding the platform location.
    """

    def __init__(self, app_name: str = APP_NAME, settings_dir: Optional[Union[str, Path]] = None):
        if settings_dir is None:
            self.settings_dir = Path(platformdirs.user_config_dir(app_name))
        else:
            self.settings_dir = Path(settings_dir)
        self.settings_file = self.settings_dir / "settings.toml"
        self.settings = self.load()
        self._needs_save = not self.settings_file.exists()  # Save if file didn't exist

    def ensure_file_complete(self) -> None:
        """Ensure settings file exists with all sections. Call once at startup."""
        if self._needs_save or not self.settings_file.exists():
            self.save()
            self._needs_save = False

    def load(self) -> AppSettings:
        """Load settings from the TOML file.

        Returns:
            AppSettings instance with values from file or defaults if file
            doesn't exist or is invalid.
        """
        if not self.settings_file.exists():
            return AppSettings()

        try:
            with open(self.settings_file, "rb") as f:
                data = tomllib.load(f)

            return self._parse_toml(data)
        except (OSError, tomllib.TOMLDecodeError, AttributeError, TypeError, ValueError) as e:
            # If file is corrupted or invalid, return defaults
            log.warning("Ignoring unreadable settings file %s: %s", self.settings_file, e)
            return AppSettings()

    def _parse_toml(self, data: Dict[str, Any]) -> AppSettings:
        """Parse TOML data into AppSettings.

        Args:
            data: Parsed TOML dictionary.

        Returns:
            AppSettings instance populated from TOML data.
        """
        settings = AppSettings()

        # General section
        general = data.get("general", {})
        settings.general.workspace_dir = general.get("workspace_dir", settings.general.workspace_dir)
        settings.general.last_document = general.get("last_document", settings.general.last_document)
        settings.general.admin_enabled = bool(general.get("admin_enabled", settings.general.admin_enabled))

        # Canvas section
        canvas = data.get("canvas", {})
        settings.canvas.base_width = int(canvas.get("base_width", settings.canvas.base_width))
        settings.canvas.base_height = int(canvas.get("base_height", settings.canvas.base_height))
        settings.canvas.min_drag_pixels = float(canvas.get("min_drag_pixels", settings.canvas.min_drag_pixels))
        settings.canvas.min_hotspot_percent = float(canvas.get("min_hotspot_percent", settings.canvas.min_hotspot_percent))
        if settings.canvas.base_width <= 0 or settings.canvas.base_height <= 0:
            log.warning("Non-positive canvas size in settings, using defaults")
            settings.canvas.base_width = CanvasSettings.base_width
            settings.canvas.base_height = CanvasSettings.base_height

        # Zoom section
        zoom = data.get("zoom", {})
        settings.zoom.min_scale = float(zoom.get("min_scale", settings.zoom.min_scale))
        settings.zoom.max_scale = float(zoom.get("max_scale", settings.zoom.max_scale))
        settings.zoom.step = float(zoom.get("step", settings.zoom.step))
        settings.zoom.wheel_factor = float(zoom.get("wheel_factor", settings.zoom.wheel_factor))
        if not 0 < settings.zoom.min_scale <= settings.zoom.max_scale:
            log.warning("Invalid zoom limits in settings, using defaults")
            settings.zoom.min_scale = ZoomSettings.min_scale
            settings.zoom.max_scale = ZoomSettings.max_scale

        # Navigation section
        navigation = data.get("navigation", {})
        settings.navigation.root_map_id = navigation.get("root_map_id", settings.navigation.root_map_id)

        # Export section
        export = data.get("export", {})
        settings.export.filename = export.get("filename", settings.export.filename)
        settings.export.indent = int(export.get("indent", settings.export.indent))

        return settings

    def save(self) -> None:
        """Save current settings to the TOML file.

        Creates the settings directory if it doesn't exist.
        """
        # Ensure directory exists
        self.settings_dir.mkdir(parents=True, exist_ok=True)

        # Convert settings to TOML structure
        data = self._to_toml_dict()

        with open(self.settings_file, "wb") as f:
            tomli_w.dump(data, f)

    def _to_toml_dict(self) -> Dict[str, Any]:
        """Convert settings to a TOML-compatible dictionary structure.

        Returns:
            Dictionary organized by TOML sections.
        """
        s = self.settings
        return {
            "general": {
                "workspace_dir": s.general.workspace_dir,
                "last_document": s.general.last_document,
                "admin_enabled": s.general.admin_enabled,
            },
            "canvas": {
                "base_width": s.canvas.base_width,
                "base_height": s.canvas.base_height,
                "min_drag_pixels": s.canvas.min_drag_pixels,
                "min_hotspot_percent": s.canvas.min_hotspot_percent,
            },
            "zoom": {
                "min_scale": s.zoom.min_scale,
                "max_scale": s.zoom.max_scale,
                "step": s.zoom.step,
                "wheel_factor": s.zoom.wheel_factor,
            },
            "navigation": {
                "root_map_id": s.navigation.root_map_id,
            },
            "export": {
                "filename": s.export.filename,
                "indent": s.export.indent,
            },
        }

    def to_toml(self) -> str:
        """Convert current settings to a TOML-formatted string.

        Returns:
            TOML representation of the current settings.
        """
        data = self._to_toml_dict()
        return tomli_w.dumps(data)

    def get_workspace_dir(self) -> Path:
        """Get the resolved workspace directory path.

        Returns:
            Path to workspace directory. Falls back to ~/Documents/Mapdraw
            if workspace_dir setting is empty.
        """
        if self.settings.general.workspace_dir:
            return Path(self.settings.general.workspace_dir)
        return Path.home() / "Documents" / "Mapdraw"

    def get_settings_path(self) -> Path:
        """Get the path to the settings file.

        Returns:
            Path object pointing to the settings file location.
        """
        return self.settings_file
