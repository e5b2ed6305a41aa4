"""
Configuration service for Retflow.

This module handles loading, saving, and managing application settings.
Configuration is stored as JSON in ~/.config/retflow/config.json following
the XDG Base Directory Specification.
"""

import copy
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from retflow.services.logging_service import get_logger

# Default configuration directory following XDG Base Directory Specification
DEFAULT_CONFIG_DIR = Path.home() / ".config" / "retflow"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.json"

# Default configuration values
DEFAULT_CONFIG: Dict[str, Any] = {
    # Swatches shown in the editor palette
    "preset_colors": ["#FF3C00", "#FFD700", "#FFFFFF", "#0066FF", "#00FF00", "#FF0000"],
    # Representative color when no preset is selected
    "default_color": "#FF3C00",
    # Where the local annotation store keeps its records
    "store_folder": str(Path.home() / ".local" / "share" / "retflow" / "annotations"),
    # Two polygon clicks closer than this finish the shape
    "polygon_finish_gap_ms": 200,
    # JPEG quality of saved thumbnails (0-100)
    "thumbnail_quality": 30,
    "annotation": {
        "fade_in": True,
        "fade_out": True,
        "duration": 3.0,
    },
    "tools": {
        "circle": {
            "radius": 80,
            "outer_color": "#FF3C00",
            "inner_color": "#FFD700",
            "glow": 20,
            "tilt": 0,
            "scale": 1.0,
        },
        "arrow": {
            "color": "#FF3C00",
            "thickness": 7,
            "head_size": 20,
            "dashed": False,
            "arc_height": 50,
            "bend_enabled": True,
            "shadow": True,
            "shadow_color": "#808080",
            "shadow_offset": 10,
            "shadow_blur": 10,
        },
        "polygon": {
            "border_color": "#FF3C00",
            "border_thickness": 3,
            "dashed": False,
            "fill_color": "#FF3C00",
            "fill_opacity": 30,
            "marker_size": 6,
        },
        "spotlight": {
            "beam_size": 90,
            "intensity": 0.8,
            "depth": 0.6,
        },
    },
}


class ConfigService:
    """
    Service for managing application configuration.

    Handles loading, saving, and accessing configuration values.
    Provides sensible defaults when config file is missing or corrupted.
    """

    def __init__(self, config_path: Optional[Path] = None) -> None:
        """
        Initialize the ConfigService.

        Args:
            config_path: Optional path to config file. Defaults to
                        ~/.config/retflow/config.json
        """
        self._logger = get_logger(__name__)
        self._config_path = config_path or DEFAULT_CONFIG_FILE
        self._config: Dict[str, Any] = {}

        self._load()

    def _load(self) -> None:
        """Load configuration from file, using defaults if needed."""
        self._config = self._deep_copy_defaults()

        if not self._config_path.exists():
            self._logger.info(
                f"Config file not found at {self._config_path}. Using defaults."
            )
            self._save_to_file()
            return

        try:
            with open(self._config_path, "r", encoding="utf-8") as f:
                loaded_config = json.load(f)

            if isinstance(loaded_config, dict):
                self._deep_merge(self._config, loaded_config)
                self._logger.info(f"Configuration loaded from {self._config_path}")
                # Save back to ensure any new default keys are persisted
                self._save_to_file()
            else:
                raise ValueError("Config file does not contain a valid JSON object")

        except (json.JSONDecodeError, ValueError) as e:
            self._logger.warning(
                f"Config file corrupted or invalid: {e}. Recreating with defaults."
            )
            self._config = self._deep_copy_defaults()
            self._save_to_file()

        except OSError as e:
            self._logger.warning(
                f"Could not read config file: {e}. Using defaults."
            )

    def _deep_copy_defaults(self) -> Dict[str, Any]:
        """Create a deep copy of default config."""
        return copy.deepcopy(DEFAULT_CONFIG)

    def _deep_merge(self, base: Dict, override: Dict) -> None:
        """Recursively merge override dict into base dict."""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def _save_to_file(self) -> None:
        """Save current configuration to file."""
        try:
            self._config_path.parent.mkdir(parents=True, exist_ok=True)

            with open(self._config_path, "w", encoding="utf-8") as f:
                json.dump(self._config, f, indent=2)

            self._logger.debug(f"Configuration saved to {self._config_path}")

        except OSError as e:
            self._logger.error(f"Could not save config file: {e}")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value.

        Args:
            key: The configuration key to retrieve.
            default: Default value if key doesn't exist.

        Returns:
            The configuration value, or default if not found.
        """
        return self._config.get(key, default)

    # ─── Palette Settings ─────────────────────────────────────────────────

    @property
    def preset_colors(self) -> List[str]:
        """Get the palette swatches."""
        return list(self.get("preset_colors", DEFAULT_CONFIG["preset_colors"]))

    @property
    def default_color(self) -> str:
        """Get the fallback representative color."""
        return self.get("default_color", DEFAULT_CONFIG["default_color"])

    # ─── Storage Settings ─────────────────────────────────────────────────

    @property
    def store_folder(self) -> str:
        """Get the folder used by the local annotation store."""
        return self.get("store_folder", DEFAULT_CONFIG["store_folder"])

    @property
    def thumbnail_quality(self) -> int:
        """Get the JPEG quality for annotation thumbnails."""
        return int(self.get("thumbnail_quality", 30))

    # ─── Interaction Settings ─────────────────────────────────────────────

    @property
    def polygon_finish_gap_ms(self) -> int:
        """Get the click gap that finishes a polygon."""
        return int(self.get("polygon_finish_gap_ms", 200))

    @property
    def annotation_defaults(self) -> Dict[str, Any]:
        """Get the default fade/duration values for new annotations."""
        return dict(self.get("annotation", DEFAULT_CONFIG["annotation"]))

    def tool_defaults(self, tool_name: str) -> Dict[str, Any]:
        """
        Get the default configuration for one tool.

        Args:
            tool_name: One of "circle", "arrow", "polygon", "spotlight".

        Returns:
            A copy of the tool's defaults (empty dict for unknown tools).
        """
        tools = self.get("tools", DEFAULT_CONFIG["tools"])
        return dict(tools.get(tool_name, {}))
