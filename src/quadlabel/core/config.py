"""Configuration management for QuadLabel."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from PyQt6.QtCore import QSize

logger = logging.getLogger(__name__)

# Default configuration file path
DEFAULT_CONFIG_PATH = Path("config.yaml")


@dataclass
class AppConfig:
    """
    Application configuration settings.

    Stores user preferences, detector thresholds and the last session state.
    """

    default_directory: str = ""
    last_image_path: str = ""
    model_path: str = ""
    assets_dir: str = "assets"  # SVG class icons drawn inside quads
    model_input_width: int = 640
    model_input_height: int = 640
    roi_mode: str = "free"  # free, fixed
    confidence: float = 0.25
    iou: float = 0.45
    handle_radius: int = 6  # Corner handle radius in display pixels
    hit_tolerance: float = 1.6  # Multiplier applied to handle_radius for hit tests
    line_thickness: int = 2
    autosave: bool = False
    show_crosshair: bool = True
    show_icons: bool = True

    @property
    def model_input_size(self) -> QSize:
        """Detector input size, invalid when either side is not positive."""
        if self.model_input_width <= 0 or self.model_input_height <= 0:
            return QSize()
        return QSize(self.model_input_width, self.model_input_height)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary for serialization."""
        return {
            "defaultDirectory": self.default_directory,
            "lastImagePath": self.last_image_path,
            "modelPath": self.model_path,
            "assetsDir": self.assets_dir,
            "modelInputWidth": self.model_input_width,
            "modelInputHeight": self.model_input_height,
            "roiMode": self.roi_mode,
            "confidence": self.confidence,
            "iou": self.iou,
            "handleRadius": self.handle_radius,
            "hitTolerance": self.hit_tolerance,
            "lineThickness": self.line_thickness,
            "autosave": self.autosave,
            "showCrosshair": self.show_crosshair,
            "showIcons": self.show_icons,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> AppConfig:
        """Create config from dictionary."""
        return cls(
            default_directory=data.get("defaultDirectory", ""),
            last_image_path=data.get("lastImagePath", ""),
            model_path=data.get("modelPath", ""),
            assets_dir=data.get("assetsDir", "assets"),
            model_input_width=data.get("modelInputWidth", 640),
            model_input_height=data.get("modelInputHeight", 640),
            roi_mode=data.get("roiMode", "free"),
            confidence=data.get("confidence", 0.25),
            iou=data.get("iou", 0.45),
            handle_radius=data.get("handleRadius", 6),
            hit_tolerance=data.get("hitTolerance", 1.6),
            line_thickness=data.get("lineThickness", 2),
            autosave=data.get("autosave", False),
            show_crosshair=data.get("showCrosshair", True),
            show_icons=data.get("showIcons", True),
        )


class ConfigManager:
    """
    Manager for loading and saving application configuration.

    Handles YAML serialization and provides a clean interface
    for configuration access.
    """

    def __init__(self, config_path: Path = DEFAULT_CONFIG_PATH) -> None:
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to the configuration file
        """
        self.config_path = Path(config_path)
        self._config: Optional[AppConfig] = None

    @property
    def config(self) -> AppConfig:
        """Get the current configuration, loading if necessary."""
        if self._config is None:
            self._config = self.load()
        return self._config

    def load(self) -> AppConfig:
        """
        Load configuration from file.

        Returns:
            AppConfig instance with loaded or default values
        """
        if not self.config_path.exists():
            logger.info(f"Config file not found at {self.config_path}, using defaults")
            return AppConfig()

        try:
            with open(self.config_path, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.error(f"Error parsing config file: {e}")
            return AppConfig()
        except OSError as e:
            logger.error(f"Error loading config: {e}")
            return AppConfig()

        if not isinstance(data, dict):
            logger.error(f"Config file {self.config_path} is not a mapping, using defaults")
            return AppConfig()

        logger.info(f"Loaded configuration from {self.config_path}")
        return AppConfig.from_dict(data)

    def save(self, config: Optional[AppConfig] = None) -> bool:
        """
        Save configuration to file.

        Args:
            config: Configuration to save, or use current config

        Returns:
            True if save was successful
        """
        if config is not None:
            self._config = config

        if self._config is None:
            logger.warning("No configuration to save")
            return False

        try:
            with open(self.config_path, "w") as f:
                yaml.dump(self._config.to_dict(), f, default_flow_style=False)
            logger.info(f"Saved configuration to {self.config_path}")
            return True
        except OSError as e:
            logger.error(f"Error saving config: {e}")
            return False

    def update(self, **kwargs: Any) -> None:
        """
        Update configuration with new values.

        Args:
            **kwargs: Key-value pairs to update
        """
        config = self.config
        for key, value in kwargs.items():
            if hasattr(config, key):
                setattr(config, key, value)
            else:
                logger.warning(f"Unknown config key: {key}")
        self.save()
