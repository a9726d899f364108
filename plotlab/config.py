"""Configuration module for PlotLab.

This module handles loading and validating configuration from YAML files,
and flattening it into the Settings record used by G-code generation.
"""

import copy
import logging
import math
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import yaml

from .exceptions import ConfigError

# Set up logging
logger = logging.getLogger(__name__)

# Machine defaults, also used as fallbacks for non-finite settings
DEFAULT_BED_SIZE = 256.0
DEFAULT_PEN_UP_Z = 0.6
DEFAULT_SHEET_HEIGHT = 0.15
DEFAULT_FEED_RATE = 3000.0
DEFAULT_TRAVEL_FEED_RATE = 9000.0
DEFAULT_PEN_OFFSET = (0.0, 0.0, 0.0)


class Config:
    """Configuration handler for PlotLab."""

    # Default configuration values
    DEFAULT_CONFIG = {
        "machine": {
            "bed_width": DEFAULT_BED_SIZE,  # mm
            "bed_height": DEFAULT_BED_SIZE,  # mm
            "pen_up_z": DEFAULT_PEN_UP_Z,  # mm
            "sheet_height": DEFAULT_SHEET_HEIGHT,  # mm
            "pen_offset": {"x": 0.0, "y": 0.0, "z": 0.0},  # mm, pen tip relative to nozzle
            "feed_rate": DEFAULT_FEED_RATE,  # mm/min
            "travel_feed_rate": DEFAULT_TRAVEL_FEED_RATE,  # mm/min
        },
        "gcode": {
            "header_template": "",  # empty uses the built-in header
            "footer_template": "",  # empty uses the built-in footer
            "max_z": 300.0,  # mm, validator warning threshold
            "max_feed_rate": 15000.0,  # mm/min, validator warning threshold
        },
        "svg": {
            "samples_per_unit": 2.0,  # 1.0 for previews
            "flip_y": False,  # y -> viewBox height - y
        },
        "placement": {
            "default_scale": 1.0,
            "default_rotation": 0.0,  # degrees
            "fit_to_bed": False,
            "bed_margin": 0.9,  # fraction of the bed used when fitting
        },
        "optimizer": {
            "enabled": True,
            "two_opt": True,
            "start_point": [0.0, 0.0],  # mm
        },
        "zones": [],  # exclusion zones: {x, y, width, height, name, enabled} in mm
    }

    def __init__(self, config_file: Optional[Union[str, Path]] = None):
        """Initialize configuration.

        Args:
            config_file: Path to YAML configuration file (optional)
        """
        self.config = copy.deepcopy(self.DEFAULT_CONFIG)

        if config_file:
            self.load_config(config_file)

    def load_config(self, config_file: Union[str, Path]) -> bool:
        """Load configuration from YAML file and merge it over the defaults.

        Args:
            config_file: Path to YAML configuration file

        Returns:
            True if config was loaded, False if the file is missing or empty

        Raises:
            ConfigError: The file exists but is not a valid YAML mapping
        """
        config_path = Path(config_file)

        if not config_path.exists():
            logger.error(f"Configuration file not found: {config_path}")
            return False

        try:
            with open(config_path, "r") as f:
                user_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(str(config_path), f"invalid YAML: {e}") from e
        except OSError as e:
            raise ConfigError(str(config_path), str(e)) from e

        if not user_config:
            logger.warning(f"Empty configuration file: {config_path}")
            return False

        if not isinstance(user_config, dict):
            raise ConfigError(str(config_path), "top level must be a mapping")

        self._merge_config(self.config, user_config)
        logger.info(f"Loaded configuration from {config_path}")
        return True

    def _merge_config(self, target: Dict, source: Dict) -> None:
        """Recursively merge source dict into target dict.

        Args:
            target: Target dictionary to merge into
            source: Source dictionary to merge from
        """
        for key, value in source.items():
            if key in target and isinstance(target[key], dict) and isinstance(value, dict):
                self._merge_config(target[key], value)
            else:
                target[key] = value

    def get(self, path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation path.

        Args:
            path: Configuration path (e.g., "machine.bed_width")
            default: Default value if path not found

        Returns:
            Configuration value or default
        """
        value = self.config

        try:
            for part in path.split("."):
                value = value[part]
            return value
        except (KeyError, TypeError):
            return default

    def set(self, path: str, value: Any) -> None:
        """Set configuration value using dot notation path.

        Args:
            path: Configuration path (e.g., "machine.bed_width")
            value: Value to set
        """
        parts = path.split(".")
        config = self.config

        # Navigate to the parent of the target
        for part in parts[:-1]:
            if part not in config or not isinstance(config[part], dict):
                config[part] = {}
            config = config[part]

        config[parts[-1]] = value

    def save(self, config_file: Union[str, Path]) -> bool:
        """Save configuration to YAML file.

        Args:
            config_file: Path to YAML configuration file

        Returns:
            True if config was saved successfully, False otherwise
        """
        config_path = Path(config_file)

        try:
            os.makedirs(config_path.parent, exist_ok=True)

            with open(config_path, "w") as f:
                yaml.safe_dump(self.config, f, default_flow_style=False, sort_keys=False)

            logger.info(f"Saved configuration to {config_path}")
            return True

        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Error saving configuration: {e}")
            return False

    def validate(self) -> bool:
        """Validate configuration.

        Returns:
            True if configuration is valid, False otherwise
        """
        for section in ("machine", "gcode", "svg", "placement", "optimizer"):
            if not isinstance(self.config.get(section), dict):
                logger.error(f"Missing required configuration section: {section}")
                return False

        for key in ("machine.bed_width", "machine.bed_height",
                    "machine.feed_rate", "machine.travel_feed_rate"):
            value = self.get(key)
            if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
                logger.error(f"{key} must be a positive number, got {value!r}")
                return False

        if self.get("svg.samples_per_unit", 0) <= 0:
            logger.error("svg.samples_per_unit must be positive")
            return False

        zones = self.get("zones", [])
        if not isinstance(zones, list):
            logger.error("zones must be a list")
            return False
        for number, zone in enumerate(zones, start=1):
            if not isinstance(zone, dict) or not all(
                    isinstance(zone.get(key), (int, float)) and not isinstance(zone.get(key), bool)
                    for key in ("x", "y", "width", "height")):
                logger.error(f"zones entry {number} needs numeric x, y, width and height")
                return False

        return True


def load_config(config_file: Optional[Union[str, Path]] = None) -> Config:
    """Load configuration from file.

    Args:
        config_file: Path to YAML configuration file (optional)

    Returns:
        Config object
    """
    return Config(config_file)


def _finite(value: Any, default: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


@dataclass
class Settings:
    """Flat machine settings consumed by placement and G-code generation."""

    bed_width: float = DEFAULT_BED_SIZE
    bed_height: float = DEFAULT_BED_SIZE
    pen_up_z: float = DEFAULT_PEN_UP_Z
    sheet_height: float = DEFAULT_SHEET_HEIGHT
    pen_offset: Tuple[float, float, float] = DEFAULT_PEN_OFFSET
    feed_rate: float = DEFAULT_FEED_RATE
    travel_feed_rate: float = DEFAULT_TRAVEL_FEED_RATE
    header_template: str = ""
    footer_template: str = ""

    def sanitized(self) -> "Settings":
        """Copy with every non-finite number replaced by its default."""
        offset = self.pen_offset
        if isinstance(offset, (list, tuple)) and len(offset) == 3:
            offset = tuple(_finite(v, 0.0) for v in offset)
        else:
            offset = DEFAULT_PEN_OFFSET

        return Settings(
            bed_width=_finite(self.bed_width, DEFAULT_BED_SIZE),
            bed_height=_finite(self.bed_height, DEFAULT_BED_SIZE),
            pen_up_z=_finite(self.pen_up_z, DEFAULT_PEN_UP_Z),
            sheet_height=_finite(self.sheet_height, DEFAULT_SHEET_HEIGHT),
            pen_offset=offset,
            feed_rate=_finite(self.feed_rate, DEFAULT_FEED_RATE),
            travel_feed_rate=_finite(self.travel_feed_rate, DEFAULT_TRAVEL_FEED_RATE),
            header_template=self.header_template or "",
            footer_template=self.footer_template or "",
        )

    @classmethod
    def from_config(cls, config: Config) -> "Settings":
        offset = config.get("machine.pen_offset", {}) or {}
        return cls(
            bed_width=config.get("machine.bed_width", DEFAULT_BED_SIZE),
            bed_height=config.get("machine.bed_height", DEFAULT_BED_SIZE),
            pen_up_z=config.get("machine.pen_up_z", DEFAULT_PEN_UP_Z),
            sheet_height=config.get("machine.sheet_height", DEFAULT_SHEET_HEIGHT),
            pen_offset=(offset.get("x", 0.0), offset.get("y", 0.0), offset.get("z", 0.0)),
            feed_rate=config.get("machine.feed_rate", DEFAULT_FEED_RATE),
            travel_feed_rate=config.get("machine.travel_feed_rate", DEFAULT_TRAVEL_FEED_RATE),
            header_template=config.get("gcode.header_template", "") or "",
            footer_template=config.get("gcode.footer_template", "") or "",
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["pen_offset"] = list(self.pen_offset)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Settings":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        if "pen_offset" in known and isinstance(known["pen_offset"], list):
            known["pen_offset"] = tuple(known["pen_offset"])
        return cls(**known)
