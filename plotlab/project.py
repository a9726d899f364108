"""Project snapshots and settings presets.

A project bundles settings, drawings (native polylines plus placement) and
exclusion zones into one JSON file. Presets are named Settings records kept
together in a YAML file.
"""

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Union

import yaml

from .config import Settings
from .drawing import Drawing
from .exceptions import ProjectFormatError
from .manager import SVGManager
from .zones import ExclusionZone, ExclusionZonesManager

# Set up logging
logger = logging.getLogger(__name__)

PROJECT_VERSION = "1.0.0"
PROJECT_SUFFIX = ".plotlab.json"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ProjectManager:
    """Saves and restores complete PlotLab projects."""

    def __init__(self, svg_manager: SVGManager, zones: ExclusionZonesManager, settings: Settings):
        self.svg_manager = svg_manager
        self.zones = zones
        self.settings = settings

    def create_project(self, name: str) -> dict:
        """Snapshot the current state as plain data."""
        return {
            "version": PROJECT_VERSION,
            "name": name,
            "timestamp": _now(),
            "settings": self.settings.to_dict(),
            "svgs": [drawing.to_dict() for drawing in self.svg_manager],
            "exclusion_zones": [zone.to_dict() for zone in self.zones.get_zones()],
        }

    def save_project(self, file_path: Union[str, Path], name: Optional[str] = None) -> dict:
        """Write a project snapshot to a JSON file.

        Args:
            file_path: Output path
            name: Project name, defaults to the file name

        Returns:
            The saved project data
        """
        path = Path(file_path)
        if name is None:
            name = path.name[:-len(PROJECT_SUFFIX)] if path.name.endswith(PROJECT_SUFFIX) else path.stem
        data = self.create_project(name)

        os.makedirs(path.parent, exist_ok=True)
        with open(path, "w") as f:
            json.dump(data, f, indent=2)

        logger.info(f"Saved project '{name}' to {path}")
        return data

    @staticmethod
    def load_project(file_path: Union[str, Path]) -> dict:
        """Read and check a project file.

        Raises:
            ProjectFormatError: The file is missing, not JSON, or not a project
        """
        path = Path(file_path)
        try:
            with open(path, "r") as f:
                data = json.load(f)
        except OSError as e:
            raise ProjectFormatError(str(path), str(e)) from e
        except json.JSONDecodeError as e:
            raise ProjectFormatError(str(path), f"invalid JSON: {e}") from e

        if not isinstance(data, dict) or not data.get("version") or not isinstance(data.get("svgs"), list):
            raise ProjectFormatError(str(path), "missing version or svgs")
        return data

    def apply_project(self, data: dict) -> None:
        """Replace the current state with a project snapshot.

        Raises:
            ProjectFormatError: A drawing or zone record is malformed
        """
        try:
            settings = Settings.from_dict(data.get("settings") or {})
            drawings = [Drawing.from_dict(item) for item in data["svgs"]]
            zones = [ExclusionZone.from_dict(item) for item in data.get("exclusion_zones", [])]
        except (KeyError, TypeError, ValueError) as e:
            raise ProjectFormatError(data.get("name", "<project>"), f"malformed record: {e}") from e

        self.svg_manager.clear()
        self.zones.clear()
        self.settings = settings
        self.svg_manager.set_bed_size(settings.bed_width, settings.bed_height)
        for drawing in drawings:
            self.svg_manager.restore(drawing)
        for zone in zones:
            self.zones.restore(zone)

        logger.info(f"Applied project '{data.get('name', '')}' with {len(drawings)} drawings "
                    f"and {len(zones)} exclusion zones")


class PresetManager:
    """Named settings presets stored in one YAML file."""

    def __init__(self, file_path: Union[str, Path]):
        self.path = Path(file_path)
        self.presets: Dict[str, dict] = {}
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            with open(self.path, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.error(f"Error loading presets from {self.path}: {e}")
            return
        if isinstance(data, dict):
            self.presets = data

    def _save(self) -> None:
        os.makedirs(self.path.parent, exist_ok=True)
        with open(self.path, "w") as f:
            yaml.safe_dump(self.presets, f, default_flow_style=False, sort_keys=False)

    def save_preset(self, name: str, settings: Settings) -> dict:
        preset = {"name": name, "timestamp": _now(), "settings": settings.to_dict()}
        self.presets[name] = preset
        self._save()
        return preset

    def load_preset(self, name: str) -> Optional[Settings]:
        preset = self.presets.get(name)
        return Settings.from_dict(preset["settings"]) if preset else None

    def delete_preset(self, name: str) -> None:
        if self.presets.pop(name, None) is not None:
            self._save()

    def get_all_presets(self) -> List[dict]:
        return list(self.presets.values())
