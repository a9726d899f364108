"""Exclusion zones and bed safety checks.

Exclusion zones are axis-aligned rectangles on the bed that the pen should
stay out of (clips, bed features). They are only checked, never used to
clip paths.
"""

import logging
import math
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Sequence

from .path_processor import Polyline

# Set up logging
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExclusionZone:
    """Rectangular no-draw area in bed millimeters."""

    id: str
    name: str
    x: float
    y: float
    width: float
    height: float
    enabled: bool = True

    def contains(self, x: float, y: float) -> bool:
        """Edges count as inside."""
        return self.x <= x <= self.x + self.width and self.y <= y <= self.y + self.height

    def to_dict(self) -> dict:
        return vars(self).copy()

    @classmethod
    def from_dict(cls, data: dict) -> "ExclusionZone":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            x=float(data["x"]),
            y=float(data["y"]),
            width=float(data["width"]),
            height=float(data["height"]),
            enabled=bool(data.get("enabled", True)),
        )


class ExclusionZonesManager:
    """Manages exclusion zones on the print bed."""

    def __init__(self):
        self._zones: List[ExclusionZone] = []
        self._index: Dict[str, int] = {}
        self._next_id = 1

    @classmethod
    def from_list(cls, entries: Optional[Iterable[dict]]) -> "ExclusionZonesManager":
        """Build zones from plain mappings, as listed in the configuration.

        Args:
            entries: Mappings with x, y, width, height and optional name
                and enabled keys

        Returns:
            A manager holding one zone per entry, in order
        """
        zones = cls()
        for entry in entries or []:
            zone_id = zones.add_zone(entry["x"], entry["y"], entry["width"], entry["height"],
                                     name=str(entry.get("name", "")))
            if not entry.get("enabled", True):
                zones.toggle_zone(zone_id)
        return zones

    def __len__(self) -> int:
        return len(self._zones)

    def __iter__(self):
        return iter(list(self._zones))

    def get(self, zone_id: str) -> Optional[ExclusionZone]:
        index = self._index.get(zone_id)
        return self._zones[index] if index is not None else None

    def add_zone(self, x: float, y: float, width: float, height: float, name: str = "") -> str:
        """Add a new enabled zone.

        Args:
            x, y: Corner position in mm
            width, height: Size in mm
            name: Zone name, defaults to "Zone N"

        Returns:
            Generated zone id
        """
        number = self._next_id
        self._next_id += 1
        zone_id = f"zone_{number}"
        zone = ExclusionZone(zone_id, name or f"Zone {number}", float(x), float(y), float(width), float(height))
        self._zones.append(zone)
        self._index[zone_id] = len(self._zones) - 1
        return zone_id

    def restore(self, zone: ExclusionZone) -> str:
        """Insert a previously serialized zone, keeping its id when free."""
        zone_id = zone.id
        if zone_id in self._index:
            zone_id = f"zone_{self._next_id}"
            zone = replace(zone, id=zone_id)
        number = zone_id.rsplit("_", 1)[-1]
        if number.isdigit():
            self._next_id = max(self._next_id, int(number) + 1)
        self._zones.append(zone)
        self._index[zone_id] = len(self._zones) - 1
        return zone_id

    def remove_zone(self, zone_id: str) -> None:
        if zone_id not in self._index:
            return
        del self._zones[self._index[zone_id]]
        self._index = {z.id: i for i, z in enumerate(self._zones)}

    def update_zone(self, zone_id: str, x: float, y: float, width: float, height: float) -> None:
        zone = self.get(zone_id)
        if zone is not None:
            self._zones[self._index[zone_id]] = replace(
                zone, x=float(x), y=float(y), width=float(width), height=float(height)
            )

    def toggle_zone(self, zone_id: str) -> None:
        zone = self.get(zone_id)
        if zone is not None:
            self._zones[self._index[zone_id]] = replace(zone, enabled=not zone.enabled)

    def is_point_in_any_zone(self, x: float, y: float) -> bool:
        return any(zone.enabled and zone.contains(x, y) for zone in self._zones)

    def get_zones(self) -> List[ExclusionZone]:
        return list(self._zones)

    def clear(self) -> None:
        self._zones = []
        self._index = {}


def safety_warnings(polylines: Iterable[Polyline], bed_width: float, bed_height: float,
                    pen_offset: Sequence[float] = (0.0, 0.0, 0.0),
                    zones: Optional[ExclusionZonesManager] = None) -> List[str]:
    """Check bed-space polylines against the bed and exclusion zones.

    The pen offset is added to each point before checking, matching what
    the pen tip reaches.

    Args:
        polylines: Polylines in bed millimeters
        bed_width: Bed width in mm
        bed_height: Bed height in mm
        pen_offset: (x, y, z) pen offset in mm
        zones: Exclusion zones to check, if any

    Returns:
        Human-readable warnings; empty when everything is in range
    """
    offset_x, offset_y = pen_offset[0], pen_offset[1]
    out_of_bounds = 0
    zone_hits = 0

    for polyline in polylines:
        for px, py in polyline:
            x = px + offset_x
            y = py + offset_y
            if math.isnan(x) or math.isnan(y):
                return ["Some points contain invalid coordinates (NaN). Check SVG import and transforms."]
            if x < 0 or y < 0 or x > bed_width or y > bed_height:
                out_of_bounds += 1
            if zones is not None and zones.is_point_in_any_zone(x, y):
                zone_hits += 1

    warnings = []
    if out_of_bounds:
        warnings.append(f"Found {out_of_bounds} point(s) outside the bed ({bed_width:g}x{bed_height:g}mm).")
    if zone_hits:
        warnings.append(f"Found {zone_hits} point(s) inside exclusion zones.")
    for warning in warnings:
        logger.warning(warning)
    return warnings
