"""Placement of imported drawings on the print bed.

A Drawing keeps its polylines in native (viewBox) units together with the
user's placement: translation, scale, rotation and visibility. Bed-space
millimeter polylines are computed on demand from the current placement and
never cached.

Translation anchors the center of the rotated drawing's bounding box, so a
drawing rotates about itself without moving across the bed.
"""

import logging
import math
from dataclasses import dataclass, field, replace
from typing import List, Optional, Tuple

import numpy as np

from .path_processor import Point, Polyline
from .svg import Bounds, ScaleFactor

# Set up logging
logger = logging.getLogger(__name__)

DEFAULT_SCALE = 1.0
DEFAULT_ROTATION = 0.0


@dataclass(frozen=True)
class Placement:
    """User-controlled position of a drawing on the bed."""

    translation: Tuple[float, float] = (0.0, 0.0)  # mm, center of the rotated bounds
    scale: float = DEFAULT_SCALE
    rotation: float = DEFAULT_ROTATION  # degrees
    visible: bool = True

    def to_dict(self) -> dict:
        return {
            "translation": list(self.translation),
            "scale": self.scale,
            "rotation": self.rotation,
            "visible": self.visible,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Placement":
        tx, ty = data.get("translation", (0.0, 0.0))
        return cls(
            translation=(float(tx), float(ty)),
            scale=float(data.get("scale", DEFAULT_SCALE)),
            rotation=float(data.get("rotation", DEFAULT_ROTATION)),
            visible=bool(data.get("visible", True)),
        )


@dataclass(frozen=True)
class Drawing:
    """One imported SVG document and its placement."""

    id: str
    filename: str
    polylines: List[Polyline]
    bounds: Bounds
    scale_factor: Optional[ScaleFactor] = None
    viewbox: Tuple[float, float, float, float] = (0.0, 0.0, 100.0, 100.0)
    placement: Placement = field(default_factory=Placement)

    @property
    def center(self) -> Point:
        """Rotation pivot in native units."""
        return self.bounds.center

    @property
    def mm_scale(self) -> float:
        return self.scale_factor.avg_scale if self.scale_factor else 1.0

    @property
    def size_mm(self) -> Tuple[float, float]:
        """Unscaled size in millimeters."""
        return self.bounds.width * self.mm_scale, self.bounds.height * self.mm_scale

    def with_placement(self, **changes) -> "Drawing":
        return replace(self, placement=replace(self.placement, **changes))

    def transformed_polylines(self) -> List[Polyline]:
        return transform_drawing(self)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "filename": self.filename,
            "polylines": [[list(p) for p in pl] for pl in self.polylines],
            "bounds": self.bounds.to_dict(),
            "scale_factor": self.scale_factor.to_dict() if self.scale_factor else None,
            "viewbox": list(self.viewbox),
            "placement": self.placement.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Drawing":
        return cls(
            id=str(data["id"]),
            filename=str(data.get("filename", "")),
            polylines=[[(float(x), float(y)) for x, y in pl] for pl in data["polylines"]],
            bounds=Bounds.from_dict(data["bounds"]),
            scale_factor=ScaleFactor.from_dict(data.get("scale_factor")),
            viewbox=tuple(float(v) for v in data.get("viewbox", (0.0, 0.0, 100.0, 100.0))),
            placement=Placement.from_dict(data.get("placement", {})),
        )


def transform_drawing(drawing: Drawing) -> List[Polyline]:
    """Convert a drawing's native polylines into bed-space millimeters.

    Points are scaled to millimeters, multiplied by the user scale, rotated
    about the drawing's center (carried through the same scaling), and then
    shifted so that the center of the rotated bounding box sits at the
    placement translation.

    Args:
        drawing: Drawing to transform

    Returns:
        List of polylines in bed millimeters
    """
    polylines = [pl for pl in drawing.polylines if pl]
    if not polylines:
        return []

    placement = drawing.placement
    factor = drawing.mm_scale * placement.scale
    angle = math.radians(placement.rotation)
    cos_a = math.cos(angle)
    sin_a = math.sin(angle)
    rotation = np.array([
        [cos_a, -sin_a],
        [sin_a, cos_a],
    ])

    pivot = np.asarray(drawing.center, dtype=float) * factor
    lengths = [len(pl) for pl in polylines]
    points = np.concatenate([np.asarray(pl, dtype=float) for pl in polylines]) * factor
    rotated = (points - pivot) @ rotation.T + pivot

    finite = rotated[np.isfinite(rotated).all(axis=1)]
    if len(finite):
        rotated_center = (finite.min(axis=0) + finite.max(axis=0)) / 2
    else:
        rotated_center = pivot
    placed = rotated - rotated_center + np.asarray(placement.translation, dtype=float)

    result: List[Polyline] = []
    offset = 0
    for length in lengths:
        chunk = placed[offset:offset + length]
        result.append([(float(x), float(y)) for x, y in chunk])
        offset += length
    return result
