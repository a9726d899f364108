"""SVG parsing module for PlotLab.

This module parses SVG documents, samples every drawable element into
polylines, resolves element transforms, and works out the document's
native extent and its physical scale. Output coordinates are in native
(viewBox) units, relative to the viewBox origin.
"""

import logging
import math
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Tuple, Union

from lxml import etree

from .exceptions import ElementSkipped, SVGParseError
from .path_processor import QUALITY_SAMPLE_RATE, Polyline, sample_path
from .transforms import apply_transform, resolve_transform

# Set up logging
logger = logging.getLogger(__name__)

# Unit conversion factors to millimeters
UNIT_CONVERSIONS = {
    "mm": 1.0,
    "cm": 10.0,
    "m": 1000.0,
    "in": 25.4,
    "pt": 0.352778,
    "pc": 4.23333,
    "px": 0.264583,  # 96 DPI
    "": 0.264583,  # unitless lengths are px
}

# Extent used when nothing else describes the document
DEFAULT_EXTENT = (0.0, 0.0, 100.0, 100.0)

# Minimum segments for circle and ellipse sampling
ARC_MIN_SEGMENTS = 32

# Stroke merging thresholds (native units, degrees)
MERGE_MAX_GAP = 0.1
MERGE_MIN_ANGLE_DEG = 160.0

DRAWABLE_TAGS = {"path", "line", "polyline", "polygon", "circle", "ellipse", "rect"}

# Containers whose children are never drawn directly
NON_RENDERED_TAGS = {"defs", "clipPath", "mask", "symbol", "marker", "pattern", "metadata"}

NUMBER_RE = re.compile(r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")
LENGTH_RE = re.compile(r"^\s*([-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)\s*([a-zA-Z%]*)\s*$")
POINTS_RE = re.compile(r"^[\d\s,.eE+-]*$")


@dataclass
class Bounds:
    """Axis-aligned bounding box."""

    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def center(self) -> Tuple[float, float]:
        return ((self.min_x + self.max_x) / 2, (self.min_y + self.max_y) / 2)

    def to_dict(self) -> dict:
        return {
            "min_x": self.min_x,
            "min_y": self.min_y,
            "max_x": self.max_x,
            "max_y": self.max_y,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Bounds":
        return cls(
            float(data["min_x"]), float(data["min_y"]),
            float(data["max_x"]), float(data["max_y"]),
        )


@dataclass
class PhysicalDimensions:
    """Declared physical size of a document."""

    width_mm: float
    height_mm: float
    width_unit: str
    height_unit: str
    width_value: float
    height_value: float


@dataclass
class ScaleFactor:
    """Millimeters per native (viewBox) unit."""

    scale_x: float
    scale_y: float
    avg_scale: float
    physical: PhysicalDimensions

    def to_dict(self) -> dict:
        return {
            "scale_x": self.scale_x,
            "scale_y": self.scale_y,
            "avg_scale": self.avg_scale,
            "physical": vars(self.physical).copy(),
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional["ScaleFactor"]:
        if not data:
            return None
        return cls(
            float(data["scale_x"]),
            float(data["scale_y"]),
            float(data["avg_scale"]),
            PhysicalDimensions(**data["physical"]),
        )


@dataclass
class SVGLoadResult:
    """Polylines and metadata extracted from one SVG document."""

    polylines: List[Polyline]
    bounds: Bounds
    viewbox: Tuple[float, float, float, float]
    scale_factor: Optional[ScaleFactor]
    stroke_count: int = 0
    polygon_count: int = 0

    @property
    def physical(self) -> Optional[PhysicalDimensions]:
        return self.scale_factor.physical if self.scale_factor else None

    @property
    def mm_scale(self) -> float:
        return self.scale_factor.avg_scale if self.scale_factor else 1.0


# -------------------------
# Lengths and numbers
# -------------------------
def parse_length(value: Optional[str]) -> Tuple[float, str]:
    """Parse a length with an optional unit (e.g. "10mm", "2.5in").

    Args:
        value: Length string

    Returns:
        (value, unit) tuple; unparseable input gives (0.0, "px")
    """
    if not value:
        return 0.0, "px"
    match = LENGTH_RE.match(str(value))
    if not match:
        return 0.0, "px"
    return float(match.group(1)), match.group(2) or "px"


def convert_to_mm(value: float, unit: str) -> float:
    """Convert a length to millimeters, treating unknown units as px."""
    factor = UNIT_CONVERSIONS.get(unit, UNIT_CONVERSIONS["px"])
    return value * factor


def _number(value: Optional[str], default: float = 0.0) -> float:
    """Read the leading number of an attribute value."""
    if value is None:
        return default
    match = NUMBER_RE.match(value.strip())
    if not match:
        return default
    return float(match.group(0))


def _local_name(element) -> str:
    return etree.QName(element).localname


# -------------------------
# Bounds and merging
# -------------------------
def calculate_bounds(polylines: List[Polyline], default_width: float = 100.0,
                     default_height: float = 100.0) -> Bounds:
    """Calculate the bounding box of all finite points.

    Args:
        polylines: Polylines to measure
        default_width: Width used when there are no finite points
        default_height: Height used when there are no finite points

    Returns:
        Bounds of the points, or (0, 0, default_width, default_height)
    """
    min_x = min_y = math.inf
    max_x = max_y = -math.inf

    for polyline in polylines:
        for x, y in polyline:
            if not (math.isfinite(x) and math.isfinite(y)):
                continue
            min_x = min(min_x, x)
            min_y = min(min_y, y)
            max_x = max(max_x, x)
            max_y = max(max_y, y)

    if min_x == math.inf:
        return Bounds(0.0, 0.0, default_width, default_height)

    return Bounds(min_x, min_y, max_x, max_y)


def _direction(stroke: Polyline) -> Optional[Tuple[float, float]]:
    dx = stroke[-1][0] - stroke[0][0]
    dy = stroke[-1][1] - stroke[0][1]
    length = math.hypot(dx, dy)
    if length < 0.001:
        return None
    return dx / length, dy / length


def _angle_between(v1: Optional[Tuple[float, float]], v2: Optional[Tuple[float, float]]) -> float:
    if v1 is None or v2 is None:
        return 0.0
    dot = max(-1.0, min(1.0, v1[0] * v2[0] + v1[1] * v2[1]))
    return math.degrees(math.acos(dot))


def merge_continuous_strokes(strokes: List[Polyline], max_gap: float = MERGE_MAX_GAP,
                             min_angle_deg: float = MERGE_MIN_ANGLE_DEG) -> List[Polyline]:
    """Join consecutive strokes that continue each other.

    Stroke B is appended to the running stroke A when B starts within
    ``max_gap`` of A's end and their overall directions differ by at most
    ``180 - min_angle_deg`` degrees. Strokes too short to have a direction
    count as aligned.

    Args:
        strokes: Strokes in document order
        max_gap: Largest end-to-start gap that still merges
        min_angle_deg: Minimum angle at the joint, 180 meaning straight on

    Returns:
        Merged strokes
    """
    if len(strokes) <= 1:
        return [list(s) for s in strokes]

    merged: List[Polyline] = []
    current = list(strokes[0])

    for next_stroke in strokes[1:]:
        if len(current) < 2 or len(next_stroke) < 2:
            merged.append(current)
            current = list(next_stroke)
            continue

        end_x, end_y = current[-1]
        start_x, start_y = next_stroke[0]
        gap = math.hypot(end_x - start_x, end_y - start_y)
        if gap > max_gap:
            merged.append(current)
            current = list(next_stroke)
            continue

        angle = _angle_between(_direction(current), _direction(next_stroke))
        if angle <= 180 - min_angle_deg:
            current.extend(next_stroke[1:] if gap < 0.01 else next_stroke)
        else:
            merged.append(current)
            current = list(next_stroke)

    merged.append(current)
    return merged


def _is_degenerate(polyline: Polyline) -> bool:
    if len(polyline) < 2:
        return True
    first = polyline[0]
    return all(point == first for point in polyline[1:])


# -------------------------
# Shape sampling
# -------------------------
def _sample_ring(cx: float, cy: float, rx: float, ry: float, samples_per_unit: float) -> Polyline:
    segments = max(
        ARC_MIN_SEGMENTS,
        math.ceil(max(rx, ry) * samples_per_unit * 2 * math.pi / ARC_MIN_SEGMENTS),
    )
    return [
        (cx + rx * math.cos(2 * math.pi * i / segments), cy + ry * math.sin(2 * math.pi * i / segments))
        for i in range(segments + 1)
    ]


def _parse_points(element, tag: str) -> Polyline:
    raw = element.get("points", "")
    if not POINTS_RE.match(raw):
        raise ElementSkipped(tag, f"unparseable points: {raw[:40]!r}")
    coords = [float(v) for v in NUMBER_RE.findall(raw)]
    # An odd trailing coordinate is dropped
    return [(coords[i], coords[i + 1]) for i in range(0, len(coords) - 1, 2)]


def sample_element(element, samples_per_unit: float = QUALITY_SAMPLE_RATE) -> List[Polyline]:
    """Sample one drawable element into polylines in its own coordinates.

    Args:
        element: lxml Element of a supported shape kind
        samples_per_unit: Sampling density

    Returns:
        List of polylines (transforms not yet applied)

    Raises:
        ElementSkipped: The element's attributes cannot be interpreted
    """
    tag = _local_name(element)

    if tag == "path":
        return sample_path(element.get("d", ""), samples_per_unit)

    if tag == "line":
        return [[
            (_number(element.get("x1")), _number(element.get("y1"))),
            (_number(element.get("x2")), _number(element.get("y2"))),
        ]]

    if tag in ("polyline", "polygon"):
        points = _parse_points(element, tag)
        if len(points) < 2:
            return []
        if tag == "polygon" and points[0] != points[-1]:
            points.append(points[0])
        return [points]

    if tag == "circle":
        r = _number(element.get("r"))
        if r < 0:
            raise ElementSkipped(tag, f"negative radius {r}")
        if r == 0:
            return []
        cx, cy = _number(element.get("cx")), _number(element.get("cy"))
        return [_sample_ring(cx, cy, r, r, samples_per_unit)]

    if tag == "ellipse":
        rx, ry = _number(element.get("rx")), _number(element.get("ry"))
        if rx < 0 or ry < 0:
            raise ElementSkipped(tag, f"negative radius ({rx}, {ry})")
        if rx == 0 or ry == 0:
            return []
        cx, cy = _number(element.get("cx")), _number(element.get("cy"))
        return [_sample_ring(cx, cy, rx, ry, samples_per_unit)]

    if tag == "rect":
        x, y = _number(element.get("x")), _number(element.get("y"))
        w, h = _number(element.get("width")), _number(element.get("height"))
        if w < 0 or h < 0:
            raise ElementSkipped(tag, f"negative size ({w}, {h})")
        if w == 0 or h == 0:
            return []
        return [[(x, y), (x + w, y), (x + w, y + h), (x, y + h), (x, y)]]

    raise ElementSkipped(tag, "unsupported element")


def _fill_of(element) -> str:
    """Effective fill of an element; inline style wins over the attribute."""
    fill = element.get("fill")
    style = element.get("style")
    if style:
        for item in style.split(";"):
            if ":" in item:
                key, value = item.split(":", 1)
                if key.strip() == "fill":
                    fill = value
    return (fill or "none").strip().lower()


class SVGDocument:
    """Class for handling SVG document parsing and data extraction."""

    def __init__(self, content: Union[str, bytes], source: str = "<string>"):
        """Parse SVG markup.

        Args:
            content: SVG document text
            source: Name used in log and error messages

        Raises:
            SVGParseError: The text is not well-formed SVG
        """
        self.source = source
        self.root = self._parse(content)
        self.physical = self._get_physical_dimensions()

    @classmethod
    def from_file(cls, file_path: Union[str, Path]) -> "SVGDocument":
        """Read and parse an SVG file.

        Args:
            file_path: Path to SVG file

        Returns:
            SVGDocument object
        """
        path = Path(file_path)
        return cls(path.read_bytes(), source=str(path))

    def _parse(self, content: Union[str, bytes]):
        if isinstance(content, str):
            content = content.encode("utf-8")
        parser = etree.XMLParser(remove_comments=True, resolve_entities=False, no_network=True)
        try:
            root = etree.fromstring(content, parser)
        except etree.XMLSyntaxError as e:
            logger.error(f"Error parsing SVG {self.source}: {e}")
            raise SVGParseError(self.source, str(e)) from e
        if root is None or _local_name(root) != "svg":
            raise SVGParseError(self.source, "root element is not <svg>")
        return root

    # -------------------------
    # Document extent and scale
    # -------------------------
    def _get_viewbox(self) -> Optional[Tuple[float, float, float, float]]:
        viewbox = self.root.get("viewBox")
        if not viewbox:
            return None
        try:
            parts = [float(p) for p in re.split(r"[\s,]+", viewbox.strip())]
        except ValueError:
            logger.warning(f"Failed to parse viewBox: {viewbox}")
            return None
        if len(parts) < 4:
            logger.warning(f"Failed to parse viewBox: {viewbox}")
            return None
        return parts[0], parts[1], parts[2], parts[3]

    def _get_physical_dimensions(self) -> Optional[PhysicalDimensions]:
        width_attr = self.root.get("width")
        height_attr = self.root.get("height")
        if not width_attr or not height_attr:
            return None

        width, width_unit = parse_length(width_attr)
        height, height_unit = parse_length(height_attr)
        if width_unit not in UNIT_CONVERSIONS or height_unit not in UNIT_CONVERSIONS:
            logger.info(f"Ignoring non-physical document size: {width_attr} x {height_attr}")
            return None

        return PhysicalDimensions(
            width_mm=convert_to_mm(width, width_unit),
            height_mm=convert_to_mm(height, height_unit),
            width_unit=width_unit,
            height_unit=height_unit,
            width_value=width,
            height_value=height,
        )

    def _get_extent(self, raw_polylines: List[Polyline]) -> Tuple[float, float, float, float]:
        """Native extent: viewBox, then width/height, then drawn geometry, then a default."""
        viewbox = self._get_viewbox()
        if viewbox is not None:
            return viewbox

        if self.physical and self.physical.width_mm > 0 and self.physical.height_mm > 0:
            # Without a viewBox, one user unit is one CSS pixel
            px = UNIT_CONVERSIONS["px"]
            return 0.0, 0.0, self.physical.width_mm / px, self.physical.height_mm / px

        if raw_polylines:
            bounds = calculate_bounds(raw_polylines, 0.0, 0.0)
            if bounds.width > 0 and bounds.height > 0:
                return bounds.min_x, bounds.min_y, bounds.width, bounds.height

        return DEFAULT_EXTENT

    def get_scale_factor(self, viewbox: Tuple[float, float, float, float]) -> Optional[ScaleFactor]:
        """Millimeters per viewBox unit, or None without a declared physical size."""
        if self.physical is None:
            return None

        _, _, vw, vh = viewbox
        scale_x = self.physical.width_mm / vw if vw > 0 else 1.0
        scale_y = self.physical.height_mm / vh if vh > 0 else 1.0
        return ScaleFactor(
            scale_x=scale_x,
            scale_y=scale_y,
            avg_scale=(scale_x + scale_y) / 2,
            physical=self.physical,
        )

    # -------------------------
    # Element extraction
    # -------------------------
    def iter_drawable(self) -> Iterator:
        """Yield drawable elements in document order, skipping non-rendered containers."""
        stack = [iter(self.root)]
        while stack:
            element = next(stack[-1], None)
            if element is None:
                stack.pop()
                continue
            if not isinstance(element.tag, str):
                continue
            tag = _local_name(element)
            if tag in NON_RENDERED_TAGS:
                continue
            if tag in DRAWABLE_TAGS:
                yield element
            if len(element):
                stack.append(iter(element))

    def process(self, flip_y: bool = False,
                samples_per_unit: float = QUALITY_SAMPLE_RATE) -> SVGLoadResult:
        """Sample all drawable elements into normalized polylines.

        Args:
            flip_y: Flip the Y axis so that Y grows upwards
            samples_per_unit: Sampling density

        Returns:
            SVGLoadResult with merged strokes followed by filled outlines
        """
        sampled: List[Tuple[Polyline, bool]] = []
        skipped = 0

        for element in self.iter_drawable():
            tag = _local_name(element)
            try:
                polylines = sample_element(element, samples_per_unit)
                matrix = resolve_transform(element)
                polylines = [apply_transform(pl, matrix) for pl in polylines]
            except (ElementSkipped, ValueError, OverflowError) as e:
                logger.warning(f"Failed to parse <{tag}> element in {self.source}: {e}")
                skipped += 1
                continue

            filled = _fill_of(element) != "none"
            sampled.extend((pl, filled) for pl in polylines)

        vx, vy, vw, vh = self._get_extent([pl for pl, _ in sampled])
        scale_factor = self.get_scale_factor((vx, vy, vw, vh))

        strokes: List[Polyline] = []
        polygons: List[Polyline] = []
        for polyline, filled in sampled:
            normalized = [(x - vx, y - vy) for x, y in polyline]
            if flip_y:
                normalized = [(x, vh - y) for x, y in normalized]
            if _is_degenerate(normalized):
                continue
            if not filled:
                strokes.append(normalized)
            elif len(normalized) >= 3:
                polygons.append(normalized)

        merged = merge_continuous_strokes(strokes)
        all_polylines = merged + polygons
        bounds = calculate_bounds(all_polylines, vw, vh)

        logger.info(
            f"Extracted {len(all_polylines)} polylines from {self.source} "
            f"({len(strokes)} strokes merged into {len(merged)}, {len(polygons)} filled, {skipped} skipped)"
        )

        return SVGLoadResult(
            polylines=all_polylines,
            bounds=bounds,
            viewbox=(vx, vy, vw, vh),
            scale_factor=scale_factor,
            stroke_count=len(merged),
            polygon_count=len(polygons),
        )


def process_svg(content: Union[str, bytes], flip_y: bool = False,
                samples_per_unit: float = QUALITY_SAMPLE_RATE,
                source: str = "<string>") -> SVGLoadResult:
    """Parse SVG text and return its polylines and metadata.

    Args:
        content: SVG document text
        flip_y: Flip the Y axis
        samples_per_unit: Sampling density
        source: Name used in log and error messages

    Returns:
        SVGLoadResult (possibly with no polylines)

    Raises:
        SVGParseError: The text is not well-formed SVG
    """
    return SVGDocument(content, source).process(flip_y, samples_per_unit)


def load_svg(file_path: Union[str, Path], flip_y: bool = False,
             samples_per_unit: float = QUALITY_SAMPLE_RATE) -> SVGLoadResult:
    """Parse an SVG file and return its polylines and metadata.

    Args:
        file_path: Path to SVG file
        flip_y: Flip the Y axis
        samples_per_unit: Sampling density

    Returns:
        SVGLoadResult
    """
    return SVGDocument.from_file(file_path).process(flip_y, samples_per_unit)
