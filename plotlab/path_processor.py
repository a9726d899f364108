"""
Path sampling for SVG path data.

This module tokenizes SVG path data and flattens every command (lines,
cubic and quadratic Beziers, their smooth variants and elliptical arcs)
into polylines of (x, y) points in the document's native units. Sampling
density is expressed in samples per native unit so that straight lines
and curves end up with comparable point spacing.
"""

import logging
import math
import re
from typing import List, Optional, Tuple

# Set up logging
logger = logging.getLogger(__name__)

Point = Tuple[float, float]
Polyline = List[Point]

# Sample rate for preview (points per unit)
PREVIEW_SAMPLE_RATE = 1.0

# Sample rate for quality export (points per unit)
QUALITY_SAMPLE_RATE = 2.0

# Distance below which Z does not add an explicit closing point
CLOSE_THRESHOLD = 0.1

TOKEN_RE = re.compile(
    r"([MmLlHhVvCcSsQqTtAaZz])|([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)"
)


class PathCommand:
    """Represents a single SVG path command."""

    def __init__(self, command: str, params: List[float]):
        """
        Initialize a path command.

        Args:
            command (str): The SVG path command letter (M, L, C, etc.)
            params (List[float]): The parameters for the command
        """
        self.command = command
        self.params = params
        self.absolute = command.isupper()

    def __repr__(self) -> str:
        return f"{self.command}{self.params}"


class _SamplerState:
    """Running state while walking a path's commands."""

    def __init__(self):
        self.current_x = 0.0
        self.current_y = 0.0
        self.start_x = 0.0
        self.start_y = 0.0
        self.last_cubic: Optional[Point] = None
        self.last_quadratic: Optional[Point] = None
        self.polyline: Polyline = []
        self.polylines: List[Polyline] = []

    def commit(self) -> None:
        if len(self.polyline) > 1:
            self.polylines.append(self.polyline)
        self.polyline = []

    def append(self, points: Polyline) -> None:
        # The first sample repeats the joint with the previous command
        if self.polyline:
            self.polyline.extend(points[1:])
        else:
            self.polyline.extend(points)

    def reset_controls(self) -> None:
        self.last_cubic = None
        self.last_quadratic = None


def parse_path(path_data: str) -> List[PathCommand]:
    """
    Parse SVG path data into a list of PathCommand objects.

    Numbers may use scientific notation. Characters that are neither a
    command letter nor part of a number are ignored, and numbers that
    appear before the first command are dropped.

    Args:
        path_data (str): SVG path data string

    Returns:
        List[PathCommand]: List of parsed path commands
    """
    if not path_data:
        return []

    commands: List[PathCommand] = []
    for match in TOKEN_RE.finditer(path_data):
        letter, number = match.group(1), match.group(2)
        if letter:
            commands.append(PathCommand(letter, []))
        elif number and commands:
            commands[-1].params.append(float(number))

    return commands


def sample_path(path_data: str, samples_per_unit: float = QUALITY_SAMPLE_RATE) -> List[Polyline]:
    """
    Flatten SVG path data into polylines.

    Each sub-path (started by M/m or ended by Z/z) becomes its own polyline.
    Sub-paths with fewer than two points are discarded.

    Args:
        path_data (str): SVG path data string
        samples_per_unit (float): Sampling density

    Returns:
        List[Polyline]: Sampled polylines in native coordinates
    """
    commands = parse_path(path_data)
    if not commands:
        return []

    state = _SamplerState()
    for cmd in commands:
        handler = _HANDLERS.get(cmd.command.upper())
        if handler is None:
            continue
        handler(cmd, state, samples_per_unit)

    state.commit()
    logger.debug(f"Sampled {len(commands)} commands into {len(state.polylines)} polylines")
    return state.polylines


def _groups(params: List[float], size: int):
    """Yield complete argument groups; an incomplete trailing group is ignored."""
    for i in range(0, len(params) - size + 1, size):
        yield params[i:i + size]


# -------------------------
# Command handlers
# -------------------------
def _handle_move(cmd: PathCommand, state: _SamplerState, density: float) -> None:
    state.commit()
    pairs = list(_groups(cmd.params, 2))
    for i, (x, y) in enumerate(pairs):
        if not cmd.absolute:
            x += state.current_x
            y += state.current_y
        if i == 0:
            # Start a new sub-path
            state.start_x, state.start_y = x, y
            state.polyline.append((x, y))
        else:
            # Subsequent pairs are implicit line commands
            state.append(sample_line(state.current_x, state.current_y, x, y, density))
        state.current_x, state.current_y = x, y
    state.reset_controls()


def _handle_line(cmd: PathCommand, state: _SamplerState, density: float) -> None:
    for x, y in _groups(cmd.params, 2):
        if not cmd.absolute:
            x += state.current_x
            y += state.current_y
        state.append(sample_line(state.current_x, state.current_y, x, y, density))
        state.current_x, state.current_y = x, y
    state.reset_controls()


def _handle_horizontal(cmd: PathCommand, state: _SamplerState, density: float) -> None:
    for x in cmd.params:
        if not cmd.absolute:
            x += state.current_x
        state.append(sample_line(state.current_x, state.current_y, x, state.current_y, density))
        state.current_x = x
    state.reset_controls()


def _handle_vertical(cmd: PathCommand, state: _SamplerState, density: float) -> None:
    for y in cmd.params:
        if not cmd.absolute:
            y += state.current_y
        state.append(sample_line(state.current_x, state.current_y, state.current_x, y, density))
        state.current_y = y
    state.reset_controls()


def _handle_cubic(cmd: PathCommand, state: _SamplerState, density: float) -> None:
    for x1, y1, x2, y2, x, y in _groups(cmd.params, 6):
        if not cmd.absolute:
            x1 += state.current_x
            y1 += state.current_y
            x2 += state.current_x
            y2 += state.current_y
            x += state.current_x
            y += state.current_y
        state.append(sample_cubic_bezier(
            state.current_x, state.current_y, x1, y1, x2, y2, x, y, density
        ))
        state.last_cubic = (x2, y2)
        state.current_x, state.current_y = x, y
    state.last_quadratic = None


def _handle_smooth_cubic(cmd: PathCommand, state: _SamplerState, density: float) -> None:
    for x2, y2, x, y in _groups(cmd.params, 4):
        if not cmd.absolute:
            x2 += state.current_x
            y2 += state.current_y
            x += state.current_x
            y += state.current_y
        # Mirror the previous control point, or use the current point
        x1, y1 = state.current_x, state.current_y
        if state.last_cubic is not None:
            x1 = 2 * state.current_x - state.last_cubic[0]
            y1 = 2 * state.current_y - state.last_cubic[1]
        state.append(sample_cubic_bezier(
            state.current_x, state.current_y, x1, y1, x2, y2, x, y, density
        ))
        state.last_cubic = (x2, y2)
        state.current_x, state.current_y = x, y
    state.last_quadratic = None


def _handle_quadratic(cmd: PathCommand, state: _SamplerState, density: float) -> None:
    for x1, y1, x, y in _groups(cmd.params, 4):
        if not cmd.absolute:
            x1 += state.current_x
            y1 += state.current_y
            x += state.current_x
            y += state.current_y
        state.append(sample_quadratic_bezier(
            state.current_x, state.current_y, x1, y1, x, y, density
        ))
        state.last_quadratic = (x1, y1)
        state.current_x, state.current_y = x, y
    state.last_cubic = None


def _handle_smooth_quadratic(cmd: PathCommand, state: _SamplerState, density: float) -> None:
    for x, y in _groups(cmd.params, 2):
        if not cmd.absolute:
            x += state.current_x
            y += state.current_y
        x1, y1 = state.current_x, state.current_y
        if state.last_quadratic is not None:
            x1 = 2 * state.current_x - state.last_quadratic[0]
            y1 = 2 * state.current_y - state.last_quadratic[1]
        state.append(sample_quadratic_bezier(
            state.current_x, state.current_y, x1, y1, x, y, density
        ))
        state.last_quadratic = (x1, y1)
        state.current_x, state.current_y = x, y
    state.last_cubic = None


def _handle_arc(cmd: PathCommand, state: _SamplerState, density: float) -> None:
    for rx, ry, rotation, large_arc, sweep, x, y in _groups(cmd.params, 7):
        if not cmd.absolute:
            x += state.current_x
            y += state.current_y
        state.append(sample_elliptical_arc(
            state.current_x, state.current_y, rx, ry, rotation,
            bool(large_arc), bool(sweep), x, y, density
        ))
        state.current_x, state.current_y = x, y
    state.reset_controls()


def _handle_close(cmd: PathCommand, state: _SamplerState, density: float) -> None:
    if state.polyline:
        last_x, last_y = state.polyline[-1]
        if math.hypot(last_x - state.start_x, last_y - state.start_y) > CLOSE_THRESHOLD:
            state.polyline.append((state.start_x, state.start_y))
    state.commit()
    state.current_x, state.current_y = state.start_x, state.start_y
    state.reset_controls()


_HANDLERS = {
    "M": _handle_move,
    "L": _handle_line,
    "H": _handle_horizontal,
    "V": _handle_vertical,
    "C": _handle_cubic,
    "S": _handle_smooth_cubic,
    "Q": _handle_quadratic,
    "T": _handle_smooth_quadratic,
    "A": _handle_arc,
    "Z": _handle_close,
}


# -------------------------
# Segment sampling
# -------------------------
def sample_line(x0: float, y0: float, x1: float, y1: float,
                samples_per_unit: float = QUALITY_SAMPLE_RATE) -> Polyline:
    """
    Sample a straight segment at the given density, endpoints included.

    Args:
        x0, y0: Start point
        x1, y1: End point
        samples_per_unit: Sampling density

    Returns:
        Polyline: max(1, ceil(length * density)) + 1 points
    """
    length = math.hypot(x1 - x0, y1 - y0)
    segments = max(1, math.ceil(length * samples_per_unit))
    return [
        (x0 + (x1 - x0) * (i / segments), y0 + (y1 - y0) * (i / segments))
        for i in range(segments + 1)
    ]


def sample_cubic_bezier(
    x0: float, y0: float,
    x1: float, y1: float,
    x2: float, y2: float,
    x3: float, y3: float,
    samples_per_unit: float = QUALITY_SAMPLE_RATE
) -> Polyline:
    """
    Convert a cubic Bezier curve to a polyline.

    The number of segments is derived from the control polygon length,
    which bounds the arc length from above.

    Args:
        x0, y0: Start point
        x1, y1: First control point
        x2, y2: Second control point
        x3, y3: End point
        samples_per_unit: Sampling density

    Returns:
        Polyline: Points along the curve, start and end included
    """
    est_length = (
        math.hypot(x1 - x0, y1 - y0)
        + math.hypot(x2 - x1, y2 - y1)
        + math.hypot(x3 - x2, y3 - y2)
    )
    segments = max(4, math.ceil(est_length * samples_per_unit))

    points = []
    for i in range(segments + 1):
        t = i / segments

        # B(t) = (1-t)^3 P0 + 3(1-t)^2 t P1 + 3(1-t) t^2 P2 + t^3 P3
        t_inv = 1 - t
        t_inv_squared = t_inv * t_inv
        t_inv_cubed = t_inv_squared * t_inv
        t_squared = t * t
        t_cubed = t_squared * t

        x = t_inv_cubed * x0 + 3 * t_inv_squared * t * x1 + 3 * t_inv * t_squared * x2 + t_cubed * x3
        y = t_inv_cubed * y0 + 3 * t_inv_squared * t * y1 + 3 * t_inv * t_squared * y2 + t_cubed * y3
        points.append((x, y))

    return points


def sample_quadratic_bezier(
    x0: float, y0: float,
    x1: float, y1: float,
    x2: float, y2: float,
    samples_per_unit: float = QUALITY_SAMPLE_RATE
) -> Polyline:
    """
    Convert a quadratic Bezier curve to a polyline.

    Args:
        x0, y0: Start point
        x1, y1: Control point
        x2, y2: End point
        samples_per_unit: Sampling density

    Returns:
        Polyline: Points along the curve, start and end included
    """
    est_length = math.hypot(x1 - x0, y1 - y0) + math.hypot(x2 - x1, y2 - y1)
    segments = max(4, math.ceil(est_length * samples_per_unit))

    points = []
    for i in range(segments + 1):
        t = i / segments

        # B(t) = (1-t)^2 P0 + 2(1-t) t P1 + t^2 P2
        t_inv = 1 - t
        x = t_inv * t_inv * x0 + 2 * t_inv * t * x1 + t * t * x2
        y = t_inv * t_inv * y0 + 2 * t_inv * t * y1 + t * t * y2
        points.append((x, y))

    return points


def sample_elliptical_arc(
    x0: float, y0: float,
    rx: float, ry: float,
    x_axis_rotation: float,
    large_arc_flag: bool,
    sweep_flag: bool,
    x: float, y: float,
    samples_per_unit: float = QUALITY_SAMPLE_RATE
) -> Polyline:
    """
    Convert an SVG elliptical arc to a polyline.

    Follows the endpoint-to-center conversion of the SVG implementation
    notes: radii are made positive and scaled up when too small to span
    the endpoints, then the center and angle range are derived from the
    large-arc and sweep flags.

    Args:
        x0, y0: Start point
        rx, ry: Radii of the ellipse
        x_axis_rotation: Rotation of the ellipse in degrees
        large_arc_flag: Use the large arc (> 180 degrees)
        sweep_flag: Sweep in the positive-angle direction
        x, y: End point
        samples_per_unit: Sampling density

    Returns:
        Polyline: Points along the arc, start and end included
    """
    # A zero radius degenerates to a straight line
    if rx == 0 or ry == 0:
        return [(x0, y0), (x, y)]

    # Coincident endpoints draw nothing
    if x0 == x and y0 == y:
        return [(x0, y0)]

    phi = math.radians(x_axis_rotation)
    cos_phi = math.cos(phi)
    sin_phi = math.sin(phi)

    rx, ry = abs(rx), abs(ry)

    # Step 1: Rotate the midpoint difference into the ellipse frame
    dx = (x0 - x) / 2
    dy = (y0 - y) / 2
    x1p = cos_phi * dx + sin_phi * dy
    y1p = -sin_phi * dx + cos_phi * dy

    # Step 2: Ensure radii are large enough
    lambda_value = (x1p * x1p) / (rx * rx) + (y1p * y1p) / (ry * ry)
    if lambda_value > 1:
        scale = math.sqrt(lambda_value)
        rx *= scale
        ry *= scale

    # Step 3: Compute the center in the ellipse frame
    sign = -1 if large_arc_flag == sweep_flag else 1
    numerator = rx * rx * ry * ry - rx * rx * y1p * y1p - ry * ry * x1p * x1p
    denominator = rx * rx * y1p * y1p + ry * ry * x1p * x1p
    coef = sign * math.sqrt(max(0.0, numerator / denominator))
    cxp = coef * rx * y1p / ry
    cyp = -coef * ry * x1p / rx

    # Step 4: Transform the center back
    cx = cos_phi * cxp - sin_phi * cyp + (x0 + x) / 2
    cy = sin_phi * cxp + cos_phi * cyp + (y0 + y) / 2

    # Step 5: Start angle and sweep
    ux = (x1p - cxp) / rx
    uy = (y1p - cyp) / ry
    vx = (-x1p - cxp) / rx
    vy = (-y1p - cyp) / ry

    theta1 = math.atan2(uy, ux)
    delta = math.atan2(ux * vy - uy * vx, ux * vx + uy * vy)

    if sweep_flag and delta < 0:
        delta += 2 * math.pi
    elif not sweep_flag and delta > 0:
        delta -= 2 * math.pi

    # Step 6: Sample along the rotated ellipse
    arc_length = abs(delta * max(rx, ry))
    segments = max(2, math.ceil(arc_length * samples_per_unit))

    points = []
    for i in range(segments + 1):
        angle = theta1 + (i / segments) * delta
        cos_a = math.cos(angle)
        sin_a = math.sin(angle)
        points.append((
            cos_phi * rx * cos_a - sin_phi * ry * sin_a + cx,
            sin_phi * rx * cos_a + cos_phi * ry * sin_a + cy,
        ))

    return points
