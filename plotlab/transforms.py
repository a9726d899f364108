"""SVG transform handling for PlotLab.

This module parses SVG ``transform`` attributes into 3x3 affine matrices,
composes them along an element's ancestor chain, and applies the result to
sampled polylines.
"""

import logging
import math
import re
from typing import List, Optional, Tuple

import numpy as np

# Set up logging
logger = logging.getLogger(__name__)

TRANSFORM_RE = re.compile(r"([a-zA-Z]+)\s*\(([^)]*)\)")
NUMBER_RE = re.compile(r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")


def _translation(tx: float, ty: float) -> np.ndarray:
    return np.array([
        [1.0, 0.0, tx],
        [0.0, 1.0, ty],
        [0.0, 0.0, 1.0],
    ])


def _rotation(angle_deg: float) -> np.ndarray:
    angle_rad = math.radians(angle_deg)
    cos_a = math.cos(angle_rad)
    sin_a = math.sin(angle_rad)
    return np.array([
        [cos_a, -sin_a, 0.0],
        [sin_a, cos_a, 0.0],
        [0.0, 0.0, 1.0],
    ])


def _parse_command(name: str, values: List[float]) -> Optional[np.ndarray]:
    """Build the matrix for a single transform function, or None if unusable."""
    if name == "matrix":
        if len(values) != 6:
            return None
        a, b, c, d, e, f = values
        return np.array([
            [a, c, e],
            [b, d, f],
            [0.0, 0.0, 1.0],
        ])

    if name == "translate":
        if not values:
            return None
        tx = values[0]
        ty = values[1] if len(values) > 1 else 0.0
        return _translation(tx, ty)

    if name == "scale":
        if not values:
            return None
        sx = values[0]
        sy = values[1] if len(values) > 1 else sx
        return np.array([
            [sx, 0.0, 0.0],
            [0.0, sy, 0.0],
            [0.0, 0.0, 1.0],
        ])

    if name == "rotate":
        if not values:
            return None
        if len(values) >= 3:
            # Rotation around point (cx, cy)
            cx, cy = values[1], values[2]
            return _translation(cx, cy) @ _rotation(values[0]) @ _translation(-cx, -cy)
        return _rotation(values[0])

    if name == "skewX" and values:
        return np.array([
            [1.0, math.tan(math.radians(values[0])), 0.0],
            [0.0, 1.0, 0.0],
            [0.0, 0.0, 1.0],
        ])

    if name == "skewY" and values:
        return np.array([
            [1.0, 0.0, 0.0],
            [math.tan(math.radians(values[0])), 1.0, 0.0],
            [0.0, 0.0, 1.0],
        ])

    return None


def parse_transform(transform_str: Optional[str]) -> np.ndarray:
    """Parse an SVG transform attribute into a transformation matrix.

    Transform functions are multiplied left to right in the order they
    appear, so the right-most function is applied to a point first.
    Unknown or malformed functions leave the matrix unchanged.

    Args:
        transform_str: SVG transform string, e.g. "translate(10,0) rotate(90)"

    Returns:
        3x3 transformation matrix as numpy array
    """
    matrix = np.identity(3)
    if not transform_str:
        return matrix

    for name, args in TRANSFORM_RE.findall(transform_str):
        values = [float(v) for v in NUMBER_RE.findall(args)]
        step = _parse_command(name, values)
        if step is None:
            logger.debug(f"Ignoring transform function: {name}({args})")
            continue
        matrix = matrix @ step

    return matrix


def resolve_transform(element) -> np.ndarray:
    """Compose an element's transform with those of all its ancestors.

    Walking from the element up to the root, each ancestor's matrix
    left-multiplies the accumulated one, so outer groups apply last.

    Args:
        element: lxml Element

    Returns:
        3x3 transformation matrix as numpy array
    """
    matrix = np.identity(3)
    current = element
    while current is not None:
        transform_str = current.get("transform")
        if transform_str:
            matrix = parse_transform(transform_str) @ matrix
        current = current.getparent()
    return matrix


def apply_transform(polyline: List[Tuple[float, float]], matrix: np.ndarray) -> List[Tuple[float, float]]:
    """Map every point of a polyline through an affine matrix.

    Args:
        polyline: List of (x, y) points
        matrix: 3x3 transformation matrix

    Returns:
        Transformed list of (x, y) points
    """
    if not polyline:
        return []

    points = np.asarray(polyline, dtype=float)
    transformed = points @ matrix[:2, :2].T + matrix[:2, 2]
    return [(float(x), float(y)) for x, y in transformed]


def matrix_to_abcdef(matrix: np.ndarray) -> Tuple[float, float, float, float, float, float]:
    """Return the (a, b, c, d, e, f) coefficients of an affine matrix."""
    return (
        float(matrix[0, 0]), float(matrix[1, 0]),
        float(matrix[0, 1]), float(matrix[1, 1]),
        float(matrix[0, 2]), float(matrix[1, 2]),
    )
