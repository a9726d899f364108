"""Path order optimization for pen plotting.

Reorders polylines to reduce pen-up travel: a greedy nearest-neighbor tour
(which may reverse individual polylines) optionally refined with 2-opt
moves.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

from .path_processor import Point, Polyline

# Set up logging
logger = logging.getLogger(__name__)

# 2-opt runs only for tours in this size range
TWO_OPT_MIN_SIZE = 4
TWO_OPT_MAX_SIZE = 99

TWO_OPT_MAX_PASSES = 100

# Smallest saving (mm) that counts as an improvement
IMPROVEMENT_TOLERANCE = 0.01


@dataclass
class _Segment:
    polyline: Polyline
    reversed: bool = False

    @property
    def entry(self) -> Point:
        return self.polyline[-1] if self.reversed else self.polyline[0]

    @property
    def exit(self) -> Point:
        return self.polyline[0] if self.reversed else self.polyline[-1]


@dataclass
class PathStats:
    """Travel and drawing distances of one ordering."""

    total_travel: float
    draw_distance: float
    pen_moves: int


def _distance(p1: Sequence[float], p2: Sequence[float]) -> float:
    return math.hypot(p2[0] - p1[0], p2[1] - p1[1])


def _greedy_nearest_neighbor(polylines: List[Polyline], start_point: Point) -> List[_Segment]:
    """Build a tour by always moving to the closest free polyline end.

    Candidates are checked as start0, end0, start1, end1, ... and the first
    minimum wins, so ties prefer earlier polylines and forward direction.
    """
    count = len(polylines)
    ends = np.empty((2 * count, 2), dtype=float)
    ends[0::2] = [pl[0] for pl in polylines]
    ends[1::2] = [pl[-1] for pl in polylines]
    remaining = np.ones(count, dtype=bool)

    tour: List[_Segment] = []
    current = np.asarray(start_point, dtype=float)

    while remaining.any():
        distances = np.hypot(ends[:, 0] - current[0], ends[:, 1] - current[1])
        distances[~np.repeat(remaining, 2)] = np.inf
        best = int(np.argmin(distances))
        index, reverse = divmod(best, 2)

        remaining[index] = False
        tour.append(_Segment(polylines[index], bool(reverse)))
        # Leave from the opposite end of the one entered
        current = ends[best ^ 1]

    return tour


def _tour_segment_distance(tour: List[_Segment], i: int, j: int, start_point: Point) -> float:
    """Travel from the end of tour[i-1] (or the start point) through tour[j]."""
    current = start_point if i == 0 else tour[i - 1].exit
    dist = 0.0
    for k in range(i, j + 1):
        dist += _distance(current, tour[k].entry)
        current = tour[k].exit
    return dist


def _two_opt(tour: List[_Segment], start_point: Point,
             max_passes: int = TWO_OPT_MAX_PASSES) -> List[_Segment]:
    """Reverse sub-sequences of the tour while that shortens travel.

    Each pass applies the first improving reversal it finds.
    """
    tour = list(tour)
    passes = 0
    improved = True

    while improved and passes < max_passes:
        improved = False
        passes += 1

        for i in range(len(tour) - 1):
            for j in range(i + 2, len(tour)):
                current_dist = _tour_segment_distance(tour, i, j, start_point)
                candidate = tour[:i + 1] + tour[i + 1:j + 1][::-1] + tour[j + 1:]
                new_dist = _tour_segment_distance(candidate, i, j, start_point)

                if new_dist < current_dist - IMPROVEMENT_TOLERANCE:
                    tour = candidate
                    improved = True
                    break
            if improved:
                break

    logger.debug(f"2-opt finished after {passes} passes")
    return tour


def optimize(polylines: List[Polyline], start_point: Point = (0.0, 0.0),
             use_two_opt: bool = False) -> List[Polyline]:
    """Reorder polylines to minimize pen-up travel.

    Args:
        polylines: Polylines in bed space
        start_point: Pen position before the first polyline
        use_two_opt: Refine the greedy tour with 2-opt (4 to 99 polylines)

    Returns:
        Polylines in drawing order; reversed ones have their points reversed
    """
    if len(polylines) <= 1:
        return polylines

    drawable = [pl for pl in polylines if pl]
    if not drawable:
        return []
    tour = _greedy_nearest_neighbor(drawable, start_point)

    if use_two_opt and TWO_OPT_MIN_SIZE <= len(tour) <= TWO_OPT_MAX_SIZE:
        tour = _two_opt(tour, start_point)

    return [seg.polyline[::-1] if seg.reversed else list(seg.polyline) for seg in tour]


def calculate_stats(polylines: List[Polyline], start_point: Point = (0.0, 0.0)) -> PathStats:
    """Measure pen-up travel and pen-down drawing distance of an ordering.

    Args:
        polylines: Polylines in drawing order
        start_point: Pen position before the first polyline

    Returns:
        PathStats; polylines with fewer than two points are skipped
    """
    total_travel = 0.0
    draw_distance = 0.0
    current = start_point

    for polyline in polylines:
        if len(polyline) < 2:
            continue
        total_travel += _distance(current, polyline[0])
        for a, b in zip(polyline, polyline[1:]):
            draw_distance += _distance(a, b)
        current = polyline[-1]

    return PathStats(total_travel=total_travel, draw_distance=draw_distance, pen_moves=len(polylines))


def compare_stats(before: PathStats, after: PathStats) -> Tuple[float, float]:
    """Travel saved in mm and as a percentage of the original travel."""
    saved = before.total_travel - after.total_travel
    percent = (saved / before.total_travel * 100) if before.total_travel > 0 else 0.0
    return saved, percent
