"""
Geometry utilities for wall centerline generation.

Pure, side-effect free predicates and operations on 2D points, segments
and infinite lines:
- Angle normalization, cardinal snapping, parallel/perpendicular tests
- Point/segment/line distances and projections
- Overlap, gap distance and collinearity of segments
- Envelope merging of collinear segments
- Line/line and segment/segment intersection

Points are (x, y) tuples and segments are (start, end) tuples of points.
Every function is total: degenerate (zero-length) segments never match a
predicate and never raise.
"""

import math
import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

logger = logging.getLogger(__name__)

Point = Tuple[float, float]
Segment = Tuple[Point, Point]

# Length tolerance for float comparisons (planar units, e.g. mm)
EPSILON = 1e-6

HALF_PI = math.pi / 2.0
TWO_PI = math.pi * 2.0
DEG_TO_RAD = math.pi / 180.0
RAD_TO_DEG = 180.0 / math.pi

# Default angle tolerance (radians) for parallel/perpendicular/snap tests
DEFAULT_ANGLE_TOLERANCE = 5.0 * DEG_TO_RAD

# Default perpendicular distance tolerance (planar units)
DEFAULT_DISTANCE_TOLERANCE = 10.0

# Direction components below this are treated as exact zeros
UNIT_NOISE = 1e-12


@dataclass(frozen=True)
class OverlapResult:
    """Overlap of two segments projected onto the first segment's direction."""
    has_overlap: bool
    overlap_length: float = 0.0
    overlap_ratio: float = 0.0
    overlap_start: float = 0.0
    overlap_end: float = 0.0


NO_OVERLAP = OverlapResult(has_overlap=False)


# ============================================================
# Basic Measures
# ============================================================

def distance(p1: Point, p2: Point) -> float:
    """Euclidean distance between two points."""
    return math.hypot(p2[0] - p1[0], p2[1] - p1[1])


def midpoint(p1: Point, p2: Point) -> Point:
    """Midpoint between two points."""
    return ((p1[0] + p2[0]) / 2.0, (p1[1] + p2[1]) / 2.0)


def segment_length(seg: Segment) -> float:
    return distance(seg[0], seg[1])


def is_degenerate(seg: Segment) -> bool:
    """True for zero-length segments, which are inert under every predicate."""
    return segment_length(seg) < EPSILON


def angle_2d(p1: Point, p2: Point) -> float:
    """Direction angle (radians, -pi..pi] from p1 to p2."""
    return math.atan2(p2[1] - p1[1], p2[0] - p1[0])


def segment_angle(seg: Segment) -> float:
    return angle_2d(seg[0], seg[1])


def normalize_angle_2pi(angle: float) -> float:
    """Normalize an angle (radians) to [0, 2*pi)."""
    angle = math.fmod(angle, TWO_PI)
    if angle < 0:
        angle += TWO_PI
    return 0.0 if angle >= TWO_PI else angle


def normalize_angle_pi(angle: float) -> float:
    """Normalize an angle (radians) to [0, pi), ignoring direction."""
    angle = math.fmod(angle, math.pi)
    if angle < 0:
        angle += math.pi
    return 0.0 if angle >= math.pi else angle


def angle_difference(angle1: float, angle2: float) -> float:
    """Smallest absolute difference between two directed angles, in [0, pi]."""
    diff = normalize_angle_2pi(angle1 - angle2)
    return min(diff, TWO_PI - diff)


def unit_vector(angle: float) -> Point:
    """Unit direction vector for an angle, with float noise on cardinal directions removed."""
    cos_a, sin_a = math.cos(angle), math.sin(angle)
    if abs(cos_a) < UNIT_NOISE:
        cos_a = 0.0
    if abs(sin_a) < UNIT_NOISE:
        sin_a = 0.0
    return (cos_a, sin_a)


def bounding_box(seg: Segment) -> Tuple[float, float, float, float]:
    """Axis-aligned bounds (min_x, min_y, max_x, max_y) of a segment."""
    (x1, y1), (x2, y2) = seg
    return (min(x1, x2), min(y1, y2), max(x1, x2), max(y1, y2))


# ============================================================
# Angle Predicates
# ============================================================

def snap_to_cardinal_angle(angle: float, tolerance: float = DEFAULT_ANGLE_TOLERANCE) -> float:
    """
    Snap an angle to the nearest multiple of 90 degrees.

    Args:
        angle: Angle in radians
        tolerance: Snap tolerance in radians

    Returns:
        The cardinal angle in [0, 2*pi) if within tolerance, otherwise the
        input angle normalized to [0, 2*pi)
    """
    angle = normalize_angle_2pi(angle)
    for cardinal in (0.0, HALF_PI, math.pi, 3 * HALF_PI, TWO_PI):
        if abs(angle - cardinal) <= tolerance:
            return 0.0 if cardinal == TWO_PI else cardinal
    return angle


def is_parallel(angle1: float, angle2: float, tolerance: float = DEFAULT_ANGLE_TOLERANCE) -> bool:
    """True if two angles agree within tolerance, modulo 180 degrees."""
    diff = abs(angle1 - angle2) % math.pi
    return diff <= tolerance or (math.pi - diff) <= tolerance


def is_perpendicular(angle1: float, angle2: float, tolerance: float = DEFAULT_ANGLE_TOLERANCE) -> bool:
    """True if two angles differ by 90 degrees within tolerance, modulo 180 degrees."""
    diff = abs(angle1 - angle2) % math.pi
    return abs(diff - HALF_PI) <= tolerance


# ============================================================
# Distance & Projection
# ============================================================

def dist_point_to_segment(p: Point, a: Point, b: Point) -> float:
    """Distance from point p to the bounded segment ab."""
    abx, aby = b[0] - a[0], b[1] - a[1]
    len2 = abx * abx + aby * aby
    if len2 < EPSILON:
        return distance(p, a)

    t = ((p[0] - a[0]) * abx + (p[1] - a[1]) * aby) / len2
    t = max(0.0, min(1.0, t))
    return distance(p, (a[0] + t * abx, a[1] + t * aby))


def dist_point_to_infinite_line(p: Point, a: Point, b: Point) -> float:
    """Perpendicular distance from point p to the infinite line through a and b."""
    abx, aby = b[0] - a[0], b[1] - a[1]
    length = math.hypot(abx, aby)
    if length < EPSILON:
        return distance(p, a)

    # |AB x AP| / |AB|
    return abs(abx * (p[1] - a[1]) - aby * (p[0] - a[0])) / length


def project_point_on_segment(p: Point, seg: Segment) -> Tuple[float, Point]:
    """
    Project a point onto the supporting line of a segment.

    Args:
        p: Point to project
        seg: Reference segment

    Returns:
        (t, projected_point) where t is the parameter along the segment
        (0 at start, 1 at end, unclamped). A degenerate segment yields
        (0.0, start).
    """
    a, b = seg
    abx, aby = b[0] - a[0], b[1] - a[1]
    len2 = abx * abx + aby * aby
    if len2 < EPSILON:
        return 0.0, a

    t = ((p[0] - a[0]) * abx + (p[1] - a[1]) * aby) / len2
    return t, (a[0] + t * abx, a[1] + t * aby)


def project_points_on_axis(points: Sequence[Point], origin: Point, angle: float) -> np.ndarray:
    """Scalar projections of points onto the axis through origin with the given direction."""
    direction = np.array(unit_vector(angle))
    offsets = np.asarray(points, dtype=float) - np.asarray(origin, dtype=float)
    return offsets @ direction


def dist_between_parallel_segments(seg1: Segment, seg2: Segment) -> float:
    """
    Perpendicular distance between two (near-)parallel segments.

    Averages the distance of seg2's endpoints to seg1's supporting line.
    Returns infinity when either segment is degenerate.
    """
    if is_degenerate(seg1) or is_degenerate(seg2):
        return math.inf

    d1 = dist_point_to_infinite_line(seg2[0], seg1[0], seg1[1])
    d2 = dist_point_to_infinite_line(seg2[1], seg1[0], seg1[1])
    return (d1 + d2) / 2.0


# ============================================================
# Overlap, Gap & Collinearity
# ============================================================

def _projected_intervals(seg1: Segment, seg2: Segment) -> Tuple[Tuple[float, float], Tuple[float, float]]:
    """Project both segments onto seg1's direction, anchored at seg1's start."""
    proj = project_points_on_axis([seg1[0], seg1[1], seg2[0], seg2[1]], seg1[0], segment_angle(seg1))
    return (
        (float(min(proj[0], proj[1])), float(max(proj[0], proj[1]))),
        (float(min(proj[2], proj[3])), float(max(proj[2], proj[3]))),
    )


def calculate_overlap(seg1: Segment, seg2: Segment) -> OverlapResult:
    """
    Overlap of two segments projected onto their shared direction.

    Args:
        seg1: Reference segment (its direction is used)
        seg2: Other segment

    Returns:
        OverlapResult with the overlap length and its ratio to the shorter
        projected segment. Touching segments overlap with length 0.
    """
    if is_degenerate(seg1) or is_degenerate(seg2):
        return NO_OVERLAP

    (min1, max1), (min2, max2) = _projected_intervals(seg1, seg2)
    start = max(min1, min2)
    end = min(max1, max2)
    length = end - start

    if length <= -EPSILON:
        return OverlapResult(has_overlap=False, overlap_length=length,
                             overlap_start=start, overlap_end=end)

    ratio = 0.0
    if length > 0:
        shorter = min(max1 - min1, max2 - min2)
        ratio = length / shorter if shorter > EPSILON else 0.0

    return OverlapResult(
        has_overlap=True,
        overlap_length=max(0.0, length),
        overlap_ratio=min(1.0, ratio),
        overlap_start=start,
        overlap_end=end,
    )


def calculate_gap_distance(seg1: Segment, seg2: Segment) -> float:
    """
    Gap between the nearer endpoints of two collinear segments.

    Returns:
        The positive gap when the projected intervals are disjoint, 0 when
        they touch, and -1 when they overlap.
    """
    if is_degenerate(seg1) and is_degenerate(seg2):
        return distance(seg1[0], seg2[0])
    if is_degenerate(seg1):
        seg1, seg2 = seg2, seg1

    (min1, max1), (min2, max2) = _projected_intervals(seg1, seg2)
    if min2 >= max1:
        return min2 - max1
    if min1 >= max2:
        return min1 - max2
    return -1.0


def are_collinear(
    seg1: Segment,
    seg2: Segment,
    angle_tolerance: float = DEFAULT_ANGLE_TOLERANCE,
    distance_tolerance: float = DEFAULT_DISTANCE_TOLERANCE
) -> bool:
    """
    Check whether two segments lie on the same infinite line.

    Args:
        seg1: First segment
        seg2: Second segment
        angle_tolerance: Direction tolerance in radians
        distance_tolerance: Maximum perpendicular offset of every endpoint
            from the other segment's supporting line

    Returns:
        True if parallel within tolerance and all four endpoint offsets are
        within distance_tolerance
    """
    if is_degenerate(seg1) or is_degenerate(seg2):
        return False

    if not is_parallel(segment_angle(seg1), segment_angle(seg2), angle_tolerance):
        return False

    offsets = (
        dist_point_to_infinite_line(seg2[0], seg1[0], seg1[1]),
        dist_point_to_infinite_line(seg2[1], seg1[0], seg1[1]),
        dist_point_to_infinite_line(seg1[0], seg2[0], seg2[1]),
        dist_point_to_infinite_line(seg1[1], seg2[0], seg2[1]),
    )
    return all(d <= distance_tolerance for d in offsets)


# ============================================================
# Merge
# ============================================================

def envelope_on_axis(points: Sequence[Point], origin: Point, angle: float) -> Segment:
    """Segment spanning the extreme projections of points onto an axis."""
    proj = project_points_on_axis(points, origin, angle)
    lo, hi = float(proj.min()), float(proj.max())
    cos_a, sin_a = unit_vector(angle)
    return (
        (origin[0] + lo * cos_a, origin[1] + lo * sin_a),
        (origin[0] + hi * cos_a, origin[1] + hi * sin_a),
    )


def merge_collinear_segments(
    seg1: Segment,
    seg2: Segment,
    snap_tolerance: float = DEFAULT_ANGLE_TOLERANCE
) -> Segment:
    """
    Merge two collinear segments into their envelope.

    The longer segment provides the direction and the anchor point; the
    result spans the outermost two of the four endpoints.

    Args:
        seg1: First segment
        seg2: Second segment
        snap_tolerance: Radians within which the direction snaps to a
            cardinal angle. Directions further off are kept as they are.

    Returns:
        Envelope segment along the shared direction
    """
    dominant = seg1 if segment_length(seg1) >= segment_length(seg2) else seg2
    if is_degenerate(dominant):
        return dominant

    ref_angle = snap_to_cardinal_angle(segment_angle(dominant), snap_tolerance)
    return envelope_on_axis([seg1[0], seg1[1], seg2[0], seg2[1]], dominant[0], ref_angle)


# ============================================================
# Intersection
# ============================================================

def _line_parameters(a1: Point, a2: Point, b1: Point, b2: Point) -> Optional[Tuple[float, float]]:
    dx1, dy1 = a2[0] - a1[0], a2[1] - a1[1]
    dx2, dy2 = b2[0] - b1[0], b2[1] - b1[1]

    denom = dx1 * dy2 - dy1 * dx2
    if abs(denom) < EPSILON:
        return None  # parallel or coincident

    t1 = ((b1[0] - a1[0]) * dy2 - (b1[1] - a1[1]) * dx2) / denom
    t2 = ((b1[0] - a1[0]) * dy1 - (b1[1] - a1[1]) * dx1) / denom
    return t1, t2


def get_line_intersection(a1: Point, a2: Point, b1: Point, b2: Point) -> Optional[Point]:
    """Intersection of the infinite lines a1-a2 and b1-b2, or None if parallel."""
    params = _line_parameters(a1, a2, b1, b2)
    if params is None:
        return None

    t1 = params[0]
    return (a1[0] + t1 * (a2[0] - a1[0]), a1[1] + t1 * (a2[1] - a1[1]))


def get_segment_intersection(seg1: Segment, seg2: Segment, tolerance: float = 0.0) -> Optional[Point]:
    """
    Intersection of two bounded segments.

    Args:
        seg1: First segment
        seg2: Second segment
        tolerance: Length tolerance allowing the intersection to lie slightly
            beyond either segment's ends

    Returns:
        The intersection point, or None if the segments do not meet
    """
    if is_degenerate(seg1) or is_degenerate(seg2):
        return None

    params = _line_parameters(seg1[0], seg1[1], seg2[0], seg2[1])
    if params is None:
        return None

    t1, t2 = params
    tol = tolerance / max(segment_length(seg1), segment_length(seg2)) if tolerance > 0 else 0.0
    if -tol <= t1 <= 1 + tol and -tol <= t2 <= 1 + tol:
        (x1, y1), (x2, y2) = seg1
        return (x1 + t1 * (x2 - x1), y1 + t1 * (y2 - y1))
    return None
