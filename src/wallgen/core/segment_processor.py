"""
Wall Segment Processor - Main orchestration class for centerline generation.

Converts raw wall face segments into idealized centerlines through a fixed,
bounded sequence of stages executed once per call:
1. Normalize angles (snap to cardinal directions)
2. Bucket segments by angle
3. Merge collinear/overlapping/touching segments
4. Detect wall pairs (two faces of one wall)
5. Generate centerlines from pairs
6. Fallback single lines
7. Recover gaps (doors, columns)
8. De-overlap merge of centerlines
9. Axis snap (optional)
10. Auto-extend to perpendicular centerlines (optional)
11. Break at grid intersections (optional)
12. Extend to grid intersections (optional)
13. Final cleanup (inactive, duplicates, short lines)

No stage raises: a stage without applicable candidates performs no mutation.
"""

import math
import uuid
import logging
from dataclasses import dataclass
from typing import AbstractSet, Dict, List, Optional, Sequence, Set, Tuple

from src.interfaces.processor import IProcessor
from src.services.config_service import ProcessorConfig
from src.services.logging_service import TRACE_LOGGER_NAME
from src.utils import geometry_utils as geo
from src.utils.spatial_index import BoundingBox, SpatialHash
from src.wallgen.models.elements import AxisLine, CenterLine, WallSegment
from src.wallgen.models.pipeline import ProcessingStats

logger = logging.getLogger(__name__)
trace_logger = logging.getLogger(TRACE_LOGGER_NAME)

# Bounded iteration counts
MAX_MERGE_PASSES = 5
MAX_DEOVERLAP_PASSES = 3

# Wall pair window around a nominal thickness and minimum overlap ratio
PAIR_DISTANCE_MIN_FACTOR = 0.8
PAIR_DISTANCE_MAX_FACTOR = 1.2
PAIR_MIN_OVERLAP_RATIO = 0.5

# Gap recovery groups centerlines into 5-degree direction buckets and
# tests collinearity at twice the distance tolerance
GAP_BUCKET_DEGREES = 5
GAP_COLLINEAR_DISTANCE_FACTOR = 2.0

# Centerlines whose thicknesses differ by more than 20% never coalesce
THICKNESS_MATCH_RATIO = 0.2

# Grid break window on the centerline parameter t and axis intersection tolerance (length units)
GRID_BREAK_T_MIN = 0.05
GRID_BREAK_T_MAX = 0.95
GRID_BREAK_INTERSECTION_TOLERANCE = 10.0

# Break parameters closer than this are the same break
GRID_BREAK_T_EPSILON = 1e-9

AngleBuckets = Dict[int, List[int]]


@dataclass
class CandidatePair:
    """Scored wall pair candidate, only alive during pair detection."""
    seg1_index: int
    seg2_index: int
    thickness: float
    overlap_ratio: float
    score: float


class WallSegmentProcessor(IProcessor):
    """
    Main processor turning wall face segments into centerlines.

    One call processes one input set to completion. Inputs are copied into a
    fresh working arena, so the same instance can be reused sequentially and
    caller-owned segments are never mutated.
    """

    def __init__(self, config: Optional[ProcessorConfig] = None):
        """
        Initialize the processor.

        Args:
            config: Processor parameters (defaults if omitted)
        """
        self.config = config or ProcessorConfig()
        self._stats = ProcessingStats()
        self._run_id = "-"

    @property
    def angle_tolerance_rad(self) -> float:
        """Configured angle tolerance converted from degrees to radians."""
        return self.config.angle_tolerance * geo.DEG_TO_RAD

    def get_stats(self) -> ProcessingStats:
        return self._stats

    def process(
        self,
        segments: Sequence[WallSegment],
        axes: Optional[Sequence[AxisLine]] = None
    ) -> List[CenterLine]:
        """
        Run the full stage sequence over one input set.

        Args:
            segments: Raw wall face segments
            axes: Optional structural reference axes (never mutated)

        Returns:
            Active, de-duplicated centerlines no shorter than the minimum length
        """
        self._run_id = uuid.uuid4().hex[:8]
        stats = ProcessingStats(input_segments=len(segments))
        self._stats = stats

        working = self._initialize_segments(segments)
        axes = [axis for axis in (axes or []) if axis.is_valid]

        if not working:
            logger.info("No wall segments supplied, nothing to process")
            return []

        logger.info(f"=== Starting centerline generation: {len(working)} segments, {len(axes)} axes ===")

        # STEP 1-2: Normalize angles and bucket by direction
        self._normalize_angles(working)
        buckets = self._build_angle_buckets(working)
        self._trace("bucket", f"{len(buckets)} angle buckets")

        # STEP 3: Merge collinear segments
        stats.merged_segments = self._merge_collinear_segments(working, buckets)
        self._trace("merge", f"{stats.merged_segments} segments merged")

        # STEP 4-5: Pair wall faces and build their centerlines
        stats.detected_pairs = self._detect_wall_pairs(working, buckets)
        centerlines = self._generate_pair_centerlines(working)
        stats.pair_centerlines = len(centerlines)
        self._trace("pair", f"{stats.detected_pairs} pairs, {stats.pair_centerlines} centerlines")

        # STEP 6: Single lines
        singles = self._fallback_single_lines(working)
        stats.single_centerlines = len(singles)
        centerlines.extend(singles)
        self._trace("singles", f"{stats.single_centerlines} single-line centerlines")

        # STEP 7-8: Bridge openings and coalesce overlaps
        stats.recovered_gaps = self._recover_gaps(centerlines)
        self._trace("gaps", f"{stats.recovered_gaps} gaps recovered")
        stats.merged_centerlines = self._merge_overlapping_centerlines(centerlines)
        self._trace("deoverlap", f"{stats.merged_centerlines} centerlines merged")

        # STEP 9: Snap to axes
        if axes and self.config.axis_snap_distance > 0:
            stats.snapped_to_axes = self._snap_to_axes(centerlines, axes)
            self._trace("axis_snap", f"{stats.snapped_to_axes} centerlines snapped")

        # STEP 10: Auto-extend
        if self.config.enable_auto_extend:
            stats.auto_extended = self._auto_extend(centerlines)
            self._trace("auto_extend", f"{stats.auto_extended} endpoints extended")

        # STEP 11: Break at grid
        break_points: Set[geo.Point] = set()
        if self.config.break_at_grid_intersections and axes:
            centerlines, stats.grid_breaks, break_points = self._break_at_grid(centerlines, axes)
            self._trace("grid_break", f"{stats.grid_breaks} breaks")

        # STEP 12: Extend to grid
        if self.config.extend_to_grid_intersections and axes:
            stats.grid_extended = self._extend_to_grid(centerlines, axes, break_points)
            self._trace("grid_extend", f"{stats.grid_extended} endpoints extended")

        # STEP 13: Final cleanup
        result = self._cleanup(centerlines, stats)
        stats.output_centerlines = len(result)
        self._trace("cleanup", f"{stats.duplicates_merged} duplicates, {stats.removed_short} short removed")

        logger.info(f"Centerline generation complete: {len(result)} centerlines "
                    f"({stats.detected_pairs} pairs, {stats.single_centerlines} single lines, "
                    f"{stats.recovered_gaps} gaps recovered)")
        return result

    def _trace(self, stage: str, message: str) -> None:
        logger.debug(f"[{stage}] {message}")
        trace_logger.debug(f"{stage}: {message}", extra={"run_id": self._run_id})

    # ------------------------------------------------------------------
    # Working state
    # ------------------------------------------------------------------

    def _initialize_segments(self, segments: Sequence[WallSegment]) -> List[WallSegment]:
        """Copy inputs into the working arena and reset processing state."""
        working: List[WallSegment] = []
        for index, segment in enumerate(segments):
            seg = segment.model_copy(deep=True)
            seg.index = index
            seg.active = True
            seg.processed = False
            seg.pair_index = None
            seg.merged_into = None
            seg.absorbed_ids = []
            working.append(seg)
        return working

    # ------------------------------------------------------------------
    # Step 1: Normalize angles
    # ------------------------------------------------------------------

    def _normalize_angles(self, working: List[WallSegment]) -> None:
        """Snap near-cardinal segments, keeping start point and length."""
        tolerance = self.angle_tolerance_rad

        for seg in working:
            if not seg.active or not seg.is_valid:
                continue

            angle = seg.angle
            snapped = geo.snap_to_cardinal_angle(angle, tolerance)
            if geo.angle_difference(snapped, angle) <= geo.EPSILON:
                continue

            length = seg.length
            cos_a, sin_a = geo.unit_vector(snapped)
            seg.end = (seg.start[0] + length * cos_a, seg.start[1] + length * sin_a)

    # ------------------------------------------------------------------
    # Step 2: Build angle buckets
    # ------------------------------------------------------------------

    def _build_angle_buckets(self, working: List[WallSegment]) -> AngleBuckets:
        """Group active segment indices by rounded direction-independent degree."""
        buckets: AngleBuckets = {}
        for seg in working:
            if not seg.active:
                continue
            key = int(round(math.degrees(seg.normalized_angle))) % 180
            buckets.setdefault(key, []).append(seg.index)
        return buckets

    # ------------------------------------------------------------------
    # Step 3: Merge collinear segments
    # ------------------------------------------------------------------

    def _merge_collinear_segments(self, working: List[WallSegment], buckets: AngleBuckets) -> int:
        """Envelope collinear segments that overlap or touch, up to MAX_MERGE_PASSES passes."""
        angle_tol = self.angle_tolerance_rad
        dist_tol = self.config.distance_tolerance
        total_merged = 0

        for _ in range(MAX_MERGE_PASSES):
            merged_this_pass = 0

            for indices in buckets.values():
                members = [working[i] for i in indices if working[i].active]

                for i, seg1 in enumerate(members):
                    if not seg1.active:
                        continue

                    for seg2 in members[i + 1:]:
                        if not seg2.active:
                            continue

                        if not geo.are_collinear(seg1.as_segment, seg2.as_segment, angle_tol, dist_tol):
                            continue

                        overlap = geo.calculate_overlap(seg1.as_segment, seg2.as_segment)
                        gap = geo.calculate_gap_distance(seg1.as_segment, seg2.as_segment)
                        if not overlap.has_overlap and gap > dist_tol:
                            continue

                        self._absorb_segment(seg1, seg2)
                        merged_this_pass += 1

            total_merged += merged_this_pass
            if merged_this_pass == 0:
                break

        return total_merged

    def _absorb_segment(self, target: WallSegment, other: WallSegment) -> None:
        target.set_from_segment(
            geo.merge_collinear_segments(target.as_segment, other.as_segment, self.angle_tolerance_rad)
        )

        # Larger thickness wins, together with its tag
        if other.thickness > target.thickness:
            target.thickness = other.thickness
            target.wall_type = other.wall_type

        target.absorbed_ids.extend(s for s in other.source_ids if s not in target.source_ids)
        other.active = False
        other.merged_into = target.index

    # ------------------------------------------------------------------
    # Step 4: Detect wall pairs
    # ------------------------------------------------------------------

    @staticmethod
    def _is_pairable(seg: WallSegment) -> bool:
        return seg.active and seg.pair_index is None and not seg.is_single_line

    def _detect_wall_pairs(self, working: List[WallSegment], buckets: AngleBuckets) -> int:
        """
        Pair parallel offset segments as the two faces of one wall.

        Nominal thicknesses are tried largest first. Candidates are visited in
        ascending input index order and only a strictly lower score replaces
        the current best, so the lowest index wins ties.
        """
        pair_count = 0
        nominals = sorted({t for t in self.config.wall_thicknesses if t > 0}, reverse=True)

        for nominal in nominals:
            min_dist = nominal * PAIR_DISTANCE_MIN_FACTOR
            max_dist = nominal * PAIR_DISTANCE_MAX_FACTOR

            for indices in buckets.values():
                candidates = [working[i] for i in indices if self._is_pairable(working[i])]

                for i, seg1 in enumerate(candidates):
                    if not self._is_pairable(seg1):
                        continue

                    best: Optional[CandidatePair] = None
                    for seg2 in candidates[i + 1:]:
                        if not self._is_pairable(seg2):
                            continue

                        candidate = self._score_pair(seg1, seg2, nominal, min_dist, max_dist)
                        if candidate and (best is None or candidate.score < best.score):
                            best = candidate

                    if best is not None:
                        self._assign_pair(working, best)
                        pair_count += 1

        return pair_count

    def _score_pair(
        self,
        seg1: WallSegment,
        seg2: WallSegment,
        nominal: float,
        min_dist: float,
        max_dist: float
    ) -> Optional[CandidatePair]:
        if not geo.is_parallel(seg1.angle, seg2.angle, self.angle_tolerance_rad):
            return None

        perp_dist = geo.dist_between_parallel_segments(seg1.as_segment, seg2.as_segment)
        if perp_dist < min_dist or perp_dist > max_dist:
            return None

        overlap = geo.calculate_overlap(seg1.as_segment, seg2.as_segment)
        if not overlap.has_overlap or overlap.overlap_ratio < PAIR_MIN_OVERLAP_RATIO:
            return None

        # Prefer distance closest to nominal, then higher overlap
        score = abs(perp_dist - nominal) + (1.0 - overlap.overlap_ratio) * nominal
        return CandidatePair(
            seg1_index=seg1.index,
            seg2_index=seg2.index,
            thickness=perp_dist,
            overlap_ratio=overlap.overlap_ratio,
            score=score,
        )

    @staticmethod
    def _assign_pair(working: List[WallSegment], pair: CandidatePair) -> None:
        seg1 = working[pair.seg1_index]
        seg2 = working[pair.seg2_index]
        seg1.pair_index = seg2.index
        seg2.pair_index = seg1.index
        # Measured, not nominal
        seg1.thickness = pair.thickness
        seg2.thickness = pair.thickness

    # ------------------------------------------------------------------
    # Step 5: Generate centerlines from pairs
    # ------------------------------------------------------------------

    def _generate_pair_centerlines(self, working: List[WallSegment]) -> List[CenterLine]:
        centerlines: List[CenterLine] = []
        seen = set()

        for seg in working:
            if not seg.active or seg.pair_index is None:
                continue

            pair_key = (min(seg.index, seg.pair_index), max(seg.index, seg.pair_index))
            if pair_key in seen:
                continue

            partner = working[seg.pair_index]
            if not partner.active:
                continue

            centerlines.append(self._build_pair_centerline(seg, partner))
            seen.add(pair_key)
            seg.processed = True
            partner.processed = True

        return centerlines

    def _build_pair_centerline(self, seg1: WallSegment, seg2: WallSegment) -> CenterLine:
        """
        Centerline spanning the union of both faces' extents.

        The longer face gives the (snapped) direction; the origin is the
        midpoint between the two faces' midpoints.
        """
        dominant = seg1 if seg1.length >= seg2.length else seg2
        ref_angle = geo.snap_to_cardinal_angle(dominant.angle, self.angle_tolerance_rad)
        origin = geo.midpoint(seg1.midpoint, seg2.midpoint)

        start, end = geo.envelope_on_axis([seg1.start, seg1.end, seg2.start, seg2.end], origin, ref_angle)

        centerline = CenterLine(
            start=start,
            end=end,
            thickness=seg1.thickness if seg1.thickness > 0 else seg2.thickness,
            story_z=seg1.story_z,
            source_ids=seg1.source_ids + seg2.source_ids,
            source_pair=min(seg1.index, seg2.index),
        )
        centerline.ensure_wall_type()
        return centerline

    # ------------------------------------------------------------------
    # Step 6: Fallback single lines
    # ------------------------------------------------------------------

    def _fallback_single_lines(self, working: List[WallSegment]) -> List[CenterLine]:
        """Emit unpaired single-line or thickness-tagged segments directly."""
        centerlines: List[CenterLine] = []

        for seg in working:
            if not seg.active or seg.processed or seg.pair_index is not None:
                continue
            if not seg.is_valid:
                continue
            if not seg.is_single_line and seg.thickness <= 0:
                continue

            centerline = CenterLine(
                start=seg.start,
                end=seg.end,
                thickness=seg.thickness if seg.thickness > 0 else self.config.default_thickness,
                wall_type=seg.wall_type,
                story_z=seg.story_z,
                source_ids=seg.source_ids,
            )
            centerline.ensure_wall_type()
            centerlines.append(centerline)
            seg.processed = True

        return centerlines

    # ------------------------------------------------------------------
    # Step 7: Recover gaps
    # ------------------------------------------------------------------

    def _gap_widths(self) -> List[float]:
        widths = [*self.config.door_widths, *self.config.column_widths, self.config.auto_join_gap_distance]
        return sorted({w for w in widths if w > 0})

    def _group_by_direction(self, centerlines: List[CenterLine]) -> Dict[int, List[CenterLine]]:
        """Active centerlines in 5-degree buckets, each ordered along the bucket direction."""
        groups: Dict[int, List[CenterLine]] = {}
        for cl in centerlines:
            if not cl.active:
                continue
            degrees = math.degrees(cl.normalized_angle)
            key = (int(round(degrees / GAP_BUCKET_DEGREES)) * GAP_BUCKET_DEGREES) % 180
            groups.setdefault(key, []).append(cl)

        for key, members in groups.items():
            ux, uy = geo.unit_vector(math.radians(key))
            members.sort(key=lambda cl: min(cl.start[0] * ux + cl.start[1] * uy,
                                            cl.end[0] * ux + cl.end[1] * uy))
        return groups

    def _recover_gaps(self, centerlines: List[CenterLine]) -> int:
        """Bridge collinear centerlines separated by an opening of a known width."""
        widths = self._gap_widths()
        if not widths:
            return 0

        angle_tol = self.angle_tolerance_rad
        dist_tol = self.config.distance_tolerance * GAP_COLLINEAR_DISTANCE_FACTOR
        width_tol = self.config.gap_width_tolerance
        auto_join = self.config.auto_join_gap_distance
        recovered = 0

        for members in self._group_by_direction(centerlines).values():
            for i, cl1 in enumerate(members):
                if not cl1.active:
                    continue

                for cl2 in members[i + 1:]:
                    if not cl2.active:
                        continue

                    if not geo.are_collinear(cl1.as_segment, cl2.as_segment, angle_tol, dist_tol):
                        continue

                    gap = geo.calculate_gap_distance(cl1.as_segment, cl2.as_segment)
                    matches_opening = any(abs(gap - w) <= w * width_tol for w in widths)

                    if matches_opening or gap <= auto_join:
                        cl1.merge_with(cl2, angle_tol)
                        recovered += 1

        return recovered

    # ------------------------------------------------------------------
    # Step 8: De-overlap merge
    # ------------------------------------------------------------------

    def _merge_overlapping_centerlines(self, centerlines: List[CenterLine]) -> int:
        angle_tol = self.angle_tolerance_rad
        dist_tol = self.config.distance_tolerance
        total_merged = 0

        for _ in range(MAX_DEOVERLAP_PASSES):
            merged_this_pass = 0
            active = [cl for cl in centerlines if cl.active]

            for i, cl1 in enumerate(active):
                if not cl1.active:
                    continue

                for cl2 in active[i + 1:]:
                    if not cl2.active:
                        continue

                    if abs(cl1.thickness - cl2.thickness) > cl1.thickness * THICKNESS_MATCH_RATIO:
                        continue

                    if not geo.are_collinear(cl1.as_segment, cl2.as_segment, angle_tol, dist_tol):
                        continue

                    overlap = geo.calculate_overlap(cl1.as_segment, cl2.as_segment)
                    if overlap.has_overlap and overlap.overlap_length > 0:
                        cl1.merge_with(cl2, angle_tol)
                        merged_this_pass += 1

            total_merged += merged_this_pass
            if merged_this_pass == 0:
                break

        return total_merged

    # ------------------------------------------------------------------
    # Step 9: Snap to axes
    # ------------------------------------------------------------------

    def _snap_to_axes(self, centerlines: List[CenterLine], axes: List[AxisLine]) -> int:
        """Move each centerline onto the first parallel axis within snap distance."""
        angle_tol = self.angle_tolerance_rad
        snapped_count = 0

        for cl in centerlines:
            if not cl.active or not cl.is_valid:
                continue

            for axis in axes:
                if not geo.is_parallel(cl.angle, axis.angle, angle_tol):
                    continue

                offset = geo.dist_point_to_infinite_line(cl.midpoint, axis.start, axis.end)
                if offset <= self.config.axis_snap_distance:
                    self._translate_onto_axis(cl, axis)
                    snapped_count += 1
                    break

        return snapped_count

    @staticmethod
    def _translate_onto_axis(cl: CenterLine, axis: AxisLine) -> None:
        """Shift perpendicular to the centerline's own direction until its midpoint lies on the axis."""
        ax, ay = axis.direction
        normal = (-ay, ax)
        mid = cl.midpoint
        signed_offset = (mid[0] - axis.start[0]) * normal[0] + (mid[1] - axis.start[1]) * normal[1]

        ux, uy = cl.direction
        perp = (-uy, ux)
        denom = perp[0] * normal[0] + perp[1] * normal[1]
        if abs(denom) < geo.EPSILON:
            return

        shift = -signed_offset / denom
        cl.start = (cl.start[0] + shift * perp[0], cl.start[1] + shift * perp[1])
        cl.end = (cl.end[0] + shift * perp[0], cl.end[1] + shift * perp[1])

    # ------------------------------------------------------------------
    # Step 10: Auto-extend
    # ------------------------------------------------------------------

    def _build_centerline_index(self, active: List[CenterLine], margin: float) -> SpatialHash[int]:
        """Index positions in active by bounds grown by margin, so endpoints moved up to margin stay covered."""
        index: SpatialHash[int] = SpatialHash(self.config.spatial_index_cell_size)
        for i, cl in enumerate(active):
            index.insert_with_bounds(i, BoundingBox.from_segment(cl.as_segment).expanded(margin))
        return index

    def _extension_candidates(
        self,
        position: int,
        cl: CenterLine,
        active: List[CenterLine],
        index: Optional[SpatialHash[int]],
        tolerance: float
    ) -> List[CenterLine]:
        """Other active centerlines, in list order, that may lie within tolerance of cl's endpoints."""
        if index is None:
            return [other for i, other in enumerate(active) if i != position]

        hits = set(index.query_bounds(BoundingBox.around(cl.start, tolerance)))
        hits.update(index.query_bounds(BoundingBox.around(cl.end, tolerance)))
        hits.discard(position)
        return [active[i] for i in sorted(hits)]

    def _auto_extend(self, centerlines: List[CenterLine]) -> int:
        """
        Move endpoints onto the exact intersection with a nearby perpendicular centerline.

        An endpoint qualifies when it lies within the extension tolerance of
        the other centerline and the infinite-line intersection is within the
        same tolerance of it. Only the endpoint nearer to the intersection
        moves.
        """
        tolerance = self.config.auto_extend_tolerance
        angle_tol = self.angle_tolerance_rad
        active = [cl for cl in centerlines if cl.active and cl.is_valid]

        index = None
        if active and len(active) >= self.config.spatial_index_threshold:
            index = self._build_centerline_index(active, tolerance)
            logger.debug(f"Auto-extend using spatial index over {len(active)} centerlines")

        extended_count = 0
        for position, cl in enumerate(active):
            for other in self._extension_candidates(position, cl, active, index, tolerance):
                if not other.active:
                    continue
                if not geo.is_perpendicular(cl.angle, other.angle, angle_tol):
                    continue

                intersection = geo.get_line_intersection(cl.start, cl.end, other.start, other.end)
                if intersection is None:
                    continue

                to_start = geo.distance(cl.start, intersection)
                to_end = geo.distance(cl.end, intersection)
                moves_start = to_start <= to_end
                endpoint = cl.start if moves_start else cl.end

                gap_to_other = geo.dist_point_to_segment(endpoint, other.start, other.end)
                if gap_to_other <= geo.EPSILON or gap_to_other > tolerance:
                    continue
                move = min(to_start, to_end)
                if move <= geo.EPSILON or move > tolerance:
                    continue

                if moves_start:
                    cl.start = intersection
                else:
                    cl.end = intersection
                extended_count += 1

        return extended_count

    # ------------------------------------------------------------------
    # Step 11: Break at grid
    # ------------------------------------------------------------------

    def _break_parameters(self, cl: CenterLine, axes: List[AxisLine]) -> List[float]:
        """Sorted, distinct interior parameters where perpendicular axes cross the centerline."""
        params: List[float] = []
        for axis in axes:
            if not geo.is_perpendicular(cl.angle, axis.angle, self.angle_tolerance_rad):
                continue

            point = geo.get_segment_intersection(cl.as_segment, axis.as_segment,
                                                 GRID_BREAK_INTERSECTION_TOLERANCE)
            if point is None:
                continue

            t, _ = geo.project_point_on_segment(point, cl.as_segment)
            if GRID_BREAK_T_MIN < t < GRID_BREAK_T_MAX:
                params.append(t)

        distinct: List[float] = []
        for t in sorted(params):
            if not distinct or t - distinct[-1] > GRID_BREAK_T_EPSILON:
                distinct.append(t)
        return distinct

    @staticmethod
    def _point_at(cl: CenterLine, t: float) -> geo.Point:
        if t <= 0.0:
            return cl.start
        if t >= 1.0:
            return cl.end
        return (cl.start[0] + t * (cl.end[0] - cl.start[0]),
                cl.start[1] + t * (cl.end[1] - cl.start[1]))

    def _break_at_grid(
        self,
        centerlines: List[CenterLine],
        axes: List[AxisLine]
    ) -> Tuple[List[CenterLine], int, Set[geo.Point]]:
        """
        Split centerlines at interior crossings with perpendicular axes.

        Returns:
            (centerlines plus new pieces, number of breaks, break points)
        """
        pieces: List[CenterLine] = []
        break_points: Set[geo.Point] = set()
        break_count = 0

        for cl in centerlines:
            if not cl.active or not cl.is_valid:
                continue

            params = self._break_parameters(cl, axes)
            if not params:
                continue

            points = [self._point_at(cl, t) for t in (0.0, *params, 1.0)]
            for start, end in zip(points, points[1:]):
                pieces.append(cl.split_copy(start, end))
            break_points.update(points[1:-1])

            break_count += len(params)
            cl.active = False

        return centerlines + pieces, break_count, break_points

    # ------------------------------------------------------------------
    # Step 12: Extend to grid
    # ------------------------------------------------------------------

    def _extend_to_grid(
        self,
        centerlines: List[CenterLine],
        axes: List[AxisLine],
        fixed_points: AbstractSet[geo.Point] = frozenset()
    ) -> int:
        """
        Extend each end to the nearest perpendicular axis lying beyond it within the maximum distance.

        Ends found in fixed_points (grid-break points) stay where they are.
        """
        max_extend = self.config.grid_extend_max_distance
        angle_tol = self.angle_tolerance_rad
        extended_count = 0

        for cl in centerlines:
            if not cl.active or not cl.is_valid:
                continue

            best_start: Optional[Tuple[float, geo.Point]] = None
            best_end: Optional[Tuple[float, geo.Point]] = None

            for axis in axes:
                if not geo.is_perpendicular(cl.angle, axis.angle, angle_tol):
                    continue

                point = geo.get_line_intersection(cl.start, cl.end, axis.start, axis.end)
                if point is None:
                    continue

                t, _ = geo.project_point_on_segment(point, cl.as_segment)
                if t < 0:
                    dist = geo.distance(cl.start, point)
                    if geo.EPSILON < dist <= max_extend and (best_start is None or dist < best_start[0]):
                        best_start = (dist, point)
                elif t > 1:
                    dist = geo.distance(cl.end, point)
                    if geo.EPSILON < dist <= max_extend and (best_end is None or dist < best_end[0]):
                        best_end = (dist, point)

            if best_start is not None and cl.start not in fixed_points:
                cl.start = best_start[1]
                extended_count += 1
            if best_end is not None and cl.end not in fixed_points:
                cl.end = best_end[1]
                extended_count += 1

        return extended_count

    # ------------------------------------------------------------------
    # Step 13: Final cleanup
    # ------------------------------------------------------------------

    def _cleanup(self, centerlines: List[CenterLine], stats: ProcessingStats) -> List[CenterLine]:
        """Drop inactive lines, fold duplicates by identity key, drop short lines."""
        unique: Dict[str, CenterLine] = {}

        for cl in centerlines:
            if not cl.active:
                continue

            key = cl.identity_key
            if key in unique:
                unique[key].add_source_ids(cl.source_ids)
                stats.duplicates_merged += 1
            else:
                unique[key] = cl

        min_length = self.config.min_centerline_length
        result = [cl for cl in unique.values() if cl.length >= min_length]
        stats.removed_short = len(unique) - len(result)
        return result
