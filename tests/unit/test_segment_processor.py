"""
Unit tests for WallSegmentProcessor stages.
"""

import sys
import math
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

import pytest

from src.services.config_service import ProcessorConfig
from src.wallgen.core.segment_processor import WallSegmentProcessor
from src.wallgen.models import AxisLine, CenterLine, ProcessingStats, WallSegment


def seg(x1, y1, x2, y2, **kwargs) -> WallSegment:
    return WallSegment(start=(x1, y1), end=(x2, y2), **kwargs)


def single(x1, y1, x2, y2, **kwargs) -> WallSegment:
    return seg(x1, y1, x2, y2, is_single_line=True, **kwargs)


def endpoints(cl: CenterLine):
    return (*cl.start, *cl.end)


@pytest.fixture
def processor():
    return WallSegmentProcessor(ProcessorConfig(wall_thicknesses=[200]))


class TestWorkingState:
    """Tests for input handling and per-call state."""

    def test_empty_input(self, processor):
        assert processor.process([]) == []
        assert processor.get_stats().output_centerlines == 0

    def test_inputs_not_mutated(self, processor):
        segments = [seg(0, 0, 5000, 0, source_id="a"), seg(0, 200, 5000, 200, source_id="b")]
        processor.process(segments)

        assert segments[0].thickness == 0
        assert segments[0].pair_index is None
        assert segments[0].index == -1
        assert segments[1].processed is False

    def test_reuse_gives_same_result(self, processor):
        segments = [seg(0, 0, 5000, 0), seg(0, 200, 5000, 200)]
        first = [endpoints(cl) for cl in processor.process(segments)]
        second = [endpoints(cl) for cl in processor.process(segments)]
        assert first == second

    def test_degenerate_segments_are_inert(self, processor):
        result = processor.process([single(10, 10, 10, 10, thickness=200), seg(0, 0, 0, 0)])
        assert result == []


class TestNormalizeAndBucket:
    """Tests for angle normalization and bucketing."""

    def test_snaps_near_horizontal_keeping_length(self, processor):
        working = processor._initialize_segments([seg(0, 0, 1000, 35)])
        length = working[0].length

        processor._normalize_angles(working)

        assert working[0].start == (0, 0)
        assert working[0].end[1] == pytest.approx(0.0)
        assert working[0].length == pytest.approx(length)

    def test_diagonal_unchanged(self, processor):
        working = processor._initialize_segments([seg(0, 0, 1000, 1000)])
        processor._normalize_angles(working)
        assert working[0].end == (1000, 1000)

    def test_buckets_ignore_direction(self, processor):
        working = processor._initialize_segments([
            seg(0, 0, 1000, 0),
            seg(0, 0, 0, 1000),
            seg(1000, 500, 0, 500),
            seg(0, 0, 0, -1000),
        ])
        buckets = processor._build_angle_buckets(working)
        assert buckets == {0: [0, 2], 90: [1, 3]}


class TestCollinearMerge:
    """Tests for stage 3 segment merging."""

    def test_touching_segments_merge(self, processor):
        result = processor.process([
            single(0, 0, 1000, 0, thickness=100, source_id="a"),
            single(1005, 0, 2000, 0, thickness=200, source_id="b"),
        ])

        assert len(result) == 1
        assert result[0].start == pytest.approx((0, 0))
        assert result[0].end == pytest.approx((2000, 0))
        assert result[0].thickness == 200
        assert result[0].wall_type == "W200"
        assert result[0].source_ids == ["a", "b"]
        assert processor.get_stats().merged_segments == 1

    def test_gap_beyond_tolerance_not_merged(self):
        processor = WallSegmentProcessor(ProcessorConfig(auto_join_gap_distance=0))
        result = processor.process([
            single(0, 0, 1000, 0, thickness=100),
            single(1050, 0, 2000, 0, thickness=100),
        ])
        assert len(result) == 2
        assert processor.get_stats().merged_segments == 0


class TestWallPairs:
    """Tests for pair detection and pair centerlines."""

    def test_partial_overlap_spans_union(self, processor):
        result = processor.process([seg(0, 0, 1000, 0), seg(400, 200, 1400, 200)])

        assert len(result) == 1
        assert endpoints(result[0]) == pytest.approx((0, 100, 1400, 100))
        assert result[0].source_pair == 0

    def test_opposite_face_directions(self, processor):
        result = processor.process([seg(0, 0, 5000, 0), seg(5000, 200, 0, 200)])

        assert len(result) == 1
        assert endpoints(result[0]) == pytest.approx((0, 100, 5000, 100))

    def test_measured_thickness_recorded(self, processor):
        result = processor.process([seg(0, 0, 3000, 0), seg(0, 210, 3000, 210)])

        assert result[0].thickness == pytest.approx(210)
        assert result[0].wall_type == "W210"

    def test_insufficient_overlap_not_paired(self, processor):
        result = processor.process([seg(0, 0, 1000, 0), seg(600, 200, 1600, 200)])

        assert result == []
        assert processor.get_stats().detected_pairs == 0

    def test_distance_outside_window_not_paired(self, processor):
        result = processor.process([seg(0, 0, 1000, 0), seg(0, 300, 1000, 300)])
        assert result == []

    def test_tie_goes_to_lowest_index(self, processor):
        """Partners above and below at equal score: the earlier input wins."""
        result = processor.process([
            seg(0, 0, 4000, 0, source_id="mid"),
            seg(0, 200, 4000, 200, source_id="above"),
            seg(0, -200, 4000, -200, source_id="below"),
        ])

        assert len(result) == 1
        assert result[0].source_ids == ["mid", "above"]
        assert result[0].start[1] == pytest.approx(100)

    def test_largest_thickness_tried_first(self):
        processor = WallSegmentProcessor(ProcessorConfig(wall_thicknesses=[100, 200]))
        result = processor.process([
            seg(0, 0, 4000, 0, source_id="a"),
            seg(0, 200, 4000, 200, source_id="b"),
            seg(0, 100, 4000, 100, source_id="c"),
        ])

        assert len(result) == 1
        assert result[0].thickness == pytest.approx(200)
        assert result[0].source_ids == ["a", "b"]

    def test_single_lines_never_pair(self, processor):
        result = processor.process([single(0, 0, 3000, 0), single(0, 200, 3000, 200)])

        assert len(result) == 2
        assert processor.get_stats().detected_pairs == 0


class TestFallbackSingles:
    """Tests for single-line fallback."""

    def test_default_thickness_substituted(self):
        processor = WallSegmentProcessor(ProcessorConfig(default_thickness=120))
        result = processor.process([single(0, 0, 3000, 0, source_id="s")])

        assert len(result) == 1
        assert result[0].thickness == 120
        assert result[0].wall_type == "W120"
        assert result[0].source_ids == ["s"]

    def test_tagged_unpaired_face_emitted(self, processor):
        result = processor.process([seg(0, 0, 3000, 0, thickness=150, wall_type="INT")])

        assert len(result) == 1
        assert result[0].thickness == 150
        assert result[0].wall_type == "INT"

    def test_untagged_unpaired_face_dropped(self, processor):
        assert processor.process([seg(0, 0, 3000, 0)]) == []

    def test_story_passthrough(self, processor):
        result = processor.process([single(0, 0, 3000, 0, story_z=3300)])
        assert result[0].story_z == 3300


class TestGapRecovery:
    """Tests for opening bridging."""

    @pytest.fixture
    def door_processor(self):
        return WallSegmentProcessor(ProcessorConfig(door_widths=[900], auto_join_gap_distance=300))

    @pytest.mark.parametrize("gap", [900, 1000, 780])
    def test_gap_within_width_tolerance_bridged(self, door_processor, gap):
        result = door_processor.process([
            single(0, 0, 2000, 0, thickness=200),
            single(2000 + gap, 0, 5000, 0, thickness=200),
        ])

        assert len(result) == 1
        assert endpoints(result[0]) == pytest.approx((0, 0, 5000, 0))

    def test_gap_outside_width_tolerance_kept(self, door_processor):
        result = door_processor.process([
            single(0, 0, 2000, 0, thickness=200),
            single(3100, 0, 5000, 0, thickness=200),
        ])
        assert len(result) == 2

    def test_auto_join_distance(self):
        processor = WallSegmentProcessor(ProcessorConfig(auto_join_gap_distance=300))
        result = processor.process([
            single(0, 0, 2000, 0, thickness=200),
            single(2250, 0, 5000, 0, thickness=200),
        ])
        assert len(result) == 1

    def test_run_order_independent(self, door_processor):
        result = door_processor.process([
            single(2900, 0, 5000, 0, thickness=200, source_id="mid"),
            single(5900, 0, 8000, 0, thickness=200, source_id="right"),
            single(0, 0, 2000, 0, thickness=200, source_id="left"),
        ])

        assert len(result) == 1
        assert endpoints(result[0]) == pytest.approx((0, 0, 8000, 0))
        assert sorted(result[0].source_ids) == ["left", "mid", "right"]
        assert door_processor.get_stats().recovered_gaps == 2

    def test_offset_lines_not_bridged(self, door_processor):
        result = door_processor.process([
            single(0, 0, 2000, 0, thickness=200),
            single(2900, 100, 5000, 100, thickness=200),
        ])
        assert len(result) == 2


class TestDeOverlap:
    """Tests for overlapping centerline coalescing."""

    def test_overlapping_merged(self, processor):
        cl1 = CenterLine(start=(0, 0), end=(3000, 0), thickness=200, source_ids=["a"])
        cl2 = CenterLine(start=(2000, 0), end=(5000, 0), thickness=210, source_ids=["b"])

        assert processor._merge_overlapping_centerlines([cl1, cl2]) == 1
        assert endpoints(cl1) == pytest.approx((0, 0, 5000, 0))
        assert cl1.source_ids == ["a", "b"]
        assert not cl2.active

    def test_incompatible_thickness_kept(self, processor):
        cl1 = CenterLine(start=(0, 0), end=(3000, 0), thickness=200)
        cl2 = CenterLine(start=(2000, 0), end=(5000, 0), thickness=100)

        assert processor._merge_overlapping_centerlines([cl1, cl2]) == 0
        assert cl2.active

    def test_touching_not_merged(self, processor):
        cl1 = CenterLine(start=(0, 0), end=(3000, 0), thickness=200)
        cl2 = CenterLine(start=(3000, 0), end=(5000, 0), thickness=200)
        assert processor._merge_overlapping_centerlines([cl1, cl2]) == 0


class TestOffCardinalWalls:
    """A 3 degree wall with a 1 degree tolerance keeps its direction through every merge."""

    COS = math.cos(math.radians(3))
    SIN = math.sin(math.radians(3))

    @pytest.fixture
    def tight_processor(self):
        return WallSegmentProcessor(ProcessorConfig(
            wall_thicknesses=[200], door_widths=[900], angle_tolerance=1.0))

    def along(self, d, offset=0.0):
        """Point at distance d along the wall, offset along its left normal."""
        return (d * self.COS - offset * self.SIN, d * self.SIN + offset * self.COS)

    def test_split_face_merges_then_pairs(self, tight_processor):
        result = tight_processor.process([
            WallSegment(start=self.along(0), end=self.along(2500), source_id="a1"),
            WallSegment(start=self.along(2500), end=self.along(5000), source_id="a2"),
            WallSegment(start=self.along(0, 200), end=self.along(5000, 200), source_id="b"),
        ])

        assert len(result) == 1
        assert math.degrees(result[0].angle) == pytest.approx(3)
        assert result[0].thickness == pytest.approx(200)
        assert endpoints(result[0]) == pytest.approx((*self.along(0, 100), *self.along(5000, 100)), abs=1e-6)
        assert tight_processor.get_stats().merged_segments == 1

    def test_door_gap_bridged(self, tight_processor):
        result = tight_processor.process([
            single(*self.along(0), *self.along(2000), thickness=200),
            single(*self.along(2900), *self.along(5000), thickness=200),
        ])

        assert len(result) == 1
        assert math.degrees(result[0].angle) == pytest.approx(3)
        assert endpoints(result[0]) == pytest.approx((*self.along(0), *self.along(5000)), abs=1e-6)
        assert tight_processor.get_stats().recovered_gaps == 1

    def test_overlap_merged(self, tight_processor):
        cl1 = CenterLine(start=self.along(0), end=self.along(3000), thickness=200)
        cl2 = CenterLine(start=self.along(2000), end=self.along(5000), thickness=200)

        assert tight_processor._merge_overlapping_centerlines([cl1, cl2]) == 1
        assert math.degrees(cl1.angle) == pytest.approx(3)
        assert endpoints(cl1) == pytest.approx((*self.along(0), *self.along(5000)), abs=1e-6)


class TestAxisSnap:
    """Tests for axis snapping."""

    def test_horizontal_snapped(self, processor):
        axis = AxisLine(start=(-1000, 0), end=(10000, 0), name="A")
        result = processor.process([single(0, 30, 5000, 30, thickness=200)], [axis])

        assert endpoints(result[0]) == pytest.approx((0, 0, 5000, 0))
        assert processor.get_stats().snapped_to_axes == 1

    def test_vertical_snapped(self, processor):
        axis = AxisLine.vertical_at(1000, -100, 5000, name="1")
        result = processor.process([single(1020, 0, 1020, 4000, thickness=200)], [axis])

        assert endpoints(result[0]) == pytest.approx((1000, 0, 1000, 4000))

    def test_beyond_snap_distance(self, processor):
        axis = AxisLine(start=(-1000, 0), end=(10000, 0))
        result = processor.process([single(0, 80, 5000, 80, thickness=200)], [axis])

        assert result[0].start[1] == pytest.approx(80)
        assert processor.get_stats().snapped_to_axes == 0

    def test_axes_never_mutated(self, processor):
        axis = AxisLine(start=(-1000, 0), end=(10000, 0))
        processor.process([single(0, 30, 5000, 30, thickness=200)], [axis])
        assert axis.start == (-1000, 0)


class TestAutoExtend:
    """Tests for perpendicular auto-extension."""

    def test_endpoint_moves_to_intersection(self, processor):
        result = processor.process([
            single(0, 0, 2000, 0, thickness=200),
            single(1000, 50, 1000, 1000, thickness=200),
        ])

        vertical = next(cl for cl in result if cl.start[0] == pytest.approx(1000))
        assert vertical.start == pytest.approx((1000, 0))
        assert processor.get_stats().auto_extended == 1

    def test_corner_closes(self, processor):
        result = processor.process([
            single(0, 0, 960, 0, thickness=200),
            single(1000, 40, 1000, 1000, thickness=200),
        ])

        horizontal, vertical = result
        assert horizontal.end == pytest.approx((1000, 0))
        assert vertical.start == pytest.approx((1000, 0))

    def test_beyond_tolerance_unchanged(self, processor):
        result = processor.process([
            single(0, 0, 2000, 0, thickness=200),
            single(1000, 150, 1000, 1000, thickness=200),
        ])
        assert result[1].start == pytest.approx((1000, 150))

    def test_already_touching_not_counted(self, processor):
        processor.process([
            single(0, 0, 2000, 0, thickness=200),
            single(1000, 0, 1000, 1000, thickness=200),
        ])
        assert processor.get_stats().auto_extended == 0

    def test_disabled(self):
        processor = WallSegmentProcessor(ProcessorConfig(enable_auto_extend=False))
        result = processor.process([
            single(0, 0, 2000, 0, thickness=200),
            single(1000, 50, 1000, 1000, thickness=200),
        ])
        assert result[1].start == pytest.approx((1000, 50))

    def test_spatial_index_gives_identical_result(self):
        """Grid of walls whose vertical pieces stop 60 short of each horizontal."""
        segments = []
        for y in (0, 3000, 6000):
            segments.append(single(0, y, 6000, y, thickness=200))
        for x in (0, 3000, 6000):
            segments.append(single(x, 60, x, 2940, thickness=200))
            segments.append(single(x, 3060, x, 5940, thickness=200))

        def run(threshold):
            config = ProcessorConfig(auto_join_gap_distance=0, spatial_index_threshold=threshold,
                                     spatial_index_cell_size=500)
            proc = WallSegmentProcessor(config)
            return [endpoints(cl) for cl in proc.process(segments)], proc.get_stats().auto_extended

        indexed, indexed_count = run(0)
        scanned, scanned_count = run(10 ** 6)

        assert indexed == scanned
        assert indexed_count == scanned_count == 12


class TestGrid:
    """Tests for grid break and grid extension."""

    def test_break_at_perpendicular_axes(self):
        processor = WallSegmentProcessor(ProcessorConfig(break_at_grid_intersections=True))
        axes = [AxisLine.vertical_at(2000, -1000, 1000), AxisLine.vertical_at(4000, -1000, 1000)]
        result = processor.process([single(0, 0, 6000, 0, thickness=200, source_id="w")], axes)

        assert len(result) == 3
        assert [cl.start[0] for cl in result] == pytest.approx([0, 2000, 4000])
        assert [cl.end[0] for cl in result] == pytest.approx([2000, 4000, 6000])
        assert all(cl.source_ids == ["w"] for cl in result)
        assert processor.get_stats().grid_breaks == 2

    def test_break_ignores_near_end_crossings(self):
        processor = WallSegmentProcessor(ProcessorConfig(break_at_grid_intersections=True))
        axes = [AxisLine.vertical_at(200, -1000, 1000)]
        result = processor.process([single(0, 0, 6000, 0, thickness=200)], axes)
        assert len(result) == 1

    def test_break_disabled_by_default(self, processor):
        axes = [AxisLine.vertical_at(3000, -1000, 1000)]
        result = processor.process([single(0, 0, 6000, 0, thickness=200)], axes)
        assert len(result) == 1

    def test_break_points_not_extended(self):
        processor = WallSegmentProcessor(ProcessorConfig(
            break_at_grid_intersections=True, extend_to_grid_intersections=True))
        axes = [
            AxisLine.vertical_at(-300, -1000, 1000),
            AxisLine.vertical_at(3000, -1000, 1000),
            AxisLine.vertical_at(3400, -1000, 1000),
        ]
        result = processor.process([single(0, 0, 4000, 0, thickness=200)], axes)

        assert [cl.start[0] for cl in result] == pytest.approx([-300, 3000, 3400])
        assert [cl.end[0] for cl in result] == pytest.approx([3000, 3400, 4000])
        assert processor.get_stats().grid_breaks == 2
        assert processor.get_stats().grid_extended == 1

    def test_extend_to_nearest_axes(self):
        processor = WallSegmentProcessor(ProcessorConfig(extend_to_grid_intersections=True))
        axes = [
            AxisLine.vertical_at(600, -1000, 1000),
            AxisLine.vertical_at(800, -1000, 1000),
            AxisLine.vertical_at(5300, -1000, 1000),
        ]
        result = processor.process([single(1000, 0, 5000, 0, thickness=200)], axes)

        assert endpoints(result[0]) == pytest.approx((800, 0, 5300, 0))
        assert processor.get_stats().grid_extended == 2

    def test_extend_respects_maximum(self):
        processor = WallSegmentProcessor(ProcessorConfig(extend_to_grid_intersections=True))
        axes = [AxisLine.vertical_at(300, -1000, 1000)]
        result = processor.process([single(1000, 0, 5000, 0, thickness=200)], axes)
        assert result[0].start == pytest.approx((1000, 0))


class TestCleanup:
    """Tests for final cleanup."""

    def test_duplicates_inactive_and_short(self, processor):
        stats = ProcessingStats()
        inactive = CenterLine(start=(0, 500), end=(1000, 500), thickness=200, active=False)
        centerlines = [
            CenterLine(start=(0, 0), end=(1000, 0), thickness=200, source_ids=["a"]),
            CenterLine(start=(1000, 0), end=(0, 0), thickness=200, source_ids=["b"]),
            CenterLine(start=(0, 900), end=(30, 900), thickness=200),
            inactive,
        ]

        result = processor._cleanup(centerlines, stats)

        assert len(result) == 1
        assert result[0].source_ids == ["a", "b"]
        assert stats.duplicates_merged == 1
        assert stats.removed_short == 1

    def test_short_wall_removed(self, processor):
        assert processor.process([single(0, 0, 30, 0, thickness=200)]) == []
        assert processor.get_stats().removed_short == 1
