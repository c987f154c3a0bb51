"""
Pydantic models for wall segments, structural axes and centerlines.
"""

import math
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

from src.utils.geometry_utils import (
    DEFAULT_ANGLE_TOLERANCE,
    Point,
    Segment,
    angle_2d,
    bounding_box,
    distance,
    is_degenerate,
    merge_collinear_segments,
    midpoint,
    normalize_angle_pi,
)

# Axis type classification tolerance (radians, ~5 degrees)
AXIS_TYPE_TOLERANCE = 0.0873


class LineModel(BaseModel):
    """Base model for anything with straight-line geometry."""
    start: Tuple[float, float] = Field(description="Start point (x, y) in planar units")
    end: Tuple[float, float] = Field(description="End point (x, y) in planar units")

    @property
    def as_segment(self) -> Segment:
        return (self.start, self.end)

    @property
    def length(self) -> float:
        return distance(self.start, self.end)

    @property
    def angle(self) -> float:
        """Direction angle in radians (-pi, pi]."""
        return angle_2d(self.start, self.end)

    @property
    def normalized_angle(self) -> float:
        """Direction-independent angle in radians [0, pi)."""
        return normalize_angle_pi(self.angle)

    @property
    def midpoint(self) -> Point:
        return midpoint(self.start, self.end)

    @property
    def direction(self) -> Point:
        """Unit vector from start to end ((0, 0) when degenerate)."""
        length = self.length
        if length == 0:
            return (0.0, 0.0)
        return ((self.end[0] - self.start[0]) / length, (self.end[1] - self.start[1]) / length)

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """(min_x, min_y, max_x, max_y)."""
        return bounding_box(self.as_segment)

    @property
    def is_valid(self) -> bool:
        return not is_degenerate(self.as_segment)

    def set_from_segment(self, seg: Segment) -> None:
        self.start, self.end = seg


class WallSegment(LineModel):
    """A raw 2D line representing one drawn face of a wall."""
    thickness: float = Field(default=0.0, ge=0.0, description="Nominal (later measured) thickness")
    wall_type: str = Field(default="", description="Wall type tag")
    story_z: float = Field(default=0.0, description="Story elevation passthrough")
    layer: str = Field(default="", description="Source layer name")
    source_id: Optional[str] = Field(None, description="Traceability identifier (e.g. a source handle)")
    is_single_line: bool = Field(default=False, description="Segment already represents a centerline")

    # Processing state, reset by the engine on every call
    index: int = -1
    active: bool = True
    processed: bool = False
    pair_index: Optional[int] = None
    merged_into: Optional[int] = None
    absorbed_ids: List[str] = Field(default_factory=list, description="Ids of segments merged into this one")

    @property
    def source_ids(self) -> List[str]:
        ids = [self.source_id] if self.source_id else []
        return ids + [s for s in self.absorbed_ids if s not in ids]

    def ensure_wall_type(self) -> None:
        if not self.wall_type and self.thickness > 0:
            self.wall_type = f"W{int(round(self.thickness))}"

    def __str__(self) -> str:
        return (f"Wall[{self.source_id}]: {self.start}->{self.end}, "
                f"L={self.length:.1f}, T={self.thickness}, {self.wall_type}")


class AxisLine(LineModel):
    """Structural reference axis (grid line). Read-only for the engine."""
    name: str = Field(default="", description="Axis label (e.g. 'A', '1')")
    source_id: Optional[str] = Field(None, description="Traceability identifier")

    @property
    def is_horizontal(self) -> bool:
        abs_angle = abs(self.angle)
        return abs_angle < AXIS_TYPE_TOLERANCE or abs_angle > math.pi - AXIS_TYPE_TOLERANCE

    @property
    def is_vertical(self) -> bool:
        return abs(abs(self.angle) - math.pi / 2) < AXIS_TYPE_TOLERANCE

    @property
    def axis_type(self) -> str:
        """'H' (horizontal), 'V' (vertical) or 'D' (diagonal)."""
        if self.is_horizontal:
            return "H"
        if self.is_vertical:
            return "V"
        return "D"

    @classmethod
    def horizontal_at(cls, y: float, x_min: float, x_max: float, name: str = "") -> "AxisLine":
        return cls(start=(x_min, y), end=(x_max, y), name=name)

    @classmethod
    def vertical_at(cls, x: float, y_min: float, y_max: float, name: str = "") -> "AxisLine":
        return cls(start=(x, y_min), end=(x, y_max), name=name)


class CenterLine(LineModel):
    """Idealized wall axis computed from one or two wall segments."""
    thickness: float = Field(default=0.0, ge=0.0, description="Measured wall thickness")
    wall_type: str = Field(default="", description="Inferred wall type tag")
    story_z: float = Field(default=0.0, description="Story elevation passthrough")
    active: bool = True
    source_ids: List[str] = Field(default_factory=list, description="Contributing segment ids")
    source_pair: Optional[int] = Field(None, description="Lower segment index of the generating pair")

    @field_validator("source_ids")
    @classmethod
    def drop_empty_ids(cls, v: List[str]) -> List[str]:
        return [s for s in v if s]

    @property
    def identity_key(self) -> str:
        """
        Canonical identity from rounded endpoints and thickness.

        Endpoint order is canonicalised so a reversed duplicate shares the key.
        """
        # + 0.0 folds -0.0 into 0.0
        p1 = (round(self.start[0], 2) + 0.0, round(self.start[1], 2) + 0.0)
        p2 = (round(self.end[0], 2) + 0.0, round(self.end[1], 2) + 0.0)
        lo, hi = sorted((p1, p2))
        return f"{lo[0]:.2f}_{lo[1]:.2f}_{hi[0]:.2f}_{hi[1]:.2f}_T{self.thickness:.0f}"

    def ensure_wall_type(self) -> None:
        if not self.wall_type and self.thickness > 0:
            self.wall_type = f"W{int(round(self.thickness))}"

    def add_source_ids(self, ids: List[str]) -> None:
        """Append ids not already recorded, keeping order."""
        for source_id in ids:
            if source_id and source_id not in self.source_ids:
                self.source_ids.append(source_id)

    def merge_with(self, other: "CenterLine", snap_tolerance: float = DEFAULT_ANGLE_TOLERANCE) -> None:
        """
        Absorb a collinear centerline: envelope geometry, thicker type wins, ids concatenated.

        snap_tolerance (radians) decides whether the merged direction snaps to a
        cardinal angle.
        """
        self.set_from_segment(merge_collinear_segments(self.as_segment, other.as_segment, snap_tolerance))

        if other.thickness > self.thickness:
            self.thickness = other.thickness
            self.wall_type = other.wall_type

        self.add_source_ids(other.source_ids)
        other.active = False

    def split_copy(self, start: Point, end: Point) -> "CenterLine":
        """New active centerline over [start, end] inheriting this one's attributes."""
        return CenterLine(
            start=start,
            end=end,
            thickness=self.thickness,
            wall_type=self.wall_type,
            story_z=self.story_z,
            source_ids=list(self.source_ids),
            source_pair=self.source_pair,
        )

    def __str__(self) -> str:
        status = "" if self.active else "[X]"
        return (f"{status}CL: {self.start}->{self.end}, L={self.length:.1f}, "
                f"T={self.thickness}, {self.wall_type}")
