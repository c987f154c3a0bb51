"""
Spatial index for fast neighbourhood queries.

Uniform grid hash: every cell is addressed by integer cell coordinates
packed into one 64-bit key. Supports point entries with radius queries
and bounding-box entries with box intersection queries.
"""

import math
import logging
from dataclasses import dataclass
from typing import Dict, Generic, Hashable, List, Optional, Set, Tuple, TypeVar

from src.utils.geometry_utils import Point, Segment, bounding_box, distance

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Hashable)

DEFAULT_CELL_SIZE = 1000.0

_CELL_MASK = 0xFFFFFFFF


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned bounding box in planar units."""
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @classmethod
    def from_segment(cls, seg: Segment) -> "BoundingBox":
        return cls(*bounding_box(seg))

    @classmethod
    def around(cls, center: Point, radius: float) -> "BoundingBox":
        return cls(center[0] - radius, center[1] - radius, center[0] + radius, center[1] + radius)

    @property
    def center(self) -> Point:
        return ((self.min_x + self.max_x) / 2.0, (self.min_y + self.max_y) / 2.0)

    def expanded(self, margin: float) -> "BoundingBox":
        return BoundingBox(self.min_x - margin, self.min_y - margin,
                           self.max_x + margin, self.max_y + margin)

    def intersects(self, other: "BoundingBox") -> bool:
        return not (
            other.min_x > self.max_x or other.max_x < self.min_x
            or other.min_y > self.max_y or other.max_y < self.min_y
        )


@dataclass
class SpatialEntry(Generic[T]):
    item: T
    position: Point
    bounds: Optional[BoundingBox] = None


def pack_cell_key(cell_x: int, cell_y: int) -> int:
    """Pack two signed 32-bit cell coordinates into one 64-bit key."""
    return ((cell_x & _CELL_MASK) << 32) | (cell_y & _CELL_MASK)


def unpack_cell_key(key: int) -> Tuple[int, int]:
    """Inverse of pack_cell_key."""
    cell_x = (key >> 32) & _CELL_MASK
    cell_y = key & _CELL_MASK
    if cell_x >= 1 << 31:
        cell_x -= 1 << 32
    if cell_y >= 1 << 31:
        cell_y -= 1 << 32
    return cell_x, cell_y


class SpatialHash(Generic[T]):
    """
    Uniform grid hash over planar items.

    Items are either points (``insert``) or bounding boxes
    (``insert_with_bounds``); a box is registered in every cell it covers.
    Query results are de-duplicated and returned in insertion order of the
    first matching entry.
    """

    def __init__(self, cell_size: float = DEFAULT_CELL_SIZE):
        """
        Initialize spatial hash.

        Args:
            cell_size: Cell edge length in planar units (non-positive values
                fall back to the default)
        """
        self.cell_size = cell_size if cell_size > 0 else DEFAULT_CELL_SIZE
        self._grid: Dict[int, List[SpatialEntry[T]]] = {}
        self.count = 0

    def __len__(self) -> int:
        return self.count

    def _cell_of(self, x: float, y: float) -> Tuple[int, int]:
        return math.floor(x / self.cell_size), math.floor(y / self.cell_size)

    def _cell_range(self, bounds: BoundingBox) -> Tuple[range, range]:
        min_cx, min_cy = self._cell_of(bounds.min_x, bounds.min_y)
        max_cx, max_cy = self._cell_of(bounds.max_x, bounds.max_y)
        return range(min_cx, max_cx + 1), range(min_cy, max_cy + 1)

    def insert(self, item: T, position: Point) -> None:
        """Insert an item at a point position."""
        key = pack_cell_key(*self._cell_of(position[0], position[1]))
        self._grid.setdefault(key, []).append(SpatialEntry(item=item, position=position))
        self.count += 1

    def insert_with_bounds(self, item: T, bounds: BoundingBox) -> None:
        """Insert an item covering a bounding box."""
        entry = SpatialEntry(item=item, position=bounds.center, bounds=bounds)
        x_range, y_range = self._cell_range(bounds)
        for cx in x_range:
            for cy in y_range:
                self._grid.setdefault(pack_cell_key(cx, cy), []).append(entry)
        self.count += 1

    def query_radius(self, center: Point, radius: float) -> List[T]:
        """All items whose position lies within radius of center."""
        result: List[T] = []
        visited: Set[T] = set()

        cell_radius = math.ceil(radius / self.cell_size)
        center_cx, center_cy = self._cell_of(center[0], center[1])

        for dx in range(-cell_radius, cell_radius + 1):
            for dy in range(-cell_radius, cell_radius + 1):
                for entry in self._grid.get(pack_cell_key(center_cx + dx, center_cy + dy), ()):
                    if entry.item in visited:
                        continue
                    if distance(center, entry.position) <= radius:
                        result.append(entry.item)
                        visited.add(entry.item)

        return result

    def query_bounds(self, query: BoundingBox) -> List[T]:
        """All items whose bounds intersect the query box (point items count as zero-size boxes)."""
        result: List[T] = []
        visited: Set[T] = set()

        x_range, y_range = self._cell_range(query)
        for cx in x_range:
            for cy in y_range:
                for entry in self._grid.get(pack_cell_key(cx, cy), ()):
                    if entry.item in visited:
                        continue
                    bounds = entry.bounds or BoundingBox(entry.position[0], entry.position[1],
                                                         entry.position[0], entry.position[1])
                    if bounds.intersects(query):
                        result.append(entry.item)
                        visited.add(entry.item)

        return result

    def clear(self) -> None:
        self._grid.clear()
        self.count = 0
