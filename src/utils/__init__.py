"""
Utility modules for wall centerline processing.
"""

from .geometry_utils import (
    OverlapResult,
    are_collinear,
    calculate_gap_distance,
    calculate_overlap,
    get_line_intersection,
    get_segment_intersection,
    merge_collinear_segments,
    snap_to_cardinal_angle,
)
from .spatial_index import (
    BoundingBox,
    SpatialHash,
)
from .json_encoder import (
    PydanticJSONEncoder,
    json_dump_safe,
    json_dumps_safe,
)

__all__ = [
    "OverlapResult",
    "are_collinear",
    "calculate_gap_distance",
    "calculate_overlap",
    "get_line_intersection",
    "get_segment_intersection",
    "merge_collinear_segments",
    "snap_to_cardinal_angle",
    "BoundingBox",
    "SpatialHash",
    "PydanticJSONEncoder",
    "json_dump_safe",
    "json_dumps_safe",
]
