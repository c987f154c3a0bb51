"""
Data models for wall centerline generation using Pydantic for type safety and validation.
"""

from .elements import LineModel, WallSegment, AxisLine, CenterLine
from .pipeline import ProcessingStats, ProcessingInput, ProcessingResult

__all__ = [
    "LineModel",
    "WallSegment",
    "AxisLine",
    "CenterLine",
    "ProcessingStats",
    "ProcessingInput",
    "ProcessingResult",
]
