"""
Processing input, statistics and result models.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .elements import AxisLine, CenterLine, WallSegment


class ProcessingStats(BaseModel):
    """Per-call counters, one per pipeline stage."""
    input_segments: int = Field(default=0, ge=0)
    merged_segments: int = Field(default=0, ge=0)
    detected_pairs: int = Field(default=0, ge=0)
    pair_centerlines: int = Field(default=0, ge=0)
    single_centerlines: int = Field(default=0, ge=0)
    recovered_gaps: int = Field(default=0, ge=0)
    merged_centerlines: int = Field(default=0, ge=0)
    snapped_to_axes: int = Field(default=0, ge=0)
    auto_extended: int = Field(default=0, ge=0)
    grid_breaks: int = Field(default=0, ge=0)
    grid_extended: int = Field(default=0, ge=0)
    duplicates_merged: int = Field(default=0, ge=0)
    removed_short: int = Field(default=0, ge=0)
    output_centerlines: int = Field(default=0, ge=0)


class ProcessingInput(BaseModel):
    """Plain-data input document: segments, optional axes and config overrides."""
    segments: List[WallSegment] = Field(default_factory=list)
    axes: List[AxisLine] = Field(default_factory=list)
    config: Dict[str, Any] = Field(default_factory=dict, description="Processor config overrides")


class ProcessingResult(BaseModel):
    """Final result of one engine call."""
    timestamp: datetime = Field(default_factory=datetime.now)
    centerlines: List[CenterLine] = Field(default_factory=list)
    stats: ProcessingStats = Field(default_factory=ProcessingStats)
    config: Optional[Dict[str, Any]] = None
