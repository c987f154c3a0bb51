"""
Interface for the main segment processor.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from src.wallgen.models.elements import AxisLine, CenterLine, WallSegment
from src.wallgen.models.pipeline import ProcessingStats


class IProcessor(ABC):
    """Interface for the wall segment to centerline processor."""
    
    @abstractmethod
    def process(
        self,
        segments: Sequence[WallSegment],
        axes: Optional[Sequence[AxisLine]] = None
    ) -> List[CenterLine]:
        """
        Convert raw wall segments into centerlines.
        
        Args:
            segments: Input wall face segments
            axes: Optional structural reference axes
            
        Returns:
            Final list of active, de-duplicated centerlines
        """
        pass
    
    @abstractmethod
    def get_stats(self) -> ProcessingStats:
        """Get counters of the most recent call."""
        pass
