"""
Interface for result exporters.
"""

from abc import ABC, abstractmethod
from pathlib import Path

from src.wallgen.models.pipeline import ProcessingResult


class IExporter(ABC):
    """Interface for exporting processing results."""
    
    @abstractmethod
    def export_json(
        self,
        result: ProcessingResult,
        output_path: Path
    ) -> None:
        """Export results as JSON."""
        pass
