"""
JSON exporter for centerline processing results.
"""

import logging
from pathlib import Path
from typing import Any, Dict

from src.interfaces.exporter import IExporter
from src.utils.json_encoder import json_dump_safe
from src.wallgen.models.pipeline import ProcessingResult

logger = logging.getLogger(__name__)

# Engine bookkeeping that has no meaning outside one call
CENTERLINE_EXCLUDE_FIELDS = {"active"}


class JsonExporter(IExporter):
    """Writes a ProcessingResult as one JSON document."""

    def __init__(self, indent: int = 2):
        self.indent = indent

    def to_dict(self, result: ProcessingResult) -> Dict[str, Any]:
        """Plain-data form of a result: timestamp, centerlines, stats, config."""
        centerlines = []
        for cl in result.centerlines:
            data = cl.model_dump(exclude=CENTERLINE_EXCLUDE_FIELDS)
            data["length"] = round(cl.length, 3)
            data["identity_key"] = cl.identity_key
            centerlines.append(data)

        return {
            "timestamp": result.timestamp,
            "centerlines": centerlines,
            "stats": result.stats,
            "config": result.config,
        }

    def export_json(self, result: ProcessingResult, output_path: Path) -> None:
        """
        Export a result to a JSON file, creating parent directories.

        Raises:
            OSError: If the file cannot be written
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with output_path.open("w", encoding="utf-8") as f:
            json_dump_safe(self.to_dict(result), f, indent=self.indent)

        logger.info(f"Exported {len(result.centerlines)} centerlines to {output_path}")
