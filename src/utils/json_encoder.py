"""
Custom JSON encoder for centerline processing objects.

Handles serialization of Pydantic models (WallSegment, CenterLine,
ProcessingStats, ...), numpy scalars and datetimes to JSON-compatible values.
"""

import json
from typing import Any
from datetime import datetime
from pathlib import Path

import numpy as np
from pydantic import BaseModel


class PydanticJSONEncoder(json.JSONEncoder):
    """
    Custom JSON encoder that handles Pydantic models and other non-serializable objects.

    Automatically converts:
    - Pydantic models to dicts via model_dump()
    - numpy scalars and arrays to Python numbers and lists
    - Datetime objects to ISO format strings
    - Paths to strings
    """

    def default(self, obj: Any) -> Any:
        if isinstance(obj, BaseModel):
            return obj.model_dump()

        if isinstance(obj, np.generic):
            return obj.item()
        if isinstance(obj, np.ndarray):
            return obj.tolist()

        if isinstance(obj, datetime):
            return obj.isoformat()

        if isinstance(obj, Path):
            return str(obj)

        # Fallback to default JSON encoder
        return super().default(obj)


def json_dump_safe(obj: Any, fp: Any, **kwargs) -> None:
    """
    Serialize object to a JSON file, handling Pydantic models and numpy values.

    Args:
        obj: Object to serialize
        fp: File-like object to write to
        **kwargs: Additional arguments for json.dump
    """
    json.dump(obj, fp, cls=PydanticJSONEncoder, ensure_ascii=False, **kwargs)


def json_dumps_safe(obj: Any, **kwargs) -> str:
    """
    Serialize object to a JSON string, handling Pydantic models and numpy values.

    Args:
        obj: Object to serialize
        **kwargs: Additional arguments for json.dumps

    Returns:
        JSON string representation of the object
    """
    return json.dumps(obj, cls=PydanticJSONEncoder, ensure_ascii=False, **kwargs)
