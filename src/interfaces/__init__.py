"""
Interfaces for centerline engine components.
"""

from .processor import IProcessor
from .exporter import IExporter

__all__ = ["IProcessor", "IExporter"]
