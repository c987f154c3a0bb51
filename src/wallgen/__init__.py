"""
Wall Centerline Generator

Converts raw 2D wall face segments into a minimal set of idealized wall
centerlines for structural load mapping.
"""

__version__ = "1.0.0"
