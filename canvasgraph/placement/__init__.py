"""Coordinate conversion and block placement."""

from .coordinates import screen_to_canvas, viewport_center
from .resolver import PlacementResolver

__all__ = ["screen_to_canvas", "viewport_center", "PlacementResolver"]
