"""
Screen/canvas coordinate conversion.
"""

from ..errors import PlacementUnresolved
from ..models import Position, ViewportState


def screen_to_canvas(point: Position, viewport: ViewportState) -> Position:
    """
    Convert a screen-pixel point to canvas space.

    canvas = (screen - container origin - pan) / zoom

    Args:
        point: Pointer position in screen pixels
        viewport: Current pan/zoom state of the canvas container

    Returns:
        The point in canvas space

    Raises:
        PlacementUnresolved: If the container is not mounted or zoom is not positive
    """
    if viewport.origin is None:
        raise PlacementUnresolved("Canvas container is not mounted")
    if viewport.zoom <= 0:
        raise PlacementUnresolved(f"Invalid zoom scale: {viewport.zoom}")

    return Position(
        x=(point.x - viewport.origin.x - viewport.pan.x) / viewport.zoom,
        y=(point.y - viewport.origin.y - viewport.pan.y) / viewport.zoom,
    )


def viewport_center(viewport: ViewportState) -> Position:
    """
    Canvas point under the centre of the canvas container.

    Raises:
        PlacementUnresolved: If the container size or origin is unknown
    """
    if viewport.origin is None or viewport.width is None or viewport.height is None:
        raise PlacementUnresolved("Canvas container size is unknown")

    center = Position(
        x=viewport.origin.x + viewport.width / 2,
        y=viewport.origin.y + viewport.height / 2,
    )
    return screen_to_canvas(center, viewport)
