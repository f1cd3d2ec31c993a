"""
Conversion between canvas pixels and graph coordinates.

Pixel space has its origin at the top-left corner with y pointing down;
graph space follows the axes window with y pointing up. Both maps share
the same range handling so they stay exact inverses of each other.
"""

import math

try:
    from .geometry import Axes, Point
except ImportError:
    from geometry import Axes, Point


def _ranges(axes: Axes) -> tuple[float, float]:
    # A collapsed window would divide by zero; treat it as one unit wide
    x_range = axes.x_max - axes.x_min or 1.0
    y_range = axes.y_max - axes.y_min or 1.0
    return x_range, y_range


def graph_to_pixel(point: Point, axes: Axes, canvas_width: float, canvas_height: float) -> Point:
    """
    Convert graph coordinates to canvas pixels.

    Example (axes -5..5 on a 480x280 canvas):
        (0, 0)   -> (240, 140)
        (-5, -5) -> (0, 280)
        (5, 5)   -> (480, 0)
    """
    x_range, y_range = _ranges(axes)
    pixel_x = (point.x - axes.x_min) / x_range * canvas_width
    pixel_y = canvas_height - (point.y - axes.y_min) / y_range * canvas_height
    return Point(pixel_x, pixel_y)


def pixel_to_graph(pixel: Point, axes: Axes, canvas_width: float, canvas_height: float) -> Point:
    """Convert canvas pixels to graph coordinates. Inverse of graph_to_pixel."""
    x_range, y_range = _ranges(axes)
    width = canvas_width or 1.0
    height = canvas_height or 1.0
    graph_x = axes.x_min + pixel.x / width * x_range
    graph_y = axes.y_min + (canvas_height - pixel.y) / height * y_range
    return Point(graph_x, graph_y)


def snap_to_grid(value: float, grid_step: float) -> float:
    """
    Snap a value to the nearest multiple of grid_step.

    snap_to_grid(3.7, 0.5) == 3.5; a non-positive step leaves value unchanged.
    """
    if grid_step <= 0:
        return value
    return math.floor(value / grid_step + 0.5) * grid_step
