"""
Boundary tracing for shaded areas.

Builds closed polygons from sampled boundaries:
- between two function curves over an x-interval
- around a drop point bounded by a mix of functions, lines and the
  coordinate axes
"""

from dataclasses import dataclass
from typing import Optional
import math

try:
    from .geometry import (
        Anchor, Axes, GraphFunction, GraphLine, Point, RegionElement,
    )
    from .region_finder import find_enclosing_region
    from .config import RegionConfig
except ImportError:
    from geometry import (
        Anchor, Axes, GraphFunction, GraphLine, Point, RegionElement,
    )
    from region_finder import find_enclosing_region
    from config import RegionConfig


@dataclass
class BoundaryElement:
    """
    One boundary of a mixed-element polygon.

    type is 'function' or 'line' (with element set), or 'axis' with
    axis in {'x', 'y'} and the axis position in value.
    """
    type: str
    element: Optional[GraphFunction | GraphLine] = None
    axis: str = 'x'
    value: float = 0.0

    @classmethod
    def function(cls, func: GraphFunction) -> 'BoundaryElement':
        return cls('function', element=func)

    @classmethod
    def line(cls, line: GraphLine) -> 'BoundaryElement':
        return cls('line', element=line)

    @classmethod
    def x_axis(cls, value: float = 0.0) -> 'BoundaryElement':
        return cls('axis', axis='x', value=value)

    @classmethod
    def y_axis(cls, value: float = 0.0) -> 'BoundaryElement':
        return cls('axis', axis='y', value=value)


def sample_function_in_domain(
    func: GraphFunction,
    min_x: float,
    max_x: float,
    num_samples: int,
) -> list[Point]:
    """
    Sample a function at num_samples + 1 evenly spaced x values.

    The function's offset/scale transform is applied. Points where the
    function is undefined are skipped.
    """
    evaluate = func.compile()
    if evaluate is None or num_samples < 1 or not (math.isfinite(min_x) and math.isfinite(max_x)):
        return []

    step = (max_x - min_x) / num_samples
    points = []
    for i in range(num_samples + 1):
        x = min_x + i * step
        y = evaluate(x)
        if math.isfinite(y):
            points.append(Point(x, y))
    return points


def generate_polygon_between_curves(
    func1: GraphFunction,
    func2: GraphFunction,
    x_min: float,
    x_max: float,
    num_samples: int = 60,
) -> list[Point]:
    """
    Closed polygon between two curves over [x_min, x_max].

    func1 is traversed left to right, func2 right to left, and the first
    vertex is repeated at the end to close the outline. Returns an empty
    list when either expression does not compile.
    """
    if func1.compile() is None or func2.compile() is None:
        return []

    forward = sample_function_in_domain(func1, x_min, x_max, num_samples)
    backward = sample_function_in_domain(func2, x_min, x_max, num_samples)
    backward.reverse()

    polygon = forward + backward
    if len(polygon) < 3:
        return []
    polygon.append(Point(polygon[0].x, polygon[0].y))
    return polygon


def _axis_line(boundary: BoundaryElement, axes: Axes) -> Optional[GraphLine]:
    """The axis as an infinite line, None when it lies outside the window."""
    if boundary.axis == 'x':
        if not axes.y_min <= boundary.value <= axes.y_max:
            return None
        return GraphLine(
            id=f"axis-x@{boundary.value:g}",
            start=Anchor.coord(axes.x_min, boundary.value),
            end=Anchor.coord(axes.x_max, boundary.value),
            kind='line',
        )

    if not axes.x_min <= boundary.value <= axes.x_max:
        return None
    return GraphLine(
        id=f"axis-y@{boundary.value:g}",
        start=Anchor.coord(boundary.value, axes.y_min),
        end=Anchor.coord(boundary.value, axes.y_max),
        kind='line',
    )


def to_region_elements(boundaries: list[BoundaryElement], axes: Axes) -> list[RegionElement]:
    """Convert boundaries to region elements, dropping invisible axes."""
    elements = []
    for boundary in boundaries:
        if boundary.type == 'function' and boundary.element is not None:
            elements.append(RegionElement.function(boundary.element))
        elif boundary.type == 'line' and boundary.element is not None:
            elements.append(RegionElement.line(boundary.element))
        elif boundary.type == 'axis':
            line = _axis_line(boundary, axes)
            if line is not None:
                elements.append(RegionElement.line(line))
    return elements


def generate_polygon_bounded_by_elements(
    boundaries: list[BoundaryElement],
    drop_point: Point,
    axes: Axes,
    config: Optional[RegionConfig] = None,
) -> list[Point]:
    """
    Polygon around drop_point bounded by functions, lines and axes.

    The window's top and bottom edges close the region where no element
    does. Returns an empty list when no region can be found.
    """
    elements = to_region_elements(boundaries, axes)
    result = find_enclosing_region(
        drop_point, elements, axes, config=config, include_canvas_edges=True,
    )
    if result is None:
        return []
    return result.polygon
