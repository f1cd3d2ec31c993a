"""
Snapping of dragged points onto graph elements.

A point dropped near a line, Bezier curve or function is pulled onto the
nearest element within a threshold and anchored to it by parameter
(t along a line or curve, x along a function).
"""

from dataclasses import dataclass
from typing import Optional
import math

try:
    from .geometry import Domain, GraphCurve, GraphFunction, GraphLine, Point
except ImportError:
    from geometry import Domain, GraphCurve, GraphFunction, GraphLine, Point


# Snap distances in graph units
SNAP_THRESHOLDS = {
    'line': 0.25,
    'curve': 0.30,
    'function': 0.30,
}

CURVE_SAMPLES = 20
CURVE_DESCENT_STEPS = 5
FUNCTION_SAMPLES = 50
FUNCTION_GOLDEN_STEPS = 15

# Search range for functions without an explicit domain
DEFAULT_FUNCTION_DOMAIN = Domain(-10.0, 10.0)


@dataclass
class ClosestPoint:
    """Closest point on an element; param is t (line, curve) or x (function)."""
    coord: Point
    param: float
    distance: float


@dataclass
class SnapAnchor:
    """How a snapped point is attached to its element."""
    type: str  # 'line', 'curve' or 'function'
    element_id: str
    param: float

    def to_dict(self) -> dict:
        if self.type == 'line':
            return {"type": "line", "lineId": self.element_id, "t": self.param}
        if self.type == 'curve':
            return {"type": "curve", "curveId": self.element_id, "t": self.param}
        return {"type": "function", "functionId": self.element_id, "x": self.param}


@dataclass
class SnapTarget:
    type: str
    element_id: str
    coord: Point
    distance: float
    anchor: SnapAnchor

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "elementId": self.element_id,
            "coord": self.coord.to_dict(),
            "distance": self.distance,
            "anchor": self.anchor.to_dict(),
        }


def find_closest_point_on_line(point: Point, start: Point, end: Point, kind: str = 'segment') -> ClosestPoint:
    """
    Project point onto a line.

    t is clamped to [0, 1] for segments and to [0, inf) for rays; infinite
    lines leave it free. A degenerate line returns its start.
    """
    dx = end.x - start.x
    dy = end.y - start.y
    len_sq = dx * dx + dy * dy

    if len_sq < 1e-10:
        return ClosestPoint(Point(start.x, start.y), 0.0, point.distance_to(start))

    t = ((point.x - start.x) * dx + (point.y - start.y) * dy) / len_sq
    if kind == 'segment':
        t = max(0.0, min(1.0, t))
    elif kind == 'ray':
        t = max(0.0, t)

    closest = Point(start.x + t * dx, start.y + t * dy)
    return ClosestPoint(closest, t, point.distance_to(closest))


def bezier_point(start: Point, control: Point, end: Point, t: float) -> Point:
    u = 1 - t
    return Point(
        u * u * start.x + 2 * u * t * control.x + t * t * end.x,
        u * u * start.y + 2 * u * t * control.y + t * t * end.y,
    )


def bezier_derivative(start: Point, control: Point, end: Point, t: float) -> Point:
    return Point(
        2 * (t - 1) * start.x + 2 * (1 - 2 * t) * control.x + 2 * t * end.x,
        2 * (t - 1) * start.y + 2 * (1 - 2 * t) * control.y + 2 * t * end.y,
    )


def find_closest_point_on_curve(point: Point, start: Point, control: Point, end: Point) -> ClosestPoint:
    """
    Closest point on a quadratic Bezier curve.

    Coarse sampling picks the starting t, a few gradient steps on the
    squared distance refine it (a step is kept only if it improves).
    """
    def dist_sq(t: float) -> float:
        c = bezier_point(start, control, end, t)
        return (point.x - c.x) ** 2 + (point.y - c.y) ** 2

    best_t = 0.0
    best_d = math.inf
    for i in range(CURVE_SAMPLES + 1):
        t = i / CURVE_SAMPLES
        d = dist_sq(t)
        if d < best_d:
            best_t, best_d = t, d

    for _ in range(CURVE_DESCENT_STEPS):
        c = bezier_point(start, control, end, best_t)
        dc = bezier_derivative(start, control, end, best_t)
        grad = 2 * ((c.x - point.x) * dc.x + (c.y - point.y) * dc.y)
        if abs(grad) < 1e-10:
            break
        new_t = max(0.0, min(1.0, best_t - grad * 0.1))
        new_d = dist_sq(new_t)
        if new_d < best_d:
            best_t, best_d = new_t, new_d

    return ClosestPoint(bezier_point(start, control, end, best_t), best_t, math.sqrt(best_d))


def find_closest_point_on_function(
    point: Point,
    func: GraphFunction | str,
    domain: Optional[Domain] = None,
) -> Optional[ClosestPoint]:
    """
    Closest point on a function's graph within domain.

    Samples the domain, then narrows the best sample's neighbourhood with a
    golden-section search. Returns None for expressions that do not
    compile or are undefined at the refined x.
    """
    if isinstance(func, str):
        func = GraphFunction(id="", expression=func)
    evaluate = func.compile()
    if evaluate is None:
        return None
    if domain is None:
        domain = func.domain or DEFAULT_FUNCTION_DOMAIN

    def dist_sq(x: float) -> float:
        y = evaluate(x)
        if not math.isfinite(y):
            return math.inf
        return (point.x - x) ** 2 + (point.y - y) ** 2

    step = (domain.max - domain.min) / FUNCTION_SAMPLES
    best_x = domain.min
    best_d = math.inf
    for i in range(FUNCTION_SAMPLES + 1):
        x = domain.min + i * step
        d = dist_sq(x)
        if d < best_d:
            best_x, best_d = x, d

    left = max(domain.min, best_x - step)
    right = min(domain.max, best_x + step)
    resphi = 2 - (1 + math.sqrt(5)) / 2
    x1 = left + resphi * (right - left)
    x2 = right - resphi * (right - left)
    f1, f2 = dist_sq(x1), dist_sq(x2)

    for _ in range(FUNCTION_GOLDEN_STEPS):
        if f1 < f2:
            right, x2, f2 = x2, x1, f1
            x1 = left + resphi * (right - left)
            f1 = dist_sq(x1)
        else:
            left, x1, f1 = x1, x2, f2
            x2 = right - resphi * (right - left)
            f2 = dist_sq(x2)

    x = (x1 + x2) / 2
    y = evaluate(x)
    if not math.isfinite(y):
        return None
    return ClosestPoint(Point(x, y), x, math.sqrt(dist_sq(x)))


def find_nearest_snap_target(
    point: Point,
    lines: list[GraphLine] = (),
    curves: list[GraphCurve] = (),
    functions: list[GraphFunction] = (),
    thresholds: Optional[dict] = None,
) -> Optional[SnapTarget]:
    """
    Nearest element within its threshold, or None.

    Elements with unresolved (point-referencing) anchors are skipped.
    """
    thresholds = {**SNAP_THRESHOLDS, **(thresholds or {})}
    best: Optional[SnapTarget] = None

    def consider(kind: str, element_id: str, result: Optional[ClosestPoint]) -> None:
        nonlocal best
        if result is None or result.distance >= thresholds[kind]:
            return
        if best is not None and result.distance >= best.distance:
            return
        best = SnapTarget(kind, element_id, result.coord, result.distance,
                          SnapAnchor(kind, element_id, result.param))

    for line in lines:
        ends = line.endpoints()
        if ends is None:
            continue
        consider('line', line.id, find_closest_point_on_line(point, ends[0], ends[1], line.kind))

    for curve in curves:
        controls = curve.control_points()
        if controls is None:
            continue
        consider('curve', curve.id, find_closest_point_on_curve(point, *controls))

    for func in functions:
        consider('function', func.id, find_closest_point_on_function(point, func))

    return best


def is_anchored_to(anchor: Optional[SnapAnchor], element_id: str) -> bool:
    """True when anchor attaches to the element with element_id."""
    if anchor is None:
        return False
    return anchor.element_id == element_id
