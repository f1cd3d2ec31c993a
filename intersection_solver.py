"""
Intersection solver for graph elements.

Finds where two explicit functions, a line and a function, or two lines
cross. Functions are handled numerically: h(x) = f1(x) - f2(x) is sampled
across the domain, each sign change is refined by bisection.

Every entry point is total. Invalid expressions, symbolic anchors and
degenerate domains give an empty list or None, never an exception.
"""

from dataclasses import dataclass
from typing import Callable, Optional
import math

try:
    from .expressions import compile_expression
    from .geometry import GraphFunction, GraphLine, Point, RegionElement, ON_LINE_TOLERANCE
except ImportError:
    from expressions import compile_expression
    from geometry import GraphFunction, GraphLine, Point, RegionElement, ON_LINE_TOLERANCE


NUM_SAMPLES = 200
TOLERANCE = 1e-4
MAX_ITERATIONS = 50
PARALLEL_TOLERANCE = 1e-4
VERTICAL_TOLERANCE = 1e-4

Curve = str | GraphFunction | Callable[[float], float]


@dataclass
class BisectionResult:
    """Outcome of a bisection run."""
    root: Optional[float]
    converged: bool
    iterations: int


@dataclass
class LineEquation:
    """A line as x = const (vertical) or y = m*x + b."""
    is_vertical: bool
    m: float = 0.0
    b: float = 0.0
    x: float = 0.0

    def y_at(self, x: float) -> float:
        return self.m * x + self.b


def as_evaluator(curve: Curve) -> Optional[Callable[[float], float]]:
    """
    Turn expression text, a GraphFunction or a callable into an evaluator.

    GraphFunctions include their offset/scale transform.
    """
    if isinstance(curve, str):
        return compile_expression(curve)
    if isinstance(curve, GraphFunction):
        return curve.compile()
    if callable(curve):
        return curve
    return None


def bisect_root(
    f: Callable[[float], float],
    a: float,
    b: float,
    tolerance: float = TOLERANCE,
    max_iterations: int = MAX_ITERATIONS,
) -> BisectionResult:
    """
    Find a root of f in [a, b] by interval halving.

    The bracket must change sign (or touch zero at an end). Stops when
    |f(c)| < tolerance or the bracket is narrower than tolerance; after
    max_iterations the midpoint is returned with converged=False.
    """
    fa = f(a)
    fb = f(b)

    if not math.isfinite(fa) or not math.isfinite(fb):
        return BisectionResult(None, False, 0)

    if fa * fb > 0:
        return BisectionResult(None, False, 0)

    if fa == 0:
        return BisectionResult(a, True, 0)
    if fb == 0:
        return BisectionResult(b, True, 0)

    for i in range(max_iterations):
        c = (a + b) / 2
        fc = f(c)

        if not math.isfinite(fc):
            return BisectionResult(None, False, i + 1)

        if abs(fc) < tolerance or abs(b - a) < tolerance:
            return BisectionResult(c, True, i + 1)

        if fa * fc < 0:
            b, fb = c, fc
        else:
            a, fa = c, fc

    return BisectionResult((a + b) / 2, False, max_iterations)


def bisection(
    f: Callable[[float], float],
    a: float,
    b: float,
    tolerance: float = TOLERANCE,
    max_iterations: int = MAX_ITERATIONS,
) -> Optional[float]:
    """Root of f in [a, b], best-effort midpoint if not converged, None without a bracket."""
    return bisect_root(f, a, b, tolerance, max_iterations).root


def _accept(roots: list[float], x: float, tolerance: float) -> None:
    if not roots or abs(x - roots[-1]) > tolerance:
        roots.append(x)


def find_roots(
    h: Callable[[float], float],
    x_min: float,
    x_max: float,
    tolerance: float = TOLERANCE,
    num_samples: int = NUM_SAMPLES,
    max_iterations: int = MAX_ITERATIONS,
) -> list[float]:
    """
    All roots of h in [x_min, x_max], ascending.

    Samples h at num_samples + 1 evenly spaced points; sign changes are
    refined with bisection and samples within tolerance of zero are taken
    as roots directly. Non-finite samples are skipped.
    """
    if not (math.isfinite(x_min) and math.isfinite(x_max)) or x_min > x_max or num_samples < 1:
        return []

    if x_min == x_max:
        y = h(x_min)
        return [x_min] if math.isfinite(y) and abs(y) < tolerance else []

    step = (x_max - x_min) / num_samples
    roots: list[float] = []

    for i in range(num_samples):
        x1 = x_min + i * step
        x2 = x_min + (i + 1) * step
        y1 = h(x1)
        y2 = h(x2)

        if not math.isfinite(y1) or not math.isfinite(y2):
            continue

        if y1 * y2 < 0:
            root = bisection(h, x1, x2, tolerance, max_iterations)
            if root is not None:
                _accept(roots, root, tolerance)
        elif abs(y1) < tolerance:
            _accept(roots, x1, tolerance)

    # The last sample never starts an interval
    y_end = h(x_max)
    if math.isfinite(y_end) and abs(y_end) < tolerance:
        _accept(roots, x_max, tolerance)

    return sorted(roots)


def _difference(f1: Callable[[float], float], f2: Callable[[float], float]) -> Callable[[float], float]:
    def h(x: float) -> float:
        y1 = f1(x)
        y2 = f2(x)
        if not math.isfinite(y1) or not math.isfinite(y2):
            return math.nan
        return y1 - y2
    return h


def find_function_intersections(
    expr1: Curve,
    expr2: Curve,
    x_min: float,
    x_max: float,
    tolerance: float = TOLERANCE,
    num_samples: int = NUM_SAMPLES,
) -> list[float]:
    """
    X-coordinates where two functions meet within [x_min, x_max].

    Returns an empty list if either expression fails to compile.
    """
    f1 = as_evaluator(expr1)
    f2 = as_evaluator(expr2)
    if f1 is None or f2 is None:
        return []
    return find_roots(_difference(f1, f2), x_min, x_max, tolerance, num_samples)


def line_equation(line: GraphLine, tolerance: float = VERTICAL_TOLERANCE) -> Optional[LineEquation]:
    """Equation of the line through the anchors, None for symbolic anchors."""
    ends = line.endpoints()
    if ends is None:
        return None
    p1, p2 = ends

    dx = p2.x - p1.x
    dy = p2.y - p1.y

    if abs(dx) < tolerance:
        return LineEquation(is_vertical=True, x=p1.x)

    m = dy / dx
    return LineEquation(is_vertical=False, m=m, b=p1.y - m * p1.x)


def is_point_on_line(point: Point, line: GraphLine, tolerance: float = ON_LINE_TOLERANCE) -> bool:
    """
    Check whether a point on the carrier line lies within the line's extent.

    Segments use the anchors' bounding box, rays the sign of the parameter
    along their dominant axis. Symbolic anchors never match.
    """
    ends = line.endpoints()
    if ends is None:
        return False
    p1, p2 = ends

    if line.kind == 'line':
        return True

    if line.kind == 'segment':
        return (min(p1.x, p2.x) - tolerance <= point.x <= max(p1.x, p2.x) + tolerance
                and min(p1.y, p2.y) - tolerance <= point.y <= max(p1.y, p2.y) + tolerance)

    if line.kind == 'ray':
        dx = p2.x - p1.x
        dy = p2.y - p1.y
        if dx == 0 and dy == 0:
            return point.distance_to(p1) <= tolerance
        if abs(dx) > abs(dy):
            t = (point.x - p1.x) / dx
        else:
            t = (point.y - p1.y) / dy
        return t >= -tolerance

    return False


def find_line_function_intersection(
    line: GraphLine,
    function_expr: Curve,
    x_min: float,
    x_max: float,
    tolerance: float = TOLERANCE,
    num_samples: int = NUM_SAMPLES,
) -> list[Point]:
    """
    Points where a line crosses a function within [x_min, x_max].

    Only crossings inside the line's extent (segment/ray bounds) are kept.
    """
    f = as_evaluator(function_expr)
    if f is None:
        return []

    eq = line_equation(line)
    if eq is None:
        return []

    if eq.is_vertical:
        if eq.x < x_min or eq.x > x_max:
            return []
        y = f(eq.x)
        if not math.isfinite(y):
            return []
        point = Point(eq.x, y)
        return [point] if is_point_on_line(point, line) else []

    xs = find_roots(_difference(f, eq.y_at), x_min, x_max, tolerance, num_samples)

    points = []
    for x in xs:
        y = f(x)
        if not math.isfinite(y):
            continue
        point = Point(x, y)
        if is_point_on_line(point, line):
            points.append(point)
    return points


def _within_kind(kind: str, t: float, tolerance: float) -> bool:
    if kind == 'line':
        return True
    if kind == 'segment':
        return -tolerance <= t <= 1 + tolerance
    if kind == 'ray':
        return t >= -tolerance
    return False


def find_line_line_intersection(
    line1: GraphLine,
    line2: GraphLine,
    parallel_tolerance: float = PARALLEL_TOLERANCE,
    bound_tolerance: float = ON_LINE_TOLERANCE,
) -> Optional[Point]:
    """
    Unique crossing of two lines, honouring each line's kind.

    Line 1 is P1 + t*(P2 - P1), line 2 is P3 + u*(P4 - P3). Returns None for
    parallel lines, symbolic anchors, or a crossing outside either extent.
    """
    ends1 = line1.endpoints()
    ends2 = line2.endpoints()
    if ends1 is None or ends2 is None:
        return None
    (p1, p2), (p3, p4) = ends1, ends2

    dx1 = p2.x - p1.x
    dy1 = p2.y - p1.y
    dx2 = p4.x - p3.x
    dy2 = p4.y - p3.y

    denom = dx1 * dy2 - dy1 * dx2
    if abs(denom) < parallel_tolerance:
        return None

    t = ((p3.x - p1.x) * dy2 - (p3.y - p1.y) * dx2) / denom
    u = ((p3.x - p1.x) * dy1 - (p3.y - p1.y) * dx1) / denom

    if not (_within_kind(line1.kind, t, bound_tolerance) and _within_kind(line2.kind, u, bound_tolerance)):
        return None

    return Point(p1.x + t * dx1, p1.y + t * dy1)


def intersect_elements(
    first: RegionElement,
    second: RegionElement,
    x_min: float,
    x_max: float,
    tolerance: float = TOLERANCE,
) -> list[Point]:
    """
    Intersections of two region elements within [x_min, x_max].

    Dispatches to the function/function, line/function or line/line solver.
    """
    if first.type == 'line' and second.type == 'line':
        point = find_line_line_intersection(first.element, second.element)
        if point is None or not (x_min - ON_LINE_TOLERANCE <= point.x <= x_max + ON_LINE_TOLERANCE):
            return []
        return [point]

    if first.type == 'line':
        return find_line_function_intersection(first.element, second.element, x_min, x_max, tolerance)
    if second.type == 'line':
        return find_line_function_intersection(second.element, first.element, x_min, x_max, tolerance)

    f1 = first.element.compile()
    if f1 is None:
        return []
    xs = find_function_intersections(f1, second.element, x_min, x_max, tolerance)
    points = []
    for x in xs:
        y = f1(x)
        if math.isfinite(y):
            points.append(Point(x, y))
    return points
