"""
Geometry data model for graph region detection.

Holds the transient structures exchanged with the graph editor (points,
domains, axes, lines, functions, region results) and the small polygon
helpers shared by the solver, the region finder and the tracers.
"""

from dataclasses import dataclass, field
from typing import Optional
import math

try:
    from .expressions import Evaluator, compile_expression
except ImportError:
    from expressions import Evaluator, compile_expression


# Tolerance used for "is this point on the boundary" style comparisons
ON_LINE_TOLERANCE = 0.001

LINE_KINDS = ('line', 'segment', 'ray')

# Reserved owner id for the visible window's edges
CANVAS_EDGE_ID = '__boundary__'


def _as_float(value, fallback: float) -> float:
    """Convert a payload value to a finite float, or return fallback."""
    try:
        num = float(value)
    except (TypeError, ValueError):
        return fallback
    return num if math.isfinite(num) else fallback


@dataclass
class Point:
    """A point in graph coordinates."""
    x: float
    y: float

    def __iter__(self):
        yield self.x
        yield self.y

    def to_tuple(self) -> tuple[float, float]:
        return (self.x, self.y)

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y}

    def distance_to(self, other: 'Point') -> float:
        return math.hypot(self.x - other.x, self.y - other.y)


@dataclass
class Domain:
    """Closed x-interval over which a function or a search is valid."""
    min: float
    max: float

    @property
    def width(self) -> float:
        return self.max - self.min

    @property
    def is_valid(self) -> bool:
        return math.isfinite(self.min) and math.isfinite(self.max) and self.min <= self.max

    def contains(self, x: float, tolerance: float = 0.0) -> bool:
        return self.min - tolerance <= x <= self.max + tolerance

    def intersect(self, other: 'Domain') -> Optional['Domain']:
        """Overlap of two domains, None when they are disjoint."""
        lo = max(self.min, other.min)
        hi = min(self.max, other.max)
        if lo > hi:
            return None
        return Domain(lo, hi)

    def to_dict(self) -> dict:
        return {"min": self.min, "max": self.max}


@dataclass
class Axes:
    """Visible graph window."""
    x_min: float
    x_max: float
    y_min: float
    y_max: float

    @property
    def width(self) -> float:
        return self.x_max - self.x_min

    @property
    def height(self) -> float:
        return self.y_max - self.y_min

    @property
    def x_domain(self) -> Domain:
        return Domain(self.x_min, self.x_max)

    def contains(self, x: float, y: float, tolerance: float = 0.0) -> bool:
        return (self.x_min - tolerance <= x <= self.x_max + tolerance
                and self.y_min - tolerance <= y <= self.y_max + tolerance)

    def corners(self) -> list[Point]:
        """Corners counter-clockwise from bottom-left."""
        return [
            Point(self.x_min, self.y_min),
            Point(self.x_max, self.y_min),
            Point(self.x_max, self.y_max),
            Point(self.x_min, self.y_max),
        ]

    @classmethod
    def from_dict(cls, data: dict) -> 'Axes':
        return cls(
            x_min=_as_float(data.get("xMin"), -5.0),
            x_max=_as_float(data.get("xMax"), 5.0),
            y_min=_as_float(data.get("yMin"), -5.0),
            y_max=_as_float(data.get("yMax"), 5.0),
        )

    def to_dict(self) -> dict:
        return {"xMin": self.x_min, "xMax": self.x_max, "yMin": self.y_min, "yMax": self.y_max}


@dataclass
class Anchor:
    """
    Endpoint of a line or curve.

    Either a literal coordinate (type 'coord') or a reference to a named
    point (type 'point'). Only coordinate anchors can be resolved here.
    """
    type: str = 'coord'
    x: float = 0.0
    y: float = 0.0
    point_id: str = ""

    @classmethod
    def coord(cls, x: float, y: float) -> 'Anchor':
        return cls('coord', x, y)

    @classmethod
    def point(cls, point_id: str) -> 'Anchor':
        return cls('point', point_id=point_id)

    @property
    def is_coord(self) -> bool:
        return self.type == 'coord' and math.isfinite(self.x) and math.isfinite(self.y)

    def resolve(self) -> Optional[Point]:
        if not self.is_coord:
            return None
        return Point(self.x, self.y)

    @classmethod
    def from_dict(cls, data: dict, points: Optional[dict[str, Point]] = None) -> 'Anchor':
        """
        Parse a payload anchor.

        Point anchors are replaced by a coordinate anchor when the referenced
        point is present in ``points``.
        """
        if data.get("type") == 'point':
            point_id = str(data.get("pointId", ""))
            if points and point_id in points:
                target = points[point_id]
                return cls.coord(target.x, target.y)
            return cls.point(point_id)
        return cls.coord(_as_float(data.get("x"), 0.0), _as_float(data.get("y"), 0.0))

    def to_dict(self) -> dict:
        if self.type == 'point':
            return {"type": "point", "pointId": self.point_id}
        return {"type": "coord", "x": self.x, "y": self.y}


@dataclass
class GraphLine:
    """
    A straight element of the graph.

    ``kind`` controls how far it extends beyond its anchors: 'line' is
    infinite, 'ray' extends past ``end`` only, 'segment' stops at both.
    """
    id: str
    start: Anchor
    end: Anchor
    kind: str = 'segment'
    style: dict = field(default_factory=dict)

    def endpoints(self) -> Optional[tuple[Point, Point]]:
        """Resolved (start, end), or None when an anchor is symbolic."""
        p1 = self.start.resolve()
        p2 = self.end.resolve()
        if p1 is None or p2 is None:
            return None
        return (p1, p2)

    @classmethod
    def from_dict(cls, data: dict, points: Optional[dict[str, Point]] = None) -> 'GraphLine':
        kind = data.get("kind", "segment")
        return cls(
            id=str(data.get("id", "")),
            start=Anchor.from_dict(data.get("start") or {}, points),
            end=Anchor.from_dict(data.get("end") or {}, points),
            kind=kind if kind in LINE_KINDS else 'segment',
            style=dict(data.get("style") or {}),
        )


@dataclass
class GraphCurve:
    """Quadratic Bezier between two anchors, bent by ``curvature``."""
    id: str
    start: Anchor
    end: Anchor
    curvature: float = 0.0

    def control_points(self) -> Optional[tuple[Point, Point, Point]]:
        """(start, control, end), or None when an anchor is symbolic."""
        start = self.start.resolve()
        end = self.end.resolve()
        if start is None or end is None:
            return None
        return (start, curve_control_point(start, end, self.curvature), end)

    @classmethod
    def from_dict(cls, data: dict, points: Optional[dict[str, Point]] = None) -> 'GraphCurve':
        return cls(
            id=str(data.get("id", "")),
            start=Anchor.from_dict(data.get("start") or {}, points),
            end=Anchor.from_dict(data.get("end") or {}, points),
            curvature=_as_float(data.get("curvature"), 0.0),
        )


@dataclass
class GraphFunction:
    """
    An explicit function y = f(x) typed by the user.

    The drawn curve is ``scale_y * f(x - offset_x) + offset_y``.
    """
    id: str
    expression: str
    domain: Optional[Domain] = None
    offset_x: float = 0.0
    offset_y: float = 0.0
    scale_y: float = 1.0

    @property
    def is_transformed(self) -> bool:
        return self.offset_x != 0 or self.offset_y != 0 or self.scale_y != 1

    def compile(self) -> Optional[Evaluator]:
        """Evaluator of the transformed curve, None if the text is invalid."""
        base = compile_expression(self.expression)
        if base is None:
            return None
        if not self.is_transformed:
            return base
        return base.transformed(self.offset_x, self.offset_y, self.scale_y)

    def effective_domain(self, axes: Axes) -> Domain:
        """Explicit domain bounds where given, axes bounds otherwise."""
        lo = self.domain.min if self.domain is not None else axes.x_min
        hi = self.domain.max if self.domain is not None else axes.x_max
        return Domain(lo, hi)

    @classmethod
    def from_dict(cls, data: dict, axes: Optional[Axes] = None) -> 'GraphFunction':
        domain = None
        raw_domain = data.get("domain")
        if isinstance(raw_domain, dict):
            fallback_min = axes.x_min if axes else -math.inf
            fallback_max = axes.x_max if axes else math.inf
            domain = Domain(
                _as_float(raw_domain.get("min"), fallback_min),
                _as_float(raw_domain.get("max"), fallback_max),
            )
        return cls(
            id=str(data.get("id", "")),
            expression=str(data.get("expression", "")),
            domain=domain,
            offset_x=_as_float(data.get("offsetX"), 0.0),
            offset_y=_as_float(data.get("offsetY"), 0.0),
            scale_y=_as_float(data.get("scaleY"), 1.0),
        )


@dataclass
class RegionElement:
    """A candidate boundary: a function or a line, tagged with its id."""
    type: str  # 'function' or 'line'
    id: str
    element: GraphFunction | GraphLine

    @classmethod
    def function(cls, func: GraphFunction) -> 'RegionElement':
        return cls('function', func.id, func)

    @classmethod
    def line(cls, line: GraphLine) -> 'RegionElement':
        return cls('line', line.id, line)


@dataclass
class RegionResult:
    """A detected enclosed region."""
    polygon: list[Point]
    boundary_ids: list[str]
    domain: Domain

    def to_dict(self) -> dict:
        return {
            "polygon": [p.to_dict() for p in self.polygon],
            "boundaryIds": list(self.boundary_ids),
            "domain": self.domain.to_dict(),
        }


@dataclass
class GraphArea:
    """Shaded area descriptor persisted in the graph payload."""
    id: str
    mode: str = 'bounded-region'
    points: list[Point] = field(default_factory=list)
    boundary_ids: list[str] = field(default_factory=list)
    domain: Optional[Domain] = None
    label: str = ""
    label_pos: Optional[Point] = None
    ignored_boundary_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "mode": self.mode,
            "points": [{"type": "coord", "x": p.x, "y": p.y} for p in self.points],
            "boundaryIds": list(self.boundary_ids),
        }
        if self.domain is not None:
            data["domain"] = self.domain.to_dict()
        if self.label:
            data["label"] = self.label
        if self.label_pos is not None:
            data["labelPos"] = self.label_pos.to_dict()
        if self.ignored_boundary_ids:
            data["ignoredBoundaryIds"] = list(self.ignored_boundary_ids)
        return data


def region_elements_from_payload(payload: dict) -> list[RegionElement]:
    """
    Build the boundary set from a GraphPayload-shaped dict.

    Functions come first, then lines, each in payload order.
    """
    axes = Axes.from_dict(payload.get("axes") or {})
    points = {
        str(p.get("id")): Point(_as_float(p.get("x"), 0.0), _as_float(p.get("y"), 0.0))
        for p in payload.get("points") or []
        if p.get("id") is not None
    }

    elements = []
    for data in payload.get("functions") or []:
        elements.append(RegionElement.function(GraphFunction.from_dict(data, axes)))
    for data in payload.get("lines") or []:
        elements.append(RegionElement.line(GraphLine.from_dict(data, points)))
    return elements


# =============================================================================
# Shared helpers
# =============================================================================

def curve_control_point(start: Point, end: Point, curvature: float) -> Point:
    """Control point offset from the chord midpoint along its left normal."""
    mid_x = (start.x + end.x) / 2
    mid_y = (start.y + end.y) / 2
    dx = end.x - start.x
    dy = end.y - start.y
    length = math.hypot(dx, dy) or 1.0
    return Point(mid_x - dy / length * curvature, mid_y + dx / length * curvature)


def signed_area(polygon: list[Point]) -> float:
    """Shoelace area: positive for CCW winding."""
    n = len(polygon)
    if n < 3:
        return 0.0
    area = 0.0
    for i in range(n):
        j = (i + 1) % n
        area += polygon[i].x * polygon[j].y - polygon[j].x * polygon[i].y
    return area / 2.0


def point_in_polygon(point: Point, polygon: list[Point]) -> bool:
    """Ray casting inside test."""
    inside = False
    n = len(polygon)
    j = n - 1
    for i in range(n):
        xi, yi = polygon[i].x, polygon[i].y
        xj, yj = polygon[j].x, polygon[j].y
        if (yi > point.y) != (yj > point.y):
            x_cross = (xj - xi) * (point.y - yi) / (yj - yi) + xi
            if point.x < x_cross:
                inside = not inside
        j = i
    return inside


def dedupe_polygon(polygon: list[Point], min_dist: float = ON_LINE_TOLERANCE) -> list[Point]:
    """Drop consecutive vertices closer than min_dist, including last-vs-first."""
    if len(polygon) < 2:
        return list(polygon)

    result = [polygon[0]]
    for p in polygon[1:]:
        if p.distance_to(result[-1]) > min_dist:
            result.append(p)

    if len(result) > 2 and result[0].distance_to(result[-1]) < min_dist:
        result.pop()
    return result


def clip_point_to_axes(x: float, y: float, axes: Axes) -> Point:
    return Point(
        max(axes.x_min, min(axes.x_max, x)),
        max(axes.y_min, min(axes.y_max, y)),
    )


def clip_line_to_axes(p1: Point, p2: Point, axes: Axes, tolerance: float = 1e-4) -> list[Point]:
    """
    Clip the infinite line through p1 and p2 to the axes window.

    Returns the two extreme crossings with the window border (ordered along
    p1 -> p2), a single point when the line only grazes a corner, or an
    empty list when it misses the window.
    """
    dx = p2.x - p1.x
    dy = p2.y - p1.y
    candidates = []

    if abs(dx) > tolerance:
        for bound in (axes.x_min, axes.x_max):
            t = (bound - p1.x) / dx
            y = p1.y + t * dy
            if axes.y_min - tolerance <= y <= axes.y_max + tolerance:
                candidates.append((t, Point(bound, max(axes.y_min, min(axes.y_max, y)))))
    if abs(dy) > tolerance:
        for bound in (axes.y_min, axes.y_max):
            t = (bound - p1.y) / dy
            x = p1.x + t * dx
            if axes.x_min - tolerance <= x <= axes.x_max + tolerance:
                candidates.append((t, Point(max(axes.x_min, min(axes.x_max, x)), bound)))

    candidates.sort(key=lambda c: c[0])
    unique = []
    for t, p in candidates:
        if not unique or abs(t - unique[-1][0]) > tolerance:
            unique.append((t, p))

    if len(unique) >= 2:
        return [unique[0][1], unique[-1][1]]
    return [p for _, p in unique]
