"""
Visibility Region Module

Finds the region around a drop point by radial ray casting. This is the
editor's alternative to the sweep in region_finder: it handles arbitrary
element layouts (closed pockets formed by several lines, regions touching
the window border) at the cost of a polygon that is only as exact as the
sampling.

Algorithm:
1. Sample every element into a polyline (lines clipped to the window)
2. Flatten polylines plus the four window edges into a segment list
3. Cast evenly spaced rays from the drop point, keep the nearest hit each
4. Where consecutive rays hit different owners, bisect the angle to
   locate the transition
5. Between consecutive hits on the same curve, follow the curve's samples
"""

from dataclasses import dataclass, field
from typing import Optional
import math

try:
    from .config import RegionConfig, DEFAULT_CONFIG
    from .geometry import (
        Axes, Domain, GraphFunction, GraphLine, Point, RegionElement, RegionResult,
        CANVAS_EDGE_ID, clip_line_to_axes, clip_point_to_axes, dedupe_polygon,
    )
except ImportError:
    from config import RegionConfig, DEFAULT_CONFIG
    from geometry import (
        Axes, Domain, GraphFunction, GraphLine, Point, RegionElement, RegionResult,
        CANVAS_EDGE_ID, clip_line_to_axes, clip_point_to_axes, dedupe_polygon,
    )


RAY_EPSILON = 1e-9
SEGMENT_TOLERANCE = 1e-4

# Stop bisecting once the two rays are this close (radians)
MIN_REFINE_ANGLE = 0.001


@dataclass
class Polyline:
    """A sampled element, ordered along the element."""
    id: str
    type: str  # 'function' or 'line'
    points: list[Point] = field(default_factory=list)


@dataclass
class Segment:
    """One straight piece of a polyline, or a window edge."""
    p1: Point
    p2: Point
    owner_id: str
    owner_type: str  # 'function', 'line' or 'boundary'
    index: int = 0


@dataclass
class RayHit:
    """Nearest intersection of a ray with the segment list."""
    point: Point
    distance: float
    owner_id: str
    segment: Segment


# =============================================================================
# Sampling
# =============================================================================

def _sample_function(element_id: str, func: GraphFunction, axes: Axes, num_samples: int) -> Polyline:
    evaluate = func.compile()
    polyline = Polyline(element_id, 'function')
    if evaluate is None:
        return polyline

    domain = func.effective_domain(axes)
    step = (domain.max - domain.min) / num_samples
    for i in range(num_samples + 1):
        x = domain.min + i * step
        y = evaluate(x)
        if math.isfinite(y):
            polyline.points.append(Point(x, y))
    return polyline


def _sample_line(element_id: str, line: GraphLine, axes: Axes) -> Polyline:
    polyline = Polyline(element_id, 'line')
    ends = line.endpoints()
    if ends is None:
        return polyline
    p1, p2 = ends
    dx = p2.x - p1.x
    dy = p2.y - p1.y

    if line.kind == 'segment':
        polyline.points = [p1, p2]
    elif line.kind == 'line':
        if abs(dx) < SEGMENT_TOLERANCE:
            polyline.points = [Point(p1.x, axes.y_min), Point(p1.x, axes.y_max)]
        else:
            m = dy / dx
            left = Point(axes.x_min, p1.y + m * (axes.x_min - p1.x))
            right = Point(axes.x_max, p1.y + m * (axes.x_max - p1.x))
            polyline.points = clip_line_to_axes(left, right, axes, SEGMENT_TOLERANCE)
    elif line.kind == 'ray':
        if abs(dx) < SEGMENT_TOLERANCE:
            end = Point(p1.x, axes.y_max if dy > 0 else axes.y_min)
        else:
            end_x = axes.x_max if dx > 0 else axes.x_min
            end = clip_point_to_axes(end_x, p1.y + dy / dx * (end_x - p1.x), axes)
        polyline.points = [p1, end]
    return polyline


def sample_element(element: RegionElement, axes: Axes, num_samples: int = 200) -> Polyline:
    """Sample a function or line as a polyline (empty if it cannot be drawn)."""
    if element.type == 'function':
        return _sample_function(element.id, element.element, axes, num_samples)
    return _sample_line(element.id, element.element, axes)


def build_segments(polylines: list[Polyline], axes: Axes) -> list[Segment]:
    """Flatten polylines into segments and append the four window edges."""
    segments = []
    for polyline in polylines:
        for i in range(len(polyline.points) - 1):
            p1 = polyline.points[i]
            p2 = polyline.points[i + 1]
            if not all(math.isfinite(v) for v in (p1.x, p1.y, p2.x, p2.y)):
                continue
            if (p2.x - p1.x) ** 2 + (p2.y - p1.y) ** 2 < SEGMENT_TOLERANCE ** 2:
                continue
            segments.append(Segment(p1, p2, polyline.id, polyline.type, i))

    corners = axes.corners()
    for i in range(4):
        segments.append(Segment(corners[i], corners[(i + 1) % 4], CANVAS_EDGE_ID, 'boundary', i))
    return segments


# =============================================================================
# Ray casting
# =============================================================================

def ray_segment_intersection(
    origin: Point, dx: float, dy: float, segment: Segment,
) -> Optional[tuple[Point, float]]:
    """
    Intersect the ray origin + t*(dx, dy), t > 0, with a segment.

    Returns (point, t) or None when parallel, behind the origin, or past
    the segment's ends.
    """
    sx = segment.p2.x - segment.p1.x
    sy = segment.p2.y - segment.p1.y

    denom = dx * sy - dy * sx
    if abs(denom) < RAY_EPSILON:
        return None

    diff_x = segment.p1.x - origin.x
    diff_y = segment.p1.y - origin.y

    t = (diff_x * sy - diff_y * sx) / denom
    if t < RAY_EPSILON:
        return None

    u = (diff_x * dy - diff_y * dx) / denom
    if u < -SEGMENT_TOLERANCE or u > 1 + SEGMENT_TOLERANCE:
        return None

    return Point(origin.x + t * dx, origin.y + t * dy), t


def cast_ray(origin: Point, angle: float, segments: list[Segment]) -> Optional[RayHit]:
    """Nearest hit of the ray at the given angle."""
    dx = math.cos(angle)
    dy = math.sin(angle)

    best = None
    for segment in segments:
        result = ray_segment_intersection(origin, dx, dy, segment)
        if result is not None and (best is None or result[1] < best.distance):
            best = RayHit(result[0], result[1], segment.owner_id, segment)
    return best


def refine_transition(
    origin: Point,
    angle1: float,
    angle2: float,
    hit1: RayHit,
    hit2: RayHit,
    segments: list[Segment],
    max_depth: int,
    depth: int = 0,
) -> list[RayHit]:
    """
    Extra hits between two rays that landed on different owners.

    Bisects the angle recursively; returned hits are ordered by angle.
    """
    if depth >= max_depth or abs(angle2 - angle1) < MIN_REFINE_ANGLE:
        return []

    mid_angle = (angle1 + angle2) / 2
    mid_hit = cast_ray(origin, mid_angle, segments)
    if mid_hit is None:
        return []

    hits = []
    if mid_hit.owner_id != hit1.owner_id:
        hits.extend(refine_transition(origin, angle1, mid_angle, hit1, mid_hit,
                                      segments, max_depth, depth + 1))
    hits.append(mid_hit)
    if mid_hit.owner_id != hit2.owner_id:
        hits.extend(refine_transition(origin, mid_angle, angle2, mid_hit, hit2,
                                      segments, max_depth, depth + 1))
    return hits


# =============================================================================
# Polygon assembly
# =============================================================================

def _closest_index(polyline: Polyline, point: Point) -> int:
    best_idx = 0
    best_dist = math.inf
    for i, p in enumerate(polyline.points):
        d = (p.x - point.x) ** 2 + (p.y - point.y) ** 2
        if d < best_dist:
            best_dist = d
            best_idx = i
    return best_idx


def follow_curve(start: Point, end: Point, polyline: Polyline, max_points: int = 30) -> list[Point]:
    """
    Polyline vertices strictly between the samples nearest start and end.

    Ordered from start towards end, thinned to at most max_points.
    """
    if len(polyline.points) < 2:
        return []

    idx1 = _closest_index(polyline, start)
    idx2 = _closest_index(polyline, end)
    if idx1 == idx2:
        return []

    lo, hi = min(idx1, idx2), max(idx1, idx2)
    arc = polyline.points[lo + 1:hi]
    if idx1 > idx2:
        arc.reverse()

    if len(arc) > max_points:
        step = len(arc) / max_points
        arc = [arc[int(i * step)] for i in range(max_points)]
    return arc


def build_polygon_from_hits(hits: list[RayHit], polylines: dict[str, Polyline],
                            max_arc_points: int = 30) -> list[Point]:
    if len(hits) < 3:
        return []

    polygon = []
    for i, current in enumerate(hits):
        following = hits[(i + 1) % len(hits)]
        polygon.append(current.point)
        if current.owner_id == following.owner_id and current.owner_id != CANVAS_EDGE_ID:
            polyline = polylines.get(current.owner_id)
            if polyline is not None:
                polygon.extend(follow_curve(current.point, following.point, polyline, max_arc_points))
    return polygon


def trace_visibility_region(
    drop_point: Point,
    elements: list[RegionElement],
    axes: Axes,
    ignored_boundary_ids: Optional[list[str]] = None,
    config: Optional[RegionConfig] = None,
    debug: bool = False,
) -> Optional[RegionResult]:
    """
    Region visible from drop_point, bounded by elements and the window.

    With no active elements the whole window is returned. Window edges are
    never reported in boundary_ids; the domain is the polygon's x-extent.
    """
    config = config or DEFAULT_CONFIG
    ignored = set(ignored_boundary_ids or ())
    active = [e for e in elements if e.id not in ignored]

    if not active:
        return RegionResult(
            polygon=axes.corners(),
            boundary_ids=[],
            domain=Domain(axes.x_min, axes.x_max),
        )

    polylines = [sample_element(e, axes, config.num_samples) for e in active]
    polylines = [p for p in polylines if len(p.points) >= 2]
    by_id = {p.id: p for p in polylines}
    segments = build_segments(polylines, axes)

    n_rays = config.num_base_rays
    angle_step = 2 * math.pi / n_rays
    base_hits = []
    for i in range(n_rays):
        angle = i * angle_step
        hit = cast_ray(drop_point, angle, segments)
        if hit is not None:
            base_hits.append((angle, hit))

    if len(base_hits) < 3:
        return None

    hits = []
    for i, (angle, hit) in enumerate(base_hits):
        next_angle, next_hit = base_hits[(i + 1) % len(base_hits)]
        hits.append(hit)
        if hit.owner_id != next_hit.owner_id:
            if i == len(base_hits) - 1:
                next_angle += 2 * math.pi
            hits.extend(refine_transition(drop_point, angle, next_angle, hit, next_hit,
                                          segments, config.max_refine_depth))

    if debug:
        print(f"Visibility: {len(base_hits)} base hits, {len(hits) - len(base_hits)} refined")

    polygon = dedupe_polygon(build_polygon_from_hits(hits, by_id, config.max_arc_points))
    if len(polygon) < 3:
        return None

    boundary_ids = []
    for hit in hits:
        if hit.owner_id != CANVAS_EDGE_ID and hit.owner_id not in boundary_ids:
            boundary_ids.append(hit.owner_id)

    xs = [p.x for p in polygon]
    return RegionResult(polygon=polygon, boundary_ids=boundary_ids, domain=Domain(min(xs), max(xs)))
