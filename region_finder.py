"""
Region Finder - detect the enclosed area around a drop point.

Used by the graph editor's "smart area": when an area is dropped at a
point, the nearest boundary above and below that point are selected and
the region between them is swept left and right until it closes.

Algorithm:
1. Convert functions and lines into boundaries with an x-range
   (vertical lines keep a y-range instead)
2. At the drop abscissa, pick the nearest boundary strictly above and
   strictly below the point
3. Sweep outwards in both directions. A sweep stops where the two
   boundaries cross or touch, at a vertical line reaching into the gap,
   at the axes window edge, or where a boundary ends with nothing to
   continue it. A third boundary crossing into the gap takes over from
   the one it crossed.
4. Polygon = upper chain left to right + lower chain right to left

Ambiguous situations (point on a boundary, coincident boundaries, no
boundary on one side) return None rather than a guessed region.
"""

from dataclasses import dataclass, field
from typing import Callable, Optional
import math

try:
    from .config import RegionConfig, DEFAULT_CONFIG
    from .geometry import (
        Axes, Domain, GraphArea, GraphLine, Point, RegionElement, RegionResult,
        CANVAS_EDGE_ID, dedupe_polygon, signed_area,
    )
    from .intersection_solver import bisection, find_line_line_intersection, line_equation
    from .labels import PointLabelSequence
except ImportError:
    from config import RegionConfig, DEFAULT_CONFIG
    from geometry import (
        Axes, Domain, GraphArea, GraphLine, Point, RegionElement, RegionResult,
        CANVAS_EDGE_ID, dedupe_polygon, signed_area,
    )
    from intersection_solver import bisection, find_line_line_intersection, line_equation
    from labels import PointLabelSequence


# Slack when testing whether x lies inside a boundary's x-range
X_SLACK = 1e-9

# Two tied boundaries closer than this just beside the drop point coincide
COINCIDENT_TOLERANCE = 1e-9


@dataclass
class Boundary:
    """
    A sampled-on-demand boundary of the sweep.

    Non-vertical boundaries are y = evaluate(x) over [x_lo, x_hi]. Vertical
    lines set vertical_x and cover [y_lo, y_hi].
    """
    id: str
    x_lo: float
    x_hi: float
    evaluate: Optional[Callable[[float], float]] = None
    line: Optional[GraphLine] = None
    vertical_x: Optional[float] = None
    y_lo: float = -math.inf
    y_hi: float = math.inf
    is_edge: bool = False

    @property
    def is_vertical(self) -> bool:
        return self.vertical_x is not None

    def defined_at(self, x: float) -> bool:
        return self.x_lo - X_SLACK <= x <= self.x_hi + X_SLACK

    def y_at(self, x: float) -> float:
        if self.evaluate is None or not self.defined_at(x):
            return math.nan
        return self.evaluate(min(max(x, self.x_lo), self.x_hi))

    def end(self, direction: int) -> float:
        """Where the boundary stops when sweeping in direction (+1 right, -1 left)."""
        return self.x_hi if direction > 0 else self.x_lo


@dataclass
class SweepResult:
    """One half of a region, swept from the drop abscissa outwards."""
    upper_chain: list[Point]
    lower_chain: list[Point]
    boundary_ids: list[str] = field(default_factory=list)
    x_end: float = 0.0
    reason: str = ""


def _function_boundary(element: RegionElement, axes: Axes) -> Optional[Boundary]:
    func = element.element
    evaluator = func.compile()
    if evaluator is None:
        return None
    domain = func.effective_domain(axes).intersect(axes.x_domain)
    if domain is None:
        return None
    return Boundary(element.id, domain.min, domain.max, evaluate=evaluator)


def _line_boundary(element: RegionElement, axes: Axes) -> Optional[Boundary]:
    line = element.element
    eq = line_equation(line)
    if eq is None:
        return None
    p1, p2 = line.endpoints()

    if eq.is_vertical:
        if not axes.x_min <= eq.x <= axes.x_max:
            return None
        if line.kind == 'segment':
            y_lo, y_hi = min(p1.y, p2.y), max(p1.y, p2.y)
        elif line.kind == 'ray':
            y_lo, y_hi = (p1.y, math.inf) if p2.y >= p1.y else (-math.inf, p1.y)
        else:
            y_lo, y_hi = -math.inf, math.inf
        return Boundary(element.id, eq.x, eq.x, line=line, vertical_x=eq.x, y_lo=y_lo, y_hi=y_hi)

    if line.kind == 'segment':
        extent = Domain(min(p1.x, p2.x), max(p1.x, p2.x))
    elif line.kind == 'ray':
        extent = Domain(p1.x, math.inf) if p2.x > p1.x else Domain(-math.inf, p1.x)
    else:
        extent = axes.x_domain
    extent = extent.intersect(axes.x_domain)
    if extent is None:
        return None
    return Boundary(element.id, extent.min, extent.max, evaluate=eq.y_at, line=line)


def build_boundaries(elements: list[RegionElement], axes: Axes) -> list[Boundary]:
    """Boundaries for every usable element; invalid ones are dropped silently."""
    boundaries = []
    for element in elements:
        if element.type == 'function':
            boundary = _function_boundary(element, axes)
        elif element.type == 'line':
            boundary = _line_boundary(element, axes)
        else:
            boundary = None
        if boundary is not None:
            boundaries.append(boundary)
    return boundaries


def canvas_edge_boundaries(axes: Axes) -> list[Boundary]:
    """Top and bottom edges of the visible window as horizontal boundaries."""
    bottom, top = axes.y_min, axes.y_max
    return [
        Boundary(CANVAS_EDGE_ID, axes.x_min, axes.x_max, evaluate=lambda x: bottom, is_edge=True),
        Boundary(CANVAS_EDGE_ID, axes.x_min, axes.x_max, evaluate=lambda x: top, is_edge=True),
    ]


def _select_nearest(
    candidates: list[tuple[Boundary, float]],
    y0: float,
    peek_x: float,
    want_upper: bool,
    tolerance: float,
) -> Optional[Boundary]:
    """
    Nearest candidate to y0.

    Candidates equally near (within tolerance) are ordered by their value
    at peek_x, just beside the drop abscissa. Still equal there means the
    boundaries coincide and no choice is made.
    """
    ranked = sorted(candidates, key=lambda c: abs(c[1] - y0))
    best = abs(ranked[0][1] - y0)
    tied = [b for b, y in ranked if abs(y - y0) - best <= tolerance]
    if len(tied) == 1:
        return tied[0]

    beside = [(b, b.y_at(peek_x)) for b in tied]
    beside = [(b, y) for b, y in beside if math.isfinite(y)]
    if not beside:
        return tied[0]

    beside.sort(key=lambda c: c[1] if want_upper else -c[1])
    if len(beside) > 1 and abs(beside[0][1] - beside[1][1]) <= COINCIDENT_TOLERANCE:
        return None
    return beside[0][0]


def _golden_minimum(f: Callable[[float], float], a: float, b: float,
                    iterations: int = 40) -> tuple[float, float]:
    """Golden-section search for the minimum of f on [a, b]."""
    lo, hi = min(a, b), max(a, b)
    resphi = 2 - (1 + math.sqrt(5)) / 2
    x1 = lo + resphi * (hi - lo)
    x2 = hi - resphi * (hi - lo)
    f1, f2 = f(x1), f(x2)
    for _ in range(iterations):
        if f1 < f2:
            hi, x2, f2 = x2, x1, f1
            x1 = lo + resphi * (hi - lo)
            f1 = f(x1)
        else:
            lo, x1, f1 = x1, x2, f2
            x2 = hi - resphi * (hi - lo)
            f2 = f(x2)
    x = (x1 + x2) / 2
    return x, f(x)


class RegionSweep:
    """
    Sweeps the gap between an upper and a lower boundary in one direction.

    Holds the full boundary set so that boundaries crossing into the gap
    and vertical caps can be detected along the way.
    """

    def __init__(self, boundaries: list[Boundary], axes: Axes,
                 config: RegionConfig = DEFAULT_CONFIG, debug: bool = False):
        self.axes = axes
        self.config = config
        self.debug = debug
        self.tolerance = config.tolerance
        self.step = axes.width / config.sweep_samples
        self.curves = [b for b in boundaries if not b.is_vertical]
        self.verticals = [b for b in boundaries if b.is_vertical]

    def _ahead(self, a: float, b: float) -> bool:
        """True when a lies strictly beyond b in the sweep direction."""
        return self.direction * (a - b) > X_SLACK

    def run(self, x0: float, upper: Boundary, lower: Boundary, direction: int) -> Optional[SweepResult]:
        self.direction = direction
        d = direction
        tol = self.tolerance
        limit = self.axes.x_max if d > 0 else self.axes.x_min

        upper_chain = [Point(x0, upper.y_at(x0))]
        lower_chain = [Point(x0, lower.y_at(x0))]
        ids: list[str] = []
        gaps = [(x0, upper_chain[0].y - lower_chain[0].y)]
        x_prev = x0

        def finish(x_end: float, reason: str) -> SweepResult:
            if self.debug:
                side = 'right' if d > 0 else 'left'
                print(f"  Sweep {side}: stopped at x={x_end:.4f} ({reason})")
            return SweepResult(upper_chain, lower_chain, ids, x_end, reason)

        max_steps = self.config.sweep_samples * 4 + 4 * len(self.curves) + 16
        for _ in range(max_steps):
            if not self._ahead(limit, x_prev):
                return finish(x_prev, 'edge')

            target = x_prev + d * self.step
            if self._ahead(target, limit):
                target = limit
            for b in (upper, lower):
                if self._ahead(target, b.end(d)):
                    target = b.end(d)

            cap = self._find_cap(x_prev, target, upper, lower)
            if cap is not None:
                target = cap.vertical_x

            u = upper.y_at(target)
            l = lower.y_at(target)
            if not math.isfinite(u) or not math.isfinite(l):
                return finish(x_prev, 'undefined')

            closing_x = None
            if u - l <= tol:
                closing_x = self._pair_crossing(upper, lower, x_prev, target)

            entering = self._find_entering(upper, lower, x_prev, target, u, l)
            if entering is not None and (closing_x is None or not self._ahead(entering[0], closing_x)):
                x_cross, boundary, side = entering
                y_cross = boundary.y_at(x_cross)
                if side == 'upper':
                    upper_chain.append(Point(x_cross, y_cross))
                    upper = boundary
                else:
                    lower_chain.append(Point(x_cross, y_cross))
                    lower = boundary
                ids.append(boundary.id)
                if self.debug:
                    print(f"  {boundary.id} takes over as {side} boundary at x={x_cross:.4f}")
                x_prev = x_cross
                gaps = [(x_cross, upper.y_at(x_cross) - lower.y_at(x_cross))]
                continue

            if closing_x is not None:
                y = upper.y_at(closing_x)
                if not math.isfinite(y):
                    y = (u + l) / 2
                upper_chain.append(Point(closing_x, y))
                lower_chain.append(Point(closing_x, y))
                return finish(closing_x, 'crossing')

            gap = u - l
            if len(gaps) >= 2 and gaps[-1][1] < gaps[-2][1] and gap > gaps[-1][1]:
                touch = self._touch_point(upper, lower, gaps[-2][0], target)
                if touch is not None:
                    upper_chain[:] = [p for p in upper_chain if not self._ahead(p.x, touch.x)]
                    lower_chain[:] = [p for p in lower_chain if not self._ahead(p.x, touch.x)]
                    upper_chain.append(touch)
                    lower_chain.append(touch)
                    return finish(touch.x, 'touch')

            gaps.append((target, gap))
            upper_chain.append(Point(target, u))
            lower_chain.append(Point(target, l))
            x_prev = target

            if cap is not None:
                ids.append(cap.id)
                return finish(target, 'cap')

            if not self._ahead(limit, target):
                return finish(target, 'edge')

            for side in ('upper', 'lower'):
                current = upper if side == 'upper' else lower
                if self._ahead(current.end(d), target):
                    continue
                other = lower if side == 'upper' else upper
                successor, joined = self._continuation(current, other, target, side)
                if successor is None:
                    return finish(target, 'domain end')
                if not joined:
                    # A dead end inside a larger area: the region is not enclosed
                    if self.debug:
                        print(f"  {current.id} ends inside the region at x={target:.4f}")
                    return None
                chain = upper_chain if side == 'upper' else lower_chain
                chain.append(Point(target, successor.y_at(target)))
                if side == 'upper':
                    upper = successor
                else:
                    lower = successor
                ids.append(successor.id)
                gaps = [(target, upper.y_at(target) - lower.y_at(target))]

        # Only reachable when boundaries keep swapping without progress
        return None

    def _find_cap(self, x_prev: float, target: float,
                  upper: Boundary, lower: Boundary) -> Optional[Boundary]:
        """Nearest vertical line in (x_prev, target] whose span meets the gap."""
        best = None
        for v in self.verticals:
            vx = v.vertical_x
            if not self._ahead(vx, x_prev) or self._ahead(vx, target):
                continue
            hi = upper.y_at(vx)
            lo = lower.y_at(vx)
            if not math.isfinite(hi) or not math.isfinite(lo):
                continue
            if v.y_lo < hi - self.tolerance and v.y_hi > lo + self.tolerance:
                if best is None or self._ahead(best.vertical_x, vx):
                    best = v
        return best

    def _pair_crossing(self, upper: Boundary, lower: Boundary, a: float, b: float) -> float:
        """
        Abscissa in [a, b] where upper meets lower.

        Two lines are intersected exactly. Any other pair is refined with
        ``bisection`` on the gap over the one bracketing sweep step, the same
        refinement ``find_function_intersections`` applies per sign change.
        """
        if upper.line is not None and lower.line is not None:
            point = find_line_line_intersection(
                upper.line, lower.line, parallel_tolerance=self.config.parallel_tolerance,
            )
            if point is not None and min(a, b) - X_SLACK <= point.x <= max(a, b) + X_SLACK:
                return point.x

        root = bisection(lambda x: upper.y_at(x) - lower.y_at(x), a, b,
                         self.tolerance, self.config.max_iterations)
        return root if root is not None else b

    def _find_entering(self, upper: Boundary, lower: Boundary, x_prev: float,
                       target: float, u: float, l: float) -> Optional[tuple[float, Boundary, str]]:
        """
        Earliest boundary that crossed into the gap between x_prev and target.

        Returns (crossing x, boundary, side crossed). Boundaries that start
        strictly inside the gap do not bound the region and are skipped.
        """
        tol = self.tolerance
        earliest = None
        for b in self.curves:
            if b is upper or b is lower:
                continue
            yb = b.y_at(target)
            if not math.isfinite(yb) or not (l + tol < yb < u - tol):
                continue

            x_start = x_prev if b.defined_at(x_prev) else b.end(-self.direction)
            yb0 = b.y_at(x_start)
            u0 = upper.y_at(x_start)
            l0 = lower.y_at(x_start)
            if not (math.isfinite(yb0) and math.isfinite(u0) and math.isfinite(l0)):
                continue

            if yb0 >= u0 - tol:
                side, crossed = 'upper', upper
            elif yb0 <= l0 + tol:
                side, crossed = 'lower', lower
            else:
                continue

            x_cross = bisection(lambda x: b.y_at(x) - crossed.y_at(x), x_start, target,
                                tol, self.config.max_iterations)
            if x_cross is None:
                x_cross = x_start
            if earliest is None or self._ahead(earliest[0], x_cross):
                earliest = (x_cross, b, side)
        return earliest

    def _touch_point(self, upper: Boundary, lower: Boundary, a: float, b: float) -> Optional[Point]:
        """Point where the gap shrinks to zero without a sign change, if any."""
        def gap(x: float) -> float:
            value = upper.y_at(x) - lower.y_at(x)
            return value if math.isfinite(value) else math.inf

        x, g = _golden_minimum(gap, a, b)
        if g > self.tolerance:
            return None
        return Point(x, upper.y_at(x))

    def _continuation(self, ending: Boundary, other: Boundary, x: float,
                      side: str) -> tuple[Optional[Boundary], bool]:
        """
        Nearest boundary beyond the end of ``ending`` on the same side.

        Returns (boundary, joined). joined is True only when that boundary
        starts where ``ending`` stops and no other candidate ties with it.
        (None, False) when nothing lies beyond on that side.
        """
        tol = self.tolerance
        y_end = ending.y_at(x)
        y_other = other.y_at(x)
        candidates = []
        for b in self.curves:
            if b is ending or b is other or not b.defined_at(x):
                continue
            if not self._ahead(b.end(self.direction), x):
                continue
            y = b.y_at(x)
            if not math.isfinite(y):
                continue
            if side == 'upper' and y > y_other + tol:
                candidates.append((b, y))
            elif side == 'lower' and y < y_other - tol:
                candidates.append((b, y))

        if not candidates:
            return None, False
        candidates.sort(key=lambda c: c[1] if side == 'upper' else -c[1])
        best, y_best = candidates[0]
        if len(candidates) > 1 and abs(y_best - candidates[1][1]) <= tol:
            return best, False
        joined = math.isfinite(y_end) and abs(y_best - y_end) <= self.config.on_line_tolerance
        return best, joined


def _on_boundary(point: Point, boundaries: list[Boundary], tolerance: float) -> bool:
    for b in boundaries:
        if b.is_vertical:
            if (abs(b.vertical_x - point.x) <= tolerance
                    and b.y_lo - tolerance <= point.y <= b.y_hi + tolerance):
                return True
            continue
        y = b.y_at(point.x)
        if math.isfinite(y) and abs(y - point.y) <= tolerance:
            return True
    return False


def _unique(ids: list[str]) -> list[str]:
    seen = []
    for element_id in ids:
        if element_id != CANVAS_EDGE_ID and element_id not in seen:
            seen.append(element_id)
    return seen


def find_enclosing_region(
    point: Point,
    elements: list[RegionElement],
    axes: Axes,
    ignored_boundary_ids: Optional[list[str]] = None,
    config: Optional[RegionConfig] = None,
    include_canvas_edges: bool = False,
    debug: bool = False,
) -> Optional[RegionResult]:
    """
    Find the smallest region around point bounded by the given elements.

    Args:
        point: Drop point in graph coordinates
        elements: Candidate boundaries (functions and lines)
        axes: Visible window; the sweep never leaves it
        ignored_boundary_ids: Element ids to treat as absent ("extend" an area)
        config: Sampling and tolerance settings
        include_canvas_edges: Use the window's top and bottom edges as boundaries
        debug: Print selection and stop reasons

    Returns:
        RegionResult, or None when no unambiguous closed region exists.
    """
    config = config or DEFAULT_CONFIG
    ignored = set(ignored_boundary_ids or ())
    active = [e for e in elements if e.id not in ignored]

    if len(active) < 2:
        if debug:
            print(f"Region: {len(active)} active element(s), need at least 2")
        return None

    if not (axes.width > 0 and axes.height > 0) or not axes.contains(point.x, point.y):
        return None

    boundaries = build_boundaries(active, axes)
    if len(boundaries) < 2:
        if debug:
            print(f"Region: only {len(boundaries)} usable boundary(ies)")
        return None
    if include_canvas_edges:
        boundaries.extend(canvas_edge_boundaries(axes))

    on_tol = config.on_line_tolerance
    if _on_boundary(point, boundaries, on_tol):
        if debug:
            print(f"Region: ({point.x:.4f}, {point.y:.4f}) lies on a boundary")
        return None

    above = []
    below = []
    for b in boundaries:
        if b.is_vertical:
            continue
        y = b.y_at(point.x)
        if not math.isfinite(y):
            continue
        if point.y < y <= axes.y_max + on_tol:
            above.append((b, y))
        elif axes.y_min - on_tol <= y < point.y:
            below.append((b, y))

    if not above or not below:
        if debug:
            print(f"Region: {len(above)} boundary(ies) above, {len(below)} below")
        return None

    sweep = RegionSweep(boundaries, axes, config, debug)
    peek = sweep.step / 2
    halves = {}
    for direction in (1, -1):
        peek_x = point.x + direction * peek
        upper = _select_nearest(above, point.y, peek_x, True, on_tol)
        lower = _select_nearest(below, point.y, peek_x, False, on_tol)
        if upper is None or lower is None:
            if debug:
                print("Region: coincident boundaries at the drop point")
            return None
        if debug:
            print(f"Region: upper={upper.id}, lower={lower.id}, direction={direction:+d}")
        half = sweep.run(point.x, upper, lower, direction)
        if half is None:
            return None
        halves[direction] = (upper, lower, half)

    right_upper, right_lower, right = halves[1]
    left_upper, left_lower, left = halves[-1]

    upper_chain = list(reversed(left.upper_chain)) + right.upper_chain[1:]
    lower_chain = list(reversed(left.lower_chain)) + right.lower_chain[1:]
    raw = upper_chain + list(reversed(lower_chain))
    clamped = [Point(p.x, max(axes.y_min, min(axes.y_max, p.y))) for p in raw]
    polygon = dedupe_polygon(clamped)

    if len(polygon) < 3 or abs(signed_area(polygon)) < config.tolerance ** 2:
        return None

    boundary_ids = _unique(
        [right_upper.id, right_lower.id, left_upper.id, left_lower.id]
        + right.boundary_ids + left.boundary_ids
    )
    domain = Domain(min(left.x_end, right.x_end), max(left.x_end, right.x_end))
    return RegionResult(polygon=polygon, boundary_ids=boundary_ids, domain=domain)


def build_smart_area(
    result: RegionResult,
    area_id: str,
    labels: Optional[PointLabelSequence] = None,
    ignored_boundary_ids: Optional[list[str]] = None,
    label_pos: Optional[Point] = None,
) -> GraphArea:
    """
    Materialise a detected region as a bounded-region area descriptor.

    The label is drawn from ``labels`` when given; the label position
    defaults to the vertex centroid of the polygon.
    """
    if label_pos is None and result.polygon:
        n = len(result.polygon)
        label_pos = Point(
            sum(p.x for p in result.polygon) / n,
            sum(p.y for p in result.polygon) / n,
        )
    return GraphArea(
        id=area_id,
        mode='bounded-region',
        points=list(result.polygon),
        boundary_ids=list(result.boundary_ids),
        domain=Domain(result.domain.min, result.domain.max),
        label=labels.next_label() if labels is not None else "",
        label_pos=label_pos,
        ignored_boundary_ids=list(ignored_boundary_ids or []),
    )
