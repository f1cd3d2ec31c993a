"""Unit tests for sweep-line region detection."""

import pytest
import math
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from geometry import (
    Anchor, Axes, Domain, GraphFunction, GraphLine, Point, RegionElement,
    CANVAS_EDGE_ID, point_in_polygon,
)
import region_finder
from config import RegionConfig
from region_finder import build_boundaries, build_smart_area, find_enclosing_region


def func(func_id, expression, **kwargs):
    return RegionElement.function(GraphFunction(func_id, expression, **kwargs))


def line(line_id, x1, y1, x2, y2, kind='line'):
    return RegionElement.line(GraphLine(line_id, Anchor.coord(x1, y1), Anchor.coord(x2, y2), kind))


class TestBasicRegions:
    """Tests for regions between two boundaries."""

    def test_parabola_and_identity(self, parabola_and_identity, default_axes):
        """Test the pocket between x^2 and x spans [0, 1]."""
        result = find_enclosing_region(Point(0.5, 0.3), parabola_and_identity, default_axes)
        assert result is not None
        assert len(result.polygon) >= 3
        assert result.domain.min == pytest.approx(0, abs=0.1)
        assert result.domain.max == pytest.approx(1, abs=0.1)
        assert set(result.boundary_ids) == {'f1', 'f2'}

    def test_polygon_stays_between_curves(self, parabola_and_identity, default_axes):
        """Test every vertex lies between the curves and the drop point is inside."""
        drop = Point(0.5, 0.3)
        result = find_enclosing_region(drop, parabola_and_identity, default_axes)
        for p in result.polygon:
            assert p.x * p.x - 1e-3 <= p.y <= p.x + 1e-3
        assert point_in_polygon(drop, result.polygon)

    def test_sine_pocket(self):
        """Test the first positive lobe of sin(x) above y = 0."""
        axes = Axes(-2 * math.pi, 2 * math.pi, -2, 2)
        elements = [func('f1', 'sin(x)'), func('f2', '0')]
        result = find_enclosing_region(Point(math.pi / 2, 0.5), elements, axes)
        assert result is not None
        assert result.domain.min == pytest.approx(0, abs=0.2)
        assert result.domain.max == pytest.approx(math.pi, abs=0.2)

    def test_transformed_function(self, default_axes):
        """Test offset and scale are honoured: 2x^2 + 1 above y = 0."""
        elements = [func('f1', 'x^2', offset_y=1, scale_y=2), func('f2', '0')]
        result = find_enclosing_region(Point(1, 1.5), elements, default_axes)
        assert result is not None
        assert max(p.y for p in result.polygon) > 2

    def test_polygon_clamped_to_window(self, default_axes):
        """Test vertices never leave the visible y-range."""
        elements = [func('f1', 'x^2', offset_y=1, scale_y=2), func('f2', '0')]
        result = find_enclosing_region(Point(1, 1.5), elements, default_axes)
        assert all(-5 <= p.y <= 5 for p in result.polygon)

    def test_idempotent(self, parabola_and_identity, default_axes):
        """Test identical calls return identical results."""
        first = find_enclosing_region(Point(0.5, 0.3), parabola_and_identity, default_axes)
        second = find_enclosing_region(Point(0.5, 0.3), parabola_and_identity, default_axes)
        assert first == second


class TestClosure:
    """Tests for the ways a sweep can stop."""

    def test_vertical_segment_caps(self, default_axes):
        """Test a vertical segment at x = 2 bounds the region."""
        elements = [
            func('f1', 'x^2'),
            func('f2', '0'),
            line('vline', 2, -1, 2, 5, 'segment'),
        ]
        result = find_enclosing_region(Point(1, 0.5), elements, default_axes)
        assert result is not None
        assert result.domain.max <= 2.1
        assert 'vline' in result.boundary_ids

    def test_vertical_ray_caps(self, default_axes):
        """Test a vertical ray reaching into the gap bounds the region."""
        elements = [
            func('f1', 'x'),
            func('f2', '-x'),
            line('ray1', 1, 0, 1, 1, 'ray'),
        ]
        result = find_enclosing_region(Point(0.5, 0), elements, default_axes)
        assert result is not None
        assert result.domain.max <= 1.1
        assert result.domain.min == pytest.approx(0, abs=0.05)

    def test_vertical_segment_outside_gap_ignored(self, default_axes):
        """Test a vertical segment above the gap does not cap it."""
        elements = [
            func('top', '1'),
            func('bottom', '-1'),
            line('high', 2, 2, 2, 4, 'segment'),
        ]
        result = find_enclosing_region(Point(0, 0), elements, default_axes)
        assert result.domain.max == pytest.approx(5)
        assert 'high' not in result.boundary_ids

    def test_tangent_touch_on_sample(self, default_axes):
        """Test x^2 and 2x - 1 touching at x = 1 closes the region there."""
        elements = [func('f1', 'x^2'), line('line1', 0, -1, 1, 1)]
        result = find_enclosing_region(Point(0.5, 0.1), elements, default_axes)
        assert result is not None
        assert result.domain.max == pytest.approx(1, abs=0.05)
        assert result.domain.min == pytest.approx(-5)

    def test_tangent_touch_between_samples(self, default_axes):
        """Test a touch between two samples is found by the minimum search."""
        elements = [func('f1', 'x^2 - 0.66x + 0.1089'), func('f2', '0')]
        result = find_enclosing_region(Point(2, 1), elements, default_axes)
        assert result is not None
        assert result.domain.min == pytest.approx(0.33, abs=0.01)

    def test_domain_end_closes(self, default_axes):
        """Test a boundary whose domain ends with nothing beyond closes the region."""
        elements = [func('mid', '1', domain=Domain(-2, 2)), func('floor', '-1')]
        result = find_enclosing_region(Point(0, 0), elements, default_axes)
        assert result.domain.min == pytest.approx(-2)
        assert result.domain.max == pytest.approx(2)

    def test_domain_end_continues(self, default_axes):
        """Test a boundary starting where the upper one ends takes over."""
        elements = [
            func('mid', '1', domain=Domain(-2, 2)),
            func('floor', '-1'),
            func('ramp', 'x - 1', domain=Domain(2, 5)),
        ]
        result = find_enclosing_region(Point(0, 0), elements, default_axes)
        assert result.domain.min == pytest.approx(-2)
        assert result.domain.max == pytest.approx(5)
        assert result.boundary_ids == ['mid', 'floor', 'ramp']
        assert max(p.y for p in result.polygon) == pytest.approx(4)

    def test_dead_end_above(self, default_axes):
        """Test a boundary ending in open space below another gives None."""
        elements = [
            func('mid', '1', domain=Domain(-2, 2)),
            func('floor', '-1'),
            func('top', '3'),
        ]
        assert find_enclosing_region(Point(0, 0), elements, default_axes) is None

    @pytest.mark.parametrize("drop", [Point(1, -0.5), Point(1.5, 2.0)])
    def test_segment_spur_gives_none(self, default_axes, drop):
        """Test a segment ending inside the area under x^2 does not split it."""
        elements = [
            func('f1', 'x^2'),
            func('f2', '-1'),
            line('d', 0, 0, 2, 2, 'segment'),
        ]
        assert find_enclosing_region(drop, elements, default_axes) is None

    def test_spur_reported_in_debug(self, default_axes, capsys):
        """Test debug mode names the boundary that ends inside the region."""
        elements = [func('f1', 'x^2'), func('f2', '-1'), line('d', 0, 0, 2, 2, 'segment')]
        find_enclosing_region(Point(1.5, 2.0), elements, default_axes, debug=True)
        assert "d ends inside the region" in capsys.readouterr().out

    def test_third_boundary_takes_over(self, default_axes):
        """Test a boundary crossing into the gap replaces the one it crossed."""
        elements = [func('ceil', '4'), func('floor', '0'), func('diag', 'x')]
        result = find_enclosing_region(Point(-1, 1), elements, default_axes)
        assert result is not None
        assert result.boundary_ids == ['ceil', 'floor', 'diag']
        assert result.domain.min == pytest.approx(-5)
        assert result.domain.max == pytest.approx(4, abs=0.01)

    def test_line_crossings(self, default_axes):
        """Test two crossing lines close the region, the floor takes over below y = x."""
        elements = [
            line('up', 0, 0, 1, 1),
            line('down', 0, 4, 1, 3),
            func('floor', '0'),
        ]
        result = find_enclosing_region(Point(1, 1.5), elements, default_axes)
        assert result is not None
        assert result.domain.max == pytest.approx(2, abs=1e-6)
        assert result.domain.min == pytest.approx(-5)
        assert result.boundary_ids == ['down', 'up', 'floor']

    def test_line_crossing_uses_parallel_tolerance(self, default_axes, monkeypatch):
        """Test the configured parallel tolerance reaches the line intersection."""
        seen = []
        real = region_finder.find_line_line_intersection

        def recording(line1, line2, **kwargs):
            seen.append(kwargs.get('parallel_tolerance'))
            return real(line1, line2, **kwargs)

        monkeypatch.setattr(region_finder, 'find_line_line_intersection', recording)
        elements = [
            line('up', 0, 0, 1, 1),
            line('down', 0, 4, 1, 3),
            func('floor', '0'),
        ]
        result = find_enclosing_region(Point(1, 1.5), elements, default_axes,
                                       config=RegionConfig(parallel_tolerance=0.5))
        assert seen and all(t == 0.5 for t in seen)
        assert result.domain.max == pytest.approx(2, abs=1e-6)


class TestIgnoredBoundaries:
    """Tests for extending an area by ignoring boundaries."""

    def test_ignoring_middle_function_extends(self, default_axes):
        """Test ignoring x between x^2 and 2x widens [0, 1] to [0, 2]."""
        elements = [func('f1', 'x^2'), func('f2', 'x'), func('f3', '2*x')]
        drop = Point(0.5, 0.4)

        narrow = find_enclosing_region(drop, elements, default_axes)
        wide = find_enclosing_region(drop, elements, default_axes, ['f2'])

        assert narrow.domain.max == pytest.approx(1, abs=0.05)
        assert wide.domain.max == pytest.approx(2, abs=0.05)
        assert 'f2' not in wide.boundary_ids
        assert set(wide.boundary_ids) == {'f1', 'f3'}

    def test_ignoring_down_to_one_element(self, parabola_and_identity, default_axes):
        """Test ignoring all but one boundary gives None."""
        assert find_enclosing_region(Point(0.5, 0.3), parabola_and_identity, default_axes, ['f2']) is None


class TestNoRegion:
    """Tests for inputs that yield no region."""

    def test_no_elements(self, default_axes):
        """Test zero elements give None."""
        assert find_enclosing_region(Point(0, 0), [], default_axes) is None

    def test_single_element(self, default_axes):
        """Test a single curve gives None."""
        assert find_enclosing_region(Point(0, 5), [func('f1', 'x^2')], default_axes) is None

    def test_point_on_curve(self, parabola_and_identity, default_axes):
        """Test a drop point on a boundary gives None."""
        assert find_enclosing_region(Point(0.5, 0.25), parabola_and_identity, default_axes) is None

    def test_point_on_vertical_line(self, default_axes):
        """Test a drop point on a vertical line gives None."""
        elements = [func('f1', '1'), func('f2', '-1'), line('v', 0, 0, 0, 1)]
        assert find_enclosing_region(Point(0, 0), elements, default_axes) is None

    def test_nothing_above(self, parabola_and_identity, default_axes):
        """Test both curves below the point gives None."""
        assert find_enclosing_region(Point(0.5, 4.9), parabola_and_identity, default_axes) is None

    def test_point_outside_window(self, parabola_and_identity, default_axes):
        """Test a drop point outside the axes gives None."""
        assert find_enclosing_region(Point(0.5, 0.3), parabola_and_identity, Axes(2, 4, 2, 4)) is None

    def test_coincident_boundaries(self, default_axes):
        """Test two identical curves above the point give None."""
        elements = [func('a', 'x'), func('b', 'x'), func('c', 'x^2')]
        assert find_enclosing_region(Point(0.5, 0.4), elements, default_axes) is None

    def test_invalid_expressions(self, default_axes):
        """Test elements that do not compile are not usable."""
        elements = [func('f1', 'invalid$$'), func('f2', 'x')]
        assert find_enclosing_region(Point(0, -1), elements, default_axes) is None

    def test_symbolic_line_unusable(self, default_axes):
        """Test lines with unresolved anchors are skipped."""
        symbolic = RegionElement.line(GraphLine('l', Anchor.point('A'), Anchor.coord(1, 1)))
        assert find_enclosing_region(Point(0, 0), [symbolic, func('f', '1')], default_axes) is None


class TestTieBreak:
    """Tests for equally near candidate boundaries."""

    def test_crossing_at_drop_abscissa(self, default_axes):
        """Test two lines crossing above the point are told apart beside it."""
        elements = [func('left', 'x + 1'), func('right', '-x + 1'), func('floor', '-1')]
        result = find_enclosing_region(Point(0, 0), elements, default_axes)
        assert result is not None
        assert result.domain.min == pytest.approx(-2, abs=1e-3)
        assert result.domain.max == pytest.approx(2, abs=1e-3)
        assert set(result.boundary_ids) == {'left', 'right', 'floor'}


class TestCanvasEdges:
    """Tests for the window edges as implicit boundaries."""

    def test_edges_close_region(self):
        """Test the top edge bounds the region and is not reported."""
        axes = Axes(-2, 2, -1, 3)
        elements = [func('f1', 'x^2'), line('vline', 1, 0, 1, 1)]
        result = find_enclosing_region(Point(0.5, 0.3), elements, axes, include_canvas_edges=True)
        assert result is not None
        assert result.boundary_ids == ['f1', 'vline']
        assert CANVAS_EDGE_ID not in result.boundary_ids
        assert result.domain.max == pytest.approx(1)
        assert result.domain.min == pytest.approx(-math.sqrt(3), abs=1e-3)

    def test_without_edges_no_upper(self):
        """Test the same drop without edges has nothing above."""
        axes = Axes(-2, 2, -1, 3)
        elements = [func('f1', 'x^2'), line('vline', 1, 0, 1, 1)]
        assert find_enclosing_region(Point(0.5, 0.3), elements, axes) is None


class TestBuildBoundaries:
    """Tests for element to boundary conversion."""

    def test_kinds(self, default_axes):
        """Test x-ranges implied by line kinds."""
        boundaries = build_boundaries([
            line('seg', 1, 0, 3, 2, 'segment'),
            line('ray', 1, 0, 0, 1, 'ray'),
            line('inf', 0, 0, 1, 1, 'line'),
        ], default_axes)
        ranges = {b.id: (b.x_lo, b.x_hi) for b in boundaries}
        assert ranges == {'seg': (1, 3), 'ray': (-5, 1), 'inf': (-5, 5)}

    def test_vertical_ray_span(self, default_axes):
        """Test a downward vertical ray spans below its start."""
        (b,) = build_boundaries([line('v', 1, 2, 1, 0, 'ray')], default_axes)
        assert b.is_vertical
        assert b.y_lo == -math.inf
        assert b.y_hi == 2

    def test_function_domain_clipped(self, default_axes):
        """Test function domains are clipped to the window."""
        (b,) = build_boundaries([func('f', 'x', domain=Domain(-10, 2))], default_axes)
        assert (b.x_lo, b.x_hi) == (-5, 2)
        assert math.isnan(b.y_at(3))


class TestDebug:
    """Tests for diagnostic output."""

    def test_debug_prints_stop_reasons(self, parabola_and_identity, default_axes, capsys):
        """Test debug mode reports both sweeps."""
        find_enclosing_region(Point(0.5, 0.3), parabola_and_identity, default_axes, debug=True)
        out = capsys.readouterr().out
        assert "Sweep right" in out
        assert "Sweep left" in out
        assert "crossing" in out


class TestBuildSmartArea:
    """Tests for converting a region into an area descriptor."""

    def test_area_descriptor(self, parabola_and_identity, default_axes, labels):
        """Test the area carries polygon, ids, domain and the next label."""
        result = find_enclosing_region(Point(0.5, 0.3), parabola_and_identity, default_axes)
        area = build_smart_area(result, 'area-1', labels, ignored_boundary_ids=['f9'])
        data = area.to_dict()

        assert data["mode"] == 'bounded-region'
        assert data["label"] == 'A'
        assert data["boundaryIds"] == result.boundary_ids
        assert data["ignoredBoundaryIds"] == ['f9']
        assert len(data["points"]) == len(result.polygon)
        assert labels.peek() == 'B'

    def test_label_position_is_centroid(self, parabola_and_identity, default_axes):
        """Test the default label position is inside the region's bounds."""
        result = find_enclosing_region(Point(0.5, 0.3), parabola_and_identity, default_axes)
        area = build_smart_area(result, 'area-1')
        assert 0 < area.label_pos.x < 1
        assert area.label == ""
