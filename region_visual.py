#!/usr/bin/env python3
"""
Visual check for region detection.

Plots a graph payload's functions and lines, the drop point, and the
region detected around it.

Usage:
    python region_visual.py <payload.json> --x X --y Y [options]

Options:
    -o, --output    Output image (default: region.png)
    --visibility    Use the ray-casting tracer instead of the sweep
    --ignore ID     Treat an element as absent (repeatable)
    --preset NAME   Precision preset (drag, default, fine)
    --config FILE   RegionConfig JSON file
    --debug         Print detection diagnostics

Example:
    python region_visual.py graph.json --x 0.5 --y 0.3 -o pocket.png
"""

import sys
import os
import argparse
import json
import math

import matplotlib
import matplotlib.pyplot as plt

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from config import RegionConfig
from geometry import Axes, Point, RegionResult, region_elements_from_payload
from region_finder import find_enclosing_region
from visibility import sample_element, trace_visibility_region


ELEMENT_COLORS = ['#1f77b4', '#2ca02c', '#9467bd', '#8c564b', '#e377c2', '#17becf']


def load_payload(path: str) -> dict:
    """Read a GraphPayload JSON file."""
    with open(path, 'r') as f:
        return json.load(f)


def detect_region(payload: dict, drop_point: Point, use_visibility: bool = False,
                  ignored_boundary_ids=None, config=None, debug: bool = False):
    """Run the chosen detector on a payload."""
    axes = Axes.from_dict(payload.get("axes") or {})
    elements = region_elements_from_payload(payload)
    if use_visibility:
        return trace_visibility_region(drop_point, elements, axes, ignored_boundary_ids, config, debug)
    return find_enclosing_region(drop_point, elements, axes, ignored_boundary_ids, config, debug=debug)


def plot_region(payload: dict, drop_point: Point, result: RegionResult | None,
                output: str, title: str = 'Region detection') -> None:
    """Plot the payload elements, drop point and detected region to a file."""
    axes = Axes.from_dict(payload.get("axes") or {})
    elements = region_elements_from_payload(payload)

    fig, ax = plt.subplots(figsize=(8, 8))
    ax.set_title(title)

    if result is not None and len(result.polygon) >= 3:
        poly = plt.Polygon([p.to_tuple() for p in result.polygon],
                           facecolor='orange', alpha=0.4, edgecolor='darkorange', linewidth=1.5)
        ax.add_patch(poly)

    for i, element in enumerate(elements):
        polyline = sample_element(element, axes)
        if len(polyline.points) < 2:
            continue
        xs = [p.x for p in polyline.points]
        ys = [p.y for p in polyline.points]
        ax.plot(xs, ys, color=ELEMENT_COLORS[i % len(ELEMENT_COLORS)], linewidth=1.5, label=element.id)

    ax.axhline(0, color='gray', linewidth=0.5)
    ax.axvline(0, color='gray', linewidth=0.5)
    ax.plot(drop_point.x, drop_point.y, 'o', color='red', markersize=8, label='drop point')

    ax.set_xlim(axes.x_min, axes.x_max)
    ax.set_ylim(axes.y_min, axes.y_max)
    ax.set_aspect('equal')
    ax.grid(True, alpha=0.3)
    if elements:
        ax.legend(loc='upper right')

    fig.savefig(output, dpi=100, bbox_inches='tight')
    plt.close(fig)


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Detect and plot the region around a point of a graph payload',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s graph.json --x 0.5 --y 0.3
  %(prog)s graph.json --x 0.5 --y 0.3 --visibility -o visibility.png
  %(prog)s graph.json --x 0.5 --y 0.4 --ignore f2 --preset fine
        """
    )
    parser.add_argument('payload', help='GraphPayload JSON file')
    parser.add_argument('--x', type=float, required=True, help='Drop point x')
    parser.add_argument('--y', type=float, required=True, help='Drop point y')
    parser.add_argument('-o', '--output', default='region.png',
                        help='Output image (default: region.png)')
    parser.add_argument('--visibility', action='store_true',
                        help='Use the ray-casting tracer instead of the sweep')
    parser.add_argument('--ignore', action='append', default=[],
                        help='Element id to ignore (repeatable)')
    parser.add_argument('--preset', default=None,
                        help='Precision preset: drag, default or fine')
    parser.add_argument('--config', default=None,
                        help='RegionConfig JSON file')
    parser.add_argument('--debug', action='store_true',
                        help='Print detection diagnostics')

    args = parser.parse_args(argv)

    if not math.isfinite(args.x) or not math.isfinite(args.y):
        print("ERROR: Drop point must be finite")
        return 1

    if not os.path.exists(args.payload):
        print(f"ERROR: Payload file not found: {args.payload}")
        return 1

    try:
        if args.preset:
            config = RegionConfig.preset(args.preset)
        elif args.config:
            config = RegionConfig.load(args.config)
        else:
            config = RegionConfig()
    except (ValueError, OSError) as e:
        print(f"ERROR: {e}")
        return 1

    errors = config.validate()
    if errors:
        for error in errors:
            print(f"ERROR: {error}")
        return 1

    print(f"Loading payload: {args.payload}")
    try:
        payload = load_payload(args.payload)
    except (OSError, json.JSONDecodeError) as e:
        print(f"ERROR: {e}")
        return 1

    drop_point = Point(args.x, args.y)
    result = detect_region(payload, drop_point, args.visibility, args.ignore, config, args.debug)

    if result is None:
        print("No enclosed region found")
    else:
        print(f"Region: {len(result.polygon)} vertices, "
              f"domain [{result.domain.min:.4f}, {result.domain.max:.4f}], "
              f"boundaries {', '.join(result.boundary_ids) or '(none)'}")

    method = 'visibility' if args.visibility else 'sweep'
    plot_region(payload, drop_point, result, args.output,
                title=f'Region at ({args.x:g}, {args.y:g}) - {method}')
    print(f"Saved: {args.output}")
    return 0


if __name__ == '__main__':
    matplotlib.use('Agg')
    sys.exit(main())
