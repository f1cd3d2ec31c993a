"""Pytest fixtures for graph region detection tests."""

import pytest
import sys
from pathlib import Path

# Add project root to path for imports
PROJECT_DIR = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_DIR))

from geometry import Axes, GraphFunction, RegionElement
from labels import PointLabelSequence


@pytest.fixture
def default_axes() -> Axes:
    """Return the editor's default -5..5 window."""
    return Axes(-5, 5, -5, 5)


@pytest.fixture
def parabola_and_identity() -> list[RegionElement]:
    """Return y = x^2 and y = x, crossing at x = 0 and x = 1."""
    return [
        RegionElement.function(GraphFunction('f1', 'x^2')),
        RegionElement.function(GraphFunction('f2', 'x')),
    ]


@pytest.fixture
def labels() -> PointLabelSequence:
    """Return a fresh label sequence."""
    return PointLabelSequence()


@pytest.fixture
def sample_payload() -> dict:
    """Return a GraphPayload-shaped dict with two functions and a vertical segment."""
    return {
        "axes": {"xMin": -5, "xMax": 5, "yMin": -5, "yMax": 5},
        "points": [{"id": "P", "x": 2, "y": 5}],
        "functions": [
            {"id": "f1", "expression": "x^2"},
            {"id": "f2", "expression": "0"},
        ],
        "lines": [
            {
                "id": "v1",
                "kind": "segment",
                "start": {"type": "coord", "x": 2, "y": -1},
                "end": {"type": "point", "pointId": "P"},
            },
        ],
    }
