"""Tests for the region_visual command line tool."""

import pytest
import json
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

import matplotlib
matplotlib.use('Agg')

from geometry import Point
from region_visual import detect_region, main


@pytest.fixture
def payload_file(tmp_path, sample_payload):
    """Write the sample payload to a JSON file."""
    path = tmp_path / "graph.json"
    path.write_text(json.dumps(sample_payload))
    return path


class TestDetectRegion:
    """Tests for detect_region."""

    def test_sweep(self, sample_payload):
        """Test the segment anchored to a named point caps the region."""
        result = detect_region(sample_payload, Point(1, 0.5))
        assert result is not None
        assert result.domain.max == pytest.approx(2)
        assert 'v1' in result.boundary_ids

    def test_visibility(self, sample_payload):
        """Test the ray-casting tracer on the same payload."""
        result = detect_region(sample_payload, Point(1, 0.5), use_visibility=True)
        assert result is not None
        assert 'v1' in result.boundary_ids

    def test_ignored(self, sample_payload):
        """Test ignoring the floor leaves no region below."""
        assert detect_region(sample_payload, Point(1, 0.5), ignored_boundary_ids=['f2']) is None


class TestMain:
    """Tests for the CLI entry point."""

    def test_writes_image(self, payload_file, tmp_path, capsys):
        """Test a region is detected and plotted."""
        output = tmp_path / "region.png"
        code = main([str(payload_file), '--x', '1', '--y', '0.5', '-o', str(output)])
        assert code == 0
        assert output.exists()
        assert "Region:" in capsys.readouterr().out

    def test_visibility_with_preset(self, payload_file, tmp_path):
        """Test the visibility tracer with a preset."""
        output = tmp_path / "visibility.png"
        code = main([str(payload_file), '--x', '1', '--y', '0.5', '--visibility',
                     '--preset', 'drag', '-o', str(output)])
        assert code == 0
        assert output.exists()

    def test_no_region_still_plots(self, payload_file, tmp_path, capsys):
        """Test a drop without a region reports it and still writes the plot."""
        output = tmp_path / "none.png"
        code = main([str(payload_file), '--x', '1', '--y', '0.5', '--ignore', 'f2', '-o', str(output)])
        assert code == 0
        assert output.exists()
        assert "No enclosed region found" in capsys.readouterr().out

    def test_missing_payload(self, tmp_path, capsys):
        """Test a missing payload file is an error."""
        code = main([str(tmp_path / "missing.json"), '--x', '0', '--y', '0'])
        assert code == 1
        assert "ERROR" in capsys.readouterr().out

    def test_unknown_preset(self, payload_file, capsys):
        """Test an unknown preset is an error."""
        code = main([str(payload_file), '--x', '0', '--y', '0', '--preset', 'ultra'])
        assert code == 1
        assert "Unknown precision preset" in capsys.readouterr().out

    def test_config_file(self, payload_file, tmp_path):
        """Test a config file is loaded and validated."""
        config_path = tmp_path / "bad.json"
        config_path.write_text(json.dumps({"num_samples": 1}))
        code = main([str(payload_file), '--x', '1', '--y', '0.5', '--config', str(config_path),
                     '-o', str(tmp_path / "out.png")])
        assert code == 1
