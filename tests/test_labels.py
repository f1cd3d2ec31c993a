"""Unit tests for point label sequences."""

import pytest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from labels import PointLabelSequence


class TestPointLabelSequence:
    """Tests for PointLabelSequence."""

    def test_alphabet(self, labels):
        """Test the first 26 labels are A to Z."""
        generated = [labels.next_label() for _ in range(26)]
        assert generated[0] == 'A'
        assert generated[-1] == 'Z'
        assert len(set(generated)) == 26

    @pytest.mark.parametrize("index,expected", [
        (0, 'A'),
        (25, 'Z'),
        (26, 'A_{1}'),
        (27, 'B_{1}'),
        (52, 'A_{2}'),
    ])
    def test_label_for(self, index, expected):
        """Test subscripts after the alphabet wraps."""
        assert PointLabelSequence.label_for(index) == expected

    def test_peek_does_not_consume(self, labels):
        """Test peek returns the upcoming label without advancing."""
        assert labels.peek() == 'A'
        assert labels.peek() == 'A'
        assert labels.next_label() == 'A'
        assert labels.peek() == 'B'

    def test_reset(self, labels):
        """Test reset starts over at A."""
        labels.next_label()
        labels.next_label()
        labels.reset()
        assert labels.next_label() == 'A'

    def test_sessions_independent(self):
        """Test two sequences keep separate counters."""
        first = PointLabelSequence()
        second = PointLabelSequence(start=26)
        first.next_label()
        assert first.next_label() == 'B'
        assert second.next_label() == 'A_{1}'
