"""
Movement Analyzer Tests
=======================
"""

import math

import numpy as np
import pytest

from trailscope.analysis.movement import (
    MovementAnalyzer,
    compute_clustering_index,
    compute_path_distance,
    count_direction_changes,
)
from trailscope.errors import ValidationError
from trailscope.models.trail import TrailSample


def _heading_path(*angles_deg, step=10.0):
    """Points that walk `step` units along each heading in turn."""
    points = [(0.0, 0.0)]
    for angle in angles_deg:
        x, y = points[-1]
        rad = math.radians(angle)
        points.append((x + step * math.cos(rad), y + step * math.sin(rad)))
    return np.array(points)


@pytest.fixture
def analyzer(store):
    return MovementAnalyzer(store, 300, 400)


class TestPathMetrics:
    """Tests for the distance and turn helpers."""

    def test_path_distance(self):
        """Verify path length sums consecutive segment lengths."""
        assert compute_path_distance(np.array([(0, 0), (3, 4), (3, 10)])) == pytest.approx(11.0)
        assert compute_path_distance(np.array([(1, 1)])) == 0.0

    def test_counts_sharp_turns_only(self):
        """Verify only turns above 45 degrees are counted."""
        assert count_direction_changes(_heading_path(0, 90)) == 1
        assert count_direction_changes(_heading_path(0, 30)) == 0
        assert count_direction_changes(_heading_path(0, 90, 180, 170)) == 2

    def test_folds_heading_deltas_across_the_boundary(self):
        """Verify small turns across ±π are not counted as sharp."""
        path = _heading_path(170, -170)

        assert count_direction_changes(path) == 0
        assert count_direction_changes(path, normalize_wraparound=False) == 1

    def test_skips_zero_length_segments(self):
        """Verify stationary steps do not create turns."""
        path = np.array([(0, 0), (10, 0), (10, 0), (20, 0)])

        assert count_direction_changes(path) == 0


class TestClusteringIndex:
    """Tests for the clustering index."""

    def test_identical_points_are_fully_clustered(self):
        """Verify coincident points give an index of 1."""
        points = np.array([(50, 50)] * 4)

        assert compute_clustering_index(points, 500.0) == 1.0

    def test_fewer_than_two_points_is_zero(self):
        """Verify the index is 0 with fewer than two points."""
        assert compute_clustering_index(np.empty((0, 2)), 500.0) == 0.0
        assert compute_clustering_index(np.array([(1, 1)]), 500.0) == 0.0

    def test_bounded_for_spread_points(self):
        """Verify widely spread points stay within [0, 1]."""
        rng = np.random.default_rng(11)
        points = rng.uniform(-1000, 1000, size=(200, 2))

        index = compute_clustering_index(points, 10.0)

        assert 0.0 <= index <= 1.0


class TestMovementAnalyzer:
    """Tests for aggregate statistics over the store."""

    def test_single_straight_trail(self, store, clock, analyzer):
        """Verify distance, speed and turns for one straight segment."""
        store.record_position("a", 0, 0, "x")
        clock.advance(2000)
        store.record_position("a", 3, 4, "x")

        stats = analyzer.analyze()

        assert stats.total_distance == pytest.approx(5.0)
        assert stats.average_speed == pytest.approx(2.5)
        assert stats.direction_change_count == 0
        assert stats.trail_count == 1

    def test_empty_store(self, analyzer):
        """Verify an empty store yields zeroed statistics."""
        stats = analyzer.analyze()

        assert stats.average_speed == 0.0
        assert stats.total_distance == 0.0
        assert stats.clustering_index == 0.0
        assert stats.trail_count == 0

    def test_single_sample_trails_are_not_averaged(self, store, clock, analyzer):
        """Verify trails with one sample are left out of the average."""
        store.record_position("a", 0, 0, "x")
        clock.advance(1000)
        store.record_position("a", 10, 0, "x")
        store.record_position("lonely", 100, 100, "x")

        stats = analyzer.analyze()

        assert stats.trail_count == 1
        assert stats.average_speed == pytest.approx(10.0)

    def test_zero_elapsed_trail_has_zero_speed(self, store, clock, analyzer):
        """Verify a trail with no elapsed time contributes zero speed."""
        store.record_position("a", 0, 0, "x")
        store.record_position("b", 0, 0, "x")
        store.record_position("b", 8, 0, "x")
        clock.advance(2000)
        store.record_position("a", 3, 4, "x")

        stats = analyzer.analyze()

        assert stats.trail_count == 2
        assert stats.average_speed == pytest.approx(1.25)
        assert stats.total_distance == pytest.approx(13.0)

    def test_clustering_uses_recent_samples(self, store, clock, analyzer):
        """Verify clustering only considers the most recent samples."""
        store.record_position("a", 0, 0, "x")
        for _ in range(5):
            clock.advance(100)
            store.record_position("a", 150, 200, "x")
        store.record_position("b", 150, 200, "x")

        stats = analyzer.analyze()

        assert stats.clustering_index == pytest.approx(1.0)

    def test_does_not_mutate_store(self, store, clock, analyzer):
        """Verify analysis leaves the store unchanged."""
        for i in range(6):
            store.record_position("a", i * 3, i * i, "x")
            clock.advance(50)
        before = store.export_snapshot()

        analyzer.analyze()

        assert store.export_snapshot() == before

    def test_isolates_failing_trail(self, store, clock, analyzer):
        """Verify a broken trail is reported and the rest analyzed."""
        store.record_position("good", 0, 0, "x")
        store.record_position("bad", 0, 0, "x")
        clock.advance(1000)
        store.record_position("good", 10, 0, "x")
        store.get("bad").samples.append(TrailSample(float("nan"), 0.0, clock.now_ms))

        stats = analyzer.analyze()

        assert stats.trail_count == 1
        assert stats.average_speed == pytest.approx(10.0)
        assert [f.entity_id for f in stats.failures] == ["bad"]
        assert stats.failures[0].stage == "analysis"

    @pytest.mark.parametrize("width,height", [(0, 100), (300, -1), ("a", 1), (None, 1), (10**400, 1)])
    def test_resize_rejects_invalid_size(self, analyzer, width, height):
        """Verify unusable sizes raise ValidationError and keep the old size."""
        with pytest.raises(ValidationError):
            analyzer.resize(width, height)

        assert analyzer.diagonal == pytest.approx(500.0)
