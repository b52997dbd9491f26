"""
Movement Analysis
=================

Kinematic and spatial summary statistics derived from trail contents.

This module is invoked on demand or at a throttled cadence, never every
frame, since it is O(total samples).

Key Metrics:
    - Distance: Sum of consecutive Euclidean segment lengths
    - Speed: Distance / elapsed seconds between first and last sample
    - Direction Changes: Heading deltas above 45 degrees
    - Clustering Index: 1 - (mean distance to centroid / surface diagonal)

Heading Deltas:
    Headings come from atan2(dy, dx) and live in [-π, π]. A raw absolute
    difference between two headings near ±π reads close to 2π although
    the actual turn is small, and it never counts a reversal that
    crosses the boundary correctly. Deltas are therefore folded into
    [0, π] with min(Δ, 2π - Δ). `normalize_wraparound=False` keeps the
    raw difference for comparison with older recordings.

    Zero-length segments (entity did not move) carry no heading and are
    skipped when pairing consecutive headings.

Design Note:
    Analysis reads the store and never mutates it. A trail that fails to
    analyze is reported as an EntityFailure and left out of the aggregate.
"""

import logging
import math
from typing import List, Optional, Sequence, Tuple

import numpy as np

from trailscope.density.grid import validate_dimension
from trailscope.models.analysis import MovementStatistics, TrailMetrics
from trailscope.models.report import EntityFailure
from trailscope.models.trail import Trail, TrailSample
from trailscope.trails.store import TrailStore


logger = logging.getLogger(__name__)


DIRECTION_CHANGE_THRESHOLD = math.pi / 4
CLUSTERING_RECENT_SAMPLES = 5


def compute_path_distance(points: np.ndarray) -> float:
    """
    Sum of Euclidean distances between consecutive points.

    Args:
        points: (N, 2) array of x, y

    Returns:
        Path length (0 for fewer than 2 points)
    """
    if len(points) < 2:
        return 0.0
    steps = np.diff(points, axis=0)
    return float(np.sum(np.hypot(steps[:, 0], steps[:, 1])))


def count_direction_changes(
    points: np.ndarray,
    threshold: float = DIRECTION_CHANGE_THRESHOLD,
    normalize_wraparound: bool = True,
) -> int:
    """
    Count heading changes larger than a threshold.

    Args:
        points: (N, 2) array of x, y
        threshold: Minimum absolute heading delta in radians
        normalize_wraparound: Fold deltas into [0, π]

    Returns:
        Number of interior turns exceeding the threshold
    """
    if len(points) < 3:
        return 0

    steps = np.diff(points, axis=0)
    moving = np.hypot(steps[:, 0], steps[:, 1]) > 0
    steps = steps[moving]
    if len(steps) < 2:
        return 0

    headings = np.arctan2(steps[:, 1], steps[:, 0])
    deltas = np.abs(np.diff(headings))
    if normalize_wraparound:
        deltas = np.minimum(deltas, 2 * np.pi - deltas)

    return int(np.count_nonzero(deltas > threshold))


def compute_clustering_index(points: np.ndarray, diagonal: float) -> float:
    """
    Spatial clustering of a point set relative to the surface size.

    Formula:
        centroid = mean(points)
        spread = mean(|p - centroid|)
        index = 1 - spread / diagonal, clamped to [0, 1]

    Args:
        points: (N, 2) array of x, y
        diagonal: Surface diagonal length

    Returns:
        Index in [0, 1]; 0 for fewer than 2 points or a degenerate surface
    """
    if len(points) < 2 or not diagonal > 0:
        return 0.0

    centroid = points.mean(axis=0)
    offsets = points - centroid
    spread = float(np.mean(np.hypot(offsets[:, 0], offsets[:, 1])))

    return float(min(1.0, max(0.0, 1.0 - spread / diagonal)))


def _as_array(samples: Sequence[TrailSample]) -> np.ndarray:
    return np.array([(s.x, s.y) for s in samples], dtype=np.float64).reshape(-1, 2)


class MovementAnalyzer:
    """
    Computes MovementStatistics from a TrailStore.

    Attributes:
        store: Trail store to read
        width: Surface width (for the clustering normalization)
        height: Surface height
        normalize_wraparound: Fold heading deltas into [0, π]

    Example:
        analyzer = MovementAnalyzer(store, 800, 600)
        stats = analyzer.analyze()
        print(stats.average_speed, stats.clustering_index)
    """

    def __init__(
        self,
        store: TrailStore,
        width: float,
        height: float,
        normalize_wraparound: bool = True,
    ) -> None:
        self.store = store
        self.normalize_wraparound = normalize_wraparound
        self.resize(width, height)

        logger.info(
            f"MovementAnalyzer initialized: surface={width}x{height}, "
            f"normalize_wraparound={normalize_wraparound}"
        )

    def resize(self, width: float, height: float) -> None:
        """
        Update the surface size used for normalization.

        Raises:
            ValidationError: If a dimension is not a positive number
        """
        width = validate_dimension("width", width)
        height = validate_dimension("height", height)
        self.width = width
        self.height = height

    @property
    def diagonal(self) -> float:
        return math.hypot(self.width, self.height)

    def analyze_trail(self, trail: Trail) -> Optional[TrailMetrics]:
        """
        Kinematics of one trail.

        Returns:
            TrailMetrics, or None when the trail has fewer than 2 samples
        """
        samples = list(trail.samples)
        if len(samples) < 2:
            return None

        points = _as_array(samples)
        if not np.all(np.isfinite(points)):
            raise ValueError(f"trail {trail.id} holds non-finite coordinates")

        distance = compute_path_distance(points)
        elapsed_ms = samples[-1].captured_at_ms - samples[0].captured_at_ms
        speed = distance / (elapsed_ms / 1000.0) if elapsed_ms > 0 else 0.0

        return TrailMetrics(
            trail_id=trail.id,
            distance=distance,
            speed=speed,
            direction_changes=count_direction_changes(
                points, normalize_wraparound=self.normalize_wraparound
            ),
            elapsed_ms=elapsed_ms,
        )

    def analyze(self) -> MovementStatistics:
        """
        Aggregate statistics over every trail.

        Returns:
            MovementStatistics; failed trails are listed in `failures`
        """
        metrics: List[TrailMetrics] = []
        failures: List[EntityFailure] = []
        recent: List[Tuple[float, float]] = []

        for trail in self.store.trails():
            try:
                trail_metrics = self.analyze_trail(trail)
                recent.extend(
                    (s.x, s.y) for s in trail.recent(CLUSTERING_RECENT_SAMPLES)
                )
            except Exception as e:
                failures.append(EntityFailure.from_exception(trail.id, "analysis", e))
                continue
            if trail_metrics is not None:
                metrics.append(trail_metrics)

        if failures:
            logger.warning(
                f"Movement analysis skipped {len(failures)} trail(s): "
                + ", ".join(f.entity_id for f in failures)
            )

        recent_points = np.array(recent, dtype=np.float64).reshape(-1, 2)

        return MovementStatistics(
            average_speed=(
                sum(m.speed for m in metrics) / len(metrics) if metrics else 0.0
            ),
            total_distance=sum(m.distance for m in metrics),
            direction_change_count=sum(m.direction_changes for m in metrics),
            clustering_index=compute_clustering_index(recent_points, self.diagonal),
            trail_count=len(metrics),
            failures=tuple(failures),
        )
