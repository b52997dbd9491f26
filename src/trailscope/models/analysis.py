"""
Analysis Models
===============

Derived statistics. Computed fresh on request, never stored.
"""

from dataclasses import dataclass, field
from typing import Tuple

from trailscope.models.report import EntityFailure


@dataclass(frozen=True, slots=True)
class TrailMetrics:
    """
    Kinematics of a single trail.

    Attributes:
        trail_id: Trail identifier
        distance: Sum of consecutive segment lengths
        speed: distance / elapsed seconds (0 when no time elapsed)
        direction_changes: Heading changes above the threshold
        elapsed_ms: Time between first and last sample
    """

    trail_id: str
    distance: float
    speed: float
    direction_changes: int
    elapsed_ms: float


@dataclass(frozen=True, slots=True)
class MovementStatistics:
    """
    Aggregate movement statistics over all trails.

    Attributes:
        average_speed: Mean speed over trails with >= 2 samples
        total_distance: Summed distance over those trails
        direction_change_count: Summed direction changes
        clustering_index: [0, 1], 1 = tightly grouped recent points
        trail_count: Number of trails that qualified
        failures: Trails that could not be analyzed
    """

    average_speed: float = 0.0
    total_distance: float = 0.0
    direction_change_count: int = 0
    clustering_index: float = 0.0
    trail_count: int = 0
    failures: Tuple[EntityFailure, ...] = field(default_factory=tuple)

    def __repr__(self) -> str:
        return (
            f"MovementStatistics(speed={self.average_speed:.3f}, "
            f"distance={self.total_distance:.1f}, "
            f"changes={self.direction_change_count}, "
            f"clustering={self.clustering_index:.3f})"
        )

    def to_dict(self) -> dict:
        """Export as dictionary for logging/serialization."""
        return {
            "average_speed": round(self.average_speed, 4),
            "total_distance": round(self.total_distance, 4),
            "direction_change_count": self.direction_change_count,
            "clustering_index": round(self.clustering_index, 4),
            "trail_count": self.trail_count,
        }


@dataclass(frozen=True, slots=True)
class TrailStats:
    """Store occupancy counters."""

    active_trails: int
    total_points: int

    def to_dict(self) -> dict:
        return {
            "active_trails": self.active_trails,
            "total_points": self.total_points,
        }
