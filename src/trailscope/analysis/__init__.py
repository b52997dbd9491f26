"""
Analysis Module
===============

Movement statistics computed on demand from trail snapshots.

This module provides:
    - MovementAnalyzer: Aggregates per-trail kinematics
    - compute_* / count_*: Array-level building blocks

DESIGN RULES:
    - Read-only over the TrailStore
    - Never run every frame
"""

from trailscope.analysis.movement import (
    CLUSTERING_RECENT_SAMPLES,
    DIRECTION_CHANGE_THRESHOLD,
    MovementAnalyzer,
    compute_clustering_index,
    compute_path_distance,
    count_direction_changes,
)


__all__ = [
    "CLUSTERING_RECENT_SAMPLES",
    "DIRECTION_CHANGE_THRESHOLD",
    "MovementAnalyzer",
    "compute_clustering_index",
    "compute_path_distance",
    "count_direction_changes",
]
