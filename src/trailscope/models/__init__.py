"""
Data Models
===========

Models for Trailscope.

Models:
    Input:
        - PositionUpdate: Schema for per-tick positions from the simulation

    Trails:
        - TrailSample, Trail: Store-side position history
        - TrailSnapshot: Validated wire form for snapshot import

    Derived:
        - TrailMetrics, MovementStatistics, TrailStats

    Frame results:
        - EntityFailure, FrameReport
"""

from trailscope.models.input import PositionUpdate
from trailscope.models.trail import Trail, TrailSample, TrailSnapshot
from trailscope.models.analysis import MovementStatistics, TrailMetrics, TrailStats
from trailscope.models.report import EntityFailure, FrameReport

__all__ = [
    # Input
    "PositionUpdate",
    # Trails
    "TrailSample",
    "Trail",
    "TrailSnapshot",
    # Derived
    "TrailMetrics",
    "MovementStatistics",
    "TrailStats",
    # Frame results
    "EntityFailure",
    "FrameReport",
]
