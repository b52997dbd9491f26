"""
Trails Module
=============

Per-entity position history with bounded length and age-based expiry.

Example:
    from trailscope.config import ConfigSurface
    from trailscope.trails import TrailStore

    store = TrailStore(ConfigSurface())
    store.record_position("organism-1", 12.0, 40.0, "herbivore")
"""

from trailscope.trails.store import TrailStore, wall_clock_ms


__all__ = [
    "TrailStore",
    "wall_clock_ms",
]
