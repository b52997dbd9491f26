"""
Trailscope
==========

Real-time trail, density and movement analytics for simulated organisms.

This package renders and analyzes the movement of many independently
moving point entities on a 2D surface. It consumes a stream of
{id, x, y, kind} position updates and a caller-owned drawing surface.

Components:
    - trails: Bounded, time-ordered per-entity position history
    - density: Heatmap occupancy grid rebuilt from position snapshots
    - analysis: On-demand speed, direction change and clustering metrics
    - rendering: Drawing surface, painters and the RUNNING/STOPPED loop
    - dashboard: Glue that wires everything to one surface

Example:
    from trailscope.config import load_config
    from trailscope.dashboard import VisualizationDashboard
    from trailscope.rendering import AsyncioFrameScheduler, CanvasSurface

    dashboard = VisualizationDashboard(
        CanvasSurface(800, 600),
        scheduler=AsyncioFrameScheduler(),
        settings=load_config(),
    )
"""

__version__ = "0.1.0"

from trailscope.errors import SurfaceAcquisitionError, TrailscopeError, ValidationError

__all__ = [
    "__version__",
    "SurfaceAcquisitionError",
    "TrailscopeError",
    "ValidationError",
]
