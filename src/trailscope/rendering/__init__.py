"""
Rendering Module
================

Drawing surface, painters and the frame loop.

This module provides:
    - CanvasSurface: OpenCV/numpy drawing surface
    - TrailPainter / HeatmapPainter: Stateless painting
    - RenderLoop: RUNNING/STOPPED frame driver
    - AsyncioFrameScheduler: call_later based frame scheduling
"""

from trailscope.rendering.surface import (
    CanvasContext,
    CanvasSurface,
    DrawingContext,
    DrawingSurface,
)
from trailscope.rendering.painters import (
    HeatmapPainter,
    SegmentPlan,
    TrailPainter,
    plan_trail_segments,
    segment_opacity,
)
from trailscope.rendering.loop import (
    AsyncioFrameScheduler,
    FrameScheduler,
    LoopState,
    RenderLoop,
)


__all__ = [
    "CanvasContext",
    "CanvasSurface",
    "DrawingContext",
    "DrawingSurface",
    "HeatmapPainter",
    "SegmentPlan",
    "TrailPainter",
    "plan_trail_segments",
    "segment_opacity",
    "AsyncioFrameScheduler",
    "FrameScheduler",
    "LoopState",
    "RenderLoop",
]
