"""
Painters
========

Stateless painting of trails and the density heatmap.

Trail Fading:
    For each consecutive sample pair (prev, curr) at index i of n samples:

        age_opacity      = max(0, 1 - age(curr) / fade_window_ms)
        position_opacity = i / n
        opacity          = min(age_opacity, position_opacity) * 0.8

    Segments with opacity <= 0.1 are culled. Fading is a pure function of
    the current time and sample index, so nothing is cached between
    frames.

Heatmap:
    Every cell is filled with DensityGrid.color_for_count(count); occupied
    cells get a faint white outline. A grid with no data paints as a flat
    first-palette color.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Tuple

from trailscope.config import ConfigSurface
from trailscope.density.grid import DensityGrid
from trailscope.models.trail import Trail, TrailSample
from trailscope.rendering.surface import DrawingContext


logger = logging.getLogger(__name__)


SEGMENT_OPACITY_SCALE = 0.8
SEGMENT_CULL_OPACITY = 0.1
CELL_OUTLINE_COLOR = "#ffffff"
CELL_OUTLINE_ALPHA = 0.2


@dataclass(frozen=True, slots=True)
class SegmentPlan:
    """A trail segment that survived culling."""

    start: TrailSample
    end: TrailSample
    opacity: float


def segment_opacity(
    index: int,
    total: int,
    age_ms: float,
    fade_window_ms: float,
) -> float:
    """
    Effective opacity of the segment ending at sample `index`.

    Args:
        index: Index of the segment's end sample (1..total-1)
        total: Number of samples in the trail
        age_ms: Age of the end sample
        fade_window_ms: Fade window

    Returns:
        Opacity in [0, 0.8]
    """
    age_opacity = max(0.0, 1.0 - age_ms / fade_window_ms)
    position_opacity = index / total
    return min(age_opacity, position_opacity) * SEGMENT_OPACITY_SCALE


def plan_trail_segments(
    trail: Trail,
    now_ms: float,
    fade_window_ms: float,
) -> Tuple[List[SegmentPlan], int]:
    """
    Decide which segments of a trail to stroke and how opaque.

    Returns:
        (segments to draw, number of culled segments)
    """
    samples = list(trail.samples)
    total = len(samples)
    if total < 2:
        return [], 0

    plans: List[SegmentPlan] = []
    culled = 0
    for i in range(1, total):
        curr = samples[i]
        opacity = segment_opacity(i, total, now_ms - curr.captured_at_ms, fade_window_ms)
        if opacity <= SEGMENT_CULL_OPACITY:
            culled += 1
            continue
        plans.append(SegmentPlan(start=samples[i - 1], end=curr, opacity=opacity))

    return plans, culled


class TrailPainter:
    """Strokes faded trail segments onto a drawing context."""

    def __init__(self, config: ConfigSurface) -> None:
        self.config = config

    def paint(self, ctx: DrawingContext, trail: Trail, now_ms: float) -> Tuple[int, int]:
        """
        Paint one trail.

        Returns:
            (segments drawn, segments culled)
        """
        plans, culled = plan_trail_segments(trail, now_ms, self.config.fade_window_ms)
        width = self.config.trail_stroke_width

        for plan in plans:
            ctx.stroke_line(
                (plan.start.x, plan.start.y),
                (plan.end.x, plan.end.y),
                trail.color,
                width,
                alpha=plan.opacity,
            )

        return len(plans), culled


class HeatmapPainter:
    """Fills density grid cells with their heatmap colors."""

    def paint(self, ctx: DrawingContext, grid: DensityGrid) -> int:
        """
        Paint the whole grid.

        Returns:
            Number of occupied cells
        """
        counts = grid.counts
        cell_size = grid.cell_size
        colors: Dict[int, str] = {}
        occupied = 0

        rows, cols = counts.shape
        for row in range(rows):
            for col in range(cols):
                count = int(counts[row, col])
                color = colors.get(count)
                if color is None:
                    color = colors[count] = grid.color_for_count(count)

                x = col * cell_size
                y = row * cell_size
                ctx.fill_rect(x, y, cell_size, cell_size, color)

                if count > 0:
                    occupied += 1
                    ctx.stroke_rect(
                        x, y, cell_size, cell_size,
                        CELL_OUTLINE_COLOR,
                        alpha=CELL_OUTLINE_ALPHA,
                    )

        return occupied
