"""
Density Module
==============

Spatial density aggregation into a heatmap grid.

Example:
    from trailscope.density import DensityGrid

    grid = DensityGrid(800, 600, surface_config)
    grid.rebin(positions)
    color = grid.color_for_count(grid.cell_at(120, 40))
"""

from trailscope.density.grid import DensityGrid


__all__ = [
    "DensityGrid",
]
