"""
Density Grid
============

Bins an instantaneous set of positions into per-cell occupancy counts.

Grid Shape:
    rows = ceil(height / cell_size)
    cols = ceil(width / cell_size)

Binning (O(N)):
    cell = (floor(y / cell_size), floor(x / cell_size))
    A position counts only when 0 <= x < width and 0 <= y < height.
    Everything else is dropped, never clamped onto the border.

Each rebin builds a fresh array. The grid is a snapshot, not a history.

Coloring:
    color_for_count() interpolates the heatmap palette between the
    observed min and max counts of the latest rebin. A uniform grid
    (including the never-fed, all-zero grid) maps every cell to the first
    palette color.
"""

import logging
import math
from typing import Callable, Iterable, List, Optional, Tuple

import numpy as np

from trailscope.colors import interpolate_palette
from trailscope.config import ConfigSurface
from trailscope.errors import ValidationError


logger = logging.getLogger(__name__)


CellCallback = Callable[[int, int, int], None]


def _point_xy(point: object) -> Tuple[float, float]:
    """Extract (x, y) from a tuple, a mapping, or an object with x/y."""
    if isinstance(point, dict):
        return float(point["x"]), float(point["y"])
    if hasattr(point, "x") and hasattr(point, "y"):
        return float(point.x), float(point.y)
    x, y = point[0], point[1]
    return float(x), float(y)


def validate_dimension(name: str, value: object) -> float:
    """Return a surface dimension as a positive finite float."""
    try:
        value = float(value)
    except (TypeError, ValueError, OverflowError) as e:
        raise ValidationError(f"{name} must be a number, got {value!r}") from e
    if not math.isfinite(value) or value <= 0:
        raise ValidationError(f"{name} must be positive and finite, got {value!r}")
    return value


class DensityGrid:
    """
    Heatmap occupancy grid over the drawing surface.

    Attributes:
        width: Surface width in pixels
        height: Surface height in pixels
        on_cell_selected: Optional callback(col, row, count) for select_cell()

    Example:
        grid = DensityGrid(800, 600, ConfigSurface())
        grid.rebin([(0, 0), (5, 5), (25, 25)])
        grid.cell_at(3, 3)   # -> 2 with cell_size=20
    """

    def __init__(
        self,
        width: float,
        height: float,
        config: ConfigSurface,
        on_cell_selected: Optional[CellCallback] = None,
    ) -> None:
        """
        Initialize density grid.

        Args:
            width: Surface width (> 0)
            height: Surface height (> 0)
            config: Shared configuration (cell_size, heatmap_palette)
            on_cell_selected: Callback for select_cell()

        Raises:
            ValidationError: If width or height is not positive
        """
        self.width = validate_dimension("width", width)
        self.height = validate_dimension("height", height)
        self.config = config
        self.on_cell_selected = on_cell_selected

        self._counts = self._allocate()
        self._min_count = 0
        self._max_count = 0

        self._subscription = config.subscribe("cell_size", self._on_cell_size_changed)

        rows, cols = self.shape
        logger.info(
            f"DensityGrid initialized: {cols}x{rows} cells, "
            f"cell_size={config.cell_size}px"
        )

    def _allocate(self) -> np.ndarray:
        cell_size = self.config.cell_size
        rows = math.ceil(self.height / cell_size)
        cols = math.ceil(self.width / cell_size)
        return np.zeros((rows, cols), dtype=np.int64)

    # Properties ---------------------------------------------------------

    @property
    def cell_size(self) -> int:
        return self.config.cell_size

    @property
    def shape(self) -> Tuple[int, int]:
        """(rows, cols) of the grid."""
        rows, cols = self._counts.shape
        return int(rows), int(cols)

    @property
    def counts(self) -> np.ndarray:
        """Copy of the count array, indexed [row, col]."""
        return self._counts.copy()

    @property
    def min_count(self) -> int:
        return self._min_count

    @property
    def max_count(self) -> int:
        return self._max_count

    @property
    def legend(self) -> Tuple[int, int]:
        """(min, max) labels for a heatmap legend."""
        return self._min_count, self._max_count

    @property
    def total(self) -> int:
        """Sum of all cell counts."""
        return int(self._counts.sum())

    @property
    def has_data(self) -> bool:
        """Whether any cell is non-zero."""
        return self._max_count > 0

    # Operations ---------------------------------------------------------

    def rebin(self, positions: Iterable[object]) -> int:
        """
        Rebuild the grid from a position snapshot.

        Args:
            positions: (x, y) tuples, {"x", "y"} mappings, or objects with
                x/y attributes

        Returns:
            Number of positions that landed in the grid
        """
        counts = self._allocate()
        rows, cols = counts.shape
        cell_size = self.config.cell_size

        coords: List[Tuple[float, float]] = []
        for point in positions:
            try:
                coords.append(_point_xy(point))
            except (TypeError, ValueError, OverflowError, KeyError, IndexError):
                continue  # unreadable position, dropped like out-of-bounds

        binned = 0
        if coords:
            xy = np.asarray(coords, dtype=np.float64)
            x, y = xy[:, 0], xy[:, 1]
            inside = (
                np.isfinite(x) & np.isfinite(y)
                & (x >= 0) & (x < self.width)
                & (y >= 0) & (y < self.height)
            )
            cx = np.floor(x[inside] / cell_size).astype(np.int64)
            cy = np.floor(y[inside] / cell_size).astype(np.int64)
            in_grid = (cx < cols) & (cy < rows)
            np.add.at(counts, (cy[in_grid], cx[in_grid]), 1)
            binned = int(np.count_nonzero(in_grid))

        self._counts = counts
        self._update_min_max()
        return binned

    def set_counts(self, grid: object) -> None:
        """
        Load counts directly.

        Args:
            grid: 2D array-like of non-negative integers matching shape

        Raises:
            ValidationError: On wrong shape, negative or fractional values
        """
        try:
            data = np.asarray(grid, dtype=np.float64)
        except (TypeError, ValueError, OverflowError) as e:
            raise ValidationError(f"counts must be a 2D numeric grid: {e}") from e

        if data.shape != self._counts.shape:
            raise ValidationError(
                f"counts shape {data.shape} does not match grid shape {self._counts.shape}"
            )
        if not np.all(np.isfinite(data)) or np.any(data < 0) or np.any(data != np.floor(data)):
            raise ValidationError("counts must be non-negative integers")

        self._counts = data.astype(np.int64)
        self._update_min_max()

    def clear(self) -> None:
        """Zero every cell."""
        self._counts = self._allocate()
        self._min_count = 0
        self._max_count = 0

    def resize(self, width: float, height: float) -> None:
        """
        Change the surface dimensions.

        The cell array is reallocated; the next rebin fills it.

        Raises:
            ValidationError: If width or height is not positive
        """
        width = validate_dimension("width", width)
        height = validate_dimension("height", height)

        self.width = width
        self.height = height
        self.clear()

        rows, cols = self.shape
        logger.info(f"DensityGrid resized: {width:g}x{height:g} -> {cols}x{rows} cells")

    def cell_at(self, x: float, y: float) -> int:
        """
        Count of the cell containing (x, y).

        Returns 0 for out-of-bounds or non-numeric input. Never raises.
        """
        index = self._cell_index(x, y)
        if index is None:
            return 0
        row, col = index
        return int(self._counts[row, col])

    def cell_count_at(self, col: int, row: int) -> int:
        """Count of a cell by grid index, 0 when out of range."""
        rows, cols = self.shape
        if 0 <= row < rows and 0 <= col < cols:
            return int(self._counts[row, col])
        return 0

    def select_cell(self, x: float, y: float) -> Optional[int]:
        """
        Resolve a surface point to its cell and notify on_cell_selected.

        Returns:
            Count of the selected cell, or None when outside the grid
        """
        index = self._cell_index(x, y)
        if index is None:
            return None
        row, col = index
        count = int(self._counts[row, col])
        if self.on_cell_selected is not None:
            self.on_cell_selected(col, row, count)
        return count

    def color_for_count(self, count: float) -> str:
        """
        Heatmap color for a count.

        Linear interpolation across the heatmap palette between the
        current min_count and max_count.

        Returns:
            Hex color "#rrggbb"
        """
        palette = self.config.heatmap_palette
        if self._max_count == self._min_count:
            return interpolate_palette(palette, 0.0)

        t = (count - self._min_count) / (self._max_count - self._min_count)
        return interpolate_palette(palette, t)

    def close(self) -> None:
        """Release the config subscription."""
        self._subscription.close()

    # Internals ----------------------------------------------------------

    def _cell_index(self, x: object, y: object) -> Optional[Tuple[int, int]]:
        try:
            x = float(x)
            y = float(y)
        except (TypeError, ValueError, OverflowError):
            return None
        if not (math.isfinite(x) and math.isfinite(y)):
            return None
        if not (0 <= x < self.width and 0 <= y < self.height):
            return None

        cell_size = self.config.cell_size
        col = int(x // cell_size)
        row = int(y // cell_size)
        rows, cols = self.shape
        if row >= rows or col >= cols:
            return None
        return row, col

    def _update_min_max(self) -> None:
        if self._counts.size == 0:
            self._min_count = 0
            self._max_count = 0
            return
        self._min_count = int(self._counts.min())
        self._max_count = int(self._counts.max())

    def _on_cell_size_changed(self, cell_size: int) -> None:
        self.clear()
        rows, cols = self.shape
        logger.info(f"DensityGrid cell_size={cell_size}px -> {cols}x{rows} cells")
