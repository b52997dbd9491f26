"""
Visualization Dashboard
=======================

Wires the store, grid, analyzer and render loop into one viewer.

Pipeline per simulation tick:
    update_visualization(updates)
        -> validate each PositionUpdate (bad tuples isolated, counted)
        -> TrailStore.record_position for each valid update
        -> DensityGrid.rebin(batch positions)

    RenderLoop (its own cadence)
        -> expire, rebin from the latest batch, paint, throttled analysis

Ownership:
    The dashboard creates and owns every component except the drawing
    surface and the scheduler. close() stops the loop and disposes every
    subscription the components hold.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError as PydanticValidationError

from trailscope.analysis.movement import MovementAnalyzer
from trailscope.config import ConfigSurface, Settings
from trailscope.density.grid import DensityGrid
from trailscope.errors import ValidationError
from trailscope.models.analysis import MovementStatistics, TrailStats
from trailscope.models.input import PositionUpdate
from trailscope.models.report import EntityFailure
from trailscope.rendering.loop import FrameScheduler, RenderLoop
from trailscope.rendering.surface import DrawingSurface
from trailscope.trails.store import TrailStore


logger = logging.getLogger(__name__)


# Rough per-item costs for the memory estimate (MB)
CHART_MEMORY_MB = 0.1
POINT_MEMORY_MB = 0.001
HEATMAP_MEMORY_MB = 0.05


@dataclass(frozen=True, slots=True)
class IngestResult:
    """Outcome of one update_visualization() batch."""

    accepted: int
    rejected: int
    errors: Tuple[EntityFailure, ...] = field(default_factory=tuple)


class VisualizationDashboard:
    """
    Trail, heatmap and analysis viewer over one drawing surface.

    Attributes:
        config: Live ConfigSurface shared by all components
        store: TrailStore
        grid: DensityGrid
        analyzer: MovementAnalyzer
        render_loop: RenderLoop

    Example:
        dashboard = VisualizationDashboard(CanvasSurface(800, 600),
                                           scheduler=AsyncioFrameScheduler())
        dashboard.start()
        dashboard.update_visualization(simulation.positions())
        stats = dashboard.get_movement_analysis()
    """

    def __init__(
        self,
        surface: DrawingSurface,
        scheduler: FrameScheduler,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        """
        Initialize dashboard.

        Args:
            surface: Caller-owned drawing surface
            scheduler: Frame scheduler for the render loop
            settings: Loaded settings (defaults when None)
            clock: Millisecond clock shared by store and loop

        Raises:
            SurfaceAcquisitionError: If the surface yields no context
        """
        self.settings = settings or Settings()
        self.surface = surface
        self.config = ConfigSurface(self.settings.display)

        self.store = TrailStore(self.config, clock=clock)
        self.grid = DensityGrid(surface.width, surface.height, self.config)
        self.analyzer = MovementAnalyzer(self.store, surface.width, surface.height)

        self._latest_positions: List[Tuple[float, float]] = []
        self._rejected_total = 0

        self.render_loop = RenderLoop(
            surface=surface,
            store=self.store,
            grid=self.grid,
            config=self.config,
            scheduler=scheduler,
            loop_config=self.settings.loop,
            analyzer=self.analyzer,
            position_source=lambda: list(self._latest_positions),
            clock=clock,
        )

        logger.info(f"VisualizationDashboard initialized: {surface.width}x{surface.height}")

    # Ingestion ----------------------------------------------------------

    def update_visualization(
        self,
        updates: Iterable[Union[PositionUpdate, Mapping]],
    ) -> IngestResult:
        """
        Feed one tick of positions.

        Each update is validated on its own; a malformed update is logged
        and counted without affecting the rest of the batch.

        Args:
            updates: PositionUpdate instances or {id, x, y, kind} mappings

        Returns:
            IngestResult with accepted/rejected counts
        """
        accepted = 0
        errors: List[EntityFailure] = []
        positions: List[Tuple[float, float]] = []

        for index, item in enumerate(updates):
            entity_id = self._entity_label(item, index)
            try:
                update = (
                    item if isinstance(item, PositionUpdate)
                    else PositionUpdate.model_validate(item)
                )
                self.store.record_position(update.id, update.x, update.y, update.kind)
            except (PydanticValidationError, ValidationError) as e:
                errors.append(EntityFailure.from_exception(entity_id, "ingest", e))
                continue

            positions.append((update.x, update.y))
            accepted += 1

        self._latest_positions = positions
        self.grid.rebin(positions)

        if errors:
            self._rejected_total += len(errors)
            logger.warning(
                f"Rejected {len(errors)} of {accepted + len(errors)} position updates "
                f"(total rejected: {self._rejected_total})"
            )

        return IngestResult(accepted=accepted, rejected=len(errors), errors=tuple(errors))

    @staticmethod
    def _entity_label(item: object, index: int) -> str:
        if isinstance(item, PositionUpdate):
            return item.id
        if isinstance(item, Mapping) and isinstance(item.get("id"), str) and item.get("id"):
            return item["id"]
        return f"#{index}"

    # Queries ------------------------------------------------------------

    def get_movement_analysis(self) -> MovementStatistics:
        """Compute movement statistics now."""
        return self.analyzer.analyze()

    def cell_at(self, x: float, y: float) -> int:
        """Density count of the cell containing (x, y)."""
        return self.grid.cell_at(x, y)

    def stats(self) -> TrailStats:
        return self.store.stats()

    @property
    def rejected_total(self) -> int:
        """Updates rejected since construction."""
        return self._rejected_total

    def estimate_memory_mb(self) -> float:
        """Rough memory footprint of the visualization data."""
        return (
            CHART_MEMORY_MB
            + self.store.stats().total_points * POINT_MEMORY_MB
            + HEATMAP_MEMORY_MB
        )

    def export_data(self) -> dict:
        """
        Export trails, stats and the density grid.

        Returns:
            {"trails", "stats", "density", "timestamp"} with an ISO-8601
            UTC timestamp
        """
        min_count, max_count = self.grid.legend
        return {
            "trails": self.store.export_snapshot(),
            "stats": self.store.stats().to_dict(),
            "density": {
                "cell_size": self.grid.cell_size,
                "counts": self.grid.counts.tolist(),
                "min": min_count,
                "max": max_count,
            },
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    # Control ------------------------------------------------------------

    def start(self) -> None:
        self.render_loop.start()

    def stop(self) -> None:
        self.render_loop.stop()

    def clear_data(self) -> None:
        """Drop all trails and density data."""
        self.store.clear_all()
        self.grid.clear()
        self._latest_positions = []

    def resize(self, width: int, height: int) -> None:
        """
        Resize the density grid and analyzer to new surface dimensions.

        Raises:
            ValidationError: If a dimension is not positive
        """
        self.grid.resize(width, height)
        self.analyzer.resize(width, height)

    def close(self) -> None:
        """Stop the loop and dispose every subscription."""
        self.render_loop.close()
        self.grid.close()
        self.store.close()
        logger.info("VisualizationDashboard closed")
