"""
Render Loop
===========

Cooperative per-frame driver for expiry, density refresh, painting and
throttled analysis.

State Machine:
    STOPPED --start()--> RUNNING --stop()--> STOPPED

    start() while RUNNING and stop() while STOPPED are no-ops. Restarting
    after stop() begins a fresh cycle; fading is derived from wall-clock
    time so nothing needs to be resumed.

Frame Order (tick):
    1. Capture the position snapshot for this frame
    2. Expire samples older than the fade window
    3. Rebin the density grid from the snapshot (if due)
    4. Clear the surface, paint heatmap (if visible)
    5. Paint trails (if visible), one isolation boundary per trail
    6. Run movement analysis (if due)

Cancellation:
    Every scheduled callback checks, on entry, that the loop is RUNNING and
    that it belongs to the current run. stop() cancels the pending frame;
    even if the scheduler still delivers it, the entry check turns it into
    a no-op. stop() is safe from inside a frame.

Scheduling:
    A FrameScheduler schedules one callback after a delay and returns a
    cancellable handle. AsyncioFrameScheduler uses loop.call_later.
"""

import asyncio
import logging
from enum import Enum
from typing import Callable, Iterable, List, Optional, Protocol

from trailscope.analysis.movement import MovementAnalyzer
from trailscope.config import ConfigSurface, LoopConfig
from trailscope.density.grid import DensityGrid
from trailscope.errors import SurfaceAcquisitionError
from trailscope.models.analysis import MovementStatistics
from trailscope.models.report import EntityFailure, FrameReport
from trailscope.rendering.painters import HeatmapPainter, TrailPainter
from trailscope.rendering.surface import DrawingContext, DrawingSurface
from trailscope.subscriptions import ListenerSet, Subscription
from trailscope.trails.store import TrailStore, wall_clock_ms


logger = logging.getLogger(__name__)


class LoopState(str, Enum):
    """Render loop states."""

    RUNNING = "RUNNING"
    STOPPED = "STOPPED"


class ScheduledFrame(Protocol):
    def cancel(self) -> None:
        ...


class FrameScheduler(Protocol):
    """Request-next-frame style scheduling primitive."""

    def schedule(self, callback: Callable[[], None], delay_s: float) -> ScheduledFrame:
        ...


class AsyncioFrameScheduler:
    """
    Schedules frames on an asyncio event loop.

    Must be used from code running on that loop (or given the loop
    explicitly).
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def schedule(self, callback: Callable[[], None], delay_s: float) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay_s, callback)


class RenderLoop:
    """
    Two-state frame driver.

    Attributes:
        store: Trail store (expired and painted every frame)
        grid: Density grid (rebinned at density_refresh_interval_ms)
        analyzer: Optional analyzer (run at analysis_interval_ms)
        last_report: FrameReport of the most recent tick
        last_analysis: Most recent MovementStatistics

    Example:
        loop = RenderLoop(surface, store, grid, surface_config,
                          scheduler=AsyncioFrameScheduler())
        loop.start()
        ...
        loop.stop()
    """

    def __init__(
        self,
        surface: DrawingSurface,
        store: TrailStore,
        grid: DensityGrid,
        config: ConfigSurface,
        scheduler: FrameScheduler,
        loop_config: Optional[LoopConfig] = None,
        analyzer: Optional[MovementAnalyzer] = None,
        position_source: Optional[Callable[[], Iterable[object]]] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        """
        Initialize render loop.

        Args:
            surface: Caller-owned drawing surface
            store: Trail store
            grid: Density grid
            config: Shared configuration surface
            scheduler: Frame scheduling primitive
            loop_config: Cadence settings
            analyzer: Movement analyzer for throttled analysis
            position_source: Returns the positions to rebin; defaults to
                the latest sample of every trail
            clock: Millisecond clock

        Raises:
            SurfaceAcquisitionError: If no drawing context can be acquired
        """
        try:
            context = surface.get_context()
        except Exception as e:
            raise SurfaceAcquisitionError(f"Failed to acquire drawing context: {e}") from e
        if context is None:
            raise SurfaceAcquisitionError("Drawing surface returned no context")

        self.surface = surface
        self.store = store
        self.grid = grid
        self.config = config
        self.analyzer = analyzer
        self.loop_config = loop_config or LoopConfig()

        self._context: DrawingContext = context
        self._scheduler = scheduler
        self._position_source = position_source or store.latest_positions
        self._clock = clock or wall_clock_ms

        self._trail_painter = TrailPainter(config)
        self._heatmap_painter = HeatmapPainter()
        self._failure_listeners = ListenerSet("render_loop.failures")

        self._state = LoopState.STOPPED
        self._run_id = 0
        self._pending: Optional[ScheduledFrame] = None
        self._frame_count = 0
        self._last_density_ms: Optional[float] = None
        self._last_analysis_ms: Optional[float] = None

        self.last_report: Optional[FrameReport] = None
        self.last_analysis: Optional[MovementStatistics] = None

        logger.info(
            f"RenderLoop initialized: target_fps={self.loop_config.target_fps}, "
            f"density_every={self.loop_config.density_refresh_interval_ms}ms, "
            f"analysis_every={self.loop_config.analysis_interval_ms}ms"
        )

    # State --------------------------------------------------------------

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is LoopState.RUNNING

    @property
    def frame_count(self) -> int:
        return self._frame_count

    @property
    def frame_interval_s(self) -> float:
        return 1.0 / self.loop_config.target_fps

    def start(self) -> None:
        """Transition STOPPED -> RUNNING and schedule the first frame."""
        if self._state is LoopState.RUNNING:
            return

        self._state = LoopState.RUNNING
        self._run_id += 1
        self._last_density_ms = None
        self._last_analysis_ms = None
        self._schedule(0.0)
        logger.info("RenderLoop started")

    def stop(self) -> None:
        """Transition RUNNING -> STOPPED and cancel the pending frame."""
        if self._state is LoopState.STOPPED:
            return

        self._state = LoopState.STOPPED
        pending, self._pending = self._pending, None
        if pending is not None:
            pending.cancel()
        logger.info(f"RenderLoop stopped after {self._frame_count} frames")

    def on_frame_failures(self, callback: Callable[[FrameReport], None]) -> Subscription:
        """
        Subscribe to frames that had isolated failures.

        Returns:
            Subscription handle owned by the caller
        """
        return self._failure_listeners.add(callback)

    # Frame --------------------------------------------------------------

    def _schedule(self, delay_s: float) -> None:
        run_id = self._run_id
        self._pending = self._scheduler.schedule(
            lambda: self._on_frame(run_id), delay_s
        )

    def _on_frame(self, run_id: int) -> None:
        if self._state is not LoopState.RUNNING or run_id != self._run_id:
            return
        self._pending = None

        try:
            self.tick()
        except Exception:
            logger.exception(f"Frame {self._frame_count} failed")

        if self._state is LoopState.RUNNING and run_id == self._run_id:
            self._schedule(self.frame_interval_s)

    def tick(self, now_ms: Optional[float] = None) -> FrameReport:
        """
        Run one frame.

        Args:
            now_ms: Frame time; defaults to the loop clock

        Returns:
            FrameReport for this frame
        """
        now = float(self._clock()) if now_ms is None else float(now_ms)
        self._frame_count += 1

        snapshot = list(self._position_source())
        failures: List[EntityFailure] = []

        expired = self.store.expire_older_than(now)

        density_refreshed = False
        if self._due(self._last_density_ms, now, self.loop_config.density_refresh_interval_ms):
            self.grid.rebin(snapshot)
            self._last_density_ms = now
            density_refreshed = True

        self._context.clear(self.config.background_color)

        if self.config.heatmap_visible:
            try:
                self._heatmap_painter.paint(self._context, self.grid)
            except Exception as e:
                failures.append(EntityFailure.from_exception("density-grid", "heatmap", e))

        trails_painted = 0
        segments_drawn = 0
        segments_culled = 0
        if self.config.trails_visible:
            for trail in self.store.trails():
                try:
                    drawn, culled = self._trail_painter.paint(self._context, trail, now)
                except Exception as e:
                    failures.append(EntityFailure.from_exception(trail.id, "paint", e))
                    continue
                segments_drawn += drawn
                segments_culled += culled
                if drawn:
                    trails_painted += 1

        analysis_refreshed = False
        if self.analyzer is not None and self._due(
            self._last_analysis_ms, now, self.loop_config.analysis_interval_ms
        ):
            self.last_analysis = self.analyzer.analyze()
            self._last_analysis_ms = now
            analysis_refreshed = True
            failures.extend(self.last_analysis.failures)

        report = FrameReport(
            frame_number=self._frame_count,
            timestamp_ms=now,
            samples_expired=expired,
            trails_painted=trails_painted,
            segments_drawn=segments_drawn,
            segments_culled=segments_culled,
            density_refreshed=density_refreshed,
            analysis_refreshed=analysis_refreshed,
            failures=tuple(failures),
        )
        self.last_report = report

        if failures:
            logger.warning(
                f"Frame {self._frame_count}: {len(failures)} isolated failure(s): "
                + "; ".join(f"{f.entity_id}/{f.stage}: {f.error}" for f in failures)
            )
            self._failure_listeners.notify(report)

        if self._frame_count % self.loop_config.log_every_n_frames == 0:
            stats = self.store.stats()
            logger.info(
                f"Frame {self._frame_count}: trails={stats.active_trails}, "
                f"points={stats.total_points}, segments={segments_drawn}"
            )

        return report

    @staticmethod
    def _due(last_ms: Optional[float], now_ms: float, interval_ms: float) -> bool:
        return last_ms is None or now_ms - last_ms >= interval_ms

    def close(self) -> None:
        """Stop the loop and drop failure listeners."""
        self.stop()
        self._failure_listeners.clear()
