"""
Render Loop Tests
=================
"""

import asyncio
from collections import deque

import numpy as np
import pytest

from trailscope.colors import hex_to_bgr
from trailscope.config import ConfigSurface, DisplayConfig, LoopConfig
from trailscope.density.grid import DensityGrid
from trailscope.errors import SurfaceAcquisitionError
from trailscope.models.trail import Trail, TrailSample
from trailscope.rendering import (
    AsyncioFrameScheduler,
    CanvasSurface,
    LoopState,
    RenderLoop,
)
from trailscope.rendering.painters import plan_trail_segments, segment_opacity
from trailscope.trails.store import TrailStore

from conftest import FakeSurface, RecordingContext


@pytest.fixture
def surface():
    return FakeSurface(200, 100)


@pytest.fixture
def grid(config_surface):
    density = DensityGrid(200, 100, config_surface)
    yield density
    density.close()


@pytest.fixture
def render_loop(surface, store, grid, config_surface, scheduler, clock):
    loop = RenderLoop(
        surface=surface,
        store=store,
        grid=grid,
        config=config_surface,
        scheduler=scheduler,
        clock=clock,
    )
    yield loop
    loop.close()


class TestConstruction:
    """Tests for drawing context acquisition."""

    def test_raises_when_context_unavailable(self, store, grid, config_surface, scheduler):
        """Verify a surface without a context is rejected."""
        class NoContext(FakeSurface):
            def get_context(self):
                return None

        with pytest.raises(SurfaceAcquisitionError):
            RenderLoop(NoContext(), store, grid, config_surface, scheduler)

    def test_raises_when_context_acquisition_fails(self, store, grid, config_surface, scheduler):
        """Verify a failing get_context is wrapped."""
        class BrokenSurface(FakeSurface):
            def get_context(self):
                raise RuntimeError("no GPU")

        with pytest.raises(SurfaceAcquisitionError):
            RenderLoop(BrokenSurface(), store, grid, config_surface, scheduler)


class TestStateMachine:
    """Tests for start/stop transitions."""

    def test_starts_stopped(self, render_loop, scheduler):
        """Verify a new loop is STOPPED and schedules nothing."""
        assert render_loop.state is LoopState.STOPPED
        assert scheduler.handles == []

    def test_start_schedules_one_frame(self, render_loop, scheduler):
        """Verify start schedules exactly one immediate frame."""
        render_loop.start()
        render_loop.start()

        assert render_loop.state is LoopState.RUNNING
        assert len(scheduler.pending) == 1
        assert scheduler.pending[0].delay_s == 0.0

    def test_frame_runs_tick_and_reschedules(self, render_loop, scheduler):
        """Verify a frame ticks and schedules the next at the target rate."""
        render_loop.start()

        scheduler.run_next()

        assert render_loop.frame_count == 1
        assert len(scheduler.pending) == 1
        assert scheduler.pending[0].delay_s == pytest.approx(1 / 60)

    def test_stop_cancels_pending_frame(self, render_loop, scheduler):
        """Verify stop cancels the pending frame and is idempotent."""
        render_loop.start()
        render_loop.stop()
        render_loop.stop()

        assert render_loop.state is LoopState.STOPPED
        assert scheduler.pending == []

    def test_cancelled_frame_delivered_late_is_a_no_op(self, render_loop, scheduler):
        """Verify a cancelled frame delivered anyway does nothing."""
        render_loop.start()
        render_loop.stop()

        scheduler.run_next(include_cancelled=True)

        assert render_loop.frame_count == 0
        assert scheduler.handles == []

    def test_stale_frame_from_previous_run_is_ignored(self, render_loop, scheduler):
        """Verify frames from an earlier run are ignored after restart."""
        render_loop.start()
        render_loop.stop()
        render_loop.start()

        scheduler.run_next(include_cancelled=True)
        assert render_loop.frame_count == 0

        scheduler.run_next()
        assert render_loop.frame_count == 1

    def test_stop_from_inside_a_frame(self, surface, store, grid, config_surface, scheduler):
        """Verify stop called during a frame prevents rescheduling."""
        holder = {}

        def positions():
            holder["loop"].stop()
            return []

        loop = RenderLoop(surface, store, grid, config_surface, scheduler, position_source=positions)
        holder["loop"] = loop
        loop.start()

        scheduler.run_next()

        assert loop.frame_count == 1
        assert loop.state is LoopState.STOPPED
        assert scheduler.pending == []

    def test_frame_exception_does_not_kill_loop(self, surface, store, grid, config_surface, scheduler):
        """Verify an exception in a frame is logged and the loop continues."""
        def positions():
            raise RuntimeError("simulation hiccup")

        loop = RenderLoop(surface, store, grid, config_surface, scheduler, position_source=positions)
        loop.start()

        scheduler.run_next()

        assert loop.is_running
        assert len(scheduler.pending) == 1


class TestTick:
    """Tests for one frame's work."""

    def test_expires_before_painting(self, render_loop, store, clock, surface):
        """Verify expired samples are dropped before painting."""
        store.record_position("a", 10, 10, "x")
        store.record_position("a", 20, 10, "x")

        report = render_loop.tick(clock.now_ms + 10_001)

        assert report.samples_expired == 2
        assert report.segments_drawn == 0
        assert "a" not in store
        assert surface.context.lines == []

    def test_paints_trail_segments(self, render_loop, store, surface):
        """Verify segments are painted with position-faded opacity."""
        for i in range(3):
            store.record_position("a", i * 10, 10, "x")

        report = render_loop.tick()

        assert report.segments_drawn == 2
        assert report.trails_painted == 1
        assert surface.context.clears == ["#000000"]
        alphas = [line[4] for line in surface.context.lines]
        assert alphas == pytest.approx([0.8 / 3, 1.6 / 3])

    def test_hidden_trails_are_kept_but_not_painted(self, render_loop, store, config_surface, surface):
        """Verify hiding trails stops painting but keeps data."""
        store.record_position("a", 0, 0, "x")
        store.record_position("a", 5, 5, "x")
        config_surface.set_trails_visible(False)

        report = render_loop.tick()

        assert report.segments_drawn == 0
        assert surface.context.lines == []
        assert len(store.get("a")) == 2

    def test_heatmap_painted_when_visible(self, render_loop, config_surface, grid, surface):
        """Verify heatmap cells are painted only when visible."""
        render_loop.tick()
        assert len(surface.context.fills) == grid.shape[0] * grid.shape[1]

        surface.context.fills.clear()
        config_surface.set_heatmap_visible(False)
        render_loop.tick()

        assert surface.context.fills == []

    def test_failing_trail_is_isolated(self, store, grid, config_surface, scheduler, clock):
        """Verify one failing trail does not block the others."""
        first_color = config_surface.palette[0]
        surface = FakeSurface(context=RecordingContext(fail_color=first_color))
        loop = RenderLoop(surface, store, grid, config_surface, scheduler, clock=clock)
        reports = []
        loop.on_frame_failures(reports.append)

        for trail_id in ("broken", "fine"):
            store.record_position(trail_id, 0, 0, "x")
            store.record_position(trail_id, 50, 50, "x")

        report = loop.tick()

        assert report.trails_painted == 1
        assert [f.entity_id for f in report.failures] == ["broken"]
        assert report.failures[0].stage == "paint"
        assert reports == [report]
        assert not report.ok

    def test_unrepresentable_position_does_not_abort_frame(
        self, surface, store, grid, config_surface, scheduler, clock
    ):
        """Verify an out-of-range position is dropped and the frame completes."""
        loop = RenderLoop(
            surface, store, grid, config_surface, scheduler,
            position_source=lambda: [(10, 10), (10**400, 10)],
            clock=clock,
        )
        store.record_position("a", 0, 0, "x")
        store.record_position("a", 50, 50, "x")

        report = loop.tick()

        assert report.density_refreshed
        assert report.segments_drawn == 1
        assert grid.total == 1

    def test_density_refresh_is_throttled(self, surface, store, grid, config_surface, scheduler, clock):
        """Verify rebinning happens at the configured interval."""
        loop = RenderLoop(
            surface, store, grid, config_surface, scheduler,
            loop_config=LoopConfig(density_refresh_interval_ms=2000),
            clock=clock,
        )
        t0 = clock.now_ms
        store.record_position("a", 10, 10, "x")

        assert loop.tick(t0).density_refreshed
        assert grid.cell_at(10, 10) == 1

        store.record_position("b", 50, 50, "x")
        assert not loop.tick(t0 + 500).density_refreshed
        assert grid.cell_at(50, 50) == 0

        assert loop.tick(t0 + 2000).density_refreshed
        assert grid.cell_at(50, 50) == 1

    def test_analysis_is_throttled(self, surface, store, grid, config_surface, scheduler, clock):
        """Verify analysis runs at the configured interval."""
        from trailscope.analysis.movement import MovementAnalyzer

        loop = RenderLoop(
            surface, store, grid, config_surface, scheduler,
            analyzer=MovementAnalyzer(store, 200, 100),
            clock=clock,
        )
        t0 = clock.now_ms

        assert loop.tick(t0).analysis_refreshed
        assert loop.last_analysis is not None
        assert not loop.tick(t0 + 999).analysis_refreshed
        assert loop.tick(t0 + 1000).analysis_refreshed


class TestSegmentPlanning:
    """Tests for trail fading and culling."""

    def test_opacity_is_min_of_age_and_position(self):
        """Verify opacity takes the smaller of age and position fades."""
        assert segment_opacity(5, 10, 0, 10_000) == pytest.approx(0.4)
        assert segment_opacity(9, 10, 7_500, 10_000) == pytest.approx(0.2)
        assert segment_opacity(9, 10, 20_000, 10_000) == 0.0

    def test_faint_segments_are_culled(self):
        """Verify segments at or below the cull opacity are skipped."""
        trail = Trail(id="a", color="#4CAF50", kind="x", samples=deque())
        for i in range(10):
            trail.samples.append(TrailSample(float(i), 0.0, 1000.0))

        plans, culled = plan_trail_segments(trail, 1000.0, 10_000)

        assert culled == 1
        assert len(plans) == 8
        assert all(plan.opacity > 0.1 for plan in plans)

    def test_single_sample_trail_has_no_segments(self):
        """Verify a one-sample trail plans nothing."""
        trail = Trail(id="a", color="#4CAF50", kind="x", samples=deque())
        trail.samples.append(TrailSample(0.0, 0.0, 0.0))

        assert plan_trail_segments(trail, 0.0, 10_000) == ([], 0)


class TestCanvasIntegration:
    """End-to-end frames on a real canvas."""

    def test_empty_heatmap_paints_flat_first_color(self, clock, scheduler):
        """Verify an empty grid paints the first heatmap color everywhere."""
        config = ConfigSurface(DisplayConfig())
        canvas = CanvasSurface(120, 80)
        store = TrailStore(config, clock=clock)
        grid = DensityGrid(120, 80, config)
        loop = RenderLoop(canvas, store, grid, config, scheduler, clock=clock)

        loop.tick()

        expected = np.array(hex_to_bgr(config.heatmap_palette[0]), dtype=np.uint8)
        assert np.all(canvas.image == expected)

    def test_trail_changes_pixels(self, clock, scheduler):
        """Verify a painted trail reaches the canvas image."""
        config = ConfigSurface(DisplayConfig(heatmap_visible=False))
        canvas = CanvasSurface(120, 80)
        store = TrailStore(config, clock=clock)
        grid = DensityGrid(120, 80, config)
        loop = RenderLoop(canvas, store, grid, config, scheduler, clock=clock)
        for i in range(5):
            store.record_position("a", 10 + i * 20, 40, "x")

        loop.tick()

        assert canvas.image.any()

    def test_runs_on_asyncio_scheduler(self, clock):
        """Verify the loop runs frames on an asyncio event loop."""
        config = ConfigSurface(DisplayConfig())
        store = TrailStore(config, clock=clock)
        grid = DensityGrid(120, 80, config)
        loop = RenderLoop(
            FakeSurface(120, 80), store, grid, config,
            scheduler=AsyncioFrameScheduler(),
            loop_config=LoopConfig(target_fps=240),
            clock=clock,
        )

        async def run():
            loop.start()
            await asyncio.sleep(0.05)
            loop.stop()
            frames = loop.frame_count
            await asyncio.sleep(0.02)
            return frames

        frames = asyncio.run(run())

        assert frames >= 1
        assert loop.frame_count == frames
