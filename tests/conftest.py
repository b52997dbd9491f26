"""
Test Configuration
==================

Pytest fixtures and test doubles for Trailscope.
"""

from typing import Callable, List, Optional

import pytest

from trailscope.config import ConfigSurface, DisplayConfig


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, start_ms: float = 1_000_000.0) -> None:
        self.now_ms = start_ms

    def __call__(self) -> float:
        return self.now_ms

    def advance(self, ms: float) -> float:
        self.now_ms += ms
        return self.now_ms


class ManualHandle:
    """Scheduled frame handle for ManualScheduler."""

    def __init__(self, callback: Callable[[], None], delay_s: float) -> None:
        self.callback = callback
        self.delay_s = delay_s
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Frame scheduler that only runs callbacks when told to."""

    def __init__(self) -> None:
        self.handles: List[ManualHandle] = []

    def schedule(self, callback: Callable[[], None], delay_s: float) -> ManualHandle:
        handle = ManualHandle(callback, delay_s)
        self.handles.append(handle)
        return handle

    @property
    def pending(self) -> List[ManualHandle]:
        return [h for h in self.handles if not h.cancelled]

    def run_next(self, include_cancelled: bool = False) -> bool:
        """Run the oldest queued callback. Returns False if none."""
        for handle in list(self.handles):
            if handle.cancelled and not include_cancelled:
                continue
            self.handles.remove(handle)
            handle.callback()
            return True
        return False


class RecordingContext:
    """DrawingContext that records calls; optionally fails for one color."""

    def __init__(self, fail_color: Optional[str] = None) -> None:
        self.fail_color = fail_color
        self.clears: List[str] = []
        self.lines: List[tuple] = []
        self.fills: List[tuple] = []
        self.outlines: List[tuple] = []

    def clear(self, color: str) -> None:
        self.clears.append(color)

    def stroke_line(self, start, end, color, width, alpha=1.0) -> None:
        if color == self.fail_color:
            raise RuntimeError(f"cannot stroke {color}")
        self.lines.append((start, end, color, width, alpha))

    def fill_rect(self, x, y, w, h, color, alpha=1.0) -> None:
        self.fills.append((x, y, w, h, color, alpha))

    def stroke_rect(self, x, y, w, h, color, alpha=1.0, width=1) -> None:
        self.outlines.append((x, y, w, h, color, alpha))


class FakeSurface:
    """DrawingSurface around a RecordingContext."""

    def __init__(self, width: int = 200, height: int = 100, context=None) -> None:
        self.width = width
        self.height = height
        self.context = context if context is not None else RecordingContext()

    def get_context(self):
        return self.context


@pytest.fixture
def clock():
    """Provide a hand-driven millisecond clock."""
    return FakeClock()


@pytest.fixture
def scheduler():
    """Provide a manual frame scheduler."""
    return ManualScheduler()


@pytest.fixture
def config_surface():
    """Provide a ConfigSurface with default display config."""
    return ConfigSurface(DisplayConfig())


@pytest.fixture
def store(config_surface, clock):
    """Provide a TrailStore on the fake clock."""
    from trailscope.trails.store import TrailStore

    trail_store = TrailStore(config_surface, clock=clock)
    yield trail_store
    trail_store.close()
