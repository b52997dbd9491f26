"""
Frame Report Models
===================

Result types for the per-entity isolation boundary.

Each frame iterates entities and wraps each entity's work. Failures are
collected as EntityFailure records and returned in a FrameReport, so one
malformed trail never aborts the frame for the others.
"""

from dataclasses import dataclass, field
from typing import Tuple


@dataclass(frozen=True, slots=True)
class EntityFailure:
    """
    A failure isolated to one entity.

    Attributes:
        entity_id: Trail id (or a component name for grid-wide work)
        stage: Where it failed: "paint", "heatmap" or "analysis"
        error: Exception type and message
    """

    entity_id: str
    stage: str
    error: str

    @classmethod
    def from_exception(cls, entity_id: str, stage: str, exc: BaseException) -> "EntityFailure":
        return cls(entity_id=entity_id, stage=stage, error=f"{type(exc).__name__}: {exc}")

    def to_dict(self) -> dict:
        return {"entity_id": self.entity_id, "stage": self.stage, "error": self.error}


@dataclass(frozen=True, slots=True)
class FrameReport:
    """
    Summary of one render loop tick.

    Attributes:
        frame_number: 1-based frame counter
        timestamp_ms: Frame time used for fading and expiry
        samples_expired: Samples dropped by the expiry sweep
        trails_painted: Trails with at least one stroked segment
        segments_drawn: Segments stroked
        segments_culled: Segments skipped for low opacity
        density_refreshed: Whether the grid was rebinned this frame
        analysis_refreshed: Whether movement analysis ran this frame
        failures: Isolated per-entity failures
    """

    frame_number: int
    timestamp_ms: float
    samples_expired: int = 0
    trails_painted: int = 0
    segments_drawn: int = 0
    segments_culled: int = 0
    density_refreshed: bool = False
    analysis_refreshed: bool = False
    failures: Tuple[EntityFailure, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        """True when no entity failed."""
        return not self.failures

    def to_dict(self) -> dict:
        """Export as dictionary for logging/serialization."""
        return {
            "frame_number": self.frame_number,
            "timestamp_ms": round(self.timestamp_ms, 3),
            "samples_expired": self.samples_expired,
            "trails_painted": self.trails_painted,
            "segments_drawn": self.segments_drawn,
            "segments_culled": self.segments_culled,
            "density_refreshed": self.density_refreshed,
            "analysis_refreshed": self.analysis_refreshed,
            "failures": [f.to_dict() for f in self.failures],
        }
