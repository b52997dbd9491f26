"""
Trail Models
============

Data models for per-entity position history.

Core Concepts:
    - TrailSample: One recorded position with its capture time (ms)
    - Trail: Bounded, time-ordered sample history of one entity
    - TrailSnapshot: Validated wire form used by snapshot import

Invariants (maintained by TrailStore):
    - len(samples) <= max_trail_length, oldest evicted first
    - captured_at_ms is non-decreasing along the trail
    - A trail with zero samples does not exist in the store
"""

from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Optional

from pydantic import BaseModel, Field, field_validator

from trailscope.colors import is_hex_color


@dataclass(frozen=True, slots=True)
class TrailSample:
    """
    Single recorded position.

    Attributes:
        x: Horizontal surface coordinate
        y: Vertical surface coordinate
        captured_at_ms: Capture time in milliseconds
    """

    x: float
    y: float
    captured_at_ms: float

    def to_dict(self) -> dict:
        """Export as dictionary for serialization."""
        return {
            "x": self.x,
            "y": self.y,
            "captured_at_ms": self.captured_at_ms,
        }


@dataclass(slots=True)
class Trail:
    """
    Position history of one tracked entity.

    The sample deque carries the store's length bound as its maxlen, so
    appending past the bound evicts the oldest sample.

    Attributes:
        id: Stable entity identifier
        color: Palette color assigned at creation
        kind: Caller-supplied category label (display only)
        samples: Samples ordered oldest first
    """

    id: str
    color: str
    kind: str
    samples: Deque[TrailSample]

    def __len__(self) -> int:
        return len(self.samples)

    @property
    def latest(self) -> Optional[TrailSample]:
        """Most recent sample, if any."""
        return self.samples[-1] if self.samples else None

    def recent(self, count: int) -> List[TrailSample]:
        """Up to `count` most recent samples, oldest first."""
        if count <= 0:
            return []
        return list(self.samples)[-count:]

    def to_dict(self) -> dict:
        """Export as a deep, JSON-safe dictionary."""
        return {
            "id": self.id,
            "color": self.color,
            "kind": self.kind,
            "samples": [sample.to_dict() for sample in self.samples],
        }


class TrailSampleModel(BaseModel):
    """Wire form of a TrailSample."""

    x: float = Field(..., allow_inf_nan=False)
    y: float = Field(..., allow_inf_nan=False)
    captured_at_ms: float = Field(..., allow_inf_nan=False)


class TrailSnapshot(BaseModel):
    """
    Wire form of a Trail, as produced by TrailStore.export_snapshot().

    Attributes:
        id: Entity identifier (optional, defaults to the mapping key)
        color: Assigned hex color
        kind: Category label
        samples: Samples, oldest first, with non-decreasing timestamps
    """

    id: Optional[str] = Field(default=None, min_length=1)
    color: str = Field(..., description="Assigned trail color")
    kind: str = Field(default="", description="Category label")
    samples: List[TrailSampleModel] = Field(default_factory=list)

    @field_validator("color")
    @classmethod
    def validate_color(cls, v: str) -> str:
        """Ensure color is a hex color."""
        if not is_hex_color(v):
            raise ValueError(f"Trail color is not a hex color: {v!r}")
        return v

    @field_validator("samples")
    @classmethod
    def validate_order(cls, v: List[TrailSampleModel]) -> List[TrailSampleModel]:
        """Ensure timestamps never go backwards."""
        for prev, curr in zip(v, v[1:]):
            if curr.captured_at_ms < prev.captured_at_ms:
                raise ValueError("Trail samples must be ordered by captured_at_ms")
        return v

    def to_trail(self, trail_id: str, max_length: int) -> Trail:
        """Build a store Trail bounded to max_length (most recent kept)."""
        samples = deque(
            (TrailSample(s.x, s.y, s.captured_at_ms) for s in self.samples),
            maxlen=max_length,
        )
        return Trail(id=trail_id, color=self.color, kind=self.kind, samples=samples)
