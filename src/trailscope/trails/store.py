"""
Trail Store
===========

Per-entity, capped, time-ordered position history.

This store:
    - Appends samples stamped with its clock (milliseconds)
    - Evicts the oldest sample when a trail exceeds max_trail_length
    - Expires samples older than the fade window, removing emptied trails
    - Re-truncates every trail as soon as max_trail_length changes
    - Exports and imports deep copies of its contents

Color Assignment:
    A new trail takes palette[len(trails) % len(palette)], evaluated once at
    creation. The color never changes afterwards, even if the palette does.

Design Rules:
    - Invalid input raises ValidationError and never alters state
    - Timestamps never go backwards within a trail; a clock that steps
      back is clamped to the trail's latest timestamp
    - Only the owning render/update path mutates the store
"""

import logging
import math
import numbers
import time
from collections import deque
from typing import Callable, Dict, Iterator, List, Mapping, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from trailscope.config import ConfigSurface
from trailscope.errors import ValidationError
from trailscope.models.analysis import TrailStats
from trailscope.models.trail import Trail, TrailSample, TrailSnapshot


logger = logging.getLogger(__name__)


def wall_clock_ms() -> float:
    """Current wall-clock time in milliseconds."""
    return time.time() * 1000.0


def _validate_coordinate(name: str, value: object) -> float:
    """Return value as float, rejecting non-numeric and non-finite input."""
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ValidationError(f"{name} must be a number, got {value!r}")
    try:
        value = float(value)
    except OverflowError as e:
        raise ValidationError(f"{name} is too large to represent") from e
    if not math.isfinite(value):
        raise ValidationError(f"{name} must be finite, got {value!r}")
    return value


class TrailStore:
    """
    Store of bounded position trails keyed by entity id.

    Attributes:
        config: Shared ConfigSurface (max_trail_length, fade window, palette)

    Example:
        store = TrailStore(ConfigSurface())

        store.record_position("a", 10, 10, "herbivore")
        store.record_position("a", 20, 10, "herbivore")
        store.expire_older_than(now_ms)

        snapshot = store.export_snapshot()
    """

    def __init__(
        self,
        config: ConfigSurface,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        """
        Initialize trail store.

        Args:
            config: Shared configuration surface
            clock: Millisecond clock used to stamp samples
        """
        self.config = config
        self._clock = clock or wall_clock_ms
        self._trails: Dict[str, Trail] = {}

        self._subscription = config.subscribe(
            "max_trail_length", self._truncate_all
        )

        logger.info(
            f"TrailStore initialized: max_trail_length={config.max_trail_length}, "
            f"fade_window={config.fade_window_ms}ms"
        )

    # Queries ------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._trails)

    def __contains__(self, trail_id: object) -> bool:
        return trail_id in self._trails

    def __iter__(self) -> Iterator[Trail]:
        return iter(list(self._trails.values()))

    def get(self, trail_id: str) -> Optional[Trail]:
        """Return the live trail for an id, or None."""
        return self._trails.get(trail_id)

    def ids(self) -> List[str]:
        """Ids of live trails, in creation order."""
        return list(self._trails)

    def trails(self) -> List[Trail]:
        """Live trails, in creation order."""
        return list(self._trails.values())

    def latest_positions(self) -> List[Tuple[float, float]]:
        """Most recent (x, y) of every trail."""
        return [
            (trail.samples[-1].x, trail.samples[-1].y)
            for trail in self._trails.values()
            if trail.samples
        ]

    def stats(self) -> TrailStats:
        """Active trail and total point counts."""
        return TrailStats(
            active_trails=len(self._trails),
            total_points=sum(len(t.samples) for t in self._trails.values()),
        )

    # Mutation -----------------------------------------------------------

    def record_position(
        self,
        trail_id: str,
        x: float,
        y: float,
        kind: str = "unknown",
    ) -> TrailSample:
        """
        Append a position to an entity's trail.

        Creates the trail on first sight of an id. Evicts the oldest sample
        when the trail is at max_trail_length.

        Args:
            trail_id: Entity identifier (non-empty string)
            x: Horizontal coordinate (finite)
            y: Vertical coordinate (finite)
            kind: Category label

        Returns:
            The recorded sample

        Raises:
            ValidationError: On empty id or non-finite coordinates
        """
        if not isinstance(trail_id, str) or not trail_id:
            raise ValidationError(f"trail id must be a non-empty string, got {trail_id!r}")
        x = _validate_coordinate("x", x)
        y = _validate_coordinate("y", y)
        kind = "" if kind is None else str(kind)

        now = float(self._clock())

        trail = self._trails.get(trail_id)
        if trail is None:
            palette = self.config.palette
            color = palette[len(self._trails) % len(palette)]
            trail = Trail(
                id=trail_id,
                color=color,
                kind=kind,
                samples=deque(maxlen=self.config.max_trail_length),
            )
            self._trails[trail_id] = trail
            logger.debug(f"Trail created: id={trail_id}, color={color}, kind={kind}")
        elif trail.samples and now < trail.samples[-1].captured_at_ms:
            now = trail.samples[-1].captured_at_ms

        sample = TrailSample(x=x, y=y, captured_at_ms=now)
        trail.samples.append(sample)
        return sample

    def remove_trail(self, trail_id: str) -> bool:
        """
        Delete a trail. Idempotent.

        Returns:
            True if a trail was removed
        """
        return self._trails.pop(trail_id, None) is not None

    def clear_all(self) -> int:
        """
        Remove every trail.

        Returns:
            Number of trails removed
        """
        count = len(self._trails)
        self._trails.clear()
        return count

    def expire_older_than(self, now_ms: float) -> int:
        """
        Drop samples older than the fade window.

        A sample is expired when now_ms - captured_at_ms > fade_window_ms.
        Trails left empty are removed.

        Args:
            now_ms: Reference time in milliseconds

        Returns:
            Number of samples dropped
        """
        fade_window = self.config.fade_window_ms
        dropped = 0
        emptied = []

        for trail_id, trail in self._trails.items():
            samples = trail.samples
            # Samples are time-ordered, so expired ones sit at the front
            while samples and now_ms - samples[0].captured_at_ms > fade_window:
                samples.popleft()
                dropped += 1
            if not samples:
                emptied.append(trail_id)

        for trail_id in emptied:
            del self._trails[trail_id]

        if emptied:
            logger.debug(f"Expired {dropped} samples, removed {len(emptied)} trails")

        return dropped

    def set_max_trail_length(self, length: int) -> None:
        """
        Change the per-trail sample bound.

        Every existing trail is truncated to its most recent `length`
        samples immediately.

        Raises:
            ValidationError: If length is not a positive integer
        """
        self.config.set_max_trail_length(length)
        # No-op change does not notify; bounds already hold in that case

    def _truncate_all(self, length: int) -> None:
        """Re-bound every trail (config subscription callback)."""
        for trail in self._trails.values():
            trail.samples = deque(trail.samples, maxlen=length)
        logger.info(f"Trails re-bounded to max_trail_length={length}")

    # Snapshot -----------------------------------------------------------

    def export_snapshot(self) -> Dict[str, dict]:
        """
        Deep copy of the whole store.

        Returns:
            Mapping of id -> {id, color, kind, samples: [{x, y, captured_at_ms}]}
        """
        return {trail_id: trail.to_dict() for trail_id, trail in self._trails.items()}

    def import_snapshot(self, data: Mapping[str, Mapping]) -> int:
        """
        Replace the store's contents with a snapshot.

        The snapshot is validated in full before anything is replaced.
        Trails are bounded to the current max_trail_length (most recent
        samples kept) and empty trails are skipped.

        Args:
            data: Mapping as returned by export_snapshot()

        Returns:
            Number of trails imported

        Raises:
            ValidationError: If any entry is malformed
        """
        if not isinstance(data, Mapping):
            raise ValidationError("snapshot must be a mapping of id -> trail")

        max_length = self.config.max_trail_length
        imported: Dict[str, Trail] = {}

        for key, entry in data.items():
            if not isinstance(key, str) or not key:
                raise ValidationError(f"snapshot key must be a non-empty string, got {key!r}")
            try:
                snapshot = TrailSnapshot.model_validate(entry)
            except PydanticValidationError as e:
                raise ValidationError(f"Invalid trail {key!r} in snapshot: {e}") from e

            if snapshot.id is not None and snapshot.id != key:
                raise ValidationError(
                    f"Snapshot key {key!r} does not match trail id {snapshot.id!r}"
                )
            if not snapshot.samples:
                continue

            imported[key] = snapshot.to_trail(key, max_length)

        self._trails = imported
        logger.info(f"Imported snapshot with {len(imported)} trails")
        return len(imported)

    def close(self) -> None:
        """Release the config subscription."""
        self._subscription.close()
