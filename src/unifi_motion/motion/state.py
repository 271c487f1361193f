"""Per-camera repeat-suppression state.

The controller keeps reporting the same event id for as long as the
motion lasts. ``MotionStateStore`` remembers the last event id seen per
camera and how many consecutive polls reported it, so a long-running
event notifies once and then at most once per repeat window.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import asdict, dataclass
from typing import Any

from loguru import logger  # type: ignore[import-untyped]


@dataclass
class MotionState:
    """Repeat tracking for one camera.

    Attributes:
        last_motion_event_id: Id of the last event seen for the camera.
        repeat_count: Consecutive polls that re-reported that event.
    """

    last_motion_event_id: str | None = None
    repeat_count: int = 0


class MotionStateStore:
    """Keyed store of camera id -> MotionState.

    The store is owned by the orchestrator and only mutated inside its
    single-flight tick. It can be seeded from, and exported to, plain
    mappings so a host can keep the state in accessory storage.

    Example:
        >>> store = MotionStateStore()
        >>> store.should_suppress('cam-1', 'evt-1', repeat_threshold=3)
        False
        >>> store.should_suppress('cam-1', 'evt-1', repeat_threshold=3)
        True
    """

    def __init__(self, initial: Mapping[str, Mapping[str, Any]] | None = None) -> None:
        """Initialize the store.

        Args:
            initial: Optional persisted states keyed by camera id.
        """
        self._states: dict[str, MotionState] = {}
        for camera_id, data in (initial or {}).items():
            self._states[camera_id] = MotionState(
                last_motion_event_id=data.get('last_motion_event_id'),
                repeat_count=int(data.get('repeat_count', 0)),
            )

    def __contains__(self, camera_id: object) -> bool:
        return camera_id in self._states

    def __iter__(self) -> Iterator[str]:
        return iter(self._states)

    def __len__(self) -> int:
        return len(self._states)

    def get(self, camera_id: str) -> MotionState:
        """Get the state of a camera, creating it on first use."""
        return self._states.setdefault(camera_id, MotionState())

    def should_suppress(self, camera_id: str, event_id: str, repeat_threshold: int) -> bool:
        """Record a sighting of ``event_id`` and decide whether to suppress it.

        A new event id is stored with a zero count and is never
        suppressed. The same id increments the count; when the count
        reaches ``repeat_threshold`` it resets to zero and the event is
        let through again (re-armed), otherwise it is suppressed.

        Args:
            camera_id: The camera reporting the event.
            event_id: The reported event id.
            repeat_threshold: Repeat window divided by the poll interval.

        Returns:
            True if processing should be skipped for this poll.
        """
        state = self.get(camera_id)
        if state.last_motion_event_id != event_id:
            state.last_motion_event_id = event_id
            state.repeat_count = 0
            return False

        state.repeat_count += 1
        if state.repeat_count == repeat_threshold:
            logger.debug(f'Long-running event {event_id} re-armed for camera {camera_id}')
            state.repeat_count = 0
            return False
        return True

    def to_dict(self) -> dict[str, dict[str, Any]]:
        """Export all states as plain dictionaries."""
        return {camera_id: asdict(state) for camera_id, state in self._states.items()}

    def clear(self) -> None:
        """Forget all tracked cameras."""
        self._states.clear()
