"""Motion event retrieval and per-camera correlation.

Events are requested for a sliding window of twice the poll interval so
an event starting right at a window boundary is still seen by the next
poll. Per camera only the most recent event matters: the controller
keeps reporting an ongoing event (``end`` is null) until the motion
stops, and such an event is the latest one by definition.

Example:
    >>> source = MotionEventSource(http, poll_interval=5000)
    >>> events = await source.fetch_latest_per_camera(cameras, session, style)
    >>> for event in events:
    ...     print(f'{event.camera.name}: {event.score}%')
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone

import httpx
from loguru import logger  # type: ignore[import-untyped]
from pydantic import ValidationError

from unifi_motion.protect.cameras import fetch_json
from unifi_motion.protect.endpoint import EndpointStyle
from unifi_motion.protect.errors import ApiError
from unifi_motion.protect.models import Camera, MotionEvent
from unifi_motion.protect.session import Session


WINDOW_MULTIPLIER = 2


def latest_event_per_camera(
    events: Iterable[MotionEvent],
    cameras: Iterable[Camera],
) -> list[MotionEvent]:
    """Pick the most recent event of every camera.

    Args:
        events: Uncorrelated events in any order.
        cameras: Known cameras.

    Returns:
        One event per camera that has events, carrying its camera
        back-reference, in camera order. Events of unknown cameras are
        dropped.
    """
    cameras_by_id = {camera.id: camera for camera in cameras}
    latest: dict[str, MotionEvent] = {}

    for event in events:
        if event.camera_id not in cameras_by_id:
            logger.debug(f'Dropping event {event.id} of unknown camera {event.camera_id}')
            continue
        current = latest.get(event.camera_id)
        if current is None or event.timestamp > current.timestamp:
            latest[event.camera_id] = event

    return [
        latest[camera_id].with_camera(camera)
        for camera_id, camera in cameras_by_id.items()
        if camera_id in latest
    ]


class MotionEventSource:
    """Fetches motion events and resolves the latest one per camera.

    Attributes:
        poll_interval: Poll interval in milliseconds.
        min_score: Events scored below this are ignored.
        debug: Log every raw event payload.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        poll_interval: int,
        min_score: int = 0,
        max_retries: int = 3,
        initial_delay: float = 0.1,
        timeout: float = 1.0,
        debug: bool = False,
    ) -> None:
        """Initialize the event source.

        Args:
            http: HTTP client.
            poll_interval: Poll period in milliseconds. The query window
                spans two periods.
            min_score: Minimum motion score of returned events.
            max_retries: Retries for transient failures.
            initial_delay: First retry delay in seconds.
            timeout: Per-request timeout in seconds.
            debug: Log every raw event payload.
        """
        self._http = http
        self.poll_interval = poll_interval
        self.min_score = min_score
        self._max_retries = max_retries
        self._initial_delay = initial_delay
        self._timeout = timeout
        self.debug = debug

    def window(self, now: datetime | None = None) -> tuple[int, int]:
        """Query window as (start, end) epoch milliseconds."""
        now = now or datetime.now(timezone.utc)
        end = int(now.timestamp() * 1000)
        return end - self.poll_interval * WINDOW_MULTIPLIER, end

    async def fetch_events(
        self,
        session: Session,
        style: EndpointStyle,
        now: datetime | None = None,
    ) -> list[MotionEvent]:
        """Fetch the raw motion events of the current window.

        Args:
            session: Current session.
            style: Controller dialect.
            now: Reference time (defaults to the current UTC time).

        Returns:
            Uncorrelated motion events at or above ``min_score``.

        Raises:
            ApiError: If the response is not a list of well-formed events.
            AuthError: If the controller rejects the session.
        """
        start, end = self.window(now)
        body = await fetch_json(
            self._http,
            style.events_url,
            session,
            style,
            params={'end': end, 'start': start, 'type': 'motion'},
            max_retries=self._max_retries,
            initial_delay=self._initial_delay,
            timeout=self._timeout,
            description='motion events',
        )

        if not isinstance(body, list):
            raise ApiError('Events response is not a list')

        events: list[MotionEvent] = []
        for raw in body:
            if self.debug:
                logger.debug(f'Motion event: {raw}')
            try:
                event = MotionEvent.from_api(raw)
            except (KeyError, TypeError, AttributeError, ValidationError) as e:
                raise ApiError(f'Malformed motion event: {e}', original_error=e)
            if event.score < self.min_score:
                logger.debug(f'Ignoring event {event.id} with score {event.score}%')
                continue
            events.append(event)
        return events

    async def fetch_latest_per_camera(
        self,
        cameras: Iterable[Camera],
        session: Session,
        style: EndpointStyle,
        now: datetime | None = None,
    ) -> list[MotionEvent]:
        """Fetch events and resolve the latest one for every camera.

        Args:
            cameras: Known cameras.
            session: Current session.
            style: Controller dialect.
            now: Reference time (defaults to the current UTC time).

        Returns:
            One correlated event per camera that has events.

        Raises:
            ApiError: If the response is malformed.
            AuthError: If the controller rejects the session.
        """
        events = await self.fetch_events(session, style, now)
        return latest_event_per_camera(events, cameras)
