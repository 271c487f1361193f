"""Pydantic models for UniFi Protect cameras, motion events and detections.

This module provides the domain models used across the bridge. Each
controller-facing model has a ``from_api`` constructor that extracts the
essential fields from the raw JSON returned by the controller. Raw wire
data and enriched domain objects are kept apart: a parsed
``MotionEvent`` never carries its camera until correlation attaches it.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any

from pydantic import BaseModel, Field


def _from_epoch_ms(value: Any) -> datetime | None:
    """Convert a millisecond epoch timestamp to an aware datetime.

    Args:
        value: Epoch milliseconds, or None.

    Returns:
        UTC datetime, or None when no value is given.
    """
    if value is None:
        return None
    return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)


class CameraStream(BaseModel):
    """A playable RTSP stream of a camera.

    Attributes:
        name: Channel name (e.g. 'High', 'Medium', 'Low').
        alias: RTSP alias of the channel.
        width: Frame width in pixels.
        height: Frame height in pixels.
        fps: Frames per second.
    """

    name: Annotated[str, Field(default='', description='Channel name')]
    alias: Annotated[str, Field(min_length=1, description='RTSP alias')]
    width: Annotated[int, Field(default=0, ge=0, description='Frame width')]
    height: Annotated[int, Field(default=0, ge=0, description='Frame height')]
    fps: Annotated[int | None, Field(default=None, description='Frames per second')]

    model_config = {'extra': 'forbid', 'frozen': True}

    @property
    def area(self) -> int:
        """Pixel area of the stream (width x height)."""
        return self.width * self.height


class Camera(BaseModel):
    """Model representing a UniFi Protect camera.

    Attributes:
        id: Unique camera identifier.
        name: Human-readable camera name.
        ip_address: IP address or hostname of the camera.
        mac_address: MAC address of the camera.
        model: Camera model/type string.
        firmware_version: Installed firmware version.
        streams: Playable streams, ascending by pixel area.
    """

    id: Annotated[str, Field(min_length=1, description='Unique camera identifier')]
    name: Annotated[str, Field(description='Human-readable camera name')]
    ip_address: Annotated[str | None, Field(default=None, description='IP address or hostname')]
    mac_address: Annotated[str | None, Field(default=None, description='MAC address')]
    model: Annotated[str | None, Field(default=None, description='Camera model')]
    firmware_version: Annotated[str | None, Field(default=None, description='Firmware version')]
    streams: Annotated[
        list[CameraStream], Field(default_factory=list, description='Streams by ascending area')
    ]

    model_config = {'extra': 'forbid', 'frozen': True}

    @property
    def highest_resolution_stream(self) -> CameraStream | None:
        """The highest resolution stream, or None if the camera has none."""
        return self.streams[-1] if self.streams else None

    @property
    def snapshot_url(self) -> str:
        """URL of the camera's live JPEG snapshot."""
        return f'http://{self.ip_address}/snap.jpeg'

    @staticmethod
    def _parse_streams(channels: Any) -> list[CameraStream]:
        """Parse bootstrap channels into streams sorted by area.

        Channels without an RTSP alias are not playable streams and are
        dropped.

        Args:
            channels: The ``channels`` list of a bootstrap camera.

        Returns:
            Streams ordered ascending by pixel area.
        """
        streams: list[CameraStream] = []
        for channel in channels or []:
            alias = channel.get('rtspAlias')
            if not alias:
                continue
            streams.append(
                CameraStream(
                    name=channel.get('name') or '',
                    alias=alias,
                    width=channel.get('width') or 0,
                    height=channel.get('height') or 0,
                    fps=channel.get('fps'),
                )
            )
        streams.sort(key=lambda stream: stream.area)
        return streams

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Camera:
        """Create a Camera from a bootstrap ``cameras`` entry.

        Args:
            data: Raw camera dictionary from the controller.

        Returns:
            Camera instance with extracted data.
        """
        return cls(
            id=data['id'],
            name=data.get('name') or 'Unknown Camera',
            ip_address=data.get('host'),
            mac_address=data.get('mac'),
            model=data.get('type'),
            firmware_version=data.get('firmwareVersion'),
            streams=cls._parse_streams(data.get('channels')),
        )


class MotionEvent(BaseModel):
    """A motion event reported by the controller.

    Attributes:
        id: Unique event identifier.
        camera_id: Identifier of the camera that reported the event.
        score: Controller motion score (0-100).
        timestamp: Start of the event.
        end: End of the event; None while the motion is still ongoing.
        camera: Camera back-reference, set by correlation only.
    """

    id: Annotated[str, Field(min_length=1, description='Unique event identifier')]
    camera_id: Annotated[str, Field(description='Reporting camera identifier')]
    score: Annotated[int, Field(default=0, ge=0, le=100, description='Motion score')]
    timestamp: Annotated[datetime, Field(description='Event start')]
    end: Annotated[datetime | None, Field(default=None, description='Event end')]
    camera: Annotated[Camera | None, Field(default=None, description='Correlated camera')]

    model_config = {'extra': 'forbid', 'frozen': True}

    @property
    def is_ongoing(self) -> bool:
        """True while the controller has not reported an end time."""
        return self.end is None

    def with_camera(self, camera: Camera) -> MotionEvent:
        """Return a copy of this event correlated with its camera.

        Args:
            camera: The camera matching ``camera_id``.

        Returns:
            A new MotionEvent carrying the camera back-reference.
        """
        return self.model_copy(update={'camera': camera})

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> MotionEvent:
        """Create a MotionEvent from a raw ``/api/events`` entry.

        Args:
            data: Raw event dictionary with ``id``, ``camera``, ``score``,
                ``start`` and ``end`` keys.

        Returns:
            An uncorrelated MotionEvent.
        """
        return cls(
            id=data['id'],
            camera_id=data['camera'],
            score=data.get('score') or 0,
            timestamp=_from_epoch_ms(data['start']),
            end=_from_epoch_ms(data.get('end')),
        )


class DetectionResult(BaseModel):
    """A single object detection produced by the external detector.

    Attributes:
        label: Detected class name.
        confidence: Detection confidence between 0.0 and 1.0.
        bounding_box: Box as (x, y, width, height) in pixels.
    """

    label: Annotated[str, Field(min_length=1, description='Detected class name')]
    confidence: Annotated[float, Field(ge=0.0, le=1.0, description='Confidence 0.0-1.0')]
    bounding_box: Annotated[
        tuple[float, float, float, float],
        Field(default=(0.0, 0.0, 0.0, 0.0), description='Box as (x, y, w, h)'),
    ]

    model_config = {'extra': 'forbid', 'frozen': True}

    @property
    def score(self) -> int:
        """Confidence expressed as a rounded 0-100 score."""
        return round(self.confidence * 100)

    def matches(self, class_name: str) -> bool:
        """Case-insensitive label comparison."""
        return self.label.lower() == class_name.lower()
