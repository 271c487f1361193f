"""Interfaces of the collaborators around the motion orchestrator.

The object detector, the photo uploader and the accessory platform that
exposes motion sensors live outside this package. They are described
here as protocols; ``LoggingMotionSink`` is a minimal in-memory sink
used by the command line runner.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

from loguru import logger  # type: ignore[import-untyped]

from unifi_motion.protect.models import Camera, DetectionResult


@runtime_checkable
class ObjectDetector(Protocol):
    """Protocol for object detectors."""

    async def detect(self, image: bytes) -> list[DetectionResult]:
        """Detect objects in a JPEG image.

        Args:
            image: Encoded JPEG snapshot.

        Returns:
            Zero or more labeled, scored and boxed detections.
        """
        ...


@runtime_checkable
class PhotoUploader(Protocol):
    """Protocol for best-effort photo backup."""

    async def upload(self, path: Path, name: str, description: str) -> str:
        """Upload an image file.

        Args:
            path: Local image file.
            name: File name to use remotely.
            description: Human-readable description.

        Returns:
            URL of the uploaded photo.
        """
        ...


@runtime_checkable
class MotionSensorSink(Protocol):
    """Protocol for the platform exposing one motion sensor per camera."""

    def set_motion_detected(self, camera: Camera, detected: bool) -> None:
        """Set the motion sensor state of a camera."""
        ...

    def is_motion_enabled(self, camera: Camera) -> bool:
        """Whether motion monitoring is enabled for a camera."""
        ...


class LoggingMotionSink:
    """In-memory motion sink that logs every raised motion flag.

    Attributes:
        default_enabled: Enabled state of cameras not listed explicitly.
    """

    def __init__(
        self,
        enabled: dict[str, bool] | None = None,
        default_enabled: bool = True,
    ) -> None:
        """Initialize the sink.

        Args:
            enabled: Explicit enabled state per camera id.
            default_enabled: Enabled state of cameras not in ``enabled``.
        """
        self._enabled: dict[str, bool] = dict(enabled or {})
        self._detected: dict[str, bool] = {}
        self.default_enabled = default_enabled

    def set_motion_detected(self, camera: Camera, detected: bool) -> None:
        """Store the motion flag of a camera, logging when it is raised."""
        if detected and not self._detected.get(camera.id):
            logger.info(f'Motion sensor of {camera.name} triggered')
        self._detected[camera.id] = detected

    def is_motion_enabled(self, camera: Camera) -> bool:
        """Whether motion monitoring is enabled for a camera."""
        return self._enabled.get(camera.id, self.default_enabled)

    def set_motion_enabled(self, camera_id: str, enabled: bool) -> None:
        """Enable or disable monitoring for a camera."""
        self._enabled[camera_id] = enabled

    def is_motion_detected(self, camera_id: str) -> bool:
        """Current motion flag of a camera."""
        return self._detected.get(camera_id, False)
