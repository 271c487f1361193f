"""Deduplicated motion detection for UniFi Protect cameras.

This package polls a UniFi Protect controller for motion events and
raises one motion notification per camera per physical event. It
includes:

- Configuration management with Pydantic validation
- Controller access for both the legacy and the UniFi OS API dialects
- Per-camera latest-event resolution with repeat suppression
- Optional confirmation of motion by object detection on a live snapshot

Example:
    >>> from unifi_motion import LoggingMotionSink, MotionConfig, MotionOrchestrator
    >>> from unifi_motion import UniFiProtectClient
    >>>
    >>> config = MotionConfig.from_env()
    >>> async with UniFiProtectClient(config) as client:
    ...     orchestrator = MotionOrchestrator(client, config, LoggingMotionSink())
    ...     await orchestrator.start()
"""

from unifi_motion.config import MotionConfig
from unifi_motion.motion import (
    LoggingMotionSink,
    MotionOrchestrator,
    MotionSensorSink,
    MotionStateStore,
    ObjectDetector,
    PhotoUploader,
)
from unifi_motion.protect import (
    ApiError,
    AuthError,
    Camera,
    ConfigError,
    DetectionResult,
    MotionEvent,
    ProbeError,
    ProtectClientError,
    TransportError,
    UniFiProtectClient,
)


__version__ = '0.1.0'

__all__ = [
    # Configuration
    'MotionConfig',
    # Client
    'UniFiProtectClient',
    # Motion
    'MotionOrchestrator',
    'MotionStateStore',
    'LoggingMotionSink',
    'MotionSensorSink',
    'ObjectDetector',
    'PhotoUploader',
    # Models
    'Camera',
    'DetectionResult',
    'MotionEvent',
    # Exceptions
    'ProtectClientError',
    'ProbeError',
    'ConfigError',
    'AuthError',
    'ApiError',
    'TransportError',
]
