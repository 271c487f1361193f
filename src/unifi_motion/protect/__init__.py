"""UniFi Protect controller access.

This package talks to the controller over plain HTTP. It includes:

- Dialect detection (legacy bearer-token API vs. UniFi OS with CSRF token)
- Session management with client-side expiry and retry/backoff
- Camera enumeration from the bootstrap
- Motion event retrieval with per-camera latest-event resolution

Example:
    >>> from unifi_motion.config import MotionConfig
    >>> from unifi_motion.protect import UniFiProtectClient
    >>>
    >>> config = MotionConfig.from_env()
    >>> async with UniFiProtectClient(config) as client:
    ...     for event in await client.get_latest_motion_events():
    ...         print(f'{event.camera.name}: {event.score}%')
"""

from unifi_motion.protect.cameras import CameraDirectory
from unifi_motion.protect.client import (
    ConnectionState,
    UniFiProtectClient,
    create_client,
)
from unifi_motion.protect.endpoint import EndpointStyle, resolve_endpoint_style
from unifi_motion.protect.errors import (
    ApiError,
    AuthError,
    ConfigError,
    ProbeError,
    ProtectClientError,
    TransportError,
)
from unifi_motion.protect.events import MotionEventSource, latest_event_per_camera
from unifi_motion.protect.models import Camera, CameraStream, DetectionResult, MotionEvent
from unifi_motion.protect.retry import with_backoff
from unifi_motion.protect.session import SESSION_TTL, Session, SessionManager


__all__ = [
    # Client
    'UniFiProtectClient',
    'create_client',
    'ConnectionState',
    # Dialects
    'EndpointStyle',
    'resolve_endpoint_style',
    # Sessions
    'SESSION_TTL',
    'Session',
    'SessionManager',
    'with_backoff',
    # Cameras and events
    'CameraDirectory',
    'MotionEventSource',
    'latest_event_per_camera',
    # Models
    'Camera',
    'CameraStream',
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
