"""Async UniFi Protect controller client.

This module ties the dialect probe, session management, camera
enumeration and motion event retrieval together behind one object that
owns the HTTP connection and the current session, and re-authenticates
when the session expires or the controller stops accepting it. The
camera list is re-enumerated every ``camera_refresh_interval`` seconds
and after any session invalidation.
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from enum import Enum
from types import TracebackType
from typing import AsyncIterator

import httpx
from loguru import logger  # type: ignore[import-untyped]

from unifi_motion.config import MotionConfig
from unifi_motion.protect.cameras import CameraDirectory
from unifi_motion.protect.endpoint import EndpointStyle, resolve_endpoint_style
from unifi_motion.protect.errors import ApiError, AuthError, ProtectClientError
from unifi_motion.protect.events import MotionEventSource
from unifi_motion.protect.models import Camera, MotionEvent
from unifi_motion.protect.session import Session, SessionManager


class ConnectionState(Enum):
    """Enumeration of possible client connection states.

    Attributes:
        DISCONNECTED: Client is not connected to the controller.
        CONNECTING: Client is in the process of connecting.
        CONNECTED: Client is connected and authenticated.
        RECONNECTING: Client lost its session and will re-authenticate.
        ERROR: Client encountered an error and cannot connect.
    """

    DISCONNECTED = 'disconnected'
    CONNECTING = 'connecting'
    CONNECTED = 'connected'
    RECONNECTING = 'reconnecting'
    ERROR = 'error'


class UniFiProtectClient:
    """Async client for polling a UniFi Protect controller for motion.

    Attributes:
        config: The configuration for this client instance.
        state: Current connection state of the client.

    Example:
        >>> async with UniFiProtectClient(config) as client:
        ...     events = await client.get_latest_motion_events()
        ...     for event in events:
        ...         print(f'{event.camera.name}: {event.score}%')
    """

    def __init__(
        self,
        config: MotionConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Bridge configuration.
            transport: Optional httpx transport (used by tests).
        """
        self._config = config
        self._transport = transport
        self._http: httpx.AsyncClient | None = None
        self._state = ConnectionState.DISCONNECTED
        self._style: EndpointStyle | None = None
        self._session: Session | None = None
        self._cameras: list[Camera] = []
        self._cameras_refreshed_at: float | None = None
        self._cameras_stale = False
        self._sessions: SessionManager | None = None
        self._directory: CameraDirectory | None = None
        self._events: MotionEventSource | None = None
        self._lock = asyncio.Lock()

    @property
    def config(self) -> MotionConfig:
        """Get the client configuration."""
        return self._config

    @property
    def state(self) -> ConnectionState:
        """Get the current connection state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        """Check if the client has an HTTP connection and a resolved dialect."""
        return self._http is not None and self._style is not None

    @property
    def http(self) -> httpx.AsyncClient:
        """The underlying HTTP client.

        Raises:
            ProtectClientError: If the client is not connected.
        """
        if self._http is None:
            raise ProtectClientError('Client not connected')
        return self._http

    @property
    def style(self) -> EndpointStyle | None:
        """The controller dialect, once probed."""
        return self._style

    @property
    def session(self) -> Session | None:
        """The current session, if any."""
        return self._session

    @property
    def cameras(self) -> list[Camera]:
        """Cameras from the last enumeration."""
        return list(self._cameras)

    @property
    def cameras_due(self) -> bool:
        """Check whether the camera list should be re-enumerated."""
        if self._cameras_stale or self._cameras_refreshed_at is None:
            return True
        age = time.monotonic() - self._cameras_refreshed_at
        return age >= self._config.camera_refresh_interval

    def get_camera(self, camera_id: str) -> Camera | None:
        """Get a camera by its ID."""
        for camera in self._cameras:
            if camera.id == camera_id:
                return camera
        return None

    async def connect(self) -> None:
        """Probe the controller, authenticate and enumerate cameras.

        Raises:
            ProbeError: If the controller cannot be reached.
            ConfigError: If credentials are missing.
            AuthError: If authentication fails.
            ApiError: If the camera list cannot be retrieved.
        """
        if self.is_connected:
            logger.debug('Already connected to Protect controller')
            return

        self._state = ConnectionState.CONNECTING
        logger.info(f'Connecting to Protect controller at {self._config.controller}')

        self._http = httpx.AsyncClient(
            verify=self._config.verify_ssl,
            timeout=httpx.Timeout(self._config.request_timeout),
            transport=self._transport,
        )
        retry_kwargs = {
            'max_retries': self._config.max_retries,
            'initial_delay': self._config.initial_backoff_delay,
            'timeout': self._config.request_timeout,
        }
        self._sessions = SessionManager(self._http, **retry_kwargs)
        self._directory = CameraDirectory(self._http, debug=self._config.debug, **retry_kwargs)
        self._events = MotionEventSource(
            self._http,
            poll_interval=self._config.motion_interval,
            min_score=self._config.motion_score,
            debug=self._config.debug,
            **retry_kwargs,
        )

        try:
            self._style = await resolve_endpoint_style(
                self._http, self._config.controller, timeout=self._config.request_timeout
            )
            await self._ensure_session()
            await self.refresh_cameras()
        except ProtectClientError as e:
            logger.error(f'Connection failed: {e}')
            await self.close()
            self._state = ConnectionState.ERROR
            raise

        self._state = ConnectionState.CONNECTED
        logger.info(f'Connected to Protect controller ({len(self._cameras)} cameras)')

    async def close(self) -> None:
        """Close the HTTP connection and forget the session."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None
            logger.info('Disconnected from Protect controller')
        self._style = None
        self._session = None
        self._cameras_refreshed_at = None
        self._state = ConnectionState.DISCONNECTED

    def invalidate_session(self) -> None:
        """Drop the current session so the next call re-authenticates."""
        if self._session is not None:
            logger.warning('Dropping controller session, will re-authenticate')
        self._session = None
        self._cameras_stale = True
        if self._state == ConnectionState.CONNECTED:
            self._state = ConnectionState.RECONNECTING

    async def _ensure_session(self) -> Session:
        """Return a valid session, authenticating when needed."""
        if self._sessions is None or self._style is None:
            raise ProtectClientError('Client not connected')

        async with self._lock:
            if self._session is None or not self._sessions.is_valid(self._session):
                self._session = await self._sessions.authenticate(
                    self._config.username, self._config.password, self._style
                )
                if self._state == ConnectionState.RECONNECTING:
                    self._state = ConnectionState.CONNECTED
            return self._session

    async def refresh_cameras(self) -> list[Camera]:
        """Re-enumerate the cameras of the controller.

        Returns:
            The refreshed camera list.

        Raises:
            AuthError: If authentication fails.
            ApiError: If the bootstrap is malformed.
        """
        if self._directory is None or self._style is None:
            raise ProtectClientError('Client not connected')

        session = await self._ensure_session()
        try:
            cameras = await self._directory.enumerate(session, self._style)
        except (AuthError, ApiError):
            self.invalidate_session()
            raise

        known = {camera.id for camera in self._cameras}
        added = [camera.name for camera in cameras if camera.id not in known]
        if self._cameras_refreshed_at is not None and added:
            logger.info(f'New cameras found: {", ".join(added)}')
        self._cameras = cameras
        self._cameras_refreshed_at = time.monotonic()
        self._cameras_stale = False
        return self.cameras

    async def get_latest_motion_events(self) -> list[MotionEvent]:
        """Fetch the latest motion event of every known camera.

        The camera list is re-enumerated first when it is due. A failed
        re-enumeration keeps the previous list.

        Returns:
            One correlated event per camera that has recent motion.

        Raises:
            AuthError: If (re-)authentication fails or the session is
                rejected. The session is dropped so the next call logs in.
            ApiError: If the events response is malformed.
        """
        if self._events is None or self._style is None:
            raise ProtectClientError('Client not connected')

        if self.cameras_due:
            try:
                await self.refresh_cameras()
            except (AuthError, ApiError) as e:
                logger.warning(f'Cannot refresh cameras, keeping {len(self._cameras)}: {e}')

        session = await self._ensure_session()
        try:
            return await self._events.fetch_latest_per_camera(
                self._cameras, session, self._style
            )
        except (AuthError, ApiError):
            self.invalidate_session()
            raise

    async def __aenter__(self) -> UniFiProtectClient:
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Async context manager exit."""
        await self.close()


@asynccontextmanager
async def create_client(
    config: MotionConfig,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AsyncIterator[UniFiProtectClient]:
    """Create and connect a UniFi Protect client.

    Args:
        config: Bridge configuration.
        transport: Optional httpx transport.

    Yields:
        A connected UniFiProtectClient instance.

    Example:
        >>> async with create_client(config) as client:
        ...     print(len(client.cameras))
    """
    client = UniFiProtectClient(config, transport=transport)
    try:
        await client.connect()
        yield client
    finally:
        await client.close()
