"""Camera enumeration from the controller bootstrap."""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger  # type: ignore[import-untyped]
from pydantic import ValidationError

from unifi_motion.protect.endpoint import EndpointStyle
from unifi_motion.protect.errors import ApiError, AuthError, TransportError
from unifi_motion.protect.models import Camera
from unifi_motion.protect.retry import with_backoff
from unifi_motion.protect.session import Session


async def fetch_json(
    http: httpx.AsyncClient,
    url: str,
    session: Session,
    style: EndpointStyle,
    *,
    params: dict[str, Any] | None = None,
    max_retries: int,
    initial_delay: float,
    timeout: float,
    description: str,
) -> Any:
    """GET an authenticated API endpoint and decode its JSON body.

    Args:
        http: HTTP client.
        url: Endpoint URL.
        session: Current session.
        style: Controller dialect.
        params: Query parameters.
        max_retries: Retries for transient failures.
        initial_delay: First retry delay in seconds.
        timeout: Per-request timeout in seconds.
        description: Label used in log and error messages.

    Returns:
        The decoded JSON body.

    Raises:
        AuthError: On 401/403.
        ApiError: On other error statuses, exhausted retries or a body
            that is not JSON.
    """
    try:
        response = await with_backoff(
            lambda: http.get(
                url,
                headers=style.api_headers(session),
                params=params,
                timeout=timeout,
            ),
            max_retries,
            initial_delay,
            description=description,
        )
    except TransportError as e:
        raise ApiError(f'{description} failed: {e}', original_error=e, status_code=e.status_code)

    if response.status_code in (401, 403):
        raise AuthError(
            f'{description} unauthorized: HTTP {response.status_code}',
            status_code=response.status_code,
        )
    if response.is_error:
        raise ApiError(
            f'{description} failed: HTTP {response.status_code}',
            status_code=response.status_code,
        )

    try:
        return response.json()
    except ValueError as e:
        raise ApiError(f'{description} returned invalid JSON', original_error=e)


class CameraDirectory:
    """Enumerates the cameras known to the controller.

    Attributes:
        debug: Log every raw camera payload.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        max_retries: int = 3,
        initial_delay: float = 0.1,
        timeout: float = 1.0,
        debug: bool = False,
    ) -> None:
        """Initialize the directory.

        Args:
            http: HTTP client.
            max_retries: Retries for transient failures.
            initial_delay: First retry delay in seconds.
            timeout: Per-request timeout in seconds.
            debug: Log every raw camera payload.
        """
        self._http = http
        self._max_retries = max_retries
        self._initial_delay = initial_delay
        self._timeout = timeout
        self.debug = debug

    async def enumerate(self, session: Session, style: EndpointStyle) -> list[Camera]:
        """Fetch the bootstrap and return its cameras.

        Args:
            session: Current session.
            style: Controller dialect.

        Returns:
            Cameras with their playable streams sorted ascending by area.

        Raises:
            ApiError: If the bootstrap has no ``cameras`` field or a camera
                entry cannot be parsed. Usually means the session is no
                longer accepted; the caller should re-authenticate.
            AuthError: If the controller rejects the session.
        """
        body = await fetch_json(
            self._http,
            style.bootstrap_url,
            session,
            style,
            max_retries=self._max_retries,
            initial_delay=self._initial_delay,
            timeout=self._timeout,
            description='bootstrap',
        )

        if not isinstance(body, dict) or not isinstance(body.get('cameras'), list):
            raise ApiError('Bootstrap response has no cameras field')

        logger.info('Cameras retrieved, enumerating motion sensors')
        cameras: list[Camera] = []
        for raw in body['cameras']:
            if self.debug:
                logger.debug(f'Bootstrap camera: {raw}')
            try:
                cameras.append(Camera.from_api(raw))
            except (KeyError, TypeError, AttributeError, ValidationError) as e:
                raise ApiError(f'Malformed camera in bootstrap: {e}', original_error=e)
        return cameras
