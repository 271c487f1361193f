"""Controller dialect detection for UniFi Protect.

UniFi Protect controllers speak one of two API dialects:

- **UniFi OS** (UDM, UNVR, Cloud Key Gen2+ on UniFi OS): the controller
  answers a plain GET of its base URL with an ``X-CSRF-Token`` header.
  Protect is proxied under ``/proxy/protect`` and every request carries
  that token instead of a bearer credential.
- **Legacy** (standalone Protect): authentication and API share the base
  URL and requests use ``Authorization: Bearer <token>``.

The dialect is probed once at startup and captured in an immutable
``EndpointStyle`` which builds URLs and headers for the rest of the
client.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated

import httpx
from loguru import logger  # type: ignore[import-untyped]
from pydantic import BaseModel, Field

from unifi_motion.protect.errors import ProbeError


if TYPE_CHECKING:
    from unifi_motion.protect.session import Session


CSRF_HEADER = 'X-CSRF-Token'
PROBE_TIMEOUT = 1.0


class EndpointStyle(BaseModel):
    """URL and header strategy for one controller dialect.

    Attributes:
        auth_url: Base URL for authentication requests.
        api_url: Base URL for Protect API requests.
        is_legacy: True for the legacy dialect, False for UniFi OS.
        csrf_token: CSRF token sent with every UniFi OS request.
    """

    auth_url: Annotated[str, Field(min_length=1, description='Authentication base URL')]
    api_url: Annotated[str, Field(min_length=1, description='Protect API base URL')]
    is_legacy: Annotated[bool, Field(description='Legacy (bearer token) dialect')]
    csrf_token: Annotated[str | None, Field(default=None, description='UniFi OS CSRF token')]

    model_config = {'extra': 'forbid', 'frozen': True}

    @classmethod
    def legacy(cls, base_url: str) -> EndpointStyle:
        """Build the legacy dialect for ``base_url``."""
        return cls(auth_url=base_url, api_url=base_url, is_legacy=True)

    @classmethod
    def unifi_os(cls, base_url: str, csrf_token: str) -> EndpointStyle:
        """Build the UniFi OS dialect for ``base_url``."""
        return cls(
            auth_url=base_url,
            api_url=f'{base_url}/proxy/protect',
            is_legacy=False,
            csrf_token=csrf_token,
        )

    @property
    def login_url(self) -> str:
        """URL to POST credentials to."""
        if self.is_legacy:
            return f'{self.auth_url}/api/auth'
        return f'{self.auth_url}/api/auth/login'

    @property
    def bootstrap_url(self) -> str:
        """URL of the bootstrap (device inventory) endpoint."""
        return f'{self.api_url}/api/bootstrap'

    @property
    def events_url(self) -> str:
        """URL of the events endpoint."""
        return f'{self.api_url}/api/events'

    def auth_headers(self) -> dict[str, str]:
        """Headers for the authentication request."""
        headers = {'Content-Type': 'application/json'}
        if not self.is_legacy and self.csrf_token:
            headers[CSRF_HEADER] = self.csrf_token
        return headers

    def api_headers(self, session: Session) -> dict[str, str]:
        """Headers for an authenticated API request.

        Args:
            session: The current session.

        Returns:
            Bearer authorization for the legacy dialect, the CSRF token
            for UniFi OS.
        """
        headers = {'Content-Type': 'application/json'}
        if self.is_legacy:
            headers['Authorization'] = f'Bearer {session.credential}'
        elif self.csrf_token:
            headers[CSRF_HEADER] = self.csrf_token
        return headers


async def resolve_endpoint_style(
    http: httpx.AsyncClient,
    base_url: str,
    timeout: float = PROBE_TIMEOUT,
) -> EndpointStyle:
    """Probe the controller once to determine its dialect.

    Args:
        http: HTTP client used for the probe.
        base_url: Controller base URL without trailing slash.
        timeout: Probe timeout in seconds.

    Returns:
        The EndpointStyle for the controller.

    Raises:
        ProbeError: If the controller cannot be reached.
    """
    base_url = base_url.rstrip('/')
    try:
        response = await http.get(base_url, timeout=timeout)
    except httpx.HTTPError as e:
        logger.error(f'Cannot probe controller at {base_url}: {e}')
        raise ProbeError(f'Failed to probe controller at {base_url}: {e}', original_error=e)

    csrf_token = response.headers.get(CSRF_HEADER)
    if csrf_token:
        logger.info(f'Controller at {base_url} runs UniFi OS')
        return EndpointStyle.unifi_os(base_url, csrf_token)

    logger.info(f'Controller at {base_url} uses the legacy Protect API')
    return EndpointStyle.legacy(base_url)
