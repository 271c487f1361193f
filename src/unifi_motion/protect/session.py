"""Session lifecycle for the UniFi Protect controller.

Sessions are pre-expired client-side after ``SESSION_TTL``: the
controller's own expiry is not observable the same way across both
dialects, so the client re-authenticates before the controller would
start rejecting requests.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Annotated

import httpx
from loguru import logger  # type: ignore[import-untyped]
from pydantic import BaseModel, Field, SecretStr

from unifi_motion.protect.endpoint import EndpointStyle
from unifi_motion.protect.errors import AuthError, ConfigError, TransportError
from unifi_motion.protect.retry import with_backoff


SESSION_TTL = timedelta(hours=12)


class Session(BaseModel):
    """An authenticated controller session.

    Attributes:
        credential: Opaque token taken from the ``authorization`` header.
        created_at: When the session was created.
    """

    credential: Annotated[str, Field(min_length=1, description='Session token')]
    created_at: Annotated[
        datetime,
        Field(default_factory=lambda: datetime.now(timezone.utc), description='Creation time'),
    ]

    model_config = {'extra': 'forbid', 'frozen': True}

    def age(self, now: datetime | None = None) -> timedelta:
        """Time elapsed since the session was created."""
        return (now or datetime.now(timezone.utc)) - self.created_at


class SessionManager:
    """Authenticates against the controller and tracks session validity.

    Example:
        >>> manager = SessionManager(http, max_retries=3, initial_delay=0.1)
        >>> session = await manager.authenticate('admin', password, style)
        >>> manager.is_valid(session)
        True
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        max_retries: int = 3,
        initial_delay: float = 0.1,
        timeout: float = 1.0,
    ) -> None:
        """Initialize the session manager.

        Args:
            http: HTTP client used for authentication requests.
            max_retries: Retries for transient failures.
            initial_delay: First retry delay in seconds.
            timeout: Per-request timeout in seconds.
        """
        self._http = http
        self._max_retries = max_retries
        self._initial_delay = initial_delay
        self._timeout = timeout

    async def authenticate(
        self,
        username: str,
        password: str | SecretStr,
        style: EndpointStyle,
    ) -> Session:
        """Log in and return a new session.

        Args:
            username: Controller username.
            password: Controller password.
            style: Dialect of the controller.

        Returns:
            A freshly created Session.

        Raises:
            ConfigError: If username or password is empty.
            AuthError: If the controller rejects the credentials, keeps
                failing, or returns no session token.
        """
        if isinstance(password, SecretStr):
            password = password.get_secret_value()
        if not username or not password:
            raise ConfigError('Username and password should be filled in')

        try:
            response = await with_backoff(
                lambda: self._http.post(
                    style.login_url,
                    headers=style.auth_headers(),
                    json={'username': username, 'password': password},
                    timeout=self._timeout,
                ),
                self._max_retries,
                self._initial_delay,
                description='authentication',
            )
        except TransportError as e:
            logger.error(f'Authentication failed: {e}')
            raise AuthError(
                f'Failed to authenticate with Protect controller: {e}',
                original_error=e,
                status_code=e.status_code,
            )

        if response.status_code in (401, 403):
            logger.error(f'Authentication rejected: HTTP {response.status_code}')
            raise AuthError(
                'Controller rejected the credentials',
                status_code=response.status_code,
            )
        if response.is_error:
            raise AuthError(
                f'Authentication request failed: HTTP {response.status_code}',
                status_code=response.status_code,
            )

        authorization = response.headers.get('authorization')
        if not authorization:
            raise AuthError('Authentication response carries no authorization header')

        logger.info('Authenticated, returning session')
        return Session(credential=authorization)

    def is_valid(self, session: Session | None, now: datetime | None = None) -> bool:
        """Check whether a session is still within its TTL.

        Args:
            session: The session to check, or None.
            now: Reference time (defaults to the current UTC time).

        Returns:
            True iff ``now - session.created_at < SESSION_TTL``.
        """
        if session is None:
            logger.warning('No previous session found, a new session must be created')
            return False
        if session.age(now) < SESSION_TTL:
            return True
        logger.warning('Session expired, a new session must be created')
        return False
