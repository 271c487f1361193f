"""Unit tests for controller session management.

Tests cover:
- Authentication for both dialects
- Credential and response validation
- Session TTL checks
"""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import httpx
import pytest
from pydantic import SecretStr

from unifi_motion.protect.endpoint import CSRF_HEADER, EndpointStyle
from unifi_motion.protect.errors import AuthError, ConfigError
from unifi_motion.protect.session import SESSION_TTL, Session, SessionManager


BASE_URL = 'https://192.168.1.1'


def make_manager(
    handler: Callable[[httpx.Request], httpx.Response],
) -> tuple[httpx.AsyncClient, SessionManager]:
    """Create a SessionManager on top of a mock transport."""
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return http, SessionManager(http, max_retries=2, initial_delay=0)


class TestAuthenticate:
    """Test suite for SessionManager.authenticate()."""

    @pytest.mark.asyncio
    async def test_unifi_os_login(self) -> None:
        """Test the UniFi OS login request and resulting session."""
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, headers={'Authorization': 'session-token'})

        http, manager = make_manager(handler)
        style = EndpointStyle.unifi_os(BASE_URL, 'csrf-1')
        async with http:
            session = await manager.authenticate('admin', SecretStr('secret'), style)

        assert session.credential == 'session-token'
        assert len(requests) == 1
        request = requests[0]
        assert request.method == 'POST'
        assert str(request.url) == f'{BASE_URL}/api/auth/login'
        assert request.headers[CSRF_HEADER] == 'csrf-1'
        assert json.loads(request.content) == {'username': 'admin', 'password': 'secret'}

    @pytest.mark.asyncio
    async def test_legacy_login(self) -> None:
        """Test that the legacy dialect logs in without a CSRF token."""
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, headers={'Authorization': 'legacy-token'})

        http, manager = make_manager(handler)
        async with http:
            session = await manager.authenticate('admin', 'secret', EndpointStyle.legacy(BASE_URL))

        assert session.credential == 'legacy-token'
        assert str(requests[0].url) == f'{BASE_URL}/api/auth'
        assert CSRF_HEADER not in requests[0].headers

    @pytest.mark.asyncio
    async def test_empty_credentials_raise_config_error(self) -> None:
        """Test that no request is made without credentials."""
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(200)

        http, manager = make_manager(handler)
        async with http:
            with pytest.raises(ConfigError, match='should be filled in'):
                await manager.authenticate('admin', '', EndpointStyle.legacy(BASE_URL))

        assert calls == 0

    @pytest.mark.asyncio
    async def test_rejected_credentials_not_retried(self) -> None:
        """Test that 401 raises AuthError after a single attempt."""
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(401)

        http, manager = make_manager(handler)
        async with http:
            with pytest.raises(AuthError) as exc_info:
                await manager.authenticate('admin', 'wrong', EndpointStyle.legacy(BASE_URL))

        assert calls == 1
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_missing_authorization_header(self) -> None:
        """Test that a successful response without token raises AuthError."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200)

        http, manager = make_manager(handler)
        async with http:
            with pytest.raises(AuthError, match='authorization header'):
                await manager.authenticate('admin', 'secret', EndpointStyle.legacy(BASE_URL))

    @pytest.mark.asyncio
    async def test_unreachable_controller(self) -> None:
        """Test that exhausted transport retries raise AuthError."""
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            raise httpx.ConnectError('refused', request=request)

        http, manager = make_manager(handler)
        async with http:
            with pytest.raises(AuthError) as exc_info:
                await manager.authenticate('admin', 'secret', EndpointStyle.legacy(BASE_URL))

        assert calls == 3
        assert exc_info.value.original_error is not None

    @pytest.mark.asyncio
    async def test_transient_failure_then_success(self) -> None:
        """Test that a 503 followed by success authenticates."""
        responses = iter([httpx.Response(503), httpx.Response(200, headers={'Authorization': 't'})])

        def handler(request: httpx.Request) -> httpx.Response:
            return next(responses)

        http, manager = make_manager(handler)
        async with http:
            session = await manager.authenticate('admin', 'secret', EndpointStyle.legacy(BASE_URL))

        assert session.credential == 't'


class TestIsValid:
    """Test suite for SessionManager.is_valid()."""

    @pytest.fixture
    def manager(self) -> SessionManager:
        """Create a SessionManager that never issues requests."""
        return SessionManager(MagicMock(spec=httpx.AsyncClient))

    def test_no_session(self, manager: SessionManager) -> None:
        """Test that a missing session is invalid."""
        assert manager.is_valid(None) is False

    def test_fresh_session(self, manager: SessionManager) -> None:
        """Test that a new session is valid."""
        assert manager.is_valid(Session(credential='t')) is True

    def test_session_just_before_ttl(self, manager: SessionManager) -> None:
        """Test a session one second before expiry."""
        created = datetime(2024, 1, 1, tzinfo=timezone.utc)
        session = Session(credential='t', created_at=created)

        assert manager.is_valid(session, now=created + SESSION_TTL - timedelta(seconds=1)) is True

    def test_session_at_ttl(self, manager: SessionManager) -> None:
        """Test that a session expires exactly at the TTL."""
        created = datetime(2024, 1, 1, tzinfo=timezone.utc)
        session = Session(credential='t', created_at=created)

        assert manager.is_valid(session, now=created + SESSION_TTL) is False

    def test_ttl_is_twelve_hours(self) -> None:
        """Test the session lifetime."""
        assert SESSION_TTL == timedelta(hours=12)

    def test_session_one_millisecond_past_ttl(self, manager: SessionManager) -> None:
        """Test that a session 12h and 1ms old is invalid while 11h old is valid."""
        now = datetime(2024, 1, 1, 12, tzinfo=timezone.utc)
        expired = Session(credential='t', created_at=now - SESSION_TTL - timedelta(milliseconds=1))
        recent = Session(credential='t', created_at=now - timedelta(hours=11))

        assert manager.is_valid(expired, now=now) is False
        assert manager.is_valid(recent, now=now) is True
