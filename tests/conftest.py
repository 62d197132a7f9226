"""Pytest configuration and fixtures for tm_fieldset tests."""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from multidict import CIMultiDict

from tm_fieldset.protobuf_util import default_schema
from tm_fieldset.protocol import obfuscate
from tm_fieldset.session import Credential

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=UTC)
SESSION_COOKIE = 'user="abc123token"; Expires=Sun, 18 Oct 2026 13:00:00 GMT; Path=/'

# Servers pick their own key; any value other than the client default works
SERVER_KEY = 42


@pytest.fixture
def mock_session() -> MagicMock:
    """Create a mock aiohttp ClientSession."""
    import aiohttp

    return MagicMock(spec=aiohttp.ClientSession)


@pytest.fixture
def credential() -> Credential:
    return Credential(
        cookie_value="abc123token",
        expires_at=datetime(2026, 10, 18, 13, 0, tzinfo=UTC),
    )


def create_mock_response(
    status: int = 200,
    cookies: list[str] | None = None,
    text_data: str | None = None,
) -> AsyncMock:
    """Create a configured mock response.

    Args:
        status: HTTP status code
        cookies: Values of the Set-Cookie headers, in order
        text_data: Data to return from text() call

    Returns:
        Configured AsyncMock response
    """
    response = AsyncMock()
    response.status = status
    response.headers = CIMultiDict(("Set-Cookie", c) for c in cookies or [])

    if text_data is not None:
        response.text.return_value = text_data

    response.__aenter__.return_value = response
    response.__aexit__.return_value = None

    return response


def notice_frame(
    notice_id: int | None, field_id: int | None = None, *, key: int = SERVER_KEY
) -> bytes:
    """Build an obfuscated FieldSetNotice frame as the server sends it."""
    message = default_schema().notice()
    if notice_id is not None:
        message.id = notice_id
    if field_id is not None:
        message.fieldId = field_id
    return obfuscate(message.SerializeToString(), key)
