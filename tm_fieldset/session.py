"""Admin session management for Tournament Manager.

The field set socket only accepts clients presenting an admin session cookie.
The cookie is obtained by submitting the admin login form and stays valid
until the expiry the server puts in the ``Set-Cookie`` header (about an hour).
``SessionManager`` keeps the current cookie and logs in again when it
expires.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime

import aiohttp

from .errors import AuthenticationError, TMClientError
from .http import TMHttpClient

_LOGGER = logging.getLogger(__name__)

COOKIE_NAME = "user"


@dataclass(frozen=True)
class Credential:
    """Admin session cookie and its server-provided expiry."""

    cookie_value: str = field(repr=False)
    expires_at: datetime

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check whether the cookie must be renewed."""
        return (now or datetime.now(tz=UTC)) >= self.expires_at

    @property
    def cookie_header(self) -> str:
        """Value for the ``Cookie`` header of the socket request."""
        return f'{COOKIE_NAME}="{self.cookie_value}"'


def _parse_expiry(value: str) -> datetime:
    try:
        expires_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        # Netscape cookie dates use dashes: Sat, 18-Oct-2026 12:00:00 GMT
        expires_at = parsedate_to_datetime(value.replace("-", " "))
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=UTC)
    return expires_at.astimezone(UTC)


def parse_session_cookie(header: str) -> Credential:
    """Parse the login response ``Set-Cookie`` value.

    The token is quoted in the first segment (``user="<token>"``) and the
    expiry is the second ``;`` separated attribute (``Expires=<date>``).

    Raises:
        AuthenticationError: If the token or expiry cannot be extracted
    """
    segments = header.split(";")

    quoted = segments[0].split('"')
    if len(quoted) < 3 or not quoted[1]:
        raise AuthenticationError("Session cookie has no quoted token")
    token = quoted[1]

    if len(segments) < 2:
        raise AuthenticationError("Session cookie has no expiry attribute")
    name, sep, value = segments[1].partition("=")
    value = value.strip()
    if not sep or not value:
        raise AuthenticationError(
            f"Session cookie attribute {name.strip()!r} has no value"
        )

    try:
        expires_at = _parse_expiry(value)
    except (TypeError, ValueError) as err:
        raise AuthenticationError(f"Unparsable cookie expiry: {value!r}") from err

    return Credential(cookie_value=token, expires_at=expires_at)


class SessionManager:
    """Owns the admin credential and renews it on expiry.

    Usage:
        manager = SessionManager("192.168.1.30", "password")
        credential = await manager.ensure_credential()
    """

    def __init__(
        self,
        address: str,
        password: str,
        *,
        session: aiohttp.ClientSession | None = None,
        timeout: float = 10.0,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize session manager.

        Args:
            address: Server host, optionally with ":port"
            password: Admin password
            session: Shared aiohttp session. A short-lived one is opened per
                login when omitted.
            timeout: Login request timeout (seconds)
            clock: Source of the current UTC time
        """
        self.address = address
        self._password = password
        self._session = session
        self._timeout = timeout
        self._clock = clock or (lambda: datetime.now(tz=UTC))

        self._credential: Credential | None = None
        self._lock = asyncio.Lock()

    @property
    def credential(self) -> Credential | None:
        """Currently held credential, possibly expired."""
        return self._credential

    def _is_valid(self) -> bool:
        return self._credential is not None and not self._credential.is_expired(
            self._clock()
        )

    async def ensure_credential(self) -> Credential:
        """Return a valid credential, logging in if needed.

        Concurrent callers share a single login.

        Raises:
            AuthenticationError: If the login fails
        """
        if self._is_valid():
            return self._credential  # type: ignore[return-value]

        async with self._lock:
            # Another caller may have logged in while we waited
            if self._is_valid():
                return self._credential  # type: ignore[return-value]
            self._credential = await self._authenticate()
            return self._credential

    def invalidate(self) -> None:
        """Drop the held credential so the next call logs in again."""
        if self._credential is not None:
            _LOGGER.debug("[%s] Session credential invalidated", self.address)
        self._credential = None

    async def _authenticate(self) -> Credential:
        _LOGGER.info("Authenticating with TM server at http://%s", self.address)

        try:
            if self._session is not None:
                header = await self._login(self._session)
            else:
                async with aiohttp.ClientSession() as session:
                    header = await self._login(session)
        except TMClientError as err:
            raise AuthenticationError(f"Login to {self.address} failed: {err}") from err

        credential = parse_session_cookie(header)
        _LOGGER.info(
            "[%s] Authenticated, session expires %s",
            self.address,
            credential.expires_at.isoformat(),
        )
        return credential

    async def _login(self, session: aiohttp.ClientSession) -> str:
        client = TMHttpClient(session, self.address, timeout=self._timeout)
        return await client.login(self._password)
