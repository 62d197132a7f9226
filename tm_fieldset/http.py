"""HTTP client for Tournament Manager admin endpoints."""

from __future__ import annotations

import aiohttp

from .errors import (
    TMConnectionError,
    TMResponseError,
    TMTimeout,
)

ADMIN_USER = "admin"
LOGIN_PATH = "/admin/login"


class TMHttpClient:
    """HTTP client wrapper for Tournament Manager admin endpoints."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        address: str,
        *,
        timeout: float = 10.0,
    ) -> None:
        self._session = session
        self._address = address
        self._timeout = timeout

    def _url(self, path: str) -> str:
        return f"http://{self._address}{path}"

    async def login(self, password: str, *, user: str = ADMIN_USER) -> str:
        """Submit the admin login form.

        The server answers with a redirect carrying the session cookie, so
        redirects are not followed.

        Args:
            password: Tournament Manager admin password
            user: Login identity, always "admin" on current servers

        Returns:
            First ``Set-Cookie`` header value of the response

        Raises:
            TMResponseError: If the server returns an error status or no cookie
            TMTimeout: If the request times out
            TMConnectionError: If the network request fails
        """
        url = self._url(LOGIN_PATH)
        form = {"user": user, "password": password, "submit": ""}
        try:
            async with self._session.post(
                url,
                data=form,
                allow_redirects=False,
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            ) as resp:
                if resp.status >= 400:
                    raise TMResponseError(
                        resp.status, f"Login failed with HTTP {resp.status}"
                    )
                cookies = resp.headers.getall("Set-Cookie", [])
                if not cookies:
                    raise TMResponseError(
                        resp.status, "Login response carries no session cookie"
                    )
                return cookies[0]
        except TimeoutError as err:
            raise TMTimeout("Login request timed out") from err
        except aiohttp.ClientError as err:
            raise TMConnectionError("Login request failed") from err
