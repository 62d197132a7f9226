"""WebSocket helpers for the Tournament Manager field set socket."""

from __future__ import annotations

import asyncio

import websockets
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import (
    InvalidHandshake,
    InvalidStatus,
    InvalidURI,
    WebSocketException,
)

from .errors import (
    TMConnectionError,
    TMHandshakeError,
    TMTimeout,
)


def fieldset_path(field_set: int) -> str:
    """Path of the socket endpoint for a field set."""
    return f"/fieldsets/{field_set}"


async def connect_websocket(
    address: str,
    *,
    path: str,
    cookie: str | None = None,
    ping_interval: int | None = 20,
    timeout: float = 15.0,
) -> ClientConnection:
    """Connect to a Tournament Manager WebSocket endpoint.

    Args:
        address: Server host, optionally with ":port"
        path: WebSocket path, e.g. /fieldsets/1
        cookie: Value of the ``Cookie`` request header
        ping_interval: Interval for ping frames
        timeout: Connection timeout

    Raises:
        TMTimeout: If the connection times out
        TMHandshakeError: If the server refuses the upgrade
        TMConnectionError: If the connection fails
    """
    ws_url = f"ws://{address}{path}"
    headers = {"Cookie": cookie} if cookie else None
    try:
        return await asyncio.wait_for(
            websockets.connect(
                ws_url,
                additional_headers=headers,
                ping_interval=ping_interval,
                close_timeout=5,
                max_size=None,
            ),
            timeout=timeout,
        )
    except TimeoutError as err:
        raise TMTimeout("WebSocket connection timed out") from err
    except InvalidStatus as err:
        status = err.response.status_code
        raise TMHandshakeError(
            f"WebSocket upgrade refused with HTTP {status}", status=status
        ) from err
    except (InvalidHandshake, InvalidURI) as err:
        raise TMHandshakeError("WebSocket handshake failed") from err
    except (OSError, WebSocketException) as err:
        raise TMConnectionError("WebSocket connection failed") from err
