"""WebSocket client wrapper for the field set socket."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from websockets.asyncio.client import ClientConnection
from websockets.exceptions import ConnectionClosed, WebSocketException

from .errors import TMConnectionError
from .ws import connect_websocket

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

_LOGGER = logging.getLogger(__name__)


class TMWsMessageType(Enum):
    """Normalized WebSocket message types."""

    BINARY = "binary"
    TEXT = "text"
    CLOSED = "closed"
    ERROR = "error"


@dataclass(frozen=True)
class TMWsMessage:
    """Normalized WebSocket message payload."""

    type: TMWsMessageType
    data: bytes | str | None = None


class TMWsClient:
    """Wrapper around websockets library for the field set socket."""

    def __init__(self) -> None:
        self._ws: ClientConnection | None = None

    @property
    def connected(self) -> bool:
        return self._ws is not None

    async def connect(
        self,
        address: str,
        *,
        path: str,
        cookie: str | None = None,
        ping_interval: int | None = 20,
        timeout: float = 15.0,
    ) -> None:
        """Connect to the field set websocket."""
        self._ws = await connect_websocket(
            address,
            path=path,
            cookie=cookie,
            ping_interval=ping_interval,
            timeout=timeout,
        )

    async def close(self) -> None:
        """Close the websocket connection."""
        if self._ws is not None:
            ws, self._ws = self._ws, None
            await ws.close()

    async def send_bytes(self, data: bytes) -> None:
        """Send a binary frame.

        Raises:
            TMConnectionError: If not connected or the write fails
        """
        if self._ws is None:
            raise TMConnectionError("WebSocket is not connected")
        try:
            await self._ws.send(data)
        except (ConnectionClosed, OSError) as err:
            raise TMConnectionError("WebSocket send failed") from err

    def __aiter__(self) -> AsyncIterator[TMWsMessage]:
        if self._ws is None:
            raise TMConnectionError("WebSocket is not connected")
        return self._iter_messages()

    async def _iter_messages(self) -> AsyncIterator[TMWsMessage]:
        if self._ws is None:
            raise TMConnectionError("WebSocket is not connected")

        try:
            async for msg in self._ws:
                yield self._normalize_message(msg)
        except ConnectionClosed:
            yield TMWsMessage(type=TMWsMessageType.CLOSED)
        except (WebSocketException, OSError) as err:
            _LOGGER.debug("WebSocket receive failed: %s", err)
            yield TMWsMessage(type=TMWsMessageType.ERROR)
        else:
            # Normal iteration completion means the peer closed gracefully.
            yield TMWsMessage(type=TMWsMessageType.CLOSED)

    @staticmethod
    def _normalize_message(msg: Any) -> TMWsMessage:
        """Normalize websockets frames into TMWsMessage."""
        if isinstance(msg, (bytes, bytearray, memoryview)):
            return TMWsMessage(TMWsMessageType.BINARY, bytes(msg))
        if isinstance(msg, str):
            return TMWsMessage(TMWsMessageType.TEXT, msg)
        return TMWsMessage(TMWsMessageType.TEXT, str(msg))
