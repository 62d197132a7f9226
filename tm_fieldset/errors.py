"""Client error types for Tournament Manager field set interactions."""

from __future__ import annotations


class TMClientError(Exception):
    """Base error for Tournament Manager client failures."""


class TMConfigError(TMClientError):
    """Client configuration is missing or malformed."""


class TMTimeout(TMClientError):
    """Timeout while communicating with the server."""


class TMConnectionError(TMClientError):
    """Network connection to the server failed."""


class TMHandshakeError(TMClientError):
    """WebSocket upgrade was refused by the server."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class TMResponseError(TMClientError):
    """HTTP response error from the server."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status


class TMSchemaError(TMClientError):
    """Message schema could not be loaded."""


class AuthenticationError(TMClientError):
    """Login failed or the session cookie could not be parsed."""


class HandshakeTimeoutError(TMTimeout):
    """No notice arrived after the handshake was sent.

    The server never rejects a handshake explicitly. Silence usually means the
    handshake timestamp was more than 300 seconds away from the server clock.
    """


class DecodeError(TMClientError):
    """Inbound frame could not be decoded."""


class InvalidStateError(TMClientError):
    """Operation attempted outside of its legal connection state."""


class NotConnectedError(InvalidStateError):
    """Command issued while the connection is down."""


class NoActiveFieldError(TMClientError):
    """Field command issued before any active field was observed."""
