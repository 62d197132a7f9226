"""Configuration for a field set connection."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from .errors import TMConfigError
from .protocol import DEFAULT_KEY

ENV_PREFIX = "TM_"


@dataclass(frozen=True)
class FieldSetConfig:
    """Connection settings for one Tournament Manager field set.

    Attributes:
        address: Server host, optionally with ":port"
        password: Admin password
        field_set: Field set ID (starts at 1)
        handshake_key: XOR key used for outbound frames (0-255)
        login_timeout: Login request timeout in seconds
        connect_timeout: WebSocket dial timeout in seconds
        handshake_timeout: Wait for the first notice after the handshake
        close_timeout: Wait for the socket to close in seconds
        ping_interval: WebSocket keepalive ping interval, None disables pings
    """

    address: str
    password: str
    field_set: int = 1
    handshake_key: int = DEFAULT_KEY
    login_timeout: float = 10.0
    connect_timeout: float = 15.0
    handshake_timeout: float = 10.0
    close_timeout: float = 2.0
    ping_interval: int | None = 20

    def __post_init__(self) -> None:
        if not self.address:
            raise TMConfigError("Server address is required")
        if self.field_set < 1:
            raise TMConfigError(f"Field set ID must be >= 1, got {self.field_set}")
        if not 0 <= self.handshake_key <= 0xFF:
            raise TMConfigError(
                f"Handshake key must be in 0-255, got {self.handshake_key}"
            )
        for name in ("login_timeout", "connect_timeout", "handshake_timeout"):
            if getattr(self, name) <= 0:
                raise TMConfigError(f"{name} must be positive")

    def __repr__(self) -> str:
        return (
            f"<{self.__class__.__name__} "
            f"address={self.address!r}, "
            f"field_set={self.field_set}, "
            f"password='******'>"
        )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> FieldSetConfig:
        """Build a config from ``TM_*`` environment variables.

        ``TM_ADDRESS`` and ``TM_PASSWORD`` are required. ``TM_FIELD_SET``,
        ``TM_HANDSHAKE_TIMEOUT``, ``TM_CONNECT_TIMEOUT`` and
        ``TM_LOGIN_TIMEOUT`` are optional.

        Raises:
            TMConfigError: If a required variable is missing or a value is malformed
        """
        env = os.environ if environ is None else environ

        def _required(name: str) -> str:
            value = env.get(ENV_PREFIX + name)
            if not value:
                raise TMConfigError(f"Environment variable {ENV_PREFIX}{name} is not set")
            return value

        def _optional(name: str, convert: type, default: object) -> object:
            raw = env.get(ENV_PREFIX + name)
            if raw is None or raw == "":
                return default
            try:
                return convert(raw)
            except ValueError as err:
                raise TMConfigError(
                    f"Invalid value for {ENV_PREFIX}{name}: {raw!r}"
                ) from err

        return cls(
            address=_required("ADDRESS"),
            password=_required("PASSWORD"),
            field_set=_optional("FIELD_SET", int, 1),  # type: ignore[arg-type]
            handshake_timeout=_optional("HANDSHAKE_TIMEOUT", float, 10.0),  # type: ignore[arg-type]
            connect_timeout=_optional("CONNECT_TIMEOUT", float, 15.0),  # type: ignore[arg-type]
            login_timeout=_optional("LOGIN_TIMEOUT", float, 10.0),  # type: ignore[arg-type]
        )
