"""Connection and field state shared by the socket listener and commands."""

from __future__ import annotations

import threading
from enum import Enum


class ConnectionState(Enum):
    """Lifecycle of a field set connection.

    DISCONNECTED -> AUTHENTICATING -> CONNECTING -> HANDSHAKE_PENDING -> READY

    Any failure, socket close or explicit close returns to DISCONNECTED.
    """

    DISCONNECTED = "disconnected"
    AUTHENTICATING = "authenticating"
    CONNECTING = "connecting"
    HANDSHAKE_PENDING = "handshake_pending"
    READY = "ready"


class FieldTracker:
    """Latest active field announced by the server.

    The listener writes it and command builders read it, possibly from a
    front end thread, so every access holds the lock.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._field_id: int | None = None

    @property
    def field_id(self) -> int | None:
        with self._lock:
            return self._field_id

    def update(self, field_id: int) -> bool:
        """Record the active field.

        Returns:
            True if the active field changed
        """
        with self._lock:
            changed = self._field_id != field_id
            self._field_id = field_id
            return changed

    def clear(self) -> None:
        with self._lock:
            self._field_id = None
