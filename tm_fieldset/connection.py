"""Field set connection manager for Tournament Manager.

This module provides the client API for driving a field set. It handles:
- Admin session acquisition (via SessionManager)
- WebSocket connection and the timestamp handshake
- Frame obfuscation and protobuf encoding
- Tracking the active field from server notices
- Field control commands (start, end early, abort, reset timer)

Reconnection is never automatic: after the socket closes the connection
stays DISCONNECTED until ``connect()`` is called again.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

import aiohttp

from .config import FieldSetConfig
from .errors import (
    DecodeError,
    HandshakeTimeoutError,
    InvalidStateError,
    NoActiveFieldError,
    NotConnectedError,
    TMConnectionError,
    TMHandshakeError,
)
from .protobuf_util import (
    FieldActivatedNotice,
    FieldControlCommand,
    FieldControlRequest,
    FieldSetSchema,
    Notice,
    decode_notice,
    encode_request,
    notice_to_dict,
)
from .protocol import (
    HANDSHAKE_CLOCK_TOLERANCE,
    build_handshake,
    deobfuscate,
    obfuscate,
)
from .session import SessionManager
from .state import ConnectionState, FieldTracker
from .ws import fieldset_path
from .ws_client import TMWsClient, TMWsMessageType

if TYPE_CHECKING:
    from google.protobuf.message import Message

_LOGGER = logging.getLogger(__name__)

# Upgrade statuses meaning the session cookie was not accepted
_AUTH_REJECTED_STATUSES = frozenset({401, 403})


class FieldSetConnection:
    """Client connection to one Tournament Manager field set.

    Usage:
        config = FieldSetConfig(address="192.168.1.30", password="pw", field_set=1)
        async with FieldSetConnection(config) as tm:
            tm.on_notice(my_notice_handler)
            await tm.start_match()
    """

    def __init__(
        self,
        config: FieldSetConfig,
        *,
        session_manager: SessionManager | None = None,
        http_session: aiohttp.ClientSession | None = None,
        schema: FieldSetSchema | None = None,
    ) -> None:
        """Initialize connection.

        Args:
            config: Server address, credentials and timeouts
            session_manager: Credential owner, shared between connections to
                the same server. Created from the config when omitted.
            http_session: aiohttp session used for logins
            schema: Message schema, the built-in one when omitted
        """
        self.config = config
        self._tag = f"{config.address}{fieldset_path(config.field_set)}"

        self._sessions = session_manager or SessionManager(
            config.address,
            config.password,
            session=http_session,
            timeout=config.login_timeout,
        )
        self._schema = schema

        # Connection state
        self._ws: TMWsClient | None = None
        self._state = ConnectionState.DISCONNECTED
        self._listen_task: asyncio.Task[None] | None = None
        self._ready = asyncio.Event()

        # Field state
        self._fields = FieldTracker()
        self._decode_errors = 0

        # Callbacks
        self._notice_callbacks: list[Callable[[Notice], None]] = []
        self._connection_state_callback: Callable[[ConnectionState], None] | None = (
            None
        )

    async def __aenter__(self) -> FieldSetConnection:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Public API: Connection Management
    # -------------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        """Get current connection state."""
        return self._state

    @property
    def is_ready(self) -> bool:
        """Check if the handshake was accepted and commands can be sent."""
        return self._state is ConnectionState.READY

    @property
    def current_field_id(self) -> int | None:
        """Latest active field announced by the server."""
        return self._fields.field_id

    @property
    def decode_errors(self) -> int:
        """Number of inbound frames dropped because they could not be decoded."""
        return self._decode_errors

    async def connect(self) -> None:
        """Authenticate, open the socket and complete the handshake.

        Does nothing unless the connection is DISCONNECTED.

        Raises:
            AuthenticationError: If no session cookie could be obtained
            TMHandshakeError: If the server refused the WebSocket upgrade
            TMConnectionError: If the socket could not be opened or closed early
            TMTimeout: If the socket dial timed out
            HandshakeTimeoutError: If no notice followed the handshake
        """
        if self._state is not ConnectionState.DISCONNECTED:
            _LOGGER.debug("[%s] Connect skipped: %s", self._tag, self._state.value)
            return

        try:
            await self._open()
        except BaseException:
            await self._teardown()
            raise

    async def close(self) -> None:
        """Close the socket and return to DISCONNECTED."""
        _LOGGER.info("[%s] Closing connection", self._tag)
        await self._teardown()

    # -------------------------------------------------------------------------
    # Public API: Callbacks
    # -------------------------------------------------------------------------

    def on_notice(self, callback: Callable[[Notice], None]) -> None:
        """Register callback receiving every decoded notice."""
        self._notice_callbacks.append(callback)

    def on_connection_state_changed(
        self, callback: Callable[[ConnectionState], None]
    ) -> None:
        """Register callback for connection state changes."""
        self._connection_state_callback = callback

    # -------------------------------------------------------------------------
    # Public API: Field Control
    # -------------------------------------------------------------------------

    async def send(self, request: FieldControlRequest | Message) -> None:
        """Encode, obfuscate and send a request.

        Raises:
            NotConnectedError: If the connection is down
            InvalidStateError: If the handshake has not been accepted yet
            TMConnectionError: If the socket write fails
        """
        self._require_ready()
        frame = obfuscate(
            encode_request(request, self._schema), self.config.handshake_key
        )

        ws = self._ws
        if ws is None:
            raise NotConnectedError("Field set socket is not connected")
        try:
            await ws.send_bytes(frame)
        except TMConnectionError:
            _LOGGER.error("[%s] Send failed, dropping connection", self._tag)
            await self._teardown()
            raise

    async def send_field_control(self, command: FieldControlCommand) -> None:
        """Send a field control request for the active field.

        Raises:
            NotConnectedError: If the connection is down
            InvalidStateError: If the handshake has not been accepted yet
            NoActiveFieldError: If the server has not announced a field yet
        """
        self._require_ready()
        field_id = self._fields.field_id
        if field_id is None:
            raise NoActiveFieldError(
                f"Cannot send {command.name}: no active field has been announced"
            )

        await self.send(FieldControlRequest(command=command, field_id=field_id))
        _LOGGER.info("[%s] Sent %s for field %d", self._tag, command.name, field_id)

    async def start_match(self) -> None:
        """Start the match queued on the active field."""
        await self.send_field_control(FieldControlCommand.START_MATCH)

    async def end_early(self) -> None:
        """End the running match early."""
        await self.send_field_control(FieldControlCommand.END_EARLY)

    async def abort_match(self) -> None:
        """Abort the running match."""
        await self.send_field_control(FieldControlCommand.ABORT)

    async def reset_timer(self) -> None:
        """Reset the match timer on the active field."""
        await self.send_field_control(FieldControlCommand.RESET_TIMER)

    async def queue_next_match(self) -> None:
        """Queue the next match on the active field."""
        raise NotImplementedError("Queueing the next match is not supported")

    async def queue_previous_match(self) -> None:
        """Queue the previous match on the active field."""
        raise NotImplementedError("Queueing the previous match is not supported")

    # -------------------------------------------------------------------------
    # Internal: Connection State Machine
    # -------------------------------------------------------------------------

    def _set_state(self, state: ConnectionState) -> None:
        """Update connection state and notify callback."""
        if self._state is not state:
            _LOGGER.debug(
                "[%s] State: %s → %s", self._tag, self._state.value, state.value
            )
            self._state = state
            if self._connection_state_callback:
                self._connection_state_callback(state)

    def _require_ready(self) -> None:
        if self._state is ConnectionState.DISCONNECTED:
            raise NotConnectedError("Field set socket is not connected")
        if self._state is not ConnectionState.READY:
            raise InvalidStateError(
                f"Field set connection is {self._state.value}, not ready"
            )

    async def _open(self) -> None:
        self._fields.clear()
        self._ready.clear()

        self._set_state(ConnectionState.AUTHENTICATING)
        credential = await self._sessions.ensure_credential()

        self._set_state(ConnectionState.CONNECTING)
        _LOGGER.info("[%s] Opening WebSocket", self._tag)
        ws = TMWsClient()
        try:
            await ws.connect(
                self.config.address,
                path=fieldset_path(self.config.field_set),
                cookie=credential.cookie_header,
                ping_interval=self.config.ping_interval,
                timeout=self.config.connect_timeout,
            )
        except TMHandshakeError as err:
            if err.status in _AUTH_REJECTED_STATUSES:
                self._sessions.invalidate()
            raise
        self._ws = ws
        _LOGGER.info("[%s] WebSocket connected", self._tag)

        self._set_state(ConnectionState.HANDSHAKE_PENDING)
        await self._send_handshake(ws)
        self._listen_task = asyncio.create_task(self._listen(ws))

        await self._wait_ready(self._listen_task)

    async def _send_handshake(self, ws: TMWsClient) -> None:
        # Built at send time, the server checks it against its clock
        frame = obfuscate(build_handshake(), self.config.handshake_key)
        _LOGGER.info("[%s] Initiating handshake", self._tag)
        await ws.send_bytes(frame)

    async def _wait_ready(self, listen_task: asyncio.Task[None]) -> None:
        ready_task = asyncio.create_task(self._ready.wait())
        try:
            await asyncio.wait(
                {ready_task, listen_task},
                timeout=self.config.handshake_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            ready_task.cancel()

        if self._ready.is_set():
            return
        if listen_task.done():
            raise TMConnectionError("Socket closed before the handshake was accepted")

        _LOGGER.error(
            "[%s] No response %.1fs after handshake; "
            "check the local clock is within %ds of the server",
            self._tag,
            self.config.handshake_timeout,
            HANDSHAKE_CLOCK_TOLERANCE,
        )
        raise HandshakeTimeoutError(
            f"No notice within {self.config.handshake_timeout}s of the handshake "
            f"(probable clock skew beyond {HANDSHAKE_CLOCK_TOLERANCE}s)"
        )

    async def _teardown(self) -> None:
        task, self._listen_task = self._listen_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        ws, self._ws = self._ws, None
        if ws is not None:
            await self._close_socket(ws)

        self._ready.clear()
        self._set_state(ConnectionState.DISCONNECTED)

    async def _close_socket(self, ws: TMWsClient) -> None:
        try:
            await asyncio.wait_for(ws.close(), timeout=self.config.close_timeout)
        except TimeoutError:
            _LOGGER.warning("[%s] WebSocket close timed out", self._tag)

    # -------------------------------------------------------------------------
    # Internal: Message Listener
    # -------------------------------------------------------------------------

    async def _listen(self, ws: TMWsClient) -> None:
        """Listen for notices from the server."""
        message_count = 0

        try:
            async for msg in ws:
                if msg.type is TMWsMessageType.BINARY:
                    message_count += 1
                    self._handle_frame(msg.data)  # type: ignore[arg-type]
                elif msg.type is TMWsMessageType.TEXT:
                    _LOGGER.debug("[%s] Ignoring text frame", self._tag)
                elif msg.type is TMWsMessageType.CLOSED:
                    _LOGGER.info("[%s] WebSocket closed by server", self._tag)
                    break
                elif msg.type is TMWsMessageType.ERROR:
                    _LOGGER.error("[%s] WebSocket error", self._tag)
                    break

        except asyncio.CancelledError:
            _LOGGER.debug(
                "[%s] Listener cancelled (%d messages)", self._tag, message_count
            )
            raise
        except Exception as err:
            _LOGGER.exception("[%s] Unexpected listener error: %s", self._tag, err)
        finally:
            # Still the active listener: the socket went away on its own
            if self._listen_task is asyncio.current_task():
                self._listen_task = None
                self._ws = None
                self._ready.clear()
                try:
                    await self._close_socket(ws)
                finally:
                    self._set_state(ConnectionState.DISCONNECTED)

    def _handle_frame(self, frame: bytes) -> Notice | None:
        """Decode one inbound frame and apply it to the field state.

        Undecodable frames are logged and dropped; they never end the session.
        """
        try:
            notice = decode_notice(deobfuscate(frame), self._schema)
        except DecodeError as err:
            self._decode_errors += 1
            _LOGGER.warning(
                "[%s] Dropping undecodable frame (%d bytes): %s",
                self._tag,
                len(frame),
                err,
            )
            return None

        if isinstance(notice, FieldActivatedNotice) and self._fields.update(
            notice.field_id
        ):
            _LOGGER.info("[%s] Active field is now %d", self._tag, notice.field_id)

        if _LOGGER.isEnabledFor(logging.DEBUG):
            _LOGGER.debug("[%s] Notice: %s", self._tag, notice_to_dict(notice.message))

        if self._state is ConnectionState.HANDSHAKE_PENDING:
            self._set_state(ConnectionState.READY)
            self._ready.set()
            _LOGGER.info("[%s] Handshake accepted", self._tag)

        for callback in list(self._notice_callbacks):
            try:
                callback(notice)
            except Exception as err:
                _LOGGER.exception("[%s] Notice callback error: %s", self._tag, err)

        return notice
