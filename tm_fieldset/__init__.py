"""Tournament Manager field set control client."""

__version__ = "0.1.0"

from .config import FieldSetConfig
from .connection import FieldSetConnection
from .errors import (
    AuthenticationError,
    DecodeError,
    HandshakeTimeoutError,
    InvalidStateError,
    NoActiveFieldError,
    NotConnectedError,
    TMClientError,
    TMConfigError,
    TMConnectionError,
    TMHandshakeError,
    TMResponseError,
    TMSchemaError,
    TMTimeout,
)
from .http import TMHttpClient
from .protobuf_util import (
    FieldActivatedNotice,
    FieldControlCommand,
    FieldControlRequest,
    FieldSetSchema,
    GenericNotice,
    Notice,
    decode_notice,
    encode_request,
    load_schema,
)
from .protocol import build_handshake, deobfuscate, obfuscate
from .session import Credential, SessionManager, parse_session_cookie
from .state import ConnectionState
from .ws import connect_websocket
from .ws_client import TMWsClient, TMWsMessage, TMWsMessageType

__all__ = [
    "AuthenticationError",
    "ConnectionState",
    "Credential",
    "DecodeError",
    "FieldActivatedNotice",
    "FieldControlCommand",
    "FieldControlRequest",
    "FieldSetConfig",
    "FieldSetConnection",
    "FieldSetSchema",
    "GenericNotice",
    "HandshakeTimeoutError",
    "InvalidStateError",
    "NoActiveFieldError",
    "NotConnectedError",
    "Notice",
    "SessionManager",
    "TMClientError",
    "TMConfigError",
    "TMConnectionError",
    "TMHandshakeError",
    "TMHttpClient",
    "TMResponseError",
    "TMSchemaError",
    "TMTimeout",
    "TMWsClient",
    "TMWsMessage",
    "TMWsMessageType",
    "__version__",
    "build_handshake",
    "connect_websocket",
    "decode_notice",
    "deobfuscate",
    "encode_request",
    "load_schema",
    "obfuscate",
    "parse_session_cookie",
]
