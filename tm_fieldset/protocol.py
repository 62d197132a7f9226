"""Frame helpers for the Tournament Manager field set socket.

Every frame on the socket, in both directions, is XOR-obfuscated with a
single key byte. The key travels in plain view as the first byte of the
frame, itself XORed with ``MANGLE_MAGIC``.

The first frame a client sends is a 128 byte handshake carrying the current
Unix time. The server ignores clients whose clock is more than
``HANDSHAKE_CLOCK_TOLERANCE`` seconds away from its own.
"""

from __future__ import annotations

import struct
import time
from datetime import datetime

from .errors import DecodeError

MANGLE_MAGIC = 229
DEFAULT_KEY = 123

HANDSHAKE_LENGTH = 128
HANDSHAKE_TIMESTAMP_OFFSET = 7
HANDSHAKE_CLOCK_TOLERANCE = 300

_TIMESTAMP = struct.Struct("<I")


def obfuscate(payload: bytes, key: int = DEFAULT_KEY) -> bytes:
    """Obfuscate a payload for sending.

    Args:
        payload: Encoded message (or handshake) bytes.
        key: XOR key, any value in 0-255.

    Returns:
        Frame of ``len(payload) + 1`` bytes.

    Raises:
        ValueError: If the key does not fit in a byte.
    """
    if not 0 <= key <= 0xFF:
        raise ValueError(f"Obfuscation key must be in 0-255, got {key}")

    frame = bytearray(len(payload) + 1)
    frame[0] = key ^ MANGLE_MAGIC
    for i, byte in enumerate(payload, start=1):
        frame[i] = byte ^ key
    return bytes(frame)


def deobfuscate(raw: bytes) -> bytes:
    """Recover the payload of a received frame.

    Raises:
        DecodeError: If the frame is empty.
    """
    if not raw:
        raise DecodeError("Frame is empty, missing key byte")

    key = raw[0] ^ MANGLE_MAGIC
    return bytes(byte ^ key for byte in raw[1:])


def build_handshake(now: float | datetime | None = None) -> bytes:
    """Build the handshake frame payload.

    Layout is 128 zero bytes with the Unix time in seconds written as a
    little-endian uint32 at offsets 7-10. The rest is padding the server
    does not inspect.

    Args:
        now: Time to embed. Defaults to the wall clock at call time, which is
            what the server expects; pass a value only for testing.
    """
    if now is None:
        seconds = time.time()
    elif isinstance(now, datetime):
        seconds = now.timestamp()
    else:
        seconds = now

    handshake = bytearray(HANDSHAKE_LENGTH)
    _TIMESTAMP.pack_into(
        handshake, HANDSHAKE_TIMESTAMP_OFFSET, int(seconds) % 2**32
    )
    return bytes(handshake)


def handshake_timestamp(handshake: bytes) -> int:
    """Read back the timestamp embedded in a handshake payload."""
    if len(handshake) != HANDSHAKE_LENGTH:
        raise DecodeError(
            f"Handshake must be {HANDSHAKE_LENGTH} bytes, got {len(handshake)}"
        )
    (seconds,) = _TIMESTAMP.unpack_from(handshake, HANDSHAKE_TIMESTAMP_OFFSET)
    return seconds
