"""Tests for frame obfuscation and the handshake layout."""

from __future__ import annotations

import struct
import time
from datetime import UTC, datetime

import pytest

from tm_fieldset.errors import DecodeError
from tm_fieldset.protocol import (
    DEFAULT_KEY,
    HANDSHAKE_LENGTH,
    MANGLE_MAGIC,
    build_handshake,
    deobfuscate,
    handshake_timestamp,
    obfuscate,
)


class TestObfuscate:
    """Tests for obfuscate()."""

    def test_known_frame(self):
        """Test the reference frame for [0x01, 0x02] with the default key."""
        assert obfuscate(b"\x01\x02", 123) == bytes([0x96, 0x7A, 0x79])

    def test_default_key(self):
        """Test the default key is 123."""
        assert DEFAULT_KEY == 123
        assert obfuscate(b"\x01\x02") == b"\x96\x7a\x79"

    def test_key_byte_marks_key(self):
        """Test byte 0 carries key XOR magic."""
        for key in (0, 1, 123, 229, 255):
            assert obfuscate(b"payload", key)[0] == key ^ MANGLE_MAGIC

    def test_empty_payload(self):
        """Test empty payload yields a single key byte."""
        assert obfuscate(b"", 123) == bytes([123 ^ 229])

    @pytest.mark.parametrize("key", [-1, 256, 1000])
    def test_key_out_of_range(self, key):
        """Test keys that do not fit in a byte are rejected."""
        with pytest.raises(ValueError, match="0-255"):
            obfuscate(b"\x00", key)


class TestDeobfuscate:
    """Tests for deobfuscate()."""

    def test_known_frame(self):
        """Test decoding the reference frame."""
        assert deobfuscate(bytes([0x96, 0x7A, 0x79])) == b"\x01\x02"

    def test_round_trip_all_keys(self):
        """Test obfuscation is reversible for every key."""
        payload = bytes(range(256)) + b"\x08\x08\x10\x03"
        for key in range(256):
            assert deobfuscate(obfuscate(payload, key)) == payload

    def test_single_byte_frame(self):
        """Test a frame holding only the key byte decodes to nothing."""
        assert deobfuscate(b"\x96") == b""

    def test_empty_frame_raises(self):
        """Test an empty frame is a protocol error."""
        with pytest.raises(DecodeError, match="empty"):
            deobfuscate(b"")


class TestBuildHandshake:
    """Tests for build_handshake()."""

    def test_layout(self):
        """Test 128 bytes, zero padding and little-endian timestamp at 7-10."""
        handshake = build_handshake(1_700_000_000)

        assert len(handshake) == HANDSHAKE_LENGTH == 128
        assert handshake[0:7] == bytes(7)
        assert handshake[11:] == bytes(117)
        assert struct.unpack("<I", handshake[7:11])[0] == 1_700_000_000

    def test_byte_order(self):
        """Test the least significant byte comes first."""
        handshake = build_handshake(0x65A1B2C3)
        assert handshake[7:11] == b"\xc3\xb2\xa1\x65"

    def test_fractional_seconds_truncated(self):
        """Test sub-second precision is dropped."""
        assert handshake_timestamp(build_handshake(1_700_000_000.9)) == 1_700_000_000

    def test_timestamp_wraps(self):
        """Test timestamps beyond 32 bits are reduced modulo 2**32."""
        assert handshake_timestamp(build_handshake(2**32 + 5)) == 5

    def test_datetime_input(self):
        """Test aware datetimes are converted to epoch seconds."""
        now = datetime(2026, 10, 18, 12, 0, tzinfo=UTC)
        assert handshake_timestamp(build_handshake(now)) == int(now.timestamp())

    def test_defaults_to_wall_clock(self):
        """Test the wall clock is read when no time is given."""
        before = int(time.time())
        stamp = handshake_timestamp(build_handshake())
        after = int(time.time())
        assert before <= stamp <= after

    def test_handshake_timestamp_rejects_wrong_length(self):
        """Test reading a timestamp from a short buffer fails."""
        with pytest.raises(DecodeError, match="128"):
            handshake_timestamp(bytes(64))
