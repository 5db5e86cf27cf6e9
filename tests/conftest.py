"""Shared fixtures for the bridge tests."""

from __future__ import annotations

import pytest

from co2mon_mqtt.protocol.framing import MAGIC_WORD

SWAPS = ((0, 2), (1, 4), (3, 7), (5, 6))


def _obfuscate(frame: bytes, magic_table: bytes) -> bytes:
    """Scramble a plain frame the way older MT8057 firmware does."""
    out = bytearray(
        (b + ((c << 4) | (c >> 4))) & 0xFF for b, c in zip(frame, MAGIC_WORD)
    )
    buf = bytearray(8)
    for i in range(8):
        buf[i] = ((out[i] << 3) | (out[(i + 1) % 8] >> 5)) & 0xFF
    for i in range(8):
        buf[i] ^= magic_table[i]
    for a, b in SWAPS:
        buf[a], buf[b] = buf[b], buf[a]
    return bytes(buf)


@pytest.fixture
def obfuscate():
    return _obfuscate


def make_frame(code: int, value: int) -> bytes:
    """Build a well-formed plain 8-byte frame."""
    high, low = (value >> 8) & 0xFF, value & 0xFF
    return bytes([code, high, low, (code + high + low) & 0xFF, 0x0D, 0, 0, 0])


@pytest.fixture
def frame():
    return make_frame
