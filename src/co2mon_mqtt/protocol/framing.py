"""Frame validator for 8-byte MT8057 HID reports.

Frame layout (after deobfuscation)::

    +--------+--------+--------+----------+------------+---------+
    |  Code  |  High  |  Low   | Checksum | Terminator | Unused  |
    | 1 byte | 1 byte | 1 byte |  1 byte  |   0x0D     | 3 bytes |
    +--------+--------+--------+----------+------------+---------+

- Code: measurement kind (see ``measurements.MeasurementKind``)
- High/Low: big-endian 16-bit value
- Checksum: (code + high + low) & 0xFF
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

FRAME_SIZE = 8
TERMINATOR = 0x0D
TERMINATOR_INDEX = 4
CHECKSUM_INDEX = 3

MAGIC_WORD = b"Htemp99e"
_SWAPS = ((0, 2), (1, 4), (3, 7), (5, 6))


@dataclass(frozen=True)
class FrameFields:
    """A validated frame: measurement code and 16-bit value."""

    code: int
    value: int

    def __repr__(self) -> str:
        return f"FrameFields(code=0x{self.code:02X}, value={self.value})"


class FrameError(Enum):
    """Why a frame was rejected."""

    TRUNCATED = "truncated"
    BAD_TERMINATOR = "bad_terminator"
    CHECKSUM_MISMATCH = "checksum_mismatch"


@dataclass(frozen=True)
class InvalidFrame:
    """A rejected frame with a human-readable reason."""

    kind: FrameError
    detail: str = ""


def validate_frame(data: bytes | None) -> FrameFields | InvalidFrame:
    """Check the structure of a frame and extract its code and value.

    The terminator is checked before the checksum, matching the order
    in which the device reports are usually diagnosed.

    Args:
        data: One report as read from the device (deobfuscated if needed).

    Returns:
        ``FrameFields`` on success, otherwise ``InvalidFrame``.
    """
    if data is None or len(data) != FRAME_SIZE:
        length = 0 if data is None else len(data)
        return InvalidFrame(
            FrameError.TRUNCATED, f"expected {FRAME_SIZE} bytes, got {length}"
        )

    if data[TERMINATOR_INDEX] != TERMINATOR:
        return InvalidFrame(
            FrameError.BAD_TERMINATOR,
            f"Unexpected data from device (data[4] = {data[TERMINATOR_INDEX]:02x}, "
            f"await {TERMINATOR:#04x})",
        )

    checksum = (data[0] + data[1] + data[2]) & 0xFF
    if checksum != data[CHECKSUM_INDEX]:
        return InvalidFrame(
            FrameError.CHECKSUM_MISMATCH,
            f"checksum error ({checksum:02x}, await {data[CHECKSUM_INDEX]:02x})",
        )

    return FrameFields(code=data[0], value=(data[1] << 8) | data[2])


def deobfuscate(data: bytes, magic_table: bytes) -> bytes:
    """Undo the report scrambling applied by older MT8057 firmware.

    Args:
        data: An 8-byte report exactly as read from the device.
        magic_table: The 8-byte table sent during the handshake.

    Returns:
        The plain 8-byte frame. Input of any other length is returned
        unchanged so the validator can reject it.
    """
    if len(data) != FRAME_SIZE:
        return bytes(data)

    buf = bytearray(data)
    for a, b in _SWAPS:
        buf[a], buf[b] = buf[b], buf[a]

    for i in range(FRAME_SIZE):
        buf[i] ^= magic_table[i]

    # Rotate the 64-bit buffer right by 3 bits
    out = bytearray(FRAME_SIZE)
    for i in range(FRAME_SIZE):
        out[i] = ((buf[i - 1] << 5) | (buf[i] >> 3)) & 0xFF

    for i, c in enumerate(MAGIC_WORD):
        out[i] = (out[i] - ((c << 4) | (c >> 4))) & 0xFF

    return bytes(out)
