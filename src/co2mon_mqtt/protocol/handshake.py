"""Magic table handshake that unlocks the device's report stream."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

from ..errors import HandshakeError

logger = logging.getLogger(__name__)

MAGIC_TABLE_SIZE = 8


class Writable(Protocol):
    """Anything that can send a feature report to the device."""

    def write(self, data: bytes) -> bool:
        ...


@dataclass(frozen=True)
class MagicTable:
    """The 8-byte key sent to the device; also used to deobfuscate reports."""

    data: bytes = field(default=bytes(MAGIC_TABLE_SIZE))

    def __bytes__(self) -> bytes:
        return self.data

    def __repr__(self) -> str:
        return f"MagicTable({self.data.hex(' ')})"


def negotiate(session: Writable) -> MagicTable:
    """Send a zero-filled magic table to a freshly opened device.

    Args:
        session: The open device connection.

    Returns:
        The ``MagicTable`` that was sent; keep it for the life of the session.

    Raises:
        HandshakeError: If the device did not accept the table.
    """
    table = MagicTable()
    if not session.write(bytes(table)):
        raise HandshakeError("Unable to send magic table to CO2 device")
    logger.debug("Sent magic table %r", table)
    return table
