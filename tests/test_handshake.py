"""Tests for the magic table handshake."""

from unittest.mock import MagicMock

import pytest

from co2mon_mqtt.errors import HandshakeError
from co2mon_mqtt.protocol.handshake import MAGIC_TABLE_SIZE, MagicTable, negotiate


def test_negotiate_sends_zero_table():
    """The handshake sends eight zero bytes and returns the table."""
    session = MagicMock()
    session.write.return_value = True

    table = negotiate(session)

    session.write.assert_called_once_with(bytes(MAGIC_TABLE_SIZE))
    assert bytes(table) == bytes(MAGIC_TABLE_SIZE)


def test_negotiate_failure_raises():
    """A rejected write makes the session unusable."""
    session = MagicMock()
    session.write.return_value = False

    with pytest.raises(HandshakeError):
        negotiate(session)


def test_magic_table_repr():
    """MagicTable repr should show the bytes."""
    assert "00 00" in repr(MagicTable())
