"""Polling supervisor: acquires the device, reads frames forever and recovers.

States::

    NoDevice -> DeviceOpen -> Negotiated -> Polling -> (DeviceLost | Closing) -> NoDevice

Nothing here is fatal. Without hardware the loop keeps retrying once per
``retry_interval`` and the error topics stay set.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Protocol

from .errors import DeviceReadError, DeviceRemovedError, HandshakeError
from .models.channel import Channel, channel_for
from .models.error_state import ErrorStateTracker
from .protocol.framing import FRAME_SIZE, InvalidFrame, deobfuscate, validate_frame
from .protocol.handshake import MagicTable, negotiate
from .protocol.measurements import Measurement, decode_measurement
from .publisher import TelemetryPublisher
from .transport.usb_connection import READ_TIMEOUT_MS, open_device

logger = logging.getLogger(__name__)

READ_ERROR = "r"
RETRY_INTERVAL_S = 1.0


class DeviceSession(Protocol):
    """An open device, as returned by the opener."""

    def write(self, data: bytes) -> bool:
        ...

    def read(self, timeout_ms: int = READ_TIMEOUT_MS) -> bytes | None:
        ...

    def path(self) -> str:
        ...

    def close(self) -> None:
        ...


class PollingSupervisor:
    """Runs the acquire / negotiate / poll cycle for a single device.

    Args:
        publisher: Where measurements and error transitions are sent.
        opener: Returns an open ``DeviceSession`` or None if no device is present.
        decode: Deobfuscate reports before validating them.
        sleep: Called with the retry interval in seconds.
        retry_interval: Delay after a missing device or a failed read.
        read_timeout_ms: Per-read device timeout.
    """

    def __init__(
        self,
        publisher: TelemetryPublisher,
        opener: Callable[[], DeviceSession | None] = open_device,
        decode: bool = True,
        sleep: Callable[[float], None] = time.sleep,
        retry_interval: float = RETRY_INTERVAL_S,
        read_timeout_ms: int = READ_TIMEOUT_MS,
    ) -> None:
        self._publisher = publisher
        self._opener = opener
        self._decode = decode
        self._sleep = sleep
        self._retry_interval = retry_interval
        self._read_timeout_ms = read_timeout_ms
        self._errors = ErrorStateTracker()
        self._show_no_device = True
        self._stopped = False

    @property
    def errors(self) -> ErrorStateTracker:
        return self._errors

    def stop(self) -> None:
        """Ask the loop to exit after the current iteration."""
        self._stopped = True

    def run(self) -> None:
        """Run until ``stop()`` is called."""
        while not self._stopped:
            self.run_once()

    def run_once(self) -> None:
        """One acquisition cycle: open, serve the device until lost, then wait."""
        session = self._opener()
        if session is None:
            if self._show_no_device:
                logger.warning("Unable to open CO2 device")
                self._show_no_device = False
            self._set_errors()
        else:
            self._show_no_device = True
            try:
                logger.info("Path: %s", session.path())
            except OSError:
                logger.info("Path: (error)")
            try:
                self._serve(session)
            finally:
                session.close()
        self._sleep(self._retry_interval)

    def _serve(self, session: DeviceSession) -> None:
        try:
            magic_table = negotiate(session)
        except HandshakeError as e:
            logger.warning("%s", e)
            self._set_errors()
            return

        logger.info("Sending values to MQTT...")
        while True:
            if not self.poll(session, magic_table):
                return

    def poll(self, session: DeviceSession, magic_table: MagicTable) -> bool:
        """Read and dispatch one frame.

        Returns:
            False once the device has been lost or the supervisor was
            stopped, True while polling should continue.
        """
        try:
            raw = session.read(self._read_timeout_ms)
        except DeviceRemovedError:
            logger.warning("Device has been disconnected")
            self._set_errors()
            return False
        except DeviceReadError as e:
            logger.debug("%s", e)
            raw = None

        if raw is None or len(raw) != FRAME_SIZE:
            logger.debug("Read timed out or was short: %r", raw)
            self._set_errors()
            self._sleep(self._retry_interval)
            return not self._stopped

        frame = deobfuscate(raw, bytes(magic_table)) if self._decode else raw
        logger.debug("Frame %s", frame.hex(" "))

        fields = validate_frame(frame)
        if isinstance(fields, InvalidFrame):
            logger.warning("%s", fields.detail)
            self._set_errors()
            return not self._stopped

        result = decode_measurement(fields)
        if not isinstance(result, Measurement):
            logger.debug("Discarding %r: %s", fields, result.value)
            return not self._stopped

        channel = channel_for(result.kind)
        if channel is not None:
            self._publisher.publish_measurement(channel, result)
            self._report(channel, None)
        return not self._stopped

    def _report(self, channel: Channel, error: str | None) -> None:
        event = self._errors.report(channel, error)
        if event is not None:
            self._publisher.publish_event(event)

    def _set_errors(self) -> None:
        for channel in Channel:
            self._report(channel, READ_ERROR)
