"""USB HID connection to the MT8057 CO2 monitor.

Supports both ``hidapi`` (preferred) and ``pyusb`` backends.
The device is a single-interface HID device (Interface 0) that streams
8-byte reports on endpoint 0x81 once it has received a magic table as
a feature report.
"""

from __future__ import annotations

import errno
import logging
from dataclasses import dataclass

from ..errors import DeviceReadError, DeviceRemovedError
from ..protocol.framing import FRAME_SIZE

logger = logging.getLogger(__name__)

VENDOR_ID = 0x04D9
PRODUCT_ID = 0xA052
HID_INTERFACE = 0
EP_IN = 0x81
READ_TIMEOUT_MS = 5000
WRITE_TIMEOUT_MS = 2000

# HID SET_REPORT, feature report 0
_REQUEST_TYPE = 0x21
_SET_REPORT = 0x09
_FEATURE_REPORT = 0x0300

_LIBUSB_ERROR_NO_DEVICE = -4


@dataclass
class DeviceInfo:
    """Basic device identification from USB descriptors."""

    vendor_id: int = VENDOR_ID
    product_id: int = PRODUCT_ID
    manufacturer: str = ""
    product: str = ""
    path: str = ""


class USBConnection:
    """Manages the USB HID connection to the CO2 monitor.

    Usage::

        conn = USBConnection()
        conn.open()
        conn.write(magic_table)
        report = conn.read()
        conn.close()
    """

    def __init__(
        self,
        vendor_id: int = VENDOR_ID,
        product_id: int = PRODUCT_ID,
    ) -> None:
        self._vendor_id = vendor_id
        self._product_id = product_id
        self._device = None
        self._backend: str = ""
        self._connected = False
        self._device_info = DeviceInfo(vendor_id=vendor_id, product_id=product_id)

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def backend(self) -> str:
        return self._backend

    @property
    def device_info(self) -> DeviceInfo:
        return self._device_info

    def open(self) -> DeviceInfo:
        """Open a connection to the monitor, trying hidapi first, then pyusb.

        Returns:
            DeviceInfo with USB descriptor information.

        Raises:
            ConnectionError: If the device cannot be found or opened.
        """
        try:
            return self._open_hidapi()
        except Exception as e:
            logger.debug("hidapi backend failed: %s, trying pyusb", e)

        try:
            return self._open_pyusb()
        except Exception as e:
            raise ConnectionError(
                f"Could not open CO2 device "
                f"({self._vendor_id:#06x}:{self._product_id:#06x}): {e}"
            ) from e

    def _open_hidapi(self) -> DeviceInfo:
        """Open using the hidapi library."""
        import hid

        matches = hid.enumerate(self._vendor_id, self._product_id)
        if not matches:
            raise ConnectionError("Device not found via hidapi")
        entry = matches[0]

        device = hid.device()
        device.open_path(entry["path"])
        device.set_nonblocking(False)

        path = entry["path"]
        if isinstance(path, bytes):
            path = path.decode("ascii", errors="replace")

        self._device = device
        self._backend = "hidapi"
        self._connected = True
        self._device_info = DeviceInfo(
            vendor_id=self._vendor_id,
            product_id=self._product_id,
            manufacturer=entry.get("manufacturer_string") or "",
            product=entry.get("product_string") or "",
            path=path,
        )

        logger.info(
            "Connected via hidapi: %s %s",
            self._device_info.manufacturer,
            self._device_info.product,
        )
        return self._device_info

    def _open_pyusb(self) -> DeviceInfo:
        """Open using pyusb + libusb."""
        import usb.core
        import usb.util

        dev = usb.core.find(idVendor=self._vendor_id, idProduct=self._product_id)
        if dev is None:
            raise ConnectionError("Device not found via pyusb")

        if dev.is_kernel_driver_active(HID_INTERFACE):
            dev.detach_kernel_driver(HID_INTERFACE)

        usb.util.claim_interface(dev, HID_INTERFACE)

        self._device = dev
        self._backend = "pyusb"
        self._connected = True
        self._device_info = DeviceInfo(
            vendor_id=self._vendor_id,
            product_id=self._product_id,
            manufacturer=usb.util.get_string(dev, dev.iManufacturer) or "",
            product=usb.util.get_string(dev, dev.iProduct) or "",
            path=f"{dev.bus:04x}:{dev.address:04x}:{HID_INTERFACE:02x}",
        )

        logger.info(
            "Connected via pyusb: %s %s",
            self._device_info.manufacturer,
            self._device_info.product,
        )
        return self._device_info

    def path(self) -> str:
        """Return the backend-specific device path.

        Raises:
            ConnectionError: If not connected or the path is unknown.
        """
        if not self._connected or not self._device_info.path:
            raise ConnectionError("Device path unavailable")
        return self._device_info.path

    def close(self) -> None:
        """Close the USB connection."""
        if not self._connected:
            return

        try:
            if self._backend == "hidapi":
                self._device.close()
            elif self._backend == "pyusb":
                import usb.util
                usb.util.release_interface(self._device, HID_INTERFACE)
                usb.util.dispose_resources(self._device)
        except Exception as e:
            logger.warning("Error closing device: %s", e)
        finally:
            self._device = None
            self._connected = False
            logger.info("Disconnected")

    def write(self, data: bytes) -> bool:
        """Send an 8-byte feature report (the magic table) to the device.

        Args:
            data: The 8-byte report.

        Returns:
            True if the whole report was accepted, False otherwise.

        Raises:
            ConnectionError: If not connected.
        """
        if not self._connected:
            raise ConnectionError("Not connected to device")

        if len(data) != FRAME_SIZE:
            raise ValueError(f"Feature report must be {FRAME_SIZE} bytes, got {len(data)}")

        try:
            if self._backend == "hidapi":
                # hidapi counts the leading report id in the returned length
                sent = self._device.send_feature_report(b"\x00" + bytes(data)) - 1
            elif self._backend == "pyusb":
                sent = self._device.ctrl_transfer(
                    _REQUEST_TYPE,
                    _SET_REPORT,
                    _FEATURE_REPORT,
                    HID_INTERFACE,
                    bytes(data),
                    timeout=WRITE_TIMEOUT_MS,
                )
            else:
                raise RuntimeError(f"Unknown backend: {self._backend}")
        except (OSError, ValueError) as e:
            logger.warning("Feature report write failed: %s", e)
            return False

        return sent == len(data)

    def read(self, timeout_ms: int = READ_TIMEOUT_MS) -> bytes | None:
        """Read one report from the device.

        Args:
            timeout_ms: Read timeout in milliseconds.

        Returns:
            The report bytes (normally 8, possibly fewer on a short read),
            or None if the read timed out.

        Raises:
            ConnectionError: If not connected.
            DeviceRemovedError: If the device has been unplugged.
            DeviceReadError: On any other transfer failure.
        """
        if not self._connected:
            raise ConnectionError("Not connected to device")

        if self._backend == "hidapi":
            return self._read_hidapi(timeout_ms)
        elif self._backend == "pyusb":
            return self._read_pyusb(timeout_ms)
        else:
            raise RuntimeError(f"Unknown backend: {self._backend}")

    def _read_hidapi(self, timeout_ms: int) -> bytes | None:
        try:
            data = self._device.read(FRAME_SIZE, timeout_ms)
        except OSError as e:
            # hidapi reports an unplugged device as a generic read error
            raise DeviceRemovedError(f"Device has been disconnected: {e}") from e
        if data:
            return bytes(data)
        return None

    def _read_pyusb(self, timeout_ms: int) -> bytes | None:
        import usb.core

        try:
            data = self._device.read(EP_IN, FRAME_SIZE, timeout=timeout_ms)
        except usb.core.USBTimeoutError:
            return None
        except usb.core.USBError as e:
            if e.errno == errno.ENODEV or e.backend_error_code == _LIBUSB_ERROR_NO_DEVICE:
                raise DeviceRemovedError(f"Device has been disconnected: {e}") from e
            raise DeviceReadError(f"Read failed: {e}") from e
        return bytes(data)


def open_device(
    vendor_id: int = VENDOR_ID,
    product_id: int = PRODUCT_ID,
) -> USBConnection | None:
    """Open the first attached CO2 monitor.

    Returns:
        A connected ``USBConnection``, or None if no device is present.
    """
    conn = USBConnection(vendor_id, product_id)
    try:
        conn.open()
    except ConnectionError as e:
        logger.debug("%s", e)
        return None
    return conn
