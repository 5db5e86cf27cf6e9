"""Exceptions raised by the CO2 monitor bridge."""


class Co2MonError(Exception):
    """Base exception for all bridge errors."""

    pass


class DeviceRemovedError(Co2MonError):
    """Raised when the USB device has been unplugged mid-session."""

    pass


class DeviceReadError(Co2MonError):
    """Raised when a read fails for a reason other than removal or timeout."""

    pass


class HandshakeError(Co2MonError):
    """Raised when the magic table could not be sent to the device."""

    pass
