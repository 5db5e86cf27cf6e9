"""USB transport for the CO2 monitor."""

from .usb_connection import USBConnection, open_device
