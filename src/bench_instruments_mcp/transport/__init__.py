"""Transport drivers: HID and USB bulk."""

from .hid_connection import HidConnection, MultimeterHidInstrument
from .usb_connection import ScpiUsbInstrument, UsbBulkConnection
