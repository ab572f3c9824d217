"""USB bulk connection to SCPI-style instruments.

Devices are addressed as ``vendor_id:product_id`` in lowercase hex without
padding (e.g. ``"5345:1234"``). Commands go out on a bulk OUT endpoint;
query responses come back on a bulk IN endpoint of the same interface.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..errors import CommandError, UsbError
from ..protocol.commands import Dialect, encode_commands
from ..protocol.parser import RawReading, Reading

logger = logging.getLogger(__name__)

# One bulk IN transfer must hold a whole response (waveform dumps, screenshots)
DEFAULT_READ_SIZE = 2_000_000
# libusb treats 0 as "wait until the transfer completes"
DEFAULT_TIMEOUT_MS = 0


@dataclass
class UsbDeviceInfo:
    """Basic device identification from USB descriptors."""

    vendor_id: int
    product_id: int
    bus: int | None = None
    address: int | None = None

    @property
    def usb_address(self) -> str:
        return format_usb_address(self.vendor_id, self.product_id)


def format_usb_address(vendor_id: int, product_id: int) -> str:
    return f"{vendor_id:x}:{product_id:x}"


def _enumerate_devices() -> list:
    try:
        import usb.core

        return list(usb.core.find(find_all=True))
    except ImportError as e:
        raise UsbError(f"Could not list usb devices: {e}") from e
    except (usb.core.NoBackendError, usb.core.USBError) as e:
        raise UsbError(f"Could not list usb devices: {e}") from e


def list_usb_devices() -> list[UsbDeviceInfo]:
    """Enumerate USB devices through pyusb.

    Raises:
        UsbError: If no libusb backend is available or enumeration fails.
    """
    return [
        UsbDeviceInfo(
            vendor_id=dev.idVendor,
            product_id=dev.idProduct,
            bus=getattr(dev, "bus", None),
            address=getattr(dev, "address", None),
        )
        for dev in _enumerate_devices()
    ]


def find_usb_device(usb_address: str):
    """Find the first device whose ``vid:pid`` equals ``usb_address``.

    Raises:
        UsbError: If enumeration fails or no device matches.
    """
    for dev in _enumerate_devices():
        if format_usb_address(dev.idVendor, dev.idProduct) == usb_address:
            return dev
    raise UsbError(f"USB device {usb_address} not found")


class UsbBulkConnection:
    """A claimed USB interface with one bulk IN and one bulk OUT endpoint.

    Usage::

        with UsbBulkConnection("5345:1234", 0, 0x81, 0x01) as conn:
            conn.write(b"*IDN?\\n")
            response = conn.read()
    """

    def __init__(
        self,
        usb_address: str,
        interface_number: int,
        bulk_in_address: int,
        bulk_out_address: int,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> None:
        self._usb_address = usb_address
        self._interface_number = interface_number
        self._bulk_in_address = bulk_in_address
        self._bulk_out_address = bulk_out_address
        self._timeout_ms = timeout_ms
        self._device = None
        self._claimed = False

    @property
    def connected(self) -> bool:
        return self._claimed

    def open(self) -> None:
        """Find the device, claim the interface and check both endpoints.

        Raises:
            UsbError: If any step fails. Anything acquired is released.
        """
        self._device = find_usb_device(self._usb_address)
        try:
            self._claim()
        except UsbError:
            self.close()
            raise

        logger.info(
            "Opened USB device %s interface %d (in=0x%02x, out=0x%02x)",
            self._usb_address,
            self._interface_number,
            self._bulk_in_address,
            self._bulk_out_address,
        )

    def _claim(self) -> None:
        import usb.core
        import usb.util

        dev = self._device
        number = self._interface_number
        try:
            if dev.is_kernel_driver_active(number):
                dev.detach_kernel_driver(number)
            usb.util.claim_interface(dev, number)
            self._claimed = True
        except (usb.core.USBError, NotImplementedError) as e:
            raise UsbError(f"Could not open interface {number}: {e}") from e

        try:
            interface = dev.get_active_configuration()[(number, 0)]
        except (usb.core.USBError, KeyError, IndexError) as e:
            raise UsbError(f"Could not read descriptors of interface {number}: {e}") from e

        for address in (self._bulk_out_address, self._bulk_in_address):
            endpoint = usb.util.find_descriptor(interface, bEndpointAddress=address)
            if endpoint is None:
                raise UsbError(f"Failed to get endpoint 0x{address:02x}")

    def close(self) -> None:
        """Release the interface and free pyusb resources."""
        if self._device is None:
            return

        import usb.core
        import usb.util

        try:
            if self._claimed:
                usb.util.release_interface(self._device, self._interface_number)
        except usb.core.USBError as e:
            logger.warning("Error releasing USB interface on %s: %s", self._usb_address, e)

        try:
            usb.util.dispose_resources(self._device)
        except usb.core.USBError as e:
            logger.warning("Error closing USB device %s: %s", self._usb_address, e)
        finally:
            self._device = None
            self._claimed = False
            logger.info("Closed USB device %s", self._usb_address)

    def __enter__(self) -> UsbBulkConnection:
        self.open()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def write(self, data: bytes) -> int:
        """Submit ``data`` on the bulk OUT endpoint and wait for completion.

        Raises:
            UsbError: If not connected.
            usb.core.USBError: If the transfer fails.
        """
        if not self._claimed:
            raise UsbError("Not connected to USB device")
        written = self._device.write(self._bulk_out_address, data, timeout=self._timeout_ms)
        logger.debug("USB write (%d bytes): %r", written, data)
        return written

    def read(self, size: int = DEFAULT_READ_SIZE) -> bytes:
        """Submit a ``size``-byte read on the bulk IN endpoint and wait.

        Raises:
            UsbError: If not connected.
            usb.core.USBError: If the transfer fails.
        """
        if not self._claimed:
            raise UsbError("Not connected to USB device")
        data = bytes(self._device.read(self._bulk_in_address, size, timeout=self._timeout_ms))
        logger.debug("USB read (%d bytes)", len(data))
        return data


class ScpiUsbInstrument:
    """Driver for instruments speaking newline-terminated text over USB bulk.

    The dialect decides how tokens are encoded and which ones are queries.
    Query responses are returned as :class:`RawReading` objects.
    """

    def __init__(
        self,
        usb_address: str,
        dialect: Dialect,
        interface_number: int,
        bulk_in_address: int,
        bulk_out_address: int,
        read_size: int = DEFAULT_READ_SIZE,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> None:
        self.usb_address = usb_address
        self.dialect = dialect
        self.interface_number = interface_number
        self.bulk_in_address = bulk_in_address
        self.bulk_out_address = bulk_out_address
        self.read_size = read_size
        self.timeout_ms = timeout_ms

    def command(self, tokens: list[str]) -> list[Reading] | None:
        """Send a batch of tokens; return one reading per query, or None.

        A failed transfer aborts the whole batch and discards the readings
        collected so far.

        Raises:
            CommandError: If a token is malformed or its transfer fails.
            UsbError: If the device cannot be found or opened.
        """
        commands = encode_commands(self.dialect, tokens)
        readings: list[Reading] = []

        with UsbBulkConnection(
            self.usb_address,
            self.interface_number,
            self.bulk_in_address,
            self.bulk_out_address,
            timeout_ms=self.timeout_ms,
        ) as conn:
            import usb.core

            for command in commands:
                try:
                    conn.write(command.payload)
                except usb.core.USBError as e:
                    raise CommandError(
                        f"Failed to send command {command.token!r}: {e}"
                    ) from e

                if not command.expects_response:
                    continue

                try:
                    data = conn.read(self.read_size)
                except usb.core.USBError as e:
                    raise CommandError(
                        f"Failed to read response for command {command.token!r}: {e}"
                    ) from e
                readings.append(RawReading(data))

        return readings or None
