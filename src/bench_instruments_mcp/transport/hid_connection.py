"""HID connection to the UNI-T UT161D multimeter.

The meter's USB cable enumerates as a HID device. Requests are written as
length-prefixed frames; responses stream back in 64-byte reports that are
reassembled by :class:`~bench_instruments_mcp.protocol.framing.FrameDecoder`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..errors import HidError
from ..protocol.commands import Dialect, encode_commands
from ..protocol.framing import HID_REPORT_SIZE, FrameDecoder, build_report
from ..protocol.parser import MultimeterReading, Reading

logger = logging.getLogger(__name__)


@dataclass
class HidDeviceInfo:
    """Identification strings reported by an open HID device."""

    path: str
    manufacturer: str = ""
    product: str = ""
    serial_number: str = ""


class HidConnection:
    """A HID device opened by path for the duration of one command batch.

    Usage::

        with HidConnection("/dev/hidraw3") as conn:
            conn.write(report)
            data = conn.read()
    """

    def __init__(self, path: str) -> None:
        self._path = path
        self._device = None
        self._device_info = HidDeviceInfo(path=path)

    @property
    def connected(self) -> bool:
        return self._device is not None

    @property
    def device_info(self) -> HidDeviceInfo:
        return self._device_info

    def open(self) -> HidDeviceInfo:
        """Open the HID device at the configured path.

        Raises:
            HidError: If hidapi is unavailable or the device cannot be opened.
        """
        try:
            import hid

            device = hid.device()
            device.open_path(self._path.encode())
        except (ImportError, OSError, ValueError) as e:
            raise HidError(f"Failed to open HID device at {self._path}: {e}") from e

        # Opened from here on; failures below must close the handle
        self._device = device
        try:
            device.set_nonblocking(False)
            self._device_info = HidDeviceInfo(
                path=self._path,
                manufacturer=device.get_manufacturer_string() or "",
                product=device.get_product_string() or "",
                serial_number=device.get_serial_number_string() or "",
            )
        except (OSError, ValueError) as e:
            self.close()
            raise HidError(f"Failed to set up HID device at {self._path}: {e}") from e
        logger.info(
            "Opened HID device %s: %s %s",
            self._path,
            self._device_info.manufacturer,
            self._device_info.product,
        )
        return self._device_info

    def close(self) -> None:
        """Close the HID device."""
        if self._device is None:
            return

        try:
            self._device.close()
        except OSError as e:
            logger.warning("Error closing HID device %s: %s", self._path, e)
        finally:
            self._device = None
            logger.info("Closed HID device %s", self._path)

    def __enter__(self) -> HidConnection:
        self.open()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def write(self, data: bytes) -> int:
        """Write a report to the device.

        Raises:
            HidError: If not connected or the write fails.
        """
        if self._device is None:
            raise HidError("Not connected to HID device")

        try:
            written = self._device.write(data)
        except (OSError, ValueError) as e:
            raise HidError(f"Failed to write to HID device: {e}") from e
        if written < 0:
            raise HidError("Failed to write to HID device")
        logger.debug("HID write: %s", data.hex(" "))
        return written

    def read(self) -> bytes:
        """Block until the next 64-byte report arrives.

        Raises:
            HidError: If not connected or the read fails.
        """
        if self._device is None:
            raise HidError("Not connected to HID device")

        try:
            data = self._device.read(HID_REPORT_SIZE)
        except (OSError, ValueError) as e:
            raise HidError(f"Failed to read from HID device: {e}") from e
        logger.debug("HID read: %s", bytes(data).hex(" "))
        return bytes(data)

    def read_frame(self) -> bytes:
        """Read reports until one complete frame is decoded; return its body.

        There is no timeout: a meter that never completes a frame blocks.
        """
        decoder = FrameDecoder()
        while True:
            body = decoder.feed_report(self.read())
            if body is not None:
                return body


class MultimeterHidInstrument:
    """UT161D multimeter driver over HID."""

    dialect = Dialect.MULTIMETER

    def __init__(self, path: str) -> None:
        self.path = path

    def command(self, tokens: list[str]) -> list[Reading] | None:
        """Send a batch of command tokens and collect any measurements.

        Args:
            tokens: Command names such as ``"Measure"`` or ``"Hold"``.

        Returns:
            The decoded measurements, or None if the batch produced none.

        Raises:
            CommandError: If a token is not a known command.
            HidError: On any device or framing failure.
        """
        commands = encode_commands(self.dialect, tokens)
        readings: list[Reading] = []

        with HidConnection(self.path) as conn:
            for command in commands:
                logger.debug("Sending %s", command.token)
                conn.write(build_report(command.payload))
                if not command.expects_response:
                    continue
                reading = MultimeterReading.from_bytes(conn.read_frame())
                if reading is not None:
                    readings.append(reading)

        return readings or None


def list_hid_devices() -> list[dict]:
    """Enumerate HID devices visible to hidapi.

    Raises:
        HidError: If hidapi is unavailable or enumeration fails.
    """
    try:
        import hid

        devices = hid.enumerate()
    except (ImportError, OSError) as e:
        raise HidError(f"Could not list HID devices: {e}") from e

    result = []
    for info in devices:
        path = info.get("path", b"")
        result.append({
            "path": path.decode(errors="replace") if isinstance(path, bytes) else path,
            "vendor_id": f"{info.get('vendor_id', 0):x}",
            "product_id": f"{info.get('product_id', 0):x}",
            "manufacturer": info.get("manufacturer_string") or "",
            "product": info.get("product_string") or "",
            "serial_number": info.get("serial_number") or "",
        })
    return result
