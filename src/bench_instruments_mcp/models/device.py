"""Device models, per-model defaults, and driver selection."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from ..errors import GeneralError, HidError, UsbError
from ..protocol.commands import Dialect
from ..protocol.parser import Reading
from ..transport.hid_connection import MultimeterHidInstrument
from ..transport.usb_connection import (
    DEFAULT_READ_SIZE,
    DEFAULT_TIMEOUT_MS,
    ScpiUsbInstrument,
)


class DeviceModel(str, Enum):
    """Supported instruments."""

    UNIT161D = "unit161d"
    GENERIC_SCPI_USB = "generic-scpi-usb"
    PEAKTECH_4055MV_USB = "peaktech4055mv-usb"


@dataclass(frozen=True)
class UsbDefaults:
    """Interface and bulk endpoint addresses used unless overridden."""

    interface_number: int
    bulk_in_address: int
    bulk_out_address: int


USB_DEFAULTS: dict[DeviceModel, UsbDefaults] = {
    DeviceModel.GENERIC_SCPI_USB: UsbDefaults(
        interface_number=0, bulk_in_address=0x81, bulk_out_address=0x01
    ),
    DeviceModel.PEAKTECH_4055MV_USB: UsbDefaults(
        interface_number=0, bulk_in_address=0x82, bulk_out_address=0x02
    ),
}

USB_DIALECTS: dict[DeviceModel, Dialect] = {
    DeviceModel.GENERIC_SCPI_USB: Dialect.SCPI_RAW,
    DeviceModel.PEAKTECH_4055MV_USB: Dialect.WAVEFORM,
}

DEVICE_DESCRIPTIONS: dict[DeviceModel, str] = {
    DeviceModel.UNIT161D: "UNI-T UT161D multimeter over HID",
    DeviceModel.GENERIC_SCPI_USB: "Generic SCPI instrument over USB bulk",
    DeviceModel.PEAKTECH_4055MV_USB: "PeakTech 4055MV function generator over USB bulk",
}


class Instrument(Protocol):
    """A driver that runs one command batch per call."""

    def command(self, tokens: list[str]) -> list[Reading] | None:
        ...


@dataclass
class DeviceConfig:
    """Where an instrument is and how to reach it.

    ``hid_path`` is required for HID models and ``usb_address`` (``vid:pid``)
    for USB models. Unset USB fields fall back to :data:`USB_DEFAULTS`.
    """

    model: DeviceModel
    hid_path: str | None = None
    usb_address: str | None = None
    interface_number: int | None = None
    bulk_in_address: int | None = None
    bulk_out_address: int | None = None
    read_size: int = DEFAULT_READ_SIZE
    timeout_ms: int = DEFAULT_TIMEOUT_MS

    def usb_settings(self) -> UsbDefaults:
        """Resolve the interface and endpoints, applying per-model defaults."""
        defaults = USB_DEFAULTS[DeviceModel(self.model)]
        return UsbDefaults(
            interface_number=_pick(self.interface_number, defaults.interface_number),
            bulk_in_address=_pick(self.bulk_in_address, defaults.bulk_in_address),
            bulk_out_address=_pick(self.bulk_out_address, defaults.bulk_out_address),
        )


def _pick(value: int | None, default: int) -> int:
    return default if value is None else value


def get_communication_device(config: DeviceConfig) -> Instrument:
    """Build the driver for the configured device model.

    Raises:
        GeneralError: If the model is not supported.
        HidError: If a HID model has no ``hid_path``.
        UsbError: If a USB model has no ``usb_address``.
    """
    try:
        model = DeviceModel(config.model)
    except ValueError:
        raise GeneralError(
            f"Unknown device model: {config.model!r}. Valid: {[m.value for m in DeviceModel]}"
        ) from None

    if model is DeviceModel.UNIT161D:
        if not config.hid_path:
            raise HidError("HID device not provided")
        return MultimeterHidInstrument(config.hid_path)

    if not config.usb_address:
        raise UsbError("USB device not provided")
    settings = config.usb_settings()
    return ScpiUsbInstrument(
        config.usb_address.lower(),
        USB_DIALECTS[model],
        interface_number=settings.interface_number,
        bulk_in_address=settings.bulk_in_address,
        bulk_out_address=settings.bulk_out_address,
        read_size=config.read_size,
        timeout_ms=config.timeout_ms,
    )
