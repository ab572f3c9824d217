"""Tests for device model selection and per-model USB defaults."""

import pytest

from bench_instruments_mcp.errors import GeneralError, HidError, UsbError
from bench_instruments_mcp.models.device import (
    USB_DEFAULTS,
    DeviceConfig,
    DeviceModel,
    get_communication_device,
)
from bench_instruments_mcp.protocol.commands import Dialect
from bench_instruments_mcp.transport.hid_connection import MultimeterHidInstrument
from bench_instruments_mcp.transport.usb_connection import ScpiUsbInstrument


def test_model_names():
    assert [m.value for m in DeviceModel] == [
        "unit161d",
        "generic-scpi-usb",
        "peaktech4055mv-usb",
    ]


def test_usb_defaults():
    generic = USB_DEFAULTS[DeviceModel.GENERIC_SCPI_USB]
    assert (generic.interface_number, generic.bulk_in_address, generic.bulk_out_address) == (0, 0x81, 0x01)
    peaktech = USB_DEFAULTS[DeviceModel.PEAKTECH_4055MV_USB]
    assert (peaktech.interface_number, peaktech.bulk_in_address, peaktech.bulk_out_address) == (0, 0x82, 0x02)
    assert DeviceModel.UNIT161D not in USB_DEFAULTS


def test_select_multimeter():
    instrument = get_communication_device(
        DeviceConfig(model=DeviceModel.UNIT161D, hid_path="/dev/hidraw3")
    )
    assert isinstance(instrument, MultimeterHidInstrument)
    assert instrument.path == "/dev/hidraw3"


def test_select_by_string_name():
    instrument = get_communication_device(
        DeviceConfig(model="unit161d", hid_path="/dev/hidraw0")
    )
    assert isinstance(instrument, MultimeterHidInstrument)


def test_multimeter_requires_hid_path():
    with pytest.raises(HidError, match="HID device not provided"):
        get_communication_device(DeviceConfig(model=DeviceModel.UNIT161D))


def test_usb_model_requires_address():
    with pytest.raises(UsbError, match="USB device not provided"):
        get_communication_device(DeviceConfig(model=DeviceModel.GENERIC_SCPI_USB))
    with pytest.raises(UsbError):
        get_communication_device(
            DeviceConfig(model=DeviceModel.PEAKTECH_4055MV_USB, hid_path="/dev/hidraw0")
        )


def test_unknown_model():
    with pytest.raises(GeneralError, match="Unknown device model"):
        get_communication_device(DeviceConfig(model="ut61e", hid_path="/dev/hidraw0"))


def test_generic_scpi_defaults():
    instrument = get_communication_device(
        DeviceConfig(model=DeviceModel.GENERIC_SCPI_USB, usb_address="1AB1:642")
    )
    assert isinstance(instrument, ScpiUsbInstrument)
    assert instrument.usb_address == "1ab1:642"
    assert instrument.dialect is Dialect.SCPI_RAW
    assert instrument.interface_number == 0
    assert instrument.bulk_in_address == 0x81
    assert instrument.bulk_out_address == 0x01
    assert instrument.read_size == 2_000_000
    assert instrument.timeout_ms == 0


def test_peaktech_defaults():
    instrument = get_communication_device(
        DeviceConfig(model="peaktech4055mv-usb", usb_address="5345:1234")
    )
    assert instrument.dialect is Dialect.WAVEFORM
    assert instrument.bulk_in_address == 0x82
    assert instrument.bulk_out_address == 0x02


def test_overrides_replace_defaults():
    config = DeviceConfig(
        model=DeviceModel.PEAKTECH_4055MV_USB,
        usb_address="5345:1234",
        interface_number=1,
        bulk_out_address=0x04,
        read_size=512,
        timeout_ms=1000,
    )
    instrument = get_communication_device(config)
    assert instrument.interface_number == 1
    assert instrument.bulk_in_address == 0x82
    assert instrument.bulk_out_address == 0x04
    assert instrument.read_size == 512
    assert instrument.timeout_ms == 1000


def test_zero_override_is_not_default():
    config = DeviceConfig(
        model=DeviceModel.GENERIC_SCPI_USB,
        usb_address="5345:1234",
        interface_number=0,
        bulk_out_address=0x00,
    )
    assert config.usb_settings().bulk_out_address == 0x00
