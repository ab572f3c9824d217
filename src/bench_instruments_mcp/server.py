"""MCP server entry point for bench instruments.

Exposes tools and resources via the Model Context Protocol using the
official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .errors import InstrumentError
from .models.device import (
    DEVICE_DESCRIPTIONS,
    USB_DEFAULTS,
    DeviceConfig,
    DeviceModel,
    get_communication_device,
)
from .protocol.commands import MULTIMETER_COMMAND_MAP, MultimeterCommand, Waveform
from .protocol.parser import MODES
from .render import render_readings
from .transport.hid_connection import list_hid_devices
from .transport.usb_connection import list_usb_devices

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "bench-instruments",
    instructions="MCP server for HID and USB bench instruments "
    "(UT161D multimeter, SCPI instruments, PeakTech 4055MV generator)",
)


def _error(e: InstrumentError) -> dict[str, str]:
    logger.error("%s: %s", type(e).__name__, e)
    return {"error": str(e), "kind": type(e).__name__}


# ─── DEVICE TOOLS ────────────────────────────────────────────────────

@mcp.tool()
def list_devices() -> dict[str, Any]:
    """List HID and USB devices visible on this machine.

    HID entries carry the ``path`` to pass as ``hid_path``; USB entries carry
    the ``vid:pid`` address to pass as ``usb``.
    """
    result: dict[str, Any] = {}
    try:
        result["hid"] = list_hid_devices()
    except InstrumentError as e:
        result["hid_error"] = str(e)
    try:
        result["usb"] = [
            {"usb": info.usb_address, "bus": info.bus, "address": info.address}
            for info in list_usb_devices()
        ]
    except InstrumentError as e:
        result["usb_error"] = str(e)
    return result


@mcp.tool()
def send_commands(
    device: str,
    commands: list[str],
    hid_path: str | None = None,
    usb: str | None = None,
    interface_number: int | None = None,
    bulk_in_address: int | None = None,
    bulk_out_address: int | None = None,
    output_format: str = "csv",
) -> dict[str, Any]:
    """Send a batch of commands to an instrument and return its readings.

    Commands run in order; the first failure aborts the batch.

    Args:
        device: One of ``unit161d``, ``generic-scpi-usb``, ``peaktech4055mv-usb``.
        commands: Command tokens, e.g. ``["Measure"]``, ``["*IDN?"]`` or
                  ``["Apply:Sin 10kHz, 1.2, 0.5"]``.
        hid_path: HID device path (unit161d).
        usb: USB ``vid:pid`` in lowercase hex (USB models).
        interface_number: USB interface override.
        bulk_in_address: Bulk IN endpoint override.
        bulk_out_address: Bulk OUT endpoint override.
        output_format: ``csv`` or ``raw``. SCPI responses only render as
                       ``raw``; with ``csv`` they are still returned in
                       ``readings`` and ``output_error`` says why.
    """
    config = DeviceConfig(
        model=device,
        hid_path=hid_path,
        usb_address=usb,
        interface_number=interface_number,
        bulk_in_address=bulk_in_address,
        bulk_out_address=bulk_out_address,
    )
    try:
        instrument = get_communication_device(config)
        readings = instrument.command(commands)
    except InstrumentError as e:
        return _error(e)

    result: dict[str, Any] = {
        "readings": [reading.to_dict() for reading in readings or []],
        "output": "",
    }
    # Readings are returned even when they cannot be rendered
    try:
        result["output"] = render_readings(readings, output_format)
    except InstrumentError as e:
        logger.warning("Could not render readings as %s: %s", output_format, e)
        result["output_error"] = str(e)
    return result


@mcp.tool()
def measure(hid_path: str) -> dict[str, Any]:
    """Take one measurement from a UT161D multimeter.

    Args:
        hid_path: HID device path of the meter.
    """
    config = DeviceConfig(model=DeviceModel.UNIT161D, hid_path=hid_path)
    try:
        readings = get_communication_device(config).command(["Measure"])
    except InstrumentError as e:
        return _error(e)

    if not readings:
        return {"error": "No measurement received", "kind": "HidError"}
    return readings[0].to_dict()


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("bench://catalog/devices")
def resource_devices() -> str:
    """Supported device models with their USB defaults."""
    devices = []
    for model in DeviceModel:
        entry: dict[str, Any] = {
            "device": model.value,
            "description": DEVICE_DESCRIPTIONS[model],
        }
        defaults = USB_DEFAULTS.get(model)
        if defaults is not None:
            entry["interface_number"] = defaults.interface_number
            entry["bulk_in_address"] = f"0x{defaults.bulk_in_address:02x}"
            entry["bulk_out_address"] = f"0x{defaults.bulk_out_address:02x}"
        devices.append(entry)
    return json.dumps({"devices": devices})


@mcp.resource("bench://catalog/multimeter-commands")
def resource_multimeter_commands() -> str:
    """UT161D command names and opcodes."""
    commands = [
        {
            "command": name,
            "opcode": int(opcode),
            "query": opcode is MultimeterCommand.MEASURE,
        }
        for name, opcode in MULTIMETER_COMMAND_MAP.items()
    ]
    return json.dumps({"commands": commands})


@mcp.resource("bench://catalog/waveforms")
def resource_waveforms() -> str:
    """Waveforms accepted by the PeakTech 4055MV ``Apply:`` command."""
    return json.dumps({
        "waveforms": [w.value for w in Waveform],
        "syntax": "Apply:<waveform>[ <freq>[, <amplitude>[, <offset>]]] | Reset | Raw:<text>",
    })


@mcp.resource("bench://catalog/multimeter-modes")
def resource_multimeter_modes() -> str:
    """UT161D mode table indexed by the first measurement byte."""
    modes = [{"id": i, "mode": mode} for i, mode in enumerate(MODES)]
    return json.dumps({"modes": modes, "count": len(modes)})


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
