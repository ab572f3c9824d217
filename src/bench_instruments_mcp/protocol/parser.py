"""Response decoding: instrument payloads into readings."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import ClassVar

from ..errors import GeneralError

MEASUREMENT_SIZE = 14

# Indexed by byte 0 of a UT161D measurement
MODES = [
    "ACV", "ACmV", "DCV", "DCmV", "Hz", "%", "OHM", "CONT", "DIDOE", "CAP",
    "°C", "°F", "DCuA", "ACuA", "DCmA", "ACmA", "DCA", "ACA", "HFE", "Live",
    "NCV", "LozV", "ACA", "DCA", "LPF", "AC/DC", "LPF", "AC+DC", "LPF",
    "AC+DC2", "INRUSH",
]

UNKNOWN = "Unknown"

# Display strings meaning "out of range"
OVERLOAD = frozenset({".OL", "O.L", "OL.", "OL", "-.OL", "-O.L", "-OL.", "-OL"})

# Display strings shown when non-contact voltage (>= 50 Vrms) is detected
NCV = frozenset({"EF", "-", "--", "---", "----", "-----"})

# (mode, range) -> display unit
UNITS: dict[tuple[str, str], str] = {
    ("%", "0"): "%",
    ("AC+DC", "1"): "A",
    ("AC+DC2", "1"): "A",
    **{("AC/DC", r): "V" for r in "0123"},
    ("ACA", "1"): "A",
    **{("ACV", r): "V" for r in "0123"},
    ("ACmA", "0"): "mA",
    ("ACmA", "1"): "mA",
    ("ACmV", "0"): "mV",
    ("ACuA", "0"): "uA",
    ("ACuA", "1"): "uA",
    ("CAP", "0"): "nF",
    ("CAP", "1"): "nF",
    ("CAP", "2"): "uF",
    ("CAP", "3"): "uF",
    ("CAP", "4"): "uF",
    ("CAP", "5"): "mF",
    ("CAP", "6"): "mF",
    ("CAP", "7"): "mF",
    ("CONT", "0"): "Ω",
    ("DCA", "1"): "A",
    **{("DCV", r): "V" for r in "0123"},
    ("DCmA", "0"): "mA",
    ("DCmA", "1"): "mA",
    ("DCmV", "0"): "mV",
    ("DCuA", "0"): "uA",
    ("DCuA", "1"): "uA",
    ("DIDOE", "0"): "V",
    ("Hz", "0"): "Hz",
    ("Hz", "1"): "Hz",
    ("Hz", "2"): "kHz",
    ("Hz", "3"): "kHz",
    ("Hz", "4"): "kHz",
    ("Hz", "5"): "MHz",
    ("Hz", "6"): "MHz",
    ("Hz", "7"): "MHz",
    **{("LPF", r): "V" for r in "0123"},
    **{("LozV", r): "V" for r in "0123"},
    ("OHM", "0"): "Ω",
    ("OHM", "1"): "kΩ",
    ("OHM", "2"): "kΩ",
    ("OHM", "3"): "kΩ",
    ("OHM", "4"): "MΩ",
    ("OHM", "5"): "MΩ",
    ("OHM", "6"): "MΩ",
    ("°C", "0"): "°C",
    ("°C", "1"): "°C",
    ("°F", "0"): "°F",
    ("°F", "1"): "°F",
    ("HFE", "0"): "B",
    ("NCV", "0"): "NCV",
}


def get_mode(index: int) -> str:
    if 0 <= index < len(MODES):
        return MODES[index]
    return UNKNOWN


def get_unit(mode: str, range_: str) -> str:
    """Resolve the display unit for a mode/range pair, or ``"Unknown"``."""
    return UNITS.get((mode, range_), UNKNOWN)


def is_overload(value: str) -> bool:
    return value in OVERLOAD


def is_ncv(value: str) -> bool:
    return value in NCV


def parse_decimal(value: str) -> float | None:
    try:
        return float(value)
    except ValueError:
        return None


def _csv_value(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class Reading(ABC):
    """Decoded instrument response."""

    def to_csv(self) -> str:
        raise GeneralError(f"{type(self).__name__} does not support CSV format")

    @abstractmethod
    def raw(self) -> bytes:
        """Bytes the reading was decoded from."""

    def raw_string(self) -> str:
        """Best-effort UTF-8 view of :meth:`raw`."""
        return self.raw().decode("utf-8", errors="replace")

    @abstractmethod
    def to_dict(self) -> dict:
        """JSON-serialisable view of the reading."""


@dataclass
class RawReading(Reading):
    """Opaque response payload, e.g. the answer to a SCPI query."""

    data: bytes

    def raw(self) -> bytes:
        return self.data

    def to_dict(self) -> dict:
        return {
            "raw_hex": self.data.hex(" ") if self.data else "",
            "text": self.raw_string(),
        }

    def __repr__(self) -> str:
        return f"RawReading(data_len={len(self.data)})"


@dataclass
class MultimeterReading(Reading):
    """A decoded UT161D measurement.

    Layout (14 bytes)::

        0      mode index
        1      range character
        2-8    display value (ASCII)
        9-10   bar graph tens and units
        11     bit3 max, bit2 min, bit1 hold, bit0 rel
        12     bit2 auto, bit1 battery, bit0 hwwarning
        13     bit3 dc, bit2 peak_max, bit1 peak_min, bit0 bar_polarity
    """

    CSV_FIELDS: ClassVar[tuple[str, ...]] = (
        "mode", "range", "display_value", "overload", "ncv", "decimal_value",
        "display_unit", "progress", "max", "min", "hold", "rel", "auto",
        "battery", "hwwarning", "dc", "peak_max", "peak_min", "bar_polarity",
    )

    mode: str
    range: str
    display_value: str
    overload: bool
    ncv: bool
    decimal_value: float | None
    display_unit: str
    progress: int
    max: bool = False
    min: bool = False
    hold: bool = False
    rel: bool = False
    auto: bool = False
    battery: bool = False
    hwwarning: bool = False
    dc: bool = False
    peak_max: bool = False
    peak_min: bool = False
    bar_polarity: bool = False
    original_bytes: bytes = field(default=b"", repr=False)

    @classmethod
    def from_bytes(cls, data: bytes) -> MultimeterReading | None:
        """Decode a measurement; responses shorter than 14 bytes yield None."""
        if len(data) < MEASUREMENT_SIZE:
            return None

        mode = get_mode(data[0])
        range_ = data[1:2].decode("utf-8", errors="replace")
        display_value = data[2:9].decode("utf-8", errors="replace").strip()
        overload = is_overload(display_value)
        ncv = is_ncv(display_value)
        decimal_value = None if overload or ncv else parse_decimal(display_value)

        return cls(
            mode=mode,
            range=range_,
            display_value=display_value,
            overload=overload,
            ncv=ncv,
            decimal_value=decimal_value,
            display_unit=get_unit(mode, range_),
            progress=data[9] * 10 + data[10],
            max=bool(data[11] & 0x08),
            min=bool(data[11] & 0x04),
            hold=bool(data[11] & 0x02),
            rel=bool(data[11] & 0x01),
            auto=bool(data[12] & 0x04),
            battery=bool(data[12] & 0x02),
            hwwarning=bool(data[12] & 0x01),
            dc=bool(data[13] & 0x08),
            peak_max=bool(data[13] & 0x04),
            peak_min=bool(data[13] & 0x02),
            bar_polarity=bool(data[13] & 0x01),
            original_bytes=bytes(data),
        )

    @classmethod
    def csv_header(cls) -> str:
        return ",".join(cls.CSV_FIELDS)

    def to_csv(self) -> str:
        return ",".join(_csv_value(getattr(self, name)) for name in self.CSV_FIELDS)

    def raw(self) -> bytes:
        return self.original_bytes

    def to_dict(self) -> dict:
        return {name: getattr(self, name) for name in self.CSV_FIELDS}
