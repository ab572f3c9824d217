"""Text rendering of readings (CSV or raw)."""

from __future__ import annotations

from enum import Enum

from .errors import GeneralError
from .protocol.parser import MultimeterReading, Reading


class OutputFormat(str, Enum):
    CSV = "csv"
    RAW = "raw"


def render_reading(reading: Reading, output_format: OutputFormat | str) -> str:
    """Render one reading.

    Raises:
        GeneralError: If the format is unknown or the reading cannot be
            rendered in it (e.g. CSV for an opaque SCPI response).
    """
    try:
        fmt = OutputFormat(output_format)
    except ValueError:
        raise GeneralError(f"Unknown output format: {output_format!r}") from None

    if fmt is OutputFormat.CSV:
        return reading.to_csv()
    return reading.raw_string()


def render_readings(
    readings: list[Reading] | None,
    output_format: OutputFormat | str = OutputFormat.CSV,
    header: bool = False,
) -> str:
    """Render a batch, one reading per line.

    With ``header`` set, CSV output of multimeter readings starts with the
    column names.
    """
    if not readings:
        return ""
    lines = [render_reading(reading, output_format) for reading in readings]
    if (
        header
        and OutputFormat(output_format) is OutputFormat.CSV
        and isinstance(readings[0], MultimeterReading)
    ):
        lines.insert(0, MultimeterReading.csv_header())
    return "\n".join(lines)
