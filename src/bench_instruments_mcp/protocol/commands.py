"""Command dialects: turn command tokens into transport payloads.

Three dialects exist, one per device family:

- ``MULTIMETER``: named UT161D functions encoded as binary opcode frames
- ``SCPI_RAW``: literal SCPI text, newline-terminated
- ``WAVEFORM``: PeakTech 4055MV ``Apply:``/``Reset``/``Raw:`` commands
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum

from ..errors import CommandError
from .framing import build_command_frame


@dataclass(frozen=True)
class EncodedCommand:
    """A command token ready to be written to a transport."""

    token: str
    payload: bytes
    expects_response: bool


class Dialect(Enum):
    """Command grammar of a device family."""

    MULTIMETER = "multimeter"
    SCPI_RAW = "scpi-raw"
    WAVEFORM = "waveform"


# ─── MULTIMETER (UT161D) ─────────────────────────────────────────────

class MultimeterCommand(IntEnum):
    """UT161D function opcodes."""

    MIN_MAX = 65
    NOT_MIN_MAX = 66
    RANGE = 70
    AUTO = 71
    REL = 72
    SELECT2 = 73
    HOLD = 74
    LAMP = 75
    SELECT1 = 76
    P_MIN_MAX = 77
    NOT_PEAK = 78
    MEASURE = 94


# Mapping from command tokens to opcodes
MULTIMETER_COMMAND_MAP: dict[str, MultimeterCommand] = {
    "Measure": MultimeterCommand.MEASURE,
    "MinMax": MultimeterCommand.MIN_MAX,
    "NotMinMax": MultimeterCommand.NOT_MIN_MAX,
    "Range": MultimeterCommand.RANGE,
    "Auto": MultimeterCommand.AUTO,
    "Rel": MultimeterCommand.REL,
    "Select2": MultimeterCommand.SELECT2,
    "Hold": MultimeterCommand.HOLD,
    "Lamp": MultimeterCommand.LAMP,
    "Select1": MultimeterCommand.SELECT1,
    "PMinMax": MultimeterCommand.P_MIN_MAX,
    "NotPeak": MultimeterCommand.NOT_PEAK,
}


def parse_multimeter_command(token: str) -> MultimeterCommand:
    """Look up the opcode for a multimeter command token.

    Raises:
        CommandError: If the token is not a known command name.
    """
    try:
        return MULTIMETER_COMMAND_MAP[token]
    except KeyError:
        raise CommandError(
            f"Unknown command: {token!r}. Valid: {list(MULTIMETER_COMMAND_MAP)}"
        ) from None


def encode_multimeter(token: str) -> EncodedCommand:
    """Encode a multimeter token as a request frame.

    Only ``Measure`` is answered by the instrument.
    """
    command = parse_multimeter_command(token)
    return EncodedCommand(
        token=token,
        payload=build_command_frame(command.value),
        expects_response=command is MultimeterCommand.MEASURE,
    )


# ─── SCPI PASSTHROUGH ────────────────────────────────────────────────

def encode_scpi_raw(token: str) -> EncodedCommand:
    """Encode a literal SCPI command; any ``?`` marks it as a query."""
    text = token if token.endswith("\n") else token + "\n"
    return EncodedCommand(
        token=token,
        payload=text.encode("utf-8"),
        expects_response="?" in token,
    )


# ─── WAVEFORM GENERATOR (PeakTech 4055MV) ────────────────────────────

APPLY_PREFIX = "Apply:"
RAW_PREFIX = "Raw:"
RESET_TOKEN = "Reset"


class Waveform(str, Enum):
    """Waveforms accepted by the ``Apply:`` command."""

    SIN = "Sin"
    SQU = "Squ"
    RAMP = "Ramp"
    NOISE = "Noise"
    PPULSE = "PPulse"
    NPULSE = "NPulse"
    STAIR = "Stair"
    HSINE = "HSine"
    LSINE = "LSine"
    REXP = "Rexp"
    RLOG = "RLog"
    TANG = "Tang"
    SINC = "Sinc"
    ROUND = "Round"
    CARD = "Card"
    QUAKE = "Quake"


@dataclass(frozen=True)
class ApplyCommand:
    """``Apply:<waveform> [frequency[, amplitude[, offset]]]``."""

    waveform: Waveform
    frequency: str | None = None
    amplitude: str | None = None
    offset: str | None = None

    def to_command_string(self) -> str:
        command = f"{APPLY_PREFIX}{self.waveform.value}"
        if self.frequency is not None:
            command += f" {self.frequency}"
        if self.amplitude is not None:
            command += f", {self.amplitude}"
        if self.offset is not None:
            command += f", {self.offset}"
        return command + "\n"


@dataclass(frozen=True)
class ResetCommand:
    """Instrument reset."""

    def to_command_string(self) -> str:
        return "*RST\n"


@dataclass(frozen=True)
class RawCommand:
    """Literal command text sent unchanged."""

    command: str

    def to_command_string(self) -> str:
        return self.command + "\n"


WaveformCommand = ApplyCommand | ResetCommand | RawCommand


def parse_apply(token: str) -> ApplyCommand:
    """Parse an ``Apply:`` token.

    The optional fields depend on each other in order: an amplitude needs a
    frequency and an offset needs an amplitude.

    Raises:
        CommandError: On too many fields, a missing or unknown waveform, or
            fields out of order or empty.
    """
    parts = token[len(APPLY_PREFIX):].split(",")
    if len(parts) > 3:
        raise CommandError(f"Too many parameters for Apply command: {token!r}")

    name, _, frequency = parts[0].strip().partition(" ")
    if not name:
        raise CommandError("Waveform type is required for Apply command")
    try:
        waveform = Waveform(name)
    except ValueError:
        raise CommandError(
            f"Unknown waveform: {name!r}. Valid: {[w.value for w in Waveform]}"
        ) from None

    amplitude = parts[1].strip() if len(parts) > 1 else None
    offset = parts[2].strip() if len(parts) > 2 else None
    if amplitude == "":
        raise CommandError(f"Amplitude cannot be empty if provided: {token!r}")
    if offset == "":
        raise CommandError(f"Offset cannot be empty if provided: {token!r}")
    if amplitude is not None and not frequency.strip():
        raise CommandError(f"Amplitude requires a frequency: {token!r}")

    return ApplyCommand(
        waveform=waveform,
        frequency=frequency.strip() or None,
        amplitude=amplitude,
        offset=offset,
    )


def parse_waveform_command(token: str) -> WaveformCommand:
    """Dispatch a waveform generator token by its prefix."""
    if token.startswith(APPLY_PREFIX):
        return parse_apply(token)
    if token == RESET_TOKEN:
        return ResetCommand()
    return RawCommand(token.removeprefix(RAW_PREFIX))


def encode_waveform(token: str) -> EncodedCommand:
    """Encode a waveform generator token; the generator never answers."""
    command = parse_waveform_command(token)
    return EncodedCommand(
        token=token,
        payload=command.to_command_string().encode("utf-8"),
        expects_response=False,
    )


# ─── DISPATCH ────────────────────────────────────────────────────────

_ENCODERS = {
    Dialect.MULTIMETER: encode_multimeter,
    Dialect.SCPI_RAW: encode_scpi_raw,
    Dialect.WAVEFORM: encode_waveform,
}


def encode_command(dialect: Dialect, token: str) -> EncodedCommand:
    """Encode one token with the given dialect."""
    return _ENCODERS[dialect](token)


def encode_commands(dialect: Dialect, tokens: list[str]) -> list[EncodedCommand]:
    """Encode a whole batch, failing before any I/O if a token is malformed."""
    return [encode_command(dialect, token) for token in tokens]
