"""Tests for the command dialects."""

import pytest

from bench_instruments_mcp.errors import CommandError
from bench_instruments_mcp.protocol.commands import (
    MULTIMETER_COMMAND_MAP,
    ApplyCommand,
    Dialect,
    MultimeterCommand,
    RawCommand,
    ResetCommand,
    Waveform,
    encode_command,
    encode_commands,
    encode_multimeter,
    encode_scpi_raw,
    encode_waveform,
    parse_multimeter_command,
    parse_waveform_command,
)


# ─── MULTIMETER ──────────────────────────────────────────────────────

def test_multimeter_opcodes():
    """Verify opcodes of the UT161D functions."""
    assert MultimeterCommand.MEASURE == 94
    assert MultimeterCommand.MIN_MAX == 65
    assert MultimeterCommand.NOT_MIN_MAX == 66
    assert MultimeterCommand.RANGE == 70
    assert MultimeterCommand.HOLD == 74
    assert MultimeterCommand.NOT_PEAK == 78


def test_multimeter_command_names():
    assert set(MULTIMETER_COMMAND_MAP) == {
        "Measure", "MinMax", "NotMinMax", "Range", "Auto", "Rel",
        "Select2", "Hold", "Lamp", "Select1", "PMinMax", "NotPeak",
    }


def test_parse_multimeter_command():
    assert parse_multimeter_command("Measure") is MultimeterCommand.MEASURE
    assert parse_multimeter_command("MinMax") is MultimeterCommand.MIN_MAX


def test_unknown_multimeter_command():
    with pytest.raises(CommandError, match="Unknown command"):
        parse_multimeter_command("Unknown")
    with pytest.raises(CommandError):
        encode_multimeter("measure")


def test_encode_measure():
    command = encode_multimeter("Measure")
    assert command.payload == bytes([0xAB, 0xCD, 0x03, 0x5E, 0x01, 0xD9])
    assert command.expects_response


def test_encode_hold_is_write_only():
    command = encode_multimeter("Hold")
    assert command.payload == bytes([0xAB, 0xCD, 0x03, 0x4A, 0x01, 0xC5])
    assert not command.expects_response


def test_only_measure_expects_response():
    for name in MULTIMETER_COMMAND_MAP:
        assert encode_multimeter(name).expects_response == (name == "Measure")


# ─── SCPI PASSTHROUGH ────────────────────────────────────────────────

def test_scpi_query():
    command = encode_scpi_raw("*IDN?")
    assert command.payload == b"*IDN?\n"
    assert command.expects_response


def test_scpi_write_keeps_existing_newline():
    command = encode_scpi_raw("OUTP ON\n")
    assert command.payload == b"OUTP ON\n"
    assert not command.expects_response


def test_scpi_question_mark_anywhere_is_query():
    assert encode_scpi_raw("MEAS:VOLT? DEF").expects_response


# ─── WAVEFORM GENERATOR ──────────────────────────────────────────────

@pytest.mark.parametrize(
    "token, expected",
    [
        ("Apply:Sin 10kHz, 1.2, 0.5", "Apply:Sin 10kHz, 1.2, 0.5\n"),
        ("Apply:Squ 10kHz, 1.5, 0.1", "Apply:Squ 10kHz, 1.5, 0.1\n"),
        ("Apply:Squ 10kHz, 1.5", "Apply:Squ 10kHz, 1.5\n"),
        ("Apply:Squ 10kHz", "Apply:Squ 10kHz\n"),
        ("Apply:Squ", "Apply:Squ\n"),
        ("Reset", "*RST\n"),
        ("Raw:Apply:Sin 10kHz, 1.2, 0.5", "Apply:Sin 10kHz, 1.2, 0.5\n"),
        ("OUTP ON", "OUTP ON\n"),
    ],
)
def test_waveform_serialization(token, expected):
    assert encode_waveform(token).payload == expected.encode()


def test_waveform_never_expects_response():
    for token in ("Apply:Sin 1kHz", "Reset", "Raw:*IDN?", "*IDN?"):
        assert not encode_waveform(token).expects_response


def test_parse_apply_fields():
    command = parse_waveform_command("Apply:Ramp 2 kHz, 5.2 Vpp, -0.2Vdc")
    assert command == ApplyCommand(
        waveform=Waveform.RAMP,
        frequency="2 kHz",
        amplitude="5.2 Vpp",
        offset="-0.2Vdc",
    )


def test_parse_reset_and_raw():
    assert parse_waveform_command("Reset") == ResetCommand()
    assert parse_waveform_command("Raw:OUTP ON") == RawCommand("OUTP ON")
    # Only the exact token is a reset
    assert parse_waveform_command("Reset now") == RawCommand("Reset now")


def test_all_waveforms_accepted():
    assert len(Waveform) == 16
    for waveform in Waveform:
        command = parse_waveform_command(f"Apply:{waveform.value}")
        assert command.waveform is waveform


@pytest.mark.parametrize(
    "token",
    [
        "Apply:Sin, 10kHz,,",
        "Apply:Sin 1kHz, 1, 2, 3",
        "Apply:",
        "Apply:Triangle 1kHz",
        "Apply:sin 1kHz",
        "Apply:Sin, 1.2",
        "Apply:Sin 1kHz, , 0.5",
        "Apply:Sin 1kHz, 1.2,",
    ],
)
def test_invalid_apply(token):
    with pytest.raises(CommandError):
        encode_waveform(token)


# ─── DISPATCH ────────────────────────────────────────────────────────

def test_encode_command_dispatch():
    assert encode_command(Dialect.MULTIMETER, "Measure").expects_response
    assert encode_command(Dialect.SCPI_RAW, "*IDN?").payload == b"*IDN?\n"
    assert encode_command(Dialect.WAVEFORM, "Reset").payload == b"*RST\n"


def test_encode_commands_keeps_order():
    commands = encode_commands(Dialect.SCPI_RAW, ["*RST", "*IDN?"])
    assert [c.token for c in commands] == ["*RST", "*IDN?"]
    assert [c.expects_response for c in commands] == [False, True]


def test_encode_commands_fails_on_any_bad_token():
    with pytest.raises(CommandError):
        encode_commands(Dialect.MULTIMETER, ["Measure", "Bogus"])
