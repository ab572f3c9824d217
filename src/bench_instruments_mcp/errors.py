"""Error types raised by the instrument communication layer.

Every error carries a human-readable message only. Callers that do not care
about the failure kind can catch :class:`InstrumentError`.
"""

from __future__ import annotations


class InstrumentError(Exception):
    """Base class for all instrument communication errors."""


class UsbError(InstrumentError):
    """USB enumeration, open, interface claim or endpoint failure."""


class HidError(InstrumentError):
    """HID open/read/write failure, or a malformed multimeter frame."""


class CommandError(InstrumentError):
    """A command token could not be encoded, or its transfer failed."""


class GeneralError(InstrumentError):
    """Configuration problems and operations a reading does not support."""
