"""Frame builder and byte-stream decoder for the UT161D HID protocol.

Frame layout::

    +---------+---------+--------+------------------+----------+
    | Sync    | Sync    | Length | Body             | Checksum |
    | 0xAB    | 0xCD    | 1 byte | Length - 2 bytes | 2 bytes  |
    +---------+---------+--------+------------------+----------+

- Length: number of bytes that follow it (body + checksum)
- Checksum: 16-bit sum of every preceding frame byte (sync, length and
  body), big-endian

Requests carry a one-byte opcode body. On the wire each frame is preceded by
a 1-byte total-length prefix. Responses arrive as 64-byte HID reports whose
first byte is reserved and carries no frame data.
"""

from __future__ import annotations

from enum import Enum

from ..errors import HidError

SYNC = b"\xAB\xCD"
HID_REPORT_SIZE = 64
CHECKSUM_SIZE = 2

# Checksum contribution of the request header (0xAB + 0xCD + 0x03).
# For a one-byte opcode the trailing checksum is opcode + COMMAND_OFFSET.
COMMAND_OFFSET = 379


def checksum(data: bytes) -> int:
    """Sum of all bytes truncated to 16 bits."""
    return sum(data) & 0xFFFF


def build_frame(body: bytes) -> bytes:
    """Build a complete frame around ``body``.

    Args:
        body: Frame body (an opcode for requests, a measurement for responses).

    Returns:
        ``SYNC + length + body + checksum``.
    """
    length = len(body) + CHECKSUM_SIZE
    if length > 0xFF:
        raise ValueError(f"Frame body too long: {len(body)} bytes")
    head = SYNC + bytes([length]) + body
    return head + checksum(head).to_bytes(CHECKSUM_SIZE, "big")


def build_command_frame(opcode: int) -> bytes:
    """Build the 6-byte request frame for a multimeter opcode.

    The opcode is truncated to its low byte. The result is
    ``AB CD 03 opcode hi lo`` where ``hi lo`` is ``opcode + 379`` big-endian.
    """
    return build_frame(bytes([opcode & 0xFF]))


def build_report(frame: bytes) -> bytes:
    """Prefix a frame with its 1-byte total length for the HID write."""
    if len(frame) > 0xFF:
        raise ValueError(f"Frame too long for a length prefix: {len(frame)}")
    return bytes([len(frame)]) + frame


class DecoderState(Enum):
    """States of :class:`FrameDecoder`."""

    AWAIT_SYNC1 = "await_sync1"
    AWAIT_SYNC2 = "await_sync2"
    AWAIT_LENGTH = "await_length"
    AWAIT_PAYLOAD = "await_payload"


class FrameDecoder:
    """Incremental decoder for frames spread over arbitrary read chunks.

    Feed it bytes (or whole HID reports) until :meth:`feed` returns the frame
    body. A wrong second sync byte or a bad checksum raises :class:`HidError`.
    Bytes before the first sync byte are discarded.

    Usage::

        decoder = FrameDecoder()
        body = None
        while body is None:
            body = decoder.feed_report(device.read(64))
    """

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.state = DecoderState.AWAIT_SYNC1
        self.buffer = bytearray()
        self.length = 0
        self.running_sum = 0

    def feed_report(self, report: bytes) -> bytes | None:
        """Feed one HID report, skipping its reserved first byte."""
        return self.feed(report[1:])

    def feed(self, data: bytes) -> bytes | None:
        """Consume bytes; return the frame body once a frame is complete.

        Bytes following a completed frame in the same chunk are ignored.
        """
        for byte in data:
            body = self._step(byte)
            if body is not None:
                return body
        return None

    def _step(self, byte: int) -> bytes | None:
        if self.state is DecoderState.AWAIT_SYNC1:
            if byte == SYNC[0]:
                self.running_sum = byte
                self.state = DecoderState.AWAIT_SYNC2
            return None

        if self.state is DecoderState.AWAIT_SYNC2:
            if byte != SYNC[1]:
                raise HidError(
                    f"Unexpected byte 0x{byte:02X} while waiting for sync byte "
                    f"0x{SYNC[1]:02X}"
                )
            self.running_sum += byte
            self.state = DecoderState.AWAIT_LENGTH
            return None

        if self.state is DecoderState.AWAIT_LENGTH:
            if byte < CHECKSUM_SIZE:
                raise HidError(f"Frame length {byte} too short for a checksum")
            self.running_sum += byte
            self.length = byte
            self.buffer = bytearray()
            self.state = DecoderState.AWAIT_PAYLOAD
            return None

        self.buffer.append(byte)
        if len(self.buffer) <= self.length - CHECKSUM_SIZE:
            self.running_sum += byte
        if len(self.buffer) < self.length:
            return None

        received = int.from_bytes(self.buffer[-CHECKSUM_SIZE:], "big")
        calculated = self.running_sum & 0xFFFF
        body = bytes(self.buffer[:-CHECKSUM_SIZE])
        self.reset()
        if received != calculated:
            raise HidError(
                f"Checksum mismatch: calculated 0x{calculated:04X}, "
                f"received 0x{received:04X}"
            )
        return body


def parse_frame(data: bytes) -> bytes:
    """Decode a single frame from a contiguous byte string.

    Raises:
        HidError: If the data is malformed or ends before a frame completes.
    """
    body = FrameDecoder().feed(data)
    if body is None:
        raise HidError("Incomplete frame")
    return body
