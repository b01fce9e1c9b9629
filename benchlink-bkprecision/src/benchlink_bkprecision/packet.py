"""BK8500 packet codec and command table.

Every exchange with a BK Precision 8500 series programmable DC load is a
fixed 26-byte frame in both directions::

    offset  0      start marker (0xAA)
    offset  1      bus address
    offset  2      command code
    offset  3-22   payload, little-endian numeric fields, zero padded
    offset 23-24   unused, zero
    offset 25      checksum = sum(bytes 0..24) mod 256

The functions here are pure: they build frames, verify checksums and pull
fields out of received frames. The command table is the single place that
knows how each command's payload is scaled, so setters and getters in the
load driver never hardcode unit conversions.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import Enum, IntEnum

FRAME_LENGTH = 26
PAYLOAD_LENGTH = 20
PAYLOAD_OFFSET = 3
CHECKSUM_OFFSET = 25
START_MARKER = 0xAA


class Command(IntEnum):
    """One-byte command codes understood by the BK8500."""

    STATUS = 0x12
    REMOTE_OPERATION = 0x20
    LOAD_ON_OFF = 0x21
    MAX_VOLTAGE_SET = 0x22
    MAX_VOLTAGE_READ = 0x23
    MAX_CURRENT_SET = 0x24
    MAX_CURRENT_READ = 0x25
    MAX_POWER_SET = 0x26
    MAX_POWER_READ = 0x27
    MODE_SET = 0x28
    MODE_READ = 0x29
    CC_CURRENT_SET = 0x2A
    CC_CURRENT_READ = 0x2B
    CV_VOLTAGE_SET = 0x2C
    CV_VOLTAGE_READ = 0x2D
    CP_POWER_SET = 0x2E
    CP_POWER_READ = 0x2F
    CR_RESISTANCE_SET = 0x30
    CR_RESISTANCE_READ = 0x31
    COMM_ADDRESS_SET = 0x54
    LOCAL_CONTROL_SET = 0x55
    REMOTE_SENSE_SET = 0x56
    REMOTE_SENSE_READ = 0x57
    VALUE_READ = 0x5F
    PRODUCT_INFO = 0x6A


class StatusCode(IntEnum):
    """First payload byte of a status-reply frame."""

    COMMAND_OK = 0x80
    CHECKSUM_INCORRECT = 0x90
    PARAMETER_INCORRECT = 0xA0
    UNRECOGNIZED_COMMAND = 0xB0
    INVALID_COMMAND = 0xC0


class Direction(Enum):
    """Whether a command writes a value, reads one, or reports status."""

    SET = "set"
    GET = "get"
    STATUS = "status"


@dataclass(frozen=True)
class CommandSpec:
    """Payload semantics for one command.

    Attributes:
        direction: Set, get, or status.
        value_format: ``struct`` format of the leading payload field, or
            None for commands without a single scalar field.
        scale: Device counts per engineering unit (1000 for millivolts,
            10000 for 0.1 mA steps, 1 for flags and enums).
    """

    direction: Direction
    value_format: str | None = None
    scale: int = 1


_U8 = "<B"
_U32 = "<I"

COMMAND_TABLE: dict[Command, CommandSpec] = {
    Command.STATUS: CommandSpec(Direction.STATUS),
    Command.REMOTE_OPERATION: CommandSpec(Direction.SET, _U8),
    Command.LOAD_ON_OFF: CommandSpec(Direction.SET, _U8),
    Command.MAX_VOLTAGE_SET: CommandSpec(Direction.SET, _U32, 1000),
    Command.MAX_VOLTAGE_READ: CommandSpec(Direction.GET, _U32, 1000),
    Command.MAX_CURRENT_SET: CommandSpec(Direction.SET, _U32, 10000),
    Command.MAX_CURRENT_READ: CommandSpec(Direction.GET, _U32, 10000),
    Command.MAX_POWER_SET: CommandSpec(Direction.SET, _U32, 1000),
    Command.MAX_POWER_READ: CommandSpec(Direction.GET, _U32, 1000),
    Command.MODE_SET: CommandSpec(Direction.SET, _U8),
    Command.MODE_READ: CommandSpec(Direction.GET, _U8),
    Command.CC_CURRENT_SET: CommandSpec(Direction.SET, _U32, 10000),
    Command.CC_CURRENT_READ: CommandSpec(Direction.GET, _U32, 10000),
    Command.CV_VOLTAGE_SET: CommandSpec(Direction.SET, _U32, 1000),
    Command.CV_VOLTAGE_READ: CommandSpec(Direction.GET, _U32, 1000),
    Command.CP_POWER_SET: CommandSpec(Direction.SET, _U32, 1000),
    Command.CP_POWER_READ: CommandSpec(Direction.GET, _U32, 1000),
    Command.CR_RESISTANCE_SET: CommandSpec(Direction.SET, _U32, 1000),
    Command.CR_RESISTANCE_READ: CommandSpec(Direction.GET, _U32, 1000),
    Command.COMM_ADDRESS_SET: CommandSpec(Direction.SET, _U8),
    Command.LOCAL_CONTROL_SET: CommandSpec(Direction.SET, _U8),
    Command.REMOTE_SENSE_SET: CommandSpec(Direction.SET, _U8),
    Command.REMOTE_SENSE_READ: CommandSpec(Direction.GET, _U8),
    Command.VALUE_READ: CommandSpec(Direction.GET),
    Command.PRODUCT_INFO: CommandSpec(Direction.GET),
}


@dataclass(frozen=True)
class DecodedFrame:
    """Fields extracted from a received frame.

    Fields are extracted whether or not the checksum holds; callers decide
    whether to trust them based on ``checksum_ok``.

    Attributes:
        address: Bus address byte.
        command: Echoed command code.
        payload: The 20 payload bytes.
        checksum_ok: Whether the trailing checksum matched.
    """

    address: int
    command: int
    payload: bytes
    checksum_ok: bool

    @property
    def is_status(self) -> bool:
        """True if this is a status-reply frame."""
        return self.command == Command.STATUS

    @property
    def status(self) -> StatusCode | int:
        """First payload byte, as a :class:`StatusCode` when recognized."""
        return status_from_byte(self.payload[0])


def status_from_byte(value: int) -> StatusCode | int:
    """Map a raw status byte to a :class:`StatusCode`, or return it unchanged."""
    try:
        return StatusCode(value)
    except ValueError:
        return value


def compute_checksum(data: bytes | bytearray) -> int:
    """Return the 8-bit modular sum of ``data``."""
    return sum(data) % 256


def encode(address: int, command: int, payload: bytes = b"") -> bytes:
    """Build a 26-byte frame.

    Any address and payload the frame can hold encode without error. Values
    the frame cannot hold are rejected with ``ValueError`` instead of being
    truncated, which is stricter than the wire format itself requires.

    Args:
        address: Instrument bus address (0-255).
        command: Command code.
        payload: Up to 20 payload bytes; shorter payloads are zero padded.

    Returns:
        The complete frame with start marker and checksum.

    Raises:
        ValueError: If the address is out of range or the payload is too long.
    """
    if not 0 <= address <= 0xFF:
        raise ValueError(f"address must be 0-255, got {address}")
    if len(payload) > PAYLOAD_LENGTH:
        raise ValueError(f"payload must be at most {PAYLOAD_LENGTH} bytes, got {len(payload)}")
    frame = bytearray(FRAME_LENGTH)
    frame[0] = START_MARKER
    frame[1] = address
    frame[2] = int(command)
    frame[PAYLOAD_OFFSET : PAYLOAD_OFFSET + len(payload)] = payload
    frame[CHECKSUM_OFFSET] = compute_checksum(frame[:CHECKSUM_OFFSET])
    return bytes(frame)


def verify_checksum(frame: bytes) -> bool:
    """Return True if ``frame`` is 26 bytes long and its checksum holds."""
    if len(frame) != FRAME_LENGTH:
        return False
    return compute_checksum(frame[:CHECKSUM_OFFSET]) == frame[CHECKSUM_OFFSET]


def decode(frame: bytes) -> DecodedFrame:
    """Extract the address, command and payload of a received frame.

    Raises:
        ValueError: If ``frame`` is not exactly 26 bytes long.
    """
    if len(frame) != FRAME_LENGTH:
        raise ValueError(f"frame must be {FRAME_LENGTH} bytes, got {len(frame)}")
    return DecodedFrame(
        address=frame[1],
        command=frame[2],
        payload=bytes(frame[PAYLOAD_OFFSET : PAYLOAD_OFFSET + PAYLOAD_LENGTH]),
        checksum_ok=verify_checksum(frame),
    )


def encode_value(command: Command, value: float) -> bytes:
    """Scale and pack a value for a set command.

    Values are rounded to the nearest device count, so 12.345 V becomes
    12345 mV rather than the 12344 a plain truncation of the binary float
    would give.

    Raises:
        ValueError: If the command is not a scalar set command or the scaled
            value does not fit the field.
    """
    spec = COMMAND_TABLE[command]
    if spec.direction is not Direction.SET or spec.value_format is None:
        raise ValueError(f"{command.name} does not take a scalar value")
    counts = int(round(value * spec.scale))
    try:
        return struct.pack(spec.value_format, counts)
    except struct.error as exc:
        raise ValueError(f"value {value!r} out of range for {command.name}") from exc


def decode_value(command: Command, payload: bytes) -> float | int:
    """Unpack and scale the leading field of a get command's reply payload.

    Unscaled fields (flags and enums) come back as ``int``.

    Raises:
        ValueError: If the command is not a scalar get command.
    """
    spec = COMMAND_TABLE[command]
    if spec.direction is not Direction.GET or spec.value_format is None:
        raise ValueError(f"{command.name} does not return a scalar value")
    (counts,) = struct.unpack_from(spec.value_format, payload, 0)
    if spec.scale == 1:
        return int(counts)
    return counts / spec.scale
