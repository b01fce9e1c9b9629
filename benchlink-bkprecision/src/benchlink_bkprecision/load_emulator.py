"""BK Precision 8500 programmable DC load emulator.

Provides an in-process emulator implementing the ``ByteTransport`` protocol.
It answers every command the load driver issues using the real 26-byte
framing, models a simple linear source connected to the load input, and can
inject the faults the transaction engine has to recover from.
"""

from __future__ import annotations

import math
import struct
from dataclasses import dataclass
from typing import Callable

from benchlink_bkprecision.packet import (
    COMMAND_TABLE,
    FRAME_LENGTH,
    Command,
    Direction,
    StatusCode,
    decode,
    encode,
    verify_checksum,
)
from benchlink_bkprecision.transport import ArrivalCallback

# ---------------------------------------------------------------------------
# Register layout
# ---------------------------------------------------------------------------

# Settings stored as device counts, keyed by the set command with the read
# command that reports them.
_SETTING_PAIRS: dict[Command, Command] = {
    Command.MAX_VOLTAGE_SET: Command.MAX_VOLTAGE_READ,
    Command.MAX_CURRENT_SET: Command.MAX_CURRENT_READ,
    Command.MAX_POWER_SET: Command.MAX_POWER_READ,
    Command.CC_CURRENT_SET: Command.CC_CURRENT_READ,
    Command.CV_VOLTAGE_SET: Command.CV_VOLTAGE_READ,
    Command.CP_POWER_SET: Command.CP_POWER_READ,
    Command.CR_RESISTANCE_SET: Command.CR_RESISTANCE_READ,
}

# Setpoints bounded by a user limit.
_SETPOINT_LIMITS: dict[Command, Command] = {
    Command.CC_CURRENT_SET: Command.MAX_CURRENT_SET,
    Command.CV_VOLTAGE_SET: Command.MAX_VOLTAGE_SET,
    Command.CP_POWER_SET: Command.MAX_POWER_SET,
}

# Operation state register bits
_OP_REMOTE = 0x04
_OP_LOAD_ON = 0x08
_OP_REMOTE_SENSE = 0x20

# Demand state register mode bits, indexed by mode byte
_MODE_BITS = (0x0020, 0x0040, 0x0080, 0x0100)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Bk8500EmulatorConfig:
    """Configuration for a BK8500 emulator instance.

    Args:
        address: Bus address the emulator answers to (0-254).
        model: Model string reported by product info (at most 5 characters).
        serial: Serial number reported by product info (at most 10 characters).
        firmware: Firmware version as ``(major, minor)``.
        max_voltage: Voltage rating in volts (> 0).
        max_current: Current rating in amps (> 0).
        max_power: Power rating in watts (> 0).
        source_voltage: Open-circuit voltage of the simulated source (> 0).
        source_current: Short-circuit current of the simulated source (> 0).
    """

    address: int = 0
    model: str = "8500"
    serial: str = "0000000001"
    firmware: tuple[int, int] = (1, 16)
    max_voltage: float = 120.0
    max_current: float = 30.0
    max_power: float = 300.0
    source_voltage: float = 20.0
    source_current: float = 5.0

    def __post_init__(self) -> None:
        if not 0 <= self.address <= 254:
            raise ValueError(f"address must be 0-254, got {self.address}")
        if not self.model or len(self.model) > 5:
            raise ValueError("model must be 1-5 characters")
        if not self.serial or len(self.serial) > 10:
            raise ValueError("serial must be 1-10 characters")
        for name in ("max_voltage", "max_current", "max_power", "source_voltage", "source_current"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0")


# ---------------------------------------------------------------------------
# Internal state
# ---------------------------------------------------------------------------


@dataclass
class _LoadState:
    address: int
    remote: bool = False
    load_on: bool = False
    local_control: bool = True
    remote_sense: bool = False
    mode: int = 0
    fault_bits: int = 0


# ---------------------------------------------------------------------------
# Emulator
# ---------------------------------------------------------------------------


class Bk8500Emulator:
    """In-process BK8500 emulator implementing ``ByteTransport``.

    Replies are queued synchronously inside :meth:`write`, and the arrival
    callback fires before :meth:`write` returns.

    Set commands are refused with ``INVALID_COMMAND`` unless remote
    operation is enabled, values beyond the configured ratings or user
    limits are refused with ``PARAMETER_INCORRECT``, and frames addressed to
    another instrument get no reply at all.

    Args:
        config: Emulator configuration.
    """

    def __init__(self, config: Bk8500EmulatorConfig) -> None:
        self._config = config
        self._state = _LoadState(address=config.address)
        self._settings: dict[Command, int] = {
            Command.MAX_VOLTAGE_SET: round(config.max_voltage * 1000),
            Command.MAX_CURRENT_SET: round(config.max_current * 10000),
            Command.MAX_POWER_SET: round(config.max_power * 1000),
            Command.CC_CURRENT_SET: 0,
            Command.CV_VOLTAGE_SET: 100,
            Command.CP_POWER_SET: 0,
            Command.CR_RESISTANCE_SET: 0,
        }
        self._source_voltage = config.source_voltage
        self._source_current = config.source_current
        self._rx = bytearray()
        self._callback: ArrivalCallback | None = None
        self._closed = False

        # Fault injection
        self._garbage = b""
        self._drop = 0
        self._corrupt = 0
        self._device_checksum_errors = 0
        self._forced_status: StatusCode | int | None = None
        self.arrival_chunk_size: int | None = None

        self.frames_received: list[bytes] = []

        self._set_handlers: dict[Command, Callable[[int], bool]] = {
            Command.REMOTE_OPERATION: self._set_remote,
            Command.LOAD_ON_OFF: self._set_load_on,
            Command.MODE_SET: self._set_mode,
            Command.COMM_ADDRESS_SET: self._set_address,
            Command.LOCAL_CONTROL_SET: self._set_local_control,
            Command.REMOTE_SENSE_SET: self._set_remote_sense,
        }
        self._get_handlers: dict[Command, Callable[[], bytes]] = {
            Command.MODE_READ: lambda: bytes([self._state.mode]),
            Command.REMOTE_SENSE_READ: lambda: bytes([int(self._state.remote_sense)]),
            Command.VALUE_READ: self._value_read,
            Command.PRODUCT_INFO: self._product_info,
        }

    # -- Transport interface ------------------------------------------------

    def write(self, data: bytes) -> None:
        """Process one frame written by the host."""
        frame = bytes(data)
        self.frames_received.append(frame)
        if len(frame) != FRAME_LENGTH:
            return
        if not verify_checksum(frame):
            self._queue_reply(self._status_frame(StatusCode.CHECKSUM_INCORRECT))
            return
        request = decode(frame)
        if request.address != self._state.address:
            return
        self._queue_reply(self._handle(request.command, request.payload))

    def read(self, size: int) -> bytes:
        """Return and consume up to ``size`` queued bytes."""
        chunk = bytes(self._rx[:size])
        del self._rx[:size]
        return chunk

    def discard_input(self) -> None:
        """Drop all queued reply bytes."""
        self._rx.clear()

    @property
    def bytes_available(self) -> int:
        """Number of queued reply bytes."""
        return len(self._rx)

    def set_arrival_callback(self, callback: ArrivalCallback | None) -> None:
        """Register the arrival observer callback."""
        self._callback = callback

    def close(self) -> None:
        """Close the emulator (no-op for in-process transport)."""
        self._closed = True

    @property
    def closed(self) -> bool:
        """True once :meth:`close` has been called."""
        return self._closed

    # -- Test helpers -------------------------------------------------------

    @property
    def load_on(self) -> bool:
        """Whether the load input is switched on."""
        return self._state.load_on

    @property
    def remote(self) -> bool:
        """Whether remote operation is enabled."""
        return self._state.remote

    def set_source(self, voltage: float, current: float) -> None:
        """Set the open-circuit voltage and short-circuit current of the source."""
        if voltage <= 0 or current <= 0:
            raise ValueError("source voltage and current must be > 0")
        self._source_voltage = voltage
        self._source_current = current

    def set_fault_bits(self, bits: int) -> None:
        """Force demand-state fault bits (bits 0-4) in value reads."""
        self._state.fault_bits = bits & 0x001F

    def inject_garbage(self, data: bytes) -> None:
        """Prepend ``data`` to the next reply."""
        self._garbage += data

    def drop_replies(self, count: int = 1) -> None:
        """Silently drop the next ``count`` replies."""
        self._drop += count

    def corrupt_replies(self, count: int = 1) -> None:
        """Send the next ``count`` replies with a wrong checksum."""
        self._corrupt += count

    def report_checksum_errors(self, count: int = 1) -> None:
        """Answer the next ``count`` frames with a CHECKSUM_INCORRECT status."""
        self._device_checksum_errors += count

    def reject_next(self, status: StatusCode | int) -> None:
        """Answer the next frame with the given status code."""
        self._forced_status = status

    def notify_spurious(self, available: int = 1) -> None:
        """Fire the arrival callback with fewer bytes than a frame."""
        if self._callback is not None:
            self._callback(available)

    # -- Private helpers ----------------------------------------------------

    def _handle(self, code: int, payload: bytes) -> bytes:
        if self._forced_status is not None:
            status, self._forced_status = self._forced_status, None
            return self._status_frame(status)
        if self._device_checksum_errors > 0:
            self._device_checksum_errors -= 1
            return self._status_frame(StatusCode.CHECKSUM_INCORRECT)

        try:
            command = Command(code)
        except ValueError:
            return self._status_frame(StatusCode.UNRECOGNIZED_COMMAND)
        spec = COMMAND_TABLE[command]

        if spec.direction is Direction.STATUS:
            return self._status_frame(StatusCode.INVALID_COMMAND)

        if spec.direction is Direction.SET:
            if not self._state.remote and command is not Command.REMOTE_OPERATION:
                return self._status_frame(StatusCode.INVALID_COMMAND)
            assert spec.value_format is not None
            (value,) = struct.unpack_from(spec.value_format, payload, 0)
            accepted = self._apply_setting(command, value)
            return self._status_frame(
                StatusCode.COMMAND_OK if accepted else StatusCode.PARAMETER_INCORRECT
            )

        return encode(self._state.address, command, self._read_register(command))

    def _apply_setting(self, command: Command, value: int) -> bool:
        handler = self._set_handlers.get(command)
        if handler is not None:
            return handler(value)
        limit_command = _SETPOINT_LIMITS.get(command)
        if limit_command is not None and value > self._settings[limit_command]:
            return False
        if command is Command.MAX_VOLTAGE_SET and value > round(self._config.max_voltage * 1000):
            return False
        if command is Command.MAX_CURRENT_SET and value > round(self._config.max_current * 10000):
            return False
        if command is Command.MAX_POWER_SET and value > round(self._config.max_power * 1000):
            return False
        if command is Command.CV_VOLTAGE_SET and value < 100:
            return False
        self._settings[command] = value
        return True

    def _read_register(self, command: Command) -> bytes:
        handler = self._get_handlers.get(command)
        if handler is not None:
            return handler()
        for set_command, read_command in _SETTING_PAIRS.items():
            if read_command is command:
                return struct.pack("<I", self._settings[set_command])
        raise AssertionError(f"no register for {command.name}")

    def _set_remote(self, value: int) -> bool:
        if value not in (0, 1):
            return False
        self._state.remote = bool(value)
        return True

    def _set_load_on(self, value: int) -> bool:
        if value not in (0, 1):
            return False
        self._state.load_on = bool(value)
        return True

    def _set_mode(self, value: int) -> bool:
        if value > 3:
            return False
        self._state.mode = value
        return True

    def _set_address(self, value: int) -> bool:
        if value > 254:
            return False
        self._state.address = value
        return True

    def _set_local_control(self, value: int) -> bool:
        if value not in (0, 1):
            return False
        self._state.local_control = bool(value)
        return True

    def _set_remote_sense(self, value: int) -> bool:
        if value not in (0, 1):
            return False
        self._state.remote_sense = bool(value)
        return True

    def _operating_point(self) -> tuple[float, float]:
        """Voltage and current where the load meets the linear source."""
        voc = self._source_voltage
        isc = self._source_current
        if not self._state.load_on:
            return voc, 0.0
        mode = self._state.mode
        if mode == 0:
            current = min(self._settings[Command.CC_CURRENT_SET] / 10000, isc)
        elif mode == 1:
            voltage = min(self._settings[Command.CV_VOLTAGE_SET] / 1000, voc)
            current = isc * (1 - voltage / voc)
        elif mode == 2:
            power = self._settings[Command.CP_POWER_SET] / 1000
            ratio = min(4 * power / (voc * isc), 1.0)
            current = isc / 2 * (1 - math.sqrt(1 - ratio))
        else:
            resistance = self._settings[Command.CR_RESISTANCE_SET] / 1000
            current = voc / (resistance + voc / isc)
        return voc * (1 - current / isc), current

    def _value_read(self) -> bytes:
        voltage, current = self._operating_point()
        op_state = 0
        if self._state.remote:
            op_state |= _OP_REMOTE
        if self._state.load_on:
            op_state |= _OP_LOAD_ON
        if self._state.remote_sense:
            op_state |= _OP_REMOTE_SENSE
        demand = self._state.fault_bits
        if self._state.load_on:
            demand |= _MODE_BITS[self._state.mode]
        return struct.pack(
            "<IIIBH",
            round(voltage * 1000),
            round(current * 10000),
            round(voltage * current * 1000),
            op_state,
            demand,
        )

    def _product_info(self) -> bytes:
        major, minor = self._config.firmware
        return (
            self._config.model.encode("ascii").ljust(5, b"\x00")
            + bytes([minor, major])
            + self._config.serial.encode("ascii").ljust(10, b"\x00")
        )

    def _status_frame(self, status: StatusCode | int) -> bytes:
        return encode(self._state.address, Command.STATUS, bytes([int(status)]))

    def _queue_reply(self, reply: bytes) -> None:
        if self._drop > 0:
            self._drop -= 1
            return
        if self._corrupt > 0:
            self._corrupt -= 1
            reply = reply[:-1] + bytes([(reply[-1] + 1) % 256])
        reply = self._garbage + reply
        self._garbage = b""

        # Partial notifications when a chunk size is set
        chunk = self.arrival_chunk_size or len(reply)
        for start in range(0, len(reply), chunk):
            self._rx += reply[start : start + chunk]
            if self._callback is not None:
                self._callback(len(self._rx))


# ---------------------------------------------------------------------------
# Factory functions
# ---------------------------------------------------------------------------


def make_8500_emulator(address: int = 0, serial: str = "0000000001") -> Bk8500Emulator:
    """Create a BK Precision 8500 emulator.

    Args:
        address: Bus address the emulator answers to.
        serial: Serial number reported by product info.

    Returns:
        Configured emulator instance (120 V, 30 A, 300 W rating) fed by a
        20 V / 5 A linear source.
    """
    config = Bk8500EmulatorConfig(address=address, serial=serial)
    return Bk8500Emulator(config)
