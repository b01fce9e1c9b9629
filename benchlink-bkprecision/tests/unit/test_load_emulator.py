"""Tests for the BK8500 emulator at the frame level."""

from __future__ import annotations

import struct

import pytest

from benchlink_bkprecision.load_emulator import (
    Bk8500Emulator,
    Bk8500EmulatorConfig,
    make_8500_emulator,
)
from benchlink_bkprecision.packet import Command, StatusCode, decode, encode, verify_checksum


def _exchange(emulator: Bk8500Emulator, command: int, payload: bytes = b"", address: int = 0) -> bytes:
    """Write one frame and return whatever the emulator queued."""
    emulator.write(encode(address, command, payload))
    return emulator.read(emulator.bytes_available)


def _status_of(reply: bytes) -> int:
    decoded = decode(reply)
    assert decoded.is_status
    return decoded.payload[0]


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class TestConfig:
    """Tests for Bk8500EmulatorConfig validation."""

    def test_defaults(self) -> None:
        config = Bk8500EmulatorConfig()
        assert config.address == 0
        assert config.max_voltage == 120.0

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"address": 255},
            {"model": ""},
            {"model": "TOOLONG"},
            {"serial": "12345678901"},
            {"max_voltage": 0},
            {"source_current": -1},
        ],
    )
    def test_invalid(self, kwargs: dict[str, object]) -> None:
        with pytest.raises(ValueError):
            Bk8500EmulatorConfig(**kwargs)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Protocol behavior
# ---------------------------------------------------------------------------


class TestProtocol:
    """Tests for replies to well-formed and malformed frames."""

    def test_remote_then_set_ok(self) -> None:
        emulator = make_8500_emulator()
        assert _status_of(_exchange(emulator, Command.REMOTE_OPERATION, b"\x01")) == StatusCode.COMMAND_OK
        assert _status_of(_exchange(emulator, Command.LOAD_ON_OFF, b"\x01")) == StatusCode.COMMAND_OK
        assert emulator.load_on

    def test_set_in_local_mode_invalid(self) -> None:
        emulator = make_8500_emulator()
        reply = _exchange(emulator, Command.LOAD_ON_OFF, b"\x01")
        assert _status_of(reply) == StatusCode.INVALID_COMMAND

    def test_get_allowed_in_local_mode(self) -> None:
        emulator = make_8500_emulator()
        reply = decode(_exchange(emulator, Command.MAX_CURRENT_READ))
        assert reply.command == Command.MAX_CURRENT_READ
        assert struct.unpack_from("<I", reply.payload)[0] == 300000

    def test_unknown_command(self) -> None:
        emulator = make_8500_emulator()
        assert _status_of(_exchange(emulator, 0x99)) == StatusCode.UNRECOGNIZED_COMMAND

    def test_host_sent_status_invalid(self) -> None:
        emulator = make_8500_emulator()
        assert _status_of(_exchange(emulator, Command.STATUS)) == StatusCode.INVALID_COMMAND

    def test_bad_checksum_reported(self) -> None:
        emulator = make_8500_emulator()
        frame = bytearray(encode(0, Command.PRODUCT_INFO))
        frame[25] ^= 0x01
        emulator.write(bytes(frame))
        reply = emulator.read(26)
        assert _status_of(reply) == StatusCode.CHECKSUM_INCORRECT

    def test_other_address_ignored(self) -> None:
        emulator = make_8500_emulator(address=2)
        emulator.write(encode(0, Command.PRODUCT_INFO))
        assert emulator.bytes_available == 0

    def test_address_change(self) -> None:
        emulator = make_8500_emulator()
        _exchange(emulator, Command.REMOTE_OPERATION, b"\x01")
        _exchange(emulator, Command.COMM_ADDRESS_SET, b"\x07")
        assert _exchange(emulator, Command.PRODUCT_INFO) == b""
        assert decode(_exchange(emulator, Command.PRODUCT_INFO, address=7)).address == 7

    def test_cv_below_minimum_rejected(self) -> None:
        emulator = make_8500_emulator()
        _exchange(emulator, Command.REMOTE_OPERATION, b"\x01")
        reply = _exchange(emulator, Command.CV_VOLTAGE_SET, struct.pack("<I", 50))
        assert _status_of(reply) == StatusCode.PARAMETER_INCORRECT

    def test_mode_out_of_range_rejected(self) -> None:
        emulator = make_8500_emulator()
        _exchange(emulator, Command.REMOTE_OPERATION, b"\x01")
        assert _status_of(_exchange(emulator, Command.MODE_SET, b"\x04")) == StatusCode.PARAMETER_INCORRECT

    def test_product_info_layout(self) -> None:
        emulator = Bk8500Emulator(Bk8500EmulatorConfig(model="8514", serial="SN42", firmware=(2, 3)))
        payload = decode(_exchange(emulator, Command.PRODUCT_INFO)).payload
        assert payload[0:5] == b"8514\x00"
        assert payload[5] == 3
        assert payload[6] == 2
        assert payload[7:11] == b"SN42"

    def test_value_read_layout(self) -> None:
        emulator = make_8500_emulator()
        emulator.set_fault_bits(0x01)
        payload = decode(_exchange(emulator, Command.VALUE_READ)).payload
        millivolts, current, milliwatts, op_state, demand = struct.unpack_from("<IIIBH", payload)
        assert millivolts == 20000
        assert current == 0
        assert milliwatts == 0
        assert op_state == 0
        assert demand == 0x0001

    def test_records_frames(self) -> None:
        emulator = make_8500_emulator()
        frame = encode(0, Command.PRODUCT_INFO)
        emulator.write(frame)
        assert emulator.frames_received == [frame]


# ---------------------------------------------------------------------------
# Fault injection
# ---------------------------------------------------------------------------


class TestFaultInjection:
    """Tests for the fault injection helpers."""

    def test_drop_replies(self) -> None:
        emulator = make_8500_emulator()
        emulator.drop_replies(1)
        assert _exchange(emulator, Command.PRODUCT_INFO) == b""
        assert len(_exchange(emulator, Command.PRODUCT_INFO)) == 26

    def test_corrupt_replies(self) -> None:
        emulator = make_8500_emulator()
        emulator.corrupt_replies(1)
        assert not verify_checksum(_exchange(emulator, Command.PRODUCT_INFO))
        assert verify_checksum(_exchange(emulator, Command.PRODUCT_INFO))

    def test_inject_garbage(self) -> None:
        emulator = make_8500_emulator()
        emulator.inject_garbage(b"\x01\x02")
        reply = _exchange(emulator, Command.PRODUCT_INFO)
        assert reply[:2] == b"\x01\x02"
        assert verify_checksum(reply[2:])

    def test_report_checksum_errors(self) -> None:
        emulator = make_8500_emulator()
        emulator.report_checksum_errors(1)
        assert _status_of(_exchange(emulator, Command.PRODUCT_INFO)) == StatusCode.CHECKSUM_INCORRECT

    def test_reject_next(self) -> None:
        emulator = make_8500_emulator()
        emulator.reject_next(StatusCode.PARAMETER_INCORRECT)
        assert _status_of(_exchange(emulator, Command.PRODUCT_INFO)) == StatusCode.PARAMETER_INCORRECT
        assert not decode(_exchange(emulator, Command.PRODUCT_INFO)).is_status

    def test_chunked_notifications(self) -> None:
        emulator = make_8500_emulator()
        seen: list[int] = []
        emulator.set_arrival_callback(seen.append)
        emulator.arrival_chunk_size = 8
        emulator.write(encode(0, Command.PRODUCT_INFO))
        assert seen == [8, 16, 24, 26]

    def test_notify_spurious(self) -> None:
        emulator = make_8500_emulator()
        seen: list[int] = []
        emulator.set_arrival_callback(seen.append)
        emulator.notify_spurious(3)
        assert seen == [3]

    def test_set_source_validation(self) -> None:
        with pytest.raises(ValueError, match="source"):
            make_8500_emulator().set_source(0, 1)
