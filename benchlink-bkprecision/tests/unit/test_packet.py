"""Tests for the BK8500 packet codec and command table."""

from __future__ import annotations

import struct

import pytest

from benchlink_bkprecision.packet import (
    COMMAND_TABLE,
    FRAME_LENGTH,
    PAYLOAD_LENGTH,
    Command,
    Direction,
    StatusCode,
    compute_checksum,
    decode,
    decode_value,
    encode,
    encode_value,
    status_from_byte,
    verify_checksum,
)

# ---------------------------------------------------------------------------
# Frame encoding
# ---------------------------------------------------------------------------


class TestEncode:
    """Tests for frame construction."""

    def test_layout(self) -> None:
        frame = encode(5, Command.LOAD_ON_OFF, b"\x01")
        assert len(frame) == FRAME_LENGTH
        assert frame[0] == 0xAA
        assert frame[1] == 5
        assert frame[2] == 0x21
        assert frame[3] == 0x01
        assert frame[4:25] == bytes(21)
        assert frame[25] == compute_checksum(frame[:25])

    def test_max_voltage_12_345_volts(self) -> None:
        payload = encode_value(Command.MAX_VOLTAGE_SET, 12.345)
        frame = encode(0, Command.MAX_VOLTAGE_SET, payload)
        assert frame[3:7] == bytes([0x39, 0x30, 0x00, 0x00])
        assert frame[7:25] == bytes(18)
        assert frame[25] == 0x35

    def test_empty_payload_zero_padded(self) -> None:
        frame = encode(0, Command.PRODUCT_INFO)
        assert frame[3:25] == bytes(22)

    def test_full_payload(self) -> None:
        payload = bytes(range(1, PAYLOAD_LENGTH + 1))
        frame = encode(0, Command.VALUE_READ, payload)
        assert frame[3:23] == payload

    def test_payload_too_long(self) -> None:
        with pytest.raises(ValueError, match="at most 20"):
            encode(0, Command.VALUE_READ, bytes(21))

    @pytest.mark.parametrize("address", [-1, 256])
    def test_address_out_of_range(self, address: int) -> None:
        with pytest.raises(ValueError, match="address"):
            encode(address, Command.STATUS)


# ---------------------------------------------------------------------------
# Verification and decoding
# ---------------------------------------------------------------------------


class TestDecode:
    """Tests for checksum verification and frame decoding."""

    def test_encode_decode_identity(self) -> None:
        payload = b"\x10\x20\x30"
        decoded = decode(encode(7, Command.CC_CURRENT_SET, payload))
        assert decoded.address == 7
        assert decoded.command == Command.CC_CURRENT_SET
        assert decoded.payload == payload + bytes(17)
        assert decoded.checksum_ok

    def test_encoded_frames_verify(self) -> None:
        for command in Command:
            assert verify_checksum(encode(0x12, command, b"\xff" * 4))

    @pytest.mark.parametrize("position", [0, 1, 2, 3, 12, 22, 24, 25])
    @pytest.mark.parametrize("delta", [1, 0x80, 0xFF])
    def test_single_byte_corruption_detected(self, position: int, delta: int) -> None:
        frame = bytearray(encode(1, Command.MAX_POWER_SET, b"\x01\x02\x03\x04"))
        frame[position] = (frame[position] + delta) % 256
        assert not verify_checksum(bytes(frame))
        assert not decode(bytes(frame)).checksum_ok

    def test_wrong_length_fails_verification(self) -> None:
        assert not verify_checksum(encode(0, Command.STATUS)[:-1])

    def test_decode_wrong_length(self) -> None:
        with pytest.raises(ValueError, match="26 bytes"):
            decode(bytes(25))

    def test_status_reply(self) -> None:
        decoded = decode(encode(0, Command.STATUS, bytes([0xA0])))
        assert decoded.is_status
        assert decoded.status is StatusCode.PARAMETER_INCORRECT

    def test_unknown_status_byte(self) -> None:
        decoded = decode(encode(0, Command.STATUS, bytes([0x42])))
        assert decoded.status == 0x42
        assert not isinstance(decoded.status, StatusCode)

    def test_status_from_byte(self) -> None:
        assert status_from_byte(0x80) is StatusCode.COMMAND_OK
        assert status_from_byte(0x01) == 0x01


# ---------------------------------------------------------------------------
# Value scaling
# ---------------------------------------------------------------------------


class TestValues:
    """Tests for table-driven value encoding."""

    def test_every_command_has_a_spec(self) -> None:
        assert set(COMMAND_TABLE) == set(Command)

    def test_set_and_read_codes_pair_up(self) -> None:
        for command, spec in COMMAND_TABLE.items():
            if spec.direction is Direction.GET and spec.value_format is not None:
                set_spec = COMMAND_TABLE.get(Command(command - 1))
                assert set_spec is not None
                assert set_spec.scale == spec.scale

    @pytest.mark.parametrize(
        ("command", "value", "counts"),
        [
            (Command.MAX_VOLTAGE_SET, 12.345, 12345),
            (Command.MAX_CURRENT_SET, 1.5, 15000),
            (Command.CC_CURRENT_SET, 0.0001, 1),
            (Command.CP_POWER_SET, 250.0, 250000),
            (Command.CR_RESISTANCE_SET, 4.7, 4700),
        ],
    )
    def test_scaled_u32(self, command: Command, value: float, counts: int) -> None:
        assert encode_value(command, value) == struct.pack("<I", counts)

    def test_flag_values(self) -> None:
        assert encode_value(Command.REMOTE_OPERATION, True) == b"\x01"
        assert encode_value(Command.LOAD_ON_OFF, False) == b"\x00"
        assert encode_value(Command.MODE_SET, 3) == b"\x03"

    def test_negative_value_rejected(self) -> None:
        with pytest.raises(ValueError, match="out of range"):
            encode_value(Command.CV_VOLTAGE_SET, -1.0)

    def test_overflow_rejected(self) -> None:
        with pytest.raises(ValueError, match="out of range"):
            encode_value(Command.MODE_SET, 256)

    def test_encode_read_command_rejected(self) -> None:
        with pytest.raises(ValueError, match="does not take"):
            encode_value(Command.MAX_VOLTAGE_READ, 1.0)

    def test_decode_scaled(self) -> None:
        payload = struct.pack("<I", 12345) + bytes(16)
        assert decode_value(Command.MAX_VOLTAGE_READ, payload) == pytest.approx(12.345)

    def test_decode_current(self) -> None:
        payload = struct.pack("<I", 15000) + bytes(16)
        assert decode_value(Command.CC_CURRENT_READ, payload) == pytest.approx(1.5)

    def test_decode_unscaled_is_int(self) -> None:
        value = decode_value(Command.MODE_READ, b"\x02" + bytes(19))
        assert value == 2
        assert isinstance(value, int)

    def test_decode_set_command_rejected(self) -> None:
        with pytest.raises(ValueError, match="does not return"):
            decode_value(Command.MAX_VOLTAGE_SET, bytes(20))
