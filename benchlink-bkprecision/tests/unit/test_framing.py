"""Tests for start-marker frame realignment."""

from __future__ import annotations

import pytest

from benchlink_bkprecision.errors import FramingError
from benchlink_bkprecision.framing import locate_frame
from benchlink_bkprecision.packet import FRAME_LENGTH, Command, encode


class _Stream:
    """Byte source standing in for the serial channel."""

    def __init__(self, data: bytes) -> None:
        self.data = bytearray(data)
        self.requests: list[int] = []

    def read(self, size: int) -> bytes:
        self.requests.append(size)
        chunk = bytes(self.data[:size])
        del self.data[:size]
        return chunk


def _shifted(garbage_length: int) -> tuple[bytes, _Stream, bytes]:
    """Return (window, rest-of-stream, expected frame) for a shifted reply."""
    frame = encode(0, Command.VALUE_READ, bytes(range(1, 21)))
    stream = bytes(0x11 for _ in range(garbage_length)) + frame
    return stream[:FRAME_LENGTH], _Stream(stream[FRAME_LENGTH:]), frame


class TestLocateFrame:
    """Tests for locate_frame."""

    def test_aligned_window_returned_without_reading(self) -> None:
        window, stream, frame = _shifted(0)
        assert locate_frame(window, stream.read) == frame
        assert stream.requests == []

    @pytest.mark.parametrize("offset", [1, 5, 24])
    def test_shifted_window_realigned(self, offset: int) -> None:
        window, stream, frame = _shifted(offset)
        assert locate_frame(window, stream.read) == frame
        assert stream.requests == [offset]

    def test_marker_in_last_byte(self) -> None:
        window, stream, frame = _shifted(25)
        assert locate_frame(window, stream.read) == frame

    def test_longer_window_reads_only_missing_bytes(self) -> None:
        frame = encode(0, Command.STATUS, b"\x80")
        window = b"\x00\x00\x00" + frame[:25]
        stream = _Stream(frame[25:])
        assert locate_frame(window, stream.read) == frame
        assert stream.requests == [1]

    def test_no_marker(self) -> None:
        with pytest.raises(FramingError, match="No start marker"):
            locate_frame(bytes(FRAME_LENGTH), _Stream(b"").read)

    def test_short_window(self) -> None:
        with pytest.raises(FramingError, match="received 10"):
            locate_frame(b"\xaa" + bytes(9), _Stream(b"").read)

    def test_short_follow_up_read(self) -> None:
        window, _, _ = _shifted(5)
        with pytest.raises(FramingError, match="Resync needed 5"):
            locate_frame(window, _Stream(b"\x00\x00").read)

    def test_garbage_containing_marker_value_picks_first(self) -> None:
        # A stray 0xAA ahead of the real frame is taken as the start.
        frame = encode(0, Command.STATUS, b"\x80")
        window = (b"\x01\xaa" + frame)[:FRAME_LENGTH]
        stream = _Stream((b"\x01\xaa" + frame)[FRAME_LENGTH:])
        located = locate_frame(window, stream.read)
        assert located[0] == 0xAA
        assert located != frame
