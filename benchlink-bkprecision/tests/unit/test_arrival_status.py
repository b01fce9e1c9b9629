"""Tests for the arrival signal and demand-state decoding."""

from __future__ import annotations

import threading

import pytest

from benchlink_bkprecision.arrival import ArrivalSignal
from benchlink_bkprecision.status import DemandState, decode_demand_state

# ---------------------------------------------------------------------------
# ArrivalSignal
# ---------------------------------------------------------------------------


class TestArrivalSignal:
    """Tests for ArrivalSignal."""

    def test_default_threshold_is_frame_length(self) -> None:
        assert ArrivalSignal().threshold == 26

    def test_partial_arrival_is_spurious(self) -> None:
        signal = ArrivalSignal()
        assert signal.notify(25) is False
        assert not signal.is_set
        assert signal.wait(0.01) is False

    def test_full_arrival_sets(self) -> None:
        signal = ArrivalSignal()
        assert signal.notify(26) is True
        assert signal.is_set
        assert signal.wait(0.01) is True

    def test_excess_bytes_set(self) -> None:
        signal = ArrivalSignal()
        assert signal.notify(40) is True

    def test_reset_clears(self) -> None:
        signal = ArrivalSignal()
        signal.notify(26)
        signal.reset()
        assert not signal.is_set

    def test_wakes_waiter_from_other_thread(self) -> None:
        signal = ArrivalSignal(threshold=4)
        timer = threading.Timer(0.02, signal.notify, args=(4,))
        timer.start()
        try:
            assert signal.wait(2.0) is True
        finally:
            timer.cancel()

    def test_invalid_threshold(self) -> None:
        with pytest.raises(ValueError, match="threshold"):
            ArrivalSignal(threshold=0)


# ---------------------------------------------------------------------------
# Demand state
# ---------------------------------------------------------------------------


class TestDemandState:
    """Tests for decode_demand_state."""

    def test_zero(self) -> None:
        state = decode_demand_state(0)
        assert state == DemandState()
        assert not state.error

    def test_bit_0_reversed_voltage(self) -> None:
        state = decode_demand_state(0x0001)
        assert state.reversed_voltage
        assert state.error
        assert not state.over_voltage
        assert not state.constant_current

    def test_bit_5_constant_current(self) -> None:
        state = decode_demand_state(0x0020)
        assert state.constant_current
        assert not state.error
        assert not state.constant_voltage

    @pytest.mark.parametrize(
        ("bits", "name"),
        [
            (0x0002, "over_voltage"),
            (0x0004, "over_power"),
            (0x0008, "over_temperature"),
            (0x0010, "remote_sense_disconnected"),
            (0x0040, "constant_voltage"),
            (0x0080, "constant_power"),
            (0x0100, "constant_resistance"),
        ],
    )
    def test_each_flag(self, bits: int, name: str) -> None:
        state = decode_demand_state(bits)
        assert getattr(state, name) is True
        assert sum(getattr(state, field) for field in DemandState.__dataclass_fields__) == 1

    def test_error_only_from_fault_bits(self) -> None:
        assert not decode_demand_state(0x01E0).error
        assert decode_demand_state(0x0010).error

    def test_upper_bits_ignored(self) -> None:
        assert decode_demand_state(0xFE00) == DemandState()
