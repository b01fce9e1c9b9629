"""BK8500 demand-state register decoding."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class DemandState:
    """Decoded demand-state register of a measurement read.

    The first five flags are fault conditions; the last four report which
    regulation mode is active.

    Attributes:
        reversed_voltage: Input voltage is reversed (bit 0).
        over_voltage: Over-voltage condition (bit 1).
        over_power: Over-power condition (bit 2).
        over_temperature: Over-temperature condition (bit 3).
        remote_sense_disconnected: Remote sense leads not connected (bit 4).
        constant_current: Regulating in constant-current mode (bit 5).
        constant_voltage: Regulating in constant-voltage mode (bit 6).
        constant_power: Regulating in constant-power mode (bit 7).
        constant_resistance: Regulating in constant-resistance mode (bit 8).
    """

    reversed_voltage: bool = False
    over_voltage: bool = False
    over_power: bool = False
    over_temperature: bool = False
    remote_sense_disconnected: bool = False
    constant_current: bool = False
    constant_voltage: bool = False
    constant_power: bool = False
    constant_resistance: bool = False

    @property
    def error(self) -> bool:
        """True if any fault flag is set."""
        return (
            self.reversed_voltage
            or self.over_voltage
            or self.over_power
            or self.over_temperature
            or self.remote_sense_disconnected
        )


def decode_demand_state(bits: int) -> DemandState:
    """Decode a 16-bit demand-state register, least significant bit first."""
    return DemandState(
        reversed_voltage=bool(bits & 0x0001),
        over_voltage=bool(bits & 0x0002),
        over_power=bool(bits & 0x0004),
        over_temperature=bool(bits & 0x0008),
        remote_sense_disconnected=bool(bits & 0x0010),
        constant_current=bool(bits & 0x0020),
        constant_voltage=bool(bits & 0x0040),
        constant_power=bool(bits & 0x0080),
        constant_resistance=bool(bits & 0x0100),
    )
