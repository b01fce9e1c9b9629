"""ICP DAS I-7000 series drivers over the DCON ASCII bus.

Example:
    >>> from benchlink_icpdas import create_analog_bank
    >>> bank = create_analog_bank("/dev/ttyUSB1", [1, 2])
    >>> readings = bank.read_all_voltages()
    >>> readings.ok, len(readings.voltages)
    (True, 16)
"""

from benchlink_icpdas.bus import TERMINATOR, DconTransport, SerialDconBus, dcon_checksum
from benchlink_icpdas.emulator import I7017Emulator
from benchlink_icpdas.errors import DconError, DconTimeoutError
from benchlink_icpdas.i7017 import (
    CHANNEL_COUNT,
    AnalogInputBank,
    AnalogReadings,
    I7017Module,
    create_analog_bank,
    parse_analog_fields,
)

__all__ = [
    # Bus
    "TERMINATOR",
    "DconTransport",
    "SerialDconBus",
    "dcon_checksum",
    # Errors
    "DconError",
    "DconTimeoutError",
    # I-7017
    "CHANNEL_COUNT",
    "AnalogInputBank",
    "AnalogReadings",
    "I7017Module",
    "create_analog_bank",
    "parse_analog_fields",
    # Emulator
    "I7017Emulator",
]
