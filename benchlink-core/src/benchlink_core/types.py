"""Common types used across benchlink packages.

Classes:
    InstrumentIdentity: Instrument identification metadata.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class InstrumentIdentity:
    """Instrument identification metadata.

    Carries the four fields of a SCPI ``*IDN?`` reply, but is general enough
    for binary-protocol instruments that report a model, serial and firmware
    through their own product-information command. Used by the bench to
    verify that connected instruments match the expected configuration.

    Attributes:
        manufacturer: Instrument manufacturer name (e.g., "B&K Precision").
        model: Instrument model number or name (e.g., "8500").
        serial: Serial number string.
        firmware: Firmware or hardware version string.

    Example:
        >>> identity = InstrumentIdentity(
        ...     manufacturer="B&K Precision",
        ...     model="8500",
        ...     serial="123456",
        ...     firmware="1.16"
        ... )
    """

    manufacturer: str
    model: str
    serial: str
    firmware: str

    def __str__(self) -> str:
        return f"{self.manufacturer} {self.model} (S/N: {self.serial}, FW: {self.firmware})"
