"""DCON ASCII bus transports.

ICP DAS I-7000 modules share an RS-485 bus and speak the line-based DCON
protocol: the host sends a command such as ``#01`` terminated by a carriage
return and the addressed module answers with one line.

Implementations include:
- :class:`SerialDconBus`: pyserial port, opened for each transaction
- :class:`benchlink_icpdas.emulator.I7017Emulator`: in-process emulator
"""

from __future__ import annotations

import logging
from typing import Protocol

from benchlink_icpdas.errors import DconError, DconTimeoutError

logger = logging.getLogger(__name__)

TERMINATOR = "\r"


def dcon_checksum(text: str) -> str:
    """Return the DCON checksum of ``text``: its byte sum mod 256 as two hex digits."""
    return f"{sum(text.encode('ascii')) % 256:02X}"


class DconTransport(Protocol):
    """Protocol for a DCON request/reply channel."""

    def transact(self, command: str) -> str:
        """Send one command line and return the reply line.

        Args:
            command: Command without the line terminator.

        Returns:
            The reply without the line terminator.

        Raises:
            DconTimeoutError: If no complete reply arrives in time.
            DconError: If the channel cannot be used.
        """
        ...


class SerialDconBus:
    """DCON bus on a serial port, via pyserial.

    The port is opened for each transaction and closed again afterwards,
    so other programs can share the adapter between readings. Settings are
    8N1 with RTS asserted for the RS-485 converter's direction control.

    Args:
        port: Serial device name (e.g. ``"/dev/ttyUSB1"`` or ``"COM4"``).
        baudrate: Line speed. Defaults to 9600.
        timeout: Seconds to wait for a reply line. Defaults to 2.0.

    Example:
        >>> bus = SerialDconBus("/dev/ttyUSB1")
        >>> bus.transact("#01")
        '>+025.12+020.45+012.78+018.97+003.24+015.35+018.97+003.24'
    """

    def __init__(self, port: str, *, baudrate: int = 9600, timeout: float = 2.0) -> None:
        self._port = port
        self._baudrate = baudrate
        self._timeout = timeout

    @property
    def port(self) -> str:
        """The serial device name."""
        return self._port

    def transact(self, command: str) -> str:
        """Open the port, exchange one line, and close the port.

        Raises:
            DconError: If pyserial is not installed or the port cannot be
                opened.
            DconTimeoutError: If the reply line is not terminated in time.
        """
        try:
            import serial  # pylint: disable=import-outside-toplevel
        except ImportError as exc:
            raise DconError(
                "pyserial library is not installed. Install with: pip install pyserial"
            ) from exc

        try:
            port = serial.Serial(
                port=self._port,
                baudrate=self._baudrate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=self._timeout,
            )
        except (OSError, ValueError) as exc:
            raise DconError(f"Cannot open {self._port}: {exc}") from exc

        try:
            port.rts = True
            port.write((command + TERMINATOR).encode("ascii"))
            port.flush()
            raw = bytes(port.read_until(TERMINATOR.encode("ascii")))
        except OSError as exc:
            raise DconError(f"I/O error on {self._port}: {exc}") from exc
        finally:
            port.close()

        logger.debug("%s TX %r RX %r", self._port, command, raw)
        if not raw.endswith(TERMINATOR.encode("ascii")):
            raise DconTimeoutError(
                f"No reply to {command!r} on {self._port} within {self._timeout} s"
            )
        return raw[: -len(TERMINATOR)].decode("ascii", errors="replace")
