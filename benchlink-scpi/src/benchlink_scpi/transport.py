"""SCPI transport protocol definition.

This module defines the :class:`ScpiTransport` protocol, the line-oriented
interface :class:`~benchlink_scpi.connection.ScpiConnection` drives.

Implementations include:
- :class:`benchlink_scpi.VisaResource`: PyVISA-backed transport for real hardware
- :class:`benchlink_bkprecision.dmm_emulator.Bk2831eEmulator`: in-process
  multimeter emulator
"""

from __future__ import annotations

from typing import Protocol


class ScpiTransport(Protocol):
    """Protocol for line-based SCPI message transport.

    Unlike a plain socket transport, the connection may close and reopen
    the channel (the instrument drops its serial link after ``*RST``), so
    ``open()`` and ``clear()`` are part of the interface.

    Example:
        >>> class MyTransport:
        ...     def open(self) -> None: ...
        ...     def write(self, message: str) -> None: ...
        ...     def read(self) -> str:
        ...         return "response"
        ...     def clear(self) -> None: ...
        ...     def close(self) -> None: ...
        ...
        >>> transport: ScpiTransport = MyTransport()  # Type checks OK
    """

    def open(self) -> None:
        """Open the channel. A no-op if it is already open."""
        ...

    def write(self, message: str) -> None:
        """Send one line to the instrument.

        Args:
            message: The SCPI command or query, without termination.
        """
        ...

    def read(self) -> str:
        """Read one line from the instrument.

        Returns:
            The line without its termination.

        Raises:
            ScpiTimeoutError: If no complete line arrives in time.
        """
        ...

    def clear(self) -> None:
        """Discard any buffered input and output."""
        ...

    def close(self) -> None:
        """Close the channel. Safe to call multiple times."""
        ...
