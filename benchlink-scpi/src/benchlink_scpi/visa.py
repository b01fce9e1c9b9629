"""PyVISA transport for SCPI instruments.

This module provides a VISA-based transport for communicating with SCPI
instruments. It wraps the PyVISA library, which is lazily imported so the
rest of benchlink-scpi works without VISA installed.

Bench multimeters are usually reached over a serial resource
(``ASRL3::INSTR`` or ``ASRL/dev/ttyUSB0::INSTR``); LAN, USB and GPIB
resource strings work the same way.
"""

from __future__ import annotations

import logging
from typing import Any

from benchlink_scpi.errors import ScpiError, ScpiTimeoutError

logger = logging.getLogger(__name__)


class VisaResource:
    """SCPI transport backed by PyVISA.

    This class implements the :class:`ScpiTransport` protocol and can be
    passed to :class:`ScpiConnection` for high-level SCPI operations.

    Args:
        resource_string: VISA resource address.
        baud_rate: Line speed for serial resources, or None to leave the
            VISA default untouched.
        timeout_ms: I/O timeout in milliseconds (applied on open).
        read_termination: Character(s) that terminate read operations.
        write_termination: Character(s) appended to write operations.

    Example:
        >>> resource = VisaResource("ASRL3::INSTR", baud_rate=38400)
        >>> resource.open()
        >>> resource.write("*IDN?")
        >>> print(resource.read())
        >>> resource.close()
    """

    def __init__(
        self,
        resource_string: str,
        *,
        baud_rate: int | None = None,
        timeout_ms: int = 1000,
        read_termination: str = "\n",
        write_termination: str = "\n",
    ) -> None:
        self._resource_string = resource_string
        self._baud_rate = baud_rate
        self._timeout_ms = timeout_ms
        self._read_termination = read_termination
        self._write_termination = write_termination
        self._pyvisa: Any = None
        self._rm: Any = None
        self._resource: Any = None

    # -- Properties ----------------------------------------------------------

    @property
    def resource_string(self) -> str:
        """The VISA resource string."""
        return self._resource_string

    @property
    def is_open(self) -> bool:
        """Return True if the resource is currently open."""
        return self._resource is not None

    # -- Lifecycle -----------------------------------------------------------

    def open(self) -> None:
        """Open the VISA resource.

        Lazily imports ``pyvisa`` and creates a ``ResourceManager``.

        Raises:
            ScpiError: If ``pyvisa`` is not installed or the resource
                cannot be opened.
        """
        if self._resource is not None:
            return

        try:
            import pyvisa  # type: ignore[import-not-found]  # pylint: disable=import-outside-toplevel
        except ImportError as exc:
            raise ScpiError(
                "pyvisa library is not installed. Install with: pip install pyvisa"
            ) from exc

        self._pyvisa = pyvisa
        try:
            self._rm = pyvisa.ResourceManager()
            self._resource = self._rm.open_resource(
                self._resource_string,
                read_termination=self._read_termination,
                write_termination=self._write_termination,
            )
            self._resource.timeout = self._timeout_ms
            if self._baud_rate is not None:
                self._resource.baud_rate = self._baud_rate
        except Exception as exc:
            self._resource = None
            self._close_manager()
            raise ScpiError(
                f"Failed to open VISA resource {self._resource_string!r}: {exc}"
            ) from exc
        logger.info("Opened VISA resource %s", self._resource_string)

    def close(self) -> None:
        """Close the VISA resource and resource manager.

        Safe to call multiple times.
        """
        if self._resource is not None:
            try:
                self._resource.close()
            except Exception as exc:  # pylint: disable=broad-except
                logger.warning("Error closing %s: %s", self._resource_string, exc)
            self._resource = None
        self._close_manager()

    # -- Transport interface -------------------------------------------------

    def write(self, message: str) -> None:
        """Send a message to the instrument.

        Raises:
            ScpiError: If the resource is not open.
        """
        self._require_open().write(message)

    def read(self) -> str:
        """Read a response line from the instrument.

        Raises:
            ScpiError: If the resource is not open.
            ScpiTimeoutError: If the VISA read times out.
        """
        resource = self._require_open()
        try:
            result: str = resource.read()
        except self._pyvisa.errors.VisaIOError as exc:
            if exc.error_code == self._pyvisa.constants.StatusCode.error_timeout:
                raise ScpiTimeoutError(
                    f"Read from {self._resource_string} timed out after {self._timeout_ms} ms"
                ) from exc
            raise ScpiError(f"Read from {self._resource_string} failed: {exc}") from exc
        return result

    def clear(self) -> None:
        """Discard buffered input and output on the resource."""
        self._require_open().clear()

    # -- Private helpers -----------------------------------------------------

    def _require_open(self) -> Any:
        if self._resource is None:
            raise ScpiError("VISA resource is not open")
        return self._resource

    def _close_manager(self) -> None:
        if self._rm is not None:
            try:
                self._rm.close()
            except Exception as exc:  # pylint: disable=broad-except
                logger.warning("Error closing VISA resource manager: %s", exc)
            self._rm = None
