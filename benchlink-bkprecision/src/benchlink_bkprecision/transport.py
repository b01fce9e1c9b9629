"""Byte-stream transports for the BK8500 packet engine.

This module defines the :class:`ByteTransport` protocol, the interface the
:class:`~benchlink_bkprecision.transaction.TransactionEngine` drives, and
:class:`SerialByteTransport`, a pyserial-backed implementation for real
hardware.

Implementations include:
- :class:`SerialByteTransport`: pyserial port plus a background observer
  thread that reports byte arrivals
- :class:`benchlink_bkprecision.load_emulator.Bk8500Emulator`: in-process
  emulator for tests
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Protocol

from benchlink_bkprecision.errors import CommunicationError

logger = logging.getLogger(__name__)

ArrivalCallback = Callable[[int], None]
"""Observer callback, called with the number of bytes waiting to be read."""


class ByteTransport(Protocol):
    """Protocol for an exclusively owned binary serial channel.

    Besides plain reads and writes, a transport reports byte arrivals
    asynchronously: whenever new bytes are seen it calls the registered
    callback with the number of bytes available. Transports may notify on
    partial arrivals; the engine filters those out.
    """

    def write(self, data: bytes) -> None:
        """Send raw bytes to the instrument."""
        ...

    def read(self, size: int) -> bytes:
        """Read up to ``size`` bytes.

        Returns fewer bytes if the per-read timeout expires first.
        """
        ...

    def discard_input(self) -> None:
        """Drop any bytes waiting in the receive buffer."""
        ...

    @property
    def bytes_available(self) -> int:
        """Number of bytes waiting in the receive buffer."""
        ...

    def set_arrival_callback(self, callback: ArrivalCallback | None) -> None:
        """Register (or clear, with None) the arrival observer callback."""
        ...

    def close(self) -> None:
        """Release the channel. Safe to call multiple times."""
        ...


class SerialByteTransport:
    """Byte transport backed by pyserial.

    Opens the port 8N1 with RTS asserted. A daemon thread polls the receive
    buffer and calls the arrival callback whenever the number of waiting
    bytes grows, standing in for the data-received event a serial driver
    would raise. The ``serial`` package is imported on :meth:`open`.

    Args:
        port: Serial device name (e.g. ``"/dev/ttyUSB0"`` or ``"COM3"``).
        baudrate: Line speed. Defaults to 38400.
        read_timeout: Per-read timeout in seconds. Defaults to 0.2.
        poll_interval: Observer polling period in seconds.

    Example:
        >>> transport = SerialByteTransport("/dev/ttyUSB0")
        >>> transport.open()
        >>> engine = TransactionEngine(transport, address=0)
    """

    def __init__(
        self,
        port: str,
        *,
        baudrate: int = 38400,
        read_timeout: float = 0.2,
        poll_interval: float = 0.005,
    ) -> None:
        self._port = port
        self._baudrate = baudrate
        self._read_timeout = read_timeout
        self._poll_interval = poll_interval
        self._serial: Any = None
        self._callback: ArrivalCallback | None = None
        self._observer: threading.Thread | None = None
        self._stop = threading.Event()
        self._baseline_lock = threading.Lock()
        self._last_seen = 0

    # -- Properties ----------------------------------------------------------

    @property
    def port(self) -> str:
        """The serial device name."""
        return self._port

    @property
    def is_open(self) -> bool:
        """Return True if the port is currently open."""
        return self._serial is not None

    @property
    def bytes_available(self) -> int:
        """Number of bytes waiting in the receive buffer."""
        port = self._require_open()
        try:
            return int(port.in_waiting)
        except OSError as exc:
            raise self._io_error(exc) from exc

    # -- Lifecycle -----------------------------------------------------------

    def open(self) -> None:
        """Open the port and start the arrival observer.

        Raises:
            CommunicationError: If pyserial is not installed or the port
                cannot be opened.
        """
        if self._serial is not None:
            return

        try:
            import serial  # pylint: disable=import-outside-toplevel
        except ImportError as exc:
            raise CommunicationError(
                f"serial port {self._port}",
                "pyserial library is not installed. Install with: pip install pyserial",
            ) from exc

        try:
            port = serial.Serial(
                port=self._port,
                baudrate=self._baudrate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=self._read_timeout,
            )
            port.rts = True
            port.reset_input_buffer()
        except (OSError, ValueError) as exc:
            raise CommunicationError(f"serial port {self._port}", str(exc)) from exc

        self._serial = port
        self._stop.clear()
        self._last_seen = 0
        self._observer = threading.Thread(
            target=self._observe, name=f"arrival-{self._port}", daemon=True
        )
        self._observer.start()
        logger.info("Opened %s at %d baud", self._port, self._baudrate)

    def close(self) -> None:
        """Stop the observer and close the port.

        Safe to call multiple times.
        """
        self._stop.set()
        if self._observer is not None:
            self._observer.join(timeout=1.0)
            self._observer = None
        if self._serial is not None:
            try:
                self._serial.close()
            except OSError as exc:
                logger.warning("Error closing %s: %s", self._port, exc)
            self._serial = None
            logger.info("Closed %s", self._port)

    # -- Transport interface -------------------------------------------------

    def write(self, data: bytes) -> None:
        """Send raw bytes and wait for them to leave the output buffer."""
        port = self._require_open()
        try:
            port.write(data)
            port.flush()
        except OSError as exc:
            raise self._io_error(exc) from exc

    def read(self, size: int) -> bytes:
        """Read up to ``size`` bytes within the per-read timeout."""
        port = self._require_open()
        try:
            return bytes(port.read(size))
        except OSError as exc:
            raise self._io_error(exc) from exc

    def discard_input(self) -> None:
        """Drop any bytes waiting in the receive buffer.

        Also resets the observer's baseline, so a reply of the same size as
        the discarded bytes is still reported as an arrival.
        """
        port = self._require_open()
        with self._baseline_lock:
            try:
                port.reset_input_buffer()
            except OSError as exc:
                raise self._io_error(exc) from exc
            self._last_seen = 0

    def set_arrival_callback(self, callback: ArrivalCallback | None) -> None:
        """Register (or clear) the arrival observer callback."""
        self._callback = callback

    # -- Private helpers -----------------------------------------------------

    def _require_open(self) -> Any:
        if self._serial is None:
            raise CommunicationError(f"serial port {self._port}", "port is not open")
        return self._serial

    def _io_error(self, exc: OSError) -> CommunicationError:
        logger.error("I/O error on %s: %s", self._port, exc)
        return CommunicationError(f"serial port {self._port}", str(exc))

    def _observe(self) -> None:
        """Observer thread: report growth of the receive buffer."""
        while not self._stop.is_set():
            port = self._serial
            if port is None:
                break
            # Sampled under the lock so a concurrent discard cannot be undone
            # by a reading taken before it.
            with self._baseline_lock:
                try:
                    available = int(port.in_waiting)
                except OSError as exc:
                    logger.error("Arrival observer on %s stopped: %s", self._port, exc)
                    break
                grew = available > self._last_seen
                self._last_seen = available
            if grew:
                callback = self._callback
                if callback is not None:
                    callback(available)
            self._stop.wait(self._poll_interval)
