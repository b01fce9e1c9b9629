"""BK8500 request/response transaction engine.

:class:`TransactionEngine` owns the byte transport and runs one exchange at
a time. Each attempt moves through::

    Idle -> Sent -> AwaitingReply -> Verified        -> Done
                                  -> TimedOut        -> retry / Fatal
                                  -> FramingFailed   -> retry / Fatal
                                  -> ChecksumFailed  -> retry / Fatal
                                  -> StatusRejected  -> Fatal

Timeouts, framing failures, reply checksum failures and device-reported
checksum errors share one bounded retry budget and never reach the caller
individually. A status reply with any other non-OK code fails immediately
with :class:`DeviceRejectedError`, since re-sending an invalid command
cannot succeed. When the budget is spent, :class:`CommunicationError` is
raised with the last retryable error as its cause.

Only one request may be outstanding; callers are expected to use an engine
from a single thread. The transport's arrival observer is the only other
thread that touches the engine, and it only sets the arrival signal.
"""

from __future__ import annotations

import dataclasses
import logging
import time
from dataclasses import dataclass
from types import TracebackType

from benchlink_bkprecision.arrival import ArrivalSignal
from benchlink_bkprecision.errors import (
    ChecksumMismatchError,
    CommunicationError,
    DeviceRejectedError,
    FramingError,
    LoadProtocolError,
    TransactionTimeoutError,
)
from benchlink_bkprecision.framing import locate_frame
from benchlink_bkprecision.packet import FRAME_LENGTH, StatusCode, decode, encode
from benchlink_bkprecision.transport import ByteTransport

logger = logging.getLogger(__name__)

_RETRYABLE = (TransactionTimeoutError, FramingError, ChecksumMismatchError)


@dataclass
class TransactionStats:
    """Communication counters for one engine.

    Counters accumulate for the lifetime of the engine and are only cleared
    by :meth:`TransactionEngine.reset_stats`.

    Attributes:
        messages_sent: Frames written, including re-sends.
        replies_expected: Replies waited for.
        replies_received: Arrival signals received before the timeout.
        retries: Frames re-sent after a retryable failure.
        checksum_failures: Corrupt replies plus device-reported checksum errors.
        framing_failures: Replies whose start marker could not be located.
        timeouts: Attempts with no reply before the deadline.
        spurious_arrivals: Arrival notifications with less than a frame waiting.
        device_rejections: Status replies refusing a command.
    """

    messages_sent: int = 0
    replies_expected: int = 0
    replies_received: int = 0
    retries: int = 0
    checksum_failures: int = 0
    framing_failures: int = 0
    timeouts: int = 0
    spurious_arrivals: int = 0
    device_rejections: int = 0


class TransactionEngine:
    """Framed request/response exchanges with a BK8500 over a byte transport.

    The engine takes exclusive ownership of the transport and registers
    itself as the transport's arrival observer.

    Args:
        transport: An open :class:`ByteTransport`.
        address: Instrument bus address (0-255), fixed for the connection.
        timeout: Seconds to wait for each reply. Defaults to 2.0.
        retries: Additional attempts after the first failure. Defaults to 3.
        retry_delay: Pause in seconds before re-sending after a timeout.
        device_name: Name used in error messages.

    Example:
        >>> engine = TransactionEngine(transport, address=0)
        >>> payload = engine.send(Command.MAX_VOLTAGE_READ)
        >>> decode_value(Command.MAX_VOLTAGE_READ, payload)
        120.0
    """

    def __init__(
        self,
        transport: ByteTransport,
        address: int,
        *,
        timeout: float = 2.0,
        retries: int = 3,
        retry_delay: float = 0.1,
        device_name: str = "BK8500",
    ) -> None:
        if not 0 <= address <= 0xFF:
            raise ValueError(f"address must be 0-255, got {address}")
        if timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {timeout}")
        if retries < 0:
            raise ValueError(f"retries must be >= 0, got {retries}")
        if retry_delay < 0:
            raise ValueError(f"retry_delay must be >= 0, got {retry_delay}")
        self._transport = transport
        self._address = address
        self._timeout = timeout
        self._retries = retries
        self._retry_delay = retry_delay
        self._device_name = device_name
        self._arrival = ArrivalSignal(FRAME_LENGTH)
        self._stats = TransactionStats()
        self._closed = False
        transport.set_arrival_callback(self._on_arrival)

    # -- Properties ----------------------------------------------------------

    @property
    def address(self) -> int:
        """Instrument bus address."""
        return self._address

    @property
    def device_name(self) -> str:
        """Name used in error messages."""
        return self._device_name

    @property
    def stats(self) -> TransactionStats:
        """Snapshot of the communication counters."""
        return dataclasses.replace(self._stats)

    @property
    def is_closed(self) -> bool:
        """True once :meth:`close` has been called."""
        return self._closed

    def reset_stats(self) -> None:
        """Zero all communication counters."""
        self._stats = TransactionStats()

    # -- Transactions --------------------------------------------------------

    def send(self, command: int, payload: bytes = b"") -> bytes:
        """Send a command and return the verified 20-byte reply payload.

        For set commands the device answers with a status reply; a
        ``COMMAND_OK`` status returns that reply's payload.

        Args:
            command: Command code.
            payload: Up to 20 payload bytes.

        Returns:
            The payload of the verified reply.

        Raises:
            DeviceRejectedError: The device refused the command.
            CommunicationError: The retry budget was exhausted, the transport
                failed, or the engine is closed.
        """
        if self._closed:
            raise CommunicationError(self._device_name, "connection is closed")

        frame = encode(self._address, command, payload)
        attempts = self._retries + 1
        last_error: LoadProtocolError | None = None
        for attempt in range(1, attempts + 1):
            try:
                return self._attempt(frame)
            except _RETRYABLE as exc:
                last_error = exc
            except OSError as exc:
                logger.error("%s command 0x%02X: I/O error: %s", self._device_name, command, exc)
                raise CommunicationError(
                    self._device_name, f"command 0x{command:02X}: {exc}"
                ) from exc
            if attempt == attempts:
                break
            self._stats.retries += 1
            logger.warning(
                "%s command 0x%02X attempt %d/%d failed: %s",
                self._device_name,
                command,
                attempt,
                attempts,
                last_error,
            )
            if isinstance(last_error, TransactionTimeoutError) and self._retry_delay > 0:
                time.sleep(self._retry_delay)

        logger.error(
            "%s command 0x%02X failed after %d attempts: %s",
            self._device_name,
            command,
            attempts,
            last_error,
        )
        raise CommunicationError(
            self._device_name, f"command 0x{command:02X}: {last_error}"
        ) from last_error

    # -- Lifecycle -----------------------------------------------------------

    def close(self) -> None:
        """Detach from and close the transport. Safe to call multiple times."""
        if self._closed:
            return
        self._closed = True
        self._transport.set_arrival_callback(None)
        self._transport.close()

    def __enter__(self) -> TransactionEngine:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    # -- Private helpers -----------------------------------------------------

    def _attempt(self, frame: bytes) -> bytes:
        """Run one write/wait/read/verify cycle."""
        self._arrival.reset()
        self._transport.discard_input()
        self._transport.write(frame)
        logger.debug("TX %s", frame.hex(" "))
        self._stats.messages_sent += 1
        self._stats.replies_expected += 1

        if not self._arrival.wait(self._timeout):
            self._stats.timeouts += 1
            raise TransactionTimeoutError(
                f"No reply to command 0x{frame[2]:02X} within {self._timeout} s"
            )
        self._stats.replies_received += 1

        reply = self._read_frame()
        logger.debug("RX %s", reply.hex(" "))
        decoded = decode(reply)
        if not decoded.checksum_ok:
            self._stats.checksum_failures += 1
            raise ChecksumMismatchError(reply)

        if decoded.is_status:
            status = decoded.status
            if status == StatusCode.CHECKSUM_INCORRECT:
                self._stats.checksum_failures += 1
                raise ChecksumMismatchError(reply, reported_by_device=True)
            if status != StatusCode.COMMAND_OK:
                self._stats.device_rejections += 1
                error = DeviceRejectedError(status, frame[2])
                logger.error("%s: %s", self._device_name, error)
                raise error
        return decoded.payload

    def _read_frame(self) -> bytes:
        """Read one frame, realigning on the start marker if needed."""
        window = self._transport.read(FRAME_LENGTH)
        try:
            return locate_frame(window, self._transport.read)
        except FramingError:
            self._stats.framing_failures += 1
            raise

    def _on_arrival(self, available: int) -> None:
        """Arrival observer, called from the transport's thread."""
        if not self._arrival.notify(available):
            self._stats.spurious_arrivals += 1
            logger.debug("Spurious arrival notification: %d bytes available", available)
