"""BK8500 packet protocol error types.

The transaction engine classifies every failed exchange into one of the
exceptions below. Timeouts, checksum mismatches and framing failures are
retryable: the engine handles them internally and they only surface as the
``__cause__`` of a :class:`CommunicationError` once the retry budget is
spent. :class:`DeviceRejectedError` and :class:`CommunicationError` are the
two outcomes callers must handle.

Exception hierarchy:
    BenchlinkError
    +-- LoadProtocolError
        +-- TransactionTimeoutError (retryable)
        +-- ChecksumMismatchError (retryable)
        +-- FramingError (retryable)
        +-- DeviceRejectedError (fatal)
        +-- CommunicationError (fatal, retry budget exhausted)
    +-- InstrumentMismatchError (any BK Precision driver)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from benchlink_core.errors import BenchlinkError

if TYPE_CHECKING:
    from benchlink_bkprecision.packet import StatusCode


class LoadProtocolError(BenchlinkError):
    """Base exception for BK Precision instrument protocol errors."""


class TransactionTimeoutError(LoadProtocolError):
    """No reply arrived within the per-attempt deadline."""


class ChecksumMismatchError(LoadProtocolError):
    """A frame failed checksum verification on either end of the link.

    Attributes:
        frame: The 26 received bytes.
        reported_by_device: True if the instrument reported that the frame
            it received was corrupt, False if the reply itself was.
    """

    def __init__(self, frame: bytes, *, reported_by_device: bool = False) -> None:
        self.frame = frame
        self.reported_by_device = reported_by_device
        if reported_by_device:
            message = "Instrument reported a checksum error in the sent frame"
        else:
            message = f"Reply checksum mismatch: {frame.hex(' ')}"
        super().__init__(message)


class FramingError(LoadProtocolError):
    """The start-of-frame marker could not be located in the received bytes."""


class DeviceRejectedError(LoadProtocolError):
    """The instrument answered with a non-OK status reply.

    Retrying will not help: the device understood the frame and refused it.

    Attributes:
        status: The status byte returned by the device, as a
            :class:`~benchlink_bkprecision.packet.StatusCode` when known or a
            plain ``int`` otherwise.
        command: The command code that was rejected.
    """

    def __init__(self, status: StatusCode | int, command: int) -> None:
        self.status = status
        self.command = command
        name = getattr(status, "name", f"0x{int(status):02X}")
        super().__init__(f"Instrument rejected command 0x{command:02X} with status {name}")


class CommunicationError(LoadProtocolError):
    """Raised when the retry budget is exhausted or the port cannot be used.

    Attributes:
        device: Human-readable device name used in the message.
    """

    def __init__(self, device: str, detail: str = "") -> None:
        self.device = device
        message = (
            f"Communication with the {device} has failed, "
            "please check all connections and restart the session"
        )
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class InstrumentMismatchError(BenchlinkError):
    """A different instrument than expected answered on the port, or none did."""
