"""SCPI connection for echoing serial instruments.

Bench instruments on an RS-232 link (the BK Precision 2831E among them)
echo every line they receive before answering it. :class:`ScpiConnection`
uses that echo as an acknowledgement: a command only counts as delivered
once the echoed line contains it, and a query's answer is the line that
follows the echo.

Typical usage::

    from benchlink_scpi import VisaResource, ScpiConnection

    transport = VisaResource("ASRL3::INSTR", baud_rate=38400)
    transport.open()
    conn = ScpiConnection(transport)
    conn.command(":FUNCTION VOLTAGE:DC")
    reading = conn.query_number(":FETCH?")
    conn.close()
"""

from __future__ import annotations

import dataclasses
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from benchlink_core.types import InstrumentIdentity

from benchlink_scpi.errors import ScpiEchoError, ScpiError, ScpiTimeoutError
from benchlink_scpi.number import parse_bool, parse_int, parse_number

if TYPE_CHECKING:
    from benchlink_scpi.transport import ScpiTransport

logger = logging.getLogger(__name__)


def parse_idn_response(response: str) -> InstrumentIdentity:
    """Parse a SCPI ``*IDN?`` response into an :class:`InstrumentIdentity`.

    The standard ``*IDN?`` response format is four comma-separated fields::

        manufacturer,model,serial_number,firmware_version

    If the response contains more than four comma-separated fields, the
    extra fields are joined into the firmware string.

    Raises:
        ValueError: If the response has fewer than four fields.
    """
    parts = [p.strip() for p in response.split(",")]
    if len(parts) < 4:
        raise ValueError(
            f"Expected at least 4 comma-separated fields in *IDN? response, "
            f"got {len(parts)}: {response!r}"
        )
    return InstrumentIdentity(
        manufacturer=parts[0],
        model=parts[1],
        serial=parts[2],
        firmware=",".join(parts[3:]),
    )


@dataclass
class ScpiStats:
    """Communication counters for one connection.

    Attributes:
        attempts: Lines written, including re-sends.
        retries: Re-sends after a timeout or a wrong echo.
    """

    attempts: int = 0
    retries: int = 0


class ScpiConnection:
    """High-level SCPI connection over an echoing line transport.

    Args:
        transport: An open :class:`ScpiTransport` instance.
        retries: Additional attempts after a timeout or wrong echo.
            Defaults to 3.
        echo: Whether the instrument echoes commands. With ``echo=False``
            commands are written once and never read back.

    Example:
        >>> conn = ScpiConnection(transport)
        >>> conn.command(":DISPLAY:ENABLE 1")
        >>> conn.query_bool(":DISPLAY:ENABLE?")
        True
    """

    def __init__(self, transport: ScpiTransport, *, retries: int = 3, echo: bool = True) -> None:
        if retries < 0:
            raise ValueError(f"retries must be >= 0, got {retries}")
        self._transport = transport
        self._retries = retries
        self._echo = echo
        self._stats = ScpiStats()

    @property
    def stats(self) -> ScpiStats:
        """Snapshot of the communication counters."""
        return dataclasses.replace(self._stats)

    # -- Core operations -----------------------------------------------------

    def command(self, cmd: str) -> None:
        """Send a SCPI command and wait for its echo.

        Args:
            cmd: The SCPI command string (e.g. ``":FUNCTION VOLTAGE:DC"``).

        Raises:
            ScpiTimeoutError: If the echo timed out on every attempt.
            ScpiEchoError: If the last echo did not contain the command.
        """
        self._exchange(cmd, answer=False)

    def query(self, cmd: str) -> str:
        """Send a SCPI query and return the response line.

        Args:
            cmd: The SCPI query string (e.g. ``":FETCH?"``).

        Returns:
            The instrument response with surrounding whitespace stripped.

        Raises:
            ScpiTimeoutError: If no answer arrived on any attempt.
            ScpiEchoError: If the query was never echoed.
        """
        reply = self._exchange(cmd, answer=True)
        assert reply is not None
        return reply

    def _exchange(self, cmd: str, *, answer: bool) -> str | None:
        """Write ``cmd``, check its echo, and optionally read the answer line.

        Every write counts against one budget of ``retries + 1`` attempts,
        whether the attempt failed on the echo or on the answer.
        """
        attempts = self._retries + 1
        last_error: ScpiError | None = None
        for attempt in range(1, attempts + 1):
            if attempt > 1:
                self._stats.retries += 1
                logger.warning("Resending %r (attempt %d/%d): %s", cmd, attempt, attempts, last_error)
            self._stats.attempts += 1
            self._transport.write(cmd)
            try:
                if self._echo:
                    echo = self._transport.read()
                    if cmd not in echo:
                        last_error = ScpiEchoError(cmd, echo)
                        continue
                if not answer:
                    return None
                return self._transport.read().strip()
            except ScpiTimeoutError as exc:
                last_error = exc

        assert last_error is not None
        logger.error("%r failed after %d attempts: %s", cmd, attempts, last_error)
        raise last_error

    # -- Typed query variants ------------------------------------------------

    def query_number(self, cmd: str) -> float:
        """Query and parse the response as a SCPI number.

        Raises:
            ValueError: If the response cannot be parsed as a number.
        """
        return parse_number(self.query(cmd))

    def query_int(self, cmd: str) -> int:
        """Query and parse the response as an integer.

        Raises:
            ValueError: If the response is not a valid integer.
        """
        return parse_int(self.query(cmd))

    def query_bool(self, cmd: str) -> bool:
        """Query and parse the response as a boolean.

        Raises:
            ValueError: If the response is not a recognized boolean token.
        """
        return parse_bool(self.query(cmd))

    # -- IEEE 488.2 convenience methods --------------------------------------

    def identify(self) -> str:
        """Query the raw instrument identification string (``*IDN?``)."""
        return self.query("*IDN?")

    def get_identity(self) -> InstrumentIdentity:
        """Query and parse the instrument identification (``*IDN?``)."""
        return parse_idn_response(self.identify())

    def reset(self, reset_delay: float = 2.5, reopen_delay: float = 0.1) -> None:
        """Reset the instrument (``*RST``) and re-establish the link.

        Serial instruments drop the line while they reset, so the transport
        is closed for the duration and reopened with empty buffers.

        Args:
            reset_delay: Seconds to wait after ``*RST`` before closing.
            reopen_delay: Seconds to wait between closing and reopening.
        """
        self.command("*RST")
        time.sleep(reset_delay)
        self._transport.close()
        time.sleep(reopen_delay)
        self._transport.open()
        self._transport.clear()
        logger.info("Instrument reset, link reopened")

    # -- Lifecycle -----------------------------------------------------------

    def close(self) -> None:
        """Close the underlying transport."""
        self._transport.close()
