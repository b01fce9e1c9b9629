"""BK Precision 2831E bench multimeter driver.

The 2831E speaks SCPI over RS-232 and echoes every line it receives, so the
driver runs on an echoing :class:`~benchlink_scpi.ScpiConnection`.
"""

from __future__ import annotations

import logging
from enum import Enum
from types import TracebackType

from benchlink_core.types import InstrumentIdentity
from benchlink_scpi import (
    ScpiConnection,
    ScpiError,
    ScpiStats,
    ScpiTimeoutError,
    VisaResource,
    format_bool,
    format_number,
    parse_idn_response,
)

from benchlink_bkprecision.errors import InstrumentMismatchError

logger = logging.getLogger(__name__)

MANUFACTURER = "B&K Precision"

#: Substring the 2831E reports in its ``*IDN?`` reply.
MODEL_STRING = "2831E  Multimeter"


class MeterFunction(Enum):
    """Measurement function, valued by its SCPI keyword."""

    VOLTAGE_AC = "VOLTAGE:AC"
    VOLTAGE_DC = "VOLTAGE:DC"
    CURRENT_AC = "CURRENT:AC"
    CURRENT_DC = "CURRENT:DC"
    RESISTANCE = "RESISTANCE"
    FREQUENCY = "FREQUENCY"
    PERIOD = "PERIOD"
    DIODE = "DIODE"
    CONTINUITY = "CONTINUITY"


class Coupling(Enum):
    """Voltage input coupling."""

    AC = "AC"
    DC = "DC"


class IntegrationRate(Enum):
    """Integration time in power line cycles."""

    FAST = 0.1
    MEDIUM = 1.0
    SLOW = 10.0


class VoltageRange(Enum):
    """Voltage range upper bound in volts.

    ``MAX`` selects the highest range, which is 750 V for AC and 1000 V
    for DC.
    """

    MV_200 = 0.2
    V_2 = 2.0
    V_20 = 20.0
    V_200 = 200.0
    MAX = 1000.0


_MAX_RANGE: dict[Coupling, float] = {
    Coupling.AC: 750.0,
    Coupling.DC: 1000.0,
}


class Bk2831eMultimeter:
    """High-level driver for the BK Precision 2831E multimeter.

    Args:
        connection: An echoing :class:`ScpiConnection` to the instrument.
    """

    def __init__(self, connection: ScpiConnection) -> None:
        self._conn = connection

    # -- Identity / lifecycle -----------------------------------------------

    def identify(self) -> str:
        """Query the raw ``*IDN?`` string."""
        return self._conn.identify()

    def get_identity(self) -> InstrumentIdentity:
        """Query the identity as an :class:`InstrumentIdentity`.

        Replies that do not carry the four standard fields are reported
        with the whole reply as the model.
        """
        idn = self.identify()
        try:
            return parse_idn_response(idn)
        except ValueError:
            return InstrumentIdentity(manufacturer=MANUFACTURER, model=idn, serial="", firmware="")

    def reset(self, reset_delay: float = 2.5) -> None:
        """Reset the meter and reopen the serial link."""
        self._conn.reset(reset_delay=reset_delay)

    @property
    def stats(self) -> ScpiStats:
        """Communication counters of the underlying connection."""
        return self._conn.stats

    def close(self) -> None:
        """Close the underlying connection."""
        self._conn.close()

    def __enter__(self) -> Bk2831eMultimeter:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    # -- Display ------------------------------------------------------------

    def set_display_enabled(self, enabled: bool) -> None:
        """Turn the front-panel display on or off."""
        self._conn.command(f":DISPLAY:ENABLE {format_bool(enabled)}")

    def is_display_enabled(self) -> bool:
        """Query whether the front-panel display is on."""
        return self._conn.query(":DISPLAY:ENABLE?").upper() in ("1", "ON")

    # -- Function -----------------------------------------------------------

    def set_function(self, function: MeterFunction) -> None:
        """Select the measurement function."""
        self._conn.command(f":FUNCTION {function.value}")

    def get_function(self) -> MeterFunction:
        """Query the measurement function.

        Raises:
            ValueError: If the reply names no known function.
        """
        reply = self._conn.query(":FUNCTION?").upper()
        for function in MeterFunction:
            if function.value in reply:
                return function
        raise ValueError(f"Unrecognized measurement function: {reply!r}")

    # -- Voltage subsystem --------------------------------------------------

    def set_integration_rate(self, coupling: Coupling, rate: IntegrationRate) -> None:
        """Set the voltage integration time for one coupling."""
        self._conn.command(f"VOLTAGE:{coupling.value}:NPLCYCLES {format_number(rate.value)}")

    def set_voltage_range(self, coupling: Coupling, voltage_range: VoltageRange) -> None:
        """Select the voltage range for one coupling."""
        volts = voltage_range.value
        if voltage_range is VoltageRange.MAX:
            volts = _MAX_RANGE[coupling]
        self._conn.command(f"VOLTAGE:{coupling.value}:RANGE {format_number(volts)}")

    # -- Measurement --------------------------------------------------------

    def measure(self) -> float:
        """Fetch the latest reading in the units of the selected function."""
        return self._conn.query_number(":FETCH?")


def create_multimeter(
    resource: str,
    *,
    baud_rate: int = 38400,
    timeout_ms: int = 1000,
    retries: int = 3,
    verify: bool = True,
) -> Bk2831eMultimeter:
    """Create a 2831E driver on a VISA resource.

    Opens the resource, resets the meter and, unless ``verify`` is False,
    checks that a 2831E answers.

    Args:
        resource: VISA resource string (e.g. ``"ASRL3::INSTR"``).
        baud_rate: Serial line speed.
        timeout_ms: Read timeout in milliseconds.
        retries: Additional attempts after a timeout or wrong echo.
        verify: Check the ``*IDN?`` reply for the 2831E model string.

    Returns:
        Connected multimeter driver instance.

    Raises:
        InstrumentMismatchError: If no instrument or a different one answers.
    """
    transport = VisaResource(resource, baud_rate=baud_rate, timeout_ms=timeout_ms)
    transport.open()
    dmm = Bk2831eMultimeter(ScpiConnection(transport, retries=retries))
    try:
        dmm.reset()
        if verify:
            try:
                idn = dmm.identify()
            except ScpiTimeoutError as exc:
                raise InstrumentMismatchError(
                    f"No instrument was found on {resource}, a BK2831E was expected"
                ) from exc
            if MODEL_STRING not in idn:
                raise InstrumentMismatchError(
                    f"Instrument expected on {resource} is a BK2831E, {idn!r} was found"
                )
            logger.info("Connected to %s on %s", idn, resource)
    except (ScpiError, InstrumentMismatchError):
        dmm.close()
        raise
    return dmm
