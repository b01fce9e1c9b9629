"""BK Precision 2831E multimeter emulator.

Provides an in-process emulator implementing the ``ScpiTransport`` protocol.
Like the real meter on its RS-232 port, it echoes every line before
answering queries, so it exercises the echo acknowledgement in
:class:`~benchlink_scpi.ScpiConnection`.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Callable

from benchlink_scpi import ScpiError, ScpiTimeoutError, format_bool

from benchlink_bkprecision.dmm import MeterFunction

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Bk2831eEmulatorConfig:
    """Configuration for a 2831E emulator instance.

    Args:
        identity: ``*IDN?`` response string.
        readings: Value returned by ``:FETCH?`` for each function.
    """

    identity: str = "B&K Precision,2831E  Multimeter,SN000001,V1.0"
    readings: dict[MeterFunction, float] = field(
        default_factory=lambda: {function: 0.0 for function in MeterFunction}
    )

    def __post_init__(self) -> None:
        if not self.identity:
            raise ValueError("identity must be non-empty")


# ---------------------------------------------------------------------------
# Emulator
# ---------------------------------------------------------------------------


class Bk2831eEmulator:
    """In-process 2831E emulator implementing ``ScpiTransport``.

    Args:
        config: Emulator configuration.
    """

    def __init__(self, config: Bk2831eEmulatorConfig | None = None) -> None:
        self._config = config or Bk2831eEmulatorConfig()
        self._readings = dict(self._config.readings)
        self._lines: deque[str] = deque()
        self._open = True
        self._drop = 0
        self._garble = 0

        self.display_enabled = True
        self.function = MeterFunction.VOLTAGE_DC
        self.integration_rates: dict[str, float] = {"AC": 1.0, "DC": 1.0}
        self.ranges: dict[str, float] = {"AC": 750.0, "DC": 1000.0}
        self.lines_received: list[str] = []
        self.rejected_lines: list[str] = []
        self.reset_count = 0

        self._set_handlers: dict[str, Callable[[str], bool]] = {
            ":DISPLAY:ENABLE": self._set_display,
            ":FUNCTION": self._set_function,
            "VOLTAGE:AC:NPLCYCLES": lambda arg: self._set_number(self.integration_rates, "AC", arg),
            "VOLTAGE:DC:NPLCYCLES": lambda arg: self._set_number(self.integration_rates, "DC", arg),
            "VOLTAGE:AC:RANGE": lambda arg: self._set_number(self.ranges, "AC", arg),
            "VOLTAGE:DC:RANGE": lambda arg: self._set_number(self.ranges, "DC", arg),
        }
        self._query_handlers: dict[str, Callable[[], str]] = {
            "*IDN?": lambda: self._config.identity,
            ":DISPLAY:ENABLE?": lambda: format_bool(self.display_enabled),
            ":FUNCTION?": lambda: f'"{self.function.value}"',
            ":FETCH?": self._fetch,
        }

    # -- Transport interface ------------------------------------------------

    def open(self) -> None:
        """Reopen the link."""
        self._open = True

    def write(self, message: str) -> None:
        """Echo a line and queue the answer to a query."""
        if not self._open:
            raise ScpiError("Emulator link is closed")
        line = message.strip()
        self.lines_received.append(line)
        if self._drop > 0:
            self._drop -= 1
            return
        if self._garble > 0:
            self._garble -= 1
            self._lines.append(line[::-1] + "#")
        else:
            self._lines.append(line)

        if line.endswith("?"):
            handler = self._query_handlers.get(line.upper())
            if handler is not None:
                self._lines.append(handler())
            return
        header, _, arg = line.partition(" ")
        if header == "*RST":
            self._reset()
            return
        set_handler = self._set_handlers.get(header.upper())
        if set_handler is None or not set_handler(arg.strip()):
            self.rejected_lines.append(line)

    def read(self) -> str:
        """Return the next queued line, timing out if there is none."""
        if not self._open:
            raise ScpiError("Emulator link is closed")
        if not self._lines:
            raise ScpiTimeoutError("Emulator has no pending line")
        return self._lines.popleft()

    def clear(self) -> None:
        """Discard queued lines."""
        self._lines.clear()

    def close(self) -> None:
        """Close the link. Safe to call multiple times."""
        self._open = False

    @property
    def is_open(self) -> bool:
        """Whether the link is open."""
        return self._open

    # -- Test helpers -------------------------------------------------------

    def set_reading(self, function: MeterFunction, value: float) -> None:
        """Set the value ``:FETCH?`` returns while ``function`` is selected."""
        self._readings[function] = value

    def drop_lines(self, count: int = 1) -> None:
        """Ignore the next ``count`` lines entirely (no echo, no answer)."""
        self._drop += count

    def garble_echoes(self, count: int = 1) -> None:
        """Echo the next ``count`` lines incorrectly."""
        self._garble += count

    # -- Private helpers ----------------------------------------------------

    def _reset(self) -> None:
        self.reset_count += 1
        self.display_enabled = True
        self.function = MeterFunction.VOLTAGE_DC
        self.integration_rates = {"AC": 1.0, "DC": 1.0}
        self.ranges = {"AC": 750.0, "DC": 1000.0}

    def _set_display(self, arg: str) -> bool:
        token = arg.upper()
        if token not in ("0", "1", "OFF", "ON"):
            return False
        self.display_enabled = token in ("1", "ON")
        return True

    def _set_function(self, arg: str) -> bool:
        try:
            self.function = MeterFunction(arg.upper())
        except ValueError:
            return False
        return True

    @staticmethod
    def _set_number(target: dict[str, float], key: str, arg: str) -> bool:
        try:
            target[key] = float(arg)
        except ValueError:
            return False
        return True

    def _fetch(self) -> str:
        return f"{self._readings.get(self.function, 0.0):+.5E}"


# ---------------------------------------------------------------------------
# Factory functions
# ---------------------------------------------------------------------------


def make_2831e_emulator(serial: str = "SN000001") -> Bk2831eEmulator:
    """Create a 2831E emulator reporting the given serial number."""
    config = Bk2831eEmulatorConfig(identity=f"B&K Precision,2831E  Multimeter,{serial},V1.0")
    return Bk2831eEmulator(config)

