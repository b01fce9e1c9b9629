"""ICP DAS I-7017 eight-channel analog input module driver.

The ``#AA`` command reads all eight channels at once. The module answers
with a ``>`` header followed by one fixed-width signed decimal field per
channel, each field starting with its sign::

    >+025.12+020.45-012.78+018.97+003.24+015.35+018.97+003.24

Several modules on one bus are combined by :class:`AnalogInputBank`.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Sequence

from benchlink_icpdas.bus import DconTransport, SerialDconBus, dcon_checksum
from benchlink_icpdas.errors import DconError

logger = logging.getLogger(__name__)

CHANNEL_COUNT = 8
REPLY_HEADER = ">"

# One field: its sign, then everything up to the next sign
_FIELD_RE = re.compile(r"[+-][^+-]*")


@dataclass(frozen=True)
class AnalogReadings:
    """Result of a multi-channel read.

    Attributes:
        ok: False if the module never answered or a field failed to parse.
        voltages: One value per channel, 0.0 where no value was read.
    """

    ok: bool
    voltages: tuple[float, ...]


def parse_analog_fields(payload: str, count: int = CHANNEL_COUNT) -> tuple[tuple[float, ...], bool]:
    """Parse ``count`` signed decimal fields from a reply payload.

    Args:
        payload: Reply text after the header, e.g. ``"+025.12-003.40..."``.
        count: Number of fields expected.

    Returns:
        ``(values, ok)``. Missing or malformed fields read as 0.0 and make
        ``ok`` False. Extra fields are ignored.
    """
    fields = _FIELD_RE.findall(payload.strip())
    values: list[float] = []
    ok = len(fields) >= count
    for field in fields[:count]:
        try:
            values.append(float(field))
        except ValueError:
            values.append(0.0)
            ok = False
    values.extend([0.0] * (count - len(values)))
    return tuple(values), ok


def _normalize_address(address: int | str) -> str:
    if isinstance(address, int):
        if not 0 <= address <= 0xFF:
            raise ValueError(f"address must be 0-255, got {address}")
        return f"{address:02X}"
    if not re.fullmatch(r"[0-9A-Fa-f]{2}", address):
        raise ValueError(f"address must be two hex digits, got {address!r}")
    return address.upper()


class I7017Module:
    """One I-7017 module on a DCON bus.

    Args:
        bus: The shared :class:`DconTransport`.
        address: Module address, as an int or two hex digits (``"01"``).
        retries: Additional attempts after a timeout or malformed reply.
        checksum: Whether the module has DCON checksums enabled.
    """

    def __init__(
        self,
        bus: DconTransport,
        address: int | str,
        *,
        retries: int = 3,
        checksum: bool = False,
    ) -> None:
        if retries < 0:
            raise ValueError(f"retries must be >= 0, got {retries}")
        self._bus = bus
        self._address = _normalize_address(address)
        self._retries = retries
        self._checksum = checksum

    @property
    def address(self) -> str:
        """Module address as two hex digits."""
        return self._address

    def read_all_voltages(self) -> AnalogReadings:
        """Read all eight input channels."""
        payload = self._request(f"#{self._address}")
        if payload is None:
            return AnalogReadings(ok=False, voltages=(0.0,) * CHANNEL_COUNT)
        voltages, ok = parse_analog_fields(payload, CHANNEL_COUNT)
        if not ok:
            logger.warning("Module %s: malformed reading %r", self._address, payload)
        return AnalogReadings(ok=ok, voltages=voltages)

    def _request(self, command: str) -> str | None:
        """Send ``command`` and return the reply payload, or None on failure."""
        if self._checksum:
            command += dcon_checksum(command)
        attempts = self._retries + 1
        for attempt in range(1, attempts + 1):
            try:
                reply = self._bus.transact(command)
            except DconError as exc:
                logger.warning(
                    "Module %s attempt %d/%d failed: %s", self._address, attempt, attempts, exc
                )
                continue
            payload = self._strip_reply(reply)
            if payload is not None:
                return payload
            logger.warning(
                "Module %s attempt %d/%d: invalid reply %r", self._address, attempt, attempts, reply
            )
        logger.error("Module %s did not answer %r after %d attempts", self._address, command, attempts)
        return None

    def _strip_reply(self, reply: str) -> str | None:
        """Remove header and checksum; None if either is wrong."""
        if not reply.startswith(REPLY_HEADER):
            return None
        if self._checksum:
            body, received = reply[:-2], reply[-2:]
            if len(reply) < 3 or dcon_checksum(body) != received.upper():
                return None
            reply = body
        return reply[len(REPLY_HEADER) :]


class AnalogInputBank:
    """Several I-7017 modules read together as one channel list.

    Args:
        bus: The shared :class:`DconTransport`.
        addresses: Module addresses, in channel order.
        retries: Additional attempts per module.
        checksum: Whether the modules have DCON checksums enabled.
    """

    def __init__(
        self,
        bus: DconTransport,
        addresses: Sequence[int | str],
        *,
        retries: int = 3,
        checksum: bool = False,
    ) -> None:
        if not addresses:
            raise ValueError("at least one module address is required")
        self._modules = tuple(
            I7017Module(bus, address, retries=retries, checksum=checksum) for address in addresses
        )

    @property
    def modules(self) -> tuple[I7017Module, ...]:
        """The modules, in channel order."""
        return self._modules

    @property
    def channel_count(self) -> int:
        """Total number of channels in the bank."""
        return CHANNEL_COUNT * len(self._modules)

    def read_all_voltages(self) -> AnalogReadings:
        """Read every module; ``ok`` only if every module read cleanly."""
        readings = [module.read_all_voltages() for module in self._modules]
        voltages: tuple[float, ...] = ()
        for reading in readings:
            voltages += reading.voltages
        return AnalogReadings(ok=all(r.ok for r in readings), voltages=voltages)


def create_analog_bank(
    port: str,
    addresses: Sequence[int | str],
    *,
    baudrate: int = 9600,
    timeout: float = 2.0,
    retries: int = 3,
    checksum: bool = False,
) -> AnalogInputBank:
    """Create an analog input bank on a serial DCON bus.

    Args:
        port: Serial device name of the RS-485 adapter.
        addresses: Module addresses, in channel order.
        baudrate: Bus line speed.
        timeout: Seconds to wait for each reply.
        retries: Additional attempts per module read.
        checksum: Whether the modules have DCON checksums enabled.
    """
    bus = SerialDconBus(port, baudrate=baudrate, timeout=timeout)
    return AnalogInputBank(bus, addresses, retries=retries, checksum=checksum)
