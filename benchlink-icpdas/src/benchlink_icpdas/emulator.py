"""In-process I-7017 emulator for tests and dry runs.

Several modules can share one emulator, which then behaves like a DCON bus
with one I-7017 at each configured address.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Iterable, Sequence

from benchlink_icpdas.bus import dcon_checksum
from benchlink_icpdas.errors import DconTimeoutError
from benchlink_icpdas.i7017 import CHANNEL_COUNT, REPLY_HEADER

logger = logging.getLogger(__name__)


class I7017Emulator:
    """Emulated DCON bus populated with I-7017 modules.

    Implements :class:`benchlink_icpdas.bus.DconTransport`.

    Args:
        addresses: Module addresses on the bus (ints).
        checksum: Whether the emulated modules use DCON checksums.
    """

    def __init__(self, addresses: Iterable[int] = (1,), *, checksum: bool = False) -> None:
        self._voltages: dict[int, list[float]] = {
            address: [0.0] * CHANNEL_COUNT for address in addresses
        }
        self._checksum = checksum
        self._drop_count = 0
        self._raw_replies: deque[str] = deque()
        self.commands: list[str] = []

    def set_voltages(self, address: int, voltages: Sequence[float]) -> None:
        """Set the eight input voltages of one module."""
        if len(voltages) != CHANNEL_COUNT:
            raise ValueError(f"expected {CHANNEL_COUNT} voltages, got {len(voltages)}")
        self._voltages[address] = list(voltages)

    def drop_replies(self, count: int) -> None:
        """Make the next ``count`` transactions time out."""
        self._drop_count = count

    def queue_raw_reply(self, reply: str) -> None:
        """Answer the next transaction with ``reply`` verbatim."""
        self._raw_replies.append(reply)

    def transact(self, command: str) -> str:
        self.commands.append(command)
        if self._drop_count > 0:
            self._drop_count -= 1
            raise DconTimeoutError(f"No reply to {command!r} (dropped)")
        if self._raw_replies:
            return self._raw_replies.popleft()

        body = command
        if self._checksum:
            body, received = command[:-2], command[-2:]
            if dcon_checksum(body) != received:
                # Modules ignore commands with a bad checksum
                raise DconTimeoutError(f"No reply to {command!r} (bad checksum)")

        address = self._parse_read_command(body)
        if address is None or address not in self._voltages:
            raise DconTimeoutError(f"No reply to {command!r}")

        reply = REPLY_HEADER + "".join(f"{v:+07.2f}" for v in self._voltages[address])
        if self._checksum:
            reply += dcon_checksum(reply)
        logger.debug("Emulated module %02X replied %r", address, reply)
        return reply

    @staticmethod
    def _parse_read_command(body: str) -> int | None:
        if len(body) != 3 or not body.startswith("#"):
            return None
        try:
            return int(body[1:], 16)
        except ValueError:
            return None
