"""Frame realignment for the BK8500 byte stream.

The serial link never doubles bytes but may misfire stray bytes or lose
synchronization after a timeout, leaving garbage in front of the next reply.
:func:`locate_frame` recovers alignment at the cost of one extra read
instead of a full channel reset.
"""

from __future__ import annotations

import logging
from typing import Callable

from benchlink_bkprecision.errors import FramingError
from benchlink_bkprecision.packet import FRAME_LENGTH, START_MARKER

logger = logging.getLogger(__name__)


def locate_frame(window: bytes, read_more: Callable[[int], bytes]) -> bytes:
    """Return a start-aligned frame from a possibly shifted byte window.

    If the start marker sits at offset ``k > 0``, the ``k`` bytes in front
    of it are discarded and ``read_more`` is called to pull the bytes the
    window is now short of (``k`` for a window of exactly one frame), so the
    result is exactly one frame long.

    Args:
        window: At least one frame length of received bytes.
        read_more: Reads up to ``n`` further bytes from the channel. May
            return fewer if the per-read timeout expires.

    Returns:
        The aligned 26-byte frame.

    Raises:
        FramingError: If the window is short, contains no start marker, or
            the channel could not supply the missing bytes.
    """
    if len(window) < FRAME_LENGTH:
        raise FramingError(f"Expected {FRAME_LENGTH} bytes, received {len(window)}")

    index = window.find(START_MARKER)
    if index < 0:
        raise FramingError(f"No start marker in received bytes: {window.hex(' ')}")
    if index == 0:
        return bytes(window[:FRAME_LENGTH])

    logger.debug("Start marker at offset %d, discarding %s", index, window[:index].hex(" "))
    buffer = bytes(window)
    missing = index + FRAME_LENGTH - len(buffer)
    if missing > 0:
        extra = read_more(missing)
        if len(extra) < missing:
            raise FramingError(
                f"Resync needed {missing} more bytes after the start marker, "
                f"received {len(extra)}"
            )
        buffer += bytes(extra)
    return buffer[index : index + FRAME_LENGTH]
