"""Cross-thread reply arrival signal.

The transport's observer runs on its own thread and reports how many bytes
are waiting; the thread inside :meth:`TransactionEngine.send` blocks until a
whole frame is there. :class:`ArrivalSignal` joins the two with a single-slot,
manually reset ``threading.Event``.
"""

from __future__ import annotations

import threading

from benchlink_bkprecision.packet import FRAME_LENGTH


class ArrivalSignal:
    """Single-slot, manually reset "reply available" signal.

    Some transports notify on partial arrivals, so a notification only sets
    the signal once at least ``threshold`` bytes are waiting. Notifications
    below the threshold are reported back to the caller as spurious and
    otherwise ignored.

    Args:
        threshold: Minimum number of available bytes that counts as a real
            arrival. Defaults to one frame length.
    """

    def __init__(self, threshold: int = FRAME_LENGTH) -> None:
        if threshold < 1:
            raise ValueError(f"threshold must be >= 1, got {threshold}")
        self._threshold = threshold
        self._event = threading.Event()

    @property
    def threshold(self) -> int:
        """Byte count required to set the signal."""
        return self._threshold

    @property
    def is_set(self) -> bool:
        """Whether a real arrival has been signalled since the last reset."""
        return self._event.is_set()

    def notify(self, available: int) -> bool:
        """Report that ``available`` bytes are waiting in the receive buffer.

        Called from the observer thread.

        Returns:
            True if the signal was set, False for a spurious notification.
        """
        if available < self._threshold:
            return False
        self._event.set()
        return True

    def reset(self) -> None:
        """Clear the signal. Call before each write."""
        self._event.clear()

    def wait(self, timeout: float) -> bool:
        """Block until the signal is set or ``timeout`` seconds pass.

        Returns:
            True if the signal was set, False on timeout.
        """
        return self._event.wait(timeout)
