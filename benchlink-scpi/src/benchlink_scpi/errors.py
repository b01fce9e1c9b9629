"""SCPI protocol error types.

This module defines exception classes for failures on echoing SCPI serial
links. All exceptions inherit from :class:`benchlink_core.errors.BenchlinkError`.
"""

from __future__ import annotations

from benchlink_core.errors import BenchlinkError


class ScpiError(BenchlinkError):
    """Base exception for SCPI protocol errors.

    All SCPI-related exceptions inherit from this class, allowing callers
    to catch all SCPI errors with a single except clause.
    """


class ScpiTimeoutError(ScpiError):
    """Raised when the instrument does not answer within the read timeout."""


class ScpiEchoError(ScpiError):
    """Raised when the instrument keeps echoing something other than the command.

    Attributes:
        command: The command that was sent.
        echo: The last line the instrument returned instead.
    """

    def __init__(self, command: str, echo: str) -> None:
        self.command = command
        self.echo = echo
        super().__init__(f"Instrument did not echo {command!r}, last reply was {echo!r}")
