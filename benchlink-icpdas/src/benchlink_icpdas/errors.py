"""DCON bus error types.

Exception hierarchy:
    BenchlinkError
    +-- DconError
        +-- DconTimeoutError
"""

from __future__ import annotations

from benchlink_core.errors import BenchlinkError


class DconError(BenchlinkError):
    """Base exception for DCON bus errors, including port open failures."""


class DconTimeoutError(DconError):
    """No complete reply line arrived before the read timeout."""
