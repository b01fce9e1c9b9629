"""Core library for benchlink instrument drivers.

This package provides the foundational types and the exception root shared by
every benchlink driver package. It is deliberately stdlib-only so that it can
serve as the base layer for all other benchlink packages.

Key components:
    - Errors: :class:`BenchlinkError` and :class:`ConfigError`.
    - Types: :class:`InstrumentIdentity`.
"""

from benchlink_core.errors import BenchlinkError, ConfigError
from benchlink_core.types import InstrumentIdentity

__all__ = [
    # Errors
    "BenchlinkError",
    "ConfigError",
    # Types
    "InstrumentIdentity",
]
