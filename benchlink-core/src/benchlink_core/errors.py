"""Exception types for benchlink-core.

This module defines the root of the exception hierarchy used throughout
benchlink. Every instrument package derives its own errors from
:class:`BenchlinkError`, so callers can catch all framework-specific errors
with a single except clause.

Exception hierarchy:
    BenchlinkError (base)
    +-- ConfigError: Invalid bench or driver configuration
    +-- LoadProtocolError: BK8500 packet protocol failures (benchlink-bkprecision)
    +-- ScpiError: Line-oriented SCPI failures (benchlink-scpi)
    +-- DconError: DCON ASCII bus failures (benchlink-icpdas)
"""


class BenchlinkError(Exception):
    """Base exception for all benchlink errors.

    This is the root of the benchlink exception hierarchy. Catch this to
    handle any framework-specific error.
    """


class ConfigError(BenchlinkError, ValueError):
    """Raised for invalid configuration.

    Covers malformed bench YAML files, missing required fields, and driver
    paths that cannot be resolved. Also a ``ValueError`` so that callers
    validating plain values can catch it the usual way.
    """
