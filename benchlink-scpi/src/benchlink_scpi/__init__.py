"""SCPI protocol library for benchlink instrument automation.

This package provides SCPI communication for bench instruments on echoing
serial links. It includes:

- Transport abstraction for SCPI line passing
- PyVISA-backed transport for real instruments
- High-level connection with echo acknowledgement and bounded retries
- Number parsing and formatting utilities for SCPI responses
- Custom exception types for SCPI protocol errors

Typical usage::

    from benchlink_scpi import VisaResource, ScpiConnection

    transport = VisaResource("ASRL3::INSTR", baud_rate=38400)
    transport.open()
    conn = ScpiConnection(transport)
    print(conn.identify())
    conn.close()
"""

from benchlink_scpi.connection import ScpiConnection, ScpiStats, parse_idn_response
from benchlink_scpi.errors import ScpiEchoError, ScpiError, ScpiTimeoutError
from benchlink_scpi.number import (
    format_bool,
    format_number,
    parse_bool,
    parse_int,
    parse_number,
    parse_numbers,
)
from benchlink_scpi.transport import ScpiTransport
from benchlink_scpi.visa import VisaResource

__all__ = [
    # Connection
    "ScpiConnection",
    "ScpiStats",
    "parse_idn_response",
    # Errors
    "ScpiEchoError",
    "ScpiError",
    "ScpiTimeoutError",
    # Number parsing/formatting
    "format_bool",
    "format_number",
    "parse_bool",
    "parse_int",
    "parse_number",
    "parse_numbers",
    # Transport
    "ScpiTransport",
    # VISA
    "VisaResource",
]
