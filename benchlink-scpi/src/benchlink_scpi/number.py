"""Parsing and formatting of SCPI numeric and boolean values.

Instruments answer in the NR1 (``+12``), NR2 (``-0.125``) or NR3
(``+1.23450E+01``) formats; overflow readings come back as the special
tokens ``INF``/``NINF``/``NAN`` or the 9.9E37 overload value.
"""

from __future__ import annotations

import math
import re

# NR1, NR2 and NR3 with optional sign and exponent
_NUMBER_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")

_SPECIAL_VALUES: dict[str, float] = {
    "NAN": math.nan,
    "INF": math.inf,
    "+INF": math.inf,
    "NINF": -math.inf,
    "-INF": -math.inf,
}

_TRUE_TOKENS = frozenset({"1", "ON"})
_FALSE_TOKENS = frozenset({"0", "OFF"})


def parse_number(text: str) -> float:
    """Parse one SCPI numeric response.

    Args:
        text: The raw response; surrounding whitespace is ignored.

    Returns:
        The value as a float.

    Raises:
        ValueError: If *text* is not an NR1/NR2/NR3 number or special token.
    """
    token = text.strip().upper()
    if token in _SPECIAL_VALUES:
        return _SPECIAL_VALUES[token]
    if not _NUMBER_RE.match(token):
        raise ValueError(f"Invalid SCPI number: {text!r}")
    return float(token)


def parse_numbers(text: str) -> tuple[float, ...]:
    """Parse a comma-separated list of SCPI numbers.

    Raises:
        ValueError: If any element is not a number.
    """
    return tuple(parse_number(part) for part in text.split(","))


def parse_int(text: str) -> int:
    """Parse an NR1 integer response.

    Raises:
        ValueError: If *text* is not an integer.
    """
    token = text.strip()
    if not re.fullmatch(r"[+-]?\d+", token):
        raise ValueError(f"Invalid SCPI integer: {text!r}")
    return int(token)


def parse_bool(text: str) -> bool:
    """Parse a boolean response (``1``/``0`` or ``ON``/``OFF``, any case).

    Raises:
        ValueError: If *text* is not a recognized boolean token.
    """
    token = text.strip().upper()
    if token in _TRUE_TOKENS:
        return True
    if token in _FALSE_TOKENS:
        return False
    raise ValueError(f"Invalid SCPI boolean: {text!r}")


def format_number(value: float) -> str:
    """Format a value for a SCPI command argument.

    Whole numbers lose their fractional part (``20.0`` becomes ``"20"``),
    others use the shortest round-tripping form.
    """
    if math.isnan(value):
        return "NAN"
    if math.isinf(value):
        return "INF" if value > 0 else "NINF"
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def format_bool(value: bool) -> str:
    """Format a boolean as ``"1"`` or ``"0"``."""
    return "1" if value else "0"
