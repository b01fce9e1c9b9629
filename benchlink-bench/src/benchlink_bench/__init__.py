"""Bench orchestration for benchlink instruments.

A bench is described by a YAML file listing instruments, the factory that
connects each one, and the identity it is expected to report.

Example:
    >>> from benchlink_bench import Bench, load_config
    >>> with Bench(load_config("bench.yaml")) as bench:
    ...     load = bench.get_instrument("load")
"""

from benchlink_bench.bench import (
    Bench,
    BenchStatus,
    IdentifiedInstrument,
    InstrumentState,
    InstrumentStatus,
)
from benchlink_bench.config import (
    BenchConfig,
    ExpectedIdentity,
    InstrumentConfig,
    load_config,
    parse_config,
)
from benchlink_bench.loader import load_driver

__all__ = [
    # Config
    "BenchConfig",
    "ExpectedIdentity",
    "InstrumentConfig",
    "load_config",
    "parse_config",
    # Loader
    "load_driver",
    # Bench
    "Bench",
    "BenchStatus",
    "IdentifiedInstrument",
    "InstrumentState",
    "InstrumentStatus",
]
