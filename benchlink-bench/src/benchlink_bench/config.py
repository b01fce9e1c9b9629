"""YAML configuration loading for test benches.

A bench file names the instruments attached to one bench, the driver
factory that connects each of them, and optionally the identity each one
must report.

Example YAML configuration:
    bench:
      id: "solar-bench-1"
      description: "Panel characterization bench"

    instruments:
      load:
        driver: "benchlink_bkprecision.load:create_load"
        identity:
          manufacturer: "B&K Precision"
          model: "8500"
        kwargs:
          port: "/dev/ttyUSB0"
          address: 0
      analog:
        driver: "benchlink_icpdas.i7017:create_analog_bank"
        kwargs:
          port: "/dev/ttyUSB1"
          addresses: [1, 2]
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from benchlink_core.errors import ConfigError


@dataclass(frozen=True)
class ExpectedIdentity:
    """Expected instrument identity for verification.

    Attributes:
        manufacturer: Expected manufacturer name (e.g., "B&K Precision").
        model: Expected model name (e.g., "8500").
    """

    manufacturer: str
    model: str


@dataclass(frozen=True)
class InstrumentConfig:
    """Configuration for a single instrument on the bench.

    Attributes:
        name: Unique instrument name within the bench (e.g., "load").
        driver: Factory path in "module:function" format.
        identity: Identity to verify after connecting, or None to skip.
        kwargs: Keyword arguments passed to the driver factory.
    """

    name: str
    driver: str
    identity: ExpectedIdentity | None = None
    kwargs: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if ":" not in self.driver:
            raise ConfigError(
                f"Instrument '{self.name}' driver '{self.driver}' must be in "
                "'module:function' format"
            )


@dataclass(frozen=True)
class BenchConfig:
    """Configuration for a whole bench.

    Attributes:
        bench_id: Unique identifier for this bench.
        description: Human-readable description.
        instruments: Instrument configurations, in file order.
    """

    bench_id: str
    description: str
    instruments: tuple[InstrumentConfig, ...]

    def get(self, name: str) -> InstrumentConfig | None:
        """Return the configuration of instrument ``name``, if present."""
        for instrument in self.instruments:
            if instrument.name == name:
                return instrument
        return None


def _parse_identity(name: str, data: Any) -> ExpectedIdentity | None:
    if data is None:
        return None
    if not isinstance(data, dict):
        raise ConfigError(f"Instrument '{name}' identity must be a mapping")
    for key in ("manufacturer", "model"):
        if not data.get(key):
            raise ConfigError(f"Instrument '{name}' missing required field: identity.{key}")
    return ExpectedIdentity(manufacturer=str(data["manufacturer"]), model=str(data["model"]))


def parse_config(data: Any) -> BenchConfig:
    """Build a :class:`BenchConfig` from already-parsed YAML data.

    Raises:
        ConfigError: If the data is not a valid bench description.
    """
    if not isinstance(data, dict):
        raise ConfigError("Config must be a YAML mapping")

    bench_section = data.get("bench") or {}
    if not isinstance(bench_section, dict):
        raise ConfigError("bench must be a mapping")
    bench_id = bench_section.get("id")
    if not bench_id:
        raise ConfigError("Missing required field: bench.id")

    instruments_data = data.get("instruments")
    if instruments_data is None:
        instruments_data = {}
    if not isinstance(instruments_data, dict):
        raise ConfigError("instruments must be a mapping")

    instruments: list[InstrumentConfig] = []
    for name, inst_data in instruments_data.items():
        if not isinstance(inst_data, dict):
            raise ConfigError(f"Instrument '{name}' must be a mapping")

        driver = inst_data.get("driver")
        if not driver:
            raise ConfigError(f"Instrument '{name}' missing required field: driver")

        kwargs = inst_data.get("kwargs")
        if kwargs is None:
            kwargs = {}
        if not isinstance(kwargs, dict):
            raise ConfigError(f"Instrument '{name}' kwargs must be a mapping")

        instruments.append(
            InstrumentConfig(
                name=str(name),
                driver=driver,
                identity=_parse_identity(name, inst_data.get("identity")),
                kwargs=kwargs,
            )
        )

    return BenchConfig(
        bench_id=str(bench_id),
        description=bench_section.get("description", ""),
        instruments=tuple(instruments),
    )


def load_config(path: str | Path) -> BenchConfig:
    """Load bench configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Parsed bench configuration.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        ConfigError: If the file is not valid YAML or misses required fields.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

    return parse_config(data)
