"""Bench orchestration: connect, verify, and release configured instruments."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from benchlink_core.types import InstrumentIdentity

from benchlink_bench.config import BenchConfig, InstrumentConfig
from benchlink_bench.loader import load_driver

logger = logging.getLogger(__name__)


class InstrumentState(str, Enum):
    """Lifecycle state of a bench instrument.

    Instruments progress through states as follows:
        PENDING -> INITIALIZING -> READY (success)
                                -> ERROR (failure)
        READY/ERROR -> CLOSED (shutdown)
    """

    PENDING = "pending"
    INITIALIZING = "initializing"
    READY = "ready"
    ERROR = "error"
    CLOSED = "closed"


@runtime_checkable
class IdentifiedInstrument(Protocol):
    """Protocol for instruments that support identity queries."""

    def get_identity(self) -> InstrumentIdentity:
        """Return the instrument identity."""
        ...


@dataclass(frozen=True)
class InstrumentStatus:
    """Status snapshot of one instrument."""

    name: str
    driver: str
    state: InstrumentState
    identity: InstrumentIdentity | None = None
    error: str | None = None


@dataclass(frozen=True)
class BenchStatus:
    """Status snapshot of the bench and all its instruments."""

    bench_id: str
    description: str
    state: str
    instruments: tuple[InstrumentStatus, ...]


@dataclass
class ManagedInstrument:
    """An instrument managed by the bench.

    Args:
        config: Instrument configuration.
        state: Current state of the instrument.
        instance: The driver instance (if created).
        identity: The reported identity (if queried).
        error: Error message (if in error state).
    """

    config: InstrumentConfig
    state: InstrumentState = InstrumentState.PENDING
    instance: Any = None
    identity: InstrumentIdentity | None = None
    error: str | None = None

    def status(self) -> InstrumentStatus:
        return InstrumentStatus(
            name=self.config.name,
            driver=self.config.driver,
            state=self.state,
            identity=self.identity,
            error=self.error,
        )


@dataclass
class Bench:
    """Test bench orchestrator.

    One instrument failing to connect or verify does not stop the others
    from initializing; its error is recorded and the bench state becomes
    ``"error"``.

    Args:
        config: Bench configuration.

    Example:
        bench = Bench(load_config("bench.yaml"))
        bench.initialize()
        load = bench.get_instrument("load")
        print(load.read_values())
        bench.close()
    """

    config: BenchConfig
    _instruments: dict[str, ManagedInstrument] = field(default_factory=dict, init=False)
    _state: str = field(default="initializing", init=False)

    def __post_init__(self) -> None:
        for inst_config in self.config.instruments:
            self._instruments[inst_config.name] = ManagedInstrument(config=inst_config)

    @property
    def bench_id(self) -> str:
        """Return the bench ID."""
        return self.config.bench_id

    @property
    def state(self) -> str:
        """Return the overall bench state."""
        return self._state

    def initialize(self) -> None:
        """Create every instrument and verify the identities that are configured."""
        all_ready = True

        for name, managed in self._instruments.items():
            managed.state = InstrumentState.INITIALIZING
            try:
                factory = load_driver(managed.config.driver)
                managed.instance = factory(**managed.config.kwargs)

                if isinstance(managed.instance, IdentifiedInstrument):
                    managed.identity = managed.instance.get_identity()
                    mismatch = self._identity_mismatch(managed)
                    if mismatch:
                        managed.state = InstrumentState.ERROR
                        managed.error = mismatch
                        all_ready = False
                        logger.error("Instrument %s: %s", name, mismatch)
                        continue

                managed.state = InstrumentState.READY
                logger.info(
                    "Instrument %s initialized: %s",
                    name,
                    managed.identity if managed.identity else "identity not reported",
                )

            except Exception as exc:  # pylint: disable=broad-exception-caught
                managed.state = InstrumentState.ERROR
                managed.error = str(exc)
                all_ready = False
                logger.error("Failed to initialize instrument %s: %s", name, exc)

        self._state = "ready" if all_ready else "error"

    @staticmethod
    def _identity_mismatch(managed: ManagedInstrument) -> str | None:
        expected = managed.config.identity
        actual = managed.identity
        if expected is None or actual is None:
            return None
        if actual.manufacturer != expected.manufacturer:
            return (
                f"Manufacturer mismatch: expected '{expected.manufacturer}', "
                f"got '{actual.manufacturer}'"
            )
        if actual.model != expected.model:
            return f"Model mismatch: expected '{expected.model}', got '{actual.model}'"
        return None

    def close(self) -> None:
        """Close all instruments that were created."""
        for name, managed in self._instruments.items():
            if managed.instance is None:
                continue
            try:
                if hasattr(managed.instance, "close"):
                    managed.instance.close()
                managed.state = InstrumentState.CLOSED
            except Exception as exc:  # pylint: disable=broad-exception-caught
                logger.warning("Error closing instrument %s: %s", name, exc)

        self._state = "closed"

    def __enter__(self) -> Bench:
        self.initialize()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def get_instrument(self, name: str) -> Any | None:
        """Get an instrument instance by name.

        Returns:
            The instrument instance, or None if unknown or not ready.
        """
        managed = self._instruments.get(name)
        if managed and managed.state == InstrumentState.READY:
            return managed.instance
        return None

    def get_instrument_status(self, name: str) -> InstrumentStatus | None:
        """Get the status of one instrument, or None if unknown."""
        managed = self._instruments.get(name)
        return managed.status() if managed else None

    def get_status(self) -> BenchStatus:
        """Get the current bench status."""
        return BenchStatus(
            bench_id=self.config.bench_id,
            description=self.config.description,
            state=self._state,
            instruments=tuple(m.status() for m in self._instruments.values()),
        )
