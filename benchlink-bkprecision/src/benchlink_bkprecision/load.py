"""BK Precision 8500 series programmable DC load driver.

Wraps a :class:`TransactionEngine` with typed methods. All unit scaling goes
through the command table in :mod:`benchlink_bkprecision.packet`.
"""

from __future__ import annotations

import logging
import struct
import time
from dataclasses import dataclass
from enum import IntEnum
from types import TracebackType

from benchlink_core.types import InstrumentIdentity

from benchlink_bkprecision.packet import Command, decode_value, encode_value
from benchlink_bkprecision.status import DemandState, decode_demand_state
from benchlink_bkprecision.transaction import TransactionEngine, TransactionStats
from benchlink_bkprecision.transport import SerialByteTransport

logger = logging.getLogger(__name__)

MANUFACTURER = "B&K Precision"

#: Lowest constant-voltage setpoint the load accepts, in volts.
MIN_CV_VOLTAGE = 0.1


class LoadMode(IntEnum):
    """Regulation mode of the load."""

    CONSTANT_CURRENT = 0x00
    CONSTANT_VOLTAGE = 0x01
    CONSTANT_POWER = 0x02
    CONSTANT_RESISTANCE = 0x03


@dataclass(frozen=True)
class LoadReading:
    """One ``VALUE_READ`` measurement.

    Attributes:
        voltage: Input voltage in volts.
        current: Input current in amps.
        power: Input power in watts.
        operation_state: Raw operation state register.
        demand_state: Decoded demand state register.
    """

    voltage: float
    current: float
    power: float
    operation_state: int
    demand_state: DemandState


@dataclass(frozen=True)
class ProductInfo:
    """Model, firmware and serial number reported by the load."""

    model: str
    firmware: str
    serial: str


@dataclass(frozen=True)
class CurvePoint:
    """One step of a panel curve sweep."""

    voltage: float
    current: float
    power: float


class Bk8500Load:
    """High-level driver for BK Precision 8500 series DC loads.

    Args:
        engine: A :class:`TransactionEngine` bound to the load's address.
    """

    def __init__(self, engine: TransactionEngine) -> None:
        self._engine = engine

    # -- Identity / lifecycle -----------------------------------------------

    def get_product_info(self) -> ProductInfo:
        """Query model, firmware version and serial number."""
        payload = self._engine.send(Command.PRODUCT_INFO)
        model = payload[0:5].decode("ascii", errors="replace").strip("\x00 ")
        firmware = f"{payload[6]}.{payload[5]:02d}"
        serial = payload[7:17].decode("ascii", errors="replace").strip("\x00 ")
        return ProductInfo(model=model, firmware=firmware, serial=serial)

    def get_identity(self) -> InstrumentIdentity:
        """Query the product information as an :class:`InstrumentIdentity`."""
        info = self.get_product_info()
        return InstrumentIdentity(
            manufacturer=MANUFACTURER,
            model=info.model,
            serial=info.serial,
            firmware=info.firmware,
        )

    def identify(self) -> str:
        """Return a one-line description of the connected load."""
        info = self.get_product_info()
        return f"{info.model} Firmware version: {info.firmware} Serial Number: {info.serial}"

    @property
    def stats(self) -> TransactionStats:
        """Communication counters of the underlying engine."""
        return self._engine.stats

    def close(self) -> None:
        """Close the underlying connection."""
        self._engine.close()

    def __enter__(self) -> Bk8500Load:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    # -- Control ------------------------------------------------------------

    def set_remote_operation(self, enabled: bool) -> None:
        """Enter (True) or leave (False) remote operation."""
        self._set(Command.REMOTE_OPERATION, enabled)

    def set_local_control(self, enabled: bool) -> None:
        """Enable or disable the front-panel LOCAL key."""
        self._set(Command.LOCAL_CONTROL_SET, enabled)

    def enable_load(self) -> None:
        """Switch the load input on."""
        self._set(Command.LOAD_ON_OFF, True)

    def disable_load(self) -> None:
        """Switch the load input off."""
        self._set(Command.LOAD_ON_OFF, False)

    def set_mode(self, mode: LoadMode) -> None:
        """Select the regulation mode."""
        self._set(Command.MODE_SET, int(mode))

    def get_mode(self) -> LoadMode:
        """Query the regulation mode."""
        return LoadMode(self._get(Command.MODE_READ))

    def set_remote_sense(self, enabled: bool) -> None:
        """Enable or disable remote voltage sensing."""
        self._set(Command.REMOTE_SENSE_SET, enabled)

    def get_remote_sense(self) -> bool:
        """Query whether remote voltage sensing is enabled."""
        return bool(self._get(Command.REMOTE_SENSE_READ))

    # -- Limits -------------------------------------------------------------

    def set_max_voltage(self, voltage: float) -> None:
        """Set the maximum input voltage in volts."""
        self._set(Command.MAX_VOLTAGE_SET, voltage)

    def get_max_voltage(self) -> float:
        """Query the maximum input voltage in volts."""
        return float(self._get(Command.MAX_VOLTAGE_READ))

    def set_max_current(self, current: float) -> None:
        """Set the maximum input current in amps."""
        self._set(Command.MAX_CURRENT_SET, current)

    def get_max_current(self) -> float:
        """Query the maximum input current in amps."""
        return float(self._get(Command.MAX_CURRENT_READ))

    def set_max_power(self, power: float) -> None:
        """Set the maximum input power in watts."""
        self._set(Command.MAX_POWER_SET, power)

    def get_max_power(self) -> float:
        """Query the maximum input power in watts."""
        return float(self._get(Command.MAX_POWER_READ))

    # -- Setpoints ----------------------------------------------------------

    def set_current(self, current: float) -> None:
        """Set the constant-current setpoint in amps."""
        self._set(Command.CC_CURRENT_SET, current)

    def get_current(self) -> float:
        """Query the constant-current setpoint in amps."""
        return float(self._get(Command.CC_CURRENT_READ))

    def set_voltage(self, voltage: float) -> None:
        """Set the constant-voltage setpoint in volts.

        Values below :data:`MIN_CV_VOLTAGE` are raised to it.
        """
        self._set(Command.CV_VOLTAGE_SET, max(voltage, MIN_CV_VOLTAGE))

    def get_voltage(self) -> float:
        """Query the constant-voltage setpoint in volts."""
        return float(self._get(Command.CV_VOLTAGE_READ))

    def set_power(self, power: float) -> None:
        """Set the constant-power setpoint in watts."""
        self._set(Command.CP_POWER_SET, power)

    def get_power(self) -> float:
        """Query the constant-power setpoint in watts."""
        return float(self._get(Command.CP_POWER_READ))

    def set_resistance(self, resistance: float) -> None:
        """Set the constant-resistance setpoint in ohms."""
        self._set(Command.CR_RESISTANCE_SET, resistance)

    def get_resistance(self) -> float:
        """Query the constant-resistance setpoint in ohms."""
        return float(self._get(Command.CR_RESISTANCE_READ))

    # -- Measurements -------------------------------------------------------

    def read_values(self) -> LoadReading:
        """Measure voltage, current and power and read the state registers."""
        payload = self._engine.send(Command.VALUE_READ)
        millivolts, tenth_milliamps, milliwatts, op_state, demand = struct.unpack_from(
            "<IIIBH", payload, 0
        )
        return LoadReading(
            voltage=millivolts / 1000,
            current=tenth_milliamps / 10000,
            power=milliwatts / 1000,
            operation_state=op_state,
            demand_state=decode_demand_state(demand),
        )

    def measure_voltage(self) -> float:
        """Measure the input voltage in volts."""
        return self.read_values().voltage

    def measure_current(self) -> float:
        """Measure the input current in amps."""
        return self.read_values().current

    def measure_power(self) -> float:
        """Measure the input power in watts."""
        return self.read_values().power

    # -- Sequences ----------------------------------------------------------

    def measure_panel_curve(
        self, num_steps: int, settle_time: float = 0.01
    ) -> tuple[CurvePoint, ...]:
        """Sweep a source's I-V curve in constant-voltage mode.

        Measures the open-circuit voltage with the load off, then steps the
        CV setpoint down from it in ``num_steps`` equal steps, measuring the
        current at each one. The load is switched on at the first step and
        always switched off again at the end.

        Args:
            num_steps: Number of points in the sweep (>= 1).
            settle_time: Pause after each measurement in seconds.

        Returns:
            Points ordered by increasing voltage. Power is computed from the
            voltage setpoint and the measured current.
        """
        if num_steps < 1:
            raise ValueError(f"num_steps must be >= 1, got {num_steps}")

        self.disable_load()
        open_circuit = self.measure_voltage()
        logger.info("Panel curve: Voc = %.3f V, %d steps", open_circuit, num_steps)
        self.set_mode(LoadMode.CONSTANT_VOLTAGE)

        points: list[CurvePoint] = []
        try:
            for step in range(num_steps, 0, -1):
                voltage = open_circuit * step / num_steps
                self.set_voltage(voltage)
                if step == num_steps:
                    self.enable_load()
                current = self.measure_current()
                points.append(CurvePoint(voltage=voltage, current=current, power=voltage * current))
                if settle_time > 0:
                    time.sleep(settle_time)
        finally:
            self.disable_load()

        return tuple(reversed(points))

    # -- Private helpers ----------------------------------------------------

    def _set(self, command: Command, value: float) -> None:
        self._engine.send(command, encode_value(command, value))

    def _get(self, command: Command) -> float | int:
        return decode_value(command, self._engine.send(command))


def create_load(
    port: str,
    address: int = 0,
    *,
    timeout: float = 2.0,
    retries: int = 3,
) -> Bk8500Load:
    """Create a BK8500 load driver on a serial port.

    Standard factory entry point for the bench and programmatic use. Opens
    the port, puts the load into remote operation and switches its input
    off.

    Args:
        port: Serial device name (e.g. ``"/dev/ttyUSB0"``).
        address: Instrument bus address.
        timeout: Seconds to wait for each reply.
        retries: Additional attempts after a failed exchange.

    Returns:
        Connected load driver instance.
    """
    transport = SerialByteTransport(port)
    transport.open()
    engine = TransactionEngine(
        transport,
        address,
        timeout=timeout,
        retries=retries,
        device_name=f"BK8500 on {port}",
    )
    load = Bk8500Load(engine)
    try:
        load.set_remote_operation(True)
        load.disable_load()
    except Exception:
        engine.close()
        raise
    return load
