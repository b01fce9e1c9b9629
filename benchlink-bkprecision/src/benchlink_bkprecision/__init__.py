"""BK Precision instrument drivers and emulators for benchlink.

This package drives the BK Precision 8500 series programmable DC loads over
their binary 26-byte packet protocol, and the 2831E bench multimeter over
echoing serial SCPI.

Modules:
    packet: Frame codec, command table and value scaling.
    framing: Start-marker realignment of shifted replies.
    arrival: Cross-thread reply arrival signal.
    transaction: Request/response engine with bounded retries.
    transport: Byte transport protocol and pyserial implementation.
    status: Demand-state register decoding.
    load: High-level BK8500 load driver.
    load_emulator: In-process BK8500 emulator.
    dmm: High-level 2831E multimeter driver.
    dmm_emulator: In-process 2831E emulator.

Example:
    Connect to a real load::

        from benchlink_bkprecision import create_load

        load = create_load("/dev/ttyUSB0")
        load.set_mode(LoadMode.CONSTANT_CURRENT)
        load.set_current(1.5)
        load.enable_load()
        print(load.read_values())

    Use an emulator for testing::

        from benchlink_bkprecision import Bk8500Load, TransactionEngine, make_8500_emulator

        engine = TransactionEngine(make_8500_emulator(), address=0)
        load = Bk8500Load(engine)
"""

from benchlink_bkprecision.dmm import (
    Bk2831eMultimeter,
    Coupling,
    IntegrationRate,
    MeterFunction,
    VoltageRange,
    create_multimeter,
)
from benchlink_bkprecision.dmm_emulator import (
    Bk2831eEmulator,
    Bk2831eEmulatorConfig,
    make_2831e_emulator,
)
from benchlink_bkprecision.errors import (
    ChecksumMismatchError,
    CommunicationError,
    DeviceRejectedError,
    FramingError,
    InstrumentMismatchError,
    LoadProtocolError,
    TransactionTimeoutError,
)
from benchlink_bkprecision.load import (
    Bk8500Load,
    CurvePoint,
    LoadMode,
    LoadReading,
    ProductInfo,
    create_load,
)
from benchlink_bkprecision.load_emulator import (
    Bk8500Emulator,
    Bk8500EmulatorConfig,
    make_8500_emulator,
)
from benchlink_bkprecision.packet import Command, StatusCode
from benchlink_bkprecision.status import DemandState
from benchlink_bkprecision.transaction import TransactionEngine, TransactionStats
from benchlink_bkprecision.transport import ByteTransport, SerialByteTransport

__all__ = [
    # Errors
    "ChecksumMismatchError",
    "CommunicationError",
    "DeviceRejectedError",
    "FramingError",
    "InstrumentMismatchError",
    "LoadProtocolError",
    "TransactionTimeoutError",
    # Packet protocol
    "ByteTransport",
    "Command",
    "DemandState",
    "SerialByteTransport",
    "StatusCode",
    "TransactionEngine",
    "TransactionStats",
    # Load driver
    "Bk8500Load",
    "CurvePoint",
    "LoadMode",
    "LoadReading",
    "ProductInfo",
    "create_load",
    # Load emulator
    "Bk8500Emulator",
    "Bk8500EmulatorConfig",
    "make_8500_emulator",
    # Multimeter driver
    "Bk2831eMultimeter",
    "Coupling",
    "IntegrationRate",
    "MeterFunction",
    "VoltageRange",
    "create_multimeter",
    # Multimeter emulator
    "Bk2831eEmulator",
    "Bk2831eEmulatorConfig",
    "make_2831e_emulator",
]
