"""Command-line interface for benchlink.

Usage:
    # Connect every instrument and show its identity
    benchlink info bench.yaml

    # Read voltage, current and power from a load
    benchlink read-load bench.yaml load

    # Sweep a panel's I-V curve into a CSV file
    benchlink panel-curve bench.yaml load --steps 20 --output curve.csv

    # Read all analog input channels
    benchlink read-analog bench.yaml analog
"""

from __future__ import annotations

import argparse
import csv
import logging
import sys
from typing import Any, Callable

from benchlink_core.errors import BenchlinkError

from benchlink_bench.bench import Bench
from benchlink_bench.config import load_config


def setup_logging(debug: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _print_stats(instrument: Any) -> None:
    stats = getattr(instrument, "stats", None)
    if stats is None:
        return
    print("Communication statistics:")
    for name, value in vars(stats).items():
        print(f"  {name}: {value}")


def _with_instrument(args: argparse.Namespace, action: Callable[[Any], int]) -> int:
    """Initialize the bench, run ``action`` on one instrument, and close."""
    try:
        config = load_config(args.config)
    except (FileNotFoundError, BenchlinkError) as exc:
        print(f"Error: {exc}")
        return 1

    if config.get(args.name) is None:
        print(f"Error: no instrument named '{args.name}' in {args.config}")
        return 1

    bench = Bench(config)
    try:
        bench.initialize()
        instrument = bench.get_instrument(args.name)
        if instrument is None:
            status = bench.get_instrument_status(args.name)
            print(f"Error: instrument '{args.name}' not ready: {status.error if status else ''}")
            return 1
        try:
            result = action(instrument)
        except BenchlinkError as exc:
            print(f"Error: {exc}")
            result = 1
        _print_stats(instrument)
        return result
    finally:
        bench.close()


def cmd_info(args: argparse.Namespace) -> int:
    """Initialize all instruments and show their states."""
    try:
        config = load_config(args.config)
    except (FileNotFoundError, BenchlinkError) as exc:
        print(f"Error: {exc}")
        return 1

    bench = Bench(config)
    try:
        bench.initialize()
        status = bench.get_status()
        print(f"Bench: {status.bench_id}")
        print(f"  Description: {status.description or '(none)'}")
        print(f"  State: {status.state}")
        print()
        for inst in status.instruments:
            print(f"{inst.name} [{inst.state.value}]")
            print(f"  Driver: {inst.driver}")
            if inst.identity:
                print(f"  Identity: {inst.identity}")
            if inst.error:
                print(f"  Error: {inst.error}")
    finally:
        bench.close()

    return 0 if status.state == "ready" else 1


def cmd_read_load(args: argparse.Namespace) -> int:
    """Read one measurement from an electronic load."""

    def action(load: Any) -> int:
        reading = load.read_values()
        print(f"Voltage: {reading.voltage:.3f} V")
        print(f"Current: {reading.current:.4f} A")
        print(f"Power:   {reading.power:.3f} W")
        state = reading.demand_state
        flags = [name for name, value in vars(state).items() if value]
        print(f"Demand state: {', '.join(flags) or '(none)'}")
        return 1 if state.error else 0

    return _with_instrument(args, action)


def cmd_panel_curve(args: argparse.Namespace) -> int:
    """Sweep a source's I-V curve with an electronic load."""

    def action(load: Any) -> int:
        points = load.measure_panel_curve(args.steps, settle_time=args.settle_time)
        if args.output:
            with open(args.output, "w", newline="", encoding="utf-8") as f:
                writer = csv.writer(f)
                writer.writerow(["voltage_v", "current_a", "power_w"])
                for point in points:
                    writer.writerow([f"{point.voltage:.3f}", f"{point.current:.4f}", f"{point.power:.3f}"])
            print(f"Saved {len(points)} points to: {args.output}")
        else:
            print(f"{'V':>9} {'A':>9} {'W':>9}")
            for point in points:
                print(f"{point.voltage:9.3f} {point.current:9.4f} {point.power:9.3f}")
        return 0

    return _with_instrument(args, action)


def cmd_read_analog(args: argparse.Namespace) -> int:
    """Read every channel of an analog input bank."""

    def action(bank: Any) -> int:
        readings = bank.read_all_voltages()
        for channel, voltage in enumerate(readings.voltages):
            print(f"  ch{channel:02d}: {voltage:+8.3f} V")
        if not readings.ok:
            print("Warning: one or more modules did not return a complete reading")
        return 0 if readings.ok else 1

    return _with_instrument(args, action)


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {number}")
    return number


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="benchlink bench instrument CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    info_parser = subparsers.add_parser("info", help="Show instrument states and identities")
    info_parser.add_argument("config", help="Bench YAML file")

    load_parser = subparsers.add_parser("read-load", help="Read a load measurement")
    load_parser.add_argument("config", help="Bench YAML file")
    load_parser.add_argument("name", help="Instrument name of the load")

    curve_parser = subparsers.add_parser("panel-curve", help="Sweep an I-V curve")
    curve_parser.add_argument("config", help="Bench YAML file")
    curve_parser.add_argument("name", help="Instrument name of the load")
    curve_parser.add_argument(
        "--steps", type=_positive_int, default=20,
        help="Number of points in the sweep (default: 20)"
    )
    curve_parser.add_argument(
        "--settle-time", type=float, default=0.01,
        help="Pause after each point in seconds (default: 0.01)"
    )
    curve_parser.add_argument("--output", "-o", help="Write the curve to this CSV file")

    analog_parser = subparsers.add_parser("read-analog", help="Read analog input channels")
    analog_parser.add_argument("config", help="Bench YAML file")
    analog_parser.add_argument("name", help="Instrument name of the analog bank")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    setup_logging(args.debug)

    commands = {
        "info": cmd_info,
        "read-load": cmd_read_load,
        "panel-curve": cmd_panel_curve,
        "read-analog": cmd_read_analog,
    }
    return commands[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
