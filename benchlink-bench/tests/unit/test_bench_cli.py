"""Tests for the benchlink command-line interface."""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from benchlink_bkprecision.load import Bk8500Load
from benchlink_bkprecision.load_emulator import make_8500_emulator
from benchlink_bkprecision.transaction import TransactionEngine
from benchlink_icpdas.emulator import I7017Emulator
from benchlink_icpdas.i7017 import AnalogInputBank

from benchlink_bench.cli import main

_LOADER = "benchlink_bench.bench.load_driver"

_BENCH_YAML = """\
bench:
  id: "cli-bench"
instruments:
  load:
    driver: "tests:load"
    identity:
      manufacturer: "B&K Precision"
      model: "8500"
  analog:
    driver: "tests:bank"
    kwargs:
      modules: 2
"""


def _emulated_load(**_: Any) -> Bk8500Load:
    load = Bk8500Load(TransactionEngine(make_8500_emulator(), 0, timeout=0.05, retry_delay=0))
    load.set_remote_operation(True)
    return load


def _emulated_bank(modules: int = 1) -> AnalogInputBank:
    addresses = list(range(1, modules + 1))
    emu = I7017Emulator(addresses)
    for address in addresses:
        emu.set_voltages(address, [float(address)] * 8)
    return AnalogInputBank(emu, addresses)


def _factory(path: str) -> Any:
    return {"tests:load": _emulated_load, "tests:bank": _emulated_bank}[path]


@pytest.fixture(name="bench_file")
def fixture_bench_file(tmp_path: Path) -> Path:
    path = tmp_path / "bench.yaml"
    path.write_text(_BENCH_YAML, encoding="utf-8")
    return path


def _run(*argv: str) -> int:
    with patch(_LOADER, side_effect=_factory):
        return main(list(argv))


class TestInfo:
    """Tests for the info command."""

    def test_info(self, bench_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert _run("info", str(bench_file)) == 0
        out = capsys.readouterr().out
        assert "Bench: cli-bench" in out
        assert "load [ready]" in out
        assert "B&K Precision 8500 (S/N: 0000000001, FW: 1.16)" in out
        assert "analog [ready]" in out

    def test_missing_file(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert _run("info", str(tmp_path / "none.yaml")) == 1
        assert "Config file not found" in capsys.readouterr().out

    def test_no_command(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out


class TestReadLoad:
    """Tests for the read-load command."""

    def test_read(self, bench_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert _run("read-load", str(bench_file), "load") == 0
        out = capsys.readouterr().out
        assert "Voltage: 20.000 V" in out
        assert "Demand state:" in out
        assert "messages_sent:" in out

    def test_unknown_name(self, bench_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert _run("read-load", str(bench_file), "psu") == 1
        assert "no instrument named 'psu'" in capsys.readouterr().out


class TestPanelCurve:
    """Tests for the panel-curve command."""

    def test_csv_output(self, bench_file: Path, tmp_path: Path) -> None:
        output = tmp_path / "curve.csv"
        code = _run(
            "panel-curve", str(bench_file), "load", "--steps", "4", "--settle-time", "0",
            "--output", str(output),
        )
        assert code == 0
        with open(output, newline="", encoding="utf-8") as f:
            rows = list(csv.reader(f))
        assert rows[0] == ["voltage_v", "current_a", "power_w"]
        assert len(rows) == 5
        voltages = [float(row[0]) for row in rows[1:]]
        assert voltages == sorted(voltages)
        assert voltages[-1] == pytest.approx(20.0)

    def test_table_output(self, bench_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert _run("panel-curve", str(bench_file), "load", "--steps", "2", "--settle-time", "0") == 0
        lines = capsys.readouterr().out.splitlines()
        assert lines[0].split() == ["V", "A", "W"]

    def test_steps_must_be_positive(self, bench_file: Path) -> None:
        with pytest.raises(SystemExit):
            main(["panel-curve", str(bench_file), "load", "--steps", "0"])


class TestReadAnalog:
    """Tests for the read-analog command."""

    def test_read(self, bench_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert _run("read-analog", str(bench_file), "analog") == 0
        out = capsys.readouterr().out
        assert "ch00:   +1.000 V" in out
        assert "ch15:   +2.000 V" in out
