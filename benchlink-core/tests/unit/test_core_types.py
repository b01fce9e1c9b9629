"""Tests for benchlink-core types and errors."""

from __future__ import annotations

import pytest

from benchlink_core import BenchlinkError, ConfigError, InstrumentIdentity


class TestInstrumentIdentity:
    """Tests for the InstrumentIdentity class."""

    def test_fields(self) -> None:
        identity = InstrumentIdentity(
            manufacturer="B&K Precision",
            model="8500",
            serial="0123456789",
            firmware="1.16",
        )
        assert identity.manufacturer == "B&K Precision"
        assert identity.model == "8500"
        assert identity.serial == "0123456789"
        assert identity.firmware == "1.16"

    def test_immutable(self) -> None:
        identity = InstrumentIdentity(manufacturer="Test", model="M1", serial="S1", firmware="F1")
        with pytest.raises(AttributeError):
            identity.model = "M2"  # type: ignore[misc]

    def test_equality(self) -> None:
        a = InstrumentIdentity("Mfr", "Model", "SN1", "FW1")
        b = InstrumentIdentity("Mfr", "Model", "SN1", "FW1")
        assert a == b

    def test_inequality(self) -> None:
        a = InstrumentIdentity("Mfr", "Model", "SN1", "FW1")
        b = InstrumentIdentity("Mfr", "Model", "SN2", "FW1")
        assert a != b

    def test_str(self) -> None:
        identity = InstrumentIdentity("Mfr", "Model", "SN1", "FW1")
        assert str(identity) == "Mfr Model (S/N: SN1, FW: FW1)"


class TestErrors:
    """Tests for the exception hierarchy."""

    def test_config_error_is_benchlink_error(self) -> None:
        assert issubclass(ConfigError, BenchlinkError)

    def test_config_error_is_value_error(self) -> None:
        with pytest.raises(ValueError, match="bad"):
            raise ConfigError("bad")
