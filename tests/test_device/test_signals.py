"""Tests for device signals and the psutil-backed provider."""

from types import SimpleNamespace
from unittest.mock import patch

import pytest

from host_metrics.device import (
    DeviceClass,
    DeviceSignals,
    PsutilSignalsProvider,
    static_signals,
)


class TestPowerSaving:
    """should_use_power_saving() decision table."""

    def test_desktop_on_ac(self) -> None:
        assert DeviceSignals().should_use_power_saving() is False

    def test_tv_always_saves_power(self) -> None:
        assert DeviceSignals(device_class=DeviceClass.TV).should_use_power_saving() is True

    def test_low_battery(self) -> None:
        signals = DeviceSignals(on_battery=True, battery_percent=15)
        assert signals.is_low_battery
        assert signals.should_use_power_saving() is True

    def test_battery_saver_mode(self) -> None:
        signals = DeviceSignals(on_battery=True, battery_percent=80, low_power_mode=True)
        assert signals.should_use_power_saving() is True

    def test_low_power_mode_ignored_on_ac(self) -> None:
        signals = DeviceSignals(on_battery=False, battery_percent=10, low_power_mode=True)
        assert signals.should_use_power_saving() is False

    def test_thermal_throttling_overrides_ac(self) -> None:
        signals = DeviceSignals(on_battery=False, thermal_status=3)
        assert signals.is_thermal_throttled
        assert signals.should_use_power_saving() is True

    def test_moderate_thermal_status_not_throttled(self) -> None:
        assert DeviceSignals(thermal_status=2).is_thermal_throttled is False


class TestAdaptivePolling:
    """should_use_adaptive_polling() decision table."""

    @pytest.mark.parametrize(
        ("signals", "expected"),
        [
            (DeviceSignals(), False),
            (DeviceSignals(device_class=DeviceClass.TV), True),
            (DeviceSignals(on_battery=True, battery_percent=49), True),
            (DeviceSignals(on_battery=True, battery_percent=50), False),
            (DeviceSignals(on_battery=False, battery_percent=10), False),
        ],
    )
    def test_decision(self, signals: DeviceSignals, expected: bool) -> None:
        assert signals.should_use_adaptive_polling() is expected


class TestPsutilSignalsProvider:
    """Battery state read through psutil."""

    def test_no_battery(self) -> None:
        with patch("host_metrics.device.psutil.sensors_battery", return_value=None):
            signals = PsutilSignalsProvider(DeviceClass.MOBILE)()
        assert signals == DeviceSignals(device_class=DeviceClass.MOBILE)

    def test_plugged_in(self) -> None:
        battery = SimpleNamespace(percent=42.7, power_plugged=True)
        with patch("host_metrics.device.psutil.sensors_battery", return_value=battery):
            signals = PsutilSignalsProvider()()
        assert signals.on_battery is False
        assert signals.battery_percent == 42

    def test_on_battery(self) -> None:
        battery = SimpleNamespace(percent=12.0, power_plugged=False)
        with patch("host_metrics.device.psutil.sensors_battery", return_value=battery):
            signals = PsutilSignalsProvider()()
        assert signals.on_battery is True
        assert signals.is_low_battery

    def test_unknown_plug_state_counts_as_battery(self) -> None:
        battery = SimpleNamespace(percent=90.0, power_plugged=None)
        with patch("host_metrics.device.psutil.sensors_battery", return_value=battery):
            assert PsutilSignalsProvider()().on_battery is True

    def test_query_failure_returns_defaults(self) -> None:
        with patch(
            "host_metrics.device.psutil.sensors_battery", side_effect=OSError("no acpi")
        ):
            signals = PsutilSignalsProvider(DeviceClass.TV)()
        assert signals == DeviceSignals(device_class=DeviceClass.TV)


def test_static_signals_returns_same_value() -> None:
    signals = DeviceSignals(battery_percent=33)
    provider = static_signals(signals)
    assert provider() is signals
