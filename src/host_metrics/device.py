"""Device power, thermal and class signals.

The collection engine never computes these signals itself beyond a best-effort
default: a host application (overlay service, tray app, ...) supplies them
through a ``DeviceSignalsProvider`` callable. Sources use the signals only to
pick cache TTLs and polling intervals; the metric algorithms are device-agnostic.
"""

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

import psutil
import structlog

log = structlog.get_logger(__name__)

LOW_BATTERY_PERCENT = 20
ADAPTIVE_BATTERY_PERCENT = 50
THERMAL_THROTTLE_STATUS = 2  # statuses above this are treated as throttled


class DeviceClass(str, Enum):
    """Coarse device class hint used to pick default TTLs and intervals."""

    MOBILE = "mobile"
    TV = "tv"
    DESKTOP = "desktop"


@dataclass(frozen=True)
class DeviceSignals:
    """Point-in-time power and thermal state of the device.

    Attributes:
        device_class: Device class hint.
        on_battery: True when not connected to external power.
        battery_percent: Battery charge 0-100 (100 when unknown).
        low_power_mode: Platform-reported low power / battery saver state.
        thermal_status: Platform thermal status (0 = none; higher is hotter).
    """

    device_class: DeviceClass = DeviceClass.DESKTOP
    on_battery: bool = False
    battery_percent: int = 100
    low_power_mode: bool = False
    thermal_status: int = 0

    @property
    def is_tv(self) -> bool:
        return self.device_class is DeviceClass.TV

    @property
    def is_low_battery(self) -> bool:
        return self.on_battery and self.battery_percent < LOW_BATTERY_PERCENT

    @property
    def is_thermal_throttled(self) -> bool:
        return self.thermal_status > THERMAL_THROTTLE_STATUS

    def should_use_power_saving(self) -> bool:
        """Return True when sources should widen their cache windows.

        TV-class devices always save power; devices on external power never
        do unless thermally throttled; otherwise low battery or a throttled
        thermal state enables it.
        """
        if self.is_tv:
            return True
        if self.is_thermal_throttled:
            return True
        if not self.on_battery:
            return False
        return self.battery_percent < LOW_BATTERY_PERCENT or self.low_power_mode

    def should_use_adaptive_polling(self) -> bool:
        """Return True when the adaptive poll controller should run in auto mode."""
        return self.is_tv or (self.on_battery and self.battery_percent < ADAPTIVE_BATTERY_PERCENT)


DeviceSignalsProvider = Callable[[], DeviceSignals]


def static_signals(signals: DeviceSignals) -> DeviceSignalsProvider:
    """Wrap a fixed DeviceSignals value as a provider."""
    return lambda: signals


class PsutilSignalsProvider:
    """Default provider reading battery state through psutil.

    psutil exposes no portable thermal status, so ``thermal_status`` stays 0
    unless a host application supplies its own provider.
    """

    def __init__(self, device_class: DeviceClass = DeviceClass.DESKTOP) -> None:
        self.device_class = device_class

    def __call__(self) -> DeviceSignals:
        try:
            battery = psutil.sensors_battery()
        except (AttributeError, NotImplementedError, OSError, RuntimeError) as e:
            log.debug("battery_state_unavailable", error=str(e), error_type=type(e).__name__)
            battery = None

        if battery is None:
            return DeviceSignals(device_class=self.device_class)

        return DeviceSignals(
            device_class=self.device_class,
            on_battery=not bool(battery.power_plugged),
            battery_percent=int(battery.percent),
        )
