"""Load and validate per-device-class polling profiles from YAML.

Each device class (mobile, tv, desktop) gets its own polling intervals and
cache TTLs. Sources and the poll controller read these values; the metric
algorithms themselves do not depend on the device class.
"""

from pathlib import Path

import structlog
from pydantic import BaseModel, Field, ValidationError, model_validator

from host_metrics.config.loader import ConfigLoadError, load_yaml_file
from host_metrics.device import DeviceClass

log = structlog.get_logger(__name__)

DEFAULT_PROFILES_PATH = Path(__file__).parent / "device_profiles.yaml"


class ProfileConfigError(ConfigLoadError):
    """Raised when device profiles cannot be loaded or are invalid."""

    pass


class DeviceProfile(BaseModel):
    """Polling intervals and cache TTLs for one device class."""

    initial_interval_ms: int = Field(..., gt=0, description="Interval on a healthy start")
    fast_interval_ms: int = Field(..., gt=0, description="Adaptive interval under light load")
    slow_interval_ms: int = Field(..., gt=0, description="Interval under load or power saving")
    ram_ttl_ms: int = Field(..., ge=0, description="RAM metrics cache TTL")
    ram_power_saving_ttl_ms: int = Field(..., ge=0, description="RAM TTL while power saving")
    gpu_ttl_ms: int = Field(..., ge=0, description="GPU metrics cache TTL")
    gpu_power_saving_ttl_ms: int = Field(..., ge=0, description="GPU TTL while power saving")
    prefer_os_memory_info: bool = Field(
        False, description="Use the OS memory query instead of /proc/meminfo as primary"
    )

    @model_validator(mode="after")
    def _check_ordering(self) -> "DeviceProfile":
        if self.fast_interval_ms > self.slow_interval_ms:
            raise ValueError("fast_interval_ms must not exceed slow_interval_ms")
        return self


class DeviceProfiles(BaseModel):
    """All device profiles, keyed by device class."""

    profiles: dict[DeviceClass, DeviceProfile] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_complete(self) -> "DeviceProfiles":
        missing = [dc.value for dc in DeviceClass if dc not in self.profiles]
        if missing:
            raise ValueError(f"missing profiles for device classes: {missing}")
        return self

    def for_class(self, device_class: DeviceClass) -> DeviceProfile:
        return self.profiles[device_class]


def load_device_profiles(config_path: Path | str | None = None) -> DeviceProfiles:
    """Load and validate device profiles.

    Args:
        config_path: Path to a profiles YAML file. If None, uses the profiles
            shipped with the package.

    Returns:
        Validated DeviceProfiles object.

    Raises:
        ProfileConfigError: If the file cannot be loaded, parsed, or validated.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_PROFILES_PATH

    if not path.is_file():
        raise ProfileConfigError(f"Device profile file not found: {path}")

    log.debug("loading_device_profiles", config_path=str(path))
    content = load_yaml_file(path, error_class=ProfileConfigError)

    try:
        profiles = DeviceProfiles.model_validate(content)
    except ValidationError as e:
        error_messages = []
        for error in e.errors():
            field_path = " -> ".join(str(loc) for loc in error["loc"])
            error_messages.append(f"{field_path}: {error['msg']}")
        error_summary = "\n".join(error_messages)
        raise ProfileConfigError(f"Device profile validation failed:\n{error_summary}") from None

    log.info(
        "device_profiles_loaded",
        config_path=str(path),
        device_classes=[dc.value for dc in profiles.profiles],
    )
    return profiles
