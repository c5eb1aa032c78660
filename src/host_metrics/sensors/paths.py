"""Kernel and driver counter locations."""

# CPU
PROC_STAT = "/proc/stat"
PROC_LOADAVG = "/proc/loadavg"
CPU_FREQ_BASE = "/sys/devices/system/cpu/cpu"
SCALING_CUR_FREQ = "/cpufreq/scaling_cur_freq"
CPU_THERMAL_PATHS = (
    "/sys/class/thermal/thermal_zone0/temp",
    "/sys/devices/virtual/thermal/thermal_zone0/temp",
    "/sys/class/hwmon/hwmon0/temp1_input",
    "/sys/devices/platform/coretemp.0/hwmon/hwmon0/temp1_input",
)


def cpu_frequency_path(core: int = 0) -> str:
    return f"{CPU_FREQ_BASE}{core}{SCALING_CUR_FREQ}"


# GPU, ordered by vendor priority
ADRENO_PATHS = (
    "/sys/class/kgsl/kgsl-3d0/gpu_busy_percentage",
    "/sys/class/kgsl/kgsl-3d0/gpubusy",
    "/sys/kernel/gpu/gpu_busy",
)
MALI_PATHS = (
    "/sys/class/misc/mali0/device/utilization",
    "/sys/devices/platform/mali.0/utilization",
    "/sys/module/mali/parameters/mali_gpu_utilization",
    "/sys/devices/platform/ffaf0000.gpu/utilization",
    "/sys/devices/platform/13000000.mali/utilization",
)
GENERIC_GPU_PATHS = (
    "/sys/kernel/gpu/gpu_busy",
    "/sys/devices/platform/gpu/utilization",
)
GPU_MEMORY_PATHS = (
    "/sys/class/kgsl/kgsl-3d0/gpu_memory_usage",
    "/sys/kernel/gpu/gpu_memory",
)
GPU_THERMAL_PATHS = (
    "/sys/class/thermal/thermal_zone1/temp",
    "/sys/class/thermal/thermal_zone2/temp",
    "/sys/class/kgsl/kgsl-3d0/temp",
)

# Memory
PROC_MEMINFO = "/proc/meminfo"


def process_stat_path(pid: int) -> str:
    return f"/proc/{pid}/stat"


# Desktop entries used to label processes
DESKTOP_ENTRY_DIRS = (
    "/usr/share/applications",
    "/usr/local/share/applications",
    "~/.local/share/applications",
    "/var/lib/flatpak/exports/share/applications",
)
