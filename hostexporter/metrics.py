"""Declarations of every exported host metric.

Names are given without the configurable prefix. A metric with no label
names holds a single value; the others hold a label family that is
replaced as a whole every cycle.
"""
from dataclasses import dataclass
from typing import List, Tuple


@dataclass(frozen=True)
class MetricSpec:
    """Name, help text and label schema of one metric."""
    name: str
    help: str
    label_names: Tuple[str, ...] = ()

    @property
    def is_family(self) -> bool:
        return bool(self.label_names)


UPTIME = "server_uptime_seconds"
SYSTEM_LOAD = "system_load"
CPU_USAGE = "cpu_usage_percent"
MEMORY_TOTAL = "memory_total_size_bytes"
MEMORY_USED_PERCENT = "memory_usage_percent"
MEMORY_USED = "memory_usage_bytes"
MEMORY_FREE_PERCENT = "memory_free_percent"
MEMORY_FREE = "memory_free_bytes"
MEMORY_AVAILABLE = "memory_available_bytes"
DISK_TOTAL_SIZE = "disk_total_size_bytes"
DISK_TOTAL_AVAILABLE = "disk_total_available_bytes"
DISK_TOTAL_AVAILABLE_PERCENT = "disk_total_available_percent"
DISK_TOTAL_USED = "disk_total_used_bytes"
DISK_TOTAL_USED_PERCENT = "disk_total_used_percent"
DISK_USAGE_PERCENT = "disk_usage_percent"
DISK_SIZE = "disk_size_bytes"
DISK_USED = "disk_used_bytes"
DISK_AVAILABLE = "disk_available_bytes"
DISK_PERFORMANCE = "disk_performance"
NETWORK = "network"
NETSTAT = "netstat"

METRIC_SPECS: List[MetricSpec] = [
    MetricSpec(UPTIME, "Server uptime in seconds"),
    MetricSpec(SYSTEM_LOAD, "System load averages (1m, 5m, 15m)", ("duration",)),
    MetricSpec(CPU_USAGE, "CPU usage percentage"),
    MetricSpec(MEMORY_TOTAL, "Total memory size in bytes"),
    MetricSpec(MEMORY_USED_PERCENT, "Memory usage percentage"),
    MetricSpec(MEMORY_USED, "Memory usage in bytes"),
    MetricSpec(MEMORY_FREE_PERCENT, "Percentage of free memory"),
    MetricSpec(MEMORY_FREE, "Free memory in bytes"),
    MetricSpec(MEMORY_AVAILABLE, "Memory available for new workloads in bytes"),
    MetricSpec(DISK_TOTAL_SIZE, "Total size of all disks in bytes"),
    MetricSpec(DISK_TOTAL_AVAILABLE, "Total available bytes across all disks"),
    MetricSpec(DISK_TOTAL_AVAILABLE_PERCENT, "Percentage of total disk space available"),
    MetricSpec(DISK_TOTAL_USED, "Total used bytes across all disks"),
    MetricSpec(DISK_TOTAL_USED_PERCENT, "Percentage of total disk space that is used"),
    MetricSpec(DISK_USAGE_PERCENT, "Disk usage percentage per partition", ("partition",)),
    MetricSpec(DISK_SIZE, "Total disk size in bytes per partition", ("partition",)),
    MetricSpec(DISK_USED, "Used disk space in bytes per partition", ("partition",)),
    MetricSpec(DISK_AVAILABLE, "Available disk space in bytes per partition", ("partition",)),
    MetricSpec(
        DISK_PERFORMANCE,
        "Disk performance metrics (read/write bytes and IOPS)",
        ("device", "activity"),
    ),
    MetricSpec(
        NETWORK,
        "Network activity metrics (bps, pps)",
        ("interface", "direction", "metric"),
    ),
    MetricSpec(NETSTAT, "Network connections by port and state", ("port", "state")),
]
