"""Typed results produced by the source readers.

All byte/bit conversions are already applied when a sample is created, so
consumers never convert units again.
"""
from dataclasses import dataclass, field
from typing import Dict, Generic, Optional, Tuple, TypeVar

from hostexporter.errors import SourceError

T = TypeVar("T")


@dataclass
class LoadAverage:
    """1, 5 and 15 minute load averages."""
    load1: float = 0.0
    load5: float = 0.0
    load15: float = 0.0

    def by_duration(self) -> Dict[str, float]:
        return {"1m": self.load1, "5m": self.load5, "15m": self.load15}


@dataclass
class CpuTimes:
    """Aggregate CPU counters in jiffies since boot."""
    user: float = 0.0
    nice: float = 0.0
    system: float = 0.0
    idle: float = 0.0

    @property
    def total(self) -> float:
        return self.user + self.nice + self.system + self.idle

    @property
    def busy(self) -> float:
        return self.total - self.idle


@dataclass
class MemoryInfo:
    """Memory counters in bytes."""
    total: float = 0.0
    free: float = 0.0
    available: float = 0.0

    @property
    def used(self) -> float:
        return self.total - self.free


@dataclass
class PartitionUsage:
    """Capacity of one mounted filesystem, in bytes."""
    size: float = 0.0
    used: float = 0.0
    available: float = 0.0
    use_percent: float = 0.0


@dataclass
class DiskUsage:
    """Per-partition capacity keyed by mount path."""
    partitions: Dict[str, PartitionUsage] = field(default_factory=dict)

    @property
    def total_size(self) -> float:
        return sum(p.size for p in self.partitions.values())

    @property
    def total_used(self) -> float:
        return sum(p.used for p in self.partitions.values())

    @property
    def total_available(self) -> float:
        return sum(p.available for p in self.partitions.values())


@dataclass
class DeviceIO:
    """Cumulative I/O of one block device."""
    read_ops: float = 0.0
    read_bytes: float = 0.0
    write_ops: float = 0.0
    write_bytes: float = 0.0


@dataclass
class InterfaceIO:
    """Cumulative traffic of one network interface (bits and packets)."""
    rx_bits: float = 0.0
    rx_packets: float = 0.0
    tx_bits: float = 0.0
    tx_packets: float = 0.0


@dataclass
class ConnectionCounts:
    """Connection counts for listening ports, keyed by (port, state)."""
    counts: Dict[Tuple[str, str], int] = field(default_factory=dict)

    def ports(self) -> Dict[str, Dict[str, int]]:
        """Group counts as port -> state -> count."""
        grouped: Dict[str, Dict[str, int]] = {}
        for (port, state), count in self.counts.items():
            grouped.setdefault(port, {})[state] = count
        return grouped


@dataclass
class ReadResult(Generic[T]):
    """Outcome of one reader invocation.

    ``value`` is always usable: on failure it holds the reader's zero-valued
    sample.
    """
    source: str
    value: T
    failure: Optional[SourceError] = None

    @property
    def ok(self) -> bool:
        return self.failure is None
