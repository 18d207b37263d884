"""Source readers: parse OS text formats into typed samples.

A reader never raises. Failures are logged and returned inside the
``ReadResult`` together with a zero-valued sample, so one broken source does
not affect the rest of the cycle.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Generic, List, Optional, Set, Tuple, TypeVar

from hostexporter.errors import MalformedSource, SourceError
from hostexporter.samples import (
    ConnectionCounts,
    CpuTimes,
    DeviceIO,
    DiskUsage,
    InterfaceIO,
    LoadAverage,
    MemoryInfo,
    PartitionUsage,
    ReadResult,
)
from hostexporter.sources import CommandSource, FileSource, TextSource

logger = logging.getLogger(__name__)

T = TypeVar("T")

KIB = 1024
SECTOR_SIZE = 512
BITS_PER_BYTE = 8

EXCLUDED_MOUNT_PREFIXES = ("/dev", "/run", "/sys")
EXCLUDED_DEVICE_PREFIXES = ("loop", "ram")
LOOPBACK_INTERFACE = "lo"
LISTEN_STATE = "LISTEN"


def _to_float(token: str, default: float = 0.0) -> float:
    try:
        return float(token)
    except ValueError:
        return default


class BaseReader(ABC, Generic[T]):
    """Reads one text source and parses it into a typed sample."""

    name: str = ""

    def __init__(self, source: TextSource):
        self.source = source

    @abstractmethod
    def empty(self) -> T:
        """Zero-valued sample returned on failure."""
        ...

    @abstractmethod
    def parse(self, text: str) -> T:
        """Parse raw text, raising MalformedSource on unexpected shape."""
        ...

    def malformed(self, message: str) -> MalformedSource:
        return MalformedSource(self.source.description, message)

    def read(self) -> ReadResult[T]:
        """Read and parse the source, isolating any failure."""
        try:
            value = self.parse(self.source.read_text())
        except SourceError as e:
            logger.warning(f"Reader '{self.name}' failed: {e}")
            return ReadResult(self.name, self.empty(), failure=e)
        return ReadResult(self.name, value)


class UptimeReader(BaseReader[float]):
    """Seconds since boot from /proc/uptime."""

    name = "uptime"

    def empty(self) -> float:
        return 0.0

    def parse(self, text: str) -> float:
        tokens = text.split()
        if not tokens:
            raise self.malformed("empty uptime")
        try:
            return float(tokens[0])
        except ValueError:
            raise self.malformed(f"invalid uptime value {tokens[0]!r}")


class LoadReader(BaseReader[LoadAverage]):
    """Load averages from /proc/loadavg."""

    name = "load"

    def empty(self) -> LoadAverage:
        return LoadAverage()

    def parse(self, text: str) -> LoadAverage:
        tokens = text.split()
        if len(tokens) < 3:
            raise self.malformed(f"expected 3 load fields, got {len(tokens)}")
        try:
            return LoadAverage(*(float(t) for t in tokens[:3]))
        except ValueError:
            raise self.malformed(f"invalid load fields {tokens[:3]!r}")


class CpuReader(BaseReader[CpuTimes]):
    """Aggregate CPU counters from /proc/stat."""

    name = "cpu"

    def empty(self) -> CpuTimes:
        return CpuTimes()

    def parse(self, text: str) -> CpuTimes:
        for line in text.splitlines():
            # "cpu " with the trailing space skips the per-core cpuN lines
            if not line.startswith("cpu "):
                continue
            fields = line.split()
            if len(fields) < 5:
                raise self.malformed("aggregate cpu line has too few counters")
            try:
                user, nice, system, idle = (float(f) for f in fields[1:5])
            except ValueError:
                raise self.malformed(f"invalid cpu counters {fields[1:5]!r}")
            return CpuTimes(user=user, nice=nice, system=system, idle=idle)
        raise self.malformed("no aggregate cpu line")


class MemoryReader(BaseReader[MemoryInfo]):
    """MemTotal/MemFree/MemAvailable from /proc/meminfo."""

    name = "memory"

    KEYS = {"MemTotal": "total", "MemFree": "free", "MemAvailable": "available"}

    def empty(self) -> MemoryInfo:
        return MemoryInfo()

    def parse(self, text: str) -> MemoryInfo:
        values: Dict[str, float] = {}
        for line in text.splitlines():
            key, sep, rest = line.partition(":")
            if not sep or key not in self.KEYS:
                continue
            parts = rest.split()
            if not parts:
                continue
            values[self.KEYS[key]] = _to_float(parts[0]) * KIB

        if "total" not in values:
            raise self.malformed("MemTotal not found")
        return MemoryInfo(**values)


class DiskUsageReader(BaseReader[DiskUsage]):
    """Per-partition capacity from ``df -k``."""

    name = "disk_usage"

    def empty(self) -> DiskUsage:
        return DiskUsage()

    def parse(self, text: str) -> DiskUsage:
        usage = DiskUsage()
        for line in text.splitlines()[1:]:
            fields = line.split()
            if len(fields) < 6:
                continue
            mount = " ".join(fields[5:])
            if mount.startswith(EXCLUDED_MOUNT_PREFIXES):
                continue
            usage.partitions[mount] = PartitionUsage(
                size=_to_float(fields[1]) * KIB,
                used=_to_float(fields[2]) * KIB,
                available=_to_float(fields[3]) * KIB,
                use_percent=_to_float(fields[4].rstrip("%")),
            )
        return usage


class DiskIOReader(BaseReader[Dict[str, DeviceIO]]):
    """Per-device I/O counters from /proc/diskstats."""

    name = "disk_io"

    def empty(self) -> Dict[str, DeviceIO]:
        return {}

    def parse(self, text: str) -> Dict[str, DeviceIO]:
        devices: Dict[str, DeviceIO] = {}
        for line in text.splitlines():
            fields = line.split()
            if len(fields) < 14:
                continue
            device = fields[2]
            if device.startswith(EXCLUDED_DEVICE_PREFIXES):
                continue
            devices[device] = DeviceIO(
                read_ops=_to_float(fields[3]),
                read_bytes=_to_float(fields[5]) * SECTOR_SIZE,
                write_ops=_to_float(fields[7]),
                write_bytes=_to_float(fields[9]) * SECTOR_SIZE,
            )
        return devices


class NetworkReader(BaseReader[Dict[str, InterfaceIO]]):
    """Per-interface counters from /proc/net/dev."""

    name = "network"

    def empty(self) -> Dict[str, InterfaceIO]:
        return {}

    def parse(self, text: str) -> Dict[str, InterfaceIO]:
        interfaces: Dict[str, InterfaceIO] = {}
        for line in text.splitlines():
            name, sep, rest = line.partition(":")
            if not sep:
                continue
            name = name.strip()
            if name == LOOPBACK_INTERFACE:
                continue
            fields = rest.split()
            if len(fields) < 10:
                logger.debug(f"Skipping short /proc/net/dev row for {name!r}")
                continue
            interfaces[name] = InterfaceIO(
                rx_bits=_to_float(fields[0]) * BITS_PER_BYTE,
                rx_packets=_to_float(fields[1]),
                tx_bits=_to_float(fields[8]) * BITS_PER_BYTE,
                tx_packets=_to_float(fields[9]),
            )
        return interfaces


class ConnectionReader(BaseReader[ConnectionCounts]):
    """Connection states of listening ports from ``netstat -nat``."""

    name = "connections"

    def empty(self) -> ConnectionCounts:
        return ConnectionCounts()

    @staticmethod
    def _rows(text: str) -> List[Tuple[str, str]]:
        rows = []
        for line in text.splitlines():
            fields = line.split()
            if len(fields) < 6:
                continue
            local = fields[3]
            if ":" not in local:
                continue
            port = local.rsplit(":", 1)[1]
            rows.append((port, fields[5]))
        return rows

    def parse(self, text: str) -> ConnectionCounts:
        rows = self._rows(text)
        tracked: Set[str] = {port for port, state in rows if state == LISTEN_STATE}

        counts = ConnectionCounts()
        for port, state in rows:
            if port in tracked:
                key = (port, state)
                counts.counts[key] = counts.counts.get(key, 0) + 1
        return counts


@dataclass
class Readings:
    """One ReadResult per source for a single cycle."""
    uptime: ReadResult[float]
    load: ReadResult[LoadAverage]
    cpu: ReadResult[CpuTimes]
    memory: ReadResult[MemoryInfo]
    disk_usage: ReadResult[DiskUsage]
    disk_io: ReadResult[Dict[str, DeviceIO]]
    network: ReadResult[Dict[str, InterfaceIO]]
    connections: ReadResult[ConnectionCounts]

    def results(self) -> List[ReadResult]:
        return [
            self.uptime, self.load, self.cpu, self.memory,
            self.disk_usage, self.disk_io, self.network, self.connections,
        ]

    def failures(self) -> Dict[str, SourceError]:
        return {r.source: r.failure for r in self.results() if r.failure is not None}


@dataclass
class ReaderSet:
    """All readers of one collection cycle."""
    uptime: UptimeReader
    load: LoadReader
    cpu: CpuReader
    memory: MemoryReader
    disk_usage: DiskUsageReader
    disk_io: DiskIOReader
    network: NetworkReader
    connections: ConnectionReader

    @property
    def names(self) -> List[str]:
        return [
            self.uptime.name, self.load.name, self.cpu.name, self.memory.name,
            self.disk_usage.name, self.disk_io.name, self.network.name,
            self.connections.name,
        ]

    @classmethod
    def from_sources(
        cls,
        uptime: TextSource,
        load: TextSource,
        cpu: TextSource,
        memory: TextSource,
        disk_usage: TextSource,
        disk_io: TextSource,
        network: TextSource,
        connections: TextSource,
    ) -> "ReaderSet":
        return cls(
            uptime=UptimeReader(uptime),
            load=LoadReader(load),
            cpu=CpuReader(cpu),
            memory=MemoryReader(memory),
            disk_usage=DiskUsageReader(disk_usage),
            disk_io=DiskIOReader(disk_io),
            network=NetworkReader(network),
            connections=ConnectionReader(connections),
        )

    @classmethod
    def from_config(cls, config) -> "ReaderSet":
        """Build readers for the live system from a SourcesConfig."""
        timeout: Optional[float] = config.command_timeout_s
        return cls.from_sources(
            uptime=FileSource(config.uptime_path),
            load=FileSource(config.loadavg_path),
            cpu=FileSource(config.stat_path),
            memory=FileSource(config.meminfo_path),
            disk_usage=CommandSource(config.df_command, timeout=timeout),
            disk_io=FileSource(config.diskstats_path),
            network=FileSource(config.netdev_path),
            connections=CommandSource(config.netstat_command, timeout=timeout),
        )

    def read_all(self) -> Readings:
        """Run every reader in sequence."""
        return Readings(
            uptime=self.uptime.read(),
            load=self.load.read(),
            cpu=self.cpu.read(),
            memory=self.memory.read(),
            disk_usage=self.disk_usage.read(),
            disk_io=self.disk_io.read(),
            network=self.network.read(),
            connections=self.connections.read(),
        )
