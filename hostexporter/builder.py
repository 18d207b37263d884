"""Turn one cycle of readings into registry samples.

Readers already convert units (bytes, bits, sectors), so the builder only
derives ratios and lays values out by metric name and label values.

In the default ``cumulative`` rate mode CPU usage is the busy share of all
jiffies since boot and network ``bps``/``pps`` are total bits/packets since
boot. The ``delta`` mode reports both over the interval since the previous
cycle instead.
"""
import logging
from typing import Dict, Optional, Tuple

from hostexporter import metrics as m
from hostexporter.readers import Readings
from hostexporter.samples import ConnectionCounts, CpuTimes, DeviceIO, DiskUsage, InterfaceIO, MemoryInfo
from hostexporter.series import CycleSamples

logger = logging.getLogger(__name__)

RATE_MODES = ("cumulative", "delta")


def percent(part: float, whole: float, what: str = "ratio") -> float:
    """``part / whole * 100``, 0.0 when ``whole`` is not positive.

    A negative result can only come from inconsistent inputs; it is logged
    and reported as zero.
    """
    if whole <= 0:
        logger.debug(f"Zero denominator computing {what}, reporting 0")
        return 0.0
    value = part / whole * 100
    if value < 0:
        logger.warning(f"Negative {what} ({value:.2f}) from part={part} whole={whole}, reporting 0")
        return 0.0
    return value


def cpu_busy_percent(times: CpuTimes) -> float:
    return percent(times.busy, times.total, "cpu usage")


def memory_samples(mem: MemoryInfo) -> Dict[str, float]:
    if mem.total <= 0:
        return {
            m.MEMORY_TOTAL: 0.0,
            m.MEMORY_USED: 0.0,
            m.MEMORY_USED_PERCENT: 0.0,
            m.MEMORY_FREE: 0.0,
            m.MEMORY_FREE_PERCENT: 0.0,
            m.MEMORY_AVAILABLE: 0.0,
        }
    used = mem.used
    return {
        m.MEMORY_TOTAL: mem.total,
        m.MEMORY_USED: used,
        m.MEMORY_USED_PERCENT: percent(used, mem.total, "memory usage"),
        m.MEMORY_FREE: mem.total - used,
        m.MEMORY_FREE_PERCENT: percent(mem.free, mem.total, "free memory"),
        m.MEMORY_AVAILABLE: mem.available,
    }


def disk_total_samples(usage: DiskUsage) -> Dict[str, float]:
    size = usage.total_size
    return {
        m.DISK_TOTAL_SIZE: size,
        m.DISK_TOTAL_USED: usage.total_used,
        m.DISK_TOTAL_USED_PERCENT: percent(usage.total_used, size, "disk usage"),
        m.DISK_TOTAL_AVAILABLE: usage.total_available,
        m.DISK_TOTAL_AVAILABLE_PERCENT: percent(usage.total_available, size, "disk availability"),
    }


def partition_families(usage: DiskUsage) -> Dict[str, Dict[Tuple[str, ...], float]]:
    families: Dict[str, Dict[Tuple[str, ...], float]] = {
        m.DISK_USAGE_PERCENT: {},
        m.DISK_SIZE: {},
        m.DISK_USED: {},
        m.DISK_AVAILABLE: {},
    }
    for mount, part in usage.partitions.items():
        key = (mount,)
        families[m.DISK_USAGE_PERCENT][key] = part.use_percent
        families[m.DISK_SIZE][key] = part.size
        families[m.DISK_USED][key] = part.used
        families[m.DISK_AVAILABLE][key] = part.available
    return families


def disk_io_family(devices: Dict[str, DeviceIO]) -> Dict[Tuple[str, ...], float]:
    family: Dict[Tuple[str, ...], float] = {}
    for device, io in devices.items():
        family[(device, "readbytes")] = io.read_bytes
        family[(device, "readiops")] = io.read_ops
        family[(device, "writebytes")] = io.write_bytes
        family[(device, "writeiops")] = io.write_ops
    return family


def network_family(interfaces: Dict[str, InterfaceIO]) -> Dict[Tuple[str, ...], float]:
    family: Dict[Tuple[str, ...], float] = {}
    for iface, io in interfaces.items():
        family[(iface, "in", "bps")] = io.rx_bits
        family[(iface, "out", "bps")] = io.tx_bits
        family[(iface, "in", "pps")] = io.rx_packets
        family[(iface, "out", "pps")] = io.tx_packets
    return family


def netstat_family(connections: ConnectionCounts) -> Dict[Tuple[str, ...], float]:
    return {key: float(count) for key, count in connections.counts.items()}


class SampleBuilder:
    """Builds the registry samples of a cycle.

    Stateless in ``cumulative`` mode. In ``delta`` mode it keeps the CPU and
    network counters of the last successful read as the rate baseline.
    """

    def __init__(self, rate_mode: str = "cumulative"):
        if rate_mode not in RATE_MODES:
            raise ValueError(f"Unknown rate mode {rate_mode!r}, expected one of {RATE_MODES}")
        self.rate_mode = rate_mode
        self._previous_cpu: Optional[CpuTimes] = None
        self._previous_network: Optional[Dict[str, InterfaceIO]] = None
        self._previous_network_ts: float = 0.0

    def build(self, readings: Readings, timestamp: float) -> CycleSamples:
        samples = CycleSamples(timestamp=timestamp)

        if readings.uptime.ok:
            samples.fixed[m.UPTIME] = readings.uptime.value

        if readings.load.ok:
            samples.families[m.SYSTEM_LOAD] = {
                (duration,): value
                for duration, value in readings.load.value.by_duration().items()
            }

        if readings.cpu.ok:
            samples.fixed[m.CPU_USAGE] = self._cpu_percent(readings.cpu.value)

        if readings.memory.ok:
            samples.fixed.update(memory_samples(readings.memory.value))

        if readings.disk_usage.ok:
            samples.fixed.update(disk_total_samples(readings.disk_usage.value))
            samples.families.update(partition_families(readings.disk_usage.value))

        if readings.disk_io.ok:
            samples.families[m.DISK_PERFORMANCE] = disk_io_family(readings.disk_io.value)

        if readings.network.ok:
            network = self._network_family(readings.network.value, timestamp)
            if network is not None:
                samples.families[m.NETWORK] = network

        if readings.connections.ok:
            samples.families[m.NETSTAT] = netstat_family(readings.connections.value)

        return samples

    def _cpu_percent(self, times: CpuTimes) -> float:
        if self.rate_mode != "delta":
            return cpu_busy_percent(times)

        previous, self._previous_cpu = self._previous_cpu, times
        if previous is None:
            return cpu_busy_percent(times)

        delta_total = times.total - previous.total
        delta_busy = times.busy - previous.busy
        if delta_total <= 0 or delta_busy < 0:
            logger.info("CPU counters did not advance, reporting lifetime usage")
            return cpu_busy_percent(times)
        return percent(delta_busy, delta_total, "cpu usage")

    def _network_family(
        self, interfaces: Dict[str, InterfaceIO], timestamp: float
    ) -> Optional[Dict[Tuple[str, ...], float]]:
        if self.rate_mode != "delta":
            return network_family(interfaces)

        previous, previous_ts = self._previous_network, self._previous_network_ts
        self._previous_network, self._previous_network_ts = interfaces, timestamp
        if previous is None:
            return None

        elapsed = timestamp - previous_ts
        if elapsed <= 0:
            return None

        rates: Dict[str, InterfaceIO] = {}
        for iface, io in interfaces.items():
            before = previous.get(iface)
            if before is None:
                continue
            delta = InterfaceIO(
                rx_bits=io.rx_bits - before.rx_bits,
                rx_packets=io.rx_packets - before.rx_packets,
                tx_bits=io.tx_bits - before.tx_bits,
                tx_packets=io.tx_packets - before.tx_packets,
            )
            if min(delta.rx_bits, delta.rx_packets, delta.tx_bits, delta.tx_packets) < 0:
                logger.info(f"Counters of {iface} went backwards, restarting its baseline")
                continue
            rates[iface] = InterfaceIO(
                rx_bits=delta.rx_bits / elapsed,
                rx_packets=delta.rx_packets / elapsed,
                tx_bits=delta.tx_bits / elapsed,
                tx_packets=delta.tx_packets / elapsed,
            )
        return network_family(rates)
