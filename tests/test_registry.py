"""Tests for the metric registry."""
import threading

import pytest
from prometheus_client import CollectorRegistry, generate_latest

from hostexporter import metrics as m
from hostexporter.registry import MetricRegistry
from hostexporter.series import CycleSamples


def test_set_fixed_overwrites(registry):
    registry.set_fixed(m.UPTIME, 10.0)
    registry.set_fixed(m.UPTIME, 20.0)
    assert registry.get(m.UPTIME) == 20.0
    assert registry.series_count() == 1


def test_replace_family_shrinks(registry):
    registry.replace_family(m.DISK_SIZE, {("A",): 1, ("B",): 2})
    registry.replace_family(m.DISK_SIZE, {("A",): 3})
    assert registry.family(m.DISK_SIZE) == {("A",): 3.0}


def test_get_accepts_label_dict(registry):
    registry.replace_family(m.NETSTAT, {("8080", "LISTEN"): 1})
    assert registry.get(m.NETSTAT, {"state": "LISTEN", "port": "8080"}) == 1.0
    assert registry.get(m.NETSTAT, ("8080", "LISTEN")) == 1.0
    assert registry.get(m.NETSTAT, ("22", "LISTEN")) is None


def test_replace_family_empty_clears(registry):
    registry.replace_family(m.NETSTAT, {("8080", "LISTEN"): 1})
    registry.replace_family(m.NETSTAT, {})
    assert registry.family(m.NETSTAT) == {}
    assert registry.series_count() == 0


def test_label_schema_is_enforced(registry):
    with pytest.raises(ValueError):
        registry.replace_family(m.NETSTAT, {("8080",): 1})
    with pytest.raises(ValueError):
        registry.get(m.NETSTAT, {"port": "8080", "proto": "tcp"})


def test_string_label_key_is_rejected(registry):
    with pytest.raises(ValueError, match="must be a tuple"):
        registry.replace_family(m.DISK_SIZE, {"/": 1})
    with pytest.raises(ValueError, match="must be a tuple"):
        registry.replace_family(m.DISK_SIZE, {"/home": 1})
    assert registry.family(m.DISK_SIZE) == {}

    registry.replace_family(m.DISK_SIZE, {("/",): 1})
    assert registry.get(m.DISK_SIZE, ("/",)) == 1.0


def test_unknown_metric(registry):
    with pytest.raises(KeyError):
        registry.set_fixed("nope", 1)


def test_fixed_and_family_are_not_interchangeable(registry):
    with pytest.raises(ValueError):
        registry.set_fixed(m.NETSTAT, 1)
    with pytest.raises(ValueError):
        registry.replace_family(m.UPTIME, {(): 1})


def test_apply_replaces_families_and_keeps_untouched_metrics(registry):
    registry.apply(CycleSamples(
        timestamp=100.0,
        fixed={m.UPTIME: 5.0, m.CPU_USAGE: 12.0},
        families={m.DISK_SIZE: {("/",): 10.0, ("/home",): 20.0}},
    ))
    registry.apply(CycleSamples(
        timestamp=105.0,
        fixed={m.UPTIME: 10.0},
        families={m.DISK_SIZE: {("/",): 11.0}},
    ))

    assert registry.get(m.UPTIME) == 10.0
    assert registry.get(m.CPU_USAGE) == 12.0
    assert registry.family(m.DISK_SIZE) == {("/",): 11.0}


def test_snapshot_is_sorted_and_prefixed(registry):
    registry.apply(CycleSamples(
        timestamp=100.0,
        fixed={m.UPTIME: 5.0},
        families={m.SYSTEM_LOAD: {("5m",): 0.5, ("1m",): 0.1}},
    ))
    points = registry.snapshot()

    assert [(p.name, p.labels, p.value) for p in points] == [
        ("game_server_uptime_seconds", {}, 5.0),
        ("game_system_load", {"duration": "1m"}, 0.1),
        ("game_system_load", {"duration": "5m"}, 0.5),
    ]
    assert all(p.timestamp == 100.0 for p in points)


def test_snapshot_is_a_copy(registry):
    registry.replace_family(m.DISK_SIZE, {("/",): 1})
    points = registry.snapshot()
    registry.replace_family(m.DISK_SIZE, {})
    assert len(points) == 1


def test_exposition_drops_stale_series():
    prom_registry = CollectorRegistry()
    registry = MetricRegistry(prefix="game_")
    prom_registry.register(registry)

    registry.replace_family(m.NETSTAT, {("8080", "LISTEN"): 1, ("9090", "LISTEN"): 1})
    output = generate_latest(prom_registry).decode("utf-8")
    assert 'game_netstat{port="9090",state="LISTEN"} 1.0' in output

    registry.replace_family(m.NETSTAT, {("8080", "LISTEN"): 1})
    output = generate_latest(prom_registry).decode("utf-8")
    assert 'game_netstat{port="8080",state="LISTEN"} 1.0' in output
    assert 'port="9090"' not in output


def test_exposition_omits_unset_fixed_metrics():
    prom_registry = CollectorRegistry()
    registry = MetricRegistry(prefix="game_")
    prom_registry.register(registry)

    registry.set_fixed(m.CPU_USAGE, 15.0)
    output = generate_latest(prom_registry).decode("utf-8")
    assert "game_cpu_usage_percent 15.0" in output
    assert "game_server_uptime_seconds " not in output


def test_concurrent_readers_never_see_partial_family(registry):
    families = [
        {(f"/mnt/{i}",): float(i) for i in range(50)},
        {(f"/data/{i}",): float(i) for i in range(10)},
    ]
    errors = []
    done = threading.Event()

    def reader():
        while not done.is_set():
            keys = set(registry.family(m.DISK_SIZE))
            if keys and keys not in (set(families[0]), set(families[1])):
                errors.append(keys)

    thread = threading.Thread(target=reader)
    thread.start()
    try:
        for i in range(500):
            registry.replace_family(m.DISK_SIZE, families[i % 2])
    finally:
        done.set()
        thread.join()

    assert errors == []


def _cycle(timestamp, mounts, ports):
    return CycleSamples(
        timestamp=timestamp,
        fixed={m.UPTIME: timestamp, m.CPU_USAGE: timestamp},
        families={
            m.DISK_SIZE: {(mount,): timestamp for mount in mounts},
            m.NETSTAT: {(port, "LISTEN"): timestamp for port in ports},
        },
    )


def test_concurrent_snapshots_see_whole_cycles(registry):
    cycles = [
        _cycle(1.0, [f"/mnt/{i}" for i in range(40)], ["22", "80"]),
        _cycle(2.0, ["/", "/home"], [str(p) for p in range(8000, 8030)]),
    ]
    disk_keys = {c.timestamp: set(c.families[m.DISK_SIZE]) for c in cycles}
    netstat_keys = {c.timestamp: set(c.families[m.NETSTAT]) for c in cycles}
    errors = []
    done = threading.Event()

    def snapshot_reader():
        while not done.is_set():
            points = registry.snapshot()
            if not points:
                continue
            timestamps = {p.timestamp for p in points}
            values = {p.value for p in points}
            if len(timestamps) != 1 or values != timestamps:
                errors.append(("mixed", timestamps, values))
                continue
            ts = timestamps.pop()
            disks = {(p.labels["partition"],) for p in points if p.name == "game_disk_size_bytes"}
            ports = {
                (p.labels["port"], p.labels["state"])
                for p in points if p.name == "game_netstat"
            }
            if disks != disk_keys[ts] or ports != netstat_keys[ts]:
                errors.append(("families", ts))

    def collect_reader():
        while not done.is_set():
            values = set()
            disks = set()
            for family in registry.collect():
                for sample in family.samples:
                    values.add(sample.value)
                    if family.name == "game_disk_size_bytes":
                        disks.add((sample.labels["partition"],))
            if not values:
                continue
            if len(values) != 1:
                errors.append(("collect mixed", values))
            elif disks != disk_keys[values.pop()]:
                errors.append(("collect families", disks))

    threads = [threading.Thread(target=snapshot_reader), threading.Thread(target=collect_reader)]
    for thread in threads:
        thread.start()
    try:
        for i in range(300):
            registry.apply(cycles[i % 2])
    finally:
        done.set()
        for thread in threads:
            thread.join()

    assert errors == []
    assert registry.get(m.UPTIME) == 2.0
