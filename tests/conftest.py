"""Shared fixtures: captured outputs of every host data source."""
import pytest

from hostexporter.config import Config
from hostexporter.readers import ReaderSet
from hostexporter.registry import MetricRegistry
from hostexporter.sources import StaticSource

UPTIME = "350735.47 234388.90\n"

LOADAVG = "0.52 0.58 0.59 2/1234 56789\n"

PROC_STAT = """\
cpu  100 0 50 850 0 0 0 0 0 0
cpu0 50 0 25 425 0 0 0 0 0 0
cpu1 50 0 25 425 0 0 0 0 0 0
intr 123456 0 0 0
ctxt 987654
btime 1700000000
"""

MEMINFO = """\
MemTotal:           1000 kB
MemFree:             200 kB
MemAvailable:        600 kB
Buffers:              50 kB
Cached:              300 kB
"""

DF = """\
Filesystem     1K-blocks     Used Available Use% Mounted on
udev             8000000        0   8000000   0% /dev
tmpfs            1600000     2000   1598000   1% /run
/dev/sda1      100000000 40000000  60000000  40% /
/dev/sda2       50000000 10000000  40000000  20% /home
tmpfs            8000000        0   8000000   0% /dev/shm
tmpfs               5120        4      5116   1% /run/lock
none                   0        0         0    - /sys/fs/cgroup
"""

DISKSTATS = """\
   8       0 sda 1000 10 20000 500 2000 30 40000 800 0 900 1300 0 0 0 0
   8       1 sda1 900 5 18000 400 1900 20 38000 700 0 800 1100
   7       0 loop0 50 0 100 10 0 0 0 0 0 10 10 0 0 0 0
   1       0 ram0 0 0 0 0 0 0 0 0 0 0 0
"""

NET_DEV = """\
Inter-|   Receive                                                |  Transmit
 face |bytes    packets errs drop fifo frame compressed multicast|bytes    packets errs drop fifo colls carrier compressed
    lo:    5000      50    0    0    0     0          0         0     5000      50    0    0    0     0       0          0
  eth0:    1000      10    0    0    0     0          0         0     2000      20    0    0    0     0       0          0
 wlan0:300 3 0 0 0 0 0 0 400 4 0 0 0 0 0 0
"""

NETSTAT = """\
Active Internet connections (servers and established)
Proto Recv-Q Send-Q Local Address           Foreign Address         State
tcp        0      0 0.0.0.0:8080            0.0.0.0:*               LISTEN
tcp        0      0 127.0.0.1:8080          127.0.0.1:51234         ESTABLISHED
tcp        0      0 10.0.0.5:8080           10.0.0.9:40000          ESTABLISHED
tcp        0      0 10.0.0.5:51234          10.0.0.7:443            ESTABLISHED
tcp6       0      0 :::22                   :::*                    LISTEN
tcp        0      0 10.0.0.5:22             10.0.0.8:5555           TIME_WAIT
"""

SOURCE_TEXTS = {
    "uptime": UPTIME,
    "load": LOADAVG,
    "cpu": PROC_STAT,
    "memory": MEMINFO,
    "disk_usage": DF,
    "disk_io": DISKSTATS,
    "network": NET_DEV,
    "connections": NETSTAT,
}


def make_readers(**overrides) -> ReaderSet:
    """ReaderSet over fixture texts; pass ``name=None`` to make a source fail."""
    texts = dict(SOURCE_TEXTS, **overrides)
    return ReaderSet.from_sources(
        **{name: StaticSource(text, name=name) for name, text in texts.items()}
    )


@pytest.fixture
def readers() -> ReaderSet:
    return make_readers()


@pytest.fixture
def failing_readers() -> ReaderSet:
    return make_readers(**{name: None for name in SOURCE_TEXTS})


@pytest.fixture
def registry() -> MetricRegistry:
    return MetricRegistry(prefix="game_")


@pytest.fixture
def config() -> Config:
    return Config(**{
        "global": {"collect_interval_s": 0.05, "control_api_enabled": False},
        "exporters": {"prometheus": {"enabled": False}},
    })


@pytest.fixture
def reader_factory():
    return make_readers
