"""Shared test fixtures for server-stats."""

from collections.abc import Sequence

import pytest
import structlog

from server_stats.models import DiskEntry, InterfaceCounters, MetricSnapshot, ProcessEntry
from server_stats.probes import BinaryNotFound, ProbeOutput

GB = 1024**3
MB = 1024**2


def make_process(
    pid: int = 100,
    name: str = "proc",
    cpu_percent: float = 0.0,
    memory_rss: int = 0,
) -> ProcessEntry:
    """Create a ProcessEntry for testing."""
    return ProcessEntry(pid=pid, name=name, cpu_percent=cpu_percent, memory_rss=memory_rss)


def make_snapshot(**overrides) -> MetricSnapshot:
    """Create a fully-populated MetricSnapshot; keyword arguments override fields."""
    fields = dict(
        cpu_percent_per_core=(10.0, 20.0, 30.0, 40.0),
        memory_total=16 * GB,
        memory_used=8 * GB,
        memory_available=8 * GB,
        swap_total=4 * GB,
        swap_used=1 * GB,
        disks=(
            DiskEntry(
                name="/dev/sda1",
                mount_point="/",
                total=100 * GB,
                used=25 * GB,
                available=75 * GB,
            ),
        ),
        processes=(
            make_process(1, "init", 0.5, 10 * MB),
            make_process(200, "postgres", 35.0, 512 * MB),
            make_process(300, "nginx", 12.5, 64 * MB),
            make_process(400, "python", 80.0, 256 * MB),
            make_process(500, "sshd", 0.0, 8 * MB),
            make_process(600, "java", 5.0, 2048 * MB),
        ),
        interfaces=(
            InterfaceCounters(name="eth0", bytes_received=10 * MB, bytes_sent=5 * MB),
            InterfaceCounters(name="lo", bytes_received=MB, bytes_sent=MB),
        ),
        boot_time=1_700_000_000.0,
        uptime_seconds=90061,
        load_avg=(2.0, 1.5, 1.0),
        os_name="Ubuntu",
        os_version="22.04",
        kernel_version="5.15.0-91-generic",
    )
    fields.update(overrides)
    return MetricSnapshot(**fields)


class FakeRunner:
    """Probe runner returning canned outputs keyed by command name.

    Commands without an entry behave like a missing binary.
    """

    def __init__(self, outputs: dict[str, ProbeOutput] | None = None) -> None:
        self.outputs = outputs or {}
        self.calls: list[tuple[str, tuple[str, ...]]] = []

    def __call__(self, command: str, args: Sequence[str]) -> ProbeOutput:
        self.calls.append((command, tuple(args)))
        if command not in self.outputs:
            raise BinaryNotFound(f"{command} not found")
        return self.outputs[command]


NETSTAT_OUTPUT = """\
Active Internet connections (only servers)
Proto Recv-Q Send-Q Local Address           Foreign Address         State
tcp        0      0 0.0.0.0:22              0.0.0.0:*               LISTEN
tcp        0      0 127.0.0.1:5432          0.0.0.0:*               LISTEN
tcp6       0      0 :::80                   :::*                    LISTEN
udp        0      0 0.0.0.0:68              0.0.0.0:*
"""

WHO_OUTPUT = """\
alice    pts/0        2024-01-15 09:12 (10.0.0.5)
bob      pts/1        2024-01-15 10:40 (10.0.0.7)
"""

LASTB_OUTPUT = """\
root     ssh:notty    203.0.113.9      Mon Jan 15 08:01 - 08:01  (00:00)
admin    ssh:notty    203.0.113.9      Mon Jan 15 08:00 - 08:00  (00:00)

btmp begins Mon Jan  1 00:00:01 2024
"""


@pytest.fixture
def snapshot() -> MetricSnapshot:
    return make_snapshot()


@pytest.fixture
def full_runner() -> FakeRunner:
    """Runner where every utility is present and succeeds."""
    return FakeRunner(
        {
            "netstat": ProbeOutput(stdout=NETSTAT_OUTPUT, returncode=0),
            "who": ProbeOutput(stdout=WHO_OUTPUT, returncode=0),
            "lastb": ProbeOutput(stdout=LASTB_OUTPUT, returncode=0),
            "hostname": ProbeOutput(stdout="web-01\n", returncode=0),
        }
    )


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Undo any structlog configuration a test applied."""
    yield
    structlog.reset_defaults()
