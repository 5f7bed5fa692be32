"""Metric sampling for server-stats."""

from __future__ import annotations

import platform
import time
from collections.abc import Callable
from dataclasses import dataclass, field

import psutil

from server_stats.config import CPU_SAMPLE_INTERVAL
from server_stats.logging import get_logger
from server_stats.models import DiskEntry, InterfaceCounters, MetricSnapshot, ProcessEntry

log = get_logger("sampler")


class SamplerNotReady(RuntimeError):
    """snapshot() was called before any refresh()."""


@dataclass(slots=True)
class SnapshotBuilder:
    """Mutable state filled in by Sampler.refresh() and frozen by snapshot()."""

    cpu_percent_per_core: list[float] = field(default_factory=list)
    memory_total: int = 0
    memory_used: int = 0
    memory_available: int = 0
    swap_total: int = 0
    swap_used: int = 0
    disks: list[DiskEntry] = field(default_factory=list)
    processes: list[ProcessEntry] = field(default_factory=list)
    interfaces: list[InterfaceCounters] = field(default_factory=list)
    boot_time: float = 0.0
    captured_at: float = 0.0
    load_avg: tuple[float, float, float] = (0.0, 0.0, 0.0)
    os_name: str = "Unknown"
    os_version: str = "Unknown"
    kernel_version: str = "Unknown"

    def freeze(self) -> MetricSnapshot:
        uptime = max(0, int(self.captured_at - self.boot_time))
        return MetricSnapshot(
            cpu_percent_per_core=tuple(self.cpu_percent_per_core),
            memory_total=self.memory_total,
            memory_used=self.memory_used,
            memory_available=self.memory_available,
            swap_total=self.swap_total,
            swap_used=self.swap_used,
            disks=tuple(self.disks),
            processes=tuple(self.processes),
            interfaces=tuple(self.interfaces),
            boot_time=self.boot_time,
            uptime_seconds=uptime,
            load_avg=self.load_avg,
            os_name=self.os_name,
            os_version=self.os_version,
            kernel_version=self.kernel_version,
        )


class Sampler:
    """
    Reads point-in-time OS counters using psutil.

    CPU figures (system and per-process) are deltas between consecutive
    refresh() calls, so a meaningful snapshot needs two refreshes separated
    by a real-time interval; see sample().
    Handles NoSuchProcess, AccessDenied and ZombieProcess errors gracefully.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._builder: SnapshotBuilder | None = None

    @property
    def refreshed(self) -> bool:
        return self._builder is not None

    def refresh(self) -> None:
        """Re-read all counters into internal state."""
        builder = SnapshotBuilder()

        builder.cpu_percent_per_core = list(psutil.cpu_percent(percpu=True))

        mem = psutil.virtual_memory()
        builder.memory_total = mem.total
        builder.memory_used = mem.used
        builder.memory_available = mem.available

        swap = psutil.swap_memory()
        builder.swap_total = swap.total
        builder.swap_used = swap.used

        builder.disks = self._collect_disks()
        builder.processes = self._collect_processes()
        builder.interfaces = self._collect_interfaces()

        builder.load_avg = tuple(psutil.getloadavg())
        builder.boot_time = psutil.boot_time()
        builder.captured_at = self._clock()
        builder.os_name, builder.os_version, builder.kernel_version = _os_identity()

        self._builder = builder
        log.debug(
            "refreshed",
            cores=len(builder.cpu_percent_per_core),
            processes=len(builder.processes),
            disks=len(builder.disks),
        )

    def snapshot(self) -> MetricSnapshot:
        """Freeze the most recent refresh into an immutable snapshot."""
        if self._builder is None:
            raise SamplerNotReady("refresh() must be called before snapshot()")
        return self._builder.freeze()

    def sample(
        self,
        interval: float = CPU_SAMPLE_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
    ) -> MetricSnapshot:
        """Refresh, wait interval seconds, refresh again and return the snapshot."""
        self.refresh()
        sleep(interval)
        self.refresh()
        return self.snapshot()

    def _collect_disks(self) -> list[DiskEntry]:
        disks: list[DiskEntry] = []
        for part in psutil.disk_partitions(all=False):
            try:
                usage = psutil.disk_usage(part.mountpoint)
            except OSError as exc:
                # Unreadable mounts (e.g. permission, stale network fs) are skipped
                log.debug("disk_skipped", mount_point=part.mountpoint, error=str(exc))
                continue
            disks.append(
                DiskEntry(
                    name=part.device,
                    mount_point=part.mountpoint,
                    total=usage.total,
                    used=max(0, usage.total - usage.free),
                    available=usage.free,
                )
            )
        return disks

    def _collect_processes(self) -> list[ProcessEntry]:
        """
        Collect entries for all running processes.

        process_iter() caches Process instances between calls, which is what
        makes per-process cpu_percent meaningful on the second refresh.
        """
        processes: list[ProcessEntry] = []

        for proc in psutil.process_iter(attrs=["pid", "name", "cpu_percent", "memory_info"]):
            try:
                info = proc.info
                mem_info = info.get("memory_info")
                processes.append(
                    ProcessEntry(
                        pid=info.get("pid", proc.pid),
                        name=info.get("name") or "",
                        cpu_percent=info.get("cpu_percent") or 0.0,
                        memory_rss=mem_info.rss if mem_info else 0,
                    )
                )
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                # Processes that died mid-poll or deny access are skipped
                continue

        return processes

    def _collect_interfaces(self) -> list[InterfaceCounters]:
        counters = psutil.net_io_counters(pernic=True)
        return [
            InterfaceCounters(name=name, bytes_received=c.bytes_recv, bytes_sent=c.bytes_sent)
            for name, c in sorted(counters.items())
        ]


def _os_identity() -> tuple[str, str, str]:
    """Return (name, version, kernel) for the running OS."""
    kernel = platform.release() or "Unknown"
    try:
        release = platform.freedesktop_os_release()
    except OSError:
        return platform.system() or "Unknown", platform.version() or "Unknown", kernel
    name = release.get("NAME") or platform.system() or "Unknown"
    version = release.get("VERSION_ID") or release.get("VERSION") or "Unknown"
    return name, version, kernel
