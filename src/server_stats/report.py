"""Report assembly: runs the sampler and probes and builds report sections."""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime

from server_stats.config import ReportConfig
from server_stats.logging import get_logger
from server_stats.models import (
    KeyValue,
    MetricSnapshot,
    ProcessEntry,
    ReportSection,
    TableBlock,
    TextLine,
)
from server_stats.monitor import Sampler
from server_stats.probes import (
    PermissionDenied,
    ProbeRunner,
    count_listening_ports,
    list_failed_logins,
    list_sessions,
    resolve_hostname,
    resolve_owner,
    run_probe,
)
from server_stats.ranking import percent_of, top_by_cpu, top_by_memory

log = get_logger("report")

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
PRIVILEGE_HINT = "unable to retrieve (may require elevated privileges)"

BYTES_PER_GB = 1024**3
BYTES_PER_MB = 1024**2


def bytes_to_gb(size: int) -> float:
    return size / BYTES_PER_GB


def bytes_to_mb(size: int) -> float:
    return size / BYTES_PER_MB


def decompose_uptime(seconds: int) -> tuple[int, int, int]:
    """Split seconds into whole (days, hours, minutes)."""
    seconds = max(0, int(seconds))
    days = seconds // 86400
    hours = (seconds % 86400) // 3600
    minutes = (seconds % 3600) // 60
    return days, hours, minutes


def load_per_core(load: float, cores: int) -> float:
    """1-minute load divided across cores; 0.0 with no cores."""
    if cores <= 0:
        return 0.0
    return load / cores


def cpu_usage(per_core: Sequence[float]) -> float:
    """Mean busy percentage across cores."""
    if not per_core:
        return 0.0
    return sum(per_core) / len(per_core)


class ReportAssembler:
    """
    Builds the report sections for one run.

    Sampling happens once; both process rankings are taken from that one
    snapshot. Every section is built under its own guard, so a failing
    data source only turns its own section into a placeholder.
    """

    def __init__(
        self,
        config: ReportConfig | None = None,
        sampler: Sampler | None = None,
        runner: ProbeRunner = run_probe,
        owner_resolver: Callable[[int], str] = resolve_owner,
        clock: Callable[[], datetime] = datetime.now,
        environ: Mapping[str, str] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._config = config or ReportConfig()
        self._sampler = sampler or Sampler()
        self._runner = runner
        self._resolve_owner = owner_resolver
        self._clock = clock
        self._environ = environ
        self._sleep = sleep

    def collect(self) -> MetricSnapshot:
        """Two-phase sample: refresh, wait, refresh."""
        return self._sampler.sample(self._config.cpu_sample_interval, sleep=self._sleep)

    def assemble(self) -> list[ReportSection]:
        """Sample the machine and return the sections in report order."""
        snapshot = self.collect()
        return self.build_sections(snapshot)

    def build_sections(self, snapshot: MetricSnapshot) -> list[ReportSection]:
        """Build every section from one snapshot plus the external probes."""
        cfg = self._config
        by_cpu = top_by_cpu(snapshot.processes, cfg.top_n)
        by_memory = top_by_memory(snapshot.processes, cfg.top_n)

        return [
            self._guard("SERVER PERFORMANCE STATS", self._header_section),
            self._guard("CPU USAGE", self._cpu_section, snapshot),
            self._guard("MEMORY USAGE", self._memory_section, snapshot),
            self._guard("DISK USAGE", self._disk_section, snapshot),
            self._guard(f"TOP {cfg.top_n} PROCESSES BY CPU USAGE", self._cpu_rank_section, by_cpu),
            self._guard(
                f"TOP {cfg.top_n} PROCESSES BY MEMORY USAGE",
                self._memory_rank_section,
                by_memory,
                snapshot.memory_total,
            ),
            self._guard("ADDITIONAL SYSTEM INFORMATION", self._system_section, snapshot),
            self._guard("NETWORK INTERFACES", self._interfaces_section, snapshot),
            self._guard("NETWORK CONNECTIONS", self._ports_section),
            self._guard("LOGGED IN USERS", self._sessions_section),
            self._guard("RECENT FAILED LOGIN ATTEMPTS", self._failed_logins_section),
            ReportSection(title="END OF REPORT", banner=True),
        ]

    def _guard(self, title: str, build: Callable[..., ReportSection], *args) -> ReportSection:
        try:
            return build(*args)
        except Exception as exc:
            log.warning("section_failed", section=title, error=repr(exc))
            return ReportSection.placeholder(title, str(exc) or type(exc).__name__)

    def _header_section(self) -> ReportSection:
        cfg = self._config
        hostname = resolve_hostname(
            self._environ,
            self._runner,
            env_var=cfg.hostname_env,
            argv=cfg.hostname_command,
        )
        return ReportSection(
            title="SERVER PERFORMANCE STATS",
            entries=(
                KeyValue("Generated on", self._clock().strftime(TIMESTAMP_FORMAT)),
                KeyValue("Hostname", hostname),
            ),
            banner=True,
        )

    def _cpu_section(self, snapshot: MetricSnapshot) -> ReportSection:
        usage = cpu_usage(snapshot.cpu_percent_per_core)
        return ReportSection(
            title="CPU USAGE",
            entries=(
                KeyValue("CPU Usage", f"{usage:.2f}%"),
                KeyValue("CPU Idle", f"{100.0 - usage:.2f}%"),
                KeyValue("CPU Cores", str(snapshot.core_count)),
            ),
        )

    def _memory_section(self, snapshot: MetricSnapshot) -> ReportSection:
        total = snapshot.memory_total
        entries = [
            KeyValue("Total Memory", f"{bytes_to_gb(total):.2f} GB"),
            KeyValue(
                "Used Memory",
                f"{bytes_to_gb(snapshot.memory_used):.2f} GB "
                f"({percent_of(snapshot.memory_used, total):.2f}%)",
            ),
            KeyValue(
                "Available Memory",
                f"{bytes_to_gb(snapshot.memory_available):.2f} GB "
                f"({percent_of(snapshot.memory_available, total):.2f}%)",
            ),
        ]
        if snapshot.swap_total > 0:
            entries.append(KeyValue("Total Swap", f"{bytes_to_gb(snapshot.swap_total):.2f} GB"))
            entries.append(
                KeyValue(
                    "Used Swap",
                    f"{bytes_to_gb(snapshot.swap_used):.2f} GB "
                    f"({percent_of(snapshot.swap_used, snapshot.swap_total):.2f}%)",
                )
            )
        else:
            entries.append(KeyValue("Swap", "Not configured"))
        return ReportSection(title="MEMORY USAGE", entries=tuple(entries))

    def _disk_section(self, snapshot: MetricSnapshot) -> ReportSection:
        if not snapshot.disks:
            return ReportSection(title="DISK USAGE", entries=(KeyValue("Disks", "Not configured"),))
        rows = tuple(
            (
                disk.name,
                f"{bytes_to_gb(disk.total):.1f}G",
                f"{bytes_to_gb(disk.used):.1f}G",
                f"{bytes_to_gb(disk.available):.1f}G",
                f"{percent_of(disk.used, disk.total):.1f}%",
                disk.mount_point,
            )
            for disk in snapshot.disks
        )
        table = TableBlock(
            columns=("Filesystem", "Size", "Used", "Available", "Use%", "Mounted on"),
            rows=rows,
        )
        return ReportSection(title="DISK USAGE", entries=(table,))

    def _cpu_rank_section(self, ranked: Sequence[ProcessEntry]) -> ReportSection:
        title = f"TOP {self._config.top_n} PROCESSES BY CPU USAGE"
        if not ranked:
            return ReportSection(title=title, entries=(TextLine("No processes found"),))
        rows = tuple(
            (str(p.pid), p.owner(self._resolve_owner), f"{p.cpu_percent:.2f}", p.name)
            for p in ranked
        )
        return ReportSection(
            title=title,
            entries=(TableBlock(columns=("PID", "USER", "CPU%", "COMMAND"), rows=rows),),
        )

    def _memory_rank_section(
        self, ranked: Sequence[ProcessEntry], memory_total: int
    ) -> ReportSection:
        title = f"TOP {self._config.top_n} PROCESSES BY MEMORY USAGE"
        if not ranked:
            return ReportSection(title=title, entries=(TextLine("No processes found"),))
        rows = tuple(
            (
                str(p.pid),
                p.owner(self._resolve_owner),
                f"{percent_of(p.memory_rss, memory_total):.2f}",
                f"{bytes_to_mb(p.memory_rss):.1f}M",
                p.name,
            )
            for p in ranked
        )
        return ReportSection(
            title=title,
            entries=(
                TableBlock(columns=("PID", "USER", "MEM%", "MEMORY", "COMMAND"), rows=rows),
            ),
        )

    def _system_section(self, snapshot: MetricSnapshot) -> ReportSection:
        days, hours, minutes = decompose_uptime(snapshot.uptime_seconds)
        one, five, fifteen = snapshot.load_avg
        boot = datetime.fromtimestamp(snapshot.boot_time).strftime(TIMESTAMP_FORMAT)
        return ReportSection(
            title="ADDITIONAL SYSTEM INFORMATION",
            entries=(
                KeyValue("OS", f"{snapshot.os_name} {snapshot.os_version}"),
                KeyValue("Kernel", snapshot.kernel_version),
                KeyValue("Uptime", f"{days} days, {hours} hours, {minutes} minutes"),
                KeyValue("Load Average", f"{one:.2f}, {five:.2f}, {fifteen:.2f}"),
                KeyValue("Load per core", f"{load_per_core(one, snapshot.core_count):.2f}"),
                KeyValue("Boot time", boot),
            ),
        )

    def _interfaces_section(self, snapshot: MetricSnapshot) -> ReportSection:
        if not snapshot.interfaces:
            return ReportSection(
                title="NETWORK INTERFACES",
                entries=(TextLine("No network interfaces found"),),
            )
        return ReportSection(
            title="NETWORK INTERFACES",
            entries=tuple(
                TextLine(
                    f"{nic.name}: RX: {bytes_to_mb(nic.bytes_received):.1f} MB, "
                    f"TX: {bytes_to_mb(nic.bytes_sent):.1f} MB",
                    indent=2,
                )
                for nic in snapshot.interfaces
            ),
        )

    def _ports_section(self) -> ReportSection:
        result = count_listening_ports(self._runner, self._config.ports_command)
        value = str(result.value) if result.available else f"unavailable ({result.reason})"
        return ReportSection(
            title="NETWORK CONNECTIONS",
            entries=(KeyValue("Listening ports", value),),
        )

    def _sessions_section(self) -> ReportSection:
        cfg = self._config
        result = list_sessions(self._runner, cfg.sessions_command, limit=cfg.session_limit)
        if not result.available:
            return ReportSection(
                title="LOGGED IN USERS",
                entries=(TextLine(f"unavailable ({result.reason})", indent=2),),
            )
        sessions = result.value
        entries = [TextLine(line, indent=2) for line in sessions.lines]
        entries.append(KeyValue("Total logged in users", str(sessions.total)))
        return ReportSection(title="LOGGED IN USERS", entries=tuple(entries))

    def _failed_logins_section(self) -> ReportSection:
        cfg = self._config
        title = "RECENT FAILED LOGIN ATTEMPTS"
        result = list_failed_logins(
            self._runner, cfg.failed_logins_command, limit=cfg.failed_login_limit
        )
        if not result.available:
            if result.error is PermissionDenied:
                message = PRIVILEGE_HINT
            else:
                message = f"unavailable ({result.reason})"
            return ReportSection(title=title, entries=(TextLine(message, indent=2),))
        if not result.value:
            return ReportSection(
                title=title, entries=(TextLine("No failed login attempts found", indent=2),)
            )
        return ReportSection(
            title=title,
            entries=tuple(TextLine(line, indent=2) for line in result.value),
        )
