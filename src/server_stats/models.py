"""Data models for server-stats."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

T = TypeVar("T")

UNKNOWN_OWNER = "unknown"


@dataclass(slots=True, frozen=True)
class ProcessEntry:
    """Immutable view of one process at sample time."""

    pid: int
    name: str
    cpu_percent: float  # 0.0 - 100.0 * core_count
    memory_rss: int  # Bytes

    def owner(self, resolve: Callable[[int], str]) -> str:
        """Resolve the owning user name, or "unknown" on any failure."""
        try:
            return resolve(self.pid) or UNKNOWN_OWNER
        except Exception:
            return UNKNOWN_OWNER


@dataclass(slots=True, frozen=True)
class DiskEntry:
    """A mounted filesystem and its usage in bytes."""

    name: str
    mount_point: str
    total: int
    used: int
    available: int


@dataclass(slots=True, frozen=True)
class InterfaceCounters:
    """Cumulative byte counters for a network interface."""

    name: str
    bytes_received: int
    bytes_sent: int


@dataclass(slots=True, frozen=True)
class MetricSnapshot:
    """Immutable view of machine state at one instant."""

    cpu_percent_per_core: tuple[float, ...]
    memory_total: int
    memory_used: int
    memory_available: int
    swap_total: int
    swap_used: int
    disks: tuple[DiskEntry, ...]
    processes: tuple[ProcessEntry, ...]
    interfaces: tuple[InterfaceCounters, ...]
    boot_time: float
    uptime_seconds: int
    load_avg: tuple[float, float, float]
    os_name: str
    os_version: str
    kernel_version: str

    @property
    def core_count(self) -> int:
        return len(self.cpu_percent_per_core)


@dataclass(slots=True, frozen=True)
class ProbeResult(Generic[T]):
    """Outcome of one external utility invocation.

    Either carries a parsed value or an "unavailable" reason. The error
    type that caused the failure is kept so callers can render specific
    messages (e.g. for permission problems).
    """

    value: T | None = None
    reason: str | None = None
    error: type[Exception] | None = None

    @classmethod
    def ok(cls, value: T) -> ProbeResult[T]:
        return cls(value=value)

    @classmethod
    def unavailable(cls, reason: str, error: type[Exception] | None = None) -> ProbeResult[Any]:
        return cls(reason=reason, error=error)

    @property
    def available(self) -> bool:
        return self.reason is None


@dataclass(slots=True, frozen=True)
class KeyValue:
    """A "key: value" report line."""

    key: str
    value: str


@dataclass(slots=True, frozen=True)
class TextLine:
    """A free-form report line, optionally indented."""

    text: str
    indent: int = 0


@dataclass(slots=True, frozen=True)
class TableBlock:
    """A fixed-width table of string cells."""

    columns: tuple[str, ...]
    rows: tuple[tuple[str, ...], ...] = ()


SectionEntry = KeyValue | TextLine | TableBlock


@dataclass(slots=True, frozen=True)
class ReportSection:
    """A named, ordered group of report lines.

    Sections are independent: a section that failed to build is replaced
    by a placeholder rather than aborting the report.
    """

    title: str
    entries: tuple[SectionEntry, ...] = field(default_factory=tuple)
    failed: bool = False
    banner: bool = False  # Header/footer framing instead of a "--- title ---" heading

    @classmethod
    def placeholder(cls, title: str, reason: str) -> ReportSection:
        return cls(title=title, entries=(TextLine(f"unavailable: {reason}"),), failed=True)
