"""Process rankings over a single snapshot."""

from collections.abc import Sequence

from server_stats.models import ProcessEntry

TOP_N = 5


def top_by_cpu(processes: Sequence[ProcessEntry], n: int = TOP_N) -> list[ProcessEntry]:
    """Return the n busiest processes, highest cpu_percent first.

    sorted() is stable, so ties keep their enumeration order.
    """
    if n <= 0:
        return []
    return sorted(processes, key=lambda p: p.cpu_percent, reverse=True)[:n]


def top_by_memory(processes: Sequence[ProcessEntry], n: int = TOP_N) -> list[ProcessEntry]:
    """Return the n largest processes by resident memory."""
    if n <= 0:
        return []
    return sorted(processes, key=lambda p: p.memory_rss, reverse=True)[:n]


def percent_of(part: float, total: float) -> float:
    """part as a percentage of total; 0.0 when total is zero."""
    if total <= 0:
        return 0.0
    return part / total * 100.0
