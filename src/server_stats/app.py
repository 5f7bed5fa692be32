"""server-stats - render the report to the terminal."""

from collections.abc import Iterable

from rich.cells import cell_len
from rich.console import Console
from rich.table import Table
from rich.text import Text

from server_stats.config import ReportConfig
from server_stats.logging import configure_logging, get_logger
from server_stats.models import KeyValue, ReportSection, SectionEntry, TableBlock, TextLine
from server_stats.report import ReportAssembler

RULE = "=" * 41
BANNER_INDENT = 7


def build_table(block: TableBlock) -> Table:
    """Fixed-width, borderless table for a TableBlock."""
    table = Table(box=None, show_edge=False, pad_edge=False, header_style="bold")
    for column in block.columns:
        table.add_column(column, no_wrap=True)
    for row in block.rows:
        table.add_row(*(Text(cell) for cell in row))
    return table


def table_width(block: TableBlock) -> int:
    """Width the table needs so that no cell is cut short."""
    widths = [cell_len(column) for column in block.columns]
    for row in block.rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], cell_len(cell))
    # One space of padding either side of every inner column boundary
    return sum(widths) + 2 * max(0, len(widths) - 1)


def render_entry(console: Console, entry: SectionEntry) -> None:
    if isinstance(entry, KeyValue):
        console.print(Text(f"{entry.key}: {entry.value}"), soft_wrap=True)
    elif isinstance(entry, TextLine):
        console.print(Text(" " * entry.indent + entry.text), soft_wrap=True)
    elif isinstance(entry, TableBlock):
        needed = table_width(entry)
        if console.width < needed:
            console.width = needed
        console.print(build_table(entry))


def render_section(console: Console, section: ReportSection) -> None:
    if section.banner:
        # Header banner carries entries below it; the footer banner is bare
        if not section.entries:
            console.print()
        console.print(RULE)
        console.print(Text(" " * BANNER_INDENT + section.title, style="bold"))
        console.print(RULE)
        if section.entries:
            for entry in section.entries:
                render_entry(console, entry)
            console.print(RULE)
        return

    console.print()
    console.print(Text(f"--- {section.title} ---", style="bold"))
    for entry in section.entries:
        render_entry(console, entry)


def render_report(sections: Iterable[ReportSection], console: Console | None = None) -> None:
    """Print every section in order."""
    if console is None:
        console = Console(highlight=False)
    for section in sections:
        render_section(console, section)


def main() -> None:
    """Entry point for server-stats."""
    config = ReportConfig.from_env()
    configure_logging(config.log_level)
    get_logger("app").debug("starting", interval=config.cpu_sample_interval)
    sections = ReportAssembler(config).assemble()
    render_report(sections)


if __name__ == "__main__":
    main()
