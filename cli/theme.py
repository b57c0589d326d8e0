"""Unified Rich theme and reusable UI helper functions for the CLI."""

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.theme import Theme

from models.enums import RunStatus, UnitStatus

AUTOWRITE_THEME = Theme({
    "app.title": "bold",
    "success": "green",
    "warning": "yellow",
    "error": "red",
    "info": "blue",
    "muted": "dim",
    "accent": "cyan",
    "genre": "bold",
    "stat.label": "dim",
    "stat.value": "bold",
    "chapter.num": "blue",
})

_UNIT_STATUS_COLORS = {
    UnitStatus.PENDING: "dim",
    UnitStatus.WRITING: "yellow",
    UnitStatus.DONE: "green",
    UnitStatus.FAILED: "red",
    UnitStatus.SKIPPED: "cyan",
}

_RUN_STATUS_COLORS = {
    RunStatus.IDLE: "dim",
    RunStatus.GENERATING_OUTLINE: "yellow",
    RunStatus.WRITING: "yellow",
    RunStatus.PAUSED: "dim",
    RunStatus.AWAITING_APPROVAL: "blue",
    RunStatus.COMPLETED: "green",
    RunStatus.ERROR: "red",
}


def get_console() -> Console:
    """Return a Console instance with the autowrite theme applied."""
    return Console(theme=AUTOWRITE_THEME)


def app_header(title: str = "autowrite") -> Rule:
    """Return a Rule element for the application header banner."""
    return Rule(title=f"[bold]{title}[/]", style="dim")


def command_panel(title: str, fields: dict[str, str]) -> Panel:
    """Return a Panel displaying command parameters.

    Args:
        title: Panel title (e.g. "New project").
        fields: Ordered dict of label -> value pairs.
    """
    lines = []
    for label, value in fields.items():
        lines.append(f"  [stat.label]{label}:[/] [stat.value]{value}[/]")
    body = "\n".join(lines)
    return Panel(body, title=f"[bold]{title}[/]", box=box.ROUNDED, border_style="dim", padding=(0, 2))


def success_panel(title: str, body: str) -> Panel:
    """Return a green-bordered Panel for success results."""
    return Panel(body, title=f"[success]{title}[/]", box=box.ROUNDED, border_style="green", padding=(0, 2))


def run_status_text(status: RunStatus) -> str:
    color = _RUN_STATUS_COLORS.get(status, "white")
    return f"[{color}]{status.value}[/]"


def unit_status_bar(units: list) -> str:
    """One colored glyph per unit, in outline order."""
    if not units:
        return "[muted](no outline)[/]"
    return "".join(
        f"[{_UNIT_STATUS_COLORS.get(u.status, 'white')}]■[/]" for u in units
    )


def chapter_table(chapters: list) -> Table:
    """Build a Rich Table of chapters with per-unit status.

    Args:
        chapters: List of Chapter objects in sort order.
    """
    table = Table(title="Chapters", border_style="dim")
    table.add_column("ID", style="chapter.num")
    table.add_column("Title")
    table.add_column("Units")
    table.add_column("Words", justify="right")
    table.add_column("Status")

    for ch in chapters:
        done = ch.count(UnitStatus.DONE)
        table.add_row(
            str(ch.id),
            ch.title or "-",
            f"{unit_status_bar(ch.units)} [muted]{done}/{len(ch.units)}[/]",
            f"{ch.word_count:,}",
            ch.generation_status.value,
        )
    return table
