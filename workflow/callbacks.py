"""Run progress callbacks for monitoring and real-time reporting."""

import logging
from typing import Protocol, runtime_checkable

from models.chapter import UnitDescriptor
from models.enums import RunStatus
from workflow.progress import PendingApproval, ProgressSnapshot

logger = logging.getLogger(__name__)


@runtime_checkable
class WorkflowCallback(Protocol):
    """Protocol for run progress callbacks.

    Implement this protocol to hook into the orchestrator lifecycle.
    """

    def on_status_change(self, status: RunStatus, snapshot: ProgressSnapshot) -> None:
        """Called whenever the run status changes."""
        ...

    def on_unit_complete(self, chapter_title: str, unit: UnitDescriptor, snapshot: ProgressSnapshot) -> None:
        """Called after a unit reaches done or failed."""
        ...

    def on_notice(self, message: str) -> None:
        """Called with transient notices, e.g. rate-limit waits."""
        ...

    def on_preview(self, chunk: str) -> None:
        """Called with word chunks of freshly written prose."""
        ...

    def on_awaiting_approval(self, pending: PendingApproval) -> None:
        """Called when checkpoint mode stops after a chapter."""
        ...

    def on_error(self, message: str) -> None:
        """Called when the run enters the error state."""
        ...


class LoggingCallback:
    """Lightweight callback that logs progress to the standard logger."""

    def on_status_change(self, status: RunStatus, snapshot: ProgressSnapshot) -> None:
        logger.info("Run status: %s", status.value)

    def on_unit_complete(self, chapter_title: str, unit: UnitDescriptor, snapshot: ProgressSnapshot) -> None:
        logger.info(
            "%s / unit %d %s (%d/%d units, %d words)",
            chapter_title, unit.sequence, unit.status.value,
            snapshot.completed_units, snapshot.total_units, snapshot.total_words,
        )

    def on_notice(self, message: str) -> None:
        logger.info(message)

    def on_preview(self, chunk: str) -> None:
        pass

    def on_awaiting_approval(self, pending: PendingApproval) -> None:
        logger.info(
            "Chapter '%s' ready for review (%d words)", pending.chapter_title, pending.word_count,
        )

    def on_error(self, message: str) -> None:
        logger.error("Run error: %s", message)


def _format_eta(seconds) -> str:
    if seconds is None:
        return "--"
    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h{minutes:02d}m" if hours else f"{minutes}m{secs:02d}s"


class RichProgressCallback:
    """Progress callback that renders a Rich live progress display in the terminal."""

    _STATUS_LABELS: dict[RunStatus, str] = {
        RunStatus.IDLE: "Idle",
        RunStatus.GENERATING_OUTLINE: "Generating outlines",
        RunStatus.WRITING: "Writing",
        RunStatus.PAUSED: "Paused",
        RunStatus.AWAITING_APPROVAL: "Awaiting approval",
        RunStatus.COMPLETED: "Completed",
        RunStatus.ERROR: "Error",
    }

    def __init__(self, console=None, total_units: int = 0):
        """
        Args:
            console: Rich Console instance. Creates one if not provided.
            total_units: Total units to write (for progress bar max).
        """
        self._console = console
        self._total = total_units
        self._progress = None
        self._unit_task_id = None
        self._status_task_id = None

    def start(self):
        """Start the progress display. Call before running the orchestrator."""
        from rich.console import Console
        from rich.progress import (
            Progress, SpinnerColumn, TextColumn, BarColumn, TaskProgressColumn,
        )

        console = self._console or Console()

        self._progress = Progress(
            SpinnerColumn("dots"),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
        )
        self._progress.start()

        self._unit_task_id = self._progress.add_task(
            "Waiting to start...",
            total=self._total if self._total > 0 else None,
        )
        self._status_task_id = self._progress.add_task("[dim]Initializing...[/]", total=None)

    def stop(self):
        """Stop the progress display."""
        if self._progress:
            self._progress.stop()
            self._progress = None

    def on_status_change(self, status: RunStatus, snapshot: ProgressSnapshot) -> None:
        if not self._progress:
            return
        self._progress.update(
            self._status_task_id,
            description=f"[dim]{self._STATUS_LABELS.get(status, status.value)}[/]",
        )
        if snapshot.total_units:
            self._progress.update(self._unit_task_id, total=snapshot.total_units)

    def on_unit_complete(self, chapter_title: str, unit: UnitDescriptor, snapshot: ProgressSnapshot) -> None:
        if not self._progress:
            return
        resolved = snapshot.completed_units + snapshot.failed_units + snapshot.skipped_units
        self._progress.update(
            self._unit_task_id,
            completed=resolved,
            total=snapshot.total_units or None,
            description=f"[green]{chapter_title}[/] "
                        f"([cyan]{snapshot.total_words:,}[/]/{snapshot.target_words:,} words, "
                        f"ETA {_format_eta(snapshot.eta_seconds)})",
        )

    def on_notice(self, message: str) -> None:
        if not self._progress:
            return
        self._progress.update(self._status_task_id, description=f"[yellow]{message}[/]")

    def on_preview(self, chunk: str) -> None:
        pass

    def on_awaiting_approval(self, pending: PendingApproval) -> None:
        if not self._progress:
            return
        self._progress.update(
            self._status_task_id,
            description=f"[bold]'{pending.chapter_title}' ready for review "
                        f"({pending.word_count:,} words)[/]",
        )

    def on_error(self, message: str) -> None:
        if not self._progress:
            return
        self._progress.update(self._status_task_id, description=f"[red]Error: {message[:80]}[/]")
